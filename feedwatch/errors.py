"""
Exception types shared by adapters, the ingestion loop and the scheduler.

  ConfigurationError  adapter cannot be built (missing key / base URL)
  UpstreamError       a page fetch failed — abandons that (topic, adapter) run
  ProfileFetchError   an author profile lookup failed — skips one item
"""


class FeedwatchError(Exception):
    """Base class for all feedwatch errors."""


class ConfigurationError(FeedwatchError):
    def __init__(self, platform: str, message: str):
        super().__init__(f"{platform}: {message}")
        self.platform = platform


class UpstreamError(FeedwatchError):
    def __init__(self, platform: str, message: str, status_code: int | None = None):
        super().__init__(f"{platform}: {message}")
        self.platform    = platform
        self.status_code = status_code


class ProfileFetchError(FeedwatchError):
    def __init__(self, platform: str, author_id: str, message: str):
        super().__init__(f"{platform} author {author_id}: {message}")
        self.platform  = platform
        self.author_id = author_id
