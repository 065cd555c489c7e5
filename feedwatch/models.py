"""
Normalised record shapes shared by every adapter, the resolver and the store.

RawItem     one upstream item mapped to the common shape (author not yet resolved)
Page        one parsed upstream page plus its pagination token
ContentRecord / AuthorRecord   what gets persisted
FetchCursor per-run pagination state — never persisted
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Platform(str, Enum):
    INSTAGRAM = "instagram"   # image/video feed
    YOUTUBE   = "youtube"     # video sharing
    TWITTER   = "twitter"     # microblog
    NEWS      = "news"        # news aggregator
    REDDIT    = "reddit"      # link aggregator / forums


@dataclass
class RawItem:
    platform:                Platform
    external_id:             str
    author_external_id:      str
    canonical_url:           str
    published_at:            datetime
    author_display_name:     str = ""
    author_profile_image_url: str = ""
    text_body:               str = ""
    title:                   str | None = None
    image_url:               str = ""
    video_url:               str = ""
    like_count:              int = 0
    comment_count:           int = 0
    view_count:              int = 0


@dataclass
class Page:
    candidates:     list[RawItem]
    next_cursor:    str | None
    page_had_items: bool


@dataclass
class ContentRecord:
    platform:                Platform
    external_id:             str
    author_external_id:      str
    author_profile_image_url: str
    author_display_name:     str
    text_body:               str
    canonical_url:           str
    published_at:            datetime
    title:                   str | None = None
    image_url:               str = ""
    video_url:               str = ""
    like_count:              int = 0
    comment_count:           int = 0
    view_count:              int = 0
    topic_refs:              set[int] = field(default_factory=set)

    @classmethod
    def from_item(cls, item: RawItem, author: "AuthorRecord", topic_id: int | None) -> "ContentRecord":
        """Normalise a candidate, preferring the resolved author's name and avatar."""
        return cls(
            platform                 = item.platform,
            external_id              = item.external_id,
            author_external_id       = author.author_external_id,
            author_profile_image_url = author.profile_image_url or item.author_profile_image_url,
            author_display_name      = author.username or item.author_display_name,
            text_body                = item.text_body,
            canonical_url            = item.canonical_url,
            published_at             = item.published_at,
            title                    = item.title,
            image_url                = item.image_url,
            video_url                = item.video_url,
            like_count               = item.like_count,
            comment_count            = item.comment_count,
            view_count               = item.view_count,
            topic_refs               = {topic_id} if topic_id is not None else set(),
        )


@dataclass
class AuthorProfile:
    """What a platform profile fetcher hands back to the author resolver."""
    username:          str
    profile_image_url: str = ""
    follower_count:    int = 0
    post_count:        int = 0
    profile_url:       str = ""


@dataclass
class AuthorRecord:
    author_external_id: str
    platform:           Platform
    username:           str
    profile_image_url:  str = ""
    follower_count:     int = 0
    post_count:         int = 0
    profile_url:        str = ""


@dataclass
class Topic:
    id:     int
    name:   str
    active: bool = True


@dataclass
class FetchCursor:
    token:                  str | None = None
    total_fetched_this_run: int = 0

    def advance(self, next_token: str | None, fetched: int) -> None:
        self.token = next_token or None
        self.total_fetched_this_run += fetched


# ── Helpers ────────────────────────────────────────────────────────────────────

def as_int(value: object) -> int:
    """Coerce upstream counters that arrive as int/float/str/None into int (0 on junk)."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        trimmed = value.strip().replace(",", "")
        try:
            return int(float(trimmed)) if trimmed else 0
        except ValueError:
            return 0
    return 0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
