"""
Twitter/X collector — latest tweets matching a keyword via the SocialTools
search API, author profiles via the users endpoint.

Requires SOCIAL_TOOLS_API_KEY (search) in .env; TWITTER_API_KEY is used for
profile lookups and falls back to the search key when unset.
"""
from datetime import datetime, timezone

import httpx
from loguru import logger

from feedwatch.collectors.base import BaseAdapter
from feedwatch.errors import ConfigurationError, ProfileFetchError, UpstreamError
from feedwatch.models import AuthorProfile, Page, Platform, RawItem, as_int

_TWEET_URL   = "https://x.com/{username}/status/{tweet_id}"
_PROFILE_URL = "https://twitter.com/{username}"
_LEGACY_TS   = "%a %b %d %H:%M:%S %z %Y"   # Wed Oct 10 20:19:24 +0000 2018


class TwitterAdapter(BaseAdapter):
    """
    config keys (from settings.TWITTER_CONFIG):
        base_url     (str)  search API root
        api_key      (str)  bearer token for search
        profile_url  (str)  users API root (defaults to base_url)
        profile_key  (str)  bearer token for users API (defaults to api_key)
    """
    platform = Platform.TWITTER
    label    = "Twitter"

    def __init__(self, config: dict, client: httpx.AsyncClient | None = None):
        super().__init__(config, client)
        if not config.get("api_key"):
            raise ConfigurationError(self.platform.value, "SOCIAL_TOOLS_API_KEY is not set")
        self.profile_url = (config.get("profile_url") or self.base_url).rstrip("/")
        self._search_headers = {
            "Accept":        "application/json",
            "Authorization": f"Bearer {config['api_key']}",
        }
        self._profile_headers = {
            "Accept":        "application/json",
            "Authorization": f"Bearer {config.get('profile_key') or config['api_key']}",
        }

    async def fetch_page(self, search_term: str, cursor: str | None) -> Page:
        params = {"query": search_term, "type": "Latest"}
        if cursor:
            params["cursor"] = cursor

        data = await self._get_json(
            f"{self.base_url}/search", params=params, headers=self._search_headers
        )
        if not isinstance(data, dict) or not isinstance(data.get("tweets"), list):
            raise UpstreamError(self.platform.value, "search response has no tweets list")

        tweets      = data["tweets"]
        items       = self._map_all(tweets)
        next_cursor = data.get("next_cursor") or None
        logger.info(
            f"[Twitter] '{search_term}' → {len(items)}/{len(tweets)} tweets"
            f"{' (more pages)' if next_cursor else ''}"
        )
        return Page(candidates=items, next_cursor=next_cursor, page_had_items=bool(tweets))

    def map_item(self, raw: dict) -> RawItem | None:
        user      = raw.get("user") or {}
        tweet_id  = raw.get("id_str") or ""
        author_id = user.get("id_str") or ""
        username  = user.get("screen_name") or ""
        if not tweet_id or not author_id or not username:
            return None

        media = ((raw.get("entities") or {}).get("media") or [{}])[0]
        return RawItem(
            platform                 = self.platform,
            external_id              = tweet_id,
            author_external_id       = author_id,
            canonical_url            = _TWEET_URL.format(username=username, tweet_id=tweet_id),
            published_at             = _parse_timestamp(raw.get("tweet_created_at") or raw.get("created_at")),
            author_display_name      = username,
            author_profile_image_url = user.get("profile_image_url_https", ""),
            text_body                = raw.get("full_text") or raw.get("text") or "",
            image_url                = media.get("media_url_https", ""),
            like_count               = as_int(raw.get("favorite_count")),
            comment_count            = as_int(raw.get("reply_count")),
            view_count               = as_int(raw.get("views_count")),
        )

    async def fetch_profile(self, author_external_id: str) -> AuthorProfile:
        try:
            data = await self._get_json(
                f"{self.profile_url}/users/{author_external_id}",
                params={"user.fields": "profile_image_url,public_metrics"},
                headers=self._profile_headers,
            )
        except UpstreamError as exc:
            raise ProfileFetchError(self.platform.value, author_external_id, str(exc)) from exc

        user = data.get("data") if isinstance(data, dict) else None
        if not isinstance(user, dict) or not user.get("username"):
            raise ProfileFetchError(self.platform.value, author_external_id, "no username in payload")

        metrics = user.get("public_metrics") or {}
        return AuthorProfile(
            username          = user["username"],
            profile_image_url = user.get("profile_image_url_https") or user.get("profile_image_url", ""),
            follower_count    = as_int(metrics.get("followers_count")),
            post_count        = as_int(metrics.get("tweet_count")),
            profile_url       = _PROFILE_URL.format(username=user["username"]),
        )


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        return datetime.strptime(value, _LEGACY_TS)
    except ValueError:
        return datetime.now(timezone.utc)
