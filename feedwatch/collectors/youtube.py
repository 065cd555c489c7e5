"""
YouTube Data API v3 collector — keyword search over public videos.
Requires YOUTUBE_API_KEY in .env (free quota: 10,000 units/day).

Quota cost per page: search.list = 100 units, videos.list = 1 unit.
Statistics for every video on a page are fetched in one batched videos.list
call rather than one call per video.
"""
from datetime import datetime, timezone

import httpx
from loguru import logger

from feedwatch.collectors.base import BaseAdapter
from feedwatch.errors import ConfigurationError, ProfileFetchError, UpstreamError
from feedwatch.models import AuthorProfile, Page, Platform, RawItem, as_int

_MAX_RESULTS = 50   # search.list hard maximum
_VIDEO_URL   = "https://www.youtube.com/watch?v={video_id}"
_CHANNEL_URL = "https://www.youtube.com/channel/{channel_id}"


class YouTubeAdapter(BaseAdapter):
    """
    config keys (from settings.YOUTUBE_CONFIG):
        base_url  (str)  Data API root
        api_key   (str)  API key, passed as the `key` query param
    """
    platform = Platform.YOUTUBE
    label    = "YouTube"

    def __init__(self, config: dict, client: httpx.AsyncClient | None = None):
        super().__init__(config, client)
        if not config.get("api_key"):
            raise ConfigurationError(self.platform.value, "YOUTUBE_API_KEY is not set")
        self.api_key = config["api_key"]

    async def fetch_page(self, search_term: str, cursor: str | None) -> Page:
        params = {
            "q":          search_term,
            "part":       "snippet",
            "type":       "video",
            "maxResults": _MAX_RESULTS,
            "key":        self.api_key,
        }
        if cursor:
            params["pageToken"] = cursor

        data = await self._get_json(f"{self.base_url}/search", params=params)
        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise UpstreamError(self.platform.value, "search response has no items list")

        raw_items = data["items"]
        items     = self._map_all(raw_items)
        if items:
            stats = await self._fetch_statistics([i.external_id for i in items])
            for item in items:
                s = stats.get(item.external_id, {})
                item.like_count    = as_int(s.get("likeCount"))
                item.comment_count = as_int(s.get("commentCount"))
                item.view_count    = as_int(s.get("viewCount"))

        next_cursor = data.get("nextPageToken") or None
        logger.info(
            f"[YouTube] '{search_term}' → {len(items)}/{len(raw_items)} videos"
            f"{' (more pages)' if next_cursor else ''}"
        )
        return Page(candidates=items, next_cursor=next_cursor, page_had_items=bool(raw_items))

    def map_item(self, raw: dict) -> RawItem | None:
        snippet    = raw.get("snippet") or {}
        ident      = raw.get("id")
        video_id   = ident.get("videoId", "") if isinstance(ident, dict) else ""
        channel_id = snippet.get("channelId", "")
        if not video_id or not channel_id:
            return None

        thumbnails = snippet.get("thumbnails") or {}
        thumbnail  = (thumbnails.get("high") or thumbnails.get("default") or {}).get("url", "")

        return RawItem(
            platform            = self.platform,
            external_id         = video_id,
            author_external_id  = channel_id,
            canonical_url       = _VIDEO_URL.format(video_id=video_id),
            published_at        = _parse_timestamp(snippet.get("publishedAt")),
            author_display_name = snippet.get("channelTitle", ""),
            text_body           = snippet.get("description", ""),
            title               = snippet.get("title", ""),
            image_url           = thumbnail,
            video_url           = _VIDEO_URL.format(video_id=video_id),
        )

    async def fetch_profile(self, author_external_id: str) -> AuthorProfile:
        try:
            data = await self._get_json(
                f"{self.base_url}/channels",
                params={
                    "id":   author_external_id,
                    "part": "snippet,statistics",
                    "key":  self.api_key,
                },
            )
        except UpstreamError as exc:
            raise ProfileFetchError(self.platform.value, author_external_id, str(exc)) from exc

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list) or not items:
            raise ProfileFetchError(self.platform.value, author_external_id, "channel not found")
        if not isinstance(items[0], dict):
            raise ProfileFetchError(self.platform.value, author_external_id, "malformed channel payload")

        snippet    = items[0].get("snippet") or {}
        statistics = items[0].get("statistics") or {}
        if not snippet.get("title"):
            raise ProfileFetchError(self.platform.value, author_external_id, "channel has no title")

        return AuthorProfile(
            username          = snippet["title"],
            profile_image_url = ((snippet.get("thumbnails") or {}).get("default") or {}).get("url", ""),
            follower_count    = as_int(statistics.get("subscriberCount")),
            post_count        = as_int(statistics.get("videoCount")),
            profile_url       = _CHANNEL_URL.format(channel_id=author_external_id),
        )

    # ── Internal ──────────────────────────────────────────────────────────────

    async def _fetch_statistics(self, video_ids: list[str]) -> dict[str, dict]:
        """videoId → statistics dict. Missing stats are not fatal — counters stay 0."""
        try:
            data = await self._get_json(
                f"{self.base_url}/videos",
                params={
                    "id":   ",".join(video_ids),
                    "part": "statistics",
                    "key":  self.api_key,
                },
            )
        except UpstreamError as exc:
            logger.warning(f"[YouTube] statistics lookup failed, counters default to 0: {exc}")
            return {}
        videos = data.get("items") if isinstance(data, dict) else None
        return {
            v.get("id"): v.get("statistics") or {}
            for v in videos or []
            if isinstance(v, dict)
        }


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)
