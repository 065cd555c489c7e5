"""
Instagram collector — recent posts for a hashtag via HikerAPI (v2).
Requires HIKER_API_KEY in .env; sent as the x-access-key header.

Search terms are hashtags, not free text: the scheduler converts the topic
name with hashtag.to_search_hashtag() before calling fetch_page().

Response shape (hashtag/medias/recent):
  {"response": {"sections": [{"layout_content": {"medias": [{"media": {...}}]}}],
                "next_page_id": "..."},
   "next_page_id": "..."}
"""
from datetime import datetime, timezone

import httpx
from loguru import logger

from feedwatch.collectors.base import BaseAdapter
from feedwatch.collectors.hashtag import to_search_hashtag
from feedwatch.errors import ConfigurationError, ProfileFetchError, UpstreamError
from feedwatch.models import AuthorProfile, Page, Platform, RawItem, as_int

_POST_URL    = "https://www.instagram.com/p/{code}/"
_PROFILE_URL = "https://www.instagram.com/{username}/"


class InstagramAdapter(BaseAdapter):
    """
    config keys (from settings.INSTAGRAM_CONFIG):
        base_url  (str)  HikerAPI v2 root
        api_key   (str)  HikerAPI access key
    """
    platform = Platform.INSTAGRAM
    label    = "Instagram"
    splits_boolean_queries = True

    def __init__(self, config: dict, client: httpx.AsyncClient | None = None):
        super().__init__(config, client)
        if not config.get("api_key"):
            raise ConfigurationError(self.platform.value, "HIKER_API_KEY is not set")
        self._headers = {
            "Content-Type": "application/json",
            "x-access-key": config["api_key"],
        }

    def search_term_for(self, topic_name: str) -> str | None:
        return to_search_hashtag(topic_name)

    async def fetch_page(self, search_term: str, cursor: str | None) -> Page:
        params = {"name": search_term}
        if cursor:
            params["page_id"] = cursor

        data = await self._get_json(
            f"{self.base_url}/hashtag/medias/recent", params=params, headers=self._headers
        )
        response = data.get("response") if isinstance(data, dict) else None
        if not isinstance(response, dict) or not isinstance(response.get("sections"), list):
            raise UpstreamError(self.platform.value, "response.sections missing from payload")

        medias: list = []
        for section in response["sections"]:
            layout = (section or {}).get("layout_content") or {}
            medias.extend(m.get("media") for m in layout.get("medias") or [] if isinstance(m, dict))

        next_cursor = response.get("next_page_id") or data.get("next_page_id") or None
        items = self._map_all(medias)
        logger.info(
            f"[Instagram] #{search_term} → {len(items)}/{len(medias)} usable posts"
            f"{' (more pages)' if next_cursor else ''}"
        )
        return Page(candidates=items, next_cursor=next_cursor, page_had_items=bool(medias))

    def map_item(self, raw: dict) -> RawItem | None:
        user      = raw.get("user") or {}
        code      = raw.get("code") or ""
        media_id  = str(raw.get("pk") or raw.get("id") or code)
        author_id = str(user.get("pk") or user.get("pk_id") or user.get("id") or "")
        if not code or not media_id or not author_id:
            return None

        taken_at  = raw.get("taken_at")
        published = (
            datetime.fromtimestamp(int(taken_at), tz=timezone.utc)
            if isinstance(taken_at, (int, float)) else datetime.now(timezone.utc)
        )
        candidates = (raw.get("image_versions2") or {}).get("candidates") or [{}]
        videos     = raw.get("video_versions") or [{}]

        return RawItem(
            platform                 = self.platform,
            external_id              = media_id,
            author_external_id       = author_id,
            canonical_url            = _POST_URL.format(code=code),
            published_at             = published,
            author_display_name      = user.get("username", ""),
            author_profile_image_url = user.get("profile_pic_url", ""),
            text_body                = (raw.get("caption") or {}).get("text", "") or "",
            image_url                = candidates[0].get("url", ""),
            video_url                = videos[0].get("url", ""),
            like_count               = as_int(raw.get("like_count")),
            comment_count            = as_int(raw.get("comment_count")),
            view_count               = as_int(raw.get("ig_play_count") or raw.get("play_count")),
        )

    async def fetch_profile(self, author_external_id: str) -> AuthorProfile:
        try:
            data = await self._get_json(
                f"{self.base_url}/user/by/id",
                params={"id": author_external_id},
                headers=self._headers,
            )
        except UpstreamError as exc:
            raise ProfileFetchError(self.platform.value, author_external_id, str(exc)) from exc

        user = data.get("user") if isinstance(data, dict) else None
        if not isinstance(user, dict) or not user.get("username"):
            raise ProfileFetchError(self.platform.value, author_external_id, "no username in payload")

        return AuthorProfile(
            username          = user["username"],
            profile_image_url = user.get("profile_pic_url", ""),
            follower_count    = as_int(user.get("follower_count")),
            post_count        = as_int(user.get("media_count")),
            profile_url       = _PROFILE_URL.format(username=user["username"]),
        )
