"""
Reddit collector — newest posts matching a keyword across all of Reddit via
asyncpraw (app-only OAuth, read-only).
Requires REDDIT_CLIENT_ID and REDDIT_CLIENT_SECRET in .env.

Reddit search has no Boolean operators worth relying on, so topics are
searched keyword by keyword (splits_boolean_queries). Authors are keyed by
username — that is what /user/{name}/about resolves.
"""
import html
from datetime import datetime, timezone

import asyncpraw
import httpx
from asyncpraw.exceptions import AsyncPRAWException
from asyncprawcore.exceptions import AsyncPrawcoreException
from loguru import logger

from config.settings import REQUEST_TIMEOUT
from feedwatch.collectors.base import BaseAdapter
from feedwatch.errors import ConfigurationError, ProfileFetchError, UpstreamError
from feedwatch.models import AuthorProfile, Page, Platform, RawItem, as_int

_IMAGE_EXTS   = (".jpg", ".jpeg", ".png", ".gif", ".webp")
_PROFILE_PATH = "/user/{username}"
_GONE_AUTHORS = {"", "[deleted]", "[removed]"}


class RedditAdapter(BaseAdapter):
    """
    config keys (from settings.REDDIT_CONFIG):
        base_url       (str)  public site root, used for permalinks
        client_id      (str)  script/app client id
        client_secret  (str)  app secret
        user_agent     (str)  Reddit requires a descriptive UA
        page_size      (int)  posts per search page (max 100)
    """
    platform = Platform.REDDIT
    label    = "Reddit"
    splits_boolean_queries = True

    def __init__(
        self,
        config: dict,
        client: httpx.AsyncClient | None = None,
        reddit: asyncpraw.Reddit | None = None,
    ):
        super().__init__(config, client)
        if reddit is None and not (config.get("client_id") and config.get("client_secret")):
            raise ConfigurationError(self.platform.value, "REDDIT_CLIENT_ID / REDDIT_CLIENT_SECRET not set")
        self.page_size = min(int(config.get("page_size", 25)), 100)
        self._reddit   = reddit
        self._owns_reddit = reddit is None

    @property
    def reddit(self) -> asyncpraw.Reddit:
        # created lazily: asyncpraw opens its aiohttp session on the running loop
        if self._reddit is None:
            self._reddit = asyncpraw.Reddit(
                client_id        = self.config["client_id"],
                client_secret    = self.config["client_secret"],
                user_agent       = self.config.get("user_agent", "feedwatch:v0.1"),
                requestor_kwargs = {"timeout": REQUEST_TIMEOUT},
            )
        return self._reddit

    async def fetch_page(self, search_term: str, cursor: str | None) -> Page:
        params = {"q": search_term, "sort": "new", "type": "link", "limit": self.page_size}
        if cursor:
            params["after"] = cursor

        try:
            listing = await self.reddit.get("search", params=params)
        except (AsyncPrawcoreException, AsyncPRAWException) as exc:
            raise UpstreamError(self.platform.value, f"search failed: {exc}") from exc

        children = getattr(listing, "children", None)
        if not isinstance(children, list):
            raise UpstreamError(self.platform.value, "search response is not a listing")

        items       = self._map_all([_submission_fields(post) for post in children])
        next_cursor = getattr(listing, "after", None) or None
        logger.info(
            f"[Reddit] '{search_term}' → {len(items)}/{len(children)} posts"
            f"{' (more pages)' if next_cursor else ''}"
        )
        return Page(candidates=items, next_cursor=next_cursor, page_had_items=bool(children))

    def map_item(self, raw: dict) -> RawItem | None:
        post_id = raw.get("id") or ""
        author  = raw.get("author") or ""
        if not post_id or author in _GONE_AUTHORS:
            return None

        permalink = raw.get("permalink") or f"/comments/{post_id}/"
        created   = raw.get("created_utc")
        published = (
            datetime.fromtimestamp(created, tz=timezone.utc)
            if isinstance(created, (int, float)) else datetime.now(timezone.utc)
        )
        return RawItem(
            platform            = self.platform,
            external_id         = post_id,
            author_external_id  = author,
            canonical_url       = f"{self.base_url}{permalink}",
            published_at        = published,
            author_display_name = author,
            text_body           = raw.get("selftext") or "",
            title               = raw.get("title") or "",
            image_url           = _extract_image(raw),
            video_url           = _extract_video(raw),
            like_count          = as_int(raw.get("score")),
            comment_count       = as_int(raw.get("num_comments")),
        )

    async def fetch_profile(self, author_external_id: str) -> AuthorProfile:
        try:
            redditor = await self.reddit.redditor(author_external_id, fetch=True)
        except (AsyncPrawcoreException, AsyncPRAWException) as exc:
            raise ProfileFetchError(self.platform.value, author_external_id, str(exc)) from exc

        username = getattr(redditor, "name", "") or ""
        if not username:
            raise ProfileFetchError(self.platform.value, author_external_id, "no username in payload")

        profile_sub = getattr(redditor, "subreddit", None)
        subscribers = profile_sub.get("subscribers") if isinstance(profile_sub, dict) else 0
        return AuthorProfile(
            username          = username,
            profile_image_url = html.unescape(getattr(redditor, "icon_img", "") or ""),
            follower_count    = as_int(subscribers),
            # Reddit exposes karma, not a post count
            post_count        = 0,
            profile_url       = f"{self.base_url}{_PROFILE_PATH.format(username=username)}",
        )

    async def aclose(self) -> None:
        if self._owns_reddit and self._reddit is not None:
            await self._reddit.close()
            self._reddit = None


# ── Helpers ───────────────────────────────────────────────────────────────────

def _submission_fields(post) -> dict:
    """Flatten an asyncpraw Submission into the plain dict map_item() expects."""
    author = getattr(post, "author", None)
    return {
        "id":           getattr(post, "id", ""),
        "author":       str(author) if author else "",
        "title":        getattr(post, "title", ""),
        "selftext":     getattr(post, "selftext", ""),
        "created_utc":  getattr(post, "created_utc", None),
        "permalink":    getattr(post, "permalink", ""),
        "url":          getattr(post, "url", ""),
        "score":        getattr(post, "score", 0),
        "num_comments": getattr(post, "num_comments", 0),
        "is_video":     getattr(post, "is_video", False),
        "preview":      getattr(post, "preview", None),
        "media":        getattr(post, "media", None),
    }


def _extract_image(raw: dict) -> str:
    """Return a direct image URL from the post if available."""
    url = raw.get("url") or ""
    if url.lower().endswith(_IMAGE_EXTS):
        return url

    # Reddit-hosted preview image (full resolution)
    try:
        return html.unescape(raw["preview"]["images"][0]["source"]["url"])
    except (KeyError, IndexError, TypeError):
        return ""


def _extract_video(raw: dict) -> str:
    if not raw.get("is_video"):
        return ""
    media = raw.get("media") or {}
    video = media.get("reddit_video") if isinstance(media, dict) else None
    return (video or {}).get("fallback_url", "") or raw.get("url", "")
