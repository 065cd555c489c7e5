"""
Google News collector — keyword search over the Google News RSS feed, parsed
with feedparser. Public feed, no authentication required.

The feed is a single page (no pagination token), so fetch_page() always
returns next_cursor=None. Authors are the publishing outlets; their profile
is built from the <source> element of the entry, no extra upstream call.
"""
import hashlib
import html
import re
from datetime import datetime, timezone
from urllib.parse import urlparse

import feedparser
import httpx
from loguru import logger

from feedwatch.collectors.base import BaseAdapter
from feedwatch.errors import ProfileFetchError, UpstreamError
from feedwatch.models import AuthorProfile, Page, Platform, RawItem


class NewsAdapter(BaseAdapter):
    """
    config keys (from settings.NEWS_CONFIG):
        base_url  (str)  RSS search endpoint
        language  (str)  e.g. "en-US"
        country   (str)  e.g. "US"
    """
    platform = Platform.NEWS
    label    = "News"
    splits_boolean_queries = True

    def __init__(self, config: dict, client: httpx.AsyncClient | None = None):
        super().__init__(config, client)
        self.language = config.get("language", "en-US")
        self.country  = config.get("country", "US")
        self._outlets: dict[str, AuthorProfile] = {}   # outlets of the latest page

    async def fetch_page(self, search_term: str, cursor: str | None) -> Page:
        lang = self.language.split("-")[0]
        resp = await self._get(
            self.base_url,
            params={
                "q":    search_term,
                "hl":   self.language,
                "gl":   self.country,
                "ceid": f"{self.country}:{lang}",
            },
        )
        feed = feedparser.parse(resp.text)
        if feed.bozo and not feed.entries:
            raise UpstreamError(self.platform.value, "malformed feed with no entries")

        # outlets are only needed to resolve authors of the page being returned
        self._outlets = {}
        items = self._map_all(list(feed.entries))
        logger.info(f"[News] '{search_term}' → {len(items)}/{len(feed.entries)} articles")
        return Page(candidates=items, next_cursor=None, page_had_items=bool(feed.entries))

    def map_item(self, raw: dict) -> RawItem | None:
        link = raw.get("link", "")
        external_id = (
            raw.get("id")
            or link
            or (hashlib.md5(raw.get("title", "").encode()).hexdigest() if raw.get("title") else "")
        )
        source      = raw.get("source") or {}
        outlet_name = source.get("title") or raw.get("author") or ""
        outlet_url  = source.get("href", "")
        if not external_id or not outlet_name:
            return None

        author_id = _outlet_id(outlet_name, outlet_url)
        self._outlets[author_id] = AuthorProfile(
            username    = outlet_name,
            profile_url = outlet_url,
        )

        title = _unescape(raw.get("title", ""))
        suffix = f" - {outlet_name}"
        if title.endswith(suffix):
            title = title[: -len(suffix)]

        return RawItem(
            platform            = self.platform,
            external_id         = external_id,
            author_external_id  = author_id,
            canonical_url       = link,
            published_at        = _published(raw),
            author_display_name = outlet_name,
            text_body           = _strip_html(raw.get("summary", "")),
            title               = title,
            image_url           = _extract_image(raw),
        )

    async def fetch_profile(self, author_external_id: str) -> AuthorProfile:
        profile = self._outlets.get(author_external_id)
        if profile is None:
            raise ProfileFetchError(self.platform.value, author_external_id, "outlet not seen in feed")
        return profile


# ── Helpers ────────────────────────────────────────────────────────────────────

def _outlet_id(name: str, url: str) -> str:
    host = urlparse(url).netloc.lower().removeprefix("www.")
    return f"news:{host or name.strip().lower()}"


def _published(entry) -> datetime:
    parsed = entry.get("published_parsed")
    if parsed:
        return datetime(*parsed[:6], tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def _strip_html(text: str) -> str:
    """Remove HTML tags and collapse whitespace."""
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\s+", " ", text)
    return _unescape(text.strip())


def _unescape(text: str) -> str:
    """Decode HTML entities (&amp; → &, etc.)."""
    return html.unescape(text)


def _extract_image(entry) -> str:
    """Return the best image URL from a feedparser entry, or empty string."""
    for m in entry.get("media_content", []):
        if m.get("medium") == "image" or m.get("type", "").startswith("image"):
            return m.get("url", "")
    for t in entry.get("media_thumbnail", []):
        if t.get("url"):
            return t["url"]
    return ""
