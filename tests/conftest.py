"""Shared fixtures: a throwaway SQLite DB per test and a scriptable stub adapter."""
from datetime import datetime, timezone

import pytest

from feedwatch.collectors.base import BaseAdapter
from feedwatch.database import db as db_module
from feedwatch.errors import ProfileFetchError, UpstreamError
from feedwatch.models import AuthorProfile, Page, Platform, RawItem


class StubAdapter(BaseAdapter):
    """
    Serves pre-baked pages keyed by cursor (None = first page) and counts calls.
    Authors listed in failing_authors raise ProfileFetchError.
    """
    label = "Stub"

    def __init__(
        self,
        pages: dict[str | None, Page],
        platform: Platform = Platform.YOUTUBE,
        failing_authors: set[str] | None = None,
        search_term: str | None = "__same__",
        raise_on_fetch: Exception | None = None,
    ):
        self.platform = platform
        super().__init__({"base_url": "http://stub.invalid"})
        self.pages           = pages
        self.failing_authors = failing_authors or set()
        self.raise_on_fetch  = raise_on_fetch
        self._search_term    = search_term
        self.fetch_calls:   list[tuple[str, str | None]] = []
        self.profile_calls: list[str] = []

    async def fetch_page(self, search_term: str, cursor: str | None) -> Page:
        self.fetch_calls.append((search_term, cursor))
        if self.raise_on_fetch is not None:
            raise self.raise_on_fetch
        if cursor not in self.pages:
            raise UpstreamError(self.platform.value, f"unexpected cursor {cursor!r}")
        return self.pages[cursor]

    def map_item(self, raw: dict) -> RawItem | None:
        return None

    async def fetch_profile(self, author_external_id: str) -> AuthorProfile:
        self.profile_calls.append(author_external_id)
        if author_external_id in self.failing_authors:
            raise ProfileFetchError(self.platform.value, author_external_id, "boom")
        return AuthorProfile(
            username          = f"user_{author_external_id}",
            profile_image_url = f"https://img.example/{author_external_id}.jpg",
            follower_count    = 10,
            post_count        = 3,
            profile_url       = f"https://example.com/{author_external_id}",
        )

    def search_term_for(self, topic_name: str) -> str | None:
        if self._search_term == "__same__":
            return topic_name
        return self._search_term


def make_item(
    external_id: str,
    author_id: str = "author-1",
    platform: Platform = Platform.YOUTUBE,
) -> RawItem:
    return RawItem(
        platform           = platform,
        external_id        = external_id,
        author_external_id = author_id,
        canonical_url      = f"https://example.com/{external_id}",
        published_at       = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        text_body          = f"body of {external_id}",
        like_count         = 1,
    )


def make_page(items: list[RawItem], next_cursor: str | None = None) -> Page:
    return Page(candidates=items, next_cursor=next_cursor, page_had_items=bool(items))


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Point get_db() at a fresh database file and create the schema."""
    monkeypatch.setattr(db_module, "DB_PATH", tmp_path / "feedwatch-test.db")
    db_module.init_db()
    return db_module


@pytest.fixture(autouse=True)
def no_discord(monkeypatch):
    monkeypatch.setattr("feedwatch.monitoring.alerts.DISCORD_WEBHOOK_URL", None)


@pytest.fixture
def stub_adapter():
    return StubAdapter


@pytest.fixture
def item():
    return make_item


@pytest.fixture
def page():
    return make_page
