"""
Author resolver — maps a platform-native author id to a local AuthorRecord,
creating it from the platform's profile API on first sight.

One resolver instance is shared by every adapter. Lookups go memory cache →
authors table → profile fetcher; a profile is fetched at most once per author.
Authors are keyed by (platform, author_external_id): native ids are only unique
within one platform. Creation is an insert-if-absent on that key, so two writers racing
on the same id both end up with the same stored row.
"""
from typing import Awaitable, Callable

import httpx
from loguru import logger

from feedwatch.database.db import get_author, get_db, insert_author
from feedwatch.errors import FeedwatchError
from feedwatch.models import AuthorProfile, AuthorRecord, Platform

ProfileFetcher = Callable[[str], Awaitable[AuthorProfile]]


class AuthorResolver:
    def __init__(self):
        self._cache: dict[tuple[str, str], AuthorRecord] = {}

    async def resolve_author(
        self,
        platform: Platform,
        author_external_id: str,
        profile_fetcher: ProfileFetcher,
    ) -> AuthorRecord | None:
        """
        Return the AuthorRecord for author_external_id, or None if it is not
        stored yet and the profile fetch failed. None means "skip this item".
        """
        if not author_external_id:
            return None

        key    = (platform.value, author_external_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        with get_db() as conn:
            existing = get_author(conn, platform, author_external_id)
        if existing is not None:
            self._cache[key] = existing
            return existing

        try:
            profile = await profile_fetcher(author_external_id)
        except (FeedwatchError, httpx.HTTPError, AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning(f"[Authors] {platform.value} author {author_external_id} unresolved: {exc}")
            return None

        if not profile or not profile.username:
            logger.warning(f"[Authors] {platform.value} author {author_external_id} has no username")
            return None

        with get_db() as conn:
            author = insert_author(conn, AuthorRecord(
                author_external_id = author_external_id,
                platform           = platform,
                username           = profile.username,
                profile_image_url  = profile.profile_image_url,
                follower_count     = profile.follower_count,
                post_count         = profile.post_count,
                profile_url        = profile.profile_url,
            ))

        self._cache[key] = author
        logger.debug(f"[Authors] created {platform.value} author {author.username} ({author_external_id})")
        return author

    def clear(self) -> None:
        """Drop cached authors; the scheduler calls this at the start of every full run."""
        self._cache.clear()
