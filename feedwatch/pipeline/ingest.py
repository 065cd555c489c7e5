"""
Ingestion loop — drives one adapter through bounded pagination for one
search term and persists new ContentRecords tagged with a topic.

Per page:
  1. fetch_page(search_term, cursor)
  2. with a topic_query (Boolean topic searched keyword by keyword), drop
     candidates whose title + text don't satisfy the whole query
  3. drop candidates already stored (checked before any author lookup)
  4. resolve authors; a candidate whose author can't be resolved is skipped
  5. persist the surviving records in one transaction
Stops when the page was empty, produced nothing new, had no next cursor,
or the max_records bound is reached. Upstream errors propagate to the caller.
"""
from loguru import logger

from config.settings import MAX_RECORDS_PER_RUN, MERGE_TOPIC_REFS
from feedwatch.collectors.base import BaseAdapter
from feedwatch.collectors.query import matches, parse_query
from feedwatch.database.db import add_topic_ref, content_exists, get_db, insert_content_batch
from feedwatch.errors import UpstreamError
from feedwatch.models import ContentRecord, FetchCursor, Page
from feedwatch.pipeline.authors import AuthorResolver


async def ingest(
    adapter: BaseAdapter,
    search_term: str,
    topic_id: int | None,
    max_records: int = MAX_RECORDS_PER_RUN,
    *,
    resolver: AuthorResolver | None = None,
    merge_topic_refs: bool | None = None,
    topic_query: str | None = None,
) -> int:
    """
    Run one bounded ingestion pass. Returns the number of new records stored.
    topic_id=None stores untagged records (ad-hoc keyword runs).
    topic_query filters candidates locally when search_term is only one of its keywords.
    """
    resolver = resolver or AuthorResolver()
    merge    = MERGE_TOPIC_REFS if merge_topic_refs is None else merge_topic_refs
    query    = parse_query(topic_query)
    platform = adapter.platform.value
    cursor   = FetchCursor()
    stored   = 0
    pages    = 0

    while stored < max_records:
        try:
            page = await adapter.fetch_page(search_term, cursor.token)
        except UpstreamError as exc:
            logger.error(
                f"[Ingest] {platform} '{search_term}' page {pages + 1} failed "
                f"after {stored} stored: {exc}"
            )
            raise
        pages += 1

        staged = await _stage_page(
            adapter, page, topic_id, max_records - stored, resolver, merge, query
        )
        written = 0
        if staged:
            with get_db() as conn:
                written = insert_content_batch(conn, staged)
        stored += written
        cursor.advance(page.next_cursor, len(page.candidates))

        logger.info(
            f"[Ingest] {platform} '{search_term}' page {pages}: "
            f"{len(page.candidates)} candidates → {written} stored "
            f"(total {stored}/{max_records})"
        )

        stop_reason = _stop_reason(page, written, cursor, stored, max_records)
        if stop_reason:
            logger.debug(f"[Ingest] {platform} '{search_term}' stopping: {stop_reason}")
            break

    return stored


async def _stage_page(
    adapter: BaseAdapter,
    page: Page,
    topic_id: int | None,
    remaining: int,
    resolver: AuthorResolver,
    merge: bool,
    query=None,
) -> list[ContentRecord]:
    platform   = adapter.platform
    candidates = page.candidates
    if query is not None:
        candidates = [
            c for c in candidates if matches(query, f"{c.title or ''} {c.text_body or ''}")
        ]
        if len(candidates) < len(page.candidates):
            logger.debug(
                f"[Ingest] {platform.value}: {len(page.candidates) - len(candidates)} "
                f"candidates don't match the topic query"
            )

    # Existence check for the whole page happens before any author lookup
    with get_db() as conn:
        known = {
            item.external_id
            for item in candidates
            if content_exists(conn, platform, item.external_id)
        }
        if merge and topic_id is not None:
            merged = sum(add_topic_ref(conn, platform, ext_id, topic_id) for ext_id in known)
            if merged:
                logger.debug(f"[Ingest] {platform.value}: topic {topic_id} added to {merged} existing records")

    staged:   list[ContentRecord] = []
    seen:     set[str] = set()
    failures: int = 0

    for item in candidates:
        if len(staged) >= remaining:
            break
        if item.external_id in known or item.external_id in seen:
            continue

        author = await resolver.resolve_author(
            platform, item.author_external_id, adapter.fetch_profile
        )
        if author is None:
            failures += 1
            continue

        seen.add(item.external_id)
        staged.append(ContentRecord.from_item(item, author, topic_id))

    if known or failures:
        logger.debug(
            f"[Ingest] {platform.value}: {len(known)} duplicates, "
            f"{failures} author failures skipped"
        )
    return staged


def _stop_reason(
    page: Page, written: int, cursor: FetchCursor, stored: int, max_records: int
) -> str | None:
    if not page.page_had_items:
        return "empty page"
    if written == 0:
        return "no new records on page (feed caught up)"
    if cursor.token is None:
        return "no next cursor"
    if stored >= max_records:
        return f"bound of {max_records} reached"
    return None
