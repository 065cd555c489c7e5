"""Topic scheduler: ordering, isolation between topics/adapters, manual runs."""
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from feedwatch.database.db import content_exists, get_content_topics, get_db, upsert_topic
from feedwatch.errors import UpstreamError
from feedwatch.models import Platform
from feedwatch.pipeline.authors import AuthorResolver
from feedwatch.pipeline.scheduler import TopicScheduler


@pytest.fixture
def topics(db):
    with get_db() as conn:
        return {
            "alpha":  upsert_topic(conn, "alpha"),
            "beta":   upsert_topic(conn, "beta"),
            "paused": upsert_topic(conn, "paused", active=False),
        }


@pytest.fixture
def alerts(monkeypatch):
    failure     = AsyncMock()
    unavailable = AsyncMock()
    monkeypatch.setattr("feedwatch.pipeline.scheduler.alert_adapter_failure", failure)
    monkeypatch.setattr("feedwatch.pipeline.scheduler.alert_adapter_unavailable", unavailable)
    return failure, unavailable


def _per_term_adapter(stub_adapter, item, page, platform, failing_term=None, calls=None):
    """Stub whose first page holds one item per search term; optionally fails for one term."""

    class PerTermAdapter(stub_adapter):
        async def fetch_page(self, search_term, cursor):
            self.fetch_calls.append((search_term, cursor))
            if calls is not None:
                calls.append((platform.value, search_term))
            if search_term == failing_term:
                raise UpstreamError(platform.value, "HTTP 500", status_code=500)
            return page([item(f"{platform.value}-{search_term}", platform=platform)])

    return PerTermAdapter({}, platform=platform)


@pytest.mark.asyncio
async def test_run_all_visits_active_topics_in_adapter_order(
    topics, alerts, stub_adapter, item, page
) -> None:
    calls: list = []
    adapters = [
        _per_term_adapter(stub_adapter, item, page, p, calls=calls)
        for p in (Platform.YOUTUBE, Platform.TWITTER, Platform.NEWS, Platform.INSTAGRAM)
    ]

    summary = await TopicScheduler(adapters, max_records=10).run_all()

    assert calls == [
        ("youtube", "alpha"), ("twitter", "alpha"), ("news", "alpha"), ("instagram", "alpha"),
        ("youtube", "beta"), ("twitter", "beta"), ("news", "beta"), ("instagram", "beta"),
    ]
    assert summary.topics == 2
    assert summary.total_stored == 8
    assert summary.failures == []
    with get_db() as conn:
        assert get_content_topics(conn, Platform.YOUTUBE, "youtube-beta") == {topics["beta"]}


@pytest.mark.asyncio
async def test_failure_in_one_topic_does_not_stop_the_next(
    topics, alerts, stub_adapter, item, page
) -> None:
    youtube = _per_term_adapter(stub_adapter, item, page, Platform.YOUTUBE, failing_term="alpha")
    twitter = _per_term_adapter(stub_adapter, item, page, Platform.TWITTER)

    summary = await TopicScheduler([youtube, twitter], max_records=10).run_all()

    # the failing adapter did not stop its sibling for the same topic, nor topic beta
    assert [c[0] for c in twitter.fetch_calls] == ["alpha", "beta"]
    assert [c[0] for c in youtube.fetch_calls] == ["alpha", "beta"]
    assert summary.stored_for("beta", "youtube") == 1
    assert summary.stored_for("alpha", "twitter") == 1
    assert [(f.topic, f.platform) for f in summary.failures] == [("alpha", "youtube")]
    alerts[0].assert_awaited_once()


@pytest.mark.asyncio
async def test_unexpected_exception_is_contained(topics, alerts, stub_adapter, item, page) -> None:
    broken = stub_adapter({}, raise_on_fetch=RuntimeError("parser bug"))
    healthy = _per_term_adapter(stub_adapter, item, page, Platform.TWITTER)

    summary = await TopicScheduler([broken, healthy], max_records=10).run_all()

    assert len(summary.failures) == 2
    assert summary.total_stored == 2


@pytest.mark.asyncio
async def test_adapter_without_search_term_is_skipped(topics, alerts, stub_adapter, item, page) -> None:
    instagram = stub_adapter({}, platform=Platform.INSTAGRAM, search_term=None)

    summary = await TopicScheduler([instagram], max_records=10).run_all()

    assert instagram.fetch_calls == []
    assert all(o.skipped for o in summary.outcomes)
    assert summary.failures == []


@pytest.mark.asyncio
async def test_unavailable_adapters_reported_once_per_run(topics, alerts, stub_adapter, item, page) -> None:
    youtube = _per_term_adapter(stub_adapter, item, page, Platform.YOUTUBE)
    scheduler = TopicScheduler([youtube], unavailable={"twitter": "SOCIAL_TOOLS_API_KEY is not set"})

    await scheduler.run_all()

    alerts[1].assert_awaited_once_with("twitter", "SOCIAL_TOOLS_API_KEY is not set")


@pytest.mark.asyncio
async def test_run_one_only_touches_that_topic(topics, alerts, stub_adapter, item, page) -> None:
    youtube = _per_term_adapter(stub_adapter, item, page, Platform.YOUTUBE)

    summary = await TopicScheduler([youtube], max_records=10).run_one(topics["beta"])

    assert [c[0] for c in youtube.fetch_calls] == ["beta"]
    assert summary.total_stored == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("topic_key", ["paused", None])
async def test_run_one_ignores_inactive_or_unknown_topics(
    topics, alerts, stub_adapter, item, page, topic_key
) -> None:
    youtube  = _per_term_adapter(stub_adapter, item, page, Platform.YOUTUBE)
    topic_id = topics[topic_key] if topic_key else 9999

    summary = await TopicScheduler([youtube]).run_one(topic_id)

    assert youtube.fetch_calls == []
    assert summary.topics == 0


@pytest.mark.asyncio
async def test_run_keyword_stores_untagged(db, alerts, stub_adapter, item, page) -> None:
    youtube = _per_term_adapter(stub_adapter, item, page, Platform.YOUTUBE)

    summary = await TopicScheduler([youtube]).run_keyword("formula one")

    assert summary.total_stored == 1
    with get_db() as conn:
        assert get_content_topics(conn, Platform.YOUTUBE, "youtube-formula one") == set()


# ── Boolean topics ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_boolean_topic_is_split_only_for_keyword_adapters(db, alerts, stub_adapter, item, page) -> None:
    with get_db() as conn:
        upsert_topic(conn, "messi OR ronaldo")
    calls: list = []
    youtube = _per_term_adapter(stub_adapter, item, page, Platform.YOUTUBE, calls=calls)
    news    = _per_term_adapter(stub_adapter, item, page, Platform.NEWS, calls=calls)
    news.splits_boolean_queries = True

    summary = await TopicScheduler([youtube, news], max_records=10).run_all()

    assert calls == [("youtube", "messi OR ronaldo"), ("news", "messi"), ("news", "ronaldo")]
    assert [o.search_term for o in summary.outcomes] == ["messi OR ronaldo", "messi", "ronaldo"]
    assert summary.stored_for("messi OR ronaldo", "news") == 2


@pytest.mark.asyncio
async def test_failing_keyword_does_not_stop_the_next(db, alerts, stub_adapter, item, page) -> None:
    with get_db() as conn:
        upsert_topic(conn, "messi OR ronaldo")
    news = _per_term_adapter(stub_adapter, item, page, Platform.NEWS, failing_term="messi")
    news.splits_boolean_queries = True

    summary = await TopicScheduler([news], max_records=10).run_all()

    assert [c[0] for c in news.fetch_calls] == ["messi", "ronaldo"]
    assert [(f.platform, f.search_term) for f in summary.failures] == [("news", "messi")]
    assert summary.total_stored == 1
    alerts[0].assert_awaited_once()


@pytest.mark.asyncio
async def test_keyword_searches_keep_only_candidates_matching_the_whole_query(
    db, alerts, stub_adapter, item, page
) -> None:
    with get_db() as conn:
        topic_id = upsert_topic(conn, "storm NOT football")
    keep = replace(item("keep", platform=Platform.NEWS), title="Storm hits the coast")
    drop = replace(item("drop", platform=Platform.NEWS), title="Storm delays the football final")
    news = stub_adapter({None: page([keep, drop])}, platform=Platform.NEWS)
    news.splits_boolean_queries = True

    summary = await TopicScheduler([news], max_records=10).run_all()

    assert news.fetch_calls == [("storm", None)]
    assert summary.total_stored == 1
    with get_db() as conn:
        assert get_content_topics(conn, Platform.NEWS, "keep") == {topic_id}
        assert not content_exists(conn, Platform.NEWS, "drop")
    # the non-matching candidate never cost a profile lookup
    assert news.profile_calls == ["author-1"]


@pytest.mark.asyncio
async def test_full_query_adapters_are_not_filtered_locally(db, alerts, stub_adapter, item, page) -> None:
    with get_db() as conn:
        upsert_topic(conn, "storm NOT football")
    youtube = stub_adapter({None: page([replace(item("x"), text_body="football highlights")])})

    summary = await TopicScheduler([youtube], max_records=10).run_all()

    assert youtube.fetch_calls == [("storm NOT football", None)]
    assert summary.total_stored == 1


# ── Lifecycle ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_all_starts_with_a_fresh_author_cache(db, alerts) -> None:
    resolver = AuthorResolver()
    resolver._cache[("youtube", "stale")] = object()

    await TopicScheduler([], resolver=resolver).run_all()

    assert resolver._cache == {}


@pytest.mark.asyncio
async def test_aclose_closes_every_adapter(stub_adapter) -> None:
    adapters = [stub_adapter({}), stub_adapter({}, platform=Platform.NEWS)]
    for adapter in adapters:
        adapter.aclose = AsyncMock()

    await TopicScheduler(adapters).aclose()

    for adapter in adapters:
        adapter.aclose.assert_awaited_once()
