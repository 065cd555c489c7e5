"""
Topic scheduler — runs the ingestion loop for every active topic against every
available adapter, one at a time.

Everything is sequential on purpose: upstream APIs rate-limit per key, so
topics, adapters and pages are never fanned out concurrently.

Failure containment:
  - an adapter that could not be built is skipped for every topic, logged once per run
  - an exception from one (topic, adapter, search term) run is logged + alerted,
    then the next term / adapter / topic runs as normal

Boolean topics: adapters that can't take the query are run once per keyword,
and each of those runs only keeps candidates that satisfy the whole query.
"""
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from config.settings import MAX_RECORDS_PER_RUN
from feedwatch.collectors.base import BaseAdapter
from feedwatch.collectors.query import is_boolean_query
from feedwatch.database.db import get_db, get_topic, list_active_topics
from feedwatch.models import utcnow
from feedwatch.monitoring.alerts import alert_adapter_failure, alert_adapter_unavailable
from feedwatch.pipeline.authors import AuthorResolver
from feedwatch.pipeline.ingest import ingest


@dataclass
class AdapterOutcome:
    topic:       str
    platform:    str
    search_term: str | None = None
    stored:      int = 0
    error:       str | None = None
    skipped:     bool = False


@dataclass
class RunSummary:
    started_at:  datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    topics:      int = 0
    outcomes:    list[AdapterOutcome] = field(default_factory=list)

    @property
    def total_stored(self) -> int:
        return sum(o.stored for o in self.outcomes)

    @property
    def failures(self) -> list[AdapterOutcome]:
        return [o for o in self.outcomes if o.error]

    def stored_for(self, topic: str, platform: str) -> int:
        return sum(o.stored for o in self.outcomes if o.topic == topic and o.platform == platform)


class TopicScheduler:
    def __init__(
        self,
        adapters: list[BaseAdapter],
        unavailable: dict[str, str] | None = None,
        resolver: AuthorResolver | None = None,
        max_records: int = MAX_RECORDS_PER_RUN,
    ):
        self.adapters    = adapters
        self.unavailable = unavailable or {}
        self.resolver    = resolver or AuthorResolver()
        self.max_records = max_records

    # ── Entry points ──────────────────────────────────────────────────────────

    async def run_all(self) -> RunSummary:
        """Ingest every active topic. Per-topic/per-adapter failures never abort the run."""
        summary = RunSummary()
        self.resolver.clear()
        await self._report_unavailable()

        with get_db() as conn:
            topics = list_active_topics(conn)
        logger.info(f"[Scheduler] run started — {len(topics)} active topics")

        for topic in topics:
            await self._run_topic(topic.name, topic.id, summary)

        return self._finish(summary)

    async def run_one(self, topic_id: int) -> RunSummary:
        """Ingest a single topic on demand (manual trigger)."""
        summary = RunSummary()
        with get_db() as conn:
            topic = get_topic(conn, topic_id)
        if topic is None:
            logger.warning(f"[Scheduler] topic {topic_id} not found — nothing to run")
            return self._finish(summary)
        if not topic.active:
            logger.warning(f"[Scheduler] topic '{topic.name}' is inactive — nothing to run")
            return self._finish(summary)

        await self._report_unavailable()
        await self._run_topic(topic.name, topic.id, summary)
        return self._finish(summary)

    async def run_keyword(self, keyword: str) -> RunSummary:
        """Ad-hoc ingestion for a raw keyword; records are stored without a topic tag."""
        summary = RunSummary()
        await self._report_unavailable()
        await self._run_topic(keyword, None, summary)
        return self._finish(summary)

    async def aclose(self) -> None:
        for adapter in self.adapters:
            await adapter.aclose()

    # ── Internal ──────────────────────────────────────────────────────────────

    async def _run_topic(self, name: str, topic_id: int | None, summary: RunSummary) -> None:
        logger.info(f"[Scheduler] topic '{name}' — starting")
        summary.topics += 1
        try:
            for adapter in self.adapters:
                summary.outcomes.extend(await self._run_adapter(adapter, name, topic_id))
        except Exception as exc:
            # anything outside a single adapter run (e.g. a search-term conversion bug)
            logger.exception(f"[Scheduler] topic '{name}' aborted: {exc}")
            summary.outcomes.append(AdapterOutcome(topic=name, platform="*", error=str(exc)))
            return
        logger.info(
            f"[Scheduler] topic '{name}' — done, "
            f"{sum(o.stored for o in summary.outcomes if o.topic == name)} new records"
        )

    async def _run_adapter(
        self, adapter: BaseAdapter, name: str, topic_id: int | None
    ) -> list[AdapterOutcome]:
        platform = adapter.platform.value
        terms    = adapter.search_terms_for(name)
        if not terms:
            logger.info(f"[Scheduler] no usable {platform} search term for '{name}' — skipping")
            return [AdapterOutcome(topic=name, platform=platform, skipped=True)]
        # searches were broadened to single keywords, so the whole query is checked locally
        topic_query = name if adapter.splits_boolean_queries and is_boolean_query(name) else None
        if topic_query and len(terms) > 1:
            logger.info(f"[Scheduler] {platform}: '{name}' split into {len(terms)} keyword searches")

        outcomes = []
        for term in terms:
            outcome = AdapterOutcome(topic=name, platform=platform, search_term=term)
            try:
                outcome.stored = await ingest(
                    adapter, term, topic_id, self.max_records,
                    resolver=self.resolver, topic_query=topic_query,
                )
            except Exception as exc:
                logger.error(f"[Scheduler] {platform} failed for topic '{name}' ({term}): {exc}")
                outcome.error = str(exc) or type(exc).__name__
                await alert_adapter_failure(platform, name, outcome.error)
            outcomes.append(outcome)
        return outcomes

    async def _report_unavailable(self) -> None:
        for platform, reason in self.unavailable.items():
            logger.warning(f"[Scheduler] {platform} adapter unavailable this run: {reason}")
            await alert_adapter_unavailable(platform, reason)

    def _finish(self, summary: RunSummary) -> RunSummary:
        summary.finished_at = utcnow()
        elapsed = (summary.finished_at - summary.started_at).total_seconds()
        logger.info(
            f"[Scheduler] run finished in {elapsed:.1f}s — {summary.topics} topics, "
            f"{summary.total_stored} new records, {len(summary.failures)} failures"
        )
        return summary
