"""
Adapter factory — builds every configured adapter in scheduler order.

Order is fixed: YouTube, Twitter, News (when enabled), Reddit, Instagram last
because it additionally needs a hashtag conversion per topic.
"""
import httpx
from loguru import logger

from config.settings import PLATFORM_CONFIG
from feedwatch.collectors.base import BaseAdapter
from feedwatch.collectors.instagram import InstagramAdapter
from feedwatch.collectors.news import NewsAdapter
from feedwatch.collectors.reddit import RedditAdapter
from feedwatch.collectors.twitter import TwitterAdapter
from feedwatch.collectors.youtube import YouTubeAdapter
from feedwatch.errors import ConfigurationError

ADAPTER_ORDER: list[tuple[str, type[BaseAdapter]]] = [
    ("youtube",   YouTubeAdapter),
    ("twitter",   TwitterAdapter),
    ("news",      NewsAdapter),
    ("reddit",    RedditAdapter),
    ("instagram", InstagramAdapter),
]


def build_adapters(
    client: httpx.AsyncClient | None = None,
    platform_config: dict[str, dict] | None = None,
) -> tuple[list[BaseAdapter], dict[str, str]]:
    """
    Returns (adapters, unavailable). unavailable maps platform → reason for
    adapters that could not be constructed; they are skipped for every topic.
    """
    platform_config = platform_config if platform_config is not None else PLATFORM_CONFIG
    adapters:    list[BaseAdapter] = []
    unavailable: dict[str, str]    = {}

    for name, cls in ADAPTER_ORDER:
        config = platform_config.get(name)
        if config is None:
            continue
        if name == "news" and not config.get("enabled", True):
            logger.debug("[Adapters] news adapter disabled — skipping")
            continue
        try:
            adapters.append(cls(config, client))
        except ConfigurationError as exc:
            unavailable[name] = str(exc)
            logger.error(f"[Adapters] {name} unavailable: {exc}")

    logger.info(
        f"[Adapters] ready: {', '.join(a.platform.value for a in adapters) or 'none'}"
        + (f" | unavailable: {', '.join(unavailable)}" if unavailable else "")
    )
    return adapters, unavailable
