"""
Discord webhook alerts — fires on adapter failures, unavailable adapters
and scheduled-run summaries that contain failures.

Set DISCORD_WEBHOOK_URL in .env to enable. If unset, all calls are no-ops.
"""
from datetime import datetime, timezone

import httpx
from loguru import logger

from config.settings import DISCORD_WEBHOOK_URL

# Colour codes for Discord embeds
_COLOUR = {
    "error":   0xE74C3C,   # red
    "warning": 0xF39C12,   # amber
    "success": 0x2ECC71,   # green
    "info":    0x3498DB,   # blue
}


async def send_alert(message: str, level: str = "error") -> None:
    """
    Send a plain-text alert to Discord.
    level: "error" | "warning" | "info" | "success"
    """
    if not DISCORD_WEBHOOK_URL:
        return

    payload = {
        "embeds": [{
            "description": message,
            "color":       _COLOUR.get(level, _COLOUR["error"]),
            "footer":      {"text": f"Feedwatch • {_utcnow()}"},
        }]
    }
    await _post(payload)


async def alert_adapter_failure(platform: str, topic: str, error: str) -> None:
    await send_alert(
        f"**Ingestion failed** `{platform}` [{topic}]\n```{error[:500]}```",
        level="error",
    )


async def alert_adapter_unavailable(platform: str, reason: str) -> None:
    await send_alert(
        f"**Adapter unavailable** `{platform}` — {reason}",
        level="warning",
    )


async def alert_run_summary(topics: int, stored: int, failures: int) -> None:
    """Post a run summary; only worth a ping when something failed."""
    if not failures:
        return
    await send_alert(
        f"**Scheduled run finished** — {topics} topics, {stored} new records, "
        f"{failures} adapter failures",
        level="warning",
    )


async def alert_startup(interval_hours: int) -> None:
    await send_alert(f"Feedwatch started — fetching every {interval_hours}h", level="success")


# ── Internal ──────────────────────────────────────────────────────────────────

async def _post(payload: dict) -> None:
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.post(DISCORD_WEBHOOK_URL, json=payload)
            resp.raise_for_status()
    except Exception as exc:
        # Never let an alert failure crash the main app
        logger.warning(f"[Alerts] Discord webhook failed: {exc}")


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
