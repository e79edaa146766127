"""
Partner Recovery — Telegram alert channel for operators.
"""

import re
import logging

import aiohttp

from partner_recovery.config import settings

logger = logging.getLogger(__name__)


def _esc_md(s: str) -> str:
    """Escape MarkdownV2 special characters."""
    return re.sub(r"([_*\[\]()~`>#+\-=|{}.!\\])", r"\\\1", str(s))


async def send_recovery_failed_alert(
    contract_id: int,
    partner_type: str,
    error: str,
    attempt_count: int,
) -> bool:
    """Alert operators that a contract's recovery gave up. Returns True on success."""
    token = settings.telegram_bot_token
    chat_id = settings.telegram_chat_id

    if not token or not chat_id:
        logger.warning("Telegram not configured — skipping recovery failure alert")
        return False

    message = "\n".join([
        "🚨 *DB RECOVERY FAILED*",
        "",
        f"📝 *Contract:* `{_esc_md(contract_id)}`",
        f"👤 *Partner type:* {_esc_md(partner_type)}",
        f"🔁 *Attempts:* {attempt_count}",
        f"❗ *Last error:* {_esc_md(error[:500])}",
        "",
        "_Manual retry required from the operator API_",
    ])

    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": "MarkdownV2",
    }

    return await _send_tg_message(payload)


async def send_recovery_succeeded_alert(
    contract_id: int,
    partner_type: str,
    leads: int,
    sales: int,
    links: int,
) -> bool:
    """Tell operators a contract's records were moved. Returns True on success."""
    token = settings.telegram_bot_token
    chat_id = settings.telegram_chat_id

    if not token or not chat_id:
        logger.warning("Telegram not configured — skipping recovery success alert")
        return False

    message = "\n".join([
        "✅ *DB recovery complete*",
        "",
        f"📝 *Contract:* `{_esc_md(contract_id)}`",
        f"👤 *Partner type:* {_esc_md(partner_type)}",
        f"📇 *Leads:* {leads}  💰 *Sales:* {sales}  🔗 *Links:* {links}",
    ])

    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": "MarkdownV2",
    }

    return await _send_tg_message(payload)


async def _send_tg_message(payload: dict) -> bool:
    """Low-level Telegram sendMessage wrapper."""
    token = settings.telegram_bot_token
    try:
        timeout = aiohttp.ClientTimeout(total=10)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            url = f"https://api.telegram.org/bot{token}/sendMessage"
            async with session.post(url, json=payload) as resp:
                if resp.status == 200:
                    logger.info("Telegram alert sent")
                    return True
                body = await resp.text()
                logger.error("Telegram API %s: %s", resp.status, body[:200])
                return False
    except Exception as e:
        logger.error("Telegram failed: %s", e)
        return False
