# app/services/notify_discord.py
import logging
from datetime import datetime, timezone
from typing import Optional

import requests

from app.core.config import settings

log = logging.getLogger(__name__)

EMBED_COLOR = 0x3498DB


def build_embed(title: str, content: str, author_name: str, avatar_url: Optional[str] = None) -> dict:
    author = {"name": author_name}
    if avatar_url:
        author["icon_url"] = avatar_url
    return {
        "title": title,
        "description": content,
        "color": EMBED_COLOR,
        "author": author,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class DiscordNotifier:
    """Posts announcement embeds to a single channel through the Discord REST API.

    Delivery is best-effort: ``send_announcement`` logs and returns False on any
    failure instead of raising.
    """

    def __init__(self, token: Optional[str], channel_id: Optional[str],
                 api_base: str = "https://discord.com/api/v9", timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.token = token
        self.channel_id = channel_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.channel_id)

    def send_announcement(self, title: str, content: str, author_name: str,
                          avatar_url: Optional[str] = None) -> bool:
        if not self.enabled:
            return False
        url = f"{self.api_base}/channels/{self.channel_id}/messages"
        body = {
            "content": "@everyone",
            "embeds": [build_embed(title, content, author_name, avatar_url)],
        }
        try:
            r = self.session.post(url, json=body, headers={
                "Authorization": f"Bot {self.token}",
                "Content-Type": "application/json",
            }, timeout=self.timeout)
            r.raise_for_status()
        except Exception as e:
            log.error(f"Error sending Discord announcement: {e}", exc_info=True)
            return False
        log.info("Discord announcement sent successfully")
        return True


def build_discord_notifier() -> DiscordNotifier:
    if not settings.discord_token or not settings.announcement_channel_id:
        log.warning("DISCORD_TOKEN / ANNOUNCEMENT_CHANNEL_ID not set; Discord announcements are disabled")
    return DiscordNotifier(
        settings.discord_token,
        settings.announcement_channel_id,
        api_base=settings.discord_api_base,
        timeout=settings.notify_timeout_seconds,
    )
