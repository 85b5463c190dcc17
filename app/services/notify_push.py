#app\services\notify_push.py
import json
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from pywebpush import webpush, WebPushException

from app.core.config import settings

log = logging.getLogger(__name__)

# Push services answer these for an endpoint that will never accept delivery
# again (malformed, unknown, or unsubscribed).
TERMINAL_STATUSES = frozenset({400, 404, 410})


@dataclass(frozen=True)
class PushOutcome:
    subscription_id: int
    delivered: bool
    status_code: Optional[int] = None

    @property
    def permanent(self) -> bool:
        return not self.delivered and self.status_code in TERMINAL_STATUSES


class WebPushClient:
    """Sends one encrypted Web Push message per call using VAPID credentials."""

    def __init__(self, private_key: Optional[str], claims_sub: str, timeout: float = 5.0):
        self.private_key = private_key
        self.claims_sub = claims_sub
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.private_key)

    def send(self, subscription_id: int, subscription: dict, payload: dict) -> PushOutcome:
        if not self.enabled:
            return PushOutcome(subscription_id, delivered=False)
        try:
            webpush(
                subscription_info=subscription,
                data=json.dumps(payload),
                vapid_private_key=self.private_key,
                # webpush fills in aud/exp on the dict it gets
                vapid_claims={"sub": self.claims_sub},
                timeout=self.timeout,
            )
        except WebPushException as e:
            code = e.response.status_code if e.response is not None else None
            log.warning("push to subscription %s failed (status=%s): %s", subscription_id, code, e)
            return PushOutcome(subscription_id, delivered=False, status_code=code)
        except requests.RequestException as e:
            log.warning("push to subscription %s failed: %s", subscription_id, e)
            return PushOutcome(subscription_id, delivered=False)
        return PushOutcome(subscription_id, delivered=True)


def build_push_client() -> WebPushClient:
    if not settings.vapid_private_key or not settings.vapid_public_key:
        log.warning("VAPID keys not configured; push notifications are disabled")
    return WebPushClient(
        settings.vapid_private_key,
        settings.vapid_sub,
        timeout=settings.notify_timeout_seconds,
    )
