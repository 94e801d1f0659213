"""User alerts sent when a live representative answers a delegated call."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import aiohttp

from swizz.config import Settings
from swizz.errors import ExternalServiceError
from swizz.logging_config import get_logger, mask_phone

logger: Any = get_logger(__name__)


class NotificationError(ExternalServiceError):
    """Raised when the alert webhook rejects or cannot receive the alert."""


@dataclass(frozen=True, slots=True)
class HumanAvailableAlert:
    """Payload describing the call the user should join."""

    call_id: str
    user_phone: str | None
    phone_number: str
    issue_description: str
    detected_at: datetime
    transcript: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "event": "human_available",
            "call_id": self.call_id,
            "user_phone": self.user_phone,
            "phone_number": self.phone_number,
            "issue_description": self.issue_description,
            "detected_at": self.detected_at.isoformat(),
            "transcript": self.transcript,
        }


class UserNotifier(Protocol):
    """Alerts the user that a human is on the line."""

    async def notify_human_available(self, alert: HumanAvailableAlert) -> None:
        ...


@dataclass(slots=True)
class WebhookNotifier:
    """POST alerts as JSON to a configured webhook."""

    webhook_url: str
    auth_token: str | None = None
    timeout_seconds: float = 5.0

    _session: aiohttp.ClientSession | None = field(default=None, repr=False)

    async def __aenter__(self) -> WebhookNotifier:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def notify_human_available(self, alert: HumanAvailableAlert) -> None:
        if self._session is None:
            async with self:
                await self._post(alert)
            return
        await self._post(alert)

    async def _post(self, alert: HumanAvailableAlert) -> None:
        assert self._session is not None
        headers = {}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        try:
            async with self._session.post(
                self.webhook_url, json=alert.to_payload(), headers=headers
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise NotificationError(f"Webhook failed: {resp.status} {body}")
        except aiohttp.ClientError as e:
            raise NotificationError(f"Webhook unreachable: {e}") from e

        logger.info(f"Human-available alert sent for call {alert.call_id}")


class LogNotifier:
    """Fallback when no webhook is configured: record the alert in the log."""

    async def notify_human_available(self, alert: HumanAvailableAlert) -> None:
        logger.warning(
            f"Human answered call {alert.call_id}; no alert webhook configured "
            f"(user {mask_phone(alert.user_phone)})"
        )


def build_notifier(settings: Settings) -> UserNotifier:
    """Pick the webhook notifier when configured, otherwise log only."""
    if not settings.notify_webhook_url:
        return LogNotifier()
    token = settings.notify_webhook_token
    return WebhookNotifier(
        webhook_url=settings.notify_webhook_url,
        auth_token=token.get_secret_value() if token else None,
        timeout_seconds=settings.notify_timeout_seconds,
    )
