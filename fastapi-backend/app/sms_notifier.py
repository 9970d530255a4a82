"""
SMS notifications for grievance submitters.

Messages go out through the Twilio REST API. Sending is always best-effort:
notification tasks are scheduled as background tasks after the response and
run under `run_supervised`, which logs and counts failures so they can never
affect the request that scheduled them.
"""
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
from fastapi import BackgroundTasks

from .config import Settings, get_settings
from .database import async_session_factory
from .metrics import NOTIFICATION_FAILURES, NOTIFICATIONS_SENT
from .models import User

logger = logging.getLogger("app.sms_notifier")


class NotificationError(RuntimeError):
    """Raised when the SMS provider rejects or cannot receive a message."""


def international_number(phone: str, country_code: str) -> str:
    phone = phone.strip()
    if phone.startswith("+"):
        return phone
    return f"{country_code}{phone}"


def format_registration_message(name: Optional[str], title: str) -> str:
    return f'Dear {name or "user"}, your grievance "{title}" has been registered successfully!'


class SmsNotifier:
    """Sends text messages through Twilio."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport
        self.enabled = bool(
            self.settings.twilio_account_sid
            and self.settings.twilio_auth_token
            and self.settings.twilio_from_number
        )
        if not self.enabled:
            logger.warning("Twilio credentials not configured. SMS notifications disabled.")

    @property
    def messages_url(self) -> str:
        return (
            f"{self.settings.sms_api_base}/2010-04-01/Accounts/"
            f"{self.settings.twilio_account_sid}/Messages.json"
        )

    async def send_sms(self, to: str, body: str) -> bool:
        """Send one message. Returns False when SMS is disabled; raises NotificationError on failure."""
        if not self.enabled:
            logger.debug("SMS disabled; dropping message to %s", to)
            return False

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.sms_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.messages_url,
                    data={"To": to, "From": self.settings.twilio_from_number, "Body": body},
                    auth=(self.settings.twilio_account_sid, self.settings.twilio_auth_token),
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NotificationError(
                f"SMS provider returned {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NotificationError(f"SMS request failed: {exc}") from exc

        NOTIFICATIONS_SENT.inc()
        logger.info("Sent SMS to %s", to)
        return True


# Global notifier instance
sms_notifier = SmsNotifier()


async def notify_grievance_registered(user_id: str, grievance_title: str) -> bool:
    """Text the submitter that their grievance was registered, if they have a phone number."""
    async with async_session_factory() as session:
        user = await session.get(User, user_id)

    if not user or not user.phone_number:
        logger.debug("No phone number for user %s; skipping SMS", user_id)
        return False

    to = international_number(user.phone_number, sms_notifier.settings.sms_country_code)
    return await sms_notifier.send_sms(to, format_registration_message(user.name, grievance_title))


async def run_supervised(task_name: str, func: Callable[..., Awaitable[Any]], *args: Any) -> None:
    try:
        await func(*args)
    except Exception as e:
        NOTIFICATION_FAILURES.labels(task=task_name).inc()
        logger.error(f"Notification task {task_name} failed: {e}", exc_info=True)


def dispatch_detached(
    background_tasks: BackgroundTasks,
    task_name: str,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
) -> None:
    """Schedule a notification to run after the response has been sent."""
    background_tasks.add_task(run_supervised, task_name, func, *args)


__all__ = [
    "NotificationError",
    "SmsNotifier",
    "dispatch_detached",
    "format_registration_message",
    "international_number",
    "notify_grievance_registered",
    "run_supervised",
    "sms_notifier",
]
