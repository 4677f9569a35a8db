"""
Outbound notifications: Discord webhooks and SMTP email.

Called after a write has been committed, typically from FastAPI
``BackgroundTasks``. Failures are logged and never propagate to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Optional

import requests

from ministry.records import Prayer, Testimonial
from ministry.site_settings import EmailConfig, SiteSettings
from ministry.store import StoreError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds
DESCRIPTION_LIMIT = 1000

BLUE = 0x0099FF
GREEN = 0x00FF00
GOLD = 0xFFD700
ORANGE = 0xFF9900


def _embed(title: str, description: str, color: int, footer: str, fields=()) -> dict:
    return {
        "title": title,
        "description": description[:DESCRIPTION_LIMIT],
        "color": color,
        "fields": [
            {"name": name, "value": value, "inline": inline}
            for name, value, inline in fields
        ],
        "footer": {"text": footer},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _post_webhook(url: str, payload: dict) -> None:
    response = requests.post(url, json=payload, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()


def _send_smtp(config: EmailConfig, message: EmailMessage) -> None:
    if config.use_tls and config.smtp_port == 465:
        server = smtplib.SMTP_SSL(config.smtp_host, config.smtp_port, timeout=REQUEST_TIMEOUT)
    else:
        server = smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=REQUEST_TIMEOUT)
    with server:
        if config.use_tls and config.smtp_port != 465:
            server.starttls()
        if config.smtp_username:
            server.login(config.smtp_username, config.smtp_password)
        server.send_message(message)


class Notifier:
    def __init__(self, site_settings: SiteSettings, ministry_name: str):
        self.site_settings = site_settings
        self.ministry_name = ministry_name

    # Discord

    async def send_discord(self, kind: str, payload: dict) -> bool:
        webhook = await self.site_settings.get_webhook(kind)
        if not webhook or not webhook.enabled or not webhook.url:
            logger.info("Discord webhook (%s) not configured or disabled", kind)
            return False
        try:
            await asyncio.to_thread(_post_webhook, webhook.url, payload)
        except requests.RequestException:
            logger.exception("Discord webhook (%s) failed", kind)
            return False
        return True

    async def prayer_submitted(self, prayer: Prayer) -> None:
        try:
            await self._notify_prayer(prayer)
        except StoreError:
            logger.exception("Notifications for prayer %s skipped", prayer.id)

    async def _notify_prayer(self, prayer: Prayer) -> None:
        submitter = prayer.name or "Anonymous"
        fields = [
            ("Submitted By", submitter, True),
            ("Visibility", "Public" if prayer.is_public else "Private", True),
            ("Prayer ID", prayer.id, True),
        ]
        if prayer.email:
            fields.append(("Email", prayer.email, False))
        await self.send_discord(
            "admin",
            {
                "embeds": [
                    _embed(
                        "New Prayer Request",
                        prayer.prayer,
                        BLUE,
                        self.ministry_name,
                        fields,
                    )
                ]
            },
        )
        if prayer.is_public:
            await self.send_discord(
                "community",
                {
                    "embeds": [
                        _embed(
                            "New Public Prayer Request",
                            prayer.prayer,
                            GREEN,
                            f"{self.ministry_name} - Join us in prayer",
                            [("Submitted By", submitter, True)],
                        )
                    ]
                },
            )
        if prayer.email:
            await self.send_email(
                prayer.email,
                f"We're Praying for You - {self.ministry_name}",
                f"Dear {submitter},\n\nThank you for sharing your prayer request "
                "with us. We have received it and are lifting you up in prayer.\n\n"
                f"In Christ,\n{self.ministry_name}",
            )

    async def testimonial_submitted(self, testimonial: Testimonial) -> None:
        try:
            await self._notify_testimonial(testimonial)
        except StoreError:
            logger.exception("Notifications for testimonial %s skipped", testimonial.id)

    async def _notify_testimonial(self, testimonial: Testimonial) -> None:
        await self.send_discord(
            "admin",
            {
                "embeds": [
                    _embed(
                        "New Testimonial Submitted",
                        testimonial.testimony,
                        GOLD,
                        f"{self.ministry_name} - Requires admin approval",
                        [
                            ("Submitted By", testimonial.name, True),
                            ("Testimonial ID", testimonial.id, True),
                            ("Status", "Pending Approval", True),
                        ],
                    )
                ]
            },
        )

    async def test_webhook(self, kind: str) -> bool:
        payload = {
            "embeds": [
                _embed(
                    "Test Notification",
                    f"This is a test message from the {self.ministry_name} website.",
                    ORANGE,
                    self.ministry_name,
                )
            ]
        }
        return await self.send_discord(kind, payload)

    # Email

    async def send_email(
        self, to: str, subject: str, text: str, config: Optional[EmailConfig] = None
    ) -> bool:
        config = config or await self.site_settings.get_email_config()
        if not config or not config.is_enabled:
            logger.info("Email is not configured or disabled; not sending %r", subject)
            return False
        try:
            message = EmailMessage()
            message["From"] = f"{config.from_name} <{config.from_email}>"
            message["To"] = to
            message["Subject"] = subject
            message.set_content(text)
            await asyncio.to_thread(_send_smtp, config, message)
        except ValueError as exc:
            logger.warning("Not sending email %r to %r: %s", subject, to, exc)
            return False
        except (smtplib.SMTPException, OSError):
            logger.exception("Sending email %r to %s failed", subject, to)
            return False
        return True

    async def send_test_email(self, to: str) -> bool:
        return await self.send_email(
            to,
            f"Test Email from {self.ministry_name}",
            "This is a test email to verify your SMTP configuration is working "
            f"correctly.\n\n- {self.ministry_name}",
        )
