"""
Singleton settings stored under ``("settings", name)``: the site theme
color, SMTP configuration and the two Discord webhooks.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ministry import keys
from ministry.records import Record
from ministry.store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_THEME_COLOR = "#667eea"
WEBHOOK_TYPES = ("admin", "community")

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")

THEME = "theme"
EMAIL = "email"


def webhook_setting(kind: str) -> str:
    if kind not in WEBHOOK_TYPES:
        raise ValueError(f"Unknown webhook type: {kind}")
    return f"webhook:{kind}"


@dataclass
class ThemeSettings(Record):
    base_color: str = DEFAULT_THEME_COLOR


@dataclass
class EmailConfig(Record):
    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password: str
    from_email: str
    from_name: str
    is_enabled: bool = False
    use_tls: bool = True
    updated_at: Optional[float] = None
    updated_by: Optional[str] = None


@dataclass
class WebhookConfig(Record):
    name: str
    url: str
    enabled: bool = False


class SiteSettings:
    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def get_theme(self) -> ThemeSettings:
        data = await self.store.get(keys.setting(THEME))
        if data is None:
            return ThemeSettings()
        return ThemeSettings.from_dict(data)

    async def save_theme(self, base_color: str) -> ThemeSettings:
        base_color = base_color.strip()
        if not base_color.startswith("#"):
            base_color = "#" + base_color
        if not _HEX_COLOR.match(base_color):
            raise ValueError(f"Invalid color: {base_color}")
        theme = ThemeSettings(base_color=base_color.lower())
        await self.store.set(keys.setting(THEME), theme.as_dict())
        return theme

    async def get_email_config(self) -> Optional[EmailConfig]:
        data = await self.store.get(keys.setting(EMAIL))
        if data is None:
            return None
        return EmailConfig.from_dict(data)

    async def save_email_config(self, config: EmailConfig, updated_by: str) -> EmailConfig:
        config.updated_at = self.clock()
        config.updated_by = updated_by
        await self.store.set(keys.setting(EMAIL), config.as_dict())
        logger.info("Email settings updated by %s", updated_by)
        return config

    async def email_enabled(self) -> bool:
        config = await self.get_email_config()
        return config is not None and config.is_enabled

    async def get_webhook(self, kind: str) -> Optional[WebhookConfig]:
        data = await self.store.get(keys.setting(webhook_setting(kind)))
        if data is None:
            return None
        return WebhookConfig.from_dict(data)

    async def save_webhook(self, kind: str, webhook: WebhookConfig) -> WebhookConfig:
        await self.store.set(keys.setting(webhook_setting(kind)), webhook.as_dict())
        return webhook
