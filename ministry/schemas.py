"""
Pydantic schemas for the ministry site API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    status: str = "ok"


class CsrfResponse(BaseModel):
    csrf_token: str


class LoginResponse(BaseModel):
    status: str
    username: str


class JournalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    date: datetime
    location_id: Optional[str] = None
    is_featured: bool = False
    is_published: bool = False


class JournalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    date: Optional[datetime] = None
    location_id: Optional[str] = None
    is_featured: Optional[bool] = None
    is_published: Optional[bool] = None


class LocationCreate(BaseModel):
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    state_code: str = Field(..., min_length=2, max_length=2)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    visited_date: datetime
    is_current: bool = False
    notes: Optional[str] = None


class LocationUpdate(BaseModel):
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    state_code: Optional[str] = Field(None, min_length=2, max_length=2)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    visited_date: Optional[datetime] = None
    is_current: Optional[bool] = None
    notes: Optional[str] = None


class LinkCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1, max_length=2048)
    emoji: str = Field("", max_length=16)
    description: Optional[str] = Field(None, max_length=500)
    order: Optional[int] = None


class LinkUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    url: Optional[str] = Field(None, min_length=1, max_length=2048)
    emoji: Optional[str] = Field(None, max_length=16)
    description: Optional[str] = Field(None, max_length=500)
    order: Optional[int] = None
    is_active: Optional[bool] = None


class LinkOrder(BaseModel):
    id: str
    order: int


class LinkReorder(BaseModel):
    items: list[LinkOrder]


class PrayerSubmission(BaseModel):
    prayer: str = Field(..., max_length=5000)
    is_public: bool = False
    name: Optional[str] = Field(None, max_length=100)
    # Blank or a single address; no whitespace inside.
    email: Optional[str] = Field(
        None, max_length=255, pattern=r"^\s*$|^[^\s@]+@[^\s@]+$"
    )


class TestimonialSubmission(BaseModel):
    key: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., max_length=100)
    testimony: str = Field(..., max_length=10000)
    location: Optional[str] = Field(None, max_length=100)


class TestimonialKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    expires_in_days: Optional[int] = Field(None, ge=1, le=365)
    phone: Optional[str] = Field(None, max_length=32)


class KeyValidationResponse(BaseModel):
    valid: bool
    name: Optional[str] = None


class ThemeUpdate(BaseModel):
    base_color: str = Field(..., min_length=3, max_length=7)


class EmailConfigPayload(BaseModel):
    smtp_host: str = Field(..., min_length=1)
    smtp_port: int = Field(587, ge=1, le=65535)
    smtp_username: str = ""
    # Omitted on update to keep the stored password.
    smtp_password: Optional[str] = None
    from_email: str = Field(..., min_length=3)
    from_name: str = ""
    is_enabled: bool = False
    use_tls: bool = True


class EmailTestRequest(BaseModel):
    to: str = Field(..., min_length=3, max_length=255)


class WebhookPayload(BaseModel):
    name: str = ""
    url: str = Field("", max_length=2048)
    enabled: bool = False


class PageViewPayload(BaseModel):
    path: str = Field(..., min_length=1, max_length=2048)
    referrer: Optional[str] = Field(None, max_length=2048)


class EventPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    page: str = Field(..., max_length=2048)
    data: Optional[dict] = None


class CleanupRequest(BaseModel):
    analytics_retention_days: Optional[int] = Field(None, ge=1)
    prayed_prayer_retention_days: Optional[int] = Field(None, ge=1)


class CleanupResponse(BaseModel):
    expired_sessions: int
    rate_limit_entries: int
    old_analytics: int
    prayed_prayers: int
    total: int
