"""
HTTP routes for the ministry site API.

Public routes serve published content and accept prayer, testimonial and
page-view submissions; ``/admin`` routes require a session and a CSRF token
on every write.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
)

from ministry.analytics import AnalyticsService
from ministry.auth import SESSION_COOKIE_NAME, SessionStore
from ministry.cleanup import CleanupService
from ministry.config import Settings, get_settings
from ministry.csrf import CsrfGuard
from ministry.dependencies import (
    get_analytics,
    get_cleanup,
    get_csrf_guard,
    get_journal,
    get_links,
    get_locations,
    get_notifier,
    get_prayers,
    get_sessions,
    get_site_settings,
    get_testimonials,
    get_video_feed,
)
from ministry.journal import JournalRepository
from ministry.links import LinkRepository
from ministry.locations import LocationRepository
from ministry.notifications import Notifier
from ministry.prayers import PrayerRepository
from ministry.repository import Page
from ministry.schemas import (
    CleanupRequest,
    CleanupResponse,
    CsrfResponse,
    EmailConfigPayload,
    EmailTestRequest,
    EventPayload,
    JournalCreate,
    JournalUpdate,
    KeyValidationResponse,
    LinkCreate,
    LinkReorder,
    LinkUpdate,
    LocationCreate,
    LocationUpdate,
    LoginResponse,
    PageViewPayload,
    PrayerSubmission,
    StatusResponse,
    TestimonialKeyCreate,
    TestimonialSubmission,
    ThemeUpdate,
    WebhookPayload,
)
from ministry.security import rate_limit, request_client_ip, require_admin, verify_csrf
from ministry.site_settings import WEBHOOK_TYPES, EmailConfig, SiteSettings, WebhookConfig
from ministry.testimonials import TestimonialRepository, sms_invite_link
from ministry.videos import VideoFeed

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60

router = APIRouter()
admin_router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def _page_payload(page: Page, number: int) -> dict:
    return {
        "items": [item.as_dict() for item in page.items],
        "total": page.total,
        "pages": page.pages,
        "page": number,
    }


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found")


# Health, CSRF and authentication


@router.get("/health", response_model=StatusResponse)
def health():
    return StatusResponse()


@router.get("/csrf", response_model=CsrfResponse)
def issue_csrf_token(response: Response, guard: CsrfGuard = Depends(get_csrf_guard)):
    token = guard.issue()
    response.set_cookie(value=token, **guard.cookie_kwargs())
    return CsrfResponse(csrf_token=token)


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(verify_csrf), Depends(rate_limit("login", "login"))],
)
async def login(
    request: Request,
    response: Response,
    username: str = Form(""),
    password: str = Form(""),
    sessions: SessionStore = Depends(get_sessions),
):
    if not username or not password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    session_id = await sessions.login(username, password, ip=request_client_ip(request))
    if not session_id:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    response.set_cookie(value=session_id, **sessions.session_cookie_kwargs())
    return LoginResponse(status="ok", username=username)


@router.post("/logout", response_model=StatusResponse, dependencies=[Depends(verify_csrf)])
async def logout(
    request: Request,
    response: Response,
    sessions: SessionStore = Depends(get_sessions),
):
    await sessions.logout(request.cookies.get(SESSION_COOKIE_NAME))
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return StatusResponse()


# Public content


@router.get("/links")
async def list_links(links: LinkRepository = Depends(get_links)):
    return [link.as_dict() for link in await links.get_all()]


@router.get("/journal")
async def list_journal(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=50),
    journal: JournalRepository = Depends(get_journal),
):
    return _page_payload(await journal.get_published_page(page, per_page), page)


@router.get("/journal/featured")
async def featured_journal(
    limit: int = Query(2, ge=1, le=10),
    journal: JournalRepository = Depends(get_journal),
):
    return [entry.as_dict() for entry in await journal.get_featured(limit)]


@router.get("/journal/{slug}")
async def get_journal_entry(
    slug: str,
    journal: JournalRepository = Depends(get_journal),
    locations: LocationRepository = Depends(get_locations),
):
    payload = await journal.get_by_slug_with_location(slug, locations)
    if not payload or not payload["is_published"]:
        raise _not_found("Journal entry")
    return payload


@router.get("/locations")
async def list_locations(locations: LocationRepository = Depends(get_locations)):
    return [location.as_dict() for location in await locations.get_all()]


@router.get("/locations/current")
async def current_location(locations: LocationRepository = Depends(get_locations)):
    location = await locations.get_current()
    if not location:
        raise _not_found("Current location")
    return location.as_dict()


@router.get("/locations/{location_id}/journal")
async def location_journal(
    location_id: str,
    journal: JournalRepository = Depends(get_journal),
):
    return [entry.as_dict() for entry in await journal.get_by_location(location_id)]


@router.get("/prayers")
async def list_public_prayers(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    prayers: PrayerRepository = Depends(get_prayers),
):
    result = await prayers.get_page(page, per_page, public_only=True)
    payload = _page_payload(result, page)
    # Contact details are for the admins only.
    for item in payload["items"]:
        item.pop("email", None)
    return payload


@router.post(
    "/prayers",
    status_code=201,
    dependencies=[Depends(verify_csrf), Depends(rate_limit("prayer", "prayer"))],
)
async def submit_prayer(
    payload: PrayerSubmission,
    background_tasks: BackgroundTasks,
    prayers: PrayerRepository = Depends(get_prayers),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        prayer = await prayers.submit(
            prayer=payload.prayer,
            is_public=payload.is_public,
            name=payload.name,
            email=payload.email,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    background_tasks.add_task(notifier.prayer_submitted, prayer)
    return {"id": prayer.id, "status": "received"}


@router.get("/testimonials")
async def list_approved_testimonials(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=50),
    testimonials: TestimonialRepository = Depends(get_testimonials),
):
    return _page_payload(await testimonials.get_page(page, per_page), page)


@router.get("/testimonials/keys/{key_id}", response_model=KeyValidationResponse)
async def check_testimonial_key(
    key_id: str, testimonials: TestimonialRepository = Depends(get_testimonials)
):
    key = await testimonials.validate_key(key_id)
    if not key:
        return KeyValidationResponse(valid=False)
    return KeyValidationResponse(valid=True, name=key.name)


@router.post(
    "/testimonials",
    status_code=201,
    dependencies=[Depends(verify_csrf), Depends(rate_limit("testimonial", "form"))],
)
async def submit_testimonial(
    payload: TestimonialSubmission,
    background_tasks: BackgroundTasks,
    testimonials: TestimonialRepository = Depends(get_testimonials),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        testimonial = await testimonials.submit(
            key_id=payload.key,
            name=payload.name,
            testimony=payload.testimony,
            location=payload.location,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not testimonial:
        raise HTTPException(status_code=400, detail="Invalid or expired testimonial key")
    background_tasks.add_task(notifier.testimonial_submitted, testimonial)
    return {"id": testimonial.id, "status": "pending"}


@router.get("/videos")
async def latest_videos(
    limit: int = Query(6, ge=1, le=15), feed: VideoFeed = Depends(get_video_feed)
):
    return [video.as_dict() for video in await feed.latest(limit)]


@router.get("/theme")
async def get_theme(site_settings: SiteSettings = Depends(get_site_settings)):
    return (await site_settings.get_theme()).as_dict()


@router.post("/analytics/pageview", status_code=204)
async def track_page_view(
    payload: PageViewPayload,
    request: Request,
    analytics: AnalyticsService = Depends(get_analytics),
):
    await analytics.track_page_view(
        payload.path,
        referrer=payload.referrer,
        user_agent=request.headers.get("user-agent"),
        ip=request_client_ip(request),
    )
    return Response(status_code=204)


@router.post("/analytics/event", status_code=204)
async def track_event(
    payload: EventPayload, analytics: AnalyticsService = Depends(get_analytics)
):
    await analytics.track_event(payload.name, payload.page, payload.data)
    return Response(status_code=204)


# Admin: journal


@admin_router.get("/me")
async def whoami(username: str = Depends(require_admin)):
    return {"username": username}


@admin_router.get("/journal")
async def admin_list_journal(journal: JournalRepository = Depends(get_journal)):
    return [entry.as_dict() for entry in await journal.get_all()]


@admin_router.get("/journal/{entry_id}")
async def admin_get_journal(entry_id: str, journal: JournalRepository = Depends(get_journal)):
    entry = await journal.get_by_id(entry_id)
    if not entry:
        raise _not_found("Journal entry")
    return entry.as_dict()


@admin_router.post("/journal", status_code=201, dependencies=[Depends(verify_csrf)])
async def admin_create_journal(
    payload: JournalCreate, journal: JournalRepository = Depends(get_journal)
):
    try:
        entry = await journal.create(**payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return entry.as_dict()


@admin_router.put("/journal/{entry_id}", dependencies=[Depends(verify_csrf)])
async def admin_update_journal(
    entry_id: str,
    payload: JournalUpdate,
    journal: JournalRepository = Depends(get_journal),
):
    try:
        entry = await journal.update(entry_id, **payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not entry:
        raise _not_found("Journal entry")
    return entry.as_dict()


@admin_router.delete(
    "/journal/{entry_id}", response_model=StatusResponse, dependencies=[Depends(verify_csrf)]
)
async def admin_delete_journal(
    entry_id: str, journal: JournalRepository = Depends(get_journal)
):
    if not await journal.delete(entry_id):
        raise _not_found("Journal entry")
    return StatusResponse()


# Admin: locations


@admin_router.post("/locations", status_code=201, dependencies=[Depends(verify_csrf)])
async def admin_create_location(
    payload: LocationCreate, locations: LocationRepository = Depends(get_locations)
):
    try:
        location = await locations.create(**payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return location.as_dict()


@admin_router.put("/locations/{location_id}", dependencies=[Depends(verify_csrf)])
async def admin_update_location(
    location_id: str,
    payload: LocationUpdate,
    locations: LocationRepository = Depends(get_locations),
):
    try:
        location = await locations.update(
            location_id, **payload.model_dump(exclude_unset=True)
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not location:
        raise _not_found("Location")
    return location.as_dict()


@admin_router.post(
    "/locations/{location_id}/current", dependencies=[Depends(verify_csrf)]
)
async def admin_set_current_location(
    location_id: str, locations: LocationRepository = Depends(get_locations)
):
    location = await locations.set_current(location_id)
    if not location:
        raise _not_found("Location")
    return location.as_dict()


@admin_router.delete(
    "/locations/{location_id}",
    response_model=StatusResponse,
    dependencies=[Depends(verify_csrf)],
)
async def admin_delete_location(
    location_id: str, locations: LocationRepository = Depends(get_locations)
):
    if not await locations.delete(location_id):
        raise _not_found("Location")
    return StatusResponse()


# Admin: links


@admin_router.get("/links")
async def admin_list_links(links: LinkRepository = Depends(get_links)):
    return [link.as_dict() for link in await links.get_all(include_inactive=True)]


@admin_router.post("/links", status_code=201, dependencies=[Depends(verify_csrf)])
async def admin_create_link(payload: LinkCreate, links: LinkRepository = Depends(get_links)):
    try:
        link = await links.create(**payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return link.as_dict()


@admin_router.post("/links/reorder", dependencies=[Depends(verify_csrf)])
async def admin_reorder_links(
    payload: LinkReorder, links: LinkRepository = Depends(get_links)
):
    applied = await links.reorder((item.id, item.order) for item in payload.items)
    return {"status": "ok", "updated": applied}


@admin_router.put("/links/{link_id}", dependencies=[Depends(verify_csrf)])
async def admin_update_link(
    link_id: str, payload: LinkUpdate, links: LinkRepository = Depends(get_links)
):
    try:
        link = await links.update(link_id, **payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not link:
        raise _not_found("Link")
    return link.as_dict()


@admin_router.delete(
    "/links/{link_id}", response_model=StatusResponse, dependencies=[Depends(verify_csrf)]
)
async def admin_delete_link(link_id: str, links: LinkRepository = Depends(get_links)):
    if not await links.delete(link_id):
        raise _not_found("Link")
    return StatusResponse()


# Admin: prayers and testimonials


@admin_router.get("/prayers")
async def admin_list_prayers(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    prayers: PrayerRepository = Depends(get_prayers),
):
    return _page_payload(await prayers.get_page(page, per_page, public_only=False), page)


@admin_router.post(
    "/prayers/{prayer_id}/prayed",
    response_model=StatusResponse,
    dependencies=[Depends(verify_csrf)],
)
async def admin_mark_prayed(
    prayer_id: str, prayers: PrayerRepository = Depends(get_prayers)
):
    if not await prayers.mark_prayed(prayer_id):
        raise _not_found("Prayer")
    return StatusResponse()


@admin_router.delete(
    "/prayers/{prayer_id}", response_model=StatusResponse, dependencies=[Depends(verify_csrf)]
)
async def admin_delete_prayer(
    prayer_id: str, prayers: PrayerRepository = Depends(get_prayers)
):
    if not await prayers.delete(prayer_id):
        raise _not_found("Prayer")
    return StatusResponse()


@admin_router.get("/testimonials")
async def admin_list_testimonials(
    testimonials: TestimonialRepository = Depends(get_testimonials),
):
    return [t.as_dict() for t in await testimonials.get_all()]


@admin_router.post(
    "/testimonials/{testimonial_id}/approve",
    response_model=StatusResponse,
    dependencies=[Depends(verify_csrf)],
)
async def admin_approve_testimonial(
    testimonial_id: str,
    testimonials: TestimonialRepository = Depends(get_testimonials),
):
    if not await testimonials.approve(testimonial_id):
        raise _not_found("Testimonial")
    return StatusResponse()


@admin_router.delete(
    "/testimonials/{testimonial_id}",
    response_model=StatusResponse,
    dependencies=[Depends(verify_csrf)],
)
async def admin_delete_testimonial(
    testimonial_id: str,
    testimonials: TestimonialRepository = Depends(get_testimonials),
):
    if not await testimonials.delete(testimonial_id):
        raise _not_found("Testimonial")
    return StatusResponse()


@admin_router.get("/testimonial-keys")
async def admin_list_testimonial_keys(
    testimonials: TestimonialRepository = Depends(get_testimonials),
):
    return [key.as_dict() for key in await testimonials.get_all_keys()]


@admin_router.post(
    "/testimonial-keys", status_code=201, dependencies=[Depends(verify_csrf)]
)
async def admin_create_testimonial_key(
    payload: TestimonialKeyCreate,
    username: str = Depends(require_admin),
    testimonials: TestimonialRepository = Depends(get_testimonials),
    settings: Settings = Depends(get_settings),
):
    key = await testimonials.create_key(payload.name, username, payload.expires_in_days)
    result = key.as_dict()
    result["link"] = f"{settings.site_url.rstrip('/')}/testimonials?key={key.id}"
    if payload.phone:
        result["sms_link"] = sms_invite_link(
            payload.phone, key.id, settings.site_url, settings.ministry_name
        )
    return result


@admin_router.delete(
    "/testimonial-keys/{key_id}",
    response_model=StatusResponse,
    dependencies=[Depends(verify_csrf)],
)
async def admin_delete_testimonial_key(
    key_id: str, testimonials: TestimonialRepository = Depends(get_testimonials)
):
    if not await testimonials.delete_key(key_id):
        raise _not_found("Testimonial key")
    return StatusResponse()


# Admin: security, settings, analytics, maintenance


@admin_router.get("/login-attempts")
async def admin_login_attempts(
    limit: int = Query(100, ge=1, le=500),
    sessions: SessionStore = Depends(get_sessions),
):
    return [a.as_dict() for a in await sessions.get_recent_login_attempts(limit)]


@admin_router.put("/settings/theme", dependencies=[Depends(verify_csrf)])
async def admin_save_theme(
    payload: ThemeUpdate, site_settings: SiteSettings = Depends(get_site_settings)
):
    try:
        theme = await site_settings.save_theme(payload.base_color)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return theme.as_dict()


def _masked_email_config(config: Optional[EmailConfig]) -> Optional[dict]:
    if config is None:
        return None
    data = config.as_dict()
    data["smtp_password"] = "********" if config.smtp_password else ""
    return data


@admin_router.get("/settings/email")
async def admin_get_email_config(
    site_settings: SiteSettings = Depends(get_site_settings),
):
    return _masked_email_config(await site_settings.get_email_config())


@admin_router.put("/settings/email", dependencies=[Depends(verify_csrf)])
async def admin_save_email_config(
    payload: EmailConfigPayload,
    username: str = Depends(require_admin),
    site_settings: SiteSettings = Depends(get_site_settings),
):
    values = payload.model_dump()
    if values["smtp_password"] is None:
        existing = await site_settings.get_email_config()
        values["smtp_password"] = existing.smtp_password if existing else ""
    config = await site_settings.save_email_config(EmailConfig(**values), username)
    return _masked_email_config(config)


@admin_router.post("/settings/email/test", dependencies=[Depends(verify_csrf)])
async def admin_send_test_email(
    payload: EmailTestRequest, notifier: Notifier = Depends(get_notifier)
):
    sent = await notifier.send_test_email(payload.to)
    return {"status": "sent" if sent else "failed"}


def _check_webhook_kind(kind: str) -> None:
    if kind not in WEBHOOK_TYPES:
        raise _not_found("Webhook")


@admin_router.get("/settings/webhooks/{kind}")
async def admin_get_webhook(
    kind: str, site_settings: SiteSettings = Depends(get_site_settings)
):
    _check_webhook_kind(kind)
    webhook = await site_settings.get_webhook(kind)
    return webhook.as_dict() if webhook else None


@admin_router.put("/settings/webhooks/{kind}", dependencies=[Depends(verify_csrf)])
async def admin_save_webhook(
    kind: str,
    payload: WebhookPayload,
    site_settings: SiteSettings = Depends(get_site_settings),
):
    _check_webhook_kind(kind)
    webhook = await site_settings.save_webhook(kind, WebhookConfig(**payload.model_dump()))
    return webhook.as_dict()


@admin_router.post(
    "/settings/webhooks/{kind}/test", dependencies=[Depends(verify_csrf)]
)
async def admin_test_webhook(kind: str, notifier: Notifier = Depends(get_notifier)):
    _check_webhook_kind(kind)
    sent = await notifier.test_webhook(kind)
    return {"status": "sent" if sent else "failed"}


@admin_router.get("/analytics")
async def admin_analytics(
    days: int = Query(30, ge=1, le=365),
    analytics: AnalyticsService = Depends(get_analytics),
):
    end = time.time()
    start = end - days * DAY_SECONDS
    return {
        "days": days,
        "overview": await analytics.overview(start, end),
        "by_day": await analytics.page_views_by_day(start, end),
        "events": await analytics.event_counts(start, end),
    }


@admin_router.get("/analytics/export")
async def admin_export_analytics(
    days: int = Query(30, ge=1, le=365),
    analytics: AnalyticsService = Depends(get_analytics),
):
    end = time.time()
    content = await analytics.export_csv(end - days * DAY_SECONDS, end)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="analytics-{days}d.csv"'},
    )


@admin_router.post(
    "/cleanup", response_model=CleanupResponse, dependencies=[Depends(verify_csrf)]
)
async def admin_run_cleanup(
    payload: Optional[CleanupRequest] = None,
    cleanup: CleanupService = Depends(get_cleanup),
    settings: Settings = Depends(get_settings),
):
    payload = payload or CleanupRequest()
    result = await cleanup.run(
        payload.analytics_retention_days or settings.analytics_retention_days,
        payload.prayed_prayer_retention_days or settings.prayed_prayer_retention_days,
    )
    return CleanupResponse(
        expired_sessions=result.expired_sessions,
        rate_limit_entries=result.rate_limit_entries,
        old_analytics=result.old_analytics,
        prayed_prayers=result.prayed_prayers,
        total=result.total,
    )


router.include_router(admin_router)
