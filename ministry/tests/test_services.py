import unittest
from unittest.mock import AsyncMock, patch

import requests

from ministry import keys
from ministry.analytics import AnalyticsService, parse_browser, parse_device
from ministry.auth import SessionStore
from ministry.cleanup import CleanupService
from ministry.config import Settings
from ministry.migration import LEGACY_PREFIXES, MigrationService, parse_prefix
from ministry.notifications import Notifier
from ministry.prayers import PrayerRepository
from ministry.ratelimit import RateLimiter
from ministry.records import Prayer, Testimonial
from ministry.site_settings import EmailConfig, SiteSettings, WebhookConfig
from ministry.store import InMemoryKeyValueStore, StoreError
from ministry.tests.helpers import FakeClock
from ministry.videos import VideoFeed

DAY = 24 * 60 * 60

CHROME_DESKTOP = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)

FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015"
      xmlns="http://www.w3.org/2005/Atom">
  <title>Two Witness Project</title>
  <entry>
    <id>yt:video:abc123</id>
    <yt:videoId>abc123</yt:videoId>
    <title>Street Preaching in Tucson</title>
    <author><name>Two Witness Project</name></author>
    <published>2024-03-01T12:00:00+00:00</published>
  </entry>
  <entry>
    <id>yt:video:def456</id>
    <yt:videoId>def456</yt:videoId>
    <title>Q &amp; A</title>
    <author><name>Two Witness Project</name></author>
    <published>2024-02-01T12:00:00+00:00</published>
  </entry>
</feed>
"""


class AnalyticsServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = InMemoryKeyValueStore()
        self.clock = FakeClock()
        self.analytics = AnalyticsService(self.store, salt="pepper", clock=self.clock)

    def test_user_agent_parsing(self):
        self.assertEqual(parse_device(CHROME_DESKTOP), "desktop")
        self.assertEqual(parse_device(SAFARI_IPHONE), "mobile")
        self.assertEqual(parse_device("Mozilla/5.0 (iPad; CPU OS 17_0)"), "tablet")
        self.assertEqual(parse_device(None), "unknown")
        self.assertEqual(parse_browser(CHROME_DESKTOP), "Chrome")
        self.assertEqual(parse_browser(SAFARI_IPHONE), "Safari")
        self.assertEqual(parse_browser("Mozilla/5.0 Firefox/121.0"), "Firefox")
        self.assertEqual(parse_browser(None), "unknown")

    async def test_ip_is_anonymized(self):
        view = await self.analytics.track_page_view("/", ip="203.0.113.7")
        self.assertEqual(len(view.anonymized_ip), 16)
        self.assertNotIn("203.0.113.7", str(await self.store.get(
            keys.page_view(int(self.clock.now * 1000), view.id)
        )))
        self.assertEqual(self.analytics.anonymize_ip(None), "unknown")

    async def test_overview_and_breakdowns(self):
        start = self.clock.now
        await self.analytics.track_page_view("/", None, CHROME_DESKTOP, "1.1.1.1")
        await self.analytics.track_page_view("/journal", "https://t.co", SAFARI_IPHONE, "2.2.2.2")
        self.clock.advance(DAY)
        await self.analytics.track_page_view("/", None, CHROME_DESKTOP, "1.1.1.1")
        await self.analytics.track_event("prayer_submitted", "/prayer", {"public": True})
        await self.analytics.track_event("prayer_submitted", "/prayer")
        await self.analytics.track_event("video_play", "/videos")
        end = self.clock.now

        overview = await self.analytics.overview(start, end)
        self.assertEqual(overview["total_page_views"], 3)
        self.assertEqual(overview["unique_visitors"], 2)
        self.assertEqual(overview["top_pages"][0], {"path": "/", "views": 2})
        self.assertEqual(overview["top_referrers"][0], {"referrer": "Direct", "count": 2})
        self.assertEqual(overview["device_breakdown"], {"desktop": 2, "mobile": 1})
        self.assertEqual(overview["browser_breakdown"], {"Chrome": 2, "Safari": 1})

        by_day = await self.analytics.page_views_by_day(start, end)
        self.assertEqual([d["views"] for d in by_day], [2, 1])
        events = await self.analytics.event_counts(start, end)
        self.assertEqual(events[0], {"name": "prayer_submitted", "count": 2})

        csv_text = await self.analytics.export_csv(start, end)
        lines = csv_text.strip().split("\n")
        self.assertEqual(lines[0], "Type,Timestamp,Path/Name,Referrer,Device,Browser,Data")
        self.assertEqual(len(lines), 1 + 3 + 3)
        self.assertTrue(any('"{""public"": true}"' in line for line in lines))

    async def test_range_excludes_outside(self):
        await self.analytics.track_page_view("/old")
        self.clock.advance(10)
        await self.analytics.track_page_view("/new")
        views = await self.analytics.get_page_views(self.clock.now - 5, self.clock.now)
        self.assertEqual([v.path for v in views], ["/new"])

    async def test_delete_old_data(self):
        await self.analytics.track_page_view("/old")
        await self.analytics.track_event("old", "/")
        self.clock.advance(91 * DAY)
        await self.analytics.track_page_view("/new")
        self.assertEqual(await self.analytics.delete_old_data(90), 2)
        remaining = [v async for _, v in self.store.scan(("analytics",))]
        self.assertEqual([v["path"] for v in remaining], ["/new"])


class SiteSettingsTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.settings = SiteSettings(InMemoryKeyValueStore(), clock=FakeClock())

    async def test_theme_default_and_save(self):
        self.assertEqual((await self.settings.get_theme()).base_color, "#667eea")
        saved = await self.settings.save_theme("FF8800")
        self.assertEqual(saved.base_color, "#ff8800")
        self.assertEqual((await self.settings.get_theme()).base_color, "#ff8800")
        with self.assertRaises(ValueError):
            await self.settings.save_theme("not-a-color")

    async def test_email_config(self):
        self.assertIsNone(await self.settings.get_email_config())
        self.assertFalse(await self.settings.email_enabled())
        config = EmailConfig(
            smtp_host="mail.example.org",
            smtp_port=587,
            smtp_username="ministry@example.org",
            smtp_password="pw",
            from_email="ministry@example.org",
            from_name="Ministry",
            is_enabled=True,
        )
        await self.settings.save_email_config(config, updated_by="admin")
        stored = await self.settings.get_email_config()
        self.assertEqual(stored.updated_by, "admin")
        self.assertTrue(await self.settings.email_enabled())

    async def test_webhooks(self):
        self.assertIsNone(await self.settings.get_webhook("admin"))
        await self.settings.save_webhook(
            "community", WebhookConfig(name="Community", url="https://d/x", enabled=True)
        )
        self.assertTrue((await self.settings.get_webhook("community")).enabled)
        with self.assertRaises(ValueError):
            await self.settings.get_webhook("everyone")


class NotifierTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.site_settings = SiteSettings(InMemoryKeyValueStore())
        self.notifier = Notifier(self.site_settings, "Two Witness Project")
        self.prayer = Prayer(
            id="p1", prayer="Please pray", is_public=True, name=None, email=None
        )

    async def test_unconfigured_webhook_is_skipped(self):
        with patch("ministry.notifications.requests.post") as post:
            await self.notifier.prayer_submitted(self.prayer)
        post.assert_not_called()

    async def test_prayer_goes_to_both_webhooks(self):
        for kind in ("admin", "community"):
            await self.site_settings.save_webhook(
                kind, WebhookConfig(name=kind, url=f"https://discord/{kind}", enabled=True)
            )
        with patch("ministry.notifications.requests.post") as post:
            await self.notifier.prayer_submitted(self.prayer)
        urls = [c.args[0] for c in post.call_args_list]
        self.assertEqual(urls, ["https://discord/admin", "https://discord/community"])
        embed = post.call_args_list[0].kwargs["json"]["embeds"][0]
        self.assertEqual(embed["description"], "Please pray")

    async def test_webhook_failure_is_swallowed(self):
        await self.site_settings.save_webhook(
            "admin", WebhookConfig(name="a", url="https://discord/a", enabled=True)
        )
        with patch(
            "ministry.notifications.requests.post",
            side_effect=requests.ConnectionError("down"),
        ):
            self.assertFalse(await self.notifier.test_webhook("admin"))

    async def test_email_uses_smtp(self):
        await self.site_settings.save_email_config(
            EmailConfig(
                smtp_host="mail.example.org",
                smtp_port=587,
                smtp_username="u",
                smtp_password="p",
                from_email="ministry@example.org",
                from_name="Ministry",
                is_enabled=True,
            ),
            updated_by="admin",
        )
        with patch("ministry.notifications.smtplib.SMTP") as smtp:
            self.assertTrue(await self.notifier.send_test_email("friend@example.org"))
        server = smtp.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        message = server.send_message.call_args.args[0]
        self.assertEqual(message["To"], "friend@example.org")

    async def test_email_disabled(self):
        with patch("ministry.notifications.smtplib.SMTP") as smtp:
            self.assertFalse(await self.notifier.send_test_email("friend@example.org"))
        smtp.assert_not_called()

    async def test_email_with_newline_in_address_is_refused(self):
        await self.site_settings.save_email_config(
            EmailConfig(
                smtp_host="mail.example.org",
                smtp_port=587,
                smtp_username="",
                smtp_password="",
                from_email="ministry@example.org",
                from_name="Ministry",
                is_enabled=True,
            ),
            updated_by="admin",
        )
        prayer = Prayer(
            id="p2", prayer="Help", is_public=False, email="x@y.z\nBcc: evil@e.com"
        )
        with patch("ministry.notifications.smtplib.SMTP") as smtp:
            self.assertFalse(
                await self.notifier.send_email(prayer.email, "Hello", "Body")
            )
            await self.notifier.prayer_submitted(prayer)
        smtp.assert_not_called()

    async def test_settings_outage_is_logged_not_raised(self):
        failing = AsyncMock(side_effect=StoreError("connection refused"))
        testimonial = Testimonial(id="t1", name="Maria", testimony="God provided.")
        with patch.object(self.site_settings, "get_webhook", failing):
            with self.assertLogs("ministry.notifications", level="ERROR") as logs:
                await self.notifier.prayer_submitted(self.prayer)
                await self.notifier.testimonial_submitted(testimonial)
        self.assertEqual(len(logs.records), 2)


class VideoFeedTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = InMemoryKeyValueStore()
        self.clock = FakeClock()
        self.calls = 0

    def fetch(self, channel_id):
        self.calls += 1
        return FEED

    def failing_fetch(self, channel_id):
        raise requests.ConnectionError("offline")

    async def test_fetch_and_cache(self):
        feed = VideoFeed(self.store, "UC123", fetch=self.fetch, clock=self.clock)
        videos = await feed.latest()
        self.assertEqual([v.id for v in videos], ["abc123", "def456"])
        self.assertEqual(videos[1].title, "Q & A")
        self.assertEqual(videos[0].link, "https://www.youtube.com/watch?v=abc123")

        self.clock.advance(60)
        self.assertEqual(len(await feed.latest(limit=1)), 1)
        self.assertEqual(self.calls, 1)

        self.clock.advance(3600)
        await feed.latest()
        self.assertEqual(self.calls, 2)

    async def test_stale_cache_on_failure(self):
        await VideoFeed(self.store, "UC123", fetch=self.fetch, clock=self.clock).latest()
        self.clock.advance(7200)
        feed = VideoFeed(self.store, "UC123", fetch=self.failing_fetch, clock=self.clock)
        self.assertEqual(len(await feed.latest()), 2)

    async def test_failure_without_cache(self):
        feed = VideoFeed(self.store, "UC123", fetch=self.failing_fetch, clock=self.clock)
        self.assertEqual(await feed.latest(), [])

    async def test_no_channel_configured(self):
        feed = VideoFeed(self.store, None, fetch=self.fetch, clock=self.clock)
        self.assertEqual(await feed.latest(), [])
        self.assertEqual(self.calls, 0)


class CleanupServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = InMemoryKeyValueStore()
        self.clock = FakeClock()
        settings = Settings(admin_user="admin", admin_pass="pw", admin_pass_hash=None)
        self.sessions = SessionStore(self.store, settings, clock=self.clock)
        self.limiter = RateLimiter(self.store, clock=self.clock)
        self.analytics = AnalyticsService(self.store, clock=self.clock)
        self.prayers = PrayerRepository(self.store, clock=self.clock)
        self.cleanup = CleanupService(
            self.sessions, self.limiter, self.analytics, self.prayers, clock=self.clock
        )

    async def _seed(self):
        await self.sessions.login("admin", "pw")
        await self.limiter.check_and_record("1.2.3.4", "pray", "prayer")
        await self.analytics.track_page_view("/")
        old = await self.prayers.submit(prayer="Old", is_public=True)
        await self.prayers.mark_prayed(old.id)
        await self.prayers.submit(prayer="Unprayed", is_public=True)
        self.clock.advance(95 * DAY)
        recent = await self.prayers.submit(prayer="Recent", is_public=True)
        await self.prayers.mark_prayed(recent.id)

    async def test_run(self):
        await self._seed()
        result = await self.cleanup.run(90, 30)
        self.assertEqual(result.expired_sessions, 1)
        self.assertEqual(result.rate_limit_entries, 1)
        self.assertEqual(result.old_analytics, 1)
        self.assertEqual(result.prayed_prayers, 1)
        self.assertEqual(result.total, 4)
        remaining = [p.prayer for p in await self.prayers.get_all()]
        self.assertEqual(remaining, ["Recent", "Unprayed"])

    async def test_failed_step_does_not_stop_the_rest(self):
        await self._seed()
        self.sessions.sweep_expired = AsyncMock(side_effect=StoreError("boom"))
        result = await self.cleanup.run(90, 30)
        self.assertEqual(result.expired_sessions, 0)
        self.assertEqual(result.prayed_prayers, 1)
        self.assertEqual(result.total, 3)


class MigrationServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = InMemoryKeyValueStore()
        self.migration = MigrationService(self.store)
        await self.store.set(("admin", "users", "bob"), {"username": "bob"})
        await self.store.set(("email_config", "default"), {"smtp_host": "x"})
        await self.store.set(("testimonial", "keys", "k1"), {"id": "k1"})
        await self.store.set(("links", "l1"), {"id": "l1"})

    async def test_dry_run_counts_without_deleting(self):
        counts = await self.migration.purge(LEGACY_PREFIXES, dry_run=True)
        self.assertEqual(
            counts, {"admin/users": 1, "email_config": 1, "testimonial/keys": 1}
        )
        self.assertIsNotNone(await self.store.get(("admin", "users", "bob")))

    async def test_purge(self):
        counts = await self.migration.purge()
        self.assertEqual(sum(counts.values()), 3)
        remaining = [k async for k, _ in self.store.scan()]
        self.assertEqual(remaining, [("links", "l1")])
        again = await self.migration.purge()
        self.assertEqual(sum(again.values()), 0)

    async def test_refuses_empty_prefix(self):
        with self.assertRaises(ValueError):
            await self.migration.purge([()])

    def test_parse_prefix(self):
        self.assertEqual(parse_prefix("admin/users"), ("admin", "users"))
        self.assertEqual(parse_prefix("/events/17/"), ("events", 17))
        with self.assertRaises(ValueError):
            parse_prefix("/")


if __name__ == "__main__":
    unittest.main()
