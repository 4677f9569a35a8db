import unittest
from datetime import datetime, timezone

from ministry.text import make_excerpt, parse_datetime, slugify, time_ago, to_millis

NOW = 1_700_000_000.0
DAY = 24 * 60 * 60


class TextHelperTests(unittest.TestCase):
    def test_slugify(self):
        self.assertEqual(slugify("An Encounter in Phoenix!"), "an-encounter-in-phoenix")
        self.assertEqual(slugify("  --Hello,   World--  "), "hello-world")
        self.assertEqual(slugify("!!!"), "")

    def test_short_excerpt_is_whole_content(self):
        self.assertEqual(make_excerpt("one\n\ntwo"), "one two")

    def test_naive_datetimes_are_utc(self):
        naive = datetime(2024, 1, 1)
        aware = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.assertEqual(to_millis(naive), to_millis(aware))
        self.assertEqual(to_millis(1.5), 1500)
        self.assertEqual(parse_datetime("2024-01-01T00:00:00"), aware)
        self.assertIsNone(parse_datetime(None))

    def test_time_ago(self):
        cases = [
            (30, "just now"),
            (60, "1 minute ago"),
            (2 * 60 * 60, "2 hours ago"),
            (3 * DAY, "3 days ago"),
            (14 * DAY, "2 weeks ago"),
            (65 * DAY, "2 months ago"),
            (400 * DAY, "1 year ago"),
        ]
        for age, expected in cases:
            with self.subTest(age=age):
                self.assertEqual(time_ago(NOW - age, now=NOW), expected)


if __name__ == "__main__":
    unittest.main()
