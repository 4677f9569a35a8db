import argparse
import importlib.util
import os
import unittest
from pathlib import Path
from unittest.mock import patch

from ministry.config import Settings

ROOT = Path(__file__).resolve().parents[2]


def load_script(name: str):
    spec = importlib.util.spec_from_file_location(name, ROOT / "scripts" / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class SettingsTests(unittest.TestCase):
    def test_environment_name(self):
        with patch.dict(os.environ, {"MINISTRY_ENV": "Production"}):
            self.assertTrue(Settings(_env_file=None).is_production)
        with patch.dict(os.environ, {"MINISTRY_ENV": "development"}):
            self.assertFalse(Settings(_env_file=None).is_production)

    def test_hashed_password_needs_both_parts(self):
        settings = Settings(_env_file=None, admin_pass_hash="abc", admin_pass_salt=None)
        self.assertFalse(settings.uses_hashed_password)
        settings = Settings(_env_file=None, admin_pass_hash="abc", admin_pass_salt="def")
        self.assertTrue(settings.uses_hashed_password)

    def test_persistent_store(self):
        self.assertFalse(Settings(_env_file=None, redis_url=None).has_persistent_store)
        self.assertTrue(
            Settings(
                _env_file=None,
                redis_url="redis://localhost:6379/0",
                use_in_memory_backends=False,
            ).has_persistent_store
        )
        self.assertFalse(
            Settings(
                _env_file=None,
                redis_url="redis://localhost:6379/0",
                use_in_memory_backends=True,
            ).has_persistent_store
        )


class CleanupDaemonTests(unittest.IsolatedAsyncioTestCase):
    async def test_refuses_to_run_without_redis(self):
        daemon = load_script("cleanup_daemon")
        args = argparse.Namespace(
            analytics_days=None,
            prayed_days=None,
            interval_seconds=60,
            jitter_seconds=0,
            once=True,
        )
        settings = Settings(_env_file=None, redis_url=None)
        with patch.object(daemon, "get_settings", return_value=settings):
            with patch.object(daemon, "build_cleanup_service") as build:
                with self.assertLogs(daemon.logger, level="ERROR"):
                    self.assertEqual(await daemon.run(args), 1)
        build.assert_not_called()


if __name__ == "__main__":
    unittest.main()
