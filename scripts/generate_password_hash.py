"""
Generate ADMIN_PASS_HASH / ADMIN_PASS_SALT values for the environment.
"""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ministry.auth import generate_salt, hash_password


def main() -> int:
    parser = argparse.ArgumentParser(description="Hash an admin password")
    parser.add_argument(
        "password",
        nargs="?",
        default=None,
        help="Password to hash (prompted for when omitted)",
    )
    args = parser.parse_args()

    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Confirm: "):
            print("Passwords do not match", file=sys.stderr)
            return 1
    if len(password) < 8:
        print("Password must be at least 8 characters", file=sys.stderr)
        return 1

    salt = generate_salt()
    print(f"ADMIN_PASS_HASH={hash_password(password, salt)}")
    print(f"ADMIN_PASS_SALT={salt}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
