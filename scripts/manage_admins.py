#!/usr/bin/env python3
"""
Core engine scope only. Do not implement beyond this file's responsibilities.
Admin registry utility - show or replace the principals allowed to grant overrides.
"""

import argparse
import sys
from pathlib import Path

import dotenv
dotenv.load_dotenv()

sys.path.insert(0, str(Path(__file__).parent.parent))

from phasegate.core.admins import AdminRegistry
from phasegate.core.db import init_db


def main(argv=None):
    parser = argparse.ArgumentParser(description="Show or replace the override admin list")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("show", help="Print current admins")
    set_parser = sub.add_parser("set", help="Replace the admin list")
    set_parser.add_argument("principals", nargs="+", help="Admin principals (emails)")
    args = parser.parse_args(argv)

    init_db()
    registry = AdminRegistry()

    if args.command == "set":
        try:
            admins = registry.set_admins(args.principals)
        except ValueError as e:
            print(f"❌ {e}")
            return 1
        print(f"✓ Admin list updated ({len(admins)} principals)")
    else:
        admins = registry.get_admins()

    for admin in admins:
        print(admin)
    return 0

if __name__ == "__main__":
    sys.exit(main())
