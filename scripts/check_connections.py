#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify PostgreSQL, MongoDB and the Celery broker are reachable.
Usage: python scripts/check_connections.py
"""

from kombu.exceptions import OperationalError

from placement_portal.core.config import get_settings
from placement_portal.db.mongodb import test_mongo_connection
from placement_portal.db.postgres import test_postgres_connection
from placement_portal.jobs.celery_app import celery_app


def check_broker() -> bool:
    try:
        with celery_app.connection_for_write() as conn:
            conn.ensure_connection(max_retries=1)
        return True
    except (OperationalError, ConnectionError):
        return False


def main():
    settings = get_settings()
    print("=" * 50)
    print("PLACEMENT PORTAL - CONNECTION CHECK")
    print("=" * 50)

    print("\n[1] PostgreSQL...")
    print(f"    URL: postgresql://{settings.postgres_user}:****@{settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")
    print("    ✅ CONNECTED" if test_postgres_connection() else "    ❌ FAILED")

    print("\n[2] MongoDB...")
    print(f"    URI: {settings.mongodb_uri}  Database: {settings.mongodb_db}")
    print("    ✅ CONNECTED" if test_mongo_connection() else "    ❌ FAILED")

    print("\n[3] Celery broker...")
    print(f"    URL: {settings.celery_broker_url}")
    if check_broker():
        print("    ✅ CONNECTED")
    else:
        print("    ⚠️  UNREACHABLE - jobs will run inline in the API process")

    print("\n" + "=" * 50)


if __name__ == "__main__":
    main()
