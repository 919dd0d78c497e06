#!/usr/bin/env python3
"""
Database reset script for the reservation backend.

This script drops every table, recreates the schema and installs the default
resource kinds (projector, speaker, auditorium). Use this to get a clean
database state for local development.
"""

import sys
import os

# Add backend/src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'backend', 'src'))

from sqlalchemy import inspect

from core.config import DATABASE_URL
from core.database import create_tables, drop_tables, engine, get_db_context
from services.catalog_service import CatalogService

EXPECTED_TABLES = ['resource_kinds', 'reservations', 'reservation_slots', 'notification_recipients']


def reset_database():
    """Reset the database by dropping all tables, recreating them and seeding the catalog."""

    print("🔄 Resetting reservation database...")
    print(f"Database URL: {DATABASE_URL}")

    # Confirm action (in case someone runs this accidentally)
    if not DATABASE_URL.startswith("sqlite"):
        print("❌ ERROR: This script only works with a local SQLite database!")
        print(f"Current database: {DATABASE_URL}")
        return

    try:
        print("🗑️  Dropping existing tables...")
        drop_tables()

        print("🏗️  Creating fresh tables...")
        create_tables()

        table_names = inspect(engine).get_table_names()
        print("📋 Created tables:")
        for table in EXPECTED_TABLES:
            if table in table_names:
                print(f"   ✅ {table}")
            else:
                print(f"   ❌ {table} (missing)")

        with get_db_context() as db:
            seeded = CatalogService.seed_default_kinds(db)
        print(f"🌱 Seeded resource kinds: {', '.join(p.kind for p in seeded) or 'none'}")

        if all(table in table_names for table in EXPECTED_TABLES):
            print("🎉 Database reset complete! No reservations, no laboratories registered.")
        else:
            print("⚠️  Warning: Some tables may be missing")

    except Exception as e:
        print(f"❌ Error resetting database: {e}")
        raise


def show_usage():
    """Show usage information."""
    print("Reservation Database Reset Script")
    print("=" * 40)
    print()
    print("This script will:")
    print("1. Drop all existing tables")
    print("2. Recreate all tables with empty data")
    print("3. Install the default resource kinds")
    print()
    print("Usage:")
    print("  python reset_database.py")
    print()
    print("Note: Only works with a SQLite database")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] in ['--help', '-h']:
        show_usage()
    else:
        reset_database()
