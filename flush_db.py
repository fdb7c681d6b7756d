#!/usr/bin/env python3
"""
Full database reset - drops all tables and recreates them.
WARNING: This destroys ALL data including users, companies, tickets, etc.

Execute from the project root:
    python flush_db.py
"""

import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from liftdesk.database import engine, Base
from liftdesk import models  # noqa: F401 - registers every table with Base


def flush_database():
    print("=" * 60)
    print("FULL DATABASE RESET")
    print("=" * 60)
    print(f"\nDatabase: {engine.url.render_as_string(hide_password=True)}")
    print("\nWARNING: This will DELETE ALL DATA in the database!")
    print("This includes: users, clients, buildings, elevators, tickets, parts, orders, projects.\n")

    confirm = input("Type 'YES' to confirm full database reset: ")
    if confirm != "YES":
        print("Aborted. No changes made.")
        return

    print("\nDropping all tables...")
    # drop_all orders the drops by foreign key dependencies
    Base.metadata.drop_all(bind=engine)
    print("✓ All tables dropped")

    print("\nRecreating all tables...")
    Base.metadata.create_all(bind=engine)
    for table in Base.metadata.sorted_tables:
        print(f"  Created {table.name}")
    print("✓ All tables created")

    print("\n" + "=" * 60)
    print("DATABASE RESET COMPLETE!")
    print("=" * 60)
    print("\nRun reset_password.py to create the first admin, or seed_demo_data.py for demo data.")
    print("Please restart your FastAPI server.")


if __name__ == "__main__":
    flush_database()
