"""
Reset script: wipe CRM tables and reload the demo deals, leads and tickets.
Run this once to prepare a PostgreSQL database for a demo.

Requires DATABASE_URL.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv


def main():
    load_dotenv()

    import db

    db.init_db()
    db.clear_all_data()
    print("Cleared funnel records, stage history and tickets")

    counts = db.seed_demo_data()
    print(f"Seeded {counts['funnel_records']} funnel records")
    print(f"Seeded {counts['tickets']} tickets")
    print("\nDone!")


if __name__ == "__main__":
    main()
