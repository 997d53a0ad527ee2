#!/usr/bin/env python3
"""
NightOwl CRM — Demo Data Seed Script.

Adds the two sample leads (TechCorp via the intake webhook, Startup
Solutions entered by hand), each with a pending four-phase project.
Does nothing when the CRM already holds clients.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --verbose
"""

import argparse
import sys

sys.path.insert(0, ".")

from nightowl import create_app  # noqa: E402
from nightowl.core.container import get_core  # noqa: E402
from nightowl.models import db  # noqa: E402
from nightowl.services.sample_data import seed_sample_data  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Seed NightOwl CRM demo data")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    app = create_app()
    print(f"🎯 DB: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
    with app.app_context():
        db.create_all()
        core = get_core()
        count = seed_sample_data(core)
        if count == 0:
            print("Clients already present — nothing seeded.")
            return
        print(f"✅ Seeded {count} leads")
        if args.verbose:
            for record in core.store.get_records("clients"):
                print(f"   • {record['full_name']} <{record['email']}> [{record['source']}]")
            print(f"   Projects: {core.store.count('projects')} (pending)")


if __name__ == "__main__":
    main()
