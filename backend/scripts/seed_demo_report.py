#!/usr/bin/env python
"""
Seed script for creating a demo Toggl account and a demo report with one
historical archive.
Run with: cd backend; python scripts/seed_demo_report.py
Requires DATABASE_URL and ENCRYPTION_KEY in .env. The demo token is a
placeholder: replace it through the accounts API before refreshing.
"""

import os
import sys

# Add app to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import date

from app.database import Base, SessionLocal, engine
from app.models.account import TogglAccount
from app.models.historical_archive import HistoricalArchive
from app.models.report import Report
from app.models.report_account_config import ReportAccountConfig
from app.utils.encrypt import encrypt_token

DEMO_SLUG = 'demo-support-contract'

ARCHIVE_ENTRIES = [
    {
        "id": "archive-1",
        "description": "Initial setup",
        "start": "2024-01-08T09:00:00+00:00",
        "stop": "2024-01-08T12:00:00+00:00",
        "duration": 10800,
        "responsible": "Ana",
    },
    {
        "id": "archive-2",
        "description": "Weekly sync",
        "start": "2024-01-15T09:00:00+00:00",
        "stop": "2024-01-15T10:00:00+00:00",
        "duration": 3600,
        "responsible": "Ben",
    },
]


def seed_demo_report():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    if db.query(Report).filter(Report.slug == DEMO_SLUG).first():
        print("Demo report already exists. Skipping seed.")
        db.close()
        return

    try:
        account = TogglAccount(name='Demo Toggl', api_token=encrypt_token('demo-toggl-token'))
        db.add(account)
        db.flush()
        print(f"Created demo account: {account.name}")

        report = Report(
            name='Demo Support Contract',
            slug=DEMO_SLUG,
            description='Support hours against a 100 hour contract',
            contracted_hours=100.0,
            contract_start_date=date(2024, 1, 1),
            auto_refresh_enabled=True,
            refresh_interval_hours=2,
        )
        db.add(report)
        db.flush()

        db.add(ReportAccountConfig(report_id=report.id, account_id=account.id, priority=0))
        db.add(HistoricalArchive(
            report_id=report.id,
            filename='2024-01-export.json',
            processing_status='completed',
            entries=ARCHIVE_ENTRIES,
        ))

        db.commit()
        print(f"Created demo report: {report.name} (/api/v1/view/{report.slug})")
        print("\nDemo data seeded successfully!")
        print("Next steps:")
        print("1. Replace the demo API token: PUT /api/v1/accounts/{id}")
        print("2. Pick a workspace filter: PUT /api/v1/reports/{id}/accounts")
        print("3. Open the public view to generate the first snapshot")

    except Exception as e:
        db.rollback()
        print(f"Error seeding demo report: {e}")
    finally:
        db.close()


if __name__ == '__main__':
    seed_demo_report()
