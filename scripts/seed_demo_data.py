"""
Load demo projects, subcontractors, time logs and invoices.

Usage:
    python scripts/seed_demo_data.py [--reset]

Records are written at fixed ids, so running the script twice is harmless.
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Load environment variables before the settings are built
from dotenv import load_dotenv
load_dotenv()

from billhub.constants import INVOICES, PROJECTS, SUBCONTRACTORS, TIME_LOGS
from billhub.store.registry import get_store, init_store


DEMO_PROJECTS = [
    {
        "id": "p1", "name": "Cloud Migration Alpha", "client": "Northwind Bank", "budget": 150000,
        "currency": "EUR", "manager_id": "pm1",
        "assignments": [
            {"subcontractor_id": "s1", "hours_cap": 160, "period": "monthly"},
            {"subcontractor_id": "s3", "hours_cap": 80, "period": "total"},
        ],
    },
    {
        "id": "p2", "name": "Retail Mobile App", "client": "Contoso Retail", "budget": 85000,
        "currency": "EUR", "manager_id": "pm2",
        "assignments": [{"subcontractor_id": "s2", "hours_cap": 120, "period": "monthly"}],
    },
    {
        "id": "p3", "name": "Security Audit", "client": "Fabrikam Insurance", "budget": 45000,
        "currency": "EUR", "manager_id": "pm1",
        "assignments": [
            {"subcontractor_id": "s3", "hours_cap": 40, "period": "total"},
            {"subcontractor_id": "s1", "hours_cap": 20, "period": "monthly"},
        ],
    },
]

DEMO_SUBCONTRACTORS = [
    {"id": "s1", "name": "DevCorps Solutions", "role": "Backend Development", "hourly_rate": 55, "currency": "EUR"},
    {"id": "s2", "name": "Ana Garcia (Freelance)", "role": "UX/UI Design", "hourly_rate": 65, "currency": "EUR"},
    {"id": "s3", "name": "Securitas Ops", "role": "DevSecOps", "hourly_rate": 80, "currency": "EUR"},
]

DEMO_TIME_LOGS = [
    {"id": "t1", "subcontractor_id": "s1", "project_id": "p1", "date": "2023-10-01", "hours": 8, "description": "API gateway setup", "status": "RATIFIED_MGR"},
    {"id": "t2", "subcontractor_id": "s1", "project_id": "p1", "date": "2023-10-02", "hours": 8, "description": "Auth provider integration", "status": "APPROVED_PM"},
    {"id": "t3", "subcontractor_id": "s2", "project_id": "p2", "date": "2023-10-05", "hours": 6, "description": "Home screen wireframes", "status": "PENDING"},
    {"id": "t4", "subcontractor_id": "s3", "project_id": "p3", "date": "2023-10-05", "hours": 4, "description": "Vulnerability scan", "status": "PENDING"},
    {"id": "t5", "subcontractor_id": "s1", "project_id": "p1", "date": "2023-10-03", "hours": 8, "description": "Database migration scripts", "status": "REJECTED", "feedback": "Overestimated hours for this task"},
]

DEMO_INVOICES = [
    {"id": "inv1", "subcontractor_id": "s1", "project_id": "p1", "period": "2023-09", "amount": 8800, "currency": "EUR", "status": "RATIFIED_MGR"},
    {"id": "inv2", "subcontractor_id": "s2", "project_id": "p2", "period": "2023-09", "amount": 5200, "currency": "EUR", "status": "APPROVED_PM"},
    {"id": "inv3", "subcontractor_id": "s3", "project_id": "p3", "period": "2023-09", "amount": 3200, "currency": "EUR", "status": "PENDING"},
]

DATASETS = [
    (SUBCONTRACTORS, DEMO_SUBCONTRACTORS),
    (PROJECTS, DEMO_PROJECTS),
    (TIME_LOGS, DEMO_TIME_LOGS),
    (INVOICES, DEMO_INVOICES),
]


def seed_demo_data(store=None, reset: bool = False):
    """Write the demo records at their fixed ids"""
    store = store or get_store()
    for collection, rows in DATASETS:
        if reset:
            removed = store.delete_all_in(collection)
            print(f"  cleared {removed} {collection}")
        for row in rows:
            store.upsert(collection, row["id"], row)
        print(f"  {collection}: {len(rows)} records")
    print("Demo data loaded.")


def main():
    parser = argparse.ArgumentParser(description="Load demo billing data")
    parser.add_argument("--reset", action="store_true", help="Clear the collections first")
    args = parser.parse_args()

    store = get_store()
    init_store(store)
    seed_demo_data(store, reset=args.reset)


if __name__ == "__main__":
    main()
