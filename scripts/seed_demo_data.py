"""
Seed the local database with a demo project, employee types and labourers.

Usage:
  python scripts/seed_demo_data.py

Safe to run repeatedly: users are upserted by email, employee types and the
project by name, labourers by ID number. Today's work logs are only added
when the labourer has none for today.
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

try:
    from dotenv import load_dotenv
    load_dotenv()
except Exception as e:
    print(f"WARNING: Could not load .env file: {e}")

from decimal import Decimal

from labourhub.config import settings
from labourhub.db import SessionLocal, Base, engine
from labourhub.models.models import EmployeeType, Labourer, Project, WorkLog
from labourhub.services.employee_types import create_employee_type
from labourhub.services.labourers import create_labourer
from labourhub.services.projects import assign_user, create_project
from labourhub.services.time_rules import local_today
from labourhub.services.users import upsert_staff_user
from labourhub.services.work_logs import create_work_log


DEMO_LABOURERS = [
    # first_name, surname, id_number, contact_number
    ("Sipho", "Ndlovu", "8001015009087", "0821234567"),
    ("Thandi", "Mokoena", "8001014999080", "0832345678"),
    ("Pieter", "van Wyk", "8001015000086", "0843456789"),
]


def ensure_employee_type(db, name: str, description: str, user_id) -> EmployeeType:
    existing = db.query(EmployeeType).filter(EmployeeType.name == name).first()
    if existing:
        return existing
    return create_employee_type(db, {"name": name, "description": description}, user_id)


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        domain = (settings.admin_domains or settings.allowed_domains or ["example.com"])[0]
        admin = upsert_staff_user(db, {"email": f"admin@{domain}", "first_name": "Demo", "last_name": "Admin"})
        manager = upsert_staff_user(db, {"email": f"manager@{domain}", "first_name": "Demo", "last_name": "Manager"})
        print(f"Staff users: {admin.email} ({admin.role}), {manager.email} ({manager.role})")

        general = ensure_employee_type(db, "General Worker", "Trenching labour", admin.id)
        ensure_employee_type(db, "Team Leader", "Leads a trenching crew", admin.id)

        project = db.query(Project).filter(Project.name == "Demo Fibre Rollout").first()
        if project is None:
            project = create_project(db, {
                "name": "Demo Fibre Rollout",
                "location": "Soweto, Johannesburg",
                "payment_period": "fortnightly",
                "default_open_rate": Decimal("12.50"),
                "default_close_rate": Decimal("8.00"),
            }, admin.id)
            print(f"Created project {project.name}")
        result = assign_user(db, "manager", project.id, manager.id, admin.id)
        print(f"Manager assignment created={result.created}")

        today = local_today()
        for first_name, surname, id_number, contact in DEMO_LABOURERS:
            labourer = db.query(Labourer).filter(Labourer.id_number == id_number).first()
            if labourer is None:
                labourer = create_labourer(db, {
                    "first_name": first_name,
                    "surname": surname,
                    "id_number": id_number,
                    "contact_number": contact,
                    "employee_type_id": general.id,
                    "project_id": project.id,
                    "bank_name": "Capitec",
                    "account_number": "1234567890",
                    "account_type": "savings",
                    "branch_code": "470010",
                }, admin.id)
                print(f"Created labourer {labourer.full_name}")
            logged = (
                db.query(WorkLog)
                .filter(WorkLog.labourer_id == labourer.id, WorkLog.work_date == today)
                .first()
            )
            if logged is None:
                work_log = create_work_log(db, {
                    "project_id": project.id,
                    "labourer_id": labourer.id,
                    "work_date": today.isoformat(),
                    "open_trenching_meters": Decimal("10"),
                    "close_trenching_meters": Decimal("6"),
                }, admin.id)
                print(f"Logged {labourer.full_name}: R {work_log.total_earnings}")
        print("Done.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
