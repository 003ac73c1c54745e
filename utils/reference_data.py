"""Sample areas and departments for a fresh deployment."""
from flask import current_app

from extensions import db
from models import Area, Department

SAMPLE_AREAS = [
    ("Central Business District", "CBD", "Main commercial and business area"),
    ("Residential Zone A", "RZA", "Primary residential area with schools and parks"),
    ("Industrial Area", "IND", "Manufacturing and industrial zone"),
    ("Suburban Area", "SUB", "Suburban residential area"),
    ("Historic District", "HIS", "Historic preservation area"),
]

SAMPLE_DEPARTMENTS = [
    ("Public Works Department", "PWD", "public_works", "Responsible for roads, infrastructure, and public facilities", "pwd@city.gov", "+1-555-0201"),
    ("Water & Utilities Department", "WUD", "utilities", "Manages water supply, sewage, and utility services", "water@city.gov", "+1-555-0202"),
    ("Parks & Recreation Department", "PRD", "parks", "Maintains parks, recreational facilities, and community programs", "parks@city.gov", "+1-555-0203"),
    ("Environmental Services", "ENV", "environment", "Environmental protection and sustainability programs", "environment@city.gov", "+1-555-0204"),
    ("Public Safety Department", "PSD", "safety", "Public safety, emergency response, and security", "safety@city.gov", "+1-555-0205"),
]


def seed_reference_data() -> tuple[int, int]:
    """Insert any sample rows whose code is missing. Returns (areas added, departments added)."""
    existing_areas = {code for (code,) in db.session.query(Area.code).all()}
    existing_departments = {code for (code,) in db.session.query(Department.code).all()}

    areas_added = 0
    for name, code, description in SAMPLE_AREAS:
        if code in existing_areas:
            continue
        db.session.add(Area(name=name, code=code, description=description, state_id="1", district_id="1-1", is_active=True))
        areas_added += 1

    departments_added = 0
    for name, code, category, description, email, phone in SAMPLE_DEPARTMENTS:
        if code in existing_departments:
            continue
        db.session.add(
            Department(
                name=name,
                code=code,
                category=category,
                description=description,
                contact_email=email,
                contact_phone=phone,
                is_active=True,
            )
        )
        departments_added += 1

    db.session.commit()
    current_app.logger.info(
        "Reference data seeded", extra={"areas_added": areas_added, "departments_added": departments_added}
    )
    return areas_added, departments_added
