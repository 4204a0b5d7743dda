from __future__ import annotations

import logging

from sqlalchemy import select

from .models import Gender, Patient, Therapist, TherapistStatus, User, UserRole
from .repository import Repository
from .security import hash_password

logger = logging.getLogger(__name__)

ADMIN = ("Admin User", "admin@clinic.local", "admin123")

THERAPISTS = [
    ("Sarah Ahmed", "therapist1@clinic.local", "+966912345101", "Physiotherapy"),
    ("Omar Khalid", "therapist2@clinic.local", "+966912345102", "Orthopedic Therapy"),
    ("Lina Haddad", "therapist3@clinic.local", "+966912345103", "Sports Therapy"),
]

PATIENTS = [
    ("Aisha Rahman", "+966501234567", 34, Gender.FEMALE),
    ("Yusuf Saleh", "+966501234568", 52, Gender.MALE),
]

THERAPIST_DEFAULT_PASSWORD = "therapist123"


def seed_base(repo: Repository) -> dict[str, int]:
    """
    Populate minimal data (idempotent):
    - admin user
    - therapists (user + profile)
    - patients
    Returns how many rows were added per kind.
    """
    added = {"users": 0, "therapists": 0, "patients": 0}

    with repo.session() as s:
        name, email, password = ADMIN
        if s.execute(select(User).where(User.email == email)).scalar_one_or_none() is None:
            s.add(User(name=name, email=email, password_hash=hash_password(password), role=UserRole.ADMIN))
            added["users"] += 1

        for name, email, phone, specialization in THERAPISTS:
            if s.execute(select(User).where(User.email == email)).scalar_one_or_none() is not None:
                continue
            user = User(
                name=name,
                email=email,
                password_hash=hash_password(THERAPIST_DEFAULT_PASSWORD),
                role=UserRole.THERAPIST,
            )
            s.add(Therapist(user=user, phone=phone, specialization=specialization, status=TherapistStatus.ACTIVE))
            added["users"] += 1
            added["therapists"] += 1

        for full_name, phone, age, gender in PATIENTS:
            exists = s.execute(
                select(Patient).where(Patient.full_name == full_name, Patient.phone == phone)
            ).scalar_one_or_none()
            if exists is None:
                s.add(Patient(full_name=full_name, phone=phone, age=age, gender=gender))
                added["patients"] += 1

    if any(added.values()):
        logger.info("Seed data added: %s", added)
    return added
