from __future__ import annotations

import logging
import re
from typing import Any

from .errors import ConflictError, NotFoundError, ValidationError
from .models import (
    Appointment,
    AppointmentStatus,
    Gender,
    Patient,
    Therapist,
    TherapistStatus,
    User,
    UserRole,
)
from .repository import Repository
from .security import hash_password
from .services import is_blank, match_enum, parse_date, parse_enum, to_iso

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[0-9+\-\s()]+$")
THERAPIST_PHONE_RE = re.compile(r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$")
TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

# 09:00 .. 17:00, one-hour slots
DAY_SLOTS = tuple(f"{h:02d}:00" for h in range(9, 18))


def _require(values: dict[str, Any]) -> None:
    missing = [k for k, v in values.items() if is_blank(v)]
    if missing:
        raise ValidationError(f"All required fields must be provided: {', '.join(missing)}")


def _valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(phone)) and len(phone) >= 7


def is_valid_time(value: str) -> bool:
    return bool(TIME_RE.match(value))


def _to_int(value: Any, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number") from None


def _normalize_time(value: str) -> str:
    """'9:00' -> '09:00'."""
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{minutes}"


def _clean_time(value: Any) -> str:
    text = str(value).strip()
    if not is_valid_time(text):
        raise ValidationError("Invalid time format. Use HH:mm")
    return _normalize_time(text)


def _clean_age(value: Any) -> int:
    try:
        age = int(value)
    except (TypeError, ValueError):
        age = -1
    if not 0 <= age <= 150:
        raise ValidationError("Age must be a valid number between 0 and 150")
    return age


def _optional_text(value: Any) -> str | None:
    return None if is_blank(value) else str(value).strip()


# =========================
# Flat views
# =========================
def patient_flat(p: Patient, with_appointments: bool = False) -> dict:
    out = {
        "id": p.id,
        "fullName": p.full_name,
        "phone": p.phone,
        "age": p.age,
        "gender": p.gender.value,
        "medicalHistory": p.medical_history,
        "createdAt": to_iso(p.created_at),
    }
    if with_appointments:
        out["appointments"] = [appointment_flat(a, therapist=True) for a in p.appointments]
    return out


def therapist_flat(t: Therapist, with_appointments: bool = False) -> dict:
    out = {
        "id": t.id,
        "userId": t.user_id,
        "name": t.user.name,
        "email": t.user.email,
        "phone": t.phone,
        "specialization": t.specialization,
        "status": t.status.value,
        "appointmentCount": len(t.appointments),
    }
    if with_appointments:
        out["appointments"] = [appointment_flat(a, patient=True) for a in t.appointments]
    return out


def appointment_flat(a: Appointment, patient: bool = False, therapist: bool = False) -> dict:
    out = {
        "id": a.id,
        "patientId": a.patient_id,
        "therapistId": a.therapist_id,
        "appointmentDate": to_iso(a.appointment_date),
        "startTime": a.start_time,
        "endTime": a.end_time,
        "status": a.status.value,
        "notes": a.notes,
        "createdAt": to_iso(a.created_at),
    }
    if patient:
        out["patient"] = {"id": a.patient.id, "fullName": a.patient.full_name, "phone": a.patient.phone}
    if therapist:
        out["therapist"] = {
            "id": a.therapist.id,
            "name": a.therapist.user.name,
            "specialization": a.therapist.specialization,
        }
    return out


# =========================
# Users
# =========================
def create_admin(repo: Repository, name: str, email: str, password: str) -> str:
    _require({"name": name, "email": email, "password": password})
    email = email.strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    if repo.get_user_by_email(email) is not None:
        raise ConflictError("A user with this email already exists")

    user = repo.add_user(
        User(name=name.strip(), email=email, password_hash=hash_password(password), role=UserRole.ADMIN)
    )
    logger.info("Admin user %s created", email)
    return user.id


def reset_password(repo: Repository, email: str, password: str) -> None:
    if is_blank(password):
        raise ValidationError("Password is required")
    if not repo.set_user_password(email.strip().lower(), hash_password(password)):
        raise NotFoundError("User not found")
    logger.info("Password reset for %s", email)


# =========================
# Patients
# =========================
def create_patient(
    repo: Repository,
    full_name: Any = None,
    phone: Any = None,
    age: Any = None,
    gender: Any = None,
    medical_history: Any = None,
) -> dict:
    _require({"fullName": full_name, "phone": phone, "age": age, "gender": gender})

    phone = str(phone).strip()
    if not _valid_phone(phone):
        raise ValidationError("Invalid phone number format")

    age_num = _clean_age(age)

    patient = repo.add_patient(
        Patient(
            full_name=str(full_name).strip(),
            phone=phone,
            age=age_num,
            gender=parse_enum(Gender, gender, "gender"),
            medical_history=_optional_text(medical_history),
        )
    )
    logger.info("Patient %s created", patient.id)
    return patient_flat(patient)


def list_patients_flat(repo: Repository) -> list[dict]:
    return [patient_flat(p) for p in repo.list_patients()]


def get_patient_flat(repo: Repository, patient_id: int) -> dict:
    p = repo.get_patient(patient_id)
    if p is None:
        raise NotFoundError("Patient not found")
    return patient_flat(p, with_appointments=True)


def patient_appointments_flat(repo: Repository, patient_id: int) -> list[dict]:
    if repo.get_patient(patient_id) is None:
        raise NotFoundError("Patient not found")
    return [appointment_flat(a, therapist=True) for a in repo.list_appointments(patient_id=patient_id)]


def update_patient(repo: Repository, patient_id: int, changes: dict[str, Any]) -> dict:
    """
    Partial update with the fields that were sent.
    Blank values leave a field unchanged, except medical_history where blank clears it.
    """
    values: dict[str, Any] = {}
    if not is_blank(changes.get("full_name")):
        values["full_name"] = str(changes["full_name"]).strip()
    if not is_blank(changes.get("phone")):
        phone = str(changes["phone"]).strip()
        if not _valid_phone(phone):
            raise ValidationError("Invalid phone number format")
        values["phone"] = phone
    if not is_blank(changes.get("age")):
        values["age"] = _clean_age(changes["age"])
    if not is_blank(changes.get("gender")):
        values["gender"] = parse_enum(Gender, changes["gender"], "gender")
    if "medical_history" in changes:
        values["medical_history"] = _optional_text(changes["medical_history"])

    if not repo.update_patient(patient_id, values):
        raise NotFoundError("Patient not found")
    logger.info("Patient %s updated (%s)", patient_id, ", ".join(values) or "no changes")
    return get_patient_flat(repo, patient_id)


def delete_patient(repo: Repository, patient_id: int) -> None:
    if not repo.delete_patient(patient_id):
        raise NotFoundError("Patient not found")
    logger.info("Patient %s deleted with their appointments", patient_id)


# =========================
# Therapists
# =========================
def create_therapist(
    repo: Repository,
    name: Any = None,
    email: Any = None,
    phone: Any = None,
    password: Any = None,
    specialization: Any = None,
    status: Any = None,
) -> dict:
    """
    A therapist is a user with role 'therapist' plus a profile row.
    The password is stored hashed; status defaults to active.
    """
    _require({"name": name, "email": email, "phone": phone, "password": password})

    email = str(email).strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")

    phone = str(phone).strip()
    if not THERAPIST_PHONE_RE.match(phone.replace(" ", "")):
        raise ValidationError("Invalid phone number format. Use format like: +966501234567 or (050) 123-4567")

    new_status = TherapistStatus.ACTIVE if is_blank(status) else parse_enum(TherapistStatus, status)

    if repo.get_user_by_email(email) is not None:
        raise ConflictError("A therapist with this email already exists")

    therapist = repo.add_therapist(
        Therapist(
            user=User(
                name=str(name).strip(),
                email=email,
                password_hash=hash_password(str(password)),
                role=UserRole.THERAPIST,
            ),
            phone=phone,
            specialization=_optional_text(specialization),
            status=new_status,
        )
    )
    logger.info("Therapist %s created for %s", therapist.id, email)
    return therapist_flat(therapist)


def list_therapists_flat(repo: Repository) -> list[dict]:
    return [therapist_flat(t) for t in repo.list_therapists()]


def get_therapist_flat(repo: Repository, therapist_id: int) -> dict:
    t = repo.get_therapist(therapist_id)
    if t is None:
        raise NotFoundError("Therapist not found")
    return therapist_flat(t, with_appointments=True)


def update_therapist(repo: Repository, therapist_id: int, changes: dict[str, Any]) -> dict:
    """
    Partial update of the profile (phone, specialization, status) and of the
    account behind it (name, email, password). Blank values are ignored.
    """
    current = repo.get_therapist(therapist_id)
    if current is None:
        raise NotFoundError("Therapist not found")

    account: dict[str, Any] = {}
    profile: dict[str, Any] = {}

    if not is_blank(changes.get("name")):
        account["name"] = str(changes["name"]).strip()
    if not is_blank(changes.get("email")):
        email = str(changes["email"]).strip().lower()
        if not EMAIL_RE.match(email):
            raise ValidationError("Invalid email format")
        owner = repo.get_user_by_email(email)
        if owner is not None and owner.id != current.user_id:
            raise ConflictError("A user with this email already exists")
        account["email"] = email
    if not is_blank(changes.get("password")):
        account["password_hash"] = hash_password(str(changes["password"]))

    if not is_blank(changes.get("phone")):
        phone = str(changes["phone"]).strip()
        if not _valid_phone(phone):
            raise ValidationError("Invalid phone number format")
        profile["phone"] = phone
    if not is_blank(changes.get("specialization")):
        profile["specialization"] = str(changes["specialization"]).strip()
    if not is_blank(changes.get("status")):
        profile["status"] = parse_enum(TherapistStatus, changes["status"])

    if not repo.update_therapist(therapist_id, profile, account):
        raise NotFoundError("Therapist not found")
    logger.info("Therapist %s updated (%s)", therapist_id, ", ".join([*profile, *account]) or "no changes")
    return get_therapist_flat(repo, therapist_id)


def delete_therapist(repo: Repository, therapist_id: int) -> None:
    if not repo.delete_therapist(therapist_id):
        raise NotFoundError("Therapist not found")
    logger.info("Therapist %s deleted with their account and appointments", therapist_id)


# =========================
# Appointments
# =========================
def list_appointments_flat(
    repo: Repository,
    therapist_id: int | None = None,
    patient_id: int | None = None,
    status: str | None = None,
    day: Any = None,
) -> list[dict]:
    wanted_status = None
    if not is_blank(status):
        wanted_status = match_enum(AppointmentStatus, status)
        if wanted_status is None:
            return []
    rows = repo.list_appointments(
        therapist_id=therapist_id,
        patient_id=patient_id,
        status=wanted_status,
        day=None if is_blank(day) else parse_date(day),
    )
    return [appointment_flat(a, patient=True, therapist=True) for a in rows]


def get_appointment_flat(repo: Repository, appointment_id: int) -> dict:
    a = repo.get_appointment(appointment_id)
    if a is None:
        raise NotFoundError("Appointment not found")
    return appointment_flat(a, patient=True, therapist=True)


def create_appointment(
    repo: Repository,
    therapist_id: Any = None,
    patient_id: Any = None,
    appointment_date: Any = None,
    start_time: Any = None,
    end_time: Any = None,
    status: Any = None,
    notes: Any = None,
) -> dict:
    """
    Use case: schedule an appointment.
    - therapist and patient must exist
    - times are HH:MM and end after start
    - one non-cancelled appointment per therapist, day and start time
    """
    _require(
        {
            "therapistId": therapist_id,
            "patientId": patient_id,
            "appointmentDate": appointment_date,
            "startTime": start_time,
            "endTime": end_time,
        }
    )
    start, end = _clean_time(start_time), _clean_time(end_time)
    if end <= start:
        raise ValidationError("End time must be after start time")

    day = parse_date(appointment_date, "appointmentDate")
    therapist_id = _to_int(therapist_id, "therapistId")
    patient_id = _to_int(patient_id, "patientId")
    new_status = AppointmentStatus.PENDING if is_blank(status) else parse_enum(AppointmentStatus, status)

    if repo.get_therapist(therapist_id) is None:
        raise NotFoundError("Therapist not found")
    if repo.get_patient(patient_id) is None:
        raise NotFoundError("Patient not found")
    if repo.has_active_appointment(therapist_id, day, start):
        raise ConflictError("Time slot is already booked")

    appointment_id = repo.add_appointment(
        Appointment(
            therapist_id=therapist_id,
            patient_id=patient_id,
            appointment_date=day,
            start_time=start,
            end_time=end,
            status=new_status,
            notes=_optional_text(notes),
        )
    )
    logger.info("Appointment %s scheduled for therapist %s on %s %s", appointment_id, therapist_id, day, start)
    return get_appointment_flat(repo, appointment_id)


def cancel_appointment(repo: Repository, appointment_id: int) -> dict:
    if not repo.set_appointment_status(appointment_id, AppointmentStatus.CANCELLED):
        raise NotFoundError("Appointment not found")
    return get_appointment_flat(repo, appointment_id)


def update_appointment(repo: Repository, appointment_id: int, changes: dict[str, Any]) -> dict:
    """
    Reschedule or edit an appointment. Therapist and patient stay fixed.
    The merged result must still satisfy the creation rules, the slot check
    ignoring the appointment itself.
    """
    current = repo.get_appointment(appointment_id)
    if current is None:
        raise NotFoundError("Appointment not found")

    day = current.appointment_date
    if not is_blank(changes.get("appointment_date")):
        day = parse_date(changes["appointment_date"], "appointmentDate")
    start = current.start_time if is_blank(changes.get("start_time")) else _clean_time(changes["start_time"])
    end = current.end_time if is_blank(changes.get("end_time")) else _clean_time(changes["end_time"])
    if end <= start:
        raise ValidationError("End time must be after start time")
    new_status = current.status
    if not is_blank(changes.get("status")):
        new_status = parse_enum(AppointmentStatus, changes["status"])

    if new_status is not AppointmentStatus.CANCELLED and repo.has_active_appointment(
        current.therapist_id, day, start, exclude_id=appointment_id
    ):
        raise ConflictError("Time slot is already booked")

    values: dict[str, Any] = {
        "appointment_date": day,
        "start_time": start,
        "end_time": end,
        "status": new_status,
    }
    if "notes" in changes:
        values["notes"] = _optional_text(changes["notes"])

    if not repo.update_appointment(appointment_id, values):
        raise NotFoundError("Appointment not found")
    logger.info("Appointment %s updated: %s %s-%s %s", appointment_id, day, start, end, new_status.value)
    return get_appointment_flat(repo, appointment_id)


def delete_appointment(repo: Repository, appointment_id: int) -> None:
    if not repo.delete_appointment(appointment_id):
        raise NotFoundError("Appointment not found")
    logger.info("Appointment %s deleted", appointment_id)


def available_slots(repo: Repository, therapist_id: Any, day: Any) -> list[str]:
    """Hourly slots between 09:00 and 17:00 not taken by a non-cancelled appointment."""
    if is_blank(therapist_id) or is_blank(day):
        raise ValidationError("Therapist ID and date required")
    booked = repo.booked_start_times(_to_int(therapist_id, "therapistId"), parse_date(day))
    return [slot for slot in DAY_SLOTS if slot not in booked]
