from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from clinic_backend import directory, services
from clinic_backend.config import Settings, configure_logging, get_settings
from clinic_backend.errors import ClinicError, UnexpectedError
from clinic_backend.models import utcnow
from clinic_backend.repository import Repository
from clinic_backend.seed import seed_base

logger = logging.getLogger(__name__)


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


# Schemas
# Required fields are optional here on purpose: the domain layer reports
# every missing field with one 400 message.

class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BookingIn(CamelModel):
    name: str | None = None
    phone: str | None = None
    service: str | None = None
    date: str | None = None
    message: str | None = None
    status: str | None = None


class StatusIn(CamelModel):
    status: str | None = None


class PatientIn(CamelModel):
    full_name: str | None = Field(default=None, alias="fullName")
    phone: str | None = None
    age: int | str | None = None
    gender: str | None = None
    medical_history: str | None = Field(default=None, alias="medicalHistory")


class TherapistIn(CamelModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    password: str | None = None
    specialization: str | None = Field(default=None, alias="specialty")
    status: str | None = None


class AppointmentIn(CamelModel):
    therapist_id: int | None = Field(default=None, alias="therapistId")
    patient_id: int | None = Field(default=None, alias="patientId")
    appointment_date: str | None = Field(default=None, alias="appointmentDate")
    start_time: str | None = Field(default=None, alias="startTime")
    end_time: str | None = Field(default=None, alias="endTime")
    status: str | None = None
    notes: str | None = None



# Bookings

bookings = APIRouter(prefix="/api/bookings", tags=["bookings"])


@bookings.post("")
def create_booking(payload: BookingIn, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    receipt = services.create_booking(repo, **payload.model_dump())
    return {"success": receipt.success, "message": receipt.message, "bookingId": receipt.booking_id}


@bookings.get("")
def list_bookings(status: str | None = None, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    rows = services.list_bookings_flat(repo, status=status)
    return {"success": True, "count": len(rows), "bookings": rows}


@bookings.get("/{booking_id}")
def get_booking(booking_id: int, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    return {"success": True, "booking": services.get_booking_flat(repo, booking_id)}


@bookings.patch("/{booking_id}")
def update_booking_status(
    booking_id: int, payload: StatusIn, repo: Repository = Depends(get_repository)
) -> dict[str, Any]:
    booking = services.update_booking_status(repo, booking_id, payload.status)
    return {"success": True, "message": "Booking status updated", "booking": booking}


@bookings.delete("/{booking_id}")
def delete_booking(booking_id: int, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    services.delete_booking(repo, booking_id)
    return {"success": True, "message": "Booking deleted successfully"}



# Notifications

notifications = APIRouter(prefix="/api/notifications", tags=["notifications"])


@notifications.get("")
def list_notifications(
    status: str | None = None,
    is_read: str | None = Query(default=None, alias="isRead"),
    repo: Repository = Depends(get_repository),
) -> list[dict]:
    return services.list_notifications_flat(repo, status=status, is_read=is_read)


@notifications.get("/unread/count")
def unread_count(repo: Repository = Depends(get_repository)) -> dict[str, int]:
    return {"count": services.unread_notifications_count(repo)}


@notifications.post("/fan-out")
def fan_out(repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    result = services.create_missing_notifications(repo)
    return {"success": True, "scanned": result.scanned, "created": result.created, "skipped": result.skipped}


@notifications.put("/{notification_id}/read")
def mark_read(notification_id: int, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    n = services.mark_notification_read(repo, notification_id)
    return {"success": True, "message": "Notification marked as read", "notification": n}


@notifications.put("/{notification_id}/status")
def set_status(
    notification_id: int, payload: StatusIn, repo: Repository = Depends(get_repository)
) -> dict[str, Any]:
    n = services.set_notification_status(repo, notification_id, payload.status)
    return {"success": True, "message": "Notification status updated", "notification": n}


@notifications.delete("/{notification_id}")
def delete_notification(notification_id: int, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    services.delete_notification(repo, notification_id)
    return {"success": True, "message": "Notification deleted successfully"}



# Patients

patients = APIRouter(prefix="/api/patients", tags=["patients"])


@patients.get("")
def list_patients(repo: Repository = Depends(get_repository)) -> list[dict]:
    return directory.list_patients_flat(repo)


@patients.post("", status_code=status.HTTP_201_CREATED)
def create_patient(payload: PatientIn, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    patient = directory.create_patient(repo, **payload.model_dump())
    return {"success": True, "message": "Patient created successfully", "patient": patient}


@patients.get("/{patient_id}")
def get_patient(patient_id: int, repo: Repository = Depends(get_repository)) -> dict:
    return directory.get_patient_flat(repo, patient_id)


@patients.get("/{patient_id}/appointments")
def get_patient_appointments(patient_id: int, repo: Repository = Depends(get_repository)) -> list[dict]:
    return directory.patient_appointments_flat(repo, patient_id)


@patients.put("/{patient_id}")
def update_patient(
    patient_id: int, payload: PatientIn, repo: Repository = Depends(get_repository)
) -> dict[str, Any]:
    patient = directory.update_patient(repo, patient_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "message": "Patient updated successfully", "patient": patient}


@patients.delete("/{patient_id}")
def delete_patient(patient_id: int, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    directory.delete_patient(repo, patient_id)
    return {"success": True, "message": "Patient deleted"}



# Therapists

therapists = APIRouter(prefix="/api/therapists", tags=["therapists"])


@therapists.get("")
def list_therapists(repo: Repository = Depends(get_repository)) -> list[dict]:
    return directory.list_therapists_flat(repo)


@therapists.post("", status_code=status.HTTP_201_CREATED)
def create_therapist(payload: TherapistIn, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    therapist = directory.create_therapist(repo, **payload.model_dump())
    return {"success": True, "message": "Therapist created successfully", "therapist": therapist}


@therapists.get("/{therapist_id}")
def get_therapist(therapist_id: int, repo: Repository = Depends(get_repository)) -> dict:
    return directory.get_therapist_flat(repo, therapist_id)


@therapists.put("/{therapist_id}")
def update_therapist(
    therapist_id: int, payload: TherapistIn, repo: Repository = Depends(get_repository)
) -> dict[str, Any]:
    therapist = directory.update_therapist(repo, therapist_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "message": "Therapist updated successfully", "therapist": therapist}


@therapists.delete("/{therapist_id}")
def delete_therapist(therapist_id: int, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    directory.delete_therapist(repo, therapist_id)
    return {"success": True, "message": "Therapist deleted"}



# Appointments

appointments = APIRouter(prefix="/api/appointments", tags=["appointments"])


@appointments.get("")
def list_appointments(
    therapist_id: int | None = Query(default=None, alias="therapistId"),
    patient_id: int | None = Query(default=None, alias="patientId"),
    status: str | None = None,
    date: str | None = None,
    repo: Repository = Depends(get_repository),
) -> list[dict]:
    return directory.list_appointments_flat(
        repo, therapist_id=therapist_id, patient_id=patient_id, status=status, day=date
    )


@appointments.get("/available-slots")
def available_slots(
    therapist_id: int | None = Query(default=None, alias="therapistId"),
    date: str | None = None,
    repo: Repository = Depends(get_repository),
) -> dict[str, list[str]]:
    return {"slots": directory.available_slots(repo, therapist_id, date)}


@appointments.post("", status_code=status.HTTP_201_CREATED)
def create_appointment(payload: AppointmentIn, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    appointment = directory.create_appointment(repo, **payload.model_dump())
    return {"success": True, "message": "Appointment created successfully", "appointment": appointment}


@appointments.get("/{appointment_id}")
def get_appointment(appointment_id: int, repo: Repository = Depends(get_repository)) -> dict:
    return directory.get_appointment_flat(repo, appointment_id)


@appointments.put("/{appointment_id}/cancel")
def cancel_appointment(appointment_id: int, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    appointment = directory.cancel_appointment(repo, appointment_id)
    return {"success": True, "message": "Appointment cancelled", "appointment": appointment}


@appointments.put("/{appointment_id}")
def update_appointment(
    appointment_id: int, payload: AppointmentIn, repo: Repository = Depends(get_repository)
) -> dict[str, Any]:
    appointment = directory.update_appointment(repo, appointment_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "message": "Appointment updated successfully", "appointment": appointment}


@appointments.delete("/{appointment_id}")
def delete_appointment(appointment_id: int, repo: Repository = Depends(get_repository)) -> dict[str, Any]:
    directory.delete_appointment(repo, appointment_id)
    return {"success": True, "message": "Appointment deleted"}



# Admin

admin = APIRouter(prefix="/api/admin", tags=["admin"])


@admin.get("/stats")
def dashboard_stats(repo: Repository = Depends(get_repository)) -> dict[str, int]:
    return services.dashboard_stats(repo)



# Error handling

def _error_body(message: str) -> dict[str, Any]:
    return {"success": False, "message": message}


async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        problems.append(f"{where}: {err.get('msg')}" if where else str(err.get("msg")))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body("; ".join(problems)))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = UnexpectedError()
    return JSONResponse(status_code=error.status_code, content=_error_body(error.message))



# App

def create_app(repository: Repository | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    repo = repository or Repository.from_url(settings.database_url, echo=settings.sql_echo)

    app = FastAPI(title="Clinic Booking API", version="1.0.0")
    app.state.repository = repo

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(ClinicError, clinic_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.on_event("startup")
    def startup() -> None:
        # create tables, then idempotent seed
        repo.create_all()
        if settings.seed_on_startup:
            seed_base(repo)
        logger.info("Clinic API ready on %s", repo.engine.url.render_as_string(hide_password=True))

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "timestamp": utcnow().isoformat()}

    for router in (bookings, notifications, patients, therapists, appointments, admin):
        app.include_router(router)

    return app


app = create_app()
