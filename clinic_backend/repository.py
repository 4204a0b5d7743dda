from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Iterator

from sqlalchemy import Engine, and_, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from .db import Base, make_engine, make_session_factory, session_scope
from .errors import PersistenceError
from .models import (
    Appointment,
    AppointmentStatus,
    Booking,
    BookingStatus,
    Notification,
    NotificationStatus,
    NotificationType,
    Patient,
    Therapist,
    User,
)

logger = logging.getLogger(__name__)

# delete order respects foreign keys
_CLEAR_ORDER = (Notification, Booking, Appointment, Therapist, Patient, User)

# SQLite INTEGER is a signed 64-bit value
MAX_ID = 2**63 - 1


def storable_id(value: int | None) -> bool:
    """True when `value` can be an existing primary key; larger ints overflow the driver."""
    return value is not None and 1 <= value <= MAX_ID


class Repository:
    """
    Storage access for the clinic.

    Every method opens its own short-lived session, so callers never touch
    SQLAlchemy directly. Returned ORM objects are detached; the relations a
    caller needs are loaded eagerly.

    Lookups by an id no row can have (0, negative, beyond 64 bits) behave
    like a missing row: None / False / empty.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "Repository":
        return cls(make_session_factory(make_engine(database_url, echo=echo)))

    @property
    def engine(self) -> Engine:
        return self._session_factory.kw["bind"]

    @contextmanager
    def session(self) -> Iterator[Session]:
        try:
            with session_scope(self._session_factory) as s:
                yield s
        except SQLAlchemyError as e:
            logger.exception("Database error")
            raise PersistenceError() from e

    # =========================
    # Administrative operations
    # =========================
    def create_all(self) -> None:
        """Create the tables if missing."""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            logger.exception("Could not create tables")
            raise PersistenceError() from e

    def clear(self) -> dict[str, int]:
        """Delete every row; returns the number of deleted rows per table."""
        deleted: dict[str, int] = {}
        with self.session() as s:
            for model in _CLEAR_ORDER:
                result = s.execute(delete(model))
                deleted[model.__tablename__] = result.rowcount or 0
        logger.warning("Database cleared: %s", deleted)
        return deleted

    def counts(self) -> dict[str, int]:
        with self.session() as s:
            return {
                model.__tablename__: s.scalar(select(func.count()).select_from(model)) or 0
                for model in reversed(_CLEAR_ORDER)
            }

    # =========================
    # Bookings
    # =========================
    def add_booking(self, booking: Booking) -> Booking:
        with self.session() as s:
            s.add(booking)
            s.flush()
            return booking

    def get_booking(self, booking_id: int) -> Booking | None:
        if not storable_id(booking_id):
            return None
        with self.session() as s:
            return s.get(Booking, booking_id)

    def list_bookings(self, status: BookingStatus | None = None) -> list[Booking]:
        q = select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc())
        if status is not None:
            q = q.where(Booking.status == status)
        with self.session() as s:
            return list(s.scalars(q))

    def set_booking_status(self, booking_id: int, status: BookingStatus) -> Booking | None:
        if not storable_id(booking_id):
            return None
        with self.session() as s:
            booking = s.get(Booking, booking_id)
            if booking is None:
                return None
            booking.status = status
            return booking

    def delete_booking(self, booking_id: int) -> bool:
        """Delete a booking together with its notifications."""
        if not storable_id(booking_id):
            return False
        with self.session() as s:
            booking = s.get(Booking, booking_id)
            if booking is None:
                return False
            s.delete(booking)
            return True

    # =========================
    # Notifications
    # =========================
    def bookings_without_notifications(self) -> list[Booking]:
        q = select(Booking).where(~Booking.notifications.any()).order_by(Booking.id.asc())
        with self.session() as s:
            return list(s.scalars(q))

    def add_notification(self, notification: Notification) -> Notification | None:
        """
        Insert a single notification in its own transaction.
        Returns None when the insert is rejected: either another pass already
        created it (booking, type unique constraint) or the booking was
        deleted after the scan (foreign key).
        """
        with self.session() as s:
            s.add(notification)
            try:
                s.flush()
            except IntegrityError:
                s.rollback()
                if s.get(Booking, notification.booking_id) is None:
                    logger.info(
                        "Booking %s no longer exists, notification %s skipped",
                        notification.booking_id,
                        notification.type.value,
                    )
                else:
                    logger.info(
                        "Notification %s for booking %s already exists, skipped",
                        notification.type.value,
                        notification.booking_id,
                    )
                return None
            return notification

    def list_notifications(
        self,
        status: NotificationStatus | None = None,
        is_read: bool | None = None,
    ) -> list[Notification]:
        q = (
            select(Notification)
            .options(selectinload(Notification.booking))
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        if status is not None:
            q = q.where(Notification.status == status)
        if is_read is not None:
            q = q.where(Notification.is_read.is_(is_read))
        with self.session() as s:
            return list(s.scalars(q))

    def count_unread_notifications(self) -> int:
        q = select(func.count(Notification.id)).where(
            and_(Notification.is_read.is_(False), Notification.status == NotificationStatus.PENDING)
        )
        with self.session() as s:
            return s.scalar(q) or 0

    def count_notifications(self, booking_id: int | None = None, type_: NotificationType | None = None) -> int:
        q = select(func.count(Notification.id))
        if booking_id is not None:
            q = q.where(Notification.booking_id == booking_id)
        if type_ is not None:
            q = q.where(Notification.type == type_)
        with self.session() as s:
            return s.scalar(q) or 0

    def update_notification(
        self,
        notification_id: int,
        *,
        is_read: bool | None = None,
        status: NotificationStatus | None = None,
    ) -> Notification | None:
        if not storable_id(notification_id):
            return None
        with self.session() as s:
            n = s.get(Notification, notification_id, options=[selectinload(Notification.booking)])
            if n is None:
                return None
            if is_read is not None:
                n.is_read = is_read
            if status is not None:
                n.status = status
            return n

    def delete_notification(self, notification_id: int) -> bool:
        if not storable_id(notification_id):
            return False
        with self.session() as s:
            n = s.get(Notification, notification_id)
            if n is None:
                return False
            s.delete(n)
            return True

    # =========================
    # Users
    # =========================
    def get_user_by_email(self, email: str) -> User | None:
        with self.session() as s:
            return s.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def add_user(self, user: User) -> User:
        with self.session() as s:
            s.add(user)
            s.flush()
            return user

    def set_user_password(self, email: str, password_hash: str) -> bool:
        with self.session() as s:
            user = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
            if user is None:
                return False
            user.password_hash = password_hash
            return True

    # =========================
    # Patients
    # =========================
    def add_patient(self, patient: Patient) -> Patient:
        with self.session() as s:
            s.add(patient)
            s.flush()
            return patient

    def list_patients(self) -> list[Patient]:
        q = select(Patient).options(selectinload(Patient.appointments)).order_by(Patient.full_name, Patient.id)
        with self.session() as s:
            return list(s.scalars(q))

    def get_patient(self, patient_id: int) -> Patient | None:
        if not storable_id(patient_id):
            return None
        with self.session() as s:
            return s.get(
                Patient,
                patient_id,
                options=[
                    selectinload(Patient.appointments).selectinload(Appointment.therapist).selectinload(Therapist.user)
                ],
            )

    def update_patient(self, patient_id: int, changes: dict[str, Any]) -> bool:
        """Apply column values (already validated) to a patient."""
        if not storable_id(patient_id):
            return False
        with self.session() as s:
            patient = s.get(Patient, patient_id)
            if patient is None:
                return False
            for column, value in changes.items():
                setattr(patient, column, value)
            return True

    def delete_patient(self, patient_id: int) -> bool:
        """Delete a patient together with their appointments."""
        if not storable_id(patient_id):
            return False
        with self.session() as s:
            patient = s.get(Patient, patient_id)
            if patient is None:
                return False
            s.delete(patient)
            return True

    # =========================
    # Therapists
    # =========================
    def add_therapist(self, therapist: Therapist) -> Therapist:
        """Create the therapist profile and its user account together."""
        with self.session() as s:
            s.add(therapist)
            s.flush()
            s.refresh(therapist, ["user", "appointments"])
            return therapist

    def list_therapists(self) -> list[Therapist]:
        q = (
            select(Therapist)
            .options(selectinload(Therapist.user), selectinload(Therapist.appointments))
            .order_by(Therapist.id)
        )
        with self.session() as s:
            return list(s.scalars(q))

    def get_therapist(self, therapist_id: int) -> Therapist | None:
        if not storable_id(therapist_id):
            return None
        with self.session() as s:
            return s.get(
                Therapist,
                therapist_id,
                options=[
                    selectinload(Therapist.user),
                    selectinload(Therapist.appointments).selectinload(Appointment.patient),
                ],
            )

    def update_therapist(
        self,
        therapist_id: int,
        profile: dict[str, Any],
        account: dict[str, Any],
    ) -> bool:
        """Apply profile columns to the therapist and account columns to its user."""
        if not storable_id(therapist_id):
            return False
        with self.session() as s:
            therapist = s.get(Therapist, therapist_id, options=[selectinload(Therapist.user)])
            if therapist is None:
                return False
            for column, value in profile.items():
                setattr(therapist, column, value)
            for column, value in account.items():
                setattr(therapist.user, column, value)
            return True

    def delete_therapist(self, therapist_id: int) -> bool:
        """Delete the profile, its appointments and the user account behind it."""
        if not storable_id(therapist_id):
            return False
        with self.session() as s:
            therapist = s.get(Therapist, therapist_id)
            if therapist is None:
                return False
            user_id = therapist.user_id
            s.delete(therapist)
            s.flush()
            s.execute(delete(User).where(User.id == user_id))
            return True

    # =========================
    # Appointments
    # =========================
    def _appointment_query(self):
        return select(Appointment).options(
            selectinload(Appointment.patient),
            selectinload(Appointment.therapist).selectinload(Therapist.user),
        )

    def list_appointments(
        self,
        therapist_id: int | None = None,
        patient_id: int | None = None,
        status: AppointmentStatus | None = None,
        day: date | None = None,
    ) -> list[Appointment]:
        for ref in (therapist_id, patient_id):
            if ref is not None and not storable_id(ref):
                return []

        q = self._appointment_query().order_by(
            Appointment.appointment_date.asc(), Appointment.start_time.asc(), Appointment.id.asc()
        )
        if therapist_id is not None:
            q = q.where(Appointment.therapist_id == therapist_id)
        if patient_id is not None:
            q = q.where(Appointment.patient_id == patient_id)
        if status is not None:
            q = q.where(Appointment.status == status)
        if day is not None:
            q = q.where(Appointment.appointment_date == day)
        with self.session() as s:
            return list(s.scalars(q))

    def get_appointment(self, appointment_id: int) -> Appointment | None:
        if not storable_id(appointment_id):
            return None
        with self.session() as s:
            return s.scalars(self._appointment_query().where(Appointment.id == appointment_id)).first()

    def count_appointments(self, day: date | None = None, from_day: date | None = None) -> int:
        """Appointments on `day`, or on `from_day` and later."""
        q = select(func.count(Appointment.id))
        if day is not None:
            q = q.where(Appointment.appointment_date == day)
        if from_day is not None:
            q = q.where(Appointment.appointment_date >= from_day)
        with self.session() as s:
            return s.scalar(q) or 0

    def has_active_appointment(
        self,
        therapist_id: int,
        day: date,
        start_time: str,
        exclude_id: int | None = None,
    ) -> bool:
        if not storable_id(therapist_id):
            return False
        q = select(Appointment.id).where(
            and_(
                Appointment.therapist_id == therapist_id,
                Appointment.appointment_date == day,
                Appointment.start_time == start_time,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
        )
        if exclude_id is not None:
            q = q.where(Appointment.id != exclude_id)
        with self.session() as s:
            return s.execute(q.limit(1)).first() is not None

    def booked_start_times(self, therapist_id: int, day: date) -> set[str]:
        if not storable_id(therapist_id):
            return set()
        q = select(Appointment.start_time).where(
            and_(
                Appointment.therapist_id == therapist_id,
                Appointment.appointment_date == day,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
        )
        with self.session() as s:
            return set(s.scalars(q))

    def add_appointment(self, appointment: Appointment) -> int:
        with self.session() as s:
            s.add(appointment)
            s.flush()
            return appointment.id

    def update_appointment(self, appointment_id: int, changes: dict[str, Any]) -> bool:
        if not storable_id(appointment_id):
            return False
        with self.session() as s:
            appointment = s.get(Appointment, appointment_id)
            if appointment is None:
                return False
            for column, value in changes.items():
                setattr(appointment, column, value)
            return True

    def set_appointment_status(self, appointment_id: int, status: AppointmentStatus) -> bool:
        return self.update_appointment(appointment_id, {"status": status})

    def delete_appointment(self, appointment_id: int) -> bool:
        if not storable_id(appointment_id):
            return False
        with self.session() as s:
            appointment = s.get(Appointment, appointment_id)
            if appointment is None:
                return False
            s.delete(appointment)
            return True
