from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, TypeVar

from .errors import NotFoundError, ValidationError
from .models import Booking, BookingStatus, Notification, NotificationStatus, NotificationType
from .repository import Repository

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=enum.Enum)

REQUIRED_BOOKING_FIELDS = ("name", "phone", "service", "date")


# =========================
# Helper / DTO
# =========================
@dataclass(frozen=True)
class BookingReceipt:
    success: bool
    booking_id: int
    message: str = "Booking received successfully. We will contact you soon!"


@dataclass(frozen=True)
class FanOutResult:
    scanned: int
    created: int
    skipped: int


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_date(value: Any, field: str = "date") -> date:
    """Accept a date, a datetime or an ISO string ('2026-03-01' or '2026-03-01T10:00:00Z')."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"Invalid {field}: expected an ISO date (YYYY-MM-DD)") from None


def parse_enum(enum_cls: type[E], value: Any, field: str = "status") -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field.capitalize()} must be one of: {allowed}") from None


def match_enum(enum_cls: type[E], value: Any) -> E | None:
    """Enum member for a list filter, None when the value names no member."""
    try:
        return parse_enum(enum_cls, value)
    except ValidationError:
        return None


def to_iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def booking_flat(b: Booking) -> dict:
    return {
        "id": b.id,
        "name": b.name,
        "phone": b.phone,
        "service": b.service,
        "date": to_iso(b.date),
        "message": b.message,
        "status": b.status.value,
        "createdAt": to_iso(b.created_at),
    }


def notification_flat(n: Notification) -> dict:
    return {
        "id": n.id,
        "bookingId": n.booking_id,
        "type": n.type.value,
        "title": n.title,
        "message": n.message,
        "isRead": n.is_read,
        "status": n.status.value,
        "createdAt": to_iso(n.created_at),
        "booking": booking_flat(n.booking) if n.booking is not None else None,
    }


# =========================
# Booking intake (use case core)
# =========================
def create_booking(
    repo: Repository,
    name: Any = None,
    phone: Any = None,
    service: Any = None,
    date: Any = None,
    message: Any = None,
    status: Any = None,
) -> BookingReceipt:
    """
    Use case: receive a booking request.
    - name, phone, service and date are mandatory and non-blank
    - status defaults to pending
    - nothing is stored when validation fails
    Duplicate submissions are accepted.
    """
    submitted = {"name": name, "phone": phone, "service": service, "date": date}
    missing = [f for f in REQUIRED_BOOKING_FIELDS if is_blank(submitted[f])]
    if missing:
        raise ValidationError(f"Please fill in all required fields: {', '.join(missing)}")

    booking_date = parse_date(date)
    booking_status = BookingStatus.PENDING if is_blank(status) else parse_enum(BookingStatus, status)

    booking = repo.add_booking(
        Booking(
            name=str(name).strip(),
            phone=str(phone).strip(),
            service=str(service).strip(),
            date=booking_date,
            message=None if is_blank(message) else str(message).strip(),
            status=booking_status,
        )
    )
    logger.info("New booking %s received (service=%s, date=%s)", booking.id, booking.service, booking.date)
    return BookingReceipt(success=True, booking_id=booking.id)


def list_bookings_flat(repo: Repository, status: str | None = None) -> list[dict]:
    """An unknown status matches no booking."""
    wanted = None
    if not is_blank(status):
        wanted = match_enum(BookingStatus, status)
        if wanted is None:
            return []
    return [booking_flat(b) for b in repo.list_bookings(status=wanted)]


def get_booking_flat(repo: Repository, booking_id: int) -> dict:
    b = repo.get_booking(booking_id)
    if b is None:
        raise NotFoundError("Booking not found")
    return booking_flat(b)


def update_booking_status(repo: Repository, booking_id: int, status: Any) -> dict:
    """Status is the only mutable field of a booking."""
    if is_blank(status):
        raise ValidationError("Status is required")
    new_status = parse_enum(BookingStatus, status)

    b = repo.set_booking_status(booking_id, new_status)
    if b is None:
        raise NotFoundError("Booking not found")
    logger.info("Booking %s status set to %s", booking_id, new_status.value)
    return booking_flat(b)


def delete_booking(repo: Repository, booking_id: int) -> None:
    if not repo.delete_booking(booking_id):
        raise NotFoundError("Booking not found")
    logger.info("Booking %s deleted with its notifications", booking_id)


# =========================
# Notification fan-out
# =========================
def notification_title(b: Booking) -> str:
    return f"New Booking Request from {b.name}"


def notification_message(b: Booking) -> str:
    return f"Service: {b.service} - Phone: {b.phone}"


def create_missing_notifications(repo: Repository) -> FanOutResult:
    """
    Batch pass: one booking_request notification for every booking that has none.

    Safe to run again: bookings that already have a notification are not
    scanned, and a booking notified by a concurrent pass is skipped thanks to
    the (booking, type) unique constraint.
    """
    pending = repo.bookings_without_notifications()
    created = 0

    for b in pending:
        n = repo.add_notification(
            Notification(
                booking_id=b.id,
                type=NotificationType.BOOKING_REQUEST,
                title=notification_title(b),
                message=notification_message(b),
                is_read=False,
                status=NotificationStatus.PENDING,
            )
        )
        if n is not None:
            created += 1
            logger.debug("Created notification %s for booking %s", n.id, b.id)

    result = FanOutResult(scanned=len(pending), created=created, skipped=len(pending) - created)
    logger.info(
        "Fan-out: %d bookings without notifications, %d created, %d skipped",
        result.scanned,
        result.created,
        result.skipped,
    )
    return result


# =========================
# Notifications (admin)
# =========================
def _parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    raise ValidationError(f"{field} must be true or false")


def list_notifications_flat(repo: Repository, status: str | None = None, is_read: Any = None) -> list[dict]:
    wanted_status = None
    if not is_blank(status):
        wanted_status = match_enum(NotificationStatus, status)
        if wanted_status is None:
            return []
    wanted_read = None if is_blank(is_read) else _parse_bool(is_read, "isRead")
    return [notification_flat(n) for n in repo.list_notifications(status=wanted_status, is_read=wanted_read)]


def unread_notifications_count(repo: Repository) -> int:
    return repo.count_unread_notifications()


def mark_notification_read(repo: Repository, notification_id: int) -> dict:
    n = repo.update_notification(notification_id, is_read=True)
    if n is None:
        raise NotFoundError("Notification not found")
    return notification_flat(n)


def set_notification_status(repo: Repository, notification_id: int, status: Any) -> dict:
    """Setting a status (pending / resolved) also marks the notification as read."""
    if is_blank(status):
        raise ValidationError("Status is required")
    new_status = parse_enum(NotificationStatus, status)

    n = repo.update_notification(notification_id, is_read=True, status=new_status)
    if n is None:
        raise NotFoundError("Notification not found")
    return notification_flat(n)


def delete_notification(repo: Repository, notification_id: int) -> None:
    if not repo.delete_notification(notification_id):
        raise NotFoundError("Notification not found")


# =========================
# Dashboard
# =========================
def dashboard_stats(repo: Repository, today: date | None = None) -> dict[str, int]:
    """Headline counters for the admin dashboard; appointments count every status."""
    today = today or date.today()
    counts = repo.counts()
    return {
        "totalTherapists": counts["therapists"],
        "totalPatients": counts["patients"],
        "totalBookings": counts["bookings"],
        "appointmentsToday": repo.count_appointments(day=today),
        "upcomingAppointments": repo.count_appointments(from_day=today),
        "unreadNotifications": repo.count_unread_notifications(),
    }
