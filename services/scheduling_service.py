# FILE: services/scheduling_service.py
"""
Follow-up call scheduling.

The host publishes time slots; a registered viewer books one of them while
scheduling is enabled. A slot holds at most one booking.
"""
import re
from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import Booking, Lead, SchedulingSettings, TimeSlot, db
from services.errors import BackendError, ConflictError, NotFound, ValidationError
from services.target_service import commit_or_raise, get_singleton


TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def scheduling_enabled() -> bool:
    return get_singleton(SchedulingSettings).scheduling_enabled


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value or "").strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Date must be in YYYY-MM-DD format.")


def _parse_time(value, name: str) -> str:
    text = str(value or "").strip()[:5]
    if not TIME_PATTERN.match(text):
        raise ValidationError(f"{name} must be a time in HH:MM format.")
    return text


def _slot_dict(slot: TimeSlot, booking: Booking | None = None, lead: Lead | None = None) -> dict:
    row = slot.to_dict()
    row["booking"] = None
    if booking is not None:
        row["booking"] = {
            "id": booking.id,
            "status": booking.status,
            "lead": {"name": lead.name, "email": lead.email} if lead is not None else None,
        }
    return row


def _get_slot(slot_id: str) -> TimeSlot:
    slot = db.session.get(TimeSlot, slot_id)
    if slot is None:
        raise NotFound("Time slot not found.")
    return slot


def add_time_slot(slot_date, start_time, end_time, today: date | None = None) -> TimeSlot:
    if not slot_date or not start_time or not end_time:
        raise ValidationError("Please fill in all fields")
    slot_date = _parse_date(slot_date)
    start = _parse_time(start_time, "start_time")
    end = _parse_time(end_time, "end_time")
    # Zero-padded HH:MM strings order the same way as times.
    if start >= end:
        raise ValidationError("End time must be after start time")
    if slot_date < (today or date.today()):
        raise ValidationError("Time slots cannot be in the past.")

    slot = TimeSlot(date=slot_date, start_time=start, end_time=end, is_available=True)
    db.session.add(slot)
    commit_or_raise("add time slot")
    current_app.logger.info("Added time slot %s %s-%s", slot_date, start, end)
    return slot


def delete_time_slot(slot_id: str):
    """Deletes the slot and cancels its booking, if any."""
    slot = _get_slot(slot_id)
    for booking in Booking.query.filter_by(time_slot_id=slot.id).all():
        db.session.delete(booking)
    db.session.delete(slot)
    commit_or_raise("delete time slot")


def list_slots() -> list[dict]:
    """Every slot, oldest first, with its booking and the lead who made it."""
    rows = (
        db.session.query(TimeSlot, Booking, Lead)
        .outerjoin(Booking, Booking.time_slot_id == TimeSlot.id)
        .outerjoin(Lead, Lead.id == Booking.lead_id)
        .order_by(TimeSlot.date, TimeSlot.start_time)
        .all()
    )
    return [_slot_dict(slot, booking, lead) for slot, booking, lead in rows]


def list_available_slots(today: date | None = None) -> list[dict]:
    if not scheduling_enabled():
        return []
    rows = (
        TimeSlot.query.outerjoin(Booking, Booking.time_slot_id == TimeSlot.id)
        .filter(Booking.id.is_(None))
        .filter(TimeSlot.is_available.is_(True))
        .filter(TimeSlot.date >= (today or date.today()))
        .order_by(TimeSlot.date, TimeSlot.start_time)
        .all()
    )
    return [_slot_dict(slot) for slot in rows]


def book_slot(slot_id: str, lead_id: str | None) -> dict:
    if not scheduling_enabled():
        raise ValidationError("Scheduling is not open right now.")
    if not lead_id or db.session.get(Lead, lead_id) is None:
        raise ValidationError("Please join the session before booking a time slot.")
    slot = _get_slot(slot_id)
    if not slot.is_available:
        raise ConflictError("This time slot is no longer available.")

    booking = Booking(time_slot_id=slot.id, lead_id=lead_id, status="confirmed")
    db.session.add(booking)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("This time slot has already been booked.")
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to book time slot %s: %s", slot_id, exc)
        raise BackendError("Failed to book time slot. Please try again.") from exc

    current_app.logger.info("Lead %s booked time slot %s", lead_id, slot.id)
    return {"id": booking.id, "status": booking.status, "time_slot": slot.to_dict()}
