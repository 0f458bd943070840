# FILE: services/target_service.py
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from models import SINGLETON_ID, SINGLETON_MODELS, CurrentTarget, db
from services.errors import BackendError, ConflictError, ValidationError


MAX_TARGET_LENGTH = 200
STALE_WRITE_RETRIES = 3


def ensure_singletons():
    # Each singleton table holds exactly one row with a fixed id.
    created = False
    for model in SINGLETON_MODELS:
        if db.session.get(model, SINGLETON_ID) is None:
            db.session.add(model(id=SINGLETON_ID))
            created = True
    if created:
        db.session.commit()


def get_singleton(model):
    row = db.session.get(model, SINGLETON_ID)
    if row is None:
        row = model(id=SINGLETON_ID)
        db.session.add(row)
        commit_or_raise("create singleton")
    return row


def _load_latest(model):
    # populate_existing drops a stale identity-map copy left by an earlier request.
    row = db.session.get(model, SINGLETON_ID, populate_existing=True)
    return row if row is not None else get_singleton(model)


def update_singleton(model, patch: dict, expected_version: int | None = None):
    """
    Whole-row patch of a singleton, last-write-wins.

    With expected_version the write only succeeds against that version; a
    stale version raises ConflictError. The UPDATE itself is guarded by the
    mapper's version column, so a writer that commits between our read and
    our flush also makes a checked write fail instead of being overwritten.
    """
    for _attempt in range(STALE_WRITE_RETRIES):
        row = _load_latest(model)
        if expected_version is not None and row.version != expected_version:
            raise ConflictError(
                f"{model.__tablename__} was changed by someone else.",
                details={"current_version": row.version},
            )
        for key, value in patch.items():
            setattr(row, key, value)
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            if expected_version is not None:
                current = _load_latest(model).version
                raise ConflictError(
                    f"{model.__tablename__} was changed by someone else.",
                    details={"current_version": current},
                )
            current_app.logger.warning("Concurrent write on %s; retrying", model.__tablename__)
            continue
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to update %s: %s", model.__tablename__, exc)
            raise BackendError(f"Failed to update {model.__tablename__}. Please try again.") from exc
        return row
    raise ConflictError(f"{model.__tablename__} is being changed by someone else. Please try again.")


def commit_or_raise(action: str):
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to %s: %s", action, exc)
        raise BackendError(f"Failed to {action}. Please try again.") from exc


def get_current_target() -> str | None:
    row = db.session.get(CurrentTarget, SINGLETON_ID)
    return row.target_person if row else None


def set_target(name: str, expected_version: int | None = None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Target name is required.")
    if len(name) > MAX_TARGET_LENGTH:
        raise ValidationError("Target name is too long.")
    update_singleton(CurrentTarget, {"target_person": name}, expected_version)
    current_app.logger.info("Now collecting reviews for %s", name)
    return name


def clear_target(expected_version: int | None = None):
    update_singleton(CurrentTarget, {"target_person": None}, expected_version)
    current_app.logger.info("Target cleared")


def require_target() -> str:
    target = get_current_target()
    if not target:
        raise ValidationError("No resume is currently being reviewed.")
    return target
