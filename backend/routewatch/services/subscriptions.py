from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from routewatch.models.subscription import Subscription, new_subscription_id
from routewatch.schemas.subscription import SubscriptionCreate, SubscriptionUpdate

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


class SubscriptionConflictError(Exception):
    pass


class SubscriptionNotFoundError(Exception):
    pass


class InvalidSubscriptionError(Exception):
    pass


def _parse_id(raw: UUID | str) -> UUID | None:
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw))
    except ValueError:
        return None


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UNIQUE_VIOLATION_SQLSTATE
    return "unique constraint" in str(orig).lower()


def _commit(db: Session, *, event: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_unique_violation(exc):
            logger.info("%s.storage_conflict", event)
            raise SubscriptionConflictError() from exc
        raise


def find_active_conflict(
    db: Session,
    *,
    user_id: str,
    origin_id: int,
    destination_id: int,
    date_time: datetime,
    exclude_id: UUID | None = None,
) -> Subscription | None:
    query = db.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.origin_id == origin_id,
        Subscription.destination_id == destination_id,
        Subscription.date_time == date_time,
        Subscription.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(Subscription.id != exclude_id)
    return query.first()


def create_subscription(db: Session, payload: SubscriptionCreate, user_id: str) -> Subscription:
    owner = payload.user_id or user_id
    if payload.is_active:
        existing = find_active_conflict(
            db,
            user_id=owner,
            origin_id=payload.origin_id,
            destination_id=payload.destination_id,
            date_time=payload.date_time,
        )
        if existing is not None:
            logger.info("subscriptions.create.conflict user_id=%s existing_id=%s", owner, existing.id)
            raise SubscriptionConflictError()

    sub = Subscription(
        id=new_subscription_id(),
        user_id=owner,
        email=payload.email,
        origin_id=payload.origin_id,
        origin_code=payload.origin_code,
        destination_id=payload.destination_id,
        destination_code=payload.destination_code,
        date_time=payload.date_time,
        is_active=payload.is_active,
    )
    db.add(sub)
    _commit(db, event="subscriptions.create")
    db.refresh(sub)
    logger.info("subscriptions.create.ok id=%s user_id=%s", sub.id, owner)
    return sub


def list_subscriptions_for_user(db: Session, user_id: str) -> list[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).all()


def get_subscription(db: Session, subscription_id: UUID | str) -> Subscription | None:
    sid = _parse_id(subscription_id)
    if sid is None:
        return None
    return db.query(Subscription).filter(Subscription.id == sid).first()


def update_subscription(db: Session, subscription_id: UUID | str, patch: SubscriptionUpdate) -> Subscription:
    sub = get_subscription(db, subscription_id)
    if sub is None:
        raise SubscriptionNotFoundError()

    changes = patch.changes()
    origin_id = changes.get("origin_id", sub.origin_id)
    destination_id = changes.get("destination_id", sub.destination_id)
    if ("origin_id" in changes or "destination_id" in changes) and origin_id == destination_id:
        raise InvalidSubscriptionError("Origin and destination must be different")

    will_be_active = changes.get("is_active", sub.is_active)
    if will_be_active:
        existing = find_active_conflict(
            db,
            user_id=sub.user_id,
            origin_id=origin_id,
            destination_id=destination_id,
            date_time=changes.get("date_time", sub.date_time),
            exclude_id=sub.id,
        )
        if existing is not None:
            logger.info("subscriptions.update.conflict id=%s existing_id=%s", sub.id, existing.id)
            raise SubscriptionConflictError()

    for field, value in changes.items():
        setattr(sub, field, value)
    _commit(db, event="subscriptions.update")
    db.refresh(sub)
    logger.info("subscriptions.update.ok id=%s fields=%s", sub.id, sorted(changes))
    return sub


def delete_subscription(db: Session, subscription_id: UUID | str) -> int:
    sid = _parse_id(subscription_id)
    if sid is None:
        return 0
    deleted = db.query(Subscription).filter(Subscription.id == sid).delete(synchronize_session=False)
    db.commit()
    logger.info("subscriptions.delete id=%s rows=%s", sid, deleted)
    return int(deleted or 0)
