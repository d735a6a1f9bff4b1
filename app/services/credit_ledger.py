"""
Credit costs and balance mutations.

Balances are changed only through single conditional UPDATE statements, so
concurrent requests for the same user cannot drive ``credits`` below zero.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from app.errors import InsufficientCreditsError
from app.models.usage import Usage
from app.models.user import User

logger = logging.getLogger(__name__)

# Cost at 2x, by upscale image type
UPSCALE_BASE_COSTS = {
    "faithful": 0,
    "product": 1,
    "general": 2,
    "portrait": 3,
}

# AI-backed modes are charged per scale step
SCALE_MULTIPLIERS = {2: 1, 4: 2, 8: 3}

TOOL_COSTS = {
    "remove_background": 1,
}


def upscale_cost(image_type: str, scale: int) -> int:
    base = UPSCALE_BASE_COSTS[image_type]
    if base == 0:
        return 0
    return base * SCALE_MULTIPLIERS.get(scale, 1)


def tool_cost(tool: str) -> int:
    return TOOL_COSTS[tool]


@dataclass
class DebitResult:
    cost: int
    previous: int
    remaining: int


def ensure_affordable(user: User, cost: int) -> None:
    """
    Raises InsufficientCreditsError when the balance does not cover ``cost``.
    Zero-cost operations always pass, even at a zero balance.
    """
    available = user.credits or 0
    if available < cost:
        logger.info(
            f"Insufficient credits: user_id={user.id}, required={cost}, available={available}"
        )
        raise InsufficientCreditsError(required=cost, available=available)


def _current_balance(db: Session, user_id: UUID) -> int:
    return db.execute(select(User.credits).where(User.id == user_id)).scalar_one()


def _conditional_decrement(db: Session, user_id: UUID, cost: int, count_usage: bool) -> Optional[int]:
    """Returns the balance left by this UPDATE, or None when it matched no row."""
    values = {"credits": User.credits - cost}
    if count_usage:
        values["total_usage"] = User.total_usage + 1

    result = db.execute(
        update(User)
        .where(User.id == user_id, User.credits >= cost)
        .values(**values)
        .returning(User.credits)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none()


def debit(
    db: Session,
    user_id: UUID,
    cost: int,
    usage_type: str,
    model: Optional[str] = None,
    image_size: Optional[str] = None,
) -> DebitResult:
    """
    Charges ``cost`` credits for a completed operation and records the usage.

    Raises:
        InsufficientCreditsError: the balance dropped below ``cost`` since the
            pre-check (a concurrent request won the race)
    """
    remaining = _conditional_decrement(db, user_id, cost, count_usage=True)
    if remaining is None:
        db.rollback()
        available = _current_balance(db, user_id)
        logger.warning(f"Debit lost race: user_id={user_id}, cost={cost}, available={available}")
        raise InsufficientCreditsError(required=cost, available=available)

    db.add(Usage(
        user_id=user_id,
        type=usage_type,
        credits_used=cost,
        model=model,
        image_size=image_size,
    ))
    db.commit()

    logger.info(f"Credits debited: user_id={user_id}, cost={cost}, remaining={remaining}, type={usage_type}")
    return DebitResult(cost=cost, previous=remaining + cost, remaining=remaining)


def reserve(db: Session, user_id: UUID, cost: int) -> DebitResult:
    """
    Holds credits for an asynchronous job. Released by refund() if the job
    does not complete.
    """
    remaining = _conditional_decrement(db, user_id, cost, count_usage=False)
    if remaining is None:
        db.rollback()
        available = _current_balance(db, user_id)
        raise InsufficientCreditsError(required=cost, available=available)

    db.commit()
    logger.info(f"Credits reserved: user_id={user_id}, cost={cost}, remaining={remaining}")
    return DebitResult(cost=cost, previous=remaining + cost, remaining=remaining)


def refund(db: Session, user_id: UUID, amount: int) -> int:
    if amount <= 0:
        return _current_balance(db, user_id)

    remaining = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(credits=User.credits + amount)
        .returning(User.credits)
        .execution_options(synchronize_session=False)
    ).scalar_one()
    db.commit()
    logger.info(f"Credits refunded: user_id={user_id}, amount={amount}, remaining={remaining}")
    return remaining


def settle_reservation(
    db: Session,
    user_id: UUID,
    cost: int,
    usage_type: str,
    model: Optional[str] = None,
) -> None:
    """Turns a reservation into a usage once the job has completed."""
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(total_usage=User.total_usage + 1)
        .execution_options(synchronize_session=False)
    )
    db.add(Usage(user_id=user_id, type=usage_type, credits_used=cost, model=model))
    db.commit()


def mark_first_upload(db: Session, user_id: UUID) -> bool:
    """
    Sets first_upload_at if it is still NULL. True only for the request that
    set it.
    """
    result = db.execute(
        update(User)
        .where(User.id == user_id, User.first_upload_at.is_(None))
        .values(first_upload_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1
