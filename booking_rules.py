"""Pricing and status rules for bookings.

Everything here is pure: no database access, no request state. The booking
routes in ``app.py`` call these helpers and persist the results.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional

DEPOSIT_RATE = 0.30
SECONDS_PER_DAY = timedelta(days=1).total_seconds()

# ---------------- BOOKING STATUSES ----------------
PENDING = 'pending'
VERIFIED = 'verified'
CONFIRMED = 'confirmed'
DELIVERED = 'delivered'
ACTIVE = 'active'
RETURNING = 'returning'
COMPLETED = 'completed'
CANCELLED = 'cancelled'

BOOKING_STATUSES = (
    PENDING, VERIFIED, CONFIRMED, DELIVERED, ACTIVE, RETURNING, COMPLETED, CANCELLED,
)
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})

# Canonical forward step for each non-terminal status
STATUS_FLOW = {
    PENDING: VERIFIED,
    VERIFIED: CONFIRMED,
    CONFIRMED: DELIVERED,
    DELIVERED: ACTIVE,
    ACTIVE: RETURNING,
    RETURNING: COMPLETED,
}

# Bookings in these states count towards revenue
REVENUE_STATUSES = (CONFIRMED, DELIVERED, ACTIVE, RETURNING, COMPLETED)

# Column names of the post-rental fees, in display order
FEE_FIELDS = ('cleaning_fee', 'damage_fee', 'overtime_fee', 'fuel_fee', 'other_fees')

# ---------------- PAYMENT STATUS LABELS ----------------
UNPAID = 'unpaid'
PARTIAL = 'partial'
DEPOSIT_PAID = 'deposit_paid'
FULLY_PAID = 'fully_paid'


class PricingError(ValueError):
    """Raised when a booking cannot be priced."""


class TransitionError(ValueError):
    """Raised when a status change is not allowed."""


@dataclass(frozen=True)
class PriceQuote:
    days: int
    base_price: float
    driver_price: float
    total_price: float
    deposit_amount: float


def rental_days(start: datetime, end: datetime) -> int:
    """Number of billable days, rounding partial days up."""
    seconds = (end - start).total_seconds()
    days = math.ceil(seconds / SECONDS_PER_DAY)
    if days <= 0:
        raise PricingError('End date must be after start date')
    return days


def deposit_for(total_price: float) -> float:
    return total_price * DEPOSIT_RATE


def quote(daily_price: float, price_with_driver: Optional[float],
          start: datetime, end: datetime, with_driver: bool = False) -> PriceQuote:
    """Price a new booking for the given car rates and date range."""
    days = rental_days(start, end)
    base_price = daily_price * days
    driver_price = 0.0
    if with_driver and price_with_driver and price_with_driver > 0:
        driver_price = price_with_driver * days
    total_price = base_price + driver_price
    return PriceQuote(
        days=days,
        base_price=base_price,
        driver_price=driver_price,
        total_price=total_price,
        deposit_amount=deposit_for(total_price),
    )


def merge_fees(current: Mapping[str, float], updates: Mapping[str, Optional[float]]) -> Dict[str, float]:
    """Overlay the supplied fees on the stored ones.

    Fees missing from ``updates`` (or given as None) keep their stored value.
    """
    merged = {}
    for name in FEE_FIELDS:
        value = updates.get(name)
        if value is None:
            value = current.get(name) or 0.0
        if value < 0:
            raise PricingError(f'{name} must not be negative')
        merged[name] = value
    return merged


def total_with_fees(base_price: float, driver_price: float, fees: Mapping[str, float]) -> float:
    return base_price + driver_price + sum(fees.get(name) or 0.0 for name in FEE_FIELDS)


def next_status(status: str) -> Optional[str]:
    return STATUS_FLOW.get(status)


def can_transition(current: str, target: str) -> bool:
    """Forward-or-cancel rule: the next canonical step, or cancel a live booking."""
    if current in TERMINAL_STATUSES:
        return False
    if target == CANCELLED:
        return True
    return STATUS_FLOW.get(current) == target


def check_transition(current: str, target: str, strict: bool = False) -> None:
    if target not in BOOKING_STATUSES:
        raise TransitionError(f'Unknown booking status: {target}')
    if strict and not can_transition(current, target):
        raise TransitionError(f'Cannot change status from {current} to {target}')


def status_changes(status: str, now: datetime, notes: Optional[str] = None) -> Dict[str, object]:
    """Column values to write when a booking moves to ``status``."""
    changes: Dict[str, object] = {'status': status}
    if status == VERIFIED:
        changes['verified_at'] = now
    elif status == CONFIRMED:
        changes['confirmed_at'] = now
    elif status == DELIVERED:
        changes['delivered_at'] = now
        changes['delivery_date'] = now
        if notes:
            changes['delivery_notes'] = notes
    elif status == COMPLETED:
        changes['completed_at'] = now
        changes['actual_return_date'] = now
        if notes:
            changes['return_notes'] = notes
    return changes


def payment_status(paid_amount: float, deposit_amount: float, total_price: float) -> str:
    paid_amount = paid_amount or 0.0
    if paid_amount >= total_price and paid_amount > 0:
        return FULLY_PAID
    if paid_amount >= deposit_amount and paid_amount > 0:
        return DEPOSIT_PAID
    if paid_amount > 0:
        return PARTIAL
    return UNPAID
