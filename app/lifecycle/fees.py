"""
Penalización por cancelación del dueño.

Función pura: no lee el reloj, todo llega por parámetro.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from ..schemas.booking import ActorRole
from ..utils import ensure_utc

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

# (límite superior en horas, porcentaje). El límite es exclusivo:
# a 24h exactas se cobra el 25%, a 48h exactas no se cobra nada.
OWNER_FEE_BRACKETS: tuple[tuple[int, Decimal], ...] = (
    (24, Decimal("0.50")),
    (48, Decimal("0.25")),
)


def hours_until(scheduled_date: datetime, now: datetime) -> float:
    """Horas entre now y el servicio. Negativo si ya pasó."""
    delta = ensure_utc(scheduled_date) - ensure_utc(now)
    return delta.total_seconds() / 3600


def fee_rate(hours: float) -> Decimal:
    for upper, rate in OWNER_FEE_BRACKETS:
        if hours < upper:
            return rate
    return Decimal("0")


def cancellation_fee(
    scheduled_date: datetime,
    now: datetime,
    total_amount: Decimal,
    actor_role: ActorRole,
) -> Decimal:
    if actor_role != ActorRole.owner:
        return ZERO
    # TODO: prorrateo para estancias (boarding) ya empezadas; hoy se cobra sobre el total
    rate = fee_rate(hours_until(scheduled_date, now))
    return (Decimal(total_amount) * rate).quantize(CENTS, rounding=ROUND_HALF_UP)
