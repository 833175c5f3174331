"""
Máquina de estados de una reserva.

Es el único sitio donde se decide si una transición es legal. No hace I/O:
recibe la reserva cargada y el instante actual, y devuelve una reserva
nueva junto con los eventos a notificar. La reserva de entrada nunca se
modifica (los modelos son inmutables).

    pending --respond(accept)--> accepted --complete--> completed
    pending --respond(decline)--> declined
    pending | accepted --cancel--> cancelled
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Tuple

from ..errors import InvalidTransition, MissingReason, Unauthorized
from ..schemas.booking import (
    ActorRole,
    Booking,
    BookingStatus,
    CANCELLABLE_STATUSES,
    Cancelled,
    Completed,
    Decision,
    Declined,
)
from ..utils import ensure_utc
from .events import BookingEvent, EventType
from .fees import cancellation_fee

FeeCalculator = Callable[[datetime, datetime, Decimal, ActorRole], Decimal]

# Estados desde los que se acepta cada evento
ALLOWED: dict[str, frozenset[BookingStatus]] = {
    "respond": frozenset({BookingStatus.pending}),
    "cancel": CANCELLABLE_STATUSES,
    "complete": frozenset({BookingStatus.accepted}),
}


@dataclass(frozen=True)
class Transition:
    booking: Booking
    events: Tuple[BookingEvent, ...] = ()
    changed: bool = True


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


class BookingStateMachine:
    def __init__(self, fee_calculator: FeeCalculator = cancellation_fee):
        self.fee_calculator = fee_calculator

    # ---------- eventos ----------

    def respond(
        self,
        booking: Booking,
        actor_id: str,
        decision: Decision,
        reason: Optional[str] = None,
        message: Optional[str] = None,
        *,
        now: datetime,
    ) -> Transition:
        decision = Decision(decision)
        event = f"respond({decision.value})"
        if booking.role_of(actor_id) != ActorRole.provider:
            raise Unauthorized(actor_id, event)

        # Reintento de un accept que ya entró: se devuelve tal cual
        if decision == Decision.accept and booking.status == BookingStatus.accepted:
            return Transition(booking, changed=False)

        self._guard(booking, "respond", event)
        now = ensure_utc(now)
        message = _clean(message)

        if decision == Decision.decline:
            reason = _clean(reason)
            if not reason:
                raise MissingReason(event)
            updated = self._advance(
                booking,
                status=BookingStatus.declined,
                responded_at=now,
                provider_response=message,
                outcome=Declined(reason=reason, declined_at=now),
            )
            ev = self._event(
                EventType.booking_declined, updated, actor_id, [updated.owner_id], now,
                reason=reason, provider_response=message,
            )
        else:
            updated = self._advance(
                booking,
                status=BookingStatus.accepted,
                responded_at=now,
                provider_response=message,
            )
            ev = self._event(
                EventType.booking_accepted, updated, actor_id, [updated.owner_id], now,
                provider_response=message,
            )
        return Transition(updated, (ev,))

    def cancel(
        self,
        booking: Booking,
        actor_id: str,
        reason: Optional[str],
        *,
        now: datetime,
    ) -> Transition:
        role = booking.role_of(actor_id)
        if role is None:
            raise Unauthorized(actor_id, "cancel")
        self._guard(booking, "cancel", "cancel")
        reason = _clean(reason)
        if not reason:
            raise MissingReason("cancel")

        now = ensure_utc(now)
        if role == ActorRole.owner:
            fee = self.fee_calculator(booking.scheduled_date, now, booking.total_amount, role)
        else:
            fee = Decimal("0.00")

        updated = self._advance(
            booking,
            status=BookingStatus.cancelled,
            outcome=Cancelled(reason=reason, by=role, fee=fee, cancelled_at=now),
        )
        ev = self._event(
            EventType.booking_cancelled, updated, actor_id, [booking.counterpart_of(role)], now,
            reason=reason, cancelled_by=role.value, fee=str(fee),
        )
        return Transition(updated, (ev,))

    def complete(
        self,
        booking: Booking,
        actor_id: Optional[str] = None,
        *,
        now: datetime,
    ) -> Transition:
        """actor_id None significa que lo marca el sistema (tarea programada)."""
        if actor_id is not None and booking.role_of(actor_id) != ActorRole.provider:
            raise Unauthorized(actor_id, "complete")
        self._guard(booking, "complete", "complete")
        now = ensure_utc(now)
        if now < booking.scheduled_date:
            raise InvalidTransition(booking.status.value, "complete", "scheduled date not reached")

        updated = self._advance(
            booking,
            status=BookingStatus.completed,
            outcome=Completed(completed_at=now),
        )
        ev = self._event(
            EventType.booking_completed, updated, actor_id,
            [updated.owner_id, updated.provider_id], now,
        )
        return Transition(updated, (ev,))

    # ---------- helpers ----------

    @staticmethod
    def _guard(booking: Booking, kind: str, event: str) -> None:
        if booking.status not in ALLOWED[kind]:
            raise InvalidTransition(booking.status.value, event)

    @staticmethod
    def _advance(booking: Booking, **changes) -> Booking:
        # model_validate (no model_copy) para que se vuelvan a comprobar los invariantes
        data = booking.model_dump()
        for key, value in changes.items():
            data[key] = value.model_dump() if hasattr(value, "model_dump") else value
        return Booking.model_validate(data)

    @staticmethod
    def _event(
        type_: EventType,
        booking: Booking,
        actor_id: Optional[str],
        recipients: list[str],
        now: datetime,
        **payload,
    ) -> BookingEvent:
        return BookingEvent(
            type=type_,
            booking_id=booking.id,
            actor_id=actor_id,
            recipient_ids=recipients,
            payload={"status": booking.status.value, **payload},
            occurred_at=now,
        )
