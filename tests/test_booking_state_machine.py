"""
Tests de la máquina de estados de reservas
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from app.errors import InvalidTransition, MissingReason, Unauthorized
from app.lifecycle.events import EventType
from app.lifecycle.state_machine import BookingStateMachine
from app.schemas.booking import ActorRole, BookingStatus, Decision

from conftest import NOW, OWNER, PROVIDER, STRANGER

machine = BookingStateMachine()


def accepted(make_booking, **kw):
    b = make_booking(**kw)
    return machine.respond(b, PROVIDER, Decision.accept, now=NOW).booking


def terminal_bookings(make_booking):
    pending = make_booking()
    declined = machine.respond(pending, PROVIDER, Decision.decline, "Sin hueco", now=NOW).booking
    cancelled = machine.cancel(pending, OWNER, "Cambio de planes", now=NOW).booking
    acc = accepted(make_booking, scheduled_date=NOW - timedelta(hours=1))
    completed = machine.complete(acc, now=NOW).booking
    return {"declined": declined, "cancelled": cancelled, "completed": completed}


# ---------- respond ----------

def test_provider_accepts_pending_booking(make_booking):
    b = make_booking()
    t = machine.respond(b, PROVIDER, Decision.accept, message="¡Nos vemos!", now=NOW)
    assert t.changed
    assert t.booking.status == BookingStatus.accepted
    assert t.booking.responded_at == NOW
    assert t.booking.provider_response == "¡Nos vemos!"
    assert t.booking.outcome is None
    [ev] = t.events
    assert ev.type == EventType.booking_accepted
    assert ev.recipient_ids == [OWNER]


def test_provider_declines_with_reason(make_booking):
    t = machine.respond(make_booking(), PROVIDER, "decline", reason="  Ya tengo reserva  ", now=NOW)
    assert t.booking.status == BookingStatus.declined
    assert t.booking.decline_reason == "Ya tengo reserva"
    assert t.booking.cancellation_reason is None
    assert t.booking.responded_at == NOW
    assert t.events[0].type == EventType.booking_declined


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_decline_without_reason_is_rejected(make_booking, reason):
    b = make_booking()
    with pytest.raises(MissingReason):
        machine.respond(b, PROVIDER, Decision.decline, reason=reason, now=NOW)
    assert b.status == BookingStatus.pending


@pytest.mark.parametrize("actor", [OWNER, STRANGER])
def test_only_provider_can_respond(make_booking, actor):
    with pytest.raises(Unauthorized):
        machine.respond(make_booking(), actor, Decision.accept, now=NOW)


def test_repeated_accept_returns_existing_booking(make_booking):
    b = accepted(make_booking)
    t = machine.respond(b, PROVIDER, Decision.accept, now=NOW + timedelta(minutes=5))
    assert not t.changed
    assert t.events == ()
    assert t.booking is b


def test_decline_after_accept_is_invalid(make_booking):
    b = accepted(make_booking)
    with pytest.raises(InvalidTransition) as exc:
        machine.respond(b, PROVIDER, Decision.decline, reason="Cambio de idea", now=NOW)
    assert exc.value.current_status == "accepted"
    assert exc.value.event == "respond(decline)"


# ---------- cancel ----------

def test_owner_cancel_stores_fee(make_booking):
    b = make_booking(scheduled_date=NOW + timedelta(hours=30))
    t = machine.cancel(b, OWNER, "Mi perro está enfermo", now=NOW)
    assert t.booking.status == BookingStatus.cancelled
    assert t.booking.cancelled_by == ActorRole.owner
    assert t.booking.cancellation_fee == Decimal("250.00")
    assert t.booking.cancelled_at == NOW
    [ev] = t.events
    assert ev.type == EventType.booking_cancelled
    assert ev.recipient_ids == [PROVIDER]
    assert ev.payload["fee"] == "250.00"


def test_owner_cancel_with_plenty_of_notice_stores_zero_fee(make_booking):
    t = machine.cancel(make_booking(), OWNER, "Viaje", now=NOW)
    assert t.booking.cancellation_fee == Decimal("0.00")


def test_provider_cancel_is_free_even_last_minute(make_booking):
    b = accepted(make_booking, scheduled_date=NOW + timedelta(hours=2))
    t = machine.cancel(b, PROVIDER, "Emergencia personal", now=NOW)
    assert t.booking.cancelled_by == ActorRole.provider
    assert t.booking.cancellation_fee == Decimal("0.00")
    assert t.events[0].recipient_ids == [OWNER]


def test_cancel_keeps_previous_response(make_booking):
    b = accepted(make_booking)
    t = machine.cancel(b, OWNER, "Viaje", now=NOW + timedelta(hours=1))
    assert t.booking.responded_at == NOW


def test_fee_calculator_is_only_used_for_owner(make_booking):
    calls = []

    def spy(scheduled, now, total, role):
        calls.append(role)
        return Decimal("1.00")

    sm = BookingStateMachine(fee_calculator=spy)
    sm.cancel(make_booking(), PROVIDER, "No puedo", now=NOW)
    assert calls == []
    t = sm.cancel(make_booking(), OWNER, "No puedo", now=NOW)
    assert calls == [ActorRole.owner]
    assert t.booking.cancellation_fee == Decimal("1.00")


def test_cancel_without_reason_is_rejected(make_booking):
    with pytest.raises(MissingReason):
        machine.cancel(make_booking(), OWNER, " ", now=NOW)


def test_stranger_cannot_cancel(make_booking):
    with pytest.raises(Unauthorized):
        machine.cancel(make_booking(), STRANGER, "Porque sí", now=NOW)


# ---------- complete ----------

def test_system_completes_after_scheduled_date(make_booking):
    b = accepted(make_booking, scheduled_date=NOW - timedelta(hours=3))
    t = machine.complete(b, now=NOW)
    assert t.booking.status == BookingStatus.completed
    assert t.booking.completed_at == NOW
    assert set(t.events[0].recipient_ids) == {OWNER, PROVIDER}
    assert t.events[0].actor_id is None


def test_provider_completes(make_booking):
    b = accepted(make_booking, scheduled_date=NOW)
    assert machine.complete(b, PROVIDER, now=NOW).booking.status == BookingStatus.completed


def test_owner_cannot_complete(make_booking):
    b = accepted(make_booking, scheduled_date=NOW - timedelta(hours=3))
    with pytest.raises(Unauthorized):
        machine.complete(b, OWNER, now=NOW)


def test_cannot_complete_before_service(make_booking):
    b = accepted(make_booking, scheduled_date=NOW + timedelta(hours=1))
    with pytest.raises(InvalidTransition) as exc:
        machine.complete(b, PROVIDER, now=NOW)
    assert exc.value.reason == "scheduled date not reached"


def test_cannot_complete_pending(make_booking):
    with pytest.raises(InvalidTransition):
        machine.complete(make_booking(scheduled_date=NOW - timedelta(days=1)), now=NOW)


# ---------- estados terminales ----------

EVENTS = {
    "accept": lambda b: machine.respond(b, PROVIDER, Decision.accept, now=NOW),
    "decline": lambda b: machine.respond(b, PROVIDER, Decision.decline, "Motivo", now=NOW),
    "owner_cancel": lambda b: machine.cancel(b, OWNER, "Motivo", now=NOW),
    "provider_cancel": lambda b: machine.cancel(b, PROVIDER, "Motivo", now=NOW),
    "complete": lambda b: machine.complete(b, now=NOW + timedelta(days=10)),
}


@pytest.mark.parametrize("state", ["declined", "cancelled", "completed"])
@pytest.mark.parametrize("event", sorted(EVENTS))
def test_terminal_states_reject_every_event(make_booking, state, event):
    b = terminal_bookings(make_booking)[state]
    before = b.model_dump()
    with pytest.raises(InvalidTransition) as exc:
        EVENTS[event](b)
    assert exc.value.current_status == state
    assert b.model_dump() == before


def test_input_booking_is_never_mutated(make_booking):
    b = make_booking()
    before = b.model_dump()
    machine.respond(b, PROVIDER, Decision.accept, now=NOW)
    machine.cancel(b, OWNER, "Motivo", now=NOW)
    assert b.model_dump() == before


def test_error_names_status_and_event(make_booking):
    b = terminal_bookings(make_booking)["cancelled"]
    with pytest.raises(InvalidTransition) as exc:
        machine.cancel(b, OWNER, "Otra vez", now=NOW)
    assert exc.value.details == {"status": "cancelled", "event": "cancel"}
    assert "cancelled" in exc.value.message
