"""
Punto de entrada de las operaciones sobre reservas.

Carga la reserva, la pasa por la máquina de estados y la guarda con
compare-and-set. Si otra petición gana la carrera, se relee y se vuelve
a decidir con el estado nuevo: nunca se reescribe una decisión vieja.
Los eventos se guardan en la misma escritura que la transición y se
copian a booking_events al final de cada petición, aunque haya fallado.
"""
from typing import Callable, List, Optional
from datetime import datetime, timezone, tzinfo
from bson import ObjectId
import logging

from .config import get_settings
from .errors import ConcurrentModification, Unauthorized
from .lifecycle.calendar import CalendarDay, group_by_day
from .lifecycle.events import BookingEvent, EventType
from .lifecycle.reviews import ReviewEligibilityGate
from .lifecycle.state_machine import BookingStateMachine, Transition
from .schemas.booking import Booking, BookingCreate, Decision
from .schemas.review import Review, ReviewEligibility
from .store import BookingStore, EventStore, ReviewStore
from .utils import utcnow

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(
        self,
        db,
        machine: Optional[BookingStateMachine] = None,
        gate: Optional[ReviewEligibilityGate] = None,
        clock: Callable[[], datetime] = utcnow,
        max_retries: Optional[int] = None,
    ):
        self.bookings = BookingStore(db)
        self.reviews = ReviewStore(db)
        self.events = EventStore(db)
        self.machine = machine or BookingStateMachine()
        self.gate = gate or ReviewEligibilityGate()
        self.clock = clock
        self.max_retries = max_retries if max_retries is not None else get_settings().booking_cas_retries

    # ---------- transiciones ----------

    async def respond(
        self,
        booking_id: str,
        actor_id: str,
        decision: Decision,
        reason: Optional[str] = None,
        message: Optional[str] = None,
    ) -> Booking:
        return await self._transition(
            booking_id,
            lambda b, now: self.machine.respond(b, actor_id, decision, reason, message, now=now),
        )

    async def cancel(self, booking_id: str, actor_id: str, reason: Optional[str]) -> Booking:
        return await self._transition(
            booking_id,
            lambda b, now: self.machine.cancel(b, actor_id, reason, now=now),
        )

    async def complete(self, booking_id: str, actor_id: Optional[str] = None) -> Booking:
        return await self._transition(
            booking_id,
            lambda b, now: self.machine.complete(b, actor_id, now=now),
        )

    async def _transition(
        self,
        booking_id: str,
        decide: Callable[[Booking, datetime], Transition],
    ) -> Booking:
        try:
            return await self._save_transition(booking_id, decide)
        finally:
            # También tras un error: saca los eventos que dejó una petición anterior
            await self.events.relay_booking(booking_id)

    async def _save_transition(
        self,
        booking_id: str,
        decide: Callable[[Booking, datetime], Transition],
    ) -> Booking:
        attempts = 0
        while True:
            attempts += 1
            current = await self.bookings.get(booking_id)
            result = decide(current, self.clock())
            if not result.changed:
                return current

            saved = await self.bookings.compare_and_set(result.booking, result.events)
            if saved is not None:
                for ev in result.events:
                    logger.info(
                        f"{ev.type.value} booking={booking_id} actor={ev.actor_id} "
                        f"{current.status.value} -> {saved.status.value}"
                    )
                return saved

            logger.warning(
                f"Conflicto de versión en booking={booking_id} (v{current.version}), "
                f"intento {attempts}/{self.max_retries}"
            )
            if attempts >= self.max_retries:
                raise ConcurrentModification(booking_id, attempts)

    # ---------- reseñas ----------

    async def can_review(self, booking_id: str, actor_id: str) -> ReviewEligibility:
        booking = await self.bookings.get(booking_id)
        reviews = await self.reviews.list_for_booking(booking_id)
        return self.gate.can_review(booking, reviews, actor_id)

    async def submit_review(
        self,
        booking_id: str,
        actor_id: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> Review:
        try:
            booking = await self.bookings.get(booking_id)
            existing = await self.reviews.list_for_booking(booking_id)
            now = self.clock()
            review = self.gate.submit(booking, existing, actor_id, rating, comment, now=now)
            review = review.model_copy(update={"id": str(ObjectId())})
            event = BookingEvent(
                type=EventType.review_submitted,
                booking_id=booking_id,
                actor_id=actor_id,
                recipient_ids=[review.reviewee_id],
                payload={"review_id": review.id, "rating": review.rating},
                occurred_at=now,
            )
            created = await self.reviews.insert(review, [event])
        finally:
            await self.events.relay_reviews(booking_id)
        logger.info(f"review.submitted booking={booking_id} reviewer={actor_id} rating={rating}")
        return created

    async def reviews_for(self, booking_id: str, actor_id: str) -> List[Review]:
        await self.get(booking_id, actor_id)
        return await self.reviews.list_for_booking(booking_id)

    # ---------- lectura / alta ----------

    async def get(self, booking_id: str, actor_id: str) -> Booking:
        booking = await self.bookings.get(booking_id)
        if booking.role_of(actor_id) is None:
            raise Unauthorized(actor_id, "view")
        return booking

    async def list_mine(self, actor_id: str) -> List[Booking]:
        return await self.bookings.list_for_party(actor_id)

    async def calendar(self, actor_id: str, tz: tzinfo = timezone.utc) -> List[CalendarDay]:
        return group_by_day(await self.bookings.list_for_party(actor_id), tz)

    async def create(self, owner_id: str, payload: BookingCreate) -> Booking:
        """Alta de la solicitud (siempre en pending). El motor no interviene aquí."""
        if payload.provider_id == owner_id:
            raise Unauthorized(owner_id, "book own service")
        booking = Booking(
            id=str(ObjectId()),
            owner_id=owner_id,
            created_at=self.clock(),
            **payload.model_dump(),
        )
        created = await self.bookings.insert(booking)
        logger.info(f"booking.requested booking={created.id} owner={owner_id} provider={created.provider_id}")
        return created
