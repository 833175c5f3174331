"""
Persistencia de reservas, reseñas y eventos en MongoDB.

Las escrituras de transiciones son compare-and-set sobre `version`:
si otra petición modificó la reserva entre la lectura y la escritura,
update_one no encuentra el documento y el llamante debe releer.

Los eventos viajan en la misma escritura que el cambio que los produce
(campo `pending_events` de la reserva o de la reseña). EventStore.relay
los copia después a booking_events y los retira del documento.
"""
from typing import Iterable, List, Optional
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
import logging

from .errors import BookingNotFound, ReviewNotPermitted
from .lifecycle.events import BookingEvent
from .schemas.booking import Booking
from .schemas.review import Review, ReviewIneligibility
from .utils import to_id, to_mongo

logger = logging.getLogger(__name__)

PENDING_FIELD = "pending_events"


def _oid_or_404(booking_id: str) -> ObjectId:
    if not ObjectId.is_valid(booking_id):
        raise BookingNotFound(booking_id)
    return ObjectId(booking_id)


def _event_docs(events: Iterable[BookingEvent]) -> List[dict]:
    # _id fijado aquí: copiar dos veces el mismo evento choca con la clave primaria
    return [dict(to_mongo(e.model_dump()), _id=ObjectId(), delivered=False) for e in events]


class BookingStore:
    def __init__(self, db):
        self.db = db

    @staticmethod
    def _from_doc(doc: dict) -> Booking:
        doc = {k: v for k, v in doc.items() if k != PENDING_FIELD}
        return Booking.model_validate(to_id(doc))

    @staticmethod
    def _to_doc(booking: Booking) -> dict:
        return to_mongo(booking.model_dump(exclude={"id", "version"}))

    async def get(self, booking_id: str) -> Booking:
        doc = await self.db.bookings.find_one({"_id": _oid_or_404(booking_id)})
        if not doc:
            raise BookingNotFound(booking_id)
        return self._from_doc(doc)

    async def insert(self, booking: Booking) -> Booking:
        doc = self._to_doc(booking)
        doc["_id"] = ObjectId(booking.id)
        doc["version"] = 0
        await self.db.bookings.insert_one(doc)
        return booking.model_copy(update={"version": 0})

    async def compare_and_set(
        self,
        booking: Booking,
        events: Iterable[BookingEvent] = (),
    ) -> Optional[Booking]:
        """
        Guarda `booking` solo si la versión en base de datos sigue siendo booking.version.
        Los eventos se añaden a pending_events en la misma operación.
        Devuelve la reserva con la versión nueva, o None si otra escritura ganó.
        """
        update = {"$set": self._to_doc(booking), "$inc": {"version": 1}}
        pending = _event_docs(events)
        if pending:
            update["$push"] = {PENDING_FIELD: {"$each": pending}}
        res = await self.db.bookings.update_one(
            {"_id": ObjectId(booking.id), "version": booking.version},
            update,
        )
        if res.matched_count == 0:
            return None
        return booking.model_copy(update={"version": booking.version + 1})

    async def list_for_party(self, user_id: str, limit: int = 500) -> List[Booking]:
        docs = await self.db.bookings.find({
            "$or": [{"owner_id": user_id}, {"provider_id": user_id}]
        }).sort("scheduled_date", 1).to_list(limit)
        return [self._from_doc(d) for d in docs]


class ReviewStore:
    def __init__(self, db):
        self.db = db

    @staticmethod
    def _from_doc(doc: dict) -> Review:
        doc = {k: v for k, v in doc.items() if k != PENDING_FIELD}
        return Review.model_validate(to_id(doc))

    async def list_for_booking(self, booking_id: str) -> List[Review]:
        docs = await self.db.reviews.find(
            {"booking_id": _oid_or_404(booking_id)}
        ).sort("created_at", 1).to_list(10)
        return [self._from_doc(d) for d in docs]

    async def list_for_reviewee(self, user_id: str, limit: int = 200) -> List[Review]:
        docs = await self.db.reviews.find({"reviewee_id": user_id}).sort("created_at", -1).to_list(limit)
        return [self._from_doc(d) for d in docs]

    async def insert(self, review: Review, events: Iterable[BookingEvent] = ()) -> Review:
        doc = to_mongo(review.model_dump(exclude={"id"}))
        doc["_id"] = ObjectId(review.id) if review.id else ObjectId()
        doc["booking_id"] = ObjectId(review.booking_id)
        doc[PENDING_FIELD] = _event_docs(events)
        try:
            res = await self.db.reviews.insert_one(doc)
        except DuplicateKeyError:
            # Otra petición del mismo actor entró antes
            raise ReviewNotPermitted(ReviewIneligibility.already_reviewed)
        return review.model_copy(update={"id": str(res.inserted_id)})


class EventStore:
    """Bandeja de salida: el notificador externo lee los eventos con delivered=False."""

    def __init__(self, db):
        self.db = db

    async def relay(self, collection: str, query: dict) -> int:
        """
        Copia a booking_events los eventos pendientes de los documentos de
        `collection` que cumplen `query` y los retira de esos documentos.
        Se puede repetir sin duplicar eventos.
        """
        docs = await self.db[collection].find(query, {PENDING_FIELD: 1}).to_list(100)
        copied = 0
        for doc in docs:
            pending = doc.get(PENDING_FIELD) or []
            if not pending:
                continue
            for event in pending:
                try:
                    await self.db.booking_events.insert_one(event)
                except DuplicateKeyError:
                    # ya lo copió un relay anterior que no llegó a retirarlo
                    logger.info(f"evento {event['_id']} ya estaba en booking_events")
            await self.db[collection].update_one(
                {"_id": doc["_id"]},
                {"$pull": {PENDING_FIELD: {"_id": {"$in": [e["_id"] for e in pending]}}}},
            )
            copied += len(pending)
        return copied

    async def relay_booking(self, booking_id: str) -> int:
        if not ObjectId.is_valid(booking_id):
            return 0
        return await self.relay("bookings", {"_id": ObjectId(booking_id)})

    async def relay_reviews(self, booking_id: str) -> int:
        if not ObjectId.is_valid(booking_id):
            return 0
        return await self.relay("reviews", {"booking_id": ObjectId(booking_id)})
