from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from ..catalog import check_service_request
from ..utils import ensure_utc

class BookingStatus(str, Enum):
    pending   = "pending"
    accepted  = "accepted"
    declined  = "declined"
    completed = "completed"
    cancelled = "cancelled"

TERMINAL_STATUSES = frozenset({BookingStatus.declined, BookingStatus.completed, BookingStatus.cancelled})
CANCELLABLE_STATUSES = frozenset({BookingStatus.pending, BookingStatus.accepted})

class ActorRole(str, Enum):
    owner    = "owner"
    provider = "provider"

class Decision(str, Enum):
    accept  = "accept"
    decline = "decline"

# ---------- Desenlaces terminales ----------
# Un solo campo `outcome` en vez de declineReason/cancellationReason sueltos:
# cada camino terminal trae exactamente sus datos.

class Declined(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["declined"] = "declined"
    reason: str
    declined_at: datetime

class Cancelled(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["cancelled"] = "cancelled"
    reason: str
    by: ActorRole
    fee: Decimal = Field(..., ge=0)
    cancelled_at: datetime

    @model_validator(mode="after")
    def provider_never_pays(self):
        if self.by == ActorRole.provider and self.fee != 0:
            raise ValueError("una cancelación del cuidador no lleva penalización")
        return self

class Completed(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["completed"] = "completed"
    completed_at: datetime

Outcome = Annotated[Union[Declined, Cancelled, Completed], Field(discriminator="kind")]

_OUTCOME_FOR_STATUS = {
    BookingStatus.declined: Declined,
    BookingStatus.cancelled: Cancelled,
    BookingStatus.completed: Completed,
}

class Booking(BaseModel):
    """
    Reserva tal y como la ve el motor de estados.
    Es inmutable: cada transición devuelve una copia nueva.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    provider_id: str
    dog_ids: List[str] = Field(..., min_length=1)
    service_id: str
    service_option_label: Optional[str] = None
    scheduled_date: datetime
    arrival_date: Optional[datetime] = None
    departure_date: Optional[datetime] = None
    total_amount: Decimal = Field(..., ge=0)
    status: BookingStatus = BookingStatus.pending
    provider_response: Optional[str] = None
    responded_at: Optional[datetime] = None
    outcome: Optional[Outcome] = None
    version: int = 0
    created_at: Optional[datetime] = None

    @field_validator("scheduled_date", "arrival_date", "departure_date", "responded_at", "created_at")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else v

    @field_validator("dog_ids")
    @classmethod
    def unique_dogs(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("dog_ids no puede repetir perros")
        return v

    @model_validator(mode="after")
    def check_consistency(self):
        """
        responded_at se conserva después de la respuesta: completed siempre lo
        tiene (viene de accepted) y cancelled solo si se aceptó antes de cancelar.
        """
        if (self.arrival_date is None) != (self.departure_date is None):
            raise ValueError("arrival_date y departure_date van juntas")
        if self.arrival_date is not None and self.departure_date <= self.arrival_date:
            raise ValueError("departure_date debe ser posterior a arrival_date")

        expected = _OUTCOME_FOR_STATUS.get(self.status)
        if expected is None:
            if self.outcome is not None:
                raise ValueError(f"una reserva {self.status.value} no tiene desenlace")
        elif not isinstance(self.outcome, expected):
            raise ValueError(f"una reserva {self.status.value} necesita desenlace {expected.__name__}")

        if self.status == BookingStatus.pending and self.responded_at is not None:
            raise ValueError("una reserva pendiente no tiene respuesta")
        if self.status in (BookingStatus.accepted, BookingStatus.declined, BookingStatus.completed) \
                and self.responded_at is None:
            raise ValueError(f"una reserva {self.status.value} necesita responded_at")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def role_of(self, actor_id: Optional[str]) -> Optional[ActorRole]:
        if actor_id is None:
            return None
        if actor_id == self.owner_id:
            return ActorRole.owner
        if actor_id == self.provider_id:
            return ActorRole.provider
        return None

    def counterpart_of(self, role: ActorRole) -> str:
        return self.provider_id if role == ActorRole.owner else self.owner_id

    # Vistas planas para el front
    @property
    def decline_reason(self) -> Optional[str]:
        return self.outcome.reason if isinstance(self.outcome, Declined) else None

    @property
    def cancellation_reason(self) -> Optional[str]:
        return self.outcome.reason if isinstance(self.outcome, Cancelled) else None

    @property
    def cancelled_by(self) -> Optional[ActorRole]:
        return self.outcome.by if isinstance(self.outcome, Cancelled) else None

    @property
    def cancellation_fee(self) -> Optional[Decimal]:
        return self.outcome.fee if isinstance(self.outcome, Cancelled) else None

    @property
    def cancelled_at(self) -> Optional[datetime]:
        return self.outcome.cancelled_at if isinstance(self.outcome, Cancelled) else None

    @property
    def completed_at(self) -> Optional[datetime]:
        return self.outcome.completed_at if isinstance(self.outcome, Completed) else None

# ---------- Entrada / salida HTTP ----------

class BookingCreate(BaseModel):
    provider_id: str
    dog_ids: List[str] = Field(..., min_length=1)
    service_id: str
    service_option_label: Optional[str] = None
    scheduled_date: datetime
    arrival_date: Optional[datetime] = None
    departure_date: Optional[datetime] = None
    total_amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)

    @field_validator("dog_ids")
    @classmethod
    def unique_dogs(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("dog_ids no puede repetir perros")
        return v

    @model_validator(mode="after")
    def check_service(self):
        has_stay = self.arrival_date is not None or self.departure_date is not None
        check_service_request(self.service_id, self.service_option_label, has_stay)
        if has_stay:
            if self.arrival_date is None or self.departure_date is None:
                raise ValueError("arrival_date y departure_date van juntas")
            if ensure_utc(self.departure_date) <= ensure_utc(self.arrival_date):
                raise ValueError("departure_date debe ser posterior a arrival_date")
            # En estancias la fecha de inicio es la llegada
            if ensure_utc(self.scheduled_date) != ensure_utc(self.arrival_date):
                raise ValueError("scheduled_date debe coincidir con arrival_date")
        return self

class RespondIn(BaseModel):
    decision: Decision
    reason: Optional[str] = None
    message: Optional[str] = Field(None, max_length=1000)

class CancelIn(BaseModel):
    # Sin min_length: el motor decide si falta el motivo (MissingReason)
    reason: Optional[str] = Field(None, max_length=500)

class BookingOut(BaseModel):
    id: str
    owner_id: str
    provider_id: str
    dog_ids: List[str]
    service_id: str
    service_option_label: Optional[str] = None
    scheduled_date: datetime
    arrival_date: Optional[datetime] = None
    departure_date: Optional[datetime] = None
    total_amount: Decimal
    status: BookingStatus
    provider_response: Optional[str] = None
    responded_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[ActorRole] = None
    cancellation_fee: Optional[Decimal] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, b: Booking) -> "BookingOut":
        return cls(
            id=b.id,
            owner_id=b.owner_id,
            provider_id=b.provider_id,
            dog_ids=list(b.dog_ids),
            service_id=b.service_id,
            service_option_label=b.service_option_label,
            scheduled_date=b.scheduled_date,
            arrival_date=b.arrival_date,
            departure_date=b.departure_date,
            total_amount=b.total_amount,
            status=b.status,
            provider_response=b.provider_response,
            responded_at=b.responded_at,
            decline_reason=b.decline_reason,
            cancellation_reason=b.cancellation_reason,
            cancelled_by=b.cancelled_by,
            cancellation_fee=b.cancellation_fee,
            cancelled_at=b.cancelled_at,
            completed_at=b.completed_at,
            created_at=b.created_at,
        )

class CalendarDayOut(BaseModel):
    day: str
    bookings: List[BookingOut]
    expected_total: Decimal
