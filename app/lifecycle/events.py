from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime
from typing import Any, Dict, List, Optional

class EventType(str, Enum):
    booking_accepted  = "booking.accepted"
    booking_declined  = "booking.declined"
    booking_cancelled = "booking.cancelled"
    booking_completed = "booking.completed"
    review_submitted  = "review.submitted"

class BookingEvent(BaseModel):
    """Intención de notificar: el envío real lo hace otro servicio leyendo booking_events."""
    type: EventType
    booking_id: str
    actor_id: Optional[str] = None  # None = sistema
    recipient_ids: List[str] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime
