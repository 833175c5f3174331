from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
from datetime import datetime
from typing import Optional

from .booking import ActorRole

class ReviewIneligibility(str, Enum):
    not_completed    = "not completed"
    not_participant  = "not a participant"
    already_reviewed = "already reviewed"

class Review(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None  # lo asigna el store al insertar
    booking_id: str
    reviewer_id: str
    reviewee_id: str
    reviewer_role: ActorRole
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: datetime

class ReviewEligibility(BaseModel):
    eligible: bool
    reviewee_id: Optional[str] = None
    role: Optional[ActorRole] = None
    reason: Optional[ReviewIneligibility] = None

class ReviewIn(BaseModel):
    # Sin ge/le: el rango lo valida el motor (InvalidRating)
    rating: int
    comment: Optional[str] = Field(None, max_length=2000)

class ReviewSummary(BaseModel):
    user_id: str
    rating_avg: Optional[float] = None
    rating_count: int = 0
