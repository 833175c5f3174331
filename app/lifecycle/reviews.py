"""
Quién puede reseñar una reserva y a quién.

Solo con la reserva completada, solo sus dos participantes, y una única
reseña por participante (sin ediciones).
"""
from datetime import datetime
from typing import Iterable, Optional

from ..errors import InvalidRating, ReviewNotPermitted
from ..schemas.booking import Booking, BookingStatus
from ..schemas.review import Review, ReviewEligibility, ReviewIneligibility
from ..utils import ensure_utc

MIN_RATING = 1
MAX_RATING = 5


class ReviewEligibilityGate:
    def can_review(
        self,
        booking: Booking,
        reviews: Iterable[Review],
        actor_id: str,
    ) -> ReviewEligibility:
        role = booking.role_of(actor_id)
        if role is None:
            return ReviewEligibility(eligible=False, reason=ReviewIneligibility.not_participant)

        reviewee_id = booking.counterpart_of(role)
        if booking.status != BookingStatus.completed:
            return ReviewEligibility(
                eligible=False, reviewee_id=reviewee_id, role=role,
                reason=ReviewIneligibility.not_completed,
            )
        if any(r.reviewer_id == actor_id for r in reviews):
            return ReviewEligibility(
                eligible=False, reviewee_id=reviewee_id, role=role,
                reason=ReviewIneligibility.already_reviewed,
            )
        return ReviewEligibility(eligible=True, reviewee_id=reviewee_id, role=role)

    def submit(
        self,
        booking: Booking,
        reviews: Iterable[Review],
        actor_id: str,
        rating: int,
        comment: Optional[str] = None,
        *,
        now: datetime,
    ) -> Review:
        eligibility = self.can_review(booking, reviews, actor_id)
        if not eligibility.eligible:
            raise ReviewNotPermitted(eligibility.reason)

        # bool es subclase de int: True no es una puntuación
        if isinstance(rating, bool) or not isinstance(rating, int) \
                or not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRating(rating)

        comment = (comment or "").strip() or None
        return Review(
            booking_id=booking.id,
            reviewer_id=actor_id,
            reviewee_id=eligibility.reviewee_id,
            reviewer_role=eligibility.role,
            rating=rating,
            comment=comment,
            created_at=ensure_utc(now),
        )
