from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List
from ..db import get_db
from ..schemas.review import Review, ReviewSummary
from ..store import ReviewStore

router = APIRouter()

# Alta de reseñas: POST /bookings/{id}/reviews (pasa por el ReviewEligibilityGate).
# Las reseñas no se editan ni se borran.

@router.get("", response_model=List[Review])
async def list_reviews(
    reviewee_id: str = Query(..., description="Usuario reseñado (dueño o cuidador)"),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Reseñas recibidas por un usuario, las más recientes primero."""
    return await ReviewStore(db).list_for_reviewee(reviewee_id)

@router.get("/summary/{user_id}", response_model=ReviewSummary)
async def review_summary(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    reviews = await ReviewStore(db).list_for_reviewee(user_id, limit=1000)
    ratings = [r.rating for r in reviews]
    if not ratings:
        return ReviewSummary(user_id=user_id)
    return ReviewSummary(
        user_id=user_id,
        rating_avg=round(sum(ratings) / len(ratings), 1),
        rating_count=len(ratings),
    )
