# app/routers/bookings.py
from fastapi import APIRouter, Depends, HTTPException, status, Path, Query, Request
from typing import Annotated, List, Optional
from datetime import timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..config import get_settings
from ..db import get_db
from ..schemas.booking import BookingCreate, BookingOut, CalendarDayOut, CancelIn, RespondIn
from ..schemas.review import Review, ReviewEligibility, ReviewIn
from ..security import get_current_user_id
from ..service import BookingService
from ..middleware.rate_limit import apply_rate_limit

router = APIRouter()
settings = get_settings()

BookingId = Annotated[str, Path(pattern=r"^[0-9a-fA-F]{24}$")]

# Cupos de rate limiting: todas las transiciones y reseñas comparten uno por IP
CREATE_SCOPE = "booking-create"
MUTATION_SCOPE = "booking-mutation"

def get_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> BookingService:
    return BookingService(db)

# ---------- Lectura ----------

@router.get("/mine", response_model=List[BookingOut])
@router.get("/my", response_model=List[BookingOut])  # alias opcional
async def list_my_bookings(
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    return [BookingOut.from_booking(b) for b in await svc.list_mine(user_id)]

@router.get("/calendar", response_model=List[CalendarDayOut])
async def my_calendar(
    tz: Optional[str] = Query(None, description="Zona IANA para agrupar por día, p. ej. Africa/Johannesburg"),
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    zone = timezone.utc
    if tz:
        try:
            zone = ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, f"Zona horaria desconocida: {tz}")
    days = await svc.calendar(user_id, zone)
    return [
        CalendarDayOut(
            day=d.day.isoformat(),
            bookings=[BookingOut.from_booking(b) for b in d.bookings],
            expected_total=d.expected_total,
        )
        for d in days
    ]

@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: BookingId,
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    return BookingOut.from_booking(await svc.get(booking_id, user_id))

# ---------- Alta ----------

@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: Request,
    payload: BookingCreate,
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    # Rate limiting: máximo 15 reservas por minuto por IP
    apply_rate_limit(request, "15/minute", scope=CREATE_SCOPE)
    return BookingOut.from_booking(await svc.create(user_id, payload))

# ---------- Transiciones ----------

@router.patch("/{booking_id}/respond", response_model=BookingOut)
async def respond_booking(
    request: Request,
    body: RespondIn,
    booking_id: BookingId,
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, settings.mutation_rate_limit, scope=MUTATION_SCOPE)
    booking = await svc.respond(booking_id, user_id, body.decision, body.reason, body.message)
    return BookingOut.from_booking(booking)

@router.patch("/{booking_id}/cancel", response_model=BookingOut)
async def cancel_booking(
    request: Request,
    body: CancelIn,
    booking_id: BookingId,
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, settings.mutation_rate_limit, scope=MUTATION_SCOPE)
    return BookingOut.from_booking(await svc.cancel(booking_id, user_id, body.reason))

@router.patch("/{booking_id}/complete", response_model=BookingOut)
async def complete_booking(
    request: Request,
    booking_id: BookingId,
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, settings.mutation_rate_limit, scope=MUTATION_SCOPE)
    return BookingOut.from_booking(await svc.complete(booking_id, user_id))

# ---------- Reseñas de la reserva ----------

@router.get("/{booking_id}/can-review", response_model=ReviewEligibility)
async def can_review(
    booking_id: BookingId,
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    return await svc.can_review(booking_id, user_id)

@router.get("/{booking_id}/reviews", response_model=List[Review])
async def list_booking_reviews(
    booking_id: BookingId,
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    return await svc.reviews_for(booking_id, user_id)

@router.post("/{booking_id}/reviews", response_model=Review, status_code=status.HTTP_201_CREATED)
async def submit_review(
    request: Request,
    body: ReviewIn,
    booking_id: BookingId,
    svc: BookingService = Depends(get_service),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, settings.mutation_rate_limit, scope=MUTATION_SCOPE)
    return await svc.submit_review(booking_id, user_id, body.rating, body.comment)
