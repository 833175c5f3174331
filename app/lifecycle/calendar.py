from dataclasses import dataclass, field
from datetime import date, timezone, tzinfo
from decimal import Decimal
from itertools import groupby
from typing import Dict, Iterable, List

from ..schemas.booking import Booking, BookingStatus

STATUS_LABELS: Dict[BookingStatus, str] = {
    BookingStatus.pending: "Pending",
    BookingStatus.accepted: "Confirmed",
    BookingStatus.declined: "Declined",
    BookingStatus.completed: "Completed",
    BookingStatus.cancelled: "Cancelled",
}

# Lo que sigue contando para la caja del día
EARNING_STATUSES = frozenset({BookingStatus.pending, BookingStatus.accepted, BookingStatus.completed})


@dataclass
class CalendarDay:
    day: date
    bookings: List[Booking] = field(default_factory=list)

    @property
    def expected_total(self) -> Decimal:
        return sum(
            (b.total_amount for b in self.bookings if b.status in EARNING_STATUSES),
            Decimal("0"),
        )


def _sort_key(b: Booking):
    return (b.scheduled_date, b.id)


def group_by_day(bookings: Iterable[Booking], tz: tzinfo = timezone.utc) -> List[CalendarDay]:
    """Agrupa por el día local de `tz` (UTC si no se indica)."""
    ordered = sorted(bookings, key=_sort_key)
    return [
        CalendarDay(day=day, bookings=list(items))
        for day, items in groupby(ordered, key=lambda b: b.scheduled_date.astimezone(tz).date())
    ]


def group_by_status(bookings: Iterable[Booking]) -> Dict[BookingStatus, List[Booking]]:
    """Todas las claves presentes, en el orden del ciclo de vida."""
    out: Dict[BookingStatus, List[Booking]] = {s: [] for s in BookingStatus}
    for b in sorted(bookings, key=_sort_key):
        out[b.status].append(b)
    return out
