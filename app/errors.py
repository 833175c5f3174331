"""
Errores de dominio del ciclo de vida de reservas.

Cada error lleva un código estable (para que el front elija el mensaje)
y un status HTTP. Los routers no los capturan: main.py registra un único
handler que los convierte en respuesta JSON.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BookingError(Exception):
    """Base de todos los errores del motor de reservas."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class InvalidTransition(BookingError):
    """El evento no es legal desde el estado actual de la reserva."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_status: str, event: str, reason: Optional[str] = None):
        details: Dict[str, Any] = {"status": current_status, "event": event}
        message = f"Transición no permitida: {event} desde {current_status}"
        if reason:
            details["reason"] = reason
            message = f"{message} ({reason})"
        super().__init__(message, code="INVALID_TRANSITION", details=details)
        self.current_status = current_status
        self.event = event
        self.reason = reason


class MissingReason(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, event: str):
        super().__init__(
            f"Hace falta un motivo para {event}",
            code="MISSING_REASON",
            details={"event": event},
        )
        self.event = event


class Unauthorized(BookingError):
    """El actor no participa en la reserva o no tiene el rol que exige el evento."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, actor_id: Optional[str], action: str):
        super().__init__(
            f"Sin permiso para {action}",
            code="UNAUTHORIZED",
            details={"actor_id": actor_id, "action": action},
        )
        self.actor_id = actor_id
        self.action = action


class InvalidRating(BookingError):
    status_code = 422

    def __init__(self, rating: Any):
        super().__init__(
            "La puntuación debe estar entre 1 y 5",
            code="INVALID_RATING",
            details={"rating": rating},
        )
        self.rating = rating


class ReviewNotPermitted(BookingError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, reason: str):
        # reason es un ReviewIneligibility; se guarda su valor en texto
        reason_text = getattr(reason, "value", reason)
        super().__init__(
            f"No se puede reseñar esta reserva: {reason_text}",
            code="REVIEW_NOT_PERMITTED",
            details={"reason": reason_text},
        )
        self.reason = reason
        if reason_text == "already reviewed":
            self.status_code = status.HTTP_409_CONFLICT


class BookingNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, booking_id: str):
        super().__init__(
            "Reserva no encontrada",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )
        self.booking_id = booking_id


class ConcurrentModification(BookingError):
    """Se agotaron los reintentos de compare-and-set sobre la misma reserva."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, booking_id: str, attempts: int):
        super().__init__(
            "La reserva cambió mientras se procesaba la petición; vuelve a cargarla",
            code="CONCURRENT_MODIFICATION",
            details={"booking_id": booking_id, "attempts": attempts},
        )
        self.booking_id = booking_id
        self.attempts = attempts
