"""
Rate limiting por IP para endpoints concretos usando slowapi
"""
from fastapi import Request, HTTPException
from limits import parse
from slowapi.util import get_remote_address

def apply_rate_limit(request: Request, limit: str, scope: str = "global"):
    """
    Aplica rate limiting a un endpoint específico.
    Uso: apply_rate_limit(request, "5/minute", scope="booking-create")

    El contador es por IP y `scope`: los endpoints que comparten scope
    comparten cupo, sea cual sea la reserva de la URL.
    Si el limiter no está configurado (por ejemplo, en tests), la función no hace nada.
    """
    limiter = getattr(request.app.state, "limiter", None)
    if limiter is None or not limiter.enabled:
        return

    key = get_remote_address(request)
    # limiter.limiter es la estrategia de `limits` que hay debajo de slowapi
    if not limiter.limiter.hit(parse(limit), key, scope):
        raise HTTPException(
            status_code=429,
            detail=f"Demasiadas solicitudes. Límite: {limit}. Intenta más tarde."
        )
