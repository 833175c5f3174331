# app/utils.py
from typing import Any, Dict, Optional
from decimal import Decimal
from enum import Enum
from bson import ObjectId
from bson.decimal128 import Decimal128
from datetime import datetime, timezone

def to_id(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convierte _id -> id (str), los ObjectIds a strings y los Decimal128 a Decimal.
    Si doc es None, devuelve {}.
    Los datetimes se dejan tal cual: los modelos de pydantic los validan.
    """
    if doc is None:
        return {}
    d = dict(doc)

    if "_id" in d:
        d["id"] = str(d.pop("_id"))

    for key, value in d.items():
        if isinstance(value, ObjectId):
            d[key] = str(value)
        elif isinstance(value, Decimal128):
            d[key] = value.to_decimal()
        elif isinstance(value, dict):
            d[key] = to_id(value)
        elif isinstance(value, list):
            d[key] = [
                str(item) if isinstance(item, ObjectId)
                else to_id(item) if isinstance(item, dict)
                else item
                for item in value
            ]

    return d

def to_mongo(value: Any) -> Any:
    """Inverso parcial de to_id: Decimal -> Decimal128, Enum -> valor, recursivo en dicts y listas."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return Decimal128(str(value))
    if isinstance(value, dict):
        return {k: to_mongo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_mongo(v) for v in value]
    return value

# ==================== Fechas ====================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def ensure_utc(value: datetime) -> datetime:
    """Las fechas sin zona horaria se interpretan como UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

