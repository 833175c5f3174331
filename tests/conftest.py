"""
Configuración de pytest para tests

MongoDB se sustituye por un doble en memoria con el subconjunto de la API de
motor que usa app/store.py (find_one, find().sort().to_list(), insert_one,
update_one con $set/$inc/$push/$pull, create_index con unique).
"""
import copy
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from bson import ObjectId
from httpx import AsyncClient, ASGITransport
from pymongo.errors import DuplicateKeyError

from app.db import ensure_indexes, get_db
from app.schemas.booking import Booking, BookingStatus
from app.security import create_access_token

OWNER = "owner-ana"
PROVIDER = "provider-luis"
STRANGER = "someone-else"
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


# ---------- Doble de MongoDB ----------

def _matches(doc: dict, query: dict) -> bool:
    for key, cond in query.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in cond):
                return False
            continue
        value = doc.get(key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$in" and value not in arg:
                    return False
                if op == "$ne" and value == arg:
                    return False
                if op == "$gte" and not (value is not None and value >= arg):
                    return False
                if op == "$lt" and not (value is not None and value < arg):
                    return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: (d.get(key) is None, d.get(key)), reverse=direction == -1)
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    def __init__(self):
        self.docs: list[dict] = []
        self.unique_keys: list[tuple[str, ...]] = [("_id",)]

    async def create_index(self, keys, unique=False, **kwargs):
        if unique:
            self.unique_keys.append(tuple(k for k, _ in keys))

    def _check_unique(self, doc):
        for fields in self.unique_keys:
            key = tuple(doc.get(f) for f in fields)
            if any(tuple(d.get(f) for f in fields) == key for d in self.docs):
                raise DuplicateKeyError(f"duplicate key {fields}")

    async def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self._check_unique(doc)
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query, projection=None):
        for d in self.docs:
            if _matches(d, query):
                return copy.deepcopy(d)
        return None

    def find(self, query=None, projection=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, query or {})])

    async def update_one(self, query, update):
        for d in self.docs:
            if _matches(d, query):
                d.update(copy.deepcopy(update.get("$set", {})))
                for k, inc in update.get("$inc", {}).items():
                    d[k] = d.get(k, 0) + inc
                for k, spec in update.get("$push", {}).items():
                    d.setdefault(k, []).extend(copy.deepcopy(spec["$each"]))
                for k, cond in update.get("$pull", {}).items():
                    d[k] = [item for item in d.get(k, []) if not _matches(item, cond)]
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)


class FakeDatabase:
    def __init__(self):
        self._collections: dict[str, FakeCollection] = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self._collections.setdefault(name, FakeCollection())

    def __getitem__(self, name):
        return getattr(self, name)


class FrozenClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


# ---------- Fixtures ----------

@pytest.fixture
async def db():
    fake = FakeDatabase()
    await ensure_indexes(fake)
    return fake

@pytest.fixture
def clock():
    return FrozenClock()

@pytest.fixture
def make_booking():
    """Reserva pendiente a 72h de NOW; cualquier campo se puede sobrescribir."""
    def _make(**overrides) -> Booking:
        data = {
            "id": str(ObjectId()),
            "owner_id": OWNER,
            "provider_id": PROVIDER,
            "dog_ids": ["dog-rex"],
            "service_id": "dog-walking",
            "scheduled_date": NOW + timedelta(hours=72),
            "total_amount": Decimal("1000.00"),
            "status": BookingStatus.pending,
            "created_at": NOW - timedelta(days=1),
        }
        data.update(overrides)
        return Booking(**data)
    return _make

@pytest.fixture
def auth():
    """Cabeceras Authorization para un usuario dado."""
    def _auth(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _auth

@pytest.fixture
async def client(db, clock):
    """Cliente HTTP contra la app con la base de datos y el reloj de test."""
    from app.main import app
    from app.routers import bookings
    from app.service import BookingService

    async def _get_db():
        return db

    # Deshabilitar rate limiting en la app para tests
    app.state.limiter = None
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[bookings.get_service] = lambda: BookingService(db, clock=clock)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
