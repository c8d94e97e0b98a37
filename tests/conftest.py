"""
Fixtures compartidas para los tests del motor de progresión.

- store:  KeyValueStore sobre SQLite en memoria (una BD limpia por test)
- clock:  reloj controlable (advance(days=1) para cambiar de día)
- engine: ProgressionEngine con semilla fija
"""

import random
from datetime import datetime, timedelta

import pytest
import pytz

from database import KeyValueStore
from engine import ProgressionEngine


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class StubClassifier:
    """Devuelve siempre el mismo análisis y cuenta las llamadas"""

    def __init__(self, result=None):
        self.result = result or {}
        self.calls = []

    def classify(self, text):
        self.calls.append(text)
        return dict(self.result)


@pytest.fixture
def store():
    return KeyValueStore.from_url("sqlite://")


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 17, 9, 0, tzinfo=pytz.utc))


@pytest.fixture
def engine(store, clock):
    return ProgressionEngine(store, rng=random.Random(1234), clock=clock, timezone="UTC")


@pytest.fixture
def user(engine):
    return engine.get_or_create_user("hunter")
