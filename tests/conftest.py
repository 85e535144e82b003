import os
os.environ['TEST_DB_URL'] = 'sqlite:///test.db'
import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from neo_monitor.main import app
from neo_monitor import models
from neo_monitor.auth import AuthUser
from neo_monitor.cache import NeoCache
from neo_monitor.database import engine, SessionLocal
from neo_monitor.errors import InvalidTokenError
from neo_monitor.services import NasaClient

LUNAR_KM = 384_400.0


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def aclose(self):
        pass


class BrokenRedis:
    async def get(self, key):
        raise ConnectionError("redis is down")

    async def set(self, key, value, ex=None):
        raise ConnectionError("redis is down")

    async def aclose(self):
        pass


class FakeAuth:
    def __init__(self, tokens):
        self.tokens = tokens

    async def get_user(self, token):
        if token not in self.tokens:
            raise InvalidTokenError()
        return AuthUser(id=self.tokens[token])

    async def aclose(self):
        pass


class NasaStub:
    """Stands in for the NeoWs API behind an httpx.MockTransport."""

    def __init__(self):
        self.feed = {"near_earth_objects": {}}
        self.lookups = {}
        self.status = None
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status is not None:
            return httpx.Response(self.status, json={"error": "upstream failure"})
        if request.url.path.endswith("/feed"):
            return httpx.Response(200, json=self.feed)
        neo_id = request.url.path.rsplit("/", 1)[-1]
        if neo_id in self.lookups:
            return httpx.Response(200, json=self.lookups[neo_id])
        return httpx.Response(404, json={"error": "not found"})


def make_nasa_client(stub, cache):
    http = httpx.AsyncClient(
        base_url="https://api.nasa.test/neo/rest/v1",
        transport=httpx.MockTransport(stub.handler),
    )
    return NasaClient(http, cache, api_key="SECRET_TEST_KEY", ttl_seconds=900)


def _approach(lunar, velocity, approach_date):
    approach = {
        "close_approach_date": approach_date,
        "close_approach_date_full": "2025-Jan-01 12:34",
        "epoch_date_close_approach": 1735734840000,
        "relative_velocity": {
            "kilometers_per_second": None if velocity is None else str(velocity),
            "kilometers_per_hour": None if velocity is None else str(velocity * 3600),
        },
        "miss_distance": {},
        "orbiting_body": "Earth",
    }
    if lunar is not None:
        approach["miss_distance"] = {
            "astronomical": str(lunar * LUNAR_KM / 149_597_870.7),
            "lunar": str(lunar),
            "kilometers": str(lunar * LUNAR_KM),
        }
    return approach


def build_neo(
    neo_id="3542519",
    name="(2010 PK9)",
    lunar=10.0,
    hazardous=False,
    velocity=10.0,
    diameter_m=(100.0, 220.0),
    approach_date="2025-01-01",
    approaches=None,
):
    """Upstream-shaped NEO record with numeric fields as strings, as NeoWs sends them."""
    if approaches is None:
        approaches = [(lunar, velocity, approach_date)]
    return {
        "id": neo_id,
        "neo_reference_id": neo_id,
        "name": name,
        "nasa_jpl_url": f"https://ssd.jpl.nasa.gov/tools/sbdb_lookup.html#/?sstr={neo_id}",
        "absolute_magnitude_h": 21.4,
        "estimated_diameter": {
            "kilometers": {
                "estimated_diameter_min": diameter_m[0] / 1000,
                "estimated_diameter_max": diameter_m[1] / 1000,
            },
            "meters": {
                "estimated_diameter_min": diameter_m[0],
                "estimated_diameter_max": diameter_m[1],
            },
        },
        "is_potentially_hazardous_asteroid": hazardous,
        "is_sentry_object": False,
        "close_approach_data": [_approach(*a) for a in approaches],
    }


@pytest.fixture
def make_neo():
    return build_neo


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def broken_redis():
    return BrokenRedis()


@pytest.fixture
def nasa_stub():
    return NasaStub()


@pytest.fixture
def nasa_client_for(nasa_stub):
    return lambda cache: make_nasa_client(nasa_stub, cache)


@pytest.fixture
def db():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest_asyncio.fixture
async def client(nasa_stub, fake_redis):
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    cache = NeoCache(fake_redis)
    app.state.cache = cache
    app.state.nasa = make_nasa_client(nasa_stub, cache)
    app.state.auth = FakeAuth({"token-alice": "alice", "token-bob": "bob"})
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await app.state.nasa.aclose()
    app.dependency_overrides.clear()
