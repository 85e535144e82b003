import pytest

from neo_monitor.alerts import build_alert_id
from neo_monitor.dependencies import get_alert_store
from neo_monitor.errors import DbError
from neo_monitor.main import app

ALICE = {"Authorization": "Bearer token-alice"}
BOB = {"Authorization": "Bearer token-bob"}
RANGE = {"start_date": "2025-01-01", "end_date": "2025-01-03"}


class BrokenAlertStore:
    def get_states(self, user_id, alert_ids):
        raise DbError("Table does not exist", code="DB_TABLE_MISSING")


def alert_feed(make_neo):
    return {
        "near_earth_objects": {
            "2025-01-01": [
                make_neo(neo_id="100", name="(2025 AA)", lunar=1.5, hazardous=True),
                make_neo(neo_id="200", name="(2025 BB)", lunar=3.0),
                make_neo(neo_id="300", name="(2025 CC)", lunar=40.0),
            ]
        }
    }


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["service"] == "neo-monitoring-api"
    assert body["uptime"] >= 0


@pytest.mark.asyncio
async def test_feed_pages_with_whole_range_stats(client, nasa_stub, fake_redis, make_neo):
    nasa_stub.feed = {
        "element_count": 25,
        "near_earth_objects": {
            "2025-01-01": [make_neo(neo_id=str(i), lunar=2.0 + i, hazardous=i < 3) for i in range(25)]
        },
    }

    resp = await client.get("/neos/feed", params={**RANGE, "page": 2, "limit": 10})

    assert resp.status_code == 200
    body = resp.json()
    assert body["start_date"] == "2025-01-01"
    assert body["end_date"] == "2025-01-03"
    assert body["element_count"] == 25
    assert [n["id"] for n in body["neo_objects"]] == [str(i) for i in range(10, 20)]
    assert body["stats"]["total"] == 25
    assert body["stats"]["hazardous"] == 3
    assert body["stats"]["closest_neo_id"] == "0"
    assert body["has_next"] is True
    assert body["has_prev"] is True
    assert fake_redis.ttls["neo:feed:2025-01-01:2025-01-03"] == 900

    again = await client.get("/neos/feed", params={**RANGE, "page": 3, "limit": 10})
    assert again.json()["stats"] == body["stats"]
    assert len(nasa_stub.requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params",
    [
        {},
        {"start_date": "2025-01-01"},
        {"start_date": "01/01/2025", "end_date": "2025-01-02"},
        {"start_date": "2025-01-05", "end_date": "2025-01-01"},
        {"start_date": "2025-01-01", "end_date": "2025-01-20"},
        {**RANGE, "page": "abc"},
    ],
)
async def test_feed_rejects_bad_params_without_calling_upstream(client, nasa_stub, params):
    resp = await client.get("/neos/feed", params=params)

    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"
    assert nasa_stub.requests == []


@pytest.mark.asyncio
async def test_summary(client, nasa_stub, make_neo):
    nasa_stub.feed = alert_feed(make_neo)

    resp = await client.get("/neos/summary", params=RANGE)

    assert resp.status_code == 200
    body = resp.json()
    assert body["range"] == RANGE
    assert body["total"] == 3
    assert body["hazardous"] == 1
    assert sum(body["risk_breakdown"].values()) == 3


@pytest.mark.asyncio
async def test_lookup(client, nasa_stub, make_neo):
    nasa_stub.lookups["2000433"] = make_neo(neo_id="2000433", name="433 Eros")

    resp = await client.get("/neos/lookup/2000433")

    assert resp.status_code == 200
    body = resp.json()
    assert body["neo"]["id"] == "2000433"
    assert body["neo"]["name"] == "433 Eros"
    assert body["raw"]["name"] == "433 Eros"


@pytest.mark.asyncio
async def test_lookup_errors(client, nasa_stub):
    missing = await client.get("/neos/lookup/999")
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"

    bad = await client.get("/neos/lookup/abc-1")
    assert bad.status_code == 400
    assert bad.json()["message"] == "id must be alphanumeric"
    assert len(nasa_stub.requests) == 1


@pytest.mark.asyncio
async def test_upstream_failure_hides_api_key(client, nasa_stub):
    nasa_stub.status = 503

    resp = await client.get("/neos/feed", params=RANGE)

    assert resp.status_code == 502
    body = resp.json()
    assert body["code"] == "EXTERNAL_API_ERROR"
    assert body["details"]["transient"] is True
    assert "SECRET_TEST_KEY" not in resp.text


@pytest.mark.asyncio
async def test_alerts_anonymous(client, nasa_stub, make_neo):
    nasa_stub.feed = alert_feed(make_neo)

    resp = await client.get("/neos/alerts", params=RANGE)

    assert resp.status_code == 200
    body = resp.json()
    assert body["state_overlay"] == "anonymous"
    assert body["total"] == 3
    assert [(a["neo_id"], a["type"]) for a in body["alerts"]] == [
        ("100", "close_approach"),
        ("100", "hazardous"),
        ("200", "close_approach"),
    ]


@pytest.mark.asyncio
async def test_alerts_with_bad_token(client, nasa_stub, make_neo):
    nasa_stub.feed = alert_feed(make_neo)
    resp = await client.get("/neos/alerts", params=RANGE, headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_alert_state_is_applied_per_user(client, nasa_stub, make_neo):
    nasa_stub.feed = alert_feed(make_neo)
    read_id = build_alert_id("close_approach", "100", "2025-01-01")
    deleted_id = build_alert_id("hazardous", "100", "2025-01-01")

    read = await client.patch(f"/neos/alerts/{read_id}/read", headers=ALICE)
    assert read.json() == {"id": read_id, "read": True}
    deleted = await client.delete(f"/neos/alerts/{deleted_id}", headers=ALICE)
    assert deleted.json() == {"id": deleted_id, "deleted": True}

    alice = (await client.get("/neos/alerts", params=RANGE, headers=ALICE)).json()
    assert alice["state_overlay"] == "applied"
    assert [(a["id"], a["read"]) for a in alice["alerts"]] == [
        (read_id, True),
        (build_alert_id("close_approach", "200", "2025-01-01"), False),
    ]

    bob = (await client.get("/neos/alerts", params=RANGE, headers=BOB)).json()
    assert bob["total"] == 3
    assert not any(a["read"] for a in bob["alerts"])


@pytest.mark.asyncio
async def test_read_all(client):
    resp = await client.patch("/neos/alerts/read-all", json={"alert_ids": ["a", "b", "a", 7]}, headers=ALICE)
    assert resp.status_code == 200
    assert resp.json() == {"updated": 3, "read": True}

    empty = await client.patch("/neos/alerts/read-all", json={"alert_ids": []}, headers=ALICE)
    assert empty.status_code == 400


@pytest.mark.asyncio
async def test_alert_overlay_degrades_when_store_fails(client, nasa_stub, make_neo):
    nasa_stub.feed = alert_feed(make_neo)
    app.dependency_overrides[get_alert_store] = lambda: BrokenAlertStore()

    resp = await client.get("/neos/alerts", params=RANGE, headers=ALICE)

    assert resp.status_code == 200
    body = resp.json()
    assert body["state_overlay"] == "degraded"
    assert body["total"] == 3


@pytest.mark.asyncio
async def test_mutations_require_a_token(client):
    resp = await client.patch("/neos/alerts/abc/read")
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_TOKEN"

    resp = await client.get("/watchlist", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_mutations_without_auth_configured(client):
    app.state.auth = None

    resp = await client.delete("/neos/alerts/abc", headers=ALICE)

    assert resp.status_code == 401
    assert resp.json()["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_watchlist_crud(client):
    created = await client.post("/watchlist", json={"neo_id": "2000433", "neo_name": " 433 Eros "}, headers=ALICE)
    assert created.status_code == 201
    item = created.json()["item"]
    assert item["neo_id"] == "2000433"
    assert item["neo_name"] == "433 Eros"
    assert item["alert_enabled"] is False

    await client.post("/watchlist", json={"neo_id": "2000433", "neo_name": "433 Eros"}, headers=ALICE)
    listing = (await client.get("/watchlist", headers=ALICE)).json()
    assert listing["total"] == 1
    assert (await client.get("/watchlist", headers=BOB)).json()["total"] == 0

    toggled = await client.patch("/watchlist/2000433/alert", headers=ALICE)
    assert toggled.json() == {"success": True, "neo_id": "2000433", "alert_enabled": True}

    missing = await client.patch("/watchlist/1/alert", headers=ALICE)
    assert missing.status_code == 400

    removed = await client.delete("/watchlist/2000433", headers=ALICE)
    assert removed.json() == {"success": True, "neo_id": "2000433", "removed": True}
    assert (await client.get("/watchlist", headers=ALICE)).json()["total"] == 0


@pytest.mark.asyncio
async def test_watchlist_requires_fields(client):
    resp = await client.post("/watchlist", json={"neo_id": "  ", "neo_name": "x"}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_routing_errors_use_error_envelope(client):
    missing = await client.get("/neos/nope")
    assert missing.status_code == 404
    assert missing.json() == {"code": "NOT_FOUND", "message": "Not Found", "details": None}

    wrong_method = await client.put("/health")
    assert wrong_method.status_code == 405
    assert wrong_method.json()["code"] == "METHOD_NOT_ALLOWED"
    assert "GET" in wrong_method.headers["allow"]
