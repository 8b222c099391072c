"""
Parcel API tests.

Registration, public tracking, route repair and the manual tick trigger.
"""

import pytest
from datetime import datetime, timedelta, timezone

from courier.app.services.parcel_registration import TRACKING_ALPHABET, generate_tracking_code
from courier.tests.conftest import DESTINATION, ORIGIN

PARCEL_PAYLOAD = {
    "sender_name": "Charles Babbage",
    "sender_email": "charles@example.com",
    "sender_address": "1 Analytical Way",
    "receiver_name": "Ada Lovelace",
    "receiver_email": "ada@example.com",
    "receiver_address": "12 St James's Square",
    "parcel_description": "Difference engine parts",
    "delivery_from_address": "1 Analytical Way",
    "days_to_deliver": 3,
}


@pytest.fixture
def known_addresses(fake_geo):
    fake_geo.addresses = {
        "1 Analytical Way": ORIGIN,
        "12 St James's Square": DESTINATION,
    }
    return fake_geo


def test_tracking_code_format():
    code = generate_tracking_code()
    prefix, *segments = code.split("-")
    assert prefix == "CRX"
    assert [len(s) for s in segments] == [3, 3, 3]
    assert all(c in TRACKING_ALPHABET for c in "".join(segments))
    assert "I" not in TRACKING_ALPHABET and "O" not in TRACKING_ALPHABET


# TEST 1: Registration
@pytest.mark.asyncio
async def test_create_parcel_with_route(client, known_addresses):
    response = await client.post("/v1/parcels", json=PARCEL_PAYLOAD)

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["route_available"] is True
    assert data["tracking_code"].startswith("CRX-")

    tracked = await client.get(f"/v1/track/{data['tracking_code']}")
    assert tracked.status_code == 200
    body = tracked.json()
    parcel = body["parcel"]
    assert parcel["status"] == "pending"
    assert parcel["progress_percent"] == 0
    assert parcel["current_location_name"] == "Awaiting Pickup"
    assert (parcel["origin_lat"], parcel["origin_lng"]) == (ORIGIN.lat, ORIGIN.lng)
    assert (parcel["destination_lat"], parcel["destination_lng"]) == (DESTINATION.lat, DESTINATION.lng)
    # 100 waypoints thinned to every 5th plus the final one
    assert len(parcel["route_points"]) == 21
    assert parcel["route_points"][-1] == {"lat": DESTINATION.lat, "lng": DESTINATION.lng}

    assert len(body["events"]) == 1
    assert body["events"][0]["event_type"] == "created"
    assert body["events"][0]["description"] == "Parcel registered. Awaiting pickup from 1 Analytical Way"


@pytest.mark.asyncio
async def test_create_parcel_when_geocoding_fails(client, fake_geo):
    """The parcel is still created, just without a route."""
    response = await client.post("/v1/parcels", json=PARCEL_PAYLOAD)

    assert response.status_code == 201
    data = response.json()
    assert data["route_available"] is False

    tracked = (await client.get(f"/v1/track/{data['tracking_code']}")).json()
    assert tracked["parcel"]["route_points"] is None
    assert tracked["parcel"]["progress_percent"] == 0


@pytest.mark.asyncio
async def test_create_parcel_validation(client, known_addresses):
    bad = dict(PARCEL_PAYLOAD, days_to_deliver=31)
    response = await client.post("/v1/parcels", json=bad)
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"

    missing = {k: v for k, v in PARCEL_PAYLOAD.items() if k != "receiver_address"}
    response = await client.post("/v1/parcels", json=missing)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_parcel_rejects_invalid_emails(client, known_addresses):
    for field, value in (("sender_email", "not-an-email"), ("receiver_email", "x@y"), ("receiver_email", "")):
        response = await client.post("/v1/parcels", json=dict(PARCEL_PAYLOAD, **{field: value}))
        assert response.status_code == 422, (field, value)
        assert response.json()["error_code"] == "ERR_VALIDATION"
        assert response.json()["details"]["errors"][0]["loc"] == ["body", field]

    # Sender email is optional
    without_sender = {k: v for k, v in PARCEL_PAYLOAD.items() if k != "sender_email"}
    response = await client.post("/v1/parcels", json=without_sender)
    assert response.status_code == 201


# TEST 2: Route repair
@pytest.mark.asyncio
async def test_repair_route_once(client, fake_geo):
    created = (await client.post("/v1/parcels", json=PARCEL_PAYLOAD)).json()
    code = created["tracking_code"]

    # Still unresolvable
    response = await client.post(f"/v1/parcels/{code}/repair-route")
    assert response.status_code == 422
    assert response.json()["details"] == {"origin_resolved": False, "destination_resolved": False}

    fake_geo.addresses = {"1 Analytical Way": ORIGIN, "12 St James's Square": DESTINATION}
    response = await client.post(f"/v1/parcels/{code}/repair-route")
    assert response.status_code == 200
    data = response.json()
    assert data["route_points"] == 100
    assert data["distance_km"] == 1112
    assert data["destination"] == {"lat": DESTINATION.lat, "lng": DESTINATION.lng}

    # A parcel with a route is never rebuilt
    response = await client.post(f"/v1/parcels/{code}/repair-route")
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_ROUTE_001"


@pytest.mark.asyncio
async def test_repair_route_unknown_parcel(client):
    response = await client.post("/v1/parcels/CRX-ZZZ-ZZZ-ZZZ/repair-route")
    assert response.status_code == 404


# TEST 3: Tracking lookup
@pytest.mark.asyncio
async def test_track_rejects_malformed_code(client):
    response = await client.get("/v1/track/ABC-123")
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_TRACKING_001"


@pytest.mark.asyncio
async def test_track_unknown_code(client):
    response = await client.get("/v1/track/CRX-NOP-NOP-NOP")
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_track_is_case_insensitive(client, parcel_factory):
    await parcel_factory(tracking_code="CRX-AAA-BBB-CCC")
    response = await client.get("/v1/track/crx-aaa-bbb-ccc")
    assert response.status_code == 200
    assert response.json()["parcel"]["tracking_code"] == "CRX-AAA-BBB-CCC"


# TEST 4: Listing
@pytest.mark.asyncio
async def test_list_parcels_newest_first(client, parcel_factory):
    now = datetime.now(timezone.utc)
    await parcel_factory(tracking_code="CRX-OLD-000-001", created_at=now - timedelta(days=2))
    await parcel_factory(tracking_code="CRX-NEW-000-002", created_at=now - timedelta(hours=1))

    response = await client.get("/v1/parcels", params={"page_size": 1})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [p["tracking_code"] for p in data["parcels"]] == ["CRX-NEW-000-002"]


# TEST 5: Manual tick
@pytest.mark.asyncio
async def test_tick_endpoint_advances_parcels(client, parcel_factory):
    await parcel_factory(created_at=datetime.now(timezone.utc) - timedelta(days=5), days_to_deliver=2)

    response = await client.post("/v1/simulation/tick")

    assert response.status_code == 200
    data = response.json()
    assert data["updated_count"] == 1
    assert data["total_candidates"] == 1

    tracked = (await client.get("/v1/track/CRX-AAA-BBB-CCC")).json()
    assert tracked["parcel"]["status"] == "delivered"
    assert tracked["parcel"]["progress_percent"] == 100
    assert tracked["events"][0]["description"] == "Package delivered to Ada Lovelace"

    again = (await client.post("/v1/simulation/tick")).json()
    assert again["updated_count"] == 0
    assert again["total_candidates"] == 0


@pytest.mark.asyncio
async def test_tick_endpoint_requires_token_when_configured(client, test_settings):
    test_settings.tick_token = "s3cret"

    response = await client.post("/v1/simulation/tick")
    assert response.status_code == 403

    response = await client.post("/v1/simulation/tick", headers={"X-Tick-Token": "wrong"})
    assert response.status_code == 403

    response = await client.post("/v1/simulation/tick", headers={"X-Tick-Token": "s3cret"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

