"""Tests for provider availability endpoints."""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_availability(
    client: AsyncClient,
    provider_headers: dict,
    availability_payload: dict,
):
    """Test creating a window as a provider."""
    response = await client.post(
        "/api/v1/provider/availability",
        json=availability_payload,
        headers=provider_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["slots_created"] == 2
    assert data["total_appointments_available"] == 2
    assert data["date_range"] == {"start": "2024-02-15", "end": "2024-02-15"}
    assert data["availability_ids"] == [data["availability_id"]]


@pytest.mark.asyncio
async def test_create_availability_requires_provider_token(
    client: AsyncClient,
    patient_headers: dict,
    availability_payload: dict,
):
    """Anonymous callers get 401 and patients 403."""
    response = await client.post("/api/v1/provider/availability", json=availability_payload)
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"

    response = await client.post(
        "/api/v1/provider/availability",
        json=availability_payload,
        headers=patient_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_token_is_unauthorized(client: AsyncClient, availability_payload: dict):
    """A garbage bearer token is rejected."""
    response = await client.post(
        "/api/v1/provider/availability",
        json=availability_payload,
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_availability_error_mapping(
    client: AsyncClient,
    provider_headers: dict,
    availability_payload: dict,
):
    """Range, length and overlap violations map to distinct codes."""
    url = "/api/v1/provider/availability"

    reversed_window = {**availability_payload, "start_time": "10:00", "end_time": "09:00"}
    response = await client.post(url, json=reversed_window, headers=provider_headers)
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_RANGE"

    short_window = {**availability_payload, "end_time": "09:10"}
    response = await client.post(url, json=short_window, headers=provider_headers)
    assert response.status_code == 422
    assert response.json()["code"] == "TOO_SHORT"

    response = await client.post(url, json=availability_payload, headers=provider_headers)
    assert response.status_code == 201

    overlapping = {**availability_payload, "start_time": "09:30", "end_time": "11:00"}
    response = await client.post(url, json=overlapping, headers=provider_headers)
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "OVERLAP"
    assert body["error"] == "OverlapException"
    assert body["path"].endswith(url)


@pytest.mark.asyncio
async def test_create_availability_schema_validation(
    client: AsyncClient,
    provider_headers: dict,
    availability_payload: dict,
):
    """Physical locations need an address and slot lengths are bounded."""
    no_address = {**availability_payload, "location": {"type": "clinic"}}
    response = await client.post(
        "/api/v1/provider/availability", json=no_address, headers=provider_headers
    )
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"

    tiny_slots = {**availability_payload, "slot_duration": 5}
    response = await client.post(
        "/api/v1/provider/availability", json=tiny_slots, headers=provider_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_provider_availability_view(
    client: AsyncClient,
    provider: dict,
    provider_headers: dict,
    availability_payload: dict,
):
    """Slots are listed per day with a summary."""
    await client.post(
        "/api/v1/provider/availability", json=availability_payload, headers=provider_headers
    )

    response = await client.get(
        f"/api/v1/provider/{provider['id']}/availability",
        params={"start_date": "2024-02-01", "end_date": "2024-02-29"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["availability_summary"]["total_slots"] == 2
    assert data["availability_summary"]["available_slots"] == 2
    assert [day["date"] for day in data["availability"]] == ["2024-02-15"]
    slot = data["availability"][0]["slots"][0]
    assert slot["start_time"] == "2024-02-15T09:00:00"
    assert slot["location"]["room_number"] == "2B"
    assert slot["booking_reference"].startswith("APT-")


@pytest.mark.asyncio
async def test_provider_availability_unknown_provider(client: AsyncClient):
    """Unknown providers are reported as such."""
    response = await client.get(
        f"/api/v1/provider/{uuid4()}/availability",
        params={"start_date": "2024-02-01", "end_date": "2024-02-29"},
    )
    assert response.status_code == 404
    assert response.json()["code"] == "PROVIDER_NOT_FOUND"


@pytest.mark.asyncio
async def test_list_and_update_windows(
    client: AsyncClient,
    provider_headers: dict,
    availability_payload: dict,
):
    """Providers list their windows and edit notes and status."""
    created = await client.post(
        "/api/v1/provider/availability", json=availability_payload, headers=provider_headers
    )
    window_id = created.json()["availability_id"]

    response = await client.get(
        "/api/v1/provider/availability/windows",
        params={"start_date": "2024-02-01", "end_date": "2024-02-29"},
        headers=provider_headers,
    )
    assert response.status_code == 200
    windows = response.json()
    assert [window["id"] for window in windows] == [window_id]
    assert windows[0]["special_requirements"] == ["bring_insurance_card"]
    assert Decimal(windows[0]["pricing"]["base_fee"]) == Decimal("150")

    response = await client.patch(
        f"/api/v1/provider/availability/windows/{window_id}",
        json={"notes": "Fasting required", "status": "blocked"},
        headers=provider_headers,
    )
    assert response.status_code == 200
    assert response.json()["notes"] == "Fasting required"
    assert response.json()["status"] == "blocked"


@pytest.mark.asyncio
async def test_other_provider_cannot_touch_window(
    client: AsyncClient,
    provider_headers: dict,
    make_provider,
    auth_headers_for,
    availability_payload: dict,
):
    """Windows belong to the provider who created them."""
    created = await client.post(
        "/api/v1/provider/availability", json=availability_payload, headers=provider_headers
    )
    window_id = created.json()["availability_id"]
    intruder = auth_headers_for((await make_provider())["id"], "provider")

    response = await client.patch(
        f"/api/v1/provider/availability/windows/{window_id}",
        json={"notes": "mine now"},
        headers=intruder,
    )
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"

    response = await client.delete(
        f"/api/v1/provider/availability/windows/{window_id}",
        params={"cascade": True},
        headers=intruder,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_window(
    client: AsyncClient,
    provider: dict,
    provider_headers: dict,
    availability_payload: dict,
):
    """Deleting needs cascade confirmation and returns 204."""
    created = await client.post(
        "/api/v1/provider/availability", json=availability_payload, headers=provider_headers
    )
    window_id = created.json()["availability_id"]

    response = await client.delete(
        f"/api/v1/provider/availability/windows/{window_id}", headers=provider_headers
    )
    assert response.status_code == 409
    assert response.json()["code"] == "HAS_BOOKED_SLOTS"

    response = await client.delete(
        f"/api/v1/provider/availability/windows/{window_id}",
        params={"cascade": True},
        headers=provider_headers,
    )
    assert response.status_code == 204

    response = await client.get(
        f"/api/v1/provider/{provider['id']}/availability",
        params={"start_date": "2024-02-01", "end_date": "2024-02-29"},
    )
    assert response.json()["availability_summary"]["total_slots"] == 0


@pytest.mark.asyncio
async def test_update_and_delete_slot(
    client: AsyncClient,
    provider: dict,
    provider_headers: dict,
    availability_payload: dict,
):
    """Slots can be blocked and removed by their provider."""
    await client.post(
        "/api/v1/provider/availability", json=availability_payload, headers=provider_headers
    )
    view = await client.get(
        f"/api/v1/provider/{provider['id']}/availability",
        params={"start_date": "2024-02-15", "end_date": "2024-02-15"},
    )
    first, second = view.json()["availability"][0]["slots"]

    response = await client.put(
        f"/api/v1/provider/availability/{first['slot_id']}",
        json={"status": "blocked"},
        headers=provider_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "blocked"

    response = await client.put(
        f"/api/v1/provider/availability/{first['slot_id']}",
        json={"status": "cancelled"},
        headers=provider_headers,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_STATUS_TRANSITION"

    response = await client.put(
        f"/api/v1/provider/availability/{second['slot_id']}",
        json={"start_time": "2024-02-15T09:30:00+02:00"},
        headers=provider_headers,
    )
    assert response.status_code == 422

    response = await client.delete(
        f"/api/v1/provider/availability/{second['slot_id']}",
        params={"reason": "Clinic closes early"},
        headers=provider_headers,
    )
    assert response.status_code == 204

    response = await client.delete(
        f"/api/v1/provider/availability/{uuid4()}", headers=provider_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_search_endpoint(
    client: AsyncClient,
    provider_headers: dict,
    availability_payload: dict,
):
    """Search is public and filters by specialization."""
    await client.post(
        "/api/v1/provider/availability", json=availability_payload, headers=provider_headers
    )

    response = await client.get(
        "/api/v1/provider/availability/search",
        params={"date": "2024-02-15", "specialization": "cardiology"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total_results"] == 2
    assert data["results"][0]["provider"]["name"] == "Jane Doe"
    assert data["search_criteria"]["start_date"] == "2024-02-15"

    response = await client.get(
        "/api/v1/provider/availability/search",
        params={"specialization": "dermatology"},
    )
    assert response.json()["total_results"] == 0


@pytest.mark.asyncio
async def test_create_availability_with_utc_offset_is_rejected(
    client: AsyncClient,
    provider_headers: dict,
    availability_payload: dict,
):
    """Window bounds with an offset fail validation instead of reaching the overlap check."""
    url = "/api/v1/provider/availability"
    response = await client.post(url, json=availability_payload, headers=provider_headers)
    assert response.status_code == 201

    shifted = {**availability_payload, "start_time": "09:30:00+02:00", "end_time": "11:00:00+02:00"}
    response = await client.post(url, json=shifted, headers=provider_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert {error["loc"][-1] for error in body["details"]} == {"start_time", "end_time"}
