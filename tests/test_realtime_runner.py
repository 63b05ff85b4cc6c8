import asyncio
import json

import aiohttp
from aiohttp.test_utils import TestClient, TestServer
from http_fakes import FakeDirectionsClient, drain

from ridesim.directions import PlaceSuggestion
from ridesim.realtime_runner import create_app
from ridesim.scheduler import VirtualScheduler

TRIP = {
    "pickup": {"lng": 77.59, "lat": 12.97, "address": "MG Road"},
    "destination": {"lng": 77.64, "lat": 12.99},
    "ride": {"id": "auto", "name": "Auto", "price": "81.84"},
}


async def recvj(ws, t=5):
    m = await asyncio.wait_for(ws.receive(), t)
    if m.type != aiohttp.WSMsgType.TEXT:
        raise RuntimeError(m.type)
    return json.loads(m.data)


async def wait_type(ws, typ, t=5, n=200, **match):
    for _ in range(n):
        o = await recvj(ws, t)
        if o.get("type") == typ and all(o.get(k) == v for k, v in match.items()):
            return o
    raise RuntimeError(f"no {typ}")


def run_with_client(test):
    async def runner():
        scheduler = VirtualScheduler()
        directions = FakeDirectionsClient(suggestions=[
            PlaceSuggestion("place.1", "Indiranagar, Bengaluru", (77.64, 12.99)),
        ])
        app = create_app(client=directions, scheduler=scheduler)
        async with TestClient(TestServer(app)) as client:
            return await test(client, app, scheduler)
    return asyncio.run(runner())


async def _test_trip_lifecycle(client, app, scheduler):
    r = await client.get("/trip")
    assert r.status == 404

    r = await client.post("/trip", json=TRIP)
    assert r.status == 200
    created = await r.json()

    r = await client.get("/trip")
    first = await r.json()

    scheduler.advance_to(3000)
    await drain()
    scheduler.advance_to(28_000)
    r = await client.get("/trip")
    moving = await r.json()

    r = await client.post("/trip/cancel")
    cancelled = await r.json()
    return created, first, moving, cancelled


def test_trip_lifecycle():
    created, first, moving, cancelled = run_with_client(_test_trip_lifecycle)

    assert created["status"] == "Finding a nearby driver"
    assert first["trip_id"] == created["trip_id"]
    assert first["stage"] == "SEARCHING_DRIVER"
    assert first["pickup"]["address"] == "MG Road"
    # no address given, so it was reverse geocoded
    assert first["destination"]["address"] == "12.990000, 77.640000"

    assert moving["stage"] == "DRIVER_TO_PICKUP"
    assert moving["vehicle"]["progress"] == 0.5
    assert cancelled == {"trip_id": created["trip_id"], "cancelled": True}


async def _test_bad_payload(client, app, scheduler):
    bad_json = await client.post("/trip", data="not json")
    bad_coord = await client.post("/trip", json={"pickup": {"lng": "x", "lat": 0}, "destination": {}})
    missing = await client.post("/trip", json={"pickup": {"lng": 77.59, "lat": 12.97}})
    return bad_json.status, bad_coord.status, missing.status, app["trip"] is None


def test_bad_payload():
    *statuses, no_trip = run_with_client(_test_bad_payload)
    assert statuses == [400, 400, 400]
    assert no_trip


async def _test_new_trip_replaces_running_one(client, app, scheduler):
    await client.post("/trip", json=TRIP)
    first = app["trip"]
    await client.post("/trip", json=TRIP)
    second = app["trip"]
    return first.cancelled, second.cancelled, first.trip_id != second.trip_id


def test_new_trip_replaces_running_one():
    first_cancelled, second_cancelled, replaced = run_with_client(_test_new_trip_replaces_running_one)
    assert first_cancelled
    assert not second_cancelled
    assert replaced


async def _test_places(client, app, scheduler):
    r = await client.get("/places", params={"q": "indira"})
    found = await r.json()
    r = await client.get("/places", params={"q": ""})
    empty = await r.json()
    return found, empty


def test_places():
    found, empty = run_with_client(_test_places)
    assert found == [{"id": "place.1", "label": "Indiranagar, Bengaluru", "coordinates": [77.64, 12.99]}]
    assert empty == []


async def _test_ws_streams_stage_and_position(client, app, scheduler):
    await client.post("/trip", json=TRIP)
    ws = await client.ws_connect("/ws")
    try:
        status = await wait_type(ws, "status")
        scheduler.advance_to(1500)
        found = await wait_type(ws, "stage", stage="DRIVER_FOUND")
        scheduler.advance_to(3100)
        position = await wait_type(ws, "position")
        camera = await wait_type(ws, "camera")
    finally:
        await ws.close()
    return status, found, position, camera


def test_ws_streams_stage_and_position():
    status, found, position, camera = run_with_client(_test_ws_streams_stage_and_position)
    assert status["type"] == "status"
    assert status["stage"] == "SEARCHING_DRIVER"
    assert found["status"] == "Driver found! Getting ready"
    assert position["data"]["stage"] == "DRIVER_TO_PICKUP"
    assert camera["zoom"] == 15.0


async def _test_trip_map(client, app, scheduler):
    await client.post("/trip", json=TRIP)
    scheduler.advance_to(3000)
    await drain()
    r = await client.get("/trip/map")
    return r.status, r.content_type, await r.text()


def test_trip_map():
    status, content_type, html = run_with_client(_test_trip_map)
    assert status == 200
    assert content_type == "text/html"
    assert "Pickup Point" in html
