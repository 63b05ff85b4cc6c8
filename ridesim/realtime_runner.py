"""
aiohttp front end for a browser map.

    POST /trip          start a trip (replaces the running one, single rider)
    GET  /trip          current stage, status and vehicle
    POST /trip/cancel   stop the running trip
    GET  /trip/map      folium map of the running trip
    GET  /places?q=     place suggestions
    GET  /ws            JSON event stream (position, stage, camera, degraded)
"""
import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

from aiohttp import WSMsgType, web

from ridesim import settings
from ridesim.LocationStore import Location, LocationStore, RideSelection
from ridesim.TripSimulation import TripSimulation
from ridesim.camera import CameraFollower, Viewport
from ridesim.directions import make_client
from ridesim.errors import GeocodingError
from ridesim.geo import validate_coordinate
from ridesim.scheduler import AsyncioScheduler, Scheduler
from ridesim.trip_map import render_trip_map
from ridesim.ws_bus import EventBus, event_to_dict, put_latest

logger = logging.getLogger(__name__)


def _json_error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _parse_location(app: web.Application, payload: Dict[str, Any], key: str) -> Location:
    raw = payload.get(key)
    if not isinstance(raw, dict):
        raise ValueError(f"missing {key}")
    coordinate = validate_coordinate((raw.get("lng"), raw.get("lat")))
    address = raw.get("address")
    if not address:
        address = await app["client"].reverse_geocode(coordinate)
    return Location(coordinates=coordinate, address=address)


def _parse_selection(payload: Dict[str, Any]) -> RideSelection:
    raw = payload.get("ride") or {}
    ride_id = raw.get("id", settings.DEFAULT_RIDE_ID)
    return RideSelection(
        id=ride_id,
        name=raw.get("name", ride_id.title()),
        price=raw.get("price", ""),
        eta_label=raw.get("eta_label", ""),
    )


async def create_trip(request: web.Request) -> web.Response:
    app = request.app
    try:
        payload = await request.json()
        pickup = await _parse_location(app, payload, "pickup")
        destination = await _parse_location(app, payload, "destination")
        selection = _parse_selection(payload)
    except (ValueError, TypeError, AttributeError) as e:
        return _json_error(400, str(e))

    previous: Optional[TripSimulation] = app["trip"]
    if previous is not None:
        previous.cancel()

    store: LocationStore = app["locations"]
    store.clear()
    store.set_pickup(pickup)
    store.set_destination(destination)
    sim = TripSimulation(store.trip_context(selection), app["client"], app["scheduler"], bus=app["bus"])
    app["trip"] = sim
    sim.start()
    return web.json_response({"trip_id": sim.trip_id, "status": sim.status_text})


async def get_trip(request: web.Request) -> web.Response:
    sim: Optional[TripSimulation] = request.app["trip"]
    if sim is None:
        return _json_error(404, "no trip")
    return web.json_response(sim.snapshot())


async def cancel_trip(request: web.Request) -> web.Response:
    sim: Optional[TripSimulation] = request.app["trip"]
    if sim is None:
        return _json_error(404, "no trip")
    sim.cancel()
    return web.json_response({"trip_id": sim.trip_id, "cancelled": True})


async def trip_map(request: web.Request) -> web.Response:
    sim: Optional[TripSimulation] = request.app["trip"]
    if sim is None:
        return _json_error(404, "no trip")
    return web.Response(text=render_trip_map(sim), content_type="text/html")


async def search_places(request: web.Request) -> web.Response:
    query = request.query.get("q", "")
    try:
        suggestions = await request.app["client"].search_places(query)
    except GeocodingError as e:
        return _json_error(502, e.message)
    return web.json_response([
        {"id": s.id, "label": s.label, "coordinates": list(s.coordinates)} for s in suggestions
    ])


async def ws_handler(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    sockets: set = request.app["sockets"]
    sockets.add(ws)

    sim: Optional[TripSimulation] = request.app["trip"]
    if sim is not None:
        await ws.send_json({"type": "status", **sim.snapshot()})
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                logger.warning("websocket closed with exception %s", ws.exception())
    finally:
        sockets.discard(ws)
    return ws


async def _broadcast(app: web.Application) -> None:
    q: asyncio.Queue = app["pub_q"]
    while True:
        event = await q.get()
        try:
            for ws in list(app["sockets"]):
                if ws.closed:
                    app["sockets"].discard(ws)
                    continue
                try:
                    await ws.send_json(event)
                except ConnectionResetError:
                    app["sockets"].discard(ws)
        finally:
            q.task_done()


async def _on_startup(app: web.Application) -> None:
    app["broadcaster"] = asyncio.get_running_loop().create_task(_broadcast(app))


async def _on_cleanup(app: web.Application) -> None:
    sim: Optional[TripSimulation] = app["trip"]
    if sim is not None:
        sim.cancel()
    app["camera"].detach()
    task = app.get("broadcaster")
    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    for ws in list(app["sockets"]):
        await ws.close()
    close = getattr(app["client"], "close", None)
    if close is not None:
        await close()


def create_app(client=None, scheduler: Optional[Scheduler] = None, queue_size: int = 100) -> web.Application:
    app = web.Application()
    bus = EventBus()
    app["client"] = client if client is not None else make_client()
    app["scheduler"] = scheduler if scheduler is not None else AsyncioScheduler()
    app["bus"] = bus
    app["locations"] = LocationStore()
    app["trip"] = None
    app["sockets"] = set()
    app["pub_q"] = asyncio.Queue(maxsize=queue_size)
    bus.subscribe(lambda event: put_latest(app["pub_q"], event_to_dict(event)))
    app["camera"] = CameraFollower(bus, Viewport(bus=bus))

    app.router.add_post("/trip", create_trip)
    app.router.add_get("/trip", get_trip)
    app.router.add_post("/trip/cancel", cancel_trip)
    app.router.add_get("/trip/map", trip_map)
    app.router.add_get("/places", search_places)
    app.router.add_get("/ws", ws_handler)
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    web.run_app(create_app(), host=settings.RUNNER_HOST, port=settings.RUNNER_PORT)


if __name__ == "__main__":
    main()
