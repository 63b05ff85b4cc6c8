"""
Run one simulated trip from the command line.

    python -m ridesim.main --pickup 77.59,12.97 --destination 77.64,12.99 --fast --map map.html
"""
import argparse
import asyncio
import logging
import webbrowser
from typing import Optional

from ridesim import settings
from ridesim.LocationStore import Location, LocationStore, RideSelection
from ridesim.TripSimulation import TripSimulation
from ridesim.VehicleState import VehicleState
from ridesim.directions import make_client
from ridesim.geo import Coordinate
from ridesim.scheduler import AsyncioScheduler, VirtualScheduler
from ridesim.trip_map import save_trip_map
from ridesim.ws_bus import EventBus, StageChanged, TripDegraded

logger = logging.getLogger("ridesim")


def parse_coordinate(value: str) -> Coordinate:
    try:
        lng, lat = (float(v) for v in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LNG,LAT, got {value!r}")
    return lng, lat


def _log_event(event) -> None:
    if isinstance(event, StageChanged):
        logger.info("%s: %s", event.stage.name, event.status_text)
        if event.start_ride_available:
            logger.info("Start Ride is available")
    elif isinstance(event, TripDegraded):
        logger.warning("degraded in %s: %s", event.stage.name, event.reason)
    elif isinstance(event, VehicleState) and event.progress in (0.0, 1.0):
        logger.debug("%s %.0f%% at %s", event.stage.name, event.progress * 100, event.position)


async def run_trip(pickup: Coordinate,
                   destination: Coordinate,
                   ride_id: str = settings.DEFAULT_RIDE_ID,
                   fast: bool = False,
                   client=None) -> TripSimulation:
    owns_client = client is None
    if client is None:
        client = make_client()
    scheduler = VirtualScheduler() if fast else AsyncioScheduler()

    try:
        store = LocationStore()
        store.set_pickup(Location(pickup, await client.reverse_geocode(pickup)))
        store.set_destination(Location(destination, await client.reverse_geocode(destination)))
        selection = RideSelection(id=ride_id, name=ride_id.title(), price="")

        bus = EventBus()
        bus.subscribe(_log_event)
        sim = TripSimulation(store.trip_context(selection), client, scheduler, bus=bus)
        sim.start()

        if fast:
            while not sim.settled.is_set():
                if scheduler.pending:
                    scheduler.advance(settings.TICK_MS)
                    await asyncio.sleep(0)
                else:
                    # waiting on a route fetch
                    await asyncio.sleep(0.01)
        else:
            await sim.settled.wait()
    finally:
        if owns_client:
            await client.close()
    return sim


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Simulate one ride from pickup to destination.")
    parser.add_argument("--pickup", type=parse_coordinate, required=True, help="LNG,LAT")
    parser.add_argument("--destination", type=parse_coordinate, required=True, help="LNG,LAT")
    parser.add_argument("--ride", default=settings.DEFAULT_RIDE_ID, choices=sorted(settings.RIDE_PROFILES))
    parser.add_argument("--fast", action="store_true", help="run on a virtual clock")
    parser.add_argument("--map", dest="map_path", help="write a folium map of the trip")
    parser.add_argument("--open", action="store_true", help="open the map in a browser")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    sim = asyncio.run(run_trip(args.pickup, args.destination, args.ride, args.fast))
    if args.map_path:
        save_trip_map(sim, args.map_path)
        logger.info("map written to %s", args.map_path)
        if args.open:
            webbrowser.open(args.map_path)
    return 0 if sim.done else 1


if __name__ == "__main__":
    raise SystemExit(main())
