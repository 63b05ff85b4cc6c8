from typing import List

import folium

from ridesim.TripSimulation import TripSimulation
from ridesim.TripStage import TripStage
from ridesim.geo import Coordinate

# folium wants (lat, lon)
DRIVER_ROUTE_COLOR = "#000000"
TRIP_ROUTE_COLOR = "#1E90FF"


def _latlon(p: Coordinate):
    return p[1], p[0]


def _latlon_list(points: List[Coordinate]):
    return [_latlon(p) for p in points]


def build_trip_map(sim: TripSimulation, zoom_start: int = 15) -> folium.Map:
    pickup = sim.context.pickup
    destination = sim.context.destination
    center = sim.vehicle.position if sim.vehicle else pickup.coordinates

    m = folium.Map(location=_latlon(center), zoom_start=zoom_start)

    folium.Marker(_latlon(pickup.coordinates), popup="Pickup Point",
                  tooltip=pickup.address, icon=folium.Icon(color="green")).add_to(m)
    if sim.stage in (TripStage.PICKUP_TO_DESTINATION, TripStage.ARRIVED):
        folium.Marker(_latlon(destination.coordinates), popup="Destination",
                      tooltip=destination.address, icon=folium.Icon(color="red")).add_to(m)

    driver_route = sim.travelled_routes.get(TripStage.DRIVER_TO_PICKUP)
    if driver_route is not None:
        folium.PolyLine(_latlon_list(driver_route.geometry), color=DRIVER_ROUTE_COLOR,
                        weight=4, opacity=0.8, tooltip="Driver to pickup").add_to(m)
    elif sim.driver_start is not None:
        folium.PolyLine([_latlon(sim.driver_start), _latlon(pickup.coordinates)], color=DRIVER_ROUTE_COLOR,
                        weight=3, opacity=0.6, dash_array="6", tooltip="Driver to pickup").add_to(m)

    trip_route = sim.travelled_routes.get(TripStage.PICKUP_TO_DESTINATION)
    if trip_route is not None:
        folium.PolyLine(_latlon_list(trip_route.geometry), color=TRIP_ROUTE_COLOR,
                        weight=4, opacity=0.8, tooltip="Pickup to destination").add_to(m)

    if sim.vehicle is not None:
        html = (f'<div style="font-size: 24px; transform: rotate({sim.vehicle.bearing_degrees:.1f}deg);">'
                f'{sim.icon}</div>')
        folium.Marker(_latlon(sim.vehicle.position), tooltip=sim.status_text,
                      icon=folium.DivIcon(html=html)).add_to(m)
    return m


def save_trip_map(sim: TripSimulation, path: str = "map.html") -> str:
    build_trip_map(sim).save(path)
    return path


def render_trip_map(sim: TripSimulation) -> str:
    return build_trip_map(sim).get_root().render()
