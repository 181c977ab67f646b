"""Map preview data (pins, closed polyline and framing region) for a stop order."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .estimates import DEFAULT_DEPOT_LABEL
from .models import Coordinate, Place, Stop

DEPOT_ANNOTATION_ID = "shop"

# Region framing (degrees)
SINGLE_POINT_SPAN = 0.05
MIN_SPAN = 0.02
SPAN_PADDING = 1.4


class AnnotationKind(Enum):
    DEPOT = "depot"
    STOP = "stop"


@dataclass(frozen=True)
class Annotation:
    id: str
    title: str
    subtitle: Optional[str]
    coordinate: Coordinate
    kind: AnnotationKind
    order: Optional[int] = None


@dataclass(frozen=True)
class Region:
    center: Coordinate
    lat_delta: float
    lng_delta: float


@dataclass
class RoutePreview:
    annotations: List[Annotation] = field(default_factory=list)
    polyline: List[Coordinate] = field(default_factory=list)
    region: Optional[Region] = None


def build_annotations(
    depot: Place,
    stops: Sequence[Stop],
    depot_subtitle: Optional[str] = None,
) -> List[Annotation]:
    annotations: List[Annotation] = []
    if depot.coordinate.is_valid:
        annotations.append(Annotation(
            id=DEPOT_ANNOTATION_ID,
            title=DEFAULT_DEPOT_LABEL,
            subtitle=depot_subtitle,
            coordinate=depot.coordinate,
            kind=AnnotationKind.DEPOT,
        ))

    for index, stop in enumerate(stops):
        if stop.place is None or not stop.place.coordinate.is_valid:
            continue
        annotations.append(Annotation(
            id=stop.stop_id,
            title=stop.title,
            subtitle=stop.address,
            coordinate=stop.place.coordinate,
            kind=AnnotationKind.STOP,
            order=index + 1,
        ))

    return annotations


def build_polyline(depot: Place, stops: Sequence[Stop]) -> List[Coordinate]:
    """Depot, each resolved stop, then the depot again. Drawing only."""
    if not depot.coordinate.is_valid:
        return []

    coordinates = [depot.coordinate]
    for stop in stops:
        if stop.place is not None and stop.place.coordinate.is_valid:
            coordinates.append(stop.place.coordinate)
    coordinates.append(depot.coordinate)
    return coordinates


def route_region(coordinates: Sequence[Coordinate]) -> Optional[Region]:
    """Smallest padded region framing every valid coordinate."""
    valid = [c for c in coordinates if c.is_valid]
    if not valid:
        return None

    if len(valid) == 1:
        return Region(center=valid[0], lat_delta=SINGLE_POINT_SPAN, lng_delta=SINGLE_POINT_SPAN)

    lats = [c.lat for c in valid]
    lngs = [c.lng for c in valid]
    min_lat, max_lat = min(lats), max(lats)
    min_lng, max_lng = min(lngs), max(lngs)

    return Region(
        center=Coordinate(lat=(min_lat + max_lat) / 2, lng=(min_lng + max_lng) / 2),
        lat_delta=max((max_lat - min_lat) * SPAN_PADDING, MIN_SPAN),
        lng_delta=max((max_lng - min_lng) * SPAN_PADDING, MIN_SPAN),
    )


def build_route_preview(
    depot: Place,
    stops: Sequence[Stop],
    depot_subtitle: Optional[str] = None,
) -> RoutePreview:
    """
    Build map preview data for a stop order.

    Stops without a resolved place are skipped, but their position still
    counts toward the order index of later stops. The region frames the pins.
    """
    annotations = build_annotations(depot, stops, depot_subtitle)
    return RoutePreview(
        annotations=annotations,
        polyline=build_polyline(depot, stops),
        region=route_region([a.coordinate for a in annotations]),
    )
