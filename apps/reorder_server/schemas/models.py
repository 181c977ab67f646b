"""Pydantic models for the restock route reorder server."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from restock_router.routing import (
    Annotation,
    Coordinate,
    LocationRecord,
    Region,
    RouteLeg,
    RoutePreview,
    RunSection,
    TravelEstimate,
)


class LatLng(BaseModel):
    """Simple latitude/longitude container."""

    lat: float = Field(..., description="Latitude in decimal degrees")
    lng: float = Field(..., description="Longitude in decimal degrees")

    @classmethod
    def from_coordinate(cls, coordinate: Coordinate) -> "LatLng":
        return cls(lat=coordinate.lat, lng=coordinate.lng)


class Location(BaseModel):
    """Location attached to a run section."""

    location_id: str = Field(..., alias="locationId")
    address: Optional[str] = None
    opening_minutes: Optional[int] = Field(default=None, alias="openingMinutes")
    closing_minutes: Optional[int] = Field(default=None, alias="closingMinutes")
    dwell_minutes: Optional[int] = Field(default=None, alias="dwellMinutes")

    model_config = {"populate_by_name": True}


class Section(BaseModel):
    """One row of a run's location list; no location means the unassigned bucket."""

    id: str
    title: str
    subtitle: Optional[str] = None
    location: Optional[Location] = None

    def to_run_section(self) -> RunSection:
        location = None
        if self.location is not None:
            location = LocationRecord(
                location_id=self.location.location_id,
                address=self.location.address,
                opening_minutes=self.location.opening_minutes,
                closing_minutes=self.location.closing_minutes,
                dwell_minutes=self.location.dwell_minutes,
            )
        return RunSection(
            section_id=self.id,
            title=self.title,
            subtitle=self.subtitle,
            location=location,
        )

    @classmethod
    def from_run_section(cls, section: RunSection) -> "Section":
        location = None
        if section.location is not None:
            record = section.location
            location = Location(
                location_id=record.location_id,
                address=record.address,
                opening_minutes=record.opening_minutes,
                closing_minutes=record.closing_minutes,
                dwell_minutes=record.dwell_minutes,
            )
        return cls(id=section.section_id, title=section.title, subtitle=section.subtitle, location=location)


# -----------------------------
# Requests
# -----------------------------

class RouteRequest(BaseModel):
    run_id: str = Field(..., alias="runId")
    shop_address: Optional[str] = Field(default=None, alias="shopAddress")
    sections: List[Section] = Field(default_factory=list)
    start_time: Optional[datetime] = Field(
        default=None,
        alias="startTime",
        description="Departure from the shop (ISO8601); defaults to the run's remembered start",
    )

    model_config = {"populate_by_name": True}

    def run_sections(self) -> List[RunSection]:
        return [section.to_run_section() for section in self.sections]


class OptimiseRouteRequest(RouteRequest):
    pass


class TravelEstimatesRequest(RouteRequest):
    pass


class LocationOrderRequest(BaseModel):
    sections: List[Section]


# -----------------------------
# Responses
# -----------------------------

class Leg(BaseModel):
    from_label: str = Field(..., alias="from")
    to_label: str = Field(..., alias="to")
    eta_seconds: Optional[float] = Field(default=None, alias="etaSeconds")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_route_leg(cls, leg: RouteLeg) -> "Leg":
        return cls(from_label=leg.from_label, to_label=leg.to_label, eta_seconds=leg.eta_seconds)


class MapAnnotation(BaseModel):
    id: str
    title: str
    subtitle: Optional[str] = None
    lat: float
    lng: float
    kind: str
    order: Optional[int] = None

    @classmethod
    def from_annotation(cls, annotation: Annotation) -> "MapAnnotation":
        return cls(
            id=annotation.id,
            title=annotation.title,
            subtitle=annotation.subtitle,
            lat=annotation.coordinate.lat,
            lng=annotation.coordinate.lng,
            kind=annotation.kind.value,
            order=annotation.order,
        )


class MapRegion(BaseModel):
    center: LatLng
    lat_delta: float = Field(..., alias="latDelta")
    lng_delta: float = Field(..., alias="lngDelta")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_region(cls, region: Region) -> "MapRegion":
        return cls(
            center=LatLng.from_coordinate(region.center),
            lat_delta=region.lat_delta,
            lng_delta=region.lng_delta,
        )


class Preview(BaseModel):
    annotations: List[MapAnnotation] = Field(default_factory=list)
    polyline: List[LatLng] = Field(default_factory=list)
    region: Optional[MapRegion] = None

    @classmethod
    def from_preview(cls, preview: RoutePreview) -> "Preview":
        return cls(
            annotations=[MapAnnotation.from_annotation(a) for a in preview.annotations],
            polyline=[LatLng.from_coordinate(c) for c in preview.polyline],
            region=MapRegion.from_region(preview.region) if preview.region is not None else None,
        )


class EstimateFields(BaseModel):
    legs: Dict[str, Leg] = Field(default_factory=dict, description="Inbound leg per section id")
    return_leg: Optional[Leg] = Field(default=None, alias="returnLeg")
    total_seconds: Optional[float] = Field(default=None, alias="totalSeconds")
    finish_time: Optional[datetime] = Field(default=None, alias="finishTime")
    preview: Optional[Preview] = None
    notice: Optional[str] = None

    model_config = {"populate_by_name": True}

    @staticmethod
    def estimate_fields(estimate: Optional[TravelEstimate]) -> dict:
        if estimate is None:
            return {}
        return {
            "legs": {stop_id: Leg.from_route_leg(leg) for stop_id, leg in estimate.legs.items()},
            "return_leg": Leg.from_route_leg(estimate.return_leg) if estimate.return_leg else None,
            "total_seconds": estimate.total_seconds,
            "finish_time": estimate.finish_time,
        }


class OptimiseRouteResponse(EstimateFields):
    sections: List[Section]
    reasons: Dict[str, str] = Field(default_factory=dict, description="Why each placed stop was chosen")
    degraded: bool = False
    message: Optional[str] = None


class TravelEstimatesResponse(EstimateFields):
    pass


class LocationOrder(BaseModel):
    id: Optional[str] = None
    location_id: Optional[str] = Field(default=None, alias="locationId")
    position: int

    model_config = {"populate_by_name": True}


class LocationOrderResponse(BaseModel):
    location_orders: List[LocationOrder] = Field(default_factory=list, alias="locationOrders")

    model_config = {"populate_by_name": True}
