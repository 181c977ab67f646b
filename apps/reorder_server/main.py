"""FastAPI server exposing route optimisation and travel estimates for restocking runs."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

from cachetools import TTLCache
from dotenv import load_dotenv
from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .schemas.models import (
    EstimateFields,
    LocationOrderRequest,
    LocationOrderResponse,
    OptimiseRouteRequest,
    OptimiseRouteResponse,
    Preview,
    Section,
    TravelEstimatesRequest,
    TravelEstimatesResponse,
)
from restock_router.providers import (
    FrameScheduleSource,
    GooglePlacesGeocoder,
    GoogleRoutesEta,
    RunsApiClient,
)
from restock_router.routing import (
    OptimisationError,
    PersistenceError,
    ReorderPlanner,
    RequestSuperseded,
)
from restock_router.tools.config_loader import ConfigLoader

load_dotenv()

logger = logging.getLogger(__name__)

ANONYMOUS_SESSION = "anonymous"

app = FastAPI(title="Restock Router", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Session id -> ReorderPlanner (owns the place cache and request budget)
_sessions: Optional[TTLCache] = None


def _load_profile() -> Dict[str, Any]:
    return ConfigLoader.load_default_or_env_profile()


def _session_store(profile: Dict[str, Any]) -> TTLCache:
    global _sessions
    if _sessions is None:
        sessions_cfg = profile.get("sessions", {})
        _sessions = TTLCache(
            maxsize=sessions_cfg.get("max_sessions", 256),
            ttl=sessions_cfg.get("ttl_seconds", 1800),
        )
    return _sessions


def _runs_api_base_url(profile: Dict[str, Any]) -> Optional[str]:
    return os.getenv("RUNS_API_BASE_URL") or profile.get("runs_api", {}).get("base_url")


def _runs_api_client(profile: Dict[str, Any], access_token: str) -> Optional[RunsApiClient]:
    base_url = _runs_api_base_url(profile)
    if not base_url:
        return None
    timeout = profile.get("runs_api", {}).get("timeout_seconds", 30.0)
    return RunsApiClient(base_url, access_token, timeout=timeout)


def build_planner(profile: Dict[str, Any]) -> ReorderPlanner:
    """Create a planner for a new session from the active profile."""
    eta_cfg = profile.get("eta", {})
    geocode_cfg = profile.get("geocode", {})

    schedule_source = None
    schedules_csv = os.getenv("LOCATION_SCHEDULES_CSV")
    if schedules_csv:
        schedule_source = FrameScheduleSource.from_csv(schedules_csv)

    order_sink = None
    service_token = os.getenv("RUNS_API_TOKEN")
    if service_token:
        order_sink = _runs_api_client(profile, service_token)

    return ReorderPlanner.from_profile(
        profile,
        geocoder=GooglePlacesGeocoder(language=geocode_cfg.get("language", "en")),
        oracle=GoogleRoutesEta(
            travel_mode=eta_cfg.get("travel_mode", "DRIVE"),
            routing_preference=eta_cfg.get("routing_preference", "TRAFFIC_AWARE"),
        ),
        schedule_source=schedule_source,
        order_sink=order_sink,
    )


def get_planner(session_id: Optional[str]) -> ReorderPlanner:
    profile = _load_profile()
    sessions = _session_store(profile)
    key = session_id or ANONYMOUS_SESSION

    planner = sessions.get(key)
    if planner is None:
        planner = build_planner(profile)
        sessions[key] = planner
        logger.info(f"Started reorder session {key!r} ({len(sessions)} active)")
    return planner


def _start_time(planner: ReorderPlanner, run_id: str, requested: Optional[datetime]) -> datetime:
    if requested is not None:
        planner.remember_start_time(run_id, requested)
        return requested
    return planner.start_time_for(run_id)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@app.get("/health")
async def health_check() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/actions/optimise_route")
async def optimise_route_action(
    request: OptimiseRouteRequest,
    x_session_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    planner = get_planner(x_session_id)
    start_time = _start_time(planner, request.run_id, request.start_time)
    sections = request.run_sections()

    try:
        outcome = await planner.run_latest(
            lambda: planner.optimise(request.shop_address, sections, start_time)
        )
    except OptimisationError as exc:
        raise HTTPException(status_code=422, detail={"code": exc.code, "message": exc.message}) from exc
    except RequestSuperseded as exc:
        raise HTTPException(status_code=409, detail="Superseded by a newer request.") from exc

    sequence = outcome.sequence
    response = OptimiseRouteResponse(
        sections=[Section.from_run_section(section) for section in outcome.sections],
        reasons={
            placed.stop.stop_id: placed.reason
            for placed in (sequence.sequenced if sequence else [])
            if placed.reason
        },
        degraded=sequence.degraded if sequence else False,
        message=outcome.message,
        notice=outcome.notice,
        preview=Preview.from_preview(outcome.preview) if outcome.preview else None,
        **EstimateFields.estimate_fields(outcome.estimate),
    )
    return response.model_dump(by_alias=True)


@app.post("/actions/travel_estimates")
async def travel_estimates_action(
    request: TravelEstimatesRequest,
    x_session_id: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    planner = get_planner(x_session_id)
    start_time = _start_time(planner, request.run_id, request.start_time)
    sections = request.run_sections()

    try:
        outcome = await planner.run_latest(
            lambda: planner.refresh_estimates(request.shop_address, sections, start_time)
        )
    except RequestSuperseded as exc:
        raise HTTPException(status_code=409, detail="Superseded by a newer request.") from exc

    response = TravelEstimatesResponse(
        notice=outcome.notice,
        preview=Preview.from_preview(outcome.preview),
        **EstimateFields.estimate_fields(outcome.estimate),
    )
    return response.model_dump(by_alias=True)


@app.put("/actions/runs/{run_id}/location_order")
async def location_order_action(
    run_id: str,
    request: LocationOrderRequest,
    x_session_id: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    planner = get_planner(x_session_id)

    sink = None
    token = _bearer_token(authorization)
    if token:
        sink = _runs_api_client(_load_profile(), token)
    if sink is None and planner.order_sink is None:
        raise HTTPException(status_code=401, detail="Sign in to save the location order.")

    sections = [section.to_run_section() for section in request.sections]
    try:
        orders = await planner.save_order(run_id, sections, sink=sink)
    except PersistenceError as exc:
        status = exc.status_code if exc.status_code in (400, 401) else 502
        if not sections:
            status = 400
        raise HTTPException(status_code=status, detail=exc.message) from exc

    response = LocationOrderResponse.model_validate({"locationOrders": orders})
    return response.model_dump(by_alias=True)


__all__ = ["app"]
