"""HTTP REST endpoints for the Orrery API.

- /health              — Health check
- /bodies              — List the body catalog with orbital elements
- /bodies/{id}/orbit   — Orbit path points for a body
- /ephemeris           — Body positions for a date (cache / live / fallback)
- /cache/status        — Whether the Redis cache is reachable
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from config import settings
from ephemeris.bodies import ALL_BODIES, ALL_BODY_IDS, BODY_BY_ID, BODY_BY_NAME, CelestialBody
from ephemeris.cache import EphemerisCacheLayer
from ephemeris.resolver import EphemerisResolver, ResolveResult
from mechanics.orbit import classify_opacity, generate_orbit_path, position_at_date
from mechanics.transforms import AU_TO_UNIT, didactic_radius, parse_iso_date

logger = logging.getLogger("orrery.api")
router = APIRouter()


# --------------------------------------------------------------------------- #
#  Shared validators
# --------------------------------------------------------------------------- #

def _validate_iso_date(v: str) -> str:
    """Normalise a query date to ``YYYY-MM-DD``, raising 422 on bad input."""
    try:
        return datetime.fromisoformat(v.strip()).date().isoformat()
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=422,
            detail=f"Invalid date format: '{v}'. Expected ISO format: YYYY-MM-DD",
        )


def _today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


# --------------------------------------------------------------------------- #
#  Pydantic models for responses
# --------------------------------------------------------------------------- #

class ElementsOut(BaseModel):
    semi_major_axis_au: float
    eccentricity: float
    inclination_deg: float
    long_asc_node_deg: float
    long_perihelion_deg: float
    orbital_period_days: float


class BodyOut(BaseModel):
    body_id: str
    name: str
    body_class: str
    speed_tier: str
    radius: float
    render_radius: float
    color: str
    elements: ElementsOut | None = None


class Vector3Out(BaseModel):
    x: float
    y: float
    z: float


class EphemerisRecordOut(BaseModel):
    bodyId: str
    name: str
    position: Vector3Out
    velocity: Vector3Out | None = None
    timestamp: str


class EphemerisMeta(BaseModel):
    source: str
    timestamp: str
    requestedDate: str
    cacheHits: int | None = None
    cacheMisses: int | None = None
    sources: dict[str, str] = Field(default_factory=dict)
    failures: dict[str, str] = Field(default_factory=dict)


class EphemerisResponse(BaseModel):
    data: list[EphemerisRecordOut]
    meta: EphemerisMeta


# --------------------------------------------------------------------------- #
#  Helpers
# --------------------------------------------------------------------------- #

def _resolve_body(identifier: str) -> CelestialBody:
    """Resolve a body by id or name (case-insensitive)."""
    ident = identifier.strip()
    if ident in BODY_BY_ID:
        return BODY_BY_ID[ident]
    if ident.lower() in BODY_BY_NAME:
        return BODY_BY_NAME[ident.lower()]
    raise HTTPException(status_code=404, detail=f"Unknown body: {identifier}")


def _parse_ids(ids: str | None) -> list[str]:
    if not ids:
        return list(ALL_BODY_IDS)
    parsed = [i.strip() for i in ids.split(",") if i.strip()]
    unknown = [i for i in parsed if i not in BODY_BY_ID]
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown body ids: {', '.join(unknown)}")
    if not parsed:
        raise HTTPException(status_code=422, detail="No body ids given")
    return parsed


def _get_resolver(request: Request) -> EphemerisResolver:
    return request.app.state.resolver


def _get_cache(request: Request) -> EphemerisCacheLayer:
    return request.app.state.cache


def _to_response(result: ResolveResult) -> EphemerisResponse:
    return EphemerisResponse(
        data=[EphemerisRecordOut(**r.to_dict()) for r in result.data],
        meta=EphemerisMeta(
            source=result.source.value,
            timestamp=result.timestamp,
            requestedDate=result.requested_date,
            cacheHits=result.cache_hits,
            cacheMisses=result.cache_misses,
            sources={k: v.value for k, v in result.sources.items()},
            failures=result.failures,
        ),
    )


# --------------------------------------------------------------------------- #
#  Endpoints
# --------------------------------------------------------------------------- #

@router.get("/health")
async def health():
    return {"status": "ok", "service": "orrery"}


@router.get("/bodies", response_model=list[BodyOut])
async def list_bodies():
    """List all catalog bodies with their orbital elements."""
    out = []
    for b in ALL_BODIES:
        elements = None
        if b.elements is not None:
            elements = ElementsOut(
                semi_major_axis_au=b.elements.semi_major_axis_au,
                eccentricity=b.elements.eccentricity,
                inclination_deg=b.elements.inclination_deg,
                long_asc_node_deg=b.elements.long_asc_node_deg,
                long_perihelion_deg=b.elements.long_perihelion_deg,
                orbital_period_days=b.elements.orbital_period_days,
            )
        out.append(BodyOut(
            body_id=b.body_id,
            name=b.name,
            body_class=b.body_class.value,
            speed_tier=b.speed_tier.value,
            radius=b.radius,
            render_radius=didactic_radius(b),
            color=b.color,
            elements=elements,
        ))
    return out


@router.get("/bodies/{identifier}/orbit")
async def get_orbit(
    identifier: str,
    segments: int = Query(default=settings.orbit_segments, ge=3, le=4096),
    scene_units: bool = Query(default=True),
    date: str | None = Query(default=None, description="Place the body marker at this date"),
):
    """Closed orbit path for a body, Sun at the focus.

    Points are in scene units (1 unit = 1 million km) or AU.  ``marker``
    is an approximate two-body position for ``date`` on the same path.
    """
    body = _resolve_body(identifier)
    if body.elements is None:
        raise HTTPException(status_code=422, detail=f"{body.name} has no orbit")

    when = parse_iso_date(_validate_iso_date(date or _today_iso()))
    scale = AU_TO_UNIT if scene_units else 1.0
    path = generate_orbit_path(body.elements, segments, scale)
    marker = position_at_date(
        body.elements, datetime(when.year, when.month, when.day, tzinfo=timezone.utc), scale,
    )
    opacity = classify_opacity(body.elements.semi_major_axis_au * AU_TO_UNIT)

    return {
        "body": body.name,
        "body_id": body.body_id,
        "scene_units": scene_units,
        "closed": True,
        "n_points": len(path),
        "opacity": opacity,
        "period_days": body.elements.orbital_period_days,
        "color": body.color,
        "points": [[float(p[0]), float(p[1]), float(p[2])] for p in path],
        "marker": [float(marker[0]), float(marker[1]), float(marker[2])],
    }


@router.get("/ephemeris", response_model=EphemerisResponse, response_model_exclude_none=True)
async def get_ephemeris(
    request: Request,
    date: str | None = Query(default=None, description="ISO date, default today (UTC)"),
    ids: str | None = Query(default=None, description="Comma-separated body ids"),
    force: bool = Query(default=False, description="Bypass the cache read"),
):
    """Body positions in km (scene frame) with the data source in ``meta``."""
    requested_date = _validate_iso_date(date) if date else _today_iso()
    body_ids = _parse_ids(ids)

    result = await _get_resolver(request).resolve(body_ids, requested_date, force_refresh=force)
    logger.info("Ephemeris %s for %d bodies on %s", result.source.value, len(result.data), requested_date)
    return _to_response(result)


@router.get("/cache/status")
async def cache_status(request: Request):
    cache = _get_cache(request)
    return {"enabled": cache.enabled, "available": await cache.is_available()}
