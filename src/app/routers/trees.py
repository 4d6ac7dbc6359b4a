"""Tree records API — load status, filters, focus, visible features, map page.

The session lives on ``app.state.tree_session``; every endpoint returns 503
when it is missing. All endpoints are async so they share the event loop
with the document loads and never interleave with a refresh.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from loguru import logger
from pydantic import BaseModel

from ghost_trees.details import EMPTY_HINT, detail_rows, filter_status
from ghost_trees.errors import DatasetNotLoadedError
from ghost_trees.filters import MIN_TREES_CEILING, MIN_TREES_FLOOR
from ghost_trees.layers.exporters.geojson import export_features
from ghost_trees.layers.render import render_html
from ghost_trees.session import LOADED, TreeMapSession

router = APIRouter(prefix="/api/trees", tags=["trees"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class FilterUpdate(BaseModel):
    """Partial filter update. Omitted fields are left unchanged; null clears."""
    start_year: int | str | None = None
    end_year: int | str | None = None
    min_trees: int | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_session(request: Request) -> TreeMapSession | None:
    """Get the tree map session from app state. Returns None if unavailable."""
    return getattr(request.app.state, "tree_session", None)


def _unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"error": "Tree map session not available"},
    )


def _filters_payload(session: TreeMapSession) -> dict:
    result = session.state.load_result
    return {
        "enabled": session.state.status == LOADED,
        "filters": session.state.filters.as_dict(),
        "years": result.years if result else [],
        "year_counts": result.year_counts if result else {},
        "min_trees_range": [MIN_TREES_FLOOR, MIN_TREES_CEILING],
        "shown_count": session.shown_count,
        "total_count": session.total_count,
    }


def _view_payload(session: TreeMapSession) -> dict:
    host = session.host
    bounds = host.bounds()
    owner = host.popup_owner
    return {
        "center": {"lat": host.center[0], "lng": host.center[1]},
        "zoom": host.zoom,
        "bounds": {
            "south": bounds.south,
            "west": bounds.west,
            "north": bounds.north,
            "east": bounds.east,
        },
        "open_popup": getattr(owner, "point_id", None),
    }


def start_dataset_load(state) -> None:
    """Kick off the dataset fetch for the session on ``state``."""
    from app.config import settings

    session: TreeMapSession = state.tree_session
    session.begin_load()
    state.document_loader.start(
        "dataset",
        settings.dataset_url,
        on_success=session.apply_dataset,
        on_error=session.fail_load,
    )


def start_boundary_load(state) -> None:
    """Kick off the boundary fetch; failure only drops the overlay."""
    from app.config import settings

    session: TreeMapSession = state.tree_session

    def on_error(message: str) -> None:
        logger.warning(f"Failed to load city limits: {message}")
        session.apply_boundary(None)

    state.document_loader.start(
        "boundary",
        settings.boundary_url,
        on_success=session.apply_boundary,
        on_error=on_error,
    )


# ---------------------------------------------------------------------------
# Status and filters
# ---------------------------------------------------------------------------

@router.get("/status")
async def tree_status(request: Request):
    """Load status, dataset summary and the 'Showing N of M' line."""
    session = _get_session(request)
    if session is None:
        return _unavailable()

    state = session.state
    result = state.load_result
    return {
        "status": state.status,
        "error": state.error,
        "dataset_name": result.dataset_name if result else None,
        "feature_count": result.feature_count if result else None,
        "sample_property_keys": result.sample_property_keys if result else [],
        "record_type_counts": [
            {"record_type": t, "count": c}
            for t, c in (result.record_type_counts if result else [])
        ],
        "years": result.years if result else [],
        "shown_count": session.shown_count,
        "total_count": session.total_count,
        "summary": filter_status(session.shown_count, session.total_count),
    }


@router.get("/filters")
async def get_filters(request: Request):
    """Current filter state and the domains to pick from."""
    session = _get_session(request)
    if session is None:
        return _unavailable()
    return _filters_payload(session)


@router.post("/filters")
async def update_filters(request: Request, body: FilterUpdate):
    """Apply a partial filter update. Clears the focused record."""
    session = _get_session(request)
    if session is None:
        return _unavailable()

    try:
        session.on_filter_change(body.model_dump(exclude_unset=True))
    except DatasetNotLoadedError as e:
        return JSONResponse(status_code=409, content={"error": str(e)})
    return _filters_payload(session)


# ---------------------------------------------------------------------------
# Visible data
# ---------------------------------------------------------------------------

@router.get("/features")
async def visible_features(request: Request):
    """The visible features as a GeoJSON FeatureCollection."""
    session = _get_session(request)
    if session is None:
        return _unavailable()
    result = session.state.load_result
    return export_features(
        session.visible_features,
        name=result.dataset_name if result else None,
    )


@router.get("/points")
async def visible_points(request: Request, limit: int = Query(default=0, ge=0)):
    """Renderable points of the visible set (limit=0 means all)."""
    session = _get_session(request)
    if session is None:
        return _unavailable()
    points = session.visible_points
    total = len(points)
    if limit:
        points = points[:limit]
    return {
        "points": [
            {"id": p.point_id, "lat": p.lat, "lng": p.lng, "year": p.year}
            for p in points
        ],
        "count": len(points),
        "total": total,
    }


# ---------------------------------------------------------------------------
# Focus
# ---------------------------------------------------------------------------

@router.post("/focus/{feature_id}")
async def focus_feature(request: Request, feature_id: str):
    """Reveal a record's marker and open its popup. Hidden ids are a no-op."""
    session = _get_session(request)
    if session is None:
        return _unavailable()
    focused = session.on_focus_request(feature_id)
    return {
        "focused": focused,
        "feature_id": session.state.focused_id,
        "view": _view_payload(session),
    }


@router.delete("/focus")
async def clear_focus(request: Request):
    session = _get_session(request)
    if session is None:
        return _unavailable()
    session.on_clear_focus()
    return {"focused": False, "feature_id": None}


@router.get("/selected")
async def selected_feature(request: Request):
    """Detail rows for the focused record, or a hint when none is selected."""
    session = _get_session(request)
    if session is None:
        return _unavailable()
    feature = session.selected_feature
    if feature is None:
        return {"feature_id": None, "rows": [], "hint": EMPTY_HINT}
    return {
        "feature_id": feature.feature_id,
        "rows": [{"label": label, "value": value} for label, value in detail_rows(feature)],
        "properties": dict(feature.properties),
    }


# ---------------------------------------------------------------------------
# Map
# ---------------------------------------------------------------------------

@router.get("/view")
async def map_view(request: Request):
    session = _get_session(request)
    if session is None:
        return _unavailable()
    return _view_payload(session)


@router.post("/home")
async def map_home(request: Request):
    """Reset the map to its home centre and zoom."""
    session = _get_session(request)
    if session is None:
        return _unavailable()
    session.home()
    return _view_payload(session)


@router.get("/map", response_class=HTMLResponse)
async def map_page(request: Request):
    """Leaflet page rendering the current map state."""
    session = _get_session(request)
    if session is None:
        return _unavailable()
    return HTMLResponse(render_html(session.host))


@router.post("/reload")
async def reload_documents(request: Request, wait: bool = Query(default=False)):
    """Re-fetch both documents. Earlier in-flight loads are cancelled.

    With ``wait=true`` the response is sent after both loads settle.
    """
    session = _get_session(request)
    loader = getattr(request.app.state, "document_loader", None)
    if session is None or loader is None:
        return _unavailable()

    start_dataset_load(request.app.state)
    start_boundary_load(request.app.state)
    logger.info("Tree documents reload requested")
    if wait:
        await loader.wait("dataset")
        await loader.wait("boundary")
    return {"status": session.state.status, "error": session.state.error}
