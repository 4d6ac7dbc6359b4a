"""Ghost Trees — arborist tree-removal records on a clustered map.

Main FastAPI application.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from loguru import logger

from app.config import Settings, settings
from app.routers.trees import router as trees_router
from app.routers.trees import start_boundary_load, start_dataset_load
from ghost_trees.layers.cluster import ClusterLayerManager
from ghost_trees.layers.map_host import MapHost, TileLayer
from ghost_trees.layers.render import render_html
from ghost_trees.layers.store import FeatureStore
from ghost_trees.loader import DocumentLoader
from ghost_trees.session import TreeMapSession


def create_session(config: Settings = settings) -> TreeMapSession:
    """Build a mounted session from settings."""
    host = MapHost(
        (config.map_center_lat, config.map_center_lng),
        config.map_zoom,
        min_zoom=config.map_min_zoom,
        max_zoom=config.map_max_zoom,
        size=(config.map_width, config.map_height),
        tile_layer=TileLayer(
            url=config.tile_url,
            attribution=config.tile_attribution,
            max_zoom=config.tile_max_zoom,
        ),
    )
    session = TreeMapSession(
        host,
        store=FeatureStore(top_n=config.record_type_top_n),
        clusters=ClusterLayerManager(
            max_cluster_radius=config.cluster_radius,
            chunk_size=config.cluster_chunk_size,
            popup_max_width=config.popup_max_width,
        ),
    )
    session.mount()
    return session


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the session, start both document loads, tear down on exit."""
    client = httpx.AsyncClient(follow_redirects=True)
    session = create_session()
    loader = DocumentLoader(client, timeout=settings.fetch_timeout)
    app.state.tree_session = session
    app.state.document_loader = loader

    start_dataset_load(app.state)
    start_boundary_load(app.state)
    logger.info(f"{settings.app_name} started (dataset: {settings.dataset_url})")

    yield

    await loader.close()
    session.unmount()
    await client.aclose()
    logger.info(f"{settings.app_name} stopped")


app = FastAPI(
    title=settings.app_name,
    description="Arborist tree-removal records on a clustered map",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(trees_router)


@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    """The map page."""
    session: TreeMapSession = request.app.state.tree_session
    return HTMLResponse(render_html(session.host))


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": "0.1.0",
        "system": settings.app_name,
    }

