"""Tests for the application factory pieces and lifespan wiring."""
from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from app.config import Settings, settings
from app.main import app, create_session


@pytest.mark.unit
class TestCreateSession:
    def test_session_from_settings(self):
        """Session view, clustering and tiles come from Settings."""
        config = Settings(map_zoom=12, map_max_zoom=17, cluster_chunk_size=50)
        session = create_session(config)
        assert session.host.zoom == 12
        assert session.host.max_zoom == 17
        assert session.clusters.mounted
        assert session.host.tile_layer.url == config.tile_url

    def test_zoom_clamped_to_range(self):
        """A home zoom past max_zoom is clamped."""
        session = create_session(Settings(map_zoom=30, map_max_zoom=18))
        assert session.host.zoom == 18


@pytest.mark.unit
class TestLifespan:
    def test_startup_loads_documents(self, tmp_path, monkeypatch, tree_document, boundary_document):
        """Lifespan wires the session and loader; shutdown removes every layer."""
        data_path = tmp_path / "data.geojson"
        data_path.write_text(json.dumps(tree_document), encoding="utf-8")
        boundary_path = tmp_path / "atlanta.geojson"
        boundary_path.write_text(json.dumps(boundary_document), encoding="utf-8")
        monkeypatch.setattr(settings, "dataset_url", str(data_path))
        monkeypatch.setattr(settings, "boundary_url", str(boundary_path))

        with TestClient(app) as client:
            assert client.get("/health").json()["status"] == "operational"
            data = client.post("/api/trees/reload", params={"wait": True}).json()
            assert data["status"] == "loaded"
            index = client.get("/")
            assert index.status_code == 200
            assert "markerClusterGroup" in index.text

        assert app.state.tree_session.host.list_layers() == []
