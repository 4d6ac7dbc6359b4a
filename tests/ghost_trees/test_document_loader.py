"""Tests for async document fetching and per-slot supersession."""

import asyncio
import json

import httpx
import pytest

from ghost_trees import TreeMapSession
from ghost_trees.errors import LoadError
from ghost_trees.layers import MapHost
from ghost_trees.loader import DocumentLoader, fetch_document
from ghost_trees.session import ERROR

DATA_URL = "https://data.example.com/data.geojson"


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class _Recorder:
    def __init__(self):
        self.documents = []
        self.errors = []

    def on_success(self, document):
        self.documents.append(document)

    def on_error(self, message):
        self.errors.append(message)


@pytest.mark.unit
class TestFetchDocument:
    """fetch_document — remote and local sources."""

    @pytest.mark.anyio
    async def test_remote_json(self, tree_document):
        """A 200 response is parsed as JSON."""
        async with _client(lambda request: httpx.Response(200, json=tree_document)) as client:
            document = await fetch_document(client, DATA_URL)
        assert len(document["features"]) == 5

    @pytest.mark.anyio
    async def test_http_error_status(self):
        """Error statuses raise LoadError with the code."""
        async with _client(lambda request: httpx.Response(404)) as client:
            with pytest.raises(LoadError, match="404"):
                await fetch_document(client, DATA_URL)

    @pytest.mark.anyio
    async def test_invalid_json(self):
        """A non-JSON body raises LoadError."""
        async with _client(lambda request: httpx.Response(200, text="not json")) as client:
            with pytest.raises(LoadError, match="parse JSON"):
                await fetch_document(client, DATA_URL)

    @pytest.mark.anyio
    async def test_transport_error(self):
        """Connection failures raise LoadError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(LoadError, match="Failed to fetch"):
                await fetch_document(client, DATA_URL)

    @pytest.mark.anyio
    async def test_local_file(self, tmp_path, boundary_document):
        """Non-URL values are read from disk."""
        path = tmp_path / "atlanta.geojson"
        path.write_text(json.dumps(boundary_document), encoding="utf-8")
        async with _client(lambda request: httpx.Response(500)) as client:
            document = await fetch_document(client, str(path))
        assert document["features"][0]["properties"]["NAME"] == "Atlanta"

    @pytest.mark.anyio
    async def test_missing_local_file(self, tmp_path):
        """A missing file raises LoadError."""
        async with _client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(LoadError, match="Failed to read"):
                await fetch_document(client, str(tmp_path / "missing.geojson"))

    @pytest.mark.anyio
    async def test_invalid_utf8_local_file(self, tmp_path):
        """Undecodable bytes are a parse failure, not a crash."""
        path = tmp_path / "data.geojson"
        path.write_bytes(b'{"features": [], "name": "\xff\xfe"}')
        async with _client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(LoadError, match="parse JSON"):
                await fetch_document(client, str(path))

    @pytest.mark.anyio
    async def test_invalid_url(self):
        """A URL httpx refuses to build is reported as a fetch failure."""
        async with _client(lambda request: httpx.Response(200, json={})) as client:
            with pytest.raises(LoadError, match="Failed to fetch"):
                await fetch_document(client, "https://data.example.com/da\x00ta.geojson")


@pytest.mark.unit
class TestDocumentLoader:
    """DocumentLoader — exactly one callback per current task."""

    @pytest.mark.anyio
    async def test_success_callback(self, tree_document):
        """A successful fetch calls on_success once."""
        recorder = _Recorder()
        async with _client(lambda request: httpx.Response(200, json=tree_document)) as client:
            loader = DocumentLoader(client)
            loader.start("dataset", DATA_URL, recorder.on_success, recorder.on_error)
            assert loader.is_pending("dataset")
            await loader.wait("dataset")
        assert len(recorder.documents) == 1
        assert recorder.errors == []
        assert not loader.is_pending("dataset")

    @pytest.mark.anyio
    async def test_error_callback(self):
        """A failed fetch calls on_error once."""
        recorder = _Recorder()
        async with _client(lambda request: httpx.Response(503)) as client:
            loader = DocumentLoader(client)
            loader.start("dataset", DATA_URL, recorder.on_success, recorder.on_error)
            await loader.wait("dataset")
        assert recorder.documents == []
        assert len(recorder.errors) == 1
        assert "503" in recorder.errors[0]

    @pytest.mark.anyio
    async def test_invalid_utf8_dataset_ends_in_error_state(self, tmp_path):
        """A dataset that cannot be decoded leaves the session in error, not loading."""
        path = tmp_path / "data.geojson"
        path.write_bytes(b'{"features": [], "name": "\xff\xfe"}')
        session = TreeMapSession(MapHost((33.749, -84.39), 11))
        session.mount()
        session.begin_load()
        async with _client(lambda request: httpx.Response(500)) as client:
            loader = DocumentLoader(client)
            loader.start("dataset", str(path), session.apply_dataset, session.fail_load)
            await loader.wait("dataset")
        assert session.state.status == ERROR
        assert "parse JSON" in session.state.error

    @pytest.mark.anyio
    async def test_unexpected_error_reported(self):
        """Any other failure inside the fetch still reaches on_error."""
        def handler(request):
            raise RuntimeError("transport exploded")

        recorder = _Recorder()
        async with _client(handler) as client:
            loader = DocumentLoader(client)
            loader.start("dataset", DATA_URL, recorder.on_success, recorder.on_error)
            await loader.wait("dataset")
        assert recorder.documents == []
        assert len(recorder.errors) == 1
        assert "transport exploded" in recorder.errors[0]

    @pytest.mark.anyio
    async def test_reload_supersedes_slow_request(self):
        """Only the newest request in a slot delivers."""
        release = asyncio.Event()

        async def handler(request):
            if request.url.path == "/old.geojson":
                await release.wait()
                return httpx.Response(200, json={"features": [], "name": "old"})
            return httpx.Response(200, json={"features": [], "name": "new"})

        recorder = _Recorder()
        async with _client(handler) as client:
            loader = DocumentLoader(client)
            first = loader.start(
                "dataset", "https://data.example.com/old.geojson",
                recorder.on_success, recorder.on_error,
            )
            await asyncio.sleep(0)
            loader.start(
                "dataset", "https://data.example.com/new.geojson",
                recorder.on_success, recorder.on_error,
            )
            release.set()
            await loader.wait("dataset")
            await asyncio.gather(first, return_exceptions=True)

        assert first.cancelled()
        assert [d["name"] for d in recorder.documents] == ["new"]
        assert recorder.errors == []

    @pytest.mark.anyio
    async def test_slots_are_independent(self, tree_document, boundary_document):
        """Dataset and boundary loads do not cancel each other."""
        def handler(request):
            if "atlanta" in request.url.path:
                return httpx.Response(200, json=boundary_document)
            return httpx.Response(200, json=tree_document)

        recorder = _Recorder()
        async with _client(handler) as client:
            loader = DocumentLoader(client)
            loader.start("dataset", DATA_URL, recorder.on_success, recorder.on_error)
            loader.start(
                "boundary", "https://data.example.com/atlanta.geojson",
                recorder.on_success, recorder.on_error,
            )
            await loader.wait("dataset")
            await loader.wait("boundary")
        assert len(recorder.documents) == 2

    @pytest.mark.anyio
    async def test_close_cancels_without_callbacks(self):
        """close() cancels in-flight loads silently."""
        never = asyncio.Event()

        async def handler(request):
            await never.wait()
            return httpx.Response(200, json={"features": []})

        recorder = _Recorder()
        async with _client(handler) as client:
            loader = DocumentLoader(client)
            task = loader.start("dataset", DATA_URL, recorder.on_success, recorder.on_error)
            await asyncio.sleep(0)
            await loader.close()
        assert task.cancelled()
        assert recorder.documents == []
        assert recorder.errors == []

    @pytest.mark.anyio
    async def test_wait_unknown_slot(self):
        """Waiting on an unused slot returns at once."""
        async with _client(lambda request: httpx.Response(200)) as client:
            loader = DocumentLoader(client)
            await loader.wait("nothing")
            assert not loader.is_pending("nothing")
