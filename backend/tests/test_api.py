"""Integration tests for the LabelForge API."""

import base64
import os
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from labelforge.api.app import create_app
from labelforge.api.endpoints import create_templates_router
from labelforge.scripting import FunctionRegistry
from labelforge.scripting.builtins import register_all_builtins
from labelforge.templates import TemplateRenderer

TEMPLATE = """^XA
^FO50,50^FD<script>return ucase(Shipment.Receiver.City)</script>^FS
^FO50,100^FD<SortCode>^FS
^XZ"""


@pytest.fixture
def client():
    """Create a test client that loads the bundled presets."""
    saved_path = os.environ.pop("LABELFORGE_PRESETS_PATH", None)

    # Change to backend directory so the presets can be found
    original_cwd = Path.cwd()
    backend_dir = Path(__file__).parent.parent
    os.chdir(backend_dir)

    from labelforge.api.app import app

    try:
        with TestClient(app) as client:
            yield client
    finally:
        os.chdir(original_cwd)
        FunctionRegistry.clear()
        if saved_path is not None:
            os.environ["LABELFORGE_PRESETS_PATH"] = saved_path


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAnalyze:
    def test_analyze(self, client):
        response = client.post("/api/templates/analyze", json={"template": TEMPLATE})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["placeholders"] == ["SortCode"]
        assert data["scriptBlocks"] == 1
        assert data["scriptVariables"] == ["Shipment.Receiver.City"]
        assert data["hasScripts"] is True


class TestRender:
    def test_render_with_preset(self, client):
        response = client.post(
            "/api/templates/render",
            json={"template": TEMPLATE, "preset": "DPD Sweden", "values": {"SortCode": "S01"}},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert "^FDMALMÖ^FS" in data["text"]
        assert "^FDS01^FS" in data["text"]
        assert data["success"] is True
        assert data["mode"] == "auto"
        assert data["blocks"][0]["output"] == "MALMÖ"

    def test_explicit_context_wins_over_preset(self, client):
        response = client.post(
            "/api/templates/render",
            json={
                "template": TEMPLATE,
                "preset": "Default",
                "context": {"Shipment.Receiver.City": "Oslo"},
            },
        )

        assert "^FDOSLO^FS" in response.json()["data"]["text"]

    def test_manual_mode(self, client):
        response = client.post(
            "/api/templates/render", json={"template": TEMPLATE, "mode": "manual"}
        )

        data = response.json()["data"]
        assert "script" not in data["text"]
        assert data["warnings"] == ["Script 1: return ucase(Shipment.Receiver.City)"]

    def test_failed_block(self, client):
        response = client.post(
            "/api/templates/render",
            json={"template": "^XA<script>return nosuch()</script>^XZ"},
        )

        data = response.json()["data"]
        assert data["text"] == "^XA^XZ"
        assert data["success"] is False
        assert data["failures"] == [
            {"index": 0, "message": "Unknown function: nosuch", "kind": "authoring"}
        ]

    def test_unknown_preset(self, client):
        response = client.post(
            "/api/templates/render", json={"template": TEMPLATE, "preset": "Nope"}
        )

        assert response.status_code == 404

    def test_preview_without_raster_renderer(self, client):
        response = client.post("/api/templates/preview", json={"template": TEMPLATE})

        assert response.status_code == 503


class TestExecute:
    def test_execute_with_context(self, client):
        response = client.post(
            "/api/scripts/execute",
            json={"script": "return shipment.STATUS", "context": {"Shipment.Status": "99"}},
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "success": True,
            "output": "99",
            "error": None,
            "errorKind": None,
            "diagnostics": [],
        }

    def test_execute_with_preset(self, client):
        response = client.post(
            "/api/scripts/execute",
            json={"script": 'return Shipment.Attributes("sortcode")', "preset": "Default"},
        )

        assert response.json()["data"]["output"] == "S01"

    def test_execute_failure(self, client):
        response = client.post("/api/scripts/execute", json={"script": "return foo()"})

        data = response.json()["data"]
        assert data["success"] is False
        assert data["error"] == "Unknown function: foo"
        assert data["errorKind"] == "authoring"


class TestPresets:
    def test_list_presets(self, client):
        response = client.get("/api/presets")

        assert response.status_code == 200
        presets = response.json()["data"]
        names = {p["name"] for p in presets}
        assert {"Default", "DPD Sweden"} <= names
        assert all("data" not in p for p in presets)

    def test_get_preset(self, client):
        response = client.get("/api/presets/error status")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["extends"] == "Default"
        assert data["data"]["Shipment"]["Status"] == "99"
        assert data["data"]["Shipment"]["OrderNo"] == "ORD-12345"

    def test_get_unknown_preset(self, client):
        response = client.get("/api/presets/Nope")

        assert response.status_code == 404
        assert response.json()["detail"] == "Preset not found: Nope"


class TestFunctions:
    def test_list_functions(self, client):
        response = client.get("/api/functions")

        assert response.status_code == 200
        data = response.json()["data"]
        assert "formatnumber" in data["functions"]
        assert "tostring" in data["methods"]


class FakeRasterRenderer:
    def __init__(self, fail=False):
        self.fail = fail

    def render(self, text, width_mm, height_mm, dots_per_mm):
        if self.fail:
            raise RuntimeError("printer offline")
        return f"{width_mm}x{height_mm}@{dots_per_mm}".encode()


def preview_client(raster_renderer) -> TestClient:
    app = FastAPI()
    renderer = TemplateRenderer(raster_renderer=raster_renderer)
    app.include_router(create_templates_router(lambda: renderer, lambda: None))
    return TestClient(app)


class TestPreview:
    @pytest.fixture(autouse=True)
    def setup_functions(self):
        FunctionRegistry.clear()
        register_all_builtins()
        yield
        FunctionRegistry.clear()

    def test_preview(self):
        client = preview_client(FakeRasterRenderer())

        response = client.post(
            "/api/templates/preview",
            json={
                "template": "^XA<script>return 1 + 1</script>^XZ",
                "widthMm": 50,
                "heightMm": 25,
                "dotsPerMm": 12,
            },
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["render"]["text"] == "^XA2^XZ"
        assert base64.b64decode(data["image"]) == b"50.0x25.0@12"

    def test_preview_renderer_failure(self):
        client = preview_client(FakeRasterRenderer(fail=True))

        response = client.post("/api/templates/preview", json={"template": "^XA^XZ"})

        assert response.status_code == 502
        assert "printer offline" in response.json()["detail"]


class TestCreateApp:
    @pytest.fixture
    def app_client(self, monkeypatch):
        monkeypatch.delenv("LABELFORGE_PRESETS_PATH", raising=False)
        monkeypatch.chdir(Path(__file__).parent.parent)

        app = create_app(raster_renderer=FakeRasterRenderer())
        try:
            with TestClient(app) as client:
                yield client
        finally:
            FunctionRegistry.clear()

    def test_injected_raster_renderer_serves_previews(self, app_client):
        response = app_client.post(
            "/api/templates/preview",
            json={"template": TEMPLATE, "preset": "DPD Sweden", "dotsPerMm": 8},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert "^FDMALMÖ^FS" in data["render"]["text"]
        assert base64.b64decode(data["image"]).endswith(b"@8")

    def test_services_live_on_app_state(self, app_client):
        state = app_client.app.state

        assert isinstance(state.renderer, TemplateRenderer)
        assert state.renderer.raster_renderer is not None
        assert state.preset_loader.get_preset("Default").name == "Default"
