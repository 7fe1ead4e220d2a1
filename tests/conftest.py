"""
Test configuration and fixtures for the color analyzer client tests.
"""
import io
from typing import List

import httpx
import pytest
from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse
from PIL import Image

from coloranalyzer.config import Config
from coloranalyzer.services.client import AnalysisServiceClient
from coloranalyzer.services.session import FileDescriptor


def _entry_for(filename: str, shape: str) -> dict:
    """Analysis entry for one uploaded file; behaviour keyed off the file name."""
    if "broken" in filename:
        return {"error": f"Unsupported image content in {filename}"}

    cached = "cached" in filename
    if shape == "legacy":
        return {
            "dominant_color_hex": "#a52a2a",
            "closest_color": "Auburn",
            "match_percentage": "87.5%",
            "message": "Analysis complete",
            "from_cache": cached,
        }
    return {
        "dominant": [
            {"hex": "#A52A2A", "percentage": 61.2},
            {"hex": "#3B2F2F", "percentage": 38.8},
        ],
        "match": {"name": "Auburn", "similarity": 91.4, "distance": 6.3},
        "cached": cached,
    }


def create_fake_service() -> FastAPI:
    """In-process stand-in for the remote analysis service."""
    app = FastAPI()
    app.state.requests = []
    app.state.shape = "results"
    app.state.trained = [
        {"id": 1, "name": "Auburn", "colors": ["#a52a2a", [59, 47, 47]]},
        {"_id": "b2", "color_name": "Platinum", "hex_values": ["E5E4E2"]},
    ]
    app.state.cache_clears = 0

    @app.post("/analyze")
    async def analyze(images: List[UploadFile] = File(...)):
        names = [image.filename for image in images]
        app.state.requests.append(names)

        if any("plain" in name for name in names):
            return PlainTextResponse("upstream exploded", status_code=502)
        failing = [name for name in names if "fail" in name]
        if failing:
            return JSONResponse({"detail": f"Could not analyze {failing[0]}"}, status_code=500)

        entries = [_entry_for(name, app.state.shape) for name in names]
        if app.state.shape == "list":
            return entries
        if app.state.shape == "analysis_results":
            return {"analysis_results": entries}
        return {"results": entries}

    @app.post("/train")
    async def train(color_name: str = Form(...), images: List[UploadFile] = File(...)):
        app.state.requests.append([image.filename for image in images])
        return {"message": f"Trained '{color_name}' with {len(images)} images"}

    @app.get("/trained-colors")
    async def trained_colors():
        return {"trained_colors": app.state.trained}

    @app.post("/clear-cache")
    async def clear_cache():
        app.state.cache_clears += 1
        return {"message": "Cache cleared"}

    return app


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset metrics before each test."""
    from coloranalyzer.utils.metrics import reset_metrics
    reset_metrics()


@pytest.fixture
def config():
    """Default client configuration."""
    return Config()


@pytest.fixture
def fake_service():
    """Fresh fake analysis service."""
    return create_fake_service()


@pytest.fixture
def service_client(config, fake_service):
    """Service client talking to the fake service in-process."""
    http_client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=fake_service),
        base_url="http://testserver",
    )
    return AnalysisServiceClient(config, http_client=http_client)


@pytest.fixture
def png_bytes():
    """A small solid-color PNG."""
    output = io.BytesIO()
    Image.new("RGB", (64, 32), (165, 42, 42)).save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
def make_image(png_bytes):
    """Factory for image FileDescriptors."""
    def factory(name: str, content_type: str = "image/png") -> FileDescriptor:
        return FileDescriptor(name=name, content_type=content_type, data=png_bytes)
    return factory


@pytest.fixture
def make_text():
    """Factory for non-image FileDescriptors."""
    def factory(name: str = "notes.txt") -> FileDescriptor:
        return FileDescriptor(name=name, content_type="text/plain", data=b"just some notes")
    return factory
