import io
import os
import shutil
import tempfile

# Point the app at throwaway storage before sperm_analysis is imported:
# Config and the DB engine read the environment at import time.
_TMP = tempfile.mkdtemp(prefix="sperm-analysis-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["TEMP_DIR"] = os.path.join(_TMP, "tmp_uploads")
os.environ["STORAGE_DIR"] = os.path.join(_TMP, "storage")
os.environ["DETECTOR_ENABLED"] = "0"
os.environ["SIMULATED_LATENCY_SECONDS"] = "0"
os.environ["LOG_DIR"] = ""

import pytest  # noqa: E402
from PIL import Image  # noqa: E402

from sperm_analysis import create_app  # noqa: E402
from sperm_analysis.core.config import Config  # noqa: E402
from sperm_analysis.database.db import Base, engine, init_db  # noqa: E402
from sperm_analysis.ml.detection.client import set_detector_session  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Stands in for requests.Session in detector calls."""

    def __init__(self, status_code=200, payload=None, exc=None):
        self.status_code = status_code
        self.payload = payload
        self.exc = exc
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return FakeResponse(self.status_code, self.payload)


@pytest.fixture(autouse=True)
def clean_state():
    Base.metadata.drop_all(bind=engine)
    init_db()
    for d in (Config.TEMP_DIR, Config.STORAGE_DIR):
        shutil.rmtree(d, ignore_errors=True)
    yield
    set_detector_session(None)


@pytest.fixture
def app():
    app = create_app()
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def png_bytes():
    img = Image.new("RGB", (64, 48), color=(200, 180, 160))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def fake_detector(monkeypatch):
    """
    Enable the detector and return a factory that installs a FakeSession.
    """
    monkeypatch.setattr(Config, "DETECTOR_ENABLED", True)

    def _install(**kwargs):
        session = FakeSession(**kwargs)
        set_detector_session(session)
        return session

    return _install
