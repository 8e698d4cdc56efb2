# sperm_analysis/ml/detection/client.py
import requests

from sperm_analysis.core.config import Config

_session = None


def build_detector_session() -> requests.Session:
    s = requests.Session()
    s.headers.update({"Content-Type": "application/json"})
    if Config.DETECTOR_API_KEY:
        s.headers.update({"Authorization": f"Bearer {Config.DETECTOR_API_KEY}"})
    return s


def get_detector_session():
    """
    Lazy-load:
    - build the HTTP session (auth header)
    - cache it for later requests
    """
    global _session
    if _session is None:
        _session = build_detector_session()
    return _session


def set_detector_session(session):
    """Swap the cached session (tests use a fake one). None resets."""
    global _session
    _session = session
