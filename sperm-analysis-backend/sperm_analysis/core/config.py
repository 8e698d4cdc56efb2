# sperm_analysis/core/config.py
import os
from dotenv import load_dotenv

# Load .env once at startup
load_dotenv()


def _env_bool(name: str, default: str = "0") -> bool:
    v = str(os.environ.get(name, default)).strip().lower()
    return v in ("1", "true", "yes", "y", "on")


def _env_list(name: str, default: str) -> tuple:
    raw = os.environ.get(name, default)
    return tuple(p.strip().lower() for p in str(raw).split(",") if p.strip())


class Config:
    # =========================
    # APP / SECURITY
    # =========================
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

    # BASE_DIR = sperm-analysis-backend folder
    BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))

    # =========================
    # TEMP STORAGE
    # =========================
    TEMP_DIR = os.environ.get(
        "TEMP_DIR",
        os.path.join(BASE_DIR, "tmp_uploads")
    )

    TEMP_TTL_SECONDS = int(os.environ.get("TEMP_TTL_SECONDS", 600))  # 10 minutes
    TEMP_DELETE_AFTER_SAVE = _env_bool("TEMP_DELETE_AFTER_SAVE", "1")

    # Permanent storage for uploaded media
    STORAGE_DIR = os.environ.get("STORAGE_DIR", os.path.join(BASE_DIR, "storage"))
    STORAGE_ANALYSIS_DIR = os.path.join(STORAGE_DIR, "analysis_files")

    # Prefix used to build file_url; served by storage_routes by default
    STORAGE_PUBLIC_BASE_URL = os.environ.get("STORAGE_PUBLIC_BASE_URL", "/api/storage")

    # =========================
    # UPLOAD POLICY
    # =========================
    # Server-side ceiling and the client pre-check are separate settings.
    MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", 50 * 1024 * 1024))
    CLIENT_MAX_UPLOAD_BYTES = int(os.environ.get("CLIENT_MAX_UPLOAD_BYTES", 500 * 1024 * 1024))

    ALLOWED_MEDIA_TYPES = _env_list(
        "ALLOWED_MEDIA_TYPES",
        "image/jpeg,image/png,image/gif,image/webp,"
        "video/mp4,video/avi,video/mov,video/wmv",
    )

    # =========================
    # DETECTOR (external inference endpoint, optional)
    # =========================
    DETECTOR_ENABLED = _env_bool("DETECTOR_ENABLED", "0")
    DETECTOR_URL = os.environ.get(
        "DETECTOR_URL",
        "https://api-inference.huggingface.co/models/ultralytics/yolov8n",
    )
    DETECTOR_API_KEY = os.environ.get("DETECTOR_API_KEY", "")
    DETECTOR_TIMEOUT_SECONDS = float(os.environ.get("DETECTOR_TIMEOUT_SECONDS", 15))

    DETECTION_ACCEPT_THRESHOLD = float(os.environ.get("DETECTION_ACCEPT_THRESHOLD", 0.3))
    DETECTION_IOU_THRESHOLD = float(os.environ.get("DETECTION_IOU_THRESHOLD", 0.5))

    # Artificial delay added to the synthetic branch (0 = off)
    SIMULATED_LATENCY_SECONDS = float(os.environ.get("SIMULATED_LATENCY_SECONDS", 0))

    # =========================
    # HISTORY
    # =========================
    HISTORY_MAX_LIMIT = int(os.environ.get("HISTORY_MAX_LIMIT", 200))

    # =========================
    # LOGGING
    # =========================
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_DIR = os.environ.get("LOG_DIR", "")  # empty = stderr only

    # =========================
    # DATABASE (MySQL by default, DATABASE_URL overrides)
    # =========================
    DATABASE_URL = os.environ.get("DATABASE_URL", "")

    DB_HOST = os.environ.get("DB_HOST", "localhost")
    DB_PORT = os.environ.get("DB_PORT", "3306")  # default MySQL
    DB_NAME = os.environ.get("DB_NAME", "sperm_analysis_db")
    DB_USER = os.environ.get("DB_USER", "root")
    DB_PASSWORD = os.environ.get("DB_PASSWORD", "")

    @classmethod
    def database_url(cls) -> str:
        """
        SQLAlchemy connection string
        """
        if cls.DATABASE_URL:
            return cls.DATABASE_URL
        return (
            f"mysql+pymysql://{cls.DB_USER}:{cls.DB_PASSWORD}"
            f"@{cls.DB_HOST}:{cls.DB_PORT}/{cls.DB_NAME}"
        )
