# sperm_analysis/utils/storage_io.py
import os
import re
import shutil
from pathlib import PurePosixPath

from sperm_analysis.core.config import Config

# user ids and analysis ids become directory names
PATH_PART_RE = re.compile(r"^[A-Za-z0-9_.@-]{1,128}$")


def is_safe_path_part(value) -> bool:
    v = str(value or "")
    return bool(PATH_PART_RE.match(v)) and v not in (".", "..")


def ensure_storage_dir():
    os.makedirs(Config.STORAGE_ANALYSIS_DIR, exist_ok=True)


def ensure_analysis_dir(user_id: str, analysis_id: str) -> str:
    """
    storage/analysis_files/<user_id>/<analysis_id>/
    """
    ensure_storage_dir()
    for part in (user_id, analysis_id):
        if not is_safe_path_part(part):
            raise ValueError(f"unsafe storage path component: {part!r}")
    d = os.path.join(Config.STORAGE_ANALYSIS_DIR, str(user_id), str(analysis_id))
    base = os.path.abspath(Config.STORAGE_ANALYSIS_DIR)
    if not os.path.abspath(d).startswith(base + os.sep):
        raise ValueError(f"storage path escapes root: {d}")
    os.makedirs(d, exist_ok=True)
    return d


def persist_file(src_path: str, user_id: str, analysis_id: str, filename: str) -> str:
    """
    Copy a file from tmp_uploads into permanent storage.
    return: path RELATIVE to STORAGE_ANALYSIS_DIR, e.g. "<user_id>/<analysis_id>/media.mp4"
    (always '/' so it can be used in a URL even on Windows)
    """
    if not is_safe_path_part(filename):
        raise ValueError(f"unsafe file name: {filename!r}")
    analysis_dir = ensure_analysis_dir(user_id, analysis_id)
    dst = os.path.join(analysis_dir, filename)
    shutil.copy2(src_path, dst)
    return str(PurePosixPath(str(user_id)) / str(analysis_id) / filename)


def public_url(rel_path: str) -> str:
    base = str(Config.STORAGE_PUBLIC_BASE_URL).rstrip("/")
    return f"{base}/{str(rel_path).lstrip('/')}"


def safe_abs_path(rel_path: str):
    """
    Stored relative path -> absolute path inside STORAGE_ANALYSIS_DIR.
    None when empty or when it escapes the storage root.
    """
    if not rel_path:
        return None
    base = os.path.abspath(Config.STORAGE_ANALYSIS_DIR)
    abs_p = os.path.normpath(os.path.join(base, str(rel_path)))
    if not abs_p.startswith(base + os.sep):
        return None
    return abs_p
