# sperm_analysis/utils/temp_store.py
import glob
import json
import os
import re
import shutil
import time
from typing import Optional, Dict, Any

from loguru import logger

from sperm_analysis.core.config import Config

MEDIA_EXTS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/avi": "avi",
    "video/mov": "mov",
    "video/wmv": "wmv",
}
DEFAULT_EXT = "bin"
EXT_RE = re.compile(r"^[a-z0-9]{1,10}$")


def ensure_temp_dir():
    os.makedirs(Config.TEMP_DIR, exist_ok=True)


def _now_ts() -> int:
    return int(time.time())


def ext_for_media_type(media_type: str, file_name: str = "") -> str:
    ext = MEDIA_EXTS.get(str(media_type).lower())
    if ext:
        return ext
    if file_name and "." in file_name:
        ext = file_name.rsplit(".", 1)[-1].lower()
        if EXT_RE.match(ext):
            return ext
    return DEFAULT_EXT


def meta_path(analysis_id: str) -> str:
    return os.path.join(Config.TEMP_DIR, f"{analysis_id}.json")


def find_media_path(analysis_id: str) -> Optional[str]:
    cand = [
        p for p in glob.glob(os.path.join(Config.TEMP_DIR, f"{analysis_id}.*"))
        if not p.endswith(".json")
    ]
    return cand[0] if cand else None


def write_temp_media(analysis_id: str, media_bytes: bytes, ext: str = DEFAULT_EXT) -> str:
    ensure_temp_dir()
    ext = (ext or DEFAULT_EXT).lower().lstrip(".")
    p = os.path.join(Config.TEMP_DIR, f"{analysis_id}.{ext}")
    with open(p, "wb") as f:
        f.write(media_bytes)
    return p


def write_meta(analysis_id: str, meta: Dict[str, Any]) -> str:
    ensure_temp_dir()
    meta = dict(meta)
    meta.setdefault("analysis_id", analysis_id)
    meta.setdefault("created_at", _now_ts())
    mp = meta_path(analysis_id)
    with open(mp, "w", encoding="utf-8") as f:
        json.dump(meta, f, indent=2, ensure_ascii=False)
    return mp


def read_meta(analysis_id: str) -> Dict[str, Any]:
    mp = meta_path(analysis_id)
    if not os.path.exists(mp):
        raise FileNotFoundError(f"meta not found for analysis_id={analysis_id}")
    with open(mp, "r", encoding="utf-8") as f:
        return json.load(f)


def is_expired(meta: Dict[str, Any]) -> bool:
    created = int(meta.get("created_at", 0))
    return (_now_ts() - created) > int(Config.TEMP_TTL_SECONDS)


def delete_bundle(analysis_id: str):
    """
    Remove every TEMP_DIR file belonging to analysis_id.
    Retries because Windows can keep a file locked for a moment.
    """
    paths = glob.glob(os.path.join(Config.TEMP_DIR, f"{analysis_id}*"))

    failed = []
    for p in paths:
        ok = False
        for _ in range(6):
            try:
                if os.path.isdir(p):
                    shutil.rmtree(p, ignore_errors=False)
                else:
                    os.remove(p)
                ok = True
                break
            except FileNotFoundError:
                ok = True
                break
            except OSError:
                time.sleep(0.2)

        if not ok:
            failed.append(p)

    if failed:
        raise RuntimeError(f"Failed to delete temp files: {failed}")


def cleanup_expired() -> int:
    """
    Drop bundles older than TEMP_TTL_SECONDS. Returns how many were removed.
    """
    ensure_temp_dir()
    removed = 0
    for mp in glob.glob(os.path.join(Config.TEMP_DIR, "*.json")):
        aid = os.path.splitext(os.path.basename(mp))[0]
        try:
            with open(mp, "r", encoding="utf-8") as f:
                meta = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("skipping unreadable temp meta {}: {}", mp, e)
            continue
        if is_expired(meta):
            delete_bundle(aid)
            removed += 1
    return removed
