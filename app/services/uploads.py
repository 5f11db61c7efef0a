# app/services/uploads.py
from __future__ import annotations

import logging
import os
import random
import time
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import HTTPException, UploadFile

from app.core.config import settings

log = logging.getLogger("uploads")

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png"}
FIELD_NAME = "documents"
_CHUNK = 1024 * 1024


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_PATH)
    path.mkdir(parents=True, exist_ok=True)
    return path


def stored_name(original: str, rng: Optional[random.Random] = None) -> str:
    """``documents-<ms>-<rand><ext>``; the extension is lowercased."""
    rng = rng or random
    ext = os.path.splitext(original or "")[1].lower()
    return f"{FIELD_NAME}-{int(time.time() * 1000)}-{rng.randint(0, 10 ** 9 - 1)}{ext}"


def check_extension(original: str) -> None:
    ext = os.path.splitext(original or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            400,
            f"File type not allowed: {original}. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        )


def save_uploads(files: List[UploadFile]) -> List[Tuple[str, str, str]]:
    """
    Persist uploaded files. Returns (stored filename, original name, path) per file.
    Anything already written is removed again when a later file is refused.
    """
    if len(files) > settings.MAX_FILES:
        raise HTTPException(400, "Too many files")

    for f in files:
        check_extension(f.filename)

    target = upload_dir()
    saved: List[Tuple[str, str, str]] = []
    try:
        for f in files:
            name = stored_name(f.filename)
            path = target / name
            size = 0
            with open(path, "wb") as out:
                saved.append((name, f.filename, str(path)))
                while True:
                    chunk = f.file.read(_CHUNK)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > settings.MAX_FILE_SIZE:
                        raise HTTPException(400, f"File too large: {f.filename}")
                    out.write(chunk)
    except Exception:
        remove_files([p for _, _, p in saved])
        raise
    return saved


def remove_files(paths: List[str]) -> None:
    for p in paths:
        try:
            os.remove(p)
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning("Could not remove %s: %s", p, e)


def resolve_stored(filename: str) -> Optional[Path]:
    """Path of a stored upload, or None if it is not on disk. Rejects path tricks."""
    if not filename or os.path.basename(filename) != filename:
        return None
    path = upload_dir() / filename
    return path if path.is_file() else None
