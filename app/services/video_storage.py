# path: road-marking-api/app/services/video_storage.py

from __future__ import annotations

from pathlib import Path
import logging
import os
import shutil
import uuid

import aiofiles


log = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".mp4"
ANNOTATED_PREFIX = "annotated_"
STAGING_SUFFIX = ".part"


class VideoStorage:
    """
    Route videos live under ``<static_dir>/videos/<route_id>/``.

    Writes go to a uniquely named staging file first; ``promote`` moves it to
    its final name once the route row is committed, and ``discard`` drops it
    otherwise. A failed save only removes its own staging files.
    """

    def __init__(self, static_dir: Path):
        self.root = Path(static_dir) / "videos"

    def route_dir(self, route_id: str) -> Path:
        return self.root / route_id

    def video_path(self, route_id: str, original_filename: str) -> Path:
        ext = Path(original_filename).suffix.lower() or DEFAULT_EXTENSION
        return self.route_dir(route_id) / f"{route_id}{ext}"

    def annotated_path(self, route_id: str, filename: str) -> Path:
        name = Path(filename).name
        if not name.startswith(ANNOTATED_PREFIX):
            name = f"{ANNOTATED_PREFIX}{name}"
        return self.route_dir(route_id) / name

    async def stage(self, final_path: Path, data: bytes) -> Path:
        staged = final_path.with_name(f"{final_path.name}.{uuid.uuid4().hex}{STAGING_SUFFIX}")
        staged.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiofiles.open(staged, mode="wb") as f:
                await f.write(data)
        except OSError:
            staged.unlink(missing_ok=True)
            raise
        log.debug("Staged %d bytes at %s", len(data), staged)
        return staged

    def promote(self, staged: Path, final_path: Path) -> Path:
        os.replace(staged, final_path)
        log.info("Saved video %s", final_path)
        return final_path

    def discard(self, staged: Path) -> None:
        staged.unlink(missing_ok=True)

    def delete_route(self, route_id: str) -> None:
        d = self.route_dir(route_id)
        if d.exists():
            shutil.rmtree(d, ignore_errors=True)
            log.info("Removed video directory %s", d)
