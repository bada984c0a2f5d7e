import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class TempStore:
    """
    Flat directory of short-lived crop artifacts.

    Files are written once and never modified, so readers racing with
    purge_expired() either get the whole file or a 404.
    """

    def __init__(self, directory: Path, max_age_s: float = 30 * 60):
        self.directory = Path(directory)
        self.max_age_s = float(max_age_s)

    def ensure_dir(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory

    def path_for(self, filename: str) -> Path:
        return self.directory / filename

    def save_png(self, data: bytes) -> str:
        self.ensure_dir()
        filename = f"{uuid.uuid4()}.png"
        # Write under a temporary name so the static route never serves a partial file.
        tmp_path = self.directory / f".{filename}.part"
        tmp_path.write_bytes(data)
        tmp_path.replace(self.path_for(filename))
        logger.info("Saved crop artifact %s (%d bytes)", filename, len(data))
        return filename

    def purge_expired(self, now: Optional[float] = None) -> int:
        if not self.directory.exists():
            return 0
        now = time.time() if now is None else now
        removed = 0
        for entry in self.directory.iterdir():
            try:
                if not entry.is_file():
                    continue
                age = now - entry.stat().st_mtime
                if age > self.max_age_s:
                    entry.unlink()
                    removed += 1
            except FileNotFoundError:
                # Already gone (another purge or a manual cleanup).
                continue
        if removed:
            logger.info("Purged %d expired crop artifact(s) from %s", removed, self.directory)
        return removed


class CleanupTask:
    """Periodic purge of a TempStore, bound to the application lifespan."""

    def __init__(self, store: TempStore, interval_s: float = 5 * 60):
        self.store = store
        self.interval_s = max(float(interval_s), 0.01)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="temp-cleanup")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                # Directory scan + unlink are blocking filesystem calls.
                await asyncio.to_thread(self.store.purge_expired)
            except Exception:
                # Keep purging on the next tick.
                logger.exception("Temp cleanup failed")
