"""Making sure the ffmpeg executable is available and not already running."""

import fcntl
import gzip
import logging
import os
import shutil
import stat
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psutil

from transcodewatch.config import Settings, get_settings
from transcodewatch.models.errors import ProvisioningError

logger = logging.getLogger(__name__)


@contextmanager
def named_lock(lock_dir: Path, name: str) -> Iterator[None]:
    """Hold an exclusive, blocking lock on ``lock_dir / name`` across processes."""
    lock_dir.mkdir(parents=True, exist_ok=True)
    lock_path = lock_dir / name
    with open(lock_path, "w", encoding="utf-8") as lock_file:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            raise ProvisioningError(
                f"Cannot acquire lock {lock_path}", details={"lock": str(lock_path)}
            ) from e
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


class BinaryProvisioner:
    """Resolves the configured ffmpeg executable, unpacking it if needed.

    A bare command name is looked up on PATH and used as is. An explicit path
    is treated as a managed copy: its directory is created, it is unpacked
    from ``ffmpeg_archive`` when missing, and stray running instances of that
    exact file are killed before use.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def is_managed(self) -> bool:
        return os.sep in self.settings.ffmpeg_path or "/" in self.settings.ffmpeg_path

    def prepare(self) -> Path:
        """Return a usable executable path."""
        if not self.is_managed:
            return self.resolve()
        path = self.resolve()
        self.terminate_stray_instances(path)
        return path

    def resolve(self) -> Path:
        if not self.is_managed:
            found = shutil.which(self.settings.ffmpeg_path)
            if found is None:
                raise ProvisioningError(
                    f"{self.settings.ffmpeg_path} not found on PATH. Please install FFmpeg.",
                    details={"command": self.settings.ffmpeg_path},
                )
            return Path(found)

        path = Path(self.settings.ffmpeg_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            self.unpack(path)
        return path

    def unpack(self, destination: Path) -> None:
        """Decompress the gzip archive to ``destination`` and make it executable."""
        archive = self.settings.ffmpeg_archive
        if archive is None or not archive.exists():
            raise ProvisioningError(
                f"FFmpeg executable missing at {destination} and no archive to unpack",
                details={"path": str(destination), "archive": str(archive) if archive else None},
            )

        logger.info(f"Unpacking {archive} to {destination}")
        with gzip.open(archive, "rb") as src, open(destination, "wb") as dst:
            shutil.copyfileobj(src, dst)
        mode = destination.stat().st_mode
        destination.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    def terminate_stray_instances(self, path: Path) -> int:
        """Kill running processes of exactly ``path``. Returns how many were killed."""
        target = path.resolve()
        killed = 0
        with named_lock(self.settings.lock_dir, self.settings.lock_name):
            for proc in psutil.process_iter(["pid", "exe"]):
                exe = proc.info.get("exe")
                if not exe or proc.pid == os.getpid():
                    continue
                try:
                    if Path(exe).resolve() != target:
                        continue
                    logger.warning(f"Killing stray ffmpeg instance pid {proc.pid}")
                    proc.kill()
                    proc.wait(timeout=self.settings.kill_reap_seconds)
                    killed += 1
                except psutil.NoSuchProcess:
                    continue
                except (psutil.AccessDenied, psutil.TimeoutExpired) as e:
                    logger.warning(f"Could not kill pid {proc.pid}: {e}")
        return killed
