"""Mechanical I/O helpers used by the export pipeline.

Each collaborator exposes one synchronous call so tests can swap it for a
stub: copy resources, compress a directory, run an external process.
"""
from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .models import Project

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

RESOURCES_DIRNAME = "resources"
JAVA_CANDIDATES = (Path("/usr/bin/java"), Path("/usr/local/bin/java"))


class ResourcesCopier:
    """Copy every project resource into the bundle and rewrite its path."""

    def __init__(self, project_dir: Path | None = None) -> None:
        self._project_dir = project_dir

    def copy_all_resources(
        self,
        project: Project,
        target_dir: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> List[str]:
        """Copy resources into ``target_dir/resources`` and return missing names."""

        resources_dir = target_dir / RESOURCES_DIRNAME
        missing: List[str] = []
        used_names: set[str] = set()
        total = len(project.resources)
        for index, resource in enumerate(project.resources):
            source = Path(resource.file)
            if not source.is_absolute() and self._project_dir is not None:
                source = self._project_dir / source
            if not source.is_file():
                logger.debug("Resource %s: file %s not found", resource.name, source)
                missing.append(resource.name)
                continue
            destination_name = _unique_name(source.name, used_names)
            resources_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, resources_dir / destination_name)
            resource.file = f"{RESOURCES_DIRNAME}/{destination_name}"
            logger.debug("Copied resource %s to %s", resource.name, resource.file)
            if progress is not None and total:
                progress(int((index + 1) * 100 / total), f"Copying resource {resource.name}")
        return missing


def _unique_name(filename: str, used_names: set[str]) -> str:
    candidate = filename
    stem, suffix = os.path.splitext(filename)
    counter = 1
    while candidate.lower() in used_names:
        candidate = f"{stem}_{counter}{suffix}"
        counter += 1
    used_names.add(candidate.lower())
    return candidate


class DirectoryArchiver:
    """Zip a directory tree in memory."""

    def compress_directory(self, directory: Path) -> bytes:
        """Return the bytes of a deflated zip holding ``directory``'s files.

        Raises ``OSError`` when a file cannot be read.
        """

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path in sorted(directory.rglob("*")):
                if path.is_file():
                    archive.write(path, path.relative_to(directory).as_posix())
        return buffer.getvalue()


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False


class ExternalProcessRunner:
    """Run a blocking subprocess with captured output and a timeout."""

    def run(self, command: Sequence[str], timeout: float | None = None) -> ProcessResult:
        logger.debug("Running %s", " ".join(str(part) for part in command))
        try:
            completed = subprocess.run(
                [str(part) for part in command],
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            return ProcessResult(
                exit_code=-1,
                stdout=_decode(exc.stdout),
                stderr=_decode(exc.stderr),
                timed_out=True,
            )
        except OSError as exc:
            return ProcessResult(exit_code=-1, stderr=str(exc))
        return ProcessResult(exit_code=completed.returncode, stdout=completed.stdout, stderr=completed.stderr)


def _decode(stream: bytes | str | None) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def find_java_executable(configured: Path | None = None) -> Path | None:
    """Return the Java executable to use for minification, if any."""

    if configured is not None:
        return configured if configured.exists() else None
    for candidate in JAVA_CANDIDATES:
        if candidate.exists():
            return candidate
    found = shutil.which("java")
    return Path(found) if found else None


__all__ = [
    "DirectoryArchiver",
    "ExternalProcessRunner",
    "ProcessResult",
    "ProgressCallback",
    "ResourcesCopier",
    "find_java_executable",
]
