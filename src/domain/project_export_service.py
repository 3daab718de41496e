"""Export pipeline turning a project into a self-contained web bundle.

Stages run strictly in order; a hard failure raises :class:`ExportError`
(recorded in :attr:`ProjectExporter.last_error`) and stops the run, while
recoverable problems (missing includes or resources, minifier failure, archive
failure) only append a warning to the :class:`ExportResult`.
"""
from __future__ import annotations

import logging
import shutil
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from codegen.events import generate_scene_events_code
from codegen.metadata import InstructionMetadataRegistry, create_default_registry

from .document_normalizer import DocumentNormalizationError, element_to_json, wrap_into_variable
from .export_collaborators import (
    DirectoryArchiver,
    ExternalProcessRunner,
    ProgressCallback,
    ResourcesCopier,
    find_java_executable,
)
from .export_errors import ExportError, ExportWriteError
from .export_settings import ExportSettings
from .models import Project
from .persistence import ProjectSerializer
from .project_manifest import INDEX_FILENAME, BundleManifestBuilder

logger = logging.getLogger(__name__)

RUNTIME_PREREQUISITES: Tuple[str, ...] = (
    "libs/pixi.js",
    "libs/jshashtable.js",
    "libs/hshg.js",
    "gd.js",
    "commontools.js",
    "runtimeobject.js",
    "runtimescene.js",
    "polygon.js",
    "force.js",
    "layer.js",
    "timer.js",
    "imagemanager.js",
    "runtimegame.js",
    "variable.js",
    "variablescontainer.js",
    "runtimeautomatism.js",
    "spriteruntimeobject.js",
    "soundmanager.js",
    "runtimescenetools.js",
    "inputtools.js",
    "objecttools.js",
    "cameratools.js",
    "soundtools.js",
    "storagetools.js",
    "stringtools.js",
)

EXTENSIONS_DIRNAME = "Extensions"
DATA_FILENAME = "data.js"
MINIFIED_FILENAME = "code.js"
ARCHIVE_FILENAME = "zipped_project.zip"
OUT_OF_MEMORY_SIGNAL = "OutOfMemoryError"


class ExportStage(str, Enum):
    CLONE_PROJECT = "CloneProject"
    EXPORT_RESOURCES = "ExportResources"
    GENERATE_EVENTS_CODE = "GenerateEventsCode"
    STRIP_PROJECT = "StripProject"
    SERIALIZE_PROJECT_DATA = "SerializeProjectData"
    RESOLVE_DEPENDENCIES = "ResolveDependencies"
    MINIFY = "Minify"
    COPY_RAW = "CopyRaw"
    EMIT_INDEX_OR_METADATA = "EmitIndexOrMetadata"
    ARCHIVE = "Archive"


STAGE_PROGRESS: Dict[ExportStage, int] = {
    ExportStage.CLONE_PROJECT: 0,
    ExportStage.EXPORT_RESOURCES: 5,
    ExportStage.GENERATE_EVENTS_CODE: 40,
    ExportStage.STRIP_PROJECT: 55,
    ExportStage.SERIALIZE_PROJECT_DATA: 60,
    ExportStage.RESOLVE_DEPENDENCIES: 70,
    ExportStage.MINIFY: 75,
    ExportStage.COPY_RAW: 75,
    ExportStage.EMIT_INDEX_OR_METADATA: 90,
    ExportStage.ARCHIVE: 95,
}


class IncludeList:
    """Ordered include identifiers; adding a known identifier is a no-op."""

    def __init__(self, includes: Iterable[str] = ()) -> None:
        self._items: List[str] = []
        self._seen: set[str] = set()
        self.extend(includes)

    def add(self, include: str) -> bool:
        if include in self._seen:
            return False
        self._seen.add(include)
        self._items.append(include)
        return True

    def extend(self, includes: Iterable[str]) -> None:
        for include in includes:
            self.add(include)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def as_list(self) -> List[str]:
        return list(self._items)


@dataclass(frozen=True)
class ResolvedInclude:
    """Include located on disk and the bundle-relative name it will have."""

    source: Path
    identifier: str


@dataclass
class ExportResult:
    """Summary of one export run useful for logging or tooling."""

    export_dir: Path
    includes: List[str] = field(default_factory=list)
    code_files: List[Path] = field(default_factory=list)
    data_file: Optional[Path] = None
    entry_file: Optional[Path] = None
    archive_path: Optional[Path] = None
    minified: bool = False
    stages: List[ExportStage] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def strip_project(project: Project) -> None:
    """Remove object groups and event trees, which only the code needed."""

    project.object_groups = []
    for layout in project.layouts:
        layout.object_groups = []
        layout.events = []


class ProjectExporter:
    """Run the export pipeline with swappable collaborators."""

    def __init__(
        self,
        settings: ExportSettings,
        registry: InstructionMetadataRegistry | None = None,
        resources_copier: ResourcesCopier | None = None,
        archiver: DirectoryArchiver | None = None,
        process_runner: ExternalProcessRunner | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or create_default_registry()
        self.resources_copier = resources_copier or ResourcesCopier()
        self.archiver = archiver or DirectoryArchiver()
        self.process_runner = process_runner or ExternalProcessRunner()
        self.last_error = ""

    def export_project(
        self,
        project: Project,
        export_dir: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> ExportResult:
        """Export ``project`` into ``export_dir`` and return a summary.

        ``project`` itself is never modified. Raises :class:`ExportError`.
        """

        self.last_error = ""
        try:
            return self._run(project, export_dir, progress)
        except ExportError as exc:
            self.last_error = str(exc)
            logger.error("Export failed: %s", exc)
            raise

    def export_layout_for_preview(self, project: Project, layout_name: str, export_dir: Path) -> ExportResult:
        """Export a bundle starting on ``layout_name``, unminified and unarchived."""

        if not project.has_layout(layout_name):
            self.last_error = f"Layout {layout_name!r} not found"
            raise ExportError(self.last_error)
        preview = project.model_copy(deep=True)
        preview.properties.first_layout = layout_name
        settings = self.settings.model_copy(update={"target": "index", "minify": False, "archive": False})
        exporter = ProjectExporter(
            settings,
            registry=self.registry,
            resources_copier=self.resources_copier,
            archiver=self.archiver,
            process_runner=self.process_runner,
        )
        try:
            return exporter.export_project(preview, export_dir)
        finally:
            self.last_error = exporter.last_error

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _run(self, project: Project, export_dir: Path, progress: Optional[ProgressCallback]) -> ExportResult:
        settings = self.settings
        result = ExportResult(export_dir=export_dir)
        code_dir = settings.code_output_dir
        _clear_directory(export_dir)
        _clear_directory(code_dir)

        self._enter(ExportStage.CLONE_PROJECT, result, progress)
        working = project.model_copy(deep=True)

        self._enter(ExportStage.EXPORT_RESOURCES, result, progress)
        try:
            missing_resources = self.resources_copier.copy_all_resources(
                working,
                export_dir,
                _scaled_progress(progress, ExportStage.EXPORT_RESOURCES, ExportStage.GENERATE_EVENTS_CODE),
            )
        except OSError as exc:
            raise ExportWriteError(f"Unable to copy resources into {export_dir}: {exc}") from exc
        for name in missing_resources:
            self._warn(result, f"Resource {name!r} could not be found and was not exported")

        self._enter(ExportStage.GENERATE_EVENTS_CODE, result, progress)
        includes = IncludeList(RUNTIME_PREREQUISITES)
        for index, layout in enumerate(working.layouts):
            code, layout_includes = generate_scene_events_code(self.registry, working, layout)
            destination = code_dir / f"code{index}.js"
            _write_text(destination, code)
            logger.debug("Generated events code for layout %s into %s", layout.name, destination)
            includes.extend(sorted(layout_includes))
            includes.add(str(destination))
            result.code_files.append(destination)

        self._enter(ExportStage.STRIP_PROJECT, result, progress)
        strip_project(working)

        self._enter(ExportStage.SERIALIZE_PROJECT_DATA, result, progress)
        try:
            document = element_to_json(ProjectSerializer.to_element(working), pretty=settings.pretty_print_data)
        except DocumentNormalizationError as exc:
            raise ExportError(f"Unable to serialize project data: {exc}") from exc
        data_file = code_dir / DATA_FILENAME
        _write_text(data_file, wrap_into_variable(document, settings.data_variable))
        includes.add(str(data_file))
        result.data_file = data_file

        self._enter(ExportStage.RESOLVE_DEPENDENCIES, result, progress)
        resolved = self._resolve_includes(includes, result)

        scripts: List[str]
        if settings.minify and self._minify(resolved, export_dir, result, progress):
            scripts = [MINIFIED_FILENAME]
            result.minified = True
        else:
            self._enter(ExportStage.COPY_RAW, result, progress)
            scripts = self._copy_includes(resolved, export_dir)
        result.includes = scripts

        self._enter(ExportStage.EMIT_INDEX_OR_METADATA, result, progress)
        result.entry_file = self._emit_entry_file(working, export_dir, scripts, result)

        if settings.archive:
            self._enter(ExportStage.ARCHIVE, result, progress)
            result.archive_path = self._archive(export_dir, result)

        if progress is not None:
            progress(100, "Export finished")
        logger.info("Exported %s into %s (%d warnings)", working.properties.name, export_dir, len(result.warnings))
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _enter(self, stage: ExportStage, result: ExportResult, progress: Optional[ProgressCallback]) -> None:
        logger.info("Export stage: %s", stage.value)
        result.stages.append(stage)
        if progress is not None:
            progress(STAGE_PROGRESS[stage], stage.value)

    def _warn(self, result: ExportResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)

    def _locate_include(self, include: str) -> Optional[ResolvedInclude]:
        settings = self.settings
        if not Path(include).is_absolute():
            candidate = settings.runtime_dir / include
            if candidate.is_file():
                return ResolvedInclude(candidate, include)
            if settings.extensions_dir is not None:
                candidate = settings.extensions_dir / include
                if candidate.is_file():
                    return ResolvedInclude(candidate, f"{EXTENSIONS_DIRNAME}/{include}")
        candidate = Path(include)
        if candidate.is_file():
            return ResolvedInclude(candidate, candidate.name)
        return None

    def _resolve_includes(self, includes: IncludeList, result: ExportResult) -> List[ResolvedInclude]:
        resolved: List[ResolvedInclude] = []
        identifiers: set[str] = set()
        for include in includes:
            located = self._locate_include(include)
            if located is None:
                self._warn(result, f"Could not find include file {include}, it was not exported")
                continue
            if located.identifier in identifiers:
                continue
            identifiers.add(located.identifier)
            resolved.append(located)
        return resolved

    def _copy_includes(self, resolved: Iterable[ResolvedInclude], export_dir: Path) -> List[str]:
        scripts: List[str] = []
        for include in resolved:
            destination = export_dir / include.identifier
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(include.source, destination)
            except OSError as exc:
                raise ExportWriteError(f"Unable to copy {include.source} to {destination}: {exc}") from exc
            logger.debug("Copied %s to %s", include.source, destination)
            scripts.append(include.identifier)
        return scripts

    def _minify(
        self,
        resolved: List[ResolvedInclude],
        export_dir: Path,
        result: ExportResult,
        progress: Optional[ProgressCallback],
    ) -> bool:
        """Compile every include into one file; ``False`` means copy them raw."""

        self._enter(ExportStage.MINIFY, result, progress)
        settings = self.settings
        java = find_java_executable(settings.java_path)
        if java is None:
            self._warn(result, "Java could not be found; files are exported without minification")
            return False
        if settings.compiler_jar is None or not settings.compiler_jar.is_file():
            self._warn(result, f"Compiler {settings.compiler_jar} not found; files are exported without minification")
            return False

        command: List[str] = [str(java), "-jar", str(settings.compiler_jar)]
        for include in resolved:
            command.extend(["--js", str(include.source)])
        command.extend(["--js_output_file", str(export_dir / MINIFIED_FILENAME)])
        outcome = self.process_runner.run(command, timeout=settings.minify_timeout_seconds)

        if outcome.timed_out:
            self._warn(
                result,
                f"Minification did not finish within {settings.minify_timeout_seconds:g} seconds; "
                "files are exported without minification",
            )
            return False
        if outcome.exit_code != 0:
            if OUT_OF_MEMORY_SIGNAL in outcome.stderr or OUT_OF_MEMORY_SIGNAL in outcome.stdout:
                self._warn(result, "Java ran out of memory while minifying; files are exported without minification")
            else:
                self._warn(
                    result,
                    f"Minification failed (exit code {outcome.exit_code}); files are exported without minification",
                )
            logger.debug("Minifier output: %s", outcome.stderr or outcome.stdout)
            (export_dir / MINIFIED_FILENAME).unlink(missing_ok=True)
            return False
        return True

    def _emit_entry_file(
        self, project: Project, export_dir: Path, scripts: List[str], result: ExportResult
    ) -> Path:
        builder = BundleManifestBuilder(project, export_dir)
        present, missing = builder.partition_scripts(scripts)
        for script in missing:
            self._warn(result, f"Script {script} is missing from the bundle and was not referenced")

        if self.settings.target == "metadata":
            try:
                return builder.write_metadata(present)
            except OSError as exc:
                raise ExportWriteError(f"Unable to write the metadata file: {exc}") from exc

        template_path = self.settings.index_template
        if template_path is None:
            raise ExportError("No index template is configured")
        try:
            template = template_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ExportWriteError(f"Unable to read index template {template_path}: {exc}") from exc
        page = builder.render_index(template, present)
        destination = export_dir / INDEX_FILENAME
        _write_text(destination, page)
        return destination

    def _archive(self, export_dir: Path, result: ExportResult) -> Optional[Path]:
        try:
            payload = self.archiver.compress_directory(export_dir)
        except (OSError, zipfile.BadZipFile) as exc:
            self._warn(result, f"Unable to create the archive, the bundle is left unarchived: {exc}")
            return None
        # The zip lands inside the bundle before anything else is removed.
        staged = export_dir / f".{ARCHIVE_FILENAME}.partial"
        try:
            staged.write_bytes(payload)
        except OSError as exc:
            staged.unlink(missing_ok=True)
            self._warn(result, f"Unable to write the archive, the bundle is left unarchived: {exc}")
            return None
        destination = export_dir / ARCHIVE_FILENAME
        try:
            _clear_directory(export_dir, keep=staged)
            staged.replace(destination)
        except (OSError, ExportWriteError) as exc:
            self._warn(result, f"Unable to finish the archive, it is left as {staged.name}: {exc}")
            return None
        return destination


def _scaled_progress(
    progress: Optional[ProgressCallback], start: ExportStage, end: ExportStage
) -> Optional[ProgressCallback]:
    """Map a collaborator's 0-100 progress into the band between two stages."""

    if progress is None:
        return None
    low, high = STAGE_PROGRESS[start], STAGE_PROGRESS[end]

    def report(percent: int, message: str) -> None:
        progress(low + (high - low) * percent // 100, message)

    return report


def _clear_directory(directory: Path, keep: Optional[Path] = None) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        for entry in directory.iterdir():
            if entry == keep:
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
    except OSError as exc:
        raise ExportWriteError(f"Unable to prepare directory {directory}: {exc}") from exc


def _write_text(destination: Path, text: str) -> None:
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ExportWriteError(f"Unable to write {destination}: {exc}") from exc


__all__ = [
    "ExportResult",
    "ExportStage",
    "IncludeList",
    "ProjectExporter",
    "RUNTIME_PREREQUISITES",
    "strip_project",
]
