import errno
import json
import shutil
import zipfile
from pathlib import Path
from typing import List, Sequence

import pytest

from codegen.metadata import FunctionCode, InstructionKind, InstructionMetadata, InstructionMetadataRegistry
from domain.document_normalizer import element_from_json_value, load_wrapped_document
from domain.export_collaborators import DirectoryArchiver, ProcessResult
from domain.export_errors import ExportError, ExportWriteError, TemplateMarkerError
from domain.export_settings import ExportSettings
from domain.models import Event, Instruction, Project, Resource
from domain.persistence import ProjectSerializer
from domain.project_export_service import (
    ExportStage,
    IncludeList,
    ProjectExporter,
    RUNTIME_PREREQUISITES,
    strip_project,
)


class RecordingRunner:
    """Process runner stub returning a fixed result."""

    def __init__(self, result: ProcessResult, write_output: bool = False) -> None:
        self.result = result
        self.write_output = write_output
        self.commands: List[List[str]] = []

    def run(self, command: Sequence[str], timeout: float | None = None) -> ProcessResult:
        self.commands.append(list(command))
        if self.write_output:
            output = Path(command[command.index("--js_output_file") + 1])
            output.write_text("// minified", encoding="utf-8")
        return self.result


class FailingArchiver(DirectoryArchiver):
    def compress_directory(self, directory: Path) -> bytes:
        raise OSError("disk full")


@pytest.fixture()
def minify_settings(tmp_path: Path, export_settings: ExportSettings) -> ExportSettings:
    java = tmp_path / "bin" / "java"
    java.parent.mkdir()
    java.write_text("", encoding="utf-8")
    jar = tmp_path / "compiler.jar"
    jar.write_bytes(b"jar")
    return export_settings.model_copy(update={"minify": True, "java_path": java, "compiler_jar": jar})


def test_include_list_keeps_first_occurrence_order():
    includes = IncludeList(["a.js", "b.js", "a.js"])
    includes.extend(["c.js", "b.js"])

    assert includes.as_list() == ["a.js", "b.js", "c.js"]
    assert len(includes) == 3


def test_export_writes_index_code_and_data(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    export_dir = tmp_path / "export"

    result = ProjectExporter(export_settings).export_project(example_project, export_dir)

    assert result.warnings == []
    assert result.includes == list(RUNTIME_PREREQUISITES) + ["code0.js", "code1.js", "data.js"]
    for include in result.includes:
        assert (export_dir / include).is_file()
    page = (export_dir / "index.html").read_text(encoding="utf-8")
    assert page.index('\t<script src="libs/pixi.js"></script>') < page.index('\t<script src="code0.js"></script>')
    assert '\t<script src="data.js"></script>\n' in page
    code = (export_dir / "code0.js").read_text(encoding="utf-8")
    assert "runtimeScene.getVariables().getFromIndex(1).setNumber(10);" in code
    assert result.stages == [
        ExportStage.CLONE_PROJECT,
        ExportStage.EXPORT_RESOURCES,
        ExportStage.GENERATE_EVENTS_CODE,
        ExportStage.STRIP_PROJECT,
        ExportStage.SERIALIZE_PROJECT_DATA,
        ExportStage.RESOLVE_DEPENDENCIES,
        ExportStage.COPY_RAW,
        ExportStage.EMIT_INDEX_OR_METADATA,
    ]


def test_export_does_not_modify_the_authored_project(
    tmp_path: Path, example_project: Project, export_settings: ExportSettings
):
    snapshot = example_project.model_copy(deep=True)

    ProjectExporter(export_settings).export_project(example_project, tmp_path / "export")

    assert example_project == snapshot
    assert example_project.get_layout("Main Scene").events


def test_stripped_data_round_trips(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    export_dir = tmp_path / "export"
    ProjectExporter(export_settings).export_project(example_project, export_dir)

    text = (export_dir / "data.js").read_text(encoding="utf-8")
    assert text.startswith("gdjs.projectData = {")
    document = load_wrapped_document(text)
    restored = ProjectSerializer.from_element(element_from_json_value("Project", document["Project"]))

    expected = example_project.model_copy(deep=True)
    strip_project(expected)
    assert restored == expected
    assert restored.get_layout("Main Scene").object_groups == []
    assert restored.get_layout("Main Scene").events == []
    assert restored.get_layout("Main Scene").variables.position("Y") == 1


def test_extension_includes_are_resolved_and_missing_ones_dropped(
    tmp_path: Path,
    example_project: Project,
    export_settings: ExportSettings,
    registry: InstructionMetadataRegistry,
    runtime_dir: Path,
):
    extension_file = runtime_dir / "Extensions" / "Physics" / "physicstools.js"
    extension_file.parent.mkdir(parents=True)
    extension_file.write_text("// physics", encoding="utf-8")
    registry.register(
        InstructionKind.ACTION,
        "Physics::Step",
        InstructionMetadata("Physics::Step", code=FunctionCode("gdjs.physics.step", include_file="Physics/physicstools.js")),
    )
    registry.register(
        InstructionKind.ACTION,
        "Ghost::Haunt",
        InstructionMetadata("Ghost::Haunt", code=FunctionCode("gdjs.ghost.haunt", include_file="ghost.js")),
    )
    layout = example_project.get_layout("Other")
    layout.events.append(
        Event(actions=[Instruction(type="Physics::Step"), Instruction(type="Ghost::Haunt"), Instruction(type="Physics::Step")])
    )
    export_dir = tmp_path / "export"

    result = ProjectExporter(export_settings, registry=registry).export_project(example_project, export_dir)

    assert "Extensions/Physics/physicstools.js" in result.includes
    assert (export_dir / "Extensions" / "Physics" / "physicstools.js").is_file()
    assert len(result.includes) == len(set(result.includes))
    assert not any("ghost.js" in include for include in result.includes)
    assert len(result.warnings) == 1
    assert "ghost.js" in result.warnings[0]


def test_minify_failure_falls_back_to_raw_files(
    tmp_path: Path, example_project: Project, minify_settings: ExportSettings
):
    runner = RecordingRunner(ProcessResult(exit_code=1, stderr="ERROR - parse error"))
    export_dir = tmp_path / "export"

    result = ProjectExporter(minify_settings, process_runner=runner).export_project(example_project, export_dir)

    assert len(runner.commands) == 1
    command = runner.commands[0]
    assert command[:3] == [str(minify_settings.java_path), "-jar", str(minify_settings.compiler_jar)]
    assert command[-2:] == ["--js_output_file", str(export_dir / "code.js")]
    assert command.count("--js") == len(RUNTIME_PREREQUISITES) + 3
    assert not result.minified
    assert len(result.warnings) == 1
    assert "exit code 1" in result.warnings[0]
    assert result.includes[-1] == "data.js"
    assert ExportStage.MINIFY in result.stages and ExportStage.COPY_RAW in result.stages
    assert (export_dir / "index.html").is_file()


def test_minify_out_of_memory_and_timeout_are_reported(
    tmp_path: Path, example_project: Project, minify_settings: ExportSettings
):
    out_of_memory = RecordingRunner(ProcessResult(exit_code=3, stderr="java.lang.OutOfMemoryError: Java heap space"))
    result = ProjectExporter(minify_settings, process_runner=out_of_memory).export_project(
        example_project, tmp_path / "export"
    )
    assert len(result.warnings) == 1
    assert "out of memory" in result.warnings[0]

    timed_out = RecordingRunner(ProcessResult(exit_code=-1, timed_out=True))
    result = ProjectExporter(minify_settings, process_runner=timed_out).export_project(
        example_project, tmp_path / "export"
    )
    assert len(result.warnings) == 1
    assert "300 seconds" in result.warnings[0]
    assert not result.minified


def test_minify_without_java_warns(tmp_path: Path, example_project: Project, minify_settings: ExportSettings):
    settings = minify_settings.model_copy(update={"java_path": tmp_path / "nowhere" / "java"})
    runner = RecordingRunner(ProcessResult(exit_code=0))

    result = ProjectExporter(settings, process_runner=runner).export_project(example_project, tmp_path / "export")

    assert runner.commands == []
    assert len(result.warnings) == 1
    assert "Java could not be found" in result.warnings[0]


def test_minify_success_references_single_script(
    tmp_path: Path, example_project: Project, minify_settings: ExportSettings
):
    runner = RecordingRunner(ProcessResult(exit_code=0), write_output=True)
    export_dir = tmp_path / "export"

    result = ProjectExporter(minify_settings, process_runner=runner).export_project(example_project, export_dir)

    assert result.minified
    assert result.includes == ["code.js"]
    page = (export_dir / "index.html").read_text(encoding="utf-8")
    assert '\t<script src="code.js"></script>\n' in page
    assert "gd.js" not in page
    assert not (export_dir / "gd.js").exists()


def test_missing_marker_is_fatal(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    assert export_settings.index_template is not None
    export_settings.index_template.write_text("<html><!-- GDJS_CUSTOM_STYLE --></html>", encoding="utf-8")
    exporter = ProjectExporter(export_settings)

    with pytest.raises(TemplateMarkerError):
        exporter.export_project(example_project, tmp_path / "export")
    assert "GDJS_CUSTOM_HTML" in exporter.last_error


def test_unreadable_template_is_fatal(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    settings = export_settings.model_copy(update={"index_template": tmp_path / "missing.html"})
    exporter = ProjectExporter(settings)

    with pytest.raises(ExportWriteError):
        exporter.export_project(example_project, tmp_path / "export")
    assert exporter.last_error


def test_missing_template_setting_is_fatal(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    settings = export_settings.model_copy(update={"index_template": None})
    exporter = ProjectExporter(settings)

    with pytest.raises(ExportError, match="No index template"):
        exporter.export_project(example_project, tmp_path / "export")
    assert exporter.last_error == "No index template is configured"


def test_metadata_target_lists_fonts_and_scripts(
    tmp_path: Path, example_project: Project, export_settings: ExportSettings
):
    font = tmp_path / "assets" / "Pixel.ttf"
    font.parent.mkdir()
    font.write_bytes(b"font")
    example_project.resources.append(Resource(name="pixel", kind="font", file=str(font)))
    settings = export_settings.model_copy(update={"target": "metadata"})
    export_dir = tmp_path / "export"

    result = ProjectExporter(settings).export_project(example_project, export_dir)

    assert result.entry_file == export_dir / "gd_metadata.json"
    assert not (export_dir / "index.html").exists()
    payload = json.loads(result.entry_file.read_text(encoding="utf-8"))
    assert payload["fonts"] == [
        {"ffamilyname": "gdjs_font_resources/Pixel.ttf", "filename": "resources/Pixel.ttf", "format": "truetype"}
    ]
    assert payload["scripts"] == result.includes
    assert payload["windowSize"] == {"w": 800, "h": 600}
    assert example_project.resources[0].file == str(font)


def test_missing_resources_are_warnings(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    example_project.resources.append(Resource(name="ghost", file=str(tmp_path / "ghost.png")))

    result = ProjectExporter(export_settings).export_project(example_project, tmp_path / "export")

    assert len(result.warnings) == 1
    assert "ghost" in result.warnings[0]


def test_archive_replaces_bundle_with_zip(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    settings = export_settings.model_copy(update={"archive": True})
    export_dir = tmp_path / "export"

    result = ProjectExporter(settings).export_project(example_project, export_dir)

    assert result.archive_path == export_dir / "zipped_project.zip"
    assert [path.name for path in export_dir.iterdir()] == ["zipped_project.zip"]
    with zipfile.ZipFile(result.archive_path) as archive:
        names = archive.namelist()
    assert "index.html" in names
    assert "libs/pixi.js" in names


def test_archive_failure_keeps_bundle(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    settings = export_settings.model_copy(update={"archive": True})
    export_dir = tmp_path / "export"

    result = ProjectExporter(settings, archiver=FailingArchiver()).export_project(example_project, export_dir)

    assert result.archive_path is None
    assert len(result.warnings) == 1
    assert "disk full" in result.warnings[0]
    assert (export_dir / "index.html").is_file()


def test_unwritable_archive_leaves_bundle_untouched(
    tmp_path: Path, example_project: Project, export_settings: ExportSettings, monkeypatch: pytest.MonkeyPatch
):
    settings = export_settings.model_copy(update={"archive": True})
    export_dir = tmp_path / "export"

    def no_space(self: Path, data: bytes) -> int:
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(Path, "write_bytes", no_space)
    result = ProjectExporter(settings).export_project(example_project, export_dir)

    assert result.archive_path is None
    assert len(result.warnings) == 1
    assert (export_dir / "index.html").is_file()
    assert not (export_dir / ".zipped_project.zip.partial").exists()


def test_archive_is_kept_when_it_cannot_be_renamed(
    tmp_path: Path, example_project: Project, export_settings: ExportSettings, monkeypatch: pytest.MonkeyPatch
):
    settings = export_settings.model_copy(update={"archive": True})
    export_dir = tmp_path / "export"

    def refuse(self: Path, target: Path) -> Path:
        raise OSError(errno.EACCES, "Permission denied")

    monkeypatch.setattr(Path, "replace", refuse)
    result = ProjectExporter(settings).export_project(example_project, export_dir)

    staged = export_dir / ".zipped_project.zip.partial"
    assert result.archive_path is None
    assert ".zipped_project.zip.partial" in result.warnings[0]
    assert [path.name for path in export_dir.iterdir()] == [staged.name]
    with zipfile.ZipFile(staged) as archive:
        assert "index.html" in archive.namelist()


def test_resource_copy_failure_is_fatal(
    tmp_path: Path, example_project: Project, export_settings: ExportSettings, monkeypatch: pytest.MonkeyPatch
):
    image = tmp_path / "hero.png"
    image.write_bytes(b"png")
    example_project.resources.append(Resource(name="hero", file=str(image)))

    def no_space(source: Path, destination: Path) -> None:
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(shutil, "copy2", no_space)
    exporter = ProjectExporter(export_settings)

    with pytest.raises(ExportWriteError):
        exporter.export_project(example_project, tmp_path / "export")
    assert "No space left on device" in exporter.last_error


def test_export_clears_previous_output_and_reports_progress(
    tmp_path: Path, example_project: Project, export_settings: ExportSettings
):
    export_dir = tmp_path / "export"
    (export_dir / "stale").mkdir(parents=True)
    (export_dir / "old.txt").write_text("old", encoding="utf-8")
    image = tmp_path / "hero.png"
    image.write_bytes(b"png")
    example_project.resources.append(Resource(name="hero", file=str(image)))
    updates: List[int] = []

    ProjectExporter(export_settings).export_project(
        example_project, export_dir, progress=lambda percent, message: updates.append(percent)
    )

    assert not (export_dir / "old.txt").exists()
    assert not (export_dir / "stale").exists()
    assert updates == sorted(updates)
    assert updates[-1] == 100


def test_preview_export_starts_on_requested_layout(
    tmp_path: Path, example_project: Project, minify_settings: ExportSettings
):
    runner = RecordingRunner(ProcessResult(exit_code=0), write_output=True)
    exporter = ProjectExporter(minify_settings.model_copy(update={"target": "metadata"}), process_runner=runner)
    export_dir = tmp_path / "preview"

    result = exporter.export_layout_for_preview(example_project, "Other", export_dir)

    assert runner.commands == []
    assert not result.minified
    assert result.entry_file == export_dir / "index.html"
    document = load_wrapped_document((export_dir / "data.js").read_text(encoding="utf-8"))
    assert document["Project"]["Properties"]["attr"]["firstLayout"] == "Other"
    assert example_project.properties.first_layout == "Main Scene"


def test_preview_of_unknown_layout_fails(tmp_path: Path, example_project: Project, export_settings: ExportSettings):
    exporter = ProjectExporter(export_settings)

    with pytest.raises(ExportError):
        exporter.export_layout_for_preview(example_project, "Nope", tmp_path / "preview")
    assert "Nope" in exporter.last_error
