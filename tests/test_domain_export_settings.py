import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from domain.export_settings import ExportSettings


def test_paths_are_derived_from_runtime_dir(tmp_path: Path) -> None:
    runtime = tmp_path / "Runtime"

    settings = ExportSettings(runtime_dir=runtime)

    assert settings.extensions_dir == runtime / "Extensions"
    assert settings.index_template == runtime / "index.html"
    assert settings.compiler_jar == tmp_path / "Tools" / "compiler.jar"
    assert settings.code_output_dir.name == "JSCodeTemp"
    assert settings.minify_timeout_seconds == 300
    assert settings.target == "index"


def test_from_file_resolves_relative_paths_and_applies_overrides(tmp_path: Path) -> None:
    settings_file = tmp_path / "config" / "export.json"
    settings_file.parent.mkdir()
    settings_file.write_text(
        json.dumps({"runtime_dir": "runtime", "minify": True, "target": "metadata"}),
        encoding="utf-8",
    )

    settings = ExportSettings.from_file(settings_file, target="index", archive=None)

    assert settings.runtime_dir == tmp_path / "config" / "runtime"
    assert settings.index_template == tmp_path / "config" / "runtime" / "index.html"
    assert settings.minify is True
    assert settings.target == "index"
    assert settings.archive is False


def test_invalid_values_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        ExportSettings(runtime_dir=tmp_path, target="zip")
    with pytest.raises(ValidationError):
        ExportSettings(runtime_dir=tmp_path, minify_timeout_seconds=0)
