"""Configuration consumed by :class:`domain.project_export_service.ProjectExporter`."""
from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

TEMPORARIES_DIRNAME = "JsPlatformTemporaries"
PATH_FIELDS = ("runtime_dir", "extensions_dir", "index_template", "code_output_dir", "java_path", "compiler_jar")


def default_code_output_dir() -> Path:
    return Path(tempfile.gettempdir()) / TEMPORARIES_DIRNAME / "JSCodeTemp"


class ExportSettings(BaseModel):
    """Locations of the runtime library plus export switches.

    Paths left unset are derived from ``runtime_dir``.
    """

    runtime_dir: Path = Field(..., description="Directory holding the runtime library files")
    extensions_dir: Optional[Path] = Field(None, description="Extension library directory")
    index_template: Optional[Path] = Field(None, description="HTML template with the GDJS markers")
    code_output_dir: Path = Field(
        default_factory=default_code_output_dir,
        description="Scratch directory receiving generated code before bundling",
    )
    target: Literal["index", "metadata"] = "index"
    minify: bool = False
    archive: bool = False
    java_path: Optional[Path] = None
    compiler_jar: Optional[Path] = None
    minify_timeout_seconds: float = Field(300.0, gt=0)
    data_variable: str = "gdjs.projectData"
    pretty_print_data: bool = False

    @model_validator(mode="after")
    def fill_runtime_paths(self) -> ExportSettings:  # type: ignore[override]
        if self.extensions_dir is None:
            self.extensions_dir = self.runtime_dir / "Extensions"
        if self.index_template is None:
            self.index_template = self.runtime_dir / "index.html"
        if self.compiler_jar is None:
            self.compiler_jar = self.runtime_dir.parent / "Tools" / "compiler.jar"
        return self

    @classmethod
    def from_file(cls, path: Path, **overrides: object) -> ExportSettings:
        """Load settings from a JSON file; keyword overrides win.

        Relative paths in the file are resolved against the file's directory.
        """

        payload = json.loads(path.read_text(encoding="utf-8"))
        for name in PATH_FIELDS:
            value = payload.get(name)
            if value and not Path(value).is_absolute():
                payload[name] = str(path.parent / value)
        payload.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(payload)


__all__ = ["ExportSettings", "default_code_output_dir"]
