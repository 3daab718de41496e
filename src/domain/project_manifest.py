"""Bundle entry points: the filled index page or the metadata descriptor.

Both list the bundle's script files (in include order, keeping only files that
exist) and declare every TrueType font found in the bundle so the runtime can
use it right away.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .export_errors import TemplateMarkerError
from .models import Project

CUSTOM_STYLE_MARKER = "<!-- GDJS_CUSTOM_STYLE -->"
CUSTOM_HTML_MARKER = "<!-- GDJS_CUSTOM_HTML -->"
CODE_FILES_MARKER = "<!-- GDJS_CODE_FILES -->"
TEMPLATE_MARKERS = (CUSTOM_STYLE_MARKER, CUSTOM_HTML_MARKER, CODE_FILES_MARKER)

INDEX_FILENAME = "index.html"
METADATA_FILENAME = "gd_metadata.json"
FONT_FORMAT = "truetype"
FONT_FAMILY_PREFIX = "gdjs_font_"


class FontRecord(BaseModel):
    """Font shipped in the bundle; the family name is derived from the path."""

    ffamilyname: str
    filename: str
    format: str = FONT_FORMAT


class WindowSize(BaseModel):
    w: int
    h: int


class BundleMetadata(BaseModel):
    """Descriptor written instead of an index page for upload-style exports."""

    model_config = ConfigDict(populate_by_name=True)

    fonts: List[FontRecord] = Field(default_factory=list)
    scripts: List[str] = Field(default_factory=list)
    window_size: WindowSize = Field(..., alias="windowSize")


def font_family_name(relative_path: str) -> str:
    return f"{FONT_FAMILY_PREFIX}{relative_path}"


def discover_fonts(export_dir: Path) -> List[str]:
    """Return bundle-relative paths of every ``.ttf`` file, sorted."""

    return sorted(
        path.relative_to(export_dir).as_posix()
        for path in export_dir.rglob("*")
        if path.is_file() and path.suffix.lower() == ".ttf"
    )


def fill_index_template(template: str, *, custom_style: str, custom_html: str, code_files: str) -> str:
    """Replace the three markers of ``template``.

    Raises :class:`TemplateMarkerError` unless each marker occurs exactly once.
    """

    for marker in TEMPLATE_MARKERS:
        occurrences = template.count(marker)
        if occurrences != 1:
            problem = "missing" if occurrences == 0 else f"present {occurrences} times"
            raise TemplateMarkerError(f"Index template marker {marker} is {problem}")
    return (
        template.replace(CUSTOM_STYLE_MARKER, custom_style)
        .replace(CUSTOM_HTML_MARKER, custom_html)
        .replace(CODE_FILES_MARKER, code_files)
    )


class BundleManifestBuilder:
    """Collect the scripts and fonts of an export directory."""

    def __init__(self, project: Project, export_dir: Path) -> None:
        self._project = project
        self._export_dir = export_dir

    def partition_scripts(self, includes: Iterable[str]) -> Tuple[List[str], List[str]]:
        """Split ``includes`` into files present in the bundle and missing ones."""

        present: List[str] = []
        missing: List[str] = []
        for include in includes:
            target = present if (self._export_dir / include).is_file() else missing
            target.append(include)
        return present, missing

    def fonts(self) -> List[FontRecord]:
        return [
            FontRecord(ffamilyname=font_family_name(relative), filename=relative)
            for relative in discover_fonts(self._export_dir)
        ]

    def build_metadata(self, scripts: Iterable[str]) -> BundleMetadata:
        properties = self._project.properties
        return BundleMetadata(
            fonts=self.fonts(),
            scripts=list(scripts),
            window_size=WindowSize(w=properties.window_width, h=properties.window_height),
        )

    def write_metadata(self, scripts: Iterable[str]) -> Path:
        destination = self._export_dir / METADATA_FILENAME
        metadata = self.build_metadata(scripts)
        destination.write_text(metadata.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        return destination

    def render_index(self, template: str, scripts: Iterable[str]) -> str:
        fonts = discover_fonts(self._export_dir)
        custom_style = "".join(
            f"@font-face{{ font-family : \"{font_family_name(font)}\"; src : url('{font}') format('{FONT_FORMAT}'); }}\n"
            for font in fonts
        )
        custom_html = "".join(
            f"<div style=\"font-family: '{font_family_name(font)}';\">.</div>\n" for font in fonts
        )
        code_files = "".join(f'\t<script src="{script}"></script>\n' for script in scripts)
        return fill_index_template(
            template,
            custom_style=custom_style,
            custom_html=custom_html,
            code_files=code_files,
        )


__all__ = [
    "BundleManifestBuilder",
    "BundleMetadata",
    "FontRecord",
    "WindowSize",
    "CODE_FILES_MARKER",
    "CUSTOM_HTML_MARKER",
    "CUSTOM_STYLE_MARKER",
    "INDEX_FILENAME",
    "METADATA_FILENAME",
    "discover_fonts",
    "fill_index_template",
    "font_family_name",
]
