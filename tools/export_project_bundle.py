"""CLI helper that exports a project document into a playable web bundle."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from domain.export_collaborators import ResourcesCopier
from domain.export_errors import ExportError
from domain.export_settings import ExportSettings
from domain.persistence import ProjectFileAdapter
from domain.project_export_service import ProjectExporter


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate events code for every layout and export the project as a web bundle.",
    )
    parser.add_argument(
        "--project-file",
        type=Path,
        required=True,
        help="Path to the project XML document.",
    )
    parser.add_argument(
        "--export-dir",
        type=Path,
        required=True,
        help="Destination directory; its previous content is removed.",
    )
    parser.add_argument(
        "--runtime-dir",
        type=Path,
        help="Directory holding the runtime library (required unless --settings provides it).",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="JSON file with export settings; command-line flags override its values.",
    )
    parser.add_argument(
        "--target",
        choices=("index", "metadata"),
        help="Write an index.html page (default) or a gd_metadata.json descriptor.",
    )
    parser.add_argument(
        "--minify",
        action="store_true",
        default=None,
        help="Compile every script into code.js with the Java-based minifier.",
    )
    parser.add_argument(
        "--archive",
        action="store_true",
        default=None,
        help="Replace the bundle with zipped_project.zip once exported.",
    )
    parser.add_argument(
        "--preview-layout",
        metavar="NAME",
        help="Export an unminified preview that starts on the given layout.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _build_settings(args: argparse.Namespace) -> ExportSettings:
    overrides = {
        "runtime_dir": args.runtime_dir.expanduser().resolve() if args.runtime_dir else None,
        "target": args.target,
        "minify": args.minify,
        "archive": args.archive,
    }
    if args.settings is not None:
        settings_file = args.settings.expanduser().resolve()
        if not settings_file.exists():
            raise SystemExit(f"Settings file '{settings_file}' does not exist.")
        return ExportSettings.from_file(settings_file, **overrides)
    if overrides["runtime_dir"] is None:
        raise SystemExit("Either --runtime-dir or --settings must be provided.")
    return ExportSettings.model_validate({key: value for key, value in overrides.items() if value is not None})


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    project_file = args.project_file.expanduser().resolve()
    if not project_file.exists():
        raise SystemExit(f"Project file '{project_file}' does not exist.")

    project = ProjectFileAdapter(project_file.parent).load(project_file.name)
    settings = _build_settings(args)
    export_dir = args.export_dir.expanduser().resolve()
    exporter = ProjectExporter(settings, resources_copier=ResourcesCopier(project_file.parent))

    try:
        if args.preview_layout:
            result = exporter.export_layout_for_preview(project, args.preview_layout, export_dir)
        else:
            result = exporter.export_project(project, export_dir)
    except ExportError as exc:
        print(f"Export failed: {exc}")
        return 1

    entry = result.archive_path or result.entry_file
    print(f"Exported {project.properties.name} to {entry}")
    print(f"Layouts: {len(result.code_files)} | Scripts: {len(result.includes)} | Minified: {'yes' if result.minified else 'no'}")
    for warning in result.warnings:
        print(f"Warning: {warning}")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
