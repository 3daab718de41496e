"""Domain package exposing project models, persistence and the export pipeline."""
from .export_errors import ExportError, ExportWriteError, TemplateMarkerError
from .export_settings import ExportSettings
from .models import (
    Event,
    Instruction,
    Layout,
    ObjectGroup,
    Project,
    ProjectProperties,
    Resource,
    SceneObject,
    Variable,
    VariablesContainer,
)
from .persistence import ProjectFileAdapter, ProjectSerializer

__all__ = [
    "Event",
    "ExportError",
    "ExportSettings",
    "ExportWriteError",
    "Instruction",
    "Layout",
    "ObjectGroup",
    "Project",
    "ProjectFileAdapter",
    "ProjectProperties",
    "ProjectSerializer",
    "Resource",
    "SceneObject",
    "TemplateMarkerError",
    "Variable",
    "VariablesContainer",
]
