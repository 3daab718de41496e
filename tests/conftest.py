import sys
from pathlib import Path

import pytest

from codegen.events import EventsCodeGenerator
from codegen.metadata import InstructionMetadataRegistry, create_default_registry
from domain.export_settings import ExportSettings
from domain.models import (
    Event,
    Instruction,
    Layout,
    ObjectGroup,
    Project,
    ProjectProperties,
    SceneObject,
    VariablesContainer,
)
from domain.project_export_service import RUNTIME_PREREQUISITES

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

INDEX_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<style>
<!-- GDJS_CUSTOM_STYLE -->
</style>
<!-- GDJS_CODE_FILES -->
</head>
<body>
<!-- GDJS_CUSTOM_HTML -->
</body>
</html>
"""


@pytest.fixture()
def index_template() -> str:
    return INDEX_TEMPLATE


@pytest.fixture()
def example_project() -> Project:
    project = Project(properties=ProjectProperties(name="Demo", author="Tests"))
    project.variables.add("Lives", "3")
    layout = Layout(
        name="Main Scene",
        variables=VariablesContainer(),
        objects=[SceneObject(name="Player"), SceneObject(name="Enemy")],
        object_groups=[ObjectGroup(name="Actors", objects=["Player", "Enemy"])],
        events=[
            Event(
                conditions=[Instruction(type="VarScene", parameters=["X", "=", "5"])],
                actions=[Instruction(type="ModVarScene", parameters=["Y", "=", "10"])],
            )
        ],
    )
    layout.variables.add("X", "0")
    layout.variables.add("Y", "0")
    project.add_layout(layout)
    project.add_layout(Layout(name="Other"))
    return project


@pytest.fixture()
def registry() -> InstructionMetadataRegistry:
    return create_default_registry()


@pytest.fixture()
def code_generator(registry: InstructionMetadataRegistry, example_project: Project) -> EventsCodeGenerator:
    return EventsCodeGenerator(registry, example_project, example_project.get_layout("Main Scene"))


@pytest.fixture()
def runtime_dir(tmp_path: Path) -> Path:
    runtime = tmp_path / "runtime"
    for include in RUNTIME_PREREQUISITES:
        destination = runtime / include
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(f"// {include}\n", encoding="utf-8")
    (runtime / "Extensions").mkdir()
    (runtime / "index.html").write_text(INDEX_TEMPLATE, encoding="utf-8")
    return runtime


@pytest.fixture()
def export_settings(tmp_path: Path, runtime_dir: Path) -> ExportSettings:
    return ExportSettings(runtime_dir=runtime_dir, code_output_dir=tmp_path / "codegen")
