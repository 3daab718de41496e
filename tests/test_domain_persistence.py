from pathlib import Path
from typing import Dict

from domain.models import Event, Instruction, Project, Resource
from domain.persistence import ProjectFileAdapter, ProjectSerializer


def _enrich(project: Project) -> Project:
    project.resources.append(Resource(name="hero", kind="image", file="images/hero.png"))
    layout = project.get_layout("Main Scene")
    layout.events.append(
        Event(
            comment="Nested",
            conditions=[Instruction(type="SourisBouton", parameters=["Left"], inverted=True)],
            sub_events=[Event(actions=[Instruction(type="ModVarSceneTxt", parameters=["Name", "=", '"Hero"'])])],
        )
    )
    layout.events.append(Event(type="Comment", comment="Just a note"))
    layout.events.append(Event(disabled=True, actions=[Instruction(type="CacheSouris", parameters=[""])]))
    return project


def test_project_serializer_round_trip(example_project: Project):
    payload: Dict[str, object] = ProjectSerializer.to_dict(example_project)
    restored = ProjectSerializer.from_dict(payload)
    assert restored == example_project


def test_document_round_trip_keeps_every_field(example_project: Project):
    project = _enrich(example_project)

    restored = ProjectSerializer.from_xml_string(ProjectSerializer.to_xml_string(project))

    assert restored == project


def test_document_stores_variables_as_name_value_attributes(example_project: Project):
    root = ProjectSerializer.to_element(example_project)

    variables = root.find("Layouts/Layout/Variables")
    assert [(item.get("Name"), item.get("Value")) for item in variables] == [("X", "0"), ("Y", "0")]
    assert root.find("Properties").get("firstLayout") == "Main Scene"


def test_document_without_optional_sections_loads():
    restored = ProjectSerializer.from_xml_string(
        '<Project><Properties name="Bare" windowWidth="320" windowHeight="240"/>'
        '<Layouts><Layout name="Only"/></Layouts></Project>'
    )

    assert restored.properties.name == "Bare"
    assert restored.properties.window_width == 320
    assert restored.get_layout("Only").events == []
    assert restored.object_groups == []


def test_project_file_adapter_round_trip(tmp_path: Path, example_project: Project):
    project = _enrich(example_project)
    adapter = ProjectFileAdapter(tmp_path)
    destination = adapter.save(project, "project.xml")
    assert destination.exists()
    assert destination.read_text(encoding="utf-8").startswith("<?xml")

    loaded = adapter.load("project.xml")
    assert loaded == project
