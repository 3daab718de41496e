import pytest

from domain.models import (
    Event,
    Layout,
    ObjectGroup,
    Project,
    SceneObject,
    Variable,
    VariablesContainer,
)


def test_variables_container_positions_follow_declaration_order():
    container = VariablesContainer()
    container.add("Score", "0")
    container.add("Name", "Hero")

    assert container.position("Score") == 0
    assert container.position("Name") == 1
    assert container.position("Missing") is None
    assert container.has("Name")
    assert container.count() == 2


def test_variables_container_add_keeps_position_of_existing_variable():
    container = VariablesContainer()
    container.add("Score", "0")
    container.add("Lives", "3")
    container.add("Score", "10")

    assert container.position("Score") == 0
    assert container.get("Score").value == "10"
    assert container.count() == 2


def test_variables_container_remove_and_missing_lookup():
    container = VariablesContainer(variables=[Variable(name="A"), Variable(name="B")])
    container.remove("A")

    assert container.position("B") == 0
    with pytest.raises(KeyError):
        container.get("A")
    with pytest.raises(KeyError):
        container.remove("A")


def test_variables_container_rejects_duplicate_names():
    with pytest.raises(ValueError):
        VariablesContainer(variables=[Variable(name="A"), Variable(name="A")])


def test_project_add_layout_sets_first_layout_and_rejects_duplicates():
    project = Project()
    project.add_layout(Layout(name="Intro"))
    project.add_layout(Layout(name="Level 1"))

    assert project.properties.first_layout == "Intro"
    assert project.has_layout("Level 1")
    assert project.get_layout("Level 1").name == "Level 1"
    with pytest.raises(ValueError):
        project.add_layout(Layout(name="Intro"))
    with pytest.raises(KeyError):
        project.get_layout("Unknown")


def test_project_finds_layout_objects_before_global_ones():
    layout = Layout(
        name="Scene",
        objects=[SceneObject(name="Hero", type="Sprite")],
        object_groups=[ObjectGroup(name="Team", objects=["Hero"])],
    )
    project = Project(
        objects=[SceneObject(name="Hero", type="Text"), SceneObject(name="Hud", type="Text")],
        object_groups=[ObjectGroup(name="Everyone", objects=["Hero", "Hud"])],
        layouts=[layout],
    )

    assert project.find_object("Hero", layout).type == "Sprite"
    assert project.find_object("Hero").type == "Text"
    assert project.find_object("Hud", layout).type == "Text"
    assert project.find_object("Nobody", layout) is None
    assert project.find_group("Team", layout).objects == ["Hero"]
    assert project.find_group("Everyone", layout).objects == ["Hero", "Hud"]
    assert project.find_group("Team") is None


def test_deep_copy_isolates_layout_events(example_project: Project):
    clone = example_project.model_copy(deep=True)
    clone.get_layout("Main Scene").events.clear()
    clone.get_layout("Main Scene").variables.add("Z", "1")

    original = example_project.get_layout("Main Scene")
    assert len(original.events) == 1
    assert not original.variables.has("Z")


def test_event_executable_flags():
    assert Event().executable
    assert not Event(disabled=True).executable
    assert not Event(type="Comment", comment="Notes").executable
