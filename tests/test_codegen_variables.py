from codegen.variables import (
    VariableScope,
    assignment_code,
    comparison_code,
    variable_accessor,
    variable_exists_code,
)
from domain.models import Project


def test_declared_variables_use_positional_index(example_project: Project):
    layout = example_project.get_layout("Main Scene")

    assert variable_accessor("Y", VariableScope.SCENE, example_project, layout) == (
        "runtimeScene.getVariables().getFromIndex(1)"
    )
    assert variable_accessor("Lives", VariableScope.GLOBAL, example_project, layout) == (
        "runtimeScene.getGame().getVariables().getFromIndex(0)"
    )


def test_undeclared_variables_use_name_lookup(example_project: Project):
    layout = example_project.get_layout("Main Scene")

    assert variable_accessor("Score", VariableScope.SCENE, example_project, layout) == (
        'runtimeScene.getVariables().get("Score")'
    )
    # Declared in the scene only, so the global container looks it up by name.
    assert variable_accessor("X", VariableScope.GLOBAL, example_project, layout) == (
        'runtimeScene.getGame().getVariables().get("X")'
    )


def test_each_call_reflects_current_declarations(example_project: Project):
    layout = example_project.get_layout("Other")

    before = variable_accessor("Timer", VariableScope.SCENE, example_project, layout)
    layout.variables.add("Timer", "0")
    after = variable_accessor("Timer", VariableScope.SCENE, example_project, layout)

    assert before == 'runtimeScene.getVariables().get("Timer")'
    assert after == "runtimeScene.getVariables().getFromIndex(0)"


def test_variable_exists_code():
    assert variable_exists_code("Score", VariableScope.SCENE) == 'runtimeScene.getVariables().has("Score")'
    assert variable_exists_code("Best", VariableScope.GLOBAL) == 'runtimeScene.getGame().getVariables().has("Best")'


def test_numeric_assignments():
    accessor = "acc"

    assert assignment_code(accessor, "=", "1", textual=False) == "acc.setNumber(1);\n"
    assert assignment_code(accessor, "+", "1", textual=False) == "acc.add(1);\n"
    assert assignment_code(accessor, "-", "1", textual=False) == "acc.sub(1);\n"
    assert assignment_code(accessor, "*", "2", textual=False) == "acc.mul(2);\n"
    assert assignment_code(accessor, "/", "2", textual=False) == "acc.div(2);\n"
    assert assignment_code(accessor, "%", "2", textual=False) == ""


def test_text_assignments_only_support_set_and_concatenate():
    assert assignment_code("acc", "=", '"a"', textual=True) == 'acc.setString("a");\n'
    assert assignment_code("acc", "+", '"a"', textual=True) == 'acc.concatenate("a");\n'
    assert assignment_code("acc", "-", '"a"', textual=True) == ""


def test_comparisons():
    assert comparison_code("b.val", "acc", "=", "5", textual=False) == "b.val = acc.getAsNumber() === 5;"
    assert comparison_code("b.val", "acc", ">=", "5", textual=False) == "b.val = acc.getAsNumber() >= 5;"
    assert comparison_code("b.val", "acc", "!=", '"x"', textual=True) == 'b.val = acc.getAsString() !== "x";'
    assert comparison_code("b.val", "acc", "<", '"x"', textual=True) == ""
    assert comparison_code("b.val", "acc", "~", "5", textual=False) == ""
