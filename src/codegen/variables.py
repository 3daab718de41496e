"""Variable accessor emission with positional-index optimization.

When a variable is declared in the scene (or project) container at generation
time, the generated code fetches it by index; otherwise it falls back to a
name lookup. Both forms behave identically at runtime, since the runtime
container is initialized from the same declarations in the same order.
Each call resolves independently; nothing is cached between call sites.
"""
from __future__ import annotations

import json
from enum import Enum

from domain.models import Layout, Project, VariablesContainer

SCENE_VARIABLES = "runtimeScene.getVariables()"
GLOBAL_VARIABLES = "runtimeScene.getGame().getVariables()"

NUMERIC_ASSIGNMENTS = {"=": "setNumber", "+": "add", "-": "sub", "*": "mul", "/": "div"}
TEXT_ASSIGNMENTS = {"=": "setString", "+": "concatenate"}
NUMERIC_COMPARISONS = {"=": "===", "": "===", "!=": "!==", "<": "<", ">": ">", "<=": "<=", ">=": ">="}
TEXT_COMPARISONS = {"=": "===", "": "===", "!=": "!=="}


class VariableScope(str, Enum):
    SCENE = "scene"
    GLOBAL = "global"


def quote(text: str) -> str:
    """Return ``text`` as a target-runtime string literal."""

    return json.dumps(text, ensure_ascii=False)


def _scope_source(scope: VariableScope, project: Project, layout: Layout) -> tuple[str, VariablesContainer]:
    if scope is VariableScope.GLOBAL:
        return GLOBAL_VARIABLES, project.variables
    return SCENE_VARIABLES, layout.variables


def variable_accessor(name: str, scope: VariableScope, project: Project, layout: Layout) -> str:
    """Return code fetching the runtime variable ``name`` from ``scope``."""

    container_code, container = _scope_source(scope, project, layout)
    index = container.position(name)
    if index is not None:
        return f"{container_code}.getFromIndex({index})"
    return f"{container_code}.get({quote(name)})"


def variable_exists_code(name: str, scope: VariableScope) -> str:
    container_code = GLOBAL_VARIABLES if scope is VariableScope.GLOBAL else SCENE_VARIABLES
    return f"{container_code}.has({quote(name)})"


def assignment_code(accessor: str, operator: str, value_code: str, *, textual: bool) -> str:
    """Return the statement applying ``operator`` or ``""`` when unsupported."""

    methods = TEXT_ASSIGNMENTS if textual else NUMERIC_ASSIGNMENTS
    method = methods.get(operator)
    if method is None:
        return ""
    return f"{accessor}.{method}({value_code});\n"


def comparison_code(boolean: str, accessor: str, operator: str, value_code: str, *, textual: bool) -> str:
    """Return the statement storing the comparison result in ``boolean``."""

    operators = TEXT_COMPARISONS if textual else NUMERIC_COMPARISONS
    js_operator = operators.get(operator)
    if js_operator is None:
        return ""
    getter = "getAsString" if textual else "getAsNumber"
    return f"{boolean} = {accessor}.{getter}() {js_operator} {value_code};"


__all__ = [
    "VariableScope",
    "quote",
    "variable_accessor",
    "variable_exists_code",
    "assignment_code",
    "comparison_code",
]
