"""Pydantic-powered domain models for visually authored game projects.

A :class:`Project` aggregates layouts (scenes), each owning an event tree and
its own variables, plus the global variables, objects, groups, and resources
shared by every layout. The exporter clones a project with
``model_copy(deep=True)`` before stripping authoring-only data, so nothing here
is ever mutated by an export run.
"""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class ProjectProperties(BaseModel):
    """Project-wide settings serialized alongside the layouts."""

    name: str = "Project"
    author: str = ""
    window_width: int = Field(800, gt=0, description="Default window width in pixels")
    window_height: int = Field(600, gt=0, description="Default window height in pixels")
    first_layout: str = Field("", description="Layout started first by the runtime")


class Variable(BaseModel):
    """Named initial value; the runtime guesses number vs text when loading."""

    name: str
    value: str = ""


class VariablesContainer(BaseModel):
    """Ordered variables with unique names and stable positional indices."""

    variables: List[Variable] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_names(self) -> VariablesContainer:  # type: ignore[override]
        names = [variable.name for variable in self.variables]
        if len(names) != len(set(names)):
            raise ValueError("Variable names must be unique inside a container")
        return self

    def has(self, name: str) -> bool:
        return self.position(name) is not None

    def get(self, name: str) -> Variable:
        """Return the variable called ``name``, raising ``KeyError`` if undeclared."""

        index = self.position(name)
        if index is None:
            raise KeyError(f"Variable {name!r} not declared")
        return self.variables[index]

    def position(self, name: str) -> Optional[int]:
        """Return the index of ``name`` or ``None`` when it is not declared."""

        for index, variable in enumerate(self.variables):
            if variable.name == name:
                return index
        return None

    def count(self) -> int:
        return len(self.variables)

    def add(self, name: str, value: str = "") -> Variable:
        """Declare ``name``; an existing variable keeps its position."""

        index = self.position(name)
        if index is not None:
            self.variables[index].value = value
            return self.variables[index]
        variable = Variable(name=name, value=value)
        self.variables.append(variable)
        return variable

    def remove(self, name: str) -> None:
        index = self.position(name)
        if index is None:
            raise KeyError(f"Variable {name!r} not declared")
        del self.variables[index]


class SceneObject(BaseModel):
    """Object declaration referenced by instructions and groups."""

    name: str
    type: str = "Sprite"


class ObjectGroup(BaseModel):
    """Named set of objects; events may target a group instead of an object."""

    name: str
    objects: List[str] = Field(default_factory=list)


class Resource(BaseModel):
    """File used by the game (image, font, audio)."""

    name: str
    kind: Literal["image", "font", "audio"] = "image"
    file: str = Field(..., description="Path relative to the project directory, or absolute")


class Instruction(BaseModel):
    """Condition or action referencing a registered identifier."""

    type: str
    parameters: List[str] = Field(default_factory=list)
    inverted: bool = Field(False, description="Negate the result (conditions only)")


class Event(BaseModel):
    """Node of an event tree: conditions gate actions and sub-events."""

    type: Literal["Standard", "Comment"] = "Standard"
    disabled: bool = False
    comment: str = ""
    conditions: List[Instruction] = Field(default_factory=list)
    actions: List[Instruction] = Field(default_factory=list)
    sub_events: List[Event] = Field(default_factory=list)

    @property
    def executable(self) -> bool:
        """Return ``True`` when the event produces code."""

        return self.type == "Standard" and not self.disabled


class Layout(BaseModel):
    """A scene: one event tree plus its own variable scope."""

    name: str
    variables: VariablesContainer = Field(default_factory=VariablesContainer)
    objects: List[SceneObject] = Field(default_factory=list)
    object_groups: List[ObjectGroup] = Field(default_factory=list)
    events: List[Event] = Field(default_factory=list)


class Project(BaseModel):
    """Top-level container storing layouts and everything they share."""

    properties: ProjectProperties = Field(default_factory=ProjectProperties)
    variables: VariablesContainer = Field(default_factory=VariablesContainer)
    objects: List[SceneObject] = Field(default_factory=list)
    object_groups: List[ObjectGroup] = Field(default_factory=list)
    resources: List[Resource] = Field(default_factory=list)
    layouts: List[Layout] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_layout_names(self) -> Project:  # type: ignore[override]
        names = [layout.name for layout in self.layouts]
        if len(names) != len(set(names)):
            raise ValueError("Layout names must be unique inside a project")
        return self

    def has_layout(self, name: str) -> bool:
        return any(layout.name == name for layout in self.layouts)

    def get_layout(self, name: str) -> Layout:
        """Return the layout called ``name``, raising ``KeyError`` if unknown."""

        for layout in self.layouts:
            if layout.name == name:
                return layout
        raise KeyError(f"Layout {name!r} not found")

    def add_layout(self, layout: Layout) -> None:
        """Append a layout, raising if the name is already taken."""

        if self.has_layout(layout.name):
            raise ValueError(f"Layout {layout.name!r} already exists")
        self.layouts.append(layout)
        if not self.properties.first_layout:
            self.properties.first_layout = layout.name

    def find_object(self, name: str, layout: Layout | None = None) -> SceneObject | None:
        """Look up an object in ``layout`` first, then among global objects."""

        candidates = list(layout.objects) if layout is not None else []
        for obj in candidates + list(self.objects):
            if obj.name == name:
                return obj
        return None

    def find_group(self, name: str, layout: Layout | None = None) -> ObjectGroup | None:
        """Look up a group in ``layout`` first, then among global groups."""

        candidates = list(layout.object_groups) if layout is not None else []
        for group in candidates + list(self.object_groups):
            if group.name == name:
                return group
        return None
