"""Persistence helpers for reading and writing project documents.

Projects are stored as XML documents rooted at ``<Project>``. The exporter
converts that document form into normalized JSON (see
:mod:`domain.document_normalizer`), so element and attribute names here are
also the keys the target runtime reads (``attr.Name``, ``attr.Value``...).
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List
from xml.etree import ElementTree as ET

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


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


def _parse_bool(text: str | None) -> bool:
    return (text or "").strip().lower() in {"true", "1", "yes"}


class ProjectSerializer:
    """Convert :class:`Project` instances to/from documents and dicts."""

    @staticmethod
    def to_dict(project: Project) -> Dict[str, Any]:
        """Convert a project to a JSON-ready dictionary."""

        return project.model_dump(mode="json")

    @staticmethod
    def from_dict(payload: Dict[str, Any]) -> Project:
        """Rehydrate a project instance from serialized data."""

        return Project.model_validate(payload)

    # ------------------------------------------------------------------
    # Document form
    # ------------------------------------------------------------------
    @classmethod
    def to_element(cls, project: Project) -> ET.Element:
        """Build the ``<Project>`` document for ``project``."""

        root = ET.Element("Project")
        properties = project.properties
        ET.SubElement(
            root,
            "Properties",
            {
                "name": properties.name,
                "author": properties.author,
                "windowWidth": str(properties.window_width),
                "windowHeight": str(properties.window_height),
                "firstLayout": properties.first_layout,
            },
        )
        resources = ET.SubElement(root, "Resources")
        for resource in project.resources:
            ET.SubElement(
                resources,
                "Resource",
                {"name": resource.name, "kind": resource.kind, "file": resource.file},
            )
        root.append(cls._objects_element(project.objects))
        root.append(cls._groups_element(project.object_groups))
        root.append(cls._variables_element(project.variables))
        layouts = ET.SubElement(root, "Layouts")
        for layout in project.layouts:
            layouts.append(cls._layout_element(layout))
        return root

    @classmethod
    def from_element(cls, root: ET.Element) -> Project:
        """Rebuild a project from a ``<Project>`` document.

        Missing sections are accepted so stripped documents load as well.
        """

        if root.tag != "Project":
            raise ValueError(f"Expected a <Project> root element, got <{root.tag}>")
        props = root.find("Properties")
        attrs = props.attrib if props is not None else {}
        properties = ProjectProperties(
            name=attrs.get("name", "Project"),
            author=attrs.get("author", ""),
            window_width=int(attrs.get("windowWidth", 800)),
            window_height=int(attrs.get("windowHeight", 600)),
            first_layout=attrs.get("firstLayout", ""),
        )
        resources = [
            Resource(name=item.get("name", ""), kind=item.get("kind", "image"), file=item.get("file", ""))
            for item in cls._children(root.find("Resources"), "Resource")
        ]
        layouts = [cls._layout_from_element(item) for item in cls._children(root.find("Layouts"), "Layout")]
        return Project(
            properties=properties,
            variables=cls._variables_from_element(root.find("Variables")),
            objects=cls._objects_from_element(root.find("Objects")),
            object_groups=cls._groups_from_element(root.find("ObjectGroups")),
            resources=resources,
            layouts=layouts,
        )

    @classmethod
    def to_xml_string(cls, project: Project) -> str:
        return ET.tostring(cls.to_element(project), encoding="unicode")

    @classmethod
    def from_xml_string(cls, payload: str) -> Project:
        return cls.from_element(ET.fromstring(payload))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _children(parent: ET.Element | None, tag: str) -> Iterable[ET.Element]:
        if parent is None:
            return []
        return parent.findall(tag)

    @staticmethod
    def _variables_element(container: VariablesContainer) -> ET.Element:
        element = ET.Element("Variables")
        for variable in container.variables:
            ET.SubElement(element, "Variable", {"Name": variable.name, "Value": variable.value})
        return element

    @classmethod
    def _variables_from_element(cls, element: ET.Element | None) -> VariablesContainer:
        return VariablesContainer(
            variables=[
                Variable(name=item.get("Name", ""), value=item.get("Value", ""))
                for item in cls._children(element, "Variable")
            ]
        )

    @staticmethod
    def _objects_element(objects: List[SceneObject]) -> ET.Element:
        element = ET.Element("Objects")
        for obj in objects:
            ET.SubElement(element, "Object", {"name": obj.name, "type": obj.type})
        return element

    @classmethod
    def _objects_from_element(cls, element: ET.Element | None) -> List[SceneObject]:
        return [
            SceneObject(name=item.get("name", ""), type=item.get("type", "Sprite"))
            for item in cls._children(element, "Object")
        ]

    @staticmethod
    def _groups_element(groups: List[ObjectGroup]) -> ET.Element:
        element = ET.Element("ObjectGroups")
        for group in groups:
            group_element = ET.SubElement(element, "Group", {"name": group.name})
            for member in group.objects:
                ET.SubElement(group_element, "Object", {"name": member})
        return element

    @classmethod
    def _groups_from_element(cls, element: ET.Element | None) -> List[ObjectGroup]:
        return [
            ObjectGroup(
                name=item.get("name", ""),
                objects=[member.get("name", "") for member in item.findall("Object")],
            )
            for item in cls._children(element, "Group")
        ]

    @classmethod
    def _layout_element(cls, layout: Layout) -> ET.Element:
        element = ET.Element("Layout", {"name": layout.name})
        element.append(cls._variables_element(layout.variables))
        element.append(cls._objects_element(layout.objects))
        element.append(cls._groups_element(layout.object_groups))
        element.append(cls._events_element(layout.events))
        return element

    @classmethod
    def _layout_from_element(cls, element: ET.Element) -> Layout:
        return Layout(
            name=element.get("name", ""),
            variables=cls._variables_from_element(element.find("Variables")),
            objects=cls._objects_from_element(element.find("Objects")),
            object_groups=cls._groups_from_element(element.find("ObjectGroups")),
            events=cls._events_from_element(element.find("Events")),
        )

    @classmethod
    def _events_element(cls, events: List[Event]) -> ET.Element:
        element = ET.Element("Events")
        for event in events:
            event_element = ET.SubElement(
                element,
                "Event",
                {"type": event.type, "disabled": _bool_text(event.disabled)},
            )
            if event.comment:
                ET.SubElement(event_element, "Comment").text = event.comment
            event_element.append(cls._instructions_element("Conditions", event.conditions))
            event_element.append(cls._instructions_element("Actions", event.actions))
            if event.sub_events:
                event_element.append(cls._events_element(event.sub_events))
        return element

    @classmethod
    def _events_from_element(cls, element: ET.Element | None) -> List[Event]:
        events: List[Event] = []
        for item in cls._children(element, "Event"):
            comment = item.find("Comment")
            events.append(
                Event(
                    type=item.get("type", "Standard"),
                    disabled=_parse_bool(item.get("disabled")),
                    comment=(comment.text or "") if comment is not None else "",
                    conditions=cls._instructions_from_element(item.find("Conditions")),
                    actions=cls._instructions_from_element(item.find("Actions")),
                    sub_events=cls._events_from_element(item.find("Events")),
                )
            )
        return events

    @staticmethod
    def _instructions_element(tag: str, instructions: List[Instruction]) -> ET.Element:
        element = ET.Element(tag)
        for instruction in instructions:
            instruction_element = ET.SubElement(
                element,
                "Instruction",
                {"type": instruction.type, "inverted": _bool_text(instruction.inverted)},
            )
            for parameter in instruction.parameters:
                ET.SubElement(instruction_element, "Parameter").text = parameter
        return element

    @classmethod
    def _instructions_from_element(cls, element: ET.Element | None) -> List[Instruction]:
        return [
            Instruction(
                type=item.get("type", ""),
                inverted=_parse_bool(item.get("inverted")),
                parameters=[parameter.text or "" for parameter in item.findall("Parameter")],
            )
            for item in cls._children(element, "Instruction")
        ]


class ProjectFileAdapter:
    """Filesystem adapter that persists project documents under a base path."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def save(self, project: Project, filename: str) -> Path:
        """Write the project to ``base_path / filename`` and return the path."""

        destination = self.base_path / filename
        destination.parent.mkdir(parents=True, exist_ok=True)
        tree = ET.ElementTree(ProjectSerializer.to_element(project))
        ET.indent(tree)
        tree.write(destination, encoding="utf-8", xml_declaration=True)
        return destination

    def load(self, filename: str) -> Project:
        """Load the project stored at ``base_path / filename``."""

        source = self.base_path / filename
        return ProjectSerializer.from_element(ET.parse(source).getroot())
