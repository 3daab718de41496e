"""Normalize structured project documents into JSON-representable trees.

The document form of a project is XML: nodes can carry text *and* children,
attributes live beside children, and siblings may share a tag. JSON objects
can express none of that directly, so :func:`normalize` rewrites each level
(top-down) before serialization:

1. a node holding both a value and children moves the value into a ``value``
   child;
2. the ``<xmlattr>`` child holding attributes is renamed ``attr``;
3. children sharing a key collapse into a single array-valued child.

The result maps onto JSON without further interpretation. Trees are rebuilt
rather than mutated in place, so callers may keep using the input tree.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Tuple
from xml.etree import ElementTree as ET

ATTRIBUTES_KEY = "<xmlattr>"
NORMALIZED_ATTRIBUTES_KEY = "attr"
VALUE_KEY = "value"

_WRAPPED_DOCUMENT = re.compile(r"^\s*[A-Za-z_$][\w$.]*\s*=\s*(?P<body>.*?);?\s*$", re.DOTALL)


class DocumentNormalizationError(Exception):
    """Raised when a document cannot be normalized or serialized."""


@dataclass
class PropertyTree:
    """Node holding an optional scalar value and ordered keyed children.

    Array elements are stored as children with an empty key.
    """

    value: str = ""
    children: List[Tuple[str, PropertyTree]] = field(default_factory=list)

    @classmethod
    def from_element(cls, element: ET.Element) -> PropertyTree:
        """Convert an XML element, keeping attributes under ``<xmlattr>``."""

        children: List[Tuple[str, PropertyTree]] = []
        if element.attrib:
            attributes = cls(children=[(name, cls(value)) for name, value in element.attrib.items()])
            children.append((ATTRIBUTES_KEY, attributes))
        for child in element:
            children.append((child.tag, cls.from_element(child)))
        text = element.text or ""
        return cls(value=text if text.strip() else "", children=children)

    def keys(self) -> List[str]:
        return [key for key, _ in self.children]

    def count(self, key: str) -> int:
        return sum(1 for child_key, _ in self.children if child_key == key)

    def get(self, key: str) -> PropertyTree | None:
        for child_key, child in self.children:
            if child_key == key:
                return child
        return None


def _put_child(children: List[Tuple[str, PropertyTree]], key: str, child: PropertyTree) -> None:
    """Replace the first child called ``key`` or append a new one."""

    for index, (existing_key, _) in enumerate(children):
        if existing_key == key:
            children[index] = (key, child)
            return
    children.append((key, child))


def normalize(tree: PropertyTree) -> PropertyTree:
    """Return a normalized copy of ``tree``."""

    value = tree.value
    children = list(tree.children)

    if value and children:
        _put_child(children, VALUE_KEY, PropertyTree(value))
        value = ""

    if any(key == ATTRIBUTES_KEY for key, _ in children):
        attributes = next(child for key, child in children if key == ATTRIBUTES_KEY)
        _put_child(children, NORMALIZED_ATTRIBUTES_KEY, attributes)
        children = [(key, child) for key, child in children if key != ATTRIBUTES_KEY]

    # Keys are collected first; each duplicated key is rebuilt at the end.
    seen: List[str] = []
    for key, _ in children:
        if key and key not in seen:
            seen.append(key)
    for key in seen:
        matching = [child for child_key, child in children if child_key == key]
        if len(matching) > 1:
            array = PropertyTree(children=[("", child) for child in matching])
            children = [(child_key, child) for child_key, child in children if child_key != key]
            children.append((key, array))

    return PropertyTree(value=value, children=[(key, normalize(child)) for key, child in children])


def to_json_value(tree: PropertyTree) -> Any:
    """Map a normalized tree to plain JSON values (strings, lists, dicts)."""

    if not tree.children:
        return tree.value
    if all(key == "" for key, _ in tree.children):
        return [to_json_value(child) for _, child in tree.children]
    payload: dict[str, Any] = {}
    for key, child in tree.children:
        if key in payload:
            raise DocumentNormalizationError(f"Duplicate key {key!r} left after normalization")
        payload[key] = to_json_value(child)
    return payload


def dumps(tree: PropertyTree, *, pretty: bool = False) -> str:
    """Serialize a normalized tree to JSON text."""

    try:
        if pretty:
            return json.dumps(to_json_value(tree), indent=4, ensure_ascii=False)
        return json.dumps(to_json_value(tree), separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError, RecursionError) as exc:
        raise DocumentNormalizationError(f"Unable to serialize document: {exc}") from exc


def element_to_json(element: ET.Element, *, pretty: bool = False) -> str:
    """Normalize ``element`` and serialize it, wrapped in its root tag."""

    try:
        root = PropertyTree(children=[(element.tag, PropertyTree.from_element(element))])
        normalized = normalize(root)
    except RecursionError as exc:
        raise DocumentNormalizationError("Document is too deeply nested to normalize") from exc
    return dumps(normalized, pretty=pretty)


def wrap_into_variable(document: str, variable: str) -> str:
    """Return ``variable = document;`` so the data loads as a plain include."""

    if not variable:
        return document
    return f"{variable} = {document};"


def load_wrapped_document(text: str) -> Any:
    """Parse JSON text, accepting the ``name = {...};`` wrapper."""

    payload = text.strip()
    if not payload.startswith(("{", "[", '"')):
        match = _WRAPPED_DOCUMENT.match(payload)
        if match is None:
            raise DocumentNormalizationError("Unrecognized data document wrapper")
        payload = match.group("body")
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise DocumentNormalizationError(f"Invalid JSON document: {exc}") from exc


def element_from_json_value(tag: str, value: Any) -> ET.Element:
    """Rebuild an XML element from its normalized JSON value.

    Inverse of normalization: ``attr`` becomes attributes, ``value`` becomes
    text and arrays become repeated siblings.
    """

    element = ET.Element(tag)
    if isinstance(value, str):
        element.text = value or None
        return element
    if not isinstance(value, dict):
        raise DocumentNormalizationError(f"Unexpected value for <{tag}>: {type(value).__name__}")
    for key, child in value.items():
        if key == NORMALIZED_ATTRIBUTES_KEY and isinstance(child, dict):
            for name, attribute in child.items():
                element.set(name, str(attribute))
        elif key == VALUE_KEY and isinstance(child, str):
            element.text = child
        elif isinstance(child, list):
            for item in child:
                element.append(element_from_json_value(key, item))
        else:
            element.append(element_from_json_value(key, child))
    return element


__all__ = [
    "DocumentNormalizationError",
    "PropertyTree",
    "normalize",
    "to_json_value",
    "dumps",
    "element_to_json",
    "wrap_into_variable",
    "load_wrapped_document",
    "element_from_json_value",
]
