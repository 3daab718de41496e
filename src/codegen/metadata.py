"""Instruction and expression metadata plus the registry consulted by codegen.

Every condition, action, and expression is described by
:class:`InstructionMetadata`. Its ``code`` field picks exactly one code
generation strategy:

* :class:`FunctionCode` maps the identifier to a fixed target-runtime function
  (optionally with an associated getter used by operator-style actions);
* :class:`CustomCode` delegates to a callable returning the complete code.

Extensions declare their metadata, clone a platform-independent base set and
override the entries they implement; :meth:`ExtensionMetadata.strip_unimplemented`
then drops every entry left without code.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

MetadataKey = Tuple[str, str]


class InstructionKind(str, Enum):
    """Table an identifier is registered in."""

    CONDITION = "condition"
    ACTION = "action"
    EXPRESSION = "expression"
    STR_EXPRESSION = "str_expression"


@dataclass(frozen=True)
class ParameterMetadata:
    """Describe one parameter; code-only parameters are never authored."""

    type: str
    description: str = ""
    code_only: bool = False

    @property
    def is_object(self) -> bool:
        return self.type in {"object", "objectList"}


@dataclass(frozen=True)
class FunctionCode:
    """Fixed mapping to a target-runtime function."""

    function_name: str
    associated_getter: str = ""
    include_file: str = ""


@dataclass(frozen=True)
class CustomCode:
    """Pluggable generator returning the complete code for one use.

    Instruction generators receive ``(instruction, generator, context)``;
    expression generators receive ``(parameters, generator, context)``.
    """

    generator: Callable[..., str]
    include_file: str = ""


CodeDescriptor = Union[FunctionCode, CustomCode]


@dataclass
class InstructionMetadata:
    """Presentation data plus the active code generation strategy."""

    identifier: str
    full_name: str = ""
    description: str = ""
    group: str = ""
    parameters: List[ParameterMetadata] = field(default_factory=list)
    object_type: str = ""
    code: Optional[CodeDescriptor] = None

    @property
    def implemented(self) -> bool:
        if isinstance(self.code, FunctionCode):
            return bool(self.code.function_name)
        return isinstance(self.code, CustomCode)

    @property
    def authored_parameters(self) -> List[ParameterMetadata]:
        return [parameter for parameter in self.parameters if not parameter.code_only]

    def has_parameter(self, parameter_type: str) -> bool:
        return any(parameter.type == parameter_type for parameter in self.parameters)


class ExtensionMetadata:
    """Metadata tables contributed by one extension."""

    def __init__(
        self,
        name: str,
        *,
        full_name: str = "",
        description: str = "",
        author: str = "",
        license: str = "",
    ) -> None:
        self.name = name
        self.full_name = full_name
        self.description = description
        self.author = author
        self.license = license
        self._tables: Dict[InstructionKind, Dict[MetadataKey, InstructionMetadata]] = {
            kind: {} for kind in InstructionKind
        }

    def declare(
        self,
        kind: InstructionKind,
        identifier: str,
        *,
        full_name: str = "",
        description: str = "",
        group: str = "",
        parameters: Sequence[ParameterMetadata] = (),
        object_type: str = "",
    ) -> InstructionMetadata:
        """Declare an entry without code; later calls replace earlier ones."""

        metadata = InstructionMetadata(
            identifier=identifier,
            full_name=full_name,
            description=description,
            group=group,
            parameters=list(parameters),
            object_type=object_type,
        )
        self._tables[kind][(object_type, identifier)] = metadata
        return metadata

    def entries(self, kind: InstructionKind) -> Dict[MetadataKey, InstructionMetadata]:
        return self._tables[kind]

    def get(self, kind: InstructionKind, identifier: str, object_type: str = "") -> InstructionMetadata:
        try:
            return self._tables[kind][(object_type, identifier)]
        except KeyError as exc:
            raise KeyError(
                f"{kind.value} {identifier!r} not declared by extension {self.name!r}"
            ) from exc

    def set_function(
        self,
        kind: InstructionKind,
        identifier: str,
        function_name: str,
        *,
        associated_getter: str = "",
        include_file: str = "",
        object_type: str = "",
    ) -> InstructionMetadata:
        metadata = self.get(kind, identifier, object_type)
        metadata.code = FunctionCode(
            function_name=function_name,
            associated_getter=associated_getter,
            include_file=include_file,
        )
        return metadata

    def set_custom_generator(
        self,
        kind: InstructionKind,
        identifier: str,
        generator: Callable[..., str],
        *,
        include_file: str = "",
        object_type: str = "",
    ) -> InstructionMetadata:
        metadata = self.get(kind, identifier, object_type)
        metadata.code = CustomCode(generator=generator, include_file=include_file)
        return metadata

    def add_code_only_parameter(
        self,
        kind: InstructionKind,
        identifier: str,
        parameter_type: str,
        *,
        position: int = 0,
        object_type: str = "",
    ) -> InstructionMetadata:
        """Insert an implicit parameter the target runtime needs."""

        metadata = self.get(kind, identifier, object_type)
        metadata.parameters.insert(position, ParameterMetadata(type=parameter_type, code_only=True))
        return metadata

    def clone_from(self, base: ExtensionMetadata) -> None:
        """Copy every entry of ``base`` with its code strategy cleared."""

        for kind in InstructionKind:
            for key, metadata in base.entries(kind).items():
                cloned = copy.deepcopy(metadata)
                cloned.code = None
                self._tables[kind][key] = cloned

    def strip_unimplemented(self) -> List[MetadataKey]:
        """Remove entries without code and return their keys."""

        removed: List[MetadataKey] = []
        for table in self._tables.values():
            for key in [key for key, metadata in table.items() if not metadata.implemented]:
                del table[key]
                removed.append(key)
        return removed


class InstructionMetadataRegistry:
    """Flat lookup tables merged from every registered extension.

    Built once per export run and handed to every generator call.
    """

    def __init__(self) -> None:
        self._tables: Dict[InstructionKind, Dict[MetadataKey, InstructionMetadata]] = {
            kind: {} for kind in InstructionKind
        }
        self._extensions: List[str] = []

    def register(
        self,
        kind: InstructionKind,
        identifier: str,
        metadata: InstructionMetadata,
        *,
        object_type: str = "",
    ) -> None:
        self._tables[kind][(object_type, identifier)] = metadata

    def register_extension(self, extension: ExtensionMetadata) -> None:
        for kind in InstructionKind:
            for (object_type, identifier), metadata in extension.entries(kind).items():
                self.register(kind, identifier, metadata, object_type=object_type)
        if extension.name not in self._extensions:
            self._extensions.append(extension.name)

    def lookup(
        self, kind: InstructionKind, identifier: str, object_type: str = ""
    ) -> InstructionMetadata | None:
        metadata = self._tables[kind].get((object_type, identifier))
        if metadata is None or not metadata.implemented:
            return None
        return metadata

    def extension_names(self) -> List[str]:
        return list(self._extensions)

    def identifiers(self, kind: InstructionKind) -> Iterable[MetadataKey]:
        return iter(sorted(self._tables[kind]))


def create_default_registry() -> InstructionMetadataRegistry:
    """Build the registry holding every builtin extension."""

    from .builtin_extensions import build_builtin_extensions

    registry = InstructionMetadataRegistry()
    for extension in build_builtin_extensions():
        registry.register_extension(extension)
    return registry


__all__ = [
    "CodeDescriptor",
    "CustomCode",
    "ExtensionMetadata",
    "FunctionCode",
    "InstructionKind",
    "InstructionMetadata",
    "InstructionMetadataRegistry",
    "ParameterMetadata",
    "create_default_registry",
]
