"""Translate a layout's event tree into one target-runtime code file.

Each event becomes a block that evaluates its conditions in order, storing
each result in a per-depth boolean (``condition0IsTrue_0`` ...), and runs its
actions and sub-events only when all of them hold. Sub-events are generated
one nesting level deeper so their booleans never clash with the parent's.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from domain.models import Event, Instruction, Layout, Project

from .expressions import ExpressionCompiler
from .metadata import (
    CustomCode,
    FunctionCode,
    InstructionKind,
    InstructionMetadata,
    InstructionMetadataRegistry,
    ParameterMetadata,
)
from .variables import quote

logger = logging.getLogger(__name__)

CONDITION_ALIAS = "conditionTrue"
RELATIONAL_OPERATORS = {"=": "===", "": "===", "!=": "!==", "<": "<", ">": ">", "<=": "<=", ">=": ">="}
OPERATOR_TYPES = {"relationalOperator", "operator"}
TRUE_WORDS = {"yes", "true", "1"}

BoundParameter = Tuple[ParameterMetadata, Optional[str]]


def mangle_name(name: str) -> str:
    """Return ``name`` with every non alphanumeric character spelled out."""

    return "".join(ch if ch.isascii() and ch.isalnum() else f"_{ord(ch)}" for ch in name)


def scene_namespace(layout_name: str) -> str:
    return f"gdjs.{mangle_name(layout_name)}Code"


@dataclass
class GenerationContext:
    """Nesting level currently being generated.

    Booleans are declared once per level; later events at the same level
    reuse them after resetting.
    """

    depth: int = 0
    parent: Optional[GenerationContext] = None
    declared: Set[str] = field(default_factory=set)

    def child(self) -> GenerationContext:
        return GenerationContext(depth=self.depth + 1, parent=self)

    def boolean_full_name(self, base: str) -> str:
        return f"{base}_{self.depth}"

    def declare(self, name: str) -> bool:
        """Record ``name``; return ``True`` the first time it is seen."""

        if name in self.declared:
            return False
        self.declared.add(name)
        return True


class EventsCodeGenerator:
    """Generate code for the events of one layout."""

    def __init__(self, registry: InstructionMetadataRegistry, project: Project, layout: Layout) -> None:
        self.registry = registry
        self.project = project
        self.layout = layout
        self.includes: Set[str] = set()
        self.expressions = ExpressionCompiler(self)

    # ------------------------------------------------------------------
    # Scene and event level
    # ------------------------------------------------------------------
    def generate_scene_code(self) -> str:
        namespace = scene_namespace(self.layout.name)
        body = self.generate_events_list(self.layout.events, GenerationContext())
        return (
            f"{namespace} = {{}};\n\n"
            f"{namespace}.func = function(runtimeScene) {{\n"
            f"{body}"
            "return;\n"
            "}\n"
        )

    def generate_events_list(self, events: Iterable[Event], context: GenerationContext) -> str:
        return "".join(self.generate_event(event, context) for event in events)

    def generate_event(self, event: Event, context: GenerationContext) -> str:
        if not event.executable:
            return ""

        # Conditions generating no code keep their boolean, which stays false.
        fragments = [self.generate_condition_code(condition, context) for condition in event.conditions]
        booleans = [f"condition{index}IsTrue_{context.depth}" for index in range(len(fragments))]
        alias = context.boolean_full_name(CONDITION_ALIAS)

        lines: List[str] = ["{"]
        for name in booleans:
            if context.declare(name):
                lines.append(f"var {name} = {{val:false}};")
            else:
                lines.append(f"{name}.val = false;")

        for index, fragment in enumerate(fragments):
            if index > 0:
                lines.append(f"if ( {booleans[index - 1]}.val ) {{")
            if not fragment:
                continue
            lines.append("{")
            if context.declare(alias):
                lines.append(f"var {alias} = {booleans[index]};")
            else:
                lines.append(f"{alias} = {booleans[index]};")
            lines.append(fragment.rstrip("\n"))
            lines.append("}")
        if len(fragments) > 1:
            lines.append("}" * (len(fragments) - 1))

        body = "".join(self.generate_action_code(action, context) for action in event.actions)
        body += self.generate_events_list(event.sub_events, context.child())
        if booleans:
            gate = " && ".join(f"{name}.val" for name in booleans)
            lines.append(f"if ({gate}) {{")
            lines.append(body.rstrip("\n"))
            lines.append("}")
        elif body:
            lines.append(body.rstrip("\n"))
        lines.append("}")
        return "\n".join(line for line in lines if line) + "\n\n"

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------
    def generate_condition_code(self, instruction: Instruction, context: GenerationContext) -> str:
        """Return code storing the condition result in the level's alias.

        Unknown identifiers yield an empty string.
        """

        metadata = self._resolve(InstructionKind.CONDITION, instruction)
        if metadata is None:
            logger.debug("No code generator for condition %r", instruction.type)
            return ""
        boolean = f"{context.boolean_full_name(CONDITION_ALIAS)}.val"
        code = metadata.code
        if isinstance(code, CustomCode):
            self.add_include(code.include_file)
            generated = code.generator(instruction, self, context)
            if generated and instruction.inverted:
                generated = f"{generated.rstrip()}\n{boolean} = !{boolean};"
            return generated
        if not isinstance(code, FunctionCode):
            return ""
        self.add_include(code.include_file)

        parameters = self.bind_parameters(metadata, instruction.parameters)
        if metadata.object_type:
            objects = self.objects_list_code(instruction.parameters[0])
            predicate = self._predicate(f"objs[i].{code.function_name}", parameters[1:], context)
            if predicate is None:
                return ""
            if instruction.inverted:
                predicate = f"!({predicate})"
            return (
                f"for (var i = 0, objs = {objects}; i < objs.length; ++i) {{\n"
                f"    if ( {predicate} ) {{ {boolean} = true; }}\n"
                "}"
            )
        predicate = self._predicate(code.function_name, parameters, context)
        if predicate is None:
            return ""
        if instruction.inverted:
            predicate = f"!({predicate})"
        return f"{boolean} = {predicate};"

    def generate_action_code(self, instruction: Instruction, context: GenerationContext) -> str:
        """Return the action's statements, or ``""`` when it cannot be generated."""

        metadata = self._resolve(InstructionKind.ACTION, instruction)
        if metadata is None:
            logger.debug("No code generator for action %r", instruction.type)
            return ""
        code = metadata.code
        if isinstance(code, CustomCode):
            self.add_include(code.include_file)
            generated = code.generator(instruction, self, context)
            return generated if not generated or generated.endswith("\n") else generated + "\n"
        if not isinstance(code, FunctionCode):
            return ""
        self.add_include(code.include_file)

        parameters = self.bind_parameters(metadata, instruction.parameters)
        if metadata.object_type:
            objects = self.objects_list_code(instruction.parameters[0])
            call = self._action_call("objs[i].", code, parameters[1:], context)
            if call is None:
                return ""
            return f"for (var i = 0, objs = {objects}; i < objs.length; ++i) {{\n    {call};\n}}\n"
        call = self._action_call("", code, parameters, context)
        if call is None:
            return ""
        return f"{call};\n"

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------
    def bind_parameters(self, metadata: InstructionMetadata, raw_parameters: List[str]) -> List[BoundParameter]:
        """Pair every declared parameter with its authored text.

        Code-only parameters get ``None``; missing authored values are ``""``.
        """

        bound: List[BoundParameter] = []
        authored = iter(raw_parameters)
        for parameter in metadata.parameters:
            if parameter.code_only:
                bound.append((parameter, None))
            else:
                bound.append((parameter, next(authored, "")))
        return bound

    def parameter_code(self, parameter: ParameterMetadata, raw: Optional[str], context: GenerationContext) -> str:
        if parameter.code_only or raw is None:
            return "runtimeScene" if parameter.type == "currentScene" else "undefined"
        if parameter.type == "expression":
            return self.expressions.compile_math(raw, context)
        if parameter.type == "string":
            return self.expressions.compile_string(raw, context)
        if parameter.type == "yesorno":
            return "true" if raw.strip().lower() in TRUE_WORDS else "false"
        if parameter.is_object:
            return self.objects_list_code(raw)
        return quote(raw)

    def objects_list_code(self, name: str) -> str:
        """Return code for the runtime instances named ``name`` (object or group)."""

        group = self.project.find_group(name, self.layout)
        names = group.objects if group is not None else [name]
        lists = [f"runtimeScene.getObjects({quote(member)})" for member in names]
        if not lists:
            return "[]"
        if len(lists) == 1:
            return lists[0]
        return f"[].concat({', '.join(lists)})"

    def object_type_of(self, name: str) -> str:
        """Return the type shared by ``name``'s instances, or ``""``."""

        scene_object = self.project.find_object(name, self.layout)
        if scene_object is not None:
            return scene_object.type
        group = self.project.find_group(name, self.layout)
        if group is None:
            return ""
        types = {
            member.type
            for member in (self.project.find_object(object_name, self.layout) for object_name in group.objects)
            if member is not None
        }
        return types.pop() if len(types) == 1 else ""

    def add_include(self, include_file: str) -> None:
        if include_file:
            self.includes.add(include_file)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _resolve(self, kind: InstructionKind, instruction: Instruction) -> Optional[InstructionMetadata]:
        metadata = self.registry.lookup(kind, instruction.type)
        if metadata is not None or not instruction.parameters:
            return metadata
        object_type = self.object_type_of(instruction.parameters[0])
        if not object_type:
            return None
        return self.registry.lookup(kind, instruction.type, object_type)

    def _split_operator(
        self, parameters: List[BoundParameter], context: GenerationContext
    ) -> Tuple[List[str], Optional[str], Optional[str]]:
        """Compile arguments, pulling out an operator and the operand after it."""

        arguments: List[str] = []
        operator: Optional[str] = None
        operand: Optional[str] = None
        expecting_operand = False
        for parameter, raw in parameters:
            if parameter.type in OPERATOR_TYPES and operator is None:
                operator = (raw or "").strip()
                expecting_operand = True
                continue
            compiled = self.parameter_code(parameter, raw, context)
            if expecting_operand:
                operand = compiled
                expecting_operand = False
            else:
                arguments.append(compiled)
        return arguments, operator, operand

    def _predicate(
        self, function: str, parameters: List[BoundParameter], context: GenerationContext
    ) -> Optional[str]:
        arguments, operator, operand = self._split_operator(parameters, context)
        call = f"{function}({', '.join(arguments)})"
        if operator is None:
            return call
        js_operator = RELATIONAL_OPERATORS.get(operator)
        if js_operator is None:
            logger.debug("Unsupported relational operator %r for %s", operator, function)
            return None
        return f"{call} {js_operator} {operand or '0'}"

    def _action_call(
        self, prefix: str, code: FunctionCode, parameters: List[BoundParameter], context: GenerationContext
    ) -> Optional[str]:
        arguments, operator, operand = self._split_operator(parameters, context)
        if operator is None:
            return f"{prefix}{code.function_name}({', '.join(arguments)})"
        value = operand or "0"
        if operator != "=":
            if operator not in {"+", "-", "*", "/"} or not code.associated_getter:
                logger.debug("Unsupported operator %r for %s", operator, code.function_name)
                return None
            current = f"{prefix}{code.associated_getter}({', '.join(arguments)})"
            value = f"{current} {operator} ({value})"
        return f"{prefix}{code.function_name}({', '.join(arguments + [value])})"


def generate_scene_events_code(
    registry: InstructionMetadataRegistry, project: Project, layout: Layout
) -> Tuple[str, Set[str]]:
    """Return the layout's code and the runtime files it needs."""

    generator = EventsCodeGenerator(registry, project, layout)
    code = generator.generate_scene_code()
    return code, set(generator.includes)


__all__ = [
    "EventsCodeGenerator",
    "GenerationContext",
    "generate_scene_events_code",
    "mangle_name",
    "scene_namespace",
]
