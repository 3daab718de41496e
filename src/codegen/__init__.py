"""Events code generation: instruction metadata, expressions and scene code."""
from .events import EventsCodeGenerator, GenerationContext, generate_scene_events_code, mangle_name
from .expressions import ExpressionCompiler, ExpressionSyntaxError
from .metadata import (
    CustomCode,
    ExtensionMetadata,
    FunctionCode,
    InstructionKind,
    InstructionMetadata,
    InstructionMetadataRegistry,
    ParameterMetadata,
    create_default_registry,
)
from .variables import VariableScope, variable_accessor

__all__ = [
    "CustomCode",
    "EventsCodeGenerator",
    "ExpressionCompiler",
    "ExpressionSyntaxError",
    "ExtensionMetadata",
    "FunctionCode",
    "GenerationContext",
    "InstructionKind",
    "InstructionMetadata",
    "InstructionMetadataRegistry",
    "ParameterMetadata",
    "VariableScope",
    "create_default_registry",
    "generate_scene_events_code",
    "mangle_name",
    "variable_accessor",
]
