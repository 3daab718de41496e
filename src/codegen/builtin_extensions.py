"""Builtin extensions implemented for the web runtime.

Each extension clones its platform-independent counterpart, attaches a code
strategy to the entries the runtime supports and strips the rest, so an entry
without runtime support is simply absent from the registry.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List

from domain.models import Instruction

from .catalogue import (
    ACTION,
    CONDITION,
    EXPRESSION,
    STR_EXPRESSION,
    SPRITE_VALUE_PROPERTIES,
    platform_independent_extensions,
)
from .metadata import ExtensionMetadata
from .variables import (
    VariableScope,
    assignment_code,
    comparison_code,
    variable_accessor,
    variable_exists_code,
)

logger = logging.getLogger(__name__)

COMMON_TOOLS = "commontools.js"
INPUT_TOOLS = "inputtools.js"
OBJECT_TOOLS = "objecttools.js"
SCENE_TOOLS = "runtimescenetools.js"
STRING_TOOLS = "stringtools.js"
SPRITE_OBJECT = "spriteruntimeobject.js"

MATH_MAPPING: Dict[str, tuple[str, str]] = {
    "cos": ("Math.cos", ""),
    "sin": ("Math.sin", ""),
    "tan": ("Math.tan", ""),
    "abs": ("Math.abs", ""),
    "sqrt": ("Math.sqrt", ""),
    "floor": ("Math.floor", ""),
    "ceil": ("Math.ceil", ""),
    "round": ("Math.round", ""),
    "exp": ("Math.exp", ""),
    "log": ("Math.log", ""),
    "min": ("Math.min", ""),
    "max": ("Math.max", ""),
    "pow": ("Math.pow", ""),
    "cot": ("gdjs.evtTools.common.cot", COMMON_TOOLS),
    "mod": ("gdjs.evtTools.common.mod", COMMON_TOOLS),
    "AngleDifference": ("gdjs.evtTools.common.angleDifference", COMMON_TOOLS),
    "lerp": ("gdjs.evtTools.common.lerp", COMMON_TOOLS),
}

SPRITE_ACCESSORS: Dict[str, tuple[str, str]] = {
    "Opacity": ("setOpacity", "getOpacity"),
    "ChangeAnimation": ("setAnimation", "getAnimation"),
    "ChangeDirection": ("setDirectionOrAngle", "getDirectionOrAngle"),
    "ChangeSprite": ("setAnimationFrame", "getAnimationFrame"),
    "ChangeScaleWidth": ("setScaleX", "getScaleX"),
    "ChangeScaleHeight": ("setScaleY", "getScaleY"),
}

SPRITE_EXPRESSIONS = {
    "X": "getX",
    "Y": "getY",
    "Direction": "getDirectionOrAngle",
    "Animation": "getAnimation",
    "Sprite": "getAnimationFrame",
    "ScaleX": "getScaleX",
    "ScaleY": "getScaleY",
}


def _parameters(instruction: Instruction, count: int) -> List[str]:
    values = list(instruction.parameters[:count])
    return values + [""] * (count - len(values))


# ----------------------------------------------------------------------
# Variables
# ----------------------------------------------------------------------
def _variable_condition(scope: VariableScope, *, textual: bool) -> Callable[..., str]:
    def generate(instruction, generator, context) -> str:
        name, operator, value = _parameters(instruction, 3)
        if textual:
            value_code = generator.expressions.compile_string(value, context)
        else:
            value_code = generator.expressions.compile_math(value, context)
        accessor = variable_accessor(name, scope, generator.project, generator.layout)
        boolean = f"{context.boolean_full_name('conditionTrue')}.val"
        return comparison_code(boolean, accessor, operator.strip(), value_code, textual=textual)

    return generate


def _variable_defined(scope: VariableScope) -> Callable[..., str]:
    def generate(instruction, generator, context) -> str:
        (name,) = _parameters(instruction, 1)
        boolean = f"{context.boolean_full_name('conditionTrue')}.val"
        return f"{boolean} = {variable_exists_code(name, scope)};"

    return generate


def _variable_modification(scope: VariableScope, *, textual: bool) -> Callable[..., str]:
    def generate(instruction, generator, context) -> str:
        name, operator, value = _parameters(instruction, 3)
        if textual:
            value_code = generator.expressions.compile_string(value, context)
        else:
            value_code = generator.expressions.compile_math(value, context)
        accessor = variable_accessor(name, scope, generator.project, generator.layout)
        return assignment_code(accessor, operator.strip(), value_code, textual=textual)

    return generate


def _variable_expression(scope: VariableScope, *, textual: bool) -> Callable[..., str]:
    def generate(parameters, generator, context) -> str:
        name = parameters[0] if parameters else ""
        accessor = variable_accessor(name.strip(), scope, generator.project, generator.layout)
        return f"{accessor}.getAsString()" if textual else f"{accessor}.getAsNumber()"

    return generate


def _implement_variables(extension: ExtensionMetadata) -> None:
    for prefix, scope in (("Scene", VariableScope.SCENE), ("Global", VariableScope.GLOBAL)):
        extension.set_custom_generator(CONDITION, f"Var{prefix}", _variable_condition(scope, textual=False))
        extension.set_custom_generator(CONDITION, f"Var{prefix}Txt", _variable_condition(scope, textual=True))
        extension.set_custom_generator(CONDITION, f"Var{prefix}Def", _variable_defined(scope))
        extension.set_custom_generator(ACTION, f"ModVar{prefix}", _variable_modification(scope, textual=False))
        extension.set_custom_generator(ACTION, f"ModVar{prefix}Txt", _variable_modification(scope, textual=True))
    extension.set_custom_generator(EXPRESSION, "Variable", _variable_expression(VariableScope.SCENE, textual=False))
    extension.set_custom_generator(EXPRESSION, "GlobalVariable", _variable_expression(VariableScope.GLOBAL, textual=False))
    extension.set_custom_generator(STR_EXPRESSION, "VariableString", _variable_expression(VariableScope.SCENE, textual=True))
    extension.set_custom_generator(
        STR_EXPRESSION, "GlobalVariableString", _variable_expression(VariableScope.GLOBAL, textual=True)
    )


# ----------------------------------------------------------------------
# Other builtins
# ----------------------------------------------------------------------
def _implement_math(extension: ExtensionMetadata) -> None:
    for identifier, (function_name, include_file) in MATH_MAPPING.items():
        extension.set_function(EXPRESSION, identifier, function_name, include_file=include_file)


def _implement_strings(extension: ExtensionMetadata) -> None:
    extension.set_function(STR_EXPRESSION, "NewLine", "gdjs.evtTools.string.newLine", include_file=STRING_TOOLS)
    extension.set_function(STR_EXPRESSION, "SubStr", "gdjs.evtTools.string.subStr", include_file=STRING_TOOLS)
    extension.set_function(STR_EXPRESSION, "StrAt", "gdjs.evtTools.string.strAt", include_file=STRING_TOOLS)
    extension.set_function(EXPRESSION, "StrLength", "gdjs.evtTools.string.strLen", include_file=STRING_TOOLS)


def _implement_mouse(extension: ExtensionMetadata) -> None:
    extension.set_function(CONDITION, "SourisX", "gdjs.evtTools.input.getMouseX", include_file=INPUT_TOOLS)
    extension.set_function(CONDITION, "SourisY", "gdjs.evtTools.input.getMouseY", include_file=INPUT_TOOLS)
    extension.set_function(
        CONDITION, "SourisBouton", "gdjs.evtTools.input.isMouseButtonPressed", include_file=INPUT_TOOLS
    )
    extension.set_function(ACTION, "CacheSouris", "gdjs.evtTools.input.hideCursor", include_file=INPUT_TOOLS)
    extension.set_function(ACTION, "MontreSouris", "gdjs.evtTools.input.showCursor", include_file=INPUT_TOOLS)
    for identifier in ("MouseX", "SourisX"):
        extension.set_function(EXPRESSION, identifier, "gdjs.evtTools.input.getMouseX", include_file=INPUT_TOOLS)
    for identifier in ("MouseY", "SourisY"):
        extension.set_function(EXPRESSION, identifier, "gdjs.evtTools.input.getMouseY", include_file=INPUT_TOOLS)


def _implement_sprite(extension: ExtensionMetadata) -> None:
    sprite = "Sprite"
    for action, condition, _ in SPRITE_VALUE_PROPERTIES:
        setter, getter = SPRITE_ACCESSORS[action]
        extension.set_function(
            ACTION, action, setter, associated_getter=getter, include_file=SPRITE_OBJECT, object_type=sprite
        )
        extension.set_function(CONDITION, condition, getter, include_file=SPRITE_OBJECT, object_type=sprite)
    extension.set_function(ACTION, "ChangeBlendMode", "setBlendMode", include_file=SPRITE_OBJECT, object_type=sprite)
    extension.set_function(CONDITION, "BlendMode", "getBlendMode", include_file=SPRITE_OBJECT, object_type=sprite)
    extension.set_function(ACTION, "PauseAnimation", "stopAnimation", include_file=SPRITE_OBJECT, object_type=sprite)
    extension.set_function(ACTION, "PlayAnimation", "playAnimation", include_file=SPRITE_OBJECT, object_type=sprite)
    extension.set_function(
        CONDITION, "AnimationEnded", "hasAnimationEnded", include_file=SPRITE_OBJECT, object_type=sprite
    )
    extension.set_function(CONDITION, "AnimStopped", "animationPaused", include_file=SPRITE_OBJECT, object_type=sprite)
    extension.set_function(ACTION, "FlipX", "flipX", include_file=SPRITE_OBJECT, object_type=sprite)
    extension.set_function(ACTION, "FlipY", "flipY", include_file=SPRITE_OBJECT, object_type=sprite)
    extension.set_function(
        ACTION, "TourneVersPos", "rotateTowardPosition", include_file=SPRITE_OBJECT, object_type=sprite
    )
    extension.set_function(
        CONDITION, "SourisSurObjet", "cursorOnObject", include_file=SPRITE_OBJECT, object_type=sprite
    )
    for identifier, method in SPRITE_EXPRESSIONS.items():
        extension.set_function(EXPRESSION, identifier, method, include_file=SPRITE_OBJECT, object_type=sprite)

    collision = extension.set_function(
        CONDITION, "Collision", "gdjs.evtTools.object.hitBoxesCollisionTest", include_file=OBJECT_TOOLS
    )
    extension.add_code_only_parameter(CONDITION, "Collision", "currentScene", position=len(collision.parameters))
    turned = extension.set_function(
        CONDITION, "EstTourne", "gdjs.evtTools.object.turnedTowardTest", include_file=OBJECT_TOOLS
    )
    extension.add_code_only_parameter(CONDITION, "EstTourne", "currentScene", position=len(turned.parameters))


def _implement_external_layouts(extension: ExtensionMetadata) -> None:
    extension.set_function(
        ACTION,
        "BuiltinExternalLayouts::CreateObjectsFromExternalLayout",
        "gdjs.evtTools.runtimeScene.createObjectsFromExternalLayout",
        include_file=SCENE_TOOLS,
    )


IMPLEMENTATIONS: Dict[str, Callable[[ExtensionMetadata], None]] = {
    "BuiltinVariables": _implement_variables,
    "BuiltinMathematicalTools": _implement_math,
    "BuiltinStringInstructions": _implement_strings,
    "BuiltinMouse": _implement_mouse,
    "Sprite": _implement_sprite,
    "BuiltinExternalLayouts": _implement_external_layouts,
}


def build_builtin_extensions() -> List[ExtensionMetadata]:
    """Return every builtin extension with its runtime code attached."""

    extensions: List[ExtensionMetadata] = []
    for name, base in platform_independent_extensions().items():
        extension = ExtensionMetadata(
            base.name,
            full_name=base.full_name,
            description=base.description,
            author=base.author,
            license=base.license,
        )
        extension.clone_from(base)
        implement = IMPLEMENTATIONS.get(name)
        if implement is not None:
            implement(extension)
        removed = extension.strip_unimplemented()
        if removed:
            logger.debug("Extension %s: stripped %d unimplemented entries", name, len(removed))
        extensions.append(extension)
    return extensions


__all__ = ["build_builtin_extensions"]
