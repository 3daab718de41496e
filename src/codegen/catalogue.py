"""Platform-independent catalogue of builtin instructions and expressions.

Entries only carry presentation data and parameter lists. Target platforms
clone an extension from here and attach code strategies to the entries they
implement (see :mod:`codegen.builtin_extensions`).
"""
from __future__ import annotations

from typing import Dict, Iterable, Tuple

from .metadata import ExtensionMetadata, InstructionKind, ParameterMetadata

CONDITION = InstructionKind.CONDITION
ACTION = InstructionKind.ACTION
EXPRESSION = InstructionKind.EXPRESSION
STR_EXPRESSION = InstructionKind.STR_EXPRESSION

AUTHOR = "Florian Rival"
LICENSE = "Open source ( LGPL )"


def _param(parameter_type: str, description: str = "") -> ParameterMetadata:
    return ParameterMetadata(type=parameter_type, description=description)


def _scene() -> ParameterMetadata:
    return ParameterMetadata(type="currentScene", code_only=True)


def _variables_extension() -> ExtensionMetadata:
    extension = ExtensionMetadata(
        "BuiltinVariables",
        full_name="Variable features",
        description="Built-in extension allowing to manipulate variables",
        author=AUTHOR,
        license=LICENSE,
    )
    for prefix, variable_type, label in (("Scene", "scenevar", "scene"), ("Global", "globalvar", "global")):
        extension.declare(
            CONDITION,
            f"Var{prefix}",
            full_name=f"Value of a {label} variable",
            description=f"Compare the value of a {label} variable.",
            group="Variables",
            parameters=[_param(variable_type, "Variable"), _param("relationalOperator", "Sign of the test"), _param("expression", "Value to test")],
        )
        extension.declare(
            CONDITION,
            f"Var{prefix}Txt",
            full_name=f"Text of a {label} variable",
            description=f"Compare the text of a {label} variable.",
            group="Variables",
            parameters=[_param(variable_type, "Variable"), _param("relationalOperator", "Sign of the test"), _param("string", "Text to test")],
        )
        extension.declare(
            CONDITION,
            f"Var{prefix}Def",
            full_name=f"Test if a {label} variable is defined",
            description=f"Test if the {label} variable exists.",
            group="Variables",
            parameters=[_param("string", "Name of the variable")],
        )
        extension.declare(
            ACTION,
            f"ModVar{prefix}",
            full_name=f"Value of a {label} variable",
            description=f"Modify the value of a {label} variable.",
            group="Variables",
            parameters=[_param(variable_type, "Variable"), _param("operator", "Modification's sign"), _param("expression", "Value")],
        )
        extension.declare(
            ACTION,
            f"ModVar{prefix}Txt",
            full_name=f"Text of a {label} variable",
            description=f"Modify the text of a {label} variable.",
            group="Variables",
            parameters=[_param(variable_type, "Variable"), _param("operator", "Modification's sign"), _param("string", "Text")],
        )
    extension.declare(
        CONDITION,
        "VariableChildExists",
        full_name="Child existence",
        description="Return true if the specified child of the variable exists.",
        group="Variables/Structures",
        parameters=[_param("scenevar", "Variable"), _param("string", "Name of the child")],
    )
    for identifier, variable_type in (("Variable", "scenevar"), ("GlobalVariable", "globalvar")):
        extension.declare(
            EXPRESSION,
            identifier,
            full_name="Value of a variable",
            group="Variables",
            parameters=[_param(variable_type, "Name of the variable")],
        )
    for identifier, variable_type in (("VariableString", "scenevar"), ("GlobalVariableString", "globalvar")):
        extension.declare(
            STR_EXPRESSION,
            identifier,
            full_name="Text of a variable",
            group="Variables",
            parameters=[_param(variable_type, "Name of the variable")],
        )
    return extension


MATH_FUNCTIONS: Dict[str, Tuple[str, int]] = {
    "cos": ("Cosine", 1),
    "sin": ("Sine", 1),
    "tan": ("Tangent", 1),
    "cot": ("Cotangent", 1),
    "abs": ("Absolute value", 1),
    "sqrt": ("Square root", 1),
    "floor": ("Floor ( integer part )", 1),
    "ceil": ("Ceil ( Integer part )", 1),
    "round": ("Rounding", 1),
    "exp": ("Exponential", 1),
    "log": ("Logarithm", 1),
    "min": ("Minimum of two numbers", 2),
    "max": ("Maximum of two numbers", 2),
    "pow": ("Power", 2),
    "mod": ("Modulo", 2),
    "AngleDifference": ("Difference between two angles", 2),
    "lerp": ("Linear interpolation", 3),
}


def _math_extension() -> ExtensionMetadata:
    extension = ExtensionMetadata(
        "BuiltinMathematicalTools",
        full_name="Mathematical tools",
        description="Built-in extension providing mathematical tools",
        author=AUTHOR,
        license=LICENSE,
    )
    for identifier, (full_name, arity) in MATH_FUNCTIONS.items():
        extension.declare(
            EXPRESSION,
            identifier,
            full_name=full_name,
            description=full_name,
            group="Mathematical tools",
            parameters=[_param("expression", "Expression") for _ in range(arity)],
        )
    return extension


def _string_extension() -> ExtensionMetadata:
    extension = ExtensionMetadata(
        "BuiltinStringInstructions",
        full_name="Text manipulation",
        description="Built-in extension providing expressions related to strings.",
        author=AUTHOR,
        license=LICENSE,
    )
    extension.declare(STR_EXPRESSION, "NewLine", full_name="Insert a new line", group="Manipulation on text")
    extension.declare(
        STR_EXPRESSION,
        "SubStr",
        full_name="Get a portion of text from a text",
        group="Manipulation on text",
        parameters=[_param("string", "Text"), _param("expression", "Start position"), _param("expression", "Length")],
    )
    extension.declare(
        STR_EXPRESSION,
        "StrAt",
        full_name="Get a character from a text",
        group="Manipulation on text",
        parameters=[_param("string", "Text"), _param("expression", "Position of the character")],
    )
    extension.declare(
        EXPRESSION,
        "StrLength",
        full_name="Length of a text",
        group="Manipulation on text",
        parameters=[_param("string", "Text")],
    )
    return extension


def _mouse_extension() -> ExtensionMetadata:
    extension = ExtensionMetadata(
        "BuiltinMouse",
        full_name="Mouse features",
        description="Built-in extensions allowing to use the mouse",
        author=AUTHOR,
        license=LICENSE,
    )
    for identifier, axis in (("SourisX", "X"), ("SourisY", "Y")):
        extension.declare(
            CONDITION,
            identifier,
            full_name=f"Cursor {axis} position",
            description=f"Compare the {axis} position of the cursor.",
            group="Mouse",
            parameters=[_scene(), _param("relationalOperator", "Sign of the test"), _param("expression", "Position")],
        )
    extension.declare(
        CONDITION,
        "SourisBouton",
        full_name="Mouse button pressed",
        description="Test if the specified button is pressed.",
        group="Mouse",
        parameters=[_scene(), _param("mouse", "Button to test")],
    )
    for identifier, full_name in (
        ("CacheSouris", "Hide the cursor"),
        ("MontreSouris", "Show the cursor"),
        ("CentreSouris", "Center the mouse"),
    ):
        extension.declare(ACTION, identifier, full_name=full_name, group="Mouse", parameters=[_scene()])
    for identifier in ("MouseX", "SourisX", "MouseY", "SourisY"):
        extension.declare(
            EXPRESSION,
            identifier,
            full_name=f"Cursor {identifier[-1]} position",
            group="Mouse",
            parameters=[_scene()],
        )
    return extension


SPRITE_VALUE_PROPERTIES: Iterable[Tuple[str, str, str]] = (
    ("Opacity", "Opacity", "Opacity"),
    ("ChangeAnimation", "Animation", "Animation"),
    ("ChangeDirection", "Direction", "Direction"),
    ("ChangeSprite", "Sprite", "Current frame"),
    ("ChangeScaleWidth", "ScaleWidth", "Scale on X axis"),
    ("ChangeScaleHeight", "ScaleHeight", "Scale on Y axis"),
)


def _sprite_extension() -> ExtensionMetadata:
    extension = ExtensionMetadata(
        "Sprite",
        full_name="Sprite",
        description="Extension for adding animated objects in the scene.",
        author=AUTHOR,
        license=LICENSE,
    )
    sprite = "Sprite"
    for action, condition, label in SPRITE_VALUE_PROPERTIES:
        extension.declare(
            ACTION,
            action,
            full_name=label,
            group="Sprite",
            object_type=sprite,
            parameters=[_param("object", "Object"), _param("operator", "Modification's sign"), _param("expression", "Value")],
        )
        extension.declare(
            CONDITION,
            condition,
            full_name=label,
            group="Sprite",
            object_type=sprite,
            parameters=[_param("object", "Object"), _param("relationalOperator", "Sign of the test"), _param("expression", "Value to test")],
        )
    extension.declare(
        ACTION,
        "ChangeBlendMode",
        full_name="Blend mode",
        group="Sprite/Effects",
        object_type=sprite,
        parameters=[_param("object", "Object"), _param("expression", "New blend mode")],
    )
    extension.declare(
        CONDITION,
        "BlendMode",
        full_name="Blend mode",
        group="Sprite/Effects",
        object_type=sprite,
        parameters=[_param("object", "Object"), _param("relationalOperator", "Sign of the test"), _param("expression", "Value to test")],
    )
    for identifier, full_name in (("PauseAnimation", "Pause the animation"), ("PlayAnimation", "Play the animation")):
        extension.declare(ACTION, identifier, full_name=full_name, group="Sprite/Animations", object_type=sprite, parameters=[_param("object", "Object")])
    for identifier, full_name in (("AnimationEnded", "Animation finished"), ("AnimStopped", "Animation paused")):
        extension.declare(CONDITION, identifier, full_name=full_name, group="Sprite/Animations", object_type=sprite, parameters=[_param("object", "Object")])
    for identifier in ("FlipX", "FlipY"):
        extension.declare(
            ACTION,
            identifier,
            full_name=f"Flip the object {identifier[-1].lower()}",
            group="Sprite/Effects",
            object_type=sprite,
            parameters=[_param("object", "Object"), _param("yesorno", "Activate flipping")],
        )
    extension.declare(
        ACTION,
        "TourneVersPos",
        full_name="Rotate toward position",
        group="Sprite/Direction",
        object_type=sprite,
        parameters=[_param("object", "Object"), _param("expression", "X position"), _param("expression", "Y position")],
    )
    extension.declare(
        ACTION,
        "ChangeColor",
        full_name="Global color",
        group="Sprite/Effects",
        object_type=sprite,
        parameters=[_param("object", "Object"), _param("color", "Color")],
    )
    extension.declare(
        CONDITION,
        "SourisSurObjet",
        full_name="The cursor is on an object",
        group="Mouse",
        object_type=sprite,
        parameters=[_param("object", "Object"), _scene()],
    )
    extension.declare(
        CONDITION,
        "Collision",
        full_name="Collision",
        description="Test the collision between two objects using their collision masks.",
        group="Collision",
        parameters=[_param("objectList", "Object"), _param("objectList", "Object")],
    )
    extension.declare(
        CONDITION,
        "EstTourne",
        full_name="An object is turned toward another",
        group="Sprite/Direction",
        parameters=[_param("objectList", "Name of the object"), _param("objectList", "Name of the second object"), _param("expression", "Angle of tolerance")],
    )
    for identifier in ("X", "Y", "Direction", "Animation", "Sprite", "ScaleX", "ScaleY"):
        extension.declare(EXPRESSION, identifier, full_name=identifier, group="Sprite", object_type=sprite, parameters=[_param("object", "Object")])
    return extension


def _external_layouts_extension() -> ExtensionMetadata:
    extension = ExtensionMetadata(
        "BuiltinExternalLayouts",
        full_name="External layouts",
        description="Built-in extension providing actions and conditions related to external layouts",
        author=AUTHOR,
        license=LICENSE,
    )
    extension.declare(
        ACTION,
        "BuiltinExternalLayouts::CreateObjectsFromExternalLayout",
        full_name="Create objects from an external layout",
        group="External layouts",
        parameters=[_scene(), _param("externalLayoutName", "Name of the external layout"), _param("expression", "X position of the origin"), _param("expression", "Y position of the origin")],
    )
    return extension


def platform_independent_extensions() -> Dict[str, ExtensionMetadata]:
    """Return fresh copies of every catalogued extension keyed by name."""

    extensions = [
        _variables_extension(),
        _math_extension(),
        _string_extension(),
        _mouse_extension(),
        _sprite_extension(),
        _external_layouts_extension(),
    ]
    return {extension.name: extension for extension in extensions}
