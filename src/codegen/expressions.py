"""Compile authored math and text expressions into target-runtime code.

Numeric expressions support ``+ - * /``, unary signs, parentheses, numbers and
function calls (``cos(x)``, ``Player.X()``). Text expressions join string
literals and text function calls with ``+``. Function calls resolve through the
metadata registry like instructions do; their arguments are compiled according
to the callee's parameter types.

The public entry points never raise: anything unparsable (unknown function,
syntax error, empty text) compiles to ``0`` or ``""``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Set

from .metadata import CustomCode, FunctionCode, InstructionKind, InstructionMetadata
from .variables import quote

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .events import EventsCodeGenerator, GenerationContext

logger = logging.getLogger(__name__)

NUMERIC_FALLBACK = "0"
TEXT_FALLBACK = '""'

SYMBOLS = {
    "(": "LPAREN",
    ")": "RPAREN",
    ",": "COMMA",
    ".": "DOT",
}


class ExpressionSyntaxError(ValueError):
    """Raised internally when an expression cannot be compiled."""


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    start: int
    end: int


class ExpressionLexer:
    def __init__(self, source: str) -> None:
        self.source = source
        self.length = len(source)
        self.index = 0

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while self.index < self.length:
            ch = self.source[self.index]
            if ch.isspace():
                self.index += 1
                continue
            if ch.isdigit() or (ch == "." and self._next_is_digit()):
                tokens.append(self._read_number())
                continue
            if ch.isalpha() or ch == "_":
                tokens.append(self._read_identifier())
                continue
            if ch == '"':
                tokens.append(self._read_string())
                continue
            start = self.index
            self.index += 1
            if ch in SYMBOLS:
                tokens.append(Token(SYMBOLS[ch], ch, start, self.index))
            elif ch in "+-*/":
                tokens.append(Token("OP", ch, start, self.index))
            else:
                # Only an error if the parser has to interpret it.
                tokens.append(Token("OTHER", ch, start, self.index))
        tokens.append(Token("EOF", "", self.length, self.length))
        return tokens

    def _next_is_digit(self) -> bool:
        return self.index + 1 < self.length and self.source[self.index + 1].isdigit()

    def _read_number(self) -> Token:
        start = self.index
        seen_dot = False
        while self.index < self.length:
            ch = self.source[self.index]
            if ch.isdigit():
                self.index += 1
            elif ch == "." and not seen_dot:
                seen_dot = True
                self.index += 1
            else:
                break
        return Token("NUMBER", self.source[start:self.index], start, self.index)

    def _read_identifier(self) -> Token:
        start = self.index
        while self.index < self.length and (self.source[self.index].isalnum() or self.source[self.index] == "_"):
            self.index += 1
        return Token("IDENT", self.source[start:self.index], start, self.index)

    def _read_string(self) -> Token:
        start = self.index
        self.index += 1  # opening quote
        chars: List[str] = []
        while self.index < self.length:
            ch = self.source[self.index]
            self.index += 1
            if ch == '"':
                return Token("STRING", "".join(chars), start, self.index)
            if ch == "\\" and self.index < self.length:
                chars.append(self.source[self.index])
                self.index += 1
                continue
            chars.append(ch)
        raise ExpressionSyntaxError(f"Unterminated string literal at offset {start}")


class _Parser:
    def __init__(self, source: str, compiler: ExpressionCompiler, context: GenerationContext) -> None:
        self.source = source
        self.tokens = ExpressionLexer(source).tokenize()
        self.position = 0
        self.compiler = compiler
        self.context = context

    # -- numeric grammar -------------------------------------------------
    def parse_math(self) -> str:
        code = self._math_sum()
        self._expect("EOF")
        return code

    def _math_sum(self) -> str:
        code = self._math_product()
        while self._peek().type == "OP" and self._peek().value in "+-":
            operator = self._advance().value
            code = f"{code} {operator} {self._math_product()}"
        return code

    def _math_product(self) -> str:
        code = self._math_factor()
        while self._peek().type == "OP" and self._peek().value in "*/":
            operator = self._advance().value
            code = f"{code} {operator} {self._math_factor()}"
        return code

    def _math_factor(self) -> str:
        token = self._advance()
        if token.type == "OP" and token.value in "+-":
            operand = self._math_factor()
            if token.value == "+":
                return operand
            # "--x" would read as a decrement.
            return f"-({operand})" if operand.startswith("-") else f"-{operand}"
        if token.type == "NUMBER":
            return token.value
        if token.type == "LPAREN":
            inner = self._math_sum()
            self._expect("RPAREN")
            return f"({inner})"
        if token.type == "IDENT":
            return self._call(InstructionKind.EXPRESSION, token)
        raise ExpressionSyntaxError(f"Unexpected {token.value or 'end of expression'!r} at offset {token.start}")

    # -- text grammar ----------------------------------------------------
    def parse_string(self) -> str:
        code = self._string_sum()
        self._expect("EOF")
        return code

    def _string_sum(self) -> str:
        code = self._string_term()
        while self._peek().type == "OP" and self._peek().value == "+":
            self._advance()
            code = f"{code} + {self._string_term()}"
        return code

    def _string_term(self) -> str:
        token = self._advance()
        if token.type == "STRING":
            return quote(token.value)
        if token.type == "LPAREN":
            inner = self._string_sum()
            self._expect("RPAREN")
            return f"({inner})"
        if token.type == "IDENT":
            return self._call(InstructionKind.STR_EXPRESSION, token)
        raise ExpressionSyntaxError(f"Unexpected {token.value or 'end of expression'!r} at offset {token.start}")

    # -- function calls --------------------------------------------------
    def _call(self, kind: InstructionKind, name_token: Token) -> str:
        object_name = ""
        function_name = name_token.value
        if self._peek().type == "DOT":
            self._advance()
            object_name = function_name
            function_name = self._expect("IDENT").value
        arguments = self._raw_arguments()
        generator = self.compiler.generator
        object_type = generator.object_type_of(object_name) if object_name else ""
        metadata = generator.registry.lookup(kind, function_name, object_type)
        if metadata is None or bool(metadata.object_type) != bool(object_name):
            raise ExpressionSyntaxError(f"Unknown {kind.value} {function_name!r}")
        if object_name:
            arguments = [object_name] + arguments
        if len(arguments) != len(metadata.authored_parameters):
            raise ExpressionSyntaxError(
                f"{function_name!r} expects {len(metadata.authored_parameters)} argument(s), got {len(arguments)}"
            )
        return self.compiler.call_code(kind, metadata, arguments, self.context)

    def _raw_arguments(self) -> List[str]:
        self._expect("LPAREN")
        arguments: List[str] = []
        depth = 0
        first: Token | None = None
        last: Token | None = None
        saw_comma = False
        while True:
            token = self._advance()
            if token.type == "EOF":
                raise ExpressionSyntaxError("Missing closing parenthesis")
            if token.type == "RPAREN" and depth == 0:
                break
            if token.type == "COMMA" and depth == 0:
                arguments.append(self._slice(first, last))
                first = last = None
                saw_comma = True
                continue
            if token.type == "LPAREN":
                depth += 1
            elif token.type == "RPAREN":
                depth -= 1
            first = first or token
            last = token
        if first is not None or saw_comma:
            arguments.append(self._slice(first, last))
        return arguments

    def _slice(self, first: Token | None, last: Token | None) -> str:
        if first is None or last is None:
            return ""
        return self.source[first.start:last.end]

    # -- token helpers ---------------------------------------------------
    def _peek(self) -> Token:
        return self.tokens[self.position]

    def _advance(self) -> Token:
        token = self.tokens[self.position]
        if token.type != "EOF":
            self.position += 1
        return token

    def _expect(self, token_type: str) -> Token:
        token = self._advance()
        if token.type != token_type:
            raise ExpressionSyntaxError(
                f"Expected {token_type} but found {token.value or 'end of expression'!r} at offset {token.start}"
            )
        return token


class ExpressionCompiler:
    """Expression compiler bound to one events code generator.

    Include files named by the called functions reach the generator only once
    the outermost expression compiled; a fallback adds none.
    """

    def __init__(self, generator: EventsCodeGenerator) -> None:
        self.generator = generator
        self._pending: List[Set[str]] = []

    def compile_math(self, text: str, context: GenerationContext) -> str:
        """Return numeric code for ``text`` or ``0`` when it cannot compile."""

        return self._compile(text, context, lambda parser: parser.parse_math(), NUMERIC_FALLBACK, "Numeric")

    def compile_string(self, text: str, context: GenerationContext) -> str:
        """Return text code for ``text`` or ``""`` when it cannot compile."""

        return self._compile(text, context, lambda parser: parser.parse_string(), TEXT_FALLBACK, "Text")

    def _compile(
        self,
        text: str,
        context: GenerationContext,
        parse: Callable[[_Parser], str],
        fallback: str,
        label: str,
    ) -> str:
        self._pending.append(set())
        try:
            code = parse(_Parser(text, self, context))
        except (ExpressionSyntaxError, RecursionError) as exc:
            self._pending.pop()
            logger.debug("%s expression %r compiled to fallback: %s", label, text, exc)
            return fallback
        includes = self._pending.pop()
        if not code:
            return fallback
        if self._pending:
            self._pending[-1].update(includes)
        else:
            for include in sorted(includes):
                self.generator.add_include(include)
        return code

    def _add_include(self, include_file: str) -> None:
        if not include_file:
            return
        if self._pending:
            self._pending[-1].add(include_file)
        else:
            self.generator.add_include(include_file)

    def call_code(
        self,
        kind: InstructionKind,
        metadata: InstructionMetadata,
        arguments: List[str],
        context: GenerationContext,
    ) -> str:
        """Return the code calling ``metadata`` with raw ``arguments``."""

        generator = self.generator
        code = metadata.code
        if isinstance(code, CustomCode):
            self._add_include(code.include_file)
            return code.generator(arguments, generator, context)
        if not isinstance(code, FunctionCode):  # pragma: no cover - registry filters these
            raise ExpressionSyntaxError(f"{metadata.identifier!r} has no code")
        self._add_include(code.include_file)
        parameters = generator.bind_parameters(metadata, arguments)
        if metadata.object_type:
            object_name = arguments[0]
            call_arguments = [generator.parameter_code(parameter, raw, context) for parameter, raw in parameters[1:]]
            objects = generator.objects_list_code(object_name)
            fallback = NUMERIC_FALLBACK if kind is InstructionKind.EXPRESSION else TEXT_FALLBACK
            call = f"{objects}[0].{code.function_name}({', '.join(call_arguments)})"
            return f"({objects}.length === 0 ? {fallback} : {call})"
        call_arguments = [generator.parameter_code(parameter, raw, context) for parameter, raw in parameters]
        return f"{code.function_name}({', '.join(call_arguments)})"


__all__ = ["ExpressionCompiler", "ExpressionLexer", "ExpressionSyntaxError", "Token"]
