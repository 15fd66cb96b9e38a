"""Sandboxed evaluator for the challenge's arithmetic script.

The normalized challenge is a tiny JavaScript program: a var declaration
holding an object literal, a few compound assignments on its property, and
a final parseInt(...) expression. Values are built from JSFuck-style
fragments such as ``+((!+[]+!![]+[])+(+!![]))``, so the evaluator follows
JavaScript's coercion rules for booleans, arrays and strings.

This is not a JavaScript engine. It understands expressions, var
declarations, assignments, member access and calls to a fixed set of pure
builtins. There are no functions, loops or host objects, so a script can
neither escape nor run away. Strings, arrays and the total allocation of a
single evaluation are capped as well.
"""

import math
import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from ..errors import EvaluationError


MAX_SCRIPT_LENGTH = 64 * 1024
MAX_NESTING_DEPTH = 64
MAX_STRING_LENGTH = 1024 * 1024
MAX_ARRAY_LENGTH = 64 * 1024
# String characters and array slots one evaluation may create
MAX_ALLOCATION = 16 * 1024 * 1024

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

NAN = float("nan")
INF = float("inf")

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+)
  | (?P<hex>0[xX][0-9a-fA-F]+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<op>\+=|-=|\*=|/=|%=|[-+*/%!=(){}\[\],;:.])
""", re.VERBOSE)

_DECIMAL_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\Z")
_FLOAT_PREFIX_RE = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

ASSIGNMENT_OPERATORS = frozenset({"=", "+=", "-=", "*=", "/=", "%="})

# Words the grammar does not support; rejecting them early gives clear errors
_UNSUPPORTED_KEYWORDS = frozenset({
    "function", "new", "this", "return", "if", "else", "for", "while", "do",
    "typeof", "delete", "void", "in", "instanceof", "let", "const", "class",
    "throw", "try", "catch", "with", "switch", "import", "export",
})


class _Undefined:
    """The JavaScript undefined value."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"


UNDEFINED = _Undefined()


class NativeFunction:
    """A builtin callable exposed to scripts."""
    __slots__ = ("name", "func")

    def __init__(self, name: str, func: Callable[..., Any]):
        self.name = name
        self.func = func

    def __repr__(self) -> str:
        return f"<native {self.name}>"


# --- JavaScript type conversions -------------------------------------------

def number_to_string(value: float) -> str:
    """Format a number the way JavaScript's Number#toString does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    mantissa, _, exp = repr(abs(value)).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    digits = (int_part + frac_part).lstrip("0")
    exponent = int(exp or 0) - len(frac_part)
    stripped = digits.rstrip("0")
    exponent += len(digits) - len(stripped)
    digits = stripped

    k = len(digits)
    n = k + exponent
    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        fraction = "." + digits[1:] if k > 1 else ""
        body = f"{digits[0]}{fraction}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + body


def to_primitive(value: Any) -> Any:
    if isinstance(value, list):
        parts = ["" if item is None or item is UNDEFINED else to_string(item) for item in value]
        _check_string_length(sum(len(part) for part in parts) + len(parts))
        return ",".join(parts)
    if isinstance(value, dict):
        return "[object Object]"
    if isinstance(value, NativeFunction):
        return f"function {value.name}() {{ [native code] }}"
    return value


def to_string(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return number_to_string(value)
    if isinstance(value, str):
        return value
    return to_string(to_primitive(value))


def _digits_to_number(digits: str, base: int) -> float:
    """Value of a lowercase digit string, saturating to Infinity."""
    if base == 10:
        return float(digits)
    try:
        return float(int(digits, base))
    except OverflowError:
        return INF
    except ValueError:
        # Past the interpreter's int/str conversion limit
        value = 0.0
        for char in digits:
            value = value * base + _DIGITS.index(char)
        return value


def _check_string_length(length: int) -> None:
    if length > MAX_STRING_LENGTH:
        raise EvaluationError(
            f"String of {length} characters exceeds limit of {MAX_STRING_LENGTH}"
        )


def _string_to_number(text: str) -> float:
    text = text.strip()
    if not text:
        return 0.0
    if text in ("Infinity", "+Infinity"):
        return INF
    if text == "-Infinity":
        return -INF
    if _DECIMAL_RE.match(text):
        return float(text)
    lowered = text.lower()
    for prefix, base in (("0x", 16), ("0o", 8), ("0b", 2)):
        body = lowered[2:]
        if lowered.startswith(prefix) and body and all(c in _DIGITS[:base] for c in body):
            return _digits_to_number(body, base)
    return NAN


def to_number(value: Any) -> float:
    if value is UNDEFINED:
        return NAN
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        return _string_to_number(value)
    return to_number(to_primitive(value))


def to_boolean(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return bool(value)
    return True


def _to_int32(number: float) -> int:
    if math.isnan(number) or math.isinf(number):
        return 0
    value = int(number) % 2 ** 32
    return value - 2 ** 32 if value >= 2 ** 31 else value


# --- Operators ---------------------------------------------------------------

def _add(left: Any, right: Any) -> Any:
    left, right = to_primitive(left), to_primitive(right)
    if isinstance(left, str) or isinstance(right, str):
        left, right = to_string(left), to_string(right)
        _check_string_length(len(left) + len(right))
        return left + right
    return to_number(left) + to_number(right)


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return NAN
        return math.copysign(INF, left) * math.copysign(1.0, right)
    return left / right


def _remainder(left: float, right: float) -> float:
    if right == 0 or math.isnan(left) or math.isnan(right) or math.isinf(left):
        return NAN
    if math.isinf(right):
        return left
    return math.fmod(left, right)


def binary_operation(operator: str, left: Any, right: Any) -> Any:
    if operator == "+":
        return _add(left, right)
    a, b = to_number(left), to_number(right)
    if operator == "-":
        return a - b
    if operator == "*":
        return a * b
    if operator == "/":
        return _divide(a, b)
    if operator == "%":
        return _remainder(a, b)
    raise EvaluationError(f"Unsupported operator {operator!r}")


# --- Builtins ------------------------------------------------------------------

def _parse_int(value=UNDEFINED, radix=UNDEFINED, *_):
    text = to_string(value).strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    base = 0 if radix is UNDEFINED else _to_int32(to_number(radix))
    strip_prefix = base in (0, 16)
    if base == 0:
        base = 10
    elif base < 2 or base > 36:
        return NAN

    if strip_prefix and text[:2].lower() == "0x":
        text = text[2:]
        base = 16

    valid = _DIGITS[:base]
    digits = []
    for char in text.lower():
        if char not in valid:
            break
        digits.append(char)
    if not digits:
        return NAN
    return sign * _digits_to_number("".join(digits), base)


def _parse_float(value=UNDEFINED, *_):
    match = _FLOAT_PREFIX_RE.match(to_string(value).strip())
    if match is None:
        return NAN
    return float(match.group(0).replace("Infinity", "inf"))


def _math_unary(func: Callable[[float], float]) -> Callable[..., float]:
    def wrapper(value=UNDEFINED, *_):
        number = to_number(value)
        if math.isnan(number) or math.isinf(number):
            return number
        return float(func(number))
    return wrapper


def _make_globals() -> Dict[str, Any]:
    """Fresh global scope for one evaluation; scripts may mutate it freely."""
    math_object = {
        "floor": NativeFunction("floor", _math_unary(math.floor)),
        "ceil": NativeFunction("ceil", _math_unary(math.ceil)),
        "round": NativeFunction("round", _math_unary(lambda x: math.floor(x + 0.5))),
        "abs": NativeFunction("abs", lambda value=UNDEFINED, *_: abs(to_number(value))),
        "PI": math.pi,
        "E": math.e,
    }
    return {
        "parseInt": NativeFunction("parseInt", _parse_int),
        "parseFloat": NativeFunction("parseFloat", _parse_float),
        "Number": NativeFunction("Number", lambda *args: to_number(args[0]) if args else 0.0),
        "String": NativeFunction("String", lambda *args: to_string(args[0]) if args else ""),
        "isNaN": NativeFunction("isNaN", lambda value=UNDEFINED, *_: math.isnan(to_number(value))),
        "Math": math_object,
        "undefined": UNDEFINED,
        "NaN": NAN,
        "Infinity": INF,
    }


# --- Tokenizer and parser -------------------------------------------------------

class Token(NamedTuple):
    kind: str
    value: Any
    pos: int


def _unquote(literal: str) -> str:
    return re.sub(r"\\(.)", r"\1", literal[1:-1])


def tokenize(script: str) -> List[Token]:
    tokens = []
    pos = 0
    while pos < len(script):
        match = _TOKEN_RE.match(script, pos)
        if match is None:
            raise EvaluationError(f"Unexpected character {script[pos]!r} at position {pos}")
        kind = match.lastgroup
        text = match.group(kind)
        if kind == "hex":
            tokens.append(Token("number", _digits_to_number(text[2:].lower(), 16), pos))
        elif kind == "number":
            tokens.append(Token("number", float(text), pos))
        elif kind == "string":
            tokens.append(Token("string", _unquote(text), pos))
        elif kind != "ws":
            tokens.append(Token(kind, text, pos))
        pos = match.end()
    tokens.append(Token("eof", None, len(script)))
    return tokens


class _Parser:
    """Recursive-descent parser producing tuple-based syntax trees."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != "eof":
            self.pos += 1
        return token

    def at(self, value: str) -> bool:
        token = self.peek()
        return token.kind == "op" and token.value == value

    def accept(self, value: str) -> bool:
        if self.at(value):
            self.pos += 1
            return True
        return False

    def expect(self, value: str) -> None:
        if not self.accept(value):
            token = self.peek()
            found = "end of script" if token.kind == "eof" else repr(token.value)
            raise EvaluationError(f"Expected '{value}' but found {found} at position {token.pos}")

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise EvaluationError("Expression nested too deeply")

    def parse_program(self) -> List[tuple]:
        statements = []
        while self.peek().kind != "eof":
            if self.accept(";"):
                continue
            token = self.peek()
            if token.kind == "name" and token.value == "var":
                statements.append(self.parse_var())
            else:
                statements.append(("expr", self.parse_assignment()))
            if self.peek().kind != "eof":
                self.expect(";")
        return statements

    def parse_var(self) -> tuple:
        self.advance()
        declarations = []
        while True:
            token = self.advance()
            if token.kind != "name" or token.value in _UNSUPPORTED_KEYWORDS:
                raise EvaluationError(f"Expected variable name at position {token.pos}")
            initializer = self.parse_assignment() if self.accept("=") else None
            declarations.append((token.value, initializer))
            if not self.accept(","):
                return ("var", declarations)

    def parse_assignment(self) -> tuple:
        self._enter()
        try:
            left = self.parse_additive()
            token = self.peek()
            if token.kind == "op" and token.value in ASSIGNMENT_OPERATORS:
                if left[0] not in ("name", "member"):
                    raise EvaluationError(f"Invalid assignment target at position {token.pos}")
                self.advance()
                return ("assign", token.value, left, self.parse_assignment())
            return left
        finally:
            self.depth -= 1

    def parse_additive(self) -> tuple:
        node = self.parse_multiplicative()
        while self.at("+") or self.at("-"):
            operator = self.advance().value
            node = ("binary", operator, node, self.parse_multiplicative())
        return node

    def parse_multiplicative(self) -> tuple:
        node = self.parse_unary()
        while self.at("*") or self.at("/") or self.at("%"):
            operator = self.advance().value
            node = ("binary", operator, node, self.parse_unary())
        return node

    def parse_unary(self) -> tuple:
        if self.at("+") or self.at("-") or self.at("!"):
            self._enter()
            try:
                operator = self.advance().value
                return ("unary", operator, self.parse_unary())
            finally:
                self.depth -= 1
        return self.parse_postfix()

    def parse_postfix(self) -> tuple:
        node = self.parse_primary()
        while True:
            if self.accept("."):
                token = self.advance()
                if token.kind != "name":
                    raise EvaluationError(f"Expected property name at position {token.pos}")
                node = ("member", node, ("const", token.value))
            elif self.accept("["):
                prop = self.parse_assignment()
                self.expect("]")
                node = ("member", node, prop)
            elif self.accept("("):
                args = []
                if not self.accept(")"):
                    while True:
                        args.append(self.parse_assignment())
                        if self.accept(")"):
                            break
                        self.expect(",")
                node = ("call", node, args)
            else:
                return node

    def parse_primary(self) -> tuple:
        token = self.advance()
        if token.kind in ("number", "string"):
            return ("const", token.value)
        if token.kind == "name":
            if token.value == "true":
                return ("const", True)
            if token.value == "false":
                return ("const", False)
            if token.value == "null":
                return ("const", None)
            if token.value in _UNSUPPORTED_KEYWORDS or token.value == "var":
                raise EvaluationError(f"Unsupported keyword {token.value!r} at position {token.pos}")
            return ("name", token.value)
        if token.kind == "op":
            if token.value == "(":
                node = self.parse_assignment()
                self.expect(")")
                return node
            if token.value == "[":
                return self._parse_array()
            if token.value == "{":
                return self._parse_object()
        if token.kind == "eof":
            raise EvaluationError("Unexpected end of script")
        raise EvaluationError(f"Unexpected token {token.value!r} at position {token.pos}")

    def _parse_array(self) -> tuple:
        elements = []
        while not self.accept("]"):
            elements.append(self.parse_assignment())
            if not self.accept(","):
                self.expect("]")
                break
        return ("array", elements)

    def _parse_object(self) -> tuple:
        properties = []
        while not self.accept("}"):
            token = self.advance()
            if token.kind in ("name", "string"):
                key = token.value
            elif token.kind == "number":
                key = number_to_string(token.value)
            else:
                raise EvaluationError(f"Expected property key at position {token.pos}")
            self.expect(":")
            properties.append((key, self.parse_assignment()))
            if not self.accept(","):
                self.expect("}")
                break
        return ("object", properties)


# --- Interpreter ---------------------------------------------------------------------

_NO_VALUE = object()


def _array_index(key: str) -> Optional[int]:
    if key.isdigit() and len(key) <= 20 and str(int(key)) == key:
        return int(key)
    return None


def get_property(obj: Any, key: str) -> Any:
    if obj is UNDEFINED or obj is None:
        raise EvaluationError(f"Cannot read property {key!r} of {to_string(obj)}")
    if isinstance(obj, dict):
        return obj.get(key, UNDEFINED)
    if isinstance(obj, (list, str)):
        if key == "length":
            return float(len(obj))
        index = _array_index(key)
        if index is not None and index < len(obj):
            return obj[index]
    return UNDEFINED


def set_property(obj: Any, key: str, value: Any) -> None:
    if isinstance(obj, dict):
        obj[key] = value
        return
    if isinstance(obj, list):
        index = _array_index(key)
        if index is not None:
            if index >= MAX_ARRAY_LENGTH:
                raise EvaluationError(
                    f"Array index {index} exceeds limit of {MAX_ARRAY_LENGTH - 1}"
                )
            obj.extend([UNDEFINED] * (index + 1 - len(obj)))
            obj[index] = value
            return
    raise EvaluationError(f"Cannot set property {key!r} of {to_string(obj)}")


class _Interpreter:
    def __init__(self):
        self.globals = _make_globals()
        self.scope: Dict[str, Any] = {}
        self.allocated = 0

    def _charge(self, size: int) -> None:
        self.allocated += size
        if self.allocated > MAX_ALLOCATION:
            raise EvaluationError(f"Script allocated more than {MAX_ALLOCATION} units")

    def _binary(self, operator: str, left: Any, right: Any) -> Any:
        result = binary_operation(operator, left, right)
        if isinstance(result, str):
            self._charge(len(result))
        return result

    def run(self, statements: List[tuple]) -> Any:
        completion = _NO_VALUE
        for statement in statements:
            if statement[0] == "var":
                for name, initializer in statement[1]:
                    if initializer is not None:
                        self.scope[name] = self.eval(initializer)
                    elif name not in self.scope:
                        self.scope[name] = UNDEFINED
            else:
                completion = self.eval(statement[1])
        return completion

    def lookup(self, name: str) -> Any:
        if name in self.scope:
            return self.scope[name]
        if name in self.globals:
            return self.globals[name]
        raise EvaluationError(f"{name} is not defined")

    def eval(self, node: tuple) -> Any:
        kind = node[0]
        if kind == "const":
            return node[1]
        if kind == "name":
            return self.lookup(node[1])
        if kind == "array":
            return [self.eval(element) for element in node[1]]
        if kind == "object":
            return {key: self.eval(value) for key, value in node[1]}
        if kind == "member":
            return get_property(self.eval(node[1]), to_string(self.eval(node[2])))
        if kind == "unary":
            operand = self.eval(node[2])
            if node[1] == "!":
                return not to_boolean(operand)
            number = to_number(operand)
            return -number if node[1] == "-" else number
        if kind == "binary":
            return self._binary(node[1], self.eval(node[2]), self.eval(node[3]))
        if kind == "assign":
            return self._assign(node[1], node[2], node[3])
        if kind == "call":
            return self._call(node[1], node[2])
        raise EvaluationError(f"Unknown syntax node {kind!r}")

    def _assign(self, operator: str, target: tuple, value_node: tuple) -> Any:
        if target[0] == "name":
            name = target[1]
            if operator == "=":
                value = self.eval(value_node)
            else:
                value = self._binary(operator[0], self.lookup(name), self.eval(value_node))
            self.scope[name] = value
            return value

        obj = self.eval(target[1])
        key = to_string(self.eval(target[2]))
        if operator == "=":
            value = self.eval(value_node)
        else:
            value = self._binary(operator[0], get_property(obj, key), self.eval(value_node))
        size = len(obj) if isinstance(obj, list) else 0
        set_property(obj, key, value)
        if isinstance(obj, list):
            self._charge(len(obj) - size)
        return value

    def _call(self, callee_node: tuple, arg_nodes: List[tuple]) -> Any:
        callee = self.eval(callee_node)
        if not isinstance(callee, NativeFunction):
            raise EvaluationError(f"{to_string(callee)} is not a function")
        return callee.func(*[self.eval(arg) for arg in arg_nodes])


class ArithmeticEvaluator:
    """Evaluates normalized challenge scripts to a 64-bit integer."""

    def __init__(self, max_length: int = MAX_SCRIPT_LENGTH):
        self.max_length = max_length

    def parse(self, script: str) -> List[tuple]:
        if len(script) > self.max_length:
            raise EvaluationError(
                f"Script is {len(script)} characters, limit is {self.max_length}"
            )
        return _Parser(tokenize(script)).parse_program()

    def evaluate_value(self, script: str) -> Any:
        """Run the script and return the raw completion value."""
        try:
            result = _Interpreter().run(self.parse(script))
        except RecursionError as e:
            raise EvaluationError("Script nested too deeply") from e
        except (ValueError, OverflowError, MemoryError) as e:
            raise EvaluationError(f"Script exceeded evaluator limits: {e}") from e
        if result is _NO_VALUE:
            raise EvaluationError("Script produced no value")
        return result

    def evaluate(self, script: str) -> int:
        """Run the script and return its result truncated to an integer."""
        result = self.evaluate_value(script)
        if not isinstance(result, float) or math.isnan(result) or math.isinf(result):
            if isinstance(result, (float, bool, str)):
                shown = repr(to_string(result)[:64])
            else:
                shown = f"of type {type(result).__name__}"
            raise EvaluationError(f"Script returned non-numeric result {shown}")

        value = int(result)
        if not INT64_MIN <= value <= INT64_MAX:
            raise EvaluationError(f"Result {value} does not fit in 64 bits")
        return value


def evaluate(script: str) -> int:
    """Evaluate a normalized challenge script with default limits."""
    return ArithmeticEvaluator().evaluate(script)
