"""Lark-based parser for spreadsheet formulas.

Supports:
- Cell references: ``A1``, ``$B$2``, ``aa10`` or row/column pairs ``R3C2``
- Range references: ``A1:B3`` (either reference style on each side)
- Standard arithmetic, comparisons, text concatenation (``&``), exponent,
  postfix percent and function calls ``NAME(arg, ...)``
- Number, string (``"a ""quoted"" word"``) and boolean literals
- Error literals such as ``#REF!``, left behind when a referenced row or
  column is deleted

``parse_formula`` returns a tree of ``gridcalc.formulas.ast`` nodes;
``render_formula`` turns such a tree back into canonical formula text.
"""

from __future__ import annotations

import math

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import (
    LarkError,
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)
from lark.lexer import PatternStr

from gridcalc.address import CellAddress, make_addr, parse_addr
from gridcalc.formulas.ast import (
    BinaryOp,
    Call,
    CellRef,
    Expr,
    Literal,
    RangeRef,
    UnaryOp,
)
from gridcalc.formulas.errors import FormulaParseError
from gridcalc.formulas.values import CellError, parse_error_code

# LALR(1) grammar for spreadsheet formulas.
# Operator precedence (lowest to highest):
#   1. Comparison: = <> < > <= >=
#   2. Concatenation: &
#   3. Addition/subtraction: + -
#   4. Multiplication/division: * /
#   5. Unary plus/minus: + -
#   6. Exponentiation: ^ (right-associative)
#   7. Postfix percent: %  (3% = 0.03)
#   8. Atoms: number, bool, string, function call, reference, range, parenthesized expr
GRAMMAR = r"""
start: "=" expr

?expr: comparison

?comparison: concat
    | comparison "=" concat   -> eq
    | comparison "<>" concat  -> neq
    | comparison "<" concat   -> lt
    | comparison ">" concat   -> gt
    | comparison "<=" concat  -> lte
    | comparison ">=" concat  -> gte

?concat: addition
    | concat "&" addition  -> concat

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos

?exponentiation: postfix
    | postfix "^" unary  -> pow

?postfix: atom
    | postfix "%"  -> percent

?atom: NUMBER                   -> number
    | BOOL                      -> boolean
    | STRING                    -> string
    | ERROR                     -> error_literal
    | NAME "(" args ")"         -> func_call
    | ref ":" ref               -> range_ref
    | ref
    | "(" expr ")"

?ref: CELL_REF                  -> a1_ref
    | RC_REF                    -> rc_ref

args: expr ("," expr)*
    |

BOOL.3: /(?i:TRUE|FALSE)(?![A-Za-z0-9_.(])/

// Error display codes: #REF!, #DIV/0!, #NAME? ...
ERROR.3: /#(?i:SYNTAX!|CYCLE!|VALUE!|DIV\/0!|RANGE!|NAME\?|REF!)/

// Row/column pair: R3C2 (1-based)
RC_REF.3: /[Rr][0-9]+[Cc][0-9]+(?![A-Za-z0-9_.(])/

// A1-style ref with optional absolute markers: A1, $B$2, aa10
CELL_REF.2: /\$?[A-Za-z]{1,3}\$?[0-9]+(?![A-Za-z0-9_.(])/

NAME.1: /[A-Za-z_][A-Za-z0-9_.]*/

// Spreadsheet string: doubled quote escapes a quote
STRING: /"(?:[^"]|"")*"/

%import common.NUMBER
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


@v_args(inline=True)
class _ToAst(Transformer):
    """Turns the Lark parse tree into ``ast`` nodes."""

    def start(self, expr: Expr) -> Expr:
        return expr

    def number(self, token: Token) -> Literal:
        s = str(token)
        if any(ch in s for ch in ".eE"):
            value = float(s)
            if not math.isfinite(value):
                raise FormulaParseError(f"Number out of range: {s}", position=token.column)
            return Literal(value)
        try:
            return Literal(int(s))
        except ValueError as exc:
            # past the interpreter's int/str digit limit
            raise FormulaParseError(f"Number out of range: {s[:20]}...", position=token.column) from exc

    def boolean(self, token: Token) -> Literal:
        return Literal(str(token).upper() == "TRUE")

    def string(self, token: Token) -> Literal:
        return Literal(str(token)[1:-1].replace('""', '"'))

    def error_literal(self, token: Token) -> Literal:
        return Literal(parse_error_code(str(token)))

    def a1_ref(self, token: Token) -> CellRef:
        try:
            return CellRef(parse_addr(str(token)))
        except ValueError as exc:
            raise FormulaParseError(str(exc), position=token.column) from exc

    def rc_ref(self, token: Token) -> CellRef:
        text = str(token).upper()
        row_text, col_text = text[1:].split("C")
        row, col = int(row_text), int(col_text)
        if row < 1 or col < 1:
            raise FormulaParseError(
                f"Invalid cell address: {str(token)!r} (rows and columns start at 1)",
                position=token.column,
            )
        return CellRef(CellAddress(row - 1, col - 1))

    def range_ref(self, start: CellRef, end: CellRef) -> RangeRef:
        return RangeRef(start.address, end.address)

    def func_call(self, name: Token, args: list[Expr]) -> Call:
        return Call(str(name).upper(), tuple(args))

    def args(self, *items: Expr) -> list[Expr]:
        return list(items)

    def neg(self, operand: Expr) -> UnaryOp:
        return UnaryOp("-", operand)

    def pos(self, operand: Expr) -> UnaryOp:
        return UnaryOp("+", operand)

    def percent(self, operand: Expr) -> UnaryOp:
        return UnaryOp("%", operand)

    def eq(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("=", left, right)

    def neq(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("<>", left, right)

    def lt(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("<", left, right)

    def gt(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp(">", left, right)

    def lte(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("<=", left, right)

    def gte(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp(">=", left, right)

    def concat(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("&", left, right)

    def add(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("+", left, right)

    def sub(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("-", left, right)

    def mul(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("*", left, right)

    def div(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("/", left, right)

    def pow(self, left: Expr, right: Expr) -> BinaryOp:
        return BinaryOp("^", left, right)


def _describe_terminal(name: str) -> str:
    if name == "$END":
        return "end of formula"
    try:
        pattern = _parser.get_terminal(name).pattern
    except KeyError:
        return name
    if isinstance(pattern, PatternStr):
        return repr(pattern.value)
    return name


def is_formula(text: str) -> bool:
    """True if cell text denotes a formula (leading ``=``)."""
    return text.strip().startswith("=")


def parse_formula(text: str) -> Expr:
    """Parse a formula string (must start with ``=``) into an expression tree.

    Args:
        text: The formula text, e.g. ``"=SUM(A1:A3) * (1 - B1)"``.

    Returns:
        The root ``Expr`` node.

    Raises:
        FormulaParseError: If the formula has invalid syntax.  Never raises
            anything else for string input.
    """
    text = text.strip()
    if not text.startswith("="):
        raise FormulaParseError("Formula must start with '='", position=1, expected=["'='"])
    try:
        tree = _parser.parse(text)
        return _ToAst().transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, FormulaParseError):
            raise exc.orig_exc from None
        raise FormulaParseError(str(exc.orig_exc)) from exc
    except UnexpectedInput as exc:
        raise _from_lark(exc, text) from exc
    except LarkError as exc:
        raise FormulaParseError(str(exc)) from exc
    except RecursionError as exc:
        raise FormulaParseError("Formula is nested too deeply") from exc


def _from_lark(exc: UnexpectedInput, text: str) -> FormulaParseError:
    pos = getattr(exc, "column", None)
    if not isinstance(pos, int) or pos < 1:
        pos = len(text) + 1

    if isinstance(exc, UnexpectedCharacters):
        expected = exc.allowed or set()
        message = f"Unexpected character {text[pos - 1]!r}" if pos <= len(text) else "Unexpected character"
    elif isinstance(exc, UnexpectedToken):
        expected = exc.expected or set()
        if exc.token.type == "$END":
            message = "Unexpected end of formula"
            pos = len(text) + 1
        else:
            message = f"Unexpected token {str(exc.token)!r}"
    elif isinstance(exc, UnexpectedEOF):
        expected = exc.expected or []
        message = "Unexpected end of formula"
    else:
        expected = set()
        message = str(exc).splitlines()[0]

    return FormulaParseError(
        message,
        position=pos,
        expected={_describe_terminal(name) for name in expected},
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

_BINARY_PRECEDENCE = {
    "=": 1, "<>": 1, "<": 1, ">": 1, "<=": 1, ">=": 1,
    "&": 2,
    "+": 3, "-": 3,
    "*": 4, "/": 4,
    "^": 6,
}
_UNARY_PRECEDENCE = 5
_PERCENT_PRECEDENCE = 7
_ATOM_PRECEDENCE = 8


def _precedence(node: Expr) -> int:
    if isinstance(node, BinaryOp):
        return _BINARY_PRECEDENCE[node.op]
    if isinstance(node, UnaryOp):
        return _PERCENT_PRECEDENCE if node.op == "%" else _UNARY_PRECEDENCE
    return _ATOM_PRECEDENCE


def _wrap(node: Expr, needs_parens: bool) -> str:
    text = _render(node)
    return f"({text})" if needs_parens else text


def _render_literal(value: int | float | str | bool | CellError) -> str:
    if isinstance(value, CellError):
        return value.display
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, str):
        return '"' + value.replace('"', '""') + '"'
    return repr(value)


def _render(node: Expr) -> str:
    if isinstance(node, Literal):
        return _render_literal(node.value)
    if isinstance(node, CellRef):
        return make_addr(node.address)
    if isinstance(node, RangeRef):
        return f"{make_addr(node.start)}:{make_addr(node.end)}"
    if isinstance(node, UnaryOp):
        if node.op == "%":
            return _wrap(node.operand, _precedence(node.operand) < _PERCENT_PRECEDENCE) + "%"
        return node.op + _wrap(node.operand, _precedence(node.operand) < _UNARY_PRECEDENCE)
    if isinstance(node, BinaryOp):
        prec = _BINARY_PRECEDENCE[node.op]
        if node.op == "^":
            # postfix "^" unary
            left = _wrap(node.left, _precedence(node.left) < _PERCENT_PRECEDENCE)
            right = _wrap(node.right, _precedence(node.right) < _UNARY_PRECEDENCE)
        else:
            left = _wrap(node.left, _precedence(node.left) < prec)
            right = _wrap(node.right, _precedence(node.right) <= prec)
        return f"{left} {node.op} {right}"
    if isinstance(node, Call):
        return f"{node.name}({', '.join(_render(arg) for arg in node.args)})"
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def render_formula(expr: Expr) -> str:
    """Render an expression tree as canonical formula text (with ``=``).

    Parentheses are emitted only where precedence or associativity needs
    them, so ``parse_formula(render_formula(e)) == e``.
    """
    return "=" + _render(expr)
