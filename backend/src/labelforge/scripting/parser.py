"""Parser for the label-scripting language.

Scripts are line oriented. The parser splits source into logical lines,
recognizes statement forms by their leading keyword, and turns each
expression into an AST node.

Statement forms (checked in this order):
1. return <expr>
2. dim <name> [as <type>] [= <expr>]
3. if <cond> then ... [elseif <cond> then ...]* [else ...] end if
   (also on a single line: if <cond> then <stmt> [else <stmt>] [end if])
4. for <var> = <start> to <end> ... next
5. <name> = <expr>

Expressions are classified by a fixed detection order; the first
structural match wins:
1. Concatenation: top-level & outside string literals
2. String literal: a single quoted string
3. Comparison: <> >= <= = > < (tried in that order, split at the first one)
4. Logical: andalso, and, or (then a leading "not")
5. Arithmetic: + - * / mod (parsed with operator precedence)
6. Function call: name(args) or path.Member(args)
7. Dotted property access
8. Number literal, bare name, verbatim text
"""

import re
from dataclasses import dataclass, field

from labelforge.scripting.errors import ParseError
from labelforge.scripting.lexer import Lexer, Token, TokenType


# -----------------------------------------------------------------------------
# Expression AST
# -----------------------------------------------------------------------------


@dataclass
class ASTNode:
    """Base class for AST nodes."""
    pass


@dataclass
class StringLiteral(ASTNode):
    """A double-quoted string (quotes stripped)."""
    value: str


@dataclass
class NumberLiteral(ASTNode):
    """An integer or decimal number."""
    value: int | float


@dataclass
class Missing(ASTNode):
    """An omitted function argument, e.g. the middle of f(a,,b)."""
    pass


@dataclass
class Concat(ASTNode):
    """String concatenation (a & b & c)."""
    parts: list[ASTNode]


@dataclass
class Comparison(ASTNode):
    """Comparison (=, <>, <, <=, >, >=)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass
class Logical(ASTNode):
    """Logical combination; operator is "and" or "or"."""
    operator: str
    operands: list[ASTNode]


@dataclass
class Not(ASTNode):
    """Logical negation (not x)."""
    operand: ASTNode


@dataclass
class BinaryOp(ASTNode):
    """Arithmetic operation (+, -, *, /, mod)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass
class UnaryOp(ASTNode):
    """Unary sign (-x, +x)."""
    operator: str
    operand: ASTNode


@dataclass
class FunctionCall(ASTNode):
    """Built-in function call (e.g. left(name, 3))."""
    name: str
    arguments: list[ASTNode]


@dataclass
class MemberCall(ASTNode):
    """Call on a dotted path (e.g. Shipment.Attributes("SortCode"),
    Shipment.cr_time_db.ToString("dd/MM/yyyy"))."""
    path: str
    arguments: list[ASTNode]


@dataclass
class PropertyAccess(ASTNode):
    """Dotted path resolved against the context (e.g. Shipment.Receiver.City)."""
    path: str


@dataclass
class Name(ASTNode):
    """A bare identifier: a local variable or a top-level context key."""
    name: str


@dataclass
class Verbatim(ASTNode):
    """Text that matched no expression form."""
    text: str


# -----------------------------------------------------------------------------
# Statement AST
# -----------------------------------------------------------------------------


@dataclass
class Statement(ASTNode):
    """Base class for statements."""
    pass


@dataclass
class ReturnStatement(Statement):
    expression: ASTNode
    line: int = 0


@dataclass
class DimStatement(Statement):
    name: str
    initializer: ASTNode | None = None
    line: int = 0


@dataclass
class AssignStatement(Statement):
    name: str
    expression: ASTNode
    line: int = 0


@dataclass
class IfBranch:
    condition: ASTNode
    body: list[Statement]


@dataclass
class IfStatement(Statement):
    branches: list[IfBranch]
    else_body: list[Statement] | None = None
    line: int = 0


@dataclass
class ForStatement(Statement):
    variable: str
    start: ASTNode
    end: ASTNode
    body: list[Statement] = field(default_factory=list)
    line: int = 0


@dataclass
class UnknownStatement(Statement):
    """A line that matched no statement form."""
    text: str
    line: int = 0


@dataclass
class Script(ASTNode):
    body: list[Statement]


# -----------------------------------------------------------------------------
# Quote-aware text helpers
# -----------------------------------------------------------------------------


def _quote_mask(text: str) -> list[bool]:
    """Mark each character that belongs to a string literal (quotes included)."""
    mask = []
    in_quotes = False
    for char in text:
        if char == '"':
            mask.append(True)
            in_quotes = not in_quotes
        else:
            mask.append(in_quotes)
    return mask


def _find_unquoted(text: str, needle: str) -> int:
    """Index of the first occurrence of needle outside string literals, or -1."""
    mask = _quote_mask(text)
    start = text.find(needle)
    while start != -1:
        if not mask[start]:
            return start
        start = text.find(needle, start + 1)
    return -1


def _keyword_matches(pattern: re.Pattern, text: str) -> list[re.Match]:
    mask = _quote_mask(text)
    return [m for m in pattern.finditer(text) if not mask[m.start()]]


def split_concatenation(text: str) -> list[str]:
    """Split at & outside string literals.

    Only quote state is tracked; parentheses are not a barrier.
    """
    mask = _quote_mask(text)
    parts = []
    start = 0
    for index, char in enumerate(text):
        if char == "&" and not mask[index]:
            parts.append(text[start:index].strip())
            start = index + 1
    parts.append(text[start:].strip())
    return parts


def split_arguments(text: str) -> list[str]:
    """Split a call's argument text at top-level commas.

    Respects nested parentheses and string literals.
    """
    if not text.strip():
        return []

    args = []
    current = []
    depth = 0
    in_quotes = False

    for char in text:
        if char == '"':
            in_quotes = not in_quotes
        elif not in_quotes:
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            elif char == "," and depth == 0:
                args.append("".join(current).strip())
                current = []
                continue
        current.append(char)

    tail = "".join(current).strip()
    if tail:
        args.append(tail)
    return args


def _matching_paren(text: str, open_index: int) -> int:
    """Index of the parenthesis closing the one at open_index, or -1."""
    mask = _quote_mask(text)
    depth = 0
    for index in range(open_index, len(text)):
        if mask[index]:
            continue
        if text[index] == "(":
            depth += 1
        elif text[index] == ")":
            depth -= 1
            if depth == 0:
                return index
    return -1


# -----------------------------------------------------------------------------
# Expression parsing
# -----------------------------------------------------------------------------

COMPARISON_OPERATORS = ("<>", ">=", "<=", "=", ">", "<")

LOGICAL_OPERATORS = (("andalso", "and"), ("and", "and"), ("or", "or"))

_LOGICAL_PATTERNS = {
    word: re.compile(rf"(?<![A-Za-z0-9_.]){word}(?![A-Za-z0-9_])", re.IGNORECASE)
    for word, _ in LOGICAL_OPERATORS
}

_MOD_PATTERN = re.compile(r"(?<![A-Za-z0-9_.])mod(?![A-Za-z0-9_])", re.IGNORECASE)
_NOT_PATTERN = re.compile(r"^not\s+(?P<operand>.+)$", re.IGNORECASE | re.DOTALL)
_CALL_PATTERN = re.compile(r"^(?P<name>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)\s*\(")
_NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_]\w*$")


def _is_string_literal(text: str) -> bool:
    """True when every character, from the opening to the closing quote, is quoted.

    Doubled quotes (`"a""b"`) keep the text one literal; an operator or a
    space between two literals does not.
    """
    if len(text) < 2 or text[0] != '"' or text[-1] != '"':
        return False
    return all(_quote_mask(text))


def _has_arithmetic_operator(text: str) -> bool:
    mask = _quote_mask(text)
    if any(char in "+-*/" and not mask[i] for i, char in enumerate(text)):
        return True
    return bool(_keyword_matches(_MOD_PATTERN, text))


def _number_value(text: str) -> int | float:
    return float(text) if "." in text else int(text)


def parse_expression(text: str) -> ASTNode:
    """Parse expression text into an AST node using the fixed detection order."""
    text = text.strip()
    if not text:
        return StringLiteral("")

    # 1. Concatenation
    parts = split_concatenation(text)
    if len(parts) > 1:
        return Concat([parse_expression(part) for part in parts])

    # 2. String literal
    if _is_string_literal(text):
        return StringLiteral(text[1:-1])

    # 3. Comparison
    for operator in COMPARISON_OPERATORS:
        index = _find_unquoted(text, operator)
        if index == -1:
            continue
        left = text[:index].strip()
        right = text[index + len(operator):].strip()
        if not left or not right:
            raise ParseError(f"Malformed comparison '{text}'")
        return Comparison(operator, parse_expression(left), parse_expression(right))

    # 4. Logical
    for word, operator in LOGICAL_OPERATORS:
        matches = _keyword_matches(_LOGICAL_PATTERNS[word], text)
        if not matches:
            continue
        operands = []
        start = 0
        for match in matches:
            operands.append(text[start:match.start()].strip())
            start = match.end()
        operands.append(text[start:].strip())
        if not all(operands):
            raise ParseError(f"Malformed logical expression '{text}'")
        return Logical(operator, [parse_expression(operand) for operand in operands])

    not_match = _NOT_PATTERN.match(text)
    if not_match:
        return Not(parse_expression(not_match.group("operand")))

    # 5. Arithmetic
    if _has_arithmetic_operator(text):
        return ArithmeticParser(text).parse()

    # 6. Function call
    call = _parse_call(text)
    if call is not None:
        return call

    # 7. Dotted property access
    if "." in text and not _NUMBER_PATTERN.match(text):
        return PropertyAccess(text)

    # 8. Number literal, bare name, verbatim fallback
    if _NUMBER_PATTERN.match(text):
        return NumberLiteral(_number_value(text))
    if _IDENTIFIER_PATTERN.match(text):
        return Name(text)
    return Verbatim(text)


def _parse_arguments(text: str) -> list[ASTNode]:
    return [
        parse_expression(arg) if arg else Missing()
        for arg in split_arguments(text)
    ]


def _parse_call(text: str) -> ASTNode | None:
    """Parse text of the form name(args) where the call spans the whole text."""
    match = _CALL_PATTERN.match(text)
    if not match:
        return None

    open_index = match.end() - 1
    if _matching_paren(text, open_index) != len(text) - 1:
        return None

    name = match.group("name")
    arguments = _parse_arguments(text[open_index + 1:-1])
    if "." in name:
        return MemberCall(name, arguments)
    return FunctionCall(name, arguments)


class ArithmeticParser:
    """Recursive descent parser for arithmetic expressions.

    Operator Precedence (lowest to highest):
    1. + -
    2. * / mod
    3. unary - +
    4. primaries: numbers, strings, names, paths, calls, ( ... )

    Call arguments and parenthesized groups are handed back to
    parse_expression, so they may use the full expression language.
    """

    def __init__(self, source: str):
        self.source = source
        self.tokens = [
            t for t in Lexer(source).tokenize() if t.type != TokenType.NEWLINE
        ]
        self.position = 0

    def parse(self) -> ASTNode:
        node = self._parse_additive()
        if not self._is_at_end():
            raise ParseError(
                f"Unexpected '{self._current().value}' in expression '{self.source}'"
            )
        return node

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        return self.tokens[min(self.position, len(self.tokens) - 1)]

    def _peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.position + offset, len(self.tokens) - 1)]

    def _is_at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _advance(self) -> Token:
        token = self._current()
        self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _closing_paren(self) -> Token:
        """Find the RPAREN matching the LPAREN at the current position."""
        depth = 0
        for index in range(self.position, len(self.tokens)):
            token = self.tokens[index]
            if token.type == TokenType.LPAREN:
                depth += 1
            elif token.type == TokenType.RPAREN:
                depth -= 1
                if depth == 0:
                    self.position = index + 1
                    return token
        raise ParseError(f"Unbalanced parentheses in expression '{self.source}'")

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def _parse_additive(self) -> ASTNode:
        left = self._parse_multiplicative()

        while self._match(TokenType.PLUS, TokenType.MINUS):
            operator = self._advance().value
            right = self._parse_multiplicative()
            left = BinaryOp(operator, left, right)

        return left

    def _parse_multiplicative(self) -> ASTNode:
        left = self._parse_unary()

        while self._match(TokenType.MULTIPLY, TokenType.DIVIDE, TokenType.MOD):
            operator = self._advance().value.lower()
            right = self._parse_unary()
            left = BinaryOp(operator, left, right)

        return left

    def _parse_unary(self) -> ASTNode:
        if self._match(TokenType.MINUS, TokenType.PLUS):
            operator = self._advance().value
            return UnaryOp(operator, self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> ASTNode:
        token = self._current()

        if token.type == TokenType.NUMBER:
            self._advance()
            return NumberLiteral(_number_value(token.value))

        if token.type == TokenType.STRING:
            self._advance()
            return StringLiteral(token.value)

        if token.type == TokenType.LPAREN:
            closing = self._closing_paren()
            return parse_expression(self.source[token.position + 1:closing.position])

        if token.type == TokenType.IDENTIFIER:
            return self._parse_reference()

        if self._is_at_end():
            raise ParseError(f"Incomplete expression '{self.source}'")
        raise ParseError(f"Unexpected '{token.value}' in expression '{self.source}'")

    def _parse_reference(self) -> ASTNode:
        """Parse name, dotted path, or call."""
        segments = [self._advance().value]

        while self._match(TokenType.DOT) and _IDENTIFIER_PATTERN.match(self._peek().value):
            self._advance()
            segments.append(self._advance().value)

        path = ".".join(segments)

        if self._match(TokenType.LPAREN):
            opening = self._current()
            closing = self._closing_paren()
            arguments = _parse_arguments(
                self.source[opening.position + 1:closing.position]
            )
            if len(segments) > 1:
                return MemberCall(path, arguments)
            return FunctionCall(path, arguments)

        if len(segments) > 1:
            return PropertyAccess(path)
        return Name(path)


# -----------------------------------------------------------------------------
# Statement parsing
# -----------------------------------------------------------------------------


@dataclass
class LogicalLine:
    text: str
    number: int


_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_COMMENT_LINE = re.compile(r"^('|rem(\s|$))", re.IGNORECASE)

_RETURN = re.compile(r"^return(?:\s+(?P<expr>.*))?$", re.IGNORECASE | re.DOTALL)
_DIM = re.compile(
    r"^dim\s+(?P<name>[A-Za-z_]\w*)(?:\s+as\s+[A-Za-z_][\w()]*)?(?:\s*=\s*(?P<expr>.+))?",
    re.IGNORECASE,
)
_IF_START = re.compile(r"^if\b", re.IGNORECASE)
_IF = re.compile(r"^if\s+(?P<cond>.+)\s+then$", re.IGNORECASE)
_ELSEIF_START = re.compile(r"^elseif\b", re.IGNORECASE)
_ELSEIF = re.compile(r"^elseif\s+(?P<cond>.+)\s+then$", re.IGNORECASE)
_ELSE = re.compile(r"^else$", re.IGNORECASE)
_END_IF = re.compile(r"^end\s+if$", re.IGNORECASE)
_FOR_START = re.compile(r"^for\b", re.IGNORECASE)
_FOR = re.compile(
    r"^for\s+(?P<var>[A-Za-z_]\w*)\s*=\s*(?P<start>.+?)\s+to\s+(?P<end>.+)$",
    re.IGNORECASE,
)
_NEXT = re.compile(r"^next(?:\s+[A-Za-z_]\w*)?$", re.IGNORECASE)
_ASSIGN = re.compile(r"^(?P<name>[A-Za-z_]\w*)\s*=(?!=)\s*(?P<expr>.*)$", re.DOTALL)

_IF_TERMINATORS = (_ELSEIF_START, _ELSE, _END_IF)
_FOR_TERMINATORS = (_NEXT,)

_INLINE_START = re.compile(r"^(if|elseif|else)\b", re.IGNORECASE)
_BLOCK_KEYWORD = re.compile(
    r"(?<![A-Za-z0-9_.])(elseif|else|end\s+if|then|if)(?![A-Za-z0-9_])",
    re.IGNORECASE,
)


def _strip_trailing_comment(text: str) -> str:
    index = _find_unquoted(text, "'")
    return text[:index].rstrip() if index != -1 else text


def _expand_inline_if(line: LogicalLine) -> list[LogicalLine]:
    """Split a single-line if/elseif/else into one logical line per part.

    `if c then return "X" else return "Y"` becomes the lines
    `if c then`, `return "X"`, `else`, `return "Y"`, `end if`.
    """
    text = line.text
    if not _INLINE_START.match(text):
        return [line]

    pieces: list[str] = []
    cursor = 0
    header_start: int | None = None
    open_ifs = 0

    def emit(chunk: str) -> None:
        chunk = chunk.strip()
        if chunk:
            pieces.append(chunk)

    for match in _keyword_matches(_BLOCK_KEYWORD, text):
        word = " ".join(match.group(1).lower().split())

        if header_start is not None:
            if word == "then":
                pieces.append(text[header_start:match.end()].strip())
                cursor = match.end()
                header_start = None
            continue

        if word in ("if", "elseif"):
            emit(text[cursor:match.start()])
            header_start = match.start()
            if word == "if":
                open_ifs += 1
        elif word == "else":
            emit(text[cursor:match.start()])
            pieces.append("else")
            cursor = match.end()
        elif word == "end if":
            emit(text[cursor:match.start()])
            pieces.append("end if")
            cursor = match.end()
            open_ifs -= 1

    if header_start is not None:
        emit(text[header_start:])
    else:
        emit(text[cursor:])

    if len(pieces) <= 1:
        return [line]

    pieces.extend(["end if"] * max(open_ifs, 0))
    return [LogicalLine(piece, line.number) for piece in pieces]


def logical_lines(source: str) -> list[LogicalLine]:
    """Split source into trimmed, non-empty, non-comment logical lines."""
    lines = []
    for number, raw in enumerate(_LINE_BREAK.split(source), start=1):
        text = raw.strip()
        if not text or _COMMENT_LINE.match(text):
            continue
        text = _strip_trailing_comment(text)
        if text:
            lines.extend(_expand_inline_if(LogicalLine(text, number)))
    return lines


class ScriptParser:
    """Parser producing a Script AST from source.

    Usage:
        script = ScriptParser('dim x = 1\\nreturn x').parse()
    """

    def __init__(self, source: str):
        self.source = source
        self.lines = logical_lines(source)
        self.index = 0

    def parse(self) -> Script:
        return Script(self._parse_block(()))

    def _parse_block(self, terminators: tuple[re.Pattern, ...]) -> list[Statement]:
        statements: list[Statement] = []
        while self.index < len(self.lines):
            line = self.lines[self.index]
            if any(t.match(line.text) for t in terminators):
                break
            statements.append(self._parse_statement(line))
        return statements

    def _expression(self, text: str, line: LogicalLine) -> ASTNode:
        try:
            return parse_expression(text)
        except ParseError as e:
            if e.line is not None:
                raise
            raise ParseError(str(e), line=line.number) from e

    def _parse_statement(self, line: LogicalLine) -> Statement:
        text = line.text

        match = _RETURN.match(text)
        if match:
            self.index += 1
            return ReturnStatement(self._expression(match.group("expr") or "", line), line.number)

        match = _DIM.match(text)
        if match:
            self.index += 1
            initializer = match.group("expr")
            return DimStatement(
                match.group("name"),
                self._expression(initializer, line) if initializer else None,
                line.number,
            )

        if _IF_START.match(text):
            return self._parse_if(line)

        if _FOR_START.match(text):
            return self._parse_for(line)

        match = _ASSIGN.match(text)
        if match:
            self.index += 1
            return AssignStatement(
                match.group("name"), self._expression(match.group("expr"), line), line.number
            )

        self.index += 1
        return UnknownStatement(text, line.number)

    def _parse_if(self, line: LogicalLine) -> IfStatement:
        match = _IF.match(line.text)
        if not match:
            raise ParseError("Expected 'then' after if condition", line=line.number)

        self.index += 1
        branches = [
            IfBranch(
                self._expression(match.group("cond"), line),
                self._parse_block(_IF_TERMINATORS),
            )
        ]
        else_body: list[Statement] | None = None

        while self.index < len(self.lines):
            current = self.lines[self.index]

            if _END_IF.match(current.text):
                self.index += 1
                return IfStatement(branches, else_body, line.number)

            if else_body is not None:
                raise ParseError("Unexpected branch after 'else'", line=current.number)

            if _ELSE.match(current.text):
                self.index += 1
                else_body = self._parse_block(_IF_TERMINATORS)
                continue

            elseif = _ELSEIF.match(current.text)
            if not elseif:
                raise ParseError("Expected 'then' after elseif condition", line=current.number)
            self.index += 1
            branches.append(
                IfBranch(
                    self._expression(elseif.group("cond"), current),
                    self._parse_block(_IF_TERMINATORS),
                )
            )

        raise ParseError("'if' without matching 'end if'", line=line.number)

    def _parse_for(self, line: LogicalLine) -> ForStatement:
        match = _FOR.match(line.text)
        if not match:
            raise ParseError("Malformed for statement", line=line.number)

        self.index += 1
        body = self._parse_block(_FOR_TERMINATORS)
        if self.index >= len(self.lines):
            raise ParseError("'for' without matching 'next'", line=line.number)
        self.index += 1

        return ForStatement(
            match.group("var"),
            self._expression(match.group("start"), line),
            self._expression(match.group("end"), line),
            body,
            line.number,
        )


def parse_script(source: str) -> Script:
    """Convenience function to parse script source.

    Args:
        source: The script text (content of one script block)

    Returns:
        The Script AST root
    """
    return ScriptParser(source).parse()
