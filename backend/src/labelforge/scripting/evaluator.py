"""Evaluator for the label-scripting language.

Executes a parsed script against an execution context. Each Evaluator owns
the local variables of one script block; create a fresh Evaluator per block
so variables never leak between blocks.
"""

import logging
import math
from collections.abc import Iterator, Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Any

from labelforge.config import EngineConfig
from labelforge.scripting.context import ContextResolver, LookupFunction, lookup_key
from labelforge.scripting.errors import (
    ErrorKind,
    EvaluationError,
    LoopLimitError,
    ScriptError,
)
from labelforge.scripting.functions import FunctionRegistry
from labelforge.scripting.lexer import Lexer, LexicalAnomaly
from labelforge.scripting.parser import (
    ASTNode,
    AssignStatement,
    BinaryOp,
    Comparison,
    Concat,
    DimStatement,
    ForStatement,
    FunctionCall,
    IfStatement,
    Logical,
    MemberCall,
    Missing,
    Name,
    Not,
    NumberLiteral,
    PropertyAccess,
    ReturnStatement,
    Statement,
    StringLiteral,
    UnaryOp,
    UnknownStatement,
    Verbatim,
    parse_expression,
    parse_script,
)
from labelforge.scripting.values import (
    compare_numbers,
    loose_equals,
    to_bool,
    to_number,
    to_string,
)

logger = logging.getLogger(__name__)

# Outcome of a statement or block that finished without a return
_CONTINUE = object()


class LocalVariables(MutableMapping):
    """Case-insensitive variable table for one script block."""

    def __init__(self) -> None:
        self._values: dict[str, tuple[str, Any]] = {}

    def __getitem__(self, name: str) -> Any:
        return self._values[name.lower()][1]

    def __setitem__(self, name: str, value: Any) -> None:
        self._values[name.lower()] = (name, value)

    def __delitem__(self, name: str) -> None:
        del self._values[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._values.values())

    def __len__(self) -> int:
        return len(self._values)


@dataclass
class ScriptResult:
    """Outcome of executing one script block.

    Attributes:
        success: Whether the script ran to completion
        output: The returned value as text ("" on failure or without return)
        error: Failure message
        error_kind: AUTHORING for script mistakes, INTERNAL for engine defects
        diagnostics: Characters the lexer skipped
    """

    success: bool
    output: str = ""
    error: str | None = None
    error_kind: ErrorKind | None = None
    diagnostics: list[LexicalAnomaly] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "diagnostics": [d.message for d in self.diagnostics],
        }


class Evaluator:
    """Executes scripts against a context.

    Usage:
        evaluator = Evaluator({"Shipment.Status": "99"})
        result = evaluator.execute('if Shipment.Status = "99" then return "ERR"')
        result.output  # "ERR"
    """

    def __init__(
        self,
        context: Mapping[str, Any] | None = None,
        config: EngineConfig | None = None,
    ):
        self.config = config or EngineConfig()
        self.resolver = ContextResolver(context)
        self.variables = LocalVariables()

    def execute(self, source: str) -> ScriptResult:
        """Execute script source and return its result.

        Never raises: authoring errors and engine defects are both reported
        through the returned ScriptResult.
        """
        self.variables = LocalVariables()
        diagnostics: list[LexicalAnomaly] = []

        try:
            lexer = Lexer(source, strict=self.config.strict_lexing)
            lexer.tokenize()
            diagnostics = lexer.anomalies

            script = parse_script(source)
            logger.debug("Executing script with %d statements", len(script.body))
            outcome = self._run_block(script.body)
        except ScriptError as e:
            logger.debug("Script failed: %s", e)
            return ScriptResult(
                success=False,
                error=str(e),
                error_kind=ErrorKind.AUTHORING,
                diagnostics=diagnostics,
            )
        except Exception as e:
            logger.exception("Internal engine error while executing script")
            return ScriptResult(
                success=False,
                error=f"Internal engine error: {e}",
                error_kind=ErrorKind.INTERNAL,
                diagnostics=diagnostics,
            )

        output = "" if outcome is _CONTINUE else to_string(outcome)
        return ScriptResult(success=True, output=output, diagnostics=diagnostics)

    def evaluate_expression(self, text: str) -> Any:
        """Parse and evaluate a single expression.

        Raises:
            ScriptError: If the expression is malformed or fails to evaluate
        """
        return self.evaluate(parse_expression(text))

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _run_block(self, statements: list[Statement]) -> Any:
        """Run statements in order; stop at the first one that returns."""
        for statement in statements:
            outcome = self._execute_statement(statement)
            if outcome is not _CONTINUE:
                return outcome
        return _CONTINUE

    def _execute_statement(self, statement: Statement) -> Any:
        method = getattr(self, f"_exec_{type(statement).__name__.lower()}", None)
        if method is None:
            raise EvaluationError(f"Unknown statement type: {type(statement).__name__}")
        return method(statement)

    def _exec_returnstatement(self, node: ReturnStatement) -> Any:
        return self.evaluate(node.expression)

    def _exec_dimstatement(self, node: DimStatement) -> Any:
        value = self.evaluate(node.initializer) if node.initializer is not None else ""
        self.variables[node.name] = value
        return _CONTINUE

    def _exec_assignstatement(self, node: AssignStatement) -> Any:
        self.variables[node.name] = self.evaluate(node.expression)
        return _CONTINUE

    def _exec_ifstatement(self, node: IfStatement) -> Any:
        for branch in node.branches:
            if to_bool(self.evaluate(branch.condition)):
                return self._run_block(branch.body)

        if node.else_body is not None:
            return self._run_block(node.else_body)

        return _CONTINUE

    def _exec_forstatement(self, node: ForStatement) -> Any:
        """Run a for-loop; the outcome of the last iteration is the loop's outcome.

        A return inside the body ends that iteration only. If the final
        iteration returned, the script returns that value.
        """
        start = to_number(self.evaluate(node.start))
        end = to_number(self.evaluate(node.end))

        if math.isnan(start) or math.isnan(end):
            raise EvaluationError("For-loop bounds must be numeric", line=node.line)

        if math.isinf(start) or math.isinf(end):
            raise LoopLimitError(
                f"For-loop exceeds the limit of {self.config.max_loop_iterations} iterations",
                line=node.line,
            )

        count = math.floor(end - start) + 1 if end >= start else 0
        if count > self.config.max_loop_iterations:
            raise LoopLimitError(
                f"For-loop of {count} iterations exceeds the limit of "
                f"{self.config.max_loop_iterations}",
                line=node.line,
            )

        outcome = _CONTINUE
        for step in range(count):
            current = start + step
            if isinstance(current, float) and current.is_integer():
                current = int(current)
            self.variables[node.variable] = current
            outcome = self._run_block(node.body)

        return outcome

    def _exec_unknownstatement(self, node: UnknownStatement) -> Any:
        if self.config.strict:
            raise EvaluationError(f"Unrecognized statement '{node.text}'", line=node.line)
        logger.debug("Ignoring unrecognized statement at line %d: %s", node.line, node.text)
        return _CONTINUE

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def evaluate(self, node: ASTNode) -> Any:
        """Evaluate an expression node and return the result."""
        method = getattr(self, f"_eval_{type(node).__name__.lower()}", None)

        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

        return method(node)

    def _eval_stringliteral(self, node: StringLiteral) -> str:
        return node.value

    def _eval_numberliteral(self, node: NumberLiteral) -> int | float:
        return node.value

    def _eval_missing(self, node: Missing) -> None:
        return None

    def _eval_concat(self, node: Concat) -> str:
        return "".join(to_string(self.evaluate(part)) for part in node.parts)

    def _eval_comparison(self, node: Comparison) -> bool:
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)

        if node.operator == "=":
            return loose_equals(left, right)
        if node.operator == "<>":
            return not loose_equals(left, right)
        return compare_numbers(node.operator, left, right)

    def _eval_logical(self, node: Logical) -> bool:
        if node.operator == "and":
            return all(to_bool(self.evaluate(operand)) for operand in node.operands)
        return any(to_bool(self.evaluate(operand)) for operand in node.operands)

    def _eval_not(self, node: Not) -> bool:
        return not to_bool(self.evaluate(node.operand))

    def _eval_binaryop(self, node: BinaryOp) -> int | float:
        """Evaluate an arithmetic operation."""
        left = self._numeric(self.evaluate(node.left), node.operator)
        right = self._numeric(self.evaluate(node.right), node.operator)

        if node.operator == "+":
            return left + right
        if node.operator == "-":
            return left - right
        if node.operator == "*":
            return left * right
        if node.operator == "/":
            if right == 0:
                raise EvaluationError("Division by zero")
            return left / right
        if node.operator == "mod":
            if right == 0:
                raise EvaluationError("Division by zero")
            remainder = math.fmod(left, right)
            if isinstance(left, int) and isinstance(right, int):
                return int(remainder)
            return remainder

        raise EvaluationError(f"Unknown operator: {node.operator}")

    def _eval_unaryop(self, node: UnaryOp) -> int | float:
        operand = self._numeric(self.evaluate(node.operand), node.operator)
        return -operand if node.operator == "-" else operand

    def _eval_functioncall(self, node: FunctionCall) -> Any:
        """Evaluate a built-in function call."""
        func_name = node.name

        if not FunctionRegistry.is_registered(func_name):
            raise EvaluationError(f"Unknown function: {func_name}")

        func_def = FunctionRegistry.get(func_name)
        args = [self.evaluate(arg) for arg in node.arguments]

        try:
            return func_def.implementation(*args)
        except Exception as e:
            raise EvaluationError(f"Error calling {func_name}: {e}") from e

    def _eval_membercall(self, node: MemberCall) -> Any:
        """Evaluate path(args): an attribute-bag lookup, a context callable,
        or a method on the value at the path's prefix."""
        args = [self.evaluate(arg) for arg in node.arguments]
        target = self._resolve_reference(node.path)

        if isinstance(target, LookupFunction):
            target = target()

        if isinstance(target, Mapping):
            if len(args) != 1:
                raise EvaluationError(
                    f"Lookup on '{node.path}' takes exactly one argument, got {len(args)}"
                )
            _, value = lookup_key(target, to_string(args[0]))
            return value

        if callable(target):
            try:
                return target(*args)
            except Exception as e:
                raise EvaluationError(f"Error calling {node.path}: {e}") from e

        owner_path, _, method_name = node.path.rpartition(".")
        if FunctionRegistry.is_method(method_name):
            owner = self._resolve_reference(owner_path)
            method = FunctionRegistry.get_method(method_name)
            try:
                return method.implementation(owner, *args)
            except Exception as e:
                raise EvaluationError(f"Error calling {method_name}: {e}") from e

        if target is None:
            logger.debug("Call target %s not found in context", node.path)
            return None

        raise EvaluationError(f"'{node.path}' is not callable")

    def _eval_propertyaccess(self, node: PropertyAccess) -> Any:
        return self.resolver.resolve(node.path, self.variables)

    def _eval_name(self, node: Name) -> Any:
        """Evaluate a bare identifier: local variable, then top-level context
        key, then the identifier's own text."""
        if node.name in self.variables:
            return self.variables[node.name]

        if self.resolver.has(node.name):
            return self.resolver.resolve(node.name)

        if self.config.strict:
            raise EvaluationError(f"Unresolved name '{node.name}'")
        return node.name

    def _eval_verbatim(self, node: Verbatim) -> str:
        if self.config.strict:
            raise EvaluationError(f"Cannot evaluate expression '{node.text}'")
        return node.text

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _resolve_reference(self, path: str) -> Any:
        """Resolve a name or dotted path; bare names check locals first."""
        if "." not in path and path in self.variables:
            return self.variables[path]
        return self.resolver.resolve(path, self.variables)

    def _numeric(self, value: Any, operator: str) -> int | float:
        if value is None:
            return 0
        number = to_number(value)
        if isinstance(number, float) and math.isnan(number):
            raise EvaluationError(
                f"Cannot apply '{operator}' to non-numeric value '{to_string(value)}'"
            )
        return number


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def execute_script(
    source: str,
    context: Mapping[str, Any] | None = None,
    config: EngineConfig | None = None,
) -> ScriptResult:
    """Execute script source against a context.

    This is the main entry point for running a single script.

    Example:
        result = execute_script('return "Order " & Shipment.OrderNo',
                                {"Shipment": {"OrderNo": "12345"}})
        # result.output == "Order 12345"
    """
    return Evaluator(context, config).execute(source)
