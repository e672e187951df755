"""Error types for the label-scripting engine.

Every exception defined here is an *authoring* error: something wrong with
the script a template author wrote. Any other exception escaping the engine
is treated as an internal defect and reported differently.
"""

from enum import Enum


class ErrorKind(Enum):
    """Classification of a failed script execution."""

    AUTHORING = "authoring"
    INTERNAL = "internal"


class ScriptError(Exception):
    """Base class for errors caused by script content."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.line = line
        self.column = column
        if line is not None and column is not None:
            message = f"{message} at line {line}, column {column}"
        elif line is not None:
            message = f"{message} at line {line}"
        super().__init__(message)


class LexerError(ScriptError):
    """Unrecognized input while tokenizing in strict mode."""


class ParseError(ScriptError):
    """Malformed statement or expression."""


class EvaluationError(ScriptError):
    """Error during script evaluation."""


class LoopLimitError(EvaluationError):
    """A for-loop would exceed the configured iteration cap."""
