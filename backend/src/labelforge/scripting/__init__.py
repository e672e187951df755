"""Label-scripting engine.

This module provides:
- Lexer: Tokenizes script source
- ScriptParser: Produces a statement/expression AST from script source
- Evaluator: Executes scripts against an execution context
- ContextResolver: Resolves dotted paths against the context
- FunctionRegistry: Registry for built-in functions and methods
"""

from labelforge.scripting.context import (
    ContextResolver,
    ContextValue,
    LookupFunction,
    freeze_context,
)
from labelforge.scripting.errors import (
    ErrorKind,
    EvaluationError,
    LexerError,
    LoopLimitError,
    ParseError,
    ScriptError,
)
from labelforge.scripting.evaluator import (
    Evaluator,
    LocalVariables,
    ScriptResult,
    execute_script,
)
from labelforge.scripting.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from labelforge.scripting.lexer import Lexer, LexicalAnomaly, Token, TokenType, tokenize
from labelforge.scripting.parser import (
    ASTNode,
    Script,
    ScriptParser,
    Statement,
    parse_expression,
    parse_script,
)

__all__ = [
    # Context
    "ContextResolver",
    "ContextValue",
    "LookupFunction",
    "freeze_context",
    # Errors
    "ErrorKind",
    "EvaluationError",
    "LexerError",
    "LoopLimitError",
    "ParseError",
    "ScriptError",
    # Evaluator
    "Evaluator",
    "LocalVariables",
    "ScriptResult",
    "execute_script",
    # Functions
    "FunctionCategory",
    "FunctionDefinition",
    "FunctionParameter",
    "FunctionRegistry",
    # Lexer
    "Lexer",
    "LexicalAnomaly",
    "Token",
    "TokenType",
    "tokenize",
    # Parser
    "ASTNode",
    "Script",
    "ScriptParser",
    "Statement",
    "parse_expression",
    "parse_script",
]
