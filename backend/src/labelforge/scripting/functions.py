"""Function registry for the label-scripting language.

Functions are callable from scripts (e.g., `left(Shipment.OrderNo, 3)`,
`format(now(), "yyyy-MM-dd")`). Methods are called on a value with dot
syntax (e.g., `Shipment.cr_time_db.ToString("dd/MM/yyyy")`) and receive
that value as their first argument.

Names are case-insensitive: definitions are stored under their lowercase
name and looked up the same way.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class FunctionCategory(Enum):
    """Groups shown by `labelforge functions` and the /api/functions export."""

    STRING = "string"
    CONVERSION = "conversion"
    PREDICATE = "predicate"
    DATE = "date"
    NUMBER = "number"
    METHOD = "method"  # Called on a value: value.Name(args)


@dataclass
class FunctionParameter:
    """One positional parameter of a function or method.

    Attributes:
        name: Parameter name
        type: Documented type ("string", "number", "date", "any", ...)
        description: Shown in the function listing
        required: False when scripts may omit it (f(a, , c) or a short call)
        default: Value the implementation falls back to when omitted
    """

    name: str
    type: str
    description: str
    required: bool = True
    default: Any = None


@dataclass
class FunctionDefinition:
    """Complete definition of a script function or method.

    Attributes:
        name: Function name as used in scripts
        description: Shown in the function listing
        category: Listing group; METHOD definitions go to the method table
        parameters: Positional parameters (a method's receiver is not listed)
        return_type: Documented result type
        examples: Script snippets for the listing
        implementation: The Python callable
    """

    name: str
    description: str
    category: FunctionCategory
    parameters: list[FunctionParameter]
    return_type: str
    implementation: Callable[..., Any]
    examples: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Export for the functions documentation endpoint."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "required": p.required,
                }
                for p in self.parameters
            ],
            "returnType": self.return_type,
            "examples": self.examples,
        }


class FunctionRegistry:
    """Process-wide tables of script functions and value methods.

    Example:
        FunctionRegistry.register(FunctionDefinition(
            name="ucase",
            description="Converts a string to uppercase",
            ...
        ))

        FunctionRegistry.call("UCase", "malmö")  # "MALMÖ"
        FunctionRegistry.get_method("toupper").implementation("se")  # "SE"
    """

    _functions: dict[str, FunctionDefinition] = {}
    _methods: dict[str, FunctionDefinition] = {}

    @classmethod
    def register(cls, func_def: FunctionDefinition) -> None:
        """Add a definition, replacing any with the same name.

        Definitions in the METHOD category go to the method table.
        """
        table = cls._methods if func_def.category == FunctionCategory.METHOD else cls._functions
        table[func_def.name.lower()] = func_def

    @classmethod
    def get(cls, name: str) -> FunctionDefinition:
        """Look up a function by name (any case).

        Raises:
            ValueError: If no function has that name
        """
        try:
            return cls._functions[name.lower()]
        except KeyError:
            raise ValueError(f"Unknown function: {name}") from None

    @classmethod
    def get_method(cls, name: str) -> FunctionDefinition:
        """Look up a method by name (any case).

        Raises:
            ValueError: If no method has that name
        """
        try:
            return cls._methods[name.lower()]
        except KeyError:
            raise ValueError(f"Unknown method: {name}") from None

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name.lower() in cls._functions

    @classmethod
    def is_method(cls, name: str) -> bool:
        return name.lower() in cls._methods

    @classmethod
    def call(cls, name: str, *args: Any) -> Any:
        """Invoke a function with already-evaluated arguments."""
        return cls.get(name).implementation(*args)

    @classmethod
    def list_all(cls) -> list[FunctionDefinition]:
        """Functions first, then methods, each in registration order."""
        return [*cls._functions.values(), *cls._methods.values()]

    @classmethod
    def list_by_category(cls, category: FunctionCategory) -> list[FunctionDefinition]:
        return [d for d in cls.list_all() if d.category == category]

    @classmethod
    def export_documentation(cls) -> dict[str, Any]:
        """Serializable view of both tables for the /api/functions endpoint.

        Returns:
            {"functions": {name: doc}, "methods": {name: doc},
             "byCategory": {category: [doc, ...]}}
        """
        grouped: dict[str, list[dict[str, Any]]] = {}
        for definition in cls.list_all():
            grouped.setdefault(definition.category.value, []).append(definition.to_dict())

        return {
            "functions": {key: d.to_dict() for key, d in cls._functions.items()},
            "methods": {key: d.to_dict() for key, d in cls._methods.items()},
            "byCategory": grouped,
        }

    @classmethod
    def clear(cls) -> None:
        """Empty both tables; tests call this around register_all_builtins()."""
        cls._functions.clear()
        cls._methods.clear()
