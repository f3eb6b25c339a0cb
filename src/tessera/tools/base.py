"""Base tool interface."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class ToolResult:
    """What a tool hands back to the model."""

    success: bool
    output: str
    error: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, output="", error=error)


# bool is an int subclass, so integers and numbers exclude it explicitly
JSON_TYPE_CHECKS: dict[str, tuple[str, Callable[[Any], bool]]] = {
    "string": ("a string", lambda v: isinstance(v, str)),
    "integer": ("an integer", lambda v: isinstance(v, int) and not isinstance(v, bool)),
    "number": (
        "a number",
        lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    ),
    "boolean": ("a boolean", lambda v: isinstance(v, bool)),
    "object": ("an object", lambda v: isinstance(v, dict)),
    "array": ("an array", lambda v: isinstance(v, list)),
}


class Tool(ABC):
    """A function the model may call during a turn.

    Subclasses describe themselves with a name, a description and a JSON
    Schema for their arguments; the registry validates model-supplied
    arguments against that schema before calling ``execute``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description for LLM."""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        ...

    def get_schema(self) -> dict[str, Any]:
        """Function-calling schema in the chat completions format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def validate_args(self, args: dict[str, Any]) -> tuple[bool, str | None]:
        """Check ``args`` against the parameter schema.

        Returns:
            ``(True, None)`` when valid, else ``(False, message)`` naming
            the first problem: a missing required argument, an argument
            the schema does not declare, or a value of the wrong type.
        """
        properties = self.parameters.get("properties", {})

        missing = [key for key in self.parameters.get("required", []) if key not in args]
        if missing:
            return False, f"Missing required argument: {missing[0]}"

        for key, value in args.items():
            if key not in properties:
                return False, f"Unexpected argument: {key}"
            check = JSON_TYPE_CHECKS.get(properties[key].get("type", ""))
            if check is not None:
                label, accepts = check
                if not accepts(value):
                    return False, f"Argument '{key}' must be {label}"

        return True, None
