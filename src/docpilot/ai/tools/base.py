"""Base classes for document tools.

Every tool exposed to the language model runs through :meth:`BaseTool.run`,
which validates the arguments, executes against the live document, times the
call and converts expected failures into a failed :class:`ToolResult`.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from ...documents.model import Document
from .errors import ErrorCode, InvalidParameterError, ToolError


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolResult:
    """Outcome of one tool call.

    ``data`` is the tool payload on success and ``error`` the reported
    failure otherwise. ``duration_ms`` is wall time spent in :meth:`BaseTool.run`.
    """

    success: bool
    data: dict[str, Any] | None = None
    error: ToolError | None = None
    duration_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def error_message(self) -> str:
        if self.error is None:
            return "" if self.success else "Unknown error"
        return self.error.message

    def to_dict(self) -> dict[str, Any]:
        """JSON payload returned to the model for this call."""
        if self.success:
            payload = dict(self.data or {})
        elif self.error is not None:
            payload = self.error.to_dict()
        else:
            payload = {"error": ErrorCode.INTERNAL_ERROR, "message": "Unknown error"}
        if self.metadata:
            payload["_metadata"] = dict(self.metadata)
        return payload


class BaseTool(ABC):
    """A document tool the model can call by ``name``.

    Subclasses set ``name``, ``description`` and the JSON-schema
    ``parameters`` and implement :meth:`execute`; :meth:`validate` may be
    extended with checks the schema cannot express.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    parameters: ClassVar[dict[str, Any]] = {"type": "object", "properties": {}}

    def run(
        self,
        document: Document,
        params: Mapping[str, Any] | None = None,
    ) -> ToolResult:
        """Validate ``params`` and execute against ``document``.

        Never raises: :class:`ToolError` becomes a failed result as-is, and any
        other exception is logged and reported as an ``internal_error``.
        """
        arguments = dict(params or {})
        started = time.perf_counter()
        try:
            self.validate(arguments)
            result = ToolResult(success=True, data=self.execute(document, arguments))
        except ToolError as exc:
            LOGGER.warning("Tool %s failed: %s", self.name, exc)
            result = ToolResult(success=False, error=exc)
        except Exception as exc:
            LOGGER.exception("Tool %s raised an unexpected error", self.name)
            internal = ToolError(error_code=ErrorCode.INTERNAL_ERROR, message=f"Internal error: {exc}")
            result = ToolResult(success=False, error=internal)
        result.duration_ms = (time.perf_counter() - started) * 1000.0

        LOGGER.debug("Tool %s success=%s in %.3f ms", self.name, result.success, result.duration_ms)
        return result

    @abstractmethod
    def execute(self, document: Document, params: dict[str, Any]) -> dict[str, Any]:
        """Run the tool on already-validated ``params``; raise :class:`ToolError` on expected failures."""

    def validate(self, params: dict[str, Any]) -> None:
        """Validate ``params`` against the tool's JSON schema.

        Override to add custom checks; call ``super().validate`` to keep the
        schema check.
        """
        validator = Draft7Validator(self.parameters)
        error = best_match(validator.iter_errors(params))
        if error is None:
            return
        parameter = ".".join(str(part) for part in error.path) or None
        raise InvalidParameterError(
            message=f"Invalid arguments for {self.name}: {error.message}",
            parameter=parameter,
            value=error.instance if parameter else None,
            expected=str(error.validator),
        )

    def spec(self) -> dict[str, Any]:
        """Return the OpenAI function-calling definition of this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


__all__ = ["ToolResult", "BaseTool"]
