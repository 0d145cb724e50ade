"""quillmark error hierarchy.

Provides structured errors for transcoding operations:
- QuillmarkError: Base exception for all quillmark errors
- SchemaViolation: A node or mark violates its registered type descriptor
- MalformedPayload: A structured block payload fails decoding or shape checks
- UnterminatedConstruct: An opening marker has no matching closer
- ConfigurationError: The type registry is incomplete or inconsistent

Each error type includes:
- Descriptive message
- Recoverable flag (whether the surrounding operation can continue)
- Structured context for host surfaces via to_dict()

Parse and serialize never let these escape for malformed *input text*:
UnterminatedConstruct is caught by the scanners (the construct degrades
to literal text) and MalformedPayload is reported through Result on the
owning node. SchemaViolation is the one that surfaces to callers building
trees by hand.

Usage:
    from quillmark.errors import MalformedPayload, Result

    def load(data: str) -> Result[QuizPayload]:
        try:
            return Result.ok(decode_quiz(data))
        except MalformedPayload as e:
            return Result.fail(e)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# =============================================================================
# Result Type for Explicit Success/Failure
# =============================================================================


@dataclass
class Result(Generic[T]):
    """Structured result that makes success/failure explicit.

    Used where an error must stay attached to one node (a quiz whose JSON
    is broken) rather than aborting the whole document.

    Usage:
        result = load_quiz(node)
        if result.success:
            render(result.value)
        else:
            show_error(result.error.message)
    """

    success: bool
    value: T | None = None
    error: "QuillmarkError | None" = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: "QuillmarkError") -> "Result[T]":
        """Create a failed result."""
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Get value or raise the error.

        Raises:
            QuillmarkError: If this is a failed result.
        """
        if self.success:
            return self.value  # type: ignore
        if self.error:
            raise self.error
        raise QuillmarkError("Result failed with no error")

    def unwrap_or(self, default: T) -> T:
        """Get value or return default."""
        if self.success:
            return self.value  # type: ignore
        return default


# =============================================================================
# Error Base Class
# =============================================================================


class QuillmarkError(Exception):
    """Base exception for all quillmark errors.

    Attributes:
        message: Human-readable error description
        recoverable: Whether the surrounding operation can continue
        context: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        *,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to structured dictionary for host surfaces."""
        return {
            "type": _snake_case(type(self).__name__),
            "message": self.message,
            "recoverable": self.recoverable,
            **{k: v for k, v in self.context.items() if v is not None},
        }


# =============================================================================
# Transcoding Errors
# =============================================================================


class SchemaViolation(QuillmarkError):
    """A node or mark violates its registered type descriptor.

    Raised for content that does not fit a node's content model, and for
    unusable attribute values when strict schema checking is enabled.

    Example:
        raise SchemaViolation(
            "width must be an integer",
            node_type="image",
            attribute="width",
            value="wide",
        )
    """

    def __init__(
        self,
        message: str,
        *,
        node_type: str | None = None,
        attribute: str | None = None,
        constraint: str | None = None,
        value: Any = None,
    ) -> None:
        context: dict[str, Any] = {
            "node_type": node_type,
            "attribute": attribute,
            "constraint": constraint,
        }
        if value is not None:
            context["value"] = _truncate(repr(value), 100)
        super().__init__(message, recoverable=False, context=context)
        self.node_type = node_type
        self.attribute = attribute
        self.constraint = constraint


class MalformedPayload(QuillmarkError):
    """A structured payload (quiz, mind map) could not be decoded.

    Recoverable: the owning node shows an error state and the rest of the
    document is unaffected.
    """

    def __init__(
        self,
        message: str,
        *,
        payload_type: str | None = None,
        reason: str | None = None,
        excerpt: str | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=True,
            context={
                "payload_type": payload_type,
                "reason": reason,
                "excerpt": _truncate(excerpt, 80),
            },
        )
        self.payload_type = payload_type
        self.reason = reason


class UnterminatedConstruct(QuillmarkError):
    """An opening marker has no matching closer.

    Raised by rule matchers and caught by the scanners, which then keep the
    marker as literal text.
    """

    def __init__(
        self,
        construct: str,
        *,
        line: int | None = None,
        offset: int | None = None,
    ) -> None:
        where = f" at line {line + 1}" if line is not None else ""
        super().__init__(
            f"Unterminated {construct}{where}",
            recoverable=True,
            context={"construct": construct, "line": line, "offset": offset},
        )
        self.construct = construct
        self.line = line


class ConfigurationError(QuillmarkError):
    """The type registry or settings are inconsistent."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        expected: str | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=False,
            context={"setting": setting, "expected": expected},
        )


# =============================================================================
# Helpers
# =============================================================================


def _snake_case(name: str) -> str:
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i:
            out.append("_")
        out.append(ch.lower())
    return "".join(out)


def _truncate(value: str | None, max_len: int) -> str | None:
    """Truncate a string value for safe logging."""
    if value is None:
        return None
    if len(value) <= max_len:
        return value
    return value[:max_len] + "..."
