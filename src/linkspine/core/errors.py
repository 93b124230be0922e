"""
Structured error types for linkspine.

Provides a small hierarchy of typed errors with metadata for retry decisions,
error categorization and root cause analysis through error chaining.

The relationship engine talks to an opaque document store, so most failures
it can observe are store failures. Instead of leaking driver exceptions,
every adapter wraps them in StoreError and the engines let that error travel
to the caller unchanged. When a cascade fails half way, the engine enriches
the same error object with context describing how far it got.

Manifesto:
    - **Typed Error Hierarchy:** Store, registry, constraint and config errors
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry metadata for logging and alerting
    - **Error Chaining:** Preserve original driver exceptions as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      LinkSpineError                              │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  StoreError            RegistryError          ConstraintViolation│
        │  (STORE)               (REGISTRY)             (CONSTRAINT)       │
        │       │                     │                                    │
        │  StoreConnectionError  RegistryUninitialized  ConfigError        │
        │  DocumentNotFoundError RegistryAlreadyInit.   (CONFIG)           │
        │                        InvalidLinkError                          │
        │                        CascadeCycleError                         │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Wrapping a driver error:

    >>> try:
    ...     raise ConnectionError("server selection timeout")
    ... except ConnectionError as e:
    ...     error = StoreConnectionError("MongoDB unreachable", cause=e)
    >>> error.retryable
    True

    Adding cascade context fluently:

    >>> error = StoreError("delete_one failed")
    >>> error.with_context(cascade_root="users/1", state="indeterminate")
    StoreError('delete_one failed', category=STORE)
    >>> error.context.metadata["state"]
    'indeterminate'

Guardrails:
    ❌ DON'T: Let ``pymongo.errors.PyMongoError`` escape a store adapter
    ✅ DO: Raise StoreError(..., cause=e)

    ❌ DON'T: Catch StoreError inside a traversal to keep going
    ✅ DO: Let it propagate; the traversal is fail-stop

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    linkspine, referential-integrity

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        STORE: Document store primitive failures (network, driver, not found)
        REGISTRY: Relationship registry misuse or invalid declarations
        CONSTRAINT: Unique / unique-if-same violations on save
        CONFIG: Missing URL, unknown store kind, missing driver
        INTERNAL: Bugs, unexpected state
    """

    STORE = "STORE"
    REGISTRY = "REGISTRY"
    CONSTRAINT = "CONSTRAINT"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover what the relationship engine knows at failure time
    (the operation, the collection and the record identity). Anything else
    goes into ``metadata``. ``to_dict()`` serializes all non-None fields.

    Examples:
        >>> ctx = ErrorContext(operation="cascade_delete", collection="users")
        >>> ctx.to_dict()
        {'operation': 'cascade_delete', 'collection': 'users'}
    """

    operation: str | None = None
    collection: str | None = None
    document_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "collection", "document_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class LinkSpineError(Exception):
    """
    Base exception for all linkspine errors.

    All LinkSpineError instances carry:
    - **category:** ErrorCategory enum for classification and routing
    - **retryable:** Boolean indicating if the operation can be retried
    - **context:** ErrorContext with structured metadata
    - **cause:** Optional underlying exception for chaining

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> error = LinkSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> LinkSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreError("find failed").with_context(
                collection="posts",
                operation="find_many",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(LinkSpineError):
    """
    A document store primitive failed.

    Raised by store adapters for any failing ``find_one``, ``find_many``,
    ``update_many``, ``delete_one`` or save-path call. The traversal engines
    never catch it: the first failing primitive aborts the whole recursive
    operation and this error reaches the caller.

    After a failed cascade delete the error carries
    ``context.metadata["state"] == "indeterminate"`` together with the
    cascade root and the progress made before the failure. Nothing is
    rolled back.
    """

    default_category = ErrorCategory.STORE
    default_retryable = False

    @property
    def indeterminate(self) -> bool:
        """True when a cascade was aborted after it started mutating the store."""
        return self.context.metadata.get("state") == "indeterminate"


class StoreConnectionError(StoreError):
    """Store unreachable (timeouts, server selection, auto-reconnect)."""

    default_retryable = True


class DocumentNotFoundError(StoreError):
    """A record that had to exist was not found."""


# =============================================================================
# REGISTRY ERRORS
# =============================================================================


class RegistryError(LinkSpineError):
    """
    Relationship registry misuse or an invalid link declaration.

    These are programming errors: they are never retryable and should
    surface at startup, not in the middle of a request.
    """

    default_category = ErrorCategory.REGISTRY
    default_retryable = False


class RegistryUninitialized(RegistryError):
    """A lookup ran before the process registry was installed."""


class RegistryAlreadyInitialized(RegistryError):
    """The process registry was installed a second time."""


class InvalidLinkError(RegistryError):
    """A link declaration is malformed (unknown on_delete value, missing target)."""


class CascadeCycleError(RegistryError):
    """
    A cascade reached a record whose own cascade is still in progress.

    Raised by the cascade engine before touching that record a second
    time. Work already committed for the outer records is not undone.
    """


# =============================================================================
# SAVE PATH / CONFIGURATION
# =============================================================================


class ConstraintViolation(LinkSpineError):
    """A unique or unique-if-same field would be duplicated by a save."""

    default_category = ErrorCategory.CONSTRAINT
    default_retryable = False


class ConfigError(LinkSpineError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable. Non-linkspine errors are not."""
    if isinstance(error, LinkSpineError):
        return error.retryable
    return False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "LinkSpineError",
    "StoreError",
    "StoreConnectionError",
    "DocumentNotFoundError",
    "RegistryError",
    "RegistryUninitialized",
    "RegistryAlreadyInitialized",
    "InvalidLinkError",
    "CascadeCycleError",
    "ConstraintViolation",
    "ConfigError",
    "is_retryable",
]
