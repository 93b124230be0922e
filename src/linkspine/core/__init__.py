"""linkspine core -- errors, logging, settings and store protocols.

Manifesto:
    The relationship engines need the same foundations every storage
    library needs: a typed error hierarchy, structured logging, validated
    settings and a protocol for the storage they talk to. ``linkspine.core``
    holds exactly those and nothing relational.

Architecture::

    errors.py      Structured error hierarchy (LinkSpineError, StoreError, RegistryError)
    logging.py     structlog configuration + context helpers
    settings.py    LinkSpineSettings (pydantic-settings)
    protocols.py   DocumentStore protocol (async primitives)

Tags:
    linkspine, core, foundation

Doc-Types:
    package-overview, module-index
"""

from linkspine.core.errors import (
    CascadeCycleError,
    ConfigError,
    ConstraintViolation,
    DocumentNotFoundError,
    ErrorCategory,
    ErrorContext,
    InvalidLinkError,
    LinkSpineError,
    RegistryAlreadyInitialized,
    RegistryError,
    RegistryUninitialized,
    StoreConnectionError,
    StoreError,
    is_retryable,
)
from linkspine.core.logging import LogContext, configure_logging, get_logger
from linkspine.core.protocols import Document, DocumentStore, Filter
from linkspine.core.settings import LinkSpineSettings, get_settings, reset_settings

__all__ = [
    # Errors
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
    # Logging
    "configure_logging",
    "get_logger",
    "LogContext",
    # Protocols
    "Document",
    "DocumentStore",
    "Filter",
    # Settings
    "LinkSpineSettings",
    "get_settings",
    "reset_settings",
]
