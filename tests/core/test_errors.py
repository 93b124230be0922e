"""Tests for linkspine.core.errors module."""

import pytest

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


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.operation is None
        assert ctx.collection is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        """to_dict includes only non-None fields, metadata flattened."""
        ctx = ErrorContext(operation="delete_one", collection="posts", metadata={"state": "unchanged"})
        assert ctx.to_dict() == {
            "operation": "delete_one",
            "collection": "posts",
            "state": "unchanged",
        }


class TestLinkSpineError:
    def test_defaults(self):
        error = LinkSpineError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert str(error) == "boom"

    def test_with_context_is_fluent(self):
        """Known fields are set directly, anything else lands in metadata."""
        error = StoreError("find failed").with_context(
            operation="find_many", collection="posts", cascade_root="users/1"
        )
        assert error.context.operation == "find_many"
        assert error.context.collection == "posts"
        assert error.context.metadata == {"cascade_root": "users/1"}

    def test_cause_is_chained(self):
        cause = ValueError("bad id")
        error = StoreError("lookup failed", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "bad id"

    def test_to_dict(self):
        error = ConstraintViolation("taken").with_context(collection="users")
        assert error.to_dict() == {
            "error_type": "ConstraintViolation",
            "message": "taken",
            "category": "CONSTRAINT",
            "retryable": False,
            "context": {"collection": "users"},
        }

    def test_repr(self):
        assert repr(ConfigError("no url")) == "ConfigError('no url', category=CONFIG)"


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls,parent,category",
        [
            (StoreConnectionError, StoreError, ErrorCategory.STORE),
            (DocumentNotFoundError, StoreError, ErrorCategory.STORE),
            (RegistryUninitialized, RegistryError, ErrorCategory.REGISTRY),
            (RegistryAlreadyInitialized, RegistryError, ErrorCategory.REGISTRY),
            (InvalidLinkError, RegistryError, ErrorCategory.REGISTRY),
            (CascadeCycleError, RegistryError, ErrorCategory.REGISTRY),
        ],
    )
    def test_subclasses(self, cls, parent, category):
        error = cls("x")
        assert isinstance(error, parent)
        assert isinstance(error, LinkSpineError)
        assert error.category == category

    def test_indeterminate_flag(self):
        error = StoreError("x")
        assert not error.indeterminate
        error.with_context(state="indeterminate")
        assert error.indeterminate


class TestIsRetryable:
    def test_connection_errors_retry(self):
        assert is_retryable(StoreConnectionError("timeout"))

    def test_store_errors_do_not(self):
        assert not is_retryable(StoreError("bad filter"))

    def test_override(self):
        assert is_retryable(StoreError("x", retryable=True))

    def test_foreign_exceptions(self):
        assert not is_retryable(RuntimeError("x"))
