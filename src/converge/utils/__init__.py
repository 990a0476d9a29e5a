"""Utility modules for logging, AWS client management, and errors."""

from converge.utils.aws_client import AWSClientManager
from converge.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    ReconcileError,
    ConfigurationError,
    UnresolvedReferenceError,
    AmbiguousResultError,
    MissingSharedResourceError,
    ImmutableFieldError,
    ProviderCallError,
    LifecycleError,
    StateError,
    IdentifierAlreadySetError,
    DependencyError,
    ErrorHandler,
    error_handler
)
from converge.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # AWS Client
    'AWSClientManager',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ReconcileError',
    'ConfigurationError',
    'UnresolvedReferenceError',
    'AmbiguousResultError',
    'MissingSharedResourceError',
    'ImmutableFieldError',
    'ProviderCallError',
    'LifecycleError',
    'StateError',
    'IdentifierAlreadySetError',
    'DependencyError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
