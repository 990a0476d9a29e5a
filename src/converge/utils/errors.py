"""Error handling framework for reconciliation operations."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass, asdict
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, PartialCredentialsError
from converge.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during reconciliation."""
    CONFIGURATION = "configuration"
    AMBIGUOUS = "ambiguous"
    MISSING_SHARED = "missing_shared"
    IMMUTABLE_FIELD = "immutable_field"
    PROVIDER = "provider"
    LIFECYCLE = "lifecycle"
    STATE = "state"
    DEPENDENCY = "dependency"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Run cannot continue
    ERROR = "error"  # Resource failed but independent resources can continue
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    operation: Optional[str] = None
    field: Optional[str] = None
    aws_operation: Optional[str] = None
    error_code: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class ReconcileError(Exception):
    """Base exception for reconciliation errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize reconciliation error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")
        if self.context.field:
            lines.append(f"   Field: {self.context.field}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'type': type(self).__name__,
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': asdict(self.context),
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(ReconcileError):
    """Desired state is self-contradictory or incomplete."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class UnresolvedReferenceError(ConfigurationError):
    """A reference to a shared resource has no identifier to link to."""


class AmbiguousResultError(ReconcileError):
    """A remote query matched more than one object."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.AMBIGUOUS,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class MissingSharedResourceError(ReconcileError):
    """A resource declared as shared does not exist remotely."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.MISSING_SHARED,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ImmutableFieldError(ReconcileError):
    """Attempted change to a field that cannot be modified in place."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', None) or ErrorContext()
        context.field = field or context.field
        super().__init__(
            message,
            category=ErrorCategory.IMMUTABLE_FIELD,
            severity=ErrorSeverity.ERROR,
            context=context,
            **kwargs
        )
        self.field = context.field


class ProviderCallError(ReconcileError):
    """A remote provider call failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=kwargs.pop('category', ErrorCategory.PROVIDER),
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class LifecycleError(ReconcileError):
    """The resource's lifecycle policy forbids the required change."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.LIFECYCLE,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class StateError(ReconcileError):
    """Error related to engine-held state."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class IdentifierAlreadySetError(StateError):
    """A provider identifier was reassigned after being set."""


class DependencyError(ReconcileError):
    """Error related to resource dependencies."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.DEPENDENCY,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ErrorHandler:
    """Converts provider exceptions into ProviderCallError."""

    # Mapping of AWS error codes to error categories and suggestions
    AWS_ERROR_MAPPING = {
        'UnauthorizedOperation': {
            'category': ErrorCategory.PERMISSION,
            'suggestions': [
                'Add the required EC2 permission for this operation',
                'Verify you are operating in the correct AWS region'
            ]
        },
        'AccessDenied': {
            'category': ErrorCategory.PERMISSION,
            'suggestions': [
                'Check IAM policies attached to your user/role',
                'Review service control policies (SCPs) if using AWS Organizations'
            ]
        },
        'AuthFailure': {
            'category': ErrorCategory.CREDENTIAL,
            'suggestions': [
                'Verify credentials using: aws sts get-caller-identity',
                'Update credentials if they have expired'
            ]
        },
        'InternetGatewayLimitExceeded': {
            'category': ErrorCategory.PROVIDER,
            'suggestions': [
                'Request a limit increase through AWS Support',
                'Delete unused internet gateways'
            ]
        },
        'VpcLimitExceeded': {
            'category': ErrorCategory.PROVIDER,
            'suggestions': [
                'Request a limit increase through AWS Support',
                'Delete unused VPCs'
            ]
        },
        'Resource.AlreadyAssociated': {
            'category': ErrorCategory.PROVIDER,
            'suggestions': [
                'The gateway or VPC already has an attachment; detach it out of band first'
            ]
        },
        'InvalidParameterValue': {
            'category': ErrorCategory.CONFIGURATION,
            'suggestions': [
                'Check the declared values against the EC2 API constraints'
            ]
        },
    }

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def wrap_provider_error(
        self,
        operation: str,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> ReconcileError:
        """Wrap a provider exception with the operation that was attempted.

        Args:
            operation: Description of the attempted call (e.g. "creating InternetGateway")
            error: The exception raised by the provider
            context: Additional context about where the error occurred

        Returns:
            ProviderCallError, or the error unchanged if it is already a ReconcileError
        """
        if isinstance(error, ReconcileError):
            return error

        context = context or ErrorContext()
        context.operation = context.operation or operation

        if isinstance(error, ClientError):
            error_code = error.response.get('Error', {}).get('Code', 'Unknown')
            error_message = error.response.get('Error', {}).get('Message', str(error))
            context.error_code = error_code
            context.aws_operation = getattr(error, 'operation_name', None)
            context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')

            error_info = self.AWS_ERROR_MAPPING.get(error_code, {})
            return ProviderCallError(
                f"error {operation}: {error_code}: {error_message}",
                category=error_info.get('category', ErrorCategory.PROVIDER),
                context=context,
                cause=error,
                suggestions=list(error_info.get('suggestions', []))
            )

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return ProviderCallError(
                f"error {operation}: {error}",
                category=ErrorCategory.CREDENTIAL,
                context=context,
                cause=error,
                suggestions=['Configure AWS credentials using: aws configure']
            )

        if isinstance(error, BotoCoreError):
            return ProviderCallError(
                f"error {operation}: {error}",
                context=context,
                cause=error
            )

        return ProviderCallError(
            f"error {operation}: {error}",
            category=ErrorCategory.UNKNOWN,
            context=context,
            cause=error
        )

    def log_error(self, error: ReconcileError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
