"""Base resource descriptor and the reconciliation interface."""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Dict, List, Optional, Tuple

from converge.cloud.ec2 import NAME_TAG
from converge.references import Literal
from converge.targets import AWSAPITarget, ReconcileContext, Target, TerraformTarget
from converge.utils.errors import (
    AmbiguousResultError,
    ConfigurationError,
    ErrorContext,
    IdentifierAlreadySetError,
    ImmutableFieldError,
    MissingSharedResourceError,
)

if TYPE_CHECKING:
    from converge.resources.diff import ChangeSet


class Lifecycle(Enum):
    """How aggressively the engine may mutate a resource."""
    SYNC = "Sync"
    IGNORE = "Ignore"
    WARN_IF_INSUFFICIENT_ACCESS = "WarnIfInsufficientAccess"
    EXISTS_AND_VALIDATES = "ExistsAndValidates"
    EXISTS_AND_WARN_IF_CHANGES = "ExistsAndWarnIfChanges"


# Field metadata marking engine-internal fields the differ must skip
INTERNAL = {'compare': False}


class IdentifierCell:
    """Single-assignment holder for a provider identifier.

    Identifiers never change once assigned; replacing an object means a new
    descriptor.
    """

    def __init__(self, value: Optional[str] = None):
        self._value = value or None
        self._lock = threading.Lock()

    @property
    def value(self) -> Optional[str]:
        return self._value

    def is_set(self) -> bool:
        return self._value is not None

    def set(self, value: str) -> None:
        """Assign the identifier.

        Raises:
            IdentifierAlreadySetError: If a different identifier is already held
        """
        if not value:
            raise ValueError("identifier must be a non-empty string")
        with self._lock:
            if self._value is not None and self._value != value:
                raise IdentifierAlreadySetError(
                    f"identifier already set to {self._value!r}, refusing {value!r}"
                )
            self._value = value

    def backfill(self, value: Optional[str]) -> bool:
        """Assign ``value`` only if nothing is held yet. Returns True if assigned."""
        if not value:
            return False
        with self._lock:
            if self._value is not None:
                return False
            self._value = value
            return True

    def __eq__(self, other) -> bool:
        if isinstance(other, IdentifierCell):
            return self._value == other._value
        return NotImplemented

    def __repr__(self) -> str:
        return f"IdentifierCell({self._value!r})"


@dataclass(eq=False)
class ResourceDescriptor(ABC):
    """Desired or actual state of one infrastructure object.

    ``id`` accepts a plain string (or None) and is normalised into an
    IdentifierCell. Any field whose value is another descriptor is a
    reference; references to managed resources become deferred property
    references when rendered as Terraform.
    """

    name: Optional[str] = None
    lifecycle: Lifecycle = field(default=Lifecycle.SYNC, metadata=INTERNAL)
    id: IdentifierCell = field(default_factory=IdentifierCell, metadata=INTERNAL)
    shared: bool = field(default=False, metadata=INTERNAL)
    tags: Dict[str, str] = field(default_factory=dict)

    # Terraform resource type and display kind, set by subclasses
    resource_type = ''
    kind = ''

    # Fields that cannot change once the object exists
    immutable_fields: ClassVar[Tuple[str, ...]] = ()

    def __post_init__(self):
        if not isinstance(self.id, IdentifierCell):
            self.id = IdentifierCell(self.id)
        if isinstance(self.lifecycle, str):
            self.lifecycle = Lifecycle(self.lifecycle)
        self.tags = dict(self.tags or {})
        # Name lookups filter on this tag, so it must always match the name
        if self.name:
            self.tags[NAME_TAG] = self.name

    @property
    def key(self) -> str:
        """Graph key, unique per kind and name."""
        return f"{self.kind}/{self.name or self.id.value}"

    def compare_key(self) -> Optional[str]:
        """Identity used when this descriptor is compared as a reference."""
        return self.id.value or self.name

    def references(self) -> List['ResourceDescriptor']:
        """Descriptors this one refers to."""
        found = []
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, ResourceDescriptor):
                found.append(value)
        return found

    def error_context(self, operation: Optional[str] = None) -> ErrorContext:
        return ErrorContext(
            resource_id=self.key,
            resource_type=self.resource_type,
            operation=operation
        )

    def is_discoverable(self) -> bool:
        """Whether a reference to this resource can resolve to a literal ID."""
        return self.id.is_set()

    def validate(self) -> None:
        """Check the declaration is self-consistent before any reconciliation.

        Raises:
            ConfigurationError: If the declaration can never be reconciled
        """
        if not self.shared and not self.name:
            raise ConfigurationError(
                f"{self.kind} must have a name unless it is shared",
                context=self.error_context('validate')
            )

    @abstractmethod
    def find(self, context: ReconcileContext) -> Optional['ResourceDescriptor']:
        """Observe the remote object matching this desired descriptor.

        Returns:
            Actual descriptor, or None when the object does not exist yet
        """

    def check_exists(self, actual: Optional['ResourceDescriptor']) -> None:
        """Shared objects are never created, so they must already exist.

        Raises:
            MissingSharedResourceError: If a shared object was not found
        """
        if self.shared and actual is None:
            raise MissingSharedResourceError(
                f"shared {self.kind} {self.name or self.id.value} was not found",
                context=self.error_context('find')
            )

    def check_changes(
        self,
        actual: Optional['ResourceDescriptor'],
        changes: 'ChangeSet'
    ) -> None:
        """Reject changes the provider cannot apply in place.

        Raises:
            ImmutableFieldError: If an existing object would change an immutable field
        """
        if actual is None:
            return
        for field_name in self.immutable_fields:
            if changes.touches(field_name):
                raise ImmutableFieldError(
                    f"{self.kind} {self.name or self.id.value}: field {field_name} cannot be changed",
                    field=field_name,
                    context=self.error_context('validate')
                )

    def render(
        self,
        context: ReconcileContext,
        actual: Optional['ResourceDescriptor'],
        changes: 'ChangeSet'
    ) -> None:
        """Apply an accepted change-set to the context's target."""
        target: Target = context.target
        if isinstance(target, AWSAPITarget):
            self.render_aws(target, actual, changes)
        elif isinstance(target, TerraformTarget):
            self.render_terraform(target, actual, changes)
        else:
            raise ConfigurationError(f"unsupported render target: {type(target).__name__}")

    @abstractmethod
    def render_aws(
        self,
        target: AWSAPITarget,
        actual: Optional['ResourceDescriptor'],
        changes: 'ChangeSet'
    ) -> None:
        """Apply changes against the live API."""

    @abstractmethod
    def render_terraform(
        self,
        target: TerraformTarget,
        actual: Optional['ResourceDescriptor'],
        changes: 'ChangeSet'
    ) -> None:
        """Emit the Terraform declaration for this resource."""

    @abstractmethod
    def link(self) -> Literal:
        """Reference to this resource's ID for use in another resource's IaC block."""

    def __str__(self) -> str:
        return self.key


def find_name_tag(tags: Dict[str, str]) -> Optional[str]:
    """Resource name as recorded in its Name tag."""
    return tags.get(NAME_TAG)


def intersect_tags(remote: Dict[str, str], desired: Dict[str, str]) -> Dict[str, str]:
    """Remote tags restricted to the keys we declare.

    Tags set on the object by someone else never register as drift.
    """
    return {key: value for key, value in remote.items() if key in desired}


def single_match(
    matches: List[Dict],
    kind: str,
    id_key: str,
    context: ErrorContext
) -> Optional[Dict]:
    """Return the only match, None for no match.

    Raises:
        AmbiguousResultError: If more than one remote object matched
    """
    if not matches:
        return None
    if len(matches) != 1:
        ids = [m.get(id_key) for m in matches]
        context.additional_info = {'matches': ids}
        raise AmbiguousResultError(
            f"found multiple {kind}s matching filter: {', '.join(str(i) for i in ids)}",
            context=context,
            suggestions=[f'Remove or retag the extra {kind}s so exactly one matches']
        )
    return matches[0]
