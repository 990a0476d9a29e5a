"""Field-by-field comparison of actual and desired descriptors."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from converge.resources.base import ResourceDescriptor


@dataclass
class ChangeSet:
    """Sparse set of fields where desired differs from actual.

    ``fields`` maps field name to the desired value; ``previous`` holds the
    actual value for display. A create carries every set desired field.
    """

    fields: Dict[str, Any] = field(default_factory=dict)
    previous: Dict[str, Any] = field(default_factory=dict)
    create: bool = False

    def touches(self, field_name: str) -> bool:
        return field_name in self.fields

    def is_empty(self) -> bool:
        return not self.create and not self.fields

    def field_names(self) -> List[str]:
        return sorted(self.fields)

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """Printable ``{field: {'from': ..., 'to': ...}}`` view."""
        return {
            name: {
                'from': _display(self.previous.get(name)),
                'to': _display(value),
            }
            for name, value in sorted(self.fields.items())
        }


def _display(value: Any) -> Any:
    if isinstance(value, ResourceDescriptor):
        return value.compare_key()
    return value


def comparable_fields(resource: ResourceDescriptor) -> List[str]:
    """Names of fields that take part in the comparison."""
    return [f.name for f in fields(resource) if f.metadata.get('compare', True)]


def values_equal(actual: Any, desired: Any) -> bool:
    """Compare two field values; descriptors compare by identity, not content."""
    if isinstance(desired, ResourceDescriptor) or isinstance(actual, ResourceDescriptor):
        if actual is None or desired is None:
            return actual is desired
        if actual.id.is_set() and desired.id.is_set():
            return actual.id.value == desired.id.value
        return actual.compare_key() == desired.compare_key()
    return actual == desired


def compute_changes(
    actual: Optional[ResourceDescriptor],
    desired: ResourceDescriptor
) -> ChangeSet:
    """Build the change-set that converges ``actual`` to ``desired``.

    Fields left unset (None) in desired are not managed and never produce a
    change. When ``actual`` is None everything set in desired is a change.

    Args:
        actual: Observed state, or None if the object does not exist
        desired: Declared state

    Returns:
        ChangeSet; ``is_empty()`` means no changes
    """
    changes = ChangeSet(create=actual is None)

    for name in comparable_fields(desired):
        desired_value = getattr(desired, name)
        if desired_value is None:
            continue

        if actual is None:
            changes.fields[name] = desired_value
            continue

        actual_value = getattr(actual, name, None)
        if not values_equal(actual_value, desired_value):
            changes.fields[name] = desired_value
            changes.previous[name] = actual_value

    return changes
