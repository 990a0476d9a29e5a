"""Literal values and deferred property references for IaC output.

A ``Literal`` is what a resource field holds when it is handed to an IaC
emitter: either a value that is already known, or a reference to an attribute
of another managed resource that the IaC tool fills in during its own apply.
Only the emitter turns a ``Literal`` into text.
"""

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class ResolvedValue:
    """A concrete value known at render time."""

    value: Any

    def is_deferred(self) -> bool:
        return False

    def to_terraform(self) -> Any:
        return self.value


@dataclass(frozen=True)
class PropertyReference:
    """Reference to ``<resource_type>.<name>.<attribute>`` resolved by the IaC tool."""

    resource_type: str
    name: str
    attribute: str = "id"

    def is_deferred(self) -> bool:
        return True

    def to_terraform(self) -> str:
        return "${%s.%s.%s}" % (self.resource_type, self.name, self.attribute)


Literal = Union[ResolvedValue, PropertyReference]


def literal_from_value(value: Any) -> ResolvedValue:
    """Wrap an already-known value."""
    return ResolvedValue(value)


def literal_property(resource_type: str, name: str, attribute: str = "id") -> PropertyReference:
    """Build a deferred reference to another resource's attribute."""
    return PropertyReference(resource_type, name, attribute)


def to_terraform_value(value: Any) -> Any:
    """Convert a field value, possibly nested, into its Terraform JSON form."""
    if isinstance(value, (ResolvedValue, PropertyReference)):
        return value.to_terraform()
    if isinstance(value, dict):
        return {k: to_terraform_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_terraform_value(v) for v in value]
    return value
