"""Resource descriptors and the reconciliation pattern they implement."""

from .base import (
    IdentifierCell,
    Lifecycle,
    ResourceDescriptor,
    find_name_tag,
    intersect_tags,
)
from .diff import ChangeSet, compute_changes
from .vpc import VPC
from .internet_gateway import InternetGateway

__all__ = [
    'IdentifierCell',
    'Lifecycle',
    'ResourceDescriptor',
    'find_name_tag',
    'intersect_tags',
    'ChangeSet',
    'compute_changes',
    'VPC',
    'InternetGateway',
]
