"""Declarative reconciliation of cloud resources against the EC2 API or Terraform."""

__version__ = "0.1.0"

from converge.references import PropertyReference, ResolvedValue
from converge.resources import VPC, ChangeSet, InternetGateway, Lifecycle, compute_changes
from converge.targets import AWSAPITarget, ReconcileContext, TerraformTarget

__all__ = [
    '__version__',
    'AWSAPITarget',
    'ChangeSet',
    'InternetGateway',
    'Lifecycle',
    'PropertyReference',
    'ReconcileContext',
    'ResolvedValue',
    'TerraformTarget',
    'VPC',
    'compute_changes',
]
