"""Render targets and the per-run reconciliation context.

The set of targets is closed: changes are either applied against the live
EC2 API or written out as Terraform. Resources dispatch on the target type.
"""

from dataclasses import dataclass
from typing import Optional, Union

from converge.cloud.ec2 import EC2Cloud
from converge.terraform.writer import TerraformWriter


class AWSAPITarget:
    """Apply changes by calling the EC2 API."""

    name = 'aws'

    def __init__(self, cloud: EC2Cloud):
        self.cloud = cloud

    @property
    def check_existing(self) -> bool:
        return True


class TerraformTarget:
    """Emit Terraform resource blocks instead of calling the API."""

    name = 'terraform'

    def __init__(
        self,
        writer: TerraformWriter,
        cloud: Optional[EC2Cloud] = None,
        check_existing: bool = False
    ):
        """Initialize Terraform target.

        Args:
            writer: Emitter collecting the rendered resource blocks
            cloud: Used to discover shared resources and, when check_existing is
                set, to observe actual state before rendering
            check_existing: Observe, diff and validate before emitting. Off by
                default, since the emitted file is the complete declaration.
        """
        self.writer = writer
        self.cloud = cloud
        self._check_existing = check_existing

    @property
    def check_existing(self) -> bool:
        return self._check_existing and self.cloud is not None


Target = Union[AWSAPITarget, TerraformTarget]


@dataclass
class ReconcileContext:
    """Handle passed explicitly into every reconciliation call."""

    target: Target
    cloud: Optional[EC2Cloud] = None

    def __post_init__(self):
        if self.cloud is None:
            self.cloud = self.target.cloud

    @property
    def is_live(self) -> bool:
        return isinstance(self.target, AWSAPITarget)
