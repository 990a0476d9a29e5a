"""Internet gateway resource.

A gateway is attached to exactly one VPC. When the VPC is shared the gateway
usually is too: it is then located through its attachment rather than by name,
and is never created, attached or retagged.
"""

from dataclasses import dataclass
from typing import Optional

from converge.cloud.ec2 import new_filter, tags_to_dict
from converge.references import Literal, literal_from_value, literal_property
from converge.resources.base import (
    ResourceDescriptor,
    find_name_tag,
    intersect_tags,
    single_match,
)
from converge.resources.diff import ChangeSet
from converge.resources.vpc import VPC
from converge.targets import AWSAPITarget, ReconcileContext, TerraformTarget
from converge.utils.errors import (
    ConfigurationError,
    MissingSharedResourceError,
    ReconcileError,
    UnresolvedReferenceError,
)
from converge.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(eq=False)
class InternetGateway(ResourceDescriptor):
    """An internet gateway and its VPC attachment."""

    vpc: Optional[VPC] = None

    resource_type = 'aws_internet_gateway'
    kind = 'InternetGateway'
    # Re-parenting needs a detach and re-attach, which is never done implicitly
    immutable_fields = ('vpc',)

    def validate(self) -> None:
        super().validate()
        if self.shared and not self.is_discoverable():
            raise ConfigurationError(
                "VPC ID is required when InternetGateway is shared",
                context=self.error_context('validate')
            )

    def is_discoverable(self) -> bool:
        if self.id.is_set():
            return True
        if not self.shared or self.vpc is None:
            return False
        # A managed VPC has its ID back-filled or assigned in an earlier wave
        return self.vpc.is_discoverable() or not self.vpc.shared

    def _shared_vpc_id(self, operation: str) -> str:
        vpc_id = self.vpc.id.value if self.vpc is not None else None
        if not vpc_id:
            raise ConfigurationError(
                "VPC ID is required when InternetGateway is shared",
                context=self.error_context(operation)
            )
        return vpc_id

    def _attached_filter(self, operation: str):
        return [new_filter('attachment.vpc-id', self._shared_vpc_id(operation))]

    def find(self, context: ReconcileContext) -> Optional['InternetGateway']:
        cloud = context.cloud
        if cloud is None:
            raise ConfigurationError("an EC2 cloud is required to find InternetGateways")

        if self.shared:
            gateways = cloud.describe_internet_gateways(filters=self._attached_filter('find'))
        elif self.id.is_set():
            gateways = cloud.describe_internet_gateways(ids=[self.id.value])
        else:
            gateways = cloud.describe_internet_gateways(filters=cloud.build_filters(self.name))

        igw = single_match(gateways, 'InternetGateway', 'InternetGatewayId', self.error_context('find'))
        if igw is None:
            return None

        remote_tags = tags_to_dict(igw.get('Tags'))
        actual = InternetGateway(
            id=igw['InternetGatewayId'],
            name=find_name_tag(remote_tags),
            shared=self.shared,
            lifecycle=self.lifecycle,
        )
        actual.tags = intersect_tags(remote_tags, self.tags)

        logger.debug(f"found matching InternetGateway {actual.id.value!r}")

        for attachment in igw.get('Attachments') or []:
            actual.vpc = VPC(id=attachment.get('VpcId'))

        # Fields we do not own never report drift
        if self.shared:
            actual.name = self.name
            actual.tags = dict(self.tags)

        self.id.backfill(actual.id.value)

        return actual

    def render_aws(
        self,
        target: AWSAPITarget,
        actual: Optional['InternetGateway'],
        changes: ChangeSet
    ) -> None:
        cloud = target.cloud

        if self.shared:
            if actual is None:
                raise MissingSharedResourceError(
                    "InternetGateway for shared VPC was not found",
                    context=self.error_context('render')
                )
            return

        if actual is None:
            logger.info(f"Creating InternetGateway {self.name}")
            self.id.set(cloud.create_internet_gateway(self.tags))

        if self.vpc is not None and (actual is None or changes.touches('vpc')):
            vpc_id = self.vpc.id.value
            if not vpc_id:
                raise ConfigurationError(
                    f"VPC {self.vpc} has no ID; it must be reconciled before InternetGateway {self.name}",
                    context=self.error_context('attach')
                )
            logger.info(f"Attaching InternetGateway {self.id.value} to VPC {vpc_id}")
            cloud.attach_internet_gateway(self.id.value, vpc_id)

        # Always re-applied so a partially failed earlier run converges
        cloud.add_tags(self.id.value, self.tags)

    def render_terraform(
        self,
        target: TerraformTarget,
        actual: Optional['InternetGateway'],
        changes: ChangeSet
    ) -> None:
        if self.shared:
            # Not Terraform managed, but discover the ID so link() can resolve
            if not self.id.is_set():
                self._discover_shared(target)
            return

        target.writer.emit(self.resource_type, self.name, {
            'vpc_id': self.vpc.link() if self.vpc is not None else None,
            'tags': self.tags,
        })

    def _discover_shared(self, target: TerraformTarget) -> None:
        vpc_id = self.vpc.id.value if self.vpc is not None else None
        if not vpc_id:
            logger.warning(f"Cannot look up internet gateway {self.name}: VPC {self.vpc} has no ID")
            return
        filters = [new_filter('attachment.vpc-id', vpc_id)]

        if target.cloud is None:
            logger.warning(f"Cannot look up internet gateway for VPC {vpc_id!r}: no cloud configured")
            return

        try:
            gateways = target.cloud.describe_internet_gateways(filters=filters)
            igw = single_match(gateways, 'InternetGateway', 'InternetGatewayId', self.error_context('discover'))
        except ReconcileError as e:
            logger.warning(f"Cannot find internet gateway for VPC {vpc_id!r}: {e.message}")
            return

        if igw is None:
            logger.warning(f"Cannot find internet gateway for VPC {vpc_id!r}")
            return

        self.id.backfill(igw['InternetGatewayId'])

    def link(self) -> Literal:
        if self.shared:
            if not self.id.is_set():
                raise UnresolvedReferenceError(
                    f"ID must be set if InternetGateway is shared: {self}",
                    context=self.error_context('link')
                )
            logger.debug(f"reusing existing InternetGateway with id {self.id.value!r}")
            return literal_from_value(self.id.value)

        return literal_property(self.resource_type, self.name, 'id')
