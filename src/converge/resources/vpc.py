"""VPC resource."""

from dataclasses import dataclass
from typing import Optional

from converge.cloud.ec2 import tags_to_dict
from converge.references import Literal, literal_from_value, literal_property
from converge.resources.base import (
    ResourceDescriptor,
    find_name_tag,
    intersect_tags,
    single_match,
)
from converge.resources.diff import ChangeSet
from converge.targets import AWSAPITarget, ReconcileContext, TerraformTarget
from converge.utils.errors import (
    ConfigurationError,
    MissingSharedResourceError,
    UnresolvedReferenceError,
)
from converge.utils.logging import get_logger

logger = get_logger(__name__)

DNS_SUPPORT = 'enableDnsSupport'
DNS_HOSTNAMES = 'enableDnsHostnames'


@dataclass(eq=False)
class VPC(ResourceDescriptor):
    """A VPC. Shared VPCs must be declared with their ID."""

    cidr_block: Optional[str] = None
    enable_dns_support: Optional[bool] = None
    enable_dns_hostnames: Optional[bool] = None

    resource_type = 'aws_vpc'
    kind = 'VPC'
    immutable_fields = ('cidr_block',)

    def validate(self) -> None:
        super().validate()
        if self.shared and not self.id.is_set():
            raise ConfigurationError(
                "VPC ID is required when VPC is shared",
                context=self.error_context('validate')
            )
        if not self.shared and not self.cidr_block:
            raise ConfigurationError(
                f"VPC {self.name}: cidr_block is required",
                context=self.error_context('validate')
            )

    def find(self, context: ReconcileContext) -> Optional['VPC']:
        cloud = context.cloud
        if cloud is None:
            raise ConfigurationError("an EC2 cloud is required to find VPCs")

        if self.id.is_set():
            vpcs = cloud.describe_vpcs(ids=[self.id.value])
        elif self.shared:
            raise ConfigurationError(
                "VPC ID is required when VPC is shared",
                context=self.error_context('find')
            )
        else:
            vpcs = cloud.describe_vpcs(filters=cloud.build_filters(self.name))

        vpc = single_match(vpcs, 'VPC', 'VpcId', self.error_context('find'))
        if vpc is None:
            return None

        remote_tags = tags_to_dict(vpc.get('Tags'))
        actual = VPC(
            id=vpc['VpcId'],
            name=find_name_tag(remote_tags),
            cidr_block=vpc.get('CidrBlock'),
            shared=self.shared,
            lifecycle=self.lifecycle,
        )
        actual.tags = intersect_tags(remote_tags, self.tags)

        if self.enable_dns_support is not None:
            actual.enable_dns_support = cloud.describe_vpc_attribute(actual.id.value, DNS_SUPPORT)
        if self.enable_dns_hostnames is not None:
            actual.enable_dns_hostnames = cloud.describe_vpc_attribute(actual.id.value, DNS_HOSTNAMES)

        logger.debug(f"found matching VPC {actual.id.value!r}")

        if self.shared:
            actual.name = self.name
            actual.tags = dict(self.tags)

        self.id.backfill(actual.id.value)

        return actual

    def render_aws(
        self,
        target: AWSAPITarget,
        actual: Optional['VPC'],
        changes: ChangeSet
    ) -> None:
        cloud = target.cloud

        if self.shared:
            if actual is None:
                raise MissingSharedResourceError(
                    f"shared VPC {self.id.value} was not found",
                    context=self.error_context('render')
                )
            return

        if actual is None:
            if not self.cidr_block:
                raise ConfigurationError(
                    f"VPC {self.name}: cidr_block is required to create it",
                    context=self.error_context('create')
                )
            logger.info(f"Creating VPC {self.name} ({self.cidr_block})")
            self.id.set(cloud.create_vpc(self.cidr_block, self.tags))

        # DNS support must be on before hostnames can be enabled
        if self.enable_dns_support is not None and (actual is None or changes.touches('enable_dns_support')):
            cloud.modify_vpc_attribute(self.id.value, DNS_SUPPORT, self.enable_dns_support)
        if self.enable_dns_hostnames is not None and (actual is None or changes.touches('enable_dns_hostnames')):
            cloud.modify_vpc_attribute(self.id.value, DNS_HOSTNAMES, self.enable_dns_hostnames)

        cloud.add_tags(self.id.value, self.tags)

    def render_terraform(
        self,
        target: TerraformTarget,
        actual: Optional['VPC'],
        changes: ChangeSet
    ) -> None:
        if self.shared:
            # Not managed by Terraform; link() hands out the literal ID
            return

        target.writer.emit(self.resource_type, self.name, {
            'cidr_block': self.cidr_block,
            'enable_dns_support': self.enable_dns_support,
            'enable_dns_hostnames': self.enable_dns_hostnames,
            'tags': self.tags,
        })

    def link(self) -> Literal:
        if self.shared:
            if not self.id.is_set():
                raise UnresolvedReferenceError(
                    f"ID must be set if VPC is shared: {self}",
                    context=self.error_context('link')
                )
            logger.debug(f"reusing existing VPC with id {self.id.value!r}")
            return literal_from_value(self.id.value)

        return literal_property(self.resource_type, self.name, 'id')
