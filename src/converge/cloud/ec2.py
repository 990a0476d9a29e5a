"""EC2 provider collaborator used by the reconciliation core."""

from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from converge.utils.aws_client import AWSClientManager
from converge.utils.errors import ErrorContext, error_handler
from converge.utils.logging import get_logger

logger = get_logger(__name__)

NAME_TAG = 'Name'

# Describing an identifier that no longer exists means "does not exist yet"
NOT_FOUND_CODES = {
    'InvalidInternetGatewayID.NotFound',
    'InvalidVpcID.NotFound',
}


def new_filter(name: str, *values: str) -> Dict[str, Any]:
    """Build an EC2 describe filter."""
    return {'Name': name, 'Values': list(values)}


def tag_specification(resource_type: str, tags: Dict[str, str]) -> List[Dict[str, Any]]:
    """Build ``TagSpecifications`` so tags are applied atomically at creation."""
    if not tags:
        return []
    return [
        {
            'ResourceType': resource_type,
            'Tags': [{'Key': k, 'Value': v} for k, v in sorted(tags.items())]
        }
    ]


def tags_to_dict(tags: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    return {tag['Key']: tag['Value'] for tag in tags or []}


class EC2Cloud:
    """Thin wrapper around the EC2 client.

    Every call failure is re-raised as ProviderCallError carrying a
    description of the attempted operation. Retries are left to botocore.
    """

    def __init__(self, ec2_client, filter_tags: Optional[Dict[str, str]] = None):
        """Initialize EC2 cloud.

        Args:
            ec2_client: boto3 EC2 client
            filter_tags: Extra tags every name-based lookup must also match
        """
        self.ec2 = ec2_client
        self.filter_tags = dict(filter_tags or {})

    @classmethod
    def from_client_manager(
        cls,
        client_manager: AWSClientManager,
        filter_tags: Optional[Dict[str, str]] = None
    ) -> 'EC2Cloud':
        return cls(client_manager.get_client('ec2'), filter_tags=filter_tags)

    def _call(self, operation: str, fn: Callable[..., Any], **kwargs) -> Any:
        try:
            return fn(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise error_handler.wrap_provider_error(
                operation, e, ErrorContext(aws_operation=getattr(fn, '__name__', None))
            ) from e

    def _describe(self, operation: str, fn: Callable[..., Any], result_key: str, **kwargs) -> List[Dict[str, Any]]:
        try:
            response = fn(**kwargs)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in NOT_FOUND_CODES:
                logger.debug(f"{operation}: not found")
                return []
            raise error_handler.wrap_provider_error(operation, e) from e
        except BotoCoreError as e:
            raise error_handler.wrap_provider_error(operation, e) from e
        return (response or {}).get(result_key) or []

    def build_filters(self, name: Optional[str]) -> List[Dict[str, Any]]:
        """Filters that select a resource by its Name tag and the owner tags."""
        filters = []
        if name:
            filters.append(new_filter(f'tag:{NAME_TAG}', name))
        for key, value in sorted(self.filter_tags.items()):
            filters.append(new_filter(f'tag:{key}', value))
        return filters

    # Internet gateways

    def describe_internet_gateways(
        self,
        ids: Optional[List[str]] = None,
        filters: Optional[List[Dict[str, Any]]] = None
    ) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {}
        if ids:
            kwargs['InternetGatewayIds'] = ids
        if filters:
            kwargs['Filters'] = filters
        return self._describe(
            'listing InternetGateways',
            self.ec2.describe_internet_gateways,
            'InternetGateways',
            **kwargs
        )

    def create_internet_gateway(self, tags: Dict[str, str]) -> str:
        kwargs: Dict[str, Any] = {}
        spec = tag_specification('internet-gateway', tags)
        if spec:
            kwargs['TagSpecifications'] = spec
        response = self._call('creating InternetGateway', self.ec2.create_internet_gateway, **kwargs)
        return response['InternetGateway']['InternetGatewayId']

    def attach_internet_gateway(self, igw_id: str, vpc_id: str) -> None:
        self._call(
            'attaching InternetGateway to VPC',
            self.ec2.attach_internet_gateway,
            InternetGatewayId=igw_id,
            VpcId=vpc_id
        )

    # VPCs

    def describe_vpcs(
        self,
        ids: Optional[List[str]] = None,
        filters: Optional[List[Dict[str, Any]]] = None
    ) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {}
        if ids:
            kwargs['VpcIds'] = ids
        if filters:
            kwargs['Filters'] = filters
        return self._describe('listing VPCs', self.ec2.describe_vpcs, 'Vpcs', **kwargs)

    def describe_vpc_attribute(self, vpc_id: str, attribute: str) -> bool:
        """Read a boolean VPC attribute (``enableDnsHostnames`` or ``enableDnsSupport``)."""
        response = self._call(
            f'describing VPC attribute {attribute}',
            self.ec2.describe_vpc_attribute,
            VpcId=vpc_id,
            Attribute=attribute
        )
        key = attribute[0].upper() + attribute[1:]
        return bool(response.get(key, {}).get('Value'))

    def create_vpc(self, cidr_block: str, tags: Dict[str, str]) -> str:
        kwargs: Dict[str, Any] = {'CidrBlock': cidr_block}
        spec = tag_specification('vpc', tags)
        if spec:
            kwargs['TagSpecifications'] = spec
        response = self._call('creating VPC', self.ec2.create_vpc, **kwargs)
        return response['Vpc']['VpcId']

    def modify_vpc_attribute(self, vpc_id: str, attribute: str, value: bool) -> None:
        key = attribute[0].upper() + attribute[1:]
        self._call(
            f'modifying VPC attribute {attribute}',
            self.ec2.modify_vpc_attribute,
            VpcId=vpc_id,
            **{key: {'Value': value}}
        )

    # Tags

    def add_tags(self, resource_id: str, tags: Dict[str, str]) -> None:
        """Apply ``tags`` to ``resource_id``; existing keys are overwritten."""
        if not tags:
            logger.debug(f"No tags to apply to {resource_id}")
            return
        self._call(
            f'tagging {resource_id}',
            self.ec2.create_tags,
            Resources=[resource_id],
            Tags=[{'Key': k, 'Value': v} for k, v in sorted(tags.items())]
        )
