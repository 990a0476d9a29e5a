"""Pytest configuration and shared fixtures."""

from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

from converge.cloud.ec2 import EC2Cloud, new_filter
from converge.targets import AWSAPITarget, ReconcileContext, TerraformTarget
from converge.terraform.writer import TerraformWriter

REGION = "us-east-1"


# =============================================================================
# Environment Fixtures
# =============================================================================

@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so nothing can reach a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


# =============================================================================
# Cloud Fixtures
# =============================================================================

@pytest.fixture
def mock_cloud():
    """EC2Cloud double that records every call."""
    cloud = MagicMock(spec=EC2Cloud)
    cloud.filter_tags = {}
    cloud.build_filters.side_effect = lambda name: [new_filter("tag:Name", name)]
    cloud.describe_internet_gateways.return_value = []
    cloud.describe_vpcs.return_value = []
    cloud.create_internet_gateway.return_value = "igw-new"
    cloud.create_vpc.return_value = "vpc-new"
    return cloud


@pytest.fixture
def ec2_client(aws_credentials):
    """boto3 EC2 client backed by moto."""
    with mock_aws():
        yield boto3.client("ec2", region_name=REGION)


@pytest.fixture
def moto_cloud(ec2_client):
    """EC2Cloud talking to moto."""
    return EC2Cloud(ec2_client, filter_tags={"converge:project": "demo"})


# =============================================================================
# Context Fixtures
# =============================================================================

@pytest.fixture
def aws_context(mock_cloud):
    return ReconcileContext(AWSAPITarget(mock_cloud))


@pytest.fixture
def writer():
    return TerraformWriter()


@pytest.fixture
def terraform_context(writer, mock_cloud):
    return ReconcileContext(TerraformTarget(writer, cloud=mock_cloud))
