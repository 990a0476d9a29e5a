"""Unit tests for the reconciliation executor."""

import pytest

from converge.orchestrator import DeclarationGraph, ExecutionStatus, ReconcileExecutor
from converge.resources import VPC, InternetGateway, Lifecycle
from converge.targets import AWSAPITarget, ReconcileContext, TerraformTarget
from converge.utils.errors import (
    ErrorCategory,
    ImmutableFieldError,
    LifecycleError,
    MissingSharedResourceError,
    ProviderCallError,
)

PROJECT_TAGS = {"converge:project": "demo"}


def igw_response(igw_id, vpc_id, tags=None):
    return {
        "InternetGatewayId": igw_id,
        "Tags": [{"Key": k, "Value": v} for k, v in (tags or {}).items()],
        "Attachments": [{"VpcId": vpc_id, "State": "available"}],
    }


def build_graph(vpc_id=None, lifecycle=Lifecycle.SYNC):
    graph = DeclarationGraph()
    vpc = graph.add(VPC(
        name="main",
        id=vpc_id,
        cidr_block="10.0.0.0/16",
        enable_dns_hostnames=True,
        tags=dict(PROJECT_TAGS),
    ))
    graph.add(InternetGateway(name="main", vpc=vpc, lifecycle=lifecycle, tags=dict(PROJECT_TAGS)))
    return graph


class TestReconcile:
    """Test reconciliation of a single resource."""

    def test_ignore_lifecycle_skips_everything(self, aws_context, mock_cloud):
        desired = InternetGateway(name="main", lifecycle=Lifecycle.IGNORE, vpc=VPC(id="vpc-1"))

        result = ReconcileExecutor(aws_context).reconcile(desired)

        assert result.status == ExecutionStatus.SKIPPED
        assert mock_cloud.mock_calls == []

    def test_immutable_change_is_rejected_before_render(self, aws_context, mock_cloud):
        desired = InternetGateway(name="main", vpc=VPC(name="main", id="vpc-1", cidr_block="10.0.0.0/16"))
        mock_cloud.describe_internet_gateways.return_value = [
            igw_response("igw-1", "vpc-2", tags={"Name": "main"})
        ]

        with pytest.raises(ImmutableFieldError):
            ReconcileExecutor(aws_context).reconcile(desired)

        mock_cloud.create_internet_gateway.assert_not_called()
        mock_cloud.attach_internet_gateway.assert_not_called()
        mock_cloud.add_tags.assert_not_called()

    def test_no_changes_means_no_render(self, aws_context, mock_cloud):
        desired = InternetGateway(name="main", vpc=VPC(name="main", id="vpc-1", cidr_block="10.0.0.0/16"))
        mock_cloud.describe_internet_gateways.return_value = [
            igw_response("igw-1", "vpc-1", tags={"Name": "main"})
        ]

        result = ReconcileExecutor(aws_context).reconcile(desired)

        assert result.status == ExecutionStatus.NO_CHANGE
        mock_cloud.add_tags.assert_not_called()

    def test_dry_run_plans_without_rendering(self, aws_context, mock_cloud):
        desired = InternetGateway(name="main", vpc=VPC(name="main", id="vpc-1", cidr_block="10.0.0.0/16"))

        result = ReconcileExecutor(aws_context).reconcile(desired, dry_run=True)

        assert result.status == ExecutionStatus.PLANNED
        assert result.changes.create
        mock_cloud.create_internet_gateway.assert_not_called()

    def test_exists_and_validates_fails_when_missing(self, aws_context, mock_cloud):
        desired = InternetGateway(
            name="main",
            lifecycle=Lifecycle.EXISTS_AND_VALIDATES,
            vpc=VPC(name="main", id="vpc-1", cidr_block="10.0.0.0/16"),
        )

        with pytest.raises(LifecycleError, match="was not found"):
            ReconcileExecutor(aws_context).reconcile(desired)
        mock_cloud.create_internet_gateway.assert_not_called()

    def test_exists_and_warn_if_changes_does_not_render(self, aws_context, mock_cloud):
        desired = InternetGateway(
            name="main",
            lifecycle=Lifecycle.EXISTS_AND_WARN_IF_CHANGES,
            tags={"team": "net"},
            vpc=VPC(name="main", id="vpc-1", cidr_block="10.0.0.0/16"),
        )
        mock_cloud.describe_internet_gateways.return_value = [
            igw_response("igw-1", "vpc-1", tags={"Name": "main"})
        ]

        result = ReconcileExecutor(aws_context).reconcile(desired)

        assert result.status == ExecutionStatus.SKIPPED
        assert "tags" in result.warnings[0]
        mock_cloud.add_tags.assert_not_called()

    def test_exists_and_warn_if_changes_fails_when_missing(self, aws_context, mock_cloud):
        desired = InternetGateway(
            name="main",
            lifecycle=Lifecycle.EXISTS_AND_WARN_IF_CHANGES,
            vpc=VPC(name="main", id="vpc-1", cidr_block="10.0.0.0/16"),
        )

        with pytest.raises(LifecycleError, match="was not found"):
            ReconcileExecutor(aws_context).reconcile(desired)
        mock_cloud.create_internet_gateway.assert_not_called()

    def test_missing_shared_resource_fails_in_dry_run(self, aws_context, mock_cloud):
        desired = InternetGateway(name="gw", shared=True, vpc=VPC(name="shared", id="vpc-shared", shared=True))

        with pytest.raises(MissingSharedResourceError, match="shared InternetGateway gw was not found"):
            ReconcileExecutor(aws_context).reconcile(desired, dry_run=True)

    def test_warn_if_insufficient_access_downgrades_permission_errors(self, aws_context, mock_cloud):
        desired = InternetGateway(
            name="main",
            lifecycle=Lifecycle.WARN_IF_INSUFFICIENT_ACCESS,
            vpc=VPC(name="main", id="vpc-1", cidr_block="10.0.0.0/16"),
        )
        mock_cloud.create_internet_gateway.side_effect = ProviderCallError(
            "error creating InternetGateway: UnauthorizedOperation",
            category=ErrorCategory.PERMISSION,
        )

        result = ReconcileExecutor(aws_context).reconcile(desired)

        assert result.status == ExecutionStatus.SKIPPED
        assert result.warnings

    def test_sync_lifecycle_propagates_permission_errors(self, aws_context, mock_cloud):
        desired = InternetGateway(name="main", vpc=VPC(name="main", id="vpc-1", cidr_block="10.0.0.0/16"))
        mock_cloud.create_internet_gateway.side_effect = ProviderCallError(
            "error creating InternetGateway: UnauthorizedOperation",
            category=ErrorCategory.PERMISSION,
        )

        with pytest.raises(ProviderCallError):
            ReconcileExecutor(aws_context).reconcile(desired)


class TestRun:
    """Test reconciliation of whole graphs."""

    def test_failure_skips_only_dependents(self, aws_context, mock_cloud):
        graph = build_graph()
        graph.add(VPC(name="other", cidr_block="10.1.0.0/16", tags=dict(PROJECT_TAGS)))

        def create_vpc(cidr_block, tags):
            if tags["Name"] == "main":
                raise ProviderCallError("error creating VPC: VpcLimitExceeded")
            return "vpc-other"

        mock_cloud.create_vpc.side_effect = create_vpc

        result = ReconcileExecutor(aws_context).run(graph, parallel=False)

        assert result.results["VPC/main"].status == ExecutionStatus.FAILED
        assert result.results["VPC/other"].status == ExecutionStatus.SUCCESS
        assert result.results["InternetGateway/main"].status == ExecutionStatus.SKIPPED
        assert result.get_failed_keys() == ["VPC/main"]
        assert result.has_failures()
        mock_cloud.create_internet_gateway.assert_not_called()

    def test_unexpected_exceptions_are_wrapped(self, aws_context, mock_cloud):
        mock_cloud.describe_vpcs.side_effect = RuntimeError("kaboom")

        result = ReconcileExecutor(aws_context).run(build_graph(), parallel=False)

        error = result.results["VPC/main"].error
        assert "kaboom" in error.message
        assert result.results["InternetGateway/main"].status == ExecutionStatus.SKIPPED

    def test_progress_callback(self, aws_context):
        events = []
        executor = ReconcileExecutor(
            aws_context,
            progress_callback=lambda key, status, message: events.append((key, status))
        )

        executor.run(build_graph(), dry_run=True)

        assert ("VPC/main", ExecutionStatus.IN_PROGRESS) in events
        assert ("VPC/main", ExecutionStatus.PLANNED) in events
        assert ("InternetGateway/main", ExecutionStatus.PLANNED) in events

    def test_plan_reports_missing_shared_gateway(self, aws_context, mock_cloud):
        graph = DeclarationGraph()
        vpc = graph.add(VPC(name="shared", id="vpc-shared", shared=True))
        graph.add(InternetGateway(name="gw", shared=True, vpc=vpc))
        mock_cloud.describe_vpcs.return_value = [{"VpcId": "vpc-shared", "CidrBlock": "10.0.0.0/16"}]

        result = ReconcileExecutor(aws_context).run(graph, dry_run=True)

        assert result.results["VPC/shared"].status == ExecutionStatus.NO_CHANGE
        gateway = result.results["InternetGateway/gw"]
        assert gateway.status == ExecutionStatus.FAILED
        assert isinstance(gateway.error, MissingSharedResourceError)

    def test_shared_gateway_on_vpc_found_by_name(self, aws_context, mock_cloud):
        graph = DeclarationGraph()
        vpc = graph.add(VPC(name="main", cidr_block="10.0.0.0/16", tags=dict(PROJECT_TAGS)))
        graph.add(InternetGateway(name="gw", shared=True, vpc=vpc))
        mock_cloud.describe_vpcs.return_value = [{
            "VpcId": "vpc-1",
            "CidrBlock": "10.0.0.0/16",
            "Tags": [{"Key": "Name", "Value": "main"}, {"Key": "converge:project", "Value": "demo"}],
        }]
        mock_cloud.describe_internet_gateways.return_value = [igw_response("igw-shared", "vpc-1")]

        result = ReconcileExecutor(aws_context).run(graph, parallel=False)

        assert result.is_success()
        assert result.results["VPC/main"].status == ExecutionStatus.NO_CHANGE
        assert result.results["InternetGateway/gw"].status == ExecutionStatus.NO_CHANGE
        mock_cloud.describe_internet_gateways.assert_called_once_with(
            filters=[{"Name": "attachment.vpc-id", "Values": ["vpc-1"]}]
        )
        assert graph.get("InternetGateway/gw").id.value == "igw-shared"

    def test_terraform_shared_gateway_on_managed_vpc_only_warns(self, writer, mock_cloud, caplog):
        graph = DeclarationGraph()
        vpc = graph.add(VPC(name="main", cidr_block="10.0.0.0/16"))
        graph.add(InternetGateway(name="gw", shared=True, vpc=vpc))
        context = ReconcileContext(TerraformTarget(writer, cloud=mock_cloud))

        result = ReconcileExecutor(context).run(graph, parallel=False)

        assert result.is_success()
        assert writer.has_resource("aws_vpc", "main")
        assert not writer.has_resource("aws_internet_gateway", "gw")
        assert "has no ID" in caplog.text

    def test_terraform_run_does_not_observe(self, writer, mock_cloud):
        context = ReconcileContext(TerraformTarget(writer, cloud=mock_cloud))

        result = ReconcileExecutor(context).run(build_graph())

        assert result.is_success()
        mock_cloud.describe_vpcs.assert_not_called()
        mock_cloud.describe_internet_gateways.assert_not_called()
        assert writer.get_resource("aws_internet_gateway", "main")["vpc_id"] == "${aws_vpc.main.id}"
        assert writer.get_resource("aws_vpc", "main")["cidr_block"] == "10.0.0.0/16"

    def test_terraform_check_existing_validates_changes(self, writer, mock_cloud):
        context = ReconcileContext(TerraformTarget(writer, cloud=mock_cloud, check_existing=True))
        mock_cloud.describe_vpcs.return_value = [{
            "VpcId": "vpc-1",
            "CidrBlock": "10.9.0.0/16",
            "Tags": [{"Key": "Name", "Value": "main"}],
        }]
        mock_cloud.describe_vpc_attribute.return_value = True

        result = ReconcileExecutor(context).run(build_graph(), parallel=False)

        assert isinstance(result.results["VPC/main"].error, ImmutableFieldError)
        assert not writer.has_resource("aws_vpc", "main")


class TestIdempotence:
    """Test convergence against moto."""

    def test_second_run_changes_nothing(self, moto_cloud, ec2_client):
        context = ReconcileContext(AWSAPITarget(moto_cloud))

        first = ReconcileExecutor(context).run(build_graph())
        assert first.is_success()
        assert first.count(ExecutionStatus.SUCCESS) == 2

        second = ReconcileExecutor(context).run(build_graph())
        assert second.count(ExecutionStatus.NO_CHANGE) == 2

        gateways = ec2_client.describe_internet_gateways(
            Filters=[{"Name": "tag:Name", "Values": ["main"]}]
        )["InternetGateways"]
        assert len(gateways) == 1
        vpc_id = gateways[0]["Attachments"][0]["VpcId"]
        vpcs = ec2_client.describe_vpcs(Filters=[{"Name": "tag:Name", "Values": ["main"]}])["Vpcs"]
        assert [v["VpcId"] for v in vpcs] == [vpc_id]

    def test_tag_drift_is_repaired(self, moto_cloud, ec2_client):
        context = ReconcileContext(AWSAPITarget(moto_cloud))
        ReconcileExecutor(context).run(build_graph())

        vpc_id = ec2_client.describe_vpcs(
            Filters=[{"Name": "tag:Name", "Values": ["main"]}]
        )["Vpcs"][0]["VpcId"]
        ec2_client.create_tags(Resources=[vpc_id], Tags=[{"Key": "converge:project", "Value": "demo"},
                                                         {"Key": "extra", "Value": "kept"}])
        graph = build_graph()
        graph.get("VPC/main").tags["team"] = "net"

        result = ReconcileExecutor(context).run(graph)

        assert result.results["VPC/main"].status == ExecutionStatus.SUCCESS
        assert result.results["VPC/main"].changes.field_names() == ["tags"]
        tags = {t["Key"]: t["Value"] for t in ec2_client.describe_vpcs(VpcIds=[vpc_id])["Vpcs"][0]["Tags"]}
        assert tags["team"] == "net"
        assert tags["extra"] == "kept"

    def test_declared_name_tag_does_not_break_lookup(self, moto_cloud, ec2_client):
        context = ReconcileContext(AWSAPITarget(moto_cloud))

        def graph_with_name_tag():
            graph = DeclarationGraph()
            graph.add(VPC(
                name="main",
                cidr_block="10.0.0.0/16",
                tags={"Name": "prod-vpc", **PROJECT_TAGS},
            ))
            return graph

        first = ReconcileExecutor(context).run(graph_with_name_tag())
        assert first.results["VPC/main"].status == ExecutionStatus.SUCCESS

        second = ReconcileExecutor(context).run(graph_with_name_tag())
        assert second.results["VPC/main"].status == ExecutionStatus.NO_CHANGE

        vpcs = ec2_client.describe_vpcs(
            Filters=[{"Name": "tag:converge:project", "Values": ["demo"]}]
        )["Vpcs"]
        assert len(vpcs) == 1
        assert {"Key": "Name", "Value": "main"} in vpcs[0]["Tags"]
