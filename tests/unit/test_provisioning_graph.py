"""Unit tests for ProvisioningGraph ordering and up/down passes.

Tests dependency inference from deferred references, creation and teardown
ordering, skipping of dependents after a failure, non-atomic teardown and
propagation of the autoscaling ARN into a dependent service node.
"""

import pytest

from provisioning.apprunner import auto_scaling_configuration
from provisioning.deferred import Deferred
from provisioning.errors import ApiError, CyclicDependencyError, GraphError, UnknownOperationError
from provisioning.graph import ProvisioningGraph
from provisioning.node import ResourceState
from provisioning.resource import ResourceNode

ARN = "arn:aws:apprunner:eu-west-1:111111111111:autoscalingconfiguration/apprunner-autoscaling/1/abc"
AUTOSCALING_PARAMETERS = {
    "AutoScalingConfigurationName": "apprunner-autoscaling",
    "MinSize": 1,
    "MaxSize": 3,
    "MaxConcurrency": 100,
}


def build_service_graph():
    """Graph with the service added before the autoscaling configuration it reads."""
    graph = ProvisioningGraph("ApprunnerCdkExampleStack")
    scaling = auto_scaling_configuration("ApprunnerAutoscaling", AUTOSCALING_PARAMETERS)
    service = ResourceNode(
        "ApprunnerCdkExampleService",
        "AWS::AppRunner::Service",
        {
            "AutoScalingConfigurationArn": scaling.identity,
            "HealthCheckConfiguration": {"UnhealthyThreshold": 5, "Interval": 5},
        },
        outputs=lambda props: {"ServiceUrl": "abc.eu-west-1.awsapprunner.com"},
    )
    graph.add(service)
    graph.add(scaling)
    return graph, scaling, service


def test_dependencies_inferred_from_deferred_references():
    """Test a node reading another node's identity depends on it."""
    graph, scaling, service = build_service_graph()
    assert graph.dependencies_of(service) == [scaling.node_id]
    assert [node.node_id for node in graph.create_order()] == [scaling.node_id, service.node_id]
    assert [node.node_id for node in graph.destroy_order()] == [service.node_id, scaling.node_id]


def test_up_propagates_identity_into_dependent(recorder):
    """Test the service is created with the ARN resolved from the create response."""
    recorder.responses["createAutoScalingConfiguration"] = {
        "AutoScalingConfiguration": {"AutoScalingConfigurationArn": ARN}
    }
    graph, scaling, service = build_service_graph()

    result = graph.up(recorder.context)

    assert result.ok
    assert result.succeeded == [scaling.node_id, service.node_id]
    assert service.materialized["AutoScalingConfigurationArn"] == ARN
    assert recorder.calls == [("AppRunner", "createAutoScalingConfiguration", AUTOSCALING_PARAMETERS)]


def test_down_deletes_dependents_first(recorder):
    """Test teardown removes the service before deleting the configuration."""
    recorder.responses["createAutoScalingConfiguration"] = {
        "AutoScalingConfiguration": {"AutoScalingConfigurationArn": ARN}
    }
    graph, scaling, service = build_service_graph()
    graph.up(recorder.context)

    result = graph.down(recorder.context)

    assert result.ok
    assert result.succeeded == [service.node_id, scaling.node_id]
    assert recorder.calls[-1] == ("AppRunner", "deleteAutoScalingConfiguration", {"AutoScalingConfigurationArn": ARN})
    assert scaling.state == ResourceState.DELETED


def test_failed_create_skips_dependents_and_never_deletes(recorder):
    """Test a rejected create fails the run, skips dependents and is never deleted."""
    recorder.responses["createAutoScalingConfiguration"] = ApiError(
        "CreateAutoScalingConfiguration", "ServiceQuotaExceededException", "quota exceeded"
    )
    graph, scaling, service = build_service_graph()

    up = graph.up(recorder.context)
    assert not up.ok
    assert list(up.failed) == [scaling.node_id]
    assert up.skipped == [service.node_id]
    assert scaling.state == ResourceState.CREATE_FAILED
    assert service.state == ResourceState.UNPROVISIONED

    down = graph.down(recorder.context)
    assert down.succeeded == []
    assert "deleteAutoScalingConfiguration" not in recorder.operations()


def test_independent_nodes_still_run_after_failure(recorder):
    """Test a failure only blocks the failed node's dependents."""
    recorder.responses["createAutoScalingConfiguration"] = ApiError("CreateAutoScalingConfiguration", "Boom", "boom")
    graph, scaling, service = build_service_graph()
    role = graph.add(ResourceNode("InstanceRole", "AWS::IAM::Role", {"RoleName": "instance"}))

    result = graph.up(recorder.context)

    assert role.node_id in result.succeeded
    assert role.state == ResourceState.ACTIVE


def test_failed_delete_keeps_dependencies(recorder):
    """Test teardown is non-atomic: a failed delete keeps what it depends on."""
    recorder.responses["createAutoScalingConfiguration"] = {
        "AutoScalingConfiguration": {"AutoScalingConfigurationArn": ARN}
    }
    recorder.responses["deleteAutoScalingConfiguration"] = ApiError(
        "DeleteAutoScalingConfiguration", "InvalidStateException", "in use"
    )
    graph = ProvisioningGraph("stack")
    network = graph.add(ResourceNode("Network", "AWS::EC2::VPC", {"CidrBlock": "10.0.0.0/16"}))
    scaling = graph.add(auto_scaling_configuration(
        "ApprunnerAutoscaling", AUTOSCALING_PARAMETERS, depends_on=[network]
    ))
    role = graph.add(ResourceNode("InstanceRole", "AWS::IAM::Role", {"RoleName": "instance"}))
    graph.up(recorder.context)

    result = graph.down(recorder.context)

    assert list(result.failed) == [scaling.node_id]
    assert result.skipped == [network.node_id]
    assert result.succeeded == [role.node_id]
    assert network.state == ResourceState.ACTIVE
    assert role.state == ResourceState.DELETED
    assert scaling.state == ResourceState.DELETE_FAILED


@pytest.mark.parametrize("error", [
    UnknownOperationError("AppRunner has no operation 'deleteAutoScalingConfiguration'"),
    ValueError("operation_name must be a non-empty string"),
])
def test_locally_rejected_delete_does_not_stop_teardown(recorder, error):
    """Test a delete refused before any call is recorded and teardown carries on."""
    recorder.responses["createAutoScalingConfiguration"] = {
        "AutoScalingConfiguration": {"AutoScalingConfigurationArn": ARN}
    }
    recorder.responses["deleteAutoScalingConfiguration"] = error
    graph = ProvisioningGraph("stack")
    scaling = graph.add(auto_scaling_configuration("ApprunnerAutoscaling", AUTOSCALING_PARAMETERS))
    role = graph.add(ResourceNode("InstanceRole", "AWS::IAM::Role", {"RoleName": "instance"}))
    assert graph.up(recorder.context).ok

    result = graph.down(recorder.context)

    assert result.failed == {scaling.node_id: error}
    assert result.succeeded == [role.node_id]
    assert scaling.state == ResourceState.DELETE_FAILED
    assert role.state == ResourceState.DELETED


def test_explicit_dependency():
    """Test add_dependency orders nodes without a deferred reference."""
    graph = ProvisioningGraph("stack")
    connector = graph.add(ResourceNode("VpcConnector", "AWS::AppRunner::VpcConnector", {}))
    network = graph.add(ResourceNode("Network", "AWS::EC2::VPC", {}))
    graph.add_dependency(connector, network)
    assert [node.node_id for node in graph.create_order()] == ["Network", "VpcConnector"]


def test_cycle_is_detected():
    """Test a dependency cycle raises CyclicDependencyError."""
    graph = ProvisioningGraph("stack")
    first = graph.add(ResourceNode("First", "Example::Thing", {}))
    second = graph.add(ResourceNode("Second", "Example::Thing", {"ref": first.attribute("Id")}))
    graph.add_dependency(first, second)
    with pytest.raises(CyclicDependencyError):
        graph.create_order()


def test_reference_to_node_outside_graph():
    """Test a deferred owned by an unknown node is a graph error."""
    graph = ProvisioningGraph("stack")
    node = graph.add(ResourceNode("Service", "Example::Thing", {"ref": Deferred("Elsewhere.Arn", owner="Elsewhere")}))
    with pytest.raises(GraphError):
        graph.dependencies_of(node)


def test_duplicate_node_ids_rejected():
    """Test node ids are unique within a graph."""
    graph = ProvisioningGraph("stack")
    graph.add(ResourceNode("Service", "Example::Thing", {}))
    with pytest.raises(ValueError):
        graph.add(ResourceNode("Service", "Example::Thing", {}))


def test_resource_attributes_resolve_on_create(recorder):
    """Test attributes computed from materialized properties reach consumers."""
    graph = ProvisioningGraph("stack")
    service = graph.add(ResourceNode(
        "Service", "AWS::AppRunner::Service", {"Port": "80"},
        outputs=lambda props: {"ServiceUrl": "abc.awsapprunner.com"},
    ))
    url = service.attribute("ServiceUrl").apply(lambda value: f"https://{value}")
    output = graph.add(ResourceNode("ServiceUrlOutput", "Output", {"Value": url}))

    assert graph.up(recorder.context).ok
    assert output.materialized == {"Value": "https://abc.awsapprunner.com"}


def test_unknown_attribute_fails_node(recorder):
    """Test requesting an attribute the node does not produce fails its creation."""
    graph = ProvisioningGraph("stack")
    service = graph.add(ResourceNode("Service", "AWS::AppRunner::Service", {}))
    service.attribute("ServiceUrl")

    result = graph.up(recorder.context)
    assert list(result.failed) == ["Service"]
    assert service.state == ResourceState.CREATE_FAILED
