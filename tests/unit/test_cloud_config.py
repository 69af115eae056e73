"""Unit tests for bbl.bosh.cloud_config."""

from __future__ import annotations

import io
from unittest.mock import MagicMock

import yaml

from bbl.aws.cloudformation.stacks import Stack
from bbl.bosh.cloud_config import (
    CloudConfigInput,
    CloudConfigManager,
    CloudConfigurator,
    LoadBalancerExtension,
    SubnetInput,
    render_cloud_config,
)
from bbl.ui import Logger

BASE_OUTPUTS = {
    "InternalSecurityGroup": "sg-internal",
    "InternalSubnet1Name": "subnet-a",
    "InternalSubnet1AZ": "us-east-1a",
    "InternalSubnet1CIDR": "10.0.16.0/20",
    "InternalSubnet2Name": "subnet-b",
    "InternalSubnet2AZ": "us-east-1b",
    "InternalSubnet2CIDR": "10.0.32.0/20",
}


def test_configure_without_load_balancer() -> None:
    stack = Stack(name="bbl-aws-1", outputs=dict(BASE_OUTPUTS))

    config = CloudConfigurator().configure(stack, ["us-east-1a", "us-east-1b"])

    assert config == CloudConfigInput(
        azs=("us-east-1a", "us-east-1b"),
        lb_type="",
        subnets=(
            SubnetInput("us-east-1a", "subnet-a", "10.0.16.0/20", ("sg-internal",)),
            SubnetInput("us-east-1b", "subnet-b", "10.0.32.0/20", ("sg-internal",)),
        ),
        lbs=(),
    )


def test_configure_cf_load_balancers() -> None:
    outputs = dict(
        BASE_OUTPUTS,
        CFRouterLoadBalancer="router-elb",
        CFRouterInternalSecurityGroup="sg-router",
        CFSSHProxyLoadBalancer="ssh-elb",
        CFSSHProxyInternalSecurityGroup="sg-ssh",
    )

    config = CloudConfigurator().configure(Stack(name="s", outputs=outputs), ["us-east-1a"])

    assert config.lb_type == "cf"
    assert config.lbs == (
        LoadBalancerExtension("router-lb", "router-elb", ("sg-router", "sg-internal")),
        LoadBalancerExtension("ssh-proxy-lb", "ssh-elb", ("sg-ssh", "sg-internal")),
    )


def test_configure_concourse_load_balancer() -> None:
    outputs = dict(
        BASE_OUTPUTS,
        ConcourseLoadBalancer="concourse-elb",
        ConcourseInternalSecurityGroup="sg-concourse",
    )

    config = CloudConfigurator().configure(Stack(name="s", outputs=outputs), ["us-east-1a"])

    assert config.lb_type == "concourse"
    assert config.lbs == (
        LoadBalancerExtension("lb", "concourse-elb", ("sg-concourse", "sg-internal")),
    )


def test_render_subnet_ranges() -> None:
    config = CloudConfigInput(
        azs=("us-east-1a",),
        subnets=(SubnetInput("us-east-1a", "subnet-a", "10.0.16.0/20", ("sg-internal",)),),
    )

    document = render_cloud_config(config)

    assert document["azs"] == [
        {"name": "z1", "cloud_properties": {"availability_zone": "us-east-1a"}}
    ]
    assert document["networks"][0]["subnets"] == [
        {
            "range": "10.0.16.0/20",
            "gateway": "10.0.16.1",
            "az": "z1",
            "reserved": ["10.0.16.2-10.0.16.3", "10.0.31.255"],
            "static": ["10.0.31.190-10.0.31.254"],
            "cloud_properties": {"subnet": "subnet-a", "security_groups": ["sg-internal"]},
        }
    ]
    assert document["compilation"]["az"] == "z1"


def test_render_adds_lb_vm_extensions() -> None:
    config = CloudConfigInput(
        azs=("us-east-1a",),
        lbs=(LoadBalancerExtension("lb", "concourse-elb", ("sg-c", "sg-i")),),
    )

    extensions = render_cloud_config(config)["vm_extensions"]

    assert [extension["name"] for extension in extensions] == ["100GB_ephemeral_disk", "lb"]
    assert extensions[1]["cloud_properties"] == {
        "elbs": ["concourse-elb"],
        "security_groups": ["sg-c", "sg-i"],
    }


def test_manager_uploads_rendered_yaml(ui: Logger, stdout: io.StringIO) -> None:
    client = MagicMock()
    config = CloudConfigInput(azs=("us-east-1a",))

    CloudConfigManager(ui).update(config, client)

    uploaded = client.update_cloud_config.call_args.args[0]
    assert yaml.safe_load(uploaded) == render_cloud_config(config)
    assert "&id" not in uploaded
    assert stdout.getvalue() == "step: applying cloud config\n"
