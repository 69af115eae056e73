"""
bbl.bosh.cloud_config — The director's cloud config.

CloudConfigurator turns stack outputs into a CloudConfigInput; render_cloud_config
turns that into the document BOSH expects; CloudConfigManager uploads it.

Each internal subnet is described with its gateway at .1, .2-.3 and the
broadcast address reserved for AWS, and the top 64 usable addresses left
static for deployments that pin IPs.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import Any

import yaml

from bbl.aws.cloudformation.stacks import Stack
from bbl.storage import LBType
from bbl.ui import Logger

logger = logging.getLogger(__name__)

NETWORK_NAME = "private"
STATIC_RANGE_SIZE = 65

VM_TYPES = (
    ("default", "m3.medium", 10240),
    ("m3.medium", "m3.medium", 10240),
    ("m3.large", "m3.large", 10240),
    ("c3.large", "c3.large", 10240),
    ("c3.xlarge", "c3.xlarge", 10240),
    ("c3.2xlarge", "c3.2xlarge", 10240),
    ("c4.large", "c4.large", 10240),
    ("r3.xlarge", "r3.xlarge", 10240),
    ("t2.micro", "t2.micro", 10240),
)
DISK_TYPES = (
    ("1GB", 1024),
    ("5GB", 5120),
    ("10GB", 10240),
    ("50GB", 51200),
    ("100GB", 102400),
    ("500GB", 512000),
    ("1TB", 1048576),
)


@dataclass(frozen=True)
class SubnetInput:
    az: str
    subnet: str
    cidr: str
    security_groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class LoadBalancerExtension:
    name: str
    elb_name: str
    security_groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class CloudConfigInput:
    azs: tuple[str, ...]
    lb_type: str = LBType.UNSET
    subnets: tuple[SubnetInput, ...] = ()
    lbs: tuple[LoadBalancerExtension, ...] = ()


def _lb_extension(outputs: dict[str, str], name: str, prefix: str) -> LoadBalancerExtension:
    return LoadBalancerExtension(
        name=name,
        elb_name=outputs.get(f"{prefix}LoadBalancer", ""),
        security_groups=(
            outputs.get(f"{prefix}InternalSecurityGroup", ""),
            outputs.get("InternalSecurityGroup", ""),
        ),
    )


class CloudConfigurator:
    """Pure translation from a described stack and its zones to a CloudConfigInput."""

    def configure(self, stack: Stack, azs: list[str]) -> CloudConfigInput:
        outputs = stack.outputs
        subnets = tuple(
            SubnetInput(
                az=outputs.get(f"InternalSubnet{index}AZ", az),
                subnet=outputs.get(f"InternalSubnet{index}Name", ""),
                cidr=outputs.get(f"InternalSubnet{index}CIDR", ""),
                security_groups=(outputs.get("InternalSecurityGroup", ""),),
            )
            for index, az in enumerate(azs, start=1)
        )

        if "CFRouterLoadBalancer" in outputs:
            lb_type = LBType.CF
            lbs = (
                _lb_extension(outputs, "router-lb", "CFRouter"),
                _lb_extension(outputs, "ssh-proxy-lb", "CFSSHProxy"),
            )
        elif "ConcourseLoadBalancer" in outputs:
            lb_type = LBType.CONCOURSE
            lbs = (_lb_extension(outputs, "lb", "Concourse"),)
        else:
            lb_type = LBType.UNSET
            lbs = ()

        return CloudConfigInput(azs=tuple(azs), lb_type=lb_type, subnets=subnets, lbs=lbs)


def _zone_name(index: int) -> str:
    return f"z{index}"


def _subnet(index: int, subnet: SubnetInput) -> dict[str, Any]:
    network = ipaddress.ip_network(subnet.cidr)
    first = network.network_address
    last = network.broadcast_address
    return {
        "range": subnet.cidr,
        "gateway": str(first + 1),
        "az": _zone_name(index),
        "reserved": [f"{first + 2}-{first + 3}", str(last)],
        "static": [f"{last - STATIC_RANGE_SIZE}-{last - 1}"],
        "cloud_properties": {
            "subnet": subnet.subnet,
            "security_groups": list(subnet.security_groups),
        },
    }


def render_cloud_config(config: CloudConfigInput) -> dict[str, Any]:
    """Build the cloud-config document; every call returns fresh containers."""
    zone_names = [_zone_name(index) for index in range(1, len(config.azs) + 1)]
    vm_extensions: list[dict[str, Any]] = [
        {
            "name": "100GB_ephemeral_disk",
            "cloud_properties": {"ephemeral_disk": {"size": 102400, "type": "gp2"}},
        }
    ]
    for lb in config.lbs:
        vm_extensions.append(
            {
                "name": lb.name,
                "cloud_properties": {
                    "elbs": [lb.elb_name],
                    "security_groups": list(lb.security_groups),
                },
            }
        )

    return {
        "azs": [
            {"name": name, "cloud_properties": {"availability_zone": az}}
            for name, az in zip(zone_names, config.azs)
        ],
        "vm_types": [
            {
                "name": name,
                "cloud_properties": {
                    "instance_type": instance_type,
                    "ephemeral_disk": {"size": disk, "type": "gp2"},
                },
            }
            for name, instance_type, disk in VM_TYPES
        ],
        "disk_types": [
            {"name": name, "disk_size": size, "cloud_properties": {"type": "gp2"}}
            for name, size in DISK_TYPES
        ],
        "compilation": {
            "workers": 6,
            "network": NETWORK_NAME,
            "az": zone_names[0] if zone_names else "",
            "reuse_compilation_vms": True,
            "vm_type": "c3.large",
            "vm_extensions": ["100GB_ephemeral_disk"],
        },
        "networks": [
            {
                "name": NETWORK_NAME,
                "type": "manual",
                "subnets": [
                    _subnet(index, subnet)
                    for index, subnet in enumerate(config.subnets, start=1)
                ],
            }
        ],
        "vm_extensions": vm_extensions,
    }


def dump_cloud_config(config: CloudConfigInput) -> str:
    return yaml.safe_dump(render_cloud_config(config), sort_keys=False, default_flow_style=False)


class CloudConfigManager:
    def __init__(self, ui: Logger) -> None:
        self._ui = ui

    def update(self, config: CloudConfigInput, bosh_client: Any) -> None:
        self._ui.step("applying cloud config")
        document = dump_cloud_config(config)
        logger.debug("Uploading cloud config for zones %s", ", ".join(config.azs))
        bosh_client.update_cloud_config(document)
