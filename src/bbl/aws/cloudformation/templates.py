"""
bbl.aws.cloudformation.templates — CloudFormation template for a bbl environment.

The template is assembled from fragments, each a dict with any of the
Parameters / Resources / Outputs sections:

    ssh key pair parameter
    VPC + internet gateway
    BOSH subnet (10.0.0.0/24, public) + route table
    internal subnets, one /20 per availability zone, routed through a NAT gateway
    BOSH + internal security groups
    BOSH elastic IP and director URL
    IAM user the director's CPI runs as
    optional load balancers: cf (router + ssh proxy) or concourse
"""

from __future__ import annotations

from typing import Any

from bbl.storage import LBType
from bbl.ui import Logger

TEMPLATE_FORMAT_VERSION = "2010-09-09"
VPC_CIDR = "10.0.0.0/16"
BOSH_SUBNET_CIDR = "10.0.0.0/24"
ANYWHERE = "0.0.0.0/0"

Template = dict[str, Any]


def _ref(name: str) -> dict[str, str]:
    return {"Ref": name}


def _get_att(resource: str, attribute: str) -> dict[str, list[str]]:
    return {"Fn::GetAtt": [resource, attribute]}


def _select_az(index: int) -> dict[str, Any]:
    return {"Fn::Select": [str(index), {"Fn::GetAZs": ""}]}


def _tags(name: str) -> list[dict[str, str]]:
    return [{"Key": "Name", "Value": name}]


def _ingress(protocol: str, from_port: int, to_port: int, **source: Any) -> dict[str, Any]:
    rule: dict[str, Any] = {"IpProtocol": protocol, "FromPort": from_port, "ToPort": to_port}
    rule.update(source or {"CidrIp": ANYWHERE})
    return rule


def internal_subnet_cidr(index: int) -> str:
    """CIDR of the 1-based internal subnet: 10.0.16.0/20, 10.0.32.0/20, ..."""
    return f"10.0.{16 * index}.0/20"


def load_balancer_subnet_cidr(index: int) -> str:
    """CIDR of the 1-based public load balancer subnet: 10.0.2.0/24, 10.0.3.0/24, ..."""
    return f"10.0.{1 + index}.0/24"


def ssh_key_pair(key_pair_name: str) -> Template:
    return {
        "Parameters": {
            "SSHKeyPairName": {
                "Type": "AWS::EC2::KeyPair::KeyName",
                "Default": key_pair_name,
                "Description": "SSH key pair name for the BOSH director",
            }
        }
    }


def vpc() -> Template:
    return {
        "Resources": {
            "VPC": {
                "Type": "AWS::EC2::VPC",
                "Properties": {
                    "CidrBlock": VPC_CIDR,
                    "EnableDnsSupport": True,
                    "EnableDnsHostnames": True,
                    "Tags": _tags("bbl"),
                },
            },
            "VPCGatewayInternetGateway": {"Type": "AWS::EC2::InternetGateway"},
            "VPCGatewayAttachment": {
                "Type": "AWS::EC2::VPCGatewayAttachment",
                "Properties": {
                    "VpcId": _ref("VPC"),
                    "InternetGatewayId": _ref("VPCGatewayInternetGateway"),
                },
            },
        },
        "Outputs": {"VPCID": {"Value": _ref("VPC")}},
    }


def _public_route_table(name: str) -> Template:
    return {
        name: {"Type": "AWS::EC2::RouteTable", "Properties": {"VpcId": _ref("VPC")}},
        f"{name}Route": {
            "Type": "AWS::EC2::Route",
            "DependsOn": "VPCGatewayAttachment",
            "Properties": {
                "DestinationCidrBlock": ANYWHERE,
                "GatewayId": _ref("VPCGatewayInternetGateway"),
                "RouteTableId": _ref(name),
            },
        },
    }


def bosh_subnet() -> Template:
    resources: dict[str, Any] = {
        "BOSHSubnet": {
            "Type": "AWS::EC2::Subnet",
            "Properties": {
                "VpcId": _ref("VPC"),
                "CidrBlock": BOSH_SUBNET_CIDR,
                "AvailabilityZone": _select_az(0),
                "Tags": _tags("BOSH"),
            },
        },
        "BOSHSubnetRouteTableAssociation": {
            "Type": "AWS::EC2::SubnetRouteTableAssociation",
            "Properties": {
                "RouteTableId": _ref("BOSHRouteTable"),
                "SubnetId": _ref("BOSHSubnet"),
            },
        },
    }
    resources.update(_public_route_table("BOSHRouteTable"))
    return {
        "Resources": resources,
        "Outputs": {
            "BOSHSubnet": {"Value": _ref("BOSHSubnet")},
            "BOSHSubnetAZ": {"Value": _get_att("BOSHSubnet", "AvailabilityZone")},
        },
    }


def nat_gateway() -> Template:
    return {
        "Resources": {
            "NATEIP": {
                "Type": "AWS::EC2::EIP",
                "DependsOn": "VPCGatewayAttachment",
                "Properties": {"Domain": "vpc"},
            },
            "NATGateway": {
                "Type": "AWS::EC2::NatGateway",
                "Properties": {
                    "AllocationId": _get_att("NATEIP", "AllocationId"),
                    "SubnetId": _ref("BOSHSubnet"),
                },
            },
            "InternalRouteTable": {
                "Type": "AWS::EC2::RouteTable",
                "Properties": {"VpcId": _ref("VPC")},
            },
            "InternalRoute": {
                "Type": "AWS::EC2::Route",
                "Properties": {
                    "DestinationCidrBlock": ANYWHERE,
                    "NatGatewayId": _ref("NATGateway"),
                    "RouteTableId": _ref("InternalRouteTable"),
                },
            },
        }
    }


def internal_subnets(az_count: int) -> Template:
    resources: dict[str, Any] = {}
    outputs: dict[str, Any] = {}
    for index in range(1, az_count + 1):
        subnet = f"InternalSubnet{index}"
        cidr = internal_subnet_cidr(index)
        resources[subnet] = {
            "Type": "AWS::EC2::Subnet",
            "Properties": {
                "VpcId": _ref("VPC"),
                "CidrBlock": cidr,
                "AvailabilityZone": _select_az(index - 1),
                "Tags": _tags(subnet),
            },
        }
        resources[f"{subnet}RouteTableAssociation"] = {
            "Type": "AWS::EC2::SubnetRouteTableAssociation",
            "Properties": {"RouteTableId": _ref("InternalRouteTable"), "SubnetId": _ref(subnet)},
        }
        outputs[f"{subnet}Name"] = {"Value": _ref(subnet)}
        outputs[f"{subnet}AZ"] = {"Value": _get_att(subnet, "AvailabilityZone")}
        outputs[f"{subnet}CIDR"] = {"Value": cidr}
    return {"Resources": resources, "Outputs": outputs}


def security_groups() -> Template:
    return {
        "Resources": {
            "BOSHSecurityGroup": {
                "Type": "AWS::EC2::SecurityGroup",
                "Properties": {
                    "VpcId": _ref("VPC"),
                    "GroupDescription": "BOSH",
                    "SecurityGroupIngress": [
                        _ingress("tcp", 22, 22),
                        _ingress("tcp", 6868, 6868),
                        _ingress("tcp", 25555, 25555),
                        _ingress(
                            "-1", 0, 65535, SourceSecurityGroupId=_ref("InternalSecurityGroup")
                        ),
                    ],
                },
            },
            "InternalSecurityGroup": {
                "Type": "AWS::EC2::SecurityGroup",
                "Properties": {
                    "VpcId": _ref("VPC"),
                    "GroupDescription": "Internal",
                    "SecurityGroupIngress": [
                        _ingress("tcp", 0, 65535),
                        _ingress("udp", 0, 65535),
                        _ingress("icmp", -1, -1),
                    ],
                },
            },
            "InternalSecurityGroupIngressTCPfromBOSH": {
                "Type": "AWS::EC2::SecurityGroupIngress",
                "Properties": {
                    "GroupId": _ref("InternalSecurityGroup"),
                    "SourceSecurityGroupId": _ref("BOSHSecurityGroup"),
                    "IpProtocol": "tcp",
                    "FromPort": 0,
                    "ToPort": 65535,
                },
            },
            "InternalSecurityGroupIngressUDPfromBOSH": {
                "Type": "AWS::EC2::SecurityGroupIngress",
                "Properties": {
                    "GroupId": _ref("InternalSecurityGroup"),
                    "SourceSecurityGroupId": _ref("BOSHSecurityGroup"),
                    "IpProtocol": "udp",
                    "FromPort": 0,
                    "ToPort": 65535,
                },
            },
        },
        "Outputs": {
            "BOSHSecurityGroup": {"Value": _ref("BOSHSecurityGroup")},
            "InternalSecurityGroup": {"Value": _ref("InternalSecurityGroup")},
        },
    }


def bosh_eip() -> Template:
    return {
        "Resources": {
            "BOSHEIP": {
                "Type": "AWS::EC2::EIP",
                "DependsOn": "VPCGatewayAttachment",
                "Properties": {"Domain": "vpc"},
            }
        },
        "Outputs": {
            "BOSHEIP": {"Value": _ref("BOSHEIP")},
            "BOSHURL": {"Value": {"Fn::Join": ["", ["https://", _ref("BOSHEIP"), ":25555"]]}},
        },
    }


def bosh_iam_user() -> Template:
    return {
        "Resources": {
            "BOSHUser": {
                "Type": "AWS::IAM::User",
                "Properties": {
                    "Policies": [
                        {
                            "PolicyName": "aws-cpi",
                            "PolicyDocument": {
                                "Version": "2012-10-17",
                                "Statement": [
                                    {
                                        "Action": [
                                            "ec2:AssociateAddress",
                                            "ec2:AttachVolume",
                                            "ec2:CreateVolume",
                                            "ec2:DeleteSnapshot",
                                            "ec2:DeleteVolume",
                                            "ec2:Describe*",
                                            "ec2:DetachVolume",
                                            "ec2:CreateSnapshot",
                                            "ec2:CreateTags",
                                            "ec2:RunInstances",
                                            "ec2:TerminateInstances",
                                            "ec2:RegisterImage",
                                            "ec2:DeregisterImage",
                                        ],
                                        "Effect": "Allow",
                                        "Resource": "*",
                                    },
                                    {
                                        "Action": ["elasticloadbalancing:*"],
                                        "Effect": "Allow",
                                        "Resource": "*",
                                    },
                                ],
                            },
                        }
                    ]
                },
            },
            "BOSHUserAccessKey": {
                "Type": "AWS::IAM::AccessKey",
                "Properties": {"UserName": _ref("BOSHUser")},
            },
        },
        "Outputs": {
            "BOSHUserAccessKey": {"Value": _ref("BOSHUserAccessKey")},
            "BOSHUserSecretAccessKey": {
                "Value": _get_att("BOSHUserAccessKey", "SecretAccessKey")
            },
        },
    }


def load_balancer_subnets(az_count: int) -> Template:
    resources: dict[str, Any] = {}
    resources.update(_public_route_table("LoadBalancerRouteTable"))
    for index in range(1, az_count + 1):
        subnet = f"LoadBalancerSubnet{index}"
        resources[subnet] = {
            "Type": "AWS::EC2::Subnet",
            "Properties": {
                "VpcId": _ref("VPC"),
                "CidrBlock": load_balancer_subnet_cidr(index),
                "AvailabilityZone": _select_az(index - 1),
                "Tags": _tags(subnet),
            },
        }
        resources[f"{subnet}RouteTableAssociation"] = {
            "Type": "AWS::EC2::SubnetRouteTableAssociation",
            "Properties": {
                "RouteTableId": _ref("LoadBalancerRouteTable"),
                "SubnetId": _ref(subnet),
            },
        }
    return {"Resources": resources}


def _load_balancer(
    name: str,
    *,
    az_count: int,
    listeners: list[dict[str, Any]],
    health_check_target: str,
    public_ports: list[int],
    backend_ports: list[int],
) -> Template:
    security_group = f"{name}SecurityGroup"
    internal_security_group = f"{name}InternalSecurityGroup"
    load_balancer = f"{name}LoadBalancer"
    return {
        "Resources": {
            security_group: {
                "Type": "AWS::EC2::SecurityGroup",
                "Properties": {
                    "VpcId": _ref("VPC"),
                    "GroupDescription": name,
                    "SecurityGroupIngress": [_ingress("tcp", port, port) for port in public_ports],
                },
            },
            internal_security_group: {
                "Type": "AWS::EC2::SecurityGroup",
                "Properties": {
                    "VpcId": _ref("VPC"),
                    "GroupDescription": f"{name}Internal",
                    "SecurityGroupIngress": [
                        _ingress("tcp", port, port, SourceSecurityGroupId=_ref(security_group))
                        for port in backend_ports
                    ],
                },
            },
            load_balancer: {
                "Type": "AWS::ElasticLoadBalancing::LoadBalancer",
                "Properties": {
                    "CrossZone": True,
                    "HealthCheck": {
                        "HealthyThreshold": "5",
                        "Interval": "12",
                        "Target": health_check_target,
                        "Timeout": "2",
                        "UnhealthyThreshold": "2",
                    },
                    "Listeners": listeners,
                    "SecurityGroups": [_ref(security_group)],
                    "Subnets": [_ref(f"LoadBalancerSubnet{i}") for i in range(1, az_count + 1)],
                },
            },
        },
        "Outputs": {
            load_balancer: {"Value": _ref(load_balancer)},
            f"{load_balancer}URL": {"Value": _get_att(load_balancer, "DNSName")},
            internal_security_group: {"Value": _ref(internal_security_group)},
        },
    }


def _listener(
    port: int, protocol: str, instance_port: int, instance_protocol: str, certificate_arn: str = ""
) -> dict[str, Any]:
    listener: dict[str, Any] = {
        "LoadBalancerPort": str(port),
        "Protocol": protocol,
        "InstancePort": str(instance_port),
        "InstanceProtocol": instance_protocol,
    }
    if certificate_arn:
        listener["SSLCertificateId"] = certificate_arn
    return listener


def concourse_load_balancer(az_count: int, certificate_arn: str) -> Template:
    return _load_balancer(
        "Concourse",
        az_count=az_count,
        listeners=[
            _listener(80, "tcp", 8080, "tcp"),
            _listener(2222, "tcp", 2222, "tcp"),
            _listener(443, "ssl", 8080, "tcp", certificate_arn),
        ],
        health_check_target="tcp:8080",
        public_ports=[80, 2222, 443],
        backend_ports=[8080, 2222],
    )


def cf_router_load_balancer(az_count: int, certificate_arn: str) -> Template:
    return _load_balancer(
        "CFRouter",
        az_count=az_count,
        listeners=[
            _listener(80, "http", 80, "http"),
            _listener(443, "https", 80, "http", certificate_arn),
            _listener(4443, "ssl", 80, "tcp", certificate_arn),
        ],
        health_check_target="tcp:80",
        public_ports=[80, 443, 4443],
        backend_ports=[80],
    )


def cf_ssh_proxy_load_balancer(az_count: int) -> Template:
    return _load_balancer(
        "CFSSHProxy",
        az_count=az_count,
        listeners=[_listener(2222, "tcp", 2222, "tcp")],
        health_check_target="tcp:2222",
        public_ports=[2222],
        backend_ports=[2222],
    )


def merge(*fragments: Template) -> Template:
    """Combine fragments into one template; later fragments win on name clashes."""
    template: Template = {
        "AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION,
        "Description": "Infrastructure for a BOSH deployment.",
    }
    for fragment in fragments:
        for section, entries in fragment.items():
            template.setdefault(section, {}).update(entries)
    return template


class TemplateBuilder:
    def __init__(self, ui: Logger) -> None:
        self._ui = ui

    def build(
        self,
        *,
        key_pair_name: str,
        az_count: int,
        lb_type: str = LBType.UNSET,
        lb_certificate_arn: str = "",
    ) -> Template:
        self._ui.step("generating cloudformation template")
        fragments = [
            ssh_key_pair(key_pair_name),
            vpc(),
            bosh_subnet(),
            nat_gateway(),
            internal_subnets(az_count),
            security_groups(),
            bosh_eip(),
            bosh_iam_user(),
        ]
        if lb_type == LBType.CONCOURSE:
            fragments += [
                load_balancer_subnets(az_count),
                concourse_load_balancer(az_count, lb_certificate_arn),
            ]
        elif lb_type == LBType.CF:
            fragments += [
                load_balancer_subnets(az_count),
                cf_router_load_balancer(az_count, lb_certificate_arn),
                cf_ssh_proxy_load_balancer(az_count),
            ]
        return merge(*fragments)
