"""Kubernetes object models and node/environment helpers.

Resource quantities in ``capacity``, ``allocatable``, ``requests`` and
``limits`` are numbers in base units: cores for cpu, bytes otherwise.
"""

from __future__ import annotations

import ipaddress
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime

log = logging.getLogger(__name__)

NODE_NAME_ENV_VAR = "POD_NODE_NAME"
NAMESPACE_NAME_ENV_VAR = "POD_NAMESPACE_NAME"
DAEMON_MODE_ENV_VAR = "DAEMON_MODE"

NODE_READY = "Ready"
CONDITION_TRUE = "True"
NODE_HOSTNAME = "Hostname"
NODE_INTERNAL_IP = "InternalIP"
NODE_EXTERNAL_IP = "ExternalIP"


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    uid: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class NodeAddress:
    type: str
    address: str


@dataclass
class NodeCondition:
    type: str
    status: str


@dataclass
class Node:
    meta: ObjectMeta = field(default_factory=ObjectMeta)
    addresses: list[NodeAddress] = field(default_factory=list)
    conditions: list[NodeCondition] = field(default_factory=list)
    capacity: dict[str, float] = field(default_factory=dict)
    allocatable: dict[str, float] = field(default_factory=dict)


@dataclass
class ContainerPort:
    container_port: int


@dataclass
class Container:
    name: str = ""
    image: str = ""
    ports: list[ContainerPort] = field(default_factory=list)
    requests: dict[str, float] = field(default_factory=dict)
    limits: dict[str, float] = field(default_factory=dict)


@dataclass
class PodSpec:
    containers: list[Container] = field(default_factory=list)
    node_name: str = ""


@dataclass
class Pod:
    meta: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PodSpec = field(default_factory=PodSpec)
    pod_ip: str = ""
    start_time: datetime | None = None
    restart_counts: dict[str, int] = field(default_factory=dict)


def get_node_name() -> str:
    return os.environ.get(NODE_NAME_ENV_VAR, "")


def get_namespace_name() -> str:
    return os.environ.get(NAMESPACE_NAME_ENV_VAR, "")


def get_daemon_mode() -> str:
    return os.environ.get(DAEMON_MODE_ENV_VAR, "")


def get_field_selector(resource_type: str) -> str:
    """Field selector restricting watches to this node in daemon mode; empty selects everything."""
    selector = ""
    node_name = get_node_name()
    if get_daemon_mode() and node_name:
        if resource_type == "pods":
            selector = f"spec.nodeName={node_name}"
        elif resource_type == "nodes":
            selector = f"metadata.name={node_name}"
        else:
            log.info("invalid resource type: %s", resource_type)
    log.debug("using fieldSelector: %r for resourceType: %s", selector, resource_type)
    return selector


def _parse_ip(address: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(address)
    except ValueError:
        return None


def get_node_hostname_and_ip(node: Node) -> tuple[str, ipaddress.IPv4Address | ipaddress.IPv6Address]:
    """Return the hostname and IP of a ready node, raising ValueError otherwise."""
    for condition in node.conditions:
        if condition.type == NODE_READY and condition.status != CONDITION_TRUE:
            raise ValueError(f"node {node.meta.name} is not ready")
    hostname, ip = node.meta.name, ""
    for addr in node.addresses:
        if not addr.address:
            continue
        if addr.type == NODE_HOSTNAME:
            hostname = addr.address
        if addr.type == NODE_INTERNAL_IP and _parse_ip(addr.address) is not None:
            ip = addr.address
        if addr.type == NODE_EXTERNAL_IP and ip == "":
            ip = addr.address
    parsed = _parse_ip(ip)
    if parsed is None:
        raise ValueError(f"node {node.meta.name} has no valid hostname and/or IP address: {hostname} {ip}")
    return hostname, parsed