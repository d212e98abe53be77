"""Matching of discovered Kubernetes resources against discovery rule selectors."""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .kube import ObjectMeta, PodSpec

POD_TYPE = "pod"
SERVICE_TYPE = "service"
NODE_TYPE = "node"

_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1


@dataclass
class Selectors:
    """Selectors of a discovery rule."""

    images: list[str] = field(default_factory=list)
    labels: dict[str, list[str]] = field(default_factory=dict)
    namespaces: list[str] = field(default_factory=list)
    resource_type: str = ""


@dataclass
class PluginConfig:
    """A discovery rule."""

    name: str = ""
    type: str = ""
    selectors: Selectors = field(default_factory=Selectors)
    port: str = ""


@dataclass
class Resource:
    """A discovered pod, service or node."""

    kind: str = POD_TYPE
    ip: str = ""
    meta: ObjectMeta = field(default_factory=ObjectMeta)
    pod_spec: PodSpec = field(default_factory=PodSpec)
    status: str = ""


@dataclass(frozen=True)
class _Glob:
    patterns: tuple[str, ...]

    def match(self, value: str) -> bool:
        return any(fnmatch.fnmatchcase(value, pattern) for pattern in self.patterns)


def _compile(patterns: Iterable[str]) -> _Glob | None:
    patterns = tuple(patterns)
    return _Glob(patterns) if patterns else None


def _multi_compile(patterns: Mapping[str, Iterable[str]]) -> dict[str, _Glob] | None:
    compiled = {key: glob for key, values in patterns.items() if (glob := _compile(values)) is not None}
    return compiled or None


def _parse_port(port: str) -> int:
    if not re.fullmatch(r"[+-]?\d+", port):
        raise ValueError(f"invalid port: {port!r}")
    value = int(port)
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise ValueError(f"port out of range: {port!r}")
    return value


def resource_type(kind: str) -> str:
    """Validate a resource kind; an empty kind means pods."""
    if kind == "":
        return POD_TYPE
    if kind in (POD_TYPE, SERVICE_TYPE, NODE_TYPE):
        return kind
    raise ValueError(f"invalid resource type: {kind}")


def _matches_tags(matchers: Mapping[str, _Glob], tags: Mapping[str, str]) -> bool:
    if not tags:
        return False
    return all(key in tags and matcher.match(tags[key]) for key, matcher in matchers.items())


class ResourceFilter:
    """Decides whether a resource is selected by a discovery rule.

    Raises ValueError for an invalid resource type, for a non-node rule without
    selectors, and for an image rule whose port is not a 32-bit integer.
    """

    def __init__(self, config: PluginConfig) -> None:
        selectors = config.selectors
        self.images = _compile(selectors.images)
        self.labels = _multi_compile(selectors.labels)
        self.namespaces = _compile(selectors.namespaces)
        self.kind = resource_type(selectors.resource_type)
        if self.kind != NODE_TYPE and self.images is None and self.labels is None and self.namespaces is None:
            raise ValueError("no selectors specified")
        self.port = _parse_port(config.port) if self.images is not None else 0

    def matches(self, resource: Resource) -> bool:
        if self.kind != resource.kind:
            return False
        if self.labels is not None and not _matches_tags(self.labels, resource.meta.labels):
            return False
        if self.namespaces is not None and not self.namespaces.match(resource.meta.namespace):
            return False
        if self.images is not None:
            for container in resource.pod_spec.containers:
                if self.images.match(container.image):
                    # The first matching image decides; it must expose the port.
                    return any(port.container_port == self.port for port in container.ports)
            return False
        return True