"""Processor adding pod metadata, resource requests and limits to pod and container metric sets."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from decimal import Decimal

from ..kube import Container, Pod
from ..labels import LabelCopier
from ..metrics import (
    LABEL_CONTAINER_BASE_IMAGE,
    LABEL_CONTAINER_NAME,
    LABEL_HOST_ID,
    LABEL_HOSTNAME,
    LABEL_METRIC_SET_TYPE,
    LABEL_NAMESPACE_NAME,
    LABEL_NODENAME,
    LABEL_POD_ID,
    LABEL_POD_NAME,
    METRIC_CPU_LIMIT,
    METRIC_CPU_REQUEST,
    METRIC_EPHEMERAL_STORAGE_LIMIT,
    METRIC_EPHEMERAL_STORAGE_REQUEST,
    METRIC_MEMORY_LIMIT,
    METRIC_MEMORY_REQUEST,
    METRIC_RESTART_COUNT,
    METRIC_SET_TYPE_POD,
    METRIC_SET_TYPE_POD_CONTAINER,
    RESOURCE_REQUEST_METRICS,
    UNITS_COUNT,
    DataBatch,
    Metric,
    MetricSet,
    MetricType,
    MetricValue,
    ValueType,
    pod_container_key,
    pod_key,
)

log = logging.getLogger(__name__)

RESOURCE_CPU = "cpu"
RESOURCE_MEMORY = "memory"
RESOURCE_EPHEMERAL_STORAGE = "ephemeral-storage"


def _milli_value(quantity: float) -> int:
    return math.ceil(Decimal(str(quantity)) * 1000)


def _value(quantity: float) -> int:
    return math.ceil(Decimal(str(quantity)))


def _int_value(value: int) -> MetricValue:
    return MetricValue(int_value=value, metric_type=MetricType.GAUGE, value_type=ValueType.INT64)


def update_container_resources_and_limits(metric_set: MetricSet, container: Container) -> None:
    """Set request and limit metrics of ``container`` on ``metric_set``.

    Requests of resources without a known metric register a new ``<resource>/request``
    metric. Missing cpu, memory and ephemeral storage requests and limits are set to zero.
    """
    requests = container.requests
    for resource, quantity in requests.items():
        metric = RESOURCE_REQUEST_METRICS.get(resource)
        if metric is None:
            metric = Metric(
                name=f"{resource}/request",
                description=f"{resource} resource request. This metric is Kubernetes specific.",
                type=MetricType.GAUGE,
                value_type=ValueType.INT64,
                units=UNITS_COUNT,
            )
            RESOURCE_REQUEST_METRICS[resource] = metric
        amount = _milli_value(quantity) if resource == RESOURCE_CPU else _value(quantity)
        metric_set.metric_values[metric.name] = _int_value(amount)

    for resource, metric in ((RESOURCE_CPU, METRIC_CPU_REQUEST),
                             (RESOURCE_MEMORY, METRIC_MEMORY_REQUEST),
                             (RESOURCE_EPHEMERAL_STORAGE, METRIC_EPHEMERAL_STORAGE_REQUEST)):
        if resource not in requests:
            metric_set.metric_values[metric.name] = _int_value(0)

    limits = container.limits
    cpu_limit = _milli_value(limits[RESOURCE_CPU]) if RESOURCE_CPU in limits else 0
    metric_set.metric_values[METRIC_CPU_LIMIT.name] = _int_value(cpu_limit)
    for resource, metric in ((RESOURCE_MEMORY, METRIC_MEMORY_LIMIT),
                             (RESOURCE_EPHEMERAL_STORAGE, METRIC_EPHEMERAL_STORAGE_LIMIT)):
        amount = _value(limits[resource]) if resource in limits else 0
        metric_set.metric_values[metric.name] = _int_value(amount)


class PodBasedEnricher:
    """Enriches pod and container metric sets from pod definitions.

    ``pod_lister`` maps ``(namespace, pod name)`` to the pod definition.
    Missing pods or containers are added as stub metric sets.
    """

    name = "pod_based_enricher"

    def __init__(self, pod_lister: Mapping[tuple[str, str], Pod], label_copier: LabelCopier) -> None:
        self.pod_lister = pod_lister
        self.label_copier = label_copier

    def process(self, batch: DataBatch) -> DataBatch:
        new_ms: dict[str, MetricSet] = {}
        for key, metric_set in batch.metric_sets.items():
            ms_type = metric_set.labels.get(LABEL_METRIC_SET_TYPE)
            if ms_type not in (METRIC_SET_TYPE_POD, METRIC_SET_TYPE_POD_CONTAINER):
                continue
            namespace = metric_set.labels.get(LABEL_NAMESPACE_NAME, "")
            pod_name = metric_set.labels.get(LABEL_POD_NAME, "")
            pod = self._get_pod(namespace, pod_name)
            if pod is None:
                log.debug("Failed to get pod %s from cache", pod_key(namespace, pod_name))
                continue
            if ms_type == METRIC_SET_TYPE_POD:
                self._add_pod_info(metric_set, pod, batch, new_ms)
            else:
                self._add_container_info(key, metric_set, pod, batch, new_ms)
        batch.metric_sets.update(new_ms)
        return batch

    def _get_pod(self, namespace: str, name: str) -> Pod | None:
        try:
            return self.pod_lister[(namespace, name)]
        except KeyError:
            return None

    def _add_container_info(self, key: str, container_ms: MetricSet, pod: Pod, batch: DataBatch,
                            new_ms: dict[str, MetricSet]) -> None:
        ns, name = pod.meta.namespace, pod.meta.name
        for container in pod.spec.containers:
            if key == pod_container_key(ns, name, container.name):
                update_container_resources_and_limits(container_ms, container)
                container_ms.labels.setdefault(LABEL_CONTAINER_BASE_IMAGE, container.image)
                break

        for container_name, restarts in pod.restart_counts.items():
            if key == pod_container_key(ns, name, container_name):
                container_ms.metric_values[METRIC_RESTART_COUNT.name] = _int_value(restarts)
                if pod.start_time is not None:
                    container_ms.entity_create_time = pod.start_time
                break

        container_ms.labels[LABEL_POD_ID] = pod.meta.uid
        self.label_copier.copy(pod.meta.labels, container_ms.labels)

        namespace = container_ms.labels.get(LABEL_NAMESPACE_NAME, "")
        pod_name = container_ms.labels.get(LABEL_POD_NAME, "")
        p_key = pod_key(namespace, pod_name)
        if p_key in batch.metric_sets or p_key in new_ms:
            return
        log.debug("Pod %s not found, creating a stub", p_key)
        pod_ms = MetricSet(labels={
            LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_POD,
            LABEL_NAMESPACE_NAME: namespace,
            LABEL_POD_NAME: pod_name,
            LABEL_NODENAME: container_ms.labels.get(LABEL_NODENAME, ""),
            LABEL_HOSTNAME: container_ms.labels.get(LABEL_HOSTNAME, ""),
            LABEL_HOST_ID: container_ms.labels.get(LABEL_HOST_ID, ""),
        })
        if pod.start_time is not None:
            pod_ms.entity_create_time = pod.start_time
        new_ms[p_key] = pod_ms
        self._add_pod_info(pod_ms, pod, batch, new_ms)

    def _add_pod_info(self, pod_ms: MetricSet, pod: Pod, batch: DataBatch,
                      new_ms: dict[str, MetricSet]) -> None:
        pod_ms.labels[LABEL_POD_ID] = pod.meta.uid
        if pod.start_time is not None:
            pod_ms.entity_create_time = pod.start_time
        self.label_copier.copy(pod.meta.labels, pod_ms.labels)

        for container in pod.spec.containers:
            c_key = pod_container_key(pod.meta.namespace, pod.meta.name, container.name)
            if c_key in batch.metric_sets or c_key in new_ms:
                continue
            log.debug("Container %s not found, creating a stub", c_key)
            container_ms = MetricSet(
                labels={
                    LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_POD_CONTAINER,
                    LABEL_NAMESPACE_NAME: pod.meta.namespace,
                    LABEL_POD_NAME: pod.meta.name,
                    LABEL_CONTAINER_NAME: container.name,
                    LABEL_CONTAINER_BASE_IMAGE: container.image,
                    LABEL_POD_ID: pod.meta.uid,
                    LABEL_NODENAME: pod_ms.labels.get(LABEL_NODENAME, ""),
                    LABEL_HOSTNAME: pod_ms.labels.get(LABEL_HOSTNAME, ""),
                    LABEL_HOST_ID: pod_ms.labels.get(LABEL_HOST_ID, ""),
                },
                entity_create_time=pod_ms.collection_start_time,
            )
            self.label_copier.copy(pod.meta.labels, container_ms.labels)
            update_container_resources_and_limits(container_ms, container)
            new_ms[c_key] = container_ms