"""Processors adding node capacity figures and namespace identifiers to metric sets."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal

from ..kube import Node, ObjectMeta
from ..labels import LabelCopier
from ..metrics import (
    LABEL_METRIC_SET_TYPE,
    LABEL_NAMESPACE_NAME,
    LABEL_POD_NAMESPACE_UID,
    METRIC_CPU_REQUEST,
    METRIC_CPU_USAGE_RATE,
    METRIC_EPHEMERAL_STORAGE_REQUEST,
    METRIC_EPHEMERAL_STORAGE_USAGE,
    METRIC_MEMORY_REQUEST,
    METRIC_MEMORY_USAGE,
    METRIC_NODE_CPU_ALLOCATABLE,
    METRIC_NODE_CPU_CAPACITY,
    METRIC_NODE_CPU_RESERVATION,
    METRIC_NODE_CPU_UTILIZATION,
    METRIC_NODE_EPHEMERAL_STORAGE_ALLOCATABLE,
    METRIC_NODE_EPHEMERAL_STORAGE_CAPACITY,
    METRIC_NODE_EPHEMERAL_STORAGE_RESERVATION,
    METRIC_NODE_EPHEMERAL_STORAGE_UTILIZATION,
    METRIC_NODE_MEMORY_ALLOCATABLE,
    METRIC_NODE_MEMORY_CAPACITY,
    METRIC_NODE_MEMORY_RESERVATION,
    METRIC_NODE_MEMORY_UTILIZATION,
    METRIC_SET_TYPE_NAMESPACE,
    METRIC_SET_TYPE_POD,
    METRIC_SET_TYPE_POD_CONTAINER,
    DataBatch,
    Metric,
    MetricSet,
    MetricType,
    MetricValue,
    ValueType,
    node_key,
)

log = logging.getLogger(__name__)

_CPU = "cpu"
_MEMORY = "memory"
_EPHEMERAL_STORAGE = "ephemeral-storage"


def _milli_value(quantity: float) -> int:
    return math.ceil(Decimal(str(quantity)) * 1000)


def _value(quantity: float) -> int:
    return math.ceil(Decimal(str(quantity)))


def _get_int(metric_set: MetricSet, metric: Metric) -> int:
    value = metric_set.metric_values.get(metric.name)
    return value.int_value if value is not None else 0


def _set_float(metric_set: MetricSet, metric: Metric, value: float) -> None:
    metric_set.metric_values[metric.name] = MetricValue(
        float_value=value, metric_type=MetricType.GAUGE, value_type=ValueType.FLOAT,
    )


class NodeAutoscalingEnricher:
    """Adds capacity, allocatable, utilization and reservation metrics to node metric sets.

    ``node_lister`` is called on each batch and returns the current nodes.
    """

    name = "node_autoscaling_enricher"

    def __init__(self, node_lister: Callable[[], Iterable[Node]], label_copier: LabelCopier) -> None:
        self.node_lister = node_lister
        self.label_copier = label_copier

    def process(self, batch: DataBatch) -> DataBatch:
        for node in self.node_lister():
            metric_set = batch.metric_sets.get(node_key(node.meta.name))
            if metric_set is None:
                continue
            self.label_copier.copy(node.meta.labels, metric_set.labels)
            capacity, allocatable = node.capacity, node.allocatable

            capacity_cpu = _milli_value(capacity.get(_CPU, 0))
            capacity_mem = _value(capacity.get(_MEMORY, 0))
            allocatable_cpu = _milli_value(allocatable.get(_CPU, 0))
            allocatable_mem = _value(allocatable.get(_MEMORY, 0))

            cpu_requested = _get_int(metric_set, METRIC_CPU_REQUEST)
            cpu_used = _get_int(metric_set, METRIC_CPU_USAGE_RATE)
            mem_requested = _get_int(metric_set, METRIC_MEMORY_REQUEST)
            mem_used = _get_int(metric_set, METRIC_MEMORY_USAGE)
            storage_requested = _get_int(metric_set, METRIC_EPHEMERAL_STORAGE_REQUEST)
            storage_used = _get_int(metric_set, METRIC_EPHEMERAL_STORAGE_USAGE)

            if allocatable_cpu != 0:
                _set_float(metric_set, METRIC_NODE_CPU_UTILIZATION, cpu_used / allocatable_cpu)
                _set_float(metric_set, METRIC_NODE_CPU_RESERVATION, cpu_requested / allocatable_cpu)
            _set_float(metric_set, METRIC_NODE_CPU_CAPACITY, float(capacity_cpu))
            _set_float(metric_set, METRIC_NODE_CPU_ALLOCATABLE, float(allocatable_cpu))

            if allocatable_mem != 0:
                _set_float(metric_set, METRIC_NODE_MEMORY_UTILIZATION, mem_used / allocatable_mem)
                _set_float(metric_set, METRIC_NODE_MEMORY_RESERVATION, mem_requested / allocatable_mem)
            _set_float(metric_set, METRIC_NODE_MEMORY_CAPACITY, float(capacity_mem))
            _set_float(metric_set, METRIC_NODE_MEMORY_ALLOCATABLE, float(allocatable_mem))

            if _EPHEMERAL_STORAGE in capacity and _EPHEMERAL_STORAGE in allocatable:
                capacity_storage = _value(capacity[_EPHEMERAL_STORAGE])
                allocatable_storage = _value(allocatable[_EPHEMERAL_STORAGE])
                _set_float(metric_set, METRIC_NODE_EPHEMERAL_STORAGE_CAPACITY, float(capacity_storage))
                _set_float(metric_set, METRIC_NODE_EPHEMERAL_STORAGE_ALLOCATABLE, float(allocatable_storage))
                if allocatable_storage != 0:
                    _set_float(metric_set, METRIC_NODE_EPHEMERAL_STORAGE_UTILIZATION,
                               storage_used / allocatable_storage)
                    _set_float(metric_set, METRIC_NODE_EPHEMERAL_STORAGE_RESERVATION,
                               storage_requested / allocatable_storage)
        return batch


_NAMESPACED_TYPES = frozenset({METRIC_SET_TYPE_POD_CONTAINER, METRIC_SET_TYPE_POD, METRIC_SET_TYPE_NAMESPACE})


class NamespaceBasedEnricher:
    """Adds the namespace UID to pod, container and namespace metric sets.

    ``namespace_store`` maps namespace names to their object metadata.
    """

    name = "namespace_based_enricher"

    def __init__(self, namespace_store: Mapping[str, ObjectMeta]) -> None:
        self.store = namespace_store

    def process(self, batch: DataBatch) -> DataBatch:
        for metric_set in batch.metric_sets.values():
            self._add_namespace_info(metric_set)
        return batch

    def _add_namespace_info(self, metric_set: MetricSet) -> None:
        if metric_set.labels.get(LABEL_METRIC_SET_TYPE) not in _NAMESPACED_TYPES:
            return
        namespace_name = metric_set.labels.get(LABEL_NAMESPACE_NAME)
        if namespace_name is None:
            return
        try:
            namespace = self.store[namespace_name]
        except KeyError:
            log.warning("Namespace doesn't exist: %s", namespace_name)
            return
        if isinstance(namespace, ObjectMeta):
            metric_set.labels[LABEL_POD_NAMESPACE_UID] = namespace.uid
        else:
            log.error("Wrong namespace store content")