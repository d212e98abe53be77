"""Processors that sum metrics of pods into namespaces, nodes and the cluster."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..metrics import (
    LABEL_METRIC_SET_TYPE,
    LABEL_NAMESPACE_NAME,
    LABEL_NODENAME,
    LABEL_POD_NAMESPACE_UID,
    METRIC_SET_TYPE_CLUSTER,
    METRIC_SET_TYPE_NAMESPACE,
    METRIC_SET_TYPE_POD,
    DataBatch,
    MetricSet,
    ValueType,
    cluster_key,
    namespace_key,
    node_key,
)

log = logging.getLogger(__name__)


class AggregationError(ValueError):
    """Raised when metric values cannot be summed."""


def aggregate(src: MetricSet, dst: MetricSet, metric_names: Iterable[str]) -> None:
    """Add the named metrics of ``src`` into ``dst``.

    Metrics missing from ``src`` are skipped; metrics missing from ``dst`` are copied.
    """
    for name in metric_names:
        value = src.metric_values.get(name)
        if value is None:
            continue
        current = dst.metric_values.get(name)
        if current is None:
            dst.metric_values[name] = dataclasses.replace(value)
            continue
        if current.value_type is not value.value_type:
            raise AggregationError(f"Aggregator: type not supported in {name}")
        if current.value_type is ValueType.INT64:
            summed = dataclasses.replace(current, int_value=current.int_value + value.int_value)
        elif current.value_type is ValueType.FLOAT:
            summed = dataclasses.replace(current, float_value=current.float_value + value.float_value)
        else:
            raise AggregationError(f"Aggregator: type not supported in {name}")
        dst.metric_values[name] = summed


@dataclass
class ClusterAggregator:
    """Sums namespace metrics into a single cluster metric set."""

    metrics_to_aggregate: list[str] = field(default_factory=list)
    name: str = field(default="cluster_aggregator", init=False)

    def process(self, batch: DataBatch) -> DataBatch:
        cluster = MetricSet(labels={LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_CLUSTER})
        for metric_set in batch.metric_sets.values():
            if metric_set.labels.get(LABEL_METRIC_SET_TYPE) == METRIC_SET_TYPE_NAMESPACE:
                aggregate(metric_set, cluster, self.metrics_to_aggregate)
        batch.metric_sets[cluster_key()] = cluster
        return batch


@dataclass
class NamespaceAggregator:
    """Sums pod metrics into their namespace metric sets, creating them if needed."""

    metrics_to_aggregate: list[str] = field(default_factory=list)
    name: str = field(default="namespace_aggregator", init=False)

    def process(self, batch: DataBatch) -> DataBatch:
        created: dict[str, MetricSet] = {}
        for key, metric_set in batch.metric_sets.items():
            if metric_set.labels.get(LABEL_METRIC_SET_TYPE) != METRIC_SET_TYPE_POD:
                continue
            namespace_name = metric_set.labels.get(LABEL_NAMESPACE_NAME)
            if namespace_name is None:
                log.error("No namespace info in pod %s: %s", key, metric_set.labels)
                continue
            ns_key = namespace_key(namespace_name)
            namespace = created.get(ns_key)
            if namespace is None:
                namespace = batch.metric_sets.get(ns_key)
                if namespace is None:
                    namespace = MetricSet(labels={
                        LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_NAMESPACE,
                        LABEL_NAMESPACE_NAME: namespace_name,
                        LABEL_POD_NAMESPACE_UID: metric_set.labels.get(LABEL_POD_NAMESPACE_UID, ""),
                    })
                    created[ns_key] = namespace
            aggregate(metric_set, namespace, self.metrics_to_aggregate)
        batch.metric_sets.update(created)
        return batch


@dataclass
class NodeAggregator:
    """Sums pod metrics into existing node metric sets; never adds nodes."""

    metrics_to_aggregate: list[str] = field(default_factory=list)
    name: str = field(default="node_aggregator", init=False)

    def process(self, batch: DataBatch) -> DataBatch:
        for key, metric_set in batch.metric_sets.items():
            if metric_set.labels.get(LABEL_METRIC_SET_TYPE) != METRIC_SET_TYPE_POD:
                continue
            node_name = metric_set.labels.get(LABEL_NODENAME, "")
            if not node_name:
                log.debug("Skipping pod %s: no node info", key)
                continue
            n_key = node_key(node_name)
            node = batch.metric_sets.get(n_key)
            if node is None:
                log.info("No metric for node %s, cannot perform node level aggregation.", n_key)
                continue
            aggregate(metric_set, node, self.metrics_to_aggregate)
        return batch