from datetime import datetime

import pytest

from kcollector.metrics import (
    LABEL_METRIC_SET_TYPE,
    LABEL_NAMESPACE_NAME,
    LABEL_NODENAME,
    METRIC_SET_TYPE_CLUSTER,
    METRIC_SET_TYPE_NAMESPACE,
    METRIC_SET_TYPE_NODE,
    METRIC_SET_TYPE_POD,
    DataBatch,
    MetricSet,
    MetricType,
    MetricValue,
    ValueType,
    cluster_key,
    namespace_key,
    node_key,
    pod_key,
)
from kcollector.processors.aggregators import (
    AggregationError,
    ClusterAggregator,
    NamespaceAggregator,
    NodeAggregator,
    aggregate,
)


def _int(value):
    return MetricValue(int_value=value, metric_type=MetricType.GAUGE, value_type=ValueType.INT64)


def _float(value):
    return MetricValue(float_value=value, metric_type=MetricType.GAUGE, value_type=ValueType.FLOAT)


def _two_sets(set_type, extra_labels=None):
    extra = extra_labels or {}
    return {
        pod_key("ns1", "pod1"): MetricSet(
            labels={LABEL_METRIC_SET_TYPE: set_type, LABEL_NAMESPACE_NAME: "ns1", **extra},
            metric_values={"m1": _int(10), "m2": _int(222)},
        ),
        pod_key("ns1", "pod2"): MetricSet(
            labels={LABEL_METRIC_SET_TYPE: set_type, LABEL_NAMESPACE_NAME: "ns1", **extra},
            metric_values={"m1": _int(100), "m3": _int(30)},
        ),
    }


def test_cluster_aggregate():
    batch = DataBatch(timestamp=datetime.now(), metric_sets=_two_sets(METRIC_SET_TYPE_NAMESPACE))
    result = ClusterAggregator(metrics_to_aggregate=["m1", "m3"]).process(batch)
    cluster = result.metric_sets[cluster_key()]
    assert cluster.metric_values["m1"].int_value == 110
    assert cluster.metric_values["m3"].int_value == 30
    assert "m2" not in cluster.metric_values
    assert cluster.labels[LABEL_METRIC_SET_TYPE] == METRIC_SET_TYPE_CLUSTER


def test_namespace_aggregate():
    batch = DataBatch(timestamp=datetime.now(), metric_sets=_two_sets(METRIC_SET_TYPE_POD))
    result = NamespaceAggregator(metrics_to_aggregate=["m1", "m3"]).process(batch)
    namespace = result.metric_sets[namespace_key("ns1")]
    assert namespace.metric_values["m1"].int_value == 110
    assert namespace.metric_values["m3"].int_value == 30
    assert namespace.labels[LABEL_METRIC_SET_TYPE] == METRIC_SET_TYPE_NAMESPACE
    assert namespace.labels[LABEL_NAMESPACE_NAME] == "ns1"


def test_namespace_aggregate_uses_existing_namespace_set():
    sets = _two_sets(METRIC_SET_TYPE_POD)
    existing = MetricSet(labels={LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_NAMESPACE}, metric_values={"m1": _int(5)})
    sets[namespace_key("ns1")] = existing
    result = NamespaceAggregator(metrics_to_aggregate=["m1"]).process(DataBatch(metric_sets=sets))
    assert result.metric_sets[namespace_key("ns1")] is existing
    assert existing.metric_values["m1"].int_value == 115


def test_node_aggregate():
    sets = _two_sets(METRIC_SET_TYPE_POD, {LABEL_NODENAME: "h1"})
    sets[node_key("h1")] = MetricSet(
        labels={LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_NODE, LABEL_NODENAME: "h1"},
    )
    result = NodeAggregator(metrics_to_aggregate=["m1", "m3"]).process(
        DataBatch(timestamp=datetime.now(), metric_sets=sets))
    node = result.metric_sets[node_key("h1")]
    assert node.metric_values["m1"].int_value == 110
    assert node.metric_values["m3"].int_value == 30


def test_node_aggregate_does_not_add_nodes():
    sets = _two_sets(METRIC_SET_TYPE_POD, {LABEL_NODENAME: "h1"})
    result = NodeAggregator(metrics_to_aggregate=["m1"]).process(DataBatch(metric_sets=sets))
    assert node_key("h1") not in result.metric_sets
    assert len(result.metric_sets) == 2


def test_aggregate_floats_and_copies_values():
    src = MetricSet(metric_values={"f": _float(1.5)})
    dst = MetricSet()
    aggregate(src, dst, ["f", "missing"])
    aggregate(src, dst, ["f"])
    assert dst.metric_values["f"].float_value == pytest.approx(3.0)
    assert src.metric_values["f"].float_value == pytest.approx(1.5)
    assert "missing" not in dst.metric_values


def test_aggregate_type_mismatch_raises():
    src = MetricSet(metric_values={"m": _int(1)})
    dst = MetricSet(metric_values={"m": _float(1.0)})
    with pytest.raises(AggregationError):
        aggregate(src, dst, ["m"])


def test_aggregator_names():
    assert ClusterAggregator().name == "cluster_aggregator"
    assert NamespaceAggregator().name == "namespace_aggregator"
    assert NodeAggregator().name == "node_aggregator"