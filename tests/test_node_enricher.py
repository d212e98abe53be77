import pytest

from kcollector.kube import Node, ObjectMeta
from kcollector.labels import LabelCopier
from kcollector.metrics import (
    LABEL_LABELS,
    LABEL_METRIC_SET_TYPE,
    LABEL_NAMESPACE_NAME,
    LABEL_POD_NAMESPACE_UID,
    METRIC_CPU_REQUEST,
    METRIC_CPU_USAGE_RATE,
    METRIC_EPHEMERAL_STORAGE_USAGE,
    METRIC_MEMORY_REQUEST,
    METRIC_MEMORY_USAGE,
    METRIC_NODE_CPU_ALLOCATABLE,
    METRIC_NODE_CPU_CAPACITY,
    METRIC_NODE_CPU_UTILIZATION,
    METRIC_NODE_EPHEMERAL_STORAGE_CAPACITY,
    METRIC_NODE_EPHEMERAL_STORAGE_UTILIZATION,
    METRIC_NODE_MEMORY_ALLOCATABLE,
    METRIC_NODE_MEMORY_CAPACITY,
    METRIC_NODE_MEMORY_RESERVATION,
    METRIC_NODE_MEMORY_UTILIZATION,
    METRIC_SET_TYPE_NAMESPACE,
    METRIC_SET_TYPE_NODE,
    METRIC_SET_TYPE_POD,
    METRIC_SET_TYPE_POD_CONTAINER,
    DataBatch,
    MetricSet,
    MetricValue,
    ValueType,
    namespace_key,
    node_key,
    pod_key,
)
from kcollector.processors.node_enricher import NamespaceBasedEnricher, NodeAutoscalingEnricher


def _node_batch(**ints):
    values = {name: MetricValue(int_value=value) for name, value in ints.items()}
    ms = MetricSet(metric_values=values, labels={LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_NODE})
    return DataBatch(metric_sets={node_key("n1"): ms})


def _enricher(*nodes):
    return NodeAutoscalingEnricher(lambda: list(nodes), LabelCopier(",", [], []))


def test_node_memory_and_cpu_metrics():
    node = Node(
        meta=ObjectMeta(name="n1", labels={"zone": "a"}),
        capacity={"cpu": 2, "memory": 4096},
        allocatable={"cpu": 2, "memory": 4096},
    )
    mem_used, mem_requested = 1024, 2048
    batch = _node_batch(**{METRIC_MEMORY_USAGE.name: mem_used, METRIC_MEMORY_REQUEST.name: mem_requested,
                           METRIC_CPU_USAGE_RATE.name: 500, METRIC_CPU_REQUEST.name: 1000})
    ms = _enricher(node).process(batch).metric_sets[node_key("n1")]

    values = ms.metric_values
    assert values[METRIC_NODE_MEMORY_CAPACITY.name].float_value == 4096.0
    assert values[METRIC_NODE_MEMORY_ALLOCATABLE.name].float_value == 4096.0
    assert values[METRIC_NODE_MEMORY_UTILIZATION.name].float_value == mem_used / 4096
    assert values[METRIC_NODE_MEMORY_RESERVATION.name].float_value == mem_requested / 4096
    assert values[METRIC_NODE_CPU_CAPACITY.name].float_value == 2000.0
    assert values[METRIC_NODE_CPU_ALLOCATABLE.name].float_value == values[METRIC_NODE_CPU_CAPACITY.name].float_value
    assert values[METRIC_NODE_CPU_UTILIZATION.name].value_type is ValueType.FLOAT
    assert 0 < values[METRIC_NODE_CPU_UTILIZATION.name].float_value < 1
    assert ms.labels[LABEL_LABELS] == "zone:a"


def test_zero_allocatable_skips_ratios():
    node = Node(meta=ObjectMeta(name="n1"), capacity={"memory": 100})
    ms = _enricher(node).process(_node_batch()).metric_sets[node_key("n1")]
    assert METRIC_NODE_MEMORY_UTILIZATION.name not in ms.metric_values
    assert METRIC_NODE_CPU_UTILIZATION.name not in ms.metric_values
    assert ms.metric_values[METRIC_NODE_MEMORY_CAPACITY.name].float_value == 100.0
    assert ms.metric_values[METRIC_NODE_CPU_ALLOCATABLE.name].float_value == 0.0


def test_ephemeral_storage_needs_capacity_and_allocatable():
    only_capacity = Node(meta=ObjectMeta(name="n1"), capacity={"ephemeral-storage": 500})
    ms = _enricher(only_capacity).process(_node_batch()).metric_sets[node_key("n1")]
    assert METRIC_NODE_EPHEMERAL_STORAGE_CAPACITY.name not in ms.metric_values

    both = Node(meta=ObjectMeta(name="n1"), capacity={"ephemeral-storage": 500},
                allocatable={"ephemeral-storage": 500})
    batch = _node_batch(**{METRIC_EPHEMERAL_STORAGE_USAGE.name: 500})
    ms = _enricher(both).process(batch).metric_sets[node_key("n1")]
    assert ms.metric_values[METRIC_NODE_EPHEMERAL_STORAGE_CAPACITY.name].float_value == 500.0
    assert ms.metric_values[METRIC_NODE_EPHEMERAL_STORAGE_UTILIZATION.name].float_value == 1.0


def test_node_without_metric_set_is_ignored():
    batch = _node_batch()
    result = _enricher(Node(meta=ObjectMeta(name="other"), capacity={"cpu": 1})).process(batch)
    assert list(result.metric_sets) == [node_key("n1")]
    assert result.metric_sets[node_key("n1")].metric_values == {}


def test_lister_error_propagates():
    def failing():
        raise RuntimeError("list failed")

    enricher = NodeAutoscalingEnricher(failing, LabelCopier(",", [], []))
    with pytest.raises(RuntimeError):
        enricher.process(_node_batch())


def _ns_batch():
    def ms(kind, ns="ns1"):
        labels = {LABEL_METRIC_SET_TYPE: kind}
        if ns is not None:
            labels[LABEL_NAMESPACE_NAME] = ns
        return MetricSet(labels=labels)

    return DataBatch(metric_sets={
        "container": ms(METRIC_SET_TYPE_POD_CONTAINER),
        pod_key("ns1", "p"): ms(METRIC_SET_TYPE_POD),
        namespace_key("ns1"): ms(METRIC_SET_TYPE_NAMESPACE),
        node_key("n1"): ms(METRIC_SET_TYPE_NODE),
        "missing": ms(METRIC_SET_TYPE_POD, ns="ghost"),
        "no-ns": ms(METRIC_SET_TYPE_POD, ns=None),
    })


def test_namespace_uid_is_added_to_namespaced_sets():
    enricher = NamespaceBasedEnricher({"ns1": ObjectMeta(name="ns1", uid="uid-ns1")})
    batch = enricher.process(_ns_batch())
    for key in ("container", pod_key("ns1", "p"), namespace_key("ns1")):
        assert batch.metric_sets[key].labels[LABEL_POD_NAMESPACE_UID] == "uid-ns1"
    for key in (node_key("n1"), "missing", "no-ns"):
        assert LABEL_POD_NAMESPACE_UID not in batch.metric_sets[key].labels


def test_wrong_store_content_is_ignored():
    enricher = NamespaceBasedEnricher({"ns1": "not-a-namespace"})
    batch = enricher.process(_ns_batch())
    assert all(LABEL_POD_NAMESPACE_UID not in ms.labels for ms in batch.metric_sets.values())