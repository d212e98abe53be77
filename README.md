# kcollector

Building blocks for a Kubernetes metrics collector. Metrics arrive in batches
(`DataBatch`), pass through a chain of processors, and are handed to one or more sinks.
The package has no dependencies outside the standard library.

## Modules

- **`kcollector.metrics`**: the data model. `DataBatch` holds metric sets keyed by
  name and a list of `MetricPoint`s. `MetricSet` holds `MetricValue`s, labels,
  `LabeledMetric`s and collection, creation and scrape times. `ValueType` and
  `MetricType` are enums. `pod_key`, `pod_container_key`, `namespace_key`,
  `node_key` and `cluster_key` build the keys of metric sets inside a batch. The
  module also defines the standard `Metric` descriptors, `STANDARD_METRICS`,
  `RATE_METRICS_MAPPING` and `RESOURCE_REQUEST_METRICS`.
- **`kcollector.processors`**: every processor has `process(batch)`, updates the
  batch in place and returns it.
  - `aggregators`: `ClusterAggregator`, `NamespaceAggregator` and `NodeAggregator`
    sum the named metrics of namespaces into the cluster set, and of pods into
    their namespace and node sets. `NamespaceAggregator` creates missing namespace
    sets; `NodeAggregator` only updates node sets that already exist. `aggregate`
    does the summing; mixing value types raises `AggregationError`.
  - `pod_aggregator`: `PodAggregator` sums container metrics into their pod set,
    creating the pod set if needed and leaving metrics the pod already reports
    untouched. `new_pod_aggregator()` builds one that skips cumulative and delta
    standard metrics.
  - `rate_calculator`: `RateCalculator(mapping)` compares each metric set with the
    one of the same key from the previous batch and adds rate metrics: `cpu/usage`
    becomes an integer millicore rate, other counters a per-second float rate; disk
    I/O rates are computed per device from labeled metrics.
  - `pod_enricher`: `PodBasedEnricher(pod_lister, label_copier)` takes a mapping from
    `(namespace, pod name)` to `Pod`. It adds pod ids, container images, restart
    counts, copied labels and request/limit metrics, and creates stub pod or
    container sets that are missing. `update_container_resources_and_limits` sets
    the request and limit metrics of one container.
  - `node_enricher`: `NodeAutoscalingEnricher(node_lister, label_copier)` takes a
    callable returning the current `Node`s and adds capacity, allocatable,
    utilization and reservation metrics to node sets. `NamespaceBasedEnricher(store)`
    takes a mapping from namespace name to `ObjectMeta` and adds the namespace UID
    to pod, container and namespace sets.
- **`kcollector.labels`**: `LabelCopier(separator, stored_labels, ignored_labels)`.
  `copy(labels, out)` joins all non-ignored labels as sorted `key:value` pairs under
  the `labels` key, and copies stored labels under their own name, or under a new
  name when given as `"new=old"`.
- **`kcollector.kube`**: plain records `ObjectMeta`, `Pod`, `PodSpec`, `Container`,
  `ContainerPort`, `Node`, `NodeAddress` and `NodeCondition`. Resource quantities are
  numbers in base units (cores for cpu, bytes otherwise).
  `get_node_hostname_and_ip(node)` returns the hostname and IP address of a ready
  node and raises `ValueError` otherwise. `get_field_selector(resource_type)` returns
  a field selector string restricting pods or nodes to this node in daemon mode.
  `get_node_name`, `get_namespace_name` and `get_daemon_mode` read the environment
  variables `POD_NODE_NAME`, `POD_NAMESPACE_NAME` and `DAEMON_MODE`.
- **`kcollector.discovery_filter`**: `ResourceFilter(PluginConfig)` decides with
  `matches(resource)` whether a `Resource` is selected by kind, image globs,
  namespace globs, label globs and container port. `resource_type(kind)` validates a
  kind (`pod`, `service` or `node`; empty means `pod`). Invalid rules raise
  `ValueError`.
- **`kcollector.sinks`**:
  - `wavefront`: `WavefrontSink` sends the points of each batch, tagged with the
    cluster name, through a `ProxySender` (TCP to a proxy) or a `DirectSender`
    (buffered HTTP posts to a server). `new_wavefront_sink(SinkConfig)` builds one
    and raises `ValueError` when misconfigured; `build_sinks(configs)` builds every
    sink it can and raises `RuntimeError` if none could be built. With
    `test_mode=True` points are recorded in `test_received_lines` instead of sent.
    `process_tags` and `combine_global_tags` are the tag helpers.
  - `manager`: `SinkManager(sinks, export_data_timeout, stop_timeout)` runs each
    sink in its own worker. `export_data` hands the batch to every sink that accepts
    it within the timeout and drops it for the others; `stop` asks every sink to stop
    without waiting.
- **`kcollector.flush`**: `FlushManager(processors, sink, flush_interval,
  pending_metrics)` calls `pending_metrics()` every interval, runs each batch through
  the processors and exports it to the sink. `stop()` ends the loop and stops the sink.
- **`kcollector.watcher`**: `FileWatcher(path, listener, initial_delay, interval=60.0)`
  polls a file in a background thread and calls `listener(path)` when its
  modification time advances; the first observation only records it.
- **`kcollector.dummies`**: `DummySink`, `DummyMetricsSource`,
  `DummyMetricsSourceProvider`, `DummyDataProcessor` and `DummyProviderHandler`,
  simple stand-ins with configurable latency for exercising managers and pipelines.

## Example: aggregating pods into a namespace

```python
from kcollector.metrics import (
    LABEL_METRIC_SET_TYPE, LABEL_NAMESPACE_NAME, METRIC_SET_TYPE_POD,
    DataBatch, MetricSet, MetricValue, namespace_key, pod_key,
)
from kcollector.processors.aggregators import NamespaceAggregator

labels = {LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_POD, LABEL_NAMESPACE_NAME: "ns1"}
batch = DataBatch(metric_sets={
    pod_key("ns1", "pod1"): MetricSet(labels=dict(labels), metric_values={"m1": MetricValue(int_value=10)}),
    pod_key("ns1", "pod2"): MetricSet(labels=dict(labels), metric_values={"m1": MetricValue(int_value=100)}),
})

NamespaceAggregator(["m1"]).process(batch)
print(batch.metric_sets[namespace_key("ns1")].metric_values["m1"].int_value)  # 110
```

## Example: copying labels

```python
from kcollector.labels import LabelCopier

copier = LabelCopier(",", ["name", "owner=team"], ["colour"])
out = {}
copier.copy({"name": "bike", "team": "cycling", "colour": "red"}, out)
# out == {"name": "bike", "owner": "cycling", "labels": "name:bike,team:cycling"}
```

## Example: a processing chain

```python
from kcollector.metrics import RATE_METRICS_MAPPING
from kcollector.processors.pod_aggregator import new_pod_aggregator
from kcollector.processors.rate_calculator import RateCalculator

processors = [RateCalculator(RATE_METRICS_MAPPING), new_pod_aggregator()]

def run(batch):
    for processor in processors:
        batch = processor.process(batch)
    return batch
```

## What the package does not do

kcollector is a library, not a running collector. It has no command, does not scrape
metrics from kubelets or other sources, and does not talk to the Kubernetes API: pods,
nodes and namespaces reach the enrichers through the mappings and callables you pass
in. It does not load configuration files, and the discovery filter only decides
whether a resource matches a rule; it does not watch the cluster for resources.