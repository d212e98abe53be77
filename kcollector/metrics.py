"""Core metric data model: values, metric sets, batches and well-known keys."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


class ValueType(enum.Enum):
    """Storage type of a metric value."""

    INT64 = "int64"
    FLOAT = "float"


class MetricType(enum.Enum):
    """Semantics of a metric value over time."""

    CUMULATIVE = "cumulative"
    GAUGE = "gauge"
    DELTA = "delta"


UNITS_COUNT = "count"
UNITS_BYTES = "bytes"
UNITS_MILLISECONDS = "ms"
UNITS_NANOSECONDS = "ns"
UNITS_MILLICORES = "millicores"

# Label keys carried by metric sets.
LABEL_METRIC_SET_TYPE = "type"
LABEL_POD_ID = "pod_id"
LABEL_POD_NAME = "pod_name"
LABEL_NAMESPACE_NAME = "namespace_name"
LABEL_POD_NAMESPACE_UID = "namespace_id"
LABEL_CONTAINER_NAME = "container_name"
LABEL_CONTAINER_BASE_IMAGE = "container_base_image"
LABEL_HOSTNAME = "hostname"
LABEL_HOST_ID = "host_id"
LABEL_NODENAME = "nodename"
LABEL_LABELS = "labels"
LABEL_RESOURCE_ID = "resource_id"

# Values of the metric set type label.
METRIC_SET_TYPE_POD_CONTAINER = "pod_container"
METRIC_SET_TYPE_SYSTEM_CONTAINER = "sys_container"
METRIC_SET_TYPE_POD = "pod"
METRIC_SET_TYPE_NAMESPACE = "ns"
METRIC_SET_TYPE_NODE = "node"
METRIC_SET_TYPE_CLUSTER = "cluster"


@dataclass(frozen=True)
class Metric:
    """Descriptor of a named metric."""

    name: str
    description: str = ""
    type: MetricType = MetricType.GAUGE
    value_type: ValueType = ValueType.INT64
    units: str = UNITS_COUNT


@dataclass
class MetricValue:
    """A single metric value of either integer or float type."""

    int_value: int = 0
    float_value: float = 0.0
    metric_type: MetricType = MetricType.GAUGE
    value_type: ValueType = ValueType.INT64

    @property
    def value(self) -> int | float:
        """The value held according to its value type."""
        if self.value_type is ValueType.FLOAT:
            return self.float_value
        return self.int_value


@dataclass
class LabeledMetric:
    """A metric value that carries its own labels."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    metric_value: MetricValue = field(default_factory=MetricValue)


@dataclass
class MetricSet:
    """Metrics and labels describing one entity (pod, node, namespace...)."""

    metric_values: dict[str, MetricValue] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    labeled_metrics: list[LabeledMetric] = field(default_factory=list)
    collection_start_time: datetime | None = None
    entity_create_time: datetime | None = None
    scrape_time: datetime | None = None


@dataclass
class MetricPoint:
    """A single point ready to be sent to a sink."""

    metric: str
    value: float
    timestamp: int
    source: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    str_tags: str = ""


@dataclass
class DataBatch:
    """A batch of metric sets and points collected together."""

    timestamp: datetime | None = None
    metric_sets: dict[str, MetricSet] = field(default_factory=dict)
    metric_points: list[MetricPoint] = field(default_factory=list)


def pod_key(namespace: str, pod_name: str) -> str:
    """Key of the metric set of a pod."""
    return f"namespace:{namespace}/pod:{pod_name}"


def pod_container_key(namespace: str, pod_name: str, container_name: str) -> str:
    """Key of the metric set of a container within a pod."""
    return f"{pod_key(namespace, pod_name)}/container:{container_name}"


def namespace_key(namespace: str) -> str:
    """Key of the metric set of a namespace."""
    return f"namespace:{namespace}"


def node_key(node: str) -> str:
    """Key of the metric set of a node."""
    return f"node:{node}"


def cluster_key() -> str:
    """Key of the cluster metric set."""
    return "cluster"


def _gauge(name: str, description: str, value_type: ValueType = ValueType.INT64,
           units: str = UNITS_COUNT) -> Metric:
    return Metric(name, description, MetricType.GAUGE, value_type, units)


def _cumulative(name: str, description: str, units: str = UNITS_COUNT) -> Metric:
    return Metric(name, description, MetricType.CUMULATIVE, ValueType.INT64, units)


METRIC_UPTIME = _cumulative("uptime", "Number of milliseconds since the container was started", UNITS_MILLISECONDS)
METRIC_RESTART_COUNT = _gauge("restart_count", "Number of container restarts")

METRIC_CPU_USAGE = _cumulative("cpu/usage", "Cumulative CPU usage on all cores", UNITS_NANOSECONDS)
METRIC_CPU_USAGE_RATE = _gauge("cpu/usage_rate", "CPU usage on all cores in millicores", units=UNITS_MILLICORES)
METRIC_CPU_REQUEST = _gauge("cpu/request", "CPU request (the guaranteed amount of resources) in millicores",
                            units=UNITS_MILLICORES)
METRIC_CPU_LIMIT = _gauge("cpu/limit", "CPU hard limit in millicores", units=UNITS_MILLICORES)

METRIC_MEMORY_USAGE = _gauge("memory/usage", "Total memory usage", units=UNITS_BYTES)
METRIC_MEMORY_REQUEST = _gauge("memory/request", "Memory request in bytes", units=UNITS_BYTES)
METRIC_MEMORY_LIMIT = _gauge("memory/limit", "Memory hard limit in bytes", units=UNITS_BYTES)

METRIC_EPHEMERAL_STORAGE_USAGE = _gauge("ephemeral_storage/usage", "Ephemeral storage usage", units=UNITS_BYTES)
METRIC_EPHEMERAL_STORAGE_REQUEST = _gauge("ephemeral_storage/request", "Ephemeral storage request in bytes",
                                          units=UNITS_BYTES)
METRIC_EPHEMERAL_STORAGE_LIMIT = _gauge("ephemeral_storage/limit", "Ephemeral storage hard limit in bytes",
                                        units=UNITS_BYTES)

METRIC_NETWORK_RX = _cumulative("network/rx", "Cumulative number of bytes received over the network", UNITS_BYTES)
METRIC_NETWORK_RX_ERRORS = _cumulative("network/rx_errors", "Cumulative number of errors while receiving")
METRIC_NETWORK_TX = _cumulative("network/tx", "Cumulative number of bytes sent over the network", UNITS_BYTES)
METRIC_NETWORK_TX_ERRORS = _cumulative("network/tx_errors", "Cumulative number of errors while sending")
METRIC_NETWORK_RX_RATE = _gauge("network/rx_rate", "Bytes received per second", ValueType.FLOAT, UNITS_BYTES)
METRIC_NETWORK_RX_ERRORS_RATE = _gauge("network/rx_errors_rate", "Receive errors per second", ValueType.FLOAT)
METRIC_NETWORK_TX_RATE = _gauge("network/tx_rate", "Bytes sent per second", ValueType.FLOAT, UNITS_BYTES)
METRIC_NETWORK_TX_ERRORS_RATE = _gauge("network/tx_errors_rate", "Send errors per second", ValueType.FLOAT)

METRIC_DISK_IO_READ = _cumulative("disk/io_read_bytes", "Cumulative number of bytes read", UNITS_BYTES)
METRIC_DISK_IO_WRITE = _cumulative("disk/io_write_bytes", "Cumulative number of bytes written", UNITS_BYTES)
METRIC_DISK_IO_READ_RATE = _gauge("disk/io_read_bytes_rate", "Bytes read per second", ValueType.FLOAT, UNITS_BYTES)
METRIC_DISK_IO_WRITE_RATE = _gauge("disk/io_write_bytes_rate", "Bytes written per second", ValueType.FLOAT,
                                   UNITS_BYTES)

METRIC_NODE_CPU_CAPACITY = _gauge("cpu/node_capacity", "CPU capacity of a node", ValueType.FLOAT, UNITS_MILLICORES)
METRIC_NODE_CPU_ALLOCATABLE = _gauge("cpu/node_allocatable", "CPU allocatable of a node", ValueType.FLOAT,
                                     UNITS_MILLICORES)
METRIC_NODE_CPU_UTILIZATION = _gauge("cpu/node_utilization", "CPU utilization as a share of node allocatable",
                                     ValueType.FLOAT)
METRIC_NODE_CPU_RESERVATION = _gauge("cpu/node_reservation", "Share of CPU that is reserved on the node",
                                     ValueType.FLOAT)
METRIC_NODE_MEMORY_CAPACITY = _gauge("memory/node_capacity", "Memory capacity of a node", ValueType.FLOAT,
                                     UNITS_BYTES)
METRIC_NODE_MEMORY_ALLOCATABLE = _gauge("memory/node_allocatable", "Memory allocatable of a node", ValueType.FLOAT,
                                        UNITS_BYTES)
METRIC_NODE_MEMORY_UTILIZATION = _gauge("memory/node_utilization",
                                        "Memory utilization as a share of memory allocatable", ValueType.FLOAT)
METRIC_NODE_MEMORY_RESERVATION = _gauge("memory/node_reservation", "Share of memory that is reserved on the node",
                                        ValueType.FLOAT)
METRIC_NODE_EPHEMERAL_STORAGE_CAPACITY = _gauge("ephemeral_storage/node_capacity",
                                                "Ephemeral storage capacity of a node", ValueType.FLOAT, UNITS_BYTES)
METRIC_NODE_EPHEMERAL_STORAGE_ALLOCATABLE = _gauge("ephemeral_storage/node_allocatable",
                                                   "Ephemeral storage allocatable of a node", ValueType.FLOAT,
                                                   UNITS_BYTES)
METRIC_NODE_EPHEMERAL_STORAGE_UTILIZATION = _gauge("ephemeral_storage/node_utilization",
                                                   "Ephemeral storage utilization of a node", ValueType.FLOAT)
METRIC_NODE_EPHEMERAL_STORAGE_RESERVATION = _gauge("ephemeral_storage/node_reservation",
                                                   "Share of ephemeral storage reserved on the node", ValueType.FLOAT)

STANDARD_METRICS: list[Metric] = [
    METRIC_UPTIME,
    METRIC_RESTART_COUNT,
    METRIC_CPU_USAGE,
    METRIC_CPU_REQUEST,
    METRIC_CPU_LIMIT,
    METRIC_MEMORY_USAGE,
    METRIC_MEMORY_REQUEST,
    METRIC_MEMORY_LIMIT,
    METRIC_EPHEMERAL_STORAGE_USAGE,
    METRIC_EPHEMERAL_STORAGE_REQUEST,
    METRIC_EPHEMERAL_STORAGE_LIMIT,
    METRIC_NETWORK_RX,
    METRIC_NETWORK_RX_ERRORS,
    METRIC_NETWORK_TX,
    METRIC_NETWORK_TX_ERRORS,
    METRIC_DISK_IO_READ,
    METRIC_DISK_IO_WRITE,
]

RATE_METRICS_MAPPING: dict[str, Metric] = {
    METRIC_CPU_USAGE.name: METRIC_CPU_USAGE_RATE,
    METRIC_NETWORK_RX.name: METRIC_NETWORK_RX_RATE,
    METRIC_NETWORK_RX_ERRORS.name: METRIC_NETWORK_RX_ERRORS_RATE,
    METRIC_NETWORK_TX.name: METRIC_NETWORK_TX_RATE,
    METRIC_NETWORK_TX_ERRORS.name: METRIC_NETWORK_TX_ERRORS_RATE,
    METRIC_DISK_IO_READ.name: METRIC_DISK_IO_READ_RATE,
    METRIC_DISK_IO_WRITE.name: METRIC_DISK_IO_WRITE_RATE,
}

# Request metrics by resource name; extended at runtime for extended resources.
RESOURCE_REQUEST_METRICS: dict[str, Metric] = {
    "cpu": METRIC_CPU_REQUEST,
    "memory": METRIC_MEMORY_REQUEST,
    "ephemeral-storage": METRIC_EPHEMERAL_STORAGE_REQUEST,
}