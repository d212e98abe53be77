"""Sink sending metric points to a Wavefront proxy or directly to a Wavefront server."""

from __future__ import annotations

import logging
import socket
import threading
import urllib.request
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..metrics import DataBatch

log = logging.getLogger(__name__)

EXCLUDE_TAG_LIST = ("namespace_id", "host_id", "pod_id", "hostname")
DEFAULT_CLUSTER_NAME = "k8s-cluster"

_CONNECT_TIMEOUT = 10.0
_FLUSH_INTERVAL = 1.0

MetricFilter = Callable[[str, Mapping[str, str]], bool]


class Sender(Protocol):
    def send_metric(self, name: str, value: float, timestamp: int, source: str,
                    tags: Mapping[str, str]) -> None: ...

    def close(self) -> None: ...


def _quote(text: str) -> str:
    return '"' + text.replace('"', '\\"') + '"'


def _metric_line(name: str, value: float, timestamp: int, source: str, tags: Mapping[str, str]) -> str:
    if not name:
        raise ValueError("empty metric name")
    parts = [_quote(name), repr(float(value))]
    if timestamp:
        parts.append(str(timestamp))
    parts.append(f"source={_quote(source)}")
    parts.extend(f"{_quote(key)}={_quote(val)}" for key, val in tags.items())
    return " ".join(parts) + "\n"


class ProxySender:
    """Writes points in the Wavefront line format to a proxy over TCP.

    The connection is opened on the first point and reopened after a failure.
    """

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()

    def send_metric(self, name: str, value: float, timestamp: int, source: str,
                    tags: Mapping[str, str]) -> None:
        data = _metric_line(name, value, timestamp, source, tags).encode()
        with self._lock:
            if self._sock is None:
                self._sock = socket.create_connection((self.host, self.port), timeout=_CONNECT_TIMEOUT)
            try:
                self._sock.sendall(data)
            except OSError:
                self._sock.close()
                self._sock = None
                raise

    def close(self) -> None:
        with self._lock:
            if self._sock is not None:
                self._sock.close()
                self._sock = None


class DirectSender:
    """Buffers points and posts them to a Wavefront server about once a second."""

    def __init__(self, server: str, token: str) -> None:
        self.server = server.rstrip("/")
        self.token = token
        self._lines: list[str] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._flush_loop, daemon=True)
        self._thread.start()

    def send_metric(self, name: str, value: float, timestamp: int, source: str,
                    tags: Mapping[str, str]) -> None:
        line = _metric_line(name, value, timestamp, source, tags)
        with self._lock:
            self._lines.append(line)

    def close(self) -> None:
        """Stop the periodic flush and send what is still buffered."""
        self._stop.set()
        self._thread.join()
        self._flush()

    def _flush_loop(self) -> None:
        while not self._stop.wait(_FLUSH_INTERVAL):
            self._flush()

    def _flush(self) -> None:
        with self._lock:
            lines, self._lines = self._lines, []
        if not lines:
            return
        request = urllib.request.Request(
            f"{self.server}/report?f=wavefront",
            data="".join(lines).encode(),
            headers={"Authorization": f"Bearer {self.token}", "Content-Type": "text/plain"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=_CONNECT_TIMEOUT) as response:
                response.read()
        except OSError as err:
            log.error("error reporting %d points: %s", len(lines), err)


@dataclass
class SinkConfig:
    """Settings of a Wavefront sink."""

    proxy_address: str = ""
    server: str = ""
    token: str = ""
    cluster_name: str = ""
    prefix: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    metric_filter: MetricFilter | None = None
    test_mode: bool = False


def process_tags(tags: dict[str, str]) -> None:
    """Remove excluded tags and tags with empty values, in place."""
    for key in [k for k, v in tags.items() if k in EXCLUDE_TAG_LIST or not v]:
        del tags[key]


def combine_global_tags(tags: dict[str, str] | None,
                        global_tags: dict[str, str] | None) -> dict[str, str]:
    """Add global tags whose keys are missing from ``tags``."""
    if not tags:
        return global_tags or {}
    if not global_tags:
        return tags
    for key, value in global_tags.items():
        tags.setdefault(key, value)
    return tags


class WavefrontSink:
    """Sends the metric points of each batch, tagged with the cluster name.

    In test mode points are recorded as lines in ``test_received_lines`` instead.
    """

    name = "wavefront_sink"

    def __init__(self, client: Sender | None, cluster_name: str, prefix: str = "",
                 global_tags: dict[str, str] | None = None, metric_filter: MetricFilter | None = None,
                 test_mode: bool = False) -> None:
        self.client = client
        self.cluster_name = cluster_name
        self.prefix = prefix
        self.global_tags = global_tags
        self.metric_filter = metric_filter
        self.test_mode = test_mode
        self.test_received_lines: list[str] = []
        self.sent_points = 0
        self.error_points = 0
        self.filtered_points = 0

    def stop(self) -> None:
        if self.client is not None:
            self.client.close()

    def export_data(self, batch: DataBatch) -> None:
        if self.test_mode:
            self.test_received_lines.clear()
        self._send(batch)

    def _send(self, batch: DataBatch) -> None:
        log.debug("received metric points: %d", len(batch.metric_points))
        before = self.error_points
        for point in batch.metric_points:
            tags = {key: value for key, value in point.tags.items() if value}
            for tag in point.str_tags.split(" "):
                key, sep, value = tag.partition("=")
                value = value.split("=", 1)[0]
                if sep and value:
                    tags[key] = value
            tags["cluster"] = self.cluster_name
            self._send_point(point.metric, point.value, point.timestamp, point.source, tags)
        if self.error_points > before:
            log.warning("Error sending one or more points: count=%d", self.error_points)

    def _send_point(self, metric_name: str, value: float, timestamp: int, source: str,
                    tags: dict[str, str]) -> None:
        metric_name = metric_name.replace("+", "-")
        if self.metric_filter is not None and not self.metric_filter(metric_name, tags):
            self.filtered_points += 1
            log.debug("Dropping metric: %s", metric_name)
            return

        tags = combine_global_tags(tags, self.global_tags)

        if self.test_mode:
            tag_str = "".join(f'{key}="{val}" ' for key, val in tags.items())
            line = f'{metric_name} {value:f} {timestamp} source="{source}" {tag_str}\n'
            self.test_received_lines.append(line)
            log.info(line)
            return
        try:
            self.client.send_metric(metric_name, value, timestamp, source, tags)
        except (OSError, ValueError) as err:
            self.error_points += 1
            log.debug("error sending metric %s: %s", metric_name, err)
        else:
            self.sent_points += 1


def new_wavefront_sink(config: SinkConfig) -> WavefrontSink:
    """Build a sink sending through a proxy or directly to a server; raises ValueError if misconfigured."""
    client: Sender | None = None
    if config.proxy_address:
        host, sep, port_str = config.proxy_address.partition(":")
        if not sep:
            raise ValueError(f"error parsing proxy address: {config.proxy_address}")
        port_str = port_str.split(":", 1)[0]
        try:
            port = int(port_str)
        except ValueError as err:
            raise ValueError(f"error parsing proxy port: {err}") from err
        client = ProxySender(host, port)
    elif config.server:
        if not config.token:
            raise ValueError("token missing for Wavefront sink")
        client = DirectSender(config.server, config.token)
    if client is None:
        raise ValueError("proxyAddress or server property required for Wavefront sink")

    return WavefrontSink(
        client=client,
        cluster_name=config.cluster_name or DEFAULT_CLUSTER_NAME,
        prefix=config.prefix,
        global_tags=config.tags,
        metric_filter=config.metric_filter,
        test_mode=config.test_mode,
    )


def build_sinks(configs: Iterable[SinkConfig]) -> list[Any]:
    """Build a sink for each config, skipping failures; raises RuntimeError if none could be built."""
    sinks = []
    for config in configs:
        try:
            sinks.append(new_wavefront_sink(config))
        except ValueError as err:
            log.error("Failed to create sink: %s", err)
    if not sinks:
        raise RuntimeError("No available sink to use")
    return sinks