from datetime import datetime, timedelta

import pytest

from kcollector.metrics import (
    LABEL_METRIC_SET_TYPE,
    LABEL_RESOURCE_ID,
    METRIC_CPU_USAGE,
    METRIC_CPU_USAGE_RATE,
    METRIC_DISK_IO_READ,
    METRIC_DISK_IO_READ_RATE,
    METRIC_NETWORK_TX_ERRORS,
    METRIC_NETWORK_TX_ERRORS_RATE,
    METRIC_SET_TYPE_POD_CONTAINER,
    RATE_METRICS_MAPPING,
    DataBatch,
    LabeledMetric,
    MetricSet,
    MetricType,
    MetricValue,
    ValueType,
    pod_container_key,
)
from kcollector.processors.rate_calculator import RateCalculator

NOW = datetime(2024, 1, 1, 12, 0, 0)
KEY = pod_container_key("ns1", "pod1", "c")


def _cumulative(value):
    return MetricValue(int_value=value, metric_type=MetricType.CUMULATIVE, value_type=ValueType.INT64)


def _batch(scrape_time, cpu, tx_errors, start=NOW - timedelta(hours=1)):
    return DataBatch(
        timestamp=scrape_time,
        metric_sets={
            KEY: MetricSet(
                collection_start_time=start,
                scrape_time=scrape_time,
                labels={LABEL_METRIC_SET_TYPE: METRIC_SET_TYPE_POD_CONTAINER},
                metric_values={
                    METRIC_CPU_USAGE.name: _cumulative(cpu),
                    METRIC_NETWORK_TX_ERRORS.name: _cumulative(tx_errors),
                },
            )
        },
    )


def test_rate_calculator():
    prev = _batch(NOW - timedelta(seconds=60), 947130377781, 0)
    current = _batch(NOW, 948071062732, 120)

    processor = RateCalculator(RATE_METRICS_MAPPING)
    processor.process(prev)
    processor.process(current)

    ms = current.metric_sets[KEY]
    cpu_rate = ms.metric_values[METRIC_CPU_USAGE_RATE.name]
    txe_rate = ms.metric_values[METRIC_NETWORK_TX_ERRORS_RATE.name]

    assert abs(cpu_rate.int_value - 13) / 13 <= 2
    assert abs(txe_rate.float_value - 2) / 2 <= 0.1
    assert cpu_rate.value_type is ValueType.INT64
    assert txe_rate.value_type is ValueType.FLOAT


def test_first_batch_has_no_rates():
    batch = _batch(NOW, 100, 10)
    RateCalculator(RATE_METRICS_MAPPING).process(batch)
    assert METRIC_CPU_USAGE_RATE.name not in batch.metric_sets[KEY].metric_values


def test_not_strictly_later_batch_is_skipped():
    processor = RateCalculator(RATE_METRICS_MAPPING)
    processor.process(_batch(NOW, 0, 0))
    same_time = _batch(NOW, 1000, 10)
    processor.process(same_time)
    assert METRIC_NETWORK_TX_ERRORS_RATE.name not in same_time.metric_sets[KEY].metric_values


def test_restart_resets_previous_set():
    processor = RateCalculator(RATE_METRICS_MAPPING)
    processor.process(_batch(NOW - timedelta(seconds=120), 0, 0))
    restarted = _batch(NOW - timedelta(seconds=60), 0, 1000, start=NOW - timedelta(minutes=2))
    processor.process(restarted)
    assert METRIC_NETWORK_TX_ERRORS_RATE.name not in restarted.metric_sets[KEY].metric_values
    assert processor.previous_metric_sets[KEY] is restarted.metric_sets[KEY]

    later = _batch(NOW, 0, 1120, start=NOW - timedelta(minutes=2))
    processor.process(later)
    rate = later.metric_sets[KEY].metric_values[METRIC_NETWORK_TX_ERRORS_RATE.name]
    assert rate.float_value == pytest.approx(2.0)


def _disk_batch(scrape_time, readings):
    return DataBatch(metric_sets={
        KEY: MetricSet(
            collection_start_time=NOW - timedelta(hours=1),
            scrape_time=scrape_time,
            labeled_metrics=[
                LabeledMetric(
                    name=METRIC_DISK_IO_READ.name,
                    labels={LABEL_RESOURCE_ID: device},
                    metric_value=_cumulative(value),
                )
                for device, value in readings
            ],
        )
    })


def test_disk_rates_are_matched_by_resource_id():
    processor = RateCalculator(RATE_METRICS_MAPPING)
    processor.process(_disk_batch(NOW - timedelta(seconds=60), [("sda", 1000), ("sdb", 50000)]))
    current = _disk_batch(NOW, [("sdb", 50600), ("sda", 7000), ("sdc", 5)])
    processor.process(current)

    rates = {
        item.labels[LABEL_RESOURCE_ID]: item.metric_value.float_value
        for item in current.metric_sets[KEY].labeled_metrics
        if item.name == METRIC_DISK_IO_READ_RATE.name
    }
    assert rates == {"sda": pytest.approx(100.0), "sdb": pytest.approx(10.0)}


def test_name():
    assert RateCalculator({}).name == "rate calculator"