import threading

from kcollector.dummies import (
    DummyDataProcessor,
    DummyMetricsSource,
    DummyMetricsSourceProvider,
    DummyProviderHandler,
    DummySink,
)
from kcollector.metrics import DataBatch


def test_sink_counts_exports():
    sink = DummySink("s1", 0)
    batch = DataBatch()
    for _ in range(3):
        sink.export_data(batch)
    assert sink.export_count == 3
    assert sink.name == "s1"


def test_sink_counts_concurrent_exports():
    sink = DummySink("s1", 0)
    threads = [threading.Thread(target=sink.export_data, args=(DataBatch(),)) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert sink.export_count == 20


def test_sink_stop():
    sink = DummySink("s1", 0)
    assert sink.is_stopped is False
    sink.stop()
    assert sink.is_stopped is True


def test_source_scrapes_single_point():
    source = DummyMetricsSource("my source", 0)
    batch = source.scrape_metrics()
    assert len(batch.metric_points) == 1
    point = batch.metric_points[0]
    assert point.metric == "my.source"
    assert point.source == "my source"
    assert point.value == 1
    assert point.tags == {"tag": "tag"}
    assert batch.timestamp is not None and point.timestamp > 0


def test_provider_returns_sources():
    s1 = DummyMetricsSource("a", 0)
    s2 = DummyMetricsSource("b", 0)
    provider = DummyMetricsSourceProvider("p1", 0.1, 0.2, s1, s2)
    assert provider.get_metrics_sources() == [s1, s2]
    assert provider.collection_interval == 0.1
    assert provider.timeout == 0.2


def test_processor_passes_batch_through():
    batch = DataBatch()
    processor = DummyDataProcessor(0)
    assert processor.process(batch) is batch
    assert processor.name == "dummy"


def test_provider_handler_counts():
    handler = DummyProviderHandler()
    handler.add_provider(object())
    handler.add_provider(object())
    handler.delete_provider("x")
    assert handler.count == 1