import asyncio
import photoslibrary.monitor
import pytest

from datetime import datetime
from photoslibrary.monitor import Measurement, Monitor, Monitors


class MyMonitor(Monitor):
    def __init__(self):
        self.measurements = []

    async def record(self, measurement: Measurement):
        self.measurements.append(measurement)


async def test_timer():
    monitor = MyMonitor()
    tags = {"foo": "bar"}
    async with photoslibrary.monitor.timer(name="baz", tags=tags, monitor=monitor):
        await asyncio.sleep(0.1)
    assert len(monitor.measurements) == 1
    measurement = monitor.measurements[0]
    assert measurement.name == "baz"
    assert measurement.tags == tags
    assert isinstance(measurement.timestamp, datetime)
    assert measurement.type == "gauge"
    assert measurement.unit == "s"
    assert measurement.value > 0


async def test_timer_failure_not_recorded():
    monitor = MyMonitor()
    with pytest.raises(TypeError):
        async with photoslibrary.monitor.timer(name="baz", monitor=monitor):
            raise TypeError
    assert monitor.measurements == []


async def test_counter_success():
    monitor = MyMonitor()
    tags = {"foo": "bar"}
    async with photoslibrary.monitor.counter(
        name="baz", tags=tags, monitor=monitor, status="status"
    ):
        pass
    assert len(monitor.measurements) == 1
    measurement = monitor.measurements[0]
    assert measurement.name == "baz"
    assert measurement.tags == {"foo": "bar", "status": "success"}
    assert measurement.type == "counter"
    assert measurement.value == 1
    assert tags == {"foo": "bar"}
    async with photoslibrary.monitor.counter(name="baz", monitor=monitor):
        pass
    assert len(monitor.measurements) == 2
    assert monitor.measurements[1].tags is None


async def test_counter_failure():
    monitor = MyMonitor()
    with pytest.raises(TypeError):
        async with photoslibrary.monitor.counter(name="baz", monitor=monitor, status="status"):
            raise TypeError
    assert len(monitor.measurements) == 1
    measurement = monitor.measurements[0]
    assert measurement.tags == {"status": "failure"}
    assert measurement.value == 1


async def test_monitors():
    m1, m2 = MyMonitor(), MyMonitor()
    monitors = Monitors([m1, m2])
    await photoslibrary.monitor.record(Measurement(name="n", type="gauge", value=1), monitors)
    assert len(m1.measurements) == len(m2.measurements) == 1


async def test_global_monitors_receive_measurements(monkeypatch):
    monitor = MyMonitor()
    monkeypatch.setattr(photoslibrary.monitor, "monitors", Monitors([monitor]))
    async with photoslibrary.monitor.counter(name="page_fetches", status="status"):
        pass
    assert monitor.measurements[0].tags == {"status": "success"}


async def test_global_monitors_empty():
    assert len(photoslibrary.monitor.monitors) == 0
    await photoslibrary.monitor.record(Measurement(name="n", type="counter", value=1), None)


def test_measurement_invalid():
    with pytest.raises(ValueError):
        Measurement(name="", type="counter", value=1)
    with pytest.raises(ValueError):
        Measurement(name="n", type="histogram", value=1)
