"""
Module to record measurements of page fetches to pluggable monitors.

Operations that fetch pages take an optional monitor. Without one, measurements go to the
global `monitors` list, which is empty by default; an application appends a monitor to it to
receive measurements, which are otherwise discarded.
"""

import asyncio
import time

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal


MeasurementType = Literal["counter", "gauge"]

SUCCESS = "success"
FAILURE = "failure"


@dataclass
class Measurement:
    """
    A single measurement.

    Parameters and attributes:
    • name: snake_case name of what is measured, such as "page_fetches"
    • type: "counter" for a count of events, or "gauge" for a sampled value
    • value: count or sampled value
    • tags: qualifiers of the measurement, such as the endpoint a page was fetched from
    • unit: unit of the value; "s" for durations
    • timestamp: when the measurement was taken  [now]
    """

    name: str
    type: MeasurementType
    value: int | float
    tags: dict[str, str] | None = None
    unit: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def __post_init__(self):
        if not self.name:
            raise ValueError("measurement name must not be empty")
        if self.type not in ("counter", "gauge"):
            raise ValueError(f"unknown measurement type: {self.type}")


class Monitor:
    """Receives measurements; a subclass forwards them to a metrics backend."""

    async def record(self, measurement: Measurement) -> None:
        raise NotImplementedError


class Monitors(Monitor, list[Monitor]):
    """Monitor that records each measurement to every monitor in the list, concurrently."""

    async def record(self, measurement: Measurement) -> None:
        await asyncio.gather(*(monitor.record(measurement) for monitor in self))


monitors = Monitors()


async def record(measurement: Measurement, monitor: Monitor | None = None) -> None:
    """Record a measurement to a monitor, or to the global monitors if none is given."""
    await (monitors if monitor is None else monitor).record(measurement)


@asynccontextmanager
async def timer(*, name: str, tags: dict[str, str] | None = None, monitor: Monitor | None = None):
    """
    Time the enclosed work, and record its duration in seconds as a gauge. Work that raises
    an exception is not timed.
    """
    start = time.perf_counter()
    yield
    duration = time.perf_counter() - start
    await record(Measurement(name=name, type="gauge", value=duration, tags=tags, unit="s"), monitor)


@asynccontextmanager
async def counter(
    *,
    name: str,
    tags: dict[str, str] | None = None,
    monitor: Monitor | None = None,
    status: str | None = None,
):
    """
    Count an execution of the enclosed work.

    Parameters:
    • name: measurement name
    • tags: qualifiers of the measurement
    • monitor: monitor to record the measurement  [global monitors]
    • status: name of a tag to set to "success", or to "failure" if the work raised an
      exception

    The exception is re-raised after the count is recorded.
    """

    def measurement(outcome: str) -> Measurement:
        qualifiers = {**(tags or {}), status: outcome} if status else tags
        return Measurement(name=name, type="counter", value=1, tags=qualifiers)

    try:
        yield
    except Exception:
        await record(measurement(FAILURE), monitor)
        raise
    await record(measurement(SUCCESS), monitor)
