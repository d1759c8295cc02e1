from __future__ import annotations

import io

import pytest
from rich.console import Console

from latency_monitor.logging_utils import RichLogger
from latency_monitor.metrics import LabelSet, MetricRegistry


@pytest.fixture
def logger() -> RichLogger:
    return RichLogger(console=Console(file=io.StringIO(), width=200), verbose=True)


@pytest.fixture
def labels() -> LabelSet:
    return LabelSet((("hops", "1"), ("instance", "monitor-1"), ("location", "Zurich")))


@pytest.fixture
def metrics(labels: LabelSet) -> MetricRegistry:
    return MetricRegistry(labels)
