"""Label set and aggregators for latency measurements.

All aggregators live in a private ``prometheus_client`` registry and share one label
schema, fixed when :class:`MetricRegistry` is constructed. Duration metrics are
summaries with client-side quantiles; ``prometheus_client.Summary`` does not compute
quantiles, so :class:`QuantileSummary` is a custom collector that does.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from prometheus_client import CollectorRegistry, Counter, generate_latest
from prometheus_client.metrics_core import Metric, SummaryMetricFamily
from prometheus_client.utils import floatToGoString

from .config import DESCRIPTIVE_LABELS, MonitorConfig
from .measurement import DurationBreakdown

QUANTILES: Tuple[float, ...] = (0.5, 0.7, 0.9, 0.99)
DEFAULT_MAX_SAMPLES = 4096


@dataclass(frozen=True, slots=True)
class LabelSet:
    """Ordered, immutable label name/value pairs shared by every metric."""

    items: Tuple[Tuple[str, str], ...]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.items)

    def as_dict(self) -> Dict[str, str]:
        return dict(self.items)

    def subset(self, names: Iterable[str]) -> Dict[str, str]:
        values = self.as_dict()
        return {name: values[name] for name in names if name in values}


def build_label_set(config: MonitorConfig) -> LabelSet:
    items = [("hops", str(config.hops))]
    for label in DESCRIPTIVE_LABELS:
        value = config.labels.get(label)
        if value:
            items.append((label, value))
    return LabelSet(tuple(items))


class _Window:
    __slots__ = ("count", "total", "samples")

    def __init__(self, max_samples: int) -> None:
        self.count = 0
        self.total = 0.0
        self.samples: Deque[float] = deque(maxlen=max_samples)


def nearest_rank(sorted_values: Sequence[float], quantile: float) -> float:
    n = len(sorted_values)
    return sorted_values[min(int(n * quantile), n - 1)]


class QuantileSummary:
    """Summary collector with quantiles over a sliding window of recent observations.

    Count and sum are cumulative for the life of the process. Quantiles are
    nearest-rank over the last ``max_samples`` observations per label combination.
    """

    def __init__(
        self,
        name: str,
        documentation: str,
        labelnames: Sequence[str],
        quantiles: Sequence[float] = QUANTILES,
        max_samples: int = DEFAULT_MAX_SAMPLES,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        self.name = name
        self.documentation = documentation
        self.labelnames = tuple(labelnames)
        self.quantiles = tuple(sorted(quantiles))
        self.max_samples = max_samples
        self._windows: Dict[Tuple[str, ...], _Window] = {}
        self._lock = threading.Lock()
        if registry is not None:
            registry.register(self)

    def _label_values(self, labels: Mapping[str, str]) -> Tuple[str, ...]:
        if set(labels) != set(self.labelnames):
            raise ValueError(
                f"{self.name} expects labels {sorted(self.labelnames)}, got {sorted(labels)}"
            )
        return tuple(str(labels[name]) for name in self.labelnames)

    def observe(self, labels: Mapping[str, str], value: float) -> None:
        key = self._label_values(labels)
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = _Window(self.max_samples)
            window.count += 1
            window.total += value
            window.samples.append(value)

    def count(self, labels: Mapping[str, str]) -> int:
        key = self._label_values(labels)
        with self._lock:
            window = self._windows.get(key)
            return window.count if window else 0

    def describe(self) -> List[Metric]:
        return [SummaryMetricFamily(self.name, self.documentation, labels=self.labelnames)]

    def collect(self) -> Iterator[Metric]:
        family = SummaryMetricFamily(self.name, self.documentation, labels=self.labelnames)
        with self._lock:
            state = [
                (key, window.count, window.total, sorted(window.samples))
                for key, window in self._windows.items()
            ]
        for key, count, total, ordered in state:
            labels = dict(zip(self.labelnames, key))
            for quantile in self.quantiles:
                family.add_sample(
                    self.name,
                    {**labels, "quantile": floatToGoString(quantile)},
                    nearest_rank(ordered, quantile),
                )
            family.add_metric(list(key), count_value=count, sum_value=total)
        yield family


class MetricsSnapshot:
    """Point-in-time copy of a registry, accepted wherever a registry is expected."""

    def __init__(self, families: Iterable[Metric]) -> None:
        self.families: Tuple[Metric, ...] = tuple(families)

    def collect(self) -> Iterator[Metric]:
        return iter(self.families)

    def render(self) -> bytes:
        return generate_latest(self)  # type: ignore[arg-type]


DURATION_METRICS = (
    ("fetchSum", "fetch_dur", "uhttp_latency_milliseconds", "Total latency of successful request"),
    ("rpcSum", "rpc_dur", "uhttp_rpc_call_milliseconds", "The total duration of a round-trip RPC call"),
    (
        "exitAppSum",
        "exit_app_dur",
        "uhttp_exit_app_milliseconds",
        "Approximate total execution time spent in the exit application, excluding RPC call duration",
    ),
    (
        "segSum",
        "seg_dur",
        "uhttp_segment_sending_milliseconds",
        "Total duration of sending all segments to the hoprd entry node, including acknowledgment receipt",
    ),
    ("hoprSum", "hopr_dur", "uhttp_hopr_network_milliseconds", "Estimated duration through the HOPR mixnet back and forth"),
)
ERROR_METRIC = "uhttp_error"


class MetricRegistry:
    """The fixed set of latency aggregators plus the error counter."""

    def __init__(
        self,
        labels: LabelSet,
        quantiles: Sequence[float] = QUANTILES,
        max_samples: int = DEFAULT_MAX_SAMPLES,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        self.labels = labels
        self.registry = registry or CollectorRegistry()
        self.summaries: Dict[str, QuantileSummary] = {}
        self._fields: Dict[str, str] = {}
        for logical_name, field_name, metric_name, documentation in DURATION_METRICS:
            self.summaries[logical_name] = QuantileSummary(
                metric_name,
                documentation,
                labelnames=labels.names,
                quantiles=quantiles,
                max_samples=max_samples,
                registry=self.registry,
            )
            self._fields[logical_name] = field_name
        self.error_sum = Counter(
            ERROR_METRIC,
            "Latency measure not possible due to error",
            labelnames=labels.names,
            registry=self.registry,
        )
        # export the error series at zero before the first failure
        self.error_sum.labels(**labels.as_dict())

    def observe(self, breakdown: DurationBreakdown) -> None:
        """Record a breakdown; phases the routing client never reported are left out."""

        values = self.labels.as_dict()
        for logical_name, summary in self.summaries.items():
            if logical_name != "fetchSum" and not breakdown.has_statistics:
                continue
            summary.observe(values, getattr(breakdown, self._fields[logical_name]))

    def record_error(self) -> None:
        self.error_sum.labels(**self.labels.as_dict()).inc()

    def error_count(self) -> float:
        value = self.registry.get_sample_value(f"{ERROR_METRIC}_total", self.labels.as_dict())
        return value or 0.0

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(self.registry.collect())
