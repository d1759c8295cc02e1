from __future__ import annotations

import time
from typing import Callable

from .config import MonitorConfig
from .exporter import PushExporter
from .logging_utils import RichLogger
from .measurement import measure_once
from .metrics import MetricRegistry
from .routing.capability import RoutingCapability


class LatencyPipeline:
    """One tick: measure, record the outcome, push the registry."""

    def __init__(
        self,
        config: MonitorConfig,
        logger: RichLogger,
        client: RoutingCapability,
        metrics: MetricRegistry,
        exporter: PushExporter,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.config = config
        self.logger = logger
        self.client = client
        self.metrics = metrics
        self.exporter = exporter
        self.clock = clock

    async def tick(self) -> None:
        try:
            breakdown = await measure_once(self.client, self.config.rpc_provider, clock=self.clock)
        except Exception as error:
            self.logger.log_exception(error, f"Error trying to check latency ({type(error).__name__})")
            self.metrics.record_error()
        else:
            if not breakdown.has_statistics:
                self.logger.warn("Routing client reported no latency statistics; only the fetch duration is recorded")
            self.metrics.observe(breakdown)
            self.logger.debug(
                "Measured fetch={0.fetch_dur}ms rpc={0.rpc_dur}ms exitApp={0.exit_app_dur}ms "
                "seg={0.seg_dur}ms hopr={0.hopr_dur}ms".format(breakdown)
            )
        finally:
            await self.exporter.push(self.metrics.snapshot())
