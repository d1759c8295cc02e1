from __future__ import annotations

import asyncio
import signal
from typing import Sequence

from . import __version__
from .cli import parse_args
from .config import MonitorConfig, build_config
from .exporter import PushExporter
from .logging_utils import RichLogger
from .metrics import LabelSet, MetricRegistry, build_label_set
from .pipeline import LatencyPipeline
from .routing import create_routing_client
from .routing.capability import RoutingCapability
from .scheduler import TickScheduler


def build_exporter(config: MonitorConfig, logger: RichLogger, labels: LabelSet) -> PushExporter:
    if not config.push_gateway:
        logger.warn("'UHTTP_LM_PUSH_GATEWAY' not set, disabling metrics pushing")
    return PushExporter(
        gateway=config.push_gateway,
        logger=logger,
        mode=config.push_mode,
        grouping_key=labels.subset(config.grouping_labels),
    )


async def serve(scheduler: TickScheduler, client: RoutingCapability) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, scheduler.stop)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - platform specific
            pass
    try:
        await scheduler.run()
    finally:
        close = getattr(client, "aclose", None)
        if close is not None:
            await close()


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    config = build_config(args)
    logger = RichLogger(log_file=config.log_file, verbose=config.verbose)

    if "location" not in config.labels:
        logger.warn("'UHTTP_LM_LOCATION' not set, metrics carry no location label")

    labels = build_label_set(config)
    client = create_routing_client(config)
    metrics = MetricRegistry(labels)
    exporter = build_exporter(config, logger, labels)
    pipeline = LatencyPipeline(config=config, logger=logger, client=client, metrics=metrics, exporter=exporter)
    scheduler = TickScheduler(
        pipeline.tick,
        interval_ms=config.interval_ms,
        offset_ms=config.offset_ms,
        logger=logger,
        max_ticks=1 if args.once else None,
    )

    logger.info(
        f"Latency Monitor[{__version__}] started with "
        f"{{rpcProvider: {config.rpc_provider}, hops: {config.hops}, "
        f"intervalMs: {config.interval_ms}, offsetMs: {config.offset_ms}}}"
    )
    try:
        asyncio.run(serve(scheduler, client))
    except KeyboardInterrupt:
        logger.log_panel("Stopping latency monitor...", "ACTION", "magenta3")


if __name__ == "__main__":
    main()
