from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from prometheus_client import push_to_gateway, pushadd_to_gateway

from . import __version__
from .errors import ExportError
from .logging_utils import RichLogger
from .metrics import MetricsSnapshot

JOB_NAME = "uhttp-latency-monitor"


class PushMode(str, Enum):
    """How the gateway combines a push with what it already holds for the grouping key.

    ``replace`` (HTTP PUT) overwrites every metric of the group. ``add`` (HTTP POST)
    only replaces metrics with the same name, leaving the rest of the group intact.
    """

    REPLACE = "replace"
    ADD = "add"


PUSH_FUNCTIONS: Dict[PushMode, Callable[..., Any]] = {
    PushMode.REPLACE: push_to_gateway,
    PushMode.ADD: pushadd_to_gateway,
}


@dataclass(slots=True)
class PushExporter:
    gateway: Optional[str]
    logger: RichLogger
    mode: PushMode = PushMode.REPLACE
    grouping_key: Mapping[str, str] = field(default_factory=dict)
    job: str = JOB_NAME
    timeout: float = 30.0
    push_function: Optional[Callable[..., Any]] = None

    def __post_init__(self) -> None:
        self.mode = PushMode(self.mode)
        if self.push_function is None:
            self.push_function = PUSH_FUNCTIONS[self.mode]

    async def push(self, snapshot: MetricsSnapshot) -> bool:
        """Push ``snapshot`` to the gateway; failures are logged and reported as ``False``."""

        if not self.gateway:
            self.logger.info(f"Latency Monitor[{__version__}] finished without pushing metrics")
            return False

        try:
            await asyncio.to_thread(
                self.push_function,
                self.gateway,
                job=self.job,
                registry=snapshot,
                grouping_key=dict(self.grouping_key) or None,
                timeout=self.timeout,
            )
        except Exception as exc:
            error = ExportError(f"Error pushing metrics to {self.gateway}: {exc}")
            error.__cause__ = exc
            self.logger.log_exception(error, "EXPORT ERROR")
            return False

        self.logger.debug(f"Latency Monitor[{__version__}] pushed metrics to {self.gateway} ({self.mode.value})")
        return True
