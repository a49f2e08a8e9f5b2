"""
Ledgerline Events — Delivery Monitor
====================================
Rolling failure-rate tracking for best-effort delivery.

Failed deliveries are never retried. Operators learn about them
from this monitor, which logs EventDeliveryFailureRateExceeded once
each time the rolling failure rate crosses the configured threshold
(and again only after it has recovered below it).
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger("ledgerline.events")


@dataclass(frozen=True)
class DeliveryStats:
    window_size: int
    samples: int
    failures: int
    published_total: int
    failed_total: int

    @property
    def failure_rate(self) -> float:
        return self.failures / self.samples if self.samples else 0.0


class DeliveryMonitor:
    def __init__(
        self,
        *,
        name: str = "events",
        failure_threshold: float = 0.05,
        window_size: int = 100,
        min_samples: int = 20,
    ):
        if not 0.0 < failure_threshold <= 1.0:
            raise ValueError("failure_threshold must be in (0, 1].")
        if window_size < 1 or min_samples < 1:
            raise ValueError("window_size and min_samples must be positive.")
        self._name = name
        self._threshold = failure_threshold
        self._window: deque[bool] = deque(maxlen=window_size)
        self._min_samples = min(min_samples, window_size)
        self._published_total = 0
        self._failed_total = 0
        self._alerting = False
        self._lock = Lock()

    def record(self, success: bool) -> None:
        with self._lock:
            self._window.append(success)
            if success:
                self._published_total += 1
            else:
                self._failed_total += 1

            samples = len(self._window)
            failures = samples - sum(self._window)
            rate = failures / samples
            breached = samples >= self._min_samples and rate >= self._threshold

            raise_alert = breached and not self._alerting
            recovered = self._alerting and not breached
            self._alerting = breached

        if raise_alert:
            logger.error(
                f"EventDeliveryFailureRateExceeded: {self._name} failure rate "
                f"{rate:.1%} over last {samples} deliveries "
                f"(threshold {self._threshold:.1%})",
                extra={
                    "delivery_alert": {
                        "channel": self._name,
                        "failure_rate": rate,
                        "samples": samples,
                        "threshold": self._threshold,
                    }
                },
            )
        elif recovered:
            logger.info(
                f"{self._name} delivery failure rate recovered to {rate:.1%}"
            )

    def stats(self) -> DeliveryStats:
        with self._lock:
            samples = len(self._window)
            return DeliveryStats(
                window_size=self._window.maxlen or 0,
                samples=samples,
                failures=samples - sum(self._window),
                published_total=self._published_total,
                failed_total=self._failed_total,
            )

    @property
    def is_alerting(self) -> bool:
        with self._lock:
            return self._alerting
