"""Readiness tracking for the gateway.

Unexpected pipeline failures (not hostname rejections, not missing content, not upstream
statuses) raise the gauge, keyed by the exception type that caused them. A background task
drains the gauge by one every tick, and the causes are forgotten once it is empty again.
While the gauge is over its threshold the readiness probe answers 503 with the snapshot, so
an operator can see which failure is keeping the gateway out of rotation.
"""

import asyncio
from collections import Counter
from typing import Any, Dict


class HealthGauge:
    def __init__(self, health_threshold: int = 100) -> None:
        self._value = 0
        self._health_threshold = health_threshold
        self._causes: Counter[str] = Counter()
        self._lock = asyncio.Lock()

    @property
    def value(self) -> int:
        return self._value

    @property
    def health_threshold(self) -> int:
        return self._health_threshold

    async def record_failure(self, cause: str, weight: int = 1) -> int:
        async with self._lock:
            self._value += weight
            self._causes[cause] += weight
            return self._value

    async def tick(self) -> None:
        async with self._lock:
            if self._value > 0:
                self._value -= 1
            if self._value == 0:
                self._causes.clear()

    async def is_healthy(self) -> bool:
        async with self._lock:
            return self._value <= self._health_threshold

    async def snapshot(self) -> Dict[str, Any]:
        async with self._lock:
            return {
                "healthy": self._value <= self._health_threshold,
                "value": self._value,
                "threshold": self._health_threshold,
                "causes": dict(self._causes),
            }
