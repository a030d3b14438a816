import time
from abc import ABC, abstractmethod
from typing import Any

from equipsearch.common.logging import get_logger


class BaseIntegration(ABC):
    """Outbound service client with a named logger and a health probe."""

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"integrations.{name}")

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the service is configured and answering."""
        ...

    async def health_report(self) -> dict[str, Any]:
        started = time.perf_counter()
        healthy = await self.health_check()
        latency_ms = (time.perf_counter() - started) * 1000
        if not healthy:
            self.logger.warning("%s health check failed after %.0fms", self.name, latency_ms)
        return {"name": self.name, "healthy": healthy, "latency_ms": round(latency_ms, 1)}
