"""Worker process entry point for scheduled ticks, output delivery and log retention."""

import asyncio
import signal

from autorule.actions.provider import HttpActionProvider
from autorule.core.config import get_settings
from autorule.core.logging import get_logger, setup_logging
from autorule.dispatch.orchestrator import DispatchOrchestrator, create_orchestrator
from autorule.notification.worker import OutputWorker
from autorule.storage.log_store import ExecutionLogStore
from autorule.storage.redis_client import (
    close_redis_pool,
    get_redis,
    init_redis_pool,
)

logger = get_logger(__name__)

RETENTION_INTERVAL_SECONDS = 6 * 3600


class SchedulerLoop:
    """Runs a scheduled tick every ``interval`` seconds until stopped."""

    def __init__(self, orchestrator: DispatchOrchestrator, interval: float):
        self._orchestrator = orchestrator
        self._interval = interval
        self._stop = asyncio.Event()

    async def start(self) -> None:
        logger.info("Scheduler started", tick_seconds=self._interval)
        while not self._stop.is_set():
            try:
                await self._orchestrator.run_scheduled_tick()
            except Exception as e:
                logger.error("Scheduler tick failed", error=str(e), exc_info=True)
            await self._sleep(self._interval)
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._stop.set()

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


class RetentionLoop:
    """Periodically purges execution log entries past the retention window."""

    def __init__(self, log_store: ExecutionLogStore, days: int, interval: float = RETENTION_INTERVAL_SECONDS):
        self._logs = log_store
        self._days = days
        self._interval = interval
        self._stop = asyncio.Event()

    async def start(self) -> None:
        while not self._stop.is_set():
            try:
                await self._logs.delete_older_than(self._days)
            except Exception as e:
                logger.error("Log retention purge failed", error=str(e), exc_info=True)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stop.set()


class WorkerManager:
    """Manager for coordinating worker loops."""

    def __init__(self):
        """Initialize worker manager."""
        self._settings = get_settings()
        self._scheduler: SchedulerLoop | None = None
        self._output_worker: OutputWorker | None = None
        self._retention: RetentionLoop | None = None
        self._orchestrator: DispatchOrchestrator | None = None
        self._action_provider: HttpActionProvider | None = None

    async def start(self) -> None:
        """Start all worker loops."""
        setup_logging()
        logger.info("Starting worker manager")

        await init_redis_pool()
        redis = get_redis()

        self._action_provider = HttpActionProvider()
        self._orchestrator = create_orchestrator(redis, action_provider=self._action_provider)
        self._scheduler = SchedulerLoop(self._orchestrator, self._settings.scheduler_tick_seconds)
        self._output_worker = OutputWorker(self._action_provider, redis)
        self._retention = RetentionLoop(
            ExecutionLogStore(redis),
            self._settings.execution_log_retention_days,
        )

        try:
            await asyncio.gather(
                self._run("Scheduler", self._scheduler.start()),
                self._run("Output worker", self._output_worker.start()),
                self._run("Retention", self._retention.start()),
            )
        finally:
            await self._cleanup()

    @staticmethod
    async def _run(name: str, loop_coro) -> None:
        try:
            await loop_coro
        except asyncio.CancelledError:
            logger.info("Worker loop cancelled", loop=name)
        except Exception as e:
            logger.error("Worker loop error", loop=name, error=str(e), exc_info=True)

    async def stop(self) -> None:
        """Signal workers to stop."""
        logger.info("Stopping workers")
        for loop in (self._scheduler, self._output_worker, self._retention):
            if loop:
                loop.stop()

    async def _cleanup(self) -> None:
        """Clean up resources."""
        logger.info("Cleaning up resources")
        if self._orchestrator:
            await self._orchestrator.close()
        if self._output_worker:
            await self._output_worker.close()
        if self._action_provider:
            await self._action_provider.close()
        await close_redis_pool()
        logger.info("Cleanup complete")


async def main() -> None:
    """Main entry point for worker process."""
    manager = WorkerManager()

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(manager.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await manager.start()


def run() -> None:
    """Console entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
