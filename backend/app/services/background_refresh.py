import asyncio
import logging

from app.services.stock_data import StockDataService

logger = logging.getLogger(__name__)


class BackgroundRefresher:
    """Periodically re-fetches cached quotes that are about to expire.

    Runs as a single asyncio task. Each cycle goes through the service's normal
    refresh path, so it spends the same rate budget as requests do and never
    refreshes a symbol that already has a refresh in flight.
    """

    def __init__(self, service: StockDataService, interval: float, batch: int = 5, threshold: float = 15):
        self.service = service
        self.interval = interval
        self.batch = batch
        self.threshold = threshold
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        if self.interval <= 0:
            logger.info("Background refresh disabled")
            return False
        if self.running:
            return True
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Background refresh started (every {self.interval}s, up to {self.batch} symbols)")
        return True

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Background refresh stopped")

    async def run_once(self) -> list[str]:
        refreshed = await self.service.refresh_expiring_quotes(self.threshold, self.batch)
        if refreshed:
            logger.info(f"Background refresh: {', '.join(refreshed)}")
        return refreshed

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Background refresh cycle failed")
