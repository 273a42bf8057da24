"""Consumer loop for the print queue.

Runs on the primary client only. The poll timer and the push notification
both just set one "work available" event; a single consumer task waits on
it and runs batches one after another, so this client never sends two jobs
to the printer at the same time. Triggers that arrive while a batch is
running collapse into one follow-up run.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from comanda.config import QUEUE_BATCH_SIZE, QUEUE_NOTIFY_DELAY, QUEUE_POLL_INTERVAL

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    printed: int = 0
    failed: int = 0
    skipped: int = 0
    deferred: int = 0
    ran: bool = True


class QueueProcessor:
    def __init__(
        self,
        queue,
        transport,
        *,
        is_primary: bool,
        notifier=None,
        poll_interval: float = QUEUE_POLL_INTERVAL,
        batch_size: int = QUEUE_BATCH_SIZE,
        notify_delay: float = QUEUE_NOTIFY_DELAY,
    ):
        self.queue = queue
        self.transport = transport
        self.is_primary = is_primary
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.notify_delay = notify_delay

        self._busy = False
        self._stopping = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._tasks: List[asyncio.Task] = []
        self._unsubscribe = None

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    # -----------------------------
    # Una pasada por la cola
    # -----------------------------
    async def process_pending(self) -> BatchResult:
        if not self.is_primary or self._busy:
            return BatchResult(ran=False)

        self._busy = True
        try:
            # sin impresora o sin agente no se consulta la cola
            if not await asyncio.to_thread(self.transport.is_ready):
                return BatchResult(ran=False)

            jobs = await asyncio.to_thread(self.queue.claim_batch, self.batch_size)
            result = BatchResult()
            for job in jobs:
                if self._stopping:
                    break
                claimed = await asyncio.to_thread(self.queue.try_claim, job.id)
                if not claimed:
                    result.skipped += 1
                    continue
                await self._print_job(job, result)
            return result
        finally:
            self._busy = False

    async def _print_job(self, job, result: BatchResult):
        error = None
        try:
            ok = await asyncio.to_thread(self.transport.submit, job.document_data)
            if not ok:
                error = getattr(self.transport, "last_error", None) or "Printer rejected the job"
        except Exception as e:
            logger.exception("Print job %s raised while printing", job.id)
            ok, error = False, str(e)

        if ok:
            await asyncio.to_thread(self.queue.mark_done, job.id)
            result.printed += 1
            logger.info("Print job %s printed (kind=%s order=%s)", job.id, job.kind, job.order_id)
        elif not await asyncio.to_thread(self.transport.is_ready):
            # agente caído: el intento no cuenta
            await asyncio.to_thread(self.queue.defer, job.id, error)
            result.deferred += 1
        else:
            await asyncio.to_thread(self.queue.mark_failed, job.id, error)
            result.failed += 1

    # -----------------------------
    # Señal "hay trabajo"
    # -----------------------------
    def trigger(self):
        if self._wakeup is not None:
            self._wakeup.set()

    def _on_notification(self, job_id: str):
        # puede llegar desde otro hilo (redis pubsub)
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(loop.call_later, self.notify_delay, self.trigger)

    async def _tick(self):
        while True:
            await asyncio.sleep(self.poll_interval)
            self.trigger()

    async def _consume(self):
        while not self._stopping:
            await self._wakeup.wait()
            self._wakeup.clear()
            if self._stopping:
                break
            try:
                result = await self.process_pending()
            except Exception:
                logger.exception("Print queue processor error")
                continue
            if result.printed or result.failed or result.skipped or result.deferred:
                logger.info(
                    "Print batch: printed=%s failed=%s skipped=%s deferred=%s",
                    result.printed, result.failed, result.skipped, result.deferred,
                )

    # -----------------------------
    # Ciclo de vida
    # -----------------------------
    def start(self):
        """Start polling and listening. Must be called from the running loop."""
        if not self.is_primary:
            logger.info("Not the primary client; print queue processor idle")
            return
        if self._tasks:
            return

        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        self._stopping = False
        self._wakeup.set()  # primera pasada inmediata

        self._tasks = [
            self._loop.create_task(self._consume()),
            self._loop.create_task(self._tick()),
        ]
        if self.notifier is not None:
            self._unsubscribe = self.notifier.subscribe(self._on_notification)
        logger.info("Print queue processor started (every %ss)", self.poll_interval)

    async def stop(self):
        """Stop triggers and let the job in flight resolve before returning."""
        if not self._tasks:
            return
        self._stopping = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        consume, tick = self._tasks
        tick.cancel()
        self.trigger()
        await asyncio.gather(consume, tick, return_exceptions=True)
        self._tasks = []
        self._loop = None
        logger.info("Print queue processor stopped")
