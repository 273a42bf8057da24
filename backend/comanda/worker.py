"""Standalone print queue processor for the primary device.

    PRINT_PRIMARY=true comanda-print-worker
"""
import asyncio
import logging
import signal

from comanda.config import LOG_LEVEL, PRINT_PRIMARY
from comanda.db.base import SessionLocal, init_db
from comanda.services.notifier import build_notifier
from comanda.services.print_queue import PrintQueue
from comanda.services.print_transport import build_transport
from comanda.services.queue_processor import QueueProcessor

logger = logging.getLogger("comanda.worker")


async def run(is_primary: bool):
    init_db()
    notifier = build_notifier()
    processor = QueueProcessor(
        PrintQueue(SessionLocal, notifier),
        build_transport(),
        is_primary=is_primary,
        notifier=notifier,
    )
    if not is_primary:
        logger.warning("PRINT_PRIMARY is not set; this device does not process the print queue")
        return

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: Ctrl+C llega como KeyboardInterrupt
            pass

    processor.start()
    try:
        await stop.wait()
    finally:
        await processor.stop()


def main():
    logging.basicConfig(level=LOG_LEVEL)
    try:
        asyncio.run(run(PRINT_PRIMARY))
    except KeyboardInterrupt:
        logger.info("Worker interrupted")


if __name__ == "__main__":
    main()
