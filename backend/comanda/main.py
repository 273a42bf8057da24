import logging

from fastapi import FastAPI

from comanda.config import LOG_LEVEL, PRINT_PRIMARY
from comanda.db.base import SessionLocal, init_db
from comanda.core.printer_config import PrinterConfigStore
from comanda.services.notifier import build_notifier
from comanda.services.print_queue import PrintQueue
from comanda.services.print_service import PrintService
from comanda.services.print_transport import build_transport
from comanda.services.queue_processor import QueueProcessor
from comanda.api import routes_print, routes_config

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("comanda")

app = FastAPI(title="Comanda Print")
init_db()

notifier = build_notifier()
print_queue = PrintQueue(SessionLocal, notifier)
config_store = PrinterConfigStore()
transport = build_transport(config_store)

app.state.print_queue = print_queue
app.state.config_store = config_store
app.state.transport = transport
app.state.print_service = PrintService(print_queue, transport, is_primary=PRINT_PRIMARY)
app.state.processor = QueueProcessor(print_queue, transport, is_primary=PRINT_PRIMARY, notifier=notifier)

app.include_router(routes_print.router)
app.include_router(routes_config.router)


@app.on_event("startup")
async def _startup():
    app.state.processor.start()
    logger.info("Comanda print starting (primary=%s)", PRINT_PRIMARY)


@app.on_event("shutdown")
async def _shutdown():
    await app.state.processor.stop()


@app.get("/health")
def health():
    return {"ok": True, "primary": PRINT_PRIMARY, "processor": app.state.processor.running}
