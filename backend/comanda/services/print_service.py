import logging
from typing import Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from comanda.config import DECIMAL_SEPARATOR
from comanda.core.printer_config import PrinterConfiguration
from comanda.schemas import OrderSnapshot, is_delivery_details_filled
from comanda.services.receipt_service import format_receipt

logger = logging.getLogger(__name__)


class PrintService:
    """What order management calls: render, enqueue, print now."""

    def __init__(self, queue, transport, *, is_primary: bool = False, decimal_separator: str = DECIMAL_SEPARATOR):
        self.queue = queue
        self.transport = transport
        self.is_primary = is_primary
        self.decimal_separator = decimal_separator

    def render(self, order: OrderSnapshot, kind: str, config: Optional[PrinterConfiguration] = None) -> str:
        config = config or self.transport.load_config()
        return format_receipt(order, kind, config, self.decimal_separator)

    def enqueue(
        self,
        document: str,
        kind: str,
        order_id: Optional[str],
        submitter_id: Optional[str] = None,
        submitter_name: Optional[str] = None,
    ) -> Optional[int]:
        """Queue a rendered document. Store failures never reach the caller."""
        try:
            job = self.queue.enqueue(document, kind, order_id, submitter_id, submitter_name)
        except SQLAlchemyError:
            logger.exception("Failed to enqueue print for order %s", order_id)
            return None
        return job.id

    def print_now(self, document: str, printer_name: Optional[str] = None) -> bool:
        return self.transport.submit(document, printer_name)

    def dispatch_order(
        self,
        order: OrderSnapshot,
        kinds: Iterable[str] = ("kitchen",),
        submitter_id: Optional[str] = None,
        submitter_name: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Flujo al finalizar un pedido: el cliente primario con auto-print
        imprime directo; el resto (o si falla) va a la cola.
        """
        config = self.transport.load_config()
        direct = self.is_primary and config.auto_print and config.is_configured
        results: Dict[str, str] = {}

        for kind in kinds:
            if kind == "delivery" and not is_delivery_details_filled(order):
                results[kind] = "incomplete"
                continue

            document = self.render(order, kind, config)
            if direct and self.print_now(document):
                results[kind] = "printed"
                continue

            job_id = self.enqueue(document, kind, order.id, submitter_id, submitter_name)
            results[kind] = "queued" if job_id is not None else "failed"

        return results
