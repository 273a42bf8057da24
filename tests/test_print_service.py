from sqlalchemy.exc import OperationalError

from comanda.core.printer_config import PrinterConfiguration
from comanda.services.print_service import PrintService


def test_render_uses_saved_paper(queue, make_transport, make_order):
    transport = make_transport(config=PrinterConfiguration(printer_name="K", paper_width="58mm"))
    service = PrintService(queue, transport)
    assert "paper-58mm" in service.render(make_order(), "kitchen")


def test_enqueue_returns_job_id(queue, fake_transport):
    service = PrintService(queue, fake_transport)
    job_id = service.enqueue("<p>x</p>", "kitchen", "ord-1", "u1", "Ana")
    assert queue.get(job_id).order_id == "ord-1"


def test_enqueue_swallows_store_errors(queue, fake_transport, monkeypatch):
    def _broken(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(queue, "enqueue", _broken)
    service = PrintService(queue, fake_transport)
    assert service.enqueue("<p>x</p>", "kitchen", "ord-1") is None


def test_secondary_client_always_queues(queue, fake_transport, make_order):
    fake_transport.config = PrinterConfiguration(printer_name="K", auto_print=True)
    service = PrintService(queue, fake_transport, is_primary=False)

    result = service.dispatch_order(make_order(), kinds=("kitchen", "delivery"))

    assert result == {"kitchen": "queued", "delivery": "queued"}
    assert fake_transport.sent == []
    assert len(queue.list_jobs("pendente")) == 2


def test_primary_with_auto_print_prints_directly(queue, fake_transport, make_order):
    fake_transport.config = PrinterConfiguration(printer_name="K", auto_print=True)
    service = PrintService(queue, fake_transport, is_primary=True)

    assert service.dispatch_order(make_order()) == {"kitchen": "printed"}
    assert len(fake_transport.sent) == 1
    assert queue.list_jobs() == []


def test_direct_failure_falls_back_to_queue(queue, make_transport, make_order):
    transport = make_transport(fail=True, config=PrinterConfiguration(printer_name="K", auto_print=True))
    service = PrintService(queue, transport, is_primary=True)

    assert service.dispatch_order(make_order()) == {"kitchen": "queued"}
    assert len(queue.list_jobs("pendente")) == 1


def test_incomplete_delivery_is_not_rendered(queue, fake_transport, make_order):
    service = PrintService(queue, fake_transport)
    order = make_order(customer_phone=None)

    result = service.dispatch_order(order, kinds=("kitchen", "delivery"))

    assert result == {"kitchen": "queued", "delivery": "incomplete"}
    assert [j.kind for j in queue.list_jobs()] == ["kitchen"]
