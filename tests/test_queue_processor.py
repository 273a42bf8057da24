import asyncio
import threading

import pytest

from comanda.services.queue_processor import QueueProcessor


async def _wait_for(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class SlowTransport:
    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.last_error = None

    def is_ready(self):
        return True

    def submit(self, document, printer_name=None):
        self.started.set()
        self.release.wait(5)
        return True


@pytest.mark.anyio
async def test_job_queued_while_offline_prints_on_next_pass(queue, fake_transport):
    job = queue.enqueue("<p>ticket</p>", "kitchen", "o1")
    processor = QueueProcessor(queue, fake_transport, is_primary=True)

    result = await processor.process_pending()

    assert result.ran and result.printed == 1
    assert fake_transport.sent == [("<p>ticket</p>", None)]
    assert queue.get(job.id).status == "impresso"


@pytest.mark.anyio
async def test_secondary_client_never_consumes(queue, fake_transport):
    job = queue.enqueue("doc", "kitchen")
    processor = QueueProcessor(queue, fake_transport, is_primary=False)

    result = await processor.process_pending()

    assert not result.ran
    assert fake_transport.sent == []
    assert queue.get(job.id).status == "pendente"


@pytest.mark.anyio
async def test_unconfigured_transport_skips_queue(queue, make_transport):
    job = queue.enqueue("doc", "kitchen")
    processor = QueueProcessor(queue, make_transport(configured=False), is_primary=True)

    assert not (await processor.process_pending()).ran
    assert queue.get(job.id).status == "pendente"
    assert queue.get(job.id).attempts == 0


@pytest.mark.anyio
async def test_failed_submission_goes_back_to_pending(queue, make_transport):
    job = queue.enqueue("doc", "kitchen")
    processor = QueueProcessor(queue, make_transport(fail=True), is_primary=True)

    result = await processor.process_pending()

    assert result.failed == 1
    stored = queue.get(job.id)
    assert stored.status == "pendente"
    assert stored.last_error == "paper out"


@pytest.mark.anyio
async def test_unreachable_agent_does_not_spend_attempts(queue, make_transport):
    job = queue.enqueue("doc", "kitchen")
    transport = make_transport(reachable=False)
    processor = QueueProcessor(queue, transport, is_primary=True)

    for _ in range(queue.max_attempts + 1):
        assert not (await processor.process_pending()).ran

    stored = queue.get(job.id)
    assert stored.status == "pendente"
    assert stored.attempts == 0
    assert transport.sent == []

    transport.reachable = True
    assert (await processor.process_pending()).printed == 1
    assert queue.get(job.id).status == "impresso"


@pytest.mark.anyio
async def test_agent_lost_mid_batch_defers_job(queue, make_transport):
    first = queue.enqueue("doc1", "kitchen")
    second = queue.enqueue("doc2", "kitchen")
    transport = make_transport()
    submit = transport.submit

    def drop_then_submit(document, printer_name=None):
        # el agente contesta el handshake y cae justo al enviar
        transport.reachable = False
        return submit(document, printer_name)

    transport.submit = drop_then_submit
    processor = QueueProcessor(queue, transport, is_primary=True)

    for _ in range(queue.max_attempts + 1):
        transport.reachable = True
        result = await processor.process_pending()
        assert result.deferred == 2 and result.failed == 0

    for job in (first, second):
        stored = queue.get(job.id)
        assert stored.status == "pendente"
        assert stored.attempts == 0
        assert stored.last_error == "Print agent not connected"

    transport.submit = submit
    transport.reachable = True
    assert (await processor.process_pending()).printed == 2


@pytest.mark.anyio
async def test_transport_exception_counts_as_failure(queue, make_transport):
    job = queue.enqueue("doc", "kitchen")
    processor = QueueProcessor(queue, make_transport(fail=OSError("usb gone")), is_primary=True)

    result = await processor.process_pending()

    assert result.failed == 1
    assert queue.get(job.id).last_error == "usb gone"


@pytest.mark.anyio
async def test_lost_claim_is_skipped(queue, fake_transport, monkeypatch):
    queue.enqueue("doc", "kitchen")
    monkeypatch.setattr(queue, "try_claim", lambda job_id: False)
    processor = QueueProcessor(queue, fake_transport, is_primary=True)

    result = await processor.process_pending()

    assert result.skipped == 1 and result.printed == 0
    assert fake_transport.sent == []


@pytest.mark.anyio
async def test_overlapping_pass_is_dropped(queue):
    queue.enqueue("doc", "kitchen")
    transport = SlowTransport()
    processor = QueueProcessor(queue, transport, is_primary=True)

    first = asyncio.ensure_future(processor.process_pending())
    await _wait_for(transport.started.is_set)

    second = await processor.process_pending()
    assert not second.ran

    transport.release.set()
    assert (await first).printed == 1


@pytest.mark.anyio
async def test_batch_size_limits_one_pass(queue, fake_transport):
    for n in range(3):
        queue.enqueue(f"doc{n}", "kitchen")
    processor = QueueProcessor(queue, fake_transport, is_primary=True, batch_size=2)

    assert (await processor.process_pending()).printed == 2
    assert (await processor.process_pending()).printed == 1
    assert [doc for doc, _ in fake_transport.sent] == ["doc0", "doc1", "doc2"]


@pytest.mark.anyio
async def test_start_runs_immediately_and_wakes_on_notification(queue, notifier, fake_transport):
    first = queue.enqueue("first", "kitchen")
    processor = QueueProcessor(
        queue, fake_transport, is_primary=True, notifier=notifier, poll_interval=60, notify_delay=0.01
    )
    processor.start()
    assert processor.running
    try:
        await _wait_for(lambda: queue.get(first.id).status == "impresso")

        second = queue.enqueue("second", "kitchen")
        await _wait_for(lambda: queue.get(second.id).status == "impresso")
    finally:
        await processor.stop()

    assert not processor.running
    # sin suscripción después de stop
    late = queue.enqueue("late", "kitchen")
    await asyncio.sleep(0.05)
    assert queue.get(late.id).status == "pendente"


@pytest.mark.anyio
async def test_start_is_noop_for_secondary(queue, fake_transport):
    processor = QueueProcessor(queue, fake_transport, is_primary=False)
    processor.start()
    assert not processor.running
    await processor.stop()


@pytest.mark.anyio
async def test_stop_waits_for_job_in_flight(queue):
    job = queue.enqueue("doc", "kitchen")
    transport = SlowTransport()
    processor = QueueProcessor(queue, transport, is_primary=True, poll_interval=60)
    processor.start()
    await _wait_for(transport.started.is_set)

    stopping = asyncio.ensure_future(processor.stop())
    await asyncio.sleep(0.05)
    assert not stopping.done()

    transport.release.set()
    await stopping
    assert queue.get(job.id).status == "impresso"
