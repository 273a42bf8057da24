import pytest
from fastapi.testclient import TestClient

from comanda import main
from comanda.core.printer_config import PrinterConfiguration
from comanda.services.print_service import PrintService


@pytest.fixture
def client(queue, fake_transport, monkeypatch):
    state = main.app.state
    monkeypatch.setattr(state, "print_queue", queue)
    monkeypatch.setattr(state, "transport", fake_transport)
    monkeypatch.setattr(state, "print_service", PrintService(queue, fake_transport))
    return TestClient(main.app)


@pytest.fixture
def order_json(make_order):
    return make_order().model_dump(mode="json")


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_queue_order_and_inspect_job(client, order_json, queue):
    r = client.post("/print/queue", json={"order": order_json, "kind": "kitchen", "submitter_name": "Ana"})
    assert r.status_code == 200
    job_id = r.json()["job_id"]

    job = client.get(f"/print/jobs/{job_id}").json()
    assert job["status"] == "pendente"
    assert job["submitted_by_name"] == "Ana"
    assert "** KITCHEN **" in job["document_data"]

    items = client.get("/print/jobs", params={"status": "pendente"}).json()["items"]
    assert [j["id"] for j in items] == [job_id]


def test_incomplete_delivery_rejected(client, order_json):
    order_json["customer_phone"] = ""
    r = client.post("/print/queue", json={"order": order_json, "kind": "delivery"})
    assert r.status_code == 422
    assert r.json()["detail"] == "Incomplete delivery details"


def test_print_now(client, order_json, fake_transport):
    r = client.post("/print/now", json={"order": order_json, "kind": "delivery", "printer_name": "Bar"})
    assert r.status_code == 200
    assert fake_transport.sent[0][1] == "Bar"


def test_print_now_failure_is_502(client, order_json, fake_transport):
    fake_transport.fail = True
    r = client.post("/print/now", json={"order": order_json})
    assert r.status_code == 502
    assert r.json()["detail"] == "paper out"


def test_preview_returns_html(client, order_json):
    r = client.post("/print/preview", json={"order": order_json, "kind": "delivery"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "TOTAL: R$ 50.00" in r.text


def test_unknown_job_404(client):
    assert client.get("/print/jobs/999").status_code == 404


def test_release_only_in_progress(client, queue):
    job = queue.enqueue("doc", "kitchen")
    assert client.post(f"/print/jobs/{job.id}/release").status_code == 409

    queue.try_claim(job.id)
    assert client.get("/print/jobs/stuck", params={"minutes": 1}).json()["items"] == []
    assert client.post(f"/print/jobs/{job.id}/release").status_code == 200
    assert queue.get(job.id).status == "pendente"


def test_requeue_only_dead_lettered(client, queue):
    job = queue.enqueue("doc", "kitchen")
    assert client.post(f"/print/jobs/{job.id}/requeue").status_code == 409

    for _ in range(queue.max_attempts):
        queue.try_claim(job.id)
        queue.mark_failed(job.id, "paper out")
    assert queue.get(job.id).status == "falhou"

    assert client.post(f"/print/jobs/{job.id}/requeue").status_code == 200
    body = client.get(f"/print/jobs/{job.id}").json()
    assert body["status"] == "pendente"
    assert body["attempts"] == 0


def test_agent_printers(client):
    assert client.get("/print/printers").json() == {
        "connected": True,
        "printers": ["Kitchen", "Counter"],
        "default": "Counter",
    }


def test_agent_printers_when_agent_down(client, fake_transport):
    fake_transport.reachable = False
    assert client.get("/print/printers").json() == {"connected": False, "printers": [], "default": None}


def test_printer_config_roundtrip(client, config_store, monkeypatch):
    monkeypatch.setattr(main.app.state, "config_store", config_store)
    r = client.put("/config/printer", json={"printer_name": "EPSON", "paper_width": "58mm"})
    assert r.status_code == 200
    assert client.get("/config/printer").json()["paper_width"] == "58mm"

    bad = client.put("/config/printer", json={"print_mode": "fax"})
    assert bad.status_code == 422


def test_test_print(client, fake_transport):
    r = client.post("/config/printer/test")
    assert r.status_code == 200
    assert "* TEST *" in fake_transport.sent[0][0]


def test_test_print_needs_printer(client, fake_transport):
    fake_transport.config = PrinterConfiguration()
    assert client.post("/config/printer/test").status_code == 400
