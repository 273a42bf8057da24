from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from comanda.schemas import JobKind, OrderSnapshot, is_delivery_details_filled

router = APIRouter(prefix="/print", tags=["Print"])


class EnqueueIn(BaseModel):
    order: OrderSnapshot
    kind: JobKind = "kitchen"
    submitter_id: Optional[str] = None
    submitter_name: Optional[str] = None


class PrintNowIn(BaseModel):
    order: OrderSnapshot
    kind: JobKind = "kitchen"
    printer_name: Optional[str] = None


def _service(request: Request):
    return request.app.state.print_service


def _queue(request: Request):
    return request.app.state.print_queue


def _ensure_complete(order: OrderSnapshot, kind: str):
    if kind == "delivery" and not is_delivery_details_filled(order):
        raise HTTPException(422, "Incomplete delivery details")


# --------------------------------------------------
# ENCOLAR (cualquier cliente)
# --------------------------------------------------
@router.post("/queue")
def enqueue_order(payload: EnqueueIn, request: Request):
    _ensure_complete(payload.order, payload.kind)
    service = _service(request)

    document = service.render(payload.order, payload.kind)
    job_id = service.enqueue(
        document,
        payload.kind,
        payload.order.id,
        payload.submitter_id,
        payload.submitter_name,
    )
    # nunca bloquea la finalización del pedido
    return {"ok": job_id is not None, "job_id": job_id}


# --------------------------------------------------
# IMPRIMIR YA (cliente con impresora)
# --------------------------------------------------
@router.post("/now")
def print_now(payload: PrintNowIn, request: Request):
    _ensure_complete(payload.order, payload.kind)
    service = _service(request)

    document = service.render(payload.order, payload.kind)
    if not service.print_now(document, payload.printer_name):
        detail = getattr(service.transport, "last_error", None) or "Print failed. Check the print agent."
        raise HTTPException(502, detail)
    return {"ok": True}


@router.post("/preview", response_class=HTMLResponse)
def preview(payload: PrintNowIn, request: Request):
    return HTMLResponse(_service(request).render(payload.order, payload.kind))


# --------------------------------------------------
# COLA
# --------------------------------------------------
@router.get("/jobs")
def list_jobs(request: Request, status: Optional[str] = None, limit: int = 50):
    limit = min(max(limit, 1), 200)
    return {"items": [j.to_dict() for j in _queue(request).list_jobs(status, limit)]}


@router.get("/jobs/stuck")
def list_stuck(request: Request, minutes: int = 10):
    jobs = _queue(request).list_stuck(timedelta(minutes=max(minutes, 1)))
    return {"items": [j.to_dict() for j in jobs]}


@router.get("/jobs/{job_id}")
def get_job(job_id: int, request: Request):
    job = _queue(request).get(job_id)
    if not job:
        raise HTTPException(404, "Job not found")
    return job.to_dict(include_document=True)


@router.post("/jobs/{job_id}/release")
def release_job(job_id: int, request: Request):
    if not _queue(request).release(job_id):
        raise HTTPException(409, "Job is not in progress")
    return {"ok": True}


@router.post("/jobs/{job_id}/requeue")
def requeue_job(job_id: int, request: Request):
    if not _queue(request).requeue(job_id):
        raise HTTPException(409, "Job is not dead-lettered")
    return {"ok": True}


# --------------------------------------------------
# IMPRESORAS DEL AGENTE LOCAL
# --------------------------------------------------
@router.get("/printers")
def list_printers(request: Request):
    transport = request.app.state.transport
    connected = transport.connect()
    printers = transport.discover_printers() if connected else []
    default = transport.default_printer() if connected else None
    return {"connected": connected, "printers": printers, "default": default}
