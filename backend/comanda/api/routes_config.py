from datetime import datetime

from fastapi import APIRouter, HTTPException, Request

from comanda.core.printer_config import PrinterConfiguration
from comanda.services.receipt_service import render_test_page

router = APIRouter(prefix="/config", tags=["Config"])


@router.get("/printer")
def get_printer_config(request: Request):
    return request.app.state.config_store.load().model_dump()


@router.put("/printer")
def save_printer_config(data: PrinterConfiguration, request: Request):
    cfg = request.app.state.config_store.save(data)
    return {"ok": True, "config": cfg.model_dump()}


@router.post("/printer/test")
def test_print(request: Request):
    transport = request.app.state.transport
    cfg = transport.load_config()
    if not cfg.is_configured:
        raise HTTPException(400, "No printer configured")

    document = render_test_page(cfg, cfg.printer_name, datetime.now())
    if not transport.submit(document):
        raise HTTPException(502, transport.last_error or "Test print failed")
    return {"ok": True}
