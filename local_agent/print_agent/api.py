import asyncio
import logging

from fastapi import Depends, FastAPI, HTTPException

from print_agent import env
from print_agent.audit import audit, recent_events
from print_agent.models import PrintRequest, PrintResult, SessionIn
from print_agent.printers import get_provider
from print_agent.raster import rasterize
from print_agent.security import ALGORITHMS, issue_challenge, open_session, verify_request

logger = logging.getLogger("print_agent")

app = FastAPI(title="Comanda Print Agent")


@app.on_event("startup")
async def _startup():
    audit("agent_startup", agent_id=env.AGENT_ID, name=env.AGENT_NAME, unsigned=env.ALLOW_UNSIGNED)


@app.get("/health")
def health():
    # público: para saber si está vivo (sin datos sensibles)
    return {"ok": True, "agent_id": env.AGENT_ID, "name": env.AGENT_NAME}


# -----------------------------
# Handshake
# -----------------------------
@app.get("/handshake")
def handshake():
    return {
        "challenge": issue_challenge(),
        "algorithms": list(ALGORITHMS),
        "agent_id": env.AGENT_ID,
    }


@app.post("/session")
def session(data: SessionIn):
    try:
        token = open_session(data.certificate, data.algorithm, data.challenge, data.signature)
    except HTTPException as e:
        audit("session_rejected", reason=e.detail)
        raise
    audit("session_opened", algorithm=data.algorithm.upper(), unsigned=not data.certificate.strip())
    return {"token": token, "algorithm": data.algorithm.upper(), "expires_in": env.SESSION_TTL_MINUTES * 60}


# -----------------------------
# Impresoras
# -----------------------------
@app.get("/printers", dependencies=[Depends(verify_request)])
def list_printers():
    provider = get_provider()
    default = provider.default_printer()
    return [{"name": name, "default": name == default} for name in provider.list_printers()]


@app.get("/printers/default", dependencies=[Depends(verify_request)])
def default_printer():
    return {"name": get_provider().default_printer()}


def _run_job(req: PrintRequest) -> PrintResult:
    provider = get_provider()
    if req.printer not in provider.list_printers():
        raise HTTPException(status_code=404, detail=f"Printer not found: {req.printer}")

    if req.format == "raw":
        data = req.data.encode("latin-1", errors="replace") * req.options.copies
    elif req.options.rasterize:
        data = rasterize(req.data, req.options)
    else:
        # texto plano del HTML sin rasterizar
        data = req.data.encode("utf-8") * req.options.copies

    written = provider.print_raw(req.printer, data)
    return PrintResult(printer=req.printer, bytes_sent=written)


@app.post("/print", dependencies=[Depends(verify_request)])
async def print_document(req: PrintRequest):
    try:
        result = await asyncio.to_thread(_run_job, req)
    except RuntimeError as e:
        logger.error("Print on %s failed: %s", req.printer, e)
        audit("print_failed", printer=req.printer, error=str(e))
        raise HTTPException(status_code=502, detail=str(e))
    audit("print_done", job_id=result.job_id, printer=req.printer, bytes=result.bytes_sent)
    return result.model_dump()


@app.get("/audit", dependencies=[Depends(verify_request)])
def audit_tail(limit: int = 50):
    return {"items": recent_events(limit)}
