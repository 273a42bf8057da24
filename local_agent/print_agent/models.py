from pydantic import BaseModel, Field
from typing import Dict, Literal, Optional
import time
import uuid


class SessionIn(BaseModel):
    certificate: str = ""
    algorithm: str = "SHA512"
    challenge: str
    signature: str = ""


class RasterOptions(BaseModel):
    rasterize: bool = True
    paper: Optional[str] = None
    width_mm: float = 72
    margins: Dict[str, float] = Field(default_factory=dict)
    dpi: int = 203
    copies: int = Field(default=1, ge=1, le=20)


class PrintRequest(BaseModel):
    printer: str
    format: Literal["html", "raw"] = "html"
    data: str  # HTML del recibo o comandos RAW
    options: RasterOptions = Field(default_factory=RasterOptions)


class PrintResult(BaseModel):
    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    printer: str
    created_at: float = Field(default_factory=lambda: time.time())
    status: str = "done"  # done|failed
    bytes_sent: int = 0
    error: Optional[str] = None
