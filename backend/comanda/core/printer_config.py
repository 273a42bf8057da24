import json
import logging
from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ValidationError

from comanda.config import COMANDA_HOME, CLIENT_ID

logger = logging.getLogger(__name__)

PaperWidth = Literal["58mm", "80mm"]
PrintMode = Literal["direct", "browser"]
PrinterModel = Literal["standard", "zkt-eco"]

# chars por línea, ancho imprimible (mm), ancho del documento (px)
PAPER_PROFILES: Dict[str, Dict[str, int]] = {
    "58mm": {"chars": 32, "printable_mm": 48, "css_px": 210},
    "80mm": {"chars": 48, "printable_mm": 72, "css_px": 320},
}

# márgenes en mm: top, right, bottom, left
MODEL_MARGINS: Dict[str, Dict[str, float]] = {
    "standard": {"top": 0, "right": 2, "bottom": 0, "left": 2},
    "zkt-eco": {"top": 0, "right": 0, "bottom": 0, "left": 0},
}


class PrinterConfiguration(BaseModel):
    printer_name: Optional[str] = None
    paper_width: PaperWidth = "80mm"
    print_mode: PrintMode = "direct"
    printer_model: PrinterModel = "standard"
    auto_print: bool = False

    @property
    def chars_per_line(self) -> int:
        return PAPER_PROFILES[self.paper_width]["chars"]

    @property
    def printable_mm(self) -> int:
        return PAPER_PROFILES[self.paper_width]["printable_mm"]

    @property
    def css_width_px(self) -> int:
        return PAPER_PROFILES[self.paper_width]["css_px"]

    @property
    def margins(self) -> Dict[str, float]:
        return dict(MODEL_MARGINS[self.printer_model])

    @property
    def is_configured(self) -> bool:
        # el modo navegador no necesita impresora guardada
        return self.print_mode == "browser" or bool(self.printer_name)


# ============================
# Persistencia local por cliente
# ============================
class PrinterConfigStore:
    """JSON file holding the printer setup of this device. Never shared."""

    def __init__(self, base_dir: Optional[Path] = None, client_key: Optional[str] = None):
        self.base_dir = Path(base_dir) if base_dir else COMANDA_HOME
        self.client_key = (client_key if client_key is not None else CLIENT_ID).strip()

    @property
    def path(self) -> Path:
        suffix = f"_{self.client_key}" if self.client_key else ""
        return self.base_dir / f"printer_config{suffix}.json"

    def load(self) -> PrinterConfiguration:
        path = self.path
        if not path.exists():
            return PrinterConfiguration()
        try:
            return PrinterConfiguration.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError, OSError) as e:
            logger.warning("Ignoring unreadable printer config %s: %s", path, e)
            return PrinterConfiguration()

    def save(self, config: PrinterConfiguration) -> PrinterConfiguration:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        payload = config.model_dump()
        self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        return config
