import logging
import subprocess
from typing import List, Optional

from print_agent.printers.base import PrinterProvider

logger = logging.getLogger("print_agent")


class LinuxPrinterProvider(PrinterProvider):
    def list_printers(self) -> List[str]:
        try:
            out = subprocess.check_output(["lpstat", "-a"], stderr=subprocess.DEVNULL).decode()
        except (OSError, subprocess.CalledProcessError) as e:
            logger.warning("lpstat failed: %s", e)
            return []
        return [line.split()[0] for line in out.splitlines() if line.strip()]

    def default_printer(self) -> Optional[str]:
        try:
            out = subprocess.check_output(["lpstat", "-d"], stderr=subprocess.DEVNULL).decode()
        except (OSError, subprocess.CalledProcessError):
            return None
        # "system default destination: NAME"
        if ":" not in out:
            return None
        return out.split(":", 1)[1].strip() or None

    def print_raw(self, printer: str, data: bytes, title: str = "Comanda") -> int:
        try:
            p = subprocess.run(
                ["lp", "-d", printer, "-t", title, "-o", "raw"],
                input=data,
                capture_output=True,
                timeout=30,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise RuntimeError(f"lp failed: {e}") from e
        if p.returncode != 0:
            raise RuntimeError(p.stderr.decode(errors="replace").strip() or f"lp exited {p.returncode}")
        return len(data)
