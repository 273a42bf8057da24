"""Transport adapter: where a rendered receipt physically goes.

``PrintTransport`` reads the client's :class:`PrinterConfiguration` on
every submission and either hands the document to the local print agent
(``direct`` mode, rasterized there) or opens the browser print dialog
(``browser`` mode). Browser mode has no way to learn whether paper came out,
so it always reports success.
"""
import logging
import os
import tempfile
import threading
import webbrowser
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from comanda.config import PRINT_AGENT_CERT_PATH, PRINT_AGENT_KEY_PATH
from comanda.core.printer_config import PrinterConfigStore, PrinterConfiguration
from comanda.core.security import certificate_provider, signature_provider
from comanda.services.agent_client import AgentError, PrintAgentClient

logger = logging.getLogger(__name__)

RASTER_DPI = 203
PRINT_TRIGGER = "<script>window.onload = function () { window.print(); };</script>"


def raster_options(config: PrinterConfiguration) -> Dict[str, Any]:
    return {
        "rasterize": True,
        "paper": config.paper_width,
        "width_mm": config.printable_mm,
        "margins": config.margins,
        "dpi": RASTER_DPI,
    }


def _remove(path: str):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class BrowserPrintTransport:
    def __init__(
        self,
        opener: Callable[[str], Any] = webbrowser.open,
        cleanup_after: float = 120.0,
        tmp_dir: Optional[str] = None,
    ):
        self.opener = opener
        self.cleanup_after = cleanup_after
        self.tmp_dir = tmp_dir

    def submit(self, document: str, config: PrinterConfiguration) -> bool:
        if "</body>" in document:
            page = document.replace("</body>", PRINT_TRIGGER + "</body>", 1)
        else:
            page = document + PRINT_TRIGGER

        with tempfile.NamedTemporaryFile(
            "w", suffix=".html", delete=False, encoding="utf-8", dir=self.tmp_dir
        ) as f:
            f.write(page)
            path = f.name

        self.opener(Path(path).as_uri())
        logger.info("Opened browser print dialog (%s)", config.paper_width)

        if self.cleanup_after:
            timer = threading.Timer(self.cleanup_after, _remove, args=(path,))
            timer.daemon = True
            timer.start()
        return True


class PrintTransport:
    def __init__(
        self,
        config_store: PrinterConfigStore,
        agent: PrintAgentClient,
        browser: Optional[BrowserPrintTransport] = None,
    ):
        self.config_store = config_store
        self.agent = agent
        self.browser = browser or BrowserPrintTransport()
        self.last_error: Optional[str] = None

    def load_config(self) -> PrinterConfiguration:
        return self.config_store.load()

    def is_configured(self) -> bool:
        return self.load_config().is_configured

    def is_ready(self) -> bool:
        """Configured and, in direct mode, the agent answers the handshake."""
        if not self.is_configured():
            return False
        return self.load_config().print_mode == "browser" or self.agent.connect()

    def connect(self) -> bool:
        return self.agent.connect()

    def discover_printers(self) -> List[str]:
        return self.agent.discover_printers()

    def default_printer(self) -> Optional[str]:
        return self.agent.default_printer()

    def submit(self, document: str, printer_name: Optional[str] = None) -> bool:
        config = self.load_config()
        self.last_error = None

        if config.print_mode == "browser":
            return self.browser.submit(document, config)

        printer = printer_name or config.printer_name
        if not printer:
            self.last_error = "No printer configured"
            logger.error(self.last_error)
            return False

        try:
            self.agent.submit(document, printer, options=raster_options(config))
        except AgentError as e:
            self.last_error = str(e)
            logger.error("Print failed on %s: %s", printer, e)
            return False
        return True


def build_transport(config_store: Optional[PrinterConfigStore] = None) -> PrintTransport:
    agent = PrintAgentClient()
    agent.set_certificate_provider(certificate_provider(PRINT_AGENT_CERT_PATH))
    agent.set_signature_provider(signature_provider(PRINT_AGENT_KEY_PATH))
    return PrintTransport(config_store or PrinterConfigStore(), agent, BrowserPrintTransport())
