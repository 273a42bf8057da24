from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

from comanda.core.printer_config import PrinterConfiguration
from comanda.services.agent_client import AgentError
from comanda.services.print_transport import (
    PRINT_TRIGGER,
    BrowserPrintTransport,
    PrintTransport,
    raster_options,
)


class FakeAgent:
    def __init__(self, error=None, reachable=True):
        self.error = error
        self.reachable = reachable
        self.jobs = []

    def connect(self):
        return self.reachable

    def discover_printers(self):
        return ["EPSON"]

    def default_printer(self):
        return "EPSON"

    def submit(self, document, printer, *, fmt="html", options=None):
        if self.error:
            raise AgentError(self.error)
        self.jobs.append((document, printer, options))
        return {"status": "done"}


def _browser(tmp_path, opened):
    return BrowserPrintTransport(opener=opened.append, cleanup_after=0, tmp_dir=str(tmp_path))


def test_raster_options_follow_paper_and_model():
    opts = raster_options(PrinterConfiguration(paper_width="58mm", printer_model="zkt-eco"))
    assert opts["width_mm"] == 48
    assert opts["margins"] == {"top": 0, "right": 0, "bottom": 0, "left": 0}
    assert opts["rasterize"] is True


def test_direct_mode_sends_to_saved_printer(config_store, tmp_path):
    config_store.save(PrinterConfiguration(printer_name="EPSON"))
    agent = FakeAgent()
    transport = PrintTransport(config_store, agent, _browser(tmp_path, []))

    assert transport.submit("<p>x</p>")
    document, printer, options = agent.jobs[0]
    assert printer == "EPSON"
    assert options["width_mm"] == 72


def test_explicit_printer_overrides_saved(config_store, tmp_path):
    config_store.save(PrinterConfiguration(printer_name="EPSON"))
    agent = FakeAgent()
    transport = PrintTransport(config_store, agent, _browser(tmp_path, []))
    transport.submit("<p>x</p>", "Bar")
    assert agent.jobs[0][1] == "Bar"


def test_direct_mode_without_printer_fails(config_store, tmp_path):
    transport = PrintTransport(config_store, FakeAgent(), _browser(tmp_path, []))
    assert not transport.is_configured()
    assert not transport.submit("<p>x</p>")
    assert transport.last_error == "No printer configured"


def test_ready_only_when_agent_answers(config_store, tmp_path):
    config_store.save(PrinterConfiguration(printer_name="Kitchen"))
    down = PrintTransport(config_store, FakeAgent(reachable=False), _browser(tmp_path, []))
    up = PrintTransport(config_store, FakeAgent(), _browser(tmp_path, []))

    assert down.is_configured() and not down.is_ready()
    assert up.is_ready()
    assert up.default_printer() == "EPSON"


def test_browser_mode_ready_without_agent(config_store, tmp_path):
    config_store.save(PrinterConfiguration(print_mode="browser"))
    transport = PrintTransport(config_store, FakeAgent(reachable=False), _browser(tmp_path, []))
    assert transport.is_ready()


def test_unconfigured_is_never_ready(config_store, tmp_path):
    transport = PrintTransport(config_store, FakeAgent(), _browser(tmp_path, []))
    assert not transport.is_ready()


def test_agent_error_reported_as_failure(config_store, tmp_path):
    config_store.save(PrinterConfiguration(printer_name="EPSON"))
    transport = PrintTransport(config_store, FakeAgent(error="offline"), _browser(tmp_path, []))
    assert not transport.submit("<p>x</p>")
    assert transport.last_error == "offline"


def test_browser_mode_opens_print_dialog(config_store, tmp_path):
    config_store.save(PrinterConfiguration(print_mode="browser"))
    opened = []
    agent = FakeAgent()
    transport = PrintTransport(config_store, agent, _browser(tmp_path, opened))

    assert transport.is_configured()
    assert transport.submit("<html><body><p>x</p></body></html>")
    assert agent.jobs == []

    path = Path(url2pathname(urlparse(opened[0]).path))
    page = path.read_text(encoding="utf-8")
    assert PRINT_TRIGGER + "</body>" in page
