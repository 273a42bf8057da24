import os
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

_TMP = Path(tempfile.mkdtemp(prefix="comanda-tests-"))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP / 'comanda.db'}")
os.environ.setdefault("COMANDA_HOME", str(_TMP / "home"))
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("PRINT_PRIMARY", "false")
os.environ.setdefault("AGENT_SECRET", "x" * 32)
os.environ.setdefault("AUDIT_LOG_PATH", str(_TMP / "audit.jsonl"))
os.environ.setdefault("TRUSTED_CERTS_DIR", str(_TMP / "trusted"))

from sqlalchemy.orm import sessionmaker  # noqa: E402

from comanda.core.printer_config import PrinterConfigStore, PrinterConfiguration  # noqa: E402
from comanda.db.base import init_db, make_engine  # noqa: E402
from comanda.schemas import OrderSnapshot  # noqa: E402
from comanda.services.notifier import LocalNotifier  # noqa: E402
from comanda.services.print_queue import PrintQueue  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'queue.db'}")
    init_db(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def notifier():
    return LocalNotifier()


@pytest.fixture
def queue(session_factory, notifier):
    return PrintQueue(session_factory, notifier, max_attempts=3)


@pytest.fixture
def config_store(tmp_path):
    return PrinterConfigStore(base_dir=tmp_path / "config", client_key="")


class FakeTransport:
    """Records submissions; fails while ``fail`` is truthy, unreachable while ``reachable`` is false."""

    def __init__(self, configured=True, fail=False, config=None, reachable=True):
        self.configured = configured
        self.fail = fail
        self.reachable = reachable
        self.config = config or PrinterConfiguration(printer_name="Kitchen")
        self.sent = []
        self.last_error = None

    def load_config(self):
        return self.config

    def is_configured(self):
        return self.configured

    def is_ready(self):
        return self.configured and self.reachable

    def connect(self):
        return self.reachable

    def discover_printers(self):
        return ["Kitchen", "Counter"]

    def default_printer(self):
        return "Counter"

    def submit(self, document, printer_name=None):
        self.sent.append((document, printer_name))
        if not self.reachable:
            self.last_error = "Print agent not connected"
            return False
        if isinstance(self.fail, Exception):
            raise self.fail
        if self.fail:
            self.last_error = "paper out"
            return False
        return True


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def make_transport():
    return FakeTransport


def _order(**overrides) -> OrderSnapshot:
    data = {
        "id": "ord-1",
        "number": 42,
        "type": "entrega",
        "created_at": datetime(2024, 5, 17, 19, 30),
        "customer_name": "Ana Souza",
        "customer_phone": "11 99999-0000",
        "address": "Rua das Flores",
        "address_number": "120",
        "reference": "Blue gate",
        "neighborhood": {"name": "Centro", "fee": Decimal("5.00")},
        "items": [
            {
                "quantity": 2,
                "product": {"name": "Burger", "price": Decimal("20.00"), "category_id": "c1", "category_name": "Burgers"},
            },
            {
                "quantity": 1,
                "product": {"name": "Cola", "price": Decimal("5.00"), "category_id": "c2", "category_name": "Drinks"},
            },
        ],
        "subtotal": Decimal("45.00"),
        "delivery_fee": Decimal("5.00"),
        "total": Decimal("50.00"),
        "payment_method": "pix",
    }
    data.update(overrides)
    return OrderSnapshot.model_validate(data)


@pytest.fixture
def make_order():
    return _order
