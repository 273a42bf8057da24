from abc import ABC, abstractmethod
from typing import List, Optional


class PrinterProvider(ABC):
    """OS print spooler access. Failures raise ``RuntimeError``."""

    @abstractmethod
    def list_printers(self) -> List[str]:
        pass

    @abstractmethod
    def default_printer(self) -> Optional[str]:
        pass

    @abstractmethod
    def print_raw(self, printer: str, data: bytes, title: str = "Comanda") -> int:
        """Send bytes untouched to the printer; returns bytes written."""
