import platform
from typing import Optional

from print_agent.printers.base import PrinterProvider

_provider: Optional[PrinterProvider] = None


def get_provider() -> PrinterProvider:
    global _provider
    if _provider is None:
        system = platform.system()
        if system == "Windows":
            from print_agent.printers.windows import WindowsPrinterProvider as Provider
        elif system in ("Linux", "Darwin"):
            from print_agent.printers.linux import LinuxPrinterProvider as Provider
        else:
            raise RuntimeError(f"Sistema operativo no soportado: {system}")
        _provider = Provider()
    return _provider


def set_provider(provider: Optional[PrinterProvider]):
    global _provider
    _provider = provider
