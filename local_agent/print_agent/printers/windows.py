from typing import List, Optional

from print_agent.printers.base import PrinterProvider


class WindowsPrinterProvider(PrinterProvider):
    def list_printers(self) -> List[str]:
        import win32print
        flags = win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
        return [p[2] for p in win32print.EnumPrinters(flags)]

    def default_printer(self) -> Optional[str]:
        import win32print
        try:
            return win32print.GetDefaultPrinter()
        except RuntimeError:
            return None

    def print_raw(self, printer: str, data: bytes, title: str = "Comanda") -> int:
        import pywintypes
        import win32print
        try:
            h = win32print.OpenPrinter(printer)
        except pywintypes.error as e:
            raise RuntimeError(f"Cannot open printer {printer}: {e}") from e
        try:
            win32print.StartDocPrinter(h, 1, (title, None, "RAW"))
            try:
                win32print.StartPagePrinter(h)
                written = win32print.WritePrinter(h, data)
                win32print.EndPagePrinter(h)
            finally:
                win32print.EndDocPrinter(h)
        except pywintypes.error as e:
            raise RuntimeError(str(e)) from e
        finally:
            win32print.ClosePrinter(h)
        return written
