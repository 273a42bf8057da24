"""Receipt rendering: kitchen tickets and delivery summaries.

Output is a self-contained HTML document with inline styles, sized for the
paper width of the client's printer. The same markup is what the print agent
rasterizes, so only a small vocabulary is used: one ``<div>`` per printed
line, classes ``center bold big emph indent cat line dashed row`` and, for
``row``, a left ``<span>`` plus a ``<span class="right">``.

Everything here is a pure function of its inputs: the same snapshot, kind
and configuration always produce the same bytes.
"""
import html
import textwrap
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence, Tuple

from comanda.core.printer_config import PrinterConfiguration
from comanda.schemas import OrderItem, OrderSnapshot

TYPE_LABELS = {"mesa": "TABLE", "entrega": "DELIVERY", "retirada": "PICKUP"}
PAYMENT_LABELS = {"dinheiro": "Cash", "pix": "PIX", "cartao": "Card", "outros": "Other"}
NO_CHANGE_MARKER = "NO CHANGE NEEDED"
CENTS = Decimal("0.01")


def money(value, decimal_separator: str = ".") -> str:
    q = Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    text = f"{q:.2f}"
    if decimal_separator != ".":
        text = text.replace(".", decimal_separator)
    return text


def group_by_category(items: Sequence[OrderItem]) -> List[Tuple[str, List[OrderItem]]]:
    """Partition items by product category, keeping first-seen category order."""
    groups: List[Tuple[str, List[OrderItem]]] = []
    index = {}
    for item in items:
        key = item.product.category_id or item.product.category_name or ""
        if key not in index:
            label = item.product.category_name or item.product.category_id or "OTHERS"
            index[key] = len(groups)
            groups.append((label, []))
        groups[index[key]][1].append(item)
    return groups


# -----------------------------
# Markup builder
# -----------------------------
class _Ticket:
    def __init__(self, config: PrinterConfiguration, decimal_separator: str):
        self.config = config
        self.sep = decimal_separator
        self.lines: List[str] = []

    def price(self, value) -> str:
        return f"R$ {money(value, self.sep)}"

    def rule(self):
        self.lines.append('<div class="line"></div>')

    def dashed(self):
        self.lines.append('<div class="dashed"></div>')

    def text(self, text: str, *classes: str):
        cls = f' class="{" ".join(classes)}"' if classes else ""
        self.lines.append(f"<div{cls}>{html.escape(text)}</div>")

    def row(self, left: str, right: str, *classes: str):
        width = max(self.config.chars_per_line - len(right) - 1, 8)
        parts = textwrap.wrap(left, width) or [""]
        cls = " ".join(("row",) + classes)
        self.lines.append(
            f'<div class="{cls}"><span>{html.escape(parts[0])}</span>'
            f'<span class="right">{html.escape(right)}</span></div>'
        )
        for rest in parts[1:]:
            self.text(rest, *classes)

    def render(self, title: str) -> str:
        return _document(title, "\n".join(self.lines), self.config)


def _style(config: PrinterConfiguration) -> str:
    width = config.css_width_px
    # zkt-eco imprime corrido: se compensa subiendo y pegando a la izquierda
    padding = "0 4px 4px 0" if config.printer_model == "zkt-eco" else "4px"
    return (
        "* { margin: 0; padding: 0; }\n"
        f"body {{ font-family: 'Courier New', monospace; font-size: 12px; width: {width}px; "
        f"max-width: {width}px; padding: {padding}; }}\n"
        ".center { text-align: center; }\n"
        ".bold { font-weight: bold; }\n"
        ".big { font-size: 18px; }\n"
        ".emph { font-weight: bold; text-decoration: underline; }\n"
        ".indent { padding-left: 12px; }\n"
        ".cat { text-align: center; font-weight: bold; margin: 2px 0; }\n"
        ".line { border-top: 2px solid #000; margin: 6px 0; }\n"
        ".dashed { border-top: 1px dashed #000; margin: 4px 0; }\n"
        ".row { display: flex; justify-content: space-between; }\n"
        f"@media print {{ @page {{ margin: 0; size: {config.paper_width} auto; }} "
        "body { width: 100%; max-width: 100%; } }"
    )


def _document(title: str, body: str, config: PrinterConfiguration) -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="utf-8">'
        f"<title>{html.escape(title)}</title>"
        f"<style>\n{_style(config)}\n</style></head>\n"
        f'<body class="paper-{config.paper_width} model-{config.printer_model}">\n'
        f"{body}\n"
        "</body></html>\n"
    )


def _when(created_at: datetime) -> str:
    return created_at.strftime("%d/%m/%Y  %H:%M")


def _border_addons(item: OrderItem):
    """Split addons into (border addons, others) for a pizza with a border."""
    detail = item.pizza_detail
    if not detail or not detail.border_name:
        return [], list(item.selected_addons)
    needle = detail.border_name.strip().lower()
    border, others = [], []
    for addon in item.selected_addons:
        (border if needle and needle in addon.name.lower() else others).append(addon)
    return border, others


def _pizza_lines(t: _Ticket, item: OrderItem):
    detail = item.pizza_detail
    t.text(f"Size: {detail.size_name}", "indent")
    total = len(detail.flavors)
    for i, flavor in enumerate(detail.flavors, start=1):
        t.text(f"{i}/{total} {flavor.name.upper()}", "indent", "bold")
        for ingredient in flavor.removed_ingredients:
            t.text(f"WITHOUT {ingredient.upper()}", "indent", "emph")
        if flavor.observation and flavor.observation.strip():
            t.text(f"Obs: {flavor.observation.strip()}", "indent")
    if detail.border_name:
        # el precio de la borda ya va en el total de la línea
        t.text(f"Border: {detail.border_name.upper()}", "indent")


def _addon_lines(t: _Ticket, item: OrderItem, with_prices: bool):
    _, addons = _border_addons(item)
    if not addons:
        return
    if not with_prices:
        t.text("+ " + ", ".join(a.name for a in addons), "indent")
        return
    for addon in addons:
        if addon.price > 0:
            t.row(f"+ {addon.name}", t.price(addon.price), "indent")
        else:
            t.text(f"+ {addon.name}", "indent")


def _item_lines(t: _Ticket, order: OrderSnapshot, with_prices: bool):
    for label, items in group_by_category(order.items):
        t.dashed()
        t.text(f"[ {label.upper()} ]", "cat")
        for item in items:
            if with_prices:
                t.row(f"{item.quantity}x {item.product.name}", t.price(item.line_total), "bold")
            else:
                t.text(f"{item.quantity}x {item.product.name.upper()}", "bold")
            if item.pizza_detail:
                _pizza_lines(t, item)
            _addon_lines(t, item, with_prices)
            if item.observation and item.observation.strip():
                t.text(f"Obs: {item.observation.strip()}", "indent", "bold")


def _header(t: _Ticket, order: OrderSnapshot):
    t.text(f"{TYPE_LABELS[order.type]} #{order.number}", "center", "big", "bold")
    t.text(_when(order.created_at), "center")
    if order.customer_name:
        t.text(order.customer_name, "center", "bold")


def build_kitchen_receipt(
    order: OrderSnapshot,
    config: Optional[PrinterConfiguration] = None,
    decimal_separator: str = ".",
) -> str:
    """Price-free ticket for the kitchen, items grouped by station."""
    config = config or PrinterConfiguration()
    t = _Ticket(config, decimal_separator)

    t.rule()
    t.text("** KITCHEN **", "center", "big", "bold")
    t.rule()
    _header(t, order)
    if order.type == "mesa" and (order.table_reference or order.table_number):
        t.text(f"Table: {order.table_reference or order.table_number}", "center")

    t.rule()
    t.text("ORDER ITEMS", "center", "bold")
    _item_lines(t, order, with_prices=False)
    t.rule()

    if order.observation and order.observation.strip():
        t.text(f"Obs: {order.observation.strip()}", "bold")
        t.rule()

    count = sum(i.quantity for i in order.items)
    t.text(f"{count} ITEM(S) TOTAL", "center")
    t.rule()
    return t.render(f"Kitchen #{order.number}")


def build_delivery_receipt(
    order: OrderSnapshot,
    config: Optional[PrinterConfiguration] = None,
    decimal_separator: str = ".",
) -> str:
    """Priced summary for customer and courier.

    Callers check :func:`comanda.schemas.is_delivery_details_filled` first;
    missing optional fields simply produce no line.
    """
    config = config or PrinterConfiguration()
    t = _Ticket(config, decimal_separator)

    t.rule()
    _header(t, order)
    if order.customer_phone:
        t.text(f"Phone: {order.customer_phone}", "center")
    t.rule()

    if order.type == "entrega":
        if order.address:
            t.text("ADDRESS:", "bold")
            number = f", {order.address_number}" if order.address_number else ""
            t.text(f"{order.address}{number}", "indent")
        if order.reference:
            t.text(f"Ref: {order.reference}", "indent")
        if order.neighborhood:
            t.text(f"Neighborhood: {order.neighborhood.name}", "indent")
        t.dashed()

    t.text("ITEMS", "center", "bold")
    _item_lines(t, order, with_prices=True)
    t.dashed()

    if order.observation and order.observation.strip():
        t.text(f"Obs: {order.observation.strip()}", "bold")
        t.dashed()

    t.row("Subtotal:", t.price(order.subtotal))
    if order.delivery_fee > 0:
        t.row("Delivery fee:", t.price(order.delivery_fee))
    t.rule()
    t.text(f"TOTAL: {t.price(order.total)}", "center", "big", "bold")
    t.rule()

    if order.payment_method:
        t.row("Payment:", PAYMENT_LABELS[order.payment_method], "bold")
        if order.payment_method == "dinheiro":
            change = (order.change_for - order.total) if order.change_for is not None else None
            if change is not None and change > 0:
                t.row("Change for:", t.price(order.change_for))
                t.row("Change:", t.price(change), "bold")
            else:
                t.text(NO_CHANGE_MARKER, "center", "bold")
        t.rule()

    t.text("Thank you for your order!", "center")
    return t.render(f"Order #{order.number}")


def format_receipt(
    order: OrderSnapshot,
    kind: str,
    config: Optional[PrinterConfiguration] = None,
    decimal_separator: str = ".",
) -> str:
    if kind == "kitchen":
        return build_kitchen_receipt(order, config, decimal_separator)
    if kind == "delivery":
        return build_delivery_receipt(order, config, decimal_separator)
    raise ValueError(f"Unknown receipt kind: {kind!r}")


def render_test_page(
    config: PrinterConfiguration,
    printer_name: Optional[str],
    now: datetime,
) -> str:
    """Short page used by the configuration screen to check the setup."""
    t = _Ticket(config, ".")
    t.rule()
    t.text("* TEST *", "center", "big", "bold")
    t.rule()
    t.text("Printer:", "center", "bold")
    t.text(printer_name or "Browser", "center")
    t.text(f"Paper: {config.paper_width}", "center", "bold")
    t.text(f"Mode: {'Direct' if config.print_mode == 'direct' else 'Browser'}", "center")
    t.text(f"Model: {config.printer_model}", "center")
    t.text(now.strftime("%d/%m/%Y %H:%M:%S"), "center")
    t.rule()
    t.text("Printer is working!", "center", "bold")
    t.rule()
    return t.render("Test page")
