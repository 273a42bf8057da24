"""HTML receipt -> monochrome bitmap -> ESC/POS bytes.

Only the markup produced by the backend receipt renderer is understood:
one ``<div>`` per printed line, classes ``center bold big emph indent cat
line dashed row`` and, inside ``row``, a left ``<span>`` plus a
``<span class="right">``. Anything inside ``<head>``, ``<style>`` or
``<script>`` is ignored.
"""
import logging
import textwrap
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import List, Optional, Set

from escpos.printer import Dummy
from PIL import Image, ImageDraw, ImageFont

from print_agent import env
from print_agent.models import RasterOptions

logger = logging.getLogger("print_agent")

MM_PER_INCH = 25.4
# caracteres por línea según papel
PAPER_CHARS = {"58mm": 32, "80mm": 48}
_SKIP = {"head", "style", "script", "title"}


@dataclass
class Line:
    classes: Set[str] = field(default_factory=set)
    text: str = ""
    right: str = ""


class _ReceiptParser(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.lines: List[Line] = []
        self._current: Optional[Line] = None
        self._in_right = False
        self._skip = 0

    def handle_starttag(self, tag, attrs):
        if tag in _SKIP:
            self._skip += 1
            return
        classes = set((dict(attrs).get("class") or "").split())
        if tag == "div":
            self._flush()
            self._current = Line(classes=classes)
        elif tag == "span" and "right" in classes:
            self._in_right = True
        elif tag == "br" and self._current is not None:
            cls = set(self._current.classes)
            self._flush()
            self._current = Line(classes=cls)

    def handle_endtag(self, tag):
        if tag in _SKIP:
            self._skip = max(self._skip - 1, 0)
        elif tag == "span":
            self._in_right = False
        elif tag == "div":
            self._flush()

    def handle_data(self, data):
        if self._skip or self._current is None:
            return
        if self._in_right:
            self._current.right += data.strip()
        else:
            self._current.text += data.strip("\n")

    def _flush(self):
        if self._current is not None:
            self.lines.append(self._current)
        self._current = None
        self._in_right = False

    def close(self):
        super().close()
        self._flush()


def parse_receipt(document: str) -> List[Line]:
    parser = _ReceiptParser()
    parser.feed(document)
    parser.close()
    return parser.lines


def _font(path: str, size: int):
    try:
        return ImageFont.truetype(path, size)
    except OSError:
        logger.warning("Font %s not found, using the default bitmap font", path)
        return ImageFont.load_default()


def _chars_for(options: RasterOptions) -> int:
    if options.paper in PAPER_CHARS:
        return PAPER_CHARS[options.paper]
    return 48 if options.width_mm >= 60 else 32


def render_image(document: str, options: RasterOptions) -> Image.Image:
    dots_per_mm = options.dpi / MM_PER_INCH
    margins = {k: float(options.margins.get(k, 0)) for k in ("top", "right", "bottom", "left")}
    width = int(round(options.width_mm * dots_per_mm))
    left = int(round(margins["left"] * dots_per_mm))
    right = int(round(margins["right"] * dots_per_mm))
    content = max(width - left - right, 16)

    chars = _chars_for(options)
    # monoespaciada: ancho de glifo ~0.6 del tamaño
    size = max(int(content / (chars * 0.6)), 8)
    fonts = {
        "regular": _font(env.FONT_PATH, size),
        "bold": _font(env.FONT_BOLD_PATH, size),
        "big": _font(env.FONT_BOLD_PATH, int(size * 1.5)),
    }
    spacing = max(size // 6, 2)

    ops = []
    height = int(round(margins["top"] * dots_per_mm))
    for line in parse_receipt(document):
        cls = line.classes
        if "line" in cls or "dashed" in cls:
            ops.append(("rule", height, cls))
            height += spacing * 4
            continue
        if "big" in cls:
            font = fonts["big"]
        elif cls & {"bold", "emph", "cat"}:
            font = fonts["bold"]
        else:
            font = fonts["regular"]
        indent = int(font.getlength("  ")) if "indent" in cls else 0
        char_w = max(font.getlength("M"), 1)
        line_h = font.getbbox("Ag")[3] + spacing

        if "row" in cls:
            ops.append(("row", height, cls, font, line.text, line.right, indent))
            height += line_h
            continue
        max_chars = max(int((content - indent) / char_w), 1)
        for part in textwrap.wrap(line.text, max_chars) or [""]:
            ops.append(("text", height, cls, font, part, indent))
            height += line_h

    height += int(round(margins["bottom"] * dots_per_mm)) + spacing
    img = Image.new("L", (width, max(height, 1)), 255)
    draw = ImageDraw.Draw(img)

    for op in ops:
        kind, y, cls = op[0], op[1], op[2]
        if kind == "rule":
            mid = y + spacing * 2
            if "dashed" in cls:
                for x in range(left, left + content, 12):
                    draw.line([(x, mid), (min(x + 6, left + content), mid)], fill=0, width=1)
            else:
                draw.line([(left, mid), (left + content, mid)], fill=0, width=3)
        elif kind == "row":
            _, _, _, font, text, right_text, indent = op
            draw.text((left + indent, y), text, font=font, fill=0)
            rw = font.getlength(right_text)
            draw.text((left + content - rw, y), right_text, font=font, fill=0)
        else:
            _, _, _, font, text, indent = op
            tw = font.getlength(text)
            x = left + indent
            if cls & {"center", "cat"}:
                x = left + max((content - tw) / 2, 0)
            draw.text((x, y), text, font=font, fill=0)
            if "emph" in cls:
                base = y + font.getbbox("Ag")[3]
                draw.line([(x, base), (x + tw, base)], fill=0, width=1)

    return img.convert("1")


def to_escpos(img: Image.Image, copies: int = 1) -> bytes:
    printer = Dummy()
    printer.hw("INIT")
    for _ in range(copies):
        printer.image(img)
        printer.cut()
    return printer.output


def rasterize(document: str, options: RasterOptions) -> bytes:
    return to_escpos(render_image(document, options), options.copies)
