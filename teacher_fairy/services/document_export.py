"""
Document Export Service
=======================
Turns a plan fragment into downloadable documents:

- a word-processor compatible ``.doc`` (the fragment inside a minimal HTML
  shell served as ``application/msword``), and
- a real ``.docx`` built with python-docx from the fragment's headings,
  paragraphs, lists and tables.

Also hands the raw fragment to a clipboard writer for pasting into other
editors.
"""
import io
import logging
import re
from html import escape

from bs4 import BeautifulSoup, NavigableString, Tag
from docx import Document
from docx.oxml import parse_xml
from docx.oxml.ns import nsdecls
from docx.shared import Pt, RGBColor

logger = logging.getLogger(__name__)

DOC_MIME_TYPE = "application/msword"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

PRINT_CSS = (
    "body{font-family:Calibri,Arial,sans-serif;font-size:11pt;line-height:1.3;}"
    "h1{font-size:20pt;margin:0 0 8pt;}"
    "h2{font-size:15pt;margin:14pt 0 6pt;}"
    "h3{font-size:12pt;margin:10pt 0 4pt;}"
    "table{border-collapse:collapse;width:100%;margin:6pt 0 10pt;page-break-inside:avoid;}"
    "th,td{border:1px solid #777;padding:4pt 6pt;vertical-align:top;text-align:left;}"
    "th{background:#e8ecf4;}"
)

DEFAULT_STYLE = {
    "title_font_name": "Georgia",
    "title_font_size": 22,
    "heading_font_name": "Georgia",
    "heading_sizes": {"1": 18, "2": 14, "3": 12},
    "heading_color": "#2F5496",
    "body_font_name": "Calibri",
    "body_font_size": 11,
    "table_header_bg": "#E8ECF4",
}


def build_document(fragment, title="Lesson Plan"):
    """Wrap a fragment in a standalone, print-friendly HTML document."""
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(title or 'Lesson Plan')}</title>"
        f"<style>{PRINT_CSS}</style></head>"
        f"<body>{fragment or ''}</body></html>"
    )


def safe_filename(name, default="Lesson_Plan"):
    """Convert a plan name to a safe filename stem."""
    stem = "".join(c for c in (name or "") if c.isalnum() or c in ' -_').strip()
    return re.sub(r"\s+", "_", stem) or default


def export_filename(name, extension=".doc"):
    """Safe filename that always ends with ``extension``."""
    name = name or ""
    if name.lower().endswith(extension):
        name = name[:-len(extension)]
    return safe_filename(name) + extension


def export_as_document(fragment, filename, title=None):
    """Bytes, download name and MIME type for the ``.doc`` download."""
    body = build_document(fragment, title or filename).encode('utf-8')
    return body, export_filename(filename), DOC_MIME_TYPE


# ══════════════════════════════════════════════════════════════
# FRAGMENT -> CONTENT BLOCKS
# ══════════════════════════════════════════════════════════════

BLOCK_TAGS = ["h1", "h2", "h3", "p", "ul", "ol", "table"]


def _cell_text(element):
    return element.get_text().strip()


def _table_block(table):
    rows = []
    header_cells = set()
    for r_idx, tr in enumerate(table.find_all("tr")):
        cells = tr.find_all(["th", "td"], recursive=False)
        for c_idx, cell in enumerate(cells):
            if cell.name == "th":
                header_cells.add((r_idx, c_idx))
        rows.append([_cell_text(cell) for cell in cells])
    if not rows:
        return None
    return {"type": "table", "rows": rows, "header_cells": header_cells}


def _block(element):
    name = element.name
    if name in ("h1", "h2", "h3"):
        return {"type": "heading", "level": int(name[1]), "text": _cell_text(element)}
    if name == "p":
        return {"type": "paragraph", "text": _cell_text(element)}
    if name in ("ul", "ol"):
        items = [_cell_text(li) for li in element.find_all("li", recursive=False)]
        if not items:
            return None
        return {"type": "bullet_list" if name == "ul" else "numbered_list", "items": items}
    return _table_block(element)


def fragment_to_blocks(fragment):
    """Parse a plan fragment into heading / paragraph / list / table blocks."""
    soup = BeautifulSoup(fragment or "", "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")

    blocks = []
    for node in soup.descendants:
        if node.find_parent(BLOCK_TAGS) is not None:
            continue
        if isinstance(node, Tag):
            if node.name in BLOCK_TAGS:
                block = _block(node)
                if block:
                    blocks.append(block)
        elif type(node) is NavigableString and node.strip():
            # Bare text outside any block
            blocks.append({"type": "paragraph", "text": node.strip()})
    return blocks


# ══════════════════════════════════════════════════════════════
# DOCX
# ══════════════════════════════════════════════════════════════

def _hex_to_rgb(hex_str):
    """Convert '#RRGGBB' to RGBColor. Returns None if invalid."""
    if not hex_str or not isinstance(hex_str, str):
        return None
    hex_str = hex_str.lstrip('#')
    if len(hex_str) != 6:
        return None
    try:
        return RGBColor(int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))
    except ValueError:
        return None


def _add_text(paragraph, text, font_name, font_size, bold=False):
    """Add ``text`` as runs, keeping line breaks from ``<br/>``."""
    for i, line in enumerate(text.split("\n")):
        run = paragraph.add_run(line)
        run.font.name = font_name
        run.font.size = Pt(font_size)
        run.bold = bold
        if i < text.count("\n"):
            run.add_break()


def _shade_cell(cell, bg_hex):
    shading = parse_xml('<w:shd {} w:fill="{}"/>'.format(nsdecls('w'), bg_hex.lstrip('#')))
    cell._tc.get_or_add_tcPr().append(shading)


def create_document_docx(blocks, title=None, style=None):
    """Build a python-docx ``Document`` from content blocks."""
    style = style or DEFAULT_STYLE
    doc = Document()
    if title:
        doc.core_properties.title = title
    body_font = style["body_font_name"]
    body_size = style["body_font_size"]
    heading_color = _hex_to_rgb(style.get("heading_color"))

    for block in blocks:
        block_type = block["type"]

        if block_type == "heading":
            level = block["level"]
            h = doc.add_heading(block["text"], level=0 if level == 1 else level - 1)
            for run in h.runs:
                run.font.name = style["title_font_name"] if level == 1 else style["heading_font_name"]
                run.font.size = Pt(style["title_font_size"] if level == 1 else style["heading_sizes"][str(level)])
                if heading_color and level > 1:
                    run.font.color.rgb = heading_color

        elif block_type == "paragraph":
            _add_text(doc.add_paragraph(), block["text"], body_font, body_size)

        elif block_type in ("bullet_list", "numbered_list"):
            list_style = 'List Bullet' if block_type == "bullet_list" else 'List Number'
            for item in block["items"]:
                _add_text(doc.add_paragraph(style=list_style), item, body_font, body_size)

        elif block_type == "table":
            rows = block["rows"]
            num_cols = max(len(r) for r in rows)
            if not num_cols:
                continue
            table = doc.add_table(rows=len(rows), cols=num_cols)
            table.style = 'Table Grid'
            for r_idx, row in enumerate(rows):
                for c_idx, cell_text in enumerate(row):
                    cell = table.rows[r_idx].cells[c_idx]
                    is_header = (r_idx, c_idx) in block["header_cells"]
                    _add_text(cell.paragraphs[0], cell_text, body_font, body_size, bold=is_header)
                    if is_header:
                        _shade_cell(cell, style["table_header_bg"])
            doc.add_paragraph()

    return doc


def build_docx(fragment, title=None, style=None):
    """Render a plan fragment to ``.docx`` bytes."""
    doc = create_document_docx(fragment_to_blocks(fragment), title, style)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


# ══════════════════════════════════════════════════════════════
# CLIPBOARD
# ══════════════════════════════════════════════════════════════

def copy_as_html(fragment, writer):
    """Put the raw fragment on a clipboard via ``writer(fragment)``.

    Returns ``{"status": "copied"}`` or ``{"status": "failed", "error": ...}``
    when the writer refuses (permission denied, no clipboard).
    """
    try:
        writer(fragment)
    except Exception as e:
        logger.warning("Clipboard write failed: %s", e)
        return {"status": "failed", "error": str(e)}
    return {"status": "copied", "length": len(fragment or "")}
