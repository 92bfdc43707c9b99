"""
Text extraction for files attached to plan forms.

Only the extracted text travels to the remote generator; binary content is
never stored. Files that cannot be read as text get ``text=None``.
"""
import io
import logging
import os

from ..config import SUPPORTED_TEXT_TYPES, config
from ..models import UploadedFile

logger = logging.getLogger(__name__)


def _extract_pdf_text(data):
    """Extract text from PDF bytes using PyMuPDF."""
    import fitz
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        return "\n\n".join(page.get_text() for page in doc)
    finally:
        doc.close()


def _extract_docx_text(data):
    """Extract paragraph and table text from DOCX bytes using python-docx."""
    from docx import Document
    from docx.table import Table
    from docx.text.paragraph import Paragraph

    doc = Document(io.BytesIO(data))
    full_text = []
    for element in doc.element.body:
        if element.tag.endswith('}p'):
            para = Paragraph(element, doc)
            if para.text.strip():
                full_text.append(para.text)
        elif element.tag.endswith('}tbl'):
            table = Table(element, doc)
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    full_text.append(' | '.join(row_text))
    return '\n'.join(full_text)


def extract_text(filename, data):
    """Return the readable text of an uploaded file, or None."""
    ext = os.path.splitext(filename or "")[1].lower()
    try:
        if ext in SUPPORTED_TEXT_TYPES:
            return data.decode('utf-8-sig', errors='replace')
        if ext == '.docx':
            return _extract_docx_text(data)
        if ext == '.pdf':
            return _extract_pdf_text(data)
    except Exception as e:
        logger.warning("Could not extract text from %s: %s", filename, e)
        return None
    return None


def describe_upload(filename, data):
    """Build the ``UploadedFile`` descriptor for raw upload bytes."""
    text = extract_text(filename, data)
    if text is not None and not text.strip():
        text = None
    return UploadedFile(name=os.path.basename(filename or ""), size=len(data), text=text)


def files_text(files, max_chars=None):
    """``[{name, text}]`` for files with readable text, truncated per file."""
    max_chars = max_chars or config.file_text_max_chars
    out = []
    for f in files:
        if f.text and f.text.strip():
            out.append({"name": f.name, "text": f.text[:max_chars]})
    return out
