"""Single-page extraction from a base64 PDF, using pypdf."""

from __future__ import annotations

import base64
import io

from pypdf import PdfReader, PdfWriter


class PypdfPageExtractor:
    def extract_page(self, document_base64: str, page_number: int) -> str:
        """Return page `page_number` (1-based) as a base64 one-page PDF."""
        reader = PdfReader(io.BytesIO(base64.b64decode(document_base64)))
        page_count = len(reader.pages)
        if page_number < 1 or page_number > page_count:
            raise ValueError(f"Page {page_number} is out of range (document has {page_count} pages)")

        writer = PdfWriter()
        writer.add_page(reader.pages[page_number - 1])
        buffer = io.BytesIO()
        writer.write(buffer)
        return base64.b64encode(buffer.getvalue()).decode("ascii")
