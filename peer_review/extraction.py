"""
Text extraction for uploaded papers.

Uploads are stored as-is; the heuristics engines only ever see plain text.
PDFs are read page by page with pdfplumber; text files are decoded as UTF-8
with undecodable bytes replaced.
"""

from pathlib import Path

import pdfplumber

from .config_logging import FileError, get_logger

logger = get_logger('extraction')


def _extract_pdf(path: Path) -> str:
    pages = []
    with pdfplumber.open(str(path)) as pdf:
        for page in pdf.pages:
            page_text = page.extract_text() or ""
            if page_text.strip():
                pages.append(page_text.strip())
    return '\n\n'.join(pages)


def extract_text(file_path) -> str:
    """Return the text content of a stored document."""
    path = Path(file_path)
    if not path.is_file():
        raise FileError("Document not found", file_path=str(path))

    try:
        if path.suffix.lower() == '.pdf':
            text = _extract_pdf(path)
        else:
            text = path.read_bytes().decode('utf-8', errors='replace')
    except OSError as e:
        logger.error(f"Could not read document: {e}", file_path=str(path))
        raise FileError("Document could not be read", file_path=str(path))
    except Exception as e:
        # pdfminer raises its own syntax/encryption errors for damaged PDFs
        logger.warning(f"Could not parse PDF: {e}", file_path=str(path))
        raise FileError("Document could not be parsed as PDF", file_path=str(path))

    logger.debug("Extracted document text", file_path=str(path), char_count=len(text))
    return text
