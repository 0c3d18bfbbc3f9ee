"""Text extraction from uploaded PDFs: PyMuPDF native text + tesseract OCR fallback.

OCR is capped at MAX_OCR_PAGES per document to avoid blocking on huge scanned PDFs.
"""

import logging
import os
import subprocess
import tempfile
from typing import Optional, Tuple

logger = logging.getLogger("kb_ingest")

MAX_OCR_PAGES = 50  # Don't OCR more than 50 pages per document


class TextExtractor:
    def __init__(self, min_chars_per_page: int = 50, ocr_dpi: int = 300,
                 tesseract_lang: str = "eng", ocr_enabled: bool = True):
        self.min_chars = min_chars_per_page
        self.ocr_dpi = ocr_dpi
        self.tesseract_lang = tesseract_lang
        self._has_tesseract = ocr_enabled and self._check_cmd("tesseract")
        self._has_pdftoppm = ocr_enabled and self._check_cmd("pdftoppm")
        if ocr_enabled and not self._has_tesseract:
            logger.warning("tesseract not found, OCR fallback disabled")
        if ocr_enabled and not self._has_pdftoppm:
            logger.warning("pdftoppm not found, OCR fallback disabled")

    @staticmethod
    def _check_cmd(cmd: str) -> bool:
        try:
            subprocess.run([cmd, "--version"], capture_output=True, timeout=5)
            return True
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False

    @property
    def can_ocr(self) -> bool:
        return self._has_tesseract and self._has_pdftoppm

    def extract(self, data: bytes) -> Tuple[int, str, int, str]:
        """Extract text from PDF bytes.

        Returns (page_count, text, ocr_pages, method). Pages are separated by
        ``--- Page N ---`` markers; pages with no text contribute no marker.
        """
        import fitz  # PyMuPDF

        doc = fitz.open(stream=data, filetype="pdf")
        page_count = len(doc)
        all_text = []
        ocr_pages = 0
        method = "pymupdf"
        tmp_pdf: Optional[str] = None

        try:
            for page_num in range(page_count):
                page = doc[page_num]
                text = page.get_text().strip()

                if len(text) < self.min_chars and self.can_ocr and ocr_pages < MAX_OCR_PAGES:
                    # pdftoppm needs a file on disk
                    if tmp_pdf is None:
                        tmp_pdf = self._write_temp(data)
                    ocr_text = self._ocr_page(tmp_pdf, page_num)
                    if ocr_text and len(ocr_text) > len(text):
                        text = ocr_text
                        ocr_pages += 1
                        method = "pymupdf+ocr"

                if text:
                    all_text.append(f"--- Page {page_num + 1} ---\n{text}")
        finally:
            doc.close()
            if tmp_pdf:
                os.remove(tmp_pdf)

        if ocr_pages >= MAX_OCR_PAGES:
            logger.warning(f"OCR capped at {MAX_OCR_PAGES} pages")

        return page_count, "\n\n".join(all_text), ocr_pages, method

    @staticmethod
    def _write_temp(data: bytes) -> str:
        fd, path = tempfile.mkstemp(suffix=".pdf")
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return path

    def _ocr_page(self, pdf_path: str, page_num: int) -> str:
        """OCR a single page using pdftoppm + tesseract."""
        try:
            with tempfile.TemporaryDirectory() as tmpdir:
                img_prefix = os.path.join(tmpdir, "page")
                p = page_num + 1
                subprocess.run(
                    ["pdftoppm", "-f", str(p), "-l", str(p),
                     "-r", str(self.ocr_dpi), "-png", pdf_path, img_prefix],
                    capture_output=True, timeout=60, check=True,
                )

                images = [f for f in os.listdir(tmpdir) if f.endswith(".png")]
                if not images:
                    return ""

                img_path = os.path.join(tmpdir, images[0])
                result = subprocess.run(
                    ["tesseract", img_path, "stdout", "-l", self.tesseract_lang],
                    capture_output=True, text=True, timeout=120,
                )
                return result.stdout.strip()
        except (subprocess.TimeoutExpired, subprocess.CalledProcessError, OSError) as e:
            logger.debug(f"OCR failed for page {page_num}: {e}")
            return ""
