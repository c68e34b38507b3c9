from loguru import logger
from pymupdf import open as pdf_open

from docchat.core.metrics import observe
from docchat.errors import UnsupportedDocumentError

PDF_MIME = "application/pdf"
BOM = "\ufeff"


def is_pdf(filename: str | None, content_type: str | None) -> bool:
	if content_type and content_type.split(";")[0].strip().lower() == PDF_MIME:
		return True
	return bool(filename) and filename.lower().endswith(".pdf")


def _pdf_text(data: bytes) -> str:
	try:
		doc = pdf_open(stream=data, filetype="pdf")
	except (RuntimeError, ValueError) as e:
		raise UnsupportedDocumentError(f"Could not read PDF document: {e}") from e

	try:
		pages = [page.get_text() for page in doc]
	finally:
		doc.close()

	logger.debug(f"Extracted text from {len(pages)} PDF pages")
	return "\n".join(p for p in pages if p)


def extract_text(filename: str | None, content_type: str | None, data: bytes) -> str:
	"""Decode an uploaded file into plain text (PDF or UTF-8)."""
	with observe("parse"):
		if is_pdf(filename, content_type):
			return _pdf_text(data)

		text = data.decode("utf-8", errors="replace")
		return text[1:] if text.startswith(BOM) else text
