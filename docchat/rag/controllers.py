from typing import List

from fastapi import UploadFile
from fastapi.responses import JSONResponse
from loguru import logger

from docchat.core.ingestion.parser import extract_text
from docchat.core.schemas import Document, NoRelevantContent, Query
from docchat.dependencies import Services
from docchat.errors import DocumentTooLargeError, EmptyDocumentError, MissingFileError
from docchat.rag.schemas import (
	AskRequest,
	AskResponse,
	FilesResponse,
	NoMatchesResponse,
	UploadResponse,
)

DEFAULT_FILENAME = "uploaded_document"


async def upload_document(file: UploadFile | None, services: Services) -> UploadResponse:
	if file is None:
		raise MissingFileError("No file provided")

	fname = file.filename or DEFAULT_FILENAME
	max_bytes = services.settings.MAX_UPLOAD_BYTES
	if file.size is not None and file.size > max_bytes:
		raise DocumentTooLargeError(
			f"File {fname} is {file.size} bytes; the limit is {max_bytes} bytes"
		)

	data = await file.read()
	logger.debug(f"File received: {fname} ({len(data)} bytes)")

	if len(data) > max_bytes:
		raise DocumentTooLargeError(
			f"File {fname} is {len(data)} bytes; the limit is {max_bytes} bytes"
		)
	if not data:
		raise EmptyDocumentError("File is empty")

	text = extract_text(fname, file.content_type, data)
	res = await services.ingestion.ingest(
		Document(filename=fname, raw_text=text, total_length=len(text))
	)

	msg = "File successfully processed"
	if res.truncated:
		msg += (
			f" (truncated to the first {services.settings.MAX_DOCUMENT_CHARS}"
			f" of {res.total_length} characters)"
		)
	return UploadResponse(
		message=msg,
		filename=res.filename,
		chunks=res.stored_chunks,
		skipped_chunks=res.skipped_chunks,
		total_length=res.total_length,
		truncated=res.truncated,
		document_id=res.document_id,
	)


async def ask_question(
	payload: AskRequest, services: Services
) -> AskResponse | JSONResponse:
	result = await services.answering.answer(
		Query(
			text=payload.question,
			selected_filename=payload.selected_file or None,
			history=payload.history,
		)
	)
	if isinstance(result, NoRelevantContent):
		return JSONResponse(
			status_code=404,
			content=NoMatchesResponse(
				error=result.message, suggestion=result.suggestion
			).model_dump(),
		)
	return AskResponse(answer=result.text, sources=result.sources)


async def list_files(services: Services) -> FilesResponse:
	files: List[str] = await services.store.list_filenames()
	logger.debug(f"Found {len(files)} stored documents")
	return FilesResponse(files=files)
