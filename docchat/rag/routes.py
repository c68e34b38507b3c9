from fastapi import APIRouter, Depends, File, UploadFile
from loguru import logger

from docchat.dependencies import Services, get_services
from docchat.errors import RagError, UpstreamError

from .controllers import ask_question, list_files, upload_document
from .schemas import (
	AskRequest,
	AskResponse,
	ErrorResponse,
	FilesResponse,
	NoMatchesResponse,
	UploadResponse,
)

router = APIRouter()


def _reraise(e: Exception, where: str):
	if isinstance(e, UpstreamError):
		logger.error(f"{where} failed at stage '{e.stage}': {e.message}")
		raise e
	if isinstance(e, RagError):
		raise e
	logger.exception(f"Error on {where}")
	raise RagError(str(e) or "An unknown error occurred") from e


@router.post(
	"/upload",
	response_model=UploadResponse,
	responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def upload(
	file: UploadFile | None = File(None),
	services: Services = Depends(get_services),
):
	try:
		return await upload_document(file, services)
	except Exception as e:
		_reraise(e, "POST /upload")


@router.post(
	"/ask",
	response_model=AskResponse,
	responses={
		400: {"model": ErrorResponse},
		404: {"model": NoMatchesResponse},
		502: {"model": ErrorResponse},
	},
)
async def ask(payload: AskRequest, services: Services = Depends(get_services)):
	try:
		return await ask_question(payload, services)
	except Exception as e:
		_reraise(e, "POST /ask")


@router.get("/files", response_model=FilesResponse)
async def files(services: Services = Depends(get_services)):
	try:
		return await list_files(services)
	except Exception as e:
		_reraise(e, "GET /files")
