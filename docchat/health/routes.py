from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger

from docchat.dependencies import Services, get_services
from docchat.errors import VectorStoreError

router = APIRouter()


@router.get("/health")
async def health(services: Services = Depends(get_services)):
	try:
		stats = await services.store.describe_stats()
	except VectorStoreError as e:
		logger.warning(f"Health check could not reach the vector store: {e.message}")
		return JSONResponse(
			status_code=503, content={"status": "degraded", "error": e.message}
		)
	return {"status": "ok", "total_records": stats.total_record_count}
