from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from docchat.dependencies import lifespan
from docchat.errors import RagError

from .health import health_router
from .metrics import metrics_router
from .rag import rag_router


async def rag_error_handler(request: Request, exc: RagError) -> JSONResponse:
	return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def create_app() -> FastAPI:
	app = FastAPI(
		title="docchat",
		version="0.1.0",
		separate_input_output_schemas=False,
		lifespan=lifespan,
	)

	app.add_exception_handler(RagError, rag_error_handler)

	app.include_router(health_router, tags=["health"])
	app.include_router(rag_router, tags=["rag"])
	app.include_router(metrics_router, tags=["metrics"])

	return app
