from contextlib import asynccontextmanager
from dataclasses import dataclass

from loguru import logger
from pydantic import ValidationError as SettingsValidationError

from docchat.core.answering import AnsweringPipeline
from docchat.core.completion import OpenAICompletion
from docchat.core.connectors.milvus import MilvusStore
from docchat.core.ingestion.chunker import is_mostly_printable
from docchat.core.ingestion.embedder import OpenAIEmbedder
from docchat.core.ingestion.pipeline import IngestionPipeline
from docchat.core.log import configure_logging
from docchat.core.retry import RetryPolicy
from docchat.errors import ConfigurationError, VectorStoreError
from docchat.settings import Settings


@dataclass
class Services:
	settings: Settings
	store: MilvusStore
	ingestion: IngestionPipeline
	answering: AnsweringPipeline


def build_services(settings: Settings) -> Services:
	retry = RetryPolicy(
		max_attempts=settings.RETRY_ATTEMPTS,
		initial_delay=settings.RETRY_INITIAL_DELAY,
		deadline=settings.RETRY_DEADLINE,
	)
	embedder = OpenAIEmbedder(
		api_key=settings.OPENAI_API_KEY,
		model_name=settings.EMBEDDING_MODEL,
		dimension=settings.EMBEDDING_DIMENSION,
	)
	store = MilvusStore(
		url=settings.MILVUS_URL,
		token=settings.MILVUS_SECRET,
		collection=settings.MILVUS_COLLECTION,
		dimension=settings.EMBEDDING_DIMENSION,
		timeout=settings.HTTP_TIMEOUT,
	)
	completion = OpenAICompletion(
		api_key=settings.OPENAI_API_KEY,
		model=settings.COMPLETION_MODEL,
	)
	return Services(
		settings=settings,
		store=store,
		ingestion=IngestionPipeline(
			embedder,
			store,
			chunk_size=settings.CHUNK_SIZE,
			chunk_overlap=settings.CHUNK_OVERLAP,
			max_document_chars=settings.MAX_DOCUMENT_CHARS,
			embed_concurrency=settings.EMBED_CONCURRENCY,
			retry=retry,
			content_filter=(
				is_mostly_printable if settings.CHUNK_PRINTABLE_FILTER else None
			),
		),
		answering=AnsweringPipeline(
			embedder,
			store,
			completion,
			top_k=settings.TOP_K,
			max_context_chars=settings.MAX_CONTEXT_CHARS,
			max_history_messages=settings.MAX_HISTORY_MESSAGES,
			retry=retry,
		),
	)


_services: Services | None = None


def get_services() -> Services:
	if _services is None:
		raise ConfigurationError("Services are not initialized")
	return _services


def load_settings() -> Settings:
	try:
		return Settings.get()
	except SettingsValidationError as e:
		raise ConfigurationError(f"Invalid configuration: {e}") from e


@asynccontextmanager
async def lifespan(app):
	global _services
	settings = load_settings()
	configure_logging(settings.LOG_LEVEL)

	logger.info("Initializing clients...")
	services = build_services(settings)

	try:
		await services.store.ensure_collection()
		logger.info("Milvus bootstrap completed.")
	except VectorStoreError:
		logger.exception("Milvus bootstrap failed (continuing).")

	_services = services
	try:
		yield
	finally:
		_services = None
		logger.info("Services released.")
