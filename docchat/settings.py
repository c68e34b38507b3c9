from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
	# openai
	OPENAI_API_KEY: str
	EMBEDDING_MODEL: str = "text-embedding-3-small"
	EMBEDDING_DIMENSION: int = 1536
	COMPLETION_MODEL: str = "gpt-4o-mini"

	# milvus stuff
	MILVUS_URL: str
	MILVUS_SECRET: str = ""
	MILVUS_COLLECTION: str
	HTTP_TIMEOUT: float = 60.0

	# chunking / ingestion
	CHUNK_SIZE: int = 1000
	CHUNK_OVERLAP: int = 100
	CHUNK_PRINTABLE_FILTER: bool = False
	MAX_DOCUMENT_CHARS: int | None = 200_000
	MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
	EMBED_CONCURRENCY: int = 8

	# retry
	RETRY_ATTEMPTS: int = 3
	RETRY_INITIAL_DELAY: float = 2.0
	RETRY_DEADLINE: float | None = 60.0

	# answering
	TOP_K: int = 5
	MAX_CONTEXT_CHARS: int = 6000
	MAX_HISTORY_MESSAGES: int = 6

	# fastapi
	HOST: str = "0.0.0.0"
	PORT: int = 8000
	RELOAD: bool = True
	WORKERS: int = 1
	LOG_LEVEL: str = "INFO"

	class Config:
		env_file = ".env"
		env_file_encoding = "utf-8"

	@model_validator(mode="after")
	def _check_limits(self) -> "Settings":
		if self.CHUNK_SIZE <= 0:
			raise ValueError("CHUNK_SIZE must be positive")
		if not 0 <= self.CHUNK_OVERLAP < self.CHUNK_SIZE:
			raise ValueError("CHUNK_OVERLAP must satisfy 0 <= overlap < CHUNK_SIZE")
		if self.EMBEDDING_DIMENSION <= 0:
			raise ValueError("EMBEDDING_DIMENSION must be positive")
		if self.EMBED_CONCURRENCY < 1:
			raise ValueError("EMBED_CONCURRENCY must be at least 1")
		if self.RETRY_ATTEMPTS < 1 or self.RETRY_INITIAL_DELAY <= 0:
			raise ValueError("RETRY_ATTEMPTS >= 1 and RETRY_INITIAL_DELAY > 0 required")
		return self

	@classmethod
	@lru_cache
	def get(cls) -> "Settings":
		return Settings()  # type: ignore
