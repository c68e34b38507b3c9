import asyncio
from typing import List, Protocol
from uuid import uuid4

from loguru import logger

from docchat.core.ingestion.chunker import ContentFilter, chunk_document
from docchat.core.metrics import (
	INGEST_CHUNKS,
	INGEST_DOCUMENTS,
	INGEST_TRUNCATIONS,
	observe,
)
from docchat.core.retry import RetryPolicy
from docchat.core.schemas import (
	Chunk,
	Document,
	IngestResult,
	RecordMetadata,
	VectorRecord,
)
from docchat.errors import EmptyDocumentError, UnsupportedDocumentError


class Embedder(Protocol):
	async def embed(self, text: str) -> List[float]: ...


class VectorWriter(Protocol):
	async def upsert(self, records: List[VectorRecord]) -> int: ...


class IngestionPipeline:
	def __init__(
		self,
		embedder: Embedder,
		store: VectorWriter,
		chunk_size: int = 1000,
		chunk_overlap: int = 100,
		max_document_chars: int | None = None,
		embed_concurrency: int = 8,
		retry: RetryPolicy | None = None,
		content_filter: ContentFilter | None = None,
	):
		if embed_concurrency < 1:
			raise ValueError("embed_concurrency must be >= 1")
		self.embedder = embedder
		self.store = store
		self.chunk_size = chunk_size
		self.chunk_overlap = chunk_overlap
		self.max_document_chars = max_document_chars or None
		self.embed_concurrency = embed_concurrency
		self.retry = retry or RetryPolicy()
		self.content_filter = content_filter

	async def ingest(self, document: Document) -> IngestResult:
		"""
		Full ingestion of one document:
		- Reject empty text.
		- Truncate to the configured ceiling (reported, never silent).
		- Chunk with the sliding window, optionally dropping garbage chunks.
		- Embed every chunk (bounded concurrency, retried).
		- Upsert all records in one batch (retried).
		"""
		INGEST_DOCUMENTS.inc()

		text = document.raw_text
		if not text or not text.strip():
			raise EmptyDocumentError("File is empty")

		truncated = False
		if self.max_document_chars and len(text) > self.max_document_chars:
			INGEST_TRUNCATIONS.inc()
			logger.warning(
				f"Truncating '{document.filename}' from {len(text)} "
				f"to {self.max_document_chars} characters"
			)
			text = text[: self.max_document_chars]
			truncated = True

		with observe("chunk"):
			chunks = chunk_document(
				text, document.filename, self.chunk_size, self.chunk_overlap
			)

		kept = chunks
		if self.content_filter is not None:
			kept = [c for c in chunks if self.content_filter(c.text)]
		skipped = len(chunks) - len(kept)
		logger.debug(
			f"Chunked '{document.filename}' into {len(chunks)} chunks "
			f"({skipped} skipped by content filter)"
		)
		if not kept:
			raise UnsupportedDocumentError(
				f"No readable content in '{document.filename}' after filtering"
			)

		document_id = uuid4().hex
		vectors = await self._embed_chunks(kept)
		records = [
			VectorRecord(
				id=f"{document_id}_chunk_{c.index}",
				embedding=v,
				metadata=RecordMetadata(
					text=c.text,
					filename=c.source_filename,
					chunk_index=c.index,
					total_chunks=c.total_chunks,
					document_id=document_id,
					is_head=i == 0,
				),
			)
			for i, (c, v) in enumerate(zip(kept, vectors))
		]

		await self.retry.run(lambda: self.store.upsert(records), name="upsert")
		INGEST_CHUNKS.inc(len(records))

		logger.info(
			f"Ingested '{document.filename}' as {document_id}: "
			f"{len(records)} chunks stored"
		)
		return IngestResult(
			document_id=document_id,
			filename=document.filename,
			stored_chunks=len(records),
			skipped_chunks=skipped,
			total_length=document.total_length,
			truncated=truncated,
		)

	async def _embed_chunks(self, chunks: List[Chunk]) -> List[List[float]]:
		sem = asyncio.Semaphore(self.embed_concurrency)

		async def _embed(chunk: Chunk) -> List[float]:
			async with sem:
				logger.debug(
					f"Embedding chunk {chunk.index + 1}/{chunk.total_chunks} "
					f"of '{chunk.source_filename}'"
				)
				return await self.retry.run(
					lambda: self.embedder.embed(chunk.text), name="embed"
				)

		# gather keeps input order, so vectors line up with chunks
		tasks = [asyncio.ensure_future(_embed(c)) for c in chunks]
		try:
			return list(await asyncio.gather(*tasks))
		except BaseException:
			for t in tasks:
				t.cancel()
			raise
