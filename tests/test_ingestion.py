import asyncio

import pytest

from docchat.core.ingestion.chunker import chunk_text, is_mostly_printable
from docchat.core.ingestion.pipeline import IngestionPipeline
from docchat.core.schemas import Document
from docchat.errors import (
	EmbeddingError,
	EmptyDocumentError,
	UnsupportedDocumentError,
	VectorStoreError,
)

from .conftest import FakeEmbedder, letter_vector

TEXT = (
	"The quick brown fox jumps over the lazy dog. "
	"Pack my box with five dozen liquor jugs. "
	"Sphinx of black quartz, judge my vow."
)


def _doc(text: str = TEXT, filename: str = "pangrams.txt") -> Document:
	return Document(filename=filename, raw_text=text, total_length=len(text))


async def test_ingest_stores_every_chunk(ingestion, store):
	res = await ingestion.ingest(_doc())

	expected = chunk_text(TEXT, 40, 10)
	assert res.stored_chunks == len(expected)
	assert res.filename == "pangrams.txt"
	assert res.total_length == len(TEXT)
	assert res.truncated is False
	assert store.upsert_calls == 1

	records = sorted(store.records.values(), key=lambda r: r.metadata.chunk_index)
	assert [r.metadata.text for r in records] == expected
	for r in records:
		assert r.id == f"{res.document_id}_chunk_{r.metadata.chunk_index}"
		assert r.metadata.total_chunks == len(expected)
		assert r.metadata.document_id == res.document_id
		assert r.embedding == letter_vector(r.metadata.text)


async def test_ids_do_not_collide_across_uploads(ingestion, store):
	first = await ingestion.ingest(_doc())
	second = await ingestion.ingest(_doc())

	assert first.document_id != second.document_id
	assert len(store.records) == first.stored_chunks + second.stored_chunks


async def test_chunk_index_survives_out_of_order_embedding(store, retry_policy):
	class SlowFirst(FakeEmbedder):
		started = 0

		async def embed(self, text):
			# earlier chunks finish last
			self.started += 1
			await asyncio.sleep(0.002 * (20 - self.started))
			return await super().embed(text)

	pipeline = IngestionPipeline(
		SlowFirst(), store, chunk_size=20, chunk_overlap=0, retry=retry_policy
	)
	await pipeline.ingest(_doc())

	for r in store.records.values():
		i = r.metadata.chunk_index
		assert r.metadata.text == TEXT[i * 20 : i * 20 + 20]
		assert r.embedding == letter_vector(r.metadata.text)


async def test_embedding_concurrency_is_bounded(store, retry_policy):
	embedder = FakeEmbedder(delay=0.005)
	pipeline = IngestionPipeline(
		embedder,
		store,
		chunk_size=10,
		chunk_overlap=0,
		embed_concurrency=2,
		retry=retry_policy,
	)

	await pipeline.ingest(_doc())

	assert len(embedder.calls) == len(chunk_text(TEXT, 10, 0))
	assert embedder.max_in_flight == 2


async def test_truncation_is_reported(embedder, store, retry_policy):
	pipeline = IngestionPipeline(
		embedder,
		store,
		chunk_size=10,
		chunk_overlap=0,
		max_document_chars=25,
		retry=retry_policy,
	)

	res = await pipeline.ingest(_doc())

	assert res.truncated is True
	assert res.total_length == len(TEXT)
	assert res.stored_chunks == 3
	assert "".join(
		r.metadata.text
		for r in sorted(store.records.values(), key=lambda r: r.metadata.chunk_index)
	) == TEXT[:25]


@pytest.mark.parametrize("text", ["", "   \n\t"])
async def test_empty_document_rejected_before_network(ingestion, embedder, store, text):
	with pytest.raises(EmptyDocumentError):
		await ingestion.ingest(_doc(text))

	assert embedder.calls == []
	assert store.upsert_calls == 0


async def test_permanent_embedding_failure_aborts_ingestion(store, retry_policy):
	class Broken(FakeEmbedder):
		async def embed(self, text):
			self.calls.append(text)
			if "fox" in text:
				raise EmbeddingError("no vector", transient=False)
			return letter_vector(text)

	embedder = Broken()
	pipeline = IngestionPipeline(
		embedder, store, chunk_size=40, chunk_overlap=10, retry=retry_policy
	)

	with pytest.raises(EmbeddingError) as info:
		await pipeline.ingest(_doc())

	assert info.value.stage == "embed"
	assert store.upsert_calls == 0
	assert store.records == {}
	assert sum("fox" in t for t in embedder.calls) == 1


async def test_transient_embedding_failure_is_retried(store, retry_policy, sleeper):
	class Hiccup(FakeEmbedder):
		failed = False

		async def embed(self, text):
			if not self.failed:
				self.failed = True
				raise EmbeddingError("timeout", transient=True)
			return await super().embed(text)

	pipeline = IngestionPipeline(
		Hiccup(), store, chunk_size=40, chunk_overlap=10, retry=retry_policy
	)

	res = await pipeline.ingest(_doc())

	assert res.stored_chunks == len(chunk_text(TEXT, 40, 10))
	assert sleeper.delays == [0.5]


async def test_upsert_is_retried_then_succeeds(ingestion, store, sleeper):
	store.upsert_failures = [
		VectorStoreError("unavailable", transient=True),
		VectorStoreError("unavailable", transient=True),
	]

	res = await ingestion.ingest(_doc())

	assert store.upsert_calls == 3
	assert len(store.records) == res.stored_chunks
	assert sleeper.delays == [0.5, 1.0]


async def test_exhausted_upsert_retries_propagate(ingestion, store):
	store.upsert_failures = [
		VectorStoreError(f"unavailable {i}", transient=True) for i in range(3)
	]

	with pytest.raises(VectorStoreError) as info:
		await ingestion.ingest(_doc())

	assert info.value.message == "unavailable 2"
	assert info.value.kind == "store-failure"
	assert store.records == {}


async def test_content_filter_skips_garbage(embedder, store, retry_policy):
	text = "readable words here!" + "\x00\x01\x02\x03" * 5
	pipeline = IngestionPipeline(
		embedder,
		store,
		chunk_size=20,
		chunk_overlap=0,
		retry=retry_policy,
		content_filter=is_mostly_printable,
	)

	res = await pipeline.ingest(_doc(text, "mixed.bin"))

	assert res.stored_chunks == 1
	assert res.skipped_chunks == 1
	[record] = store.records.values()
	assert record.metadata.chunk_index == 0
	assert record.metadata.total_chunks == 2


async def test_first_kept_record_is_the_head(embedder, store, retry_policy):
	text = "\x00\x01\x02\x03" * 5 + "readable words here!" + "more readable text."
	pipeline = IngestionPipeline(
		embedder,
		store,
		chunk_size=20,
		chunk_overlap=0,
		retry=retry_policy,
		content_filter=is_mostly_printable,
	)

	await pipeline.ingest(_doc(text, "late-start.bin"))

	heads = [r for r in store.records.values() if r.metadata.is_head]
	assert [r.metadata.chunk_index for r in heads] == [1]
	assert await store.list_filenames() == ["late-start.bin"]


async def test_all_chunks_filtered_is_rejected(embedder, store, retry_policy):
	pipeline = IngestionPipeline(
		embedder,
		store,
		chunk_size=40,
		chunk_overlap=0,
		retry=retry_policy,
		content_filter=is_mostly_printable,
	)

	with pytest.raises(UnsupportedDocumentError):
		await pipeline.ingest(_doc("\x00\x01" * 100, "bin.dat"))

	assert embedder.calls == []
	assert store.upsert_calls == 0
