"""
Shared fixtures: in-memory stand-ins for the embedding, vector store and
completion services, plus a retry policy that never really sleeps.
"""

import asyncio
import math
from typing import Dict, List

import pytest

from docchat.core.answering import AnsweringPipeline
from docchat.core.ingestion.pipeline import IngestionPipeline
from docchat.core.retry import RetryPolicy
from docchat.core.schemas import IndexStats, Match, VectorRecord

DIM = 26


def letter_vector(text: str) -> List[float]:
	vec = [0.0] * DIM
	for ch in text.lower():
		if "a" <= ch <= "z":
			vec[ord(ch) - ord("a")] += 1.0
	if not any(vec):
		vec[0] = 1.0
	return vec


def cosine(a: List[float], b: List[float]) -> float:
	dot = sum(x * y for x, y in zip(a, b))
	na = math.sqrt(sum(x * x for x in a))
	nb = math.sqrt(sum(y * y for y in b))
	return dot / (na * nb) if na and nb else 0.0


class FakeEmbedder:
	def __init__(self, delay: float = 0.0):
		self.calls: List[str] = []
		self.delay = delay
		self.in_flight = 0
		self.max_in_flight = 0

	async def embed(self, text: str) -> List[float]:
		self.calls.append(text)
		self.in_flight += 1
		self.max_in_flight = max(self.max_in_flight, self.in_flight)
		try:
			if self.delay:
				await asyncio.sleep(self.delay)
			return letter_vector(text)
		finally:
			self.in_flight -= 1


class FakeStore:
	def __init__(self):
		self.records: Dict[str, VectorRecord] = {}
		self.upsert_calls = 0
		self.query_calls: List[dict] = []
		self.upsert_failures: List[Exception] = []
		self.query_failures: List[Exception] = []

	async def upsert(self, records: List[VectorRecord]) -> int:
		self.upsert_calls += 1
		if self.upsert_failures:
			raise self.upsert_failures.pop(0)
		for r in records:
			self.records[r.id] = r
		return len(records)

	async def query(
		self, vector: List[float], top_k: int = 5, filename: str | None = None
	) -> List[Match]:
		self.query_calls.append({"top_k": top_k, "filename": filename})
		if self.query_failures:
			raise self.query_failures.pop(0)
		candidates = [
			r
			for r in self.records.values()
			if filename is None or r.metadata.filename == filename
		]
		scored = [
			Match(id=r.id, score=cosine(vector, r.embedding), metadata=r.metadata)
			for r in candidates
		]
		scored.sort(key=lambda m: m.score, reverse=True)
		return scored[:top_k]

	async def describe_stats(self) -> IndexStats:
		return IndexStats(total_record_count=len(self.records))

	async def list_filenames(self) -> List[str]:
		seen: Dict[str, None] = {}
		for r in self.records.values():
			if r.metadata.is_head:
				seen.setdefault(r.metadata.filename, None)
		return list(seen)


class FakeCompletion:
	def __init__(self, answer: str = "  The answer.  "):
		self.answer = answer
		self.calls: List[List[Dict[str, str]]] = []

	async def complete(self, messages: List[Dict[str, str]]) -> str:
		self.calls.append(messages)
		return self.answer


class SleepRecorder:
	def __init__(self):
		self.delays: List[float] = []

	async def __call__(self, delay: float) -> None:
		self.delays.append(delay)


@pytest.fixture
def sleeper() -> SleepRecorder:
	return SleepRecorder()


@pytest.fixture
def retry_policy(sleeper) -> RetryPolicy:
	return RetryPolicy(max_attempts=3, initial_delay=0.5, sleep=sleeper)


@pytest.fixture
def embedder() -> FakeEmbedder:
	return FakeEmbedder()


@pytest.fixture
def store() -> FakeStore:
	return FakeStore()


@pytest.fixture
def completion() -> FakeCompletion:
	return FakeCompletion()


@pytest.fixture
def ingestion(embedder, store, retry_policy) -> IngestionPipeline:
	return IngestionPipeline(
		embedder,
		store,
		chunk_size=40,
		chunk_overlap=10,
		embed_concurrency=4,
		retry=retry_policy,
	)


@pytest.fixture
def answering(embedder, store, completion, retry_policy) -> AnsweringPipeline:
	return AnsweringPipeline(
		embedder,
		store,
		completion,
		top_k=5,
		max_context_chars=2000,
		retry=retry_policy,
	)
