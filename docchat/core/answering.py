"""
Answering pipeline: embed the question, retrieve the nearest chunks, and ask
the completion model to answer from that context only.

One ask-request moves through ``AskState``::

    RECEIVED -> EMBEDDING -> RETRIEVING -> NO_MATCHES
                                        -> COMPOSING -> COMPLETED

with ``FAILED`` reachable from every non-terminal state.
"""

from enum import Enum
from typing import Dict, List, Protocol

from loguru import logger

from docchat.core.metrics import ASK_ERRORS, ASK_NO_MATCHES, ASK_REQUESTS
from docchat.core.retry import RetryPolicy
from docchat.core.schemas import (
	Answer,
	ConversationMessage,
	Match,
	NoRelevantContent,
	Query,
	Source,
)
from docchat.errors import EmbeddingError, InvalidQueryError

SYSTEM_PROMPT = (
	"You are a helpful assistant that provides accurate answers based on the "
	"given document content. Answer only from the supplied content; if it does "
	"not contain the answer, say that you don't know."
)


class AskState(str, Enum):
	RECEIVED = "received"
	EMBEDDING = "embedding"
	RETRIEVING = "retrieving"
	NO_MATCHES = "no_matches"
	COMPOSING = "composing"
	COMPLETED = "completed"
	FAILED = "failed"


class Embedder(Protocol):
	async def embed(self, text: str) -> List[float]: ...


class VectorReader(Protocol):
	async def query(
		self, vector: List[float], top_k: int = 5, filename: str | None = None
	) -> List[Match]: ...


class Completer(Protocol):
	async def complete(self, messages: List[Dict[str, str]]) -> str: ...


def build_context(matches: List[Match], max_chars: int) -> str:
	"""Join chunk texts in retrieval order, stopping at ``max_chars``."""
	parts: List[str] = []
	used = 0
	for m in matches:
		text = m.metadata.text
		if not text:
			continue
		sep = 2 if parts else 0
		room = max_chars - used - sep
		if room <= 0:
			break
		if len(text) > room:
			parts.append(text[:room])
			break
		parts.append(text)
		used += sep + len(text)
	return "\n\n".join(parts)


def build_messages(
	query: Query,
	context: str,
	history: List[ConversationMessage],
) -> List[Dict[str, str]]:
	source = (
		f' from the document "{query.selected_filename}"'
		if query.selected_filename
		else ""
	)
	prompt = (
		f"Based on the following content{source}, please answer the question.\n\n"
		f"Content:\n{context}\n\n"
		f"Question: {query.text}\n\n"
		"Please provide a clear and concise answer based only on the information "
		"provided above."
	)
	messages = [{"role": "system", "content": SYSTEM_PROMPT}]
	messages += [{"role": m.role, "content": m.content} for m in history]
	messages.append({"role": "user", "content": prompt})
	return messages


class AnsweringPipeline:
	def __init__(
		self,
		embedder: Embedder,
		store: VectorReader,
		completion: Completer,
		top_k: int = 5,
		max_context_chars: int = 6000,
		max_history_messages: int = 6,
		retry: RetryPolicy | None = None,
	):
		self.embedder = embedder
		self.store = store
		self.completion = completion
		self.top_k = top_k
		self.max_context_chars = max_context_chars
		self.max_history_messages = max_history_messages
		self.retry = retry or RetryPolicy()

	async def answer(self, query: Query) -> Answer | NoRelevantContent:
		ASK_REQUESTS.inc()
		state = AskState.RECEIVED
		question = (query.text or "").strip()
		if not question:
			ASK_ERRORS.inc()
			raise InvalidQueryError("Valid question is required")

		try:
			state = AskState.EMBEDDING
			vector = await self.retry.run(
				lambda: self.embedder.embed(question), name="embed"
			)
			if not vector:
				raise EmbeddingError(
					"Failed to generate embedding for question", transient=False
				)

			state = AskState.RETRIEVING
			matches = await self.retry.run(
				lambda: self.store.query(
					vector, top_k=self.top_k, filename=query.selected_filename
				),
				name="query",
			)
			if not matches:
				state = AskState.NO_MATCHES
				ASK_NO_MATCHES.inc()
				logger.info(
					f"No relevant content for question (file={query.selected_filename})"
				)
				return NoRelevantContent()

			state = AskState.COMPOSING
			context = build_context(matches, self.max_context_chars)
			history: List[ConversationMessage] = []
			if self.max_history_messages > 0:
				history = query.history[-self.max_history_messages :]
			messages = build_messages(query, context, history)
			text = await self.retry.run(
				lambda: self.completion.complete(messages), name="complete"
			)
		except Exception:
			ASK_ERRORS.inc()
			logger.debug(f"Ask request failed while {state.value}")
			raise

		state = AskState.COMPLETED
		logger.debug(f"Ask request {state.value} from {len(matches)} matches")
		return Answer(
			text=text.strip(),
			sources=[
				Source(
					filename=m.metadata.filename,
					chunk_index=m.metadata.chunk_index,
					score=m.score,
				)
				for m in matches
			],
		)
