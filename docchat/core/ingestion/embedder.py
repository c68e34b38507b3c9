import asyncio
from typing import List

import openai
from openai import OpenAI

from docchat.core.metrics import EMBED_REQUESTS, observe
from docchat.core.retry import is_transient_status
from docchat.errors import DimensionMismatchError, EmbeddingError


class OpenAIEmbedder:
	def __init__(
		self,
		api_key: str,
		model_name: str = "text-embedding-3-small",
		dimension: int = 1536,
		client: OpenAI | None = None,
	):
		self.client = client or OpenAI(api_key=api_key)
		self.model_name = model_name
		self.dimension = dimension

	async def embed(self, text: str) -> List[float]:
		[vector] = await self.embed_many([text])
		return vector

	async def embed_many(self, texts: List[str]) -> List[List[float]]:
		"""Encode a list of texts off the event loop."""
		EMBED_REQUESTS.inc()

		loop = asyncio.get_running_loop()

		def _encode(batch):
			with observe("embed"):
				return self.client.embeddings.create(input=batch, model=self.model_name)

		try:
			resp = await loop.run_in_executor(None, _encode, list(texts))
		except openai.APIConnectionError as e:
			raise EmbeddingError(_short_err(e), transient=True) from e
		except openai.APIStatusError as e:
			raise EmbeddingError(
				_short_err(e), transient=is_transient_status(e.status_code)
			) from e
		except openai.OpenAIError as e:
			raise EmbeddingError(_short_err(e), transient=False) from e

		data = list(getattr(resp, "data", None) or [])
		if len(data) != len(texts):
			raise EmbeddingError(
				f"embedding service returned {len(data)} vectors for {len(texts)} inputs",
				transient=False,
			)

		data.sort(key=lambda d: getattr(d, "index", 0))
		vectors: List[List[float]] = []
		for item in data:
			values = getattr(item, "embedding", None)
			if not values:
				raise EmbeddingError(
					"embedding service returned no usable vector", transient=False
				)
			if len(values) != self.dimension:
				raise DimensionMismatchError(self.dimension, len(values))
			vectors.append([float(x) for x in values])
		return vectors


def _short_err(e: Exception, limit: int = 300) -> str:
	s = f"embed: {type(e).__name__}: {str(e)}"
	return (s[: limit - 3] + "...") if len(s) > limit else s
