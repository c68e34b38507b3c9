import asyncio
from typing import Dict, List

import openai
from loguru import logger
from openai import OpenAI

from docchat.core.metrics import observe
from docchat.core.retry import is_transient_status
from docchat.errors import CompletionError


class OpenAICompletion:
	"""Thin async wrapper around the OpenAI Responses API."""

	def __init__(
		self,
		api_key: str,
		model: str = "gpt-4o-mini",
		client: OpenAI | None = None,
	):
		self.client = client or OpenAI(api_key=api_key)
		self.model = model

	async def complete(self, messages: List[Dict[str, str]]) -> str:
		loop = asyncio.get_running_loop()

		def _create():
			with observe("complete"):
				return self.client.responses.create(
					model=self.model,
					input=messages,  # type: ignore
				)

		try:
			resp = await loop.run_in_executor(None, _create)
		except openai.APIConnectionError as e:
			raise CompletionError(f"complete: {e}", transient=True) from e
		except openai.APIStatusError as e:
			raise CompletionError(
				f"complete: HTTP {e.status_code}: {e.message}",
				transient=is_transient_status(e.status_code),
			) from e
		except openai.OpenAIError as e:
			raise CompletionError(f"complete: {e}", transient=False) from e

		text = (getattr(resp, "output_text", None) or "").strip()
		if not text:
			logger.warning("Completion service returned an empty answer")
			raise CompletionError(
				"Failed to generate an answer from the completion service",
				transient=False,
			)
		return text
