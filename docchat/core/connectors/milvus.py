from typing import Any, List

import httpx
from loguru import logger

from docchat.core.metrics import VECTOR_UPSERT_ERRORS, VECTOR_UPSERTS, observe
from docchat.core.retry import is_transient_status
from docchat.core.schemas import IndexStats, Match, RecordMetadata, VectorRecord
from docchat.errors import ConfigurationError, DimensionMismatchError, VectorStoreError

OUTPUT_FIELDS = ["text", "filename", "chunk_index", "total_chunks", "document_id"]
# Milvus caps a single query at 16384 rows
QUERY_LIMIT = 16384


def filter_literal(value: str) -> str:
	escaped = value.replace("\\", "\\\\").replace('"', '\\"')
	return f'"{escaped}"'


def _short_err(stage: str, e: Exception, limit: int = 300) -> str:
	s = f"{stage}: {type(e).__name__}: {str(e)}"
	return (s[: limit - 3] + "...") if len(s) > limit else s


class MilvusStore:
	"""Vector store gateway over the Milvus REST v2 API."""

	def __init__(
		self,
		url: str,
		token: str,
		collection: str,
		dimension: int,
		timeout: float = 60.0,
		transport: httpx.AsyncBaseTransport | None = None,
	):
		self.cluster_endpoint = url.rstrip("/")
		self.token = token
		self.collection_name = collection
		self.dimension = dimension
		self.timeout = timeout
		self.transport = transport
		self.VECTOR_FIELD = "vector"

	def _headers(self) -> dict[str, str]:
		headers = {
			"Content-Type": "application/json",
		}
		if self.token:
			headers["Authorization"] = f"Bearer {self.token}"
		return headers

	async def _post(self, path: str, payload: dict[str, Any]) -> Any:
		url = f"{self.cluster_endpoint}{path}"
		try:
			async with httpx.AsyncClient(
				timeout=self.timeout, transport=self.transport
			) as client:
				resp = await client.post(url, json=payload, headers=self._headers())
				resp.raise_for_status()
		except httpx.HTTPStatusError as e:
			status = e.response.status_code
			raise VectorStoreError(
				f"{path} HTTP {status}: {e.response.text[:300]}",
				transient=is_transient_status(status),
			) from e
		except httpx.TransportError as e:
			raise VectorStoreError(_short_err(path, e), transient=True) from e

		try:
			body = resp.json()
		except ValueError as e:
			raise VectorStoreError(
				f"{path}: malformed response body", transient=False
			) from e

		if not isinstance(body, dict) or body.get("code") != 0:
			raise VectorStoreError(f"Milvus error on {path}: {body}", transient=False)
		return body.get("data")

	async def ensure_collection(self) -> None:
		"""Create the collection when missing, else check its vector dimension."""
		base = {"collectionName": self.collection_name}
		data = await self._post("/v2/vectordb/collections/has", base)
		if not (data or {}).get("has"):
			logger.info(
				f"Creating Milvus collection '{self.collection_name}' "
				f"(dim={self.dimension})"
			)
			await self._post(
				"/v2/vectordb/collections/create",
				{
					**base,
					"dimension": self.dimension,
					"metricType": "COSINE",
					"idType": "VarChar",
					"primaryFieldName": "id",
					"vectorFieldName": self.VECTOR_FIELD,
					"params": {"max_length": 128},
				},
			)
			return

		info = await self._post("/v2/vectordb/collections/describe", base)
		dim = _vector_dim(info or {}, self.VECTOR_FIELD)
		if dim is not None and dim != self.dimension:
			raise ConfigurationError(
				f"Collection '{self.collection_name}' stores {dim}-d vectors but "
				f"the embedding model produces {self.dimension}-d vectors"
			)
		logger.debug(f"Milvus collection '{self.collection_name}' ready (dim={dim})")

	async def upsert(self, records: List[VectorRecord]) -> int:
		for r in records:
			if len(r.embedding) != self.dimension:
				raise DimensionMismatchError(self.dimension, len(r.embedding))
		if not records:
			return 0

		payload = {
			"collectionName": self.collection_name,
			"data": [
				{
					"id": r.id,
					self.VECTOR_FIELD: r.embedding,
					**r.metadata.model_dump(),
				}
				for r in records
			],
		}
		VECTOR_UPSERTS.inc()
		try:
			with observe("upsert"):
				data = await self._post("/v2/vectordb/entities/upsert", payload)
		except VectorStoreError as e:
			VECTOR_UPSERT_ERRORS.inc()
			logger.error(f"Milvus upsert error: {e.message}")
			raise

		count = (data or {}).get("upsertCount", len(records))
		logger.debug(f"Upserted {count} vectors into '{self.collection_name}'")
		return int(count)

	async def query(
		self,
		vector: List[float],
		top_k: int = 5,
		filename: str | None = None,
	) -> List[Match]:
		payload: dict[str, Any] = {
			"collectionName": self.collection_name,
			"data": [vector],
			"annsField": self.VECTOR_FIELD,
			"limit": top_k,
			"outputFields": OUTPUT_FIELDS,
		}
		if filename is not None:
			payload["filter"] = f"filename == {filter_literal(filename)}"

		with observe("search"):
			try:
				data = await self._post("/v2/vectordb/entities/search", payload)
			except VectorStoreError as e:
				logger.error(f"Milvus search error: {e.message}")
				raise

		matches: List[Match] = []
		for h in data or []:
			if not isinstance(h, dict):
				continue
			meta = RecordMetadata(
				text=str(h.get("text") or ""),
				filename=str(h.get("filename") or ""),
				chunk_index=int(h.get("chunk_index") or 0),
				total_chunks=int(h.get("total_chunks") or 0),
				document_id=h.get("document_id"),
			)
			if filename is not None and meta.filename != filename:
				continue
			matches.append(
				Match(
					id=str(h.get("id", "")),
					score=float(h.get("distance", 0.0)),
					metadata=meta,
				)
			)

		matches.sort(key=lambda m: m.score, reverse=True)
		return matches[:top_k]

	async def describe_stats(self) -> IndexStats:
		data = await self._post(
			"/v2/vectordb/collections/get_stats",
			{"collectionName": self.collection_name},
		)
		return IndexStats(total_record_count=int((data or {}).get("rowCount", 0)))

	async def list_filenames(self) -> List[str]:
		# each stored document has exactly one head record
		data = await self._post(
			"/v2/vectordb/entities/query",
			{
				"collectionName": self.collection_name,
				"filter": "is_head == true",
				"outputFields": ["filename"],
				"limit": QUERY_LIMIT,
			},
		)
		rows = data or []
		if len(rows) >= QUERY_LIMIT:
			logger.warning(
				f"Listing '{self.collection_name}' hit the {QUERY_LIMIT}-row query cap; "
				"some filenames may be missing"
			)
		seen: dict[str, None] = {}
		for row in rows:
			name = row.get("filename") if isinstance(row, dict) else None
			if name:
				seen.setdefault(str(name), None)
		return list(seen)


def _vector_dim(info: dict[str, Any], field_name: str) -> int | None:
	for f in info.get("fields") or []:
		if f.get("name") != field_name:
			continue
		for p in f.get("params") or []:
			if p.get("key") == "dim":
				return int(p.get("value"))
	return None
