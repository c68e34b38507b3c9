import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

# Counts
INGEST_DOCUMENTS = Counter(
	"ingest_documents_total",
	"Documents received for ingestion",
)

INGEST_CHUNKS = Counter(
	"ingest_chunks_total",
	"Chunks stored",
)

INGEST_TRUNCATIONS = Counter(
	"ingest_truncations_total",
	"Documents truncated to the configured maximum length",
)

EMBED_REQUESTS = Counter(
	"embed_requests_total",
	"Embedding calls",
)

VECTOR_UPSERTS = Counter(
	"vector_upserts_total",
	"Upsert batches sent to the vector store",
)
VECTOR_UPSERT_ERRORS = Counter(
	"vector_upsert_errors_total",
	"Upsert batches that failed",
)

ASK_REQUESTS = Counter(
	"ask_requests_total",
	"Questions received",
)
ASK_ERRORS = Counter(
	"ask_errors_total",
	"Questions that failed",
)
ASK_NO_MATCHES = Counter(
	"ask_no_matches_total",
	"Questions with no relevant content",
)

RETRY_ATTEMPTS = Counter(
	"retry_attempts_total",
	"Retries scheduled after a failed attempt",
	["operation"],
)

# latency per stage (seconds)
STAGE_LATENCY = Histogram(
	"rag_stage_latency_seconds",
	"Latency per pipeline stage",
	["stage"],
	# parse | chunk | embed | upsert | search | complete
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)


@contextmanager
def observe(stage: str):
	start = time.perf_counter()
	try:
		yield
	finally:
		STAGE_LATENCY.labels(stage).observe(time.perf_counter() - start)
