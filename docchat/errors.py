"""
Error taxonomy shared by the pipelines and the HTTP layer.

Every error carries a machine readable ``kind`` and the status code the
route layer answers with. Upstream errors additionally carry the stage that
failed and whether a retry may help.
"""


class RagError(Exception):
	kind = "internal"
	status_code = 500

	def __init__(self, message: str):
		super().__init__(message)
		self.message = message

	def to_payload(self) -> dict[str, str]:
		return {"error": self.message, "kind": self.kind}


class ConfigurationError(RagError):
	kind = "configuration"


# Validation: detected before any network call, never retried.


class ValidationError(RagError):
	kind = "invalid-input"
	status_code = 400


class MissingFileError(ValidationError):
	kind = "missing-file"


class EmptyDocumentError(ValidationError):
	kind = "empty-file"


class DocumentTooLargeError(ValidationError):
	kind = "file-too-large"


class UnsupportedDocumentError(ValidationError):
	kind = "unsupported-file"


class InvalidQueryError(ValidationError):
	kind = "invalid-question"


# Upstream: failures of the embedding, vector store and completion services.


class UpstreamError(RagError):
	kind = "upstream-failure"
	status_code = 502
	stage = "upstream"
	transient = False

	def __init__(self, message: str, *, transient: bool | None = None):
		super().__init__(message)
		if transient is not None:
			self.transient = transient

	def to_payload(self) -> dict[str, str]:
		return {"error": self.message, "kind": self.kind, "stage": self.stage}


class EmbeddingError(UpstreamError):
	kind = "embedding-failure"
	stage = "embed"


class DimensionMismatchError(EmbeddingError):
	def __init__(self, expected: int, got: int):
		super().__init__(
			f"embedding dimension mismatch (expected {expected}, got {got})",
			transient=False,
		)
		self.expected = expected
		self.got = got


class VectorStoreError(UpstreamError):
	kind = "store-failure"
	stage = "vector_store"


class CompletionError(UpstreamError):
	kind = "completion-failure"
	stage = "completion"
