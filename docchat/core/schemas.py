from typing import Literal

from pydantic import BaseModel, Field


class Document(BaseModel):
	filename: str
	raw_text: str
	total_length: int


class Chunk(BaseModel):
	source_filename: str
	index: int
	total_chunks: int
	start: int
	text: str


class RecordMetadata(BaseModel):
	text: str
	filename: str
	chunk_index: int
	total_chunks: int
	document_id: str | None = None
	# set on the first stored record of each document
	is_head: bool = False


class VectorRecord(BaseModel):
	id: str
	embedding: list[float]
	metadata: RecordMetadata


class Match(BaseModel):
	id: str
	score: float
	metadata: RecordMetadata


class IndexStats(BaseModel):
	total_record_count: int


class ConversationMessage(BaseModel):
	role: Literal["user", "assistant"]
	content: str


class Query(BaseModel):
	text: str
	selected_filename: str | None = None
	history: list[ConversationMessage] = Field(default_factory=list)


class IngestResult(BaseModel):
	document_id: str
	filename: str
	stored_chunks: int
	skipped_chunks: int = 0
	total_length: int
	truncated: bool = False


class Source(BaseModel):
	filename: str
	chunk_index: int
	score: float


class Answer(BaseModel):
	text: str
	sources: list[Source] = Field(default_factory=list)


class NoRelevantContent(BaseModel):
	message: str = "no relevant content found"
	suggestion: str = (
		"Try rephrasing your question or selecting a different document."
	)
