from pydantic import BaseModel, ConfigDict, Field

from docchat.core.schemas import ConversationMessage, Source


class UploadResponse(BaseModel):
	message: str
	filename: str
	chunks: int
	skipped_chunks: int = 0
	total_length: int
	truncated: bool = False
	document_id: str


class AskRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	question: str = Field("", description="User question")
	selected_file: str | None = Field(
		None, alias="selectedFile", description="Scope retrieval to one document"
	)
	history: list[ConversationMessage] = Field(
		default_factory=list, description="Previous chat messages of this session"
	)


class AskResponse(BaseModel):
	answer: str
	sources: list[Source] = Field(default_factory=list)


class NoMatchesResponse(BaseModel):
	error: str
	suggestion: str


class FilesResponse(BaseModel):
	files: list[str]


class ErrorResponse(BaseModel):
	error: str
	kind: str
	stage: str | None = None
