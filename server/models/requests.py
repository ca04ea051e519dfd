from pydantic import BaseModel, Field


class RetrieveRequest(BaseModel):
    query: str = Field(max_length=500)
    max_tokens: int = Field(default=1000, gt=0)
    max_candidates: int = Field(default=5, gt=0, le=50)


class DocumentCreateRequest(BaseModel):
    title: str
    content: str
    mime_type: str = "text/plain"
    file_name: str = ""
    embed_url: str | None = None
    storage_id: str | None = None


class DocumentUpdateRequest(BaseModel):
    title: str | None = None
    content: str | None = None
