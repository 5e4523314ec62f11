"""Wire models for the Stack connections and knowledge-base APIs."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class InodeType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class InodePath(BaseModel):
    path: str


class DataloaderMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    last_modified_at: str | None = None
    last_modified_by: str | None = None
    created_at: str | None = None
    created_by: str | None = None
    web_url: str | None = None
    path: str | None = None


class Resource(BaseModel):
    """One node (file or directory) of a connector or knowledge-base tree."""

    model_config = ConfigDict(extra="ignore")

    resource_id: str
    inode_type: InodeType
    inode_path: InodePath

    knowledge_base_id: str | None = None
    created_at: str | None = None
    modified_at: str | None = None
    indexed_at: str | None = None
    inode_id: str | None = None
    dataloader_metadata: DataloaderMetadata = Field(default_factory=DataloaderMetadata)
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    # Only meaningful for files.
    content_hash: str | None = None
    content_mime: str | None = None
    size: int | None = None
    status: str | None = None

    @model_validator(mode="after")
    def _directories_have_no_content(self) -> Resource:
        if self.inode_type is InodeType.DIRECTORY and (
            self.size is not None or self.content_hash is not None
        ):
            raise ValueError(
                f"directory {self.inode_path.path!r} must not carry size or content_hash"
            )
        return self

    @property
    def is_directory(self) -> bool:
        return self.inode_type is InodeType.DIRECTORY

    @property
    def path(self) -> str:
        return self.inode_path.path

    @property
    def display_status(self) -> str | None:
        """Status worth showing for a file, or None."""
        if self.is_directory or not self.status or self.status == "resource":
            return None
        return self.status


class Page(BaseModel):
    """One page of a directory listing."""

    data: list[Resource]
    next_cursor: str | None = None
    current_cursor: str | None = None

    @field_validator("next_cursor", "current_cursor", mode="before")
    @classmethod
    def _empty_cursor_is_absent(cls, value: Any) -> Any:
        if value == "":
            return None
        return value


class Connection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    connection_id: str
    name: str | None = None
    connection_provider: str | None = None
    org_id: str | None = None
    created_at: str | None = None


class KnowledgeBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    knowledge_base_id: str
    name: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    connection_id: str | None = None
    connection_source_ids: list[str] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return self.knowledge_base_id


class EmbeddingParams(BaseModel):
    embedding_model: str = "text-embedding-ada-002"
    api_key: str | None = None


class ChunkerParams(BaseModel):
    chunk_size: int = Field(default=1500, ge=1)
    chunk_overlap: int = Field(default=500, ge=0)
    chunker: str = "sentence"


class IndexingParams(BaseModel):
    ocr: bool = False
    unstructured: bool = True
    embedding_params: EmbeddingParams = Field(default_factory=EmbeddingParams)
    chunker_params: ChunkerParams = Field(default_factory=ChunkerParams)


class CreateKnowledgeBaseRequest(BaseModel):
    connection_id: str
    connection_source_ids: list[str] = Field(min_length=1)
    indexing_params: IndexingParams = Field(default_factory=IndexingParams)
    org_level_role: str | None = None
    cron_job_id: str | None = None


class DeleteResult(BaseModel):
    success: bool
    status_code: int
