"""
Request validation for the public embedding operations.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class DocumentEmbeddingRequest(BaseModel):
    document_id: str
    document_name: str = ""
    content: str = ""

    @field_validator('document_id')
    @classmethod
    def document_id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('document_id cannot be empty')
        return v


class DocumentRef(BaseModel):
    document_id: str

    @field_validator('document_id')
    @classmethod
    def document_id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('document_id cannot be empty')
        return v


class SearchRequest(BaseModel):
    query: str
    limit: int = Field(default=10, ge=1)
    threshold: float = 0.5
    document_id: Optional[str] = None
    unique_documents: bool = False

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v


class VectorSearchRequest(BaseModel):
    limit: int = Field(default=10, ge=1)
    threshold: float = 0.5
    document_id: Optional[str] = None
    unique_documents: bool = False
