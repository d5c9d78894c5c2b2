"""Document schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Any, Dict, Optional, List


def validate_content_shape(v: Dict[str, Any]) -> Dict[str, Any]:
    """Prose content has an ``html`` string and a ``structure`` list; scripts a ``screenplay`` list."""
    if "html" in v and v["html"] is not None and not isinstance(v["html"], str):
        raise ValueError("content.html must be a string")
    if "structure" in v and v["structure"] is not None and not isinstance(v["structure"], list):
        raise ValueError("content.structure must be a list of chapters")
    if "screenplay" in v and v["screenplay"] is not None and not isinstance(v["screenplay"], list):
        raise ValueError("content.screenplay must be a list of elements")
    return v


class DocumentCreate(BaseModel):
    """Schema for creating a document."""
    title: str = Field(..., min_length=1, max_length=255)
    doc_type: str = "novel"
    project_id: Optional[str] = None
    content: Dict[str, Any] = Field(default_factory=dict)
    word_count: Optional[int] = Field(None, ge=0)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v

    @field_validator('content')
    @classmethod
    def validate_content(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        return validate_content_shape(v)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "The Lighthouse Keeper",
                    "doc_type": "novel",
                    "content": {
                        "html": "<p>The storm came in at dusk.</p>",
                        "structure": [
                            {
                                "id": "ch-1",
                                "title": "Chapter 1",
                                "summary": "Arrival",
                                "metadata": {"pov": "Mara", "tension": 3},
                                "scenes": [{"id": "sc-1", "title": "The Dock"}],
                            }
                        ],
                    },
                }
            ]
        }
    }


class DocumentResponse(BaseModel):
    """Full document including the hash clients use as their first base hash."""
    id: str
    user_id: str
    project_id: Optional[str] = None
    title: str
    doc_type: str
    content: Dict[str, Any]
    word_count: int
    version: int
    hash: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DocumentListResponse(BaseModel):
    """Document summary for list views (content omitted)."""
    id: str
    project_id: Optional[str] = None
    title: str
    doc_type: str
    word_count: int
    content_preview: str = ""
    updated_at: datetime

    class Config:
        from_attributes = True
