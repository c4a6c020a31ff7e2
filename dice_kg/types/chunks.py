"""
Chunk Types

Chunks are segments of source text (documents or conversation turns).
Chunking itself happens upstream; the pipeline only consumes chunks.
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field


class Chunk(BaseModel):
    """
    A segment of source text.

    Attributes:
        id: Unique identifier, used as grounding/provenance
        text: The text content
        parent_id: Source document or conversation id
        header_path: Breadcrumb path (e.g., "Section 1 > Overview")
        metadata: Additional metadata
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    parent_id: str | None = None
    header_path: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
