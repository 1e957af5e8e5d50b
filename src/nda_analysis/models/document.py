"""
Document models: the parsed NDA and its positional chunks.
"""

from pydantic import BaseModel, ConfigDict, Field


class DocumentChunk(BaseModel):
    """
    A positional chunk of the document text.

    ``index`` is 0-based and document-wide; it is the only key used to
    correlate model output back to chunks.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    index: int = Field(..., ge=0)
    content: str
    section_path: list[str] = Field(default_factory=list)
    token_count: int = 0
    start_position: int = Field(..., ge=0)
    end_position: int = Field(..., ge=0)


class ParsedDocument(BaseModel):
    """Output of the parse stage."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str = ""
    raw_text: str
    chunks: list[DocumentChunk] = Field(default_factory=list)

    def chunk_by_index(self, index: int) -> DocumentChunk | None:
        for chunk in self.chunks:
            if chunk.index == index:
                return chunk
        return None
