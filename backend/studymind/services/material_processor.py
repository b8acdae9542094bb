"""
Material Processing Service

Turns an uploaded file into retrieval context:
1. Download the file from the materials bucket
2. Extract text (decode plain text directly, ask the AI gateway otherwise)
3. Chunk the text at paragraph boundaries
4. Store the extracted text on the material and insert its chunks

Also builds the document context used by the Q&A endpoint.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from studymind.config import (
    EXTRACTED_TEXT_MAX_CHARS,
    QUERY_CONTEXT_MAX_CHARS,
    QUERY_CONTEXT_MAX_CHUNKS,
)
from studymind.models.models import Material, MaterialChunk
from studymind.services.ai_gateway import AIGateway, GatewayError
from studymind.services.material_chunker import chunk_text
from studymind.services.storage import MaterialStorage

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md")

EXTRACTION_FAILED_TEXT = (
    "Document uploaded but text extraction failed. You can still ask questions about it."
)


class MaterialNotFoundError(LookupError):
    pass


class MaterialDownloadError(RuntimeError):
    pass


@dataclass
class ProcessingResult:
    material_id: str
    chunk_count: int
    extracted_chars: int


def is_plain_text(file_name: str, content_type: Optional[str]) -> bool:
    return "text" in (content_type or "") or (file_name or "").lower().endswith(TEXT_EXTENSIONS)


class MaterialProcessor:
    def __init__(self, db: Session, storage: MaterialStorage, gateway: AIGateway):
        self.db = db
        self.storage = storage
        self.gateway = gateway

    async def extract_text(self, material: Material, data: bytes) -> str:
        if is_plain_text(material.file_name, material.content_type):
            return data.decode("utf-8", errors="replace")

        try:
            return await self.gateway.extract_document_text(data, material.content_type)
        except GatewayError as e:
            logger.warning(f"Text extraction failed for material {material.id}: {e.message}")
            return EXTRACTION_FAILED_TEXT

    async def process(self, material_id: str) -> ProcessingResult:
        """
        Extract, chunk and store a material's text.

        Raises:
            MaterialNotFoundError: No material with this id
            MaterialDownloadError: The file is missing from the bucket
                (the material is marked "error" first)
        """
        material = self.db.query(Material).filter(Material.id == material_id).first()
        if not material:
            raise MaterialNotFoundError(material_id)

        data = self.storage.download(material.storage_path)
        if data is None:
            material.processing_status = "error"
            self.db.commit()
            raise MaterialDownloadError("Could not download file")

        extracted = await self.extract_text(material, data)
        chunks = chunk_text(extracted)

        material.extracted_text = extracted[:EXTRACTED_TEXT_MAX_CHARS]
        material.processing_status = "ready"
        self.db.commit()

        if chunks:
            self.db.add_all([
                MaterialChunk(material_id=material.id, chunk_index=i, chunk_text=text)
                for i, text in enumerate(chunks)
            ])
            self.db.commit()

        logger.info(f"Processed material {material.id}: {len(extracted)} chars, {len(chunks)} chunks")
        return ProcessingResult(
            material_id=material.id,
            chunk_count=len(chunks),
            extracted_chars=len(extracted),
        )


def build_query_context(db: Session, material: Material) -> str:
    """First chunks in order, or the head of the extracted text when there are none."""
    rows: List[MaterialChunk] = (
        db.query(MaterialChunk)
        .filter(MaterialChunk.material_id == material.id)
        .order_by(MaterialChunk.chunk_index)
        .limit(QUERY_CONTEXT_MAX_CHUNKS)
        .all()
    )
    if rows:
        return "\n\n".join(row.chunk_text for row in rows)
    return (material.extracted_text or "")[:QUERY_CONTEXT_MAX_CHARS]
