"""
Materials Router

Upload study documents, turn them into chunked retrieval context, and
ask questions about them with streamed answers.
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from typing import Optional
import logging
import uuid

from studymind.database import get_db
from studymind.dependencies.auth import get_current_user_id, get_optional_user_id
from studymind.models.models import Material
from studymind.schemas.materials import (
    MaterialListResponse,
    MaterialOut,
    ProcessMaterialRequest,
    ProcessMaterialResponse,
    QueryMaterialRequest,
)
from studymind.services.ai_gateway import AIGateway, GatewayError, get_gateway
from studymind.services.background import spawn_background
from studymind.services.material_processor import (
    MaterialDownloadError,
    MaterialNotFoundError,
    MaterialProcessor,
    build_query_context,
)
from studymind.services.persistence import PersistenceWriter, get_persistence_writer
from studymind.services.storage import MaterialStorage, get_storage, safe_file_name
from studymind.services.stream_splitter import relay_stream

logger = logging.getLogger(__name__)

router = APIRouter(tags=["materials"])

MAX_UPLOAD_BYTES = 20 * 1024 * 1024


def build_tutor_prompt(file_name: str, context: str) -> str:
    return f"""You are an AI tutor. The student has uploaded a document titled "{file_name}". Use the following document content to answer their question accurately. If the answer isn't in the document, say so.

When relevant, proactively recommend YouTube playlists or channels that could help the student learn the topic better. Format YouTube recommendations like:
📺 **Recommended YouTube Resources:**
- [Channel/Playlist Name](https://youtube.com/...) - Brief description of why it's helpful

Only suggest real, well-known educational channels (e.g., Khan Academy, 3Blue1Brown, Organic Chemistry Tutor, CrashCourse, Professor Leonard, MIT OpenCourseWare, etc.) that match the subject matter.

Document content:
{context}"""


@router.post("/materials", response_model=MaterialOut)
async def upload_material(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage: MaterialStorage = Depends(get_storage),
):
    """Store an uploaded file in the materials bucket and register it as "processing"."""
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="File is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File is too large")

    file_name = file.filename or "upload"
    storage_path = f"{user_id}/{uuid.uuid4().hex}_{safe_file_name(file_name)}"
    await run_in_threadpool(storage.upload, storage_path, data)

    material = Material(
        user_id=user_id,
        file_name=file_name,
        storage_path=storage_path,
        content_type=file.content_type,
        file_size=len(data),
        processing_status="processing",
    )
    db.add(material)
    db.commit()
    db.refresh(material)
    return MaterialOut.model_validate(material)


@router.get("/materials", response_model=MaterialListResponse)
def list_materials(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    materials = (
        db.query(Material)
        .filter(Material.user_id == user_id)
        .order_by(Material.uploaded_at.desc())
        .all()
    )
    return MaterialListResponse(materials=[MaterialOut.model_validate(m) for m in materials])


@router.post("/process-material", response_model=ProcessMaterialResponse)
async def process_material(
    request: ProcessMaterialRequest,
    db: Session = Depends(get_db),
    storage: MaterialStorage = Depends(get_storage),
    gateway: AIGateway = Depends(get_gateway),
):
    """Extract and chunk a material's text. Marks the material "ready" on success."""
    if not request.material_id:
        raise HTTPException(status_code=400, detail="materialId is required")

    processor = MaterialProcessor(db, storage, gateway)
    try:
        result = await processor.process(request.material_id)
    except MaterialNotFoundError:
        raise HTTPException(status_code=404, detail="Material not found")
    except MaterialDownloadError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        db.rollback()
        logger.error(f"process-material error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Unknown error")

    return ProcessMaterialResponse(success=True, chunks=result.chunk_count)


@router.post("/query-material")
async def query_material(
    request: QueryMaterialRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
    gateway: AIGateway = Depends(get_gateway),
    writer: PersistenceWriter = Depends(get_persistence_writer),
):
    """
    Answer a question about an uploaded document as a text/event-stream.

    Only a usage-log row is written; Q&A history is not kept.
    """
    question = (request.question or "").strip()
    if not request.material_id or not question:
        raise HTTPException(status_code=400, detail="materialId and question are required")

    material = db.query(Material).filter(Material.id == request.material_id).first()
    if not material or not material.extracted_text:
        raise HTTPException(status_code=400, detail="Material has no extracted text yet")

    try:
        context = build_query_context(db, material)
        upstream = await gateway.stream_chat(build_tutor_prompt(material.file_name, context), question)
        client_stream = relay_stream(upstream)
    except GatewayError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"query-material error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Unknown error")

    if user_id:
        spawn_background(
            run_in_threadpool(writer.log_ai_usage, user_id, "material", upstream.model),
            name=f"log-material-usage-{material.id}",
        )

    return StreamingResponse(
        client_stream,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
