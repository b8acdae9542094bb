from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProcessMaterialRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    material_id: Optional[str] = Field(None, alias="materialId")


class ProcessMaterialResponse(BaseModel):
    success: bool
    chunks: int


class QueryMaterialRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    material_id: Optional[str] = Field(None, alias="materialId")
    question: Optional[str] = None


class MaterialOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    file_name: str
    storage_path: str
    content_type: Optional[str] = None
    file_size: Optional[int] = None
    processing_status: str
    uploaded_at: datetime


class MaterialListResponse(BaseModel):
    materials: List[MaterialOut]
