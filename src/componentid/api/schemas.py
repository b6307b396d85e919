"""Pydantic response schemas for the ComponentID API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ComponentInfo(BaseModel):
    """Descriptive metadata for the identified component."""

    name: str
    description: str
    specs: list[str]
    common_projects: list[str]


class ClassifyImageResponse(BaseModel):
    """Response for the image classification endpoint."""

    label: str
    confidence: float = Field(ge=0.0, description="Top-1 model score, nominally 0.0-1.0")
    degraded: bool = Field(description="True if inference or metadata lookup fell back to defaults")
    component: ComponentInfo


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    model_loaded: bool
    label_count: int
    concurrent_requests: int
    queue_depth: int


class LabelsResponse(BaseModel):
    """Labels the model can assign, in output index order."""

    labels: list[str]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
