#!/usr/bin/env python3
"""
FastAPI router for chat and staged API generation
"""

from fastapi import APIRouter, HTTPException

from ...generation import TaskNotCompleteError, TaskNotFoundError, analyze_message
from ..dependencies import get_generation_manager, get_project_store
from ..models.generation import (
    ChatMessageRequest,
    ChatMessageResponse,
    GenerateAPIRequest,
    GenerateAPIResponse,
    GenerationProgress,
)
from ..models.projects import Project

router = APIRouter(tags=["generation"])


@router.post("/chat/message", response_model=ChatMessageResponse)
async def chat_message(request: ChatMessageRequest):
    """Reply to a chat message and flag API-building intent"""
    return analyze_message(request.message)


@router.post("/generate-api", response_model=GenerateAPIResponse)
async def generate_api(request: GenerateAPIRequest):
    """Start generating an API in the background"""
    task = get_generation_manager().start(request.requirements)
    return GenerateAPIResponse(project_id=task.id, progress=GenerationProgress(**task.snapshot()))


@router.get("/generate-api/{task_id}/progress", response_model=GenerationProgress)
async def get_generation_progress(task_id: str):
    try:
        return get_generation_manager().progress(task_id)
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Generation task not found")


@router.post("/generate-api/{task_id}/finalize", response_model=Project)
async def finalize_generation(task_id: str):
    """Turn a completed generation into a project"""
    try:
        return get_generation_manager().finalize(task_id, get_project_store())
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Generation task not found")
    except TaskNotCompleteError:
        raise HTTPException(status_code=409, detail="Generation not completed yet")
