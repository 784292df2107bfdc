#!/usr/bin/env python3
"""
Pydantic models for chat and API generation endpoints
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ChatMessageRequest(BaseModel):
    message: str = Field(..., description="User's chat message")
    context: Optional[Dict[str, Any]] = Field(None, description="Conversation context")


class ChatMessageResponse(BaseModel):
    response: str = Field(..., description="Assistant reply")
    should_build: bool = Field(..., description="The message asks for an API to be built")


class GenerateAPIRequest(BaseModel):
    requirements: str = Field(..., min_length=1, description="Free-text description of the API")


class GenerationProgress(BaseModel):
    status: str = Field(..., description="analyzing, processing, completed or failed")
    progress: int = Field(..., ge=0, le=100, description="Percent complete")
    stage: str = Field(..., description="Current stage")


class GenerateAPIResponse(BaseModel):
    project_id: str = Field(..., description="Generation task id, reused as the project id")
    progress: GenerationProgress
