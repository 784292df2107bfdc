#!/usr/bin/env python3
"""
FastAPI router for project endpoints
"""

from typing import List

from fastapi import APIRouter, HTTPException

from ..dependencies import get_project_store
from ..models.projects import DeleteResponse, Project, ProjectCreateRequest

router = APIRouter(tags=["projects"])


@router.get("/projects", response_model=List[Project])
async def list_projects():
    """List all projects"""
    return get_project_store().list()


@router.post("/projects", response_model=Project, status_code=201)
async def create_project(request: ProjectCreateRequest):
    """Create a project"""
    store = get_project_store()
    if request.id and store.get(request.id):
        raise HTTPException(status_code=400, detail=f"Project '{request.id}' already exists")
    try:
        return store.create(name=request.name, description=request.description, project_id=request.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/projects/{project_id}", response_model=Project)
async def get_project(project_id: str):
    """Get a project by id"""
    project = get_project_store().get(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.delete("/projects/{project_id}", response_model=DeleteResponse)
async def delete_project(project_id: str):
    """Delete a project"""
    if not get_project_store().delete(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return DeleteResponse(success=True)
