"""
Chat intent detection and staged API generation.

Generation runs as a background asyncio task that walks through a fixed list
of stages; once completed the task can be finalized into a project whose name,
data model and endpoints are derived from keywords in the requirements.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .stores import ProjectStore
from .tracing import WorkflowTracker, track_operation, workflow_tracker

logger = logging.getLogger(__name__)

API_BUILDING_KEYWORDS = ["build", "create", "make", "api", "endpoint", "integration", "service", "backend"]

BUILD_RESPONSE = (
    "🚀 **BUILDING YOUR API**\n\n"
    "⏳ **Status:** Analyzing requirements...\n\n"
    "I'll have your API ready in moments with all endpoints, authentication, "
    "database, and deployment configuration.\n\n"
    "Building now..."
)

CONVERSATIONAL_RESPONSES = [
    "I can help you build APIs! Just tell me what kind of API you need.",
    "Great! What specific functionality should your API have?",
    "Perfect! Let me know more details about your API requirements.",
    "Excellent! I'll help you build that API. What features do you need?",
]

# (stage name, duration in seconds)
STAGES = [
    ("Analyzing requirements...", 1.2),
    ("Designing API architecture...", 1.5),
    ("Creating data models and schemas...", 1.8),
    ("Generating API endpoints...", 1.3),
    ("Implementing authentication and security...", 1.0),
    ("Finalizing deployment configuration...", 0.8),
]

API_NAMES = [
    ("telematics", "Telematics Gateway API"),
    ("logistics", "Logistics Hub API"),
    ("tracking", "Fleet Tracking API"),
    ("user", "User Management API"),
    ("payment", "Payment Processing API"),
    ("notification", "Notification Service API"),
    ("inventory", "Inventory Management API"),
]


class TaskNotFoundError(Exception):
    pass


class TaskNotCompleteError(Exception):
    pass


def analyze_message(message: str) -> Dict[str, Any]:
    """Decide whether a chat message asks for an API to be built."""
    text = (message or "").lower()
    if any(keyword in text for keyword in API_BUILDING_KEYWORDS):
        return {"response": BUILD_RESPONSE, "should_build": True}
    return {"response": random.choice(CONVERSATIONAL_RESPONSES), "should_build": False}


def generate_api_name(requirements: str) -> str:
    text = requirements.lower()
    for keyword, name in API_NAMES:
        if keyword in text:
            return name
    return "Custom Integration API"


def _mentions(text: str, *keywords: str) -> bool:
    return any(keyword in text for keyword in keywords)


def generate_data_model(requirements: str) -> Dict[str, Any]:
    text = requirements.lower()
    model: Dict[str, Any] = {}

    if _mentions(text, "user", "customer"):
        model["User"] = {
            "fields": [
                {"name": "id", "type": "string", "primary": True},
                {"name": "email", "type": "string", "required": True},
                {"name": "name", "type": "string", "required": True},
                {"name": "createdAt", "type": "datetime", "required": True},
                {"name": "updatedAt", "type": "datetime", "required": True},
            ]
        }

    if _mentions(text, "vehicle", "fleet", "telematics"):
        model["Vehicle"] = {
            "fields": [
                {"name": "id", "type": "string", "primary": True},
                {"name": "vin", "type": "string", "required": True},
                {"name": "make", "type": "string", "required": True},
                {"name": "model", "type": "string", "required": True},
                {"name": "year", "type": "number", "required": True},
                {"name": "status", "type": "string", "required": True},
            ]
        }
        model["Location"] = {
            "fields": [
                {"name": "id", "type": "string", "primary": True},
                {"name": "vehicleId", "type": "string", "required": True},
                {"name": "latitude", "type": "number", "required": True},
                {"name": "longitude", "type": "number", "required": True},
                {"name": "timestamp", "type": "datetime", "required": True},
            ]
        }

    return model


def _endpoint(path: str, method: str, description: str, auth: bool) -> Dict[str, Any]:
    return {"path": path, "method": method, "description": description, "auth": auth}


def generate_endpoints(requirements: str) -> List[Dict[str, Any]]:
    text = requirements.lower()
    endpoints = [_endpoint("/health", "GET", "Health check endpoint", False)]

    if _mentions(text, "user", "customer"):
        endpoints += [
            _endpoint("/users", "GET", "List all users", True),
            _endpoint("/users", "POST", "Create new user", True),
            _endpoint("/users/:id", "GET", "Get user by ID", True),
            _endpoint("/users/:id", "PUT", "Update user", True),
            _endpoint("/users/:id", "DELETE", "Delete user", True),
        ]

    if _mentions(text, "vehicle", "fleet", "telematics"):
        endpoints += [
            _endpoint("/vehicles", "GET", "List all vehicles", True),
            _endpoint("/vehicles/:id", "GET", "Get vehicle details", True),
            _endpoint("/vehicles/:id/location", "GET", "Get vehicle location", True),
            _endpoint("/vehicles/:id/locations", "GET", "Get location history", True),
        ]

    endpoints += [
        _endpoint("/auth/login", "POST", "User login", False),
        _endpoint("/auth/register", "POST", "User registration", False),
        _endpoint("/auth/refresh", "POST", "Refresh token", False),
    ]
    return endpoints


@dataclass
class GenerationTask:
    id: str
    requirements: str
    status: str = "analyzing"
    progress: int = 0
    stage: str = STAGES[0][0]
    current_stage_index: int = 0
    start_time: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    runner: Optional[asyncio.Task] = field(default=None, repr=False)

    def snapshot(self) -> Dict[str, Any]:
        return {"status": self.status, "progress": self.progress, "stage": self.stage}


class GenerationManager:
    """Owns in-flight generation tasks"""

    def __init__(
        self,
        stage_scale: float = 1.0,
        task_ttl: float = 3600,
        workflow: Optional[WorkflowTracker] = None,
    ):
        self.stage_scale = stage_scale
        self.task_ttl = task_ttl
        self.workflow = workflow or workflow_tracker
        self.tasks: Dict[str, GenerationTask] = {}

    def _new_id(self) -> str:
        task_id = f"api-{int(time.time() * 1000)}"
        suffix = 1
        while task_id in self.tasks:
            task_id = f"api-{int(time.time() * 1000)}-{suffix}"
            suffix += 1
        return task_id

    def start(self, requirements: str) -> GenerationTask:
        """Create a task and start stepping through its stages in the background"""
        self._prune()
        task = GenerationTask(id=self._new_id(), requirements=requirements)
        self.tasks[task.id] = task
        task.runner = asyncio.create_task(self._process(task))
        logger.info(f"Started API generation {task.id}")
        return task

    async def _process(self, task: GenerationTask):
        step_id = None
        try:
            async with track_operation("api_generation", metadata={"task_id": task.id}):
                for index, (name, duration) in enumerate(STAGES):
                    task.current_stage_index = index
                    task.stage = name
                    task.progress = round(index / len(STAGES) * 100)
                    task.status = "processing"
                    step_id = self.workflow.start_step(
                        name,
                        "api_generation",
                        "generation",
                        trace_id=task.id,
                        project_id=task.id,
                        metadata={"stage_index": index},
                    )
                    await asyncio.sleep(duration * self.stage_scale)
                    self.workflow.complete_step(step_id, {"progress": task.progress})
                    step_id = None
        except asyncio.CancelledError:
            self._fail(task, "Generation cancelled", step_id, "cancelled")
            raise
        except Exception as e:
            self._fail(task, "Generation failed", step_id, e)
            logger.error(f"Generation {task.id} failed: {e}", exc_info=True)
            return

        task.status = "completed"
        task.progress = 100
        task.stage = "API generation completed!"
        task.finished_at = time.time()
        logger.info(f"✅ API generation {task.id} completed")

    def _fail(self, task: GenerationTask, stage: str, step_id: Optional[str], error):
        task.status = "failed"
        task.stage = stage
        task.finished_at = time.time()
        if step_id is not None:
            self.workflow.fail_step(step_id, error)

    def _prune(self):
        """Forget finished tasks older than the task TTL"""
        cutoff = time.time() - self.task_ttl
        expired = [
            task_id for task_id, task in self.tasks.items()
            if task.finished_at is not None and task.finished_at <= cutoff
        ]
        for task_id in expired:
            del self.tasks[task_id]
        if expired:
            logger.debug(f"Pruned {len(expired)} finished generation tasks")

    def get(self, task_id: str) -> GenerationTask:
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def progress(self, task_id: str) -> Dict[str, Any]:
        return self.get(task_id).snapshot()

    def finalize(self, task_id: str, projects: ProjectStore) -> Dict[str, Any]:
        """Turn a completed task into a stored project and forget the task"""
        task = self.get(task_id)
        if task.status != "completed":
            raise TaskNotCompleteError(task_id)

        project = projects.create(
            name=generate_api_name(task.requirements),
            description=f"Generated API based on: {task.requirements}",
            project_id=task.id,
            data_model=generate_data_model(task.requirements),
            endpoints=generate_endpoints(task.requirements),
            settings={
                "authentication": "jwt",
                "database": "postgresql",
                "cache": "redis",
                "generated": True,
                "original_requirements": task.requirements,
            },
        )
        del self.tasks[task_id]
        return project

    async def shutdown(self):
        """Cancel generation still in progress"""
        runners = [t.runner for t in self.tasks.values() if t.runner and not t.runner.done()]
        for runner in runners:
            runner.cancel()
        if runners:
            await asyncio.gather(*runners, return_exceptions=True)
