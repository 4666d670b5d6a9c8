from fastapi import APIRouter

from learning_core.api.v1.endpoints import (
    course_controller,
    sprint_controller,
    session_controller,
    task_controller,
    progress_controller,
)

api_router = APIRouter()

# Content hierarchy
api_router.include_router(course_controller.router)
api_router.include_router(sprint_controller.router)
api_router.include_router(session_controller.router)
api_router.include_router(task_controller.router)

# Enrollments, progress and certificates
api_router.include_router(progress_controller.router)
