"""
FastAPI dependencies for submission review.
"""

from __future__ import annotations

from fastapi import Depends

from resources.dependencies import get_manager
from resources.repository import ResourceManager

from .repository import SubmissionWorkflow


def get_submission_workflow(manager: ResourceManager = Depends(get_manager)) -> SubmissionWorkflow:
    return SubmissionWorkflow(manager)
