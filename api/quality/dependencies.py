"""
FastAPI dependencies for the data-quality services.
"""

from __future__ import annotations

from fastapi import Depends

from resources.dependencies import get_manager
from resources.repository import ResourceManager

from .analyzer import DataAnalyzer
from .changes import ChangeWorkflow
from .validation import BulkValidator


def get_analyzer(manager: ResourceManager = Depends(get_manager)) -> DataAnalyzer:
    return DataAnalyzer(manager)


def get_change_workflow(manager: ResourceManager = Depends(get_manager)) -> ChangeWorkflow:
    return ChangeWorkflow(manager)


def get_validator(manager: ResourceManager = Depends(get_manager)) -> BulkValidator:
    return BulkValidator(manager)
