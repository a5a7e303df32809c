"""
ExLab - Exercise Catalog Endpoints

- GET /exercises - Registered exercises, optionally by category
- GET /exercises/categories - Category listing
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from exlab.domain.exercises.registry import ExerciseRegistry
from exlab.interfaces.api.v1.dependencies import get_registry

router = APIRouter()


class ChildSummary(BaseModel):
    tag: str
    name: str
    points: int


class ExerciseSummary(BaseModel):
    tag: str
    name: str
    secret: bool
    category: str
    status: int
    containers: int
    vms: int
    children: List[ChildSummary]


class CategoryResponse(BaseModel):
    tag: str
    name: str


@router.get("", response_model=List[ExerciseSummary], summary="List Exercises")
async def list_exercises(
    category: Optional[str] = Query(default=None),
    registry: ExerciseRegistry = Depends(get_registry),
) -> List[ExerciseSummary]:
    exercises = registry.get_by_category(category) if category else registry.list()
    return [ExerciseSummary(**e.to_dict()) for e in exercises]


@router.get("/categories", response_model=List[CategoryResponse], summary="List Categories")
async def list_categories(
    registry: ExerciseRegistry = Depends(get_registry),
) -> List[CategoryResponse]:
    return [CategoryResponse(tag=c.tag, name=c.name) for c in registry.categories()]
