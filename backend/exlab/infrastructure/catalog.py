"""
ExLab - Exercise Catalog Client

Fetches exercise definitions from the exercise distribution service and
converts them into domain entities.
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
import pydantic
import structlog
from pydantic import BaseModel, Field

from exlab.core.errors import CatalogError, ValidationError
from exlab.domain.exercises.entities import (
    Category,
    ChildExercise,
    ContainerSpec,
    EnvVariable,
    ExerciseSpec,
    RecordConfig,
    VMSpec,
)

logger = structlog.get_logger(__name__)


# ============================================================================
# Wire Models
# ============================================================================

class EnvVariableRecord(BaseModel):
    name: str
    value: str = ""


class RecordsRecord(BaseModel):
    type: str
    name: str
    data: str = ""


class ChildExerciseRecord(BaseModel):
    tag: str
    name: str = ""
    env_flag: str = ""
    points: int = 0
    static: str = ""
    team_description: str = ""
    category: str = ""
    organizer_description: str = ""
    prerequisite: List[str] = Field(default_factory=list)
    outcome: List[str] = Field(default_factory=list)


class ExerciseInstanceRecord(BaseModel):
    image: str
    memory: int = 0
    cpu: float = 0.0
    envs: List[EnvVariableRecord] = Field(default_factory=list)
    records: List[RecordsRecord] = Field(default_factory=list)
    children: List[ChildExerciseRecord] = Field(default_factory=list)


class VMRecord(BaseModel):
    image: str


class ExerciseRecord(BaseModel):
    """Exercise as served by the catalog."""
    tag: str
    name: str = ""
    secret: bool = False
    category: str = ""
    status: int = 0
    instance: List[ExerciseInstanceRecord] = Field(default_factory=list)
    vms: List[VMRecord] = Field(default_factory=list)
    
    def to_spec(self) -> ExerciseSpec:
        return ExerciseSpec(
            tag=self.tag,
            name=self.name,
            secret=self.secret,
            category=self.category,
            status=self.status,
            instances=tuple(
                ContainerSpec(
                    image=inst.image,
                    memory_mb=inst.memory,
                    cpu=inst.cpu,
                    envs=tuple(EnvVariable(e.name, e.value) for e in inst.envs),
                    records=tuple(RecordConfig(r.type, r.name, r.data) for r in inst.records),
                    children=tuple(
                        ChildExercise(
                            tag=c.tag,
                            name=c.name,
                            env_flag=c.env_flag,
                            points=c.points,
                            static=c.static,
                            team_description=c.team_description,
                            category=c.category,
                            organizer_description=c.organizer_description,
                            prerequisites=tuple(c.prerequisite),
                            outcomes=tuple(c.outcome),
                        )
                        for c in inst.children
                    ),
                )
                for inst in self.instance
            ),
            vms=tuple(VMSpec(image=vm.image) for vm in self.vms),
        )


class GetExercisesResponse(BaseModel):
    exercises: List[ExerciseRecord] = Field(default_factory=list)


class CategoryRecord(BaseModel):
    tag: str
    name: str


class GetCategoriesResponse(BaseModel):
    categories: List[CategoryRecord] = Field(default_factory=list)


# ============================================================================
# Client
# ============================================================================

class CatalogClient:
    """
    HTTP client for the exercise distribution service.
    """
    
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
    
    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session
    
    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
    
    async def get_exercises(self) -> List[ExerciseSpec]:
        payload = await self._get("/exercises")
        return self._parse_exercises(payload)
    
    async def get_exercises_by_tags(self, tags: List[str]) -> List[ExerciseSpec]:
        payload = await self._get("/exercises", params=[("tag", t) for t in tags])
        return self._parse_exercises(payload)
    
    async def get_exercises_by_category(self, category: str) -> List[ExerciseSpec]:
        payload = await self._get("/exercises", params=[("category", category)])
        return self._parse_exercises(payload)
    
    async def get_categories(self) -> List[Category]:
        payload = await self._get("/categories")
        try:
            response = GetCategoriesResponse.model_validate(payload)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Malformed category listing: {e}") from e
        return [Category(tag=c.tag, name=c.name) for c in response.categories]
    
    async def _get(self, path: str, params: Optional[list] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().get(url, params=params) as resp:
                resp.raise_for_status()
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Catalog request failed", url=url, error=str(e))
            raise CatalogError(f"Catalog request to {url} failed: {e}") from e
    
    def _parse_exercises(self, payload: Dict[str, Any]) -> List[ExerciseSpec]:
        try:
            response = GetExercisesResponse.model_validate(payload)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Malformed exercise listing: {e}") from e
        return [record.to_spec() for record in response.exercises]
