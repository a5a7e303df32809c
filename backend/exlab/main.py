"""
ExLab - FastAPI Application Factory
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import partial
from typing import AsyncGenerator, Optional

import aiodocker
import structlog
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from exlab.core.config import Settings, get_settings
from exlab.core.logging import setup_logging
from exlab.domain.events.store import EventConfig, EventConfigStore
from exlab.domain.exercises.entities import random_flag_factory
from exlab.domain.exercises.registry import ExerciseRegistry
from exlab.infrastructure.catalog import CatalogClient
from exlab.infrastructure.orchestrator.services.lab_manager import LabManager
from exlab.infrastructure.orchestrator.services.network import DockerNetwork
from exlab.infrastructure.orchestrator.services.sandbox_docker import DockerHost
from exlab.infrastructure.orchestrator.services.sandbox_vbox import VBoxLibrary
from exlab.interfaces.api.v1 import api_router
from exlab.interfaces.middleware.error_handler import ErrorHandlerMiddleware

logger = structlog.get_logger(__name__)


async def load_registry(settings: Settings) -> ExerciseRegistry:
    """Load exercises and categories from the catalog service, if configured."""
    registry = ExerciseRegistry()
    if not settings.catalog_url:
        logger.warning("No catalog configured, starting with an empty registry")
        return registry

    catalog = CatalogClient(settings.catalog_url, timeout=settings.catalog_timeout)
    try:
        exercises = await catalog.get_exercises()
        categories = await catalog.get_categories()
    finally:
        await catalog.close()

    if exercises:
        registry.register(exercises)
    for category in categories:
        registry.add_category(category.tag, category.name)

    logger.info("Exercise catalog loaded", exercises=len(exercises), categories=len(categories))
    return registry


def build_lab_manager(
    settings: Settings,
    registry: ExerciseRegistry,
    docker: aiodocker.Docker,
) -> LabManager:
    """Wire the Docker and VirtualBox collaborators into a LabManager."""
    return LabManager(
        registry,
        host=DockerHost(docker),
        library=VBoxLibrary(settings.vm_library_dir, binary=settings.vbox_manage_binary),
        network_factory=partial(DockerNetwork.create, docker, dns_octet=settings.dns_octet),
        network_prefix=settings.lab_network_prefix,
        dns_octet=settings.dns_octet,
        max_labs=settings.max_labs,
        flag_factory=random_flag_factory(settings.flag_prefix, settings.flag_suffix),
    )


def build_event_store(
    settings: Settings,
    registry: ExerciseRegistry,
    manager: LabManager,
) -> Optional[EventConfigStore]:
    """
    Create the event store when an event is configured.

    The event offers every registered exercise and starts with the lab
    capacity from settings; the lab manager listens for changes.
    """
    if not settings.event_tag:
        return None

    conf = EventConfig(
        name=settings.event_name or settings.event_tag,
        tag=settings.event_tag,
        capacity=settings.max_labs,
        available=settings.max_labs,
        exercises=tuple(e.tag for e in registry.list()),
        started_at=datetime.now(timezone.utc),
    )
    store = EventConfigStore.create(conf, [manager])
    logger.info("Event configured", event=conf.tag, exercises=len(conf.exercises))
    return store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown."""
    settings: Settings = app.state.settings

    setup_logging(settings.log_level, settings.log_format)

    logger.info("Starting ExLab", version=settings.app_version)

    docker = aiodocker.Docker(url=settings.docker_url)
    app.state.registry = await load_registry(settings)
    app.state.lab_manager = build_lab_manager(settings, app.state.registry, docker)
    app.state.event_store = build_event_store(settings, app.state.registry, app.state.lab_manager)

    yield

    logger.info("Shutting down ExLab")
    await app.state.lab_manager.close_all()
    await docker.close()
    logger.info("Shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory pattern for FastAPI.

    Args:
        settings: Optional settings override for testing

    Returns:
        Configured FastAPI application instance
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="ExLab",
        description="Per-exercise practice environments for cybersecurity training",
        version=settings.app_version,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.event_store = None

    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(api_router, prefix="/api/v1")

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
