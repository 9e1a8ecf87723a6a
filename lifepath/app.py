"""Composition root.

Builds the engine from Settings: store, backend, registry, executor,
controller, services, location resolver and runner, each constructed once
and passed to the parts that need it.

    settings = Settings.from_env()
    engine = build_engine(settings)
    outcome = engine.runner.start_session({"date": "1444-03-15", "location": "Florence"})
"""

import logging
from dataclasses import dataclass
from typing import Optional

from lifepath.agents.registry import AgentRegistry, get_agent_registry
from lifepath.config import Settings, configure_logging
from lifepath.engine.executor import AgentExecutor
from lifepath.engine.variables import StoryVariables
from lifepath.llm.factory import get_backend
from lifepath.services.content import ContentServices
from lifepath.services.images import ImageServices
from lifepath.services.location import LocationResolver
from lifepath.sessions.store import get_session_store
from lifepath.workflow.controller import WorkflowController
from lifepath.workflow.runner import WorkflowRunner

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    settings: Settings
    registry: AgentRegistry
    store: object
    executor: AgentExecutor
    controller: WorkflowController
    content: ContentServices
    images: ImageServices
    location: LocationResolver
    runner: WorkflowRunner

    def close(self) -> None:
        self.executor.close()
        self.location.close()


def build_engine(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[AgentRegistry] = None,
    store=None,
    backend=None,
    story_variables: Optional[StoryVariables] = None,
) -> Engine:
    """Wire the engine. Any collaborator can be passed in to replace the default."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    registry = registry or get_agent_registry()
    store = store if store is not None else get_session_store(settings)
    backend = backend if backend is not None else get_backend(settings)

    executor = AgentExecutor(
        store,
        backend,
        variable_hooks=[story_variables or StoryVariables()],
    )
    controller = WorkflowController(registry)
    content = ContentServices(registry, executor, store)
    images = ImageServices(registry, executor, store, settings.media_dir)
    location = LocationResolver(
        backend,
        provider=settings.location_provider,
        base_url=settings.whg_base_url,
        radius_km=settings.whg_radius_km,
        max_results=settings.whg_max_results,
        model=settings.location_model,
    )
    runner = WorkflowRunner(
        registry,
        controller,
        store,
        content,
        backend_timeout=settings.backend_timeout,
        images=images,
    )

    logger.info(
        f"Engine ready: backend={settings.backend}, store={settings.session_store}, "
        f"{registry.count()} agents"
    )
    return Engine(
        settings=settings,
        registry=registry,
        store=store,
        executor=executor,
        controller=controller,
        content=content,
        images=images,
        location=location,
        runner=runner,
    )
