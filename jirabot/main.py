"""
JiraBot - FastAPI Backend
"""
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from jirabot import __version__
from jirabot.config import Settings, get_settings
from jirabot.exceptions import ConfigurationMissing, StoreError
from jirabot.middleware.logging_middleware import LoggingMiddleware
from jirabot.repositories.brain_repository import BrainRepository, create_brain
from jirabot.repositories.filter_repository import FilterRepository
from jirabot.routes import health, messages
from jirabot.services.dispatcher import CommandDispatcher
from jirabot.services.jira import JiraClient
from jirabot.utils.logger import setup_logger


def create_app(
    settings: Optional[Settings] = None,
    brain: Optional[BrainRepository] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """
    Build the application

    Components are wired in the lifespan hook from a single Settings
    instance; nothing below reads the environment.

    Args:
        settings: Settings (defaults to get_settings())
        brain: Key-value store (defaults to BRAIN_BACKEND)
        transport: httpx transport for the Jira client (tests)
    """
    settings = settings or get_settings()
    logger = setup_logger("jirabot", settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        jira = JiraClient(settings, transport=transport)
        filters = FilterRepository(brain or create_brain(settings))
        try:
            await filters.ensure_loaded()
        except StoreError as e:
            logger.warning(f"Saved filters unavailable at startup, will retry on first use: {e}")

        app.state.jira = jira
        app.state.filters = filters
        app.state.dispatcher = CommandDispatcher(settings, jira, filters)
        logger.info(f"JiraBot ready for {jira.base_url} as {settings.bot_name}")
        yield

    app = FastAPI(
        title="JiraBot",
        description="Jira issue announcements and saved searches for chat",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(LoggingMiddleware)

    app.include_router(messages.router)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {"message": "JiraBot API", "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    if not settings.jira_url:
        raise ConfigurationMissing("JIRA_URL is required")
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)
