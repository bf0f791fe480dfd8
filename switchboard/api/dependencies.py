"""Dependency injection for API routes.

Components are attached to `app.state` by `create_app()`; tests override
them by passing their own instances.
"""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, Request

from switchboard.conversation.registry import ThreadRegistry
from switchboard.conversation.store import ThreadStore

HealthCheck = Callable[[], Awaitable[bool]]


def get_registry(request: Request) -> ThreadRegistry:
    return request.app.state.registry


def get_thread_store(request: Request) -> ThreadStore:
    return request.app.state.thread_store


def get_health_checks(request: Request) -> dict[str, HealthCheck]:
    return request.app.state.health_checks


RegistryDep = Annotated[ThreadRegistry, Depends(get_registry)]
ThreadStoreDep = Annotated[ThreadStore, Depends(get_thread_store)]
HealthChecksDep = Annotated[dict[str, HealthCheck], Depends(get_health_checks)]
