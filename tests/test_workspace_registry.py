import asyncio

from livesite.config import Settings
from livesite.services.persistence import InMemoryProjectPersistence
from livesite.services.workspace import WorkspaceRegistry
from livesite.session.controller import SessionState
from livesite.stream.transport import DoneSentinel


class FakeTransport:
    async def stream(self, request):
        yield DoneSentinel()


def _registry(now, *, idle_seconds=10.0, max_workspaces=2) -> WorkspaceRegistry:
    settings = Settings()
    settings.workspace_idle_seconds = idle_seconds
    settings.max_workspaces = max_workspaces
    return WorkspaceRegistry(
        settings=settings,
        persistence=InMemoryProjectPersistence(),
        transport_factory=FakeTransport,
        clock=lambda: now[0],
    )


def test_registry_closes_least_recently_used_over_capacity() -> None:
    now = [0.0]
    registry = _registry(now)

    first = asyncio.run(registry.create())
    now[0] = 1.0
    second = asyncio.run(registry.create())
    now[0] = 2.0
    assert registry.get(first.id) is first

    third = asyncio.run(registry.create())

    assert len(registry) == 2
    assert registry.get(second.id) is None
    assert registry.get(first.id) is first
    assert registry.get(third.id) is third


def test_registry_closes_idle_workspaces_but_not_running_ones() -> None:
    now = [0.0]
    registry = _registry(now, max_workspaces=10)
    busy = asyncio.run(registry.create())
    idle = asyncio.run(registry.create())
    busy.controller.state = SessionState.STREAMING

    now[0] = 5.0
    assert registry.evict() == []

    now[0] = 20.0
    assert registry.evict() == [idle.id]
    assert registry.get(busy.id) is busy
    assert registry.get(idle.id) is None
