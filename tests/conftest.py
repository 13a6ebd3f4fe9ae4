from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from tinybox_backend.db import dispose_engine, reset_engine_cache


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
async def _dispose_engine_per_test(  # pyright: ignore[reportUnusedFunction]
    anyio_backend: object,  # noqa: ARG001
) -> AsyncGenerator[None, None]:
    # Dispose the cached AsyncEngine (aiosqlite worker thread) while the
    # per-test event loop is still alive.
    _ = anyio_backend
    yield
    await dispose_engine()


def pytest_sessionfinish(session: object, exitstatus: int) -> None:  # noqa: ARG001
    _ = session, exitstatus
    reset_engine_cache()
