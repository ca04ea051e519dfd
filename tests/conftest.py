"""
Shared pytest fixtures.

Fakes and builders live in tests/fakes.py so test modules can import them directly.
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio

from fakes import BothShapesProvider, build_stack, make_config
from shared.helper.HelperConfig import HelperConfig


@pytest.fixture
def config() -> HelperConfig:
    return make_config()


@pytest_asyncio.fixture
async def stack() -> SimpleNamespace:
    """Full in-process stack around a provider offering both call shapes.

    Background embedding jobs still running at teardown are awaited.
    """
    stack = build_stack(BothShapesProvider())
    yield stack
    await stack.pipeline.drain()
