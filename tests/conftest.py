"""
Shared test fixtures.
"""

import pytest

from discordlink.commands import CommandDispatcher
from discordlink.registry import ConnectionRegistry
from helpers import FakeSessionProvider


@pytest.fixture
def provider() -> FakeSessionProvider:
    return FakeSessionProvider()


@pytest.fixture
def registry(provider) -> ConnectionRegistry:
    return ConnectionRegistry(provider)


@pytest.fixture
def dispatcher(registry) -> CommandDispatcher:
    return CommandDispatcher(registry)
