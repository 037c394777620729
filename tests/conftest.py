"""
Shared fixtures for the llm_toolchat test suite.
"""
import pytest

from llm_toolchat.config import AppConfig
from llm_toolchat.tools import ToolExecutionGateway

from tests.fakes import make_config, make_recording_gateway


@pytest.fixture
def config() -> AppConfig:
    return make_config()


@pytest.fixture
def executed() -> list:
    return []


@pytest.fixture
def recording_gateway(executed: list) -> ToolExecutionGateway:
    return make_recording_gateway(executed)
