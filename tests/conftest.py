import random

import pytest

from mockpanel.interview.schemas import ConversationState
from mockpanel.interview.testing import (
    FakeCapture,
    FakeLiveProvider,
    ManualAudioSink,
    ManualClock,
    create_mock_candidate,
    create_mock_panel,
)


@pytest.fixture
def panel():
    return create_mock_panel()


@pytest.fixture
def candidate():
    return create_mock_candidate()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def state(panel, candidate, clock):
    return ConversationState.create(candidate, panel, session_id="session-test", now=clock())


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def provider():
    return FakeLiveProvider()


@pytest.fixture
def sink():
    return ManualAudioSink()


@pytest.fixture
def capture():
    return FakeCapture()
