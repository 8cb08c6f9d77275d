import pytest

from webview_query.session import SessionDescriptor

from .fakes import FakeWebAppClient, RecordingLogger, SleepRecorder


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def client():
    return FakeWebAppClient()


@pytest.fixture
def make_descriptor():
    def _make(client, label="alice", bot="some_bot", url="https://app.example/", use_default=True):
        return SessionDescriptor(
            client=client,
            label=label,
            bot=bot,
            url=url,
            use_default_query_type=use_default,
        )
    return _make
