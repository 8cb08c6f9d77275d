import pytest

from webview_query.driver import SessionOutcome, process_multiple_sessions
from webview_query.errors import ConfigurationError, RequestFailure
from webview_query.logger import LogLevel

from .fakes import RAW_INIT_DATA, FakeWebAppClient


@pytest.mark.asyncio
async def test_failing_session_does_not_stop_the_rest(make_descriptor, logger, sleep, tmp_path):
    clients = [
        FakeWebAppClient(),
        FakeWebAppClient(web_view_error=RuntimeError("BOT_INVALID")),
        FakeWebAppClient(),
    ]
    descriptors = [
        make_descriptor(clients[0], label="s1", bot="bot_a"),
        make_descriptor(clients[1], label="s2", bot="bot_b"),
        make_descriptor(clients[2], label="s3", bot="bot_c"),
    ]

    outcomes = await process_multiple_sessions(descriptors, output_dir=tmp_path, logger=logger, sleep=sleep)

    assert [o.succeeded for o in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, RequestFailure)
    assert outcomes[2].query == RAW_INIT_DATA
    assert (tmp_path / "query_bot_a.txt").exists()
    assert not (tmp_path / "query_bot_b.txt").exists()
    assert (tmp_path / "query_bot_c.txt").exists()
    assert [c.count("disconnect") for c in clients] == [1, 1, 1]

    failures = logger.find("session_failed")
    assert [f["session"] for f in failures] == ["s2"]


@pytest.mark.asyncio
async def test_sessions_run_strictly_in_order(make_descriptor, logger, tmp_path):
    order = []

    class OrderedClient(FakeWebAppClient):
        async def get_me(self):
            order.append((self.peer, "start"))
            return await super().get_me()

        async def disconnect(self):
            order.append((self.peer, "end"))
            await super().disconnect()

    descriptors = [make_descriptor(OrderedClient(peer=f"p{i}"), label=f"s{i}") for i in range(3)]

    await process_multiple_sessions(descriptors, output_dir=tmp_path, logger=logger)

    assert order == [
        ("p0", "start"), ("p0", "end"),
        ("p1", "start"), ("p1", "end"),
        ("p2", "start"), ("p2", "end"),
    ]


@pytest.mark.asyncio
async def test_configuration_error_is_isolated(make_descriptor, logger, tmp_path):
    descriptors = [
        make_descriptor(FakeWebAppClient(), label="bad", bot=""),
        make_descriptor(FakeWebAppClient(), label="good"),
    ]

    outcomes = await process_multiple_sessions(descriptors, output_dir=tmp_path, logger=logger)

    assert isinstance(outcomes[0].error, ConfigurationError)
    assert outcomes[1].succeeded
    assert logger.find("run_complete")[0] == {"total": 2, "succeeded": 1, "failed": 1}


@pytest.mark.asyncio
async def test_factory_failure_is_isolated(make_descriptor, logger):
    def factory(descriptor):
        raise ValueError("cannot build")

    outcomes = await process_multiple_sessions(
        [make_descriptor(FakeWebAppClient())],
        processor_factory=factory,
        logger=logger,
    )

    assert not outcomes[0].succeeded
    assert "session_failed" in logger.events(LogLevel.ERROR)


def test_outcome_to_dict():
    outcome = SessionOutcome(label="s", bot="b", error=RequestFailure("boom"))

    assert outcome.to_dict() == {
        "label": "s",
        "bot": "b",
        "succeeded": False,
        "error": "boom",
        "error_type": "RequestFailure",
    }
