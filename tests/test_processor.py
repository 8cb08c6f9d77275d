import json

import pytest

from webview_query.errors import (
    ConfigurationError,
    PeerResolutionError,
    QueryExtractionError,
    RateLimitSignal,
    RequestFailure,
    RetryExhausted,
    TimeoutFailure,
)
from webview_query.logger import LogLevel
from webview_query.session import SessionProcessor

from .fakes import RAW_INIT_DATA, FakeWebAppClient


def read_blocks(path):
    decoder = json.JSONDecoder()
    text = path.read_text(encoding="utf-8")
    blocks, pos = [], 0
    while pos < len(text):
        value, end = decoder.raw_decode(text, pos)
        assert text[end] == "\n"
        blocks.append(value)
        pos = end + 1
    return blocks


@pytest.fixture
def make_processor(tmp_path, sleep, logger):
    def _make(descriptor, **kwargs):
        return SessionProcessor(
            descriptor,
            output_dir=tmp_path,
            sleep=sleep,
            logger=logger,
            **kwargs,
        )
    return _make


@pytest.mark.asyncio
async def test_process_appends_query_and_disconnects(client, make_descriptor, make_processor, tmp_path):
    processor = make_processor(make_descriptor(client))

    query = await processor.process()

    assert query == RAW_INIT_DATA
    assert [c.name for c in client.calls] == ["get_me", "resolve_peer", "request_web_view", "disconnect"]
    path = tmp_path / "query_some_bot.txt"
    assert path.read_text(encoding="utf-8") == json.dumps(RAW_INIT_DATA, indent=2) + "\n"


@pytest.mark.asyncio
async def test_web_view_request_uses_peer_for_peer_and_bot(client, make_descriptor, make_processor):
    processor = make_processor(make_descriptor(client), platform="android")

    await processor.process()

    request = next(c for c in client.calls if c.name == "request_web_view")
    assert request.args == ("peer:bot", "peer:bot", "https://app.example/", "android")
    assert processor.peer == "peer:bot"
    assert processor.user == {"id": 42, "username": "ann"}


@pytest.mark.asyncio
async def test_alternate_mode_saves_indented_mapping(client, make_descriptor, make_processor, tmp_path):
    processor = make_processor(make_descriptor(client, use_default=False))

    query = await processor.process()

    assert query["user"] == '{"id":42,"first_name":"Ann"}'
    assert query["hash"] == "abc123"
    text = (tmp_path / "query_some_bot.txt").read_text(encoding="utf-8")
    assert text.startswith('{\n  "query_id": "AAH1"')
    assert read_blocks(tmp_path / "query_some_bot.txt") == [query]


@pytest.mark.asyncio
async def test_two_runs_append_two_blocks(make_descriptor, make_processor, tmp_path):
    first = FakeWebAppClient()
    second = FakeWebAppClient(web_view_url="https://app.example/#tgWebAppData=auth_date%3D2%26hash%3Dff")

    await make_processor(make_descriptor(first)).process()
    await make_processor(make_descriptor(second)).process()

    assert read_blocks(tmp_path / "query_some_bot.txt") == [RAW_INIT_DATA, "auth_date=2&hash=ff"]


@pytest.mark.asyncio
@pytest.mark.parametrize("bot,url", [("", "https://app.example/"), ("some_bot", "")])
async def test_missing_bot_or_url_fails_before_network(client, make_descriptor, make_processor, tmp_path, bot, url):
    processor = make_processor(make_descriptor(client, bot=bot, url=url))

    with pytest.raises(ConfigurationError):
        await processor.process()

    assert client.network_calls == []
    assert client.count("disconnect") == 1
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_flood_wait_then_success(make_descriptor, make_processor, sleep, logger):
    client = FakeWebAppClient(resolve_script=[RateLimitSignal(12)])
    processor = make_processor(make_descriptor(client))

    await processor.process()

    assert sleep.delays == [15]
    assert client.count("resolve_peer") == 2
    assert logger.find("flood_wait")[0]["seconds"] == 12
    assert logger.find("flood_wait")[0]["session"] == "alice"


@pytest.mark.asyncio
async def test_timeouts_then_success_prints_red_marker(make_descriptor, make_processor, sleep, logger, capsys):
    client = FakeWebAppClient(resolve_script=[TimeoutFailure("TIMEOUT")] * 4)
    processor = make_processor(make_descriptor(client))

    await processor.process()

    assert sleep.delays == [5, 5, 5, 5]
    assert [d["attempt"] for d in logger.find("timeout")] == [1, 2, 3, 4]
    assert logger.find("peer_resolved")[0]["attempts"] == 4
    assert capsys.readouterr().err.count("\x1b[31mTIMEOUT\x1b[0m") == 4


@pytest.mark.asyncio
async def test_retry_exhausted_leaves_output_untouched(make_descriptor, make_processor, logger, tmp_path):
    existing = tmp_path / "query_some_bot.txt"
    existing.write_text('"earlier"\n', encoding="utf-8")
    client = FakeWebAppClient(resolve_script=[TimeoutFailure("TIMEOUT")] * 5)
    processor = make_processor(make_descriptor(client))

    with pytest.raises(RetryExhausted, match="Maximum attempts reached"):
        await processor.process()

    assert existing.read_text(encoding="utf-8") == '"earlier"\n'
    assert client.count("request_web_view") == 0
    assert client.count("disconnect") == 1
    assert "resolve_gave_up" in logger.events(LogLevel.ERROR)
    assert "process_failed" in logger.events(LogLevel.ERROR)


@pytest.mark.asyncio
async def test_other_resolution_error_is_not_retried(make_descriptor, make_processor, sleep):
    client = FakeWebAppClient(resolve_script=[ValueError("No user has \"some_bot\" as username")])
    processor = make_processor(make_descriptor(client))

    with pytest.raises(ValueError):
        await processor.process()

    assert client.count("resolve_peer") == 1
    assert sleep.delays == []
    assert client.count("disconnect") == 1


@pytest.mark.asyncio
async def test_web_view_error_becomes_request_failure(make_descriptor, make_processor, logger, tmp_path):
    client = FakeWebAppClient(web_view_error=ConnectionError("reset"))
    processor = make_processor(make_descriptor(client))

    with pytest.raises(RequestFailure) as exc_info:
        await processor.process()

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert "web_view_error" in logger.events(LogLevel.ERROR)
    assert client.count("disconnect") == 1
    assert not (tmp_path / "query_some_bot.txt").exists()


@pytest.mark.asyncio
async def test_url_without_payload_fails_extraction(make_descriptor, make_processor, tmp_path):
    client = FakeWebAppClient(web_view_url="https://app.example/#tgWebAppVersion=7.0")
    processor = make_processor(make_descriptor(client))

    with pytest.raises(QueryExtractionError):
        await processor.process()

    assert not (tmp_path / "query_some_bot.txt").exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [
    {"get_me_error": RuntimeError("auth key unregistered")},
    {"resolve_script": [ValueError("bad username")]},
    {"web_view_error": RuntimeError("BOT_INVALID")},
    {"web_view_url": ""},
])
async def test_disconnect_runs_once_on_every_failure(make_descriptor, make_processor, failure):
    client = FakeWebAppClient(**failure)
    processor = make_processor(make_descriptor(client))

    with pytest.raises(Exception):
        await processor.process()

    assert client.count("disconnect") == 1


@pytest.mark.asyncio
async def test_disconnect_failure_does_not_mask_success(make_descriptor, make_processor, logger):
    client = FakeWebAppClient(disconnect_error=OSError("socket closed"))
    processor = make_processor(make_descriptor(client))

    assert await processor.process() == RAW_INIT_DATA
    assert logger.find("disconnect_failed")[0]["error"] == "socket closed"


@pytest.mark.asyncio
async def test_disconnect_failure_does_not_replace_original_error(make_descriptor, make_processor):
    client = FakeWebAppClient(
        web_view_error=RuntimeError("BOT_INVALID"),
        disconnect_error=OSError("socket closed"),
    )
    processor = make_processor(make_descriptor(client))

    with pytest.raises(RequestFailure, match="BOT_INVALID"):
        await processor.process()


@pytest.mark.asyncio
async def test_peer_is_resolved_only_once(client, make_descriptor, make_processor):
    processor = make_processor(make_descriptor(client))

    first = await processor.resolve_peer()
    second = await processor.resolve_peer()

    assert first is second
    assert client.count("resolve_peer") == 1


@pytest.mark.asyncio
async def test_empty_peer_is_rejected(make_descriptor, make_processor):
    client = FakeWebAppClient(peer=None)
    processor = make_processor(make_descriptor(client))

    with pytest.raises(PeerResolutionError):
        await processor.process()

    assert client.count("request_web_view") == 0


@pytest.mark.asyncio
async def test_processor_is_single_use(client, make_descriptor, make_processor):
    processor = make_processor(make_descriptor(client))
    await processor.process()

    with pytest.raises(RuntimeError):
        await processor.process()

    assert client.count("disconnect") == 1


@pytest.mark.asyncio
async def test_empty_peer_is_a_resolution_error_not_request_failure(make_descriptor, make_processor):
    processor = make_processor(make_descriptor(FakeWebAppClient(peer="")))

    with pytest.raises(PeerResolutionError) as exc_info:
        await processor.process()

    assert not isinstance(exc_info.value, RequestFailure)


@pytest.mark.asyncio
async def test_debug_records_trace_each_step(make_descriptor, make_processor, logger):
    client = FakeWebAppClient(resolve_script=[TimeoutFailure("TIMEOUT")])
    processor = make_processor(make_descriptor(client, use_default=False))

    await processor.process()

    debug = logger.events(LogLevel.DEBUG)
    assert debug == ["identity_fetched", "resolve_attempt", "resolve_attempt", "payload_extracted"]
    assert [d["attempt"] for d in logger.find("resolve_attempt")] == [1, 2]
    assert logger.find("payload_extracted")[0]["mode"] == "decoded"
    assert logger.find("web_view_complete")[0]["mode"] == "decoded"
