"""
🧪 test_orchestrator.py — unit-тесты для FetchOrchestrator

Проверяет:
- Порядок перебора каталога и запись в memo
- Повторный запрос в пределах 30 минут → одна попытка
- Last resort, полный провал и укладывание в бюджет таймаутов
- Цепочку для обычных доменов
"""

import asyncio
import time
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import web, ClientSession

from core.proxy.cache_manager import SuccessMemo
from core.proxy.executor import StrategyExecutor, Success, Rejected, Failed
from core.proxy.orchestrator import FetchOrchestrator
from core.proxy.personas import CATALOG, LAST_RESORT
from core.proxy.session_probe import SessionProbe
from core.proxy.target import TargetResource

K7_URL = "https://k7rzspb5flu6zayatfe4mh.my/data/img1.jpg"
K7_PREFIX = "https://k7rzspb5flu6zayatfe4mh.my/data"
COOKIE = "token=t_1; visitor=v_1; session=sess_1"


@pytest.fixture
def probe():
    probe = MagicMock()
    probe.acquire = AsyncMock(return_value=COOKIE)
    return probe


@pytest.fixture
def memo(clock):
    return SuccessMemo(clock=clock)


def _orchestrator(executor, memo, probe):
    return FetchOrchestrator(executor=executor, memo=memo, probe=probe)


@pytest.mark.asyncio
async def test_third_persona_wins_and_is_memoized(make_executor, memo, probe, webp_success):
    executor = make_executor({"chrome_sessiononly": webp_success})

    outcome = await _orchestrator(executor, memo, probe).fetch(TargetResource.parse(K7_URL))

    assert outcome.content_type == "image/webp"
    assert executor.tried == ["chrome_direct", "chrome_nocors", "chrome_sessiononly"]
    assert memo.lookup(K7_PREFIX).persona_name == "chrome_sessiononly"
    assert all(cookie == COOKIE for _, cookie in executor.calls)


@pytest.mark.asyncio
async def test_repeat_within_ttl_uses_single_attempt(make_executor, memo, probe, clock, webp_success):
    executor = make_executor({"chrome_sessiononly": webp_success})
    orchestrator = _orchestrator(executor, memo, probe)
    await orchestrator.fetch(TargetResource.parse(K7_URL))

    executor.calls.clear()
    probe.acquire.reset_mock()
    clock.advance(5 * 60)

    outcome = await orchestrator.fetch(TargetResource.parse(
        "https://k7rzspb5flu6zayatfe4mh.my/data/img2.jpg"))

    assert outcome == webp_success
    assert executor.tried == ["chrome_sessiononly"]
    probe.acquire.assert_not_awaited()


@pytest.mark.asyncio
async def test_expired_memo_walks_catalog_again(make_executor, memo, probe, clock, webp_success):
    executor = make_executor({"chrome_sessiononly": webp_success})
    orchestrator = _orchestrator(executor, memo, probe)
    await orchestrator.fetch(TargetResource.parse(K7_URL))

    executor.calls.clear()
    clock.advance(30 * 60)
    await orchestrator.fetch(TargetResource.parse(K7_URL))

    assert executor.tried[0] == "chrome_direct"


@pytest.mark.asyncio
async def test_memoized_failure_falls_through_to_catalog(make_executor, memo, probe, webp_success):
    memo.record(K7_PREFIX, "safari", "session=old")
    executor = make_executor({"iphone": webp_success})

    outcome = await _orchestrator(executor, memo, probe).fetch(TargetResource.parse(K7_URL))

    assert outcome == webp_success
    assert executor.calls[0] == ("safari", "session=old")
    assert executor.tried[1:] == [p.name for p in CATALOG[:7]]
    assert memo.lookup(K7_PREFIX).persona_name == "iphone"


@pytest.mark.asyncio
async def test_unknown_memoized_name_is_a_miss(make_executor, memo, probe, webp_success):
    memo.record(K7_PREFIX, "retired_persona")
    executor = make_executor({"chrome_direct": webp_success})

    await _orchestrator(executor, memo, probe).fetch(TargetResource.parse(K7_URL))

    assert executor.tried == ["chrome_direct"]


@pytest.mark.asyncio
async def test_last_resort_recorded_under_sentinel(make_executor, memo, probe, webp_success):
    executor = make_executor({"googlebot": webp_success}, default=Failed("timeout"))

    outcome = await _orchestrator(executor, memo, probe).fetch(TargetResource.parse(K7_URL))

    assert outcome == webp_success
    assert executor.tried == [p.name for p in CATALOG] + ["googlebot"]
    assert executor.calls[-1] == ("googlebot", None)
    assert memo.lookup(K7_PREFIX).persona_name == "googlebot"
    assert memo.lookup(K7_PREFIX).cookie == ""


@pytest.mark.asyncio
async def test_total_exhaustion_returns_none(make_executor, memo, probe):
    executor = make_executor(default=Rejected(403))

    outcome = await _orchestrator(executor, memo, probe).fetch(TargetResource.parse(K7_URL))

    assert outcome is None
    assert executor.attempts == len(CATALOG) + 1
    assert K7_PREFIX not in memo


@pytest.mark.asyncio
async def test_cookie_probe_runs_once_before_catalog(make_executor, memo, probe):
    executor = make_executor(default=Rejected(403))

    await _orchestrator(executor, memo, probe).fetch(TargetResource.parse(K7_URL))

    probe.acquire.assert_awaited_once()


@pytest.mark.asyncio
async def test_regular_domain_google_referer_after_403(make_executor, memo, probe):
    image = Success(200, "image/jpeg", b"jpeg")
    executor = make_executor({"browser": Rejected(403), "google_referer_plain": image})

    outcome = await _orchestrator(executor, memo, probe).fetch(
        TargetResource.parse("https://i2.wp.com/komikindo2.com/cover.jpg"))

    assert outcome == image
    assert executor.tried == ["browser", "google_referer_plain"]
    probe.acquire.assert_not_awaited()
    assert len(memo) == 0


@pytest.mark.asyncio
async def test_regular_domain_minimal_is_last(make_executor, memo, probe):
    image = Success(200, "image/png", b"png")
    executor = make_executor({"browser": Rejected(401), "minimal": image})

    outcome = await _orchestrator(executor, memo, probe).fetch(
        TargetResource.parse("https://i2.wp.com/komikindo2.com/cover.jpg"))

    assert outcome == image
    assert executor.tried == ["browser", "google_referer_plain", "minimal"]


@pytest.mark.asyncio
async def test_regular_domain_non_auth_failure_does_not_retry(make_executor, memo, probe):
    executor = make_executor({"browser": Rejected(500)})

    outcome = await _orchestrator(executor, memo, probe).fetch(
        TargetResource.parse("https://i2.wp.com/komikindo2.com/cover.jpg"))

    assert outcome is None
    assert executor.tried == ["browser"]


@pytest.mark.asyncio
async def test_regular_domain_forwards_user_agent(memo, probe):
    executor = MagicMock()
    executor.attempt = AsyncMock(return_value=Success(200, "image/jpeg", b""))

    await _orchestrator(executor, memo, probe).fetch(
        TargetResource.parse("https://i2.wp.com/komikindo2.com/cover.jpg"), user_agent="Reader/2.0")

    persona = executor.attempt.await_args.args[1]
    assert persona.headers["User-Agent"] == "Reader/2.0"


@pytest.mark.asyncio
async def test_custom_predicate_forces_evasion(make_executor, memo, probe, webp_success):
    executor = make_executor({"chrome_direct": webp_success})
    orchestrator = FetchOrchestrator(executor=executor, memo=memo, probe=probe,
                                     needs_evasion=lambda target: True)

    await orchestrator.fetch(TargetResource.parse("https://i2.wp.com/komikindo2.com/cover.jpg"))

    assert executor.tried == ["chrome_direct"]
    assert "https://i2.wp.com/komikindo2.com" in memo


@pytest.mark.asyncio
async def test_full_exhaustion_stays_within_timeout_budget(aiohttp_server, memo):
    async def hang(request):
        await asyncio.sleep(1)
        return web.Response(body=b"late")

    app = web.Application()
    app.router.add_route('*', '/{tail:.*}', hang)
    server = await aiohttp_server(app)
    target = TargetResource.parse(str(server.make_url('/data/img1.jpg')))

    async with ClientSession() as session:
        orchestrator = FetchOrchestrator(
            executor=StrategyExecutor(session),
            memo=memo,
            probe=SessionProbe(session, timeout=0.1, synthesize=False),
            catalog=[replace(p, timeout=0.1) for p in CATALOG],
            last_resort=replace(LAST_RESORT, timeout=0.1),
        )

        started = time.monotonic()
        outcome = await orchestrator.fetch(target)
        elapsed = time.monotonic() - started

    assert outcome is None
    assert orchestrator.executor.attempts == len(CATALOG) + 1
    assert orchestrator.timeout_budget() == pytest.approx(0.1 * (len(CATALOG) + 2))
    assert elapsed < orchestrator.timeout_budget() + 0.5
