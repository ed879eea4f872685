# core/proxy/orchestrator.py
"""
Перебор персон для одного запроса к прокси.

Защищённые хосты:  memo → каталог (по порядку) → last resort.
Обычные хосты:     браузер → (401/403) Google referer → минимальные заголовки.

Попытки выполняются строго последовательно, до первого успеха.
"""

import logging
from typing import Callable, Iterable, Optional

from core.proxy.cache_manager import SuccessMemo
from core.proxy.executor import StrategyExecutor, Success, Rejected, Failed, AttemptOutcome
from core.proxy.personas import (
    Persona, CATALOG, LAST_RESORT, REGULAR_CHAIN, get_persona, catalog_timeout_budget,
)
from core.proxy.session_probe import SessionProbe
from core.proxy.target import TargetResource, ProtectionPolicy

logger = logging.getLogger(__name__)

AUTH_REJECTIONS = (401, 403)


def _describe(outcome: AttemptOutcome) -> str:
    if isinstance(outcome, Rejected):
        return f"status {outcome.status}"
    if isinstance(outcome, Failed):
        return outcome.cause
    return "ok"


class FetchOrchestrator:
    def __init__(self,
                 executor: StrategyExecutor,
                 memo: SuccessMemo,
                 probe: SessionProbe,
                 needs_evasion: Callable[[TargetResource], bool] = None,
                 catalog: Iterable[Persona] = CATALOG,
                 last_resort: Persona = LAST_RESORT):
        self.executor = executor
        self.memo = memo
        self.probe = probe
        self.needs_evasion = needs_evasion or ProtectionPolicy()
        self.catalog = tuple(catalog)
        self.last_resort = last_resort

    def timeout_budget(self) -> float:
        """Верхняя граница времени для защищённого хоста без memo: probe + каталог + last resort, секунды"""
        return self.probe.timeout + catalog_timeout_budget(self.catalog, self.last_resort)

    async def fetch(self, target: TargetResource, user_agent: Optional[str] = None) -> Optional[Success]:
        """
        Загрузить ресурс первой сработавшей персоной

        Args:
            target: Целевой ресурс
            user_agent: User-Agent входящего запроса (для обычных доменов)

        Returns:
            Success или None, если все попытки провалились
        """
        protected = self.needs_evasion(target)
        logger.info(f"🖼️ Proxying {target.absolute_url} (protected: {'yes' if protected else 'no'})")

        if protected:
            return await self._fetch_protected(target)
        return await self._fetch_regular(target, user_agent)

    async def _fetch_protected(self, target: TargetResource) -> Optional[Success]:
        path_prefix = target.path_prefix

        # CHECK_MEMO / TRY_MEMOIZED
        entry = self.memo.lookup(path_prefix)
        if entry is not None:
            persona = get_persona(entry.persona_name)
            if persona is not None:
                logger.info(f"♻️ Trying memoized persona {persona.name} for {path_prefix}")
                outcome = await self.executor.attempt(target, persona, entry.cookie)
                if isinstance(outcome, Success):
                    return outcome
                logger.info(f"Memoized persona {persona.name} failed ({_describe(outcome)}), trying catalog")

        # TRY_CATALOG
        cookie = await self.probe.acquire(target)

        for persona in self.catalog:
            logger.debug(f"Trying persona {persona.name}...")
            outcome = await self.executor.attempt(target, persona, cookie)
            if isinstance(outcome, Success):
                logger.info(f"✅ Persona {persona.name} succeeded for {path_prefix}")
                self.memo.record(path_prefix, persona.name, cookie)
                return outcome
            logger.info(f"Persona {persona.name} failed: {_describe(outcome)}")

        # TRY_LAST_RESORT
        logger.info("All catalog personas failed, trying last resort...")
        outcome = await self.executor.attempt(target, self.last_resort)
        if isinstance(outcome, Success):
            logger.info(f"✅ Last resort {self.last_resort.name} succeeded for {path_prefix}")
            self.memo.record(path_prefix, self.last_resort.name)
            return outcome

        logger.warning(f"❌ All personas failed for {target.absolute_url} (last: {_describe(outcome)})")
        return None

    async def _fetch_regular(self, target: TargetResource, user_agent: Optional[str]) -> Optional[Success]:
        first, *retries = [persona.with_user_agent(user_agent) for persona in REGULAR_CHAIN]

        outcome = await self.executor.attempt(target, first)
        if isinstance(outcome, Success):
            return outcome

        if not (isinstance(outcome, Rejected) and outcome.status in AUTH_REJECTIONS):
            logger.warning(f"❌ Regular fetch failed for {target.absolute_url}: {_describe(outcome)}")
            return None

        for persona in retries:
            logger.info(f"Got {outcome.status}, retrying with {persona.name}...")
            outcome = await self.executor.attempt(target, persona)
            if isinstance(outcome, Success):
                return outcome

        logger.warning(f"❌ All regular attempts failed for {target.absolute_url}")
        return None
