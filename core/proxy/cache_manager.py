# core/proxy/cache_manager.py
"""Success Memo: какая персона последней сработала для папки с картинками"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 30 * 60


@dataclass(frozen=True)
class MemoEntry:
    persona_name: str
    recorded_at: float
    cookie: str = ""


class SuccessMemo:
    """Кэш path_prefix → персона с LRU вытеснением и TTL"""

    def __init__(self, maxsize: int = 1024, ttl: float = DEFAULT_TTL,
                 clock: Callable[[], float] = time.time):
        """
        Инициализация memo

        Args:
            maxsize: Максимальное количество префиксов
            ttl: Срок годности записи в секундах
            clock: Источник времени (для тестов)
        """
        self.cache: "OrderedDict[str, MemoEntry]" = OrderedDict()
        self.maxsize = maxsize
        self.ttl = ttl
        self.clock = clock
        self.hits = 0
        self.misses = 0
        logger.debug(f"SuccessMemo инициализирован: maxsize={maxsize}, ttl={ttl}s")

    def lookup(self, path_prefix: str) -> Optional[MemoEntry]:
        """
        Найти свежую запись

        Устаревшая запись считается промахом, но здесь не удаляется:
        её перезапишет следующий успех или вычистит record().
        """
        entry = self.cache.get(path_prefix)
        if entry is None or self._is_expired(entry):
            self.misses += 1
            logger.debug(f"Memo MISS: {path_prefix}")
            return None

        self.hits += 1
        self.cache.move_to_end(path_prefix)
        logger.debug(f"Memo HIT: {path_prefix} → {entry.persona_name}")
        return entry

    def record(self, path_prefix: str, persona_name: str, cookie: str = ""):
        """Запомнить успешную персону (перезаписывает прежнюю запись)"""
        self._sweep_expired()

        if path_prefix in self.cache:
            self.cache.move_to_end(path_prefix)
        self.cache[path_prefix] = MemoEntry(persona_name, self.clock(), cookie)

        while len(self.cache) > self.maxsize:
            evicted_key = self.cache.popitem(last=False)[0]
            logger.debug(f"Memo EVICT: {evicted_key}")

    def _is_expired(self, entry: MemoEntry) -> bool:
        return self.clock() - entry.recorded_at >= self.ttl

    def _sweep_expired(self):
        expired = [key for key, entry in self.cache.items() if self._is_expired(entry)]
        for key in expired:
            del self.cache[key]
        if expired:
            logger.debug(f"Memo sweep: {len(expired)} expired entries removed")

    def clear(self):
        """Очистить memo"""
        size_before = len(self.cache)
        self.cache.clear()
        self.hits = 0
        self.misses = 0
        logger.info(f"Memo cleared: {size_before} items removed")

    def get_stats(self) -> dict:
        total = self.hits + self.misses
        hit_rate = (self.hits / total * 100) if total > 0 else 0

        return {
            'size': len(self.cache),
            'maxsize': self.maxsize,
            'ttl': self.ttl,
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': f"{hit_rate:.1f}%",
            'total_lookups': total
        }

    def __len__(self) -> int:
        return len(self.cache)

    def __contains__(self, path_prefix: str) -> bool:
        return path_prefix in self.cache
