# core/proxy/session_probe.py
"""Получение cookie сессии перед перебором персон"""

import asyncio
import base64
import hashlib
import logging
import time
from email.utils import formatdate
from typing import Callable, Optional

from aiohttp import ClientSession, ClientTimeout, ClientError

from core.proxy.target import TargetResource

logger = logging.getLogger(__name__)

PROBE_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Ch-Ua": '"Chromium";v="121", "Not A(Brand";v="99"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


def synthesize_cookie(path_prefix: str, now_ms: int) -> str:
    """
    Правдоподобный cookie, если сервер не выдал свой

    Значение выводится из пути и времени; криптографического смысла нет.
    """
    token = base64.b64encode(path_prefix.encode()).decode()[:12]
    unique_id = hashlib.md5(f"{path_prefix}{now_ms}".encode()).hexdigest()[:8]
    return f"token={token}_{now_ms}; visitor={unique_id}_{now_ms}; session=sess_{unique_id}"


class SessionProbe:
    """HEAD-запрос к корню origin для сбора Set-Cookie"""

    def __init__(self, session: ClientSession, timeout: float = 5.0,
                 synthesize: bool = True, clock: Callable[[], float] = time.time):
        self.session = session
        self.timeout = timeout
        self.synthesize = synthesize
        self.clock = clock

    async def acquire(self, target: TargetResource) -> str:
        """
        Получить cookie для последующих попыток

        Returns:
            str: Cookie от сервера, синтезированный cookie или пустая строка
        """
        now_ms = int(self.clock() * 1000)
        cookie = await self._probe(target, now_ms)
        if cookie:
            logger.info(f"🍪 Got session cookie from {target.hostname}")
            return cookie

        if not self.synthesize:
            return ""

        cookie = synthesize_cookie(target.path_prefix, now_ms)
        logger.debug(f"🍪 Using synthesized cookie for {target.path_prefix}")
        return cookie

    async def _probe(self, target: TargetResource, now_ms: int) -> Optional[str]:
        headers = dict(PROBE_HEADERS)
        headers['Date'] = formatdate(now_ms / 1000, usegmt=True)

        try:
            async with self.session.head(
                f"{target.origin}/",
                params={"noCache": str(now_ms)},
                headers=headers,
                allow_redirects=False,
                timeout=ClientTimeout(total=self.timeout),
            ) as response:
                set_cookie = response.headers.get('Set-Cookie')
        except (ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Cookie probe failed for {target.origin}: {e!r}")
            return None

        if not set_cookie:
            return None
        return set_cookie.split(";")[0].strip() or None
