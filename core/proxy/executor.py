# core/proxy/executor.py
"""Одна ограниченная по времени попытка загрузки от имени персоны"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

from aiohttp import ClientSession, ClientTimeout, ClientError, InvalidURL

from core.proxy.personas import Persona, SAME_ORIGIN, BARE_ORIGIN, COOKIES_NONE, COOKIES_SESSION
from core.proxy.target import TargetResource

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = (200, 304)
DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class Success:
    status: int
    content_type: str
    body: bytes


@dataclass(frozen=True)
class Rejected:
    status: int


@dataclass(frozen=True)
class Failed:
    cause: str


AttemptOutcome = Union[Success, Rejected, Failed]


def session_cookie_only(cookie: str) -> str:
    """Оставить из строки cookie только пару session=..."""
    for part in cookie.split(";"):
        part = part.strip()
        if part.startswith("session="):
            return part
    return ""


def build_headers(target: TargetResource, persona: Persona, cookie: Optional[str] = None) -> Dict[str, str]:
    """
    Собрать заголовки запроса для персоны

    Referer/Origin заполняются из target, если персона не задаёт свои
    значения; Cookie отправляется согласно политике персоны.
    """
    headers = dict(persona.headers)

    if persona.referer == SAME_ORIGIN:
        headers['Referer'] = target.origin + "/"
    elif persona.referer == BARE_ORIGIN:
        headers['Referer'] = target.origin
    elif persona.referer:
        headers['Referer'] = persona.referer

    if persona.origin == SAME_ORIGIN:
        headers['Origin'] = target.origin
    elif persona.origin:
        headers['Origin'] = persona.origin

    if cookie and persona.cookies != COOKIES_NONE:
        if persona.cookies == COOKIES_SESSION:
            cookie = session_cookie_only(cookie)
        if cookie:
            headers['Cookie'] = cookie

    # Host не задаём: aiohttp выставляет его из URL на каждом шаге редиректа
    return headers


class StrategyExecutor:
    """Выполняет GET к целевому ресурсу с заголовками персоны"""

    def __init__(self, session: ClientSession):
        self.session = session
        self.attempts = 0

    async def attempt(self, target: TargetResource, persona: Persona,
                      cookie: Optional[str] = None) -> AttemptOutcome:
        """
        Одна попытка загрузки

        Args:
            target: Целевой ресурс
            persona: Персона (заголовки и таймаут)
            cookie: Cookie сессии (если получен)

        Returns:
            Success, Rejected или Failed
        """
        if not target.absolute_url.startswith(("http://", "https://")) or not target.hostname:
            logger.debug(f"Invalid target URL, skipping {persona.name}: {target.absolute_url!r}")
            return Failed("invalid-url")

        self.attempts += 1
        headers = build_headers(target, persona, cookie)

        try:
            async with self.session.get(
                target.absolute_url,
                headers=headers,
                allow_redirects=True,
                timeout=ClientTimeout(total=persona.timeout),
            ) as response:
                if response.status not in SUCCESS_STATUSES:
                    return Rejected(response.status)

                body = await response.read()
                content_type = response.headers.get('Content-Type') or DEFAULT_CONTENT_TYPE
                return Success(response.status, content_type, body)

        except asyncio.TimeoutError:
            logger.debug(f"⏱️ {persona.name}: timeout after {persona.timeout}s")
            return Failed("timeout")
        except InvalidURL as e:
            return Failed(f"invalid-url: {e}")
        except ClientError as e:
            logger.debug(f"🔌 {persona.name}: {type(e).__name__}: {e}")
            return Failed(f"{type(e).__name__}: {e}")
