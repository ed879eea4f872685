# core/proxy/personas.py
"""Каталог персон: наборы заголовков, имитирующие конкретных клиентов"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

# Маркер: заголовок заполняется из origin целевого ресурса
SAME_ORIGIN = "same-origin"
# Маркер: Referer равен origin целевого ресурса без завершающего "/"
BARE_ORIGIN = "bare-origin"

COOKIES_FULL = "full"
COOKIES_SESSION = "session"
COOKIES_NONE = "none"

LAST_RESORT_NAME = "googlebot"

_CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)
_CHROMIUM_ACCEPT = "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8"
_CHROMIUM_HINTS = '"Chromium";v="121", "Not A(Brand";v="99"'


@dataclass(frozen=True)
class Persona:
    """
    Профиль запроса

    Attributes:
        name: Уникальное имя (ключ в Success Memo)
        headers: Заголовки клиента (без Referer/Origin/Host/Cookie)
        timeout: Лимит на одну попытку, секунды
        referer: SAME_ORIGIN, BARE_ORIGIN, конкретный URL или None (не отправлять)
        origin: SAME_ORIGIN, конкретный origin или None (не отправлять)
        cookies: Политика cookie: full, session или none
    """
    name: str
    headers: Mapping[str, str] = field(repr=False, hash=False)
    timeout: float = 10.0
    referer: Optional[str] = SAME_ORIGIN
    origin: Optional[str] = None
    cookies: str = COOKIES_FULL

    def __post_init__(self):
        object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers)))

    def with_user_agent(self, user_agent: Optional[str]) -> "Persona":
        """Копия персоны с User-Agent входящего запроса"""
        if not user_agent:
            return self
        headers: Dict[str, str] = dict(self.headers)
        headers['User-Agent'] = user_agent
        return replace(self, headers=headers)


CATALOG: Tuple[Persona, ...] = (
    Persona(
        name="chrome_direct",
        timeout=10.0,
        origin=SAME_ORIGIN,
        headers={
            "User-Agent": _CHROME_UA,
            "Accept": _CHROMIUM_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9,id;q=0.8",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Sec-Fetch-Dest": "image",
            "Sec-Fetch-Mode": "no-cors",
            "Sec-Fetch-Site": "same-origin",
            "Sec-Ch-Ua": _CHROMIUM_HINTS,
            "Sec-Ch-Ua-Mobile": "?0",
            "Sec-Ch-Ua-Platform": '"Windows"',
            "Pragma": "no-cache",
            "Cache-Control": "no-cache",
            "TE": "trailers",
        },
    ),
    Persona(
        name="chrome_nocors",
        timeout=8.0,
        origin=SAME_ORIGIN,
        headers={
            "User-Agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
            ),
            "Accept": _CHROMIUM_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Pragma": "no-cache",
            "Cache-Control": "max-age=0",
        },
    ),
    Persona(
        name="chrome_sessiononly",
        timeout=8.0,
        origin=SAME_ORIGIN,
        cookies=COOKIES_SESSION,
        headers={
            "User-Agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
            ),
            "Accept": _CHROMIUM_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Sec-Fetch-Dest": "image",
            "Sec-Fetch-Mode": "no-cors",
            "Sec-Fetch-Site": "same-origin",
        },
    ),
    Persona(
        name="safari",
        timeout=10.0,
        headers={
            "User-Agent": (
                "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
                "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
            ),
            "Accept": "image/webp,image/png,image/svg+xml,image/*;q=0.8,*/*;q=0.5",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
        },
    ),
    Persona(
        name="firefox",
        timeout=8.0,
        headers={
            "User-Agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:123.0) "
                "Gecko/20100101 Firefox/123.0"
            ),
            "Accept": "image/avif,image/webp,*/*",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Sec-Fetch-Dest": "image",
            "Sec-Fetch-Mode": "no-cors",
            "Sec-Fetch-Site": "same-origin",
            "DNT": "1",
            "Pragma": "no-cache",
            "Cache-Control": "no-cache",
            "TE": "trailers",
        },
    ),
    Persona(
        name="chrome_mobile",
        timeout=10.0,
        origin=SAME_ORIGIN,
        headers={
            "User-Agent": (
                "Mozilla/5.0 (Linux; Android 12; SM-G991B) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/121.0.0.0 Mobile Safari/537.36"
            ),
            "Accept": _CHROMIUM_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Sec-Fetch-Dest": "image",
            "Sec-Fetch-Mode": "no-cors",
            "Sec-Fetch-Site": "same-origin",
            "Sec-Ch-Ua": _CHROMIUM_HINTS,
            "Sec-Ch-Ua-Mobile": "?1",
            "Sec-Ch-Ua-Platform": '"Android"',
            "Save-Data": "on",
            "Cache-Control": "no-cache",
        },
    ),
    Persona(
        name="iphone",
        timeout=8.0,
        headers={
            "User-Agent": (
                "Mozilla/5.0 (iPhone; CPU iPhone OS 17_3_1 like Mac OS X) AppleWebKit/605.1.15 "
                "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
            ),
            "Accept": "image/webp,image/png,image/svg+xml,image/*;q=0.8,video/*;q=0.8,*/*;q=0.5",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
        },
    ),
    Persona(
        name="google_referer",
        timeout=10.0,
        referer="https://www.google.com/",
        origin="https://www.google.com",
        headers={
            "User-Agent": _CHROME_UA,
            "Accept": _CHROMIUM_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Sec-Fetch-Dest": "image",
            "Sec-Fetch-Mode": "no-cors",
            "Sec-Fetch-Site": "cross-site",
            "Pragma": "no-cache",
            "Cache-Control": "no-cache",
            "TE": "trailers",
        },
    ),
    Persona(
        name="curl_minimal",
        timeout=15.0,
        referer=None,
        cookies=COOKIES_NONE,
        headers={
            "User-Agent": "curl/7.83.1",
            "Accept": "*/*",
        },
    ),
)

# Последняя попытка после исчерпания каталога: краулер без referer и cookie
LAST_RESORT = Persona(
    name=LAST_RESORT_NAME,
    timeout=15.0,
    referer=None,
    cookies=COOKIES_NONE,
    headers={
        "User-Agent": "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
        "Accept": "*/*",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "close",
    },
)

# Цепочка для обычных (незащищённых) доменов
REGULAR_BROWSER = Persona(
    name="browser",
    timeout=10.0,
    referer=BARE_ORIGIN,
    cookies=COOKIES_NONE,
    headers={
        "User-Agent": _CHROME_UA,
        "Accept": _CHROMIUM_ACCEPT,
        "Accept-Language": "en-US,en;q=0.9,id;q=0.8",
        "Connection": "keep-alive",
        "Pragma": "no-cache",
        "Cache-Control": "no-cache",
    },
)

REGULAR_GOOGLE_REFERER = Persona(
    name="google_referer_plain",
    timeout=10.0,
    referer="https://www.google.com/",
    origin="https://www.google.com",
    cookies=COOKIES_NONE,
    headers=REGULAR_BROWSER.headers,
)

REGULAR_MINIMAL = Persona(
    name="minimal",
    timeout=10.0,
    referer=None,
    cookies=COOKIES_NONE,
    headers={
        "User-Agent": _CHROME_UA,
        "Accept": "image/*",
    },
)

REGULAR_CHAIN: Tuple[Persona, ...] = (REGULAR_BROWSER, REGULAR_GOOGLE_REFERER, REGULAR_MINIMAL)

_BY_NAME = {persona.name: persona for persona in CATALOG + (LAST_RESORT,)}


def get_persona(name: str) -> Optional[Persona]:
    """
    Найти персону каталога (или last resort) по имени

    Returns:
        Persona или None если имя неизвестно
    """
    return _BY_NAME.get(name)


def catalog_timeout_budget(catalog: Iterable[Persona] = CATALOG, last_resort: Persona = LAST_RESORT) -> float:
    """Суммарный лимит времени на полный перебор каталога и last resort, секунды"""
    return sum(persona.timeout for persona in catalog) + last_resort.timeout
