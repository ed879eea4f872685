# core/proxy/target.py
"""Разбор целевого URL и классификация защищённых хостов"""

import re
import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)

DEFAULT_PROTECTED_HOSTS = ("k7rzspb5flu6zayatfe4mh.my",)
DEFAULT_PROTECTED_PATTERNS = (r"[a-z0-9]{10,}\.my$",)
DEFAULT_PROTECTED_PATH_MARKERS = ("/data/",)


class InvalidRequest(ValueError):
    """Параметр url отсутствует или не является абсолютным http(s) URL"""


@dataclass(frozen=True)
class TargetResource:
    absolute_url: str
    hostname: str
    origin: str
    path: str
    path_prefix: str

    @classmethod
    def parse(cls, raw: Optional[str]) -> "TargetResource":
        """
        Разобрать значение параметра url

        Args:
            raw: Значение query-параметра (уже декодированное aiohttp)

        Returns:
            TargetResource

        Raises:
            InvalidRequest: если URL пустой или некорректный
        """
        if not raw or not raw.strip():
            raise InvalidRequest("Image URL not provided")

        url = raw.strip()
        # Дважды закодированный URL (encodeURIComponent на клиенте + прокси)
        if "://" not in url and "%3A" in url.upper():
            url = unquote(url)

        try:
            parts = urlsplit(url)
            port = parts.port
        except ValueError as e:
            raise InvalidRequest(f"Malformed image URL: {e}") from e

        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise InvalidRequest(f"Unsupported image URL: {url}")

        hostname = parts.hostname
        netloc = f"{hostname}:{port}" if port else hostname
        origin = f"{parts.scheme}://{netloc}"
        path = parts.path or "/"

        return cls(
            absolute_url=url,
            hostname=hostname,
            origin=origin,
            path=path,
            path_prefix=origin + path.rsplit("/", 1)[0],
        )


class ProtectionPolicy:
    """Предикат "нужен обход защиты" для целевого ресурса"""

    def __init__(self,
                 hosts: Iterable[str] = DEFAULT_PROTECTED_HOSTS,
                 patterns: Iterable[str] = DEFAULT_PROTECTED_PATTERNS,
                 path_markers: Iterable[str] = DEFAULT_PROTECTED_PATH_MARKERS):
        self.hosts = tuple(host.lower() for host in hosts)
        self.patterns = tuple(re.compile(pattern) for pattern in patterns)
        self.path_markers = tuple(path_markers)

    @classmethod
    def from_config(cls, proxy_config: dict) -> "ProtectionPolicy":
        return cls(
            hosts=proxy_config.get('protected_hosts', DEFAULT_PROTECTED_HOSTS),
            patterns=proxy_config.get('protected_patterns', DEFAULT_PROTECTED_PATTERNS),
            path_markers=proxy_config.get('protected_path_markers', DEFAULT_PROTECTED_PATH_MARKERS),
        )

    def __call__(self, target: TargetResource) -> bool:
        hostname = target.hostname.lower()

        if any(hostname == host or hostname.endswith("." + host) for host in self.hosts):
            return True
        if any(pattern.search(hostname) for pattern in self.patterns):
            return True
        return any(marker in target.path for marker in self.path_markers)
