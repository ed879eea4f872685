# core/proxy/relay.py
"""Формирование ответа прокси: картинка, редирект на placeholder или 400"""

import logging

from aiohttp import web

from core.proxy.executor import Success, DEFAULT_CONTENT_TYPE

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 400
DEFAULT_HEIGHT = 300

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, OPTIONS',
    'Access-Control-Max-Age': '86400',
}


def _dimension(value, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def success_response(outcome: Success) -> web.Response:
    """Тело upstream без изменений + заголовки кэширования и CORS"""
    headers = {
        'Content-Type': outcome.content_type or DEFAULT_CONTENT_TYPE,
        'Cache-Control': 'public, max-age=86400',
        'X-Proxy-Status': 'success',
    }
    headers.update(CORS_HEADERS)

    logger.info(f"📦 Relaying image: {len(outcome.body)} bytes, {headers['Content-Type']}")
    return web.Response(body=outcome.body, status=200, headers=headers)


def placeholder_redirect(request: web.Request,
                         default_width: int = DEFAULT_WIDTH,
                         default_height: int = DEFAULT_HEIGHT) -> web.Response:
    """
    Редирект 302 на /placeholder/{w}/{h}

    Args:
        request: Входящий запрос (берём w и h из query)
        default_width: Ширина по умолчанию
        default_height: Высота по умолчанию
    """
    width = _dimension(request.query.get('w'), default_width)
    height = _dimension(request.query.get('h'), default_height)
    location = f"/placeholder/{width}/{height}"

    logger.info(f"↪️ Falling back to {location}")
    headers = {'Location': location, 'Cache-Control': 'no-store'}
    headers.update(CORS_HEADERS)
    return web.Response(status=302, headers=headers)


def invalid_request(message: str) -> web.Response:
    return web.json_response({'error': message}, status=400, headers=CORS_HEADERS)


def preflight_response() -> web.Response:
    return web.Response(status=204, headers=CORS_HEADERS)
