# core/placeholder.py
"""SVG-заглушка для картинок, которые не удалось загрузить"""

import logging

from aiohttp import web

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 400
DEFAULT_HEIGHT = 300
MAX_DIMENSION = 4000

_SVG_TEMPLATE = """<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">
  <rect width="100%" height="100%" fill="#eee"/>
  <rect width="100%" height="100%" fill="#333" opacity="0.1"/>
  <text x="50%" y="50%" font-family="Arial, sans-serif" font-size="24"
        fill="#666" text-anchor="middle" dominant-baseline="middle">Image not available</text>
  <text x="50%" y="{caption_y}" font-family="Arial, sans-serif" font-size="14"
        fill="#888" text-anchor="middle" dominant-baseline="middle">{width} × {height}</text>
</svg>
"""


def _clamp(value: str, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    if parsed <= 0:
        return default
    return min(parsed, MAX_DIMENSION)


def render_placeholder(width: int, height: int) -> str:
    """Сгенерировать SVG указанного размера"""
    return _SVG_TEMPLATE.format(width=width, height=height, caption_y=height // 2 + 30)


async def handle_placeholder(request: web.Request) -> web.Response:
    width = _clamp(request.match_info.get('width'), DEFAULT_WIDTH)
    height = _clamp(request.match_info.get('height'), DEFAULT_HEIGHT)

    return web.Response(
        text=render_placeholder(width, height),
        content_type='image/svg+xml',
        headers={'Cache-Control': 'public, max-age=86400'},
    )
