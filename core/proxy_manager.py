# proxy_manager.py
import asyncio
import logging
import time
import threading
from typing import Optional

import requests
from aiohttp import web, ClientSession, TCPConnector, ClientTimeout

from core.config_manager import ConfigManager, get_config
from core.placeholder import handle_placeholder
from core.proxy.cache_manager import SuccessMemo
from core.proxy.executor import StrategyExecutor
from core.proxy.orchestrator import FetchOrchestrator
from core.proxy.relay import success_response, placeholder_redirect, invalid_request, preflight_response
from core.proxy.session_probe import SessionProbe
from core.proxy.target import TargetResource, InvalidRequest, ProtectionPolicy
from utils.port_utils import check_port_availability

logger = logging.getLogger(__name__)


class ImageProxy:
    def __init__(self, proxy_config: dict, memo: Optional[SuccessMemo] = None):
        """
        Args:
            proxy_config: Секция 'proxy' конфигурации
            memo: Success Memo (общий на весь процесс)
        """
        self.config = proxy_config
        self.memo = memo or SuccessMemo(
            maxsize=proxy_config.get('memo_maxsize', 1024),
            ttl=proxy_config.get('memo_ttl', 30 * 60),
        )
        self.policy = ProtectionPolicy.from_config(proxy_config)
        self.placeholder_width = proxy_config.get('placeholder_width', 400)
        self.placeholder_height = proxy_config.get('placeholder_height', 300)

        # Connection pool для upstream хостов с картинками
        self.connector = None
        self.session = None
        self.executor = None
        self.orchestrator = None

        # Семафор для ограничения одновременных upstream запросов
        self.connection_semaphore = asyncio.Semaphore(proxy_config.get('max_concurrent', 50))

        self.stats = {
            'total_requests': 0,
            'successes': 0,
            'fallbacks': 0,
            'invalid_requests': 0,
            'errors': 0
        }

    async def initialize(self):
        """Инициализация connection pool"""
        if self.connector is None:
            self.connector = TCPConnector(
                limit=100,
                limit_per_host=20,
                ttl_dns_cache=300,  # DNS кэш на 5 минут
                enable_cleanup_closed=True
            )

        if self.session is None:
            self.session = ClientSession(
                connector=self.connector,
                timeout=ClientTimeout(total=60, connect=10)
            )
            self.executor = StrategyExecutor(self.session)
            self.orchestrator = FetchOrchestrator(
                executor=self.executor,
                memo=self.memo,
                probe=SessionProbe(
                    self.session,
                    timeout=self.config.get('probe_timeout', 5.0),
                    synthesize=self.config.get('synthesize_cookie', True),
                ),
                needs_evasion=self.policy,
            )
            logger.debug(f"⏱️ Бюджет полного перебора персон: {self.orchestrator.timeout_budget():.0f}s")

    async def cleanup(self):
        """Очистка ресурсов"""
        if self.session:
            await self.session.close()
            self.session = None
        if self.connector:
            await self.connector.close()
            self.connector = None

    async def handle_image(self, request: web.Request) -> web.Response:
        """GET /image-proxy?url=...&w=...&h=..."""
        self.stats['total_requests'] += 1

        try:
            target = TargetResource.parse(request.query.get('url'))
        except InvalidRequest as e:
            self.stats['invalid_requests'] += 1
            logger.warning(f"⚠️ Invalid proxy request: {e}")
            return invalid_request(str(e))

        try:
            await self.initialize()
            async with self.connection_semaphore:
                outcome = await self.orchestrator.fetch(target, request.headers.get('User-Agent'))
        except Exception as e:
            self.stats['errors'] += 1
            logger.error(f"❌ Image proxy error for {target.absolute_url}: {e}", exc_info=True)
            outcome = None

        if outcome is None:
            self.stats['fallbacks'] += 1
            return placeholder_redirect(request, self.placeholder_width, self.placeholder_height)

        self.stats['successes'] += 1
        return success_response(outcome)

    async def handle_preflight(self, request: web.Request) -> web.Response:
        return preflight_response()

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({'status': 'healthy', 'timestamp': int(time.time())})

    async def handle_stats(self, request: web.Request) -> web.Response:
        return web.json_response(self.get_full_stats())

    async def _on_startup(self, app: web.Application):
        await self.initialize()

    async def _on_cleanup(self, app: web.Application):
        await self.cleanup()

    def get_full_stats(self):
        """Получить полную статистику прокси"""
        return {
            'requests': self.stats['total_requests'],
            'successes': self.stats['successes'],
            'fallbacks': self.stats['fallbacks'],
            'invalid': self.stats['invalid_requests'],
            'errors': self.stats['errors'],
            'upstream_attempts': self.executor.attempts if self.executor else 0,
            'memo': self.memo.get_stats()
        }


def create_app(config: Optional[ConfigManager] = None, proxy: Optional[ImageProxy] = None) -> web.Application:
    """
    Собрать aiohttp приложение прокси

    Args:
        config: ConfigManager (по умолчанию глобальный)
        proxy: Готовый ImageProxy (для тестов)

    Returns:
        web.Application с маршрутами /image-proxy, /placeholder, /health, /stats
    """
    config = config or get_config()
    proxy = proxy or ImageProxy(config.get_proxy_config())

    app = web.Application()
    app['proxy'] = proxy
    app.router.add_get('/image-proxy', proxy.handle_image)
    app.router.add_route('OPTIONS', '/image-proxy', proxy.handle_preflight)
    app.router.add_get('/placeholder/{width}/{height}', handle_placeholder)
    app.router.add_get('/health', proxy.handle_health)
    app.router.add_get('/stats', proxy.handle_stats)
    app.on_startup.append(proxy._on_startup)
    app.on_cleanup.append(proxy._on_cleanup)
    return app


class ProxyManager:
    def __init__(self, config: Optional[ConfigManager] = None):
        self.config = config or get_config()
        self.is_running = False
        self.host = self.config.get('server.host', '127.0.0.1')
        self.local_port = self.config.get('server.port', 8080)
        self.proxy = None
        self.runner = None
        self.site = None
        self.loop = None
        self.thread = None

        # Тип последней ошибки: 'port', 'health', 'unknown'
        self.last_error_type = None
        self.last_error_details = None

    def start(self):
        """
        Запуск прокси сервера в отдельном потоке

        Returns:
            bool: True если успешно запущен
        """
        if self.is_running:
            logger.warning("⚠️ Прокси уже запущен")
            return False

        port_available, port_message = check_port_availability(self.local_port, self.host)
        if not port_available:
            logger.error(f"❌ {port_message}")
            self.last_error_type = 'port'
            self.last_error_details = port_message
            return False

        try:
            self.thread = threading.Thread(
                target=self._run_server,
                daemon=True
            )
            self.thread.start()

            # Ждём запуска (максимум 5 секунд)
            for _ in range(50):
                if self.is_running:
                    break
                time.sleep(0.1)

            if not self.is_running:
                logger.error("❌ Прокси не запустился за отведенное время")
                return False

            logger.info(f"✅ Image proxy started on http://{self.host}:{self.local_port}")

            if not self._check_health():
                logger.warning("⚠️ Health check failed, but proxy is running")

            return True

        except Exception as e:
            logger.error(f"❌ Failed to start proxy: {e}")
            self.stop()
            return False

    def _run_server(self):
        """Запускает сервер в отдельном event loop"""
        try:
            self.loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self.loop)

            self.loop.run_until_complete(self._start_server())
            self.loop.run_forever()

        except Exception as e:
            logger.error(f"❌ Ошибка в event loop: {e}")
            self.is_running = False
        finally:
            if self.loop:
                self.loop.close()

    async def _start_server(self):
        """Асинхронный запуск сервера"""
        try:
            # Семафор и сессия создаются внутри event loop сервера
            self.proxy = ImageProxy(self.config.get_proxy_config())
            app = create_app(self.config, self.proxy)

            self.runner = web.AppRunner(app, access_log=None)
            await self.runner.setup()

            self.site = web.TCPSite(self.runner, host=self.host, port=self.local_port)
            await self.site.start()

            self.is_running = True
            logger.info(f"✅ Сервер успешно запущен на порту {self.local_port}")
            logger.info(f"📊 Connection pool: лимит={self.proxy.connector.limit}, per_host={self.proxy.connector.limit_per_host}")

        except Exception as e:
            logger.error(f"❌ Ошибка запуска сервера: {e}")
            self.is_running = False

    def _check_health(self):
        """
        Проверяет, что сервер отвечает на GET /health

        Returns:
            bool: True если сервер здоров
        """
        health_url = f"http://{self.host}:{self.local_port}/health"

        try:
            response = requests.get(
                health_url,
                timeout=5,
                proxies={"http": None, "https": None}  # Отключаем системный прокси для localhost
            )
        except requests.RequestException as e:
            logger.error(f"❌ Health check request error: {e}")
            self.last_error_type = 'health'
            self.last_error_details = str(e)
            return False

        if response.status_code != 200:
            logger.error(f"❌ Health check failed: HTTP {response.status_code}")
            self.last_error_type = 'health'
            self.last_error_details = f"HTTP {response.status_code}"
            return False

        logger.info(f"💚 Health check OK: {response.json().get('status')}")
        return True

    def stop(self):
        """Остановка прокси сервера"""
        if not self.is_running:
            logger.warning("⚠️ Прокси не запущен")
            return

        try:
            logger.info("🛑 Stopping proxy...")
            self.is_running = False

            if self.loop and self.loop.is_running():
                future = asyncio.run_coroutine_threadsafe(self._stop_server(), self.loop)
                future.result(timeout=5)
                self.loop.call_soon_threadsafe(self.loop.stop)

            if self.thread and self.thread.is_alive():
                self.thread.join(timeout=5)

            if self.proxy:
                stats = self.proxy.get_full_stats()
                logger.info(
                    f"📊 Session statistics:\n"
                    f"   Total requests: {stats['requests']}\n"
                    f"   Successes: {stats['successes']}\n"
                    f"   Fallbacks: {stats['fallbacks']}\n"
                    f"   Invalid: {stats['invalid']}\n"
                    f"   Errors: {stats['errors']}\n"
                    f"   Upstream attempts: {stats['upstream_attempts']}\n"
                    f"   Memo: {stats['memo']['size']} entries, hit rate {stats['memo']['hit_rate']}"
                )

            logger.info("✅ Proxy stopped")

        except Exception as e:
            logger.error(f"❌ Error stopping proxy: {e}")
            logger.exception("Full traceback:")

    async def _stop_server(self):
        """Асинхронная остановка сервера"""
        if self.site:
            await self.site.stop()
        if self.runner:
            # on_cleanup закрывает сессию ImageProxy
            await self.runner.cleanup()
        logger.debug("✅ Сервер успешно остановлен")

    def get_status(self):
        """Возвращает статус прокси"""
        status = {
            'running': self.is_running,
            'host': self.host,
            'port': self.local_port,
        }

        if self.last_error_type:
            status['last_error'] = {'type': self.last_error_type, 'details': self.last_error_details}

        if self.proxy and self.is_running:
            status['proxy_stats'] = self.proxy.get_full_stats()

        return status


# Синглтон для глобального доступа
_proxy_manager = None


def get_proxy_manager() -> ProxyManager:
    """Возвращает глобальный экземпляр ProxyManager"""
    global _proxy_manager
    if _proxy_manager is None:
        _proxy_manager = ProxyManager()
    return _proxy_manager
