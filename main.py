# main.py
import sys
import time
import logging


def setup_logging():
    """Настраивает логирование ДО всех операций с ротацией"""
    from core.config_manager import get_app_data_dir, get_config
    from logging.handlers import RotatingFileHandler

    config = get_config()

    logs_dir = get_app_data_dir() / "logs"
    logs_dir.mkdir(exist_ok=True)

    log_file = logs_dir / config.get('logging.file', 'komik_image_proxy.log')

    # Ротирующий обработчик: макс 5MB, 5 резервных копий
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    logging.basicConfig(
        level=getattr(logging, str(config.get('logging.level', 'INFO')).upper(), logging.INFO),
        handlers=[console_handler, file_handler]
    )


logger = logging.getLogger(__name__)


def setup_exception_handler():
    """Настраивает глобальный обработчик исключений"""

    def exception_handler(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger.critical("Необработанное исключение:",
                        exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = exception_handler


def main():
    """Основная функция приложения"""
    setup_logging()
    setup_exception_handler()

    logger.info("🚀 Запуск Komik Image Proxy")

    from core.proxy_manager import get_proxy_manager
    proxy_manager = get_proxy_manager()

    if not proxy_manager.start():
        logger.error(
            f"❌ Не удалось запустить прокси\n"
            f"   Error type: {proxy_manager.last_error_type}\n"
            f"   Details: {proxy_manager.last_error_details}"
        )
        return 1

    try:
        while proxy_manager.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("🛑 Завершение работы приложения")
    finally:
        proxy_manager.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
