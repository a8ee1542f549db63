#!/usr/bin/env python3
"""
Командная строка движка книжных источников.

Запрашивает информацию о книге, оглавление, текст главы, список книг
или разделы каталога у источника, описанного в JSON-файле, и печатает
результат в формате JSON.

Примеры:
    python main.py book demo https://example.com/book/1 --sources examples/sources.example.json
    python main.py content demo /chapter/1.html --sources sources.json -o chapter.json
    python main.py list demo --page 2 --sources examples/sources.example.json
    python main.py explore demo --sources examples/sources.example.json
"""

import asyncio
import argparse
import json
import logging
import sys

from booksource_core.config.loader import ConfigLoader
from booksource_core.errors import ConfigurationError
from booksource_core.integration.auth import FileAuthStore
from booksource_core.integration.storage import InMemoryVariableStore
from booksource_core.orchestrator.core import BookSourceOrchestrator

# Настройка логирования
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("main")

COMMANDS = {
    "book": "fetch_book_info",
    "toc": "fetch_chapter_list",
    "content": "fetch_chapter_content",
    "list": "fetch_book_list",
    "explore": "fetch_categories",
}

# Команды, которым URL не обязателен
OPTIONAL_URL = {"list", "explore"}


def save_result_to_json(result: dict, output_path: str):
    """Сохраняет результат в JSON-файл."""
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(result, f, ensure_ascii=False, indent=2)
    logger.info(f"Результат сохранён в {output_path}")


async def async_main(args):
    loader = ConfigLoader()
    try:
        config = loader.load_engine_config(args.config)
        repository = loader.build_repository(args.sources)
    except ConfigurationError as e:
        logger.error(f"Ошибка конфигурации: {e}")
        sys.exit(1)

    if args.verbose or config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        # Отключаем шумные логи библиотек
        logging.getLogger("asyncio").setLevel(logging.WARNING)
        logging.getLogger("aiohttp").setLevel(logging.WARNING)
    else:
        logging.getLogger().setLevel(config.log_level)

    auth_store = FileAuthStore(args.auth) if args.auth else None
    orchestrator = BookSourceOrchestrator(
        repository,
        config=config,
        auth_store=auth_store,
        variable_store=InMemoryVariableStore(),
    )

    operation = getattr(orchestrator, COMMANDS[args.command])
    if args.command == "list":
        result = await operation(args.source_id, args.url, page=args.page, key=args.key)
    elif args.command == "explore":
        result = await operation(args.source_id)
    else:
        result = await operation(args.source_id, args.url)

    payload = result.to_dict()
    print(json.dumps(payload, ensure_ascii=False, indent=2))

    if args.output:
        save_result_to_json(payload, args.output)

    if not result.success:
        sys.exit(2)


def main():
    parser = argparse.ArgumentParser(
        description="Извлечение книги, оглавления, текста главы и каталога по описанию источника"
    )
    parser.add_argument("command", choices=sorted(COMMANDS),
                        help="book - информация о книге, toc - оглавление, content - текст главы, "
                             "list - список книг, explore - разделы каталога")
    parser.add_argument("source_id", help="Идентификатор источника")
    parser.add_argument("url", nargs="?", default="",
                        help="URL (абсолютный, относительный или data:)")
    parser.add_argument("--page", type=int, default=1,
                        help="Номер страницы списка книг")
    parser.add_argument("--key", type=str, default="",
                        help="Поисковый запрос для списка книг")
    parser.add_argument("--sources", type=str, required=True,
                        help="Путь к JSON-файлу источников")
    parser.add_argument("--config", type=str, default=None,
                        help="Путь к JSON-файлу конфигурации движка")
    parser.add_argument("--auth", type=str, default=None,
                        help="Путь к JSON-файлу с cookie источников")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Подробный вывод")
    parser.add_argument("--output", "-o", type=str, default=None,
                        help="Сохранить результат в JSON-файл")

    args = parser.parse_args()
    if not args.url and args.command not in OPTIONAL_URL:
        parser.error(f"команде {args.command} нужен URL")

    asyncio.run(async_main(args))


if __name__ == "__main__":
    main()
