#!/usr/bin/env python3
"""
Примеры использования компонентов движка книжных источников.

Все примеры работают без сети: разметка и JSON заданы в коде,
а текст главы передается псевдо-URL data:.
"""

import asyncio
import base64
import json
import logging
from pathlib import Path

# Настройка логирования для примеров
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

EXAMPLES_DIR = Path(__file__).parent

SAMPLE_HTML = """
<div class="book-info">
  <h1>星辰之主</h1>
  <p class="author">作者：李四</p>
</div>
<dl id="list">
  <dd><a href="/book/1/1.html">第一章 起点</a></dd>
  <dd><a href="/book/1/2.html">第二章 远行</a></dd>
</dl>
"""


def example_rule_classification():
    """
    Пример 1: Классификация правил.

    Диалект правила определяется один раз при загрузке источника.
    """
    print("\n=== Пример 1: Классификация правил ===")

    from booksource_core.config.base import Rule

    for raw in ("class.author@text", "$.data.name", "<js>result.id</js>", "tag.h1@text@js:result.trim()"):
        rule = Rule.parse(raw)
        print(f"  {raw!r:40} -> {rule.kind.value}")


def example_resolver():
    """
    Пример 2: RuleResolver над разметкой и JSON.

    Один вычислитель обслуживает селекторы, JSON-пути и скрипты.
    """
    print("\n=== Пример 2: RuleResolver ===")

    from booksource_core.config.base import SourceDefinition
    from booksource_core.parsers.context import EvaluationContext
    from booksource_core.parsers.resolver import RuleResolver
    from booksource_core.parsers.selector import SelectorClient
    from booksource_core.sandbox.host import ScriptHost

    source = SourceDefinition(id="example", name="Пример", url="https://novel.example.com")
    ctx = EvaluationContext(source=source, base_url=source.url)
    resolver = RuleResolver(ScriptHost(), SelectorClient())

    author = resolver.resolve("class.author@text##作者[:：](.*)", SAMPLE_HTML, ctx)
    print(f"Автор из разметки: {author}")

    data = {"data": {"novelName": "Книга", "novelId": 12}}
    print(f"Название из JSON: {resolver.resolve('$.data.novelName', data, ctx)}")
    print(f"Скрипт: {resolver.resolve('<js>result.data.novelId * 2</js>', data, ctx)}")
    print(f"Шаблон: {resolver.resolve('/toc?id={{$.data.novelId}}', data, ctx)}")


def example_list_extractor():
    """
    Пример 3: ListExtractor для оглавления.
    """
    print("\n=== Пример 3: ListExtractor ===")

    from booksource_core.config.base import SourceDefinition
    from booksource_core.parsers.list_extractor import ListExtractor
    from booksource_core.parsers.resolver import RuleResolver
    from booksource_core.parsers.selector import SelectorClient
    from booksource_core.sandbox.host import ScriptHost

    source = SourceDefinition(id="example", name="Пример")
    extractor = ListExtractor(RuleResolver(ScriptHost(), SelectorClient()))
    entries = extractor.extract_list(
        SAMPLE_HTML,
        "id.list@dd@a",
        {"title": "text", "url": "href"},
        "https://novel.example.com/book/1/",
        source,
    )
    for entry in entries:
        print(f"  {entry['title']}: {entry['url']}")


def example_sanitizer():
    """
    Пример 4: Очистка текста главы.

    Утечки CSS/JS и служебные фразы удаляются, абзацы разделяются пустой строкой.
    """
    print("\n=== Пример 4: ContentSanitizer ===")

    from booksource_core.parsers.sanitizer import ContentSanitizer

    raw = (
        "<p>Первый абзац.</p>"
        "<p>:root { --main: red; }</p>"
        "<p>Второй абзац.</p>"
        "<p>您当前账号存在错误！请重新登录！</p>"
    )
    print(ContentSanitizer().sanitize(raw))


async def example_orchestrator():
    """
    Пример 5: BookSourceOrchestrator.

    Источники загружаются из examples/sources.example.json, текст главы
    передается псевдо-URL, а разделы каталога заданы строками exploreUrl,
    поэтому запрос в сеть не выполняется.
    """
    print("\n=== Пример 5: BookSourceOrchestrator ===")

    from booksource_core.config.base import SourceDefinition
    from booksource_core.config.loader import ConfigLoader
    from booksource_core.orchestrator.core import BookSourceOrchestrator

    loader = ConfigLoader(str(EXAMPLES_DIR))
    repository = loader.build_repository(str(EXAMPLES_DIR / "sources.example.json"))
    repository.add(
        SourceDefinition(
            id="offline",
            name="Без сети",
            rules={"content": {"content": "<js>JSON.parse(result).text</js>"}},
        )
    )

    orchestrator = BookSourceOrchestrator(repository, config=loader.load_engine_config())

    payload = json.dumps({"text": "<p>Текст главы.</p><p>(本章完)</p>"}, ensure_ascii=False)
    url = "data:;base64," + base64.b64encode(payload.encode("utf-8")).decode()
    result = await orchestrator.fetch_chapter_content("offline", url)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))

    missing = await orchestrator.fetch_chapter_content("unknown", "https://example.com")
    print(f"Неизвестный источник: {missing.error_kind.value} - {missing.error}")

    categories = await orchestrator.fetch_categories("demo-html")
    for category in categories.data:
        print(f"  Раздел {category.title}: {category.url}")


async def main():
    """
    Основная функция для запуска всех примеров.
    """
    print("=" * 60)
    print("Примеры использования компонентов движка книжных источников")
    print("=" * 60)

    example_rule_classification()
    example_resolver()
    example_list_extractor()
    example_sanitizer()
    await example_orchestrator()

    print("\n" + "=" * 60)
    print("Все примеры успешно выполнены!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
