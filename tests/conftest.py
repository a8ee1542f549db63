import pytest

from booksource_core.config.base import EngineConfig, SourceDefinition
from booksource_core.integration.auth import InMemoryAuthStore
from booksource_core.integration.repository import InMemorySourceRepository
from booksource_core.integration.storage import InMemoryVariableStore
from booksource_core.parsers.context import EvaluationContext
from booksource_core.parsers.resolver import RuleResolver
from booksource_core.parsers.selector import SelectorClient
from booksource_core.sandbox.host import ScriptHost


BOOK_HTML = """
<html>
<head><title>《星辰之主》最新章节 - 演示书屋</title></head>
<body>
  <div class="book-info">
    <h1>星辰之主</h1>
    <p class="author">作者：李四</p>
    <div class="cover"><img src="/covers/1.jpg"></div>
    <div id="intro"><p>简介第一段</p><script>alert(1)</script></div>
    <a class="read-btn" href="/book/1/index.html">开始阅读</a>
  </div>
  <dl id="list">
    <dd><a href="/book/1/1.html">第一章 起点</a></dd>
    <dd><a href="/book/1/2.html">第二章 远行</a></dd>
    <dd><a href="/book/1/1.html">第一章 起点（重复）</a></dd>
    <dd><a href="">无链接</a></dd>
  </dl>
</body>
</html>
"""


@pytest.fixture
def engine_config() -> EngineConfig:
    """Конфигурация движка с коротким лимитом скриптов."""
    return EngineConfig(script_timeout_ms=2000)


@pytest.fixture
def html_source() -> SourceDefinition:
    """Источник с HTML-страницами."""
    return SourceDefinition(
        id="demo-html",
        name="Демо HTML",
        url="https://novel.example.com",
        rules={
            "bookInfo": {
                "name": "class.book-info@h1@text",
                "author": "class.author@text##作者[:：](.*)",
                "intro": "id.intro@html",
                "coverUrl": "class.cover@img@src",
                "tocUrl": "class.read-btn@href",
            },
            "toc": {
                "chapterList": "id.list@dd@a",
                "chapterName": "text",
                "chapterUrl": "href",
            },
            "content": {
                "content": "id.content@html",
                "nextContentUrl": "id.next@href",
            },
        },
    )


@pytest.fixture
def api_source() -> SourceDefinition:
    """Источник с JSON API и списком хостов в комментарии."""
    return SourceDefinition(
        id="demo-api",
        name="Демо API",
        comment="const host = ['https://api.example.com', 'https://api2.example.com']",
        header='{"X-Client": "demo"}',
        rules={
            "bookInfo": {
                "init": "$.data",
                "name": "$.novelName",
                "author": "$.authorName",
                "intro": "$.novelIntro",
                "tocUrl": "/api/chapters?novelId={{$.novelId}}",
            },
            "toc": {
                "chapterList": "$.data.chapterlist",
                "chapterName": "$.chaptername",
                "chapterUrl": "$.url",
            },
            "content": {
                "content": "$.data.content",
            },
        },
    )


@pytest.fixture
def script_host(engine_config) -> ScriptHost:
    return ScriptHost(config=engine_config, variable_store=InMemoryVariableStore())


@pytest.fixture
def resolver(script_host) -> RuleResolver:
    return RuleResolver(script_host, SelectorClient())


@pytest.fixture
def make_context():
    """Фабрика контекстов вычисления."""

    def factory(source, **kwargs) -> EvaluationContext:
        kwargs.setdefault("base_url", source.url)
        return EvaluationContext(source=source, **kwargs)

    return factory


@pytest.fixture
def repository(html_source, api_source) -> InMemorySourceRepository:
    return InMemorySourceRepository([html_source, api_source])


@pytest.fixture
def auth_store() -> InMemoryAuthStore:
    return InMemoryAuthStore()


@pytest.fixture
def book_html() -> str:
    """Страница книги с оглавлением."""
    return BOOK_HTML
