"""
Тесты извлечения списков.
"""

import pytest

from booksource_core.config.base import EngineConfig
from booksource_core.parsers.list_extractor import ListExtractor


@pytest.fixture
def extractor(resolver):
    return ListExtractor(resolver)


class TestExtractList:
    """Тесты ListExtractor.extract_list."""

    def test_markup_list(self, extractor, html_source, book_html):
        """Главы из разметки: порядок, фильтрация и дедупликация."""
        entries = extractor.extract_list(
            book_html,
            "id.list@dd@a",
            {"title": "text", "url": "href"},
            "https://novel.example.com/book/1/",
            html_source,
        )
        assert [e["title"] for e in entries] == ["第一章 起点", "第二章 远行"]
        assert entries[0]["url"] == "https://novel.example.com/book/1/1.html"

    def test_json_list(self, extractor, api_source):
        """Главы из JSON по правилу списка."""
        data = {"data": {"chapterlist": [
            {"chaptername": "Глава 1", "url": "/c/1"},
            {"chaptername": "Глава 2", "url": "/c/2"},
        ]}}
        entries = extractor.extract_list(
            data,
            "$.data.chapterlist",
            {"title": "$.chaptername", "url": "$.url"},
            "",
            api_source,
        )
        assert entries == [
            {"title": "Глава 1", "url": "/c/1"},
            {"title": "Глава 2", "url": "/c/2"},
        ]

    def test_json_fallback(self, extractor, api_source):
        """Пустое правило списка - массив верхнего уровня."""
        data = [{"title": "A", "url": "/a"}, {"title": "B", "url": "/b"}]
        entries = extractor.extract_list(
            data,
            "$.missing",
            {"title": "$.title", "url": "$.url", "intro": "$.intro"},
            "",
            api_source,
        )
        assert [e["url"] for e in entries] == ["/a", "/b"]
        assert "intro" not in entries[0]

    def test_fallback_under_data(self):
        """Массив ищется и под data/chapters."""
        assert ListExtractor.fallback_items({"data": {"chapters": [1, 2]}}) == [1, 2]
        assert ListExtractor.fallback_items({"items": [3]}) == [3]
        assert ListExtractor.fallback_items("<html></html>") == []

    def test_script_list_error(self, extractor, api_source):
        """Ошибка скрипта списка - пустой список без исключения."""
        entries = extractor.extract_list(
            {"x": 1},
            "<js>throw new Error('boom')</js>",
            {"title": "$.t", "url": "$.u"},
            "",
            api_source,
        )
        assert entries == []

    def test_transform(self, extractor, api_source):
        """transform применяется до фильтрации."""
        data = [{"t": "A", "u": ""}]
        entries = extractor.extract_list(
            data,
            "$.",
            {"title": "$.t", "url": "$.u"},
            "",
            api_source,
            transform=lambda entry: {**entry, "url": "/fixed"},
        )
        assert entries == [{"title": "A", "url": "/fixed"}]

    def test_thread_pool_keeps_order(self, resolver, api_source):
        """Параллельное вычисление полей сохраняет порядок документа."""
        extractor = ListExtractor(resolver, EngineConfig(list_workers=4))
        data = [{"t": str(i), "u": f"/c/{i}"} for i in range(20)]
        entries = extractor.extract_list(
            data, "$.", {"title": "$.t", "url": "$.u"}, "", api_source
        )
        assert [e["title"] for e in entries] == [str(i) for i in range(20)]


class TestFilterAndDedupe:
    """Тесты filter_and_dedupe."""

    def test_first_wins(self):
        """Из дубликатов по url остается первый."""
        entries = [
            {"title": "A", "url": "/1"},
            {"title": "B", "url": " /1 "},
            {"title": "C", "url": "/2"},
        ]
        result = ListExtractor.filter_and_dedupe(entries)
        assert [e["title"] for e in result] == ["A", "C"]

    def test_requires_title_and_url(self):
        """Записи без title или url отбрасываются."""
        entries = [{"title": "", "url": "/1"}, {"title": "B", "url": ""}, {"title": "C"}]
        assert ListExtractor.filter_and_dedupe(entries) == []
