"""
Тесты обхода JSON-контейнеров.
"""

from booksource_core.parsers.json_path import (
    as_json_container,
    split_path,
    to_text,
    walk,
    select_text,
)


DATA = {
    "a": {"b": "v"},
    "list": [{"name": "x"}, {"name": "y"}],
    "count": 3.0,
    "flag": False,
    "tags": ["фэнтези", "приключения"],
}


class TestWalk:
    """Тесты walk."""

    def test_nested(self):
        """$.a.b -> значение."""
        assert walk(DATA, "$.a.b") == "v"

    def test_missing_is_none(self):
        """Отсутствующий ключ -> None, а не исключение."""
        assert walk(DATA, "$.a.c") is None
        assert walk(DATA, "$.x.y.z") is None
        assert select_text(DATA, "$.a.c") == ""

    def test_index(self):
        """Индексы массивов, включая отрицательные."""
        assert walk(DATA, "$.list[0].name") == "x"
        assert walk(DATA, "$.list[-1].name") == "y"
        assert walk(DATA, "$.list[5].name") is None

    def test_wildcard(self):
        """[*] собирает значения элементов."""
        assert walk(DATA, "$.list[*].name") == ["x", "y"]

    def test_root(self):
        """$. - весь контейнер."""
        assert walk(DATA, "$.") == DATA

    def test_json_text(self):
        """Контейнер может быть JSON-текстом."""
        assert walk('{"data": {"id": 7}}', "@json:$.data.id") == 7

    def test_top_level_array(self):
        """$[0] для массива верхнего уровня."""
        assert walk([{"id": 1}], "$[0].id") == 1

    def test_not_json(self):
        """Разметка не является JSON-контейнером."""
        assert walk("<div>x</div>", "$.a") is None


class TestHelpers:
    """Тесты вспомогательных функций."""

    def test_split_path(self):
        """Разбиение пути на ключи."""
        assert split_path("$.data.list[0].name") == ["data", "list", "0", "name"]
        assert split_path("@json:$.a") == ["a"]

    def test_as_json_container(self):
        """Только объекты и массивы считаются контейнерами."""
        assert as_json_container('[1, 2]') == [1, 2]
        assert as_json_container("42") is None
        assert as_json_container("{broken") is None
        assert as_json_container(None) is None

    def test_to_text(self):
        """Строковое представление значений."""
        assert to_text(None) == ""
        assert to_text(DATA["count"]) == "3"
        assert to_text(DATA["flag"]) == "false"
        assert to_text(DATA["tags"]) == "фэнтези,приключения"
        assert to_text({"k": "в"}) == '{"k": "в"}'
