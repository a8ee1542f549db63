"""
Тесты клиента селекторов.
"""

import pytest

from booksource_core.parsers.selector import SelectorClient


HTML = """
<div class="book main">
  <h1 class="title">Название</h1>
  <a class="link" href="/read/1" title="Подсказка">Читать</a>
  <ul id="chapters">
    <li>Первая</li>
    <li>Вторая</li>
    <li>Третья</li>
  </ul>
  <p class="info">Автор: <b>Иван</b> Петров</p>
  <span class="words">Слов: 12345</span>
</div>
"""


@pytest.fixture
def client():
    return SelectorClient()


class TestSelectorExtract:
    """Тесты извлечения значений."""

    def test_text(self, client):
        """class.X@text - текст элемента."""
        assert client.extract(HTML, "class.title@text") == "Название"

    def test_attribute(self, client):
        """Последний сегмент - атрибут."""
        assert client.extract(HTML, "class.link@title") == "Подсказка"

    def test_href_absolutized(self, client):
        """href разрешается относительно базы."""
        value = client.extract(HTML, "class.link@href", "https://site.example.com/book/")
        assert value == "https://site.example.com/read/1"

    def test_index(self, client):
        """Суффикс .N выбирает элемент, отрицательный - с конца."""
        assert client.extract(HTML, "id.chapters@li.1@text") == "Вторая"
        assert client.extract(HTML, "id.chapters@li.-1@text") == "Третья"

    def test_index_out_of_range(self, client):
        """Индекс за пределами - пустое значение."""
        assert client.extract(HTML, "id.chapters@li.7@text") == ""

    def test_own_text(self, client):
        """ownText - только собственные текстовые узлы."""
        assert client.extract(HTML, "class.info@ownText").split() == ["Автор:", "Петров"]

    def test_html(self, client):
        """html - внутренняя разметка."""
        assert "<b>Иван</b>" in client.extract(HTML, "class.info@html")

    def test_regex_suffix(self, client):
        """##regex оставляет группу 1."""
        assert client.extract(HTML, r"class.words@text##Слов:\s*(\d+)") == "12345"

    def test_regex_no_match(self, client):
        """Несовпавшее регулярное выражение - пустое значение."""
        assert client.extract(HTML, r"class.words@text##Глав:(\d+)") == ""

    def test_css_prefix(self, client):
        """@css: - обычный CSS-селектор."""
        assert client.extract(HTML, "@css:div.book > h1@text") == "Название"

    def test_text_contains(self, client):
        """text.X ищет элемент по собственному тексту."""
        assert client.extract(HTML, "text.Читать@href") == "/read/1"

    def test_missing(self, client):
        """Отсутствующий элемент - пустая строка."""
        assert client.extract(HTML, "class.absent@text") == ""

    def test_trailing_tag_is_selector(self, client):
        """Имя тега в конце цепочки - селектор, а не атрибут."""
        assert client.extract(HTML, "class.info@b") == "Иван"


class TestSelectorSelect:
    """Тесты выбора списков."""

    def test_document_order(self, client):
        """Элементы возвращаются в порядке документа."""
        items = client.select(HTML, "id.chapters@li")
        assert [li.get_text() for li in items] == ["Первая", "Вторая", "Третья"]

    def test_exclude(self, client):
        """!N исключает элемент."""
        items = client.select(HTML, "id.chapters@li!0")
        assert [li.get_text() for li in items] == ["Вторая", "Третья"]

    def test_extract_from_element(self, client):
        """Правило поля над элементом списка."""
        link = client.select(HTML, "class.link")[0]
        assert client.extract(link, "href") == "/read/1"
        assert client.extract(link, "text") == "Читать"

    def test_translate_segment(self, client):
        """Перевод сегментов в CSS."""
        assert client.translate_segment("class.a b") == (".a.b", None, None)
        assert client.translate_segment("id.x") == ("#x", None, None)
        assert client.translate_segment("tag.li.2") == ("li", 2, None)
        assert client.translate_segment("tag.li!-1") == ("li", None, -1)
