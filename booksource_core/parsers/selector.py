"""
Клиент селекторов для разметки.

Разбирает правила вида "class.list@tag.li.0@a@href" поверх BeautifulSoup
(парсер lxml). Сегменты цепочки разделяются "@", последний сегмент
правила поля может называть атрибут.
"""

import re
from typing import List, Optional, Tuple, Union
from urllib.parse import urljoin
import logging

from bs4 import BeautifulSoup, NavigableString, Tag

logger = logging.getLogger(__name__)

Markup = Union[str, bytes, Tag]

# Сегмент не является атрибутом, если похож на селектор
_NOT_ATTRIBUTE = re.compile(r"^(id\.|class\.|tag\.|text\.|\w+\.|\d+|\s|[.#\[>:*])")
_INDEX_SUFFIX = re.compile(r"\.(-?\d+)$")
_EXCLUDE_SUFFIX = re.compile(r"!(-?\d+)$")

URL_ATTRIBUTES = ("href", "src", "url")
TEXT_ATTRIBUTES = ("text", "textNodes", "ownText", "html", "all")

# Имена тегов, которые в конце цепочки считаются селектором, а не атрибутом
# ("title" намеренно отсутствует: a@title читается как атрибут)
_TAG_NAMES = frozenset(
    "a p div span li ul ol dl dt dd h1 h2 h3 h4 h5 h6 img td tr th table tbody "
    "section article b i em strong font small option label button header "
    "footer nav main body".split()
)


class SelectorClient:
    """Клиент для работы с селекторами."""

    def __init__(self, parser: str = "lxml"):
        """
        Инициализация клиента селекторов.

        Args:
            parser: Парсер BeautifulSoup
        """
        self.parser = parser
        self.logger = logging.getLogger(f"{__name__}.SelectorClient")

    def parse(self, markup: Markup) -> Tag:
        """Разобрать разметку (готовый Tag возвращается как есть)."""
        if isinstance(markup, Tag):
            return markup
        return BeautifulSoup(markup or "", self.parser)

    def select(self, markup: Markup, rule: str) -> List[Tag]:
        """
        Выбрать элементы по правилу списка.

        Args:
            markup: Разметка или элемент
            rule: Правило (все сегменты - селекторы)

        Returns:
            List[Tag]: Элементы в порядке документа
        """
        css_rule, segments = self._split_css_rule(rule)
        root = self.parse(markup)
        if css_rule is not None:
            return self._select_css(root, css_rule, include_self=True)
        return self._select_chain(root, segments)

    def extract(self, markup: Markup, rule: str, base_url: str = "") -> str:
        """
        Извлечь значение по правилу поля.

        Args:
            markup: Разметка или элемент
            rule: Правило с необязательным атрибутом и суффиксом ##regex
            base_url: База для относительных href/src

        Returns:
            str: Значение или пустая строка
        """
        rule, regex = self.split_regex(rule)
        attribute, selector_rule = self.split_attribute(rule)

        root = self.parse(markup)
        if selector_rule:
            elements = self.select(root, selector_rule)
        else:
            elements = [root]

        if not elements:
            return ""

        value = self.element_value(elements[0], attribute or "text").strip()

        if regex:
            value = self.apply_regex(value, regex)

        if attribute in URL_ATTRIBUTES and value:
            value = self.absolutize(value, base_url)

        return value.strip()

    @staticmethod
    def split_regex(rule: str) -> Tuple[str, Optional[str]]:
        """Отделить суффикс ##regex."""
        if "##" not in rule:
            return rule, None
        head, _, regex = rule.partition("##")
        # "##regex##замена" не поддерживается: замена отбрасывается
        regex = regex.split("##", 1)[0]
        return head, regex or None

    @staticmethod
    def split_attribute(rule: str) -> Tuple[Optional[str], str]:
        """
        Отделить имя атрибута от цепочки селекторов.

        Returns:
            Tuple: (атрибут или None, правило селектора)
        """
        text = rule.strip()
        body = text[5:] if text.lower().startswith("@css:") else text
        if "@" not in body:
            # "text", "href" без цепочки относятся к самому элементу
            if text in TEXT_ATTRIBUTES or text in URL_ATTRIBUTES:
                return text, ""
            return None, text
        head, _, last = text.rpartition("@")
        last = last.strip()
        if last in TEXT_ATTRIBUTES:
            return last, head
        if last and last not in _TAG_NAMES and not _NOT_ATTRIBUTE.match(last):
            return last, head
        return None, text

    def element_value(self, element: Tag, attribute: str) -> str:
        """Значение атрибута элемента."""
        if attribute == "text":
            return element.get_text()
        if attribute == "textNodes":
            return "\n".join(
                s.strip()
                for s in element.children
                if isinstance(s, NavigableString) and s.strip()
            )
        if attribute == "ownText":
            return "".join(
                str(s) for s in element.children if isinstance(s, NavigableString)
            )
        if attribute == "html":
            return element.decode_contents()
        if attribute == "all":
            return str(element)

        value = element.get(attribute)
        if isinstance(value, list):
            return " ".join(value)
        return value or ""

    def apply_regex(self, value: str, pattern: str) -> str:
        """Оставить группу 1 (или все совпадение) регулярного выражения."""
        try:
            match = re.search(pattern, value)
        except re.error as e:
            self.logger.error(f"Некорректное регулярное выражение {pattern!r}: {e}")
            return value
        if not match:
            return ""
        if match.groups() and match.group(1) is not None:
            return match.group(1)
        return match.group(0)

    @staticmethod
    def absolutize(value: str, base_url: str) -> str:
        """Разрешить относительный URL относительно base_url."""
        if value.startswith(("http://", "https://", "data:", "//")) or not base_url:
            return value
        return urljoin(base_url, value)

    @staticmethod
    def _split_css_rule(rule: str) -> Tuple[Optional[str], List[str]]:
        text = rule.strip()
        if text.lower().startswith("@css:"):
            return text[5:].strip(), []
        return None, [s for s in text.split("@") if s.strip()]

    def _select_chain(self, root: Tag, segments: List[str]) -> List[Tag]:
        current = [root]
        for position, segment in enumerate(segments):
            css, index, exclude = self.translate_segment(segment)
            matched: List[Tag] = []
            for element in current:
                found = self._select_css(element, css, include_self=position == 0)
                matched.extend(self._apply_index(found, index, exclude))
            current = matched
            if not current:
                break
        return current

    @staticmethod
    def translate_segment(segment: str) -> Tuple[str, Optional[int], Optional[int]]:
        """
        Перевести сегмент правила в CSS.

        class.a b -> .a.b, id.x -> #x, tag.li -> li, text.Глава -> содержит текст,
        суффикс .N выбирает N-й элемент, !N исключает N-й.

        Returns:
            Tuple: (css, индекс или None, исключаемый индекс или None)
        """
        text = segment.strip()
        index = exclude = None

        match = _EXCLUDE_SUFFIX.search(text)
        if match:
            exclude = int(match.group(1))
            text = text[: match.start()]
        else:
            match = _INDEX_SUFFIX.search(text)
            if match:
                index = int(match.group(1))
                text = text[: match.start()]

        if text.startswith("class."):
            classes = text[6:].split()
            css = "".join(f".{name}" for name in classes)
        elif text.startswith("id."):
            css = f"#{text[3:].strip()}"
        elif text.startswith("tag."):
            css = text[4:].strip()
        elif text.startswith("text."):
            needle = text[5:].replace('"', '\\"')
            css = f':-soup-contains-own("{needle}")'
        else:
            css = text

        return css or "*", index, exclude

    @staticmethod
    def _select_css(element: Tag, css: str, include_self: bool) -> List[Tag]:
        found = element.select(css)
        # Элемент списка сам может быть целью первого сегмента
        if include_self and not isinstance(element, BeautifulSoup):
            if element.css.match(css):
                found.insert(0, element)
        return found

    @staticmethod
    def _apply_index(
        elements: List[Tag], index: Optional[int], exclude: Optional[int]
    ) -> List[Tag]:
        if index is not None:
            if -len(elements) <= index < len(elements):
                return [elements[index]]
            return []
        if exclude is not None:
            size = len(elements)
            position = exclude if exclude >= 0 else size + exclude
            return [e for i, e in enumerate(elements) if i != position]
        return elements
