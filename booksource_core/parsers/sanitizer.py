"""
Очистка извлеченного текста.

ContentSanitizer превращает HTML главы в простой текст с абзацами через
пустую строку и вырезает случайно захваченные CSS/JS и служебные фразы.
Эвристики берутся из SanitizeConfig и могут быть переопределены.
"""

import html
import re
from typing import Callable, Optional
from urllib.parse import unquote, urlsplit
import logging

from bs4 import BeautifulSoup

from ..config.base import EngineConfig, SanitizeConfig

logger = logging.getLogger(__name__)

INTRO_REMOVED_TAGS = ("script", "style", "noscript", "iframe", "object", "embed")
INTRO_ALLOWED_TAGS = frozenset(
    ["p", "br", "strong", "em", "b", "i", "ul", "ol", "li", "span", "div", "a"]
)

_BR = re.compile(r"<br\s*/?\s*>", re.I)
_P_OPEN = re.compile(r"<p\b[^>]*>", re.I)
_P_CLOSE = re.compile(r"</p>", re.I)
_TAG = re.compile(r"<[^>]+>")
_NBSP = re.compile(r"&nbsp;", re.I)
_WHITESPACE = re.compile(r"\s+")
_URL_EXTENSION = re.compile(r"\.(html?|php|aspx?|jsp)$", re.I)

ScriptRunner = Callable[[str, str], str]


class ContentSanitizer:
    """Очистка текста главы."""

    def __init__(self, config: Optional[SanitizeConfig] = None):
        """
        Инициализация очистки.

        Args:
            config: Набор эвристик (по умолчанию - встроенный)
        """
        self.config = config or SanitizeConfig()
        self.leak_markers = [re.compile(p) for p in self.config.leak_markers]
        self.leak_blocks = [re.compile(p) for p in self.config.leak_block_patterns]
        self.leak_lines = [re.compile(p) for p in self.config.leak_line_patterns]
        self.boilerplate = [re.compile(p) for p in self.config.boilerplate_patterns]
        self.logger = logging.getLogger(f"{__name__}.ContentSanitizer")

    def sanitize(
        self,
        content: str,
        source_regex: Optional[str] = None,
        replace_regex: Optional[str] = None,
        script_runner: Optional[ScriptRunner] = None,
    ) -> str:
        """
        Очистить текст главы.

        Порядок: переносы и абзацы, удаление тегов, вырезание CSS/JS,
        служебные фразы, sourceRegex, replaceRegex, сборка абзацев.

        Args:
            content: HTML или текст главы
            source_regex: Регулярное выражение для удаления
            replace_regex: Регулярное выражение для удаления или скрипт @js:
            script_runner: Выполнение скрипта (фрагмент, текст) -> текст

        Returns:
            str: Текст, абзацы разделены одной пустой строкой
        """
        if not content:
            return ""

        text = self.html_to_text(content)
        text = self.strip_leaks(text)
        for pattern in self.boilerplate:
            text = pattern.sub("", text)

        if source_regex:
            text = self._delete_matches(text, source_regex, "sourceRegex")

        if replace_regex:
            if replace_regex.lstrip().lower().startswith("@js:"):
                if script_runner is not None:
                    replaced = script_runner(replace_regex.lstrip()[4:], text)
                    if replaced:
                        text = replaced
            else:
                text = self._delete_matches(text, replace_regex, "replaceRegex")

        return self.join_paragraphs(text)

    @staticmethod
    def html_to_text(content: str) -> str:
        """Переносы и абзацы в переводы строк, затем удаление тегов."""
        text = _NBSP.sub(" ", content)
        text = _BR.sub("\n", text)
        text = _P_OPEN.sub("", text)
        text = _P_CLOSE.sub("\n\n", text)
        text = _TAG.sub("", text)
        return html.unescape(text)

    def looks_like_leak(self, text: str) -> bool:
        return any(marker.search(text) for marker in self.leak_markers)

    def strip_leaks(self, text: str) -> str:
        """Вырезать захваченные CSS/JS, если найден хотя бы один признак."""
        if not self.looks_like_leak(text):
            return text

        self.logger.debug("В тексте главы найдены признаки CSS/JS, выполняется очистка")
        for pattern in self.leak_blocks:
            text = pattern.sub("", text)

        lines = [
            line
            for line in text.splitlines()
            if line.strip() and not any(p.search(line) for p in self.leak_lines)
        ]
        return "\n".join(lines)

    @staticmethod
    def join_paragraphs(text: str) -> str:
        lines = (_WHITESPACE.sub(" ", line).strip() for line in text.splitlines())
        return "\n\n".join(line for line in lines if line)

    def _delete_matches(self, text: str, pattern: str, name: str) -> str:
        try:
            return re.sub(pattern, "", text)
        except re.error as e:
            self.logger.warning(f"Некорректный {name} {pattern!r}: {e}")
            return text


def sanitize_intro_html(markup: str) -> str:
    """
    Оставить в описании книги только разрешенные теги.

    script/style/iframe и подобные удаляются вместе с содержимым,
    прочие неразрешенные теги разворачиваются, у ссылок остается
    только href.
    """
    if not markup or not markup.strip():
        return ""
    if "<" not in markup:
        return markup.strip()

    soup = BeautifulSoup(markup, "lxml")
    for tag in soup.find_all(INTRO_REMOVED_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name in ("html", "body", "head"):
            continue
        if tag.name not in INTRO_ALLOWED_TAGS:
            tag.unwrap()
        elif tag.name == "a":
            href = tag.get("href")
            tag.attrs = {"href": href} if href else {}
        else:
            tag.attrs = {}

    root = soup.body or soup
    return root.decode_contents().strip()


def title_from_html(markup: str, config: Optional[EngineConfig] = None) -> str:
    """Заголовок из <title> без названия сайта и суффикса «最新章节»."""
    config = config or EngineConfig()
    if not markup or "<title" not in markup.lower():
        return ""
    soup = BeautifulSoup(markup, "lxml")
    if soup.title is None:
        return ""

    raw = soup.title.get_text().strip()
    raw = re.sub(config.title_noise_pattern, "", raw)
    for part in re.split(config.title_separator_pattern, raw):
        if part.strip():
            return part.strip()
    return ""


def title_from_url(url: str) -> str:
    """Заголовок из последнего сегмента пути URL."""
    if not url or url.lower().startswith("data:"):
        return ""
    path = urlsplit(url.split(",{", 1)[0]).path
    segments = [s for s in path.split("/") if s]
    if not segments:
        return ""
    last = _URL_EXTENSION.sub("", unquote(segments[-1]))
    return re.sub(r"[-_]+", " ", last).strip()
