"""
Базовые классы конфигурации движка книжных источников.

Содержит Pydantic-модели описания источника (SourceDefinition),
наборов правил и настроек окружения движка (EngineConfig).
Правила классифицируются один раз при загрузке источника.
"""

import json
import re
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field, validator
from enum import Enum


SCRIPT_OPEN = "<js>"
SCRIPT_CLOSE = "</js>"
INLINE_SCRIPT = "@js:"
JSON_PATH_PREFIXES = ("$.", "$[", "@json:")


class RuleKind(str, Enum):
    """Диалекты правил."""

    SELECTOR = "selector"  # Селектор по разметке
    JSON_PATH = "json_path"  # Путь по JSON ($.a.b)
    SCRIPT = "script"  # Блок <js>...</js> или @js: в начале
    HYBRID = "hybrid"  # Селектор + @js: суффикс


class Rule(BaseModel):
    """Правило извлечения одного значения."""

    raw: str = Field(..., description="Исходная строка правила")
    kind: RuleKind = Field(..., description="Диалект правила")
    selector: str = Field("", description="Селектор или JSON-путь")
    script: str = Field("", description="Тело скрипта")
    leading: str = Field("", description="Правило перед блоком <js>")
    trailing: str = Field("", description="Правило после блока </js>")

    class Config:
        frozen = True

    @classmethod
    def parse(cls, raw: str) -> "Rule":
        """
        Классифицировать строку правила.

        Порядок проверки совпадает с порядком диспетчеризации резолвера:
        скрипт, гибрид (селектор или путь + @js:), JSON-путь, селектор.

        Args:
            raw: Строка правила

        Returns:
            Rule: Классифицированное правило
        """
        text = raw.strip()
        lowered = text.lower()

        start = lowered.find(SCRIPT_OPEN)
        if start != -1:
            end = lowered.find(SCRIPT_CLOSE, start)
            body_end = end if end != -1 else len(text)
            return cls(
                raw=raw,
                kind=RuleKind.SCRIPT,
                script=text[start + len(SCRIPT_OPEN) : body_end].strip(),
                leading=text[:start].strip(),
                trailing=text[end + len(SCRIPT_CLOSE) :].strip() if end != -1 else "",
            )

        if lowered.startswith(INLINE_SCRIPT):
            return cls(
                raw=raw, kind=RuleKind.SCRIPT, script=text[len(INLINE_SCRIPT) :].strip()
            )

        inline = lowered.find(INLINE_SCRIPT)
        if inline != -1:
            return cls(
                raw=raw,
                kind=RuleKind.HYBRID,
                selector=text[:inline].strip(),
                script=text[inline + len(INLINE_SCRIPT) :].strip(),
            )

        if lowered.startswith(JSON_PATH_PREFIXES):
            path = text[len("@json:") :].strip() if lowered.startswith("@json:") else text
            return cls(raw=raw, kind=RuleKind.JSON_PATH, selector=path)

        return cls(raw=raw, kind=RuleKind.SELECTOR, selector=text)

    @property
    def is_script(self) -> bool:
        return self.kind in (RuleKind.SCRIPT, RuleKind.HYBRID)

    def __str__(self) -> str:
        return self.raw


def _to_rule(value):
    """Привести значение поля к Rule (пустые строки -> None)."""
    if value is None or isinstance(value, Rule):
        return value
    if isinstance(value, str):
        return Rule.parse(value) if value.strip() else None
    raise ValueError("правило должно быть строкой")


class BookInfoRules(BaseModel):
    """Правила страницы книги."""

    init: Optional[Rule] = Field(None, description="Предобработка контейнера")
    name: Optional[Rule] = None
    author: Optional[Rule] = None
    kind: Optional[Rule] = None
    word_count: Optional[Rule] = Field(None, alias="wordCount")
    last_chapter: Optional[Rule] = Field(None, alias="lastChapter")
    intro: Optional[Rule] = None
    cover_url: Optional[Rule] = Field(None, alias="coverUrl")
    toc_url: Optional[Rule] = Field(None, alias="tocUrl")

    class Config:
        populate_by_name = True

    @validator(
        "init",
        "name",
        "author",
        "kind",
        "word_count",
        "last_chapter",
        "intro",
        "cover_url",
        "toc_url",
        pre=True,
    )
    def classify_rule(cls, v):
        return _to_rule(v)


class TocRules(BaseModel):
    """Правила оглавления."""

    pre_update_js: Optional[Rule] = Field(None, alias="preUpdateJs")
    chapter_list: Optional[Rule] = Field(None, alias="chapterList")
    chapter_name: Optional[Rule] = Field(None, alias="chapterName")
    chapter_url: Optional[Rule] = Field(None, alias="chapterUrl")
    chapter_intro: Optional[Rule] = Field(
        Rule.parse("$.chapterintro||$.intro||$.desc"), alias="chapterIntro"
    )
    format_js: Optional[Rule] = Field(None, alias="formatJs")

    class Config:
        populate_by_name = True

    @validator(
        "pre_update_js",
        "chapter_list",
        "chapter_name",
        "chapter_url",
        "chapter_intro",
        "format_js",
        pre=True,
    )
    def classify_rule(cls, v):
        return _to_rule(v)


class ContentRules(BaseModel):
    """Правила текста главы."""

    content: Optional[Rule] = None
    chapter_name: Optional[Rule] = Field(None, alias="chapterName")
    next_content_url: Optional[Rule] = Field(None, alias="nextContentUrl")
    source_regex: Optional[str] = Field(
        None, alias="sourceRegex", description="Регулярное выражение для удаления"
    )
    replace_regex: Optional[str] = Field(
        None,
        alias="replaceRegex",
        description="Регулярное выражение для удаления или скрипт @js:",
    )

    class Config:
        populate_by_name = True

    @validator("content", "chapter_name", "next_content_url", pre=True)
    def classify_rule(cls, v):
        return _to_rule(v)


class FindRules(BaseModel):
    """Правила списка книг (каталог, поиск)."""

    url: str = Field("", description="URL списка с шаблонами {{page}}, {{key}}")
    book_list: Optional[Rule] = Field(None, alias="bookList")
    name: Optional[Rule] = None
    author: Optional[Rule] = None
    kind: Optional[Rule] = None
    word_count: Optional[Rule] = Field(None, alias="wordCount")
    last_chapter: Optional[Rule] = Field(None, alias="lastChapter")
    intro: Optional[Rule] = None
    cover_url: Optional[Rule] = Field(None, alias="coverUrl")
    book_url: Optional[Rule] = Field(None, alias="bookUrl")

    class Config:
        populate_by_name = True

    @validator("url", pre=True)
    def none_to_empty(cls, v):
        return v or ""

    @validator(
        "book_list",
        "name",
        "author",
        "kind",
        "word_count",
        "last_chapter",
        "intro",
        "cover_url",
        "book_url",
        pre=True,
    )
    def classify_rule(cls, v):
        return _to_rule(v)


class SourceRules(BaseModel):
    """Наборы правил источника по видам запросов."""

    book_info: Optional[BookInfoRules] = Field(None, alias="bookInfo")
    toc: Optional[TocRules] = None
    content: Optional[ContentRules] = None
    find: Optional[FindRules] = None

    class Config:
        populate_by_name = True
        extra = "ignore"


class SourceDefinition(BaseModel):
    """Описание книжного источника."""

    id: str = Field(..., description="Уникальный идентификатор источника")
    name: str = Field(..., description="Название источника")
    url: str = Field("", description="Базовый URL сайта")
    enabled: bool = Field(True, description="Включен ли источник")
    group: Optional[str] = None

    header: Optional[str] = Field(
        None, description="Заголовки: JSON-объект или блок <js>, возвращающий его"
    )
    proxy_base: Optional[str] = Field(None, alias="proxyBase")

    # Вспомогательный текст скриптов (поиск списка хостов, функции jsLib)
    comment: str = ""
    js_lib: str = Field("", alias="jsLib")
    login_url: str = Field("", alias="loginUrl")
    login_ui: Optional[str] = Field(None, alias="loginUi")
    cover_decode_js: Optional[str] = Field(None, alias="coverDecodeJs")
    explore_url: Optional[str] = Field(
        None, alias="exploreUrl", description="Категории: строки title::url, JSON или URL"
    )

    # Переменная источника (хранится во внешнем хранилище)
    variable: Optional[str] = None
    variable_key: Optional[str] = Field(None, alias="variableKey")

    rules: SourceRules = Field(default_factory=SourceRules)

    class Config:
        populate_by_name = True
        extra = "ignore"

    @validator("header", pre=True)
    def normalize_header(cls, v):
        if isinstance(v, dict):
            return json.dumps(v, ensure_ascii=False)
        return v

    @validator("comment", "js_lib", "login_url", pre=True)
    def none_to_empty(cls, v):
        return v or ""

    @property
    def auxiliary_script(self) -> str:
        """Текст, в котором ищется список хостов."""
        return f"{self.comment}\n{self.js_lib}\n{self.login_url}"

    @property
    def storage_key(self) -> str:
        """Ключ источника во внешнем хранилище переменных."""
        return self.variable_key or self.id


class SanitizeConfig(BaseModel):
    """Эвристики очистки текста главы."""

    # Признаки случайно захваченного CSS/JS
    leak_markers: List[str] = Field(
        default_factory=lambda: [
            r":root\s*\{",
            r"document\.addEventListener",
            r"comment-modal",
            r"comment-type-btn",
            r"position:\s*fixed",
            r"animation:",
            r"@keyframes",
            r"const\s+urlParams",
            r"let\s+bookId",
            r"function\s+render",
        ]
    )
    # Блоки, вырезаемые целиком при срабатывании признаков
    leak_block_patterns: List[str] = Field(
        default_factory=lambda: [
            r":root[\s\S]*?\}",
            r"@keyframes[\s\S]*?\}",
            r"\b(?:document|window)\.[\s\S]*?;\s*",
            r"\b(?:const|let|var)\s+[\s\S]*?;\s*",
        ]
    )
    # Строки, похожие на объявления CSS/JS
    leak_line_patterns: List[str] = Field(
        default_factory=lambda: [
            r"^\s*[.#:\w-]+\s*\{",
            r"\}",
            r";\s*$",
            r"\b(?:background|color|border|opacity|transition|transform|cursor"
            r"|display|position|padding|margin|width|height)\s*:",
            r"^(?:const|let|var)\b",
            r"=>",
            r"\bfunction\b",
            r"加载中\.\.\.",
        ]
    )
    # Служебные фразы «войдите снова»
    boilerplate_patterns: List[str] = Field(
        default_factory=lambda: [r"您当前账号存在错误！?请重新登录！?"]
    )

    @validator(
        "leak_markers",
        "leak_block_patterns",
        "leak_line_patterns",
        "boilerplate_patterns",
    )
    def validate_patterns(cls, v):
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Некорректное регулярное выражение {pattern!r}: {e}")
        return v


class EngineConfig(BaseModel):
    """Конфигурация окружения движка."""

    # Таймауты
    request_timeout: float = Field(
        30.0, gt=0, description="Таймаут сетевого запроса (секунды)"
    )
    script_timeout_ms: int = Field(
        5000, ge=10, description="Лимит времени скрипта (миллисекунды)"
    )
    script_memory_limit: int = Field(
        64 * 1024 * 1024, ge=1024 * 1024, description="Лимит памяти песочницы (байты)"
    )
    load_js_lib: bool = Field(True, description="Загружать jsLib в песочницу")

    # Параллельное извлечение полей списка
    list_workers: int = Field(1, ge=1, le=32, description="Потоков на поля списка")

    # Заголовки по умолчанию
    user_agent: str = Field(
        "Mozilla/5.0 (Linux; Android 10) AppleWebKit/537.36",
        description="User-Agent запросов",
    )
    default_headers: Dict[str, str] = Field(
        default_factory=lambda: {"Accept": "application/json,text/plain,*/*"}
    )

    # Коды успешного ответа API (поле "code" в JSON)
    api_success_codes: List[Union[int, str]] = Field(
        default_factory=lambda: [0, 200]
    )

    # Поля JSON для значений по умолчанию
    book_title_fields: List[str] = Field(
        default_factory=lambda: ["bookName", "novelname", "novelName", "name", "title"]
    )
    chapter_title_fields: List[str] = Field(
        default_factory=lambda: [
            "chaptername",
            "chapterName",
            "title",
            "data.chaptername",
            "data.title",
        ]
    )
    description_fields: List[str] = Field(
        default_factory=lambda: [
            "novelIntro",
            "novelIntroShort",
            "intro",
            "abstract",
            "description",
            "des",
            "summary",
        ]
    )
    content_fields: List[str] = Field(
        default_factory=lambda: ["content", "data.content"]
    )
    extra_info_fields: List[str] = Field(
        default_factory=lambda: [
            "score",
            "ranking",
            "tags",
            "novelTags",
            "novelStyle",
            "protagonist",
            "comment_count",
            "read_count",
            "word_number",
            "novelSize",
        ]
    )

    # Очистка заголовка из <title>
    title_separator_pattern: str = Field(r"\s*[-_|｜—]\s*")
    title_noise_pattern: str = Field(r"[《》]|最新章节.*$")

    # Повторный запрос текста главы через get_review, когда сайт требует входа
    login_error_pattern: str = Field(r"账号存在错误|请重新登录")
    review_url_pattern: str = Field(r"'(https?://[^']*/get_review[^']*)'")

    # Логирование
    log_level: str = Field("INFO", description="Уровень логирования")
    verbose: bool = Field(False, description="Подробный вывод")

    sanitize: SanitizeConfig = Field(default_factory=SanitizeConfig)

    class Config:
        extra = "allow"

    @validator("log_level")
    def validate_log_level(cls, v):
        level = str(v).upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Неизвестный уровень логирования: {v}")
        return level

    @validator("login_error_pattern", "review_url_pattern")
    def validate_pattern(cls, v):
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Некорректное регулярное выражение {v!r}: {e}")
        return v

    @property
    def script_timeout(self) -> float:
        """Лимит времени скрипта в секундах."""
        return self.script_timeout_ms / 1000.0
