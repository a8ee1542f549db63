"""
Результирующие сущности движка.

Chapter, BookInfo, ChapterContent, BookListItem и Category возвращаются
вызывающему коду внутри PipelineResult.
"""

from dataclasses import dataclass, field, asdict, is_dataclass
from typing import Any, Dict, List, Optional

from .errors import ErrorCategory


@dataclass
class Chapter:
    """Глава в оглавлении."""

    title: str
    url: str
    intro: str = ""

    @property
    def dedup_key(self) -> str:
        return self.url.strip()


@dataclass
class BookInfo:
    """Информация о книге."""

    name: str = ""
    author: str = ""
    cover: str = ""
    intro: str = ""
    kind: str = ""
    last_chapter: str = ""
    word_count: str = ""
    detail_url: str = ""
    toc_url: str = ""
    chapters: List[Chapter] = field(default_factory=list)
    extra_info: Dict[str, Any] = field(default_factory=dict)
    toc_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChapterContent:
    """Текст главы."""

    title: str = ""
    content: str = ""
    next_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookListItem:
    """Книга в списке каталога или поиска."""

    name: str
    detail_url: str
    author: str = ""
    cover: str = ""
    intro: str = ""
    kind: str = ""
    last_chapter: str = ""
    word_count: str = ""


@dataclass
class Category:
    """Раздел каталога источника."""

    title: str
    url: str = ""


@dataclass
class PipelineResult:
    """Результат запроса к источнику."""

    success: bool
    data: Any = None
    error_kind: Optional[ErrorCategory] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any) -> "PipelineResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error_kind: ErrorCategory, error: str) -> "PipelineResult":
        return cls(success=False, error_kind=error_kind, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data = self.data
        if isinstance(data, list):
            data = [asdict(item) if is_dataclass(item) else item for item in data]
        elif hasattr(data, "to_dict"):
            data = data.to_dict()
        return {
            "success": self.success,
            "data": data,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
        }
