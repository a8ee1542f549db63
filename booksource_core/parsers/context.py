"""Контекст вычисления правил в рамках одного запроса."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from ..config.base import SourceDefinition


@dataclass
class EvaluationContext:
    """
    Состояние одного запроса к источнику.

    Создается заново на каждый запрос и никогда не сохраняется.
    shared_variables меняются правилами @put и java.put.
    """

    source: SourceDefinition
    base_url: str = ""
    key: str = ""
    page: int = 1
    hosts: Tuple[str, ...] = ()
    shared_variables: Dict[str, Any] = field(default_factory=dict)
    # JSON-контекст псевдо-URL data:
    extra: Optional[Dict[str, Any]] = None

    def with_base_url(self, base_url: str) -> "EvaluationContext":
        """Копия контекста с другим базовым URL и общими переменными."""
        return replace(self, base_url=base_url)
