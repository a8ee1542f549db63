"""
Разбор строк запросов источников.

Поддерживаемые формы:
- "https://h/a"
- "https://h/a,{"method": "POST", "headers": {...}, "body": "x=1"}"
- "data:;base64,<payload>[,<json-контекст>]" (псевдо-URL без сети)

Функции модуля чистые и не имеют побочных эффектов.
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import urlencode
import logging

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"
OPTIONS_SEPARATOR = ",{"
_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")


@dataclass(frozen=True)
class RequestDescriptor:
    """Описание одного запроса. Создается один раз перед загрузкой."""

    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    # Для псевдо-URL data: тело ответа и JSON-контекст
    payload: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    @property
    def is_pseudo(self) -> bool:
        return self.payload is not None

    def with_url(self, url: str) -> "RequestDescriptor":
        return replace(self, url=url)

    def with_headers(self, headers: Dict[str, str]) -> "RequestDescriptor":
        return replace(self, headers=dict(headers))


def split_options(raw: str) -> Tuple[str, str]:
    """
    Отделить сегмент опций.

    Returns:
        Tuple: (URL, сегмент опций начиная с "{" или пустая строка)
    """
    index = raw.find(OPTIONS_SEPARATOR)
    if index == -1:
        return raw, ""
    return raw[:index], raw[index + 1 :]


def is_absolute(url: str) -> bool:
    text = url.strip()
    return bool(_SCHEME.match(text)) or text.lower().startswith("data:")


def parse_request(raw: str) -> RequestDescriptor:
    """
    Разобрать строку запроса.

    Args:
        raw: URL, URL с опциями или псевдо-URL

    Returns:
        RequestDescriptor: Описание запроса
    """
    text = raw.strip()
    if text.lower().startswith("data:"):
        return _parse_pseudo_url(text)

    url, options_text = split_options(text)
    url = url.strip()
    if not options_text:
        return RequestDescriptor(url=url)

    try:
        options = json.loads(options_text)
    except ValueError as e:
        logger.warning(f"Некорректные опции запроса для {url}: {e}")
        return RequestDescriptor(url=url)

    if not isinstance(options, dict):
        logger.warning(f"Опции запроса для {url} не являются объектом")
        return RequestDescriptor(url=url)

    method = str(options.get("method") or "GET").upper()
    headers = {
        str(k): str(v) for k, v in (options.get("headers") or {}).items() if v is not None
    }

    body = options.get("body")
    if isinstance(body, dict):
        body = urlencode({k: "" if v is None else v for k, v in body.items()})
        _ensure_form_content_type(headers)
    elif isinstance(body, list):
        body = json.dumps(body, ensure_ascii=False)
    elif body is not None:
        body = str(body)

    if method == "POST" and isinstance(body, str):
        _ensure_form_content_type(headers)

    return RequestDescriptor(url=url, method=method, headers=headers, body=body)


def _ensure_form_content_type(headers: Dict[str, str]) -> None:
    if not any(k.lower() == "content-type" for k in headers):
        headers["Content-Type"] = FORM_CONTENT_TYPE


def _parse_pseudo_url(text: str) -> RequestDescriptor:
    """data:;base64,<payload>[,<json>]"""
    _, _, rest = text.partition(",")
    payload_part, options_text = split_options(rest)
    payload_part = payload_part.strip()

    try:
        padded = payload_part + "=" * (-len(payload_part) % 4)
        payload = base64.b64decode(padded).decode("utf-8", "replace")
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Некорректный base64 в псевдо-URL: {e}")
        payload = ""

    context = None
    if options_text:
        try:
            context = json.loads(options_text)
        except ValueError as e:
            logger.warning(f"Некорректный JSON-контекст псевдо-URL: {e}")
        if context is not None and not isinstance(context, dict):
            context = {"value": context}

    return RequestDescriptor(url=text, payload=payload, context=context)


def resolve_relative(raw: str, hosts: Sequence[str]) -> str:
    """
    Дополнить относительный URL первым хостом источника.

    Сегмент опций сохраняется как есть. URL вида //host получает https:.

    Args:
        raw: Строка запроса
        hosts: Список хостов источника

    Returns:
        str: Строка запроса с абсолютным URL

    Raises:
        ConfigurationError: URL относительный, а хостов нет
    """
    url, options_text = split_options(raw.strip())
    options = f",{options_text}" if options_text else ""
    url = url.strip()

    if is_absolute(url):
        return raw.strip()
    if url.startswith("//"):
        return f"https:{url}{options}"

    if not hosts:
        raise ConfigurationError(
            f"URL является относительным путем ({url}), но адрес сервера не найден в источнике"
        )

    host = hosts[0].rstrip("/")
    path = url if url.startswith("/") else f"/{url}"
    return f"{host}{path}{options}"
