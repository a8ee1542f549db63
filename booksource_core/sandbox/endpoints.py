"""
Извлечение списка хостов из вспомогательного текста скриптов источника.

Распознаются ровно две формы:
- литерал массива: const host = ["https://a", "https://b"]
- массив base64-строк: const encodedEndpoints = ['aHR0cHM6Ly9h', ...];

Вычисляется только изолированный литерал массива, окружающий текст
никогда не исполняется.
"""

import base64
import binascii
import json
import re
from functools import lru_cache
from typing import Tuple
import logging

import quickjs

logger = logging.getLogger(__name__)

HOST_ARRAY = re.compile(r"(?:const|let|var)\s+host\s*=\s*(\[[\s\S]*?\])")
ENCODED_ENDPOINTS = re.compile(r"const\s+encodedEndpoints\s*=\s*\[([\s\S]*?)\];")
_QUOTED = re.compile(r"'([^']+)'|\"([^\"]+)\"")

# Лимиты вычисления литерала
LITERAL_TIME_LIMIT = 0.5
LITERAL_MEMORY_LIMIT = 8 * 1024 * 1024


@lru_cache(maxsize=256)
def extract_host_list(text: str) -> Tuple[str, ...]:
    """
    Найти список хостов в тексте.

    Результат кэшируется по тексту, поэтому для источника список
    вычисляется один раз.

    Args:
        text: Вспомогательный текст (comment + jsLib + loginUrl)

    Returns:
        Tuple[str, ...]: Хосты (пустой кортеж, если не найдено)
    """
    if not text:
        return ()

    match = HOST_ARRAY.search(text)
    if match:
        hosts = _evaluate_literal(match.group(1))
        if hosts:
            logger.debug(f"Найдено хостов в литерале host: {len(hosts)}")
            return hosts

    match = ENCODED_ENDPOINTS.search(text)
    if match:
        hosts = _decode_endpoints(match.group(1))
        if hosts:
            logger.debug(f"Найдено хостов в encodedEndpoints: {len(hosts)}")
            return hosts
        logger.warning("encodedEndpoints не содержит корректных HTTP-адресов")

    return ()


def _evaluate_literal(literal: str) -> Tuple[str, ...]:
    """Вычислить литерал массива в одноразовом контексте QuickJS."""
    context = quickjs.Context()
    context.set_time_limit(LITERAL_TIME_LIMIT)
    context.set_memory_limit(LITERAL_MEMORY_LIMIT)
    try:
        value = context.eval(f"JSON.stringify({literal})")
    except quickjs.JSException as e:
        logger.warning(f"Не удалось вычислить литерал host: {e}")
        return ()

    try:
        items = json.loads(value) if isinstance(value, str) else None
    except ValueError:
        return ()
    if not isinstance(items, list):
        return ()
    return tuple(item.strip() for item in items if isinstance(item, str) and item.strip())


def _decode_endpoints(body: str) -> Tuple[str, ...]:
    hosts = []
    for single, double in _QUOTED.findall(body):
        encoded = (single or double).strip()
        if not encoded:
            continue
        try:
            decoded = base64.b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.debug(f"Пропущена некорректная base64-строка: {encoded[:20]}")
            continue
        decoded = decoded.strip()
        if decoded.startswith(("http://", "https://")):
            hosts.append(decoded)
    return tuple(hosts)
