"""
Обход JSON-контейнеров по путям вида $.a.b, $.list[0].name, $.items[*].id.

Отсутствующий ключ на любом шаге дает None, а не исключение.
"""

import json
import re
from typing import Any, List, Optional

_INDEX_SUFFIX = re.compile(r"\[(\*|-?\d+)\]")


def as_json_container(value: Any) -> Optional[Any]:
    """
    Привести значение к JSON-контейнеру.

    Args:
        value: dict/list или текст JSON

    Returns:
        dict или list; None, если значение не JSON-объект/массив
    """
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, (str, bytes)):
        text = value.decode("utf-8", "replace") if isinstance(value, bytes) else value
        text = text.strip()
        if not text or text[0] not in "[{":
            return None
        try:
            parsed = json.loads(text)
        except ValueError:
            return None
        return parsed if isinstance(parsed, (dict, list)) else None
    return None


def split_path(path: str) -> List[str]:
    """
    Разбить путь на ключи.

    "$.data.list[0].name" -> ["data", "list", "0", "name"]
    """
    text = path.strip()
    if text.lower().startswith("@json:"):
        text = text[6:].strip()
    if text.startswith("$"):
        text = text[1:]
    text = text.lstrip(".")

    keys: List[str] = []
    for part in text.split("."):
        if not part:
            continue
        head = _INDEX_SUFFIX.split(part, maxsplit=0)[0]
        if head:
            keys.append(head)
        keys.extend(_INDEX_SUFFIX.findall(part))
    return keys


def _step(current: Any, key: str) -> Any:
    if isinstance(current, dict):
        return current.get(key)
    if isinstance(current, list) and re.fullmatch(r"-?\d+", key):
        index = int(key)
        if -len(current) <= index < len(current):
            return current[index]
    return None


def walk(container: Any, path: str) -> Any:
    """
    Получить значение по пути.

    "$." и пустой путь возвращают весь контейнер. Ключ "*" применяет
    остаток пути к каждому элементу списка и собирает непустые результаты.

    Args:
        container: dict/list или текст JSON
        path: Путь

    Returns:
        Any: Значение или None
    """
    data = as_json_container(container)
    if data is None:
        data = container if isinstance(container, (dict, list)) else None
    if data is None:
        return None
    return _walk_keys(data, split_path(path))


def _walk_keys(current: Any, keys: List[str]) -> Any:
    for position, key in enumerate(keys):
        if current is None:
            return None
        if key == "*":
            if not isinstance(current, list):
                return None
            rest = keys[position + 1 :]
            collected = []
            for item in current:
                value = _walk_keys(item, rest)
                if value is None:
                    continue
                if isinstance(value, list) and "*" in rest:
                    collected.extend(value)
                else:
                    collected.append(value)
            return collected
        current = _step(current, key)
    return current


def to_text(value: Any) -> str:
    """Строковое представление значения JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list) and all(
        isinstance(item, (str, int, float)) and not isinstance(item, bool)
        for item in value
    ):
        return ",".join(to_text(item) for item in value)
    return json.dumps(value, ensure_ascii=False)


def select_text(container: Any, path: str) -> str:
    """Значение по пути в виде строки (пустая строка, если ключа нет)."""
    return to_text(walk(container, path))
