"""
Хранилище авторизационных данных (cookie и токены).

Cookie привязаны к источнику и к origin URL, поэтому скрипт одного
источника не видит cookie другого, а запрос к чужому домену не
получает cookie сайта.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlsplit
import logging

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "qttoken"


def url_origin(url: str) -> str:
    """Origin URL в виде scheme://host[:port]."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}".lower()


class AuthStore(ABC):
    """Интерфейс хранилища авторизации."""

    @abstractmethod
    def get_cookie_for_url(self, source_id: str, url: str) -> str:
        """
        Получить строку Cookie для запроса.

        Args:
            source_id: Идентификатор источника
            url: URL запроса

        Returns:
            str: Значение заголовка Cookie или пустая строка
        """
        pass

    @abstractmethod
    def set_cookie(self, source_id: str, origin: str, cookie: str) -> None:
        pass


class InMemoryAuthStore(AuthStore):
    """Хранилище авторизации в памяти."""

    def __init__(self):
        # source_id -> {origin или host -> cookie}
        self._cookies: Dict[str, Dict[str, str]] = {}
        self._tokens: Dict[str, str] = {}

    def set_cookie(self, source_id: str, origin: str, cookie: str) -> None:
        key = url_origin(origin) or origin.lower()
        self._cookies.setdefault(source_id, {})[key] = cookie
        logger.debug(f"Cookie для {source_id} сохранены ({key})")

    def set_token(self, source_id: str, token: str) -> None:
        self._tokens[source_id] = token

    def get_token(self, source_id: str) -> Optional[str]:
        return self._tokens.get(source_id)

    def get_cookie_for_url(self, source_id: str, url: str) -> str:
        cookies = self._cookies.get(source_id, {})
        origin = url_origin(url)
        cookie = ""
        if origin:
            # Сначала точный origin, затем просто хост
            cookie = cookies.get(origin) or cookies.get(urlsplit(url).netloc.lower(), "")

        token = self._tokens.get(source_id)
        if token and f"{TOKEN_COOKIE}=" not in cookie:
            token_cookie = f"{TOKEN_COOKIE}={token}"
            cookie = f"{cookie}; {token_cookie}" if cookie else token_cookie

        return cookie


class FileAuthStore(InMemoryAuthStore):
    """
    Хранилище авторизации в JSON-файле.

    Формат файла - список записей:
    [{"sourceId": "...", "cookies": {"https://host": "a=1"}, "tokens": {"key": "..."}}]
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self.load()
        else:
            logger.warning(f"Файл авторизации не найден: {self.path}")

    def load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            entries = json.load(f)

        if not isinstance(entries, list):
            raise ValueError(f"Файл авторизации {self.path} должен содержать список")

        for entry in entries:
            source_id = entry.get("sourceId")
            if not source_id:
                logger.warning("Запись авторизации без sourceId пропущена")
                continue
            for origin, cookie in (entry.get("cookies") or {}).items():
                self.set_cookie(source_id, origin, cookie)
            token = (entry.get("tokens") or {}).get("key")
            if token:
                self.set_token(source_id, token)

        logger.info(f"Авторизация загружена из {self.path}: {len(entries)} записей")

    def save(self) -> None:
        source_ids = set(self._cookies) | set(self._tokens)
        entries = []
        for source_id in sorted(source_ids):
            entry = {"sourceId": source_id, "cookies": self._cookies.get(source_id, {})}
            if source_id in self._tokens:
                entry["tokens"] = {"key": self._tokens[source_id]}
            entries.append(entry)

        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2, ensure_ascii=False)

        logger.debug(f"Авторизация сохранена в {self.path}")
