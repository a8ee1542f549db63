"""
Загрузка ответов источников через aiohttp.

Повторов нет: таймаут или неуспешный статус сразу дают NetworkError,
повтор остается на вызывающей стороне.
"""

import asyncio
from typing import Optional
import logging

import aiohttp

from ..errors import NetworkError
from ..integration.proxy import rewrite_via_proxy_base
from ..parsers.request import RequestDescriptor

logger = logging.getLogger(__name__)


class HttpFetcher:
    """HTTP-клиент движка."""

    def __init__(self, timeout: float = 30.0, session: Optional[aiohttp.ClientSession] = None):
        """
        Инициализация клиента.

        Args:
            timeout: Таймаут запроса (секунды)
            session: Внешняя сессия aiohttp (иначе создается на каждый запрос)
        """
        self.timeout = timeout
        self.session = session
        self.logger = logging.getLogger(f"{__name__}.HttpFetcher")

    async def fetch(
        self,
        request: RequestDescriptor,
        proxy_base: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Выполнить запрос и вернуть тело ответа.

        Args:
            request: Описание запроса
            proxy_base: База прокси источника
            timeout: Таймаут (по умолчанию - таймаут клиента)

        Returns:
            str: Тело ответа

        Raises:
            NetworkError: Неуспешный статус, таймаут или ошибка транспорта
        """
        target = rewrite_via_proxy_base(request.url, proxy_base)
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)
        body = request.body.encode("utf-8") if request.body is not None else None

        self.logger.debug(f"{request.method} {target}")
        try:
            if self.session is not None:
                return await self._send(self.session, request, target, body, client_timeout)
            async with aiohttp.ClientSession() as session:
                return await self._send(session, request, target, body, client_timeout)
        except asyncio.TimeoutError as e:
            self.logger.error(f"Таймаут запроса {request.url}")
            raise NetworkError(f"Таймаут запроса {request.url}", url=request.url) from e
        except aiohttp.ClientError as e:
            self.logger.error(f"Ошибка клиента для {request.url}: {e}")
            raise NetworkError(
                f"Ошибка запроса {request.url}: {e}", url=request.url
            ) from e

    async def _send(self, session, request, target, body, client_timeout) -> str:
        async with session.request(
            request.method,
            target,
            headers=request.headers,
            data=body,
            timeout=client_timeout,
        ) as response:
            if not 200 <= response.status < 300:
                raise NetworkError(
                    f"Не удалось загрузить {request.url}. Статус: {response.status}",
                    status=response.status,
                    url=request.url,
                )
            raw = await response.read()
            try:
                return raw.decode(response.charset or "utf-8", errors="replace")
            except LookupError:
                return raw.decode("utf-8", errors="replace")
