"""Перенаправление запросов через прокси-базу источника."""

from typing import Optional
from urllib.parse import quote

URL_PLACEHOLDER = "{url}"


def rewrite_via_proxy_base(url: str, proxy_base: Optional[str]) -> str:
    """
    Переписать URL для запроса через прокси.

    Если proxy_base содержит "{url}", туда подставляется закодированный URL,
    иначе URL дописывается к базе через "/".

    Args:
        url: Исходный URL
        proxy_base: База прокси источника

    Returns:
        str: URL для фактического запроса
    """
    if not proxy_base or not proxy_base.strip():
        return url

    base = proxy_base.strip()
    if url.startswith(base.rstrip("/")):
        return url
    if URL_PLACEHOLDER in base:
        return base.replace(URL_PLACEHOLDER, quote(url, safe=""))
    return f"{base.rstrip('/')}/{url}"
