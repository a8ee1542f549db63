"""
Поверхность возможностей, доступная скриптам источника.

Скрипту видны только объекты, построенные здесь явно: java, cookie,
cache, source, hosts. Python-функции подключаются через add_callable
и принимают/возвращают только строки; структурированные значения
передаются как JSON.
"""

import base64
import binascii
import hashlib
import json
import re
from typing import Any, Callable, Dict, Optional, Sequence
from urllib.parse import urlsplit
import logging

import quickjs

from ..config.base import SourceDefinition
from ..integration.auth import AuthStore
from ..integration.storage import BoundedCache, InMemoryVariableStore, VariableStore

logger = logging.getLogger(__name__)
script_logger = logging.getLogger("booksource_core.script")

CAPABILITY_PRELUDE = r"""
var java = {
    log: function (m) { __bs_log("log", String(m)); },
    toast: function (m) { __bs_log("toast", String(m)); },
    longToast: function (m) { __bs_log("toast", String(m)); },
    getCookie: function (u) { return __bs_cookie(String(u)); },
    put: function (k, v) {
        __bs_put(String(k), JSON.stringify(v === undefined ? null : v));
        return v;
    },
    get: function (k) {
        var raw = __bs_get(String(k));
        return raw === null || raw === undefined ? null : JSON.parse(raw);
    },
    getString: function (rule) { return __bs_get_string(String(rule)); },
    base64Encode: function (s) { return __bs_b64encode(String(s)); },
    base64Decode: function (s) { return __bs_b64decode(String(s)); },
    md5Encode: function (s) { return __bs_md5(String(s)); },
    hexDecodeToString: function (s) { return __bs_hex_decode(String(s)); }
};
var cookie = { getCookie: java.getCookie };
var cache = {
    get: function (k) { return __bs_cache_get(String(k)); },
    put: function (k, v) { __bs_cache_put(String(k), String(v)); },
    remove: function (k) { __bs_cache_remove(String(k)); }
};
var hosts = Object.freeze(__bs_hosts);
var source = (function (info) {
    info.getVariable = function () { return __bs_get_variable(); };
    info.setVariable = function (v) { __bs_set_variable(String(v)); };
    info.getKey = function () { return info.id; };
    return Object.freeze(info);
})(__bs_source);
function getArguments(openArgument, name) {
    var args = {};
    try { args = JSON.parse(openArgument); } catch (e) { args = {}; }
    if (!args.server && hosts.length) { args.server = hosts[0]; }
    return name ? args[name] : args;
}
"""

DEFAULT_HELPERS = r"""
if (typeof decrypt !== "function") {
    globalThis.decrypt = function (text) { return String(text == null ? "" : text); };
}
if (typeof cleanHTML !== "function") {
    globalThis.cleanHTML = function (html) {
        var noHeader = String(html || "").replace(/<header[^>]*>[\s\S]*?<\/header>/gi, "");
        var noTags = noHeader.replace(/<(?!\/?p\b|\/?img\b)[^>]+>/gi, "");
        return noTags.replace(/<\/?p[^>]*>/g, "\n").replace(/\n+/g, "\n").trim();
    };
}
if (typeof getComments !== "function") {
    globalThis.getComments = function (content) { return String(content == null ? "" : content); };
}
"""


def _b64encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _b64decode(text: str) -> str:
    cleaned = text.strip()
    try:
        raw = base64.b64decode(cleaned + "=" * (-len(cleaned) % 4))
    except (binascii.Error, ValueError):
        raw = base64.urlsafe_b64decode(cleaned + "=" * (-len(cleaned) % 4))
    return raw.decode("utf-8", "replace")


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _hex_decode(text: str) -> str:
    if re.search(r"[^\x00-\x7f]", text):
        return text
    if re.fullmatch(r"[0-9a-fA-F]+", text) and len(text) % 2 == 0:
        return bytes.fromhex(text).decode("utf-8", "replace")
    return text


class ScriptCapabilities:
    """Возможности одного запуска скрипта."""

    def __init__(
        self,
        source: SourceDefinition,
        hosts: Sequence[str],
        shared_variables: Dict[str, Any],
        auth_store: Optional[AuthStore] = None,
        variable_store: Optional[VariableStore] = None,
        cache: Optional[BoundedCache] = None,
        rule_reader: Optional[Callable[[str], str]] = None,
    ):
        self.source = source
        self.hosts = tuple(hosts)
        self.shared_variables = shared_variables
        self.auth_store = auth_store
        self.variable_store = variable_store or InMemoryVariableStore()
        self.cache = cache if cache is not None else BoundedCache()
        self.rule_reader = rule_reader

    def install(self, context: quickjs.Context) -> None:
        """Подключить возможности к контексту QuickJS."""
        for name, func in self._callables().items():
            context.add_callable(name, func)

        info = {
            "id": self.source.id,
            "name": self.source.name,
            "url": self.source.url,
            "group": self.source.group or "",
        }
        context.eval(
            f"var __bs_source = {json.dumps(info)};\n"
            f"var __bs_hosts = {json.dumps(list(self.hosts))};"
        )
        context.eval(CAPABILITY_PRELUDE)

    def _callables(self) -> Dict[str, Callable]:
        return {
            "__bs_log": self._log,
            "__bs_cookie": self._cookie,
            "__bs_put": self._put,
            "__bs_get": self._get,
            "__bs_get_string": self._get_string,
            "__bs_b64encode": _b64encode,
            "__bs_b64decode": _b64decode,
            "__bs_md5": _md5,
            "__bs_hex_decode": _hex_decode,
            "__bs_cache_get": self.cache.get,
            "__bs_cache_put": self.cache.put,
            "__bs_cache_remove": self.cache.remove,
            "__bs_get_variable": self.get_variable,
            "__bs_set_variable": self.set_variable,
        }

    def _log(self, level: str, message: str) -> None:
        if level == "toast":
            script_logger.info(f"[{self.source.id}] {message}")
        else:
            script_logger.debug(f"[{self.source.id}] {message}")

    def _cookie(self, url: str) -> str:
        if self.auth_store is None:
            return ""
        target = url.strip()
        if not urlsplit(target).scheme:
            target = f"https://{target.lstrip('/')}"
        return self.auth_store.get_cookie_for_url(self.source.id, target)

    def _put(self, key: str, raw: str) -> None:
        self.shared_variables[key] = json.loads(raw)

    def _get(self, key: str) -> Optional[str]:
        if key not in self.shared_variables:
            return None
        return json.dumps(self.shared_variables[key], ensure_ascii=False, default=str)

    def _get_string(self, rule: str) -> str:
        if self.rule_reader is None:
            return ""
        return self.rule_reader(rule)

    def get_variable(self) -> str:
        """Постоянная переменная источника (значение по умолчанию - JSON с сервером)."""
        stored = self.variable_store.get(self.source.storage_key)
        if stored is not None:
            return stored
        if self.source.variable:
            return self.source.variable
        return json.dumps({"server": self.hosts[0] if self.hosts else ""})

    def set_variable(self, value: str) -> None:
        self.variable_store.put(self.source.storage_key, value)
