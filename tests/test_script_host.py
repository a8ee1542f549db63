"""
Тесты песочницы скриптов и извлечения списка хостов.
"""

import base64
import json

import pytest

from booksource_core.config.base import EngineConfig, SourceDefinition
from booksource_core.errors import ScriptError, ScriptTimeoutError
from booksource_core.integration.auth import InMemoryAuthStore
from booksource_core.integration.storage import InMemoryVariableStore
from booksource_core.parsers.context import EvaluationContext
from booksource_core.sandbox.endpoints import extract_host_list
from booksource_core.sandbox.host import ScriptHost


@pytest.fixture
def source():
    return SourceDefinition(
        id="js-source",
        name="Скриптовый источник",
        url="https://site.example.com",
        comment="var host = ['https://a.example.com', 'https://b.example.com'];",
        jsLib="function double(x) { return x * 2; }",
    )


@pytest.fixture
def ctx(source):
    return EvaluationContext(source=source, base_url=source.url, key="ключ", page=2)


class TestScriptHostRun:
    """Тесты ScriptHost.run."""

    def test_last_expression(self, script_host, ctx):
        """Результат - значение последнего выражения."""
        assert script_host.run("1 + 2", ctx) == 3

    def test_result_binding(self, script_host, ctx):
        """Входное значение доступно как result."""
        assert script_host.run("result.toUpperCase()", ctx, result="abc") == "ABC"

    def test_object_result(self, script_host, ctx):
        """Объект возвращается словарем."""
        value = script_host.run("({a: 1, b: [1, 2]})", ctx)
        assert value == {"a": 1, "b": [1, 2]}

    def test_trailing_assignment(self, script_host, ctx):
        """Последнее присваивание становится результатом."""
        value = script_host.run("var x = 'a';\nvar out = x + 'b'", ctx)
        assert value == "ab"

    def test_one_line_expression_after_assignment(self, script_host, ctx):
        """Однострочный скрипт: результат - последнее выражение, а не переменная."""
        value = script_host.run(
            "var d=JSON.parse(result);d.data.content",
            ctx,
            result='{"data":{"content":"TEXT"}}',
        )
        assert value == "TEXT"

    def test_one_line_trailing_assignment(self, script_host, ctx):
        """Присваивание последним оператором строки возвращает значение."""
        assert script_host.run("var a = 2; var b = a * 3;", ctx) == 6

    def test_prepare_body(self):
        """Имя переменной дописывается только за присваиванием."""
        assert ScriptHost.prepare_body("var d=1;d + 1") == "var d=1;d + 1"
        assert ScriptHost.prepare_body("x = 1; x == 1") == "x = 1; x == 1"
        assert ScriptHost.prepare_body("a = 1;\nout = a") == "a = 1;\nout = a\n;out"
        assert ScriptHost.prepare_body("out = 1; return out") == "out = 1; return out"

    def test_bindings(self, script_host, ctx):
        """key, page, baseUrl доступны скрипту."""
        value = script_host.run("key + '|' + page + '|' + baseUrl", ctx)
        assert value == "ключ|2|https://site.example.com"

    def test_js_lib_loaded(self, script_host, ctx):
        """Функции jsLib доступны скрипту."""
        assert script_host.run("double(21)", ctx) == 42

    def test_hosts_visible(self, script_host, ctx):
        """Список хостов из комментария доступен как hosts."""
        assert script_host.run("hosts[1]", ctx) == "https://b.example.com"

    def test_exception_is_script_error(self, script_host, ctx):
        """Исключение скрипта превращается в ScriptError."""
        with pytest.raises(ScriptError):
            script_host.run("throw new Error('boom')", ctx)

    def test_timeout(self, ctx):
        """Бесконечный цикл прерывается по лимиту времени."""
        host = ScriptHost(config=EngineConfig(script_timeout_ms=200))
        with pytest.raises(ScriptTimeoutError):
            host.run("while (true) {}", ctx)

    def test_timeout_is_script_error(self, ctx):
        """Таймаут - частный случай ScriptError."""
        host = ScriptHost(config=EngineConfig(script_timeout_ms=100))
        with pytest.raises(ScriptError):
            host.run("for (;;) {}", ctx, timeout_ms=100)

    def test_no_host_access(self, script_host, ctx):
        """Скрипту недоступны require и process."""
        assert script_host.run("typeof require + typeof process", ctx) == "undefinedundefined"

    def test_fresh_context_per_run(self, script_host, ctx):
        """Глобальные переменные не переживают запуск."""
        script_host.run("var leaked = 1; leaked", ctx)
        assert script_host.run("typeof leaked", ctx) == "undefined"


class TestCapabilities:
    """Тесты поверхности возможностей."""

    def test_put_get_shared(self, script_host, ctx):
        """java.put/get работают через общие переменные запуска."""
        script_host.run("java.put('book', {id: 5})", ctx)
        assert ctx.shared_variables["book"] == {"id": 5}
        assert script_host.run("java.get('book').id", ctx) == 5

    def test_base64_and_md5(self, script_host, ctx):
        """Кодирование строк."""
        encoded = script_host.run("java.base64Encode('книга')", ctx)
        assert base64.b64decode(encoded).decode("utf-8") == "книга"
        assert script_host.run("java.base64Decode(java.base64Encode('x'))", ctx) == "x"
        assert script_host.run("java.md5Encode('a')", ctx) == "0cc175b9c0f1b6a831c399e269772661"

    def test_cookie(self, ctx):
        """cookie.getCookie читает хранилище авторизации."""
        auth = InMemoryAuthStore()
        auth.set_cookie("js-source", "https://a.example.com", "sid=1")
        host = ScriptHost(auth_store=auth)
        assert host.run("cookie.getCookie('a.example.com')", ctx) == "sid=1"

    def test_source_variable_default(self, script_host, ctx):
        """Переменная источника по умолчанию содержит первый хост."""
        value = script_host.run("JSON.parse(source.getVariable()).server", ctx)
        assert value == "https://a.example.com"

    def test_source_variable_persisted(self, ctx):
        """setVariable сохраняет значение во внешнем хранилище."""
        store = InMemoryVariableStore()
        host = ScriptHost(variable_store=store)
        host.run("source.setVariable('{\"token\": \"t\"}')", ctx)
        assert json.loads(store.get("js-source")) == {"token": "t"}
        assert host.run("JSON.parse(source.getVariable()).token", ctx) == "t"

    def test_source_is_frozen(self, script_host, ctx):
        """Объект source нельзя изменить."""
        assert script_host.run("source.id = 'x'; source.id", ctx) == "js-source"

    def test_get_string(self, script_host, ctx):
        """java.getString вызывает переданный вычислитель правил."""
        value = script_host.run(
            "java.getString('$.name')", ctx, rule_reader=lambda rule: f"<{rule}>"
        )
        assert value == "<$.name>"

    def test_default_helpers(self, script_host, ctx):
        """decrypt и cleanHTML доступны по умолчанию."""
        assert script_host.run("decrypt('abc')", ctx) == "abc"
        assert script_host.run("cleanHTML('<div><p>a</p></div>')", ctx) == "a"


class TestTemplates:
    """Тесты раскрытия шаблонов {{...}}."""

    def test_builtin_names(self, script_host, ctx):
        """key, page, page+N, baseUrl."""
        text = script_host.expand_templates("/s?q={{key}}&p={{page}}&n={{page+1}}", ctx)
        assert text == "/s?q=ключ&p=2&n=3"

    def test_source_field(self, script_host, ctx):
        """source.url раскрывается из описания источника."""
        assert script_host.expand_templates("{{source.url}}/a", ctx) == "https://site.example.com/a"

    def test_js_expression(self, script_host, ctx):
        """Прочие выражения вычисляются в песочнице."""
        assert script_host.expand_templates("n={{1 + 1}}", ctx) == "n=2"

    def test_error_keeps_text(self, script_host, ctx):
        """Выражение с ошибкой остается в тексте."""
        assert script_host.expand_templates("{{undefinedName.x}}", ctx) == "{{undefinedName.x}}"

    def test_lookup(self, script_host, ctx):
        """lookup разрешает выражение до песочницы."""
        text = script_host.expand_templates("id={{$.id}}", ctx, lookup=lambda e: "7")
        assert text == "id=7"


class TestHostList:
    """Тесты извлечения списка хостов."""

    def test_host_array(self):
        """Литерал массива host."""
        text = "// servers\nconst host = [\"https://a\", 'https://b'];\nfunction x() {}"
        assert extract_host_list(text) == ("https://a", "https://b")

    def test_encoded_endpoints(self):
        """Массив base64-строк, некорректные значения пропускаются."""
        a = base64.b64encode(b"https://a.example.com").decode()
        bad = base64.b64encode(b"ftp://nope").decode()
        text = f"const encodedEndpoints = ['{a}', \"{bad}\"];"
        assert extract_host_list(text) == ("https://a.example.com",)

    def test_no_hosts(self):
        """Нет ни одной формы - пустой список."""
        assert extract_host_list("function f() { return 1; }") == ()
        assert extract_host_list("") == ()

    def test_surrounding_code_not_executed(self):
        """Вычисляется только литерал, окружающий код не исполняется."""
        text = "while (true) {}\nconst host = ['https://safe'];"
        assert extract_host_list(text) == ("https://safe",)
