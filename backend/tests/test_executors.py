"""Tests for the individual block executors."""
from __future__ import annotations

import json
import pathlib
import sys
from types import SimpleNamespace

import pytest
import requests
from requests.structures import CaseInsensitiveDict

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.flowforge.executors import build_executors, find_executor
from backend.flowforge.executors.calculation import CalculationBlockExecutor, parse_number
from backend.flowforge.executors.condition import ConditionBlockExecutor
from backend.flowforge.executors.default import DefaultBlockExecutor
from backend.flowforge.executors.http_request import HttpRequestBlockExecutor
from backend.flowforge.executors.parser import (
    ParserBlockExecutor,
    resolve_json_path,
    resolve_xml_path,
)
from backend.flowforge.executors.switch import SwitchBlockExecutor, normalize_label
from backend.flowforge.executors.text import (
    TextReplaceBlockExecutor,
    TextTransformBlockExecutor,
    apply_replacements,
)
from backend.flowforge.executors.wait import WaitBlockExecutor


def _block(type_name: str, config: object = None, name: str = "") -> SimpleNamespace:
    if isinstance(config, (dict, list)):
        config = json.dumps(config)
    return SimpleNamespace(id=1, name=name, type_name=type_name, json_config=config)


def _store(**values: str) -> CaseInsensitiveDict:
    return CaseInsensitiveDict(values)


def test_calculation_add_writes_result():
    block = _block(
        "Calculation",
        {"operation": "Add", "firstVariable": "a", "secondVariable": "b", "resultVariable": "c"},
    )
    variables = _store(a="3", b="4")

    result = CalculationBlockExecutor().execute(block, variables)

    assert variables["c"] == "7"
    assert result.description == "c = 3 + 4 => 7"
    assert result.error is False


def test_calculation_divide_by_zero_keeps_dividend():
    block = _block("Calculation", {"operation": "divide", "firstVariable": "a", "secondVariable": "b"})
    variables = _store(a="10", b="0")

    CalculationBlockExecutor().execute(block, variables)

    assert variables["a"] == "10"


def test_calculation_concat_and_lenient_numbers():
    concat = _block(
        "Calculation",
        {"Operation": "Concat", "FirstVariable": "x", "SecondVariable": "y", "ResultVariable": "z"},
    )
    variables = _store(x="foo", y="bar")
    CalculationBlockExecutor().execute(concat, variables)
    assert variables["z"] == "foobar"

    assert parse_number("1,5") == 1.5
    assert parse_number("abc") == 0.0
    assert parse_number(None) == 0.0


def test_calculation_missing_variables_read_as_empty():
    block = _block(
        "Calculation",
        {"operation": "Multiply", "firstVariable": "missing", "secondVariable": "b", "resultVariable": "r"},
    )
    variables = _store(b="5")

    CalculationBlockExecutor().execute(block, variables)

    assert variables["r"] == "0"


def test_executor_with_blank_config_is_not_applicable():
    executor = CalculationBlockExecutor()
    assert executor.can_execute(_block("Calculation", "  ")) is False
    assert executor.can_execute(_block("If", {"operation": "Add"})) is False
    assert executor.can_execute(_block("Calculation", {"operation": "Add"})) is True


def test_malformed_config_signals_error():
    result = CalculationBlockExecutor().execute(_block("Calculation", "{not json", name="Sum"), _store())

    assert result.error is True
    assert "Invalid config for block Sum" in result.description


@pytest.mark.parametrize(
    ("config", "variables", "expected_error"),
    [
        ({"first": "$total", "second": "100", "dataType": "Number", "operation": "GreaterThan"}, {"total": "150"}, False),
        ({"first": "$total", "second": "100", "dataType": "Number", "operation": "GreaterThan"}, {"total": "99"}, True),
        ({"first": "10", "second": "9", "dataType": "Number", "operation": "GreaterOrEqual"}, {}, False),
        ({"first": "10", "second": "9", "dataType": "String", "operation": "LessThan"}, {}, False),
        ({"first": "$name", "second": "alice", "operation": "equal"}, {"NAME": "alice"}, False),
        ({"first": "$name", "second": "bob", "operation": "NotEqual"}, {"name": "bob"}, True),
    ],
)
def test_condition_routes_on_comparison(config, variables, expected_error):
    result = ConditionBlockExecutor().execute(_block("If", config), _store(**variables))

    assert result.error is expected_error


def test_condition_description():
    block = _block("If", {"first": "$total", "second": "100", "dataType": "Number", "operation": "GreaterThan"})

    result = ConditionBlockExecutor().execute(block, _store(total="150"))

    assert result.description == "IF 150 > 100 => True"


def test_switch_describes_resolved_expression():
    result = SwitchBlockExecutor().execute(_block("Switch", {"expression": "$tier"}), _store(tier="gold"))

    assert result.description == "SWITCH $tier => gold"
    assert result.error is False


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("#3 · gold", "gold"),
        ("#1: silver ", "silver"),
        ("  bronze  ", "bronze"),
        ("#2 - $tier", "gold"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_label(label, expected):
    assert normalize_label(label, _store(tier="gold")) == expected


class _FakeSession:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict[str, object]] = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def test_http_request_success_sets_variables():
    session = _FakeSession(SimpleNamespace(status_code=200, text='{"ok": true}', url="https://api.test/items"))
    block = _block(
        "HttpRequest",
        {
            "method": "post",
            "url": "https://api.test/items",
            "headers": [{"name": "X-Trace", "value": "abc"}],
            "body": '{"a": 1}',
            "authType": "bearer",
            "bearerToken": "secret",
            "responseVariable": "$reply",
        },
    )
    variables = _store()

    result = HttpRequestBlockExecutor(timeout=3, session=session).execute(block, variables)

    assert result.error is False
    assert result.description == "HTTP POST https://api.test/items => 200"
    assert variables["http.status"] == "200"
    assert variables["http.ok"] == "true"
    assert variables["http.body"] == '{"ok": true}'
    assert variables["reply"] == '{"ok": true}'

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["timeout"] == 3
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["headers"]["X-Trace"] == "abc"
    assert call["headers"]["Content-Type"].startswith("application/json")
    assert call["data"] == b'{"a": 1}'


def test_http_request_api_key_query_and_basic_auth():
    session = _FakeSession(SimpleNamespace(status_code=204, text="", url=None))
    query_block = _block(
        "HttpRequest",
        {"url": "https://api.test", "authType": "apiKeyQuery", "apiKeyName": "key", "apiKeyValue": "v"},
    )
    HttpRequestBlockExecutor(session=session).execute(query_block, _store())
    assert session.calls[-1]["params"] == {"key": "v"}
    assert "data" not in session.calls[-1]

    basic_block = _block(
        "HttpRequest",
        {"url": "https://api.test", "authType": "basicAuth", "basicUsername": "u", "basicPassword": "p"},
    )
    HttpRequestBlockExecutor(session=session).execute(basic_block, _store())
    assert session.calls[-1]["auth"] == ("u", "p")


def test_http_request_non_success_status_signals_error():
    session = _FakeSession(SimpleNamespace(status_code=404, text="missing", url="https://api.test"))
    variables = _store()

    result = HttpRequestBlockExecutor(session=session).execute(
        _block("HttpRequest", {"url": "https://api.test"}), variables
    )

    assert result.error is True
    assert variables["http.ok"] == "false"
    assert variables["http.status"] == "404"


def test_http_request_transport_failure_signals_error():
    session = _FakeSession(error=requests.ConnectionError("refused"))

    result = HttpRequestBlockExecutor(session=session).execute(
        _block("HttpRequest", {"url": "https://api.test"}), _store()
    )

    assert result.error is True
    assert result.description.startswith("HTTP request failed")


@pytest.mark.parametrize(
    "config, message",
    [
        ({"method": "GE T"}, "invalid HTTP method 'GE T'"),
        ({"headers": [{"name": "X-Note", "value": "zażółć"}]}, "latin-1"),
        ({"headers": [{"name": "Bad Name", "value": "x"}]}, "invalid header name"),
        ({"authType": "bearer", "bearerToken": "tökén€"}, "latin-1"),
    ],
)
def test_http_request_unsendable_config_signals_error(config, message):
    session = _FakeSession(SimpleNamespace(status_code=200, text="", url=None))

    result = HttpRequestBlockExecutor(session=session).execute(
        _block("HttpRequest", {"url": "https://api.test", **config}, name="Call"), _store()
    )

    assert result.error is True
    assert result.description.startswith("Invalid HTTP config for 'Call'")
    assert message in result.description
    assert session.calls == []


def test_http_request_send_value_errors_signal_error():
    session = _FakeSession(error=ValueError("Method cannot contain non-token characters"))

    result = HttpRequestBlockExecutor(session=session).execute(
        _block("HttpRequest", {"url": "https://api.test"}), _store()
    )

    assert result.error is True
    assert result.description.startswith("HTTP request failed")


def test_http_request_structured_body_is_sent_as_json():
    session = _FakeSession(SimpleNamespace(status_code=201, text="", url=None))

    HttpRequestBlockExecutor(session=session).execute(
        _block("HttpRequest", {"url": "https://api.test", "method": "POST", "body": {"a": 1, "tags": ["x"]}}),
        _store(),
    )

    assert json.loads(session.calls[0]["data"]) == {"a": 1, "tags": ["x"]}
    assert session.calls[0]["headers"]["Content-Type"].startswith("application/json")


def test_http_request_without_url_signals_error():
    result = HttpRequestBlockExecutor(session=_FakeSession()).execute(
        _block("HttpRequest", {"method": "GET"}, name="Fetch"), _store()
    )

    assert result.error is True
    assert "missing a URL" in result.description


def test_resolve_json_path_variants():
    document = {"orders": [{"id": 7, "tags": ["a", "b"]}], "status": "ok", "flag": True, "price": 2.5}

    assert resolve_json_path(document, "$.orders[0].id") == "7"
    assert resolve_json_path(document, ".orders[0].tags[1]") == "b"
    assert resolve_json_path(document, "response.status", source_name="response") == "ok"
    assert resolve_json_path(document, "flag") == "true"
    assert resolve_json_path(document, "price") == "2.5"
    assert resolve_json_path(document, "orders[5].id") is None
    assert resolve_json_path(document, "missing") is None
    assert resolve_json_path([[1, 2], [3]], "[0][1]") == "2"


def test_resolve_json_path_keeps_segment_when_root_has_that_key():
    document = {"response": {"code": 1}}

    assert resolve_json_path(document, "response.code", source_name="response") == "1"


def test_resolve_xml_path_variants():
    import xml.etree.ElementTree as ET

    root = ET.fromstring("<order id='9'><item><name>Tea</name></item></order>")

    assert resolve_xml_path(root, "/order/item/name") == "Tea"
    assert resolve_xml_path(root, "item/name") == "Tea"
    assert resolve_xml_path(root, "order.item.name") == "Tea"
    assert resolve_xml_path(root, "//name") == "Tea"
    assert resolve_xml_path(root, "/order/@id") == "9"
    assert resolve_xml_path(root, "item/missing") is None


def test_parser_json_mappings_and_summary():
    payload = json.dumps({"a": 1, "b": 2, "c": "x" * 80, "d": 4})
    block = _block(
        "Parser",
        {
            "format": "JSON",
            "sourceVariable": "$payload",
            "mappings": [
                {"path": "a", "variable": "first"},
                {"path": "b", "variable": "second"},
                {"path": "c", "variable": "long"},
                {"path": "d", "variable": "fourth"},
                {"path": "missing", "variable": "gone"},
            ],
        },
    )
    variables = _store(payload=payload)

    result = ParserBlockExecutor().execute(block, variables)

    assert result.error is False
    assert variables["first"] == "1"
    assert variables["long"] == "x" * 80
    assert variables["gone"] == ""
    assert result.description.startswith("Parsed 5 value(s) from JSON: ")
    assert "c -> long = " + "x" * 60 + "…" in result.description
    assert result.description.endswith("… (+2 more)")


def test_parser_xml_mappings():
    block = _block(
        "Parser",
        {
            "format": "xml",
            "sourceVariable": "doc",
            "mappings": [{"path": "/order/@id", "variable": "orderId"}],
        },
    )
    variables = _store(doc="<order id='12'/>")

    result = ParserBlockExecutor().execute(block, variables)

    assert variables["orderId"] == "12"
    assert result.description == "Parsed 1 value(s) from XML: /order/@id -> orderId = 12"


def test_parser_errors():
    executor = ParserBlockExecutor()

    missing_source = executor.execute(_block("Parser", {"mappings": []}, name="P"), _store())
    assert missing_source.error is True

    missing_variable = executor.execute(_block("Parser", {"sourceVariable": "body"}), _store())
    assert missing_variable.error is True
    assert "could not find variable 'body'" in missing_variable.description

    bad_json = executor.execute(_block("Parser", {"sourceVariable": "body"}), _store(body="{oops"))
    assert bad_json.error is True
    assert bad_json.description.startswith("JSON parse failed")

    bad_xml = executor.execute(
        _block("Parser", {"sourceVariable": "body", "format": "xml"}), _store(body="<open>")
    )
    assert bad_xml.error is True


def test_text_transform_operations():
    executor = TextTransformBlockExecutor()
    variables = _store(name="  Ada  ")

    executor.execute(_block("TextTransform", {"operation": "upper", "inputVariable": "name", "resultVariable": "out"}), variables)
    assert variables["out"] == "  ADA  "

    result = executor.execute(_block("TextTransform", {"inputVariable": "empty", "input": "  literal "}), variables)
    assert variables["result"] == "literal"
    assert result.description == "TextTransform Trim -> result"

    assert executor.can_execute(_block("TextTransform", "")) is True


def test_text_replace_rules():
    block = _block(
        "TextReplace",
        {
            "input": "mail john@example today",
            "resultVariable": "$out",
            "replacements": [
                {"from": r"(\w+)@(\w+)", "to": "$2 at $1", "useRegex": True},
                {"from": "TODAY", "to": "tomorrow", "ignoreCase": True},
                {"from": "(", "to": "x", "useRegex": True},
                {"from": "", "to": "ignored"},
            ],
        },
    )
    variables = _store()

    result = TextReplaceBlockExecutor().execute(block, variables)

    assert variables["out"] == "mail example at john tomorrow"
    assert result.description == "TextReplace -> out (4 rule(s))"


def test_apply_replacements_literal_is_case_sensitive():
    assert apply_replacements("Aa", [{"from": "a", "to": "b"}]) == "Ab"
    assert apply_replacements("a$b", [{"from": "$", "to": "\\", "ignoreCase": True}]) == "a\\b"


def test_wait_sleeps_clipped_delay():
    slept: list[float] = []
    executor = WaitBlockExecutor(max_delay_ms=50, sleep=slept.append)

    result = executor.execute(_block("Wait", {"delayMs": 1000}), _store())

    assert slept == [0.05]
    assert result.description == "Waited 50 ms"


def test_wait_variable_overrides_and_skip():
    slept: list[float] = []
    executor = WaitBlockExecutor(skip=True, sleep=slept.append)

    result = executor.execute(_block("Wait", {"delayMs": 10, "delayVariable": "$pause"}), _store(pause="20"))

    assert slept == []
    assert result.description == "Wait 20 ms skipped"


@pytest.mark.parametrize(
    "config, variables",
    [({"delayMs": "NaN"}, {}), ({"delayMs": 10, "delayVariable": "pause"}, {"pause": "nan"})],
)
def test_wait_non_finite_delay_reads_as_zero(config, variables):
    slept: list[float] = []
    executor = WaitBlockExecutor(sleep=slept.append)

    result = executor.execute(_block("Wait", config), _store(**variables))

    assert result.error is False
    assert result.description == "Waited 0 ms"
    assert slept == []


def test_default_executor_and_registry_order():
    executors = build_executors()

    assert isinstance(executors[-1], DefaultBlockExecutor)
    start = _block("Start", None, name="Begin")
    assert isinstance(find_executor(start, executors), DefaultBlockExecutor)
    assert find_executor(start, executors).execute(start, _store()).description == "Executed block Begin"

    blank_calculation = _block("Calculation", "")
    assert isinstance(find_executor(blank_calculation, executors), DefaultBlockExecutor)
    assert isinstance(
        find_executor(_block("Calculation", {"operation": "Add"}), executors), CalculationBlockExecutor
    )
