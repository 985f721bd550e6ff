"""Outbound HTTP call block."""
from __future__ import annotations

import json
import logging
from typing import Any

import regex
import requests

from .base import (
    BlockExecutionResult,
    BlockExecutor,
    ConfigError,
    Variables,
    block_label,
    config_str,
    load_config,
    parse_choice,
    variable_key,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
AUTH_TYPES = ("none", "bearer", "basic", "basicAuth", "apiKeyHeader", "apiKeyQuery")

STATUS_VARIABLE = "http.status"
BODY_VARIABLE = "http.body"
OK_VARIABLE = "http.ok"

# RFC 7230 token, used for methods and header names.
_TOKEN = regex.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


def _header_text(name: str, value: str) -> str:
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        raise ConfigError(f"header {name!r} must contain only latin-1 characters") from None
    return value


def _encode_body(body: Any) -> bytes:
    if isinstance(body, str):
        return body.encode("utf-8")
    if isinstance(body, (dict, list)):
        return json.dumps(body).encode("utf-8")
    return str(body).encode("utf-8")


class HttpRequestBlockExecutor(BlockExecutor):
    """Sends the configured request synchronously and records the response."""

    block_type = "HttpRequest"

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, session: requests.Session | None = None):
        self.timeout = timeout
        self._session = session

    def _build_request(self, config) -> dict[str, Any]:
        method = (config_str(config, "method") or "GET").strip().upper()
        if not _TOKEN.fullmatch(method):
            raise ConfigError(f"invalid HTTP method {method!r}")
        url = config_str(config, "url").strip()
        headers: dict[str, str] = {}
        params: dict[str, str] = {}
        auth = None

        raw_headers = config.get("headers") or []
        if not isinstance(raw_headers, list):
            raise ConfigError("headers must be a list")
        for header in raw_headers:
            if not isinstance(header, dict):
                continue
            name = (header.get("name") or header.get("Name") or "").strip()
            if not name:
                continue
            if not _TOKEN.fullmatch(name):
                raise ConfigError(f"invalid header name {name!r}")
            value = header.get("value", header.get("Value"))
            headers[name] = _header_text(name, "" if value is None else str(value))

        auth_type = parse_choice(config.get("authType"), AUTH_TYPES, "none")
        api_key_name = config_str(config, "apiKeyName").strip()
        if auth_type == "bearer":
            token = config_str(config, "bearerToken").strip()
            if token:
                headers["Authorization"] = _header_text("Authorization", f"Bearer {token}")
        elif auth_type in ("basic", "basicAuth"):
            auth = (config_str(config, "basicUsername"), config_str(config, "basicPassword"))
        elif auth_type == "apiKeyHeader" and api_key_name:
            if not _TOKEN.fullmatch(api_key_name):
                raise ConfigError(f"invalid header name {api_key_name!r}")
            headers[api_key_name] = _header_text(api_key_name, config_str(config, "apiKeyValue"))
        elif auth_type == "apiKeyQuery" and api_key_name:
            params[api_key_name] = config_str(config, "apiKeyValue")

        request: dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": headers,
            "params": params or None,
            "auth": auth,
            "timeout": self.timeout,
        }
        body = config.get("body")
        if method != "GET" and body:
            request["data"] = _encode_body(body)
            if not any(key.lower() == "content-type" for key in headers):
                headers["Content-Type"] = "application/json; charset=utf-8"
        return request

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        name = block_label(block)
        try:
            config = load_config(block)
            request = self._build_request(config)
        except ConfigError as exc:
            return BlockExecutionResult(f"Invalid HTTP config for '{name}': {exc}", True)

        if not request["url"]:
            return BlockExecutionResult(f"HTTP request block '{name}' is missing a URL.", True)

        sender = self._session.request if self._session is not None else requests.request
        try:
            response = sender(**request)
        except (requests.RequestException, ValueError, UnicodeError) as exc:
            logger.warning("HTTP block %s failed: %s", name, exc)
            return BlockExecutionResult(f"HTTP request failed: {exc}", True)

        body = response.text
        succeeded = 200 <= response.status_code < 300
        variables[STATUS_VARIABLE] = str(response.status_code)
        variables[BODY_VARIABLE] = body
        variables[OK_VARIABLE] = "true" if succeeded else "false"

        response_variable = config_str(config, "responseVariable")
        if response_variable.strip():
            variables[variable_key(response_variable)] = body

        target = getattr(response, "url", None) or request["url"]
        return BlockExecutionResult(
            f"HTTP {request['method']} {target} => {response.status_code}",
            not succeeded,
        )
