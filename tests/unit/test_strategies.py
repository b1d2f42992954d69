"""Tests for body serialization, strategy selection and strategy execution."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from patchright.async_api import Error as PlaywrightError

from browse_bridge.core.errors import RedirectLimitError, TransportError
from browse_bridge.core.schemas import RequestSpec, Strategy
from browse_bridge.http.scripts import FETCH_SCRIPT
from browse_bridge.http.strategies import (
    Dispatcher,
    GatewayStrategy,
    NavigationStrategy,
    ScriptStrategy,
    serialize_body,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _spec(url: str = "https://www.example.com/api", method: str = "POST", **kw: object) -> RequestSpec:
    return RequestSpec(url=url, method=method, **kw)  # type: ignore[arg-type]


def _script_ok(
    *,
    status: int = 200,
    text: str = '{"ok": true}',
    content_type: str = "application/json",
    entries: list[list[str]] | None = None,
) -> dict[str, object]:
    return {
        "status": status,
        "ok": status < 400,
        "redirected": False,
        "contentType": content_type,
        "text": text,
        "headerTiers": {
            "entries": entries if entries is not None else [["content-type", content_type]],
            "common": None,
            "essential": None,
        },
    }


def _api_response(
    *,
    status: int = 200,
    headers: dict[str, str] | None = None,
    text: str = "",
    url: str = "",
) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.url = url
    response.headers = headers or {}
    response.text = AsyncMock(return_value=text)
    response.dispose = AsyncMock()
    return response


# ---------------------------------------------------------------------------
# TestSerializeBody
# ---------------------------------------------------------------------------


class TestSerializeBody:
    def test_none(self) -> None:
        headers: dict[str, str] = {}
        assert serialize_body(None, headers) is None
        assert headers == {}

    def test_string_raw(self) -> None:
        headers: dict[str, str] = {}
        assert serialize_body("a=1&b=2", headers) == "a=1&b=2"
        assert headers == {}

    def test_bytes_raw(self) -> None:
        assert serialize_body(b"\x00\x01", {}) == b"\x00\x01"

    def test_form_encoded(self) -> None:
        headers = {"Content-Type": "application/x-www-form-urlencoded; charset=UTF-8"}
        assert serialize_body({"user": "a b", "otp": "12"}, headers) == "user=a+b&otp=12"

    def test_form_encoded_sequence_values(self) -> None:
        headers = {"content-type": "application/x-www-form-urlencoded"}
        assert serialize_body({"seat": ["1", "2"]}, headers) == "seat=1&seat=2"

    def test_form_encoded_scalars_use_browser_spellings(self) -> None:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        body = {"save": True, "upi": None, "amt": 10.5, "retry": False}
        assert serialize_body(body, headers) == "save=true&upi=null&amt=10.5&retry=false"

    def test_form_encoded_sequence_of_flags(self) -> None:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        assert serialize_body([("opt", [True, None])], headers) == "opt=true&opt=null"

    def test_declared_json(self) -> None:
        headers = {"Content-Type": "application/json"}
        assert json.loads(serialize_body({"a": 1}, headers)) == {"a": 1}  # type: ignore[arg-type]
        assert headers == {"Content-Type": "application/json"}

    def test_other_declared_type_still_json(self) -> None:
        headers = {"Content-Type": "text/plain"}
        assert serialize_body({"a": 1}, headers) == '{"a": 1}'
        assert headers == {"Content-Type": "text/plain"}

    def test_undeclared_defaults_to_json(self) -> None:
        headers: dict[str, str] = {}
        assert serialize_body([1, 2], headers) == "[1, 2]"
        assert headers == {"Content-Type": "application/json"}


# ---------------------------------------------------------------------------
# TestDispatcher
# ---------------------------------------------------------------------------


class TestDispatcher:
    def test_get_is_navigation(self) -> None:
        d = Dispatcher(["pay.example.net"])
        assert d.select(_spec("https://pay.example.net/x", "GET")) is Strategy.NAVIGATION

    def test_post_default_is_script(self) -> None:
        d = Dispatcher(["pay.example.net"])
        assert d.select(_spec("https://www.example.com/api", "POST")) is Strategy.SCRIPT

    def test_post_to_gateway_host(self) -> None:
        d = Dispatcher(["pay.example.net"])
        assert d.select(_spec("https://secure.pay.example.net/checkout", "POST")) is Strategy.GATEWAY

    def test_substring_match_case_insensitive(self) -> None:
        d = Dispatcher(["  PayGate "])
        assert d.gateway_hosts == ("paygate",)
        assert d.is_gateway_host("securegw.paygate.in")

    def test_match_is_on_host_not_path(self) -> None:
        d = Dispatcher(["paygate"])
        assert d.select(_spec("https://www.example.com/paygate/redirect", "PUT")) is Strategy.SCRIPT

    def test_no_allowlist(self) -> None:
        assert Dispatcher().select(_spec("https://anything.com/", "DELETE")) is Strategy.SCRIPT


# ---------------------------------------------------------------------------
# TestNavigationStrategy
# ---------------------------------------------------------------------------


class TestNavigationStrategy:
    async def test_waits_for_dom_content_loaded(self) -> None:
        page = AsyncMock()
        await NavigationStrategy().execute(page, _spec(method="GET"))
        page.goto.assert_awaited_once_with(
            "https://www.example.com/api", wait_until="domcontentloaded",
        )

    def test_count_redirects(self) -> None:
        first = MagicMock(redirected_from=None)
        second = MagicMock(redirected_from=first)
        response = MagicMock()
        response.request.redirected_from = second
        assert NavigationStrategy.count_redirects(response) == 2

    def test_count_redirects_none(self) -> None:
        assert NavigationStrategy.count_redirects(None) == 0
        response = MagicMock()
        response.request.redirected_from = None
        assert NavigationStrategy.count_redirects(response) == 0


# ---------------------------------------------------------------------------
# TestScriptStrategy
# ---------------------------------------------------------------------------


class TestScriptStrategy:
    async def test_json_body_defaults_content_type(self) -> None:
        page = AsyncMock()
        page.evaluate = AsyncMock(return_value=_script_ok())
        headers = {"Accept": "application/json"}

        result = await ScriptStrategy().execute(page, _spec(body={"from": "NDLS"}), headers)

        script, args = page.evaluate.await_args.args
        assert script == FETCH_SCRIPT
        assert args["method"] == "POST"
        assert args["headers"] == {"Accept": "application/json", "Content-Type": "application/json"}
        assert json.loads(args["body"]) == {"from": "NDLS"}
        assert headers == {"Accept": "application/json"}
        assert result.strategy is Strategy.SCRIPT
        assert result.status == 200
        assert result.body == {"ok": True}
        assert result.headers == {"content-type": "application/json"}

    async def test_string_body_sent_raw(self) -> None:
        page = AsyncMock()
        page.evaluate = AsyncMock(return_value=_script_ok(text="done", content_type="text/plain"))

        result = await ScriptStrategy().execute(page, _spec(body="raw=1"), {})

        args = page.evaluate.await_args.args[1]
        assert args["body"] == "raw=1"
        assert "Content-Type" not in args["headers"]
        assert result.body == "done"

    async def test_no_body(self) -> None:
        page = AsyncMock()
        page.evaluate = AsyncMock(return_value=_script_ok())
        await ScriptStrategy().execute(page, _spec(method="DELETE"), {})
        assert page.evaluate.await_args.args[1]["body"] is None

    def test_transport_failure_result(self) -> None:
        result = ScriptStrategy.to_result({"status": 0, "ok": False, "error": "Failed to fetch"})
        assert result.status == 0
        assert result.ok is False
        assert result.error == "Failed to fetch"
        assert result.body == {"error": "Failed to fetch"}

    def test_unexpected_payload(self) -> None:
        result = ScriptStrategy.to_result(None)
        assert result.status == 0
        assert result.ok is False

    def test_bad_json_kept_as_text(self) -> None:
        result = ScriptStrategy.to_result(_script_ok(text="<html>oops</html>"))
        assert result.body == "<html>oops</html>"

    def test_redirected_flag(self) -> None:
        raw = _script_ok()
        raw["redirected"] = True
        assert ScriptStrategy.to_result(raw).redirected is True


# ---------------------------------------------------------------------------
# TestGatewayStrategy
# ---------------------------------------------------------------------------


class TestGatewayStrategy:
    async def test_form_body_and_redirect_cap(self) -> None:
        context = MagicMock()
        response = _api_response(headers={"content-type": "text/html"}, text="<form></form>")
        context.request.fetch = AsyncMock(return_value=response)
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        result = await GatewayStrategy().execute(
            context,
            _spec("https://secure.pay.example.net/pay", body={"amount": "100.00", "txn": "T1"}),
            headers,
            max_redirects=5,
        )

        context.request.fetch.assert_awaited_once_with(
            "https://secure.pay.example.net/pay",
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data="amount=100.00&txn=T1",
            max_redirects=5,
        )
        response.dispose.assert_awaited_once()
        assert result.strategy is Strategy.GATEWAY
        assert result.ok is True
        assert result.body == "<form></form>"

    async def test_json_response_parsed(self) -> None:
        context = MagicMock()
        context.request.fetch = AsyncMock(return_value=_api_response(
            status=201, headers={"content-type": "application/json"}, text='{"id": 9}',
        ))
        result = await GatewayStrategy().execute(context, _spec(body={"a": 1}), {})

        kwargs = context.request.fetch.await_args.kwargs
        assert kwargs["data"] == '{"a": 1}'
        assert kwargs["headers"] == {"Content-Type": "application/json"}
        assert "max_redirects" not in kwargs
        assert result.status == 201
        assert result.body == {"id": 9}

    async def test_error_status_not_ok(self) -> None:
        context = MagicMock()
        context.request.fetch = AsyncMock(return_value=_api_response(status=502, text="bad gateway"))
        result = await GatewayStrategy().execute(context, _spec(), {})
        assert result.ok is False
        assert result.status == 502

    async def test_dispose_on_read_failure(self) -> None:
        context = MagicMock()
        response = _api_response()
        response.text = AsyncMock(side_effect=RuntimeError("body gone"))
        context.request.fetch = AsyncMock(return_value=response)

        with pytest.raises(RuntimeError, match="body gone"):
            await GatewayStrategy().execute(context, _spec(), {})
        response.dispose.assert_awaited_once()

    async def test_followed_redirect_marks_result(self) -> None:
        context = MagicMock()
        context.request.fetch = AsyncMock(return_value=_api_response(
            url="https://www.example.com/api/done",
        ))
        result = await GatewayStrategy().execute(context, _spec(), {}, max_redirects=5)
        assert result.redirected is True

    async def test_same_final_url_not_redirected(self) -> None:
        context = MagicMock()
        context.request.fetch = AsyncMock(return_value=_api_response(
            url="https://www.example.com/api",
        ))
        result = await GatewayStrategy().execute(context, _spec(), {})
        assert result.redirected is False

    async def test_redirect_cap_exceeded_raises_limit_error(self) -> None:
        context = MagicMock()
        context.request.fetch = AsyncMock(side_effect=PlaywrightError("Max redirect count exceeded"))

        with pytest.raises(RedirectLimitError) as exc_info:
            await GatewayStrategy().execute(context, _spec(), {}, max_redirects=2)

        assert exc_info.value.limit == 2
        assert exc_info.value.redirects == 3
        assert exc_info.value.status_code == 0

    async def test_engine_failure_raises_transport_error(self) -> None:
        context = MagicMock()
        context.request.fetch = AsyncMock(side_effect=PlaywrightError("getaddrinfo ENOTFOUND"))

        with pytest.raises(TransportError, match="ENOTFOUND") as exc_info:
            await GatewayStrategy().execute(context, _spec(), {}, max_redirects=2)
        assert exc_info.value.status_code == 0
