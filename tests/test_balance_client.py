import json

import httpx
import pytest

from balance_client import BscBalanceClient, SolanaBalanceClient, build_default_clients, format_units
from config import Network, Settings
from conftest import BSC_ADDRESS, SOLANA_ADDRESS
from errors import NetworkError, NetworkTimeoutError, ValidationError


def _json_handler(body, status=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(json.loads(request.content))
        return httpx.Response(status, json=body)

    return handler


def _bsc(handler):
    return BscBalanceClient("https://bsc.test", transport=httpx.MockTransport(handler))


def _solana(handler):
    return SolanaBalanceClient("https://sol.test", transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    "amount,decimals,expected",
    [
        (0, 18, "0"),
        (10**18, 18, "1"),
        (1_250_000_000_000_000_000, 18, "1.25"),
        (1, 18, "0.000000000000000001"),
        (500_000_000, 9, "0.5"),
        (12_000_000_000, 9, "12"),
    ],
)
def test_format_units(amount, decimals, expected):
    assert format_units(amount, decimals) == expected


def test_bsc_balance_converts_wei():
    seen = []
    client = _bsc(_json_handler({"jsonrpc": "2.0", "id": 1, "result": hex(1_500_000_000_000_000_000)}, seen=seen))

    assert client.get_balance(BSC_ADDRESS) == "1.5"
    assert seen[0]["method"] == "eth_getBalance"
    assert seen[0]["params"] == [BSC_ADDRESS, "latest"]


def test_solana_balance_converts_lamports():
    seen = []
    body = {"jsonrpc": "2.0", "id": 1, "result": {"context": {"slot": 1}, "value": 2_500_000_000}}
    with _solana(_json_handler(body, seen=seen)) as client:
        assert client.get_balance(SOLANA_ADDRESS) == "2.5"
    assert seen[0]["method"] == "getBalance"
    assert seen[0]["params"][0] == SOLANA_ADDRESS


def test_request_ids_increase():
    seen = []
    client = _bsc(_json_handler({"result": "0x0"}, seen=seen))
    client.get_balance(BSC_ADDRESS)
    client.get_balance(BSC_ADDRESS)
    assert [p["id"] for p in seen] == [1, 2]


def test_invalid_address_is_rejected_before_any_call():
    seen = []
    client = _bsc(_json_handler({"result": "0x0"}, seen=seen))

    with pytest.raises(ValidationError) as excinfo:
        client.get_balance(SOLANA_ADDRESS)
    assert excinfo.value.code == "ADDRESS_INVALID"
    with pytest.raises(ValidationError):
        client.get_balance("")
    assert seen == []


def test_rpc_error_field_raises_network_error():
    client = _bsc(_json_handler({"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "header not found"}}))

    with pytest.raises(NetworkError) as excinfo:
        client.get_balance(BSC_ADDRESS)
    assert excinfo.value.code == "RPC_ERROR"
    assert "header not found" in str(excinfo.value)


@pytest.mark.parametrize("status", [429, 503])
def test_http_status_errors(status):
    client = _solana(_json_handler({}, status=status))

    with pytest.raises(NetworkError) as excinfo:
        client.get_balance(SOLANA_ADDRESS)
    assert not isinstance(excinfo.value, NetworkTimeoutError)
    assert excinfo.value.code == "RPC_HTTP_ERROR"
    assert str(status) in str(excinfo.value)


def test_timeout_is_distinct_from_other_failures():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    client = _bsc(handler)
    with pytest.raises(NetworkTimeoutError) as excinfo:
        client.get_balance(BSC_ADDRESS)
    assert excinfo.value.code == "NETWORK_TIMEOUT"
    assert client._client is None


def test_connection_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError) as excinfo:
        _solana(handler).get_balance(SOLANA_ADDRESS)
    assert excinfo.value.code == "RPC_CONNECTION_ERROR"


@pytest.mark.parametrize(
    "body",
    [{"jsonrpc": "2.0", "id": 1}, {"result": "not-hex"}, [1, 2, 3]],
)
def test_malformed_bsc_responses(body):
    with pytest.raises(NetworkError):
        _bsc(_json_handler(body)).get_balance(BSC_ADDRESS)


def test_invalid_json_body():
    def handler(request):
        return httpx.Response(200, content=b"<html>bad gateway</html>")

    with pytest.raises(NetworkError):
        _solana(handler).get_balance(SOLANA_ADDRESS)


def test_malformed_solana_value():
    body = {"result": {"context": {"slot": 1}, "value": "100"}}
    with pytest.raises(NetworkError):
        _solana(_json_handler(body)).get_balance(SOLANA_ADDRESS)


def test_build_default_clients_uses_settings(tmp_path):
    settings = Settings(
        data_dir=tmp_path,
        bsc_rpc_url="https://bsc.local",
        solana_rpc_url="https://sol.local",
        rpc_timeout=3.0,
    )
    clients = build_default_clients(settings)

    assert set(clients) == {Network.BSC, Network.SOLANA}
    assert clients[Network.BSC].rpc_url == "https://bsc.local"
    assert clients[Network.SOLANA].rpc_url == "https://sol.local"
    assert clients[Network.BSC].timeout == 3.0
