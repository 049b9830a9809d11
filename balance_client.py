"""
原生币余额查询客户端（JSON-RPC over HTTP）。

每个网络一个客户端，对外只暴露 get_balance(address) -> 十进制字符串，
单位为原生币（BNB / SOL），不使用 float 以免精度损失。
重试与节点切换不在这里处理。
"""

import itertools
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

import httpx

from config import DEFAULT_RPC_TIMEOUT, Network, Settings, get_network_config
from errors import NetworkError, NetworkTimeoutError, ValidationError, invalid_address
from key_codec import get_codec

logger = logging.getLogger(__name__)


class BalanceLookup(Protocol):
    """余额查询协作者的接口。"""

    def get_balance(self, address: str) -> str:
        ...


def format_units(amount: int, decimals: int) -> str:
    """将最小单位整数转换为原生币十进制字符串，去掉多余的尾随零。"""
    value = Decimal(amount).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


class JsonRpcBalanceClient:
    """JSON-RPC 余额查询基类，负责超时、连接回收与错误归类。"""

    network: Network

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = get_network_config(self.network)
        self.rpc_url = rpc_url or self.config.rpc_url
        self.timeout = timeout
        self._transport = transport
        self._ids = itertools.count(1)
        self._client: Optional[httpx.Client] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        """关闭底层连接池。"""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport)
        return self._client

    def get_balance(self, address: str) -> str:
        """查询原生币余额。"""
        if not address or not isinstance(address, str):
            raise ValidationError("Wallet address is required", "钱包地址不能为空", "ADDRESS_REQUIRED")
        if not get_codec(self.network).is_valid_address(address):
            raise invalid_address(self.network.value)
        raw = self._fetch_raw_balance(address)
        return format_units(raw, self.config.native_decimals)

    def _fetch_raw_balance(self, address: str) -> int:
        raise NotImplementedError

    def _call(self, method: str, params: list) -> Any:
        """发送一次 JSON-RPC 请求并返回 result 字段。"""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        label = self.network.value
        try:
            response = self._http().post(self.rpc_url, json=payload)
            response.raise_for_status()
            body: Dict[str, Any] = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("%s RPC %s timed out after %.1fs", label, method, self.timeout)
            # 超时后丢弃连接，避免复用半开连接
            self.close()
            raise NetworkTimeoutError(
                f"{label} RPC request timed out: {exc}",
                "网络请求超时，请检查网络连接",
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                user_message = "请求过于频繁，请稍后重试"
            else:
                user_message = f"{label} 节点服务异常，请稍后重试"
            raise NetworkError(f"{label} RPC returned HTTP {status}", user_message, "RPC_HTTP_ERROR") from exc
        except httpx.RequestError as exc:
            self.close()
            raise NetworkError(
                f"{label} RPC connection failed: {exc}",
                "网络连接失败，请检查网络设置",
                "RPC_CONNECTION_ERROR",
            ) from exc
        except ValueError as exc:
            raise NetworkError(f"{label} RPC returned invalid JSON", f"{label} 节点服务异常，请稍后重试") from exc

        if not isinstance(body, dict):
            raise NetworkError(f"{label} RPC returned a non-object body", f"{label} 节点服务异常，请稍后重试")
        if body.get("error"):
            error = body["error"]
            detail = error.get("message") if isinstance(error, dict) else error
            raise NetworkError(f"{label} RPC error: {detail}", f"{label} 节点服务异常，请稍后重试", "RPC_ERROR")
        if "result" not in body:
            raise NetworkError(f"{label} RPC response missing result", f"{label} 节点服务异常，请稍后重试")
        return body["result"]


class BscBalanceClient(JsonRpcBalanceClient):
    """BSC：eth_getBalance 返回十六进制 wei。"""

    network = Network.BSC

    def _fetch_raw_balance(self, address: str) -> int:
        result = self._call("eth_getBalance", [address, "latest"])
        try:
            return int(result, 16)
        except (TypeError, ValueError) as exc:
            raise NetworkError(f"BSC RPC returned malformed balance: {result!r}", "BSC 节点服务异常，请稍后重试") from exc


class SolanaBalanceClient(JsonRpcBalanceClient):
    """Solana：getBalance 返回 {context, value: lamports}。"""

    network = Network.SOLANA

    def _fetch_raw_balance(self, address: str) -> int:
        result = self._call("getBalance", [address, {"commitment": "confirmed"}])
        value = result.get("value") if isinstance(result, dict) else result
        if isinstance(value, bool) or not isinstance(value, int):
            raise NetworkError(
                f"Solana RPC returned malformed balance: {result!r}", "Solana 节点服务异常，请稍后重试"
            )
        return value


def build_default_clients(settings: Optional[Settings] = None) -> Dict[Network, JsonRpcBalanceClient]:
    """按设置创建两条链的默认客户端。"""
    settings = settings or Settings()
    return {
        Network.BSC: BscBalanceClient(settings.rpc_url_for(Network.BSC), timeout=settings.rpc_timeout),
        Network.SOLANA: SolanaBalanceClient(settings.rpc_url_for(Network.SOLANA), timeout=settings.rpc_timeout),
    }
