"""数据模型定义：密钥对、钱包记录、创建结果与余额结果。"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from config import Network
from errors import CryptoError, ValidationError


class RevealedSecret:
    """
    一次性明文包装，用于把私钥交给调用方备份。

    reveal() 只能调用一次；repr/str 不显示内容；禁止 pickle。
    """

    __slots__ = ("_value", "_revealed")

    def __init__(self, value: str):
        self._value: Optional[str] = value
        self._revealed = False

    @property
    def revealed(self) -> bool:
        return self._revealed

    def reveal(self) -> str:
        """取出明文并清除引用；再次调用抛出 CryptoError。"""
        if self._revealed or self._value is None:
            raise CryptoError("Secret has already been revealed", "私钥仅可查看一次", "SECRET_CONSUMED")
        value = self._value
        self._value = None
        self._revealed = True
        return value

    def discard(self) -> None:
        """不查看直接丢弃。"""
        self._value = None
        self._revealed = True

    def __repr__(self) -> str:
        return "RevealedSecret(<hidden>)" if not self._revealed else "RevealedSecret(<consumed>)"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("RevealedSecret cannot be serialized")


@dataclass(frozen=True)
class KeyPair:
    """地址与规范格式私钥。仅在单次调用内流转。"""

    address: str
    private_key: str = field(repr=False)


@dataclass(frozen=True)
class DerivedKey:
    """助记词派生结果。"""

    address: str
    private_key: str = field(repr=False)
    path: str


@dataclass
class WalletRecord:
    """持久化的钱包记录，字段与数据库表一致。"""

    id: str
    name: str
    address: str
    network: str
    encrypted_key: str = field(repr=False)
    created_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "network": self.network,
            "encrypted_key": self.encrypted_key,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WalletRecord":
        try:
            network = Network.parse(data["network"]).value
            return cls(
                id=str(data["id"]),
                name=str(data["name"]),
                address=str(data["address"]),
                network=network,
                encrypted_key=str(data["encrypted_key"]),
                created_at=int(data["created_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed wallet record: {exc}", "钱包记录格式错误", "RECORD_INVALID") from exc


@dataclass
class WalletCreationResult:
    """创建/导入结果：明文私钥仅能 reveal 一次，encrypted_key 用于持久化。"""

    id: str
    name: str
    address: str
    network: Network
    private_key: RevealedSecret
    encrypted_key: str = field(repr=False)
    mnemonic: Optional[RevealedSecret] = None
    derivation_path: Optional[str] = None

    def to_record_input(self) -> Dict[str, str]:
        """转换为存储层的写入格式，不包含任何明文。"""
        return {
            "name": self.name,
            "address": self.address,
            "network": self.network.value,
            "encrypted_key": self.encrypted_key,
        }


@dataclass(frozen=True)
class BalanceResult:
    """余额查询结果；ok=False 表示批量查询中的失败占位。"""

    address: str
    network: Network
    native_balance: str
    native_symbol: str
    ok: bool = True
    error: Optional[str] = None


def now_ms() -> int:
    """当前时间的毫秒时间戳。"""
    return int(time.time() * 1000)
