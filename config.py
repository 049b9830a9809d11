"""全局配置：网络枚举、预设网络、派生路径、加密参数与运行时设置。"""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional


class Network(str, Enum):
    """受支持网络的封闭枚举，值即持久化记录中的 network 字段。"""

    BSC = "BSC"
    SOLANA = "Solana"

    @classmethod
    def parse(cls, value: "Network | str") -> "Network":
        """将字符串标签解析为枚举；未知标签抛出 ValueError。"""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unsupported network: {value!r}")


@dataclass(frozen=True)
class NetworkConfig:
    """单个网络的静态配置。"""

    network: Network
    display_name: str
    native_symbol: str
    native_decimals: int
    default_derivation_path: str
    rpc_url: str


# 默认 BIP44 派生路径
DERIVATION_PATH_EVM = "m/44'/60'/0'/0/0"
# Solana 默认路径沿用旧版钱包的写法，保证已存储地址的连续性
DERIVATION_PATH_SOL = "m/44'/501'/0'/0'"

NETWORK_CONFIGS: Dict[Network, NetworkConfig] = {
    Network.BSC: NetworkConfig(
        network=Network.BSC,
        display_name="BNB Smart Chain",
        native_symbol="BNB",
        native_decimals=18,
        default_derivation_path=DERIVATION_PATH_EVM,
        rpc_url="https://bsc-dataseed1.binance.org",
    ),
    Network.SOLANA: NetworkConfig(
        network=Network.SOLANA,
        display_name="Solana",
        native_symbol="SOL",
        native_decimals=9,
        default_derivation_path=DERIVATION_PATH_SOL,
        rpc_url="https://api.mainnet-beta.solana.com",
    ),
}


def get_network_config(network: "Network | str") -> NetworkConfig:
    """按网络返回配置。"""
    return NETWORK_CONFIGS[Network.parse(network)]


# 钱包数量与命名限制
MAX_WALLETS = 100
MIN_PASSWORD_LENGTH = 10
MAX_WALLET_NAME_LENGTH = 50

# 加密参数（与已有加密记录保持兼容，不可随意修改）
PBKDF2_ITERATIONS = 100_000
KEY_LENGTH_BYTES = 32
SALT_LENGTH_BYTES = 16
IV_LENGTH_BYTES = 16

# 批量余额查询的间隔（秒），避免触发上游限流
BALANCE_BATCH_DELAY = 0.3
DEFAULT_RPC_TIMEOUT = 10.0

APP_NAME = "Serein Vault"
APP_VERSION = "1.0.0"


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("APPDATA") or str(Path.home())
    else:
        base = str(Path.home() / ".local" / "share")
    return Path(base) / "SereinVault"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    """运行时设置，支持环境变量覆盖。"""

    data_dir: Path = field(default_factory=lambda: Path(os.getenv("SEREIN_DATA_DIR") or _default_data_dir()))
    bsc_rpc_url: str = field(
        default_factory=lambda: os.getenv("SEREIN_BSC_RPC_URL", NETWORK_CONFIGS[Network.BSC].rpc_url)
    )
    solana_rpc_url: str = field(
        default_factory=lambda: os.getenv("SEREIN_SOLANA_RPC_URL", NETWORK_CONFIGS[Network.SOLANA].rpc_url)
    )
    rpc_timeout: float = field(default_factory=lambda: _env_float("SEREIN_RPC_TIMEOUT", DEFAULT_RPC_TIMEOUT))
    log_level: str = field(default_factory=lambda: os.getenv("SEREIN_LOG_LEVEL", "INFO"))

    @property
    def database_path(self) -> Path:
        """钱包数据库文件路径。"""
        return self.data_dir / "wallets.db"

    def rpc_url_for(self, network: "Network | str") -> str:
        """返回指定网络的 RPC 地址。"""
        if Network.parse(network) == Network.BSC:
            return self.bsc_rpc_url
        return self.solana_rpc_url

    def ensure_data_dir(self) -> Path:
        """确保数据目录存在。"""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir

    @property
    def auth_file(self) -> Path:
        """登录校验摘要文件路径。"""
        return self.data_dir / "auth.json"


def load_password_hash(path: Path) -> Optional[str]:
    """读取登录校验用的密码摘要；不存在或损坏时返回 None。"""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except ValueError:
        # 配置损坏时视为首次使用
        return None
    digest = data.get("password_hash") if isinstance(data, dict) else None
    return digest if isinstance(digest, str) and digest else None


def save_password_hash(path: Path, digest: str) -> None:
    """写入密码摘要（仅 SHA-256 摘要，不保存密码本身）。"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"password_hash": digest}, ensure_ascii=False, indent=2), encoding="utf-8")
