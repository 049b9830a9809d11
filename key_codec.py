"""各网络的私钥/地址编解码：EVM 使用 secp256k1 + Keccak，Solana 使用 Ed25519 + Base58。"""

import base64
import binascii
import json
import re
from typing import Dict, Union

from base58 import b58decode, b58encode
from eth_account import Account
from eth_keys import constants as eth_constants
from nacl.signing import SigningKey

from config import Network
from errors import ValidationError, invalid_address, unsupported_network
from models import KeyPair

SECP256K1_N = eth_constants.SECPK1_N

_EVM_KEY_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

SOLANA_SECRET_KEY_LENGTH = 64
SOLANA_SEED_LENGTH = 32
SOLANA_ADDRESS_MIN = 32
SOLANA_ADDRESS_MAX = 44


class EvmKeyCodec:
    """EVM 兼容链（BSC）的私钥与地址处理。"""

    network = Network.BSC

    def generate(self) -> KeyPair:
        """随机生成新账户。"""
        acct = Account.create()
        return KeyPair(address=acct.address, private_key=self._format_key(acct.key))

    def normalize_private_key(self, value: str) -> str:
        """去空白、补 0x 前缀并校验为 0x + 64 位十六进制。"""
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("Private key is required", "私钥不能为空", "PRIVATE_KEY_REQUIRED")
        key = value.strip()
        if not key.startswith("0x"):
            key = "0x" + key
        if len(key) != 66:
            raise ValidationError(
                f"Invalid BSC private key length: {len(key)}",
                "BSC 私钥长度无效，应为 64 个十六进制字符",
                "PRIVATE_KEY_INVALID",
            )
        if not _EVM_KEY_RE.match(key):
            raise ValidationError(
                "Invalid BSC private key format",
                "BSC 私钥格式无效，应为十六进制字符串",
                "PRIVATE_KEY_INVALID",
            )
        scalar = int(key, 16)
        if not 0 < scalar < SECP256K1_N:
            raise ValidationError("BSC private key out of curve range", "无效的 BSC 私钥", "PRIVATE_KEY_INVALID")
        return key.lower()

    def from_private_key(self, value: str) -> KeyPair:
        """导入私钥并计算地址。"""
        key = self.normalize_private_key(value)
        acct = Account.from_key(key)
        return KeyPair(address=acct.address, private_key=key)

    def from_raw_bytes(self, raw: bytes) -> KeyPair:
        """从 32 字节原始私钥构造。"""
        if len(raw) != 32:
            raise ValidationError("BSC private key must be 32 bytes", "无效的 BSC 私钥", "PRIVATE_KEY_INVALID")
        return self.from_private_key("0x" + raw.hex())

    def address_from_private_key(self, value: str) -> str:
        return self.from_private_key(value).address

    def is_valid_address(self, address: str) -> bool:
        """严格格式校验：0x + 40 位十六进制。"""
        return isinstance(address, str) and bool(_EVM_ADDRESS_RE.match(address))

    @staticmethod
    def _format_key(raw: bytes) -> str:
        return "0x" + bytes(raw).hex()


class SolanaKeyCodec:
    """Solana 的 64 字节密钥（32 字节种子 + 32 字节公钥）与 Base58 地址处理。"""

    network = Network.SOLANA

    def generate(self) -> KeyPair:
        """随机生成新密钥对。"""
        return self.from_seed(bytes(SigningKey.generate()))

    def from_seed(self, seed: bytes) -> KeyPair:
        """由 32 字节 Ed25519 种子展开为密钥对。"""
        if len(seed) != SOLANA_SEED_LENGTH:
            raise ValidationError("Ed25519 seed must be 32 bytes", "无效的 Solana 种子", "SEED_INVALID")
        signing_key = SigningKey(seed)
        public_key = bytes(signing_key.verify_key)
        secret_key = seed + public_key
        return KeyPair(
            address=b58encode(public_key).decode("utf-8"),
            private_key=base64.b64encode(secret_key).decode("ascii"),
        )

    def decode_secret_key(self, value: Union[str, bytes, list]) -> bytes:
        """解析 Base64 字符串或 JSON 整数数组，要求正好 64 字节。"""
        if isinstance(value, (bytes, bytearray)):
            secret = bytes(value)
        elif isinstance(value, list):
            secret = self._bytes_from_int_list(value)
        elif isinstance(value, str) and value.strip():
            text = value.strip()
            if text.startswith("["):
                try:
                    parsed = json.loads(text)
                except ValueError as exc:
                    raise self._format_error() from exc
                if not isinstance(parsed, list):
                    raise self._format_error()
                secret = self._bytes_from_int_list(parsed)
            else:
                # 允许换行或空格分隔的 Base64
                compact = "".join(text.split())
                try:
                    secret = base64.b64decode(compact, validate=True)
                except (binascii.Error, ValueError) as exc:
                    raise self._format_error() from exc
        else:
            raise ValidationError("Private key is required", "私钥不能为空", "PRIVATE_KEY_REQUIRED")

        if len(secret) != SOLANA_SECRET_KEY_LENGTH:
            raise ValidationError(
                f"Invalid Solana secret key length: {len(secret)} bytes",
                f"Solana 私钥长度无效，应为 64 字节，当前为 {len(secret)} 字节",
                "PRIVATE_KEY_INVALID",
            )
        return secret

    def from_private_key(self, value: Union[str, bytes, list]) -> KeyPair:
        """导入 64 字节密钥，校验后 32 字节与种子推导出的公钥一致。"""
        secret = self.decode_secret_key(value)
        pair = self.from_seed(secret[:SOLANA_SEED_LENGTH])
        if b58decode(pair.address) != secret[SOLANA_SEED_LENGTH:]:
            raise ValidationError(
                "Solana secret key public half does not match its seed",
                "无效的 Solana 私钥",
                "PRIVATE_KEY_INVALID",
            )
        return pair

    def from_raw_bytes(self, raw: bytes) -> KeyPair:
        if len(raw) == SOLANA_SEED_LENGTH:
            return self.from_seed(raw)
        return self.from_private_key(raw)

    def address_from_private_key(self, value: Union[str, bytes, list]) -> str:
        return self.from_private_key(value).address

    def is_valid_address(self, address: str) -> bool:
        """长度 32-44、Base58 可解码且解码后为 32 字节。"""
        if not isinstance(address, str):
            return False
        if not SOLANA_ADDRESS_MIN <= len(address) <= SOLANA_ADDRESS_MAX:
            return False
        try:
            decoded = b58decode(address)
        except ValueError:
            return False
        return len(decoded) == 32

    @staticmethod
    def _bytes_from_int_list(values: list) -> bytes:
        if not all(isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 255 for v in values):
            raise SolanaKeyCodec._format_error()
        return bytes(values)

    @staticmethod
    def _format_error() -> ValidationError:
        return ValidationError(
            "Solana private key must be Base64 or a JSON integer array",
            "Solana 私钥格式无效，应为 Base64 字符串或 JSON 数组",
            "PRIVATE_KEY_INVALID",
        )


KeyCodec = Union[EvmKeyCodec, SolanaKeyCodec]

_CODECS: Dict[Network, KeyCodec] = {
    Network.BSC: EvmKeyCodec(),
    Network.SOLANA: SolanaKeyCodec(),
}


def get_codec(network: Union[Network, str]) -> KeyCodec:
    """按网络返回编解码器；未知网络抛出 ValidationError。"""
    try:
        return _CODECS[Network.parse(network)]
    except ValueError as exc:
        raise unsupported_network(network) from exc


def validate_address(address: str, network: Union[Network, str]) -> bool:
    return get_codec(network).is_valid_address(address)


def require_valid_address(address: str, network: Union[Network, str]) -> str:
    """地址无效时抛出 ValidationError。"""
    codec = get_codec(network)
    if not codec.is_valid_address(address):
        raise invalid_address(codec.network.value)
    return address
