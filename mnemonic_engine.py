"""助记词生成、校验与分层确定性派生，支持 EVM 与 Solana 双链。"""

import hashlib
import hmac
import logging
import re
from typing import List, Optional, Tuple

from eth_keys import keys as eth_keys
from mnemonic import Mnemonic

from config import Network, get_network_config
from errors import ValidationError, unsupported_network
from key_codec import SECP256K1_N, get_codec
from models import DerivedKey

logger = logging.getLogger(__name__)

# 使用标准 BIP39 英文词表的生成器
MNEMONIC_GEN = Mnemonic("english")

WORD_COUNT_TO_STRENGTH = {12: 128, 15: 160, 18: 192, 21: 224, 24: 256}

HARDENED_OFFSET = 0x80000000

# Solana 派生方式：
# legacy  沿用旧版钱包的做法，用 secp256k1 BIP32 节点私钥作为 Ed25519 种子（非标准，
#         与其他 Solana 钱包不兼容，但已存储的地址依赖它）
# slip10  SLIP-0010 Ed25519 标准派生，与 Phantom / solana-keygen 一致
SOLANA_SCHEME_LEGACY = "legacy"
SOLANA_SCHEME_SLIP10 = "slip10"
SOLANA_SCHEMES = (SOLANA_SCHEME_LEGACY, SOLANA_SCHEME_SLIP10)

_PATH_SEGMENT_RE = re.compile(r"^(\d+)('?)$")


def normalize(mnemonic: str) -> str:
    """去首尾空白、转小写并合并多余空白。"""
    if not isinstance(mnemonic, str):
        return ""
    return " ".join(mnemonic.strip().lower().split())


def generate(word_count: int = 12) -> str:
    """使用标准 BIP39 词表生成助记词。"""
    if word_count not in WORD_COUNT_TO_STRENGTH:
        raise ValidationError(
            f"Unsupported mnemonic word count: {word_count}",
            "助记词长度仅支持 12/15/18/21/24",
            "MNEMONIC_LENGTH_INVALID",
        )
    return MNEMONIC_GEN.generate(strength=WORD_COUNT_TO_STRENGTH[word_count])


def validate(mnemonic: str) -> bool:
    """单词数量合法且校验和通过时返回 True。"""
    phrase = normalize(mnemonic)
    if len(phrase.split()) not in WORD_COUNT_TO_STRENGTH:
        return False
    try:
        return MNEMONIC_GEN.check(phrase)
    except (ValueError, LookupError):
        return False


def require_valid(mnemonic: str) -> str:
    """校验并返回规范化助记词，失败时说明原因。"""
    phrase = normalize(mnemonic)
    words = phrase.split()
    if not words:
        raise ValidationError("Mnemonic is required", "助记词不能为空", "MNEMONIC_REQUIRED")
    if len(words) not in WORD_COUNT_TO_STRENGTH:
        raise ValidationError(
            f"Invalid mnemonic word count: {len(words)}",
            "助记词长度仅支持 12/15/18/21/24",
            "MNEMONIC_LENGTH_INVALID",
        )
    if not validate(phrase):
        raise ValidationError("Mnemonic checksum verification failed", "无效的助记词", "MNEMONIC_INVALID")
    return phrase


def to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """通过 BIP39 标准将助记词转换为 64 字节种子。"""
    return MNEMONIC_GEN.to_seed(require_valid(mnemonic), passphrase)


def parse_path(path: str) -> List[Tuple[int, bool]]:
    """解析派生路径为 (index, hardened) 列表。"""
    if not isinstance(path, str) or not path.strip():
        raise ValidationError("Derivation path is required", "派生路径不能为空", "PATH_INVALID")
    segments = path.strip().split("/")
    if segments[0] != "m":
        raise ValidationError(f"Derivation path must start with 'm': {path}", "派生路径格式无效", "PATH_INVALID")

    parsed = []
    for seg in segments[1:]:
        match = _PATH_SEGMENT_RE.match(seg)
        if not match:
            raise ValidationError(f"Invalid derivation path segment: {seg!r}", "派生路径格式无效", "PATH_INVALID")
        index = int(match.group(1))
        if index >= HARDENED_OFFSET:
            raise ValidationError(f"Derivation index out of range: {index}", "派生路径格式无效", "PATH_INVALID")
        parsed.append((index, bool(match.group(2))))
    return parsed


def _derive_child(private_key: bytes, chain_code: bytes, index: int, hardened: bool) -> Tuple[bytes, bytes]:
    """执行单步 BIP32 子密钥派生（secp256k1）。"""
    if hardened:
        data = b"\x00" + private_key + index.to_bytes(4, "big")
    else:
        pub_compressed = eth_keys.PrivateKey(private_key).public_key.to_compressed_bytes()
        data = pub_compressed + index.to_bytes(4, "big")
    I = hmac.new(chain_code, data, hashlib.sha512).digest()
    Il, Ir = I[:32], I[32:]
    il_int = int.from_bytes(Il, "big")
    child_int = (il_int + int.from_bytes(private_key, "big")) % SECP256K1_N
    if il_int >= SECP256K1_N or child_int == 0:
        # 概率约 2^-127，BIP32 规定此时索引无效
        raise ValidationError(f"Derived key at index {index} is invalid", "该派生路径无法生成有效密钥", "PATH_INVALID")
    return child_int.to_bytes(32, "big"), Ir


def derive_secp256k1(seed: bytes, path: str) -> bytes:
    """从种子和路径计算最终 secp256k1 私钥。"""
    segments = parse_path(path)
    I = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
    priv, chain = I[:32], I[32:]
    for index, hardened in segments:
        if hardened:
            index += HARDENED_OFFSET
        priv, chain = _derive_child(priv, chain, index, hardened)
    return priv


def derive_slip10_ed25519(seed: bytes, path: str) -> bytes:
    """依据 SLIP-0010 派生 ed25519 私钥种子；ed25519 仅支持硬化，未加 ' 的段也按硬化处理。"""
    segments = parse_path(path)
    I = hmac.new(b"ed25519 seed", seed, hashlib.sha512).digest()
    key, chain_code = I[:32], I[32:]
    for index, _hardened in segments:
        index |= HARDENED_OFFSET
        data = b"\x00" + key + index.to_bytes(4, "big")
        I = hmac.new(chain_code, data, hashlib.sha512).digest()
        key, chain_code = I[:32], I[32:]
    return key


def derive_key(
    mnemonic: str,
    network: "Network | str",
    path: Optional[str] = None,
    scheme: str = SOLANA_SCHEME_LEGACY,
) -> DerivedKey:
    """
    从助记词派生指定网络的地址与私钥。

    :param mnemonic: 12/15/18/21/24 词助记词
    :param network: BSC 或 Solana
    :param path: 派生路径，缺省时使用网络默认路径
    :param scheme: 仅对 Solana 生效，legacy 或 slip10
    """
    try:
        net = Network.parse(network)
    except ValueError as exc:
        raise unsupported_network(network) from exc
    if scheme not in SOLANA_SCHEMES:
        raise ValidationError(f"Unknown Solana derivation scheme: {scheme!r}", "不支持的派生方式", "SCHEME_INVALID")
    path = (path or get_network_config(net).default_derivation_path).strip()
    seed = to_seed(mnemonic)
    codec = get_codec(net)

    if net == Network.BSC:
        pair = codec.from_raw_bytes(derive_secp256k1(seed, path))
    elif net == Network.SOLANA:
        if scheme == SOLANA_SCHEME_SLIP10:
            pair = codec.from_seed(derive_slip10_ed25519(seed, path))
        else:
            node_key = derive_secp256k1(seed, path)
            pair = codec.from_seed(node_key[:32])
    else:  # pragma: no cover - 枚举已穷举
        raise unsupported_network(network)

    logger.debug("Derived %s address %s at %s", net.value, pair.address, path)
    return DerivedKey(address=pair.address, private_key=pair.private_key, path=path)
