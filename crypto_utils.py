"""
私钥加解密工具。

格式：Base64(salt(16) || iv(16) || ciphertext)，无长度前缀、无分隔符。
密钥由 PBKDF2-HMAC-SHA256（100,000 次迭代）从密码派生，
再以 AES-256-CBC + PKCS7 加密 UTF-8 明文。
该格式即数据库中 encrypted_key 字段的内容，改动会导致旧记录无法解密。
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import os
from typing import Any, Tuple

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import IV_LENGTH_BYTES, KEY_LENGTH_BYTES, PBKDF2_ITERATIONS, SALT_LENGTH_BYTES
from errors import CryptoError, ValidationError, decryption_failed

logger = logging.getLogger(__name__)

_BLOCK_BITS = algorithms.AES.block_size  # 128
_BLOCK_BYTES = _BLOCK_BITS // 8
_HEADER_BYTES = SALT_LENGTH_BYTES + IV_LENGTH_BYTES
KDF_HASH = hashes.SHA256


def derive_key(password: str, salt: bytes) -> bytes:
    """使用 PBKDF2 从密码与盐派生 256 位对称密钥。"""
    kdf = PBKDF2HMAC(
        algorithm=KDF_HASH(),
        length=KEY_LENGTH_BYTES,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def _split_blob(raw: bytes) -> Tuple[bytes, bytes, bytes]:
    """按固定偏移拆分 salt、iv 与密文。"""
    ciphertext = raw[_HEADER_BYTES:]
    if not ciphertext or len(ciphertext) % _BLOCK_BYTES:
        raise decryption_failed()
    return raw[:SALT_LENGTH_BYTES], raw[SALT_LENGTH_BYTES:_HEADER_BYTES], ciphertext


def encrypt(plaintext: str, password: str) -> str:
    """
    加密字符串。

    :param plaintext: 明文（通常为私钥）
    :param password: 加密密码
    :return: Base64(salt + iv + ciphertext)
    """
    if not plaintext:
        raise ValidationError("Plaintext is required for encryption", "待加密内容不能为空", "PLAINTEXT_REQUIRED")
    if not password:
        raise ValidationError("Password is required for encryption", "密码不能为空", "PASSWORD_REQUIRED")

    salt = os.urandom(SALT_LENGTH_BYTES)
    iv = os.urandom(IV_LENGTH_BYTES)
    key = derive_key(password, salt)

    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return base64.b64encode(salt + iv + ciphertext).decode("ascii")


def decrypt(blob: str, password: str) -> str:
    """
    解密 encrypt 生成的 Base64 串。

    任何失败（密码错误、数据损坏、填充错误、解出空串）都抛出同一个 CryptoError，
    不会返回空值或乱码。
    """
    if not blob:
        raise ValidationError("Encrypted data is required", "加密数据不能为空", "BLOB_REQUIRED")
    if not password:
        raise ValidationError("Password is required for decryption", "密码不能为空", "PASSWORD_REQUIRED")

    try:
        raw = base64.b64decode(blob.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise decryption_failed() from exc

    salt, iv, ciphertext = _split_blob(raw)
    key = derive_key(password, salt)

    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
        plaintext = data.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        logger.debug("Decryption rejected: %s", type(exc).__name__)
        raise decryption_failed() from exc

    if not plaintext:
        raise decryption_failed()
    return plaintext


def encrypt_object(data: Any, password: str) -> str:
    """JSON 序列化后加密。"""
    try:
        text = json.dumps(data, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Object is not JSON serializable: {exc}", "对象无法序列化", "OBJECT_INVALID") from exc
    return encrypt(text, password)


def decrypt_object(blob: str, password: str) -> Any:
    """解密后 JSON 反序列化。"""
    text = decrypt(blob, password)
    try:
        return json.loads(text)
    except ValueError as exc:
        raise CryptoError("Decrypted payload is not valid JSON", "解密数据格式错误", "OBJECT_INVALID") from exc


def hash_password(password: str) -> str:
    """单向 SHA-256 十六进制摘要，仅用于登录校验，不用于派生加密密钥。"""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password_hash(password: str, digest: str) -> bool:
    """重新计算摘要并做常量时间比较。"""
    if not digest:
        return False
    expected = hash_password(password).encode("ascii")
    return hmac.compare_digest(expected, digest.strip().lower().encode("utf-8"))
