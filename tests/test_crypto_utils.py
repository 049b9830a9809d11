import base64

import pytest

import crypto_utils
from conftest import BSC_PRIVATE_KEY, STRONG_PASSWORD
from errors import CryptoError, ValidationError


def test_encrypt_decrypt_round_trip_for_evm_key():
    blob = crypto_utils.encrypt(BSC_PRIVATE_KEY, STRONG_PASSWORD)

    assert blob
    assert BSC_PRIVATE_KEY not in blob
    assert BSC_PRIVATE_KEY[2:] not in blob
    decrypted = crypto_utils.decrypt(blob, STRONG_PASSWORD)
    assert decrypted == BSC_PRIVATE_KEY
    assert len(decrypted) == 66


def test_blob_layout_is_salt_iv_ciphertext():
    blob = crypto_utils.encrypt("hello", STRONG_PASSWORD)
    raw = base64.b64decode(blob)

    # 16 字节盐 + 16 字节 IV + 一个分组（5 字节明文填充到 16）
    assert len(raw) == 48
    salt, iv, ciphertext = raw[:16], raw[16:32], raw[32:]
    key = crypto_utils.derive_key(STRONG_PASSWORD, salt)
    from cryptography.hazmat.primitives import padding
    from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    assert unpadder.update(padded) + unpadder.finalize() == b"hello"


def test_each_encryption_uses_fresh_salt_and_iv():
    first = base64.b64decode(crypto_utils.encrypt("same", STRONG_PASSWORD))
    second = base64.b64decode(crypto_utils.encrypt("same", STRONG_PASSWORD))

    assert first[:16] != second[:16]
    assert first[16:32] != second[16:32]


def test_unicode_round_trip():
    text = "钱包私钥 ✓"
    assert crypto_utils.decrypt(crypto_utils.encrypt(text, STRONG_PASSWORD), STRONG_PASSWORD) == text


@pytest.mark.parametrize("wrong", ["Str0ng!Passw0rD", "another-Pa55word!", "x"])
def test_wrong_password_is_rejected(wrong):
    blob = crypto_utils.encrypt(BSC_PRIVATE_KEY, STRONG_PASSWORD)

    with pytest.raises(CryptoError) as excinfo:
        crypto_utils.decrypt(blob, wrong)
    assert "password may be incorrect" in str(excinfo.value)
    assert excinfo.value.code == "DECRYPTION_FAILED"


def test_corrupted_blob_is_rejected():
    raw = bytearray(base64.b64decode(crypto_utils.encrypt(BSC_PRIVATE_KEY, STRONG_PASSWORD)))
    raw[-1] ^= 0xFF
    with pytest.raises(CryptoError):
        crypto_utils.decrypt(base64.b64encode(bytes(raw)).decode(), STRONG_PASSWORD)


@pytest.mark.parametrize(
    "blob",
    [
        "not base64 !!",
        base64.b64encode(b"\x00" * 32).decode(),  # 没有密文
        base64.b64encode(b"\x00" * 40).decode(),  # 密文不是分组整数倍
    ],
)
def test_malformed_blob_is_rejected(blob):
    with pytest.raises(CryptoError):
        crypto_utils.decrypt(blob, STRONG_PASSWORD)


def test_empty_inputs_fail():
    with pytest.raises(ValidationError):
        crypto_utils.encrypt("", STRONG_PASSWORD)
    with pytest.raises(ValidationError):
        crypto_utils.encrypt("secret", "")
    with pytest.raises(ValidationError):
        crypto_utils.decrypt("", STRONG_PASSWORD)
    with pytest.raises(ValidationError):
        crypto_utils.decrypt("AAAA", "")


def test_object_helpers_round_trip():
    payload = {"address": "0xabc", "tags": ["a", "b"], "count": 3}
    blob = crypto_utils.encrypt_object(payload, STRONG_PASSWORD)

    assert crypto_utils.decrypt_object(blob, STRONG_PASSWORD) == payload


def test_object_helper_rejects_non_json_payload():
    blob = crypto_utils.encrypt("not json", STRONG_PASSWORD)
    with pytest.raises(CryptoError):
        crypto_utils.decrypt_object(blob, STRONG_PASSWORD)
    with pytest.raises(ValidationError):
        crypto_utils.encrypt_object({"bad": object()}, STRONG_PASSWORD)


def test_password_hash_helpers():
    digest = crypto_utils.hash_password(STRONG_PASSWORD)

    assert len(digest) == 64
    assert digest == crypto_utils.hash_password(STRONG_PASSWORD)
    assert crypto_utils.verify_password_hash(STRONG_PASSWORD, digest)
    assert crypto_utils.verify_password_hash(STRONG_PASSWORD, digest.upper())
    assert not crypto_utils.verify_password_hash("wrong", digest)
    assert not crypto_utils.verify_password_hash(STRONG_PASSWORD, "")
