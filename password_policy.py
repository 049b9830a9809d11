"""密码策略：构造 KeyManager 前的强度门槛与界面用的强度评分。"""

import re
import secrets
from dataclasses import dataclass
from typing import List

from config import MIN_PASSWORD_LENGTH
from errors import ConfigurationError, ValidationError

COMMON_PASSWORDS = frozenset(
    [
        "password", "password123", "123456", "12345678", "123456789",
        "qwerty", "abc123", "monkey", "1234567", "letmein",
        "trustno1", "dragon", "baseball", "iloveyou", "master",
        "sunshine", "ashley", "bailey", "passw0rd", "shadow",
        "admin", "welcome", "login", "princess", "solo",
    ]
)

STRENGTH_LABELS = ("very-weak", "weak", "medium", "strong", "very-strong")

_SEQUENCES = [
    "012", "123", "234", "345", "456", "567", "678", "789",
] + ["".join(chr(ord("a") + i + k) for k in range(3)) for i in range(24)]

_REPEAT_RE = re.compile(r"(.)\1{2,}")


@dataclass(frozen=True)
class PasswordScore:
    """建议性评分结果。"""

    score: int
    label: str


def _classes(password: str) -> dict:
    return {
        "uppercase": bool(re.search(r"[A-Z]", password)),
        "lowercase": bool(re.search(r"[a-z]", password)),
        "digit": bool(re.search(r"[0-9]", password)),
        "symbol": bool(re.search(r"[^A-Za-z0-9]", password)),
    }


def missing_requirements(password: str) -> List[str]:
    """返回未满足的门槛条件列表；全部满足时为空。"""
    missing = []
    if len(password) < MIN_PASSWORD_LENGTH:
        missing.append(f"length>={MIN_PASSWORD_LENGTH}")
    missing.extend(name for name, present in _classes(password).items() if not present)
    return missing


def validate(password: str) -> bool:
    """判断密码是否满足加密密码门槛。"""
    if not password or not password.strip():
        return False
    return not missing_requirements(password)


def check_strength(password: str) -> None:
    """门槛校验，不满足时抛出 ConfigurationError 并指明缺失项。"""
    if not password or not password.strip():
        raise ConfigurationError("Encryption password is required", "必须提供加密密码", "PASSWORD_REQUIRED")
    missing = missing_requirements(password)
    if missing:
        raise ConfigurationError(
            f"Insufficient password strength, missing: {', '.join(missing)}",
            f"密码强度不足：需要至少 {MIN_PASSWORD_LENGTH} 个字符，包含大写字母、小写字母、数字和特殊字符",
            "PASSWORD_WEAK",
        )


def _has_sequence(password: str) -> bool:
    lowered = password.lower()
    return any(seq in lowered for seq in _SEQUENCES)


def score(password: str) -> PasswordScore:
    """计算 0-4 的建议性强度分，仅用于界面反馈。"""
    if not password or password.lower() in COMMON_PASSWORDS:
        return PasswordScore(0, STRENGTH_LABELS[0])

    value = 0
    length = len(password)
    if length >= 16:
        value += 3
    elif length >= 12:
        value += 2
    elif length >= 8:
        value += 1

    class_count = sum(_classes(password).values())
    if class_count >= 4:
        value += 2
    elif class_count >= 3:
        value += 1

    if not _REPEAT_RE.search(password):
        value += 1
    if not _has_sequence(password):
        value += 1

    value = max(0, min(value, 4))
    return PasswordScore(value, STRENGTH_LABELS[value])


def generate_random_password(length: int = 32) -> str:
    """生成随机十六进制密码串。"""
    if length <= 0:
        raise ValidationError(f"Invalid password length: {length}", "密码长度必须为正整数", "LENGTH_INVALID")
    return secrets.token_hex((length + 1) // 2)[:length]
