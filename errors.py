"""应用错误类型：统一的内部诊断信息与面向用户的提示。"""

from typing import Any, List, Optional


class AppError(Exception):
    """应用错误基类。message 供日志诊断，user_message 可直接展示给用户。"""

    default_code = "APP_ERROR"

    def __init__(self, message: str, user_message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or "操作失败"
        self.code = code or self.default_code


class ConfigurationError(AppError):
    """构造阶段的配置错误，例如缺失或强度不足的密码。"""

    default_code = "CONFIGURATION_ERROR"


class ValidationError(AppError):
    """输入格式错误：地址、私钥、助记词、派生路径等。"""

    default_code = "VALIDATION_ERROR"


class CryptoError(AppError):
    """加解密失败。"""

    default_code = "CRYPTO_ERROR"


class NetworkError(AppError):
    """余额查询等网络调用失败。"""

    default_code = "NETWORK_ERROR"


class NetworkTimeoutError(NetworkError):
    """网络调用超时，与一般网络错误区分。"""

    default_code = "NETWORK_TIMEOUT"


class StorageError(AppError):
    """持久化层错误：重复地址、数量上限等。"""

    default_code = "STORAGE_ERROR"


class BatchCreationError(AppError):
    """批量创建在第 index 个（从 1 开始）失败，created 为此前已成功的结果。"""

    default_code = "BATCH_CREATION_FAILED"

    def __init__(self, index: int, cause: AppError, created: List[Any]):
        super().__init__(
            f"Batch creation failed at item {index}: {cause.message}",
            f"第 {index} 个钱包创建失败：{cause.user_message}",
        )
        self.index = index
        self.cause = cause
        self.created = created


def invalid_address(network: str) -> ValidationError:
    return ValidationError(
        f"Invalid {network} address format",
        f"{network} 钱包地址格式无效",
        "ADDRESS_INVALID",
    )


def unsupported_network(network: Any) -> ValidationError:
    return ValidationError(
        f"Unsupported network: {network!r}",
        "不支持的网络类型",
        "NETWORK_UNSUPPORTED",
    )


def wallet_exists() -> StorageError:
    return StorageError(
        "Wallet with this address already exists",
        "该钱包地址已存在",
        "WALLET_EXISTS",
    )


def wallet_limit_reached(limit: int) -> StorageError:
    return StorageError(
        f"Wallet limit reached: {limit}",
        f"钱包数量已达上限（{limit} 个）",
        "WALLET_LIMIT_REACHED",
    )


def decryption_failed() -> CryptoError:
    return CryptoError(
        "decryption failed, password may be incorrect",
        "解密失败，密码错误或数据已损坏",
        "DECRYPTION_FAILED",
    )


def to_user_friendly_error(error: BaseException, default_message: str = "操作失败") -> str:
    """将任意异常转换为用户可读的提示，避免暴露内部细节。"""
    if isinstance(error, AppError):
        return error.user_message

    text = str(error).lower()
    if "timeout" in text or "timed out" in text:
        return "网络请求超时，请检查网络连接"
    if "connection refused" in text:
        return "无法连接到服务器"
    if "unique constraint" in text:
        return "该记录已存在"
    if "decrypt" in text:
        return "密码错误或数据已损坏"
    return default_message
