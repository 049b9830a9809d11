"""日志配置：标准 logging，附带敏感信息脱敏过滤器与安全错误记录。"""

import logging
import re
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from errors import AppError

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# 0x + 64 位十六进制（EVM 私钥）
_HEX_KEY_RE = re.compile(r"(?:0x)?[0-9a-fA-F]{64}")
# 长 Base64 串（Solana 私钥、加密 blob）
_BASE64_RE = re.compile(r"[A-Za-z0-9+/]{60,}={0,2}")
# 12 个及以上连续小写单词，视为助记词
_MNEMONIC_RE = re.compile(r"\b(?:[a-z]{3,8}\s+){11,}[a-z]{3,8}\b")

REDACTED = "[REDACTED]"


def redact(text: str) -> str:
    """将文本中疑似私钥、密文与助记词的片段替换为占位符。"""
    text = _MNEMONIC_RE.sub(REDACTED, text)
    text = _HEX_KEY_RE.sub(REDACTED, text)
    return _BASE64_RE.sub(REDACTED, text)


class RedactingFilter(logging.Filter):
    """日志过滤器：在输出前对消息做脱敏。"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """配置根日志记录器；重复调用不会叠加处理器。"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in list(root.handlers):
        if getattr(handler, "_serein", False):
            root.removeHandler(handler)

    for handler in handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RedactingFilter())
        handler._serein = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root


def log_error_safe(logger: logging.Logger, error: BaseException, action: str) -> None:
    """记录错误的名称、代码与诊断信息，不输出堆栈中的局部变量。"""
    if isinstance(error, AppError):
        logger.error("%s failed: %s (%s) %s", action, type(error).__name__, error.code, redact(error.message))
    else:
        logger.error("%s failed: %s %s", action, type(error).__name__, redact(str(error)))


@contextmanager
def log_duration(logger: logging.Logger, operation: str) -> Iterator[None]:
    """记录操作耗时（毫秒）。"""
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("%s took %.1f ms", operation, (time.perf_counter() - start) * 1000)
