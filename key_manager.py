"""
钱包管理器：创建、导入、加解密、地址校验与余额查询。

KeyManager 持有加密密码，只返回加密后的私钥供持久化；
明文私钥以 RevealedSecret 形式一次性交给调用方备份。持久化由调用方负责。
"""

import logging
import time
import uuid
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import crypto_utils
import mnemonic_engine
import password_policy
from balance_client import BalanceLookup
from config import BALANCE_BATCH_DELAY, MAX_WALLET_NAME_LENGTH, MAX_WALLETS, Network, get_network_config
from errors import (
    AppError,
    BatchCreationError,
    NetworkError,
    ValidationError,
    invalid_address,
    unsupported_network,
)
from key_codec import get_codec
from log_utils import log_duration, log_error_safe
from models import BalanceResult, RevealedSecret, WalletCreationResult, WalletRecord

logger = logging.getLogger(__name__)

IMPORT_PRIVATE_KEY = "privateKey"
IMPORT_MNEMONIC = "mnemonic"

NetworkLike = Union[Network, str]


def _parse_network(network: NetworkLike) -> Network:
    try:
        return Network.parse(network)
    except ValueError as exc:
        raise unsupported_network(network) from exc


def _unpack_entry(entry: object) -> Tuple[str, NetworkLike]:
    """批量余额查询的单项：(address, network) 或 {"address", "network"}。"""
    if isinstance(entry, Mapping):
        address, network = entry.get("address"), entry.get("network")
    elif isinstance(entry, (tuple, list)) and len(entry) == 2:
        address, network = entry
    else:
        raise ValidationError(f"Malformed balance entry: {type(entry).__name__}", "查询条目格式错误", "ENTRY_INVALID")
    if not isinstance(address, str) or not isinstance(network, (str, Network)):
        raise ValidationError("Balance entry needs address and network strings", "查询条目格式错误", "ENTRY_INVALID")
    return address, network


def _check_name(name: str) -> str:
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Wallet name is required", "钱包名称不能为空", "NAME_REQUIRED")
    if len(name) > MAX_WALLET_NAME_LENGTH:
        raise ValidationError(
            f"Wallet name longer than {MAX_WALLET_NAME_LENGTH}",
            f"钱包名称不能超过 {MAX_WALLET_NAME_LENGTH} 个字符",
            "NAME_TOO_LONG",
        )
    return name


class KeyManager:
    """钱包管理器，每个实例绑定一个加密密码。"""

    def __init__(
        self,
        encryption_password: str,
        balance_clients: Optional[Mapping[Network, BalanceLookup]] = None,
        batch_delay: float = BALANCE_BATCH_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        :param encryption_password: 加密私钥的密码，须满足强度门槛
        :param balance_clients: 各网络的余额查询协作者
        :param batch_delay: 批量余额查询的调用间隔（秒）
        :param sleep: 等待函数，测试时可替换
        """
        password_policy.check_strength(encryption_password)
        self._password = encryption_password
        self._balance_clients: Dict[Network, BalanceLookup] = dict(balance_clients or {})
        self.batch_delay = batch_delay
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"KeyManager(networks={[n.value for n in self._balance_clients]})"

    def __reduce__(self):
        raise TypeError("KeyManager holds an encryption secret and cannot be serialized")

    # ------------------------- 创建与导入 ------------------------- #
    def create_wallet(self, name: str, network: NetworkLike) -> WalletCreationResult:
        """随机生成新钱包并加密私钥。"""
        name = _check_name(name)
        net = _parse_network(network)
        try:
            pair = get_codec(net).generate()
            result = self._build_result(name, net, pair.address, pair.private_key)
        except AppError as exc:
            log_error_safe(logger, exc, "create_wallet")
            raise
        logger.info("%s wallet created: %s", net.value, result.address)
        return result

    def create_wallet_from_mnemonic(
        self,
        name: str,
        network: NetworkLike,
        word_count: int = 12,
        path: Optional[str] = None,
        scheme: str = mnemonic_engine.SOLANA_SCHEME_LEGACY,
    ) -> WalletCreationResult:
        """生成新助记词并派生钱包，助记词随结果一次性返回供备份。"""
        name = _check_name(name)
        net = _parse_network(network)
        phrase = mnemonic_engine.generate(word_count)
        derived = mnemonic_engine.derive_key(phrase, net, path, scheme)
        result = self._build_result(name, net, derived.address, derived.private_key, derived.path)
        result.mnemonic = RevealedSecret(phrase)
        logger.info("%s HD wallet created: %s", net.value, result.address)
        return result

    def create_multiple_wallets(
        self,
        count: int,
        network: NetworkLike,
        name_prefix: str = "Wallet",
        progress_cb: Optional[Callable[[int], None]] = None,
    ) -> List[WalletCreationResult]:
        """
        顺序批量创建钱包，名称为 {prefix}_{序号}。

        某一项失败时抛出 BatchCreationError，带失败序号与此前已创建的结果，不回滚。
        """
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise ValidationError(f"Invalid wallet count: {count!r}", "数量必须为正整数", "COUNT_INVALID")
        if count > MAX_WALLETS:
            raise ValidationError(
                f"Wallet count {count} exceeds {MAX_WALLETS}",
                f"数量过大，不能超过 {MAX_WALLETS}",
                "COUNT_INVALID",
            )
        net = _parse_network(network)

        wallets: List[WalletCreationResult] = []
        with log_duration(logger, f"create_multiple_wallets({count})"):
            for i in range(1, count + 1):
                try:
                    wallets.append(self.create_wallet(f"{name_prefix}_{i}", net))
                except AppError as exc:
                    raise BatchCreationError(i, exc, wallets) from exc
                if progress_cb:
                    progress_cb(i)
        logger.info("Created %d %s wallets", count, net.value)
        return wallets

    def import_wallet(
        self,
        name: str,
        network: NetworkLike,
        data: str,
        import_type: str = IMPORT_PRIVATE_KEY,
        path: Optional[str] = None,
        scheme: str = mnemonic_engine.SOLANA_SCHEME_LEGACY,
    ) -> WalletCreationResult:
        """
        通过私钥或助记词导入钱包。

        :param import_type: "privateKey" 或 "mnemonic"
        :param path: 派生路径，仅助记词导入时使用
        :param scheme: Solana 助记词派生方式，legacy 或 slip10
        """
        name = _check_name(name)
        net = _parse_network(network)
        if not data or not str(data).strip():
            raise ValidationError("Import data is required", "导入数据不能为空", "IMPORT_DATA_REQUIRED")

        try:
            if import_type == IMPORT_PRIVATE_KEY:
                pair = get_codec(net).from_private_key(data)
                result = self._build_result(name, net, pair.address, pair.private_key)
            elif import_type == IMPORT_MNEMONIC:
                derived = mnemonic_engine.derive_key(data, net, path, scheme)
                result = self._build_result(name, net, derived.address, derived.private_key, derived.path)
            else:
                raise ValidationError(
                    f"Unsupported import type: {import_type!r}", "不支持的导入类型", "IMPORT_TYPE_INVALID"
                )
        except AppError as exc:
            log_error_safe(logger, exc, "import_wallet")
            raise
        logger.info("%s wallet imported: %s", net.value, result.address)
        return result

    def _build_result(
        self,
        name: str,
        network: Network,
        address: str,
        private_key: str,
        derivation_path: Optional[str] = None,
    ) -> WalletCreationResult:
        encrypted_key = crypto_utils.encrypt(private_key, self._password)
        return WalletCreationResult(
            id=str(uuid.uuid4()),
            name=name,
            address=address,
            network=network,
            private_key=RevealedSecret(private_key),
            encrypted_key=encrypted_key,
            derivation_path=derivation_path,
        )

    # ------------------------- 加解密与恢复 ------------------------- #
    def decrypt_private_key(self, encrypted_key: str) -> str:
        """用实例密码解密私钥；密码错误或数据损坏时抛出 CryptoError。"""
        try:
            return crypto_utils.decrypt(encrypted_key, self._password)
        except AppError as exc:
            log_error_safe(logger, exc, "decrypt_private_key")
            raise

    def recover_wallet(self, network: NetworkLike, private_key: str) -> str:
        """由明文私钥重新计算地址，不需要密码。"""
        return get_codec(_parse_network(network)).address_from_private_key(private_key)

    def verify_wallet(self, record: Union[WalletRecord, Mapping[str, object]]) -> bool:
        """解密记录中的私钥并确认其地址与记录一致。"""
        if not isinstance(record, WalletRecord):
            record = WalletRecord.from_dict(dict(record))
        private_key = self.decrypt_private_key(record.encrypted_key)
        return self.recover_wallet(record.network, private_key) == record.address

    def validate_address(self, address: str, network: NetworkLike) -> bool:
        return get_codec(_parse_network(network)).is_valid_address(address)

    def generate_mnemonic(self, word_count: int = 12) -> str:
        return mnemonic_engine.generate(word_count)

    def validate_mnemonic(self, mnemonic: str) -> bool:
        return mnemonic_engine.validate(mnemonic)

    @staticmethod
    def to_record_input(result: WalletCreationResult) -> Dict[str, str]:
        """转换为存储层写入格式。"""
        return result.to_record_input()

    # ------------------------- 余额 ------------------------- #
    def get_balance(self, address: str, network: NetworkLike) -> BalanceResult:
        """查询单个地址的原生币余额，不缓存、不重试。"""
        net = _parse_network(network)
        if not self.validate_address(address, net):
            raise invalid_address(net.value)
        client = self._balance_clients.get(net)
        if client is None:
            raise NetworkError(
                f"No balance lookup configured for {net.value}",
                f"{net.value} 余额查询不可用",
                "BALANCE_UNAVAILABLE",
            )

        symbol = get_network_config(net).native_symbol
        try:
            balance = client.get_balance(address)
        except NetworkError as exc:
            # 保留原类型，超时仍可与一般网络错误区分
            error = type(exc)(f"balance query failed: {exc.message}", exc.user_message, exc.code)
            log_error_safe(logger, error, "get_balance")
            raise error from exc
        except AppError:
            raise
        except Exception as exc:
            error = NetworkError(
                f"balance query failed: {exc}",
                "查询余额失败，请稍后重试",
                "BALANCE_QUERY_FAILED",
            )
            log_error_safe(logger, error, "get_balance")
            raise error from exc
        return BalanceResult(address=address, network=net, native_balance=str(balance), native_symbol=symbol)

    def get_balances(self, entries: Iterable[Union[Tuple[str, NetworkLike], Mapping[str, str]]]) -> List[BalanceResult]:
        """
        顺序批量查询余额，每次调用之间固定间隔。

        单个地址失败时返回余额为 "0"、ok=False 的占位结果，不中断整批。
        """
        results: List[BalanceResult] = []
        items = list(entries)
        for position, entry in enumerate(items):
            address, network = "", ""
            try:
                address, network = _unpack_entry(entry)
                results.append(self.get_balance(address, network))
            except AppError as exc:
                logger.warning("Balance lookup failed for entry %d: %s", position, exc.code)
                results.append(self._placeholder(address, network, exc))
            if position < len(items) - 1 and self.batch_delay > 0:
                self._sleep(self.batch_delay)
        return results

    @staticmethod
    def _placeholder(address: str, network: NetworkLike, error: AppError) -> BalanceResult:
        try:
            net = Network.parse(network)
            symbol = get_network_config(net).native_symbol
        except ValueError:
            net, symbol = network, ""
        return BalanceResult(
            address=address,
            network=net,
            native_balance="0",
            native_symbol=symbol,
            ok=False,
            error=error.user_message,
        )

    @staticmethod
    def format_balance(balance: str, decimals: int = 4) -> str:
        """按指定小数位四舍五入显示余额，无法解析时返回 "0"。"""
        try:
            value = Decimal(str(balance))
        except (InvalidOperation, ValueError):
            return "0"
        if not value.is_finite():
            return "0"
        quantum = Decimal(1).scaleb(-decimals)
        try:
            return format(value.quantize(quantum, rounding=ROUND_HALF_UP), "f")
        except InvalidOperation:
            return "0"
