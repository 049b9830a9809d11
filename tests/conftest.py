import pytest

from config import Network
from errors import NetworkError, NetworkTimeoutError
from key_manager import KeyManager

STRONG_PASSWORD = "Str0ng!Passw0rd"
ABANDON_MNEMONIC = " ".join(["abandon"] * 11 + ["about"])
BSC_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
BSC_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
SOLANA_ADDRESS = "11111111111111111111111111111111"


class FakeBalanceClient:
    """按地址返回预设余额或异常的假协作者。"""

    def __init__(self, balances=None, errors=None):
        self.balances = balances or {}
        self.errors = errors or {}
        self.calls = []

    def get_balance(self, address):
        self.calls.append(address)
        if address in self.errors:
            raise self.errors[address]
        return self.balances.get(address, "0")


@pytest.fixture
def bsc_client():
    return FakeBalanceClient({BSC_ADDRESS: "1.25"})


@pytest.fixture
def solana_client():
    return FakeBalanceClient({SOLANA_ADDRESS: "0.5"})


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def manager(bsc_client, solana_client, sleeps):
    return KeyManager(
        STRONG_PASSWORD,
        balance_clients={Network.BSC: bsc_client, Network.SOLANA: solana_client},
        sleep=sleeps.append,
    )


@pytest.fixture
def failing_errors():
    return {
        "timeout": NetworkTimeoutError("rpc timed out", "网络请求超时"),
        "server": NetworkError("rpc returned HTTP 503", "节点服务异常"),
    }
