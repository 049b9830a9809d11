"""应用入口：配置日志、解锁密码、初始化存储并启动主窗口。"""

import logging
import sys
from typing import Optional

from PyQt5.QtWidgets import QApplication, QDialog, QMessageBox

from balance_client import build_default_clients
from config import APP_NAME, APP_VERSION, Settings, load_password_hash, save_password_hash
from crypto_utils import hash_password, verify_password_hash
from errors import ConfigurationError
from key_manager import KeyManager
from log_utils import setup_logging
from ui_main_window import MainWindow, PasswordDialog
from wallet_store import WalletStore

logger = logging.getLogger(__name__)


def unlock(settings: Settings) -> Optional[KeyManager]:
    """循环弹出密码框，直到得到可用的 KeyManager 或用户取消。"""
    stored_hash = load_password_hash(settings.auth_file)
    while True:
        dialog = PasswordDialog(first_run=stored_hash is None)
        if dialog.exec_() != QDialog.Accepted:
            return None
        password = dialog.password()
        if stored_hash is not None and not verify_password_hash(password, stored_hash):
            QMessageBox.warning(None, "解锁失败", "密码不正确")
            continue
        try:
            manager = KeyManager(password, balance_clients=build_default_clients(settings))
        except ConfigurationError as exc:
            QMessageBox.warning(None, "密码无效", exc.user_message)
            continue
        if stored_hash is None:
            save_password_hash(settings.auth_file, hash_password(password))
        return manager


def run_app() -> None:
    """启动主窗口。"""
    settings = Settings()
    settings.ensure_data_dir()
    setup_logging(settings.log_level, str(settings.data_dir / "serein.log"))

    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(APP_VERSION)
    logger.info("%s %s starting", APP_NAME, APP_VERSION)
    manager = unlock(settings)
    if manager is None:
        logger.info("Unlock cancelled")
        sys.exit(0)

    store = WalletStore(settings.database_path)
    store.initialize()
    window = MainWindow(manager=manager, store=store)
    window.show()
    code = app.exec_()
    store.close()
    sys.exit(code)


if __name__ == "__main__":
    run_app()
