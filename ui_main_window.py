"""主窗口与对话框：登录、创建/导入钱包、列表展示与余额查询。"""

from datetime import datetime
from typing import Callable, List, Optional

from PyQt5.QtCore import Qt, QThread, pyqtSignal
from PyQt5.QtWidgets import (
    QApplication,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QSpinBox,
    QStatusBar,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

import mnemonic_engine
import password_policy
from config import APP_NAME, MAX_WALLETS, Network, get_network_config
from errors import AppError, BatchCreationError, StorageError, to_user_friendly_error
from key_manager import IMPORT_MNEMONIC, IMPORT_PRIVATE_KEY, KeyManager
from models import BalanceResult, WalletCreationResult, WalletRecord
from wallet_store import WalletStore

STYLE_QSS = """
* { font-family: "Microsoft YaHei", "PingFang SC", Arial; font-size: 14px; }
QWidget { background: #f7f8fa; color: #1f2d3d; }
#TitleLabel { font-size: 22px; font-weight: 700; padding: 10px; }
#WarningLabel { background: #fff7e6; border: 1px solid #ffd591; color: #ad6800; border-radius: 8px; padding: 10px; }
QGroupBox { border: 1px solid #d9d9d9; background: #ffffff; border-radius: 10px; margin-top: 12px; padding: 12px; }
QPushButton { background-color: #4b7bec; color: white; border: none; padding: 8px 12px; border-radius: 6px; }
QPushButton:hover { background-color: #3a63c7; }
QLineEdit, QSpinBox, QComboBox, QPlainTextEdit { border: 1px solid #d9d9d9; background: #ffffff; border-radius: 6px; padding: 6px; }
QTableWidget { background: #ffffff; border: 1px solid #e5e7eb; gridline-color: #e5e7eb; }
"""

NETWORK_CHOICES = [Network.BSC, Network.SOLANA]


class TaskWorker(QThread):
    """后台执行耗时任务（加密、网络查询），避免阻塞 UI。"""

    progress = pyqtSignal(int)
    succeeded = pyqtSignal(object)
    failed = pyqtSignal(object)

    def __init__(self, task: Callable[[Callable[[int], None]], object], parent=None):
        super().__init__(parent)
        self.task = task

    def run(self) -> None:
        try:
            self.succeeded.emit(self.task(self.progress.emit))
        except Exception as exc:  # noqa: BLE001
            self.failed.emit(exc)


class PasswordDialog(QDialog):
    """登录对话框：首次使用时设置密码，之后校验密码摘要。"""

    def __init__(self, first_run: bool, parent=None):
        super().__init__(parent)
        self.first_run = first_run
        self.setWindowTitle(f"{APP_NAME} - {'设置加密密码' if first_run else '解锁'}")
        self.setMinimumWidth(420)

        layout = QFormLayout(self)
        self.password_input = QLineEdit()
        self.password_input.setEchoMode(QLineEdit.Password)
        self.password_input.textChanged.connect(self._update_strength)
        layout.addRow("密码", self.password_input)

        self.confirm_input = QLineEdit()
        self.confirm_input.setEchoMode(QLineEdit.Password)
        if first_run:
            layout.addRow("确认密码", self.confirm_input)

        self.strength_label = QLabel("")
        layout.addRow("强度", self.strength_label)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self._on_accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    def password(self) -> str:
        return self.password_input.text()

    def _update_strength(self, text: str) -> None:
        result = password_policy.score(text)
        self.strength_label.setText(f"{result.score}/4 {result.label}")

    def _on_accept(self) -> None:
        if self.first_run and self.password_input.text() != self.confirm_input.text():
            QMessageBox.warning(self, "输入错误", "两次输入的密码不一致")
            return
        self.accept()


class ImportDialog(QDialog):
    """导入钱包：私钥或助记词。"""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setWindowTitle("导入钱包")
        self.setMinimumWidth(520)

        layout = QFormLayout(self)
        self.name_input = QLineEdit()
        layout.addRow("钱包名称", self.name_input)

        self.network_combo = QComboBox()
        for net in NETWORK_CHOICES:
            self.network_combo.addItem(get_network_config(net).display_name, net)
        self.network_combo.currentIndexChanged.connect(self._update_path_hint)
        layout.addRow("网络", self.network_combo)

        self.type_combo = QComboBox()
        self.type_combo.addItem("私钥", IMPORT_PRIVATE_KEY)
        self.type_combo.addItem("助记词", IMPORT_MNEMONIC)
        layout.addRow("导入方式", self.type_combo)

        self.data_input = QPlainTextEdit()
        self.data_input.setPlaceholderText("私钥（0x… / Base64 / JSON 数组）或助记词")
        layout.addRow("导入数据", self.data_input)

        self.path_input = QLineEdit()
        layout.addRow("派生路径（可选）", self.path_input)

        self.scheme_combo = QComboBox()
        self.scheme_combo.addItem("兼容旧版", mnemonic_engine.SOLANA_SCHEME_LEGACY)
        self.scheme_combo.addItem("SLIP-0010（Phantom 等）", mnemonic_engine.SOLANA_SCHEME_SLIP10)
        layout.addRow("Solana 派生方式", self.scheme_combo)
        self._update_path_hint()

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    def _update_path_hint(self) -> None:
        net = self.network_combo.currentData()
        self.path_input.setPlaceholderText(get_network_config(net).default_derivation_path)
        self.scheme_combo.setEnabled(net == Network.SOLANA)

    def values(self) -> dict:
        return {
            "name": self.name_input.text().strip(),
            "network": self.network_combo.currentData(),
            "data": self.data_input.toPlainText().strip(),
            "import_type": self.type_combo.currentData(),
            "path": self.path_input.text().strip() or None,
            "scheme": self.scheme_combo.currentData(),
        }


class MainWindow(QMainWindow):
    """主窗口，负责用户交互与状态展示。"""

    def __init__(self, manager: KeyManager, store: WalletStore) -> None:
        super().__init__()
        self.manager = manager
        self.store = store
        self.records: List[WalletRecord] = []
        self.balances = {}
        self.worker: Optional[TaskWorker] = None

        self.setWindowTitle(f"{APP_NAME} - 多链钱包管理")
        self.setMinimumSize(1100, 720)
        self.setStyleSheet(STYLE_QSS)

        self._setup_ui()
        self._reload()
        self._set_status("准备就绪")

    # ------------------------- UI 构建 ------------------------- #
    def _setup_ui(self) -> None:
        central = QWidget(self)
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)

        title = QLabel(f"{APP_NAME} - BSC / Solana 钱包管理")
        title.setObjectName("TitleLabel")
        title.setAlignment(Qt.AlignCenter)
        main_layout.addWidget(title)

        warning = QLabel("安全提醒：私钥与助记词仅在创建时显示一次，请立即离线备份，不要截图或分享。")
        warning.setWordWrap(True)
        warning.setObjectName("WarningLabel")
        main_layout.addWidget(warning)

        form_box = QGroupBox("创建钱包")
        form_layout = QFormLayout(form_box)
        main_layout.addWidget(form_box)

        self.name_input = QLineEdit()
        self.name_input.setPlaceholderText("钱包名称或批量名称前缀")
        form_layout.addRow("名称", self.name_input)

        self.network_combo = QComboBox()
        for net in NETWORK_CHOICES:
            self.network_combo.addItem(get_network_config(net).display_name, net)
        form_layout.addRow("网络", self.network_combo)

        self.count_input = QSpinBox()
        self.count_input.setRange(1, MAX_WALLETS)
        self.count_input.setValue(1)
        form_layout.addRow("数量", self.count_input)

        btn_layout = QHBoxLayout()
        btn_layout.setAlignment(Qt.AlignLeft)
        main_layout.addLayout(btn_layout)

        for text, slot in (
            ("创建", self._create_wallets),
            ("助记词创建", self._create_hd_wallet),
            ("导入", self._import_wallet),
            ("查询余额", self._refresh_balances),
            ("复制地址", self._copy_address),
            ("查看私钥", self._reveal_private_key),
            ("删除", self._delete_wallet),
        ):
            btn = QPushButton(text)
            btn.clicked.connect(slot)
            btn_layout.addWidget(btn)
        btn_layout.addStretch()

        self.table = QTableWidget(0, 5)
        self.table.setHorizontalHeaderLabels(["名称", "网络", "地址", "余额", "创建时间"])
        self.table.setSelectionBehavior(QTableWidget.SelectRows)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.verticalHeader().setVisible(False)
        main_layout.addWidget(self.table)

        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

    # ------------------------- 数据刷新 ------------------------- #
    def _reload(self) -> None:
        self.records = self.store.list_all()
        self.table.setRowCount(len(self.records))
        for row, record in enumerate(self.records):
            balance = self.balances.get(record.address)
            balance_text = "-"
            if isinstance(balance, BalanceResult):
                shown = KeyManager.format_balance(balance.native_balance)
                balance_text = f"{shown} {balance.native_symbol}" if balance.ok else "查询失败"
            created = datetime.fromtimestamp(record.created_at / 1000).strftime("%Y-%m-%d %H:%M")
            for col, value in enumerate([record.name, record.network, record.address, balance_text, created]):
                item = QTableWidgetItem(value)
                item.setFlags(item.flags() & ~Qt.ItemIsEditable)
                self.table.setItem(row, col, item)
        self.table.resizeColumnsToContents()
        self.table.horizontalHeader().setStretchLastSection(True)
        self._set_status(f"共 {len(self.records)} 个钱包，剩余容量 {self.store.remaining_capacity()}")

    def _selected_record(self) -> Optional[WalletRecord]:
        row = self.table.currentRow()
        if row < 0 or row >= len(self.records):
            QMessageBox.information(self, "提示", "请先在列表中选择一个钱包")
            return None
        return self.records[row]

    # ------------------------- 事件与逻辑 ------------------------- #
    def _run(self, task, on_success, status: str) -> None:
        if self.worker is not None:
            QMessageBox.information(self, "提示", "已有任务在执行，请稍候")
            return
        self._set_status(status)
        self.worker = TaskWorker(task, self)
        self.worker.progress.connect(lambda done: self._set_status(f"{status} {done}"))
        self.worker.succeeded.connect(on_success)
        self.worker.failed.connect(self._on_failed)
        self.worker.finished.connect(self._on_worker_done)
        self.worker.start()

    def _on_worker_done(self) -> None:
        self.worker = None

    def _on_failed(self, exc: Exception) -> None:
        if isinstance(exc, BatchCreationError):
            saved = self._persist(exc.created)
            if saved:
                self._show_backup(saved)
            self._reload()
        QMessageBox.critical(self, "操作失败", to_user_friendly_error(exc))
        self._set_status("操作失败")

    def _create_wallets(self) -> None:
        network = self.network_combo.currentData()
        count = int(self.count_input.value())
        name = self.name_input.text().strip() or "Wallet"
        if count > self.store.remaining_capacity():
            QMessageBox.warning(self, "容量不足", f"最多还能保存 {self.store.remaining_capacity()} 个钱包")
            return
        if count == 1:
            task = lambda _cb: [self.manager.create_wallet(name, network)]
        else:
            task = lambda cb: self.manager.create_multiple_wallets(count, network, name, progress_cb=cb)
        self._run(task, self._on_created, "正在创建钱包…")

    def _create_hd_wallet(self) -> None:
        network = self.network_combo.currentData()
        name = self.name_input.text().strip() or "HD Wallet"
        self._run(
            lambda _cb: [self.manager.create_wallet_from_mnemonic(name, network)],
            self._on_created,
            "正在生成助记词钱包…",
        )

    def _import_wallet(self) -> None:
        dialog = ImportDialog(self)
        if dialog.exec_() != QDialog.Accepted:
            return
        values = dialog.values()
        self._run(lambda _cb: [self.manager.import_wallet(**values)], self._on_created, "正在导入钱包…")

    def _on_created(self, results: List[WalletCreationResult]) -> None:
        saved = self._persist(results)
        if saved:
            self._show_backup(saved)
        self._reload()

    def _persist(self, results: List[WalletCreationResult]) -> List[WalletCreationResult]:
        saved = []
        for result in results:
            try:
                self.store.insert(result.to_record_input())
                saved.append(result)
            except StorageError as exc:
                result.private_key.discard()
                QMessageBox.warning(self, "保存失败", f"{result.address}: {exc.user_message}")
        return saved

    def _show_backup(self, results: List[WalletCreationResult]) -> None:
        """一次性展示新钱包的私钥/助记词以便备份。"""
        lines = []
        for result in results:
            lines.append(f"{result.name} ({result.network.value})\n地址: {result.address}")
            lines.append(f"私钥: {result.private_key.reveal()}")
            if result.mnemonic is not None:
                lines.append(f"助记词: {result.mnemonic.reveal()}")
                lines.append(f"派生路径: {result.derivation_path}")
            lines.append("")
        box = QMessageBox(self)
        box.setWindowTitle("请立即备份（仅显示一次）")
        box.setText(f"已保存 {len(results)} 个钱包，私钥仅显示这一次。")
        box.setDetailedText("\n".join(lines))
        box.exec_()

    def _refresh_balances(self) -> None:
        if not self.records:
            return
        entries = [(r.address, r.network) for r in self.records]
        self._run(lambda _cb: self.manager.get_balances(entries), self._on_balances, "正在查询余额…")

    def _on_balances(self, results: List[BalanceResult]) -> None:
        self.balances = {r.address: r for r in results}
        failed = sum(1 for r in results if not r.ok)
        self._reload()
        if failed:
            self._set_status(f"余额查询完成，{failed} 个地址查询失败")

    def _copy_address(self) -> None:
        record = self._selected_record()
        if record:
            QApplication.clipboard().setText(record.address)
            self._set_status("地址已复制到剪贴板")

    def _reveal_private_key(self) -> None:
        record = self._selected_record()
        if not record:
            return
        confirm = QMessageBox.question(self, "查看私钥", "私钥将以明文显示，请确认周围环境安全。继续？")
        if confirm != QMessageBox.Yes:
            return
        try:
            private_key = self.manager.decrypt_private_key(record.encrypted_key)
            if self.manager.recover_wallet(record.network, private_key) != record.address:
                QMessageBox.critical(self, "校验失败", "解密出的私钥与地址不匹配")
                return
        except AppError as exc:
            QMessageBox.critical(self, "解密失败", exc.user_message)
            return
        box = QMessageBox(self)
        box.setWindowTitle(record.name)
        box.setText("私钥（请勿泄露）")
        box.setDetailedText(private_key)
        box.exec_()

    def _delete_wallet(self) -> None:
        record = self._selected_record()
        if not record:
            return
        confirm = QMessageBox.question(self, "删除钱包", f"确认删除 {record.name}？删除后无法恢复。")
        if confirm == QMessageBox.Yes:
            self.store.delete(record.id)
            self.balances.pop(record.address, None)
            self._reload()

    def _set_status(self, text: str) -> None:
        self.status_bar.showMessage(text, 5000)
