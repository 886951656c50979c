"""
补丁会话监听器

补丁引擎与界面层之间唯一的耦合点。界面层继承 PatchListener
并覆盖需要的回调；所有回调都在事件循环线程上调用。
"""

import click


class PatchListener:
    """
    补丁会话监听器基类

    默认实现不做任何事。
    """

    def on_progress_percent(self, percent: int) -> None:
        """进度条百分比 (0-100)"""

    def on_status_text(self, text: str) -> None:
        """状态栏文本"""

    def on_patching_state_changed(self, patching: bool) -> None:
        """开始/结束下载补丁"""

    def on_finished(self) -> None:
        """会话正常结束"""

    def on_error(self, message: str) -> None:
        """会话出错终止"""


class ConsoleListener(PatchListener):
    """
    命令行进度显示

    只在状态文本变化时输出，避免刷屏。
    """

    def __init__(self):
        self._last_status = ""
        self.status = ""
        self.percent = 0

    def on_progress_percent(self, percent: int) -> None:
        self.percent = percent

    def on_status_text(self, text: str) -> None:
        self.status = text
        if text and text != self._last_status:
            click.echo(text)
            self._last_status = text

    def on_patching_state_changed(self, patching: bool) -> None:
        if patching:
            click.echo("📦 开始更新补丁...")

    def on_finished(self) -> None:
        # 正常结束时状态文本为空；否则是未能完成检查的原因，已在上面输出
        if self.status:
            click.echo("⚠ 补丁未检查，请稍后重试", err=True)
        else:
            click.echo("✓ 补丁已是最新")

    def on_error(self, message: str) -> None:
        click.echo(f"✗ {message}", err=True)
