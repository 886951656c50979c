"""
CLI 模块

命令行接口实现。
"""

import asyncio
import sys

import click
from loguru import logger

from patchsync import __version__
from patchsync.exceptions import PatchSyncError
from patchsync.listener import ConsoleListener
from patchsync.logger import setup_logger
from patchsync.models import PatchConfig, PatchState, load_config
from patchsync.session import PatchSession


async def run_async(config: PatchConfig, clear_cache: bool = False) -> PatchState:
    """异步运行一次补丁会话"""
    session = PatchSession(config, listener=ConsoleListener())

    if clear_cache:
        session.clear_cache()

    await session.start()

    stats = session.stats
    if session.state == PatchState.FINISHED:
        logger.success(
            f"完成! 共 {stats.total} 个文件: {stats.downloaded} 下载, {stats.skipped} 跳过"
        )
    return session.state


@click.command()
@click.argument("config", type=click.Path(exists=True), default="patchsync.toml")
@click.option("--clear-cache", is_flag=True, help="清除校验值缓存后再检查")
@click.option("--dry-run", is_flag=True, help="干运行模式（只验证配置）")
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.version_option(version=__version__)
def main(config: str, clear_cache: bool, dry_run: bool, debug: bool):
    """PatchSync - 增量补丁同步工具"""
    # 设置日志级别
    setup_logger(level="DEBUG" if debug else None)

    try:
        patch_config = load_config(config)
    except PatchSyncError as e:
        logger.error(f"配置错误: {e}")
        raise click.ClickException(str(e))

    if dry_run:
        logger.info("[干运行模式] 配置验证通过")
        logger.info(f"  补丁清单: {patch_config.server.manifest_url}")
        logger.info(f"  备用地址: {patch_config.server.fallback_base_url}")
        logger.info(f"  数据目录: {patch_config.paths.data_dir}")
        logger.info(f"  缓存目录: {patch_config.paths.cache_dir}")
        return

    try:
        state = asyncio.run(run_async(patch_config, clear_cache))
    except PatchSyncError as e:
        raise click.ClickException(str(e))

    if state == PatchState.ERRORED:
        sys.exit(1)


if __name__ == "__main__":
    main()
