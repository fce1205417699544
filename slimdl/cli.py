"""
CLI 模块

命令行接口实现：读取配置中的下载条目，全部提交后启动调度池并等待完成。
"""

from typing import Optional

import click
from loguru import logger

from slimdl import __version__
from slimdl.download import DownloadStats, HttpTransfer, QueueManager
from slimdl.exceptions import SlimDLError
from slimdl.logger import setup_logger
from slimdl.models import SlimDLConfig, load_config


def run_downloads(config: SlimDLConfig, wait_timeout: Optional[float] = None) -> DownloadStats:
    """按配置执行下载，返回统计信息"""
    transfer = HttpTransfer(
        download_dir=config.download_dir,
        chunk_size=config.chunk_size,
        timeout=config.timeout,
    )
    manager = QueueManager(
        transfer, pool_size=config.pool_size, join_timeout=config.join_timeout
    )

    # 先全部提交再启动，保证优先级在所有条目之间生效
    for entry in config.downloads:
        manager.enqueue(
            entry.url,
            filename=entry.filename,
            sha1=entry.sha1,
            priority=entry.priority,
        )

    manager.start()
    try:
        if not manager.wait_until_complete(wait_timeout):
            manager.cancel_all()
            raise click.ClickException(f"等待下载完成超时 ({wait_timeout}s)")
    except KeyboardInterrupt:
        logger.warning("[中断] 收到中断信号，正在清空队列...")
        manager.cancel_all()
        raise click.Abort()
    finally:
        manager.stop()

    return manager.get_stats()


@click.command()
@click.argument("config", type=click.Path(exists=True), default="downloads.toml")
@click.option("-w", "--workers", type=int, help="调度线程数（覆盖配置）")
@click.option("--wait-timeout", type=float, help="等待全部下载完成的最长秒数")
@click.option("--dry-run", is_flag=True, help="干运行模式（只验证配置）")
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.version_option(version=__version__)
def main(
    config: str,
    workers: Optional[int],
    wait_timeout: Optional[float],
    dry_run: bool,
    debug: bool,
):
    """SlimDL - 带优先级的并发下载队列"""
    setup_logger(level="DEBUG" if debug else None)

    try:
        cfg = load_config(config)
        if workers is not None:
            cfg.pool_size = workers
            cfg.validate()
    except SlimDLError as e:
        logger.error(f"配置错误: {e}")
        raise click.ClickException(str(e))

    if dry_run:
        logger.info("[干运行模式] 配置验证通过")
        logger.info(f"  调度线程数: {cfg.pool_size}")
        logger.info(f"  下载目录: {cfg.download_dir}")
        logger.info(f"  下载条目数: {len(cfg.downloads)}")
        return

    if not cfg.downloads:
        logger.info("没有配置下载条目")
        return

    stats = run_downloads(cfg, wait_timeout)
    logger.success(
        f"完成! 成功 {stats.completed} 个，失败 {stats.failed} 个，取消 {stats.cancelled} 个"
    )
    if stats.failed:
        raise click.ClickException(f"{stats.failed} 个下载失败")


if __name__ == "__main__":
    main()
