"""CLI: 锁定文件生成与升级命令"""

from __future__ import annotations

import dataclasses
import logging

import click

from pio2nix.core.config import get_config, resolve_core_dir, resolve_workspace_dir
from pio2nix.core.lockfile import read_lockfile, serialize_lockfile, write_lockfile

logger = logging.getLogger(__name__)


def register(group: click.Group) -> None:
    group.add_command(lock)
    group.add_command(upgrade)


# ---- 生成 ----

@click.command()
@click.option("--core-dir", default=None, help="PlatformIO 核心目录（默认 $PLATFORMIO_CORE_DIR 或 ~/.platformio）")
@click.option("--workspace-dir", default=None, help="项目 .pio 目录（默认自当前目录向上查找）")
@click.option("-o", "--output", default=None, help="写入文件（不指定则输出到 stdout）")
@click.option("-j", "--jobs", type=int, default=None, help="并行解析线程数")
@click.option("--keep-going", is_flag=True, help="单个包解析失败时跳过而不是中止")
@click.option("--registry-url", default=None, help="覆盖注册表地址")
@click.option("--cache-dir", default=None, help="覆盖响应缓存目录")
def lock(
    core_dir: str | None, workspace_dir: str | None, output: str | None,
    jobs: int | None, keep_going: bool,
    registry_url: str | None, cache_dir: str | None,
) -> None:
    """扫描已安装的包并生成锁定文件"""
    from pio2nix.core.lock_manager import LockManager

    overrides = {
        k: v for k, v in
        (("registry_url", registry_url), ("cache_dir", cache_dir), ("max_workers", jobs))
        if v is not None
    }
    config = dataclasses.replace(get_config(), **overrides)
    config.validate()

    roots = [resolve_core_dir(core_dir), resolve_workspace_dir(workspace_dir)]
    logger.info("扫描目录: %s", ", ".join(str(r) for r in roots if r is not None))

    manager = LockManager.from_config(config, keep_going=keep_going)
    lockfile = manager.lock(roots)

    if output:
        path = write_lockfile(lockfile, output)
        click.echo(f"已写入 {len(lockfile.dependencies)} 个依赖: {path}", err=True)
    else:
        click.echo(serialize_lockfile(lockfile), nl=False)

    if manager.failures:
        click.echo(f"有 {len(manager.failures)} 个包解析失败，已跳过:", err=True)
        for source, reason in manager.failures.items():
            click.echo(f"  {source}: {reason}", err=True)


# ---- 升级 ----

@click.command()
@click.argument("lockfile_path", metavar="LOCKFILE", type=click.Path(dir_okay=False))
@click.option("-o", "--output", default=None, help="写入文件（不指定则输出到 stdout）")
@click.option("--in-place", is_flag=True, help="直接覆盖原文件")
def upgrade(lockfile_path: str, output: str | None, in_place: bool) -> None:
    """把旧版本锁定文件升级为当前版本"""
    lockfile = read_lockfile(lockfile_path)
    target = lockfile_path if in_place else output
    if target:
        write_lockfile(lockfile, target)
        click.echo(f"已升级: {target}", err=True)
    else:
        click.echo(serialize_lockfile(lockfile), nl=False)
