"""pio2nix 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
锁定文件输出到 stdout，日志输出到 stderr。
"""

from typing import Any

import click

from pio2nix import __version__
from pio2nix.core.config import init_config
from pio2nix.core.exceptions import Pio2NixError
from pio2nix.utils.logger import configure_from_env


class _Group(click.Group):
    """把业务异常转为 click 的友好报错（退出码 1）"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except Pio2NixError as exc:
            raise click.ClickException(str(exc)) from exc


@click.group(cls=_Group)
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path", default=None, envvar="PIO2NIX_CONFIG",
    type=click.Path(dir_okay=False), help="YAML 配置文件路径",
)
def main(config_path: str | None) -> None:
    """pio2nix - 由本地 PlatformIO 包清单生成可复现的锁定文件"""
    configure_from_env()
    init_config(config_path)


# 注册各领域子命令
from pio2nix.cli.cmd_lock import register as _reg_lock  # noqa: E402
from pio2nix.cli.cmd_registry import register as _reg_registry  # noqa: E402

_reg_lock(main)
_reg_registry(main)
