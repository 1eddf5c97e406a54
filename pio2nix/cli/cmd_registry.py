"""CLI: 注册表查询命令"""

from __future__ import annotations

import click

from pio2nix.core.config import get_config


def register(group: click.Group) -> None:
    group.add_command(search)


@click.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--registry-url", default=None, help="覆盖注册表地址")
def search(names: tuple[str, ...], registry_url: str | None) -> None:
    """按包名搜索注册表，列出最新版本及其支持的平台"""
    from pio2nix.core.dep.fetcher import HttpFetcher, ResponseCache
    from pio2nix.core.dep.registry import RegistryClient

    config = get_config()
    fetcher = HttpFetcher(cache=ResponseCache(config.cache_dir), timeout=config.timeout)
    client = RegistryClient(fetcher, registry_url=registry_url or config.registry_url)
    results = client.search(names)
    if not results.items:
        click.echo("没有匹配的包。")
        return
    for item in results.items:
        systems = [str(f.system) for f in item.latest.files] or ["-"]
        click.echo(
            f"  {item.owner.username}/{item.name:24s} {item.latest.name:12s} "
            f"[{item.kind}] {', '.join(systems)}"
        )
