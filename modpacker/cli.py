"""
CLI 模块

命令行接口实现。
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

import click
from loguru import logger

from modpacker import __version__
from modpacker.config import load_settings
from modpacker.exceptions import ModpackerError
from modpacker.logger import setup_logger
from modpacker.models import LATEST, AddonOptions, ModLoader, ProjectType, ReleaseChannel
from modpacker.orchestrator import ModpackerOrchestrator

LOADER_CHOICE = click.Choice([loader.value for loader in ModLoader], case_sensitive=False)
CHANNEL_CHOICE = click.Choice([channel.value for channel in ReleaseChannel], case_sensitive=False)
TYPE_CHOICE = click.Choice(
    [t.value for t in ProjectType if t.supported and t is not ProjectType.UNKNOWN],
    case_sensitive=False,
)


def prompt_choice(message: str, options: Sequence[str]) -> Optional[int]:
    """在终端中选择一项，0 表示取消"""
    click.echo(message)
    for number, option in enumerate(options, 1):
        click.echo(f"  {number}. {option}")
    choice = click.prompt("请选择 (0 取消)", type=click.IntRange(0, len(options)), default=1)
    return None if choice == 0 else choice - 1


def run(ctx: click.Context, action: Callable[[ModpackerOrchestrator], Awaitable]):
    """创建协调器并运行一个命令"""
    obj = ctx.obj
    assume_yes = obj["yes"]

    def confirm(message: str) -> bool:
        return assume_yes or click.confirm(message, default=False)

    async def _main():
        settings = load_settings(obj["config"], root=obj["root"])
        async with ModpackerOrchestrator(
            root=obj["root"], settings=settings, chooser=prompt_choice, confirm=confirm
        ) as orchestrator:
            return await action(orchestrator)

    try:
        return asyncio.run(_main())
    except ModpackerError as e:
        logger.debug(f"命令失败: {e.to_dict()}")
        raise click.ClickException(str(e)) from e


def addon_options(
    loader: Optional[str], game_version: Optional[str], channel: Optional[str], pin: bool = False
) -> AddonOptions:
    return AddonOptions(
        pinned=pin,
        mod_loader=ModLoader.parse(loader) if loader else None,
        game_version=game_version,
        release_channel=ReleaseChannel.parse(channel) if channel else None,
    )


@click.group()
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="整合包根目录",
)
@click.option("--config", type=click.Path(dir_okay=False, path_type=Path), help="设置文件路径")
@click.option("-y", "--yes", is_flag=True, help="对所有确认提示回答是")
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), help="同时把日志写入文件")
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    root: Path,
    config: Optional[Path],
    yes: bool,
    debug: bool,
    log_file: Optional[Path],
):
    """modpacker - Minecraft 整合包管理工具"""
    if debug or log_file is not None:
        setup_logger(level="DEBUG" if debug else None, log_file=log_file)
    ctx.obj = {"root": root, "config": config, "yes": yes}


@main.command()
@click.argument("name")
@click.option("--loader", type=LOADER_CHOICE, required=True, help="模组加载器")
@click.option("--mc", "minecraft_version", help="Minecraft 版本（默认最新正式版）")
@click.option("--loader-version", default=LATEST, show_default=True, help="加载器版本")
@click.option("--author", "authors", multiple=True, help="作者（可多次使用）")
@click.option("--description", help="整合包简介")
@click.pass_context
def init(ctx, name, loader, minecraft_version, loader_version, authors, description):
    """创建新的整合包"""
    run(
        ctx,
        lambda o: o.init(
            name,
            ModLoader.parse(loader),
            minecraft_version=minecraft_version,
            loader_version=loader_version,
            authors=authors,
            description=description,
        ),
    )


# ------------------------------------------------------------------- add


@main.group()
def add():
    """添加 Addon"""


def _addon_option_flags(func):
    func = click.option("--pin", is_flag=True, help="固定版本")(func)
    func = click.option("--channel", type=CHANNEL_CHOICE, help="最低发布通道")(func)
    func = click.option("--game-version", help="覆盖此 Addon 的游戏版本")(func)
    func = click.option("--loader", type=LOADER_CHOICE, help="覆盖此 Addon 的加载器")(func)
    return func


@add.command("modrinth")
@click.argument("ids", nargs=-1, required=True)
@click.option("--version", "version_id", help="指定版本 ID（只能添加一个项目）")
@_addon_option_flags
@click.pass_context
def add_modrinth(ctx, ids, version_id, loader, game_version, channel, pin):
    """从 Modrinth 添加项目（ID、slug 或名称）"""
    options = addon_options(loader, game_version, channel, pin)
    run(ctx, lambda o: o.add_modrinth(list(ids), version_id, options))


@add.command("curseforge")
@click.argument("ids", nargs=-1, required=True)
@click.option("--file-id", type=int, help="指定文件 ID（只能添加一个项目）")
@_addon_option_flags
@click.pass_context
def add_curseforge(ctx, ids, file_id, loader, game_version, channel, pin):
    """从 CurseForge 添加项目（数字 ID、slug 或名称）"""
    options = addon_options(loader, game_version, channel, pin)
    run(ctx, lambda o: o.add_curseforge(list(ids), file_id, options))


@add.command("github")
@click.argument("repo")
@click.option("--tag", help="release 标签")
@click.option("--asset-index", type=int, help="release 附件序号")
@click.option("--type", "project_type", type=TYPE_CHOICE, default="mod", show_default=True)
@click.pass_context
def add_github(ctx, repo, tag, asset_index, project_type):
    """从 GitHub release 添加（owner/repo 或仓库 URL）"""
    run(ctx, lambda o: o.add_github(repo, tag, asset_index, ProjectType(project_type)))


# ------------------------------------------------------ remove / pin / list


@main.command()
@click.argument("queries", nargs=-1, required=True)
@click.pass_context
def remove(ctx, queries):
    """移除 Addon（名称或 ID）"""
    run(ctx, lambda o: o.remove(list(queries)))


@main.command()
@click.argument("query")
@click.pass_context
def pin(ctx, query):
    """固定 Addon 的版本"""
    run(ctx, lambda o: o.pin(query))


@main.command()
@click.argument("query")
@click.pass_context
def unpin(ctx, query):
    """取消固定 Addon 的版本"""
    run(ctx, lambda o: o.unpin(query))


@main.command("list")
@click.option("-v", "--verbose", is_flag=True, help="显示类型、来源、ID 与版本")
@click.pass_context
def list_command(ctx, verbose):
    """列出整合包中的 Addon"""
    rows = run(ctx, lambda o: o.list_addons(verbose))
    for row in rows:
        if verbose:
            pinned = " [固定]" if row["pinned"] == "yes" else ""
            click.echo(
                f"{row['name']} ({row['type']}) {row['source']}:{row['id']} @ {row['version']}{pinned}"
            )
        else:
            click.echo(row["name"])
    if not rows:
        click.echo("整合包中没有 Addon")


@main.command()
@click.pass_context
def update(ctx):
    """把未固定的 Addon 更新到最新兼容版本"""
    run(ctx, lambda o: o.update())


# ---------------------------------------------------------------- export


@main.group()
def export():
    """导出整合包"""


@export.command("mrpack")
@click.option("--output", type=click.Path(file_okay=False, path_type=Path), help="输出目录")
@click.option("--overrides", type=click.Path(file_okay=False, path_type=Path), help="overrides 目录")
@click.pass_context
def export_mrpack(ctx, output, overrides):
    """导出为 Modrinth .mrpack"""
    run(ctx, lambda o: o.export_mrpack(output, overrides))


@export.command("curseforge")
@click.option("--output", type=click.Path(file_okay=False, path_type=Path), help="输出目录")
@click.option("--overrides", type=click.Path(file_okay=False, path_type=Path), help="overrides 目录")
@click.pass_context
def export_curseforge(ctx, output, overrides):
    """导出为 CurseForge .zip"""
    run(ctx, lambda o: o.export_curseforge(output, overrides))


@export.command("packwiz")
@click.argument("output", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def export_packwiz(ctx, output):
    """导出为 packwiz 目录（必须存在且为空）"""
    run(ctx, lambda o: o.export_packwiz(output))


# ---------------------------------------------------------------- import


@main.group("import")
def import_group():
    """导入外部整合包"""


@import_group.command("mrpack")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_mrpack(ctx, path):
    """从 .mrpack 导入"""
    run(ctx, lambda o: o.import_pack("mrpack", path))


@import_group.command("curseforge")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_curseforge(ctx, path):
    """从 CurseForge .zip 导入"""
    run(ctx, lambda o: o.import_pack("curseforge", path))


@import_group.command("packwiz")
@click.argument("source")
@click.pass_context
def import_packwiz(ctx, source):
    """从 packwiz pack.toml（本地路径或 URL）导入"""
    run(ctx, lambda o: o.import_pack("packwiz", source))


# --------------------------------------------------------------- migrate


@main.group()
def migrate():
    """迁移整合包"""


@migrate.command("minecraft")
@click.argument("version")
@click.option(
    "--remove-incompatible/--keep-incompatible",
    default=None,
    help="是否移除不兼容的 Addon（默认询问）",
)
@click.pass_context
def migrate_minecraft(ctx, version, remove_incompatible):
    """迁移到新的 Minecraft 版本"""
    run(ctx, lambda o: o.migrate_minecraft(version, remove_incompatible))


@migrate.command("loader")
@click.argument("version", required=False)
@click.pass_context
def migrate_loader(ctx, version):
    """改写加载器版本（默认最新）"""
    run(ctx, lambda o: o.migrate_loader(version))


if __name__ == "__main__":
    main()
