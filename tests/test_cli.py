import asyncio

import pytest
import toml
from click.testing import CliRunner

from modpacker import __version__
from modpacker.cli import main
from modpacker.index import IndexStore
from modpacker.models import Addon, AddonOptions, ModrinthSource, ProjectType, Side


@pytest.fixture
def runner(monkeypatch):
    for name in ("CURSEFORGE_API_KEY", "GITHUB_TOKEN", "MODPACKER_DEPENDENCY_POLICY"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


def invoke(runner, root, *args):
    return runner.invoke(main, ["--root", str(root), *args])


def init_pack(runner, root):
    return invoke(
        runner, root, "init", "CLI Pack", "--loader", "fabric", "--mc", "1.20.1",
        "--loader-version", "0.15.3", "--author", "alice",
    )


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_commands(runner):
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("init", "add", "export", "import", "migrate"):
        assert command in result.output


def test_uninitialized_root_fails(runner, tmp_path):
    result = invoke(runner, tmp_path, "list")
    assert result.exit_code == 1
    assert "modpacker init" in result.output


def test_init_writes_pack_toml(runner, tmp_path):
    result = init_pack(runner, tmp_path)

    assert result.exit_code == 0, result.output
    data = toml.load(tmp_path / "pack.toml")
    assert data["name"] == "CLI Pack"
    assert data["versions"]["minecraft"] == "1.20.1"
    assert data["versions"]["loader_version"] == "0.15.3"

    again = init_pack(runner, tmp_path)
    assert again.exit_code == 1


def test_list_and_pin(runner, tmp_path):
    init_pack(runner, tmp_path)
    assert "整合包中没有 Addon" in invoke(runner, tmp_path, "list").output

    sodium = Addon(
        "Sodium", ProjectType.MOD, Side.CLIENT, ModrinthSource("AANobbMI", "sod-1"), AddonOptions()
    )
    asyncio.run(IndexStore(tmp_path).write([sodium]))

    assert invoke(runner, tmp_path, "pin", "sodium").exit_code == 0
    result = invoke(runner, tmp_path, "list", "-v")
    assert result.exit_code == 0
    assert "Sodium (mod) modrinth:AANobbMI @ sod-1 [固定]" in result.output

    missing = invoke(runner, tmp_path, "unpin", "nothing")
    assert missing.exit_code == 1


def test_invalid_loader_choice(runner, tmp_path):
    result = invoke(runner, tmp_path, "init", "x", "--loader", "rift")
    assert result.exit_code == 2
