import zipfile

import pytest
import toml

from modpacker.config import DependencyPolicy
from modpacker.exceptions import ConfigError, ConfigValidationError, UninitializedError
from modpacker.models import LATEST, AddonOptions, ModLoader, ProjectType
from modpacker.orchestrator import ModpackerOrchestrator
from modpacker.packager.mrpack import MANIFEST

from tests.fakes import (
    cf_file,
    cf_mod,
    gh_release,
    make_file,
    mr_project,
    mr_version,
    required,
)


class Answers:
    """按顺序返回预设答案的确认回调"""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.questions = []

    def __call__(self, message):
        self.questions.append(message)
        return self.answers.pop(0)


def populate(registries, tmp_path):
    sodium = make_file(tmp_path / "remote" / "sodium.jar", b"sodium")
    registries.modrinth.add(
        mr_project("AANobbMI", "Sodium"),
        mr_version(
            "sod-1",
            "AANobbMI",
            filename="sodium.jar",
            url=sodium["url"],
            sha1=sodium["sha1"],
            sha512=sodium["sha512"],
            dependencies=[required("P7dR8mSH")],
        ),
        mr_version(
            "sod-2",
            "AANobbMI",
            game_versions=["1.21"],
            published="2024-07-01T00:00:00Z",
            dependencies=[required("P7dR8mSH")],
        ),
    )
    api = make_file(tmp_path / "remote" / "fabric-api.jar", b"fabric api")
    registries.modrinth.add(
        mr_project("P7dR8mSH", "Fabric API"),
        mr_version(
            "api-1",
            "P7dR8mSH",
            filename="fabric-api.jar",
            url=api["url"],
            sha1=api["sha1"],
            sha512=api["sha512"],
        ),
    )
    registries.modrinth.add(
        mr_project("EXTRA0", "Sodium Extra"),
        mr_version("extra-1", "EXTRA0"),
    )
    registries.modrinth.add(
        mr_project("FORGEY", "Forge Only"),
        mr_version("forge-1", "FORGEY", loaders=["forge"]),
    )
    registries.curseforge.add(cf_mod(238222, "Jei", slug="jei"), cf_file(4593548, 238222))
    registries.github.add(
        "owner/tweaks",
        gh_release("mc1.20.1-2.0", assets=[{"name": "tweaks-2.jar", "url": "https://x/2"}]),
        gh_release("mc1.20.1-1.0", assets=[{"name": "tweaks-1.jar", "url": "https://x/1"}]),
    )
    registries.loaders.versions["1.21"] = ["0.16.0"]


@pytest.fixture
def make_orchestrator(tmp_path, registries, settings):
    def _make(chooser=None, confirm=None, root=None):
        return ModpackerOrchestrator(
            root=root or tmp_path / "pack",
            settings=settings,
            registries=registries,
            chooser=chooser,
            confirm=confirm,
        )

    return _make


@pytest.fixture
async def orchestrator(make_orchestrator, registries, tmp_path):
    populate(registries, tmp_path)
    orchestrator = make_orchestrator()
    await orchestrator.init("Test Pack", ModLoader.FABRIC, "1.20.1", loader_version="0.15.3", authors=["alice"])
    return orchestrator


def index_files(orchestrator):
    return sorted(p.name for p in (orchestrator.root / "index").iterdir())


class TestInit:
    async def test_writes_pack_file(self, make_orchestrator, tmp_path):
        orchestrator = make_orchestrator()
        await orchestrator.init("My Pack", ModLoader.FABRIC, "1.20.1")
        data = toml.load(tmp_path / "pack" / "pack.toml")
        assert data["name"] == "My Pack"
        assert data["version"] == "0.1.0"
        assert data["versions"] == {"minecraft": "1.20.1", "loader": "fabric", "loader_version": LATEST}

    async def test_refuses_existing_pack(self, orchestrator):
        with pytest.raises(ConfigError):
            await orchestrator.init("Again", ModLoader.FORGE, "1.20.1")

    async def test_latest_minecraft_and_quilt_fallback(self, make_orchestrator, registries):
        registries.loaders.latest_release = "1.21"
        modpack = await make_orchestrator().init("Q", ModLoader.QUILT)
        assert modpack.versions.minecraft == "1.21"
        assert modpack.options.acceptable_loaders == [ModLoader.FABRIC]

    async def test_commands_need_a_pack(self, make_orchestrator):
        with pytest.raises(UninitializedError):
            await make_orchestrator().list_addons()


class TestAdd:
    async def test_adds_with_required_dependencies(self, orchestrator):
        added = await orchestrator.add_modrinth(["AANobbMI"])

        assert [a.name for a in added] == ["Fabric API", "Sodium"]
        assert index_files(orchestrator) == ["fabric-api.toml", "sodium.toml"]
        assert [row["name"] for row in await orchestrator.list_addons()] == ["Fabric API", "Sodium"]

    async def test_adding_twice_is_a_no_op(self, orchestrator):
        await orchestrator.add_modrinth(["AANobbMI"])
        assert await orchestrator.add_modrinth(["sodium"]) == []

    async def test_search_fallback_on_invalid_id(self, orchestrator):
        added = await orchestrator.add_modrinth(["Sodium Extra"])
        assert [a.name for a in added] == ["Sodium Extra"]

    async def test_search_uses_chooser_without_exact_title(self, make_orchestrator, orchestrator):
        choices = []

        def chooser(message, options):
            choices.append(list(options))
            return options.index("Sodium Extra")

        chosen = make_orchestrator(chooser=chooser)
        added = await chosen.add_modrinth(["sodium ext"])

        assert [a.name for a in added] == ["Sodium Extra"]
        assert choices == [["Sodium Extra"]]

    async def test_cancelled_search_skips(self, make_orchestrator, orchestrator):
        cancelled = make_orchestrator(chooser=lambda message, options: None)
        assert await cancelled.add_modrinth(["sodium ext"]) == []

    async def test_incompatible_item_skipped_rest_added(self, orchestrator):
        added = await orchestrator.add_modrinth(["FORGEY", "EXTRA0"])
        assert [a.name for a in added] == ["Sodium Extra"]

    async def test_per_addon_loader_override(self, orchestrator):
        added = await orchestrator.add_modrinth(["FORGEY"], options=AddonOptions(mod_loader=ModLoader.FORGE))
        assert added[0].source.version == "forge-1"
        assert added[0].options.mod_loader is ModLoader.FORGE

    async def test_explicit_version_requires_single_id(self, orchestrator):
        with pytest.raises(ConfigValidationError):
            await orchestrator.add_modrinth(["AANobbMI", "EXTRA0"], version="sod-1")

    async def test_explicit_version_skips_filter(self, orchestrator):
        added = await orchestrator.add_modrinth(["AANobbMI"], version="sod-2")
        assert {a.name: a.source.version for a in added}["Sodium"] == "sod-2"

    async def test_curseforge_by_slug(self, orchestrator):
        added = await orchestrator.add_curseforge(["jei"])
        assert added[0].source.id == 238222
        assert added[0].source.version == 4593548

    async def test_github_picks_release(self, make_orchestrator, orchestrator):
        picker = make_orchestrator(chooser=lambda message, options: 1)
        added = await picker.add_github("https://github.com/owner/tweaks", project_type=ProjectType.MOD)

        source = added[0].source
        assert added[0].name == "tweaks"
        assert source.tag == "mc1.20.1-1.0"
        assert source.release_pattern("1.20.1").fullmatch("mc1.20.1-2.0")

    async def test_best_effort_policy(self, make_orchestrator, orchestrator, registries, settings):
        registries.modrinth.add(
            mr_project("BROKEN", "Broken"),
            mr_version("broken-1", "BROKEN", dependencies=[required("GONE00")]),
        )
        settings.dependency_policy = DependencyPolicy.BEST_EFFORT

        added = await make_orchestrator().add_modrinth(["BROKEN"])

        assert [a.name for a in added] == ["Broken"]


class TestManage:
    async def test_remove(self, orchestrator):
        await orchestrator.add_modrinth(["AANobbMI"])
        removed = await orchestrator.remove(["fabric api", "missing"])
        assert [a.name for a in removed] == ["Fabric API"]
        assert index_files(orchestrator) == ["sodium.toml"]

    async def test_pin_and_list(self, orchestrator):
        await orchestrator.add_modrinth(["AANobbMI"])
        await orchestrator.pin("modrinth:AANobbMI")

        rows = {row["name"]: row for row in await orchestrator.list_addons(verbose=True)}

        assert rows["Sodium"] == {
            "name": "Sodium",
            "type": "mod",
            "source": "modrinth",
            "id": "AANobbMI",
            "version": "sod-1",
            "pinned": "yes",
        }
        assert rows["Fabric API"]["pinned"] == "no"

        await orchestrator.unpin("sodium")
        rows = {row["name"]: row for row in await orchestrator.list_addons(verbose=True)}
        assert rows["Sodium"]["pinned"] == "no"

    async def test_pin_unknown(self, orchestrator):
        with pytest.raises(ConfigValidationError):
            await orchestrator.pin("nothing")

    async def test_update_skips_pinned(self, orchestrator, registries):
        await orchestrator.add_modrinth(["AANobbMI"])
        await orchestrator.pin("Sodium")
        registries.modrinth.add(
            registries.modrinth.projects["P7dR8mSH"],
            mr_version("api-2", "P7dR8mSH", published="2025-01-01T00:00:00Z"),
        )

        updated = await orchestrator.update()

        assert [(a.name, a.source.version) for a in updated] == [("Fabric API", "api-2")]
        rows = {row["name"]: row["version"] for row in await orchestrator.list_addons(verbose=True)}
        assert rows == {"Fabric API": "api-2", "Sodium": "sod-1"}

    async def test_update_skips_vanished_project(self, orchestrator, registries):
        await orchestrator.add_modrinth(["AANobbMI"])
        del registries.modrinth.projects["AANobbMI"]
        registries.modrinth.add(
            registries.modrinth.projects["P7dR8mSH"],
            mr_version("api-2", "P7dR8mSH", published="2025-01-01T00:00:00Z"),
        )

        updated = await orchestrator.update()

        assert [(a.name, a.source.version) for a in updated] == [("Fabric API", "api-2")]
        rows = {row["name"]: row["version"] for row in await orchestrator.list_addons(verbose=True)}
        assert rows["Sodium"] == "sod-1"

    async def test_update_github_by_filter(self, make_orchestrator, orchestrator):
        picker = make_orchestrator(chooser=lambda message, options: 1)
        await picker.add_github("owner/tweaks")

        updated = await orchestrator.update()

        assert [a.source.tag for a in updated] == ["mc1.20.1-2.0"]


class TestExportImport:
    async def test_export_mrpack(self, orchestrator, tmp_path):
        await orchestrator.add_modrinth(["AANobbMI"])

        output = await orchestrator.export_mrpack(tmp_path / "out")

        with zipfile.ZipFile(output) as archive:
            assert MANIFEST in archive.namelist()

    async def test_import_declined_keeps_pack(self, make_orchestrator, orchestrator, tmp_path):
        await orchestrator.add_modrinth(["AANobbMI"])
        output = await orchestrator.export_mrpack(tmp_path / "out")

        confirm = Answers(False)
        result = await make_orchestrator(confirm=confirm).import_pack("mrpack", output)

        assert result is None
        assert len(confirm.questions) == 1
        assert index_files(orchestrator) == ["fabric-api.toml", "sodium.toml"]

    async def test_import_overwrite_replaces_index(self, make_orchestrator, orchestrator, tmp_path):
        await orchestrator.add_modrinth(["AANobbMI"])
        output = await orchestrator.export_mrpack(tmp_path / "out")
        await orchestrator.add_modrinth(["EXTRA0"])

        result = await make_orchestrator(confirm=Answers(True)).import_pack("mrpack", output)

        assert {a.name for a in result.index} == {"Fabric API", "Sodium"}
        assert index_files(orchestrator) == ["fabric-api.toml", "sodium.toml"]

    async def test_import_into_empty_root(self, make_orchestrator, orchestrator, tmp_path):
        await orchestrator.add_modrinth(["AANobbMI"])
        output = await orchestrator.export_mrpack(tmp_path / "out")

        fresh = make_orchestrator(root=tmp_path / "fresh")
        result = await fresh.import_pack("mrpack", output)

        assert result.modpack.name == "Test Pack"
        assert [row["name"] for row in await fresh.list_addons()] == ["Fabric API", "Sodium"]

    async def test_unknown_import_format(self, orchestrator):
        with pytest.raises(ConfigValidationError):
            await orchestrator.import_pack("zip", "x.zip")


class TestMigrate:
    async def test_migrate_minecraft(self, make_orchestrator, orchestrator, registries):
        await orchestrator.add_modrinth(["AANobbMI", "EXTRA0"])
        registries.modrinth.add(
            registries.modrinth.projects["P7dR8mSH"],
            mr_version("api-121", "P7dR8mSH", game_versions=["1.21"]),
        )
        confirm = Answers(True)

        result = await make_orchestrator(confirm=confirm).migrate_minecraft("1.21", remove_incompatible=True)

        assert [a.name for a in result.removed] == ["Sodium Extra"]
        assert sorted(a.source.version for a in result.updated) == ["api-121", "sod-2"]
        modpack = orchestrator.store.read()
        assert modpack.versions.minecraft == "1.21"
        assert modpack.versions.loader_version == "0.16.0"
        assert index_files(orchestrator) == ["fabric-api.toml", "sodium.toml"]

    async def test_migrate_declined(self, make_orchestrator, orchestrator):
        await orchestrator.add_modrinth(["EXTRA0"])
        assert await make_orchestrator(confirm=Answers(False)).migrate_minecraft("1.21") is None
        assert orchestrator.store.read().versions.minecraft == "1.20.1"

    async def test_migrate_asks_about_incompatible(self, make_orchestrator, orchestrator):
        await orchestrator.add_modrinth(["EXTRA0"])
        confirm = Answers(True, False)

        result = await make_orchestrator(confirm=confirm).migrate_minecraft("1.21")

        assert len(confirm.questions) == 2
        assert result.removed == []
        assert index_files(orchestrator) == ["sodium-extra.toml"]

    async def test_migrate_loader(self, orchestrator, registries):
        registries.loaders.versions["1.20.1"] = ["0.16.0", "0.15.3"]
        assert (await orchestrator.migrate_loader()).versions.loader_version == "0.16.0"
        assert (await orchestrator.migrate_loader("0.15.3")).versions.loader_version == "0.15.3"
        with pytest.raises(ConfigValidationError):
            await orchestrator.migrate_loader("9.9.9")
