from modpacker.index import Index
from modpacker.models import (
    Addon,
    AddonOptions,
    CurseforgeSource,
    GithubSource,
    ModrinthSource,
    ProjectType,
    Side,
    Target,
)
from modpacker.services import Compatibility, MigrationEngine

from tests.fakes import cf_file, cf_mod, mr_project, mr_version


def addon(name, source, **options):
    return Addon(
        name=name,
        project_type=ProjectType.MOD,
        side=Side.BOTH,
        source=source,
        options=AddonOptions(**options),
    )


def setup_registry(registries):
    registries.modrinth.add(
        mr_project("SODIUM", "Sodium"),
        mr_version("s-120", "SODIUM", game_versions=["1.20.1"]),
        mr_version("s-121", "SODIUM", game_versions=["1.21"], published="2024-07-01T00:00:00Z"),
    )
    registries.modrinth.add(
        mr_project("OLDMOD", "Old Mod"),
        mr_version("o-120", "OLDMOD", game_versions=["1.20.1"]),
    )
    registries.modrinth.add(
        mr_project("FALLBK", "Fallback"),
        mr_version("f-120", "FALLBK", game_versions=["1.20.1"]),
        mr_version("f-1210", "FALLBK", game_versions=["1.21.0"], published="2024-05-01T00:00:00Z"),
    )
    registries.curseforge.add(
        cf_mod(10, "Jei"),
        cf_file(100, 10, game_versions=["1.20.1", "Fabric"]),
        cf_file(101, 10, game_versions=["1.21", "Fabric"], file_date="2024-07-01T00:00:00Z"),
    )


def sample_index():
    return Index(
        [
            addon("Sodium", ModrinthSource("SODIUM", "s-120")),
            addon("Old Mod", ModrinthSource("OLDMOD", "o-120")),
            addon("Jei", CurseforgeSource(10, 100)),
            addon("Tweaks", GithubSource("owner/tweaks", "v1")),
        ]
    )


class TestClassify:
    async def test_statuses(self, registries, resolver, target):
        setup_registry(registries)
        engine = MigrationEngine(resolver)
        new_target = target.with_minecraft("1.21")

        results = {c.addon.name: c for c in await engine.classify_all(sample_index(), new_target)}

        assert results["Sodium"].status is Compatibility.COMPATIBLE
        assert results["Sodium"].new_version == "s-121"
        assert results["Jei"].status is Compatibility.COMPATIBLE
        assert results["Jei"].new_version == "101"
        assert results["Old Mod"].status is Compatibility.INCOMPATIBLE
        assert results["Old Mod"].new_version is None
        assert results["Tweaks"].status is Compatibility.UNKNOWN

    async def test_partial_via_acceptable_versions(self, registries, resolver, target):
        setup_registry(registries)
        engine = MigrationEngine(resolver)
        new_target = Target("1.21", target.loader, acceptable_versions=frozenset({"1.21.0"}))

        result = await engine.classify(addon("Fallback", ModrinthSource("FALLBK", "f-120")), new_target)

        assert result.status is Compatibility.PARTIAL
        assert result.new_version == "f-1210"

    async def test_unreachable_registry_is_unknown(self, registries, resolver, target):
        engine = MigrationEngine(resolver)
        results = await engine.classify_all(
            [addon("Ghost", ModrinthSource("GHOST0", "g1"))], target.with_minecraft("1.21")
        )
        assert results[0].status is Compatibility.UNKNOWN

    async def test_results_sorted_by_name(self, registries, resolver, target):
        setup_registry(registries)
        results = await MigrationEngine(resolver).classify_all(
            sample_index().addons, target.with_minecraft("1.21")
        )
        assert [c.addon.name for c in results] == ["Jei", "Old Mod", "Sodium", "Tweaks"]

    async def test_summarize(self, registries, resolver, target):
        setup_registry(registries)
        engine = MigrationEngine(resolver)
        counts = engine.summarize(await engine.classify_all(sample_index(), target.with_minecraft("1.21")))
        assert counts == {
            Compatibility.COMPATIBLE: 2,
            Compatibility.PARTIAL: 0,
            Compatibility.INCOMPATIBLE: 1,
            Compatibility.UNKNOWN: 1,
        }


class TestApply:
    async def test_rewrites_pointers_and_target(self, registries, resolver, target, modpack):
        setup_registry(registries)
        engine = MigrationEngine(resolver)
        index = sample_index()
        classifications = await engine.classify_all(index, target.with_minecraft("1.21"))

        result = engine.apply(
            modpack, index, classifications, minecraft_version="1.21", loader_version="0.16.0"
        )

        assert modpack.versions.minecraft == "1.21"
        assert modpack.versions.loader_version == "0.16.0"
        assert sorted(a.name for a in result.updated) == ["Jei", "Sodium"]
        assert result.removed == []
        assert index.find("Sodium").source.version == "s-121"
        assert index.find("Jei").source.version == 101
        assert index.find("Old Mod").source.version == "o-120"
        assert index.find("Tweaks").source.tag == "v1"

    async def test_removes_incompatible_when_asked(self, registries, resolver, target, modpack):
        setup_registry(registries)
        engine = MigrationEngine(resolver)
        index = sample_index()
        classifications = await engine.classify_all(index, target.with_minecraft("1.21"))

        result = engine.apply(modpack, index, classifications, remove_incompatible=True)

        assert [a.name for a in result.removed] == ["Old Mod"]
        assert index.find("Old Mod") is None
        assert len(index) == 3
        assert modpack.versions.minecraft == "1.20.1"

    async def test_unchanged_addon_is_not_rewritten(self, registries, resolver, target, modpack):
        setup_registry(registries)
        engine = MigrationEngine(resolver)
        index = Index([addon("Sodium", ModrinthSource("SODIUM", "s-120"))])
        classifications = await engine.classify_all(index, target)

        result = engine.apply(modpack, index, classifications)

        assert result.updated == []
