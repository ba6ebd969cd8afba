import pytest

from modpacker.exceptions import (
    ConfigParseError,
    ConfigValidationError,
    ModpackerError,
    UninitializedError,
)
from modpacker.index import Index, IndexStore, ModpackStore, group_by_registry, is_local_path
from modpacker.models import (
    Addon,
    AddonOptions,
    CurseforgeSource,
    GithubSource,
    ModrinthSource,
    ProjectType,
    Side,
)


def addon(name, source, **kwargs):
    return Addon(name=name, project_type=ProjectType.MOD, side=Side.BOTH, source=source, **kwargs)


class TestIndex:
    def test_rejects_duplicate_generic_id(self):
        index = Index()
        assert index.add(addon("Sodium", ModrinthSource("AANobbMI", "v1")))
        assert not index.add(addon("Sodium Renamed", ModrinthSource("AANobbMI", "v2")))
        assert len(index) == 1

    def test_rejects_duplicate_name_across_registries(self):
        index = Index([addon("Sodium", ModrinthSource("AANobbMI", "v1"))])
        assert not index.add(addon("SODIUM", CurseforgeSource(394468, 1)))
        assert index.conflicts(addon("sodium", GithubSource("o/r", "t"))) is not None

    def test_colliding_slugs_get_distinct_keys(self):
        index = Index()
        assert index.add(addon("Foo!", ModrinthSource("AAAAAA", "1")))
        assert index.add(addon("Foo?", CurseforgeSource(1, 1)))
        assert index.add(addon("foo 2", GithubSource("o/foo", "t")))
        assert sorted(a.slug for a in index) == ["foo", "foo-2", "foo-2-2"]

    def test_invariant_holds_over_many_adds(self):
        index = Index()
        candidates = [
            addon("A", ModrinthSource("AAAAAA", "1")),
            addon("a", ModrinthSource("BBBBBB", "1")),
            addon("B", ModrinthSource("AAAAAA", "2")),
            addon("B", CurseforgeSource(1, 1)),
            addon("C", CurseforgeSource(1, 2)),
            addon("D", GithubSource("Owner/Repo", "v1")),
            addon("E", GithubSource("owner/repo", "v2")),
        ]
        index.extend(candidates)
        generic_ids = [a.generic_id() for a in index]
        names = [a.name.lower() for a in index]
        assert len(generic_ids) == len(set(generic_ids))
        assert len(names) == len(set(names))
        assert [a.name for a in index] == ["A", "B", "D"]

    def test_find_remove_sorted(self):
        index = Index(
            [
                addon("zeta", ModrinthSource("ZZZZZZ", "1")),
                addon("Alpha", CurseforgeSource(5, 6)),
            ]
        )
        assert index.find("curseforge:5").name == "Alpha"
        assert [a.name for a in index.sorted()] == ["Alpha", "zeta"]
        index.remove(index.find("zeta"))
        assert index.names() == {"alpha"}
        assert index.get(("curseforge", "5")) is not None

    def test_group_by_registry(self):
        groups = group_by_registry(
            [addon("a", ModrinthSource("AAAAAA", "1")), addon("b", CurseforgeSource(1, 1))]
        )
        assert set(groups) == {"modrinth", "curseforge"}


class TestLocalPath:
    @pytest.mark.parametrize(
        "path,ok",
        [
            ("./index", True),
            ("index/sub", True),
            ("a/../b", True),
            ("../index", False),
            ("a/../../b", False),
            ("/abs/index", False),
        ],
    )
    def test_is_local_path(self, path, ok):
        assert is_local_path(path) is ok

    def test_store_rejects_escaping_path(self, tmp_path):
        with pytest.raises(ConfigValidationError):
            IndexStore(tmp_path, "../outside")


class TestIndexStore:
    async def test_write_and_load(self, tmp_path):
        store = IndexStore(tmp_path)
        sodium = addon("Sodium", ModrinthSource("AANobbMI", "v1"), options=AddonOptions(pinned=True))
        jei = addon("Just Enough Items", CurseforgeSource(238222, 4593548))
        await store.write([sodium, jei])

        assert sorted(p.name for p in (tmp_path / "index").iterdir()) == [
            "just-enough-items.toml",
            "sodium.toml",
        ]
        loaded = await store.load()
        assert {a.generic_id() for a in loaded} == {sodium.generic_id(), jei.generic_id()}
        assert loaded.find("sodium").options.pinned

    async def test_write_only_touches_given_addons(self, tmp_path):
        store = IndexStore(tmp_path)
        await store.write([addon("One", ModrinthSource("AAAAAA", "1"))])
        other = tmp_path / "index" / "one.toml"
        before = other.read_text()
        await store.write([addon("Two", ModrinthSource("BBBBBB", "1"))])
        assert other.read_text() == before
        assert len(await store.load()) == 2

    async def test_colliding_slugs_all_persisted(self, tmp_path):
        store = IndexStore(tmp_path)
        index = Index([addon("Foo!", ModrinthSource("AAAAAA", "1")), addon("Foo?", CurseforgeSource(1, 1))])
        await store.write(index)

        loaded = await store.load()

        assert sorted(p.name for p in (tmp_path / "index").iterdir()) == ["foo-2.toml", "foo.toml"]
        assert sorted(a.name for a in loaded) == ["Foo!", "Foo?"]

    async def test_load_missing_directory(self, tmp_path):
        assert len(await IndexStore(tmp_path).load()) == 0

    async def test_storage_key_survives_rename(self, tmp_path):
        store = IndexStore(tmp_path)
        await store.write([addon("Sodium", ModrinthSource("AANobbMI", "v1"))])
        loaded = (await store.load()).find("sodium")
        loaded.name = "Sodium Renamed"
        await store.write([loaded])
        assert [p.name for p in (tmp_path / "index").iterdir()] == ["sodium.toml"]

    async def test_remove(self, tmp_path):
        store = IndexStore(tmp_path)
        one = addon("One", ModrinthSource("AAAAAA", "1"))
        await store.write([one])
        await store.remove([one])
        assert not (tmp_path / "index" / "one.toml").exists()
        with pytest.raises(ModpackerError):
            await store.remove([one])

    async def test_bad_file_is_parse_error(self, tmp_path):
        (tmp_path / "index").mkdir()
        (tmp_path / "index" / "broken.toml").write_text("name = [", encoding="utf-8")
        with pytest.raises(ConfigParseError):
            await IndexStore(tmp_path).load()


class TestModpackStore:
    def test_round_trip(self, tmp_path, modpack):
        store = ModpackStore(tmp_path)
        assert not store.exists()
        store.write(modpack)
        assert store.read() == modpack

    def test_uninitialized(self, tmp_path):
        with pytest.raises(UninitializedError):
            ModpackStore(tmp_path).read()

    def test_invalid_content(self, tmp_path):
        (tmp_path / "pack.toml").write_text('name = "x"\n', encoding="utf-8")
        with pytest.raises(ConfigValidationError):
            ModpackStore(tmp_path).read()
