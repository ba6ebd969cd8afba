from datetime import datetime, timedelta, timezone

import pytest

from modpacker.models import (
    LATEST,
    Candidate,
    ModLoader,
    ProjectType,
    ReleaseChannel,
    Target,
)
from modpacker.services import VersionMatcher

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def candidate(idx, versions=("1.20.1",), loaders=("fabric",), t=0, available=True, channel=ReleaseChannel.RELEASE):
    return Candidate(
        id=idx,
        game_versions=frozenset(versions),
        loaders=frozenset(loaders),
        available=available,
        published=T0 + timedelta(days=t),
        channel=channel,
    )


@pytest.fixture
def matcher():
    return VersionMatcher()


class TestFilterCompatible:
    def test_game_version_scenario(self, matcher, target):
        v1 = candidate("v1", versions=["1.20.1"])
        v2 = candidate("v2", versions=["1.21"])
        compatible = matcher.filter_compatible([v1, v2], target, ProjectType.MOD)
        assert compatible == [v1]
        assert matcher.best_match(compatible, target) is v1

    def test_unavailable_dropped(self, matcher, target):
        assert matcher.filter_compatible([candidate("a", available=False)], target, ProjectType.MOD) == []

    def test_loader_gates_mods_only(self, matcher, target):
        forge_only = candidate("f", loaders=["forge"])
        assert matcher.filter_compatible([forge_only], target, ProjectType.MOD) == []
        assert matcher.filter_compatible([forge_only], target, ProjectType.SHADER) == [forge_only]
        assert matcher.filter_compatible([forge_only], target, ProjectType.RESOURCEPACK) == [forge_only]

    def test_acceptable_sets_widen(self, matcher):
        target = Target(
            "1.20.1",
            ModLoader.QUILT,
            acceptable_versions=frozenset({"1.20"}),
            acceptable_loaders=frozenset({ModLoader.FABRIC}),
        )
        fallback = candidate("old", versions=["1.20"], loaders=["fabric"])
        assert matcher.filter_compatible([fallback], target, ProjectType.MOD) == [fallback]

    def test_widening_never_shrinks(self, matcher):
        candidates = [
            candidate("a", versions=["1.20.1"], loaders=["fabric"]),
            candidate("b", versions=["1.20"], loaders=["quilt"]),
            candidate("c", versions=["1.19.4"], loaders=["forge"]),
            candidate("d", versions=["1.20"], loaders=["fabric"]),
        ]
        narrow = Target("1.20.1", ModLoader.FABRIC)
        wider = Target("1.20.1", ModLoader.FABRIC, acceptable_versions=frozenset({"1.20"}))
        widest = Target(
            "1.20.1",
            ModLoader.FABRIC,
            acceptable_versions=frozenset({"1.20"}),
            acceptable_loaders=frozenset({ModLoader.QUILT}),
        )
        results = [
            set(c.id for c in matcher.filter_compatible(candidates, t, ProjectType.MOD))
            for t in (narrow, wider, widest)
        ]
        assert results[0] <= results[1] <= results[2]
        assert results == [{"a"}, {"a", "d"}, {"a", "b", "d"}]

    def test_release_channel_limit(self, matcher, target):
        release = candidate("r", channel=ReleaseChannel.RELEASE)
        beta = candidate("b", channel=ReleaseChannel.BETA)
        alpha = candidate("a", channel=ReleaseChannel.ALPHA)
        all_ = [release, beta, alpha]
        assert matcher.filter_compatible(all_, target, ProjectType.MOD, ReleaseChannel.RELEASE) == [release]
        assert matcher.filter_compatible(all_, target, ProjectType.MOD, ReleaseChannel.BETA) == [release, beta]
        assert matcher.filter_compatible(all_, target, ProjectType.MOD) == all_

    def test_empty_result_is_not_an_error(self, matcher, target):
        assert matcher.filter_compatible([], target, ProjectType.MOD) == []
        assert matcher.select([], target, ProjectType.MOD) is None


class TestBestMatch:
    def test_later_timestamp_wins(self, matcher, target):
        va = candidate("va", t=1)
        vb = candidate("vb", t=2)
        assert matcher.best_match([va, vb], target) is vb
        assert matcher.best_match([vb, va], target) is vb

    def test_primary_version_beats_newer_fallback(self, matcher):
        target = Target("1.20.1", ModLoader.FABRIC, acceptable_versions=frozenset({"1.20"}))
        primary = candidate("primary", versions=["1.20.1"], t=1)
        fallback = candidate("fallback", versions=["1.20"], t=5)
        assert matcher.best_match([primary, fallback], target) is primary
        assert matcher.best_match([fallback, primary], target) is primary

    def test_primary_loader_breaks_timestamp_tie(self, matcher):
        target = Target("1.20.1", ModLoader.QUILT, acceptable_loaders=frozenset({ModLoader.FABRIC}))
        fabric = candidate("fabric", loaders=["fabric"], t=1)
        quilt = candidate("quilt", loaders=["quilt"], t=1)
        assert matcher.best_match([fabric, quilt], target) is quilt

    def test_full_tie_keeps_input_order(self, matcher, target):
        first = candidate("first")
        second = candidate("second")
        assert matcher.best_match([first, second], target) is first
        assert matcher.best_match([second, first], target) is second

    def test_empty_input(self, matcher, target):
        assert matcher.best_match([], target) is None

    def test_matches_primary(self, target):
        assert VersionMatcher.matches_primary(candidate("a"), target)
        assert not VersionMatcher.matches_primary(candidate("b", versions=["1.20"]), target)


class TestLoaderVersion:
    async def test_explicit_version_returned(self, registries, modpack):
        assert await VersionMatcher(registries.loaders).get_loader_version(modpack) == "0.15.3"

    async def test_latest_is_resolved(self, registries, modpack):
        registries.loaders.versions["1.20.1"] = ["0.16.0", "0.15.3"]
        modpack.versions.loader_version = LATEST
        assert await VersionMatcher(registries.loaders).get_loader_version(modpack) == "0.16.0"
