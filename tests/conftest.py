import pytest

from modpacker.config import Settings
from modpacker.models import ModLoader, Modpack, PackOptions, Target, Versions
from modpacker.services import AddonResolver, VersionMatcher

from tests.fakes import fake_registries


@pytest.fixture
def registries():
    return fake_registries()


@pytest.fixture
def target():
    return Target(minecraft_version="1.20.1", loader=ModLoader.FABRIC)


@pytest.fixture
def modpack():
    return Modpack(
        name="Test Pack",
        version="1.0.0",
        versions=Versions(minecraft="1.20.1", loader=ModLoader.FABRIC, loader_version="0.15.3"),
        authors=["alice"],
        description="a pack for tests",
        options=PackOptions(),
    )


@pytest.fixture
def resolver(registries, target):
    return AddonResolver(registries, target, VersionMatcher(registries.loaders))


@pytest.fixture
def settings():
    return Settings(max_concurrent_downloads=2, max_retries=1, retry_delay=0)
