import pytest

from toybox.core.config import Settings
from toybox.core.database import Database
from toybox.domain.repos import InMemorySnapshotRepo, SqlSnapshotRepo
from tests.support import StubBlobStore, make_package


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DB_URL="sqlite://",
        BLOB_ROOT=str(tmp_path / "cdn"),
        LOG_DIR=str(tmp_path / "logs"),
        MAX_PAGE_SIZE=100,
    )


@pytest.fixture
def sql_repo(settings):
    return SqlSnapshotRepo(Database.from_settings(settings), max_page_size=settings.MAX_PAGE_SIZE)


@pytest.fixture
def memory_repo():
    """Package 42 at revisions 1..3 plus a map it can include."""
    repo = InMemorySnapshotRepo()
    for rev in (1, 2, 3):
        repo.add(make_package(revision=rev, name=f"SuperGun v{rev}"))
    repo.add(make_package(id=7, revision=2, type="map", name="gm_flatgrass"))
    return repo


@pytest.fixture
def blobs():
    return StubBlobStore()
