# toybox/main.py
from loguru import logger

from .core.config import Settings, get_settings
from .core.database import Database
from .core.logs import configure_logging
from .deps import PackageService
from .domain.repos import SqlSnapshotRepo
from .domain.storage import get_blob_store
from .domain.whitelist import DEFAULT_WHITELIST


def create_service(settings: Settings | None = None) -> PackageService:
    """Wire the packaging core from one Settings object."""
    settings = settings or get_settings()
    log_path = configure_logging(settings)

    db = Database.from_settings(settings)
    repo = SqlSnapshotRepo(db, max_page_size=settings.MAX_PAGE_SIZE)
    blobs = get_blob_store(settings)

    logger.info(
        "{} ready (env={}, storage={}, {} whitelist rules, log={})",
        settings.APP_NAME, settings.ENV, settings.STORAGE_BACKEND, len(DEFAULT_WHITELIST.rules), log_path,
    )
    return PackageService(settings, repo, blobs, DEFAULT_WHITELIST)
