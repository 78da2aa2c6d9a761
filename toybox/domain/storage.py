# toybox/domain/storage.py
import io
import os
import zipfile
from dataclasses import dataclass

from loguru import logger

from ..core.config import Settings
from ..core.errors import NotFound, StorageError

# Optional: import boto3 safely
try:
    import boto3
    from botocore.exceptions import BotoCoreError, ClientError
except ImportError:
    boto3 = None


# ---------------------------------------------------------
# Content zip: one member named "file"
# ---------------------------------------------------------
ZIP_MEMBER = "file"

def wrap_content_zip(data: bytes) -> bytes:
    """Wrap a content blob the way the legacy content download serves it."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(ZIP_MEMBER, data)
    return buf.getvalue()

def unwrap_content_zip(data: bytes) -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            return zf.read(ZIP_MEMBER)
    except (zipfile.BadZipFile, KeyError) as e:
        raise StorageError(f"malformed content zip: {e}") from e


# ---------------------------------------------------------
# Base class (must come first!)
# ---------------------------------------------------------
class BlobStore:
    def fetch(self, content_id: int, revision: int) -> bytes:
        """Return the raw bytes of one content revision."""
        raise NotImplementedError

    def put(self, content_id: int, revision: int, data: bytes) -> str:
        """Store one content revision and return its key."""
        raise NotImplementedError

    @staticmethod
    def key(content_id: int, revision: int) -> str:
        return f"{content_id}/{revision}"


# ---------------------------------------------------------
# Local filesystem implementation
# ---------------------------------------------------------
@dataclass
class LocalBlobStore(BlobStore):
    root: str

    def path(self, content_id: int, revision: int) -> str:
        return os.path.join(self.root, str(content_id), str(revision))

    def fetch(self, content_id: int, revision: int) -> bytes:
        path = self.path(content_id, revision)
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except FileNotFoundError as e:
            raise NotFound(f"content {content_id}r{revision} not found") from e
        except OSError as e:
            raise StorageError(f"failed to read {path}: {e}") from e
        return unwrap_content_zip(raw)

    def put(self, content_id: int, revision: int, data: bytes) -> str:
        dst = self.path(content_id, revision)
        os.makedirs(os.path.dirname(dst), exist_ok=True)
        with open(dst, "wb") as f:
            f.write(wrap_content_zip(data))
        return self.key(content_id, revision)


# ---------------------------------------------------------
# AWS S3 implementation
# ---------------------------------------------------------
@dataclass
class S3BlobStore(BlobStore):
    bucket: str
    region: str | None = None

    def __post_init__(self):
        if boto3 is None:
            raise RuntimeError("boto3 not installed; run `pip install boto3`")
        self.client = boto3.client("s3", region_name=self.region)

    def fetch(self, content_id: int, revision: int) -> bytes:
        key = self.key(content_id, revision)
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
            return obj["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404"):
                raise NotFound(f"content {content_id}r{revision} not found") from e
            raise StorageError(f"s3 get_object {key} failed: {code}") from e
        except BotoCoreError as e:
            raise StorageError(f"s3 get_object {key} failed: {e}") from e

    def put(self, content_id: int, revision: int, data: bytes) -> str:
        key = self.key(content_id, revision)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"s3 put_object {key} failed: {e}") from e
        return key


# ---------------------------------------------------------
# Factory
# ---------------------------------------------------------
def get_blob_store(s: Settings) -> BlobStore:
    """Build the blob store selected by STORAGE_BACKEND."""
    if s.STORAGE_BACKEND == "local":
        os.makedirs(s.BLOB_ROOT, exist_ok=True)
        logger.info("using local blob store at {}", s.BLOB_ROOT)
        return LocalBlobStore(s.BLOB_ROOT)
    if s.STORAGE_BACKEND == "s3":
        if not s.S3_BUCKET:
            raise RuntimeError("S3 backend selected but S3_BUCKET is not set")
        logger.info("using s3 blob store bucket={} region={}", s.S3_BUCKET, s.AWS_REGION)
        return S3BlobStore(bucket=s.S3_BUCKET, region=s.AWS_REGION)
    raise NotImplementedError(f"Unknown STORAGE_BACKEND={s.STORAGE_BACKEND}")
