import logging
import secrets
import string
import time
from pathlib import Path

import boto3
from botocore.exceptions import ClientError

from app import config
from app.errors import UploadFailure

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def _base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_object_key(filename: str) -> str:
    """``<epoch ms>-<random base36>.<ext>``; extension lowercased, ``jpg`` when missing."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    extension = extension or "jpg"
    suffix = _base36(secrets.randbits(52))
    return f"{int(time.time() * 1000)}-{suffix}.{extension}"


def _remediation(bucket: str) -> str:
    return f'Create a public bucket named "{bucket}" in object storage.'


class S3ObjectStore:
    def __init__(self, bucket: str, region: str):
        self.bucket = bucket
        self.region = region
        self._client = boto3.client("s3", region_name=region)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def put_bytes(self, *, key: str, data: bytes, content_type: str) -> str:
        """
        Upload ``data`` under ``key`` and return its public URL.

        The write is conditional: an existing object with the same key is never
        overwritten.
        """
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl="max-age=3600",
                IfNoneMatch="*",
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            logger.error("S3 upload of %s to %s failed: %s", key, self.bucket, code)
            if code in ("PreconditionFailed", "ConditionalRequestConflict"):
                raise UploadFailure(f"The resource already exists: {key}")
            raise UploadFailure(f"{e}. {_remediation(self.bucket)}")
        return self.public_url(key)


class LocalObjectStore:
    def __init__(self, base_dir: str, public_base_url: str, bucket: str):
        self.base = Path(base_dir)
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/media/{self.bucket}/{key}"

    def put_bytes(self, *, key: str, data: bytes, content_type: str) -> str:
        bucket_dir = self.base / self.bucket
        if not bucket_dir.is_dir():
            logger.error("Bucket directory %s does not exist", bucket_dir)
            raise UploadFailure(f"Bucket not found. {_remediation(self.bucket)}")
        path = bucket_dir / key
        try:
            with open(path, "xb") as fh:
                fh.write(data)
        except FileExistsError:
            logger.error("Refused to overwrite %s", path)
            raise UploadFailure(f"The resource already exists: {key}")
        except OSError as e:
            logger.error("Writing %s failed: %s", path, e)
            raise UploadFailure(f"{e}. {_remediation(self.bucket)}")
        return self.public_url(key)


_store = None


def get_object_store():
    global _store
    if _store is None:
        if config.STORAGE_BACKEND == "s3":
            _store = S3ObjectStore(config.STORAGE_BUCKET, config.AWS_REGION)
        else:
            _store = LocalObjectStore(config.LOCAL_STORAGE_DIR, config.PUBLIC_BASE_URL, config.STORAGE_BUCKET)
    return _store
