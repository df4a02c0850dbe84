from __future__ import annotations
import asyncio
import time
from collections.abc import Mapping
from pathlib import Path
from typing import BinaryIO
from urllib.parse import urlsplit, urlunsplit

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from bucket_adapter.config.bucket_config import BucketConfig, BucketOptions, Credentials, load_bucket_config_from_env
from bucket_adapter.logging_config import bucket_logger
from bucket_adapter.storage.models import ObjectDescriptor, UploadResult
from bucket_adapter.transfer.source_fetcher import create_source_session, is_https_url, open_source_stream


DOWNLOAD_CHUNK_SIZE = 1024 * 1024
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _coerce_credentials(credentials: Credentials | Mapping | None) -> Credentials:
    if credentials is None:
        raise ValueError("Authentication was not provided")
    if isinstance(credentials, Credentials):
        return credentials
    if isinstance(credentials, Mapping):
        return Credentials(
            access_key_id=credentials.get("access_key_id"),
            secret_access_key=credentials.get("secret_access_key"),
        )
    raise ValueError("Authentication was not provided")


def create_s3_client(credentials: Credentials, options: BucketOptions, session: boto3.session.Session | None = None):
    session = session or boto3.session.Session()
    client_kwargs = {
        "config": Config(signature_version="s3v4"),
        "aws_access_key_id": credentials.access_key_id,
        "aws_secret_access_key": credentials.secret_access_key,
    }
    # Without an explicit region botocore resolves it from the environment/profile
    if options.region:
        client_kwargs["region_name"] = options.region
    return session.client("s3", **client_kwargs)


class BucketClient:
    """
    Runs storage actions against a single S3 bucket.

    Network operations are coroutines; the blocking boto3 and requests calls
    run in worker threads. Presigning is local and stays synchronous.
    """

    def __init__(
        self,
        credentials: Credentials | Mapping | None,
        bucket_name: str | None,
        options: BucketOptions | None = None,
        *,
        session: boto3.session.Session | None = None,
        client=None,
    ):
        self._config = BucketConfig(
            credentials=_coerce_credentials(credentials),
            bucket_name=bucket_name,
            options=options or BucketOptions(),
        )
        self._client = client or create_s3_client(self._config.credentials, self._config.options, session)
        self._transfer_config = TransferConfig(max_concurrency=self._config.options.upload_concurrency)
        self._log = bucket_logger(__name__, self.bucket_name)

    @classmethod
    def from_config(cls, config: BucketConfig, *, session: boto3.session.Session | None = None) -> BucketClient:
        return cls(config.credentials, config.bucket_name, config.options, session=session)

    @classmethod
    def from_env(cls, *, session: boto3.session.Session | None = None) -> BucketClient:
        return cls.from_config(load_bucket_config_from_env(), session=session)

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    @property
    def options(self) -> BucketOptions:
        return self._config.options

    @property
    def cdn_url(self) -> str | None:
        return self._config.options.cdn_url

    async def validate(self) -> bool | None:
        """Returns True when the bucket ACL lists at least one grant, None otherwise."""
        result = await asyncio.to_thread(self._client.get_bucket_acl, Bucket=self.bucket_name)
        if result and result.get("Grants"):
            return True
        return None

    def presign_get(self, key_name: str, ttl: int) -> str:
        """Read-only presigned URL for key_name, valid for ttl seconds."""
        return self._presign("get_object", key_name, ttl)

    def presign_put(self, key_name: str, ttl: int) -> str:
        """Write-only presigned URL for key_name, valid for ttl seconds."""
        return self._presign("put_object", key_name, ttl)

    def _presign(self, operation: str, key_name: str, ttl: int) -> str:
        url = self._client.generate_presigned_url(
            operation,
            Params={"Bucket": self.bucket_name, "Key": key_name},
            ExpiresIn=ttl,
        )
        self._log.debug("Presigned url generated", extra={"operation": operation, "key": key_name, "ttl": ttl})
        return self._apply_cdn(url)

    def _apply_cdn(self, url: str) -> str:
        if not self.cdn_url:
            return url
        cdn = urlsplit(self.cdn_url)
        parts = urlsplit(url)
        return urlunsplit((cdn.scheme or parts.scheme, cdn.netloc or parts.netloc, parts.path, parts.query, parts.fragment))

    async def upload_from_url(self, source_url: str, key_name: str) -> UploadResult:
        if not is_https_url(source_url):
            raise ValueError(f"sourceUrl value is not a valid https URL: {source_url}")
        return await asyncio.to_thread(self._upload_from_url, source_url, key_name)

    def _upload_from_url(self, source_url: str, key_name: str) -> UploadResult:
        with create_source_session() as session:
            response = open_source_stream(source_url, session)
            with response:
                return self._upload(response.raw, key_name)

    async def upload_from_file(self, file_path: str | Path, key_name: str) -> UploadResult:
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"File does not exist: {file_path}")
        return await asyncio.to_thread(self._upload_from_file, path, key_name)

    def _upload_from_file(self, path: Path, key_name: str) -> UploadResult:
        with path.open("rb") as stream:
            return self._upload(stream, key_name)

    async def download_asset(self, file_path: str | Path, key_name: str) -> None:
        """
        Stream an S3 object into a local file.
        The file is created or truncated before the request; a failed download leaves it in place.
        """
        await asyncio.to_thread(self._download, Path(file_path), key_name)

    def _download(self, path: Path, key_name: str) -> None:
        started_at = time.perf_counter()
        written = 0
        try:
            with path.open("wb") as destination:
                response = self._client.get_object(Bucket=self.bucket_name, Key=key_name)
                body = response["Body"]
                try:
                    for chunk in body.iter_chunks(DOWNLOAD_CHUNK_SIZE):
                        destination.write(chunk)
                        written += len(chunk)
                finally:
                    body.close()
        except Exception:
            self._log.exception(
                "Download failed",
                extra={"operation": "download", "key": key_name, "destination": str(path)},
            )
            raise
        self._log.info(
            "Downloaded object",
            extra={
                "operation": "download",
                "key": key_name,
                "destination": str(path),
                "bytes": written,
                "elapsed_seconds": round(time.perf_counter() - started_at, 3),
            },
        )

    async def list_objects(self, prefix: str | None = None) -> list[ObjectDescriptor]:
        return await asyncio.to_thread(self._list_objects, prefix)

    def _list_objects(self, prefix: str | None) -> list[ObjectDescriptor]:
        params = {"Bucket": self.bucket_name}
        if prefix:
            params["Prefix"] = prefix

        results: list[ObjectDescriptor] = []
        pages = 0
        while True:
            response = self._client.list_objects(**params)
            pages += 1
            contents = response.get("Contents", [])
            results.extend(ObjectDescriptor.from_list_entry(item) for item in contents)
            if not response.get("IsTruncated") or not contents:
                break
            params["Marker"] = contents[-1]["Key"]

        self._log.info(
            "Listed objects",
            extra={"operation": "list", "prefix": prefix, "pages": pages, "objects": len(results)},
        )
        return results

    async def get_metadata(self, key_name: str) -> ObjectDescriptor | None:
        """
        Looks the key up by prefix listing.
        Returns None unless exactly one object starts with key_name, so a key that
        prefixes other keys is reported as absent. Use head_metadata for an exact lookup.
        """
        matches = await self.list_objects(key_name)
        if len(matches) != 1:
            return None
        return matches[0]

    async def head_metadata(self, key_name: str) -> ObjectDescriptor | None:
        """Exact-key lookup via HeadObject; None when the key does not exist."""
        try:
            response = await asyncio.to_thread(self._client.head_object, Bucket=self.bucket_name, Key=key_name)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in NOT_FOUND_CODES:
                return None
            raise
        return ObjectDescriptor(name=key_name, content_length=response.get("ContentLength", 0))

    def _upload(self, stream: BinaryIO, key_name: str) -> UploadResult:
        started_at = time.perf_counter()
        try:
            self._client.upload_fileobj(stream, self.bucket_name, key_name, Config=self._transfer_config)
        except Exception:
            self._log.exception("Upload failed", extra={"operation": "upload", "key": key_name})
            raise
        elapsed_seconds = round(time.perf_counter() - started_at, 3)

        result = self._read_back(key_name)
        self._log.info(
            "Uploaded object",
            extra={
                "operation": "upload",
                "key": key_name,
                "bytes": result.content_length,
                "etag": result.etag,
                "elapsed_seconds": elapsed_seconds,
            },
        )
        return result

    def _read_back(self, key_name: str) -> UploadResult:
        # upload_fileobj returns nothing; HeadObject needs read access write-only credentials lack
        try:
            head = self._client.head_object(Bucket=self.bucket_name, Key=key_name)
        except (ClientError, BotoCoreError):
            self._log.warning(
                "Uploaded object could not be read back",
                extra={"operation": "upload", "key": key_name},
                exc_info=True,
            )
            return UploadResult(bucket=self.bucket_name, key=key_name)
        return UploadResult.model_validate({"bucket": self.bucket_name, "key": key_name, **head})
