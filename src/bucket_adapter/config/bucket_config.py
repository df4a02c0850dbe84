from __future__ import annotations
import os
from dataclasses import dataclass, field

DEFAULT_UPLOAD_CONCURRENCY = 20


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def require_env(var_name: str) -> str:
    value = os.getenv(var_name)
    if value is None or not value.strip():
        raise ValueError(f"Environment variable '{var_name}' is required but not set.")
    return value


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str = field(repr=False)

    def __post_init__(self):
        if _is_blank(self.access_key_id) or _is_blank(self.secret_access_key):
            raise ValueError("Authentication was not provided")


@dataclass(frozen=True)
class BucketOptions:
    # Overrides the scheme and host of presigned GET/PUT urls, e.g. https://cdnhost
    cdn_url: str | None = None
    bucket_region: str | None = None
    upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY

    def __post_init__(self):
        if self.upload_concurrency < 1:
            raise ValueError(f"BucketOptions.upload_concurrency must be >= 1, got: {self.upload_concurrency}")

    @property
    def region(self) -> str | None:
        if _is_blank(self.bucket_region):
            return None
        return self.bucket_region.strip()


@dataclass(frozen=True)
class BucketConfig:
    credentials: Credentials
    bucket_name: str
    options: BucketOptions = field(default_factory=BucketOptions)

    def __post_init__(self):
        if _is_blank(self.bucket_name):
            raise ValueError("S3 bucket name was not provided")


def load_bucket_config_from_env() -> BucketConfig:
    raw_concurrency = os.getenv("BUCKET_UPLOAD_CONCURRENCY")
    concurrency = DEFAULT_UPLOAD_CONCURRENCY
    if raw_concurrency:
        try:
            concurrency = int(raw_concurrency)
        except ValueError as exc:
            raise ValueError(f"BUCKET_UPLOAD_CONCURRENCY must be an integer, got: {raw_concurrency!r}") from exc

    credentials = Credentials(
        access_key_id=require_env("AWS_S3_ACCESS_KEY"),
        secret_access_key=require_env("AWS_S3_SECRET_KEY"),
    )
    options = BucketOptions(
        cdn_url=os.getenv("BUCKET_CDN_URL") or None,
        bucket_region=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or None,
        upload_concurrency=concurrency,
    )
    return BucketConfig(
        credentials=credentials,
        bucket_name=require_env("AWS_S3_BUCKET_NAME"),
        options=options,
    )
