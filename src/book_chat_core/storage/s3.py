from __future__ import annotations

from dataclasses import dataclass

import boto3
from botocore.config import Config

from book_chat_core.config import Settings


@dataclass(frozen=True)
class S3Location:
    bucket: str
    key: str

    @classmethod
    def parse(cls, uri: str) -> S3Location:
        if not uri.startswith("s3://"):
            raise ValueError(f"Not an s3:// location: {uri}")
        bucket, _, key = uri.removeprefix("s3://").partition("/")
        if not bucket or not key:
            raise ValueError(f"Book file location needs a bucket and a key: {uri}")
        return cls(bucket=bucket, key=key)


@dataclass(frozen=True)
class S3Config:
    endpoint: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"

    @classmethod
    def from_settings(cls, settings: Settings) -> S3Config | None:
        if not (settings.s3_endpoint and settings.s3_access_key):
            return None
        return cls(
            endpoint=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key.get_secret_value() if settings.s3_secret_key else "",
            region=settings.s3_region,
        )


class S3Client:
    """Read-only access to book files; uploads and deletes belong to the catalog."""

    def __init__(self, cfg: S3Config):
        self._client = boto3.client(
            "s3",
            endpoint_url=cfg.endpoint,
            aws_access_key_id=cfg.access_key,
            aws_secret_access_key=cfg.secret_key,
            region_name=cfg.region,
            config=Config(s3={"addressing_style": "path"}, retries={"max_attempts": 3}),
        )

    def object_size(self, uri: str) -> int:
        loc = S3Location.parse(uri)
        head = self._client.head_object(Bucket=loc.bucket, Key=loc.key)
        return int(head.get("ContentLength") or 0)

    def read_object(self, uri: str) -> tuple[bytes, str | None]:
        """Object body and its stored content type."""
        loc = S3Location.parse(uri)
        obj = self._client.get_object(Bucket=loc.bucket, Key=loc.key)
        return obj["Body"].read(), obj.get("ContentType")
