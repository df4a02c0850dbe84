"""Pytest fixtures: in-memory S3 client and a BucketClient bound to it (no real AWS)."""
import hashlib
import io

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

from bucket_adapter.config.bucket_config import Credentials
from bucket_adapter.storage.bucket_client import BucketClient

TEST_BUCKET = "test-bucket"


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    """Implements the slice of the boto3 S3 client surface BucketClient uses."""

    def __init__(self, page_size: int = 1000):
        self.objects: dict[str, bytes] = {}
        self.page_size = page_size
        self.grants = [{"Grantee": {"Type": "CanonicalUser", "ID": "owner"}, "Permission": "FULL_CONTROL"}]
        self.calls: list[tuple[str, dict]] = []

    def get_bucket_acl(self, Bucket):
        self.calls.append(("get_bucket_acl", {"Bucket": Bucket}))
        return {"Owner": {"ID": "owner"}, "Grants": self.grants}

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None, Callback=None, Config=None):
        self.calls.append(("upload_fileobj", {"Bucket": Bucket, "Key": Key, "Config": Config}))
        chunks = []
        for chunk in iter(lambda: Fileobj.read(8192), b""):
            chunks.append(chunk)
        self.objects[Key] = b"".join(chunks)

    def head_object(self, Bucket, Key):
        self.calls.append(("head_object", {"Bucket": Bucket, "Key": Key}))
        if Key not in self.objects:
            raise _client_error("404", "HeadObject")
        data = self.objects[Key]
        return {"ContentLength": len(data), "ETag": f'"{hashlib.md5(data).hexdigest()}"'}

    def get_object(self, Bucket, Key):
        self.calls.append(("get_object", {"Bucket": Bucket, "Key": Key}))
        if Key not in self.objects:
            raise _client_error("NoSuchKey", "GetObject")
        data = self.objects[Key]
        return {"Body": StreamingBody(io.BytesIO(data), len(data)), "ContentLength": len(data)}

    def list_objects(self, Bucket, Prefix="", Marker=""):
        self.calls.append(("list_objects", {"Bucket": Bucket, "Prefix": Prefix, "Marker": Marker}))
        keys = sorted(k for k in self.objects if k.startswith(Prefix) and k > Marker)
        page = keys[: self.page_size]
        response = {"IsTruncated": len(keys) > self.page_size}
        if page:
            response["Contents"] = [{"Key": k, "Size": len(self.objects[k])} for k in page]
        return response

    def calls_named(self, name: str) -> list[dict]:
        return [kwargs for call, kwargs in self.calls if call == name]


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def credentials():
    return Credentials(access_key_id="AKIDEXAMPLE", secret_access_key="wJalrXUtnFEMI/K7MDENG/bPxRfiCYEXAMPLEKEY")


@pytest.fixture
def bucket_client(credentials, fake_s3):
    return BucketClient(credentials, TEST_BUCKET, client=fake_s3)
