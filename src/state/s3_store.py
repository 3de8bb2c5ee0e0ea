from __future__ import annotations

import os
from typing import Optional

import boto3
from botocore.exceptions import ClientError


# Environment variable names for convenience configuration
ENV_BUCKET = "ESCROW_STATE_BUCKET"
ENV_PREFIX = "ESCROW_STATE_PREFIX"

DEFAULT_PREFIX = "escrow/"


class S3Storage:
    """
    S3-backed key-value storage: one object per storage key.

    Usage
    - Provide a bucket and optional prefix (or use `from_env()`).
    - Keys are hex-encoded under the prefix, e.g. `escrow/0006636f6e666967`.
    - `get()` returns None for a missing object; other S3 errors propagate.

    Environment variables (optional)
    - `ESCROW_STATE_BUCKET`: S3 bucket holding the contract state
    - `ESCROW_STATE_PREFIX`: object key prefix (default: "escrow/")
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        prefix: str = DEFAULT_PREFIX,
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._bucket = bucket
        self._prefix = prefix

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls) -> "S3Storage":
        bucket = os.environ.get(ENV_BUCKET)
        if not bucket:
            raise RuntimeError(f"Missing required environment variables for S3 storage: {ENV_BUCKET}")
        prefix = os.environ.get(ENV_PREFIX) or DEFAULT_PREFIX
        return cls(bucket=bucket, prefix=prefix)

    def object_key(self, key: bytes) -> str:
        return f"{self._prefix}{bytes(key).hex()}"

    # -------- Storage primitives --------
    def get(self, key: bytes) -> Optional[bytes]:
        try:
            resp = self._s3.get_object(Bucket=self._bucket, Key=self.object_key(key))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                return None
            raise
        return resp["Body"].read()

    def set(self, key: bytes, value: bytes) -> None:
        self._s3.put_object(
            Bucket=self._bucket,
            Key=self.object_key(key),
            Body=bytes(value),
            ContentType="application/json",
        )

    def remove(self, key: bytes) -> None:
        self._s3.delete_object(Bucket=self._bucket, Key=self.object_key(key))

    def has(self, key: bytes) -> bool:
        try:
            self._s3.head_object(Bucket=self._bucket, Key=self.object_key(key))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404", "NotFound"):
                return False
            raise
        return True
