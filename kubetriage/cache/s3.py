"""S3 bucket cache backend: one object per cache key under a prefix."""

import json
import logging
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from kubetriage.cache.base import CacheBackend
from kubetriage.config import DEFAULT_S3_PREFIX
from kubetriage.errors import CacheError
from kubetriage.models import CacheEntry

logger = logging.getLogger(__name__)

_MISSING_CODES: frozenset[str] = frozenset({"NoSuchKey", "404", "NotFound"})


class S3Cache(CacheBackend):
    """Stores each entry as ``s3://<bucket>/<prefix><key>.json``."""

    name = "s3"

    def __init__(
        self,
        bucket: str,
        region: str = "",
        prefix: str = DEFAULT_S3_PREFIX,
        client=None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.prefix = prefix
        self._client = client

    @property
    def client(self):
        # Created on first use.
        if self._client is None:
            try:
                self._client = boto3.client("s3", region_name=self.region or None)
            except BotoCoreError as exc:
                raise CacheError(f"cannot create S3 client: {exc}") from exc
        return self._client

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}{key}.json"

    def get(self, key: str) -> CacheEntry | None:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._object_key(key))
            body = json.loads(response["Body"].read())
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            raise CacheError(f"s3://{self.bucket}: {exc}") from exc
        except BotoCoreError as exc:
            raise CacheError(f"s3://{self.bucket}: {exc}") from exc
        except (ValueError, KeyError) as exc:
            raise CacheError(f"corrupt cache object {self._object_key(key)}") from exc

        try:
            return CacheEntry(
                key=key,
                value=body["value"],
                stored_at=datetime.fromisoformat(body["stored_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CacheError(f"corrupt cache object {self._object_key(key)}") from exc

    def put(self, key: str, value: str) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, stored_at=datetime.now(timezone.utc))
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self._object_key(key),
                Body=json.dumps(entry.to_dict()).encode("utf-8"),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as exc:
            raise CacheError(f"s3://{self.bucket}: {exc}") from exc
        logger.debug("Stored cache entry %s in s3://%s", key[:12], self.bucket)
        return entry
