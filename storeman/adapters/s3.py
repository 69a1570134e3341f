"""ImageStore implementation for S3."""

from __future__ import annotations

import logging

import boto3

from storeman.protocols.media import ImageStore

logger = logging.getLogger(__name__)

# delete_objects accepts at most 1000 keys per call
DELETE_BATCH_SIZE = 1000


class S3ImageStore:
    """
    Stores product images under <system_id>/<item_id>/ in the media bucket.

    The bucket comes from StoremanSettings.media_bucket (explicit
    MEDIA_BUCKET, or derived from STAGE).
    """

    def __init__(self, settings, client=None):
        self.bucket = settings.media_bucket
        self._client = client or boto3.client("s3", region_name=settings.REGION)

    @staticmethod
    def prefix(system_id: str, item_id: str) -> str:
        return f"{system_id}/{item_id}/"

    def upload(self, image: bytes, system_id: str, item_id: str) -> str:
        key = f"{self.prefix(system_id, item_id)}product.jpg"
        logger.info("Uploading image to S3: %s/%s", self.bucket, key)
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=image,
            ContentType="image/jpeg",
            CacheControl="public, max-age=31536000",
            ACL="public-read",
        )
        return key

    def delete_prefix(self, system_id: str, item_id: str) -> int:
        prefix = self.prefix(system_id, item_id)
        paginator = self._client.get_paginator("list_objects_v2")
        keys = [
            obj["Key"]
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix)
            for obj in page.get("Contents", [])
        ]
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start : start + DELETE_BATCH_SIZE]
            self._client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
        logger.info("Deleted %d media objects under %s/%s", len(keys), self.bucket, prefix)
        return len(keys)


if not issubclass(S3ImageStore, ImageStore):
    raise TypeError("S3ImageStore does not implement ImageStore protocol")
