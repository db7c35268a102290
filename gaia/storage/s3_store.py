"""S3-backed store using the same key layout as the file store.

For S3-compatible stores (e.g. MinIO) set ``endpoint_url``. Credentials are
picked up from the environment or the default AWS profile.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import boto3
from botocore.exceptions import ClientError

from gaia.products.models import Pixel, Prediction, Segment
from gaia.storage.store import format_product_path, group_by_pixel, input_key

logger = logging.getLogger(__name__)


class S3Store:
    def __init__(self, bucket: str, prefix: str = "", region: str = "",
                 endpoint_url: str = "", client: Any = None):
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        # Prefer explicit region, else AWS_REGION, else AWS_DEFAULT_REGION
        self.region = region or os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
        self.endpoint_url = endpoint_url or os.environ.get("S3_ENDPOINT_URL")

        if client is None:
            session = boto3.Session(region_name=self.region or None)
            client = session.client("s3", endpoint_url=self.endpoint_url or None)
        self._client = client

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def grouped_segments(self, cx: int, cy: int) -> dict[Pixel, list[Segment]]:
        return group_by_pixel(self._get_json(input_key("segments", cx, cy)), "sday")

    def grouped_predictions(self, cx: int, cy: int) -> dict[Pixel, list[Prediction]]:
        return group_by_pixel(self._get_json(input_key("predictions", cx, cy)), "pday")

    def product_path(self, product: str, cx: int, cy: int, tile: str, date: str) -> str:
        return self._key("products/" + format_product_path(product, cx, cy, tile, date))

    def put_json(self, path: str, value: Any) -> None:
        logger.info("S3 upload s3://%s/%s", self.bucket, path)
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=json.dumps(value).encode("utf-8"),
            ContentType="application/json",
        )

    def _get_json(self, key: str) -> list[dict]:
        full_key = self._key(key)
        try:
            resp = self._client.get_object(Bucket=self.bucket, Key=full_key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey"):
                logger.warning("No input data at s3://%s/%s", self.bucket, full_key)
                return []
            raise
        return json.loads(resp["Body"].read())
