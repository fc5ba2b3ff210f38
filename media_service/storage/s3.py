import boto3
import json
from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import quote
from botocore.exceptions import BotoCoreError, ClientError
from media_service.settings import Settings
from media_service.storage.base import key_from_public_url
import logging

log = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

# -------------------------
# S3 Gateway
# -------------------------
class S3Gateway:
    """S3-compatible object storage (Supabase Storage, AWS S3, MinIO)."""

    def __init__(self, settings: Settings):
        self.settings = settings
        session = boto3.session.Session(region_name=settings.storage_region)
        kwargs = {
            "aws_access_key_id": settings.storage_access_key_id,
            "aws_secret_access_key": settings.storage_secret_access_key,
        }
        if settings.storage_endpoint_url:
            kwargs["endpoint_url"] = settings.storage_endpoint_url

        self.client = session.client("s3", **kwargs)
        log.info("Initialized S3 client")

    def ensure_bucket(self, bucket: str) -> None:
        try:
            resp = self.client.list_buckets()
        except (BotoCoreError, ClientError) as e:
            log.error("Failed to list buckets: %s", e)
            return

        if any(b.get("Name") == bucket for b in resp.get("Buckets", [])):
            log.debug("Bucket %s already exists", bucket)
            return

        try:
            create_kwargs = {"Bucket": bucket}
            if self.settings.storage_region != "us-east-1":
                create_kwargs["CreateBucketConfiguration"] = {
                    "LocationConstraint": self.settings.storage_region
                }
            self.client.create_bucket(**create_kwargs)
            log.info("Created bucket %s", bucket)
        except (BotoCoreError, ClientError) as e:
            log.error("Failed to create bucket %s: %s", bucket, e)
            return

        try:
            self.client.put_bucket_policy(Bucket=bucket, Policy=public_read_policy(bucket))
        except (BotoCoreError, ClientError) as e:
            log.error("Failed to set public-read policy on %s: %s", bucket, e)

    def put(self, data: bytes, key: str, bucket: str, content_type: str) -> Optional[Dict[str, str]]:
        try:
            self.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=self.settings.storage_cache_control,
                Metadata={"created-at": datetime.now(timezone.utc).isoformat()},
            )
        except (BotoCoreError, ClientError) as e:
            log.error("S3 upload of s3://%s/%s failed: %s", bucket, key, e)
            return None
        log.debug("Uploaded %s to s3://%s/%s", key, bucket, key)
        return {"url": self.public_url(bucket, key), "path": key}

    def remove(self, key: str, bucket: str) -> bool:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in NOT_FOUND_CODES:
                log.debug("s3://%s/%s already absent", bucket, key)
                return True
            log.error("S3 delete of s3://%s/%s failed: %s", bucket, key, e)
            return False
        except BotoCoreError as e:
            log.error("S3 delete of s3://%s/%s failed: %s", bucket, key, e)
            return False
        log.debug("Deleted s3://%s/%s", bucket, key)
        return True

    def bucket_url(self, bucket: str) -> str:
        if self.settings.storage_public_url:
            base = self.settings.storage_public_url
        elif self.settings.storage_endpoint_url:
            base = self.settings.storage_endpoint_url
        else:
            base = f"https://s3.{self.settings.storage_region}.amazonaws.com"
        return f"{base.rstrip('/')}/{bucket}"

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.bucket_url(bucket)}/{quote(key)}"

    def url_to_key(self, url: str, bucket: str) -> Optional[str]:
        return key_from_public_url(url, self.bucket_url(bucket))

    def stat(self, key: str, bucket: str) -> Optional[Dict]:
        try:
            resp = self.client.list_objects_v2(Bucket=bucket, Prefix=key)
            match = next((obj for obj in resp.get("Contents", []) if obj["Key"] == key), None)
            if match is None:
                return None
            head = self.client.head_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            log.error("S3 lookup of s3://%s/%s failed: %s", bucket, key, e)
            return None

        modified_at = match["LastModified"]
        created_at = modified_at
        created = head.get("Metadata", {}).get("created-at")
        if created:
            try:
                created_at = datetime.fromisoformat(created)
            except ValueError:
                log.warning("Ignoring malformed created-at %r on s3://%s/%s", created, bucket, key)
        return {
            "size": int(match["Size"]),
            "created_at": created_at,
            "modified_at": modified_at,
        }

    def close(self):
        log.info("Closed S3 client")


def public_read_policy(bucket: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "PublicRead",
                "Effect": "Allow",
                "Principal": "*",
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket}/*"],
            }
        ],
    })
