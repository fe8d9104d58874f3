"""
Durable asset storage on S3 (or a MinIO endpoint speaking the S3 API).
"""

import logging

import boto3
from botocore.config import Config as BotoConfig

from config import (
    S3_ACCESS_KEY,
    S3_BUCKET,
    S3_ENDPOINT_URL,
    S3_PUBLIC_BASE_URL,
    S3_REGION,
    S3_SECRET_KEY,
)


def get_s3_client():
    """SDK client for server-side upload/download."""
    session = boto3.session.Session(
        aws_access_key_id=S3_ACCESS_KEY,
        aws_secret_access_key=S3_SECRET_KEY,
        region_name=S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=S3_ENDPOINT_URL,
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


def video_asset_path(video_id: str) -> str:
    return f"videos/{video_id}/generated_video.mp4"


def audio_asset_path(video_id: str) -> str:
    return f"videos/{video_id}/generated_audio.wav"


def thumbnail_asset_path(video_id: str) -> str:
    return f"videos/{video_id}/thumbnail.png"


class AssetStore:
    """Uploads generated media and hands back the URL it can be retrieved from."""

    def __init__(self, client=None, bucket: str = S3_BUCKET, public_base_url: str = S3_PUBLIC_BASE_URL):
        self._client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def url_for(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{path}"

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self.client.put_object(Bucket=self.bucket, Key=path, Body=data, ContentType=content_type)
        logging.info(f"Stored {len(data)} bytes at s3://{self.bucket}/{path}")
        return self.url_for(path)

    def download(self, path: str) -> bytes:
        response = self.client.get_object(Bucket=self.bucket, Key=path)
        return response["Body"].read()
