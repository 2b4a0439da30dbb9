"""S3 as the backup destination."""

import logging
import os
import threading
from typing import BinaryIO, Callable, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .config import BackupSettings

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def get_s3_client(
    aws_access_key_id: Optional[str] = None,
    aws_secret_access_key: Optional[str] = None,
    region_name: Optional[str] = None,
    retries_max_attempts: int = 3,
    connect_timeout: int = 10,
    read_timeout: int = 60,
):
    """Create a boto3 S3 client with retries and timeouts applied."""
    cfg = Config(
        retries={"max_attempts": retries_max_attempts, "mode": "standard"},
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
    )
    session = boto3.Session(
        aws_access_key_id=aws_access_key_id,
        aws_secret_access_key=aws_secret_access_key,
        region_name=region_name,
    )
    return session.client("s3", config=cfg)


class S3Destination:
    """Writes backup copies into one S3 bucket, overwriting by key."""

    def __init__(self, s3_client, bucket_name: str):
        self.s3_client = s3_client
        self.bucket_name = bucket_name
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: BackupSettings) -> "S3Destination":
        client = get_s3_client(
            aws_access_key_id=config.s3_access_key_id,
            aws_secret_access_key=config.s3_secret_access_key,
            region_name=config.s3_region,
        )
        return cls(client, config.s3_bucket_name)

    def exists(self, key: str) -> bool:
        """HEAD the object; False on 404/NoSuchKey/NotFound, raise on other errors."""
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                return False
            raise

    def write_buffer(
        self, key: str, data: bytes, content_type: str, metadata: Dict[str, str]
    ) -> None:
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
            Metadata=metadata,
        )
        self.logger.debug(f"Uploaded {len(data)} bytes to s3://{self.bucket_name}/{key}")

    def write_stream(
        self,
        key: str,
        fileobj: BinaryIO,
        content_type: str,
        metadata: Dict[str, str],
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> None:
        """Upload a file object (multipart for large files), reporting percent done."""
        total = os.fstat(fileobj.fileno()).st_size
        transferred = 0
        lock = threading.Lock()

        def upload_callback(bytes_amount: int) -> None:
            nonlocal transferred
            with lock:
                transferred += bytes_amount
                percent = round(transferred * 100 / total) if total else 100
            if on_progress:
                on_progress(percent)

        self.s3_client.upload_fileobj(
            fileobj,
            self.bucket_name,
            key,
            ExtraArgs={"ContentType": content_type, "Metadata": metadata},
            Callback=upload_callback,
        )
        self.logger.debug(f"Uploaded {total} bytes to s3://{self.bucket_name}/{key}")
