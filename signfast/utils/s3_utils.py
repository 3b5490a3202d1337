### signfast/utils/s3_utils.py

# Standard library imports
import os
from io import BytesIO
from typing import Optional, BinaryIO, Union

# Third party imports
import boto3
from botocore.exceptions import ClientError

# Local imports
from signfast.core.config import settings
from signfast.utils.logger import get_logger

logger = get_logger(__name__)

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


class S3Utils:
    """Object store backed by a single S3 bucket. Callers address blobs by key only."""
    def __init__(self):
        """Initialize S3 client with AWS credentials"""
        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region
        )
        self.bucket_name = settings.s3_bucket_name

    def upload_file(
        self, file_obj: Union[bytes, BinaryIO], key: str, content_type: Optional[str] = None
    ) -> bool:
        """
        Upload a file to S3

        Args:
            file_obj: Raw bytes or a file object to upload
            key: S3 key (path) where the file will be stored
            content_type: Optional content type, guessed from the key otherwise

        Returns:
            bool: True if upload was successful, False otherwise
        """
        if isinstance(file_obj, (bytes, bytearray)):
            file_obj = BytesIO(file_obj)

        extra_args = {}
        guessed = CONTENT_TYPES.get(os.path.splitext(key)[1].lower())
        if content_type or guessed:
            extra_args['ContentType'] = content_type or guessed

        try:
            self.s3_client.upload_fileobj(
                file_obj,
                self.bucket_name,
                key,
                ExtraArgs=extra_args
            )
            logger.info("Uploaded object to S3", key=key)
            return True
        except ClientError as e:
            logger.error("Error uploading file to S3", key=key, error_message=str(e))
            return False

    def download_file(self, key: str) -> Optional[bytes]:
        """
        Download a file from S3

        Args:
            key: S3 key (path) of the file to download

        Returns:
            bytes: File content if successful, None otherwise
        """
        try:
            response = self.s3_client.get_object(
                Bucket=self.bucket_name,
                Key=key
            )
            return response['Body'].read()
        except ClientError as e:
            logger.error("Error downloading file from S3", key=key, error_message=str(e))
            return None

    def generate_presigned_url(self, key: str, expiration: Optional[int] = None) -> Optional[str]:
        """
        Generate a presigned URL for temporary access to an S3 object

        Args:
            key: S3 key (path) of the file
            expiration: URL expiration time in seconds

        Returns:
            str: Presigned URL if successful, None otherwise
        """
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket_name,
                    'Key': key
                },
                ExpiresIn=expiration or settings.presigned_url_expiration
            )
        except ClientError as e:
            logger.error("Error generating presigned URL", key=key, error_message=str(e))
            return None

    def delete_file(self, key: str) -> bool:
        """
        Delete a file from S3

        Args:
            key: S3 key (path) of the file to delete

        Returns:
            bool: True if deletion was successful, False otherwise
        """
        try:
            self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=key
            )
            return True
        except ClientError as e:
            logger.error("Error deleting file from S3", key=key, error_message=str(e))
            return False


s3_utils = S3Utils()


def get_object_store() -> S3Utils:
    """Dependency returning the shared object store."""
    return s3_utils
