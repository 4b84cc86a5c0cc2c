"""
S3Storage - S3 / R2 / MinIO backend for the content tree.
"""

import logging
from typing import List, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .config import S3Config
from .storage import AccessCheck, FileInfo, Storage, join_path


NOT_FOUND_CODES = {'404', 'NoSuchKey', 'NotFound'}
DENIED_CODES = {'403', 'AccessDenied', 'Forbidden'}


class S3Storage(Storage):
    """
    Storage backed by an S3-compatible bucket.

    Keys are the content path prefixed with config.prefix.
    """

    backend_name = 's3'

    def __init__(self, config: S3Config, logger: Optional[logging.Logger] = None):
        """
        Initialize S3 storage.

        Args:
            config: S3 configuration
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self._client = boto3.client(
            's3',
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'}
            ),
            verify=config.verify_ssl
        )

    @property
    def client(self):
        """Return the underlying boto3 client."""
        return self._client

    def _key(self, path: str) -> str:
        return join_path(self.config.prefix, path)

    def _relative(self, key: str) -> str:
        prefix = self.config.prefix.strip('/')
        if prefix and key.startswith(prefix + '/'):
            return key[len(prefix) + 1:]
        return key

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return str(error.response.get('Error', {}).get('Code', ''))

    def get(self, path: str) -> Optional[bytes]:
        try:
            response = self._client.get_object(Bucket=self.config.bucket, Key=self._key(path))
        except ClientError as e:
            if self._error_code(e) in NOT_FOUND_CODES:
                return None
            raise
        return response['Body'].read()

    def put(self, path: str, data: Union[bytes, str], content_type: str = 'application/octet-stream') -> None:
        if isinstance(data, str):
            data = data.encode('utf-8')
        self._client.put_object(
            Bucket=self.config.bucket,
            Key=self._key(path),
            Body=data,
            ContentType=content_type
        )
        self.logger.debug(f"Uploaded {path} ({len(data)} bytes)")

    def delete(self, path: str) -> None:
        self._client.delete_object(Bucket=self.config.bucket, Key=self._key(path))

    def list(self, prefix: str) -> List[FileInfo]:
        """
        List the immediate children of a folder.

        Uses a '/' delimiter so sub-folders come back as CommonPrefixes.
        """
        folder_key = self._key(prefix)
        list_prefix = f"{folder_key}/" if folder_key else ''

        paginator = self._client.get_paginator('list_objects_v2')
        page_iterator = paginator.paginate(
            Bucket=self.config.bucket,
            Prefix=list_prefix,
            Delimiter='/',
        )

        entries = []
        for page in page_iterator:
            for common_prefix in page.get('CommonPrefixes', []):
                dir_key = common_prefix['Prefix'].rstrip('/')
                name = dir_key.rsplit('/', 1)[-1]
                if not name or name.startswith('.'):
                    continue
                entries.append(FileInfo(
                    name=name,
                    path=self._relative(dir_key),
                    is_directory=True,
                ))
            for obj in page.get('Contents', []):
                key = obj['Key']
                name = key.rsplit('/', 1)[-1]
                if not name or name.startswith('.'):
                    continue
                entries.append(FileInfo(
                    name=name,
                    path=self._relative(key),
                    size=obj['Size'],
                    last_modified=obj['LastModified'].isoformat(),
                ))
        return entries

    def exists(self, path: str) -> bool:
        """Check if an object exists in S3."""
        try:
            self._client.head_object(Bucket=self.config.bucket, Key=self._key(path))
            return True
        except ClientError as e:
            if self._error_code(e) in NOT_FOUND_CODES:
                return False
            raise

    def move(self, src: str, dst: str) -> bool:
        if not self.exists(src):
            return False
        self._client.copy_object(
            Bucket=self.config.bucket,
            Key=self._key(dst),
            CopySource={'Bucket': self.config.bucket, 'Key': self._key(src)},
        )
        self.delete(src)
        return True

    def check_access(self) -> AccessCheck:
        """
        Probe bucket and listing permission with read-only calls.

        Write permission cannot be observed without writing, so it is
        reported as unknown (None).
        """
        result = AccessCheck(backend=self.backend_name)
        try:
            self._client.head_bucket(Bucket=self.config.bucket)
            result.can_read = True
        except ClientError as e:
            code = self._error_code(e)
            if code in DENIED_CODES:
                result.can_read = False
            else:
                result.error = f"head_bucket failed: {code or e}"
                return result

        try:
            self._client.list_objects_v2(
                Bucket=self.config.bucket,
                Prefix=self._key(''),
                MaxKeys=1,
            )
            result.can_list = True
        except ClientError as e:
            code = self._error_code(e)
            if code in DENIED_CODES:
                result.can_list = False
            else:
                result.error = f"list_objects_v2 failed: {code or e}"
        return result
