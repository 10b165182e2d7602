"""
Tigris/S3-compatible storage implementation of key-value storage.

Stores every key as one S3 object so that all API instances share the same
articles and indexes. Version tokens are object ETags; conditional writes
use S3 If-Match / If-None-Match preconditions.
"""
import os
from typing import List, Optional, Tuple

import boto3
from botocore.exceptions import ClientError

from briefly.kv_store import KVStore

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}
_CONFLICT_CODES = {"PreconditionFailed", "412", "ConditionalRequestConflict", "409"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get('Error', {}).get('Code', ''))


class TigrisKVStore(KVStore):
    """
    Tigris/S3-compatible storage implementation of key-value storage.

    Objects are stored under "<key_prefix><key>" in the configured bucket.
    """

    def __init__(
        self,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        bucket_name: Optional[str] = None,
        region: Optional[str] = None,
        key_prefix: Optional[str] = None
    ):
        """
        Initialize Tigris store.

        Args:
            access_key_id: AWS access key ID (defaults to AWS_ACCESS_KEY_ID env var)
            secret_access_key: AWS secret access key (defaults to AWS_SECRET_ACCESS_KEY env var)
            endpoint_url: S3 endpoint URL (defaults to AWS_ENDPOINT_URL_S3 or
                         https://fly.storage.tigris.dev)
            bucket_name: S3 bucket name (defaults to TIGRIS_BUCKET_NAME env var)
            region: AWS region (defaults to AWS_REGION or 'auto')
            key_prefix: Prefix prepended to every object key
                        (defaults to TIGRIS_KEY_PREFIX or '')
        """
        self.access_key_id = access_key_id or os.getenv('AWS_ACCESS_KEY_ID')
        self.secret_access_key = secret_access_key or os.getenv('AWS_SECRET_ACCESS_KEY')
        self.endpoint_url = (
            endpoint_url or
            os.getenv('AWS_ENDPOINT_URL_S3', 'https://fly.storage.tigris.dev')
        )
        self.bucket_name = bucket_name or os.getenv('TIGRIS_BUCKET_NAME')
        self.region = region or os.getenv('AWS_REGION', 'auto')
        self.key_prefix = key_prefix if key_prefix is not None else os.getenv('TIGRIS_KEY_PREFIX', '')

        if not self.access_key_id or not self.secret_access_key:
            raise ValueError(
                "AWS credentials are required. Set AWS_ACCESS_KEY_ID and "
                "AWS_SECRET_ACCESS_KEY environment variables or pass them as parameters."
            )

        if not self.bucket_name:
            raise ValueError(
                "Bucket name is required. Set TIGRIS_BUCKET_NAME environment variable "
                "or pass it as a parameter."
            )

        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            endpoint_url=self.endpoint_url,
            region_name=self.region
        )

    def _get_object_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _put_object(self, key: str, value: bytes, **conditions) -> None:
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=self._get_object_key(key),
            Body=value,
            ContentType='application/json',
            CacheControl='no-cache, no-store, must-revalidate',
            **conditions
        )

    def get(self, key: str) -> Optional[bytes]:
        value, _ = self.get_versioned(key)
        return value

    def put(self, key: str, value: bytes) -> None:
        self._put_object(key, value)

    def delete(self, key: str) -> None:
        # S3 deletes are idempotent; a missing key succeeds.
        self.s3_client.delete_object(Bucket=self.bucket_name, Key=self._get_object_key(key))

    def list_keys(self, prefix: str) -> List[str]:
        paginator = self.s3_client.get_paginator('list_objects_v2')
        keys = []
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=self._get_object_key(prefix)):
            for obj in page.get('Contents', []):
                keys.append(obj['Key'][len(self.key_prefix):])
        return sorted(keys)

    def get_versioned(self, key: str) -> Tuple[Optional[bytes], Optional[str]]:
        try:
            response = self.s3_client.get_object(
                Bucket=self.bucket_name,
                Key=self._get_object_key(key)
            )
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return None, None
            raise
        return response['Body'].read(), response.get('ETag')

    def put_if_version(self, key: str, value: bytes, version: Optional[str]) -> bool:
        conditions = {'IfNoneMatch': '*'} if version is None else {'IfMatch': version}
        try:
            self._put_object(key, value, **conditions)
        except ClientError as e:
            if _error_code(e) in _CONFLICT_CODES:
                return False
            raise
        return True

    def delete_if_version(self, key: str, version: str) -> bool:
        try:
            self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=self._get_object_key(key),
                IfMatch=version
            )
        except ClientError as e:
            if _error_code(e) in _CONFLICT_CODES or _error_code(e) in _MISSING_CODES:
                return False
            raise
        return True
