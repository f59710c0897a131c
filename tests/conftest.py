from __future__ import annotations

from s3filter.client import DeleteFailure, DeleteResult, ListPage
from s3filter.errors import S3RequestError


class StubClient:
    """In-memory stand-in for S3Client.

    Continuation tokens are the offset of the next page, as strings.
    """

    def __init__(self, keys, page_size=1000, fail_list_call=None, fail_batches=(), key_failures=None):
        self.keys = list(keys)
        self.page_size = page_size
        self.fail_list_call = fail_list_call
        self.fail_batches = set(fail_batches)
        self.key_failures = key_failures or {}
        self.list_calls = []
        self.delete_calls = []
        self.uploads = {}
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def list_page(self, bucket, continuation_token=None, prefix=None, max_keys=None):
        self.list_calls.append(continuation_token)
        if self.fail_list_call == len(self.list_calls) - 1:
            raise S3RequestError('ListObjectsV2', 500, 'InternalError', 'We encountered an internal error')

        keys = [k for k in self.keys if not prefix or k.startswith(prefix)]
        start = int(continuation_token) if continuation_token else 0
        size = max_keys or self.page_size
        end = start + size
        next_token = str(end) if end < len(keys) else None
        return ListPage(keys[start:end], next_token, next_token is not None)

    def delete_batch(self, bucket, keys):
        index = len(self.delete_calls)
        self.delete_calls.append(list(keys))
        if index in self.fail_batches:
            raise S3RequestError('DeleteObjects', 503, 'SlowDown', 'Please reduce your request rate.')

        failures = [DeleteFailure(k, 'AccessDenied', 'Access Denied') for k in keys if k in self.key_failures]
        deleted = [k for k in keys if k not in self.key_failures]
        for key in deleted:
            self.keys.remove(key)
        return DeleteResult(deleted, failures)

    def put_object(self, bucket, key, data, content_type='application/octet-stream'):
        self.uploads[key] = (data, content_type)
        return '"etag"'
