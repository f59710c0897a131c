"""List or delete every object in a bucket whose key matches a pattern.

The operation runs strictly in sequence: all listing pages are fetched
(following continuation tokens), the keys are matched, then the matches are
either returned or deleted in batches no larger than the DeleteObjects limit.
"""
import enum
from collections import namedtuple

from s3filter.client import MAX_DELETE_KEYS
from s3filter.errors import DeleteBatchError, ListingError, S3RequestError
from s3filter.matcher import compile_pattern, filter_keys

BatchRecord = namedtuple('BatchRecord', 'index keys confirmed')


class OperationState(enum.Enum):
    IDLE = 'idle'
    LISTING = 'listing'
    MATCHING = 'matching'
    REPORTING = 'reporting'
    DELETING = 'deleting'
    DONE = 'done'
    FAILED = 'failed'


class DeleteOutcome:
    """Result of a completed delete-filter run."""

    def __init__(self, matched, deleted_count, batches):
        self.matched = matched
        self.deleted_count = deleted_count
        self.batches = batches

    @property
    def no_matches(self):
        return not self.matched

    @property
    def batch_calls(self):
        return len(self.batches)

    def __repr__(self):
        return (f"DeleteOutcome(matched={len(self.matched)}, deleted={self.deleted_count}, "
                f"batches={self.batch_calls})")


def iter_keys(client, bucket, prefix=None, page_size=None):
    """Yield every key in the bucket, one page at a time.

    Continuation tokens are followed until the listing is exhausted. The
    generator cannot be restarted.
    """
    pages_fetched = 0
    keys_fetched = 0
    token = None

    while True:
        try:
            page = client.list_page(bucket, continuation_token=token, prefix=prefix, max_keys=page_size)
        except S3RequestError as e:
            raise ListingError(bucket, pages_fetched, keys_fetched, e) from e
        pages_fetched += 1

        for key in page.keys:
            keys_fetched += 1
            yield key

        if not page.next_token:
            if page.is_truncated:
                raise ListingError(bucket, pages_fetched, keys_fetched,
                                   "truncated listing without continuation token")
            return
        if page.next_token == token:
            raise ListingError(bucket, pages_fetched, keys_fetched,
                               f"continuation token repeated: {token}")
        token = page.next_token


def chunked(keys, size):
    """Split ``keys`` into consecutive lists of at most ``size`` items."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for start in range(0, len(keys), size):
        yield keys[start:start + size]


class FilteredBulkOperation:
    """Match keys of one bucket against a pattern, then report or delete them.

    A pattern string is compiled on construction, so an invalid pattern fails
    before any request is sent; an already compiled pattern is used as is.
    The client is owned by the caller.
    """

    def __init__(self, client, bucket, pattern, prefix=None, page_size=None, batch_limit=MAX_DELETE_KEYS):
        if not 1 <= batch_limit <= MAX_DELETE_KEYS:
            raise ValueError(f"batch_limit must be between 1 and {MAX_DELETE_KEYS}, got {batch_limit}")

        self.client = client
        self.bucket = bucket
        self.pattern = compile_pattern(pattern) if isinstance(pattern, str) else pattern
        self.prefix = prefix
        self.page_size = page_size
        self.batch_limit = batch_limit
        self.state = OperationState.IDLE

    def _matched_keys(self):
        self.state = OperationState.LISTING
        try:
            keys = list(iter_keys(self.client, self.bucket, prefix=self.prefix, page_size=self.page_size))
        except ListingError:
            self.state = OperationState.FAILED
            raise

        self.state = OperationState.MATCHING
        return filter_keys(self.pattern, keys)

    def list_filter(self, on_match=None):
        """Return matching keys in listing order.

        ``on_match`` is called with each matching key while reporting.
        """
        matched = self._matched_keys()
        self.state = OperationState.REPORTING
        if on_match is not None:
            for key in matched:
                on_match(key)
        self.state = OperationState.DONE
        return matched

    def delete_filter(self, on_batch=None):
        """Delete matching keys batch by batch.

        ``on_batch`` is called with each confirmed BatchRecord. Raises
        DeleteBatchError on the first batch that fails; later batches are
        not attempted.
        """
        matched = self._matched_keys()
        self.state = OperationState.DELETING

        chunks = list(chunked(matched, self.batch_limit))
        batches = [BatchRecord(index, chunk, False) for index, chunk in enumerate(chunks)]
        deleted_count = 0

        for index, chunk in enumerate(chunks):
            try:
                result = self.client.delete_batch(self.bucket, chunk)
            except S3RequestError as e:
                self.state = OperationState.FAILED
                raise DeleteBatchError(self.bucket, index, deleted_count, batches, cause=e) from e

            deleted_count += len(result.deleted)
            accounted = len(result.deleted) + len(result.failures)
            if result.failures or accounted != len(chunk):
                self.state = OperationState.FAILED
                cause = None
                if accounted != len(chunk):
                    cause = f"response accounted for {accounted} of {len(chunk)} keys"
                raise DeleteBatchError(self.bucket, index, deleted_count, batches,
                                       failures=result.failures, cause=cause)

            batches[index] = batches[index]._replace(confirmed=True)
            if on_batch is not None:
                on_batch(batches[index])

        self.state = OperationState.DONE
        return DeleteOutcome(matched, deleted_count, batches)


def list_filter(client, bucket, pattern, prefix=None, page_size=None, on_match=None):
    operation = FilteredBulkOperation(client, bucket, pattern, prefix=prefix, page_size=page_size)
    return operation.list_filter(on_match=on_match)


def delete_filter(client, bucket, pattern, prefix=None, page_size=None, batch_limit=MAX_DELETE_KEYS,
                  on_batch=None):
    operation = FilteredBulkOperation(client, bucket, pattern, prefix=prefix, page_size=page_size,
                                      batch_limit=batch_limit)
    return operation.delete_filter(on_batch=on_batch)
