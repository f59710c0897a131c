"""Exceptions raised by s3filter."""


class S3FilterError(Exception):
    """Base class for every error the CLI reports to the user."""

    exit_code = 1


class ProfileError(S3FilterError):
    """Credentials or connection settings could not be resolved."""


class S3RequestError(S3FilterError):
    """A request to S3 failed or returned a non-success status."""

    def __init__(self, operation, status_code=None, code=None, message=None):
        self.operation = operation
        self.status_code = status_code
        self.code = code
        self.message = message

        details = []
        if status_code is not None:
            details.append(str(status_code))
        if code:
            details.append(code)
        if message:
            details.append(message)
        text = f"{operation} failed"
        if details:
            text += ": " + " - ".join(details)
        super().__init__(text)


class PatternSyntaxError(S3FilterError):
    """The user supplied pattern is not a valid regular expression."""

    exit_code = 2

    def __init__(self, pattern, reason):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid pattern '{pattern}': {reason}")


class ListingError(S3FilterError):
    """A page of the bucket listing could not be fetched.

    No key beyond the last successful page is known.
    """

    def __init__(self, bucket, pages_fetched, keys_fetched, cause):
        self.bucket = bucket
        self.pages_fetched = pages_fetched
        self.keys_fetched = keys_fetched
        self.cause = cause
        super().__init__(
            f"Listing s3://{bucket}/ failed after {pages_fetched} page(s) "
            f"({keys_fetched} keys): {cause}"
        )


class DeleteBatchError(S3FilterError):
    """A delete batch failed; deletions from earlier batches are already committed."""

    exit_code = 3

    def __init__(self, bucket, batch_index, deleted_count, batches, failures=None, cause=None):
        self.bucket = bucket
        self.batch_index = batch_index
        self.deleted_count = deleted_count
        self.batches = batches
        self.failures = failures or []
        self.cause = cause

        confirmed = sum(1 for batch in batches if batch.confirmed)
        text = (
            f"Deleting from s3://{bucket}/ failed on batch {batch_index + 1} of {len(batches)}; "
            f"{confirmed} batch(es) confirmed, {deleted_count} keys deleted before the failure"
        )
        if cause is not None:
            text += f": {cause}"
        elif self.failures:
            text += f": {len(self.failures)} key(s) reported errors"
        super().__init__(text)

    @property
    def unconfirmed_batches(self):
        return [batch for batch in self.batches if not batch.confirmed]
