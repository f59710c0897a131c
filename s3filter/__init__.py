"""Command-line listing, upload and regex filtered deletion for S3 buckets."""

__version__ = '0.1.0'
