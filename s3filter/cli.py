#!/usr/bin/env python3
import os
import sys
import argparse
import mimetypes

from s3filter.bulk import FilteredBulkOperation, iter_keys
from s3filter.client import MAX_DELETE_KEYS, S3Client
from s3filter.errors import S3FilterError
from s3filter.matcher import compile_pattern
from s3filter.profiles import load_settings


def error(message):
    print(f"Error: {message}", file=sys.stderr)


def build_client(args):
    """Create the client used for the whole invocation."""
    overrides = {
        'region': args.region,
        'endpoint_url': args.endpoint_url,
    }
    settings = load_settings(args.profile, overrides=overrides)
    return S3Client(settings)


def list_files(args, client):
    """List every file in a bucket."""
    for key in iter_keys(client, args.bucket, prefix=args.prefix, page_size=args.page_size):
        print(key)


def upload_file(args, client):
    """Upload a local file to a key in the bucket."""
    file_path = args.file_path
    if not os.path.isfile(file_path):
        raise S3FilterError(f"Local file {file_path} not found")

    content_type = args.content_type or mimetypes.guess_type(file_path)[0] or 'application/octet-stream'
    try:
        with open(file_path, 'rb') as f:
            file_content = f.read()
    except OSError as e:
        raise S3FilterError(f"Could not read {file_path}: {e}") from e

    client.put_object(args.bucket, args.destination_key, file_content, content_type=content_type)
    print(f"File uploaded successfully to {args.bucket}/{args.destination_key}")


def list_files_with_filter(args, client):
    """List files whose key matches a regular expression."""
    operation = FilteredBulkOperation(client, args.bucket, args.pattern,
                                      prefix=args.prefix, page_size=args.page_size)
    operation.list_filter(on_match=print)


def delete_files_with_filter(args, client):
    """Delete files whose key matches a regular expression."""
    operation = FilteredBulkOperation(client, args.bucket, args.pattern, prefix=args.prefix,
                                      page_size=args.page_size, batch_limit=args.batch_size)

    def report(batch):
        print(f"Deleted batch {batch.index + 1} ({len(batch.keys)} files)")

    outcome = operation.delete_filter(on_batch=report)
    if outcome.no_matches:
        print("No files to delete")
        return
    print(f"Deleted {outcome.deleted_count} files")


def batch_size(value):
    size = int(value)
    if not 1 <= size <= MAX_DELETE_KEYS:
        raise argparse.ArgumentTypeError(f"must be between 1 and {MAX_DELETE_KEYS}")
    return size


def page_size(value):
    size = int(value)
    if size < 1:
        raise argparse.ArgumentTypeError("must be positive")
    return size


def build_parser():
    parser = argparse.ArgumentParser(prog='s3filter', description='List, upload and filter-delete files in an S3 bucket')
    parser.add_argument('--profile', default='default', help='Profile name to use for S3 credentials')
    parser.add_argument('--region', help='Region (overrides AWS_REGION and the profile)')
    parser.add_argument('--endpoint-url', help='S3 endpoint URL (overrides S3_ENDPOINT_URL and the profile)')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # List
    list_parser = subparsers.add_parser('list', help='List all files in an S3 bucket')
    list_parser.add_argument('bucket', help='Bucket name')
    list_parser.set_defaults(func=list_files, needs_pattern=False)

    # Upload
    upload_parser = subparsers.add_parser('upload', help='Upload a local file to a defined location in the bucket')
    upload_parser.add_argument('bucket', help='Destination bucket name')
    upload_parser.add_argument('file_path', metavar='filePath', help='Local file path')
    upload_parser.add_argument('destination_key', metavar='destinationKey', help='Destination key in the bucket')
    upload_parser.add_argument('--content-type', help='Content type (guessed from the file name by default)')
    upload_parser.set_defaults(func=upload_file, needs_pattern=False)

    # List with filter
    list_filter_parser = subparsers.add_parser('list-filter', help='List files in a bucket that match a regex')
    list_filter_parser.add_argument('bucket', help='Bucket name')
    list_filter_parser.add_argument('pattern', help='Regular expression searched for in each key')
    list_filter_parser.set_defaults(func=list_files_with_filter, needs_pattern=True)

    # Delete with filter
    delete_filter_parser = subparsers.add_parser('delete-filter', help='Delete files in a bucket that match a regex')
    delete_filter_parser.add_argument('bucket', help='Bucket name')
    delete_filter_parser.add_argument('pattern', help='Regular expression searched for in each key')
    delete_filter_parser.add_argument('--batch-size', type=batch_size, default=MAX_DELETE_KEYS,
                                      help=f'Keys per delete request (default: {MAX_DELETE_KEYS})')
    delete_filter_parser.set_defaults(func=delete_files_with_filter, needs_pattern=True)

    for listing_parser in (list_parser, list_filter_parser, delete_filter_parser):
        listing_parser.add_argument('--prefix', help='Only consider keys starting with this prefix')
        listing_parser.add_argument('--page-size', type=page_size,
                                    help='Number of keys to request per listing page')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    try:
        # Compiled once, before credentials are resolved or a request is sent
        if args.needs_pattern:
            args.pattern = compile_pattern(args.pattern)

        with build_client(args) as client:
            args.func(args, client)
    except S3FilterError as e:
        error(str(e))
        return e.exit_code

    return 0


if __name__ == '__main__':
    sys.exit(main())
