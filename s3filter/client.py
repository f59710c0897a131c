import base64
import datetime
import hashlib
from collections import namedtuple
from urllib.parse import unquote_plus, urlparse
import xml.etree.ElementTree as ET

import requests

from s3filter.errors import S3RequestError
from s3filter.signing import canonical_path, canonical_query, payload_hash, sign_request_v4

S3_NAMESPACE = 'http://s3.amazonaws.com/doc/2006-03-01/'

# DeleteObjects accepts at most this many keys per request
MAX_DELETE_KEYS = 1000

ListPage = namedtuple('ListPage', 'keys next_token is_truncated')
DeleteFailure = namedtuple('DeleteFailure', 'key code message')
DeleteResult = namedtuple('DeleteResult', 'deleted failures')


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


def _text(element, name):
    # Some S3-compatible servers omit the namespace, so match any
    found = element.find(f'{{*}}{name}')
    if found is None or found.text is None:
        return None
    return found.text


def _children(element, name):
    return element.findall(f'{{*}}{name}')


def parse_error(response):
    """Extract (code, message) from an S3 XML error body."""
    try:
        root = ET.fromstring(response.content)
    except ET.ParseError:
        return None, response.text.strip() or None
    return _text(root, 'Code'), _text(root, 'Message')


def parse_list_page(content):
    root = ET.fromstring(content)
    keys = [_text(item, 'Key') for item in _children(root, 'Contents')]

    # Keys are only encoded when the server honoured encoding-type=url
    if (_text(root, 'EncodingType') or '').lower() == 'url':
        keys = [unquote_plus(key) for key in keys]

    is_truncated = (_text(root, 'IsTruncated') or '').lower() == 'true'
    next_token = _text(root, 'NextContinuationToken') if is_truncated else None
    return ListPage(keys, next_token, is_truncated)


def build_delete_body(keys):
    root = ET.Element('Delete', xmlns=S3_NAMESPACE)
    ET.SubElement(root, 'Quiet').text = 'false'
    for key in keys:
        obj = ET.SubElement(root, 'Object')
        ET.SubElement(obj, 'Key').text = key
    return ET.tostring(root, encoding='utf-8', xml_declaration=True)


def parse_delete_result(root):
    deleted = [_text(item, 'Key') for item in _children(root, 'Deleted')]
    failures = [
        DeleteFailure(_text(item, 'Key'), _text(item, 'Code'), _text(item, 'Message'))
        for item in _children(root, 'Error')
    ]
    return DeleteResult(deleted, failures)


class S3Client:
    """Signed S3 requests over a single ``requests`` session.

    Use as a context manager so the session is closed when the command ends.
    """

    def __init__(self, settings, session=None, clock=_utcnow, timeout=60):
        self.endpoint_url = settings['endpoint_url'].rstrip('/')
        self.region = settings.get('region', 'us-east-1')
        self.access_key = settings['aws_access_key_id']
        self.secret_key = settings['aws_secret_access_key']
        self.session_token = settings.get('aws_session_token')
        self.session = session or requests.Session()
        self.clock = clock
        self.timeout = timeout

        parsed = urlparse(self.endpoint_url)
        self.scheme = parsed.scheme or 'https'
        self.host = parsed.netloc or parsed.path

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        self.session.close()

    def request(self, operation, method, bucket, key=None, params=None, data=None, headers=None,
                ok_statuses=(200,)):
        """Sign and send one request; raise S3RequestError unless the status is expected."""
        path = canonical_path(bucket, key)
        query = canonical_query(params)
        content_hash = payload_hash(data)

        headers = dict(headers or {})
        headers['host'] = self.host
        headers['x-amz-date'] = self.clock().strftime('%Y%m%dT%H%M%SZ')
        headers['x-amz-content-sha256'] = content_hash
        if self.session_token:
            headers['x-amz-security-token'] = self.session_token

        headers['Authorization'] = sign_request_v4(
            method,
            path,
            query,
            headers,
            content_hash,
            self.region,
            self.access_key,
            self.secret_key
        )

        url = f"{self.scheme}://{self.host}{path}"
        if query:
            url += f"?{query}"

        try:
            response = self.session.request(method, url, data=data, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise S3RequestError(operation, message=str(e)) from e

        if response.status_code not in ok_statuses:
            code, message = parse_error(response)
            raise S3RequestError(operation, response.status_code, code, message)
        return response

    def list_page(self, bucket, continuation_token=None, prefix=None, max_keys=None):
        """Fetch one ListObjectsV2 page."""
        params = {'list-type': '2', 'encoding-type': 'url'}
        if prefix:
            params['prefix'] = prefix
        if max_keys:
            params['max-keys'] = str(max_keys)
        if continuation_token:
            params['continuation-token'] = continuation_token

        response = self.request('ListObjectsV2', 'GET', bucket, params=params)
        try:
            return parse_list_page(response.content)
        except ET.ParseError as e:
            raise S3RequestError('ListObjectsV2', response.status_code, message=f"Unreadable response: {e}") from e

    def delete_batch(self, bucket, keys):
        """Delete up to MAX_DELETE_KEYS keys with one DeleteObjects call."""
        if not keys:
            raise ValueError("delete_batch needs at least one key")
        if len(keys) > MAX_DELETE_KEYS:
            raise ValueError(f"delete_batch accepts at most {MAX_DELETE_KEYS} keys, got {len(keys)}")

        body = build_delete_body(keys)
        headers = {
            'Content-Type': 'application/xml',
            'Content-MD5': base64.b64encode(hashlib.md5(body).digest()).decode('ascii'),
        }
        response = self.request('DeleteObjects', 'POST', bucket, params={'delete': ''}, data=body,
                                headers=headers)
        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as e:
            raise S3RequestError('DeleteObjects', response.status_code, message=f"Unreadable response: {e}") from e

        # A 200 can still carry a top-level error document
        if root.tag.rpartition('}')[2] == 'Error':
            raise S3RequestError('DeleteObjects', response.status_code, _text(root, 'Code'), _text(root, 'Message'))
        return parse_delete_result(root)

    def put_object(self, bucket, key, data, content_type='application/octet-stream'):
        headers = {'Content-Type': content_type}
        response = self.request('PutObject', 'PUT', bucket, key, data=data, headers=headers)
        return response.headers.get('ETag')
