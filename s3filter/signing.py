"""AWS Signature Version 4 for S3 requests."""
import hmac
import hashlib
import urllib.parse

ALGORITHM = 'AWS4-HMAC-SHA256'
EMPTY_PAYLOAD_HASH = hashlib.sha256(b'').hexdigest()


def payload_hash(data):
    if data is None:
        return EMPTY_PAYLOAD_HASH
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def quote(value):
    # Only RFC 3986 unreserved characters are left as is
    return urllib.parse.quote(value, safe='-_.~')


def canonical_query(params):
    """Encode query parameters sorted by name, as used both on the wire and when signing."""
    if not params:
        return ''
    pairs = sorted((quote(str(k)), quote(str(v))) for k, v in params.items())
    return '&'.join(f"{k}={v}" for k, v in pairs)


def canonical_path(bucket, key=None):
    path = '/'
    if bucket:
        path += quote(bucket)
        if key:
            path += '/' + '/'.join(quote(part) for part in key.split('/'))
    return path


def _hmac(key, msg):
    return hmac.new(key, msg.encode('utf-8'), hashlib.sha256).digest()


def signing_key(secret_key, date_stamp, region, service):
    k_date = _hmac(f"AWS4{secret_key}".encode('utf-8'), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, 'aws4_request')


def sign_request_v4(method, path, query, headers, content_hash, region, access_key, secret_key,
                    service='s3'):
    """Return the Authorization header value for a request.

    ``headers`` must already contain ``host`` and ``x-amz-date``; every header
    passed in is signed.
    """
    headers = {k.lower(): ' '.join(str(v).split()) for k, v in headers.items()}
    signed_headers = ';'.join(sorted(headers))
    canonical_headers = ''.join(f"{k}:{headers[k]}\n" for k in sorted(headers))

    canonical_request = '\n'.join([
        method,
        path,
        query,
        canonical_headers,
        signed_headers,
        content_hash,
    ])

    amz_date = headers['x-amz-date']
    date_stamp = amz_date[:8]
    credential_scope = f"{date_stamp}/{region}/{service}/aws4_request"
    string_to_sign = '\n'.join([
        ALGORITHM,
        amz_date,
        credential_scope,
        hashlib.sha256(canonical_request.encode('utf-8')).hexdigest(),
    ])

    signature = hmac.new(
        signing_key(secret_key, date_stamp, region, service),
        string_to_sign.encode('utf-8'),
        hashlib.sha256
    ).hexdigest()

    return (
        f"{ALGORITHM} "
        f"Credential={access_key}/{credential_scope}, "
        f"SignedHeaders={signed_headers}, "
        f"Signature={signature}"
    )
