from __future__ import annotations

import json

import pytest

from s3filter.errors import ProfileError
from s3filter.profiles import load_profile, load_settings

CREDENTIALS = {'AWS_ACCESS_KEY_ID': 'AKID', 'AWS_SECRET_ACCESS_KEY': 'SECRET'}


@pytest.fixture
def profiles(tmp_path, monkeypatch):
    monkeypatch.setenv('S3FILTER_PROFILES_DIR', str(tmp_path))
    return tmp_path


def _write(directory, name: str, data) -> None:
    (directory / f'{name}.json').write_text(json.dumps(data) if not isinstance(data, str) else data)


def test_environment_only(profiles) -> None:
    settings = load_settings('default', environ=dict(CREDENTIALS, AWS_REGION='eu-west-1'))

    assert settings['aws_access_key_id'] == 'AKID'
    assert settings['region'] == 'eu-west-1'
    assert settings['endpoint_url'] == 'https://s3.eu-west-1.amazonaws.com'


def test_defaults_to_us_east_1(profiles) -> None:
    settings = load_settings('default', environ=CREDENTIALS)

    assert settings['region'] == 'us-east-1'
    assert settings['endpoint_url'] == 'https://s3.us-east-1.amazonaws.com'


def test_environment_overrides_profile(profiles) -> None:
    _write(profiles, 'minio', {
        'aws_access_key_id': 'profile-key',
        'aws_secret_access_key': 'profile-secret',
        'region': 'us-west-2',
        'endpoint_url': 'http://localhost:9000/',
    })

    settings = load_settings('minio', environ={'AWS_ACCESS_KEY_ID': 'env-key'})

    assert settings['aws_access_key_id'] == 'env-key'
    assert settings['aws_secret_access_key'] == 'profile-secret'
    assert settings['region'] == 'us-west-2'
    assert settings['endpoint_url'] == 'http://localhost:9000'


def test_overrides_win(profiles) -> None:
    environ = dict(CREDENTIALS, AWS_REGION='eu-west-1', S3_ENDPOINT_URL='http://env:9000')

    settings = load_settings('default', overrides={'region': 'ap-south-1', 'endpoint_url': None}, environ=environ)

    assert settings['region'] == 'ap-south-1'
    assert settings['endpoint_url'] == 'http://env:9000'


def test_aws_region_beats_default_region(profiles) -> None:
    environ = dict(CREDENTIALS, AWS_DEFAULT_REGION='eu-central-1', AWS_REGION='eu-north-1')

    assert load_settings('default', environ=environ)['region'] == 'eu-north-1'


def test_missing_credentials(profiles) -> None:
    with pytest.raises(ProfileError) as exc_info:
        load_settings('default', environ={'AWS_ACCESS_KEY_ID': 'AKID'})

    assert 'AWS_SECRET_ACCESS_KEY' in str(exc_info.value)


def test_invalid_profile_json(profiles) -> None:
    _write(profiles, 'broken', '{not json')

    with pytest.raises(ProfileError):
        load_profile('broken')


def test_profile_must_be_object(profiles) -> None:
    _write(profiles, 'list', ['a'])

    with pytest.raises(ProfileError):
        load_profile('list')


def test_missing_profile_is_empty(profiles) -> None:
    assert load_profile('nope') == {}


def test_endpoint_without_scheme_defaults_to_https(profiles) -> None:
    settings = load_settings('default', environ=dict(CREDENTIALS, S3_ENDPOINT_URL='localhost:9000'))

    assert settings['endpoint_url'] == 'https://localhost:9000'
