import os
import json

from dotenv import load_dotenv

from s3filter.errors import ProfileError

PROFILES_DIR = "profiles"
DEFAULT_REGION = "us-east-1"

# Environment variable -> settings key
ENV_SETTINGS = (
    ('AWS_ACCESS_KEY_ID', 'aws_access_key_id'),
    ('AWS_SECRET_ACCESS_KEY', 'aws_secret_access_key'),
    ('AWS_SESSION_TOKEN', 'aws_session_token'),
    ('AWS_DEFAULT_REGION', 'region'),
    ('AWS_REGION', 'region'),
    ('S3_ENDPOINT_URL', 'endpoint_url'),
)


def profiles_dir():
    return os.environ.get('S3FILTER_PROFILES_DIR', PROFILES_DIR)


def load_profile(profile_name="default", directory=None):
    """Load S3 connection details from a JSON profile.

    Returns an empty dict when the profile file does not exist, so that
    environment-only setups keep working.
    """
    profile_path = os.path.join(directory or profiles_dir(), f"{profile_name}.json")
    if not os.path.isfile(profile_path):
        return {}
    try:
        with open(profile_path, 'r') as f:
            profile = json.load(f)
    except json.JSONDecodeError as e:
        raise ProfileError(f"Invalid JSON in profile {profile_name} ({profile_path}): {e}") from e
    except OSError as e:
        raise ProfileError(f"Could not read profile {profile_name} ({profile_path}): {e}") from e

    if not isinstance(profile, dict):
        raise ProfileError(f"Profile {profile_name} must contain a JSON object")
    return profile


def load_settings(profile_name="default", overrides=None, environ=None):
    """Resolve connection settings.

    Precedence, lowest first: defaults, profile file, environment, overrides.
    """
    if environ is None:
        # Variables already present in the process win over .env entries
        load_dotenv('.env', override=False)
        environ = os.environ

    settings = {'region': DEFAULT_REGION}
    settings.update({k: v for k, v in load_profile(profile_name).items() if v})

    # AWS_REGION is listed after AWS_DEFAULT_REGION so it takes priority
    for env_name, key in ENV_SETTINGS:
        value = environ.get(env_name)
        if value:
            settings[key] = value

    for key, value in (overrides or {}).items():
        if value:
            settings[key] = value

    missing = [key for key in ('aws_access_key_id', 'aws_secret_access_key') if not settings.get(key)]
    if missing:
        raise ProfileError(
            "Missing credentials: set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY "
            f"or provide them in {os.path.join(profiles_dir(), profile_name + '.json')}"
        )

    if not settings.get('endpoint_url'):
        settings['endpoint_url'] = f"https://s3.{settings['region']}.amazonaws.com"
    if '://' not in settings['endpoint_url']:
        settings['endpoint_url'] = 'https://' + settings['endpoint_url']
    settings['endpoint_url'] = settings['endpoint_url'].rstrip('/')

    return settings
