import re

from s3filter.errors import PatternSyntaxError


def compile_pattern(pattern):
    """Compile a user supplied regular expression."""
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternSyntaxError(pattern, str(e)) from e


def matches(pattern, key):
    # Unanchored: the pattern may match anywhere in the key
    return pattern.search(key) is not None


def filter_keys(pattern, keys):
    """Return the keys matching ``pattern``, in their original order."""
    return [key for key in keys if matches(pattern, key)]
