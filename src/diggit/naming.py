"""
Name Normalization Helpers.

Pure functions deriving filesystem-safe source ids from urls and
plugin names from class names.
"""

import re

_ID_PATTERN = re.compile(r"[^\w-]+")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


def source_id(url: str) -> str:
    """Derive a filesystem-safe id from a source url.

    Every run of characters other than word characters and ``-`` is
    replaced by a single underscore.

    Example:
        >>> source_id("https://github.com/foo/bar.git")
        'https_github_com_foo_bar_git'
    """
    return _ID_PATTERN.sub("_", url)


def underscore(name: str) -> str:
    """Convert a CamelCase or dotted name into snake_case.

    Example:
        >>> underscore("HTTPFileCount")
        'http_file_count'
    """
    name = name.replace("::", "/").replace(".", "/")
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _WORD_BOUNDARY.sub(r"\1_\2", name)
    return name.replace("-", "_").lower()
