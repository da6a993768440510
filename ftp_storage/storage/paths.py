"""Path math for FTP object locations.

All functions are pure. Object paths come from application code and are not
sanitized: ``..`` segments pass through unchanged, so never feed raw user
input into them.
"""

import posixpath

SEPARATORS = "/\\"


def normalize_prefix(root: str) -> str:
    """Normalize the configured storage root into a path prefix.

    An empty root stays empty; a non-empty root gets exactly one trailing
    ``/`` unless it already ends with a separator.
    """
    if root and root[-1] not in SEPARATORS:
        root += "/"
    return root or ""


def apply_prefix(prefix: str, path: str) -> str:
    """Return the fully-qualified remote path for an object path.

    Leading ``/`` and ``\\`` characters of ``path`` are stripped so the object
    always lands under ``prefix``.
    """
    return prefix + path.lstrip(SEPARATORS)


def parent_directory(path: str) -> str:
    """Directory part of a remote path ('' for a bare file name)."""
    return posixpath.dirname(path)
