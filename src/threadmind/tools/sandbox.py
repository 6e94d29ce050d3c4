"""
Sandboxed path resolution for the filesystem tools.

Every path the model hands us is relative to a sandbox root.  The resolver guarantees that the
returned absolute path, once all symlinks are followed, still lives under that root.
"""

import os


class SandboxError(ValueError):
    """Base class for sandbox violations."""


class InvalidPathError(SandboxError):
    """Raised when the requested path is empty or otherwise unusable."""


class PathEscapeError(SandboxError):
    """Raised when the requested path resolves outside the sandbox root."""

    def __init__(self, message: str = "path escapes sandbox") -> None:
        super().__init__(message)


def is_within(path: str, directory: str) -> bool:
    """Separator-aware prefix check: ``/root`` contains ``/root/a`` but not ``/root2``."""
    if path == directory:
        return True
    prefix = directory.rstrip(os.sep) + os.sep
    return path.startswith(prefix)


def _real(path: str) -> str:
    """Resolve every symlink in *path*; raise ``OSError`` if any component is missing."""
    return os.path.realpath(path, strict=True)


def resolve_sandboxed_path(sandbox_dir: str, path: str) -> str:
    """
    Resolve *path* inside *sandbox_dir*.

    Parameters
    ----------
    sandbox_dir:
        The sandbox root.  Relative roots are made absolute against the working directory.
    path:
        Caller-supplied path.  Absolute paths are interpreted relative to the root.

    Returns
    -------
    str
        The symlink-resolved path when the target exists, or the joined path when it does not
        (a legal write target).

    Raises
    ------
    InvalidPathError
        If *path* is empty.
    PathEscapeError
        If the path, directly or through a symlink, leaves the sandbox.
    """
    if not path:
        raise InvalidPathError("path is empty")

    abs_sandbox = os.path.abspath(sandbox_dir)

    # Lexical check first, before anything touches the filesystem.
    joined = os.path.normpath(os.path.join(abs_sandbox, path.lstrip(os.sep)))
    if not is_within(joined, abs_sandbox):
        raise PathEscapeError()

    real_sandbox = os.path.realpath(abs_sandbox)

    try:
        resolved = _real(joined)
    except OSError:
        resolved = None

    if resolved is not None:
        if not is_within(resolved, real_sandbox):
            raise PathEscapeError()
        return resolved

    # Target does not exist yet: the nearest existing ancestor must be inside the sandbox.
    ancestor = joined
    while True:
        parent = os.path.dirname(ancestor)
        if parent == ancestor:
            break
        ancestor = parent
        try:
            resolved_ancestor = _real(ancestor)
        except OSError:
            continue
        if not is_within(resolved_ancestor, real_sandbox):
            raise PathEscapeError()
        break

    # A dangling symlink may still point outside.
    if not is_within(os.path.realpath(joined), real_sandbox):
        raise PathEscapeError()

    return joined
