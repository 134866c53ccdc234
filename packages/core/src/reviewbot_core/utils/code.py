from __future__ import annotations

import fnmatch

DEFAULT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")


def is_excluded(file_name: str, patterns: list[str]) -> bool:
    """Return True if file_name matches any exclude pattern.

    Supports:
    - fnmatch globs on the full path: "src/generated/*.ts"
    - fnmatch globs on the basename: "*.min.js"
    - Directory names/prefixes: "vendor/", "dist" (matches any file within that tree)
    """
    for pattern in patterns:
        if fnmatch.fnmatch(file_name, pattern):
            return True
        if fnmatch.fnmatch(file_name.rsplit("/", 1)[-1], pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if file_name.startswith(prefix) or ("/" + prefix) in file_name:
            return True
    return False


def has_extension(file_name: str, extensions=DEFAULT_EXTENSIONS) -> bool:
    return file_name.lower().endswith(tuple(ext.lower() for ext in extensions))


def is_reviewable_file(file_name: str, extensions=DEFAULT_EXTENSIONS, exclude: list[str] | None = None) -> bool:
    return has_extension(file_name, extensions) and not is_excluded(file_name, exclude or [])
