"""Filesystem-safe names for per-suite work directories."""

from __future__ import annotations

import hashlib
import re
from typing import Pattern

_UNSAFE: Pattern[str] = re.compile(r"[^A-Za-z0-9_.-]+")
_HYPHEN_COLLAPSE = re.compile(r"-{2,}")
_ARCHIVE_SUFFIXES = (".tar.bz2", ".tar.gz", ".tgz", ".tar")


def slugify(value: str | None, *, fallback: str = "suite", max_length: int = 80) -> str:
    """Normalize ``value`` into a slug, keeping case so version ids stay readable."""
    slug = _normalize((value or "").strip())
    if not slug:
        slug = _normalize(fallback) or "suite"
    if len(slug) <= max_length:
        return slug

    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:8]
    prefix = slug[: max(max_length - len(digest) - 1, 1)].rstrip("-.")
    return f"{prefix}-{digest}"


def suite_slug(archive_name: str) -> str:
    """Work directory name for an archive: ``Lang-11f-randoop.1.tar.bz2`` -> ``Lang-11f-randoop.1``."""
    stem = archive_name
    for suffix in _ARCHIVE_SUFFIXES:
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
            break
    return slugify(stem)


def _normalize(value: str) -> str:
    slug = _UNSAFE.sub("-", value)
    slug = _HYPHEN_COLLAPSE.sub("-", slug)
    return slug.strip("-.")
