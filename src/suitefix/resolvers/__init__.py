"""Resolvers translating diagnostics into removal batches."""

from .compile_failures import CompileFailureResolver, CompileResolution
from .run_failures import RunDirective, RunFailureResolver, RunResolution

__all__ = [
    "CompileFailureResolver",
    "CompileResolution",
    "RunDirective",
    "RunFailureResolver",
    "RunResolution",
]
