"""copyrc: mirror remote source files while preserving local edits."""

__version__ = "0.1.0"
