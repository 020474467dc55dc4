"""Build-graph tooling: labels, configurations, an mtime file database and ninja files."""

__version__ = "0.1.0"