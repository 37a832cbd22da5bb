"""Component graph extraction for JavaScript/TypeScript repositories."""

__version__ = "0.1.0"
