"""Asynchronous block indexing with composable event handlers, retries and checkpoints."""

__version__ = "0.1.3"