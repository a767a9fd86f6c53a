"""Core building blocks for the codetags daemon.

Modules:
    config: shared configuration constants, settings and logger
    models: Tag / Repository / ChangeEvent records
    ignore: ignore-file pattern evaluation
    extractor: tag detection and identifier stamping
    index: thread-safe per-repository tag store
    summary: markdown summary artifact
    queue: coalescing event queue
    handler: watchdog event handler
    watches: watch handle registry
    engine: per-repository synchronization loop
    registry: registration store (name:absolute_path lines)
    supervisor: one engine per registered repository
"""

from . import (
    config,
    models,
    ignore,
    extractor,
    index,
    summary,
    queue,
    handler,
    watches,
    engine,
    registry,
    supervisor,
)

__all__ = [
    "config",
    "models",
    "ignore",
    "extractor",
    "index",
    "summary",
    "queue",
    "handler",
    "watches",
    "engine",
    "registry",
    "supervisor",
]
