"""codetags: keep TODO/FIXME/BUG annotations stamped, indexed and summarized."""

__all__ = ["logger", "daemon", "sync_core"]
