"""Process-level helpers (logging, timers)."""
