"""offline-todo: a local-first task tracker that keeps working without a network."""

__version__ = "0.1.0"
