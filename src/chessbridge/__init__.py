"""
ChessBridge package bootstrap.

Subpackages:
- interface: Adapters for HTTP, CLI, and telemetry layers.
- domain: Rules state, simulated UCI engine, and the AI coordinator.
- infrastructure: Configuration and in-memory session storage.
"""

__all__ = ["interface", "domain", "infrastructure"]
