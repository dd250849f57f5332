"""
API Routers Module

Available routers:
- accounts: balance, journal and dev-mode account helpers
- generate: task submission
- tasks: polling, listing and cancellation
- artifacts: published results
- system: queue control and recovery
"""

__all__ = ["accounts", "artifacts", "generate", "system", "tasks"]
