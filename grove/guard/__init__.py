"""Edit boundary guard: flags edits to the primary checkout while workspaces exist."""

from grove.guard.policy import GuardVerdict, decide

__all__ = ["GuardVerdict", "decide"]
