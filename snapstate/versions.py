"""
SnapState Version Counters
==========================

Two process-wide monotonic counters drive change detection:

- **mutation**: source of new per-object version numbers. Every real change
  takes the next value, so a larger version always means a later change.
- **check**: tags one logical version query. An object already checked with
  the current tag answers from its cache instead of walking its children
  again, which keeps repeated reads within one pass linear in graph size.

Both start at 1 and only ever grow; there is no teardown.
"""

from dataclasses import dataclass


@dataclass
class VersionHolder:
    """Process-wide mutation and check counters."""

    mutation: int = 1
    check: int = 1

    def next_mutation(self) -> int:
        self.mutation += 1
        return self.mutation

    def next_check(self) -> int:
        self.check += 1
        return self.check


version_holder = VersionHolder()
