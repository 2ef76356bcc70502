"""
Progress Reporting
==================

Observer interface the collection fetcher calls after each stage and scope
unit. The fetcher never prints; whoever runs it decides what progress looks
like.

- ProgressObserver: silent default, subclass to react to events
- CallbackProgress: formats events as status lines for a callback
  (the CLI passes print)
"""

from typing import Callable, Optional


class ProgressObserver:
    """Receives fetch progress events. Every method is a no-op by default."""

    def stage_started(self, kind: str, units: int) -> None:
        pass

    def unit_completed(self, kind: str, unit: str, records: int) -> None:
        pass

    def unit_skipped(self, kind: str, unit: str, reason: str) -> None:
        pass

    def stage_completed(self, kind: str, records: int, from_cache: bool = False) -> None:
        pass


class CallbackProgress(ProgressObserver):
    """Turns progress events into "[*]" / "[+]" / "[!]" status lines.

    Args:
        callback: Receives each formatted line
        verbose: Also report every scope unit, not only stage boundaries
    """

    def __init__(self, callback: Optional[Callable[[str], None]] = None, verbose: bool = False):
        self.callback = callback or print
        self.verbose = verbose

    def stage_started(self, kind: str, units: int) -> None:
        self.callback(f"[*] Collecting {kind} ({units} scope unit{'s' if units != 1 else ''})...")

    def unit_completed(self, kind: str, unit: str, records: int) -> None:
        if self.verbose:
            self.callback(f"    {unit}: {records} {kind}")

    def unit_skipped(self, kind: str, unit: str, reason: str) -> None:
        if self.verbose:
            self.callback(f"[!] {kind}: skipped {unit} ({reason})")

    def stage_completed(self, kind: str, records: int, from_cache: bool = False) -> None:
        source = " from cache" if from_cache else ""
        self.callback(f"[+] {records} {kind} loaded{source}")
