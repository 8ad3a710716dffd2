"""
sources.py

Responsibility: The filesystem capability the aggregator depends on.

The aggregator never touches the disk directly; it is handed a `FileSource` that can:
- list paths matching a glob pattern (deterministic order)
- read one path as text
- report sets of changed paths over time

`LocalFileSource` is the on-disk implementation. Tests provide an in-memory one.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Protocol

Snapshot = dict[str, tuple[int, int, str]]


class FileSource(Protocol):
    def glob(self, pattern: str) -> list[str]: ...

    def read_text(self, path: str) -> str: ...

    def changes(self, pattern: str, *, interval: float = 1.0) -> AsyncIterator[set[str]]:
        """Stream of changed-path sets, measured against the state at call time."""
        ...


class LocalFileSource:
    """Files under `root`, addressed by POSIX-style paths relative to it."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _relative(self, path: Path) -> str:
        return str(path.relative_to(self._root)).replace(os.sep, "/")

    def glob(self, pattern: str) -> list[str]:
        """
        Return matching regular files in lexicographic order of their relative path.
        """
        found = [self._relative(p) for p in self._root.glob(pattern) if p.is_file()]
        found.sort()
        return found

    def read_text(self, path: str) -> str:
        with open(self._root / path, encoding="utf-8") as fh:
            return fh.read()

    def snapshot(self, pattern: str) -> Snapshot:
        """
        Map each matched file to `(mtime_ns, size, content digest)`.

        The digest catches same-size rewrites that land inside one timestamp tick on
        filesystems with coarse mtimes.
        """
        out: Snapshot = {}
        for rel in self.glob(pattern):
            path = self._root / rel
            try:
                st = path.stat()
                digest = hashlib.blake2b(path.read_bytes(), digest_size=16).hexdigest()
            except OSError:
                # Deleted or unreadable since the glob; absent from the snapshot.
                continue
            out[rel] = (st.st_mtime_ns, st.st_size, digest)
        return out

    def changes(self, pattern: str, *, interval: float = 1.0) -> AsyncIterator[set[str]]:
        """
        Poll the matched files every `interval` seconds and yield the paths that were
        created, modified, or deleted since the previous poll.

        The baseline is taken when this is called, not on first iteration, so edits made
        after the call are reported even if the caller starts iterating later.
        """
        return self._poll(pattern, interval, self.snapshot(pattern))

    async def _poll(self, pattern: str, interval: float, previous: Snapshot) -> AsyncIterator[set[str]]:
        while True:
            await asyncio.sleep(interval)
            current = await asyncio.to_thread(self.snapshot, pattern)
            changed = {p for p in previous.keys() | current.keys() if previous.get(p) != current.get(p)}
            previous = current
            if changed:
                yield changed
