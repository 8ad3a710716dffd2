"""
aggregator.py

Responsibility: Build the package name -> version map from every matched configuration file,
and rebuild it whenever one of those files changes.

Flow of one pass (`resolve`):
1) Glob the configured pattern through the injected `FileSource`
2) Read + parse + extract every file concurrently (reads run in worker threads)
3) Join all results, then build a fresh map in glob order

A pass either returns the complete map or raises; nothing is published from a failed pass.
`refresh` / `notify` / `watch` wrap `resolve` for a long-running build, keeping the
last successfully published map when a later pass fails.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType

from pkgversions.config_parser import (
    AggregationError,
    ConfigParser,
    FileReadError,
    PackageEntry,
    ParseError,
    extract_entry,
    parse_config_text,
)
from pkgversions.logging import get_logger
from pkgversions.sources import FileSource

logger = get_logger("pkgversions.aggregator")

VersionMap = Mapping[str, str]
Subscriber = Callable[[VersionMap], None]


class PackageVersionAggregator:
    def __init__(self, source: FileSource, pattern: str, *, parser: ConfigParser = parse_config_text) -> None:
        self._source = source
        self._pattern = pattern
        self._parser = parser
        self._versions: VersionMap | None = None
        self._subscribers: list[Subscriber] = []
        self._task: asyncio.Task[None] | None = None
        self._pending = False
        self._lock = asyncio.Lock()
        self.last_error: AggregationError | None = None

    @property
    def pattern(self) -> str:
        return self._pattern

    @property
    def versions(self) -> VersionMap | None:
        """Last-known-good map (read-only), or None until a pass has succeeded."""
        return self._versions

    def subscribe(self, callback: Subscriber) -> None:
        """Call `callback` with every newly published map."""
        self._subscribers.append(callback)

    def _read(self, path: str) -> str:
        try:
            return self._source.read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            raise FileReadError(path, f"could not read file: {e}") from e

    async def _load_entry(self, path: str) -> PackageEntry:
        text = await asyncio.to_thread(self._read, path)
        try:
            record = self._parser(text, path)
        except AggregationError:
            raise
        except Exception as e:  # noqa: BLE001 - surface as ParseError
            raise ParseError(path, f"could not parse file: {e}") from e
        return extract_entry(record, path)

    async def resolve(self) -> dict[str, str]:
        """
        Run one full aggregation pass.

        Duplicate names: the path that comes last in glob order wins.
        When several files fail, the error for the earliest path in glob order is raised.
        """
        paths = await asyncio.to_thread(self._source.glob, self._pattern)
        results = await asyncio.gather(*(self._load_entry(p) for p in paths), return_exceptions=True)

        versions: dict[str, str] = {}
        declared_by: dict[str, str] = {}
        for path, result in zip(paths, results):
            if isinstance(result, BaseException):
                raise result
            if result.name in declared_by:
                logger.warning(
                    "duplicate_package_name",
                    package=result.name,
                    kept=path,
                    replaced=declared_by[result.name],
                )
            versions[result.name] = result.version
            declared_by[result.name] = path
        return versions

    def _publish(self, versions: dict[str, str]) -> None:
        self._versions = MappingProxyType(versions)
        self.last_error = None
        logger.info("versions_published", pattern=self._pattern, packages=len(versions))
        for callback in self._subscribers:
            try:
                callback(self._versions)
            except Exception:  # noqa: BLE001 - log and keep publishing
                logger.exception("subscriber_failed", pattern=self._pattern)

    async def _run_pass(self) -> bool:
        try:
            versions = await self.resolve()
        except AggregationError as e:
            self.last_error = e
            logger.error("aggregation_failed", pattern=self._pattern, path=e.path, error=e.reason)
            return False
        self._publish(versions)
        return True

    async def refresh(self) -> bool:
        """
        Resolve and publish. On failure, log it, keep the previous map, and return False.

        Waits for any pass already in flight, so passes never overlap and the newest one
        publishes last.
        """
        async with self._lock:
            return await self._run_pass()

    async def _drain(self) -> None:
        while self._pending:
            self._pending = False
            await self.refresh()

    def notify(self, changed_paths: Iterable[str] = ()) -> asyncio.Task[None]:
        """
        Request a full re-run after files changed.

        Only one pass runs at a time; notifications that arrive meanwhile collapse into a
        single follow-up pass.
        """
        logger.info("change_notified", paths=sorted(changed_paths))
        self._pending = True
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._drain())
        return self._task

    async def wait_idle(self) -> None:
        while self._task is not None:
            task = self._task
            await task
            if task is self._task:
                return

    async def watch(self, *, interval: float = 1.0) -> None:
        """
        Publish once, then re-run on every change reported by the source until its
        change stream ends (or this coroutine is cancelled).
        """
        # Open the stream first: edits made during the initial pass must still be reported.
        changes = self._source.changes(self._pattern, interval=interval)
        await self.refresh()
        async for changed in changes:
            self.notify(changed)
        await self.wait_idle()
