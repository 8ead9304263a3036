# ==============================================
# RunOrchestrator
# ==============================================
#
# PURPOSE:
#   Ties the topics together into one run over one or more
#   collections. Callers (the CLI, tests) only use this module.
#
# PER-COLLECTION STATE MACHINE:
#
#   SCANNING ──► BACKING_UP? ──► PLANNING ──┬──► REPORTING  (dry run)  ──► DONE
#                                           └──► COMMITTING (live run) ──► DONE
#
#   - BACKING_UP only when a backup was requested and this is not a dry run
#   - REPORTING prints a bounded preview and performs no writes
#   - COMMITTING hands the change records to the BatchCommitter
#   - any exception is caught, stored on the CollectionResult and the
#     next collection is processed; DONE is always reached
#
# CLASSES:
# --------
# - RunOptions        dry_run, backup, batch_size, preview_limit, thresholds
# - CollectionResult  outcome of one collection (states visited, stats, ...)
# - RunSummary        all CollectionResults + merged totals
# - RunOrchestrator   run(collections) -> RunSummary
#
# FUNCTIONS:
# ----------
# - resolve_collections(target)   "all" → ALL_COLLECTIONS, else (target,)
# - list_collections(store)       known collections with document counts
#
# ==============================================

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, TextIO, Tuple

from .analysis.change_planner import ChangePlanner
from .analysis.records import ChangeRecord, RunStatistics
from .config import RunConfig
from .normalization.field_normalizer import DocumentKind, FieldNormalizer, kind_for_collection
from .normalization.timestamps import PRIMARY_THRESHOLDS, ThresholdTable, get_thresholds
from .reporting import format_preview, print_lines
from .storage.backup import BackupStage
from .storage.base import DocumentStore, StoreError
from .storage.committer import DEFAULT_CHUNK_SIZE, BatchCommitter, CommitReport

logger = logging.getLogger(__name__)

KNOWN_COLLECTIONS = (
    "captures", "predictions", "users", "settings",
    "analytics", "feedback", "exports",
)
ALL_COLLECTIONS = ("captures", "predictions")


class RunState(Enum):
    SCANNING = "scanning"
    BACKING_UP = "backing_up"
    PLANNING = "planning"
    REPORTING = "reporting"
    COMMITTING = "committing"
    DONE = "done"


@dataclass
class RunOptions:
    dry_run: bool = False
    backup: bool = False
    batch_size: int = DEFAULT_CHUNK_SIZE
    preview_limit: int = 5
    thresholds: ThresholdTable = PRIMARY_THRESHOLDS

    @classmethod
    def from_config(cls, config: RunConfig) -> "RunOptions":
        return cls(
            dry_run=config.dry_run,
            backup=config.backup,
            batch_size=config.batch_size,
            preview_limit=config.preview_limit,
            thresholds=get_thresholds(config.thresholds),
        )


@dataclass
class CollectionResult:
    collection: str
    kind: DocumentKind
    states: List[RunState] = field(default_factory=list)
    stats: RunStatistics = field(default_factory=RunStatistics)
    changes: List[ChangeRecord] = field(default_factory=list)
    backup_name: Optional[str] = None
    commit_report: Optional[CommitReport] = None
    error: Optional[str] = None

    @property
    def state(self) -> Optional[RunState]:
        return self.states[-1] if self.states else None

    def enter(self, state: RunState) -> None:
        self.states.append(state)
        logger.debug("%s: %s", self.collection, state.value)


@dataclass
class RunSummary:
    results: List[CollectionResult] = field(default_factory=list)

    @property
    def totals(self) -> RunStatistics:
        totals = RunStatistics()
        for result in self.results:
            totals = totals.merge(result.stats)
        return totals

    @property
    def fatal_errors(self) -> List[Tuple[str, str]]:
        return [(r.collection, r.error) for r in self.results if r.error]


def resolve_collections(target: str) -> Tuple[str, ...]:
    if target == "all":
        return ALL_COLLECTIONS
    return (target,)


def list_collections(
    store: DocumentStore,
    names: Iterable[str] = KNOWN_COLLECTIONS,
) -> List[Tuple[str, int]]:
    """Known collections that exist and are non-empty, with their sizes."""
    found = []
    for name in names:
        try:
            count = store.count_documents(name)
        except StoreError as e:
            logger.debug("Skipping %s: %s", name, e)
            continue
        if count > 0:
            found.append((name, count))
    return found


class RunOrchestrator:
    """
    Runs Backup → Plan → (Report | Commit) for each requested collection.
    """

    def __init__(
        self,
        store: DocumentStore,
        options: Optional[RunOptions] = None,
        stream: Optional[TextIO] = None,
    ):
        self.store = store
        self.options = options or RunOptions()
        self.stream = stream
        self._planner = ChangePlanner(FieldNormalizer(self.options.thresholds))
        self._committer = BatchCommitter(store, self.options.batch_size)
        self._backup = BackupStage(store, self.options.batch_size)

    def run(self, collections: Iterable[str]) -> RunSummary:
        summary = RunSummary()
        for name in collections:
            summary.results.append(self.run_collection(name))
        return summary

    def run_collection(self, name: str) -> CollectionResult:
        result = CollectionResult(collection=name, kind=kind_for_collection(name))
        self._say("")
        self._say(f"Normalizing collection: {name}")
        self._say(f"Mode: {'DRY RUN' if self.options.dry_run else 'LIVE'}")

        try:
            self._process(result)
        except Exception as e:
            result.error = str(e) or type(e).__name__
            logger.error("Failed to normalize %s: %s", name, result.error)
        finally:
            result.enter(RunState.DONE)
        return result

    def _process(self, result: CollectionResult) -> None:
        result.enter(RunState.SCANNING)
        snapshot = self.store.scan_collection(result.collection)
        self._say(f"Documents found: {len(snapshot)}")

        if self.options.backup and not self.options.dry_run:
            result.enter(RunState.BACKING_UP)
            result.backup_name = self._backup.backup(result.collection, snapshot)

        result.enter(RunState.PLANNING)
        result.changes, result.stats = self._planner.plan(snapshot, result.kind)
        self._say(f"Changes to apply: {len(result.changes)}")

        if self.options.dry_run:
            result.enter(RunState.REPORTING)
            if result.changes:
                print_lines(format_preview(result.changes, self.options.preview_limit), self.stream)
            return

        result.enter(RunState.COMMITTING)
        if not result.changes:
            self._say("No updates needed")
            return

        report = self._committer.commit(result.collection, result.changes)
        result.commit_report = report
        result.stats.apply_commit(report)
        if report.ok:
            self._say(f"Collection {result.collection} normalized successfully")
        else:
            self._say(
                f"Collection {result.collection} normalized with "
                f"{report.chunks_failed}/{report.chunks_total} failed batches"
            )

    def _say(self, message: str) -> None:
        print(message, file=self.stream)
