"""
History store - local index of past analyses plus a bounded cache of full bodies.

`history` keeps a StoredContract summary for every analysis ever added
(newest first, unbounded). `analyses` keeps only the most recent full
analyses (newest first, capped). Every mutation is written through to the
key-value store and then broadcast to subscribers.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from contract_shield.models import ContractAnalysis, OverallRisk, StoredContract

logger = logging.getLogger(__name__)

STORAGE_KEY = 'contract-shield-contracts'
MAX_STORED_ANALYSES = 50

HISTORY_FILTERS = ('all', 'favorites', 'high', 'medium', 'low')

Listener = Callable[['HistoryStore'], None]


class HistoryStore:
    """
    Persisted analysis history with favorite/delete/lookup operations.

    Invariant: every id in `analyses` also appears in `history`.
    """

    def __init__(self, storage: Any = None, max_analyses: int = MAX_STORED_ANALYSES):
        """
        Args:
            storage: Key-value store with get/set (see contract_shield.storage).
                None keeps the history in memory only.
            max_analyses: Number of full analyses retained.
        """
        self._storage = storage
        self.max_analyses = max_analyses
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

        self.history: List[StoredContract] = []
        self.analyses: List[ContractAnalysis] = []
        self.current: Optional[ContractAnalysis] = None
        # Transient status, never persisted
        self.is_analyzing = False
        self.analysis_progress = ''

        self._load()

    # -- persistence ---------------------------------------------------------

    def _load(self) -> None:
        if self._storage is None:
            return
        snapshot = self._storage.get(STORAGE_KEY)
        if not snapshot:
            return
        try:
            self.load_snapshot(snapshot)
            logger.info(
                f"Loaded history: {len(self.history)} entries, "
                f"{len(self.analyses)} cached analyses"
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Stored history snapshot is invalid, starting empty: {e}")
            self.history = []
            self.analyses = []

    @staticmethod
    def _snapshot_of(analyses: List[ContractAnalysis], history: List[StoredContract]) -> Dict[str, list]:
        return {
            'analyses': [analysis.to_dict() for analysis in analyses],
            'history': [entry.to_dict() for entry in history],
        }

    def _commit(self, analyses: List[ContractAnalysis], history: List[StoredContract]) -> None:
        """Write the new lists through to storage, then adopt them. Caller holds the lock."""
        if self._storage is not None:
            self._storage.set(STORAGE_KEY, self._snapshot_of(analyses, history))
        self.analyses = analyses
        self.history = history

    def to_snapshot(self) -> Dict[str, list]:
        with self._lock:
            return self._snapshot_of(self.analyses, self.history)

    def load_snapshot(self, snapshot: Dict[str, list]) -> None:
        """Replace in-memory state with a snapshot produced by `to_snapshot`."""
        analyses = [ContractAnalysis.from_dict(a) for a in snapshot.get('analyses', [])]
        history = [StoredContract.from_dict(h) for h in snapshot.get('history', [])]

        # Drop cached bodies whose summary is gone so the index stays authoritative
        known_ids = {entry.id for entry in history}
        analyses = [a for a in analyses if a.id in known_ids][:self.max_analyses]

        with self._lock:
            self.analyses = analyses
            self.history = history
            self.current = None

    # -- observers -----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked with this store after every mutation.

        Returns:
            A function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # -- mutations -----------------------------------------------------------

    def add(self, analysis: ContractAnalysis) -> StoredContract:
        """
        Prepend an analysis and its summary, evicting full bodies beyond the cap.

        Returns:
            The StoredContract summary created for the analysis.
        """
        entry = StoredContract.from_analysis(analysis)
        with self._lock:
            self._commit(
                ([analysis] + self.analyses)[:self.max_analyses],
                [entry] + self.history
            )
            self.current = analysis
        logger.info(
            f"Added analysis {analysis.id} to history "
            f"({len(self.history)} entries, {len(self.analyses)} cached)"
        )
        self._notify()
        return entry

    def toggle_favorite(self, analysis_id: str) -> Optional[StoredContract]:
        """
        Flip `is_favorite` on the matching history entry.

        Returns:
            The updated entry, or None if the id is not in history (no-op).
        """
        updated = None
        with self._lock:
            entries = []
            for entry in self.history:
                if entry.id == analysis_id:
                    entry = entry.toggled()
                    updated = entry
                entries.append(entry)
            if updated is None:
                return None
            self._commit(self.analyses, entries)
        logger.info(f"Toggled favorite on {analysis_id}: is_favorite={updated.is_favorite}")
        self._notify()
        return updated

    def delete(self, analysis_id: str) -> bool:
        """
        Remove an entry from both history and the analysis cache.

        Returns:
            True if anything was removed; False if the id was absent (no-op).
        """
        with self._lock:
            history = [h for h in self.history if h.id != analysis_id]
            analyses = [a for a in self.analyses if a.id != analysis_id]
            removed = len(history) != len(self.history) or len(analyses) != len(self.analyses)
            if not removed:
                return False
            self._commit(analyses, history)
            if self.current is not None and self.current.id == analysis_id:
                self.current = None
        logger.info(f"Deleted analysis {analysis_id}")
        self._notify()
        return True

    def set_current(self, analysis: Optional[ContractAnalysis]) -> None:
        with self._lock:
            self.current = analysis
        self._notify()

    def set_analyzing(self, is_analyzing: bool, progress_text: str = '') -> None:
        """Update the transient analysis status shown while a request is in flight."""
        with self._lock:
            self.is_analyzing = is_analyzing
            self.analysis_progress = progress_text
        self._notify()

    # -- queries -------------------------------------------------------------

    def find(self, analysis_id: str) -> Optional[ContractAnalysis]:
        """
        Look up a full analysis in the bounded cache.

        An evicted analysis and one that never existed both return None.
        """
        with self._lock:
            for analysis in self.analyses:
                if analysis.id == analysis_id:
                    return analysis
        return None

    def get_entry(self, analysis_id: str) -> Optional[StoredContract]:
        with self._lock:
            for entry in self.history:
                if entry.id == analysis_id:
                    return entry
        return None

    def list_history(self, filter_by: str = 'all') -> List[StoredContract]:
        """
        Return history entries matching a filter.

        Args:
            filter_by: One of 'all', 'favorites', 'high', 'medium', 'low'.

        Raises:
            ValueError: If the filter is unknown.
        """
        if filter_by not in HISTORY_FILTERS:
            raise ValueError(f"Unknown history filter: {filter_by!r}")
        with self._lock:
            entries = list(self.history)
        if filter_by == 'all':
            return entries
        if filter_by == 'favorites':
            return [h for h in entries if h.is_favorite]
        risk = OverallRisk(filter_by)
        return [h for h in entries if h.overall_risk == risk]

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                'total': len(self.history),
                'favorites': sum(1 for h in self.history if h.is_favorite),
                'highRisk': sum(1 for h in self.history if h.overall_risk == OverallRisk.HIGH),
                'cached': len(self.analyses),
            }
