"""
Presentation realization driver.

annotate_move_list() runs one synchronous pass (index → align → materialize) and
never raises. MoveListAnnotator defers that pass by a settle delay so the host can
finish rendering, and serializes runs per view: a new request cancels the pending
(or still running) one for the same view before its own cleanup starts.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from .aligner import align
from .config import SETTINGS
from .indexer import index_ply_tree, pseudo_history
from .materializer import HostTreeUnavailable, MaterializeReport, materialize
from .models import AlignmentResult, Moment
from .tree import HostTree

log = logging.getLogger("presenter")

HOST_TREE_MESSAGE = "The move list could not be found. Reload the page and try again."
FAILURE_MESSAGE = "Annotations could not be placed in the move list."


@dataclass
class PresentationOutcome:
    ok: bool
    message: str = ""
    alignment: Optional[AlignmentResult] = None
    report: Optional[MaterializeReport] = None


def annotate_move_list(
    tree: HostTree,
    moments: Sequence[Moment],
    tolerance: Optional[int] = None,
    allow_uncorroborated_fallback: Optional[bool] = None,
    recommendation_label: str = "Better:",
    cancel_event: Optional[threading.Event] = None,
) -> PresentationOutcome:
    tolerance = SETTINGS.presentation_tolerance if tolerance is None else tolerance
    if allow_uncorroborated_fallback is None:
        allow_uncorroborated_fallback = SETTINGS.presentation_fallback
    try:
        if tree.root() is None:
            raise HostTreeUnavailable("move list not found")
        ply_index = index_ply_tree(tree)
        history = pseudo_history(tree, ply_index)
        alignment = align(history, moments, tolerance, allow_uncorroborated_fallback=allow_uncorroborated_fallback)
        report = materialize(tree, alignment, ply_index, recommendation_label, cancel_event=cancel_event)
    except HostTreeUnavailable as exc:
        log.warning("Materialization aborted: %s", exc)
        return PresentationOutcome(ok=False, message=HOST_TREE_MESSAGE)
    except Exception:
        log.exception("Materialization failed")
        return PresentationOutcome(ok=False, message=FAILURE_MESSAGE)
    return PresentationOutcome(ok=True, alignment=alignment, report=report)


class MoveListAnnotator:
    """One deferred, cancellable materialization task per view."""

    def __init__(
        self,
        settle_delay_s: Optional[float] = None,
        tolerance: Optional[int] = None,
        allow_uncorroborated_fallback: Optional[bool] = None,
        recommendation_label: str = "Better:",
        on_complete: Optional[Callable[[str, PresentationOutcome], None]] = None,
    ):
        self.settle_delay_s = SETTINGS.settle_delay_s if settle_delay_s is None else settle_delay_s
        self.tolerance = tolerance
        self.allow_fallback = allow_uncorroborated_fallback
        self.recommendation_label = recommendation_label
        self.on_complete = on_complete
        self._lock = threading.Lock()
        self._pending: Dict[str, Tuple[threading.Timer, threading.Event]] = {}
        self._view_locks: Dict[str, threading.Lock] = {}
        self._outcomes: Dict[str, PresentationOutcome] = {}

    def request(self, view_id: str, tree: HostTree, moments: Sequence[Moment]) -> threading.Event:
        """Schedule a run for ``view_id``; returns its cancellation token."""
        token = threading.Event()
        with self._lock:
            self._cancel_locked(view_id)
            view_lock = self._view_locks.setdefault(view_id, threading.Lock())
            timer = threading.Timer(
                self.settle_delay_s, self._run, args=(view_id, tree, list(moments), token, view_lock)
            )
            timer.daemon = True
            self._pending[view_id] = (timer, token)
        timer.start()
        return token

    def _cancel_locked(self, view_id: str) -> bool:
        prev = self._pending.pop(view_id, None)
        if prev is None:
            return False
        timer, token = prev
        token.set()
        timer.cancel()
        return True

    def cancel(self, view_id: str) -> bool:
        with self._lock:
            return self._cancel_locked(view_id)

    def forget(self, view_id: str) -> None:
        """Cancel any pending run and drop all state kept for a closed view."""
        with self._lock:
            self._cancel_locked(view_id)
            self._view_locks.pop(view_id, None)
            self._outcomes.pop(view_id, None)

    def shutdown(self) -> None:
        with self._lock:
            for view_id in list(self._pending):
                self._cancel_locked(view_id)
            self._view_locks.clear()
            self._outcomes.clear()

    def wait(self, view_id: str, timeout: Optional[float] = None) -> Optional[PresentationOutcome]:
        """Block until the pending run for ``view_id`` has finished; returns the latest outcome."""
        with self._lock:
            pending = self._pending.get(view_id)
        if pending is not None:
            pending[0].join(timeout)
        return self.outcome(view_id)

    def outcome(self, view_id: str) -> Optional[PresentationOutcome]:
        with self._lock:
            return self._outcomes.get(view_id)

    def _run(
        self,
        view_id: str,
        tree: HostTree,
        moments: Sequence[Moment],
        token: threading.Event,
        view_lock: threading.Lock,
    ) -> None:
        with view_lock:
            if token.is_set():
                return
            outcome = annotate_move_list(
                tree,
                moments,
                tolerance=self.tolerance,
                allow_uncorroborated_fallback=self.allow_fallback,
                recommendation_label=self.recommendation_label,
                cancel_event=token,
            )
            with self._lock:
                current = self._pending.get(view_id)
                if current is not None and current[1] is token:
                    del self._pending[view_id]
                # a view forgotten while this run was in flight stays forgotten
                if self._view_locks.get(view_id) is view_lock:
                    self._outcomes[view_id] = outcome
        if self.on_complete is not None:
            self.on_complete(view_id, outcome)
