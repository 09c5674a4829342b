"""
Analysis orchestrator - coordinates the full contract analysis workflow.

Preflight (input, credential, quota) -> model call -> normalize ->
commit to history -> count the review.
"""
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from contract_shield.errors import EmptyInputError, InputTooLongError, QuotaExceededError
from contract_shield.models import ContractAnalysis, InputMethod
from contract_shield.services.demo_analysis import get_demo_analysis
from contract_shield.services.history_store import HistoryStore
from contract_shield.services.llm_client import MAX_INPUT_CHARS, SYSTEM_PROMPT, build_user_prompt, invoke_model
from contract_shield.services.normalizer import normalize
from contract_shield.services.quota_tracker import UNLIMITED, QuotaTracker
from contract_shield.utils.credentials import ensure_credential
from contract_shield.utils.dates import utcnow

logger = logging.getLogger(__name__)

# invoke(system_prompt, user_prompt, credential) -> raw text
ModelInvoker = Callable[[str, str, str], str]
ProgressCallback = Callable[[str], None]


class AnalysisOrchestrator:
    """
    Runs one analysis at a time against a HistoryStore and a QuotaTracker.
    """

    def __init__(
        self,
        history: HistoryStore,
        quota: QuotaTracker,
        invoke: ModelInvoker = invoke_model,
        clock: Callable[[], datetime] = utcnow,
        max_input_chars: int = MAX_INPUT_CHARS
    ):
        """
        Args:
            history: Store receiving successful analyses.
            quota: Tracker consulted before and updated after each analysis.
            invoke: Model call; swapped for a stub in tests.
            clock: Timestamp source for normalization.
            max_input_chars: Longer contract text is rejected before the model call.
        """
        self.history = history
        self.quota = quota
        self.invoke = invoke
        self.clock = clock
        self.max_input_chars = max_input_chars
        # Guards quota reservations and commit-then-count across concurrent requests
        self._commit_lock = threading.Lock()
        # Reviews admitted past preflight but not yet counted
        self._reserved = 0
        self._in_flight = 0

    def _progress(self, text: str, on_progress: Optional[ProgressCallback]) -> None:
        self.history.set_analyzing(True, text)
        if on_progress is not None:
            on_progress(text)

    def _reserve_review(self) -> None:
        """
        Claim one review slot before the model call.

        Raises:
            QuotaExceededError: If counted plus reserved reviews reach the tier limit.
        """
        with self._commit_lock:
            remaining = self.quota.remaining()
            if not self.quota.can_review() or (remaining != UNLIMITED and remaining <= self._reserved):
                logger.warning(
                    f"Analysis rejected: quota exhausted "
                    f"(used={self.quota.effective_used()}, in_flight={self._reserved}, "
                    f"limit={self.quota.free_quota})"
                )
                raise QuotaExceededError()
            self._reserved += 1
            self._in_flight += 1

    def _finish(self, reserved: bool) -> None:
        with self._commit_lock:
            if reserved:
                self._reserved -= 1
            self._in_flight -= 1
            idle = self._in_flight == 0
        if idle:
            self.history.set_analyzing(False)

    def analyze(
        self,
        text: str,
        input_method: InputMethod = InputMethod.PASTE,
        file_name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> ContractAnalysis:
        """
        Analyze contract text and commit the result.

        Args:
            text: Contract text submitted by the user.
            input_method: How the text was acquired.
            file_name: Source file name, if any.
            on_progress: Called with a status message at each step.

        Returns:
            The committed ContractAnalysis.

        Raises:
            EmptyInputError: If text is empty or whitespace-only.
            InputTooLongError: If text exceeds max_input_chars.
            MissingCredentialError: If no credential is configured.
            QuotaExceededError: If the tier allows no more reviews this month.
            ServiceError: If the model call fails.
            ParseError: If the model response is not a JSON object.
            StorageError: If the history write fails; nothing is saved or counted.
        """
        if not text or not text.strip():
            logger.warning("Analysis rejected: empty contract text")
            raise EmptyInputError()

        if len(text) > self.max_input_chars:
            logger.warning(f"Analysis rejected: {len(text)} chars exceeds limit of {self.max_input_chars}")
            raise InputTooLongError(len(text), self.max_input_chars)

        credential = ensure_credential(self.quota.credential)
        self._reserve_review()

        logger.info(f"Starting contract analysis: {len(text)} chars, input_method={InputMethod(input_method).value}")
        start_time = time.time()
        reserved = True

        try:
            self._progress('Sending contract to AI...', on_progress)
            raw_response = self.invoke(SYSTEM_PROMPT, build_user_prompt(text), credential)

            self._progress('Parsing analysis results...', on_progress)
            analysis = normalize(raw_response, text, input_method, file_name, clock=self.clock)

            self._progress('Building your report...', on_progress)
            with self._commit_lock:
                self.history.add(analysis)
                self._reserved -= 1
                reserved = False
                self.quota.increment_reviews()
        finally:
            self._finish(reserved)

        logger.info(
            f"Analysis complete: id={analysis.id}, clauses={len(analysis.clauses)}, "
            f"duration={time.time() - start_time:.2f}s"
        )
        return analysis

    def run_demo(self) -> ContractAnalysis:
        """Commit the sample analysis. Needs no credential and uses no quota."""
        analysis = get_demo_analysis(self.clock)
        self.history.add(analysis)
        logger.info(f"Demo analysis added: id={analysis.id}")
        return analysis
