"""
Report wizard: three linear steps (Details -> Location -> Review) over one
mutable DraftReport, then a single insert on submit.

States: STEP1 <-> STEP2 <-> STEP3 -> SUBMITTING -> DONE, with
SUBMITTING -> STEP3 when the insert fails so the user can retry.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from app.data_sources.base import DataSource
from app.errors import PersistenceFailed, UploadFailed, WorkflowError
from app.models.draft import DRAFT_FIELDS, DraftReport
from app.models.incident import Incident
from app.services.auth import UserSession
from app.services.notifications import Notifier
from app.services.storage import BlobStorage
from app.utils.audit import log_action
from app.utils.ids import build_image_key, generate_workflow_id

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    STEP1 = "step1"
    STEP2 = "step2"
    STEP3 = "step3"
    SUBMITTING = "submitting"
    DONE = "done"


STEPS = (WorkflowState.STEP1, WorkflowState.STEP2, WorkflowState.STEP3)
STEP_TITLES = ("Details", "Location", "Review")


@dataclass(frozen=True)
class SubmitResult:
    ok: bool
    incident: Optional[Incident] = None
    image_uploaded: bool = False
    error: Optional[str] = None


class ReportWorkflow:
    def __init__(
        self,
        session: UserSession,
        data_source: DataSource,
        storage: BlobStorage,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.id = generate_workflow_id()
        self.session = session
        self.notifier = notifier or Notifier()
        self.draft: Optional[DraftReport] = DraftReport()
        self.state = WorkflowState.STEP1
        self._data_source = data_source
        self._storage = storage
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()

    @property
    def step(self) -> int:
        """1-based wizard step; SUBMITTING and DONE both show the review step."""
        if self.state in STEPS:
            return STEPS.index(self.state) + 1
        return len(STEPS)

    @property
    def done(self) -> bool:
        return self.state == WorkflowState.DONE

    def _require_editable(self) -> DraftReport:
        if self.state == WorkflowState.DONE or self.draft is None:
            raise WorkflowError("Report already submitted")
        if self.state == WorkflowState.SUBMITTING:
            raise WorkflowError("Report is being submitted")
        return self.draft

    def set_field(self, field: str, value: Any) -> None:
        """Set one draft attribute. No validation; unknown field names raise KeyError."""
        draft = self._require_editable()
        if field not in DRAFT_FIELDS:
            raise KeyError(field)
        setattr(draft, field, value)

    def _step_valid(self, state: WorkflowState) -> bool:
        draft = self.draft
        if draft is None:
            return False
        if state == WorkflowState.STEP1:
            return bool(draft.title.strip()) and draft.selected_category is not None
        if state == WorkflowState.STEP2:
            return bool(draft.location.strip())
        return state == WorkflowState.STEP3

    def current_step_valid(self) -> bool:
        return self._step_valid(self.state)

    def advance(self) -> None:
        self._require_editable()
        if not self.current_step_valid() or self.state == WorkflowState.STEP3:
            return
        self.state = STEPS[STEPS.index(self.state) + 1]

    def retreat(self) -> None:
        self._require_editable()
        if self.state == WorkflowState.STEP1:
            return
        self.state = STEPS[STEPS.index(self.state) - 1]

    async def submit(self) -> SubmitResult:
        if self.state == WorkflowState.SUBMITTING or self._lock.locked():
            raise WorkflowError("Report is being submitted")
        if self.state != WorkflowState.STEP3:
            raise WorkflowError(f"Cannot submit from {self.state.value}")
        # set_field is unconstrained, so re-check the earlier steps
        if not all(self._step_valid(s) for s in STEPS):
            return SubmitResult(ok=False, error="incomplete draft")

        async with self._lock:
            self.state = WorkflowState.SUBMITTING
            try:
                return await self._submit(self.draft)
            finally:
                # Cancelled mid-flight: leave the draft retriable
                if self.state == WorkflowState.SUBMITTING:
                    self.state = WorkflowState.STEP3

    async def _submit(self, draft: DraftReport) -> SubmitResult:
        user = self.session
        image_url: Optional[str] = None
        if draft.image is not None:
            key = build_image_key(user.user_id, draft.image.filename, self._clock())
            try:
                image_url = await self._storage.upload(
                    key, draft.image.content, draft.image.content_type, token=user.access_token
                )
            except UploadFailed as e:
                logger.warning("Image upload failed for %s, submitting without image: %s", user.user_id, e)
                self.notifier.warning(
                    "Image upload failed",
                    "Your report will be submitted without the image.",
                )

        try:
            incident = await self._data_source.insert(
                draft.to_incident_create(user.user_id, image_url),
                token=user.access_token,
            )
        except PersistenceFailed as e:
            logger.error("Error submitting incident for %s: %s", user.user_id, e)
            self.notifier.error("Error reporting incident", "Please try again later.")
            self.state = WorkflowState.STEP3
            return SubmitResult(ok=False, image_uploaded=image_url is not None, error=str(e))

        self.notifier.success(
            "Incident reported successfully",
            "Thank you for helping keep the community safe.",
        )
        log_action(user.user_id, "incident_reported", incident.id)
        self.state = WorkflowState.DONE
        self.draft = None
        return SubmitResult(ok=True, incident=incident, image_uploaded=image_url is not None)


class WorkflowRegistry:
    """
    At most one active report workflow per user. Starting a new one replaces
    (and drops) the user's previous draft, so the registry is bounded by the
    number of signed-in users.
    """

    def __init__(self) -> None:
        self._by_user: dict[str, ReportWorkflow] = {}

    def __len__(self) -> int:
        return len(self._by_user)

    def get(self, workflow_id: Optional[str], session: UserSession) -> Optional[ReportWorkflow]:
        """The user's active workflow; a request without a workflow id resumes it too."""
        wf = self._by_user.get(session.user_id)
        if wf is None or wf.done or workflow_id not in (None, wf.id):
            return None
        return wf

    def start(self, session: UserSession, data_source: DataSource, storage: BlobStorage) -> ReportWorkflow:
        previous = self._by_user.get(session.user_id)
        if previous is not None:
            logger.info("Replacing report workflow %s for %s", previous.id, session.user_id)
        wf = ReportWorkflow(session, data_source, storage)
        self._by_user[session.user_id] = wf
        return wf

    def discard(self, workflow_id: Optional[str]) -> None:
        if workflow_id is None:
            return
        for user_id, wf in list(self._by_user.items()):
            if wf.id == workflow_id:
                del self._by_user[user_id]

    def discard_user(self, user_id: str) -> None:
        self._by_user.pop(user_id, None)
