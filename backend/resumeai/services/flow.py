"""
Upload -> Analyzing -> Results state machine.

`transition` is pure: it takes the current FlowState and an event and returns
the next FlowState, or raises ValidationError / StateError and leaves the
caller's state as it was. FlowController owns one FlowState per session and is
the only thing that calls the analysis client for the primary analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from resumeai.ai import AnalysisClient
from resumeai.core import (
    MSG_ANALYSIS_FAILED,
    AnalysisError,
    AnalysisResult,
    StateError,
    ValidationError,
    MSG_MISSING_INPUTS,
)
from resumeai.logger import ContextLogger
from resumeai.models import UploadedFile
from resumeai.services.intake import encode_resume
from resumeai.services.report import ReportView

log = ContextLogger("flow")


class Step(str, Enum):
    UPLOAD = "upload"
    ANALYZING = "analyzing"
    RESULTS = "results"


@dataclass(frozen=True)
class FlowState:
    step: Step = Step.UPLOAD
    resume: Optional[UploadedFile] = None
    job_description: str = ""
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None

    @property
    def can_analyze(self) -> bool:
        return (
            self.step == Step.UPLOAD
            and self.resume is not None
            and bool(self.job_description.strip())
        )


# Events


@dataclass(frozen=True)
class FileAccepted:
    file: UploadedFile


@dataclass(frozen=True)
class InputRejected:
    message: str


@dataclass(frozen=True)
class FileCleared:
    pass


@dataclass(frozen=True)
class JobDescriptionChanged:
    text: str


@dataclass(frozen=True)
class AnalysisStarted:
    pass


@dataclass(frozen=True)
class AnalysisSucceeded:
    result: AnalysisResult


@dataclass(frozen=True)
class AnalysisFailed:
    message: str = MSG_ANALYSIS_FAILED


@dataclass(frozen=True)
class ResultUpdated:
    result: AnalysisResult


@dataclass(frozen=True)
class Reset:
    pass


Event = Union[
    FileAccepted,
    InputRejected,
    FileCleared,
    JobDescriptionChanged,
    AnalysisStarted,
    AnalysisSucceeded,
    AnalysisFailed,
    ResultUpdated,
    Reset,
]


def _require(state: FlowState, step: Step, event: Event) -> None:
    if state.step != step:
        raise StateError(f"{type(event).__name__} is not allowed while {state.step.value}")


def transition(state: FlowState, event: Event) -> FlowState:
    if isinstance(event, FileAccepted):
        _require(state, Step.UPLOAD, event)
        return replace(state, resume=event.file, error=None)

    if isinstance(event, InputRejected):
        _require(state, Step.UPLOAD, event)
        return replace(state, error=event.message)

    if isinstance(event, FileCleared):
        _require(state, Step.UPLOAD, event)
        return replace(state, resume=None)

    if isinstance(event, JobDescriptionChanged):
        _require(state, Step.UPLOAD, event)
        return replace(state, job_description=event.text or "")

    if isinstance(event, AnalysisStarted):
        _require(state, Step.UPLOAD, event)
        if not state.can_analyze:
            raise ValidationError(MSG_MISSING_INPUTS)
        return replace(state, step=Step.ANALYZING, error=None, result=None)

    if isinstance(event, AnalysisSucceeded):
        _require(state, Step.ANALYZING, event)
        return replace(state, step=Step.RESULTS, result=event.result, error=None)

    if isinstance(event, AnalysisFailed):
        _require(state, Step.ANALYZING, event)
        # file and job text stay so the user can retry as-is
        return replace(state, step=Step.UPLOAD, result=None, error=event.message)

    if isinstance(event, ResultUpdated):
        _require(state, Step.RESULTS, event)
        return replace(state, result=event.result)

    if isinstance(event, Reset):
        if state.step == Step.ANALYZING:
            raise StateError("Cannot reset while an analysis is running")
        return FlowState()

    raise TypeError(f"Unknown flow event: {event!r}")


class FlowController:
    """
    Owns one user's FlowState and drives it through the analysis client.

    Every mutation goes through `transition`, so a failed event leaves
    `state` untouched.
    """

    def __init__(self, client: AnalysisClient):
        self.client = client
        self.state = FlowState()
        self.report = self._new_report()

    def _new_report(self) -> ReportView:
        return ReportView(
            self.client,
            get_result=lambda: self.state.result if self.state.step == Step.RESULTS else None,
            on_update=self._apply_update,
        )

    def dispatch(self, event: Event) -> FlowState:
        self.state = transition(self.state, event)
        return self.state

    @property
    def can_analyze(self) -> bool:
        return self.state.can_analyze

    def select_file(self, name: str, media_type: Optional[str], contents: bytes) -> UploadedFile:
        try:
            file = encode_resume(name, media_type, contents)
        except ValidationError as e:
            self.reject_file(e)
            raise
        self.accept_file(file)
        return file

    def accept_file(self, file: UploadedFile) -> None:
        self.dispatch(FileAccepted(file))
        log.info(f"Accepted {file.name} ({file.media_type}, {file.size} bytes)")

    def reject_file(self, error: ValidationError) -> None:
        log.warning(f"Rejected file: {error}")
        self.dispatch(InputRejected(str(error)))

    def clear_file(self) -> None:
        self.dispatch(FileCleared())

    def set_job_description(self, text: str) -> None:
        self.dispatch(JobDescriptionChanged(text))

    def submit(self) -> None:
        """Upload -> Analyzing. Raises ValidationError when inputs are missing."""
        try:
            self.dispatch(AnalysisStarted())
        except ValidationError as e:
            self.dispatch(InputRejected(str(e)))
            raise

    async def run_analysis(self) -> Optional[AnalysisResult]:
        """Await the model and land in Results or back in Upload."""
        if self.state.step != Step.ANALYZING:
            raise StateError("No analysis has been submitted")

        resume = self.state.resume
        try:
            result = await self.client.analyze(resume.data, resume.media_type, self.state.job_description)
        except AnalysisError as e:
            log.error(f"Analysis failed for {resume.name}: {e}")
            self.dispatch(AnalysisFailed())
            return None
        except Exception:
            log.exception(f"Unexpected error analyzing {resume.name}")
            self.dispatch(AnalysisFailed())
            return None

        self.dispatch(AnalysisSucceeded(result))
        return result

    async def analyze(self) -> Optional[AnalysisResult]:
        self.submit()
        return await self.run_analysis()

    async def add_skill(self, skill: str) -> bool:
        return await self.report.add_skill(skill)

    def _apply_update(self, result: AnalysisResult, previous: AnalysisResult) -> None:
        if self.state.step != Step.RESULTS or self.state.result is not previous:
            log.warning("Dropping re-estimated result; the displayed result changed meanwhile")
            return
        self.dispatch(ResultUpdated(result))

    def reset(self) -> None:
        """resetApp: back to an empty Upload step."""
        self.dispatch(Reset())
        # a re-estimation still in flight keeps the old view; its outcome is dropped
        self.report = self._new_report()
        log.info("Flow reset")
