from __future__ import annotations

import base64
import json
from functools import lru_cache
from typing import Any, Optional

import httpx
import pydantic
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from resumeai.core import (
    ANALYSIS_TEMPERATURE,
    GEMINI_API_KEY,
    GEMINI_MODEL,
    AnalysisError,
    AnalysisResult,
    TransportError,
    ValidationError,
    analysis_schema,
)
from resumeai.logger import ContextLogger

log = ContextLogger("ai")

ANALYSIS_PROMPT = """You are an expert HR Resume Analyzer and ATS (Applicant Tracking System) specialist.
Analyze the provided resume against the job description below.
Be critical but constructive.

JOB DESCRIPTION:
{job_description}

Analyze the attached resume file."""

REESTIMATE_PROMPT = """The user wants to update their resume to include the skill: "{skill}".

Current Analysis Status:
- Match Score: {match_score}
- Missing Skills: {missing_skills}

Assume the user effectively adds "{skill}" to their resume.
Re-calculate the scores and update the lists.
Remove "{skill}" from missingSkills and add it to matchingSkills.
Increase the matchScore appropriately (usually by 5-10 points depending on relevance).
Keep the summary mostly the same but mention the improvement."""


@lru_cache(maxsize=1)
def _genai_client() -> genai.Client:
    return genai.Client(api_key=GEMINI_API_KEY)


def parse_result(text: Optional[str]) -> AnalysisResult:
    """
    Turn the model's JSON text into an AnalysisResult.

    Raises AnalysisError for empty text, invalid JSON, or a payload that does
    not satisfy the schema (missing field, wrong type, score outside 0..100).
    """
    if not text or not text.strip():
        raise AnalysisError("No response from the model")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Model returned invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise AnalysisError(f"Model returned {type(payload).__name__}, expected an object")

    try:
        return AnalysisResult.model_validate(payload)
    except pydantic.ValidationError as e:
        raise AnalysisError(f"Model response failed schema validation: {e}") from e


class AnalysisClient:
    """
    Structured-generation client for resume analysis.

    Both calls go through one Gemini request each and return a whole
    AnalysisResult; nothing is retried and no field is filled in locally.
    """

    def __init__(
        self,
        client: Optional[genai.Client] = None,
        model: str = GEMINI_MODEL,
        temperature: float = ANALYSIS_TEMPERATURE,
    ):
        self._client = client
        self.model = model
        self.temperature = temperature

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = _genai_client()
        return self._client

    async def _generate(self, contents: Any, config: types.GenerateContentConfig) -> AnalysisResult:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except (genai_errors.APIError, httpx.HTTPError) as e:
            raise TransportError(f"Model request failed: {e}") from e

        return parse_result(response.text)

    async def analyze(self, resume_data: str, media_type: str, job_description: str) -> AnalysisResult:
        """
        Score a resume against a job description.

        Args:
            resume_data: Base64 text of the full resume file
            media_type: One of the accepted upload media types
            job_description: Non-blank job text (caller checks)
        """
        try:
            resume_bytes = base64.b64decode(resume_data, validate=True)
        except ValueError as e:
            raise ValidationError("Resume payload is not valid base64.") from e

        contents = types.Content(
            role="user",
            parts=[
                types.Part.from_text(text=ANALYSIS_PROMPT.format(job_description=job_description)),
                types.Part.from_bytes(data=resume_bytes, mime_type=media_type),
            ],
        )
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=analysis_schema(),
            temperature=self.temperature,
        )

        log.info(f"Analyzing resume ({media_type}, {len(resume_bytes)} bytes) with {self.model}")
        try:
            result = await self._generate(contents, config)
        except AnalysisError as e:
            log.error(f"Error analyzing resume: {e}")
            raise

        log.success(f"Analysis done: match={result.match_score} ats={result.ats_score}")
        return result

    async def reestimate_with_skill(self, current: AnalysisResult, new_skill: str) -> AnalysisResult:
        """Ask the model to re-score `current` as if `new_skill` were on the resume."""
        skill = (new_skill or "").strip()
        if not skill:
            raise ValidationError("Skill must not be blank.")

        prompt = REESTIMATE_PROMPT.format(
            skill=skill,
            match_score=current.match_score,
            missing_skills=", ".join(current.missing_skills),
        )
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=analysis_schema(required=False, descriptions=False),
        )

        log.info(f"Re-scoring with added skill '{skill}' (current match={current.match_score})")
        try:
            result = await self._generate(prompt, config)
        except AnalysisError as e:
            log.error(f"Error re-scoring: {e}")
            raise

        if skill in result.missing_skills or skill not in result.matching_skills:
            log.warning(f"Model did not move '{skill}' between skill lists")
        log.success(f"Re-score done: match {current.match_score} -> {result.match_score}")
        return result
