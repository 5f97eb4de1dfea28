import os
from typing import Any, Dict, List, Optional, get_origin

from dotenv import load_dotenv
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

load_dotenv()

MAX_FILE_MB = 10
MAX_FILE_BYTES = MAX_FILE_MB * 1024 * 1024

ACCEPTED_MEDIA_TYPES = (
    "application/pdf",
    "text/plain",
    "image/png",
    "image/jpeg",
    "image/webp",
)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
ANALYSIS_TEMPERATURE = float(os.getenv("ANALYSIS_TEMPERATURE", "0.2"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", str(6 * 60 * 60)))

# User-facing messages
MSG_BAD_FILE_TYPE = "Please upload a PDF, Text file, or Image (PNG/JPEG)."
MSG_FILE_TOO_LARGE = f"File too large (max {MAX_FILE_MB}MB)."
MSG_EMPTY_FILE = "The selected file is empty."
MSG_MISSING_INPUTS = "Please provide both a resume and a job description."
MSG_ANALYSIS_FAILED = "Analysis failed. Please ensure your API key is valid and try again."
MSG_UPDATE_FAILED = "Failed to update analysis. Please try again."


class ResumeAIError(Exception):
    """Base class for errors surfaced to the user."""


class ValidationError(ResumeAIError):
    """Bad or missing user input. Never reaches the analysis client."""


class StateError(ResumeAIError):
    """An action that is not allowed in the current flow step."""


class AnalysisError(ResumeAIError):
    """The model returned nothing, non-JSON text, or JSON that fails the schema."""


class TransportError(AnalysisError):
    """Network or auth failure talking to the model provider."""


class AnalysisResult(BaseModel):
    # strict: "72", true and 72.0 are schema violations, not scores
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, strict=True)

    match_score: int = Field(
        ge=0, le=100,
        description="A score from 0 to 100 indicating how well the resume matches the job description.",
    )
    ats_score: int = Field(
        ge=0, le=100,
        description="A score from 0 to 100 indicating how ATS-friendly the resume formatting and keyword usage is.",
    )
    summary: str = Field(description="A brief executive summary of the analysis (max 2 sentences).")
    matching_skills: List[str] = Field(
        description="List of hard and soft skills found in both the resume and job description.",
    )
    missing_skills: List[str] = Field(
        description="Critical skills mentioned in the job description that are missing or weak in the resume.",
    )
    strengths: List[str] = Field(description="Key strong points of the candidate.")
    weaknesses: List[str] = Field(
        description="Areas where the candidate falls short compared to the requirements.",
    )
    recommended_actions: List[str] = Field(
        description="Specific, actionable advice to improve the resume for this specific job.",
    )


def _field_schema(annotation: Any, description: Optional[str]) -> types.Schema:
    if get_origin(annotation) in (list, List):
        return types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(type=types.Type.STRING),
            description=description,
        )
    if annotation is int:
        return types.Schema(type=types.Type.INTEGER, description=description)
    return types.Schema(type=types.Type.STRING, description=description)


def analysis_schema(required: bool = True, descriptions: bool = True) -> types.Schema:
    """
    Generation schema for AnalysisResult, built from the model's own fields.

    The re-estimation call sends a bare schema (no descriptions, nothing
    required); the client validates the full model either way.
    """
    properties = {}
    for name, field in AnalysisResult.model_fields.items():
        properties[field.alias or name] = _field_schema(
            field.annotation, field.description if descriptions else None
        )
    return types.Schema(
        type=types.Type.OBJECT,
        properties=properties,
        required=list(properties) if required else None,
    )


class SessionCreated(BaseModel):
    status: bool = True
    session_id: str


class SessionStatus(BaseModel):
    status: bool = True
    session_id: str
    step: str
    filename: Optional[str] = None
    media_type: Optional[str] = None
    job_description: str = ""
    error: Optional[str] = None
    alert: Optional[str] = None
    busy: bool = False
    can_analyze: bool = False
    result: Optional[Dict[str, Any]] = None


class SkillResponse(BaseModel):
    status: bool = True
    session_id: str
    skill: str
    dispatched: bool
