import base64

import httpx
import pytest
from google.genai import types

from resumeai.ai import parse_result
from resumeai.core import AnalysisError, AnalysisResult, TransportError, ValidationError, analysis_schema

RESUME = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF"
RESUME_B64 = base64.b64encode(RESUME).decode("ascii")
JOB = "Backend engineer: Python, AWS, Kubernetes, Terraform."

FIELDS = [
    "matchScore",
    "atsScore",
    "summary",
    "matchingSkills",
    "missingSkills",
    "strengths",
    "weaknesses",
    "recommendedActions",
]


def test_schema_matches_result_model():
    schema = analysis_schema()
    assert list(schema.properties) == FIELDS
    assert schema.required == FIELDS
    assert schema.properties["matchScore"].type == types.Type.INTEGER
    assert schema.properties["summary"].type == types.Type.STRING
    assert schema.properties["missingSkills"].type == types.Type.ARRAY
    assert schema.properties["missingSkills"].items.type == types.Type.STRING


def test_bare_schema_requires_nothing():
    schema = analysis_schema(required=False, descriptions=False)
    assert schema.required is None
    assert schema.properties["atsScore"].description is None


@pytest.mark.anyio
async def test_analyze_returns_parsed_payload(analysis_client, fake_models, payload):
    fake_models.queue(payload)

    result = await analysis_client.analyze(RESUME_B64, "application/pdf", JOB)

    assert isinstance(result, AnalysisResult)
    assert result.model_dump(by_alias=True) == payload


@pytest.mark.anyio
async def test_analyze_request_shape(analysis_client, fake_models, payload):
    fake_models.queue(payload)
    await analysis_client.analyze(RESUME_B64, "application/pdf", JOB)

    assert len(fake_models.calls) == 1
    call = fake_models.calls[0]
    assert call["model"] == "gemini-test"

    config = call["config"]
    assert config.response_mime_type == "application/json"
    assert config.temperature == 0.2
    assert config.response_schema.required == FIELDS

    text_part, file_part = call["contents"].parts
    assert JOB in text_part.text
    assert "critical but constructive" in text_part.text
    assert file_part.inline_data.mime_type == "application/pdf"
    assert file_part.inline_data.data == RESUME


@pytest.mark.anyio
@pytest.mark.parametrize("missing", ["summary", "missingSkills", "atsScore"])
async def test_analyze_missing_field_fails(analysis_client, fake_models, payload, missing):
    del payload[missing]
    fake_models.queue(payload)

    with pytest.raises(AnalysisError):
        await analysis_client.analyze(RESUME_B64, "application/pdf", JOB)


@pytest.mark.anyio
@pytest.mark.parametrize("text", [None, "", "   ", "not json at all", "[1, 2, 3]", '{"matchScore": 10'])
async def test_analyze_bad_text_fails(analysis_client, fake_models, text):
    fake_models.queue(text)

    with pytest.raises(AnalysisError):
        await analysis_client.analyze(RESUME_B64, "application/pdf", JOB)


@pytest.mark.anyio
@pytest.mark.parametrize("score", [-1, 101, 150])
async def test_analyze_score_out_of_range_fails(analysis_client, fake_models, payload, score):
    payload["matchScore"] = score
    fake_models.queue(payload)

    with pytest.raises(AnalysisError):
        await analysis_client.analyze(RESUME_B64, "application/pdf", JOB)


@pytest.mark.anyio
@pytest.mark.parametrize("field", ["matchScore", "atsScore"])
@pytest.mark.parametrize("score", ["72", True, 72.0])
async def test_analyze_non_integer_score_fails(analysis_client, fake_models, payload, field, score):
    payload[field] = score
    fake_models.queue(payload)

    with pytest.raises(AnalysisError):
        await analysis_client.analyze(RESUME_B64, "application/pdf", JOB)


@pytest.mark.anyio
async def test_analyze_transport_error(analysis_client, fake_models):
    fake_models.queue(httpx.ConnectError("connection refused"))

    with pytest.raises(TransportError) as exc:
        await analysis_client.analyze(RESUME_B64, "application/pdf", JOB)
    assert isinstance(exc.value, AnalysisError)


@pytest.mark.anyio
async def test_analyze_is_not_retried(analysis_client, fake_models, payload):
    fake_models.queue("garbage", payload)

    with pytest.raises(AnalysisError):
        await analysis_client.analyze(RESUME_B64, "application/pdf", JOB)
    assert len(fake_models.calls) == 1


@pytest.mark.anyio
async def test_reestimate_moves_skill(analysis_client, fake_models, analysis_result, reestimated_payload):
    fake_models.queue(reestimated_payload)

    result = await analysis_client.reestimate_with_skill(analysis_result, "Kubernetes")

    assert "Kubernetes" in result.matching_skills
    assert "Kubernetes" not in result.missing_skills
    assert result.match_score == 80


@pytest.mark.anyio
async def test_reestimate_prompt(analysis_client, fake_models, analysis_result, reestimated_payload):
    fake_models.queue(reestimated_payload)
    await analysis_client.reestimate_with_skill(analysis_result, "Kubernetes")

    call = fake_models.calls[0]
    prompt = call["contents"]
    assert isinstance(prompt, str)
    assert '"Kubernetes"' in prompt
    assert "Match Score: 72" in prompt
    assert "Missing Skills: Kubernetes, Terraform" in prompt
    assert call["config"].response_schema.required is None
    assert call["config"].temperature is None


@pytest.mark.anyio
async def test_reestimate_missing_field_fails(analysis_client, fake_models, analysis_result, reestimated_payload):
    del reestimated_payload["recommendedActions"]
    fake_models.queue(reestimated_payload)

    with pytest.raises(AnalysisError):
        await analysis_client.reestimate_with_skill(analysis_result, "Kubernetes")


@pytest.mark.anyio
async def test_reestimate_blank_skill(analysis_client, fake_models, analysis_result):
    with pytest.raises(ValidationError):
        await analysis_client.reestimate_with_skill(analysis_result, "   ")
    assert fake_models.calls == []


def test_result_accepts_field_names_and_aliases():
    result = AnalysisResult(
        match_score=1,
        ats_score=2,
        summary="s",
        matching_skills=[],
        missing_skills=[],
        strengths=[],
        weaknesses=[],
        recommended_actions=[],
    )
    assert result.match_score == 1
    assert parse_result('{"matchScore": 5, "atsScore": 5, "summary": "", "matchingSkills": [], '
                        '"missingSkills": [], "strengths": [], "weaknesses": [], '
                        '"recommendedActions": []}').match_score == 5
