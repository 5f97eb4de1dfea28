import asyncio
import json
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from resumeai.ai import AnalysisClient
from resumeai.core import AnalysisResult
from resumeai.main import app, sessions

PAYLOAD = {
    "matchScore": 72,
    "atsScore": 81,
    "summary": "Solid backend engineer; light on container orchestration.",
    "matchingSkills": ["Python", "PostgreSQL", "AWS"],
    "missingSkills": ["Kubernetes", "Terraform"],
    "strengths": ["Six years of API work"],
    "weaknesses": ["No infrastructure-as-code experience"],
    "recommendedActions": ["Add a Kubernetes project", "Quantify latency wins"],
}

REESTIMATED = {
    **PAYLOAD,
    "matchScore": 80,
    "summary": "Solid backend engineer; adding Kubernetes closes the main gap.",
    "matchingSkills": ["Python", "PostgreSQL", "AWS", "Kubernetes"],
    "missingSkills": ["Terraform"],
}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def payload():
    return dict(PAYLOAD)


@pytest.fixture
def reestimated_payload():
    return dict(REESTIMATED)


@pytest.fixture
def analysis_result():
    return AnalysisResult.model_validate(PAYLOAD)


class FakeModels:
    """Stands in for genai.Client().aio.models."""

    def __init__(self):
        self.responses = []
        self.calls = []
        self.gate = None

    def queue(self, *responses):
        for r in responses:
            self.responses.append(json.dumps(r) if isinstance(r, dict) else r)

    async def generate_content(self, *, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.gate is not None:
            await self.gate.wait()
        resp = self.responses.pop(0)
        if isinstance(resp, BaseException):
            raise resp
        return SimpleNamespace(text=resp)


class StubAnalysisClient:
    """Records calls; returns or raises whatever the test put in `analyze_result` / `reestimate_result`."""

    def __init__(self):
        self.analyze_calls = []
        self.reestimate_calls = []
        self.analyze_result = None
        self.reestimate_result = None
        self.gate = None

    async def _outcome(self, outcome):
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def analyze(self, resume_data, media_type, job_description):
        self.analyze_calls.append((resume_data, media_type, job_description))
        return await self._outcome(self.analyze_result)

    async def reestimate_with_skill(self, current, new_skill):
        self.reestimate_calls.append((current, new_skill))
        return await self._outcome(self.reestimate_result)


@pytest.fixture
def fake_models():
    return FakeModels()


@pytest.fixture
def analysis_client(fake_models):
    genai_client = SimpleNamespace(aio=SimpleNamespace(models=fake_models))
    return AnalysisClient(client=genai_client, model="gemini-test", temperature=0.2)


@pytest.fixture
def stub_client():
    return StubAnalysisClient()


@pytest.fixture
async def client(analysis_client):
    original = app.state.analysis_client
    app.state.analysis_client = analysis_client
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.analysis_client = original
    sessions.clear()


async def wait_for_step(client, session_id, step, tries=50):
    for _ in range(tries):
        s = await client.get(f"/api/sessions/{session_id}")
        assert s.status_code == 200
        if s.json()["step"] == step and not s.json()["busy"]:
            return s.json()
        await asyncio.sleep(0.01)
    pytest.fail(f"Session never reached {step}: {s.json()}")


@pytest.fixture
def wait_for():
    return wait_for_step
