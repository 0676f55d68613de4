"""
API endpoint tests
"""

import pytest
from httpx import AsyncClient

from app.models import StageStatus
from app.tests.helpers import TEAM_ID, TRANSCRIPT_TEXT, analysis_json


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient, recording):
        response = await client.post(f"/api/v1/recordings/{recording.id}/transcribe")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient, recording):
        response = await client.post(
            f"/api/v1/recordings/{recording.id}/transcribe",
            headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401


class TestRecordingsAPI:

    @pytest.mark.asyncio
    async def test_transcribe(self, client: AsyncClient, recording, uploader, auth_headers):
        response = await client.post(
            f"/api/v1/recordings/{recording.id}/transcribe",
            headers=auth_headers(uploader)
        )
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["data"]["status"] == "COMPLETED"
        assert data["data"]["transcription"]["text"] == TRANSCRIPT_TEXT

    @pytest.mark.asyncio
    async def test_outsider_gets_403(self, client: AsyncClient, recording, outsider, auth_headers):
        response = await client.post(
            f"/api/v1/recordings/{recording.id}/transcribe",
            headers=auth_headers(outsider)
        )
        assert response.status_code == 403

        data = response.json()
        assert data["success"] is False
        assert data["code"] == "UNAUTHORIZED"
        assert data["type"] == "UnauthorizedError"

    @pytest.mark.asyncio
    async def test_unknown_recording(self, client: AsyncClient, uploader, auth_headers):
        response = await client.get("/api/v1/recordings/999/pipeline", headers=auth_headers(uploader))
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_failed_stage_is_502(self, client: AsyncClient, recording, uploader, auth_headers,
                                       transcription_client):
        transcription_client.status = StageStatus.FAILED
        transcription_client.error = "Unsupported audio format"

        response = await client.post(
            f"/api/v1/recordings/{recording.id}/transcribe",
            headers=auth_headers(uploader)
        )
        assert response.status_code == 502

        data = response.json()
        assert data["success"] is False
        assert data["code"] == "UPSTREAM_SERVICE_ERROR"
        assert data["message"] == "Unsupported audio format"
        assert data["data"]["transcription"]["status"] == "FAILED"

    @pytest.mark.asyncio
    async def test_analyze_before_transcribe(self, client: AsyncClient, recording, uploader, auth_headers):
        response = await client.post(
            f"/api/v1/recordings/{recording.id}/analyze",
            headers=auth_headers(uploader)
        )
        assert response.status_code == 409
        assert response.json()["code"] == "PRECONDITION_FAILED"

    @pytest.mark.asyncio
    async def test_full_pipeline(self, client: AsyncClient, recording, team_member, auth_headers, reporting):
        headers = auth_headers(team_member)
        base = f"/api/v1/recordings/{recording.id}"

        assert (await client.post(f"{base}/transcribe", headers=headers)).status_code == 200

        response = await client.post(f"{base}/analyze", json={}, headers=headers)
        assert response.status_code == 200
        analysis = response.json()["data"]
        assert analysis["analysis"]["overall_score"] == 83
        assert analysis["scorecard"]["overall_score"] == 83.25

        response = await client.post(
            f"{base}/share",
            json={"email": "lead@example.com", "subject": "Review"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["destination"] == "lead@example.com"
        assert reporting.sent[0]["subject"] == "Review"

        response = await client.get(f"{base}/pipeline", headers=headers)
        state = response.json()["data"]
        assert state["title"] == "Sales call"
        assert state["transcription"]["status"] == "COMPLETED"
        assert state["analysis"]["key_moments"] == [{"timestamp": "00:01", "description": "Greeting"}]
        assert state["scorecard"]["weights"]["customer_service"] == 25.0

    @pytest.mark.asyncio
    async def test_malformed_analysis_is_502(self, client: AsyncClient, recording, uploader, auth_headers,
                                             analysis_client):
        analysis_client.raw = analysis_json(overallScore=None)
        headers = auth_headers(uploader)
        await client.post(f"/api/v1/recordings/{recording.id}/transcribe", headers=headers)

        response = await client.post(f"/api/v1/recordings/{recording.id}/analyze", headers=headers)

        assert response.status_code == 502
        data = response.json()
        assert data["code"] == "MALFORMED_ANALYSIS"
        assert "scorecard" not in data["data"]

    @pytest.mark.asyncio
    async def test_share_validates_email(self, client: AsyncClient, recording, uploader, auth_headers):
        response = await client.post(
            f"/api/v1/recordings/{recording.id}/share",
            json={"email": "nope"},
            headers=auth_headers(uploader)
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_rescore(self, client: AsyncClient, recording, uploader, auth_headers):
        headers = auth_headers(uploader)
        base = f"/api/v1/recordings/{recording.id}"
        await client.post(f"{base}/transcribe", headers=headers)
        await client.post(f"{base}/analyze", headers=headers)

        created = await client.post("/api/v1/criteria", json={
            "name": "Knowledge first",
            "customer_service_weight": 10,
            "product_knowledge_weight": 70,
            "communication_skills_weight": 10,
            "compliance_adherence_weight": 10,
        }, headers=headers)
        criteria_id = created.json()["data"]["id"]

        response = await client.post(f"{base}/rescore", json={"criteria_id": criteria_id}, headers=headers)

        assert response.status_code == 200
        # 80*.1 + 85*.7 + 78*.1 + 90*.1
        assert response.json()["data"]["overall_score"] == 84.3
        assert response.json()["data"]["criteria_id"] == criteria_id


class TestCriteriaAPI:

    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient, team_manager, team_member, auth_headers):
        response = await client.post("/api/v1/criteria", json={
            "name": "Team rubric",
            "customer_service_weight": 25,
            "product_knowledge_weight": 25,
            "communication_skills_weight": 25,
            "compliance_adherence_weight": 25,
            "prohibited_phrases": ["guarantee"],
            "team_id": TEAM_ID,
            "is_default": True,
        }, headers=auth_headers(team_manager))
        assert response.status_code == 200
        criteria_id = response.json()["data"]["id"]

        response = await client.get(f"/api/v1/criteria/{criteria_id}", headers=auth_headers(team_member))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["is_default"] is True
        assert data["prohibited_phrases"] == ["guarantee"]

    @pytest.mark.asyncio
    async def test_weights_validated_at_save(self, client: AsyncClient, uploader, auth_headers):
        response = await client.post("/api/v1/criteria", json={
            "name": "Broken",
            "customer_service_weight": 25,
            "product_knowledge_weight": 25,
            "communication_skills_weight": 25,
            "compliance_adherence_weight": 15,
        }, headers=auth_headers(uploader))

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestTranscriptAPI:

    @pytest.mark.asyncio
    async def test_edit_and_read_back(self, client: AsyncClient, recording, uploader, team_member, auth_headers):
        await client.post(f"/api/v1/recordings/{recording.id}/transcribe", headers=auth_headers(uploader))

        response = await client.put(f"/api/v1/recordings/{recording.id}/transcript", json={
            "speaker_map": {"A": {"name": "Dana", "role": "Agent"}},
            "context_notes": "Customer asked about refunds",
        }, headers=auth_headers(team_member))
        assert response.status_code == 200
        assert response.json()["data"]["edited_by_id"] == team_member.id

        response = await client.get(f"/api/v1/recordings/{recording.id}/transcript", headers=auth_headers(uploader))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["text"] == TRANSCRIPT_TEXT
        assert data["speaker_map"] == {"A": {"name": "Dana", "role": "Agent"}}
        assert data["sections"] is None
        assert data["context_notes"] == "Customer asked about refunds"

    @pytest.mark.asyncio
    async def test_edit_before_transcription_is_409(self, client: AsyncClient, recording, uploader, auth_headers):
        response = await client.put(
            f"/api/v1/recordings/{recording.id}/transcript",
            json={"context_notes": "Too early"},
            headers=auth_headers(uploader)
        )

        assert response.status_code == 409
        assert response.json()["code"] == "PRECONDITION_FAILED"

    @pytest.mark.asyncio
    async def test_bad_section_color_is_422(self, client: AsyncClient, recording, uploader, auth_headers):
        response = await client.put(
            f"/api/v1/recordings/{recording.id}/transcript",
            json={"sections": {"intro": {"name": "Intro", "color": "blue"}}},
            headers=auth_headers(uploader)
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_outsider_gets_403(self, client: AsyncClient, recording, uploader, outsider, auth_headers):
        await client.post(f"/api/v1/recordings/{recording.id}/transcribe", headers=auth_headers(uploader))

        response = await client.get(f"/api/v1/recordings/{recording.id}/transcript", headers=auth_headers(outsider))
        assert response.status_code == 403
