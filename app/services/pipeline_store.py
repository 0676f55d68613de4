"""
Persistence for pipeline state

Every write to a stage status goes through a conditional UPDATE (compare-and-set)
or an INSERT guarded by the unique recording_id constraint, so single-flight holds
across processes, not just inside one event loop.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List, Type, Union

from sqlalchemy import and_, or_, select, update, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.logging import db_logger
from app.models import Recording, Transcription, Analysis, Criteria, ScoreCard, StageStatus
from app.models.transcription import CLAIMABLE_STATUSES
from app.schemas.recording import RecordingQuery
from app.services.ai.base import TranscriptPoll, AnalysisResult
from app.services.scorecard import ScoreCardData

StageModel = Union[Type[Transcription], Type[Analysis]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineStore:
    """Reads and conditional writes of recordings, stages and scorecards"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    # Reads

    async def get_recording(self, recording_id: int) -> Optional[Recording]:
        async with self.session_factory() as session:
            return await session.get(Recording, recording_id)

    async def get_stage(self, model, recording_id: int):
        async with self.session_factory() as session:
            result = await session.execute(select(model).where(model.recording_id == recording_id))
            return result.scalar_one_or_none()

    async def get_transcription(self, recording_id: int) -> Optional[Transcription]:
        return await self.get_stage(Transcription, recording_id)

    async def get_analysis(self, recording_id: int) -> Optional[Analysis]:
        return await self.get_stage(Analysis, recording_id)

    async def get_scorecard(self, recording_id: int) -> Optional[ScoreCard]:
        return await self.get_stage(ScoreCard, recording_id)

    async def get_criteria(self, criteria_id: int) -> Optional[Criteria]:
        async with self.session_factory() as session:
            return await session.get(Criteria, criteria_id)

    async def get_team_default_criteria(self, team_id: int) -> Optional[Criteria]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Criteria)
                .where(Criteria.team_id == team_id, Criteria.is_default.is_(True))
                .order_by(desc(Criteria.created_at), desc(Criteria.id))
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def save_criteria(self, **values) -> Criteria:
        """Insert a rubric; a new team default demotes the previous one"""
        async with self.session_factory() as session:
            if values.get("is_default") and values.get("team_id") is not None:
                await session.execute(
                    update(Criteria)
                    .where(Criteria.team_id == values["team_id"], Criteria.is_default.is_(True))
                    .values(is_default=False)
                    .execution_options(synchronize_session=False)
                )

            criteria = Criteria(**values)
            session.add(criteria)
            await session.commit()
            await session.refresh(criteria)
            return criteria

    async def find_recordings(self, query: RecordingQuery) -> List[Recording]:
        """Recordings matching a typed query"""
        stmt = select(Recording)

        if query.team_id is not None:
            stmt = stmt.where(Recording.team_id == query.team_id)
        if query.uploaded_by_id is not None:
            stmt = stmt.where(Recording.uploaded_by_id == query.uploaded_by_id)
        if query.transcription_status is not None:
            stmt = stmt.join(Transcription, Transcription.recording_id == Recording.id).where(
                Transcription.status == query.transcription_status
            )
        if query.analysis_status is not None:
            stmt = stmt.join(Analysis, Analysis.recording_id == Recording.id).where(
                Analysis.status == query.analysis_status
            )

        stmt = stmt.order_by(Recording.id).limit(query.limit).offset(query.offset)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # Stage claims

    async def claim_stage(
        self,
        model: StageModel,
        recording_id: int,
        stale_after: Optional[float] = None,
        **values
    ) -> Optional[int]:
        """
        Move a stage into PROCESSING if nobody else holds it

        Creates the row when it does not exist yet. Extra column values
        (e.g. criteria_id) are written with the claim. With stale_after, a
        PROCESSING row started more than that many seconds ago is taken over
        too; its holder's terminal write then no longer matches the attempt.

        Returns:
            int: the new attempt generation, or None when the stage is
                already PROCESSING/COMPLETED or another caller won the race
        """
        now = utcnow()
        claimable = model.status.in_(CLAIMABLE_STATUSES)
        if stale_after is not None:
            claimable = or_(claimable, and_(
                model.status == StageStatus.PROCESSING,
                or_(model.started_at.is_(None), model.started_at < now - timedelta(seconds=stale_after)),
            ))
        claim_values = {
            "status": StageStatus.PROCESSING,
            "error_detail": None,
            "started_at": now,
            "completed_at": None,
            **values,
        }
        if model is Analysis:
            claim_values.update({"error_code": None, "raw_response": None})

        async with self.session_factory() as session:
            result = await session.execute(
                update(model)
                .where(model.recording_id == recording_id, claimable)
                .values(attempt=model.attempt + 1, **claim_values)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 1:
                attempt = (await session.execute(
                    select(model.attempt).where(model.recording_id == recording_id)
                )).scalar_one()
                await session.commit()
                return attempt

            exists = (await session.execute(
                select(model.id).where(model.recording_id == recording_id)
            )).scalar_one_or_none()
            if exists is not None:
                await session.rollback()
                return None

            session.add(model(recording_id=recording_id, attempt=1, **claim_values))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                db_logger.info(f"Lost {model.__tablename__} claim race for recording {recording_id}")
                return None
            return 1

    async def _update_processing(self, session, model: StageModel, recording_id: int, attempt: int, **values) -> bool:
        result = await session.execute(
            update(model)
            .where(
                model.recording_id == recording_id,
                model.status == StageStatus.PROCESSING,
                model.attempt == attempt,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_upstream_job(self, recording_id: int, attempt: int, job_id: str) -> bool:
        async with self.session_factory() as session:
            updated = await self._update_processing(
                session, Transcription, recording_id, attempt, upstream_job_id=job_id
            )
            await session.commit()
            return updated

    # Terminal transitions

    async def complete_transcription(self, recording_id: int, attempt: int, poll: TranscriptPoll) -> bool:
        async with self.session_factory() as session:
            updated = await self._update_processing(
                session, Transcription, recording_id, attempt,
                status=StageStatus.COMPLETED,
                text=poll.text,
                utterances=poll.utterances or None,
                confidence=poll.confidence,
                audio_duration=poll.audio_duration,
                error_detail=None,
                completed_at=utcnow(),
            )
            await session.commit()
            return updated

    async def fail_stage(
        self,
        model: StageModel,
        recording_id: int,
        attempt: int,
        detail: str,
        error_code: Optional[str] = None,
        raw_response: Optional[str] = None
    ) -> bool:
        values = {
            "status": StageStatus.FAILED,
            "error_detail": detail,
            "completed_at": utcnow(),
        }
        if model is Transcription:
            values["text"] = ""
        else:
            values.update({"error_code": error_code, "raw_response": raw_response})

        async with self.session_factory() as session:
            updated = await self._update_processing(session, model, recording_id, attempt, **values)
            await session.commit()
            return updated

    async def complete_analysis(
        self,
        recording_id: int,
        attempt: int,
        result: AnalysisResult,
        card: ScoreCardData
    ) -> bool:
        """Persist a COMPLETED analysis and its scorecard in one transaction"""
        async with self.session_factory() as session:
            updated = await self._update_processing(
                session, Analysis, recording_id, attempt,
                status=StageStatus.COMPLETED,
                overall_score=result.overall_score,
                customer_service=result.customer_service,
                product_knowledge=result.product_knowledge,
                communication_skills=result.communication_skills,
                compliance_adherence=result.compliance_adherence,
                strengths=list(result.strengths),
                improvements=list(result.improvements),
                recommendations=list(result.recommendations),
                key_moments=[{"timestamp": m.timestamp, "description": m.description} for m in result.key_moments],
                summary=result.summary,
                raw_response=result.raw_response,
                error_code=None,
                error_detail=None,
                completed_at=utcnow(),
            )
            if not updated:
                await session.rollback()
                return False

            await self._upsert_scorecard(session, recording_id, card)
            await session.commit()
            return True

    async def save_transcript_edits(self, recording_id: int, edited_by_id: int, **values) -> bool:
        """Store annotations on a COMPLETED transcript; status and text are left alone"""
        async with self.session_factory() as session:
            result = await session.execute(
                update(Transcription)
                .where(
                    Transcription.recording_id == recording_id,
                    Transcription.status == StageStatus.COMPLETED,
                )
                .values(edited_at=utcnow(), edited_by_id=edited_by_id, **values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def replace_scorecard(self, recording_id: int, card: ScoreCardData) -> bool:
        """Rewrite the scorecard of a COMPLETED analysis"""
        async with self.session_factory() as session:
            # Touch the analysis row under the same condition so the write is
            # serialised against concurrent transitions
            result = await session.execute(
                update(Analysis)
                .where(Analysis.recording_id == recording_id, Analysis.status == StageStatus.COMPLETED)
                .values(criteria_id=card.criteria_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                return False

            await self._upsert_scorecard(session, recording_id, card)
            await session.commit()
            return True

    async def _upsert_scorecard(self, session, recording_id: int, card: ScoreCardData):
        values = {
            "criteria_id": card.criteria_id,
            "overall_score": card.overall_score,
            "customer_service_contribution": card.contributions["customer_service"],
            "product_knowledge_contribution": card.contributions["product_knowledge"],
            "communication_skills_contribution": card.contributions["communication_skills"],
            "compliance_adherence_contribution": card.contributions["compliance_adherence"],
            "weights": dict(card.weights),
            "required_phrases": dict(card.required_phrases),
            "prohibited_phrases": dict(card.prohibited_phrases),
            "phrase_compliant": card.phrase_compliant,
            "notes": card.notes,
        }

        existing = (await session.execute(
            select(ScoreCard).where(ScoreCard.recording_id == recording_id)
        )).scalar_one_or_none()

        if existing is None:
            session.add(ScoreCard(recording_id=recording_id, **values))
        else:
            for key, value in values.items():
                setattr(existing, key, value)
        await session.flush()
