"""Tests for progression_service: the step state machine and approval cascade."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.exceptions import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PreconditionFailedError,
)
from skillpath.models import Roadmap, StudentRoadmapProgress
from skillpath.models.enums import RoadmapStatus, StepStatus
from skillpath.services import progression_service
from skillpath.services.progression_service import find_step_row

EVIDENCE = "https://github.com/siti/backend-fundamentals"


async def _complete_step(db: AsyncSession, student_id: int, teacher_id: int, step_id: int, score: int = 90):
    await progression_service.start_step(db, student_id, step_id)
    row = await progression_service.submit_evidence(db, student_id, step_id, EVIDENCE)
    return await progression_service.approve_step(db, teacher_id, row.id, validation_score=score)


def _statuses(progress: StudentRoadmapProgress, roadmap: Roadmap) -> list[StepStatus]:
    return [find_step_row(progress, step.id).status for step in roadmap.steps]


class TestStartRoadmap:
    @pytest.mark.asyncio
    async def test_creates_aggregate_with_first_step_unlocked(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        progress = await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

        assert progress.id is not None
        assert progress.total_steps == 3
        assert progress.completed_steps == 0
        assert progress.progress_percent == 0.0
        assert progress.started_at is not None
        assert progress.completed_at is None
        assert _statuses(progress, roadmap) == [
            StepStatus.UNLOCKED,
            StepStatus.LOCKED,
            StepStatus.LOCKED,
        ]

    @pytest.mark.asyncio
    async def test_second_start_conflicts(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

        with pytest.raises(ConflictError, match="already started"):
            await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

    @pytest.mark.asyncio
    async def test_racing_start_maps_integrity_error_to_conflict(
        self,
        test_session: AsyncSession,
        roadmap: Roadmap,
        student,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        profile, _ = student
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

        # The other request's insert is not visible to this one's pre-check
        async def not_started(*args, **kwargs):
            return None

        monkeypatch.setattr(progression_service, "get_progress", not_started)

        with pytest.raises(ConflictError):
            await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

        result = await test_session.execute(
            select(StudentRoadmapProgress).where(
                StudentRoadmapProgress.student_profile_id == profile.id
            )
        )
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_inactive_roadmap_not_found(
        self, test_session: AsyncSession, make_roadmap, student
    ) -> None:
        profile, _ = student
        draft = await make_roadmap(status=RoadmapStatus.DRAFT)

        with pytest.raises(NotFoundError):
            await progression_service.start_roadmap(test_session, profile.id, draft.id)

    @pytest.mark.asyncio
    async def test_roadmap_without_steps_rejected(
        self, test_session: AsyncSession, make_roadmap, student
    ) -> None:
        profile, _ = student
        empty = await make_roadmap(steps=0)

        with pytest.raises(PreconditionFailedError):
            await progression_service.start_roadmap(test_session, profile.id, empty.id)

    @pytest.mark.asyncio
    async def test_unknown_roadmap_not_found(self, test_session: AsyncSession, student) -> None:
        profile, _ = student
        with pytest.raises(NotFoundError):
            await progression_service.start_roadmap(test_session, profile.id, 999)


class TestStudentTransitions:
    @pytest.mark.asyncio
    async def test_start_and_submit_first_step(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        progress = await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        first = roadmap.steps[0]

        row = await progression_service.start_step(test_session, profile.id, first.id)
        assert row.status == StepStatus.IN_PROGRESS
        assert row.started_at is not None
        assert progress.last_activity_at is not None

        row = await progression_service.submit_evidence(
            test_session, profile.id, first.id, EVIDENCE, submission_notes="Deployed on Fly"
        )
        assert row.status == StepStatus.SUBMITTED
        assert row.evidence_link == EVIDENCE
        assert row.submission_notes == "Deployed on Fly"
        assert row.submitted_at is not None

    @pytest.mark.asyncio
    async def test_locked_step_cannot_start(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

        with pytest.raises(PreconditionFailedError, match="Previous step"):
            await progression_service.start_step(test_session, profile.id, roadmap.steps[1].id)

    @pytest.mark.asyncio
    async def test_start_step_twice_conflicts(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        await progression_service.start_step(test_session, profile.id, roadmap.steps[0].id)

        with pytest.raises(ConflictError, match="already started"):
            await progression_service.start_step(test_session, profile.id, roadmap.steps[0].id)

    @pytest.mark.asyncio
    async def test_start_step_before_roadmap_not_found(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        with pytest.raises(NotFoundError, match="not started"):
            await progression_service.start_step(test_session, profile.id, roadmap.steps[0].id)

    @pytest.mark.asyncio
    async def test_submit_requires_started_step(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

        with pytest.raises(PreconditionFailedError):
            await progression_service.submit_evidence(
                test_session, profile.id, roadmap.steps[0].id, EVIDENCE
            )

    @pytest.mark.asyncio
    async def test_submit_twice_conflicts(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        await progression_service.start_step(test_session, profile.id, roadmap.steps[0].id)
        await progression_service.submit_evidence(test_session, profile.id, roadmap.steps[0].id, EVIDENCE)

        with pytest.raises(ConflictError, match="waiting for review"):
            await progression_service.submit_evidence(
                test_session, profile.id, roadmap.steps[0].id, EVIDENCE
            )

    @pytest.mark.parametrize("link", ["not a url", "ftp://files.example.com/x", "https://", ""])
    @pytest.mark.asyncio
    async def test_submit_rejects_invalid_link(
        self, test_session: AsyncSession, roadmap: Roadmap, student, link: str
    ) -> None:
        profile, _ = student
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        await progression_service.start_step(test_session, profile.id, roadmap.steps[0].id)

        with pytest.raises(InvalidRequestError):
            await progression_service.submit_evidence(
                test_session, profile.id, roadmap.steps[0].id, link
            )

    @pytest.mark.asyncio
    async def test_submit_rejects_non_url_evidence(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        await progression_service.start_step(test_session, profile.id, roadmap.steps[0].id)

        with pytest.raises(InvalidRequestError, match="URL"):
            await progression_service.submit_evidence(
                test_session, profile.id, roadmap.steps[0].id, EVIDENCE, evidence_type="file"
            )


class TestReview:
    @pytest.mark.asyncio
    async def test_approval_unlocks_next_step(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

        row, progress = await _complete_step(
            test_session, profile.id, teacher_profile.id, roadmap.steps[0].id
        )

        assert row.status == StepStatus.APPROVED
        assert row.validated_by_teacher_id == teacher_profile.id
        assert row.validation_score == 90
        assert row.reviewed_at is not None
        assert row.completed_at is not None
        assert progress.completed_steps == 1
        assert progress.progress_percent == pytest.approx(100 / 3)
        assert progress.completed_at is None
        assert _statuses(progress, roadmap) == [
            StepStatus.APPROVED,
            StepStatus.UNLOCKED,
            StepStatus.LOCKED,
        ]

    @pytest.mark.asyncio
    async def test_rejection_and_direct_resubmission(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        progress = await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        first = roadmap.steps[0]
        await progression_service.start_step(test_session, profile.id, first.id)
        row = await progression_service.submit_evidence(test_session, profile.id, first.id, EVIDENCE)

        row = await progression_service.reject_step(
            test_session, teacher_profile.id, row.id, validation_notes="Add a README"
        )
        assert row.status == StepStatus.REJECTED
        assert row.validation_notes == "Add a README"
        assert progress.completed_steps == 0
        assert _statuses(progress, roadmap)[1] == StepStatus.LOCKED

        with pytest.raises(PreconditionFailedError, match="resubmitted"):
            await progression_service.start_step(test_session, profile.id, first.id)

        row = await progression_service.submit_evidence(
            test_session, profile.id, first.id, EVIDENCE + "/tree/readme"
        )
        assert row.status == StepStatus.SUBMITTED
        assert row.evidence_link.endswith("/tree/readme")
        assert row.validation_notes is None
        assert row.validated_by_teacher_id is None

    @pytest.mark.asyncio
    async def test_completing_every_step_finishes_roadmap(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)

        last = len(roadmap.steps) - 1
        for index, step in enumerate(roadmap.steps):
            row, progress = await _complete_step(test_session, profile.id, teacher_profile.id, step.id)
            if index < last:
                assert progress.completed_at is None
                assert not progress.is_finished

        assert progress.completed_steps == 3
        assert progress.progress_percent == pytest.approx(100.0)
        assert progress.completed_at is not None
        assert progress.is_finished
        assert set(_statuses(progress, roadmap)) == {StepStatus.APPROVED}

        finished_at = progress.completed_at
        with pytest.raises(ConflictError, match="already reviewed"):
            await progression_service.approve_step(test_session, teacher_profile.id, row.id)
        assert progress.completed_at == finished_at
        assert progress.completed_steps == 3

    @pytest.mark.asyncio
    async def test_double_approval_conflicts_without_double_counting(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        row, progress = await _complete_step(
            test_session, profile.id, teacher_profile.id, roadmap.steps[0].id
        )

        with pytest.raises(ConflictError):
            await progression_service.approve_step(test_session, teacher_profile.id, row.id)
        with pytest.raises(ConflictError):
            await progression_service.reject_step(test_session, teacher_profile.id, row.id)

        assert progress.completed_steps == 1

    @pytest.mark.asyncio
    async def test_review_requires_pending_submission(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        progress = await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        row = find_step_row(progress, roadmap.steps[0].id)

        with pytest.raises(PreconditionFailedError, match="no pending submission"):
            await progression_service.approve_step(test_session, teacher_profile.id, row.id)

    @pytest.mark.asyncio
    async def test_unknown_submission_not_found(self, test_session: AsyncSession, teacher) -> None:
        teacher_profile, _ = teacher
        with pytest.raises(NotFoundError):
            await progression_service.approve_step(test_session, teacher_profile.id, 404)

    @pytest.mark.parametrize("score", [-1, 101])
    @pytest.mark.asyncio
    async def test_score_out_of_range(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher, score: int
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        await progression_service.start_step(test_session, profile.id, roadmap.steps[0].id)
        row = await progression_service.submit_evidence(
            test_session, profile.id, roadmap.steps[0].id, EVIDENCE
        )

        with pytest.raises(InvalidRequestError):
            await progression_service.approve_step(
                test_session, teacher_profile.id, row.id, validation_score=score
            )
        assert row.status == StepStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_approved_step_is_terminal(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        await _complete_step(test_session, profile.id, teacher_profile.id, roadmap.steps[0].id)

        with pytest.raises(ConflictError, match="already approved"):
            await progression_service.start_step(test_session, profile.id, roadmap.steps[0].id)
        with pytest.raises(ConflictError, match="already approved"):
            await progression_service.submit_evidence(
                test_session, profile.id, roadmap.steps[0].id, EVIDENCE
            )
