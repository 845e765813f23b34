"""Tests for student_service read views."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.exceptions import NotFoundError
from skillpath.models import QuestionnaireResponse, Roadmap, TargetRole
from skillpath.models.enums import DifficultyLevel, RoadmapStatus, StepStatus
from skillpath.schemas.common import PageParams
from skillpath.services import progression_service, student_service

EVIDENCE = "https://github.com/siti/backend-fundamentals"


async def _approve(db: AsyncSession, student_id: int, teacher_id: int, step_id: int, score: int | None = None):
    await progression_service.start_step(db, student_id, step_id)
    row = await progression_service.submit_evidence(db, student_id, step_id, EVIDENCE)
    return await progression_service.approve_step(db, teacher_id, row.id, validation_score=score)


class TestAvailableRoadmaps:
    @pytest.mark.asyncio
    async def test_lists_active_roadmaps_with_progress(
        self, test_session: AsyncSession, make_roadmap, student
    ) -> None:
        profile, _ = student
        started = await make_roadmap(name="Backend Fundamentals")
        await make_roadmap(name="Cloud Basics")
        await make_roadmap(name="Hidden Draft", status=RoadmapStatus.DRAFT)
        await progression_service.start_roadmap(test_session, profile.id, started.id)

        items, total = await student_service.get_available_roadmaps(
            test_session, profile.id, PageParams.clamp()
        )

        assert total == 2
        by_name = {item.name: item for item in items}
        assert set(by_name) == {"Backend Fundamentals", "Cloud Basics"}
        assert by_name["Backend Fundamentals"].is_started
        assert not by_name["Cloud Basics"].is_started
        assert by_name["Cloud Basics"].total_steps == 3
        assert by_name["Cloud Basics"].estimated_duration == 60
        assert by_name["Cloud Basics"].difficulty_level == DifficultyLevel.ADVANCED
        assert by_name["Cloud Basics"].role_name == "Backend Developer"

    @pytest.mark.asyncio
    async def test_recommended_only_follows_latest_questionnaire(
        self, test_session: AsyncSession, make_roadmap, student, target_role: TargetRole
    ) -> None:
        profile, _ = student
        designer = TargetRole(name="UI Designer")
        test_session.add(designer)
        await test_session.flush()
        await make_roadmap(name="Backend Fundamentals")
        await make_roadmap(name="Design Systems", role=designer)
        test_session.add(
            QuestionnaireResponse(student_profile_id=profile.id, recommended_role_id=designer.id)
        )
        await test_session.flush()

        items, total = await student_service.get_available_roadmaps(
            test_session, profile.id, PageParams.clamp(), recommended_only=True
        )

        assert total == 1
        assert items[0].name == "Design Systems"
        assert items[0].is_recommended

    @pytest.mark.asyncio
    async def test_recommended_only_without_questionnaire_is_empty(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        items, total = await student_service.get_available_roadmaps(
            test_session, profile.id, PageParams.clamp(), recommended_only=True
        )
        assert items == []
        assert total == 0


class TestRoadmapProgressView:
    @pytest.mark.asyncio
    async def test_preview_before_start(self, test_session: AsyncSession, roadmap: Roadmap, student) -> None:
        profile, _ = student

        view = await student_service.get_roadmap_progress(test_session, profile.id, roadmap.id)

        assert view.id is None
        assert view.total_steps == 3
        assert [s.status for s in view.steps] == [
            StepStatus.UNLOCKED,
            StepStatus.LOCKED,
            StepStatus.LOCKED,
        ]
        assert view.steps[0].can_start
        assert view.steps[1].is_locked

    @pytest.mark.asyncio
    async def test_inactive_roadmap_hidden_before_start(
        self, test_session: AsyncSession, make_roadmap, student
    ) -> None:
        profile, _ = student
        draft = await make_roadmap(status=RoadmapStatus.DRAFT)

        with pytest.raises(NotFoundError):
            await student_service.get_roadmap_progress(test_session, profile.id, draft.id)

    @pytest.mark.asyncio
    async def test_hints_follow_status(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        await _approve(test_session, profile.id, teacher_profile.id, roadmap.steps[0].id)
        await progression_service.start_step(test_session, profile.id, roadmap.steps[1].id)
        row = await progression_service.submit_evidence(
            test_session, profile.id, roadmap.steps[1].id, EVIDENCE
        )
        await progression_service.reject_step(
            test_session, teacher_profile.id, row.id, validation_notes="Missing tests"
        )

        view = await student_service.get_roadmap_progress(test_session, profile.id, roadmap.id)

        assert view.id is not None
        assert view.completed_steps == 1
        first, second, third = view.steps
        assert first.status == StepStatus.APPROVED
        assert not first.can_start and not first.can_submit
        assert second.status == StepStatus.REJECTED
        assert second.can_submit and not second.can_start
        assert second.validation_notes == "Missing tests"
        assert third.is_locked


class TestStepView:
    @pytest.mark.asyncio
    async def test_neighbours_and_steps_left(
        self, test_session: AsyncSession, roadmap: Roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        await progression_service.start_roadmap(test_session, profile.id, roadmap.id)
        await _approve(test_session, profile.id, teacher_profile.id, roadmap.steps[0].id)

        detail = await student_service.get_step_progress(test_session, profile.id, roadmap.steps[1].id)

        assert detail.step.status == StepStatus.UNLOCKED
        assert detail.previous_step.status == StepStatus.APPROVED
        assert detail.next_step.order == 3
        assert detail.next_step.status == StepStatus.LOCKED
        assert detail.steps_left == 2

    @pytest.mark.asyncio
    async def test_requires_started_roadmap(
        self, test_session: AsyncSession, roadmap: Roadmap, student
    ) -> None:
        profile, _ = student
        with pytest.raises(NotFoundError):
            await student_service.get_step_progress(test_session, profile.id, roadmap.steps[0].id)


class TestMyProgress:
    @pytest.mark.asyncio
    async def test_active_and_completed_roadmaps(
        self, test_session: AsyncSession, make_roadmap, student, teacher
    ) -> None:
        profile, _ = student
        teacher_profile, _ = teacher
        short = await make_roadmap(steps=2, name="Git Essentials")
        long = await make_roadmap(steps=3, name="Backend Fundamentals")

        await progression_service.start_roadmap(test_session, profile.id, short.id)
        await _approve(test_session, profile.id, teacher_profile.id, short.steps[0].id, score=80)
        await _approve(test_session, profile.id, teacher_profile.id, short.steps[1].id, score=90)
        await progression_service.start_roadmap(test_session, profile.id, long.id)
        await _approve(test_session, profile.id, teacher_profile.id, long.steps[0].id)

        overview = await student_service.get_my_progress(test_session, profile.id)

        assert [r.roadmap_name for r in overview.completed_roadmaps] == ["Git Essentials"]
        completed = overview.completed_roadmaps[0]
        assert completed.average_score == pytest.approx(85.0)
        assert completed.total_duration == 30

        assert [r.roadmap_name for r in overview.active_roadmaps] == ["Backend Fundamentals"]
        assert overview.active_roadmaps[0].current_step.order == 2

        stats = overview.overall_stats
        assert stats.total_roadmaps_started == 2
        assert stats.total_roadmaps_completed == 1
        assert stats.total_steps_completed == 3
        assert stats.total_hours_spent == 40
        assert stats.average_completion_rate == pytest.approx((100 + 100 / 3) / 2, abs=0.01)

    @pytest.mark.asyncio
    async def test_empty_dashboard(self, test_session: AsyncSession, student) -> None:
        profile, _ = student
        overview = await student_service.get_my_progress(test_session, profile.id)

        assert overview.active_roadmaps == []
        assert overview.completed_roadmaps == []
        assert overview.overall_stats.average_completion_rate == 0.0
