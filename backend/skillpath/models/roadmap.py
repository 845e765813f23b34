"""Roadmap catalog models: admin-authored learning paths and their steps."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillpath.core.database import Base
from skillpath.models.enums import (
    DifficultyLevel,
    RoadmapStatus,
    RoadmapVisibility,
    enum_type,
)
from skillpath.models.profile import TargetRole


class Roadmap(Base):
    """Named learning path bound to a target career role."""

    __tablename__ = "roadmaps"

    id: Mapped[int] = mapped_column(primary_key=True)
    target_role_id: Mapped[int] = mapped_column(ForeignKey("target_roles.id"))
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)

    visibility: Mapped[RoadmapVisibility] = mapped_column(
        enum_type(RoadmapVisibility), default=RoadmapVisibility.SCHOOL
    )
    status: Mapped[RoadmapStatus] = mapped_column(
        enum_type(RoadmapStatus), default=RoadmapStatus.DRAFT
    )
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"))

    # Set when the roadmap was drafted by the AI generator
    generation_metadata: Mapped[dict | None] = mapped_column(JSON)

    # Steps are kept as one ordered list; `step_order` is always 1..n
    steps: Mapped[list["RoadmapStep"]] = relationship(
        back_populates="roadmap",
        order_by="RoadmapStep.step_order",
        collection_class=ordering_list("step_order", count_from=1),
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    target_role: Mapped[TargetRole] = relationship(lazy="joined")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def total_duration(self) -> int:
        """Sum of the steps' estimated hours."""
        return sum(step.estimated_duration for step in self.steps)

    def step_after(self, step: "RoadmapStep") -> "RoadmapStep | None":
        """Successor of ``step`` in this roadmap, or None for the last step."""
        index = step.step_order  # 1-based order == 0-based index of the successor
        return self.steps[index] if index < len(self.steps) else None

    def step_before(self, step: "RoadmapStep") -> "RoadmapStep | None":
        index = step.step_order - 2
        return self.steps[index] if index >= 0 else None


class RoadmapStep(Base):
    """One unit of work within a roadmap."""

    __tablename__ = "roadmap_steps"
    # Contiguity is maintained by the ordering list, so the order index is
    # not unique at the DB level: renumbering would collide mid-flush.
    __table_args__ = (Index("ix_roadmap_steps_roadmap_order", "roadmap_id", "step_order"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    roadmap_id: Mapped[int] = mapped_column(ForeignKey("roadmaps.id", ondelete="CASCADE"))
    step_order: Mapped[int] = mapped_column(Integer)

    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    learning_objectives: Mapped[str] = mapped_column(Text)
    submission_guidelines: Mapped[str] = mapped_column(Text)
    resource_links: Mapped[list | None] = mapped_column(JSON)  # [{title, url, type, description}]
    estimated_duration: Mapped[int] = mapped_column(Integer)  # hours
    difficulty_level: Mapped[DifficultyLevel] = mapped_column(enum_type(DifficultyLevel))

    roadmap: Mapped[Roadmap] = relationship(back_populates="steps")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class RoadmapReviewer(Base):
    """Teacher explicitly assigned to review submissions for a roadmap."""

    __tablename__ = "roadmap_reviewers"

    roadmap_id: Mapped[int] = mapped_column(
        ForeignKey("roadmaps.id", ondelete="CASCADE"), primary_key=True
    )
    teacher_profile_id: Mapped[int] = mapped_column(
        ForeignKey("teacher_profiles.id", ondelete="CASCADE"), primary_key=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
