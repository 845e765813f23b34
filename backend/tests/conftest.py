"""Shared fixtures: an in-memory database per test and seed-data factories."""

import itertools
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from skillpath.core.auth import Caller, Role
from skillpath.core.database import configure_sqlite, init_db
from skillpath.models import (
    Roadmap,
    RoadmapStep,
    StudentProfile,
    TargetRole,
    TeacherProfile,
    User,
)
from skillpath.models.enums import DifficultyLevel, RoadmapStatus

_ids = itertools.count(1)


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    configure_sqlite(engine)
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session


async def _user(session: AsyncSession, role: Role) -> User:
    user = User(email=f"{role.value}{next(_ids)}@school.test", role=role.value)
    session.add(user)
    await session.flush()
    return user


@pytest_asyncio.fixture
async def target_role(test_session: AsyncSession) -> TargetRole:
    role = TargetRole(name="Backend Developer", description="Builds server-side systems")
    test_session.add(role)
    await test_session.flush()
    return role


@pytest_asyncio.fixture
async def admin(test_session: AsyncSession) -> Caller:
    user = await _user(test_session, Role.ADMIN)
    return Caller(user_id=user.id, role=Role.ADMIN)


StudentFactory = Callable[..., Awaitable[tuple[StudentProfile, Caller]]]
TeacherFactory = Callable[..., Awaitable[tuple[TeacherProfile, Caller]]]
RoadmapFactory = Callable[..., Awaitable[Roadmap]]


@pytest_asyncio.fixture
async def make_student(test_session: AsyncSession) -> StudentFactory:
    async def _make(fullname: str = "Siti Rahma", student_class: str = "XII RPL 1"):
        user = await _user(test_session, Role.STUDENT)
        profile = StudentProfile(
            user=user,
            fullname=fullname,
            nis=f"2024{next(_ids):04d}",
            student_class=student_class,
        )
        test_session.add(profile)
        await test_session.flush()
        return profile, Caller(user_id=user.id, role=Role.STUDENT)

    return _make


@pytest_asyncio.fixture
async def make_teacher(test_session: AsyncSession) -> TeacherFactory:
    async def _make(fullname: str = "Budi Santoso"):
        user = await _user(test_session, Role.TEACHER)
        profile = TeacherProfile(user=user, fullname=fullname)
        test_session.add(profile)
        await test_session.flush()
        return profile, Caller(user_id=user.id, role=Role.TEACHER)

    return _make


@pytest_asyncio.fixture
async def make_roadmap(
    test_session: AsyncSession, target_role: TargetRole, admin: Caller
) -> RoadmapFactory:
    async def _make(
        steps: int = 3,
        status: RoadmapStatus = RoadmapStatus.ACTIVE,
        name: str = "Backend Fundamentals",
        role: TargetRole | None = None,
    ) -> Roadmap:
        roadmap = Roadmap(
            target_role=role or target_role,
            name=name,
            description="From HTTP basics to a deployed API",
            status=status,
            created_by=admin.user_id,
            steps=[
                RoadmapStep(
                    title=f"Step {i}",
                    description=f"Work through topic number {i}",
                    learning_objectives=f"Understand topic number {i}",
                    submission_guidelines="Share a link to your repository",
                    estimated_duration=10 * i,
                    difficulty_level=(
                        DifficultyLevel.ADVANCED if i == steps else DifficultyLevel.BEGINNER
                    ),
                )
                for i in range(1, steps + 1)
            ],
        )
        test_session.add(roadmap)
        await test_session.flush()
        return roadmap

    return _make


@pytest_asyncio.fixture
async def roadmap(make_roadmap: RoadmapFactory) -> Roadmap:
    """An active three-step roadmap."""
    return await make_roadmap()


@pytest_asyncio.fixture
async def student(make_student: StudentFactory) -> tuple[StudentProfile, Caller]:
    return await make_student()


@pytest_asyncio.fixture
async def teacher(make_teacher: TeacherFactory) -> tuple[TeacherProfile, Caller]:
    return await make_teacher()
