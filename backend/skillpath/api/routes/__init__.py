"""API routes."""

from skillpath.api.routes import admin_roadmaps, student_roadmaps, teacher_roadmaps

__all__ = ["admin_roadmaps", "student_roadmaps", "teacher_roadmaps"]
