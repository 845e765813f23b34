"""SkillPath roadmap progression backend."""
