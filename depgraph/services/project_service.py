import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from depgraph.models.db import Project
from depgraph.models.repo import ProjectCreate, ProjectOut

logger = logging.getLogger("project_service")


class ProjectService:
    @staticmethod
    async def create_project(db: AsyncSession, data: ProjectCreate) -> Project:
        project = Project(
            name=data.name,
            github_url=data.githubUrl,
            github_token=data.githubToken,
        )
        db.add(project)
        await db.commit()
        await db.refresh(project)
        logger.info(f"Created project {project.id} ({project.github_url or 'local only'})")
        return project

    @staticmethod
    async def get_project(db: AsyncSession, project_id: str) -> Optional[Project]:
        result = await db.execute(select(Project).where(Project.id == project_id))
        return result.scalar_one_or_none()

    @staticmethod
    def to_out(project: Project) -> ProjectOut:
        """Serialize without the access token."""
        return ProjectOut(
            id=project.id,
            name=project.name,
            githubUrl=project.github_url,
            createdAt=project.created_at,
        )
