from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from sqlalchemy import DateTime
from sqlmodel import Column, Field, Relationship, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class PatchModel(SQLModel):
    """Partial update: only fields the caller sent are applied."""

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    def changes(self) -> dict[str, Any]:
        # An explicit null on a NOT NULL column means "leave it alone"
        return {
            k: v
            for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k in self.nullable_fields
        }


# --- Projects ---


class ProjectBase(SQLModel):
    """Base model with shared fields"""

    name: str = Field(min_length=1, max_length=255, index=True)
    description: str = Field(min_length=1, max_length=1000)
    status: ProjectStatus = Field(default=ProjectStatus.ACTIVE)


class Project(ProjectBase, table=True):
    """Database model"""

    __tablename__ = "projects"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    tasks: list["Task"] = Relationship(back_populates="project")


class ProjectCreate(ProjectBase):
    """Schema for creating a project"""

    pass


class ProjectUpdate(PatchModel):
    """Schema for updating a project - all fields optional"""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    status: ProjectStatus | None = None


class ProjectRead(ProjectBase):
    """Schema for project responses"""

    id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectSummary(SQLModel):
    """Owning project as embedded in task responses"""

    id: int
    name: str
    status: ProjectStatus

    model_config = {"from_attributes": True}


# --- Tasks ---


class TaskBase(SQLModel):
    """Base model with shared fields"""

    title: str = Field(min_length=1, max_length=255, index=True)
    description: str | None = Field(default=None, max_length=1000)
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    due_date: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class Task(TaskBase, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id", index=True)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    project: Project | None = Relationship(back_populates="tasks")


class TaskPayload(TaskBase):
    """Request body for creating a task under a project given in the path"""

    pass


class TaskCreate(TaskBase):
    """Schema for creating a task"""

    project_id: int = Field(gt=0)


class TaskUpdate(PatchModel):
    """Schema for updating a task - all fields optional"""

    nullable_fields: ClassVar[frozenset[str]] = frozenset({"description", "due_date"})

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    project_id: int | None = Field(default=None, gt=0)


class TaskRead(TaskBase):
    """Schema for task responses"""

    id: int
    project_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskReadWithProject(TaskRead):
    project: ProjectSummary | None = None


class ProjectReadWithTasks(ProjectRead):
    tasks: list[TaskRead] = []


# --- Listing ---


class Pagination(SQLModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        # ceil without floats
        return cls(page=page, limit=limit, total=total, total_pages=-(-total // limit))


class ListFilters(SQLModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class ProjectFilters(ListFilters):
    name: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    initial_date: date | None = None
    final_date: date | None = None


class TaskFilters(ListFilters):
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    project_id: int | None = None


class ProjectList(SQLModel):
    projects: list[ProjectRead]
    pagination: Pagination


class TaskList(SQLModel):
    tasks: list[TaskReadWithProject]
    pagination: Pagination
