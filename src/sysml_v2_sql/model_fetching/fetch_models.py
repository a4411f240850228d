"""Model fetching entities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ModelReference:
    """Project and commit whose elements are fetched."""

    project_id: str
    commit_id: str


@dataclass(frozen=True)
class Page:
    """One page of a paginated listing."""

    url: str
    records: tuple[Any, ...]
    next_url: str | None


@dataclass(frozen=True)
class FetchedElements:
    """All records of a paginated listing in page order."""

    records: tuple[Any, ...]
    page_count: int


@dataclass(frozen=True)
class ProjectSelector:
    """Select a project by identifier or by unique name prefix."""

    project_id: str | None = None
    project_name: str | None = None


@dataclass(frozen=True)
class CommitSelector:
    """Select a commit directly, through a branch, or via the project's default branch."""

    commit_id: str | None = None
    branch_id: str | None = None
    branch_name: str | None = None
