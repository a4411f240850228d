"""Project and commit selection against the SysML v2 API."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sysml_v2_sql.schema_resolution import IDENTIFIER_PROPERTY

from .fetch_models import CommitSelector, ModelReference, ProjectSelector
from .paginated_fetcher import FetchError, PaginatedFetcher

_LOGGER = logging.getLogger(__name__)


class ModelSelectionError(FetchError):
    """Raised when a project, branch or commit cannot be selected unambiguously."""


def validate_selectors(project: ProjectSelector, commit: CommitSelector) -> None:
    """Reject selector combinations that do not name exactly one project and commit."""
    if (project.project_id is None) == (project.project_name is None):
        raise ModelSelectionError("Select the project by exactly one of id or name.")
    commit_choices = [commit.commit_id, commit.branch_id, commit.branch_name]
    if sum(choice is not None for choice in commit_choices) > 1:
        raise ModelSelectionError(
            "Select the commit by at most one of commit id, branch id or name."
        )


async def resolve_model_reference(
    fetcher: PaginatedFetcher, project: ProjectSelector, commit: CommitSelector
) -> ModelReference:
    """Translate selectors into concrete project and commit identifiers."""
    validate_selectors(project, commit)
    project_id, project_record = await _resolve_project(fetcher, project)
    commit_id = await _resolve_commit(fetcher, project_id, project_record, commit)
    _LOGGER.info("selected project %s at commit %s", project_id, commit_id)
    return ModelReference(project_id=project_id, commit_id=commit_id)


async def _resolve_project(
    fetcher: PaginatedFetcher, project: ProjectSelector
) -> tuple[str, Mapping[str, Any] | None]:
    if project.project_id is not None:
        return project.project_id, None
    projects = (await fetcher.collect("projects")).records
    selected = _unique_prefix_match(projects, str(project.project_name), "project")
    return _identifier(selected, "project"), selected


async def _resolve_commit(
    fetcher: PaginatedFetcher,
    project_id: str,
    project_record: Mapping[str, Any] | None,
    commit: CommitSelector,
) -> str:
    if commit.commit_id is not None:
        return commit.commit_id
    if commit.branch_id is not None:
        branch = await fetcher.get_json(f"projects/{project_id}/branches/{commit.branch_id}")
        return _branch_head(branch)
    if commit.branch_name is not None:
        branches = (await fetcher.collect(f"projects/{project_id}/branches")).records
        return _branch_head(_unique_prefix_match(branches, commit.branch_name, "branch"))

    if project_record is None:
        project_record = await fetcher.get_json(f"projects/{project_id}")
    default_branch_id = _reference(project_record, "defaultBranch", f"project {project_id}")
    branch = await fetcher.get_json(f"projects/{project_id}/branches/{default_branch_id}")
    return _branch_head(branch)


def _unique_prefix_match(
    records: Sequence[Any], prefix: str, kind: str
) -> Mapping[str, Any]:
    candidates = [record for record in records if isinstance(record, Mapping)]
    matches = [
        record
        for record in candidates
        if isinstance(record.get("name"), str) and record["name"].startswith(prefix)
    ]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        available = ", ".join(repr(record.get("name")) for record in candidates) or "none"
        raise ModelSelectionError(f"No {kind} name starts with {prefix!r}; available: {available}.")
    names = ", ".join(repr(record["name"]) for record in matches)
    raise ModelSelectionError(
        f"{len(matches)} {kind} names start with {prefix!r} ({names}); please be more specific."
    )


def _branch_head(branch: Any) -> str:
    if not isinstance(branch, Mapping):
        raise ModelSelectionError("Branch response is not a JSON object.")
    return _reference(branch, "head", f"branch {branch.get(IDENTIFIER_PROPERTY, '?')}")


def _identifier(record: Mapping[str, Any], kind: str) -> str:
    value = record.get(IDENTIFIER_PROPERTY)
    if not isinstance(value, str):
        raise ModelSelectionError(f"Selected {kind} has no '{IDENTIFIER_PROPERTY}'.")
    return value


def _reference(record: Any, key: str, context: str) -> str:
    value = record.get(key) if isinstance(record, Mapping) else None
    if isinstance(value, Mapping) and isinstance(value.get(IDENTIFIER_PROPERTY), str):
        return str(value[IDENTIFIER_PROPERTY])
    raise ModelSelectionError(f"{context} has no '{key}' commit or branch reference.")
