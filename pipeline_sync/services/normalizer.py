"""
Webhook Normalizer component.

Maps raw GitHub webhook payloads onto the canonical PipelineEvent. The
merge markers and branch extraction patterns are kept as explicit rule
tables so they can be extended without touching the parsing flow.
"""

import re
from typing import Any, Dict, Optional

from pipeline_sync.models.events import (
    NO_COMMIT_MESSAGE,
    UNKNOWN_ACTOR,
    EventKind,
    PipelineEvent,
    RepositoryRef,
)
from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)


# Commit message substrings marking a merge commit
MERGE_MARKERS = (
    "Merge pull request",
    "Merge branch",
)

# Patterns extracting the merged branch from a merge commit message,
# e.g. "Merge pull request #8 from alice/feature-x"
MERGE_SOURCE_PATTERNS = (
    re.compile(r"from [^/\s]+/(\S+)"),
)

# Pattern extracting the pull request number from a merge commit message
PULL_REQUEST_REFERENCE = re.compile(r"Merge pull request #(\d+)")

MAIN_BRANCHES = frozenset({"main", "master"})

REF_PREFIX = "refs/heads/"


class MalformedPayload(Exception):
    """Raised when a webhook payload cannot be parsed structurally."""
    pass


def is_merge_message(message: str) -> bool:
    return any(marker in message for marker in MERGE_MARKERS)


def extract_merge_source(message: str) -> Optional[str]:
    """
    Extract the merged branch from a merge commit message.

    Args:
        message: Commit message

    Returns:
        Branch name, or None if no pattern matches
    """
    for pattern in MERGE_SOURCE_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1).strip()
    return None


def extract_pull_request_number(message: str) -> Optional[int]:
    match = PULL_REQUEST_REFERENCE.search(message)
    return int(match.group(1)) if match else None


def branch_from_ref(ref: Optional[str]) -> str:
    """Strip the refs/heads/ prefix from a git ref."""
    if not ref:
        return ""
    if ref.startswith(REF_PREFIX):
        return ref[len(REF_PREFIX):]
    return ref


def _login(user: Any) -> Optional[str]:
    if isinstance(user, dict):
        login = user.get("login")
        return login if isinstance(login, str) and login else None
    return None


def _object(container: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Return an optional object member; absent or null becomes {}."""
    value = container.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedPayload(f"{key} member must be an object")
    return value


def _text(container: Dict[str, Any], key: str) -> str:
    """Return an optional string member; absent or null becomes ''."""
    value = container.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedPayload(f"{key} member must be a string")
    return value


def _number(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MalformedPayload(f"Pull request number {value!r} is not an integer") from e


class WebhookNormalizer:
    """Normalizes GitHub webhook payloads into PipelineEvents."""

    def normalize(self, event_header: Optional[str], payload: Any) -> PipelineEvent:
        """
        Normalize a webhook payload.

        Args:
            event_header: Value of the X-GitHub-Event header
            payload: Parsed JSON body

        Returns:
            Canonical PipelineEvent; event_kind is 'unknown' when the payload
            carries neither a pull request nor a head commit

        Raises:
            MalformedPayload: If the payload is structurally unparseable
        """
        if not isinstance(payload, dict):
            raise MalformedPayload("Webhook payload must be a JSON object")

        if payload.get("pull_request") is not None:
            event = self._normalize_pull_request(event_header, payload)
        elif payload.get("head_commit") is not None:
            event = self._normalize_push(payload)
        else:
            event = PipelineEvent(
                event_kind=EventKind.UNKNOWN,
                action=_text(payload, "action") or None,
                repository=self._repository(payload, required=False),
                actor=_login(payload.get("sender")) or UNKNOWN_ACTOR,
                ref_branch=branch_from_ref(_text(payload, "ref")),
            )

        logger.debug(
            f"Normalized {event_header or 'unlabelled'} webhook as {event.event_kind.value}",
            extra={
                "event_kind": event.event_kind.value,
                "repository": event.repository.full_name,
                "source_branch": event.source_branch,
                "is_merge_commit": event.is_merge_commit,
            }
        )
        return event

    def _repository(self, payload: Dict[str, Any], required: bool) -> RepositoryRef:
        repository = payload.get("repository")
        if repository is None and not required:
            return RepositoryRef()
        if not isinstance(repository, dict):
            raise MalformedPayload("Webhook payload has no repository object")
        return RepositoryRef(
            full_name=_text(repository, "full_name") or "Unknown",
            html_url=_text(repository, "html_url"),
        )

    def _normalize_pull_request(
        self,
        event_header: Optional[str],
        payload: Dict[str, Any]
    ) -> PipelineEvent:
        pull_request = payload["pull_request"]
        if not isinstance(pull_request, dict):
            raise MalformedPayload("pull_request member must be an object")

        repository = self._repository(payload, required=True)
        action = _text(payload, "action") or None
        head = _object(pull_request, "head")
        base = _object(pull_request, "base")

        number = _number(pull_request.get("number") or payload.get("number"))

        source_branch = _text(head, "ref")
        if not source_branch and number is not None:
            source_branch = f"PR-{number}"
        if not source_branch:
            raise MalformedPayload("Pull request payload names neither a head ref nor a number")

        merged = action == "closed" and bool(pull_request.get("merged"))
        title = _text(pull_request, "title")
        sender = _login(payload.get("sender"))

        kind = EventKind.PULL_REQUEST
        reviewer = None
        review_state = None
        if event_header == EventKind.PULL_REQUEST_REVIEW.value:
            kind = EventKind.PULL_REQUEST_REVIEW
            review = _object(payload, "review")
            reviewer = _login(review.get("user")) or sender or UNKNOWN_ACTOR
            review_state = _text(review, "state") or None
        elif merged:
            reviewer = _login(pull_request.get("merged_by")) or sender or UNKNOWN_ACTOR

        return PipelineEvent(
            event_kind=kind,
            action=action,
            repository=repository,
            actor=_login(pull_request.get("user")) or sender or UNKNOWN_ACTOR,
            commit_id=_text(head, "sha"),
            commit_message=title or NO_COMMIT_MESSAGE,
            source_branch=source_branch,
            target_branch=_text(base, "ref"),
            is_merge_commit=merged,
            is_main_branch=False,
            pull_request_url=_text(pull_request, "html_url"),
            pull_request_number=number,
            pull_request_title=title or None,
            reviewer=reviewer,
            review_state=review_state,
        )

    def _normalize_push(self, payload: Dict[str, Any]) -> PipelineEvent:
        head_commit = payload["head_commit"]
        if not isinstance(head_commit, dict):
            raise MalformedPayload("head_commit member must be an object")

        repository = self._repository(payload, required=True)
        ref_branch = branch_from_ref(_text(payload, "ref"))
        message = _text(head_commit, "message") or NO_COMMIT_MESSAGE

        commit_id = _text(head_commit, "id")
        commits = payload.get("commits")
        if not commit_id and isinstance(commits, list) and commits and isinstance(commits[0], dict):
            commit_id = _text(commits[0], "id")

        author = _object(head_commit, "author")
        actor = (
            _text(author, "username")
            or _text(author, "name")
            or _login(payload.get("sender"))
            or UNKNOWN_ACTOR
        )

        is_merge = is_merge_message(message)
        merge_source = None
        number = None
        if is_merge:
            merge_source = extract_merge_source(message)
            number = extract_pull_request_number(message)

        if merge_source:
            source_branch = merge_source
        elif number is not None:
            source_branch = f"PR-{number}"
        else:
            source_branch = ref_branch

        if not source_branch and commit_id:
            source_branch = f"Commit-{commit_id[:8]}"
        if not source_branch:
            raise MalformedPayload("Push payload names neither a ref nor a commit")

        return PipelineEvent(
            event_kind=EventKind.PUSH,
            action=_text(payload, "action") or "push",
            repository=repository,
            actor=actor,
            commit_id=commit_id,
            commit_message=message,
            ref_branch=ref_branch,
            source_branch=source_branch,
            merge_source_branch=merge_source,
            is_merge_commit=is_merge,
            is_main_branch=source_branch in MAIN_BRANCHES,
            pull_request_number=number,
        )
