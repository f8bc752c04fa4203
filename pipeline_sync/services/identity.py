"""
Identity Resolver component.

Derives the stable tracking identity of a feature from a normalized event.
The identity is always keyed by the feature branch, never by the target
branch, so one board item follows a feature from first push to merge.
"""

import re
from typing import Iterable, Optional

from pipeline_sync.models.events import PipelineEvent, TrackingIdentity


# Trailing external ticket id, e.g. "test-check-git-native-2510556391"
TRAILING_ID_PATTERN = re.compile(r"[-_]?\d{9,10}$")


class IdentityUnresolvable(Exception):
    """Raised when no tracking name can be derived from an event."""
    pass


def strip_trailing_id(name: str) -> str:
    """
    Remove a trailing run of 9-10 digits, optionally dash/underscore prefixed.

    Names made only of such a run are returned unchanged.

    Examples:
        release-v1.0-9876543210 -> release-v1.0
        bugfix-123 -> bugfix-123
    """
    stripped = TRAILING_ID_PATTERN.sub("", name)
    return stripped or name


class IdentityPolicy:
    """Transformation applied to a tracking identity after resolution."""

    def apply(self, identity: TrackingIdentity) -> TrackingIdentity:
        return identity


class TrailingTicketIdPolicy(IdentityPolicy):
    """
    Strips a trailing ticket id from the canonical name.

    The unstripped name is kept as the secondary name so items created
    before the policy was enabled are still found.
    """

    def apply(self, identity: TrackingIdentity) -> TrackingIdentity:
        stripped = strip_trailing_id(identity.canonical_name)
        if stripped == identity.canonical_name:
            return identity
        return TrackingIdentity(
            canonical_name=stripped,
            secondary_name=identity.canonical_name,
        )


def resolve_identity(
    event: PipelineEvent,
    policies: Iterable[IdentityPolicy] = ()
) -> TrackingIdentity:
    """
    Resolve the tracking identity of an event.

    Priority order:
    1. Pull request head branch, when the event has pull request context
    2. Branch extracted from a merge commit message
    3. Ref-derived branch (including the PR-<number> fallback)
    4. Commit-<first 8 chars of commit id>

    Args:
        event: Normalized event
        policies: Name policies applied in order after resolution

    Returns:
        TrackingIdentity whose secondary name is PR-<number> when known

    Raises:
        IdentityUnresolvable: If no step yields a name
    """
    name: Optional[str] = None
    if event.has_pull_request_context and event.source_branch:
        name = event.source_branch
    elif event.merge_source_branch:
        name = event.merge_source_branch
    elif event.source_branch:
        name = event.source_branch
    elif event.ref_branch:
        name = event.ref_branch
    elif event.commit_id:
        name = f"Commit-{event.commit_id[:8]}"

    if not name:
        raise IdentityUnresolvable(
            f"No tracking name derivable from {event.event_kind.value} event"
        )

    secondary = None
    if event.pull_request_number is not None:
        pr_name = f"PR-{event.pull_request_number}"
        if pr_name != name:
            secondary = pr_name

    identity = TrackingIdentity(canonical_name=name, secondary_name=secondary)
    for policy in policies:
        identity = policy.apply(identity)
    return identity


def build_policies(strip_trailing_ticket_id: bool) -> list[IdentityPolicy]:
    """Build the configured identity policies."""
    policies: list[IdentityPolicy] = []
    if strip_trailing_ticket_id:
        policies.append(TrailingTicketIdPolicy())
    return policies
