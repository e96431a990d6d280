"""Access decision policy: turns a matcher outcome into an access status."""

from typing import Optional

from access_control.models.internal_models import AccessStatus, IdentityType, MatchResult


def decide_access(match: Optional[MatchResult]) -> AccessStatus:
    """
    Resolve the access status for one scan.

    Expired temporary identities never reach the matcher, so a VISITOR
    status always corresponds to a currently valid temporary grant.
    """
    if match is None:
        return AccessStatus.DENIED

    if match.identity.identity_type is IdentityType.TEMPORARY:
        return AccessStatus.VISITOR

    return AccessStatus.IDENTIFIED
