"""
Typed Exception Hierarchy for the Site Operations Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the access and approval core must react to failures precisely:
a user-facing "you may not approve this" differs from a stale-write retry,
which differs again from a corrupt hierarchy that has to page an operator.
Parsing messages for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.act_on_step(request_id, actor_id, decision, expected_version=3)
    except ConflictError:
        request = service.get_request(request_id)    # re-fetch, resubmit
    except ForbiddenError as e:
        api_response(status=403, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from SiteOpsError:

    SiteOpsError (base)
    |
    +-- NotFoundError
    |   +-- OrgUnitNotFoundError
    |   +-- UserNotFoundError
    |   +-- ApprovalRequestNotFoundError
    |   +-- ApprovalChainNotConfiguredError
    |
    +-- ForbiddenError
    |   +-- PermissionDeniedError
    |   +-- OutOfScopeError
    |   +-- ApprovalLimitExceededError
    |   +-- WrongApproverRoleError
    |   +-- NotInitiatorError
    |
    +-- InvalidStateError
    |   +-- ApprovalAlreadyResolvedError
    |   +-- RejectionCommentRequiredError
    |
    +-- ConflictError
    |   +-- ConcurrencyConflictError
    |
    +-- CorruptError
        +-- CorruptHierarchyError
        +-- CorruptApprovalRequestError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
NotFound        | ORG_UNIT_NOT_FOUND            | Unit id absent from the tree snapshot
                | USER_NOT_FOUND                | Directory has no such user
                | APPROVAL_REQUEST_NOT_FOUND    | Request id absent from the store
                | APPROVAL_CHAIN_NOT_CONFIGURED | No role sequence for approval type
----------------|-------------------------------|---------------------------------------
Forbidden       | PERMISSION_DENIED             | Role lacks resource/action grant
                | OUT_OF_SCOPE                  | Record's unit outside user scope
                | APPROVAL_LIMIT_EXCEEDED       | Amount above role approval limit
                | WRONG_APPROVER_ROLE           | Actor role != current step role
                | NOT_INITIATOR                 | Only the initiator may cancel
----------------|-------------------------------|---------------------------------------
InvalidState    | APPROVAL_ALREADY_RESOLVED     | Request is terminal
                | REJECTION_COMMENT_REQUIRED    | Reject without a comment
----------------|-------------------------------|---------------------------------------
Conflict        | CONCURRENCY_CONFLICT          | Expected version != stored version
----------------|-------------------------------|---------------------------------------
Corrupt         | CORRUPT_HIERARCHY             | Cycle, dangling parent, depth bound
                | CORRUPT_APPROVAL_REQUEST      | Stored status disagrees with steps

===============================================================================
HANDLING PATTERNS
===============================================================================

NotFound / Forbidden / InvalidState are terminal for the call and surfaced
directly for user-facing messaging.  ConflictError is the only retryable
category (``retryable = True``): re-fetch and resubmit against the new
version.  CorruptError must abort the operation and be reported; never work
around an inconsistent tree.
"""


class SiteOpsError(Exception):
    """
    Base exception for all site operations kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SITEOPS_ERROR"
    retryable: bool = False


# Not-found exceptions


class NotFoundError(SiteOpsError):
    """Base exception for absent units, users and requests."""

    code: str = "NOT_FOUND"


class OrgUnitNotFoundError(NotFoundError):
    """Org unit with given ID is not in the tree snapshot."""

    code: str = "ORG_UNIT_NOT_FOUND"

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        super().__init__(f"Org unit not found: {unit_id}")


class UserNotFoundError(NotFoundError):
    """User directory has no entry for the given ID."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class ApprovalRequestNotFoundError(NotFoundError):
    """Approval request with given ID was not found."""

    code: str = "APPROVAL_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Approval request not found: {request_id}")


class ApprovalChainNotConfiguredError(NotFoundError):
    """No role sequence is configured for the approval type."""

    code: str = "APPROVAL_CHAIN_NOT_CONFIGURED"

    def __init__(self, approval_type: str):
        self.approval_type = approval_type
        super().__init__(f"No approval chain configured for type: {approval_type}")


# Forbidden exceptions


class ForbiddenError(SiteOpsError):
    """Base exception for role, permission and scope mismatches."""

    code: str = "FORBIDDEN"


class PermissionDeniedError(ForbiddenError):
    """Role is not granted the action on the resource."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, role: str, resource: str, action: str):
        self.role = role
        self.resource = resource
        self.action = action
        super().__init__(
            f"Role {role} may not {action} on {resource}"
        )


class OutOfScopeError(ForbiddenError):
    """Record's org unit is outside the user's effective scope."""

    code: str = "OUT_OF_SCOPE"

    def __init__(self, user_id: str, unit_id: str):
        self.user_id = user_id
        self.unit_id = unit_id
        super().__init__(f"Org unit {unit_id} is outside the scope of user {user_id}")


class ApprovalLimitExceededError(ForbiddenError):
    """Amount is above the role's approval limit for the category."""

    code: str = "APPROVAL_LIMIT_EXCEEDED"

    def __init__(self, role: str, category: str, amount: str):
        self.role = role
        self.category = category
        self.amount = amount
        super().__init__(
            f"Role {role} may not approve {amount} in category {category}"
        )


class WrongApproverRoleError(ForbiddenError):
    """Actor's role does not match the role required by the current step."""

    code: str = "WRONG_APPROVER_ROLE"

    def __init__(
        self,
        request_id: str,
        step_index: int,
        required_role: str,
        actor_role: str,
    ):
        self.request_id = request_id
        self.step_index = step_index
        self.required_role = required_role
        self.actor_role = actor_role
        super().__init__(
            f"Step {step_index} of approval request {request_id} requires "
            f"{required_role}, actor has {actor_role}"
        )


class NotInitiatorError(ForbiddenError):
    """Only the initiator of a request may cancel it."""

    code: str = "NOT_INITIATOR"

    def __init__(self, request_id: str, actor_id: str):
        self.request_id = request_id
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} did not initiate approval request {request_id}"
        )


# Invalid-state exceptions


class InvalidStateError(SiteOpsError):
    """Base exception for operations not allowed in the current state."""

    code: str = "INVALID_STATE"


class ApprovalAlreadyResolvedError(InvalidStateError):
    """Approval request already reached a terminal status."""

    code: str = "APPROVAL_ALREADY_RESOLVED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Approval request {request_id} is already {status}"
        )


class RejectionCommentRequiredError(InvalidStateError):
    """A rejection must carry a non-empty comment."""

    code: str = "REJECTION_COMMENT_REQUIRED"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(
            f"Rejecting approval request {request_id} requires a comment"
        )


# Conflict exceptions


class ConflictError(SiteOpsError):
    """Base exception for concurrent-write conflicts. Safe to retry."""

    code: str = "CONFLICT"
    retryable: bool = True


class ConcurrencyConflictError(ConflictError):
    """Version-stamped compare-and-swap write lost the race."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(
        self,
        request_id: str,
        expected_version: int,
        actual_version: int | None = None,
    ):
        self.request_id = request_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Approval request {request_id} was modified concurrently: "
            f"expected version {expected_version}, found {actual_version}"
        )


# Corrupt-data exceptions


class CorruptError(SiteOpsError):
    """Base exception for inconsistent data. Not recoverable locally."""

    code: str = "CORRUPT"


class CorruptHierarchyError(CorruptError):
    """
    Org tree snapshot violates the forest invariant.

    Raised for a cycle, a dangling parent reference, a parentless non-PMO
    unit, or a traversal exceeding the depth bound.
    """

    code: str = "CORRUPT_HIERARCHY"

    def __init__(self, unit_id: str, reason: str):
        self.unit_id = unit_id
        self.reason = reason
        super().__init__(f"Corrupt org hierarchy at {unit_id}: {reason}")


class CorruptApprovalRequestError(CorruptError):
    """Stored approval request is internally inconsistent."""

    code: str = "CORRUPT_APPROVAL_REQUEST"

    def __init__(self, request_id: str, reason: str):
        self.request_id = request_id
        self.reason = reason
        super().__init__(f"Corrupt approval request {request_id}: {reason}")
