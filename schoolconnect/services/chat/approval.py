# schoolconnect/services/chat/approval.py
"""Moderation rules for chat messages.

    pending  --approve--> approved
    rejected --approve--> approved
    pending  --reject-->  rejected
    any      --edit-->    initial status for the editor's role

Privileged roles skip moderation. Everything here is pure; the chat service
applies the result with a conditional UPDATE.
"""
from ...models.chat import ApprovalStatus
from ...models.user import UserRole
from ..permissions import can_moderate

APPROVABLE_FROM = (ApprovalStatus.PENDING, ApprovalStatus.REJECTED)
REJECTABLE_FROM = (ApprovalStatus.PENDING,)


def initial_status(role: UserRole) -> ApprovalStatus:
    return ApprovalStatus.APPROVED if can_moderate(role) else ApprovalStatus.PENDING


def status_after_edit(role: UserRole) -> ApprovalStatus:
    # An edit is judged like a fresh message from the same sender
    return initial_status(role)


def requires_reapproval(previous: ApprovalStatus, new: ApprovalStatus) -> bool:
    return new == ApprovalStatus.PENDING and previous in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED)

