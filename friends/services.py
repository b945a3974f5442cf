"""
Friend relationship state machine.

    (none) -> Pending -> Confirmed | Rejected
    Rejected -> Pending
    any -> (none) by deletion

RelationshipService applies these rules and the participant checks on top
of RelationshipStore. Violations are raised as typed errors and never
retried; database errors propagate unchanged.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Set

from habitly.config import HabitlyConfig
from habitly.context import CallContext
from habitly.exceptions import ValidationFailure
from habitly.validators import coerce_pagination, validate_status_code
from .exceptions import (
    AlreadyFriends,
    Conflict,
    Forbidden,
    InvalidTransition,
    Mismatch,
    NotFound,
    RequestAlreadySent,
)
from .models import Relationship, RelationshipStatus
from .store import RelationshipStore

logger = logging.getLogger('habitly')

ALLOWED_TRANSITIONS = {
    (RelationshipStatus.PENDING, RelationshipStatus.CONFIRMED),
    (RelationshipStatus.PENDING, RelationshipStatus.REJECTED),
    (RelationshipStatus.REJECTED, RelationshipStatus.PENDING),
}

# Only the target may answer a pending request.
TARGET_ONLY_TRANSITIONS = {
    (RelationshipStatus.PENDING, RelationshipStatus.CONFIRMED),
    (RelationshipStatus.PENDING, RelationshipStatus.REJECTED),
}


@dataclass
class RelationshipPage:
    items: List[Relationship]
    total: int
    page: int
    page_size: int


class RelationshipService:
    """
    Friend request, confirmation and removal rules.
    """

    def __init__(self, store: Optional[RelationshipStore] = None,
                 config: Optional[HabitlyConfig] = None):
        self.store = store or RelationshipStore()
        self.config = config or HabitlyConfig.from_settings()

    def request_friendship(self, user_id: int, target_id: int,
                           ctx: Optional[CallContext] = None) -> Relationship:
        """
        Send a friend request from user_id to target_id.

        A pending request in the opposite direction is treated as acceptance
        and confirms the existing relationship. A rejected relationship is
        reopened as a new pending request from user_id.
        """
        if user_id == target_id:
            raise ValidationFailure("You cannot send a friend request to yourself.")

        def _request(store):
            existing = store.find_pair_relationship(user_id, target_id, ctx=ctx, for_update=True)
            if existing is None:
                return store.create(user_id, target_id, ctx=ctx)

            if existing.status == RelationshipStatus.CONFIRMED:
                raise AlreadyFriends()

            if existing.status == RelationshipStatus.PENDING:
                if existing.initiator_id == target_id:
                    store.update_status(existing.pk, RelationshipStatus.CONFIRMED, ctx=ctx)
                    logger.info(f"Mutual friend request confirmed relationship {existing.pk}")
                    return store.find_by_id(existing.pk, ctx=ctx)
                raise RequestAlreadySent()

            if existing.status == RelationshipStatus.REJECTED:
                store.reopen(existing.pk, user_id, target_id, ctx=ctx)
                return store.find_by_id(existing.pk, ctx=ctx)

            raise Conflict()

        return self.store.with_transaction(_request)

    def update_status_verified(self, relationship_id: int, acting_user_id: int,
                               counterparty_id: int, new_status,
                               ctx: Optional[CallContext] = None) -> Optional[Relationship]:
        """
        Change a relationship's status on behalf of acting_user_id.

        Raises NotFound when the relationship does not exist, Forbidden when
        the acting user is not a participant, and Mismatch when
        counterparty_id is not the other participant. Requesting Deleted
        removes the relationship and returns None.
        """
        new_status = validate_status_code(new_status, RelationshipStatus.values)

        def _update(store):
            relationship = store.find_by_id(relationship_id, ctx=ctx, for_update=True)
            if relationship is None:
                raise NotFound()
            if not relationship.involves(acting_user_id):
                raise Forbidden()
            if relationship.counterpart_of(acting_user_id) != counterparty_id:
                raise Mismatch()

            if new_status == RelationshipStatus.DELETED:
                store.delete(relationship.pk, acting_user_id, ctx=ctx)
                return None

            current = relationship.status
            if new_status == current:
                return relationship
            transition = (current, new_status)
            if transition not in ALLOWED_TRANSITIONS:
                raise InvalidTransition(
                    f"Cannot change status from {RelationshipStatus(current).label} "
                    f"to {RelationshipStatus(new_status).label}."
                )
            if transition in TARGET_ONLY_TRANSITIONS and acting_user_id != relationship.target_id:
                raise Forbidden("Only the recipient can accept or decline a friend request.")

            store.update_status(relationship.pk, new_status, ctx=ctx)
            return store.find_by_id(relationship.pk, ctx=ctx)

        return self.store.with_transaction(_update)

    def list_friends(self, user_id: int, ctx: Optional[CallContext] = None) -> List[Relationship]:
        return self.store.find_active_by_either_side(user_id, ctx=ctx)

    def list_friends_paged(self, user_id: int, page=None, size=None, keyword: str = '',
                           ctx: Optional[CallContext] = None) -> RelationshipPage:
        page, size = coerce_pagination(page, size, self.config)
        items, total = self.store.find_friends_paged(user_id, page, size, keyword, ctx=ctx)
        return RelationshipPage(items=items, total=total, page=page, page_size=size)

    def list_incoming_requests(self, user_id: int, page=None, size=None,
                               ctx: Optional[CallContext] = None) -> RelationshipPage:
        page, size = coerce_pagination(page, size, self.config)
        items, total = self.store.find_pending_requests_targeting(user_id, page, size, ctx=ctx)
        return RelationshipPage(items=items, total=total, page=page, page_size=size)

    def remove_friend(self, relationship_id: int, acting_user_id: int,
                      ctx: Optional[CallContext] = None) -> None:
        self.store.delete(relationship_id, acting_user_id, ctx=ctx)

    def get_relationship(self, user_a: int, user_b: int,
                         ctx: Optional[CallContext] = None) -> Optional[Relationship]:
        return self.store.find_pair_relationship(user_a, user_b, ctx=ctx)

    def get_relationship_by_id(self, relationship_id: int,
                               ctx: Optional[CallContext] = None) -> Optional[Relationship]:
        return self.store.find_by_id(relationship_id, ctx=ctx)

    def friend_identifiers(self, user_id: int, ctx: Optional[CallContext] = None) -> Set[int]:
        return self.store.find_friend_identifiers(user_id, ctx=ctx)

    def ranking_cohort(self, user_id: int, ctx: Optional[CallContext] = None) -> List[int]:
        """
        Return user_id followed by its confirmed friends in ascending id order
        """
        friend_ids = self.store.find_friend_identifiers(user_id, ctx=ctx)
        friend_ids.discard(user_id)
        return [user_id] + sorted(friend_ids)
