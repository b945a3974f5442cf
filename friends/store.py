"""
Persistence for friend relationships.

All reads and writes of the friends_relationship table go through
RelationshipStore. Multi-step mutations run inside ``transaction.atomic``;
the unique constraint on the ordered pair (user_low, user_high) is the
final word on whether a second relationship may be created for a pair.
"""

import logging
from contextlib import contextmanager

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from habitly.context import check
from habitly.exceptions import ValidationFailure
from habitly.validators import page_offset, validate_status_code
from .exceptions import Conflict, NotFound
from .models import Relationship, RelationshipStatus

logger = logging.getLogger('habitly')

STORED_STATUSES = (
    RelationshipStatus.PENDING,
    RelationshipStatus.CONFIRMED,
    RelationshipStatus.REJECTED,
)


def pair_filter(user_a, user_b):
    """Match the pair in either orientation."""
    return Q(initiator_id=user_a, target_id=user_b) | Q(initiator_id=user_b, target_id=user_a)


def participant_filter(user_id):
    return Q(initiator_id=user_id) | Q(target_id=user_id)


class RelationshipStore:
    """
    Relationship persistence on top of the Django ORM.
    """

    def __init__(self, using=None):
        self.using = using

    def _queryset(self):
        return Relationship.objects.using(self.using)

    @contextmanager
    def atomic(self):
        with transaction.atomic(using=self.using):
            yield self

    def with_transaction(self, fn):
        """
        Run ``fn(store)`` so that every store call it makes commits or rolls
        back together.
        """
        with self.atomic():
            return fn(self)

    def _storable_status(self, status):
        status = validate_status_code(status, RelationshipStatus.values)
        if status not in STORED_STATUSES:
            raise ValidationFailure(
                "Deleted is never stored; delete the relationship instead."
            )
        return status

    # Queries

    def find_active_by_either_side(self, user_id, ctx=None):
        """
        Return every confirmed relationship in which user_id is initiator or target
        """
        check(ctx)
        relationships = list(
            self._queryset()
            .filter(participant_filter(user_id), status=RelationshipStatus.CONFIRMED)
            .select_related('initiator', 'target')
        )
        check(ctx)
        return relationships

    def find_friend_identifiers(self, user_id, ctx=None):
        """
        Return the set of confirmed friend ids for user_id, looking at both
        the forward (initiator) and reverse (target) side.
        """
        check(ctx)
        confirmed = self._queryset().filter(status=RelationshipStatus.CONFIRMED)
        forward = confirmed.filter(initiator_id=user_id).values_list('target_id', flat=True)
        reverse = confirmed.filter(target_id=user_id).values_list('initiator_id', flat=True)
        friend_ids = set(forward)
        check(ctx)
        friend_ids.update(reverse)
        check(ctx)
        return friend_ids

    def find_pair_relationship(self, user_a, user_b, ctx=None, for_update=False):
        """
        Return the relationship between two users in either orientation, or None.
        """
        check(ctx)
        queryset = self._queryset().filter(pair_filter(user_a, user_b))
        if for_update:
            queryset = queryset.select_for_update()
        relationship = queryset.first()
        check(ctx)
        return relationship

    def find_pending_requests_targeting(self, user_id, page, size, ctx=None):
        """
        Return (relationships, total) for pending requests sent to user_id
        """
        check(ctx)
        queryset = self._queryset().filter(target_id=user_id, status=RelationshipStatus.PENDING)
        total = queryset.count()
        offset = page_offset(page, size)
        relationships = list(queryset.select_related('initiator')[offset:offset + size])
        check(ctx)
        return relationships, total

    def find_friends_paged(self, user_id, page, size, keyword='', ctx=None):
        """
        Return (relationships, total) for confirmed friendships of user_id.

        When keyword is given only friends whose nickname or username
        contains it (case-insensitive) are returned.
        """
        check(ctx)
        queryset = self._queryset().filter(
            participant_filter(user_id), status=RelationshipStatus.CONFIRMED
        )
        keyword = (keyword or '').strip()
        if keyword:
            target_matches = Q(target__nickname__icontains=keyword) | Q(target__username__icontains=keyword)
            initiator_matches = Q(initiator__nickname__icontains=keyword) | Q(initiator__username__icontains=keyword)
            queryset = queryset.filter(
                (Q(initiator_id=user_id) & target_matches) | (Q(target_id=user_id) & initiator_matches)
            )
        total = queryset.count()
        offset = page_offset(page, size)
        relationships = list(queryset.select_related('initiator', 'target')[offset:offset + size])
        check(ctx)
        return relationships, total

    def find_by_id(self, relationship_id, ctx=None, for_update=False):
        check(ctx)
        queryset = self._queryset().filter(pk=relationship_id)
        if for_update:
            queryset = queryset.select_for_update()
        relationship = queryset.first()
        check(ctx)
        return relationship

    # Mutations

    def _pair_exists(self, user_a, user_b):
        return self._queryset().filter(pair_filter(user_a, user_b)).exists()

    def create(self, initiator_id, target_id, status=RelationshipStatus.PENDING, ctx=None):
        """
        Insert a new relationship. Raises Conflict when the pair already has
        one in either orientation, including when a concurrent insert wins
        the race on the pair constraint. Any other integrity error, such as
        an unknown user id, propagates unchanged.
        """
        if initiator_id == target_id:
            raise ValidationFailure("A relationship needs two different users.")
        status = self._storable_status(status)
        check(ctx)
        try:
            with transaction.atomic(using=self.using):
                if self._pair_exists(initiator_id, target_id):
                    raise Conflict()
                relationship = Relationship(
                    initiator_id=initiator_id,
                    target_id=target_id,
                    status=status,
                )
                relationship.save(using=self.using)
        except IntegrityError as e:
            # the pair constraint fired only if the pair now has a row
            if self.find_pair_relationship(initiator_id, target_id) is None:
                raise
            raise Conflict() from e
        logger.info(
            f"Created relationship {relationship.pk}: {initiator_id} -> {target_id} "
            f"({relationship.get_status_display()})"
        )
        return relationship

    def update_status(self, relationship_id, new_status, ctx=None):
        """
        Overwrite the status and refresh updated_at. Transition rules are the
        service's job; this only refuses unknown codes and Deleted.
        """
        new_status = self._storable_status(new_status)
        check(ctx)
        with transaction.atomic(using=self.using):
            updated = self._queryset().filter(pk=relationship_id).update(
                status=new_status,
                updated_at=timezone.now(),
            )
        if not updated:
            raise NotFound()
        logger.info(
            f"Updated relationship {relationship_id} status to {RelationshipStatus(new_status).label}"
        )

    def reopen(self, relationship_id, initiator_id, target_id, ctx=None):
        """
        Reset a relationship to Pending with initiator_id as the new requester.
        The pair itself cannot change.
        """
        user_low, user_high = sorted((initiator_id, target_id))
        check(ctx)
        with transaction.atomic(using=self.using):
            updated = self._queryset().filter(
                pk=relationship_id, user_low=user_low, user_high=user_high
            ).update(
                initiator_id=initiator_id,
                target_id=target_id,
                status=RelationshipStatus.PENDING,
                updated_at=timezone.now(),
            )
        if not updated:
            raise NotFound()
        logger.info(f"Reopened relationship {relationship_id}: {initiator_id} -> {target_id} (Pending)")

    def delete(self, relationship_id, requesting_user_id, ctx=None):
        """
        Hard-delete a relationship. Raises NotFound when the row does not
        exist or requesting_user_id is not one of its participants.
        """
        check(ctx)
        with transaction.atomic(using=self.using):
            deleted, _ = self._queryset().filter(
                Q(pk=relationship_id) & participant_filter(requesting_user_id)
            ).delete()
        if not deleted:
            raise NotFound()
        logger.info(f"Deleted relationship {relationship_id} at the request of user {requesting_user_id}")
