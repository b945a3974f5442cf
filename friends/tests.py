import time
from unittest.mock import patch

from django.db import IntegrityError, transaction
from django.test import TestCase, TransactionTestCase
from users.models import User
from habitly.context import CallContext
from habitly.exceptions import DeadlineExceeded, OperationCancelled, ValidationFailure
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
from .serializers import FriendSerializer, RelationshipSerializer
from .services import RelationshipService
from .store import RelationshipStore


def make_user(username, nickname=''):
    return User.objects.create_user(
        username=username,
        email=f'{username}_friends@example.com',
        password='password123',
        nickname=nickname,
    )


class RelationshipModelTests(TestCase):
    def setUp(self):
        """Set up test data"""
        self.user1 = make_user('testuser1')
        self.user2 = make_user('testuser2')

    def test_pair_columns_are_ordered(self):
        relationship = Relationship.objects.create(initiator=self.user2, target=self.user1)
        self.assertEqual(relationship.user_low, min(self.user1.id, self.user2.id))
        self.assertEqual(relationship.user_high, max(self.user1.id, self.user2.id))

    def test_reverse_duplicate_rejected_by_database(self):
        """The unique pair constraint holds regardless of orientation"""
        Relationship.objects.create(initiator=self.user1, target=self.user2)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Relationship.objects.create(initiator=self.user2, target=self.user1)

    def test_self_relationship_rejected_by_database(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Relationship.objects.create(initiator=self.user1, target=self.user1)

    def test_counterpart_of(self):
        relationship = Relationship.objects.create(initiator=self.user1, target=self.user2)
        self.assertEqual(relationship.counterpart_of(self.user1.id), self.user2.id)
        self.assertEqual(relationship.counterpart_of(self.user2.id), self.user1.id)
        self.assertIsNone(relationship.counterpart_of(-1))
        self.assertTrue(relationship.involves(self.user2.id))
        self.assertFalse(relationship.is_confirmed)


class RelationshipStoreTests(TestCase):
    def setUp(self):
        """Set up test data"""
        self.store = RelationshipStore()
        self.user1 = make_user('testuser1')
        self.user2 = make_user('testuser2')
        self.user3 = make_user('testuser3')

    def test_create_defaults_to_pending(self):
        relationship = self.store.create(self.user1.id, self.user2.id)
        self.assertEqual(relationship.status, RelationshipStatus.PENDING)
        self.assertEqual(relationship.initiator_id, self.user1.id)
        self.assertEqual(relationship.target_id, self.user2.id)

    def test_create_reverse_orientation_conflicts(self):
        self.store.create(self.user1.id, self.user2.id)
        with self.assertRaises(Conflict):
            self.store.create(self.user2.id, self.user1.id)
        self.assertEqual(Relationship.objects.count(), 1)

    def test_create_loses_race_on_pair_constraint(self):
        """A reverse insert that slips past the existence check still reports Conflict"""
        self.store.create(self.user1.id, self.user2.id)
        with patch.object(RelationshipStore, '_pair_exists', return_value=False):
            with self.assertRaises(Conflict):
                self.store.create(self.user2.id, self.user1.id)
        self.assertEqual(Relationship.objects.count(), 1)
        remaining = Relationship.objects.get()
        self.assertEqual(remaining.initiator_id, self.user1.id)

    def test_create_self_relationship_fails(self):
        with self.assertRaises(ValidationFailure):
            self.store.create(self.user1.id, self.user1.id)

    def test_create_refuses_deleted_status(self):
        with self.assertRaises(ValidationFailure):
            self.store.create(self.user1.id, self.user2.id, status=RelationshipStatus.DELETED)

    def test_update_status_refuses_unknown_and_deleted(self):
        relationship = self.store.create(self.user1.id, self.user2.id)
        with self.assertRaises(ValidationFailure):
            self.store.update_status(relationship.id, 7)
        with self.assertRaises(ValidationFailure):
            self.store.update_status(relationship.id, RelationshipStatus.DELETED)
        relationship.refresh_from_db()
        self.assertEqual(relationship.status, RelationshipStatus.PENDING)

    def test_update_status_missing_row(self):
        with self.assertRaises(NotFound):
            self.store.update_status(999999, RelationshipStatus.CONFIRMED)

    def test_update_status_refreshes_updated_at(self):
        relationship = self.store.create(self.user1.id, self.user2.id)
        before = relationship.updated_at
        self.store.update_status(relationship.id, RelationshipStatus.CONFIRMED)
        relationship.refresh_from_db()
        self.assertEqual(relationship.status, RelationshipStatus.CONFIRMED)
        self.assertGreaterEqual(relationship.updated_at, before)

    def test_find_pair_relationship_either_orientation(self):
        relationship = self.store.create(self.user1.id, self.user2.id)
        self.assertEqual(self.store.find_pair_relationship(self.user1.id, self.user2.id).id, relationship.id)
        self.assertEqual(self.store.find_pair_relationship(self.user2.id, self.user1.id).id, relationship.id)
        self.assertIsNone(self.store.find_pair_relationship(self.user1.id, self.user3.id))

    def test_friend_identifiers_union_of_both_sides(self):
        forward = self.store.create(self.user1.id, self.user2.id)
        reverse = self.store.create(self.user3.id, self.user1.id)
        self.store.update_status(forward.id, RelationshipStatus.CONFIRMED)
        self.store.update_status(reverse.id, RelationshipStatus.CONFIRMED)

        self.assertEqual(self.store.find_friend_identifiers(self.user1.id), {self.user2.id, self.user3.id})
        self.assertEqual(self.store.find_friend_identifiers(self.user2.id), {self.user1.id})

    def test_pending_requests_are_not_friends(self):
        self.store.create(self.user1.id, self.user2.id)
        self.assertEqual(self.store.find_friend_identifiers(self.user1.id), set())
        self.assertEqual(self.store.find_active_by_either_side(self.user2.id), [])

    def test_pending_requests_targeting(self):
        self.store.create(self.user1.id, self.user3.id)
        self.store.create(self.user2.id, self.user3.id)
        items, total = self.store.find_pending_requests_targeting(self.user3.id, 1, 1)
        self.assertEqual(total, 2)
        self.assertEqual(len(items), 1)
        items, total = self.store.find_pending_requests_targeting(self.user1.id, 1, 10)
        self.assertEqual((items, total), ([], 0))

    def test_delete_requires_participant(self):
        relationship = self.store.create(self.user1.id, self.user2.id)
        with self.assertRaises(NotFound):
            self.store.delete(relationship.id, self.user3.id)
        self.store.delete(relationship.id, self.user2.id)
        self.assertFalse(Relationship.objects.filter(id=relationship.id).exists())

    def test_reopen_swaps_initiator(self):
        relationship = self.store.create(self.user1.id, self.user2.id, status=RelationshipStatus.REJECTED)
        self.store.reopen(relationship.id, self.user2.id, self.user1.id)
        relationship.refresh_from_db()
        self.assertEqual(relationship.initiator_id, self.user2.id)
        self.assertEqual(relationship.target_id, self.user1.id)
        self.assertEqual(relationship.status, RelationshipStatus.PENDING)

    def test_reopen_cannot_change_pair(self):
        relationship = self.store.create(self.user1.id, self.user2.id, status=RelationshipStatus.REJECTED)
        with self.assertRaises(NotFound):
            self.store.reopen(relationship.id, self.user3.id, self.user1.id)

    def test_with_transaction_rolls_back(self):
        def _create_then_fail(store):
            store.create(self.user1.id, self.user2.id)
            store.create(self.user2.id, self.user1.id)

        with self.assertRaises(Conflict):
            self.store.with_transaction(_create_then_fail)
        self.assertEqual(Relationship.objects.count(), 0)


class RelationshipServiceTests(TestCase):
    def setUp(self):
        """Set up test data"""
        self.service = RelationshipService()
        self.user1 = make_user('testuser1', nickname='Alice')
        self.user2 = make_user('testuser2', nickname='Bob')
        self.user3 = make_user('testuser3', nickname='Carol')
        self.outsider = make_user('noninvolved')

    def _friends(self, a, b):
        relationship = self.service.request_friendship(a.id, b.id)
        return self.service.update_status_verified(
            relationship.id, b.id, a.id, RelationshipStatus.CONFIRMED
        )

    def test_request_then_accept(self):
        """A request followed by the target's acceptance makes both users friends"""
        relationship = self.service.request_friendship(self.user1.id, self.user2.id)
        self.assertEqual(relationship.status, RelationshipStatus.PENDING)

        confirmed = self.service.update_status_verified(
            relationship.id, self.user2.id, self.user1.id, RelationshipStatus.CONFIRMED
        )
        self.assertEqual(confirmed.status, RelationshipStatus.CONFIRMED)
        self.assertEqual(self.service.friend_identifiers(self.user1.id), {self.user2.id})
        self.assertEqual(self.service.friend_identifiers(self.user2.id), {self.user1.id})
        self.assertEqual(Relationship.objects.count(), 1)

    def test_mutual_request_confirms(self):
        """A request back to a pending requester confirms the existing row"""
        first = self.service.request_friendship(self.user1.id, self.user2.id)
        second = self.service.request_friendship(self.user2.id, self.user1.id)

        self.assertEqual(second.id, first.id)
        self.assertEqual(second.status, RelationshipStatus.CONFIRMED)
        self.assertEqual(second.initiator_id, self.user1.id)
        self.assertEqual(Relationship.objects.count(), 1)

    def test_request_twice_fails(self):
        self.service.request_friendship(self.user1.id, self.user2.id)
        with self.assertRaises(RequestAlreadySent):
            self.service.request_friendship(self.user1.id, self.user2.id)

    def test_request_to_friend_fails(self):
        self._friends(self.user1, self.user2)
        with self.assertRaises(AlreadyFriends):
            self.service.request_friendship(self.user2.id, self.user1.id)
        with self.assertRaises(AlreadyFriends):
            self.service.request_friendship(self.user1.id, self.user2.id)

    def test_request_to_self_fails(self):
        with self.assertRaises(ValidationFailure):
            self.service.request_friendship(self.user1.id, self.user1.id)
        self.assertEqual(Relationship.objects.count(), 0)

    def test_rejected_request_can_be_reopened_by_either_side(self):
        relationship = self.service.request_friendship(self.user1.id, self.user2.id)
        rejected = self.service.update_status_verified(
            relationship.id, self.user2.id, self.user1.id, RelationshipStatus.REJECTED
        )
        self.assertEqual(rejected.status, RelationshipStatus.REJECTED)

        reopened = self.service.request_friendship(self.user2.id, self.user1.id)
        self.assertEqual(reopened.id, relationship.id)
        self.assertEqual(reopened.status, RelationshipStatus.PENDING)
        self.assertEqual(reopened.initiator_id, self.user2.id)
        self.assertEqual(reopened.target_id, self.user1.id)

    def test_initiator_cannot_accept_own_request(self):
        relationship = self.service.request_friendship(self.user1.id, self.user2.id)
        with self.assertRaises(Forbidden):
            self.service.update_status_verified(
                relationship.id, self.user1.id, self.user2.id, RelationshipStatus.CONFIRMED
            )

    def test_update_by_outsider_forbidden(self):
        relationship = self.service.request_friendship(self.user1.id, self.user2.id)
        with self.assertRaises(Forbidden):
            self.service.update_status_verified(
                relationship.id, self.outsider.id, self.user1.id, RelationshipStatus.CONFIRMED
            )

    def test_update_with_wrong_counterparty(self):
        relationship = self.service.request_friendship(self.user1.id, self.user2.id)
        with self.assertRaises(Mismatch):
            self.service.update_status_verified(
                relationship.id, self.user2.id, self.user3.id, RelationshipStatus.CONFIRMED
            )

    def test_update_missing_relationship(self):
        with self.assertRaises(NotFound):
            self.service.update_status_verified(
                999999, self.user1.id, self.user2.id, RelationshipStatus.CONFIRMED
            )

    def test_invalid_status_checked_first(self):
        with self.assertRaises(ValidationFailure):
            self.service.update_status_verified(999999, self.user1.id, self.user2.id, 7)

    def test_confirmed_cannot_go_back_to_pending(self):
        relationship = self._friends(self.user1, self.user2)
        with self.assertRaises(InvalidTransition):
            self.service.update_status_verified(
                relationship.id, self.user1.id, self.user2.id, RelationshipStatus.PENDING
            )
        with self.assertRaises(InvalidTransition):
            self.service.update_status_verified(
                relationship.id, self.user2.id, self.user1.id, RelationshipStatus.REJECTED
            )

    def test_same_status_is_a_no_op(self):
        relationship = self._friends(self.user1, self.user2)
        unchanged = self.service.update_status_verified(
            relationship.id, self.user1.id, self.user2.id, RelationshipStatus.CONFIRMED
        )
        self.assertEqual(unchanged.status, RelationshipStatus.CONFIRMED)

    def test_deleted_status_removes_row(self):
        relationship = self._friends(self.user1, self.user2)
        result = self.service.update_status_verified(
            relationship.id, self.user1.id, self.user2.id, RelationshipStatus.DELETED
        )
        self.assertIsNone(result)
        self.assertIsNone(self.service.get_relationship(self.user1.id, self.user2.id))

        # The pair is free again
        again = self.service.request_friendship(self.user2.id, self.user1.id)
        self.assertEqual(again.status, RelationshipStatus.PENDING)

    def test_remove_friend(self):
        relationship = self._friends(self.user1, self.user2)
        with self.assertRaises(NotFound):
            self.service.remove_friend(relationship.id, self.outsider.id)
        self.service.remove_friend(relationship.id, self.user2.id)
        self.assertEqual(self.service.list_friends(self.user1.id), [])
        with self.assertRaises(NotFound):
            self.service.remove_friend(relationship.id, self.user2.id)

    def test_list_friends_symmetric(self):
        self._friends(self.user1, self.user2)
        self._friends(self.user3, self.user1)
        self.service.request_friendship(self.outsider.id, self.user1.id)

        self.assertEqual(len(self.service.list_friends(self.user1.id)), 2)
        self.assertEqual(len(self.service.list_friends(self.user2.id)), 1)
        self.assertEqual(len(self.service.list_friends(self.user3.id)), 1)

    def test_list_friends_paged_with_keyword(self):
        self._friends(self.user1, self.user2)
        self._friends(self.user3, self.user1)

        page = self.service.list_friends_paged(self.user1.id, page=1, size=1)
        self.assertEqual(page.total, 2)
        self.assertEqual(len(page.items), 1)

        page = self.service.list_friends_paged(self.user1.id, keyword='car')
        self.assertEqual(page.total, 1)
        self.assertEqual(page.items[0].counterpart_of(self.user1.id), self.user3.id)

        page = self.service.list_friends_paged(self.user1.id, keyword='testuser2')
        self.assertEqual([r.counterpart_of(self.user1.id) for r in page.items], [self.user2.id])

        # The user's own name never matches
        page = self.service.list_friends_paged(self.user1.id, keyword='alice')
        self.assertEqual(page.total, 0)

    def test_pagination_defaults(self):
        page = self.service.list_incoming_requests(self.user1.id, page=0, size=-5)
        self.assertEqual(page.page, 1)
        self.assertEqual(page.page_size, 10)

        page = self.service.list_friends_paged(self.user1.id, page='abc', size=5000)
        self.assertEqual(page.page, 1)
        self.assertEqual(page.page_size, 100)

    def test_list_incoming_requests(self):
        self.service.request_friendship(self.user2.id, self.user1.id)
        self.service.request_friendship(self.user3.id, self.user1.id)
        self.service.request_friendship(self.user1.id, self.outsider.id)

        page = self.service.list_incoming_requests(self.user1.id)
        self.assertEqual(page.total, 2)
        self.assertEqual({r.initiator_id for r in page.items}, {self.user2.id, self.user3.id})

    def test_get_relationship_by_id(self):
        relationship = self.service.request_friendship(self.user1.id, self.user2.id)
        self.assertEqual(self.service.get_relationship_by_id(relationship.id).id, relationship.id)
        self.assertIsNone(self.service.get_relationship_by_id(999999))

    def test_ranking_cohort(self):
        self._friends(self.user1, self.user3)
        self._friends(self.user2, self.user1)
        self.service.request_friendship(self.user1.id, self.outsider.id)

        cohort = self.service.ranking_cohort(self.user1.id)
        self.assertEqual(cohort, [self.user1.id] + sorted([self.user2.id, self.user3.id]))
        self.assertEqual(self.service.ranking_cohort(self.outsider.id), [self.outsider.id])

    def test_cancelled_context(self):
        ctx = CallContext()
        ctx.cancel()
        with self.assertRaises(OperationCancelled):
            self.service.request_friendship(self.user1.id, self.user2.id, ctx=ctx)
        with self.assertRaises(OperationCancelled):
            self.service.list_friends(self.user1.id, ctx=ctx)
        self.assertEqual(Relationship.objects.count(), 0)

    def test_expired_deadline(self):
        ctx = CallContext(deadline=time.monotonic() - 1)
        with self.assertRaises(DeadlineExceeded):
            self.service.ranking_cohort(self.user1.id, ctx=ctx)


class RelationshipSerializerTests(TestCase):
    def setUp(self):
        """Set up test data"""
        self.user1 = make_user('testuser1', nickname='Alice')
        self.user2 = make_user('testuser2')
        self.relationship = RelationshipStore().create(
            self.user1.id, self.user2.id, status=RelationshipStatus.CONFIRMED
        )

    def test_status_is_numeric(self):
        data = RelationshipSerializer(self.relationship).data
        self.assertEqual(data['status'], 1)
        self.assertEqual(data['initiator_id'], self.user1.id)
        self.assertEqual(data['target_id'], self.user2.id)

    def test_friend_from_each_side(self):
        relationship = Relationship.objects.select_related('initiator', 'target').get(id=self.relationship.id)

        data = FriendSerializer(relationship, context={'viewer_id': self.user1.id}).data
        self.assertEqual(data['friend_id'], self.user2.id)
        self.assertEqual(data['friend']['nickname'], 'testuser2')

        data = FriendSerializer(relationship, context={'viewer_id': self.user2.id}).data
        self.assertEqual(data['friend_id'], self.user1.id)
        self.assertEqual(data['friend']['nickname'], 'Alice')


class RelationshipIntegrityTests(TransactionTestCase):
    """Foreign key checks are deferred to commit, so these run outside a test transaction"""

    def setUp(self):
        self.user1 = make_user('testuser1')
        self.missing_user_id = 987654

    def test_create_with_unknown_user_propagates(self):
        with self.assertRaises(IntegrityError):
            RelationshipStore().create(self.user1.id, self.missing_user_id)
        self.assertEqual(Relationship.objects.count(), 0)

    def test_request_to_unknown_user_propagates(self):
        with self.assertRaises(IntegrityError):
            RelationshipService().request_friendship(self.user1.id, self.missing_user_id)
        self.assertEqual(Relationship.objects.count(), 0)
