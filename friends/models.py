from django.db import models
from django.db.models import Q, F
from django.conf import settings
from habitly.models import TimeStampedModel


class RelationshipStatus(models.IntegerChoices):
    """
    Wire-stable status codes for a relationship.

    DELETED is part of the enumeration for compatibility with existing
    clients but is never stored: deleting a relationship removes the row.
    """
    PENDING = 0, 'Pending'
    CONFIRMED = 1, 'Confirmed'
    REJECTED = 2, 'Rejected'
    DELETED = 3, 'Deleted'


class Relationship(TimeStampedModel):
    """
    A friend connection attempt between two users.

    The initiator sent the request and the target received it. user_low and
    user_high hold the same pair in ascending order and carry the unique
    constraint that allows at most one row per unordered pair.
    """
    initiator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='relationships_initiated'
    )
    target = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='relationships_received'
    )
    status = models.PositiveSmallIntegerField(
        choices=RelationshipStatus.choices,
        default=RelationshipStatus.PENDING
    )
    user_low = models.BigIntegerField(editable=False)
    user_high = models.BigIntegerField(editable=False)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['user_low', 'user_high'],
                name='uq_relationship_pair'
            ),
            models.CheckConstraint(
                condition=~Q(initiator=F('target')),
                name='ck_relationship_distinct_users'
            ),
        ]
        indexes = [
            models.Index(fields=['target', 'status'], name='friends_target_status_idx'),
            models.Index(fields=['initiator', 'status'], name='friends_initiator_status_idx'),
        ]

    def __str__(self):
        return f"{self.initiator_id} -> {self.target_id} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        self.user_low, self.user_high = sorted((self.initiator_id, self.target_id))
        super().save(*args, **kwargs)

    def involves(self, user_id):
        return user_id in (self.initiator_id, self.target_id)

    def counterpart_of(self, user_id):
        """
        Return the other participant's id relative to user_id
        """
        if user_id == self.initiator_id:
            return self.target_id
        if user_id == self.target_id:
            return self.initiator_id
        return None

    @property
    def is_confirmed(self):
        return self.status == RelationshipStatus.CONFIRMED
