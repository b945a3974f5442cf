from django.db import models
from django.conf import settings
from habitly.models import TimeStampedModel


class Record(TimeStampedModel):
    """
    A single logged habit event. Duration is in seconds.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='records'
    )
    record_time = models.DateTimeField()
    duration = models.PositiveIntegerField(default=0)
    note = models.TextField(blank=True, default='')

    class Meta:
        ordering = ['-record_time']
        indexes = [
            models.Index(fields=['user', 'record_time'], name='activity_user_time_idx'),
            models.Index(fields=['record_time'], name='activity_time_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} @ {self.record_time:%Y-%m-%d %H:%M} ({self.duration}s)"
