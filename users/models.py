from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.db import models


class UserManager(DjangoUserManager):

    def profile_map(self, user_ids):
        """
        Map user id -> {'nickname', 'avatar_url'} for the given ids.

        Callers use this to decorate ranking and friend listings with display
        fields; ids without a matching user are simply absent.
        """
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        rows = self.filter(id__in=ids).values('id', 'username', 'nickname', 'avatar_url')
        return {
            row['id']: {
                'nickname': row['nickname'] or row['username'],
                'avatar_url': row['avatar_url'],
            }
            for row in rows
        }


class User(AbstractUser):
    """
    Custom User model that extends Django's AbstractUser
    with the display fields shown on friend lists and leaderboards.
    """
    nickname = models.CharField(max_length=64, blank=True, default='')
    avatar_url = models.URLField(max_length=512, blank=True, default='')

    objects = UserManager()

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        indexes = [
            models.Index(fields=['nickname'], name='users_user_nickname_idx'),
        ]

    def __str__(self):
        return self.nickname or self.username

    @property
    def display_name(self):
        """Get the user's nickname or username if not available"""
        return self.nickname or self.username
