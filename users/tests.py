from django.test import TestCase
from django.contrib.auth import get_user_model
from .serializers import UserMiniSerializer

User = get_user_model()


class UserProfileTests(TestCase):
    def setUp(self):
        self.named = User.objects.create_user(
            username='testuser_named',
            email='named@example.com',
            password='ComplexP@ssw0rd!',
            nickname='Runner',
            avatar_url='https://cdn.example.com/avatars/runner.png',
        )
        self.plain = User.objects.create_user(
            username='testuser_plain',
            email='plain@example.com',
            password='ComplexP@ssw0rd!',
        )

    def test_display_name_falls_back_to_username(self):
        self.assertEqual(self.named.display_name, 'Runner')
        self.assertEqual(self.plain.display_name, 'testuser_plain')
        self.assertEqual(str(self.plain), 'testuser_plain')

    def test_profile_map(self):
        """
        Ensure profile_map returns display fields keyed by id and skips unknown ids.
        """
        profiles = User.objects.profile_map([self.named.id, self.plain.id, self.named.id, 999999])
        self.assertEqual(set(profiles), {self.named.id, self.plain.id})
        self.assertEqual(profiles[self.named.id], {
            'nickname': 'Runner',
            'avatar_url': 'https://cdn.example.com/avatars/runner.png',
        })
        self.assertEqual(profiles[self.plain.id], {'nickname': 'testuser_plain', 'avatar_url': ''})

    def test_profile_map_empty(self):
        with self.assertNumQueries(0):
            self.assertEqual(User.objects.profile_map([]), {})

    def test_mini_serializer(self):
        data = UserMiniSerializer(self.plain).data
        self.assertEqual(data['id'], self.plain.id)
        self.assertEqual(data['username'], 'testuser_plain')
        self.assertEqual(data['nickname'], 'testuser_plain')
        self.assertEqual(data['avatar_url'], '')
        self.assertNotIn('email', data)
