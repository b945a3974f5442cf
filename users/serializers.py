from rest_framework import serializers
from django.contrib.auth import get_user_model

User = get_user_model()


class UserMiniSerializer(serializers.ModelSerializer):
    """
    Compact user representation used inside friend listings
    """
    nickname = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'nickname', 'avatar_url']
        read_only_fields = fields
