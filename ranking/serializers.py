from rest_framework import serializers


class RankingEntrySerializer(serializers.Serializer):
    """
    Serializer for RankingEntry.

    Display fields come from an optional ``profiles`` mapping in the
    serializer context (see User.objects.profile_map).
    """
    rank = serializers.IntegerField(min_value=1)
    user_id = serializers.IntegerField()
    event_count = serializers.IntegerField()
    total_duration = serializers.IntegerField()
    nickname = serializers.SerializerMethodField()
    avatar_url = serializers.SerializerMethodField()

    def _profile(self, obj):
        return self.context.get('profiles', {}).get(obj.user_id, {})

    def get_nickname(self, obj):
        return self._profile(obj).get('nickname', '')

    def get_avatar_url(self, obj):
        return self._profile(obj).get('avatar_url', '')


class RankingPageSerializer(serializers.Serializer):
    rankings = RankingEntrySerializer(source='entries', many=True)
    total = serializers.IntegerField()
    page = serializers.IntegerField()
    page_size = serializers.IntegerField()
