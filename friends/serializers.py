from rest_framework import serializers
from .models import Relationship, RelationshipStatus
from users.serializers import UserMiniSerializer


class RelationshipSerializer(serializers.ModelSerializer):
    """
    Serializer for Relationship using the numeric status codes
    (0 Pending, 1 Confirmed, 2 Rejected, 3 Deleted)
    """
    initiator_id = serializers.IntegerField(read_only=True)
    target_id = serializers.IntegerField(read_only=True)
    status = serializers.ChoiceField(choices=RelationshipStatus.choices)

    class Meta:
        model = Relationship
        fields = ['id', 'initiator_id', 'target_id', 'status', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']


class FriendSerializer(RelationshipSerializer):
    """
    Relationship as seen by one participant, with the other user's profile.
    Pass the viewing user's id as ``viewer_id`` in the serializer context.
    """
    friend_id = serializers.SerializerMethodField()
    friend = serializers.SerializerMethodField()

    class Meta(RelationshipSerializer.Meta):
        fields = RelationshipSerializer.Meta.fields + ['friend_id', 'friend']

    def _counterpart(self, obj):
        viewer_id = self.context.get('viewer_id')
        if viewer_id == obj.target_id:
            return obj.initiator
        return obj.target

    def get_friend_id(self, obj):
        return self._counterpart(obj).pk

    def get_friend(self, obj):
        """
        Return the other user in the friendship based on who is viewing
        """
        return UserMiniSerializer(self._counterpart(obj)).data
