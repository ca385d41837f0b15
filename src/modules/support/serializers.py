from rest_framework import serializers

from modules.support.chat import ROLES


class ChatTurnSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ROLES)
    text = serializers.CharField(max_length=4000)


class ChatRequestSerializer(serializers.Serializer):
    message = serializers.CharField(max_length=4000)
    history = ChatTurnSerializer(many=True, required=False, default=list)


class ChatReplySerializer(serializers.Serializer):
    reply = serializers.CharField(read_only=True)
