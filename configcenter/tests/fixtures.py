from dataclasses import dataclass

from rest_framework import serializers


@dataclass
class CozeConfig:
    bot_id: str
    public_key: str = ""
    app_id: str = ""


@dataclass
class UserRoleConfig:
    llm: str
    user: str
    role: str
    speech: str = ""


class CozeConfigSerializer(serializers.Serializer):
    bot_id = serializers.CharField()
    public_key = serializers.CharField(required=False, default="")
    app_id = serializers.CharField(required=False, default="")
