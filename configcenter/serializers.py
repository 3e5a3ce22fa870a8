from rest_framework import serializers

from configcenter.models import Config, Version


class ConfigSerializer(serializers.ModelSerializer):
    """Serializer for config metadata."""

    class Meta:
        model = Config
        fields = [
            "id",
            "namespace",
            "key",
            "name",
            "description",
            "operator",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class VersionSerializer(serializers.ModelSerializer):
    """Serializer for a config version."""

    class Meta:
        model = Version
        fields = [
            "number",
            "value",
            "enabled",
            "operator",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ConfigValueSerializer(serializers.Serializer):
    """The active value of a config."""

    key = serializers.CharField()
    value = serializers.JSONField()


class ConfigWriteSerializer(serializers.Serializer):
    """Serializer for saving a config together with a new version."""

    name = serializers.CharField(
        max_length=180,
        allow_blank=True,
        required=False,
        default="",
        help_text="Display name of the config. Defaults to empty.",
    )
    description = serializers.CharField(
        max_length=180,
        allow_blank=True,
        required=False,
        default="",
    )
    operator = serializers.CharField(
        max_length=180,
        allow_blank=True,
        required=False,
        default="",
        help_text="Who made the change. Defaults to the authenticated user.",
    )
    value = serializers.JSONField(help_text="The payload to store. Any JSON value.")


class VersionWriteSerializer(serializers.Serializer):
    """Serializer for appending a version to an existing config."""

    operator = serializers.CharField(max_length=180, allow_blank=True, required=False, default="")
    value = serializers.JSONField(help_text="The payload to store. Any JSON value.")


class SavedVersionSerializer(serializers.Serializer):
    key = serializers.CharField()
    version = serializers.IntegerField(help_text="Number of the newly created version")


class VersionPageSerializer(serializers.Serializer):
    """Serializer for a page of version history."""

    count = serializers.IntegerField(help_text="Total number of versions of the config")
    page = serializers.IntegerField()
    size = serializers.IntegerField()
    results = VersionSerializer(many=True)
