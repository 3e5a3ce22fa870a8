from django.db import models
from django.db.models import Q
from django.utils import timezone


class LiveQuerySet(models.QuerySet):
    def soft_delete(self) -> int:
        return self.update(deleted_at=timezone.now())


class LiveManager(models.Manager.from_queryset(LiveQuerySet)):
    """Hides soft-deleted rows."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class Config(models.Model):
    """A named configuration entry, addressed by (namespace, key)."""

    namespace = models.CharField(max_length=180)
    key = models.CharField(max_length=180)
    name = models.CharField(max_length=180, blank=True)
    description = models.CharField(max_length=180, blank=True)
    operator = models.CharField(max_length=180, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = LiveManager()
    all_objects = LiveQuerySet.as_manager()

    class Meta:
        db_table = "configcenter_configs"
        ordering = ["-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["namespace", "key"],
                condition=Q(deleted_at__isnull=True),
                name="configcenter_live_namespace_key",
            ),
        ]
        indexes = [models.Index(fields=["namespace", "key"])]

    def __str__(self) -> str:
        return f"{self.namespace}/{self.key}"


class Version(models.Model):
    """A numbered snapshot of a config's serialized payload."""

    config = models.ForeignKey(Config, on_delete=models.CASCADE, related_name="versions")
    number = models.PositiveIntegerField()
    value = models.TextField()
    enabled = models.BooleanField(default=False)
    operator = models.CharField(max_length=180, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = LiveManager()
    all_objects = LiveQuerySet.as_manager()

    class Meta:
        db_table = "configcenter_versions"
        ordering = ["-number"]
        constraints = [
            models.UniqueConstraint(
                fields=["config", "number"],
                name="configcenter_config_version_number",
            ),
            # at most one active version per config
            models.UniqueConstraint(
                fields=["config"],
                condition=Q(enabled=True),
                name="configcenter_single_enabled_version",
            ),
        ]

    def __str__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return f"{self.config_id} v{self.number} ({state})"
