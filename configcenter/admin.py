from django.contrib import admin

from configcenter.models import Config, Version


class VersionInline(admin.TabularInline):
    model = Version
    fields = ("number", "enabled", "operator", "created_at")
    readonly_fields = fields
    extra = 0
    can_delete = False
    ordering = ("-number",)

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Config)
class ConfigAdmin(admin.ModelAdmin):
    list_display = ("namespace", "key", "name", "operator", "updated_at")
    list_filter = ("namespace",)
    search_fields = ("key", "name")
    ordering = ("namespace", "key")
    readonly_fields = ("namespace", "key")
    inlines = [VersionInline]

    # served values change only through the namespace API
    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Version)
class VersionAdmin(admin.ModelAdmin):
    list_display = ("config", "number", "enabled", "operator", "updated_at")
    list_filter = ("enabled",)
    search_fields = ("config__key",)
    ordering = ("config", "-number")
    readonly_fields = ("config", "number", "value", "enabled")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
