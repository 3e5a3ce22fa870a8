from django.urls import path

from configcenter.views import (
    ConfigListView,
    ConfigView,
    EnabledVersionView,
    EnableVersionView,
    HealthCheckView,
    VersionListView,
)

app_name = "configcenter"

urlpatterns = [
    path("namespaces/<str:namespace>/configs/", ConfigListView.as_view(), name="config-list"),
    path("namespaces/<str:namespace>/configs/<str:key>/", ConfigView.as_view(), name="config-detail"),
    path(
        "namespaces/<str:namespace>/configs/<str:key>/versions/",
        VersionListView.as_view(),
        name="version-list",
    ),
    path(
        "namespaces/<str:namespace>/configs/<str:key>/versions/enabled/",
        EnabledVersionView.as_view(),
        name="version-enabled",
    ),
    path(
        "namespaces/<str:namespace>/configs/<str:key>/versions/<int:number>/enable/",
        EnableVersionView.as_view(),
        name="version-enable",
    ),
    path("health/", HealthCheckView.as_view(), name="health"),
]
