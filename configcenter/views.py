import logging

from django.http import Http404
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from configcenter import conf
from configcenter.exceptions import DecodeError, EncodeError, NotFound, StoreError
from configcenter.namespace import init, running_namespaces
from configcenter.serializers import (
    ConfigSerializer,
    ConfigValueSerializer,
    ConfigWriteSerializer,
    SavedVersionSerializer,
    VersionPageSerializer,
    VersionSerializer,
    VersionWriteSerializer,
)

logger = logging.getLogger(__name__)

NAMESPACE_PARAMETER = OpenApiParameter(
    name="namespace",
    type=str,
    location=OpenApiParameter.PATH,
    description="The config namespace",
)
KEY_PARAMETER = OpenApiParameter(
    name="key",
    type=str,
    location=OpenApiParameter.PATH,
    description="The config key",
)


class NamespaceView(APIView):
    """Base view resolving the namespace from the URL and mapping config errors."""

    def get_namespace(self, namespace: str):
        if namespace not in conf.get_setting("NAMESPACES"):
            raise Http404(f"unknown config namespace '{namespace}'")
        return init(namespace)

    def get_operator(self, request, operator: str) -> str:
        if operator:
            return operator
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            return user.get_username()
        return ""

    def handle_exception(self, exc):
        if isinstance(exc, NotFound):
            exc = Http404(exc.message)
        elif isinstance(exc, EncodeError):
            exc = ValidationError({"value": [exc.message]})
        elif isinstance(exc, DecodeError):
            return Response({"detail": exc.message}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
        elif isinstance(exc, StoreError):
            logger.error(f"Config store error: {exc}")
            return Response(
                {"detail": f"Config store unavailable: {exc.message}"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return super().handle_exception(exc)


class ConfigListView(NamespaceView):
    """List the configs of a namespace."""

    @extend_schema(
        operation_id="list_configs",
        summary="List configs",
        parameters=[NAMESPACE_PARAMETER],
        responses={200: ConfigSerializer(many=True)},
        tags=["Configs"],
    )
    def get(self, request, namespace: str):
        configs = self.get_namespace(namespace).list_configs()
        return Response(ConfigSerializer(configs, many=True).data)


class ConfigView(NamespaceView):
    """Read, save or remove a single config."""

    @extend_schema(
        operation_id="read_config",
        summary="Read the active value of a config",
        description="Served from the in-memory cache of this process.",
        parameters=[NAMESPACE_PARAMETER, KEY_PARAMETER],
        responses={
            200: ConfigValueSerializer,
            404: OpenApiResponse(description="Key not found or no version enabled"),
        },
        tags=["Configs"],
    )
    def get(self, request, namespace: str, key: str):
        value = self.get_namespace(namespace).get(key)
        return Response(ConfigValueSerializer({"key": key, "value": value}).data)

    @extend_schema(
        operation_id="save_config",
        summary="Save a config as a new version",
        description="Creates the config if needed, overwrites its metadata and appends a new disabled version. The version is not served until it is enabled.",
        parameters=[NAMESPACE_PARAMETER, KEY_PARAMETER],
        request=ConfigWriteSerializer,
        responses={201: SavedVersionSerializer},
        tags=["Configs"],
    )
    def put(self, request, namespace: str, key: str):
        serializer = ConfigWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        number = self.get_namespace(namespace).save_config(
            key,
            data["name"],
            data["value"],
            description=data["description"],
            operator=self.get_operator(request, data["operator"]),
        )
        return Response(
            SavedVersionSerializer({"key": key, "version": number}).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        operation_id="remove_config",
        summary="Remove a config",
        parameters=[NAMESPACE_PARAMETER, KEY_PARAMETER],
        responses={
            204: OpenApiResponse(description="Config removed"),
            404: OpenApiResponse(description="Key not found"),
        },
        tags=["Configs"],
    )
    def delete(self, request, namespace: str, key: str):
        self.get_namespace(namespace).remove_config(key)
        return Response(status=status.HTTP_204_NO_CONTENT)


class VersionListView(NamespaceView):
    """Version history of a config."""

    @extend_schema(
        operation_id="list_versions",
        summary="List versions of a config",
        parameters=[
            NAMESPACE_PARAMETER,
            KEY_PARAMETER,
            OpenApiParameter(name="page", type=int, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="size",
                type=int,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Page size (capped by MAX_PAGE_SIZE)",
            ),
        ],
        responses={200: VersionPageSerializer},
        tags=["Versions"],
    )
    def get(self, request, namespace: str, key: str):
        try:
            page = int(request.query_params.get("page", 1))
            size = int(request.query_params.get("size", conf.get_setting("DEFAULT_PAGE_SIZE")))
        except ValueError:
            raise ValidationError({"detail": "page and size must be integers"})
        if page < 1 or size < 1:
            raise ValidationError({"detail": "page and size must be positive"})
        size = min(size, conf.get_setting("MAX_PAGE_SIZE"))

        versions, total = self.get_namespace(namespace).list_versions(key, page=page, size=size)
        return Response(
            VersionPageSerializer(
                {"count": total, "page": page, "size": size, "results": versions}
            ).data
        )

    @extend_schema(
        operation_id="save_version",
        summary="Append a version to an existing config",
        parameters=[NAMESPACE_PARAMETER, KEY_PARAMETER],
        request=VersionWriteSerializer,
        responses={
            201: SavedVersionSerializer,
            404: OpenApiResponse(description="Key not found"),
        },
        tags=["Versions"],
    )
    def post(self, request, namespace: str, key: str):
        serializer = VersionWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        number = self.get_namespace(namespace).save_version(
            key, data["value"], operator=self.get_operator(request, data["operator"])
        )
        return Response(
            SavedVersionSerializer({"key": key, "version": number}).data,
            status=status.HTTP_201_CREATED,
        )


class EnabledVersionView(NamespaceView):
    @extend_schema(
        operation_id="read_enabled_version",
        summary="Read the enabled version of a config",
        description="Read from the store, not from the cache.",
        parameters=[NAMESPACE_PARAMETER, KEY_PARAMETER],
        responses={
            200: VersionSerializer,
            404: OpenApiResponse(description="Key not found or no version enabled"),
        },
        tags=["Versions"],
    )
    def get(self, request, namespace: str, key: str):
        version = self.get_namespace(namespace).get_enabled_version(key)
        return Response(VersionSerializer(version).data)


class EnableVersionView(NamespaceView):
    @extend_schema(
        operation_id="enable_version",
        summary="Enable a version",
        description="Atomically disables every version of the config and enables the given one. The new value is served by this process immediately and by other processes after their next refresh.",
        parameters=[
            NAMESPACE_PARAMETER,
            KEY_PARAMETER,
            OpenApiParameter(name="number", type=int, location=OpenApiParameter.PATH),
        ],
        request=None,
        responses={
            200: VersionSerializer,
            404: OpenApiResponse(description="Key or version not found"),
        },
        tags=["Versions"],
    )
    def post(self, request, namespace: str, key: str, number: int):
        version = self.get_namespace(namespace).enable_config(key, number)
        return Response(VersionSerializer(version).data)


class HealthCheckView(APIView):
    """Health check and refresh status of every running namespace."""

    @extend_schema(
        operation_id="health_check",
        summary="Health check and refresh status",
        responses={200: OpenApiResponse(description="Node is up; per-namespace cache status")},
        tags=["Health & Monitoring"],
    )
    def get(self, request):
        namespaces = [namespace.status() for namespace in running_namespaces()]
        healthy = all(not ns["refresh"]["last_error"] for ns in namespaces)
        return Response(
            {
                "status": "healthy" if healthy else "degraded",
                "namespaces": namespaces,
            },
            status=status.HTTP_200_OK,
        )
