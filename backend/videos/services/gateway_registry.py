from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from importlib import import_module
from typing import Literal

from backend.videos.errors import GatewayNotFoundError
from backend.videos.services.gateways.base import Gateway, GatewayContext
from backend.videos.services.gateways.vimeo import VimeoGateway
from backend.videos.services.gateways.youtube import YouTubeGateway

LOGGER = logging.getLogger("video_gateways.registry")

GatewayFilter = Literal["all", "enabled", "logged_in"]
GatewayTypeSpec = type[Gateway] | str
# Hooks may append to or reorder the gateway types before they are instantiated.
RegistrationHook = Callable[[list[GatewayTypeSpec]], None]

DEFAULT_GATEWAY_TYPES: tuple[type[Gateway], ...] = (VimeoGateway, YouTubeGateway)


class GatewayRegistry:
    def __init__(self, context: GatewayContext) -> None:
        self._context = context
        self._gateways: dict[str, Gateway] = {}

    @classmethod
    def with_gateway_types(
        cls,
        context: GatewayContext,
        *,
        extra_types: Iterable[GatewayTypeSpec] = (),
        hooks: Sequence[RegistrationHook] = (),
    ) -> GatewayRegistry:
        registry = cls(context)
        gateway_types: list[GatewayTypeSpec] = [*DEFAULT_GATEWAY_TYPES, *extra_types]
        for hook in hooks:
            hook(gateway_types)
        for gateway_type in sorted(gateway_types, key=_type_sort_key):
            registry.register(gateway_type)
        return registry

    def register(self, gateway_type: GatewayTypeSpec | Gateway) -> Gateway:
        if isinstance(gateway_type, Gateway):
            gateway = gateway_type
        else:
            resolved = _resolve_gateway_type(gateway_type)
            try:
                gateway = resolved(self._context)
            except Exception as exc:
                raise GatewayNotFoundError(
                    f"Couldn't instantiate gateway type `{resolved.__name__}`: {exc}"
                ) from exc

        if gateway.handle in self._gateways:
            LOGGER.warning("gateway registry replacing handle=%s", gateway.handle)
        self._gateways[gateway.handle] = gateway
        LOGGER.debug("gateway registry registered handle=%s", gateway.handle)
        return gateway

    def list_gateways(self, gateway_filter: GatewayFilter = "all") -> list[Gateway]:
        gateways = [self._gateways[handle] for handle in sorted(self._gateways)]
        if gateway_filter == "all":
            return gateways
        return [gateway for gateway in gateways if gateway.is_logged_in()]

    def get_by_handle(self, handle: str, gateway_filter: GatewayFilter = "all") -> Gateway:
        normalized = handle.strip().lower()
        gateway = self._gateways.get(normalized)
        if gateway is None:
            raise GatewayNotFoundError(f"Gateway `{handle}` is not registered.")
        if gateway_filter != "all" and not gateway.is_logged_in():
            raise GatewayNotFoundError(f"Gateway `{handle}` is not connected.")
        return gateway

    def has_enabled_gateways(self) -> bool:
        return any(gateway.is_logged_in() for gateway in self._gateways.values())

    def handles(self) -> list[str]:
        return sorted(self._gateways)


def _resolve_gateway_type(gateway_type: GatewayTypeSpec) -> type[Gateway]:
    if isinstance(gateway_type, str):
        module_name, _, class_name = gateway_type.partition(":")
        if not module_name or not class_name:
            raise GatewayNotFoundError(
                f"Gateway type `{gateway_type}` must look like `module.path:ClassName`."
            )
        try:
            resolved: object = getattr(import_module(module_name), class_name)
        except (ImportError, AttributeError) as exc:
            raise GatewayNotFoundError(f"Gateway type `{gateway_type}` not found.") from exc
    else:
        resolved = gateway_type

    if not isinstance(resolved, type) or not issubclass(resolved, Gateway):
        raise GatewayNotFoundError(f"`{gateway_type}` is not a gateway type.")
    return resolved


def _type_sort_key(gateway_type: GatewayTypeSpec) -> str:
    if isinstance(gateway_type, str):
        return gateway_type.rpartition(":")[2].lower()
    return gateway_type.__name__.lower()
