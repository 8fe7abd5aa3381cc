"""
Port Resolver - turns raw runtime port bindings into reachable endpoints.
"""
import ipaddress
from typing import Any, Dict, List, Mapping, Optional, Tuple

from atlas_local.config.logging import get_logger
from atlas_local.models.deployment import (
    MONGODB_CONTAINER_PORT,
    BindingType,
    Endpoint,
    PortBindingRequest,
)

logger = get_logger(__name__)

_LOOPBACK_V4 = "127.0.0.1"
_LOOPBACK_V6 = "::1"


class PortResolver:
    """
    Resolve ``NetworkSettings.Ports`` into deduplicated endpoints.

    The runtime reports one entry per address family when a port is published
    on all interfaces; IPv4/IPv6 entries sharing a host port collapse into one
    endpoint with the IPv4 host kept.
    """

    def resolve(
        self,
        ports: Optional[Mapping[str, Any]],
        container_port: Optional[str] = MONGODB_CONTAINER_PORT,
        deployment: Optional[str] = None,
    ) -> Tuple[Endpoint, ...]:
        """
        Resolve port bindings to endpoints.

        Args:
            ports: Raw mapping such as ``{"27017/tcp": [{"HostIp": ..., "HostPort": ...}]}``
            container_port: Only resolve this container port, None for all
            deployment: Deployment name for log context

        Returns:
            Ordered tuple of endpoints, IPv4 first within a collapsed pair
        """
        if not ports:
            return ()

        keys = [container_port] if container_port else list(ports)
        endpoints: List[Endpoint] = []
        # (container port, host port) -> index in endpoints
        seen: Dict[Tuple[str, int], int] = {}

        for key in keys:
            for raw in ports.get(key) or []:
                endpoint = self._parse_binding(raw, key, deployment)
                if endpoint is None:
                    continue

                if endpoint.binding_type == BindingType.SPECIFIC:
                    if endpoint not in endpoints:
                        endpoints.append(endpoint)
                    continue

                identity = (key, endpoint.port)
                index = seen.get(identity)
                if index is None:
                    seen[identity] = len(endpoints)
                    endpoints.append(endpoint)
                elif endpoints[index].family == "ipv6" and endpoint.family == "ipv4":
                    endpoints[index] = endpoint

        return tuple(endpoints)

    def _parse_binding(
        self,
        raw: Any,
        container_port: str,
        deployment: Optional[str],
    ) -> Optional[Endpoint]:
        if not isinstance(raw, Mapping):
            logger.warning("port_binding_malformed", deployment=deployment, container_port=container_port, binding=raw)
            return None

        host_ip = raw.get("HostIp")
        host_port = raw.get("HostPort")

        try:
            port = int(host_port)
            if not 1 <= port <= 65535:
                raise ValueError(host_port)
        except (TypeError, ValueError):
            logger.warning(
                "port_binding_invalid_port",
                deployment=deployment,
                container_port=container_port,
                host_port=host_port,
            )
            return None

        try:
            address = ipaddress.ip_address(host_ip)
        except ValueError:
            logger.warning(
                "port_binding_invalid_host_ip",
                deployment=deployment,
                container_port=container_port,
                host_ip=host_ip,
            )
            return None

        family = "ipv4" if address.version == 4 else "ipv6"
        if address.is_unspecified:
            binding_type = BindingType.ANY_INTERFACE
            host = _LOOPBACK_V4 if address.version == 4 else _LOOPBACK_V6
        elif address.is_loopback:
            binding_type = BindingType.LOOPBACK
            host = str(address)
        else:
            binding_type = BindingType.SPECIFIC
            host = str(address)

        return Endpoint(host=host, port=port, family=family, binding_type=binding_type)


def to_docker_binding(request: Optional[PortBindingRequest]) -> Dict[str, Tuple[str, Optional[int]]]:
    """
    Build the create-time port publication for the MongoDB port.

    Defaults to loopback with a runtime-assigned host port.
    """
    request = request or PortBindingRequest()
    if request.binding_type == BindingType.ANY_INTERFACE:
        host_ip = "0.0.0.0"
    elif request.binding_type == BindingType.LOOPBACK:
        host_ip = _LOOPBACK_V4
    else:
        host_ip = request.host_ip
    return {MONGODB_CONTAINER_PORT: (host_ip, request.port)}
