"""
Connection String Builder - deterministic mongodb:// URIs for deployments.
"""
from typing import Optional
from urllib.parse import quote

from motor.motor_asyncio import AsyncIOMotorClient

from atlas_local.config.logging import get_logger
from atlas_local.exceptions import NotRunning
from atlas_local.models.deployment import Deployment, Endpoint

logger = get_logger(__name__)

# Local deployments are single node; never attempt replica set discovery
DIRECT_CONNECTION_QUERY = "directConnection=true"


class ConnectionStringBuilder:
    """Build ``mongodb://[user:pass@]host:port/?directConnection=true`` URIs."""

    @staticmethod
    def build(
        endpoint: Endpoint,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> str:
        """
        Build the URI for one endpoint.

        Credentials are only included when both are non-empty.
        """
        host = f"[{endpoint.host}]" if endpoint.family == "ipv6" else endpoint.host

        userinfo = ""
        if username and password:
            userinfo = f"{quote(username, safe='')}:{quote(password, safe='')}@"

        return f"mongodb://{userinfo}{host}:{endpoint.port}/?{DIRECT_CONNECTION_QUERY}"

    @classmethod
    def for_deployment(
        cls,
        deployment: Deployment,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> str:
        """
        Build the URI from the first resolved endpoint.

        Raises:
            NotRunning: If the deployment has no endpoint
        """
        if not deployment.port_bindings:
            raise NotRunning(deployment.name, details={
                "deployment": deployment.name,
                "status": deployment.status.value,
                "endpoints": 0,
            })
        return cls.build(deployment.port_bindings[0], username=username, password=password)

    @staticmethod
    async def verify(connection_string: str, timeout_ms: int = 5000) -> None:
        """
        Ping the server behind a connection string.

        Raises:
            pymongo.errors.PyMongoError: If the server cannot be reached
        """
        client = AsyncIOMotorClient(connection_string, serverSelectionTimeoutMS=timeout_ms)
        try:
            await client.admin.command("ping")
        finally:
            client.close()
        logger.debug("connection_string_verified")
