"""
Services for atlas-local deployments.

Import from submodules directly:
    from atlas_local.services.deployment_engine import DeploymentEngine
    from atlas_local.services.runtime_gateway import DockerRuntimeGateway
"""
