"""Access-control documents for pod resources."""

from carepod.acp.builder import (
    OWNER_BLOCK_ID,
    ROLE_PERMISSIONS,
    Permission,
    block_id_for,
    build_access_control_document,
    build_container_acr,
    build_resource_acr,
)
from carepod.acp.service import AccessControlService, AccessGrantStatus

__all__ = [
    "AccessControlService",
    "AccessGrantStatus",
    "OWNER_BLOCK_ID",
    "Permission",
    "ROLE_PERMISSIONS",
    "block_id_for",
    "build_access_control_document",
    "build_container_acr",
    "build_resource_acr",
]
