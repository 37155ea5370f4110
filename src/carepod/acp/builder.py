"""Access Control Policy (ACP) document builder.

Documents are emitted as Turtle text. Only the slice of the ACP vocabulary
this application needs is modelled: one access control per role, each
applying a single policy with an allow set and one ``anyOf`` matcher.

Block identifiers are deterministic (``#ownerAccessControl``,
``#doctorAccessControl``, ...) because read-back looks for them by
substring rather than by parsing the document.
"""

import re
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from carepod.roles import CARE_ROLES, Role

PREFIXES = (
    "@prefix acp: <http://www.w3.org/ns/solid/acp#>.\n"
    "@prefix acl: <http://www.w3.org/ns/auth/acl#>."
)


class Permission(str, Enum):
    """ACL access modes."""

    READ = "acl:Read"
    WRITE = "acl:Write"
    APPEND = "acl:Append"
    CONTROL = "acl:Control"


OWNER_PERMISSIONS: Tuple[Permission, ...] = (
    Permission.READ,
    Permission.WRITE,
    Permission.APPEND,
    Permission.CONTROL,
)

# Fixed per role; callers choose who is granted, never what they get.
ROLE_PERMISSIONS: Dict[Role, Tuple[Permission, ...]] = {
    Role.DOCTOR: (Permission.READ, Permission.WRITE),
    Role.EMERGENCY: (Permission.READ,),
    Role.PHARMACY: (Permission.READ,),
    Role.NURSE: (Permission.READ, Permission.WRITE),
}

OWNER_BLOCK_ID = "ownerAccessControl"


def block_id_for(role: Role) -> str:
    """Fragment identifier of a care role's access control block."""
    if role not in ROLE_PERMISSIONS:
        raise ValueError(f"Role {role.value} cannot be granted access")
    return f"{role.value}AccessControl"


def _fragment_for(resource_name: str) -> str:
    """``full-record.json`` -> ``fullRecordJsonACR``."""
    words = [w for w in re.split(r"[^0-9A-Za-z]+", resource_name) if w]
    if not words:
        raise ValueError(f"Cannot derive an identifier from '{resource_name}'")
    head, *tail = words
    return head[0].lower() + head[1:] + "".join(w[:1].upper() + w[1:] for w in tail) + "ACR"


def _refs(block_ids: Iterable[str]) -> str:
    return ", ".join(f"<#{b}>" for b in block_ids)


def matcher_block(
    agents: Sequence[str],
    client_id: Optional[str] = None,
    issuer: Optional[str] = None,
) -> str:
    """``acp:anyOf`` matcher for a set of agents.

    With ``client_id`` and ``issuer`` the matcher additionally requires the
    request to come from that client application with a token from that
    issuer, so a credential minted for another application does not match.
    """
    lines = [
        "    acp:anyOf [",
        "      a acp:Matcher;",
        f"      acp:agent {', '.join(f'<{a}>' for a in agents)};",
    ]
    if client_id:
        lines.append(f"      acp:client <{client_id}>;")
    if issuer:
        lines.append(f"      acp:issuer <{issuer}>;")
    lines.append("    ];")
    return "\n".join(lines)


def access_control_block(
    block_id: str, permissions: Sequence[Permission], matcher: str
) -> str:
    """One ``acp:AccessControl`` applying a single policy."""
    allow = ", ".join(p.value for p in permissions)
    return (
        f"<#{block_id}>\n"
        "  a acp:AccessControl;\n"
        "  acp:apply [\n"
        "    a acp:Policy;\n"
        f"    acp:allow {allow};\n"
        f"{matcher}\n"
        "  ] ."
    )


def _acr_statement(
    fragment: str, resource_url: str, block_ids: Sequence[str], members: bool = False
) -> str:
    lines = [
        f"<#{fragment}>",
        "  a acp:AccessControlResource;",
        f"  acp:resource <{resource_url}>;",
    ]
    if members:
        lines.append(f"  acp:accessControl {_refs(block_ids)};")
        lines.append(f"  acp:memberAccessControl {_refs(block_ids)} .")
    else:
        lines.append(f"  acp:accessControl {_refs(block_ids)} .")
    return "\n".join(lines)


def build_access_control_document(
    resource_url: str,
    owner_web_id: str,
    role_grants: Mapping[Role, str],
    *,
    restrict: bool = True,
    client_id: Optional[str] = None,
    issuer: Optional[str] = None,
    sibling_names: Sequence[str] = (),
) -> str:
    """Build the ACD for a patient's container.

    Args:
        resource_url: Container the document governs
        owner_web_id: Identity receiving full control
        role_grants: Granted care roles mapped to the identity holding each
        restrict: Require ``client_id`` and ``issuer`` in every matcher
        client_id: Client application identifier for restricted mode
        issuer: Identity issuer origin for restricted mode
        sibling_names: Resources next to the container that need the same
            controls declared explicitly, since they do not inherit them

    Returns:
        Turtle text of the document
    """
    for role in role_grants:
        if role not in ROLE_PERMISSIONS:
            raise ValueError(f"Role {role.value} cannot be granted access")
    if restrict and not (client_id and issuer):
        raise ValueError("Restricted matchers need both client_id and issuer")

    match_client = client_id if restrict else None
    match_issuer = issuer if restrict else None

    granted = [role for role in CARE_ROLES if role in role_grants]
    block_ids = [OWNER_BLOCK_ID, *(block_id_for(role) for role in granted)]

    statements: List[str] = [
        _acr_statement("root", resource_url, block_ids, members=True),
    ]
    for name in sibling_names:
        statements.append(_acr_statement(_fragment_for(name), f"{resource_url}{name}", block_ids))

    statements.append(
        access_control_block(
            OWNER_BLOCK_ID,
            OWNER_PERMISSIONS,
            matcher_block([owner_web_id], match_client, match_issuer),
        )
    )
    for role in granted:
        statements.append(
            access_control_block(
                block_id_for(role),
                ROLE_PERMISSIONS[role],
                matcher_block([role_grants[role]], match_client, match_issuer),
            )
        )
    return "\n\n".join([PREFIXES, *statements])


def build_container_acr(
    resource_url: str,
    owner_web_id: str,
    readers: Sequence[str] = (),
    writers: Sequence[str] = (),
) -> str:
    """ACD for a governance container.

    Readers get Read; writers get Write and Append. Both apply to members.
    """
    block_ids = ["owner"]
    if readers:
        block_ids.append("readers")
    if writers:
        block_ids.append("writers")

    statements = [
        _acr_statement("root", resource_url, block_ids, members=True),
        access_control_block("owner", OWNER_PERMISSIONS, matcher_block([owner_web_id])),
    ]
    if readers:
        statements.append(
            access_control_block("readers", (Permission.READ,), matcher_block(readers))
        )
    if writers:
        statements.append(
            access_control_block(
                "writers", (Permission.WRITE, Permission.APPEND), matcher_block(writers)
            )
        )
    return "\n\n".join([PREFIXES, *statements])


def build_resource_acr(
    resource_url: str, owner_web_id: str, readers: Sequence[str] = ()
) -> str:
    """ACD for a single governance resource."""
    block_ids = ["owner"]
    if readers:
        block_ids.append("readers")

    statements = [
        _acr_statement("root", resource_url, block_ids),
        access_control_block("owner", OWNER_PERMISSIONS, matcher_block([owner_web_id])),
    ]
    if readers:
        statements.append(
            access_control_block("readers", (Permission.READ,), matcher_block(readers))
        )
    return "\n\n".join([PREFIXES, *statements])
