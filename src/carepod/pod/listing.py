"""Container listing parsers.

Pods negotiate the listing representation, so both JSON-LD and Turtle
bodies are accepted. JSON-LD goes through full expansion, so any context
or term naming is understood. Turtle is scanned for ``ldp:contains`` only.
"""

import json
import re
from typing import Any, Iterable, List
from urllib.parse import urljoin

from pyld import jsonld

from carepod.utils.logging import get_logger

logger = get_logger(__name__)

LDP_CONTAINS = "http://www.w3.org/ns/ldp#contains"

# Predicate followed by one or more comma separated IRIs.
_TURTLE_CONTAINS = re.compile(
    r"(?:\bldp:contains\b|<http://www\.w3\.org/ns/ldp#contains>)"
    r"((?:\s*<[^>]+>\s*,?)+)",
    re.MULTILINE,
)
_IRI = re.compile(r"<([^>]+)>")


def _dedupe(urls: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(urls))


def _contained_ids(nodes: Iterable[Any]) -> Iterable[str]:
    for node in nodes:
        if not isinstance(node, dict):
            continue
        for member in node.get(LDP_CONTAINS, []):
            member_id = member.get("@id") if isinstance(member, dict) else None
            if isinstance(member_id, str) and member_id:
                yield member_id
        yield from _contained_ids(node.get("@graph", []))


def parse_jsonld_listing(body: str, container_url: str) -> List[str]:
    """Member URLs from a JSON-LD container description.

    The document is expanded against ``container_url`` and the ``@id`` of
    every ``ldp:contains`` object is returned.

    Raises:
        ValueError: If the body is not JSON
        jsonld.JsonLdError: If the body is not valid JSON-LD
    """
    data: Any = json.loads(body)
    if not isinstance(data, (dict, list)):
        raise ValueError("JSON-LD listing must be an object or an array")
    expanded = jsonld.expand(data, {"base": container_url})
    return _dedupe(urljoin(container_url, member) for member in _contained_ids(expanded))


def parse_turtle_listing(body: str, container_url: str) -> List[str]:
    """Member URLs from a Turtle container description."""
    out: List[str] = []
    for statement in _TURTLE_CONTAINS.finditer(body):
        for iri in _IRI.findall(statement.group(1)):
            out.append(urljoin(container_url, iri))
    return _dedupe(out)


def parse_container_listing(body: str, content_type: str, container_url: str) -> List[str]:
    """Member URLs from a listing in whatever format the pod returned.

    A body labelled JSON-LD that does not parse as JSON-LD is read as Turtle.
    """
    if "application/ld+json" in content_type.lower():
        try:
            return parse_jsonld_listing(body, container_url)
        except (ValueError, jsonld.JsonLdError) as e:
            logger.warning(
                "listing_not_jsonld", url=container_url, content_type=content_type, error=str(e)
            )
    return parse_turtle_listing(body, container_url)
