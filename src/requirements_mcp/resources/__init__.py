"""MCP resources: typed URIs, the resource reader and the resource catalog."""

from .listing import ResourceCatalog
from .reader import ResourceReader
from .uri_utils import (
    ActivePromptURI,
    CollectionKind,
    CollectionURI,
    NavigationItemURI,
    ParsedURI,
    ResourceScheme,
    URIParseError,
    build_uri,
    parse_navigation_uri,
    parse_resource_uri,
    parse_uri,
)

__all__ = [
    "ActivePromptURI",
    "CollectionKind",
    "CollectionURI",
    "NavigationItemURI",
    "ParsedURI",
    "ResourceCatalog",
    "ResourceReader",
    "ResourceScheme",
    "URIParseError",
    "build_uri",
    "parse_navigation_uri",
    "parse_resource_uri",
    "parse_uri",
]
