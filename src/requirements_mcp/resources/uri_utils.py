"""URI Utilities for MCP Resources

Resources are addressed by typed URIs:

    <scheme>://<reference-id>[/<sub-path>][?<key>=<value>&...]

- Scheme: one of ``epic``, ``user-story``, ``requirement``,
  ``acceptance-criteria`` or ``prompt``
- Reference id: ``<PREFIX>-<digits>`` where the prefix must belong to the
  scheme (``epic://EP-001`` is valid, ``epic://US-001`` is not)
- Sub-path: a derived view, from a closed per-scheme whitelist
- Parameters: free-form; the first value of a repeated key wins

A second, navigation-only scheme names collections:

    requirements://<collection>                  every item of a kind
    requirements://<collection>/<uuid-or-ref>    one item, rewritten to its typed URI
    requirements://prompts/active                the active system prompt

Parsing splits these into distinct result types so the reader never needs to
test strings to know what it was given.
"""

import enum
import logging
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit

from ..models.common import REFERENCE_ID_PATTERN, is_uuid

logger = logging.getLogger(__name__)

NAVIGATION_SCHEME = "requirements"


class URIParseError(ValueError):
    """Raised when a URI cannot be parsed according to expected format."""


class ResourceScheme(str, enum.Enum):
    EPIC = "epic"
    USER_STORY = "user-story"
    REQUIREMENT = "requirement"
    ACCEPTANCE_CRITERIA = "acceptance-criteria"
    PROMPT = "prompt"

    @property
    def prefix(self) -> str:
        return SCHEME_PREFIXES[self]


SCHEME_PREFIXES: dict[ResourceScheme, str] = {
    ResourceScheme.EPIC: "EP",
    ResourceScheme.USER_STORY: "US",
    ResourceScheme.REQUIREMENT: "REQ",
    ResourceScheme.ACCEPTANCE_CRITERIA: "AC",
    ResourceScheme.PROMPT: "PROMPT",
}

SUPPORTED_SUB_PATHS: dict[ResourceScheme, tuple[str, ...]] = {
    ResourceScheme.EPIC: ("hierarchy", "user-stories"),
    ResourceScheme.USER_STORY: ("requirements", "acceptance-criteria"),
    ResourceScheme.REQUIREMENT: ("relationships",),
    ResourceScheme.ACCEPTANCE_CRITERIA: (),
    ResourceScheme.PROMPT: (),
}


# =============================================================================
# TYPED URIS
# =============================================================================


@dataclass(frozen=True)
class ParsedURI:
    """A typed resource URI naming one entity or a view derived from it."""

    scheme: ResourceScheme
    reference_id: str
    sub_path: str = ""
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def uri(self) -> str:
        """Canonical string form."""
        return build_uri(self.scheme, self.reference_id, self.sub_path, self.parameters)


def _scheme(value: str | ResourceScheme) -> ResourceScheme:
    if isinstance(value, ResourceScheme):
        return value
    try:
        return ResourceScheme(value)
    except ValueError:
        raise URIParseError(f"unsupported URI scheme: {value}") from None


def _check_reference_id(scheme: ResourceScheme, reference_id: str) -> None:
    if not REFERENCE_ID_PATTERN.match(reference_id):
        raise URIParseError(f"invalid reference ID format: {reference_id}")
    if not reference_id.startswith(f"{scheme.prefix}-"):
        raise URIParseError(
            f"reference ID {reference_id} does not match scheme {scheme.value} "
            f"(expected prefix: {scheme.prefix})"
        )


def _check_sub_path(scheme: ResourceScheme, sub_path: str) -> None:
    if sub_path and not is_sub_path_supported(scheme, sub_path):
        supported = ", ".join(SUPPORTED_SUB_PATHS[scheme]) or "none"
        raise URIParseError(
            f"unsupported sub-path '{sub_path}' for scheme {scheme.value} (supported: {supported})"
        )


def _split_scheme(uri: str) -> tuple[str, str]:
    """Split off the scheme, refusing anything that is not lowercase already."""
    if not uri:
        raise URIParseError("URI cannot be empty")
    if uri != uri.strip():
        raise URIParseError("URI must not have leading or trailing whitespace")
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in uri):
        raise URIParseError("URI must not contain control characters")
    scheme, separator, rest = uri.partition("://")
    if not separator or not scheme:
        raise URIParseError(f"missing scheme in URI: {uri}")
    if scheme != scheme.lower():
        raise URIParseError(f"scheme must be lowercase: {scheme}")
    return scheme, rest


def parse_uri(uri: str) -> ParsedURI:
    """Parse a typed resource URI.

    Args:
        uri: URI such as ``user-story://US-042/requirements?status=active``

    Returns:
        The scheme, reference id, decoded sub-path and parameters

    Raises:
        URIParseError: If the URI is malformed, uses an unknown scheme, or
            names a reference id or sub-path that does not fit the scheme
    """
    scheme_name, _ = _split_scheme(uri)
    scheme = _scheme(scheme_name)

    try:
        parts = urlsplit(uri)
    except ValueError as e:
        raise URIParseError(f"invalid URI format: {e}") from e

    reference_id = parts.netloc
    if not reference_id:
        raise URIParseError("missing reference ID in URI")
    _check_reference_id(scheme, reference_id)

    sub_path = unquote(parts.path.strip("/"))
    _check_sub_path(scheme, sub_path)

    parameters: dict[str, str] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        parameters.setdefault(key, value)

    return ParsedURI(scheme, reference_id, sub_path, parameters)


def build_uri(
    scheme: str | ResourceScheme,
    reference_id: str,
    sub_path: str = "",
    parameters: dict[str, str] | None = None,
) -> str:
    """Build the canonical URI string.

    Parameters are sorted by key so equal inputs always build equal strings.

    Raises:
        URIParseError: If the components would not parse back
    """
    resolved = _scheme(scheme)
    _check_reference_id(resolved, reference_id)
    _check_sub_path(resolved, sub_path)

    uri = f"{resolved.value}://{reference_id}"
    if sub_path:
        uri += "/" + quote(sub_path)
    if parameters:
        uri += "?" + urlencode(sorted(parameters.items()))
    return uri


def canonicalize_uri(uri: str) -> str:
    return parse_uri(uri).uri


def is_sub_path_supported(scheme: str | ResourceScheme, sub_path: str) -> bool:
    try:
        resolved = ResourceScheme(scheme)
    except ValueError:
        return False
    return sub_path in SUPPORTED_SUB_PATHS[resolved]


def supported_sub_paths(scheme: str | ResourceScheme) -> list[str]:
    return list(SUPPORTED_SUB_PATHS[_scheme(scheme)])


def expected_prefix(scheme: str | ResourceScheme) -> str:
    return _scheme(scheme).prefix


# =============================================================================
# NAVIGATION URIS
# =============================================================================


class CollectionKind(str, enum.Enum):
    EPICS = "epics"
    USER_STORIES = "user-stories"
    REQUIREMENTS = "requirements"
    ACCEPTANCE_CRITERIA = "acceptance-criteria"
    PROMPTS = "prompts"

    @property
    def scheme(self) -> ResourceScheme:
        return _COLLECTION_SCHEMES[self]

    @property
    def result_key(self) -> str:
        """Key holding the items in a collection response."""
        return self.value.replace("-", "_")


_COLLECTION_SCHEMES = {
    CollectionKind.EPICS: ResourceScheme.EPIC,
    CollectionKind.USER_STORIES: ResourceScheme.USER_STORY,
    CollectionKind.REQUIREMENTS: ResourceScheme.REQUIREMENT,
    CollectionKind.ACCEPTANCE_CRITERIA: ResourceScheme.ACCEPTANCE_CRITERIA,
    CollectionKind.PROMPTS: ResourceScheme.PROMPT,
}

ACTIVE_PROMPT_SEGMENT = "active"


@dataclass(frozen=True)
class CollectionURI:
    """``requirements://<collection>``"""

    kind: CollectionKind

    @property
    def uri(self) -> str:
        return f"{NAVIGATION_SCHEME}://{self.kind.value}"


@dataclass(frozen=True)
class NavigationItemURI:
    """``requirements://<collection>/<uuid-or-ref>``; resolves to a typed URI."""

    kind: CollectionKind
    identifier: str

    @property
    def uri(self) -> str:
        return f"{NAVIGATION_SCHEME}://{self.kind.value}/{self.identifier}"

    def rewrite(self, reference_id: str) -> ParsedURI:
        """Typed URI for the item once its reference id is known."""
        _check_reference_id(self.kind.scheme, reference_id)
        return ParsedURI(self.kind.scheme, reference_id)


@dataclass(frozen=True)
class ActivePromptURI:
    """``requirements://prompts/active``"""

    @property
    def uri(self) -> str:
        return f"{NAVIGATION_SCHEME}://{CollectionKind.PROMPTS.value}/{ACTIVE_PROMPT_SEGMENT}"


NavigationURI = CollectionURI | NavigationItemURI | ActivePromptURI
ResourceURI = ParsedURI | NavigationURI


def parse_navigation_uri(uri: str) -> NavigationURI:
    """Parse a ``requirements://`` URI.

    Raises:
        URIParseError: For unknown collections, extra path segments, or item
            identifiers that are neither a UUID nor a reference id of the kind
    """
    scheme, rest = _split_scheme(uri)
    if scheme != NAVIGATION_SCHEME:
        raise URIParseError(f"unsupported URI scheme: {scheme}")

    path = rest.split("?", 1)[0].split("#", 1)[0]
    segments = [unquote(part) for part in path.split("/") if part]
    if not segments:
        raise URIParseError("missing collection in URI")

    try:
        kind = CollectionKind(segments[0])
    except ValueError:
        valid = ", ".join(k.value for k in CollectionKind)
        raise URIParseError(
            f"unknown collection '{segments[0]}' (expected one of: {valid})"
        ) from None

    if len(segments) == 1:
        return CollectionURI(kind)
    if len(segments) > 2:
        raise URIParseError(f"unexpected path in URI: {uri}")

    identifier = segments[1]
    if kind is CollectionKind.PROMPTS and identifier == ACTIVE_PROMPT_SEGMENT:
        return ActivePromptURI()
    if is_uuid(identifier):
        return NavigationItemURI(kind, identifier.lower())

    reference_id = identifier.upper()
    _check_reference_id(kind.scheme, reference_id)
    return NavigationItemURI(kind, reference_id)


def parse_resource_uri(uri: str) -> ResourceURI:
    """Parse any resource URI into its typed or navigation variant."""
    if uri.startswith(f"{NAVIGATION_SCHEME}://"):
        return parse_navigation_uri(uri)
    return parse_uri(uri)
