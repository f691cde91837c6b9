"""Component digest extraction from a components manifest.

The manifest is already a projection of a region's configuration that holds
only the interesting values, the component images.  Rather than decoding it
into a fixed schema, the YAML node tree is walked and every string leaf
becomes one entry::

    clusterService:            ->  {"cluster-service": "deadbeef"}
      digest: sha256:deadbeef

The last path segment (``digest``, ``sha``, ...) names the field rather than
the component, so it is dropped.  Remaining segments are kebab-cased and
joined with ``.``.
"""

from __future__ import annotations

import logging
import re

import yaml  # type: ignore[import-untyped]

from release_engine.errors import ComponentExtractionError
from release_engine.models.release import Components

logger = logging.getLogger(__name__)

_STR_TAG = "tag:yaml.org,2002:str"
_DIGEST_PREFIX = "sha256:"
_PATH_SEPARATOR = "."

# Word boundaries: acronym before a capitalised word ("ACRPull"), lower or
# digit before upper ("clusterService"), and letter/digit switches ("v2").
_WORD_BOUNDARY_RE = re.compile(
    r"(?<=[A-Z])(?=[A-Z][a-z])"
    r"|(?<=[a-z0-9])(?=[A-Z])"
    r"|(?<=[A-Za-z])(?=[0-9])"
    r"|(?<=[0-9])(?=[A-Za-z])"
)
_SEPARATOR_RE = re.compile(r"[\s_\-.]+")


def kebab_case(text: str) -> str:
    """Convert *text* to kebab-case (``clusterService`` -> ``cluster-service``)."""
    spaced = _WORD_BOUNDARY_RE.sub(" ", text)
    words = [word for word in _SEPARATOR_RE.split(spaced) if word]
    return "-".join(word.lower() for word in words)


def _walk(node: yaml.Node, path: list[str], components: Components) -> None:
    if isinstance(node, yaml.MappingNode):
        for key_node, value_node in node.value:
            _walk(value_node, [*path, str(key_node.value)], components)
        return

    if isinstance(node, yaml.SequenceNode):
        for index, item in enumerate(node.value):
            _walk(item, [*path, str(index)], components)
        return

    # Scalar leaf.
    if not path:
        raise ComponentExtractionError(f"scalar {node.value!r} at the document root has no component path")

    if node.tag != _STR_TAG or node.value == "":
        logger.warning(
            "Skipping component leaf at %s: expected a non-empty string, got %s %r",
            _PATH_SEPARATOR.join(path) or "<root>",
            node.tag,
            node.value,
        )
        return

    name = _PATH_SEPARATOR.join(kebab_case(segment) for segment in path[:-1])
    components[name] = node.value.removeprefix(_DIGEST_PREFIX)


def extract_components(content: bytes | str) -> Components:
    """Extract flattened component digests from a components manifest.

    Raises
    ------
    ComponentExtractionError
        If the document cannot be parsed, is empty, or is a bare scalar with no
        component path.
    """
    try:
        root = yaml.compose(content, Loader=yaml.SafeLoader)
    except yaml.YAMLError as exc:
        raise ComponentExtractionError(f"failed to parse components YAML: {exc}") from exc

    if root is None:
        raise ComponentExtractionError("parsed components YAML document is empty")

    components: Components = {}
    _walk(root, [], components)
    return components
