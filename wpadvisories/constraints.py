"""Composer conflict constraints built from affected-version ranges."""

import logging
import re

from .feed import AffectedVersionRange

logger = logging.getLogger(__name__)

ANY_VERSION = "*"
AND_SEPARATOR = ","
OR_SEPARATOR = " || "

# Stability suffixes understood by composer's version normalizer
_MODIFIER = r"(?:[._-]?(?:stable|beta|b|RC|alpha|a|patch|pl|p)(?:[.-]?\d+)*)?(?:[.-]?dev)?"
_BUILD_METADATA = r"(?:\+[0-9A-Za-z.-]+)?"

_CLASSICAL_VERSION = re.compile(
    rf"^v?\d{{1,5}}(?:\.\d+){{0,3}}{_MODIFIER}{_BUILD_METADATA}$", re.IGNORECASE
)
_DATE_VERSION = re.compile(
    rf"^v?\d{{4}}(?:[.:-]?\d{{2}}){{1,6}}(?:[.:-]?\d{{1,3}}){{0,2}}{_MODIFIER}{_BUILD_METADATA}$",
    re.IGNORECASE,
)
# "*", "x", "*.*"
_ANY_WILDCARD = re.compile(r"^v?[xX*](?:\.[xX*])*$")
# "1.*", "1.2.x"
_WILDCARD_VERSION = re.compile(r"^v?\d+(?:\.\d+){0,2}(?:\.[xX*])+$")
# "1.x-dev", "2.3-dev"
_NUMERIC_BRANCH = re.compile(r"^v?\d+(?:\.(?:\d+|[xX*])){0,3}[.-]?dev$", re.IGNORECASE)
# "dev-main", "dev-feature/foo"
_DEV_BRANCH = re.compile(r"^dev-[^\s,|<>=!^~@]+$", re.IGNORECASE)
_NAMED_BRANCH = re.compile(r"^(?:master|trunk|default)$", re.IGNORECASE)

_VERSION_TOKENS = (
    _ANY_WILDCARD,
    _CLASSICAL_VERSION,
    _DATE_VERSION,
    _WILDCARD_VERSION,
    _NUMERIC_BRANCH,
    _DEV_BRANCH,
    _NAMED_BRANCH,
)


def is_valid_composer_version(version: str) -> bool:
    """Check whether a string is a single composer version-constraint token.

    Accepts what composer's constraint parser accepts for one bare token:
    concrete versions, ``*``/``x`` wildcards and branch names. Surrounding
    whitespace is ignored. Operators, ranges and ``||``/``,`` lists are
    rejected because the token is prefixed with an operator afterwards.

    Args:
        version: Candidate token such as "1.2.3", "v2.0.0-beta1", "1.2.*" or "*"

    Returns:
        True if composer would parse it, False otherwise
    """
    version = version.strip()
    if not version:
        return False
    return any(pattern.match(version) for pattern in _VERSION_TOKENS)


def build_constraint(affected: AffectedVersionRange) -> str | None:
    """Build the conflict constraint excluding an affected-version range.

    Produces strings like ``>2.0.0,<=2.0.3``, ``>=1.0.4,<2.0.0`` or ``<=3.0.5``;
    a range whose bounds are equal pins that exact version, so ``* - *``
    (every version, no fix released) yields ``*``.

    Args:
        affected: Range of vulnerable versions

    Returns:
        Constraint string, or None when the range cannot be expressed
    """
    to_version = (affected.to_version or "").strip()
    if not to_version:
        return None
    from_version = affected.from_version.strip()

    for version in (from_version, to_version):
        if not is_valid_composer_version(version):
            logger.warning("Version %s is not a correct version", version)
            return None

    from_symbol = ">=" if affected.from_inclusive else ">"
    to_symbol = "<=" if affected.to_inclusive else "<"

    if from_version == to_version:
        return from_version
    if from_version == ANY_VERSION:
        return f"{to_symbol}{to_version}"
    return f"{from_symbol}{from_version}{AND_SEPARATOR}{to_symbol}{to_version}"
