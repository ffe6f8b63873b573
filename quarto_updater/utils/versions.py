# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Semantic version helpers.

Extension versions are SemVer 2.0 strings (``1.2.3``, ``v1.2.3``,
``2.0.0-rc.1``, ``1.0.1+build.5``). ``semver`` does the parsing and ordering;
``version_diff`` computes the magnitude of a bump the way npm's
``semver.diff`` does. Tool requirements (``quarto-required``) are PEP 440
style specifiers and go through ``packaging``.
"""

import logging
from typing import Optional

import semver
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

logger = logging.getLogger(__name__)


def normalise_version(version: str) -> str:
    """Trim whitespace and drop a leading 'v'."""
    normalised = version.strip()
    if normalised.startswith('v'):
        normalised = normalised[1:]
    return normalised


def parse_semver(version: Optional[str]) -> Optional[semver.Version]:
    """Parse ``MAJOR.MINOR.PATCH[-prerelease][+build]``; anything else returns None."""
    if not version:
        return None

    try:
        return semver.Version.parse(normalise_version(version))
    except (ValueError, TypeError):
        return None


def is_valid_semver(version: Optional[str]) -> bool:
    return parse_semver(version) is not None


def version_diff(version_a: str, version_b: str) -> Optional[str]:
    """Return the magnitude of the change between two versions.

    One of ``major``, ``premajor``, ``minor``, ``preminor``, ``patch``,
    ``prepatch``, ``prerelease``; None when the versions are equal or either
    one is not valid semver. Build metadata is ignored. Argument order does
    not matter.
    """
    va = parse_semver(version_a)
    vb = parse_semver(version_b)
    if va is None or vb is None or va.compare(vb) == 0:
        return None

    high, low = (va, vb) if va.compare(vb) > 0 else (vb, va)
    high_has_pre = high.prerelease is not None
    low_has_pre = low.prerelease is not None

    # Going from a prerelease to its own release (1.1.0-rc.1 -> 1.1.0)
    if low_has_pre and not high_has_pre:
        if not low.minor and not low.patch:
            return 'major'
        if (low.major, low.minor, low.patch) == (high.major, high.minor, high.patch):
            if low.minor and not low.patch:
                return 'minor'
            return 'patch'

    prefix = 'pre' if high_has_pre else ''
    if va.major != vb.major:
        return f'{prefix}major'
    if va.minor != vb.minor:
        return f'{prefix}minor'
    if va.patch != vb.patch:
        return f'{prefix}patch'
    return 'prerelease'


def is_version_lower(current: str, latest: str) -> bool:
    """True when ``current`` sorts strictly before ``latest``. Both must be valid."""
    return parse_semver(current).compare(parse_semver(latest)) < 0


def satisfies_requirement(installed_version: str, requirement: str) -> bool:
    """Check an installed tool version against a manifest requirement.

    ``requirement`` is a specifier such as ``>=1.4.0``; a bare version means
    "at least this version". Unparseable input cannot be evaluated and is
    treated as satisfied.
    """
    spec_text = requirement.strip()
    if spec_text and spec_text[0].isdigit():
        spec_text = f'>={spec_text}'

    try:
        specifier = SpecifierSet(spec_text)
        installed = Version(normalise_version(installed_version))
    except (InvalidSpecifier, InvalidVersion) as e:
        logger.warning(f"Could not evaluate requirement '{requirement}' against '{installed_version}': {e}")
        return True

    return specifier.contains(installed, prereleases=True)
