"""Idempotent merging of constraints into a composer.json conflict section."""

import logging

from .constraints import OR_SEPARATOR, build_constraint
from .feed import FeedEntry, SoftwareRecord
from .keys import resolve_vulnerability_key
from .models import ComposerManifest, MergeOutcome

logger = logging.getLogger(__name__)


def merge_constraint(manifest: ComposerManifest, key: str, constraint: str) -> MergeOutcome:
    """Fold a single constraint into the conflict map.

    The check for an existing constraint is a literal substring test, not a
    range comparison. The returned manifest is a new value; the input is
    never modified.

    Args:
        manifest: Manifest to merge into
        key: Package identifier
        constraint: Constraint string for one affected range

    Returns:
        Merge outcome with ``changed`` set when the conflict map was modified
    """
    existing = manifest.conflict.get(key)
    if existing is None:
        merged = constraint
    elif constraint not in existing:
        merged = f"{existing}{OR_SEPARATOR}{constraint}"
    else:
        return MergeOutcome(manifest=manifest, last_constraint=constraint, changed=False)

    conflict = dict(manifest.conflict)
    conflict[key] = merged
    conflict = dict(sorted(conflict.items(), key=lambda item: item[0]))
    return MergeOutcome(manifest=manifest.with_conflict(conflict), last_constraint=constraint, changed=True)


def combine_outcomes(previous: MergeOutcome, current: MergeOutcome) -> MergeOutcome:
    """Combine two sequential outcomes, keeping the last constraint that changed something."""
    if current.changed or not previous.changed:
        last_constraint = current.last_constraint or previous.last_constraint
    else:
        last_constraint = previous.last_constraint
    return MergeOutcome(
        manifest=current.manifest,
        last_constraint=last_constraint,
        changed=previous.changed or current.changed,
    )


def merge_software(manifest: ComposerManifest, software: SoftwareRecord) -> MergeOutcome:
    """Fold every affected range of one software record into the manifest."""
    outcome = MergeOutcome(manifest=manifest)

    if not software.slug:
        logger.warning("Software %r has no slug", software.name)
        return outcome
    if not software.affected_versions:
        logger.warning("Software %s has no affected_versions", software.slug)
        return outcome

    key = resolve_vulnerability_key(software.type, software.slug)
    if key is None:
        logger.warning("Unknown software type=%s for slug=%s", software.type.value, software.slug)
        return outcome

    for position, affected in enumerate(software.affected_versions):
        constraint = build_constraint(affected)
        if constraint is None:
            logger.warning(
                "Couldn't create conflict versions string for affected_versions[%d] of package=%s",
                position,
                software.slug,
            )
            continue
        outcome = combine_outcomes(outcome, merge_constraint(outcome.manifest, key, constraint))

    return outcome


def merge_entry(manifest: ComposerManifest, entry: FeedEntry) -> MergeOutcome:
    """Fold every software record of a feed entry into the manifest.

    Args:
        manifest: Manifest the entry is evaluated against
        entry: Decoded feed entry

    Returns:
        Combined outcome; ``changed`` is True if any range modified the manifest
    """
    outcome = MergeOutcome(manifest=manifest)
    for software in entry.software:
        outcome = combine_outcomes(outcome, merge_software(outcome.manifest, software))
    return outcome
