"""Version bumping rules for local custom formats."""
from ..schema import ConfigRecord, RecordPatch, utcnow


def apply_update(existing: ConfigRecord, patch: RecordPatch) -> tuple[ConfigRecord, bool]:
    """Apply a patch and decide whether the version moves.

    Submitting specifications always bumps the version by exactly one, even
    when they are identical to the stored ones. Drift detection relies on
    that: a resubmitted rule set is treated as a new revision. Renames and
    the rename flag never touch the version.

    Returns:
        (updated copy of the record, whether the version changed)
    """
    changes = {"updated_at": utcnow()}

    if patch.name is not None:
        changes["name"] = patch.name
    if patch.include_when_renaming is not None:
        changes["include_when_renaming"] = patch.include_when_renaming

    version_changed = patch.specifications is not None
    if version_changed:
        changes["specifications"] = list(patch.specifications)
        changes["version"] = existing.version + 1

    return existing.copy(**changes), version_changed
