"""
Statement versioning and audit trail for FINSTMT.

Every mutation of a persisted statement goes through this module:
status transitions, versioned field updates and deletion. Each mutation
appends to the statement's audit trail; field changes are also recorded
as diffs in the version history so that any version can be rebuilt by
replaying the history over the first version.

Workflow:
    balance_sheet: draft -> review -> approved -> final
    profit_loss:   draft -> review -> approved -> published

Terminal statements (final/published) are append-only: an update creates
a new statement document linked to its predecessor.
"""

import copy
import logging
from dataclasses import replace
from typing import Optional

from .errors import ConflictError, InputError
from .store import Statement, StatementStore, new_statement_id, now_iso

logger = logging.getLogger(__name__)


STATUS_TRANSITIONS = {
    "balance_sheet": {
        "draft": {"review"},
        "review": {"draft", "approved"},
        "approved": {"review", "final"},
        "final": set(),
    },
    "profit_loss": {
        "draft": {"review"},
        "review": {"draft", "approved"},
        "approved": {"review", "published"},
        "published": set(),
    },
}

TERMINAL_STATUSES = {"final", "published"}

# Statuses that stamp approved_by / approved_at.
APPROVAL_STATUSES = {"approved", "final", "published"}

TRACKED_FIELDS = {
    "profit_loss": (
        "revenue",
        "cost_of_goods_sold",
        "gross_profit",
        "operating_expenses",
        "operating_income",
        "other_income",
        "other_expenses",
        "net_income",
        "status",
        "notes",
    ),
    "balance_sheet": ("assets", "liabilities", "equity", "status", "notes"),
}

# Fields an update may never touch.
PROTECTED_FIELDS = {
    "statement_id",
    "statement_number",
    "statement_type",
    "status",
    "audit_trail",
    "version_history",
    "metadata",
    "previous_version",
    "is_current_version",
    "approved_by",
    "approved_at",
    "deleted",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_audit_entry(
    action: str,
    performed_by: str,
    details=None,
    changes: Optional[list] = None,
) -> dict:
    """Build one audit trail record."""
    return {
        "action": action,
        "performed_by": performed_by,
        "performed_at": now_iso(),
        "details": details,
        "changes": changes or [],
    }


def tracked_snapshot(statement: Statement) -> dict:
    """Deep copy of the tracked fields of a statement."""
    snapshot = {}
    for name in TRACKED_FIELDS[statement.statement_type]:
        if name == "status":
            snapshot[name] = statement.status
        elif name == "notes":
            snapshot[name] = statement.notes
        else:
            snapshot[name] = copy.deepcopy(statement.data.get(name))
    return snapshot


def diff_fields(before: dict, after: dict, fields, reason: Optional[str] = None) -> list[dict]:
    """
    Field-level differences between two snapshots.

    Returns:
        List of {field, old_value, new_value, reason} for changed fields.
    """
    changes = []
    for name in fields:
        old_value = before.get(name)
        new_value = after.get(name)
        if old_value != new_value:
            changes.append({
                "field": name,
                "old_value": copy.deepcopy(old_value),
                "new_value": copy.deepcopy(new_value),
                "reason": reason,
            })
    return changes


def _deep_merge(base, overlay):
    if not isinstance(base, dict) or not isinstance(overlay, dict):
        return copy.deepcopy(overlay)
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        merged[key] = _deep_merge(merged.get(key), value)
    return merged


def _apply_snapshot(statement: Statement, snapshot: dict) -> None:
    for name, value in snapshot.items():
        if name == "status":
            statement.status = value
        elif name == "notes":
            statement.notes = value
        else:
            statement.data[name] = copy.deepcopy(value)


def _record_version(
    statement: Statement,
    changes: list[dict],
    changed_by: str,
    notes: Optional[str] = None,
) -> None:
    """Bump the version and append a version history entry."""
    version = statement.version + 1
    statement.metadata["version"] = version
    statement.version_history.append({
        "version": version,
        "changed_by": changed_by,
        "changed_at": now_iso(),
        "changes": changes,
        "status": statement.status,
        "notes": notes,
    })


def replay_version_history(base: dict, version_history: list[dict]) -> dict:
    """
    Rebuild tracked fields by applying version history diffs in order.

    Args:
        base: Tracked-field snapshot of the first version
              (see tracked_snapshot()).
        version_history: History entries as stored on the statement.

    Returns:
        Snapshot of the tracked fields after the last entry.
    """
    document = copy.deepcopy(base)
    for entry in sorted(version_history, key=lambda e: e["version"]):
        for change in entry["changes"]:
            document[change["field"]] = copy.deepcopy(change["new_value"])
    return document


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


def change_status(
    store: StatementStore,
    statement_id: str,
    new_status: str,
    performed_by: str,
    notes: Optional[str] = None,
) -> Statement:
    """
    Move a statement to a new workflow status.

    Args:
        store: Statement store.
        statement_id: Statement to transition.
        new_status: Target status.
        performed_by: User performing the change.
        notes: Optional note recorded with the change.

    Returns:
        The updated statement.

    Raises:
        NotFoundError: If the statement does not exist.
        InputError: If new_status is not a status of this statement type.
        ConflictError: If the transition is not allowed.
    """
    statement = store.get(statement_id)
    transitions = STATUS_TRANSITIONS[statement.statement_type]

    if new_status not in transitions:
        raise InputError(
            f"Invalid status '{new_status}' for {statement.statement_type}. "
            f"Must be one of {', '.join(transitions)}."
        )
    old_status = statement.status
    if new_status not in transitions[old_status]:
        raise ConflictError(
            f"Cannot change status from '{old_status}' to '{new_status}'"
        )

    before = tracked_snapshot(statement)
    statement.status = new_status

    if new_status in APPROVAL_STATUSES and (new_status == "approved" or not statement.approved_by):
        statement.approved_by = performed_by
        statement.approved_at = now_iso()

    changes = diff_fields(before, tracked_snapshot(statement), ["status"], reason=notes)
    _record_version(statement, changes, performed_by, notes)
    statement.audit_trail.append(make_audit_entry(
        "status_change",
        performed_by,
        details={"old_status": old_status, "new_status": new_status, "notes": notes},
        changes=changes,
    ))

    store.replace(statement)
    logger.info(
        f"Statement {statement.statement_number}: {old_status} -> {new_status} "
        f"by {performed_by}"
    )
    return statement


# ---------------------------------------------------------------------------
# Versioned updates
# ---------------------------------------------------------------------------


def _clean_updates(statement: Statement, updates: dict) -> dict:
    tracked = set(TRACKED_FIELDS[statement.statement_type]) - {"status"}
    cleaned = {}
    for key, value in updates.items():
        if key in PROTECTED_FIELDS:
            raise ConflictError(
                f"Field '{key}' is protected and cannot be changed through an update"
            )
        if key not in tracked:
            raise InputError(f"Field '{key}' cannot be updated on a {statement.statement_type}")
        cleaned[key] = value
    return cleaned


def update_statement(
    store: StatementStore,
    statement_id: str,
    updates: dict,
    changed_by: str,
    reason: Optional[str] = None,
) -> Statement:
    """
    Apply a versioned update to a statement's tracked fields.

    Draft and review statements are updated in place. Approved statements
    must first be returned to review. Final/published statements are never
    mutated: the update produces a new draft version that supersedes them.

    Args:
        store: Statement store.
        statement_id: Statement to update.
        updates: Tracked fields to change. Dict values are merged into the
                 existing subtree; other values replace it.
        changed_by: User making the change.
        reason: Reason recorded with each field change.

    Returns:
        The updated statement (a new document for terminal statements).

    Raises:
        NotFoundError: If the statement does not exist.
        InputError: If an untracked, unprotected field is supplied.
        ConflictError: If the statement is approved or not current, or a
                       protected field is supplied.
    """
    statement = store.get(statement_id)
    if not statement.is_current_version:
        raise ConflictError(
            f"Statement {statement.statement_number} has been superseded and cannot be edited"
        )
    if statement.status == "approved":
        raise ConflictError("Approved statements must be returned to review before editing")

    cleaned = _clean_updates(statement, updates)
    before = tracked_snapshot(statement)
    after = copy.deepcopy(before)
    for key, value in cleaned.items():
        after[key] = _deep_merge(before.get(key), value)

    changes = diff_fields(before, after, TRACKED_FIELDS[statement.statement_type], reason)
    if not changes:
        logger.info(f"No changes to apply to statement {statement.statement_number}")
        return statement

    if statement.status in TERMINAL_STATUSES:
        return _create_new_version(store, statement, after, changed_by, reason)

    _apply_snapshot(statement, after)
    _record_version(statement, changes, changed_by, reason)
    statement.audit_trail.append(make_audit_entry(
        "updated",
        changed_by,
        details={"reason": reason, "fields": [c["field"] for c in changes]},
        changes=changes,
    ))
    store.replace(statement)

    logger.info(
        f"Statement {statement.statement_number} updated to version {statement.version} "
        f"({len(changes)} field change(s))"
    )
    return statement


def _create_new_version(
    store: StatementStore,
    old: Statement,
    after: dict,
    changed_by: str,
    reason: Optional[str],
) -> Statement:
    """Supersede a terminal statement with a new draft version."""
    new_version = old.version + 1
    base_number = old.statement_number.split("-V")[0]

    new = replace(
        old,
        statement_id=new_statement_id(),
        statement_number=f"{base_number}-V{new_version}",
        status="draft",
        data=copy.deepcopy(old.data),
        ratios=copy.deepcopy(old.ratios),
        metadata=copy.deepcopy(old.metadata),
        audit_trail=[],
        version_history=copy.deepcopy(old.version_history),
        previous_version=old.statement_id,
        is_current_version=True,
        approved_by=None,
        approved_at=None,
    )
    after = {**after, "status": "draft"}
    changes = diff_fields(tracked_snapshot(old), after, TRACKED_FIELDS[old.statement_type], reason)
    _apply_snapshot(new, after)
    _record_version(new, changes, changed_by, reason)
    new.audit_trail.append(make_audit_entry(
        "version_created",
        changed_by,
        details={
            "reason": reason,
            "previous_version": old.statement_id,
            "previous_number": old.statement_number,
        },
        changes=changes,
    ))

    old.is_current_version = False
    old.audit_trail.append(make_audit_entry(
        "superseded",
        changed_by,
        details={"new_version": new.statement_id, "new_number": new.statement_number},
    ))
    store.replace(old)
    try:
        store.insert(new)
    except ConflictError:
        old.is_current_version = True
        store.replace(old)
        raise

    logger.info(
        f"Statement {old.statement_number} is {old.status}; "
        f"created version {new_version} as {new.statement_number}"
    )
    return new


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


def delete_statement(
    store: StatementStore,
    statement_id: str,
    performed_by: str = "system",
) -> dict:
    """
    Soft-delete a draft statement.

    If the statement superseded an earlier version, that version becomes
    current again.

    Raises:
        NotFoundError: If the statement does not exist.
        ConflictError: If the statement is not a draft.
    """
    statement = store.get(statement_id)
    if statement.status != "draft":
        raise ConflictError("Only draft statements can be deleted")

    statement.audit_trail.append(make_audit_entry("deleted", performed_by))
    store.soft_delete(statement_id)

    if statement.previous_version:
        previous = store.statements.get(statement.previous_version)
        if previous is not None and not previous.deleted:
            previous.is_current_version = True
            previous.audit_trail.append(make_audit_entry(
                "restored_current",
                performed_by,
                details={"deleted_version": statement.statement_id},
            ))
            store.replace(previous)

    return {"message": f"Statement {statement.statement_number} deleted successfully"}
