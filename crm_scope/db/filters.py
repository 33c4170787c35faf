from __future__ import annotations

from sqlalchemy import event, select
from sqlalchemy.orm import Session, with_loader_criteria

# Execution option that bypasses scoping, e.g. for direct-object lookups that
# must tell "not found" (404) apart from "found but forbidden" (403).
SKIP_ROW_SCOPE = "skip_row_scope"


@event.listens_for(Session, "do_orm_execute")
def _apply_row_scope(execute_state) -> None:
    """
    Transparent row scoping.

    Keeps route code unchanged:
        db.scalars(select(Lead)).all()
    returns only the leads the request's scope decision allows.
    """

    if not execute_state.is_select:
        return
    # Refreshing an already-loaded row is not a new read.
    if execute_state.is_column_load:
        return
    if execute_state.execution_options.get(SKIP_ROW_SCOPE, False):
        return

    authz = execute_state.session.info.get("authz")
    if authz is None or authz.row_filter is None:
        return

    # Local import to avoid cycles.
    from crm_scope.security.ownership import get_module_spec  # noqa: WPS433 (local import)
    from crm_scope.security.synthesizer import to_predicate  # noqa: WPS433 (local import)

    predicate = to_predicate(authz.row_filter)
    if predicate is None:
        return

    model = get_module_spec(authz.row_filter.module).model
    execute_state.statement = execute_state.statement.options(with_loader_criteria(model, predicate))


def load_unscoped(db: Session, model, object_id: int):
    """Fetch one row by primary key without row scoping (None if missing)."""

    stmt = select(model).where(model.id == object_id).execution_options(**{SKIP_ROW_SCOPE: True})
    return db.execute(stmt).scalar_one_or_none()
