"""
Dense ``order`` maintenance for sibling rows.

Workflow templates are ordered within their governance template and
checklist item templates within their workflow template. Both keep
``order`` as exactly ``{0, 1, ..., n-1}``:

    - append:   new row gets max + 1 (0 for the first)
    - move:     insert-and-shift; siblings between the old and new position
                move one step towards the gap, the moved row is written last
    - delete:   siblings above the removed position move down by one

None of these commit; the calling service owns the transaction.
"""

import logging

from sqlalchemy import func, update

from app.core.exceptions import ValidationError
from app.models import db

logger = logging.getLogger(__name__)


def next_order(model, scope_column, scope_id) -> int:
    """Return the order value for a row appended to the scope."""
    max_order = (
        db.session.query(func.max(model.order))
        .filter(scope_column == scope_id)
        .scalar()
    )
    return 0 if max_order is None else max_order + 1


def sibling_count(model, scope_column, scope_id) -> int:
    return (
        db.session.query(func.count(model.id))
        .filter(scope_column == scope_id)
        .scalar()
    ) or 0


def move_to_position(obj, scope_column, new_order) -> None:
    """Move *obj* to *new_order* within its scope, shifting the siblings in between.

    *new_order* must be an integer in ``[0, n-1]``; anything else is rejected
    before a single row is touched.
    """
    model = type(obj)
    scope_id = getattr(obj, scope_column.key)
    count = sibling_count(model, scope_column, scope_id)

    if isinstance(new_order, bool) or not isinstance(new_order, int):
        raise ValidationError("order must be an integer", details={"order": "invalid"})
    if not 0 <= new_order < count:
        raise ValidationError(
            f"order must be between 0 and {count - 1}",
            details={"order": "out_of_range"},
        )

    old_order = obj.order
    if new_order == old_order:
        return

    if new_order > old_order:
        stmt = (
            update(model)
            .where(
                scope_column == scope_id,
                model.id != obj.id,
                model.order > old_order,
                model.order <= new_order,
            )
            .values(order=model.order - 1)
        )
    else:
        stmt = (
            update(model)
            .where(
                scope_column == scope_id,
                model.id != obj.id,
                model.order >= new_order,
                model.order < old_order,
            )
            .values(order=model.order + 1)
        )
    db.session.execute(stmt, execution_options={"synchronize_session": "fetch"})
    obj.order = new_order
    logger.debug("%s id=%s moved %s → %s", model.__name__, obj.id, old_order, new_order)


def close_gap(model, scope_column, scope_id, removed_order: int) -> None:
    """Shift siblings above a removed row down by one."""
    db.session.execute(
        update(model)
        .where(scope_column == scope_id, model.order > removed_order)
        .values(order=model.order - 1),
        execution_options={"synchronize_session": "fetch"},
    )
