from __future__ import annotations

from sqlalchemy import false
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from scopeauth.security.scope import Scope


def apply_city_filter(stmt: Select, column: ColumnElement, city_filter: list[int] | None) -> Select:
    """
    Restrict ``stmt`` to the cities in ``city_filter``.

    The filter comes from ``RequestAuthz.city_filter()``:
        None   -> unrestricted, statement unchanged
        []     -> no access, matches nothing
        [ids]  -> ``column IN (ids)``
    """

    if city_filter is None:
        return stmt
    if not city_filter:
        return stmt.where(false())
    return stmt.where(column.in_(city_filter))


def apply_zone_filter(stmt: Select, column: ColumnElement, scope: Scope | None) -> Select:
    # No zone scope attached means the route did not ask for zone scoping.
    if scope is None or scope.all:
        return stmt
    if not scope.ids:
        return stmt.where(false())
    return stmt.where(column.in_(sorted(scope.ids)))
