from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from scopeauth.db.filters import apply_city_filter, apply_zone_filter
from scopeauth.db.session import get_db
from scopeauth.models.reports import Report
from scopeauth.schemas.reports import ReportIn, ReportOut
from scopeauth.security.context import Actor
from scopeauth.security.dependencies import effective_city_filter, get_current_actor, get_zone_scope
from scopeauth.security.scope import Scope
from scopeauth.security.zone_access import assert_zone_access

router = APIRouter(prefix="/reports", tags=["reports"])


def _scoped(request: Request, zone_scope: Scope | None):
    # Permission and zone gates for these routes are declared in security_config.yaml.
    stmt = apply_city_filter(select(Report), Report.city_id, effective_city_filter(request, "reports", "view"))
    return apply_zone_filter(stmt, Report.zone_id, zone_scope)


@router.get("", response_model=list[ReportOut])
def list_reports(
    request: Request,
    zone_scope: Scope | None = Depends(get_zone_scope),
    db: Session = Depends(get_db),
) -> list[Report]:
    return list(db.scalars(_scoped(request, zone_scope).order_by(Report.id)).all())


@router.get("/{id}", response_model=ReportOut)
def get_report(
    id: int,
    request: Request,
    zone_scope: Scope | None = Depends(get_zone_scope),
    db: Session = Depends(get_db),
) -> Report:
    report = db.scalars(_scoped(request, zone_scope).where(Report.id == id)).first()
    if report is None:
        # Out-of-scope rows look exactly like missing ones.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


@router.post("", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
def create_report(
    dto: ReportIn,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    zone_scope: Scope | None = Depends(get_zone_scope),
    db: Session = Depends(get_db),
) -> Report:
    city_filter = effective_city_filter(request, "reports", "write")
    if city_filter is not None and dto.city_id not in city_filter:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="City outside your access scope")
    if dto.zone_id is not None and not assert_zone_access(zone_scope, dto.zone_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Zone outside your access scope")

    report = Report(title=dto.title, body=dto.body, city_id=dto.city_id, zone_id=dto.zone_id, created_by=actor.id)
    db.add(report)
    db.commit()
    db.refresh(report)
    return report
