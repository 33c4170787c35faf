from __future__ import annotations

from collections import Counter

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from crm_scope.db.session import get_db
from crm_scope.models.crm import Lead
from crm_scope.schemas.crm import BreakdownRow, OwnerBreakdownRow, SalesReportOut, SalesSummary

router = APIRouter(prefix="/reports", tags=["reports"])

WON = "Won"
LOST = "Lost"


@router.get("/sales", response_model=SalesReportOut)
def sales_report(db: Session = Depends(get_db)) -> SalesReportOut:
    # Guarded by (reports, generate); rows are scoped as leads.
    leads = db.scalars(select(Lead).options(selectinload(Lead.owner)).order_by(Lead.id)).all()

    total = len(leads)
    won = sum(1 for lead in leads if lead.status == WON)
    lost = sum(1 for lead in leads if lead.status == LOST)

    owners: dict[str, Counter] = {}
    for lead in leads:
        name = lead.owner.full_name if lead.owner is not None else "Unassigned"
        stats = owners.setdefault(name, Counter())
        stats["total"] += 1
        stats["won"] += lead.status == WON
        stats["lost"] += lead.status == LOST

    return SalesReportOut(
        summary=SalesSummary(
            total_leads=total,
            won_leads=won,
            lost_leads=lost,
            active_leads=total - won - lost,
            conversion_rate=round(won / total * 100) if total else 0,
        ),
        status_breakdown=[BreakdownRow(key=k, count=v) for k, v in Counter(l.status for l in leads).items()],
        source_breakdown=[BreakdownRow(key=k, count=v) for k, v in Counter(l.source for l in leads).items()],
        owner_breakdown=[
            OwnerBreakdownRow(name=name, total=s["total"], won=s["won"], lost=s["lost"]) for name, s in owners.items()
        ],
    )
