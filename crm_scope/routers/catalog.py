from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm_scope.db.filters import load_unscoped
from crm_scope.db.session import get_db
from crm_scope.models.crm import Product, Project
from crm_scope.schemas.crm import ProductOut, ProjectOut
from crm_scope.security.context import AuthzContext
from crm_scope.security.dependencies import get_authz, require_object_access

router = APIRouter(tags=["catalog"])

DISCONTINUED = "Discontinued"


@router.get("/products", response_model=list[ProductOut])
def list_products(db: Session = Depends(get_db)) -> list[Product]:
    stmt = select(Product).where(Product.status != DISCONTINUED).order_by(Product.name)
    return list(db.scalars(stmt).all())


@router.get("/products/{id}", response_model=ProductOut)
def get_product(id: int, db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> Product:
    return require_object_access(load_unscoped(db, Product, id), authz, "Product")


@router.get("/projects", response_model=list[ProjectOut])
def list_projects(db: Session = Depends(get_db)) -> list[Project]:
    return list(db.scalars(select(Project).order_by(Project.created_at.desc(), Project.id)).all())


@router.get("/projects/{id}", response_model=ProjectOut)
def get_project(id: int, db: Session = Depends(get_db), authz: AuthzContext = Depends(get_authz)) -> Project:
    return require_object_access(load_unscoped(db, Project, id), authz, "Project")
