"""
Category routes.

Routes:
    GET    /api/categories                 - Active head categories with their categories
    GET    /api/categories/search          - Search active categories by name
    POST   /api/categories                 - Create a category under a head category
    POST   /api/head-categories            - Create a head category
    PATCH  /api/categories/{id}            - Update a category
    DELETE /api/categories/{id}            - Archive a category (kept for history)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from moneyplan.db import get_db
from moneyplan.models import EXPENSE
from moneyplan.routes.common import NOT_AUTHENTICATED, get_owner_id, category_json, head_category_json
from moneyplan.services.categories import CategoryService

router = APIRouter(prefix="/api")


class HeadCategoryRequest(BaseModel):
    name: str
    prefer_type: str = EXPENSE
    icon: Optional[str] = None
    color: Optional[str] = None
    display_order: int = 0


class CategoryRequest(BaseModel):
    head_category_id: str
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    display_order: int = 0


class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    display_order: Optional[int] = None


@router.get("/categories")
def list_categories(request: Request, db: Session = Depends(get_db), type: Optional[str] = Query(None)):
    if not get_owner_id(request):
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    service = CategoryService(db)
    if type is not None:
        return JSONResponse({"categories": [category_json(c) for c in service.categories_of_type(type)]})
    return JSONResponse({"head_categories": [head_category_json(h) for h in service.active_head_categories()]})


@router.get("/categories/search")
def search_categories(request: Request, db: Session = Depends(get_db), q: str = Query("")):
    if not get_owner_id(request):
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    categories = CategoryService(db).search_categories(q)
    return JSONResponse({"categories": [category_json(c) for c in categories]})


@router.post("/head-categories")
def create_head_category(request: Request, data: HeadCategoryRequest, db: Session = Depends(get_db)):
    if not get_owner_id(request):
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    head = CategoryService(db).create_head_category(
        data.name, data.prefer_type, icon=data.icon, color=data.color, display_order=data.display_order,
    )
    return JSONResponse(head_category_json(head), status_code=201)


@router.post("/categories")
def create_category(request: Request, data: CategoryRequest, db: Session = Depends(get_db)):
    if not get_owner_id(request):
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    category = CategoryService(db).create_category(
        data.head_category_id, data.name, icon=data.icon, color=data.color, display_order=data.display_order,
    )
    return JSONResponse(category_json(category), status_code=201)


@router.patch("/categories/{category_id}")
def update_category(category_id: str, request: Request, data: CategoryUpdateRequest, db: Session = Depends(get_db)):
    if not get_owner_id(request):
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    category = CategoryService(db).update_category(category_id, **data.model_dump(exclude_unset=True))
    return JSONResponse(category_json(category))


@router.delete("/categories/{category_id}")
def archive_category(category_id: str, request: Request, db: Session = Depends(get_db)):
    if not get_owner_id(request):
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    CategoryService(db).archive_category(category_id)
    return JSONResponse({"success": True})
