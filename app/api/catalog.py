"""
Endpoints de catálogos (vías de administración y frecuencias)
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from app.core.database import get_db
from app.schemas.catalog import CatalogItemCreate, CatalogItemResponse
from app.services.catalog_service import CatalogService

router = APIRouter()


@router.get("/routes", response_model=List[CatalogItemResponse])
async def list_routes(db: Session = Depends(get_db)):
    catalog_service = CatalogService(db)
    return catalog_service.get_routes()


@router.get("/routes/{route_id}", response_model=CatalogItemResponse)
async def get_route(route_id: int, db: Session = Depends(get_db)):
    catalog_service = CatalogService(db)
    return catalog_service.get_route_by_id(route_id)


@router.post("/routes", response_model=CatalogItemResponse, status_code=status.HTTP_201_CREATED)
async def create_route(route_data: CatalogItemCreate, db: Session = Depends(get_db)):
    """
    Crear una vía de administración (el nombre debe ser único)
    """
    catalog_service = CatalogService(db)
    return catalog_service.create_route(route_data)


@router.put("/routes/{route_id}", response_model=CatalogItemResponse)
async def update_route(route_id: int, route_data: CatalogItemCreate, db: Session = Depends(get_db)):
    catalog_service = CatalogService(db)
    return catalog_service.update_route(route_id, route_data)


@router.delete("/routes/{route_id}")
async def delete_route(route_id: int, db: Session = Depends(get_db)):
    """
    Eliminar una vía; falla con 409 si algún medicamento o dosis la usa
    """
    catalog_service = CatalogService(db)
    catalog_service.delete_route(route_id)
    return {"message": "Vía de administración eliminada"}


@router.get("/frequencies", response_model=List[CatalogItemResponse])
async def list_frequencies(db: Session = Depends(get_db)):
    catalog_service = CatalogService(db)
    return catalog_service.get_frequencies()


@router.get("/frequencies/{frequency_id}", response_model=CatalogItemResponse)
async def get_frequency(frequency_id: int, db: Session = Depends(get_db)):
    catalog_service = CatalogService(db)
    return catalog_service.get_frequency_by_id(frequency_id)


@router.post("/frequencies", response_model=CatalogItemResponse, status_code=status.HTTP_201_CREATED)
async def create_frequency(frequency_data: CatalogItemCreate, db: Session = Depends(get_db)):
    catalog_service = CatalogService(db)
    return catalog_service.create_frequency(frequency_data)


@router.put("/frequencies/{frequency_id}", response_model=CatalogItemResponse)
async def update_frequency(frequency_id: int, frequency_data: CatalogItemCreate, db: Session = Depends(get_db)):
    catalog_service = CatalogService(db)
    return catalog_service.update_frequency(frequency_id, frequency_data)


@router.delete("/frequencies/{frequency_id}")
async def delete_frequency(frequency_id: int, db: Session = Depends(get_db)):
    catalog_service = CatalogService(db)
    catalog_service.delete_frequency(frequency_id)
    return {"message": "Frecuencia eliminada"}
