# app/routers/catalog.py
from fastapi import APIRouter, HTTPException
from typing import List
from ..catalog import LAUNCH_SUBURBS, SERVICE_CATALOG, ServiceType, get_service

router = APIRouter()

# GET /catalog/services
@router.get("/services", response_model=List[ServiceType])
async def list_service_types():
    return list(SERVICE_CATALOG.values())

@router.get("/services/{service_id}", response_model=ServiceType)
async def get_service_type(service_id: str):
    service = get_service(service_id)
    if service is None:
        raise HTTPException(404, "Servicio no encontrado")
    return service

# GET /catalog/suburbs
@router.get("/suburbs", response_model=List[str])
async def list_suburbs():
    return LAUNCH_SUBURBS
