"""
Catálogo de servicios y zonas de lanzamiento.

Una única fuente para las listas que el front repetía en cada pantalla.
El motor de reservas no depende de esto; lo usan la validación del alta
y el router /catalog.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel


class ServiceType(BaseModel):
    id: str
    name: str
    options: List[str] = []
    # Boarding y pet sitting se reservan con llegada/salida
    stay_based: bool = False
    has_location: bool = False


SERVICE_CATALOG: Dict[str, ServiceType] = {
    s.id: s
    for s in [
        ServiceType(id="dog-training", name="Dog Training", has_location=True),
        ServiceType(id="dog-walking", name="Dog Walking", has_location=True),
        ServiceType(id="dog-grooming", name="Dog Grooming", options=["Mobile", "Grooming Parlour"]),
        ServiceType(id="dog-boarding", name="Dog Boarding", stay_based=True, has_location=True),
        ServiceType(id="doggy-daycare", name="Doggy Daycare", options=["Full Day", "Half Day"], has_location=True),
        ServiceType(id="pet-sitting", name="Pet Sitting", options=["Full Day", "Overnight"], stay_based=True),
        ServiceType(id="pet-transport", name="Pet Transport", options=["At My Home", "At Provider's Location"]),
        ServiceType(id="vet", name="Vet", options=["Mobile Vet", "Veterinary Practice"], has_location=True),
    ]
}

# Fase de pruebas: Johannesburg y Sandton
LAUNCH_SUBURBS: List[str] = sorted([
    "Bryanston", "Craighall", "Dainfern", "Emmarentia", "Ferndale", "Fourways",
    "Greenside", "Hyde Park", "Linden", "Lone Hill", "Melrose", "Morningside",
    "Northcliff", "Parkhurst", "Paulshof", "Randburg", "Rivonia", "Rosebank",
    "Sunninghill", "Woodmead",
    "Sandton", "Sandton City", "Benmore", "Illovo", "Wendywood", "Bryanston East",
    "Morningside Manor", "Hurlingham", "Gallo Manor", "Douglasdale",
])


def get_service(service_id: str) -> Optional[ServiceType]:
    return SERVICE_CATALOG.get(service_id)


def check_service_request(
    service_id: str,
    option_label: Optional[str],
    has_stay_dates: bool,
) -> None:
    """Lanza ValueError si la combinación servicio/opción/fechas no es válida."""
    service = get_service(service_id)
    if service is None:
        raise ValueError(f"Servicio desconocido: {service_id}")
    if service.options and option_label not in service.options:
        raise ValueError(f"Opción inválida para {service.name}. Válidas: {service.options}")
    if not service.options and option_label is not None:
        raise ValueError(f"{service.name} no tiene opciones")
    if service.stay_based and not has_stay_dates:
        raise ValueError(f"{service.name} necesita arrival_date y departure_date")
    if not service.stay_based and has_stay_dates:
        raise ValueError(f"{service.name} no usa fechas de estancia")
