"""
Medicines API Router
Endpoints for managing a tenant's medicines and inventory
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from config import engine_config
from api.deps import get_actor_id, get_medication_service, get_schedule_service
from api.schemas.medicine import (
    InventoryResponse,
    MedicineCreate,
    MedicineList,
    MedicineResponse,
    MedicineUpdate,
    RestockRequest,
)
from services.medication_service import MedicationService
from services.schedule_service import ScheduleService


router = APIRouter(prefix="/tenants/{tenant_id}/medicines", tags=["medicines"])


@router.post("/", response_model=MedicineResponse, status_code=status.HTTP_201_CREATED)
def create_medicine(
    tenant_id: str,
    medicine_data: MedicineCreate,
    actor_id: str = Depends(get_actor_id),
    medication_service: MedicationService = Depends(get_medication_service),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """
    Add a medicine for a target

    - **frequency**: tags like `before_breakfast` as a list or comma-separated string
    - **inventory**: current number of doses
    """
    schedule_service.require_tracker(tenant_id, actor_id)
    return medication_service.add_medicine(
        tenant_id,
        name=medicine_data.name,
        dosage=medicine_data.dosage,
        frequency=medicine_data.frequency,
        inventory=medicine_data.inventory,
        target_id=medicine_data.target_id,
        added_by=actor_id,
    )


@router.get("/", response_model=MedicineList)
def list_medicines(
    tenant_id: str,
    target_id: Optional[str] = Query(None, description="Only medicines for this target"),
    medication_service: MedicationService = Depends(get_medication_service)
):
    """List medicines, optionally for one target"""
    medicines = medication_service.list_medicines(tenant_id, target_id=target_id)
    return {
        "medicines": medicines,
        "total": len(medicines),
        "low_stock_count": sum(
            1 for m in medicines if m.get("inventory", 0) <= engine_config.LOW_STOCK_THRESHOLD
        ),
    }


@router.get("/{medicine_id}", response_model=MedicineResponse)
def get_medicine(
    tenant_id: str,
    medicine_id: str,
    medication_service: MedicationService = Depends(get_medication_service)
):
    return medication_service.get_medicine(tenant_id, medicine_id)


@router.patch("/{medicine_id}", response_model=MedicineResponse)
def update_medicine(
    tenant_id: str,
    medicine_id: str,
    updates: MedicineUpdate,
    actor_id: str = Depends(get_actor_id),
    medication_service: MedicationService = Depends(get_medication_service),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """Update medicine fields; schedules are not regenerated"""
    schedule_service.require_tracker(tenant_id, actor_id)
    return medication_service.update_medicine(
        tenant_id,
        medicine_id,
        updates.model_dump(exclude_none=True),
        updated_by=actor_id,
    )


@router.delete("/{medicine_id}", response_model=MedicineResponse)
def delete_medicine(
    tenant_id: str,
    medicine_id: str,
    actor_id: str = Depends(get_actor_id),
    medication_service: MedicationService = Depends(get_medication_service),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """Delete a medicine; its slots stay until the next regeneration"""
    schedule_service.require_tracker(tenant_id, actor_id)
    return medication_service.delete_medicine(tenant_id, medicine_id, deleted_by=actor_id)


@router.post("/{medicine_id}/restock", response_model=InventoryResponse)
def restock_medicine(
    tenant_id: str,
    medicine_id: str,
    request: RestockRequest,
    actor_id: str = Depends(get_actor_id),
    medication_service: MedicationService = Depends(get_medication_service),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    schedule_service.require_tracker(tenant_id, actor_id)
    inventory = medication_service.restock_medicine(tenant_id, medicine_id, request.amount, actor=actor_id)
    return {"medicine_id": medicine_id, "inventory": inventory}
