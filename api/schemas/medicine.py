"""
Medicine Schemas
Pydantic models for medicine-related API requests and responses
"""

from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, Field


# ==================== BASE SCHEMAS ====================

class MedicineBase(BaseModel):
    """Base medicine schema"""
    name: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)


# ==================== REQUEST SCHEMAS ====================

class MedicineCreate(MedicineBase):
    """Schema for adding a medicine"""
    frequency: Union[List[str], str] = Field(..., description="Tags like before_breakfast, after_dinner")
    inventory: int = Field(..., ge=0)
    target_id: str = Field(..., min_length=1)


class MedicineUpdate(BaseModel):
    """Schema for updating a medicine; omitted fields are left as they are"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    dosage: Optional[str] = Field(None, min_length=1, max_length=100)
    frequency: Optional[Union[List[str], str]] = None
    inventory: Optional[int] = Field(None, ge=0)
    target_id: Optional[str] = Field(None, min_length=1)


class RestockRequest(BaseModel):
    """Schema for adding doses to a medicine"""
    amount: int = Field(..., gt=0)


# ==================== RESPONSE SCHEMAS ====================

class MedicineResponse(MedicineBase):
    """Schema for medicine response"""
    id: str
    frequency: List[str]
    inventory: int
    target_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    added_by: Optional[str] = None
    updated_by: Optional[str] = None


class MedicineList(BaseModel):
    """List of medicines"""
    medicines: List[MedicineResponse]
    total: int
    low_stock_count: int


class InventoryResponse(BaseModel):
    """Current dose count after an inventory change"""
    medicine_id: str
    inventory: int
