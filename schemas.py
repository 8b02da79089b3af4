# --- Pydantic Schemas ---


from pydantic import BaseModel, Field
from typing import Any, Dict


# Normalized Qikink product, as stored in Firestore
class QikinkProduct(BaseModel):
    productId: str = Field(min_length=1)
    name: str = ""
    design: str = ""
    sku: str = ""
    type: str = "uncategorized"
    price: float = Field(default=0, ge=0)
    image: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)


# Sync Response Schemas
class SyncResult(BaseModel):
    ok: bool = True
    message: str
    total: int
    success: int
    failed: int


class SyncError(BaseModel):
    ok: bool = False
    error: str
