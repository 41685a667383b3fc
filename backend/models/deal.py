"""
ERP SESSIONS - Modèle Deal (presupuesto importé du CRM)
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict


# Préfixes de code produit qui donnent lieu à des sessions
APPLICABLE_PRODUCT_PREFIXES = ["form-", "ces-", "prev-", "pci-"]


class DealProduct(BaseModel):
    """Entrée catalogue d'un deal"""
    id: str
    name: Optional[str] = None
    code: Optional[str] = None

    @property
    def is_applicable(self) -> bool:
        code = (self.code or "").strip().lower()
        return any(code.startswith(prefix) for prefix in APPLICABLE_PRODUCT_PREFIXES)

    @property
    def session_base_name(self) -> str:
        parts = [p.strip() for p in (self.name, self.code) if p and p.strip()]
        return " – ".join(parts) if parts else "Sesión"


class DealRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    deal_id: str
    title: Optional[str] = None
    pipeline_label: Optional[str] = None
    sede_label: Optional[str] = None
    training_address: Optional[str] = None
    products: List[DealProduct] = []

    def session_product(self) -> Optional[DealProduct]:
        """Premier produit catalogue applicable, None si aucun"""
        for product in self.products:
            if product.is_applicable:
                return product
        return None
