"""
nycdata_shared.models — Pydantic models matching each persisted table.

Records are frozen: pipeline stages return updated copies instead of
mutating their inputs.

All models provide:
  .from_db_row(row: dict) -> Model
  .to_insert_dict() -> dict
"""

from nycdata_shared.models.capital import CapitalProject
from nycdata_shared.models.housing import AffordableOverlay, HousingBuilding, HousingDemolition

__all__ = [
    "AffordableOverlay",
    "HousingBuilding",
    "HousingDemolition",
    "CapitalProject",
]
