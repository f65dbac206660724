"""
nycdata_shared — shared configuration, constants, and record models for the nycdata pipeline.

Usage:
    from nycdata_shared.config import settings
    from nycdata_shared.db import get_supabase_client
    from nycdata_shared.models import HousingBuilding, HousingDemolition, CapitalProject
    from nycdata_shared.geo import normalize_bbl, borough_name
    from nycdata_shared.constants import BOROUGH_NAMES, BUILDING_TYPES
"""

__version__ = "0.1.0"
