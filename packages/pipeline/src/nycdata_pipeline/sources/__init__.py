"""
nycdata_pipeline.sources — data source collaborators.

Each source wraps one external provider and returns raw records
(provider field names, untyped values):
  ArcGISSource   — ArcGIS FeatureServer layers (DCP Housing Database)
  OpenDataSource — NYC Open Data / Socrata JSON and GeoJSON (Housing NY, CPDB)
"""

from nycdata_pipeline.sources.arcgis import ArcGISSource
from nycdata_pipeline.sources.opendata import OpenDataSource

__all__ = [
    "ArcGISSource",
    "OpenDataSource",
]
