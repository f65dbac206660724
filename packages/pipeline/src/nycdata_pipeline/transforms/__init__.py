"""
nycdata_pipeline.transforms — reconciliation stages, applied strictly in order:

  normalize    — raw provider records -> typed records (drops invalid rows)
  classify     — building type from units, class code, job type, affordability
  overlay      — Housing NY affordability joined onto DCP buildings by BBL
  dedup        — one building per (BBL, completion year)
  demolitions  — flag demolitions whose BBL saw later construction
  geometry     — centroid + Douglas-Peucker simplification for capital projects
"""
