"""
nycdata_pipeline.pipelines — End-to-end pipeline orchestrators.

Each pipeline module exports a run() async function that fetches, validates,
reconciles and (only when the stored data differs) replaces its tables,
returning a RunOutcome.

    from nycdata_pipeline.pipelines import capital_budget, housing

    outcome = await housing.run(dry_run=True)
    print(outcome.status, outcome.exit_code)
"""
