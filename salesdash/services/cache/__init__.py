"""
In-process dashboard cache: snapshots, coordinator and date-range reconciliation.
"""
