"""Absence Consolidation package.

Organized by feature modules (ledger, consolidation, reports, users, ...)
with a thin Flask controller layer over service/repository layers.
"""
