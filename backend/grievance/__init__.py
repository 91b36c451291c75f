"""Grievance desk core: authorization and invariant enforcement over the complaint store."""
