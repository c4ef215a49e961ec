"""Upstream provider clients and the lookup session service."""
