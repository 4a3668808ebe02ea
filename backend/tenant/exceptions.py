"""
Tenancy failures.

Both derive from the Django exceptions DRF already maps to responses,
so views never translate them by hand.
"""
from django.core.exceptions import PermissionDenied
from django.http import Http404


class TenantNotFound(Http404):
    """No tenant exists for the requested identifier."""


class Forbidden(PermissionDenied):
    """The principal may not act in this tenant (or may not perform this action)."""
