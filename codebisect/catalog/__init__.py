"""Update service client for listing and resolving builds."""

from codebisect.catalog.client import CatalogClient


__all__ = ["CatalogClient"]
