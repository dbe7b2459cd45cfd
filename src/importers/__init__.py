"""Importer packages for ingesting broker transaction exports."""

from importers.ibkr_importer import IbkrImporter

__all__ = ["IbkrImporter"]
