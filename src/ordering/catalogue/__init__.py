"""Catalogue collaborator factory.

The catalogue lives in another service; ``get_catalogue()`` returns the
adapter the ordering context reads products and vendor profiles through.
"""

from ordering.catalogue.fake_adapter import FakeCatalogue
from ordering.catalogue.port import CataloguePort

_current_catalogue: CataloguePort | None = None


def get_catalogue() -> CataloguePort:
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = FakeCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: CataloguePort) -> None:
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    global _current_catalogue
    _current_catalogue = None
