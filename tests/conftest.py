import os
from pathlib import Path

import pytest
from hypothesis import settings as hypothesis_settings

hypothesis_settings.register_profile("ci", max_examples=200, deadline=None)
hypothesis_settings.register_profile("dev", max_examples=50, deadline=None)
hypothesis_settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))

_LAYER_MARKERS = (
    ("/domain/", "domain"),
    ("/application/", "application"),
    ("/integration/", "integration"),
    ("/bdd/", "integration"),
)


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Protean configuration overlay to run the suite against",
    )


def pytest_sessionstart(session):
    """Select the configuration overlay before any ordering module is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("ENVIRONMENT", "test")


def pytest_collection_modifyitems(config, items):
    """Mark tests by the layer directory they live in."""
    for item in items:
        path = str(Path(item.fspath))
        marker = next((name for fragment, name in _LAYER_MARKERS if fragment in path), None)
        if marker is None:
            continue
        item.add_marker(getattr(pytest.mark, marker))
        if marker == "integration" and not any(m.name == "fast" for m in item.iter_markers()):
            item.add_marker(pytest.mark.slow)
