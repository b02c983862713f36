"""Shared fixtures: an isolated reactive context per test, and both backends."""

import pytest

from refx import disable_proxy, enable_proxy, flush_jobs, reset_proxy, set_scheduler, use_context


@pytest.fixture(autouse=True)
def _isolated_context():
    with use_context():
        yield
    flush_jobs()
    set_scheduler(None)


@pytest.fixture(params=["proxy", "define"])
def backend(request):
    """Run the test once per observation backend."""
    if request.param == "proxy":
        enable_proxy()
    else:
        disable_proxy()
    yield request.param
    reset_proxy()
