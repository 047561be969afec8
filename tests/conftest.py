# tests/conftest.py
import os
import sys

import pytest

# pytest-dotenv has already loaded .env at this point
pp = os.getenv("PYTHONPATH")
if pp:
    for p in pp.split(os.pathsep):
        if p:
            sys.path.insert(0, p)


@pytest.fixture(autouse=True)
def _no_config_module_env(monkeypatch):
    # A developer's MOTION_TRAILS_CONFIG_MODULE must not leak into tests.
    monkeypatch.delenv("MOTION_TRAILS_CONFIG_MODULE", raising=False)
