import copy
import os
import sys
from pathlib import Path

import pytest

# Keep tests deterministic and local-only.
os.environ["APP_SKIP_DOTENV"] = "1"
os.environ["APP_SKIP_CONFIG_WRITE"] = "1"

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from tests.samples import BASE_URL  # noqa: E402
from xrpic.core.config import DEFAULTS, build_settings  # noqa: E402


@pytest.fixture
def make_settings(tmp_path: Path):
    def _make(**overrides):
        values = copy.deepcopy(DEFAULTS)
        values["storage"]["upload_dir"] = str(tmp_path / "uploads")
        values["storage"]["base_url"] = BASE_URL + "/"
        for dotted, value in overrides.items():
            section, name = dotted.split("__", 1)
            values[section][name] = value
        return build_settings(values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def upload_dir(settings) -> Path:
    return settings.storage.upload_dir
