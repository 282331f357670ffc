"""Pytest configuration and shared fixtures for the Cromwell scaffold cleaner."""

# pylint: disable=wrong-import-position

import os
import sys
from pathlib import Path
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest


@pytest.fixture(autouse=True)
def isolated_credentials_env(tmp_path):
    """Keep tests away from the developer's ~/.env and real AWS credentials.

    AWS_ENV_FILE points at a temporary .env holding fake credentials, and the
    shared credential/config files are redirected to paths that don't exist.
    The whole environment is restored afterwards, including anything a test
    loaded from a .env file.
    """
    env_file = tmp_path / ".env"
    env_file.write_text("AWS_ACCESS_KEY_ID=test_key\nAWS_SECRET_ACCESS_KEY=test_secret\n")
    with patch.dict(os.environ):
        for name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN", "AWS_PROFILE"):
            os.environ.pop(name, None)
        os.environ["AWS_ENV_FILE"] = str(env_file)
        os.environ["AWS_SHARED_CREDENTIALS_FILE"] = str(tmp_path / "missing-credentials")
        os.environ["AWS_CONFIG_FILE"] = str(tmp_path / "missing-config")
        yield str(env_file)
