import hashlib
import hmac
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from sci.config import CheckConfig
from sci.context import SciContext
from sci.main import create_app
from sci.utils.github import GitHubAPIClient

WEBHOOK_SECRET = "test_webhook_secret"
GIST_URL = "https://gist.github.com/sci/0123456789abcdef"


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def check_config():
    return CheckConfig(
        webhook_secret=WEBHOOK_SECRET,
        oauth2_access_token="test-token",
        name="sci-test",
        checks=[["make", "test"]],
        dependencies=[["make", "deps"]],
        precompile=[["make", "build"]],
    )


@pytest.fixture
def mock_github():
    github = AsyncMock(spec=GitHubAPIClient)
    github.is_collaborator.return_value = True
    github.create_gist.return_value = GIST_URL
    return github


@pytest.fixture
def sci_context(check_config, mock_github, tmp_path):
    return SciContext.from_config(check_config, github=mock_github, work_dir=tmp_path)


@pytest.fixture
def client(sci_context):
    return TestClient(create_app(sci_context))
