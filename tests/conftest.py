"""Shared test fixtures for kubeconfig-client tests."""

import base64
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest


def b64(data: bytes) -> str:
    """Return standard base64 text for ``data``."""
    return base64.b64encode(data).decode("ascii")


SAMPLE_KUBECONFIG = f"""apiVersion: v1
kind: Config
current-context: dev
preferences: {{}}
clusters:
- name: dev-cluster
  cluster:
    server: https://dev.example.com:6443/
    certificate-authority-data: {b64(b"dev-ca-bytes")}
- name: prod-cluster
  cluster:
    server: https://prod.example.com
    insecure-skip-tls-verify: true
contexts:
- name: dev
  context:
    cluster: dev-cluster
    user: dev-user
    namespace: team-a
- name: prod
  context:
    cluster: prod-cluster
    user: prod-user
users:
- name: dev-user
  user:
    token: dev-token
- name: prod-user
  user:
    username: admin
    password: secret
"""


@pytest.fixture
def sample_kubeconfig_yaml():
    """Sample kubeconfig with two contexts."""
    return SAMPLE_KUBECONFIG


@pytest.fixture
def write_kubeconfig(tmp_path):
    """Write kubeconfig content into a temporary directory and return its path."""

    def _write(content: str, name: str = "config"):
        path = tmp_path / name
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def exec_credential():
    """Build ExecCredential JSON as printed by an exec plugin."""

    def _build(status: dict) -> bytes:
        document = {
            "apiVersion": "client.authentication.k8s.io/v1",
            "kind": "ExecCredential",
            "status": status,
        }
        return json.dumps(document).encode()

    return _build


@pytest.fixture
def fake_runner():
    """Plugin runner returning a configurable CompletedProcess without spawning anything."""

    def _make(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b""):
        runner = MagicMock()
        runner.side_effect = lambda argv, env: subprocess.CompletedProcess(
            args=list(argv), returncode=returncode, stdout=stdout, stderr=stderr
        )
        return runner

    return _make


@pytest.fixture
def mock_ssl_context():
    """Mock the SSLContext the client builds, so no real certificates are needed."""
    with patch("kubeconfig_client.client.ssl.create_default_context") as mock:
        context = MagicMock()
        mock.return_value = context
        yield context
