"""Tests for client.py module."""

import base64
import ssl
from pathlib import Path
from unittest.mock import patch

import pytest

from kubeconfig_client.client import KubernetesClient, client_for, connect, identity_blob
from kubeconfig_client.config import decode_config
from kubeconfig_client.exceptions import (
    CertificateConversionError,
    ClientInitError,
    ContextNotFoundError,
    InvalidAuthHeaderError,
    InvalidCertificateError,
    InvalidIdentityError,
    UnsupportedAuthError,
)
from kubeconfig_client.material import ByteMaterial
from kubeconfig_client.models import (
    CertificateAuthority,
    CertificateEmbeddedAuth,
    CertificateFileAuth,
    CertificateSource,
    Cluster,
    ExecAuth,
    ExecAuthDescriptor,
    NullAuth,
    PlainAuth,
    ResolvedContext,
    TokenAuth,
)

TEST_CA_PEM = b"""-----BEGIN CERTIFICATE-----
MIIDHTCCAgWgAwIBAgIUfUd5DZsP56XmGSNK9JDyIM7JP1EwDQYJKoZIhvcNAQEL
BQAwHTEbMBkGA1UEAwwSa3ViZWNvbmZpZy10ZXN0LWNhMCAXDTI2MTAxNzIyMjcw
OFoYDzIxMjYwOTIzMjIyNzA4WjAdMRswGQYDVQQDDBJrdWJlY29uZmlnLXRlc3Qt
Y2EwggEiMA0GCSqGSIb3DQEBAQUAA4IBDwAwggEKAoIBAQDe/TjXnOfacUVfP22p
VyeD6F4zyYtcX8ByJepc02AFlMAK2NLpHyOzPGFF1lCLrgVtLyVieXfxbFGUn12K
QWJhooqza/oqRLwEMihUYy3Ty8GY2Q5e4N0eFVbBd0oZBwbFlLimEJEbbFkQHfPg
d0bUTsaetpdaq1tUBkfjoOHbUrhDbVVeI+JZOnIYVCgbsoLTPjELOP/HC1wW+2gL
3RHFIznzp69ru9GpL9cyorog9lZOakrMMOGdDA4RSbe8iNuiuDSVHW8KAcAH49kW
UHNBv4vGOmaQyVmvdJ0J/H4Y1FfurwyT01JHxwVdLNNnj7MHIdKvYE/ZvJ2DNhsV
A0CVAgMBAAGjUzBRMB0GA1UdDgQWBBQICHucQEcdhRHPJ+7Kq/DGwJfk/TAfBgNV
HSMEGDAWgBQICHucQEcdhRHPJ+7Kq/DGwJfk/TAPBgNVHRMBAf8EBTADAQH/MA0G
CSqGSIb3DQEBCwUAA4IBAQAuY1/l2fxE1T/uZxlVAvaFu/dTEIdHuopIzuIuqMrS
hDCgKi3vab8n354Ac3zSeFlZXIUacff7tBoAYFBnDOZ2nNmSNeI4RnrfaXsd7m/v
MrScEBC5ttCHYxPwAVpR4hGT2V9qwmEoQ+adEo+2ojFTeF6ZlqzD+Sss3bGq+hdG
PPWPzbXIL6pprEnSpV86l9/453PD8Y5MZqSUKuVSmELfnaLnPABXmVqJaMYNMkgA
PIdOpbaq9FjdmgjxHoGuQCFJcpkQh+hn0BK/Hn8Xl+c6scA8nE+H1rrFho4mJehU
DFD7j+p+Py2nfoZPfPC1pRgWdzcWYE2ryMeJRxlSqh/U
-----END CERTIFICATE-----
"""


def resolved(auth=None, **cluster_kwargs) -> ResolvedContext:
    cluster_kwargs.setdefault("server", "https://host:6443/")
    return ResolvedContext(
        name="test",
        cluster=Cluster(**cluster_kwargs),
        auth=auth if auth is not None else TokenAuth(token="abc"),
        namespace="team-a",
    )


@pytest.fixture(autouse=True)
def quiet_console():
    """Silence console output from the client and plugin runner."""
    with (
        patch("kubeconfig_client.client.console.warning") as warning,
        patch("kubeconfig_client.exec_plugin.console.step"),
    ):
        yield warning


class TestClientBasics:
    """Tests for server normalization and request building."""

    def test_trailing_slash_stripped(self):
        """Test that the stored server has no trailing slash."""
        client = KubernetesClient(resolved())

        assert client.server == "https://host:6443"
        assert client.namespace == "team-a"

    def test_get_joins_path(self):
        """Test that get() joins the path onto the server."""
        client = KubernetesClient(resolved())

        assert client.get("/api/v1").url == "https://host:6443/api/v1"
        assert client.get("api/v1").url == "https://host:6443/api/v1"

    def test_post_joins_path(self):
        """Test that post() builds a POST request with a body."""
        client = KubernetesClient(resolved())

        request = client.post("/api/v1/namespaces", json={"metadata": {"name": "x"}})

        assert request.method == "POST"
        assert request.url == "https://host:6443/api/v1/namespaces"
        assert b'"name": "x"' in request.body

    def test_send_uses_session(self):
        """Test that send() goes through the configured session."""
        client = KubernetesClient(resolved())
        prepared = client.get("/version")

        with patch.object(client.session, "send") as mock_send:
            client.send(prepared, timeout=5)

        mock_send.assert_called_once_with(prepared, timeout=5)

    def test_context_manager_closes_session(self):
        """Test that leaving the with block closes the session."""
        with patch("kubeconfig_client.client.requests.Session.close") as mock_close:
            with KubernetesClient(resolved()):
                pass

        mock_close.assert_called_once()

    def test_repr_hides_credentials(self):
        """Test that repr shows the auth kind but not the token."""
        text = repr(KubernetesClient(resolved()))

        assert "https://host:6443" in text
        assert "token" in text
        assert "abc" not in text


class TestClientAuth:
    """Tests for applying each auth kind."""

    def test_bearer_token_header(self):
        """Test that a token becomes the Authorization header."""
        client = KubernetesClient(resolved(TokenAuth(token="abc")))

        assert client.session.headers["Authorization"] == "Bearer abc"
        assert client.get("/api").headers["Authorization"] == "Bearer abc"

    def test_invalid_token_header(self):
        """Test that a token with a line break is rejected without echoing it."""
        with pytest.raises(InvalidAuthHeaderError) as exc_info:
            KubernetesClient(resolved(TokenAuth(token="abc\nInjected: yes")))

        assert "Injected" not in str(exc_info.value)

    def test_non_latin1_token(self):
        """Test that a token that cannot be encoded as a header is rejected."""
        with pytest.raises(InvalidAuthHeaderError):
            KubernetesClient(resolved(TokenAuth(token="токен")))

    def test_plain_uses_basic_auth(self):
        """Test that username and password become HTTP basic auth."""
        client = KubernetesClient(resolved(PlainAuth(username="admin", password="secret")))

        expected = "Basic " + base64.b64encode(b"admin:secret").decode()
        assert client.get("/api").headers["Authorization"] == expected

    def test_null_auth_warns(self, quiet_console):
        """Test that a context without credentials is flagged."""
        client = KubernetesClient(resolved(NullAuth()))

        assert "Authorization" not in client.get("/api").headers
        quiet_console.assert_called_once()
        assert "no user credentials" in quiet_console.call_args[0][0]

    def test_unresolved_exec_rejected(self):
        """Test that an exec auth must be resolved before building the client."""
        auth = ExecAuth(exec=ExecAuthDescriptor(api_version="v1", command="plugin"))

        with pytest.raises(UnsupportedAuthError):
            KubernetesClient(resolved(auth))

    def test_client_keeps_auth(self):
        """Test that the client records the auth it was built with."""
        auth = TokenAuth(token="abc")

        assert KubernetesClient(resolved(auth)).auth is auth


class TestClientIdentity:
    """Tests for client certificates."""

    @pytest.mark.parametrize("auth_class", [CertificateFileAuth, CertificateEmbeddedAuth])
    def test_identity_blob_concatenates(self, auth_class):
        """Test that the certificate comes first, followed by the key."""
        auth = auth_class(certificate=ByteMaterial(b"CERT"), key=ByteMaterial(b"KEY"))

        assert identity_blob(auth) == b"CERTKEY"

    def test_identity_blob_absent(self):
        """Test that other auth kinds carry no identity."""
        assert identity_blob(TokenAuth(token="abc")) is None

    def test_identity_loaded_from_removed_temp_file(self, mock_ssl_context):
        """Test that the identity is loaded from a temporary file that is removed afterwards."""
        seen = {}

        def capture(path):
            seen["path"] = Path(path)
            seen["content"] = Path(path).read_bytes()

        mock_ssl_context.load_cert_chain.side_effect = capture
        auth = CertificateEmbeddedAuth(certificate=ByteMaterial(b"CERT"), key=ByteMaterial(b"KEY"))

        KubernetesClient(resolved(auth))

        assert seen["content"] == b"CERTKEY"
        assert not seen["path"].exists()

    def test_malformed_identity(self):
        """Test that an unparseable certificate and key raise InvalidIdentityError."""
        auth = CertificateEmbeddedAuth(certificate=ByteMaterial(b"not a cert"), key=ByteMaterial(b"not a key"))

        with pytest.raises(InvalidIdentityError):
            KubernetesClient(resolved(auth))


class TestClientTrust:
    """Tests for cluster certificate authorities and TLS settings."""

    @pytest.mark.parametrize("source", [CertificateSource.FILE, CertificateSource.EMBEDDED])
    def test_trust_root_added(self, mock_ssl_context, source):
        """Test that the certificate authority is handed to the SSL context as PEM text."""
        pem = b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----"
        authority = CertificateAuthority(source=source, certificate=ByteMaterial(pem))

        KubernetesClient(resolved(certificate_authority=authority))

        mock_ssl_context.load_verify_locations.assert_called_once_with(cadata=pem.decode())

    def test_real_trust_root_loaded(self):
        """Test that a self-signed CA certificate is accepted by OpenSSL."""
        authority = CertificateAuthority(source=CertificateSource.FILE, certificate=ByteMaterial(TEST_CA_PEM))

        client = KubernetesClient(resolved(certificate_authority=authority))

        adapter = client.session.get_adapter("https://host:6443/api")
        assert any(
            cert["subject"] == ((("commonName", "kubeconfig-test-ca"),),)
            for cert in adapter._ssl_context.get_ca_certs()
        )

    def test_bundle_comment_outside_pem_block(self, mock_ssl_context):
        """Test that non-ASCII comment lines around the PEM blocks are ignored."""
        bundle = "# Issuer: CN=NetLock Arany (Class Gold) Főtanúsítvány\n".encode() + TEST_CA_PEM
        authority = CertificateAuthority(source=CertificateSource.FILE, certificate=ByteMaterial(bundle))

        KubernetesClient(resolved(certificate_authority=authority))

        cadata = mock_ssl_context.load_verify_locations.call_args.kwargs["cadata"]
        assert cadata == TEST_CA_PEM.decode().strip()

    def test_bundle_comment_with_real_certificate(self):
        """Test that a commented bundle loads into a real SSL context."""
        bundle = "# Főtanúsítvány\n".encode() + TEST_CA_PEM + "# vége\n".encode()
        authority = CertificateAuthority(source=CertificateSource.FILE, certificate=ByteMaterial(bundle))

        KubernetesClient(resolved(certificate_authority=authority))

    @pytest.mark.parametrize(
        "payload",
        [b"not a certificate", b"-----BEGIN CERTIFICATE-----\ngarbage\n-----END CERTIFICATE-----\n"],
    )
    @pytest.mark.parametrize("source", [CertificateSource.FILE, CertificateSource.EMBEDDED])
    def test_invalid_trust_root_names_field(self, source, payload):
        """Test that an unparseable authority is reported with its source field."""
        authority = CertificateAuthority(source=source, certificate=ByteMaterial(payload))

        with pytest.raises(InvalidCertificateError) as exc_info:
            KubernetesClient(resolved(certificate_authority=authority))

        assert exc_info.value.field == source.value

    def test_non_ascii_pem_block(self):
        """Test that a PEM block with non-ASCII bytes fails conversion and names the field."""
        pem = b"-----BEGIN CERTIFICATE-----\n\xff\xfe\n-----END CERTIFICATE-----\n"
        authority = CertificateAuthority(source=CertificateSource.EMBEDDED, certificate=ByteMaterial(pem))

        with pytest.raises(CertificateConversionError) as exc_info:
            KubernetesClient(resolved(certificate_authority=authority))

        assert exc_info.value.field == "certificate-authority-data"

    def test_adapter_uses_ssl_context(self, mock_ssl_context):
        """Test that https requests go through an adapter carrying the SSL context."""
        client = KubernetesClient(resolved())

        adapter = client.session.get_adapter("https://host:6443/api")

        assert adapter._ssl_context is mock_ssl_context
        assert adapter.poolmanager.connection_pool_kw["ssl_context"] is mock_ssl_context

    def test_insecure_skip_tls_verify(self, quiet_console):
        """Test that verification is disabled and flagged when requested."""
        client = KubernetesClient(resolved(insecure_skip_tls_verify=True))

        adapter = client.session.get_adapter("https://host:6443/api")
        assert client.session.verify is False
        assert adapter._ssl_context.verify_mode == ssl.CERT_NONE
        assert adapter._ssl_context.check_hostname is False
        quiet_console.assert_called_once()

    def test_verification_enabled_by_default(self):
        """Test that the server certificate is verified by default."""
        client = KubernetesClient(resolved())

        adapter = client.session.get_adapter("https://host:6443/api")
        assert client.session.verify is True
        assert adapter._ssl_context.verify_mode == ssl.CERT_REQUIRED

    def test_session_failure(self):
        """Test that a session construction failure raises ClientInitError."""
        with patch("kubeconfig_client.client.requests.Session", side_effect=ValueError("boom")):
            with pytest.raises(ClientInitError) as exc_info:
                KubernetesClient(resolved())

        assert "boom" in str(exc_info.value)


class TestPipeline:
    """Tests for client_for() and connect()."""

    EXEC_KUBECONFIG = """current-context: eks
clusters:
- name: prod
  cluster:
    server: https://prod.example.com/
contexts:
- name: eks
  context:
    cluster: prod
    user: aws
users:
- name: aws
  user:
    exec:
      apiVersion: client.authentication.k8s.io/v1
      command: aws
      args: [eks, get-token]
"""

    def test_exec_auth_resolved_before_client(self, fake_runner, exec_credential):
        """Test that the plugin token ends up as the bearer header."""
        config = decode_config(self.EXEC_KUBECONFIG)
        runner = fake_runner(stdout=exec_credential({"token": "from-plugin"}))

        client = client_for(config, runner=runner)

        assert client.session.headers["Authorization"] == "Bearer from-plugin"
        assert client.auth == TokenAuth(token="from-plugin")
        runner.assert_called_once_with(["aws", "eks", "get-token"], {})

    def test_exec_does_not_modify_document(self, fake_runner, exec_credential):
        """Test that the stored user keeps its exec auth."""
        config = decode_config(self.EXEC_KUBECONFIG)

        client_for(config, runner=fake_runner(stdout=exec_credential({"token": "t"})))

        assert isinstance(config.users[0].auth, ExecAuth)

    def test_named_context(self, sample_kubeconfig_yaml):
        """Test that an explicit context overrides current-context."""
        client = client_for(decode_config(sample_kubeconfig_yaml), "prod")

        assert client.server == "https://prod.example.com"
        assert client.namespace == "default"

    def test_missing_context_raises(self, sample_kubeconfig_yaml):
        """Test that the pipeline reports which reference was missing."""
        with pytest.raises(ContextNotFoundError):
            client_for(decode_config(sample_kubeconfig_yaml), "staging")

    def test_connect_from_file(self, write_kubeconfig):
        """Test the full pipeline from a kubeconfig on disk."""
        path = write_kubeconfig(
            "current-context: local\n"
            "clusters:\n- name: kind\n  cluster:\n    server: https://127.0.0.1:6443\n"
            "contexts:\n- name: local\n  context:\n    cluster: kind\n    user: dev\n    namespace: apps\n"
            "users:\n- name: dev\n  user:\n    token: local-token\n"
        )

        with connect(path) as client:
            assert client.server == "https://127.0.0.1:6443"
            assert client.namespace == "apps"
            assert client.get("/api").headers["Authorization"] == "Bearer local-token"
