from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import yaml

import abrasf.config as config_mod


class TestConfigDir:
    def test_from_env_var(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ABRASF_CONFIG_DIR", str(tmp_path))
        assert config_mod.get_config_dir() == tmp_path

    def test_project_root_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("ABRASF_CONFIG_DIR", raising=False)
        fake_pkg = tmp_path / "src" / "abrasf"
        fake_pkg.mkdir(parents=True)
        config_dir = tmp_path / "config"
        config_dir.mkdir()

        monkeypatch.setattr(config_mod, "__file__", str(fake_pkg / "config.py"))
        assert config_mod.get_config_dir() == config_dir

    def test_platformdirs_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("ABRASF_CONFIG_DIR", raising=False)
        fake_pkg = tmp_path / "nowhere" / "src" / "abrasf"
        fake_pkg.mkdir(parents=True)
        monkeypatch.setattr(config_mod, "__file__", str(fake_pkg / "config.py"))
        assert "abrasf-nfse" in str(config_mod.get_config_dir())


class TestCertEnv:
    def test_get_cert_path_returns_env(self, monkeypatch):
        monkeypatch.setenv("CERT_PFX_PATH", "/some/path.pfx")
        assert config_mod.get_cert_path() == "/some/path.pfx"

    def test_get_cert_path_raises_missing(self, monkeypatch):
        monkeypatch.delenv("CERT_PFX_PATH", raising=False)
        with pytest.raises(KeyError):
            config_mod.get_cert_path()

    def test_get_cert_password_returns_env(self, monkeypatch):
        monkeypatch.setenv("CERT_PFX_PASSWORD", "secret")
        assert config_mod.get_cert_password() == "secret"

    def test_get_cert_password_empty_env_is_set(self, monkeypatch):
        monkeypatch.setenv("CERT_PFX_PASSWORD", "")
        with patch.object(config_mod, "_get_keyring_password", return_value="from-keyring"):
            assert config_mod.get_cert_password() == ""

    def test_get_cert_password_raises_missing(self, monkeypatch):
        monkeypatch.delenv("CERT_PFX_PASSWORD", raising=False)
        with (
            patch.object(config_mod, "_get_keyring_password", return_value=None),
            pytest.raises(KeyError),
        ):
            config_mod.get_cert_password()

    def test_get_cert_password_keyring_fallback(self, monkeypatch):
        monkeypatch.delenv("CERT_PFX_PASSWORD", raising=False)
        with patch.object(config_mod, "_get_keyring_password", return_value="from-keyring"):
            assert config_mod.get_cert_password() == "from-keyring"


class TestKeyringHelpers:
    def test_success(self):
        mock_kr = MagicMock()
        mock_kr.get_password.return_value = "stored-pw"
        with patch.dict("sys.modules", {"keyring": mock_kr}):
            assert config_mod._get_keyring_password() == "stored-pw"
        mock_kr.get_password.assert_called_once_with("abrasf-nfse", "cert-pfx-password")

    def test_not_stored(self):
        mock_kr = MagicMock()
        mock_kr.get_password.return_value = None
        with patch.dict("sys.modules", {"keyring": mock_kr}):
            assert config_mod._get_keyring_password() is None

    def test_backend_failure(self):
        mock_kr = MagicMock()
        mock_kr.get_password.side_effect = RuntimeError("no backend")
        with patch.dict("sys.modules", {"keyring": mock_kr}):
            assert config_mod._get_keyring_password() is None


class TestYaml:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "x.yaml"
        path.write_text(yaml.dump({"a": 1, "b": "dois"}))
        assert config_mod.load_yaml(path) == {"a": 1, "b": "dois"}

    def test_load_tenant(self, monkeypatch, config_dir, tenant_dict):
        monkeypatch.setenv("ABRASF_CONFIG_DIR", str(config_dir))
        assert config_mod.load_tenant("acme") == tenant_dict

    def test_load_tenant_missing(self, monkeypatch, config_dir):
        monkeypatch.setenv("ABRASF_CONFIG_DIR", str(config_dir))
        with pytest.raises(FileNotFoundError):
            config_mod.load_tenant("nao-existe")

    def test_list_tenants(self, monkeypatch, config_dir):
        (config_dir / "tenants" / "beta.yaml").write_text("cnpj: '1'\n")
        (config_dir / "tenants" / "notas.txt").write_text("x")
        monkeypatch.setenv("ABRASF_CONFIG_DIR", str(config_dir))
        assert config_mod.list_tenants() == ["acme", "beta"]

    def test_list_tenants_without_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ABRASF_CONFIG_DIR", str(tmp_path))
        assert config_mod.list_tenants() == []


class TestSchemaDir:
    def test_from_env_var(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ABRASF_SCHEMA_DIR", str(tmp_path))
        assert config_mod.get_schema_dir() == tmp_path

    def test_under_config_dir(self, monkeypatch, tmp_path):
        monkeypatch.delenv("ABRASF_SCHEMA_DIR", raising=False)
        monkeypatch.setenv("ABRASF_CONFIG_DIR", str(tmp_path))
        schemas = tmp_path / "schemas" / "2.04"
        schemas.mkdir(parents=True)
        assert config_mod.get_schema_dir() == schemas

    def test_none_when_absent(self, monkeypatch, tmp_path):
        monkeypatch.delenv("ABRASF_SCHEMA_DIR", raising=False)
        monkeypatch.setenv("ABRASF_CONFIG_DIR", str(tmp_path))
        assert config_mod.get_schema_dir() is None


class TestConstants:
    def test_protocol_constants(self):
        assert config_mod.ABRASF_VERSION == "2.04"
        assert config_mod.SOAP_TIMEOUT == 60
        assert config_mod.AMBIENTE_PRODUCAO == "1"
        assert config_mod.AMBIENTE_HOMOLOGACAO == "2"
