from __future__ import annotations

import os
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "abrasf-nfse"
KEYRING_SERVICE = "abrasf-nfse"
KEYRING_USERNAME = "cert-pfx-password"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve the config dir before .env is loaded.

    Only the shell env var and the dev checkout layout are considered, plus the
    platformdirs directory when it already exists.
    """
    from_env = os.environ.get("ABRASF_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes.

    Priority: 1) ABRASF_CONFIG_DIR, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get("ABRASF_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    # Development layout: src/abrasf/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    return Path(platformdirs.user_config_dir(APP_NAME))


# --- Protocol constants ---

ABRASF_VERSION = "2.04"


def get_schema_dir() -> Path | None:
    """Return the directory holding the ABRASF XSD files, or None if there is none.

    Priority: 1) ABRASF_SCHEMA_DIR, 2) {config dir}/schemas/{ABRASF_VERSION}.
    """
    from_env = os.environ.get("ABRASF_SCHEMA_DIR")
    if from_env:
        return Path(from_env)
    candidate = get_config_dir() / "schemas" / ABRASF_VERSION
    return candidate if candidate.is_dir() else None

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
XMLDSIG_NS = "http://www.w3.org/2000/09/xmldsig#"
C14N_ALGORITHM = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315"

SOAP_TIMEOUT = 60

AMBIENTE_PRODUCAO = "1"
AMBIENTE_HOMOLOGACAO = "2"


# --- Keyring helpers ---


def _get_keyring_password() -> str | None:
    """Try to get the certificate password from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


# --- Certificate access ---


def get_cert_path() -> str:
    """Return the path to the .pfx certificate from CERT_PFX_PATH env var.

    Raises KeyError if the variable is not set.
    """
    return os.environ["CERT_PFX_PATH"]


def get_cert_password() -> str:
    """Return the certificate password.

    Priority: 1) CERT_PFX_PASSWORD env var, 2) OS keyring.
    Raises KeyError if neither source has the password.
    """
    pwd = os.environ.get("CERT_PFX_PASSWORD")
    if pwd is not None:
        return pwd
    pwd = _get_keyring_password()
    if pwd is not None:
        return pwd
    raise KeyError("CERT_PFX_PASSWORD")


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def load_tenant(name: str) -> dict:
    """Load a tenant (empresa) configuration from config/tenants/{name}.yaml."""
    return load_yaml(get_config_dir() / "tenants" / f"{name}.yaml")


def list_tenants() -> list[str]:
    """Return sorted list of tenant names (YAML file stems) from config/tenants/."""
    tenants_dir = get_config_dir() / "tenants"
    if not tenants_dir.exists():
        return []
    return sorted(f.stem for f in tenants_dir.glob("*.yaml"))
