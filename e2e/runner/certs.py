# Where: e2e/runner/certs.py
# What: TLS material staging for ssl/wss probe targets, plus test bundle generation.
# Why: TLS probe entries must reference stable, scenario-local certificate paths.
from __future__ import annotations

import logging
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from e2e.runner import constants
from e2e.runner.errors import ProvisioningError

logger = logging.getLogger(__name__)

CERT_VALIDITY_DAYS = 365
CA_VALIDITY_DAYS = 3650
KEY_SIZE = 2048


def stage_tls_material(source_dir: Path, work_dir: Path) -> Path:
    """Copy the CA/client bundle into ``<work_dir>/certs`` and return that directory."""
    missing = [name for name in constants.TLS_BUNDLE if not (source_dir / name).is_file()]
    if missing:
        raise ProvisioningError(
            f"TLS material missing from {source_dir}: {', '.join(missing)}"
        )

    dest = work_dir / constants.CERTS_DIR_NAME
    try:
        dest.mkdir(parents=True, exist_ok=True)
        for name in constants.TLS_BUNDLE:
            shutil.copy2(source_dir / name, dest / name)
    except OSError as e:
        raise ProvisioningError(f"Failed to stage TLS material into {dest}: {e}") from e
    logger.debug(f"Staged TLS material into {dest}")
    return dest


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "EMQX Exporter E2E"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def _write_key(path: Path, key: rsa.RSAPrivateKey) -> None:
    path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )


def generate_cert_bundle(dest: Path) -> Path:
    """Write a self-signed CA and a CA-signed client cert/key usable as the TLS bundle."""
    dest.mkdir(parents=True, exist_ok=True)
    now = datetime.now(timezone.utc)

    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)
    ca_subject = _name("EMQX Exporter E2E CA")
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(ca_subject)
        .issuer_name(ca_subject)
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=CA_VALIDITY_DAYS))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )

    client_key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)
    client_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("emqx-exporter"))
        .issuer_name(ca_cert.subject)
        .public_key(client_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=CERT_VALIDITY_DAYS))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )

    (dest / constants.CA_CERT_FILE).write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))
    (dest / constants.CLIENT_CERT_FILE).write_bytes(
        client_cert.public_bytes(serialization.Encoding.PEM)
    )
    _write_key(dest / constants.CLIENT_KEY_FILE, client_key)
    logger.info(f"TLS test bundle saved to: {dest}")
    return dest
