"""Key and certificate signing request generation using ECDSA P-256."""

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from .models import CertificateSubject


def generate_private_key() -> bytes:
    """Generate a new EC P-256 private key.

    Returns:
        PEM encoded private key
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def load_private_key(key_pem: bytes) -> ec.EllipticCurvePrivateKey:
    """Load a PEM encoded EC private key.

    Args:
        key_pem: PEM encoded private key

    Returns:
        EC private key

    Raises:
        ValueError: If the data is not an EC private key
    """
    private_key = serialization.load_pem_private_key(key_pem, password=None)
    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        raise ValueError("private key is not an EC key")
    return private_key


def public_key_pem(key_pem: bytes) -> bytes:
    """Derive the PEM encoded public key from a private key.

    Args:
        key_pem: PEM encoded private key

    Returns:
        PEM encoded SubjectPublicKeyInfo
    """
    return (
        load_private_key(key_pem)
        .public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )


def build_name(subject: CertificateSubject) -> x509.Name:
    """Convert a subject model into an X.509 name."""
    attributes = [
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, org)
        for org in subject.organizations
    ]
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, subject.common_name))
    return x509.Name(attributes)


def generate_csr(key_pem: bytes, subject: CertificateSubject) -> bytes:
    """Create a certificate signing request for a private key.

    Args:
        key_pem: PEM encoded private key that signs the request
        subject: Requested subject

    Returns:
        PEM encoded certificate signing request
    """
    private_key = load_private_key(key_pem)
    csr = x509.CertificateSigningRequestBuilder(subject_name=build_name(subject))
    return csr.sign(private_key, hashes.SHA256()).public_bytes(
        serialization.Encoding.PEM
    )
