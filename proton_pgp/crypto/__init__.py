"""
OpenPGP operations.

This module provides:
- Encryption pipelines (recipients, hidden recipients, password, session key)
- Inline and encrypted detached signatures
- Decryption with explicit signature verification
- Session key lifecycle and secure memory handling
"""

from proton_pgp.crypto.decryption import DecryptionHandle, DecryptionHandleBuilder
from proton_pgp.crypto.encryption import EncryptionHandle, EncryptionHandleBuilder
from proton_pgp.crypto.key_ring import Key, KeyRing
from proton_pgp.crypto.pgp import PGPHandle, pgp, pgp_crypto_refresh, pgp_with_profile
from proton_pgp.crypto.pgpy_backend import PgpyBackend
from proton_pgp.crypto.pipeline import EncryptionContext, EncryptionPipeline, PipelineKind
from proton_pgp.crypto.protocol import PacketEngine, SignatureInfo
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.crypto.session_key import SessionKey
from proton_pgp.crypto.sign import SignHandle, SignHandleBuilder
from proton_pgp.crypto.streams import MultiWriter, SplitMessageWriter, SplitWriter, Writer
from proton_pgp.crypto.verify import VerifyHandle, VerifyHandleBuilder, verify_detached

__all__ = [
    "DecryptionHandle",
    "DecryptionHandleBuilder",
    "EncryptionContext",
    "EncryptionHandle",
    "EncryptionHandleBuilder",
    "EncryptionPipeline",
    "Key",
    "KeyRing",
    "MultiWriter",
    "PGPHandle",
    "PacketEngine",
    "PgpyBackend",
    "PipelineKind",
    "SecureBytes",
    "SessionKey",
    "SignHandle",
    "SignHandleBuilder",
    "SignatureInfo",
    "SplitMessageWriter",
    "SplitWriter",
    "VerifyHandle",
    "VerifyHandleBuilder",
    "Writer",
    "pgp",
    "pgp_crypto_refresh",
    "pgp_with_profile",
    "verify_detached",
]
