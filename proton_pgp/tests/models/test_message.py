import dataclasses

import pytest

from proton_pgp.exceptions import SignatureVerificationError, VerificationStatus
from proton_pgp.models.message import (
    CONTEXT_NOTATION_NAME,
    ExplicitVerifyResult,
    LiteralMetadata,
    PlainMessage,
    SigningContext,
    SplitMessage,
    VerificationContext,
)


def test_literal_metadata_rejects_negative_mod_time() -> None:
    with pytest.raises(ValueError, match="mod_time"):
        LiteralMetadata(mod_time=-1)


def test_plain_message_text_decodes_utf8() -> None:
    message = PlainMessage(data="héllo".encode(), is_utf8=True)

    assert message.text == "héllo"


def test_signing_context_renders_notation() -> None:
    context = SigningContext("drive.upload", is_critical=True)

    assert context.notation == {CONTEXT_NOTATION_NAME: "drive.upload"}


def test_verification_context_required_after_cutoff() -> None:
    context = VerificationContext("drive.upload", is_required=True, required_after=1000)

    assert not context.is_required_at(999)
    assert context.is_required_at(1000)
    assert context.is_required_at(2000)


def test_verification_context_not_required_by_default() -> None:
    context = VerificationContext("drive.upload")

    assert not context.is_required_at(0)


def test_split_message_binary_prefixes_key_packets() -> None:
    split = SplitMessage(key_packets=b"KEYS", data_packet=b"DATA")

    assert split.binary() == b"KEYSDATA"
    assert split.detached_signature is None


def test_split_message_is_frozen() -> None:
    split = SplitMessage(key_packets=b"KEYS", data_packet=b"DATA")

    with pytest.raises(dataclasses.FrozenInstanceError):
        split.data_packet = b"OTHER"  # type: ignore[misc]


def test_explicit_verify_result_without_error_is_verified_when_signed() -> None:
    result = ExplicitVerifyResult(message=PlainMessage(data=b"hello"), signed_by="ABCD")

    assert result.data == b"hello"
    assert result.is_verified
    result.raise_for_signature()


def test_explicit_verify_result_with_error_keeps_plaintext() -> None:
    error = SignatureVerificationError("no key", status=VerificationStatus.NO_VERIFIER)
    result = ExplicitVerifyResult(message=PlainMessage(data=b"hello"), signature_error=error)

    assert result.data == b"hello"
    assert not result.is_verified
    with pytest.raises(SignatureVerificationError):
        result.raise_for_signature()
