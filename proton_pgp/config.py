"""
proton_pgp handle configuration.
"""

from dataclasses import dataclass

# Clock skew tolerated between signer and verifier on the first detached check.
CREATION_TIME_OFFSET = 60 * 60 * 24 * 2


@dataclass(frozen=True, kw_only=True)
class PGPConfig:
    """
    Attributes:
        profile: Name of the algorithm profile the handle is built with.
        creation_time_offset: Seconds added to a non-zero verification time on the
            first detached signature check.
        compress: Compress messages by default in encryption builders.
        utf8: Treat data as UTF-8 text by default in encryption and signing builders,
            producing text signatures.
    """

    profile: str = "default"
    creation_time_offset: int = CREATION_TIME_OFFSET
    compress: bool = False
    utf8: bool = False

    def __post_init__(self) -> None:
        if not self.profile:
            msg = "profile must be a non-empty name"
            raise ValueError(msg)
        if self.creation_time_offset < 0:
            msg = "creation_time_offset must be non-negative"
            raise ValueError(msg)
