from __future__ import annotations

from dataclasses import dataclass

from eth_utils.crypto import keccak


def keccak256(data: bytes) -> bytes:
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("data must be bytes")
    return bytes(keccak(bytes(data)))


def _abi_word_bytes32(x32: bytes) -> bytes:
    if not isinstance(x32, (bytes, bytearray)) or len(x32) != 32:
        raise ValueError("expected 32-byte value")
    return bytes(x32)


def _abi_word_uint(x: int) -> bytes:
    # ABI encodes all uint<M> as 32-byte big-endian words.
    if int(x) < 0:
        raise ValueError("uint must be >= 0")
    return int(x).to_bytes(32, "big", signed=False)


def _abi_word_address(addr20: bytes) -> bytes:
    if not isinstance(addr20, (bytes, bytearray)) or len(addr20) != 20:
        raise ValueError("expected 20-byte address")
    return b"\x00" * 12 + bytes(addr20)


EIP712_DOMAIN_TYPEHASH = keccak256(b"EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)")
INPUT_TICKET_TYPEHASH = keccak256(b"InputTicket(uint16 width,bytes32 ciphertextHash)")
ACCOUNT_ONBOARD_TYPEHASH = keccak256(b"AccountOnboard(address account)")


@dataclass(frozen=True)
class EIP712DomainV1:
    """
    Signing domain of one engine instance. Tickets signed for one engine do not validate on another.
    """

    chain_id: int
    verifying_contract: bytes  # 20 bytes address
    name: str = "MPCSINT"
    version: str = "1"

    def __post_init__(self) -> None:
        if int(self.chain_id) < 0:
            raise ValueError("chain_id must be >= 0")
        if not isinstance(self.verifying_contract, (bytes, bytearray)) or len(self.verifying_contract) != 20:
            raise ValueError("verifying_contract must be 20 bytes")

    def separator32(self) -> bytes:
        enc = b"".join(
            [
                _abi_word_bytes32(EIP712_DOMAIN_TYPEHASH),
                _abi_word_bytes32(keccak256(self.name.encode("utf-8"))),
                _abi_word_bytes32(keccak256(self.version.encode("utf-8"))),
                _abi_word_uint(int(self.chain_id)),
                _abi_word_address(bytes(self.verifying_contract)),
            ]
        )
        return keccak256(enc)


def eip712_digest_v1(*, domain: EIP712DomainV1, struct_hash32: bytes) -> bytes:
    if not isinstance(struct_hash32, (bytes, bytearray)) or len(struct_hash32) != 32:
        raise ValueError("struct_hash32 must be 32 bytes")
    return keccak256(b"\x19\x01" + domain.separator32() + bytes(struct_hash32))


@dataclass(frozen=True)
class InputTicketCommitV1:
    width: int
    ciphertext_blob: bytes

    def __post_init__(self) -> None:
        if int(self.width) < 0 or int(self.width) > 0xFFFF:
            raise ValueError("width must be uint16")

    def struct_hash32(self) -> bytes:
        enc = b"".join(
            [
                _abi_word_bytes32(INPUT_TICKET_TYPEHASH),
                _abi_word_uint(int(self.width)),
                _abi_word_bytes32(keccak256(bytes(self.ciphertext_blob))),
            ]
        )
        return keccak256(enc)

    def digest32(self, *, domain: EIP712DomainV1) -> bytes:
        return eip712_digest_v1(domain=domain, struct_hash32=self.struct_hash32())


@dataclass(frozen=True)
class AccountOnboardCommitV1:
    account20: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.account20, (bytes, bytearray)) or len(self.account20) != 20:
            raise ValueError("account20 must be 20 bytes")

    def struct_hash32(self) -> bytes:
        return keccak256(_abi_word_bytes32(ACCOUNT_ONBOARD_TYPEHASH) + _abi_word_address(bytes(self.account20)))

    def digest32(self, *, domain: EIP712DomainV1) -> bytes:
        return eip712_digest_v1(domain=domain, struct_hash32=self.struct_hash32())
