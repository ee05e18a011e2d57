"""
Verifiable Credential, Presentation and Challenge Request models.

The models serialize to canonical JSON (sorted keys, no whitespace), so two
structurally equal models produce byte-identical payloads no matter how they
were built. A deep copy is always made from the serialized form.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping


DEFAULT_CREDENTIAL_CONTEXT = ["https://www.w3.org/2018/credentials/v1"]


class ModelError(ValueError):
    """Raised when a model cannot be built from its serialized form."""


def canonical_json(data: Any) -> str:
    """Serialize data to canonical JSON.

    Args:
        data: JSON compatible data.

    Returns:
        JSON with sorted keys and no insignificant whitespace.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def format_timestamp(value: datetime) -> str:
    """Format a timestamp as ISO-8601 UTC with millisecond precision.

    2019-01-01T23:34:56.000Z
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except (AttributeError, ValueError) as e:
            raise ModelError(f"Invalid timestamp: {value!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require(data: Mapping[str, Any], key: str, model: str) -> Any:
    if not isinstance(data, Mapping):
        raise ModelError(f"{model} must be a JSON object")
    if data.get(key) is None:
        raise ModelError(f"Missing {key} in {model}")
    return data[key]


def _str_or_list(value: Any) -> str | list[str]:
    # JSON-LD allows a single string where a list is usual
    return value if isinstance(value, str) else list(value)


@dataclass
class Proof:
    """Signature record attached to a credential, presentation or request.

    A signature_value of None is the absent state: it is left out of the
    serialized form entirely, while an empty string is kept.
    """

    type: str
    created: datetime
    verification_method: str
    nonce: str | None = None
    signature_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.type,
            "created": format_timestamp(self.created),
            "verificationMethod": self.verification_method,
        }
        if self.nonce is not None:
            result["nonce"] = self.nonce
        if self.signature_value is not None:
            result["signatureValue"] = self.signature_value
        return result

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Proof:
        """Create a Proof from its JSON form."""
        return cls(
            type=_require(data, "type", "proof"),
            created=parse_timestamp(_require(data, "created", "proof")),
            verification_method=_require(data, "verificationMethod", "proof"),
            nonce=data.get("nonce"),
            signature_value=data.get("signatureValue"),
        )

    def copy(self) -> Proof:
        return Proof.from_dict(self.to_dict())


@dataclass
class VerifiableCredential:
    """W3C Verifiable Credential with a single proof.

    Top-level fields without a dedicated attribute are kept in ``extra`` and
    serialized back verbatim.
    """

    issuer: str
    credential_subject: dict[str, Any]
    proof: Proof
    id: str | None = None
    type: str | list[str] = field(default_factory=lambda: ["VerifiableCredential"])
    issuance_date: str | None = None
    credential_status: dict[str, Any] | None = None
    context: str | list[str] = field(default_factory=lambda: list(DEFAULT_CREDENTIAL_CONTEXT))
    extra: dict[str, Any] = field(default_factory=dict)

    _FIELDS = (
        "@context",
        "id",
        "type",
        "issuer",
        "issuanceDate",
        "credentialSubject",
        "credentialStatus",
        "proof",
    )

    @property
    def subject_id(self) -> str | None:
        """DID of the credential subject, if any."""
        return self.credential_subject.get("id")

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(self.extra)
        result.update(
            {
                "@context": _str_or_list(self.context),
                "type": _str_or_list(self.type),
                "issuer": self.issuer,
                "credentialSubject": self.credential_subject,
                "proof": self.proof.to_dict(),
            }
        )
        if self.id is not None:
            result["id"] = self.id
        if self.issuance_date is not None:
            result["issuanceDate"] = self.issuance_date
        if self.credential_status is not None:
            result["credentialStatus"] = self.credential_status
        return result

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VerifiableCredential:
        """Create a VerifiableCredential from its JSON form.

        Raises:
            ModelError: If issuer, credentialSubject or proof is missing, or
                if issuer or the subject id is not a string.
        """
        issuer = _require(data, "issuer", "credential")
        if not isinstance(issuer, str):
            raise ModelError("issuer must be a DID string")
        subject = _require(data, "credentialSubject", "credential")
        if not isinstance(subject, Mapping):
            raise ModelError("credentialSubject must be a JSON object")
        if subject.get("id") is not None and not isinstance(subject["id"], str):
            raise ModelError("credentialSubject.id must be a DID string")
        proof = Proof.from_dict(_require(data, "proof", "credential"))

        return cls(
            issuer=issuer,
            credential_subject=json.loads(json.dumps(subject)),
            proof=proof,
            id=data.get("id"),
            type=_str_or_list(data.get("type", ["VerifiableCredential"])),
            issuance_date=data.get("issuanceDate"),
            credential_status=(
                json.loads(json.dumps(data["credentialStatus"]))
                if data.get("credentialStatus") is not None
                else None
            ),
            context=_str_or_list(data.get("@context", DEFAULT_CREDENTIAL_CONTEXT)),
            extra={
                k: json.loads(json.dumps(v)) for k, v in data.items() if k not in cls._FIELDS
            },
        )

    def copy(self) -> VerifiableCredential:
        return VerifiableCredential.from_dict(self.to_dict())


@dataclass
class VerifiablePresentation:
    """W3C Verifiable Presentation holding credentials and ownership proofs."""

    verifiable_credential: list[VerifiableCredential]
    proof: list[Proof] = field(default_factory=list)
    id: str | None = None
    type: str | list[str] = field(default_factory=lambda: ["VerifiablePresentation"])
    context: str | list[str] = field(default_factory=lambda: list(DEFAULT_CREDENTIAL_CONTEXT))
    extra: dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("@context", "id", "type", "verifiableCredential", "proof")

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(self.extra)
        result.update(
            {
                "@context": _str_or_list(self.context),
                "type": _str_or_list(self.type),
                "verifiableCredential": [vc.to_dict() for vc in self.verifiable_credential],
                "proof": [p.to_dict() for p in self.proof],
            }
        )
        if self.id is not None:
            result["id"] = self.id
        return result

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VerifiablePresentation:
        """Create a VerifiablePresentation from its JSON form.

        A single proof object is accepted as well as a list of proofs.
        """
        credentials = _require(data, "verifiableCredential", "presentation")
        proofs = data.get("proof") or []
        if isinstance(proofs, Mapping):
            proofs = [proofs]

        return cls(
            verifiable_credential=[VerifiableCredential.from_dict(vc) for vc in credentials],
            proof=[Proof.from_dict(p) for p in proofs],
            id=data.get("id"),
            type=_str_or_list(data.get("type", ["VerifiablePresentation"])),
            context=_str_or_list(data.get("@context", DEFAULT_CREDENTIAL_CONTEXT)),
            extra={
                k: json.loads(json.dumps(v)) for k, v in data.items() if k not in cls._FIELDS
            },
        )

    def copy(self) -> VerifiablePresentation:
        return VerifiablePresentation.from_dict(self.to_dict())


@dataclass
class ChallengeRequest:
    """Signed request from a verifier listing the predicates it asks for."""

    proof: Proof
    to_attest: list[dict[str, Any]] = field(default_factory=list)
    to_verify: list[dict[str, Any]] = field(default_factory=list)
    correspondence_id: str | None = None
    post_endpoint: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("toAttest", "toVerify", "correspondenceId", "postEndpoint", "proof")

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(self.extra)
        result.update(
            {
                "toAttest": self.to_attest,
                "toVerify": self.to_verify,
                "proof": self.proof.to_dict(),
            }
        )
        if self.correspondence_id is not None:
            result["correspondenceId"] = self.correspondence_id
        if self.post_endpoint is not None:
            result["postEndpoint"] = self.post_endpoint
        return result

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChallengeRequest:
        """Create a ChallengeRequest from its JSON form."""
        return cls(
            proof=Proof.from_dict(_require(data, "proof", "challenge request")),
            to_attest=json.loads(json.dumps(data.get("toAttest", []))),
            to_verify=json.loads(json.dumps(data.get("toVerify", []))),
            correspondence_id=data.get("correspondenceId"),
            post_endpoint=data.get("postEndpoint"),
            extra={
                k: json.loads(json.dumps(v)) for k, v in data.items() if k not in cls._FIELDS
            },
        )

    def copy(self) -> ChallengeRequest:
        return ChallengeRequest.from_dict(self.to_dict())


@dataclass(frozen=True)
class KeySet:
    """Account and key index resolved by the crypto provider to a derived key."""

    account_id: int
    key_id: int

    @classmethod
    def coerce(cls, value: KeySet | tuple[int, int] | Mapping[str, int]) -> KeySet:
        """Build a KeySet from a KeySet, an (account, key) pair or a mapping."""
        if isinstance(value, KeySet):
            return value
        if isinstance(value, Mapping):
            return cls(account_id=int(value["accountId"]), key_id=int(value["keyId"]))
        if isinstance(value, (str, bytes)):
            raise ModelError(f"Expected an (account, key) pair, got {value!r}")
        account_id, key_id = value
        return cls(account_id=int(account_id), key_id=int(key_id))
