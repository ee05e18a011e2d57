"""Constants and builders shared by the test modules."""

from datetime import datetime, timezone


TEST_MNEMONIC = "test test test test test test test test test test test junk"

FIXED_TIME = datetime(2019, 1, 1, 23, 34, 56, tzinfo=timezone.utc)

ISSUER_KEY = (0, 0)
HOLDER_KEY = (0, 1)
OTHER_HOLDER_KEY = (1, 0)

# secp256k1 generator point, the public key of private key 1
GENERATOR_PUBLIC_KEY = (
    "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    "483ada7726a3c4655da4fbfc0e1108a8fd17b448a68554199c47d08ffb10d4b8"
)


def make_credential_params(issuer: str, subject_id: str | None, name: str = "John") -> dict:
    """Unsigned credential parameters."""
    subject = {"type": name}
    if subject_id is not None:
        subject["id"] = subject_id
    return {
        "@context": ["https://www.w3.org/2018/credentials/v1", "https://schema.org/givenName"],
        "id": "did:protocol:address",
        "type": ["VerifiableCredential"],
        "issuer": issuer,
        "issuanceDate": "2019-01-01T12:00:00.000Z",
        "credentialSubject": subject,
        "credentialStatus": {
            "id": "0x6AbAAFB672f60C16C604A29426aDA1Af9d96d440",
            "type": "vcStatusRegistry2019",
        },
    }


def flip(value: str, index: int = 0) -> str:
    """Replace one hex character by a different one."""
    replacement = "0" if value[index] != "0" else "1"
    return value[:index] + replacement + value[index + 1:]
