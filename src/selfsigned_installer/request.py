"""Certificate request parameters."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from cryptography import x509

from .errors import InvalidRequestError
from .installer import StoreName
from .keys import DEFAULT_KEY_SIZE, KEY_SIZES

DEFAULT_DIGEST = "SHA256"
DEFAULT_VALIDITY_DAYS = 365
MAX_DNS_NAMES = 100
MAX_DNS_NAME_LENGTH = 253
# Upper bound on the X.520 commonName attribute
MAX_COMMON_NAME_LENGTH = 64
# Range encodable as X.509 UTCTime or GeneralizedTime
EARLIEST_VALIDITY = datetime(1950, 1, 1, tzinfo=timezone.utc)
LATEST_VALIDITY = datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


def parse_dns_names(text: str) -> Tuple[str, ...]:
    """Split comma-separated DNS names, trimming blanks and dropping empty entries."""
    if not text:
        return ()
    return tuple(item.strip() for item in text.split(",") if item.strip())


@dataclass(frozen=True)
class CertificateRequest:
    """Immutable parameters for one self-signed certificate.

    The issuer is always the subject. The digest is passed through as-is and
    only checked when the certificate is signed.
    """
    subject: str
    not_before: datetime
    not_after: datetime
    friendly_name: str
    key_size: int = DEFAULT_KEY_SIZE
    digest: str = DEFAULT_DIGEST
    dns_names: Tuple[str, ...] = field(default_factory=tuple)
    include_san: bool = True
    store: StoreName = StoreName.PERSONAL

    def __post_init__(self):
        if not self.subject or not self.subject.strip():
            raise InvalidRequestError("Subject name cannot be empty.")
        try:
            name = x509.Name.from_rfc4514_string(self.subject)
        except ValueError as e:
            raise InvalidRequestError(f"Invalid subject name '{self.subject}': {e}") from e
        if not list(name):
            raise InvalidRequestError("Subject name cannot be empty.")

        _check_validity(self.not_before, self.not_after)

        if self.key_size not in KEY_SIZES:
            raise InvalidRequestError(
                f"Unsupported key length {self.key_size}; choose one of {', '.join(map(str, KEY_SIZES))}."
            )

        if not self.friendly_name or not self.friendly_name.strip():
            raise InvalidRequestError("Friendly name cannot be empty.")

        # Normalize list input and validate each entry
        names = tuple(self.dns_names)
        object.__setattr__(self, "dns_names", names)
        if len(names) > MAX_DNS_NAMES:
            raise InvalidRequestError(f"At most {MAX_DNS_NAMES} DNS names are allowed.")
        for dns_name in names:
            _check_dns_name(dns_name)

        try:
            object.__setattr__(self, "store", StoreName(self.store))
        except ValueError as e:
            raise InvalidRequestError(f"Unknown certificate store '{self.store}'.") from e

    @property
    def issuer(self) -> str:
        return self.subject

    @property
    def subject_name(self) -> x509.Name:
        return x509.Name.from_rfc4514_string(self.subject)

    @property
    def san_names(self) -> Tuple[str, ...]:
        """DNS names that go into the SubjectAltName extension (empty if disabled)."""
        return self.dns_names if self.include_san else ()

    @classmethod
    def from_input(
        cls,
        names: str,
        friendly_name: Optional[str] = None,
        key_size: int = DEFAULT_KEY_SIZE,
        digest: str = DEFAULT_DIGEST,
        not_before: Optional[datetime] = None,
        not_after: Optional[datetime] = None,
        validity_days: int = DEFAULT_VALIDITY_DAYS,
        include_san: bool = True,
        store=StoreName.PERSONAL,
    ) -> "CertificateRequest":
        """Build a request from comma-separated DNS name text.

        The subject is ``CN=<first DNS name>``, so the first name must fit the
        64-character common name limit; later names may use the full DNS
        length. Validity defaults to now through ``validity_days`` later.
        """
        dns_names = parse_dns_names(names)
        if not dns_names:
            raise InvalidRequestError("DNS names cannot be empty.")

        if not_after is None and validity_days < 1:
            raise InvalidRequestError(f"Validity period must be at least one day, got {validity_days}.")
        if not_before is None:
            not_before = datetime.now(timezone.utc)
        if not_after is None:
            try:
                not_after = not_before + timedelta(days=validity_days)
            except OverflowError as e:
                raise InvalidRequestError(f"Validity period of {validity_days} days is out of range.") from e

        if len(dns_names[0]) > MAX_COMMON_NAME_LENGTH:
            raise InvalidRequestError(
                f"First DNS name '{dns_names[0][:20]}...' is longer than {MAX_COMMON_NAME_LENGTH} characters "
                f"and cannot be the certificate common name; list a shorter name first."
            )

        return cls(
            subject=f"CN={_escape_rdn_value(dns_names[0])}",
            not_before=not_before,
            not_after=not_after,
            friendly_name=friendly_name or dns_names[0],
            key_size=key_size,
            digest=digest,
            dns_names=dns_names,
            include_san=include_san,
            store=store,
        )


def _check_validity(not_before, not_after):
    if not isinstance(not_before, datetime) or not isinstance(not_after, datetime):
        raise InvalidRequestError("Validity start and end must be datetimes.")
    if not_before.tzinfo is None or not_after.tzinfo is None:
        raise InvalidRequestError("Validity start and end must be timezone-aware.")
    if not_after <= not_before:
        raise InvalidRequestError("Validity end must be after validity start.")
    if not_before < EARLIEST_VALIDITY or not_after > LATEST_VALIDITY:
        raise InvalidRequestError(
            f"Validity must fall between {EARLIEST_VALIDITY:%Y-%m-%d} and {LATEST_VALIDITY:%Y-%m-%d}."
        )


def _check_dns_name(dns_name: str):
    if not dns_name:
        raise InvalidRequestError("DNS names cannot be empty.")
    if not dns_name.isascii():
        raise InvalidRequestError(f"DNS name '{dns_name}' must be ASCII (use the punycode form).")
    if any(ch.isspace() for ch in dns_name):
        raise InvalidRequestError(f"DNS name '{dns_name}' must not contain whitespace.")
    if len(dns_name) > MAX_DNS_NAME_LENGTH:
        raise InvalidRequestError(f"DNS name '{dns_name[:20]}...' is longer than {MAX_DNS_NAME_LENGTH} characters.")


def _escape_rdn_value(value: str) -> str:
    """Escape RFC 4514 special characters in an attribute value."""
    escaped = "".join("\\" + ch if ch in ',+"\\<>;=' else ch for ch in value)
    if escaped.startswith(("#", " ")):
        escaped = "\\" + escaped
    return escaped
