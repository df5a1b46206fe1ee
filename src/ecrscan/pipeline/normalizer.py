"""Normalization of basic and enhanced scan findings into unified records."""

from typing import Any

from pydantic import ValidationError

from ecrscan.core.exceptions import MalformedFindingError
from ecrscan.models import (
    BasicRawFinding,
    EnhancedRawFinding,
    Finding,
    RawFinding,
    ScanLevel,
    Severity,
)

BASIC_SEVERITIES: dict[str, Severity] = {
    "INFORMATIONAL": Severity.INFORMATIONAL,
    "LOW": Severity.LOW,
    "MEDIUM": Severity.MEDIUM,
    "HIGH": Severity.HIGH,
    "CRITICAL": Severity.CRITICAL,
    "UNDEFINED": Severity.UNDEFINED,
}

ENHANCED_SEVERITIES: dict[str, Severity] = {
    "INFORMATIONAL": Severity.INFORMATIONAL,
    "LOW": Severity.LOW,
    "MEDIUM": Severity.MEDIUM,
    "HIGH": Severity.HIGH,
    "CRITICAL": Severity.CRITICAL,
    "UNTRIAGED": Severity.UNDEFINED,
}

# Fix availability values of enhanced findings that mean a fix exists
# for at least one vulnerable package.
FIX_AVAILABLE_VALUES = {"YES", "PARTIAL", "TRUE"}


def normalize_severity(scan_level: ScanLevel, value: Any) -> Severity:
    """Map an upstream severity string to the unified enum; unknown values are Undefined."""
    if not isinstance(value, str):
        return Severity.UNDEFINED
    vocabulary = BASIC_SEVERITIES if scan_level == ScanLevel.BASIC else ENHANCED_SEVERITIES
    return vocabulary.get(value.strip().upper(), Severity.UNDEFINED)


def parse_raw_finding(scan_level: ScanLevel, data: Any) -> RawFinding:
    """Parse an upstream record into its scan-level variant."""
    if not isinstance(data, dict):
        raise MalformedFindingError(
            f"Finding record is {type(data).__name__}, expected an object"
        )
    try:
        if scan_level == ScanLevel.BASIC:
            return BasicRawFinding.model_validate(data)
        return EnhancedRawFinding.from_api(data)
    except (ValidationError, AttributeError, TypeError) as e:
        raise MalformedFindingError(
            f"Malformed {scan_level.value.lower()} finding: {e}",
            details={"record": data},
        ) from e


def normalize_basic(raw: BasicRawFinding, repository: str, image_digest: str) -> Finding:
    return Finding(
        repository=repository,
        image_digest=image_digest,
        scan_level=ScanLevel.BASIC,
        severity=normalize_severity(ScanLevel.BASIC, raw.severity),
        identifier=raw.cve or raw.name or "",
        package_name=raw.package_name or "",
        package_version=raw.package_version or "",
        fix_available=False,
        score=None,
        description=raw.description or "",
    )


def normalize_enhanced(raw: EnhancedRawFinding, repository: str, image_digest: str) -> Finding:
    packages = [p for p in raw.vulnerable_packages if p.name]
    return Finding(
        repository=repository,
        image_digest=image_digest,
        scan_level=ScanLevel.ENHANCED,
        severity=normalize_severity(ScanLevel.ENHANCED, raw.severity),
        identifier=raw.finding_arn or raw.vulnerability_id or "",
        package_name=";".join(p.name or "" for p in packages),
        package_version=";".join(p.version or "" for p in packages),
        fix_available=_fix_available(raw.fix_available),
        score=raw.cvss_score,
        description=raw.description or raw.title or "",
    )


def _fix_available(value: bool | str | None) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().upper() in FIX_AVAILABLE_VALUES
    return False


def normalize_raw(raw: RawFinding, repository: str, image_digest: str) -> Finding:
    if isinstance(raw, BasicRawFinding):
        return normalize_basic(raw, repository, image_digest)
    return normalize_enhanced(raw, repository, image_digest)


def normalize_finding(
    scan_level: ScanLevel,
    data: Any,
    repository: str,
    image_digest: str,
) -> Finding:
    """
    Normalize one upstream finding record.

    Never raises for a bad record: a finding that cannot be parsed becomes
    an Undefined-severity record carrying whatever identifier and
    description could be recovered.
    """
    try:
        raw = parse_raw_finding(scan_level, data)
    except MalformedFindingError:
        return _salvage(scan_level, data, repository, image_digest)
    return normalize_raw(raw, repository, image_digest)


def _salvage(scan_level: ScanLevel, data: Any, repository: str, image_digest: str) -> Finding:
    fields = data if isinstance(data, dict) else {}
    identifier = fields.get("findingArn") if scan_level == ScanLevel.ENHANCED else fields.get("name")
    description = fields.get("description") or fields.get("title")
    return Finding(
        repository=repository,
        image_digest=image_digest,
        scan_level=scan_level,
        severity=Severity.UNDEFINED,
        identifier=identifier if isinstance(identifier, str) else "",
        description=description if isinstance(description, str) else "",
    )
