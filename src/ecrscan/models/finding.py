"""Raw upstream finding variants and the unified finding record."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ecrscan.models.base import BaseSchema, ScanLevel, Severity

CSV_COLUMNS = [
    "repository",
    "image_digest",
    "scan_level",
    "severity",
    "identifier",
    "package_name",
    "package_version",
    "fix_available",
    "score",
    "description",
]


class RawSchema(BaseModel):
    """Lenient base for upstream-shaped records; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class FindingAttribute(RawSchema):
    """Key/value attribute attached to a basic scan finding."""

    key: str
    value: str | None = None


class BasicRawFinding(RawSchema):
    """Finding from a basic scan report."""

    scan_level: Literal[ScanLevel.BASIC] = ScanLevel.BASIC
    name: str | None = None
    severity: str | None = None
    description: str | None = None
    uri: str | None = None
    attributes: list[FindingAttribute] = Field(default_factory=list)

    def attribute(self, key: str) -> str | None:
        key = key.lower()
        for attr in self.attributes:
            if attr.key.lower() == key and attr.value:
                return attr.value
        return None

    @property
    def cve(self) -> str | None:
        return self.attribute("CVE")

    @property
    def package_name(self) -> str | None:
        return self.attribute("package_name")

    @property
    def package_version(self) -> str | None:
        return self.attribute("package_version")


class VulnerablePackage(RawSchema):
    """Package affected by an enhanced scan finding."""

    name: str | None = None
    version: str | None = None
    fixed_in_version: str | None = Field(default=None, alias="fixedInVersion")
    package_manager: str | None = Field(default=None, alias="packageManager")
    file_path: str | None = Field(default=None, alias="filePath")
    remediation: str | None = None


class EnhancedRawFinding(RawSchema):
    """Finding from an enhanced scan report."""

    scan_level: Literal[ScanLevel.ENHANCED] = ScanLevel.ENHANCED
    finding_arn: str | None = Field(default=None, alias="findingArn")
    severity: str | None = None
    title: str | None = None
    description: str | None = None
    fix_available: bool | str | None = Field(default=None, alias="fixAvailable")
    cvss_score: float | None = None
    vulnerability_id: str | None = None
    vulnerable_packages: list[VulnerablePackage] = Field(default_factory=list)
    remediation: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "EnhancedRawFinding":
        """Flatten the nested upstream shape into this record."""
        details = data.get("packageVulnerabilityDetails") or {}
        remediation = (data.get("remediation") or {}).get("recommendation") or {}
        return cls.model_validate(
            {
                **data,
                "cvss_score": _cvss_score(data),
                "vulnerability_id": details.get("vulnerabilityId"),
                "vulnerable_packages": details.get("vulnerablePackages") or [],
                "remediation": remediation.get("text"),
            }
        )


def _cvss_score(data: dict[str, Any]) -> Any:
    score = ((data.get("scoreDetails") or {}).get("cvss") or {}).get("score")
    if score is not None:
        return score
    for cvss in (data.get("packageVulnerabilityDetails") or {}).get("cvss") or []:
        if cvss.get("baseScore") is not None:
            return cvss["baseScore"]
    return None


# Tagged by scan_level
RawFinding = BasicRawFinding | EnhancedRawFinding


class Finding(BaseSchema):
    """Normalized vulnerability finding; one CSV row."""

    # Upstream text is reported verbatim
    model_config = ConfigDict(frozen=True, str_strip_whitespace=False)

    repository: str = Field(min_length=1)
    image_digest: str = Field(min_length=1)
    scan_level: ScanLevel
    severity: Severity
    identifier: str = ""
    package_name: str = ""
    package_version: str = ""
    fix_available: bool = False
    score: float | None = None
    description: str = ""

    def to_row(self) -> list[str]:
        """Render the record as CSV cell values, in ``CSV_COLUMNS`` order."""
        return [
            self.repository,
            self.image_digest,
            self.scan_level.value,
            self.severity.value,
            self.identifier,
            self.package_name,
            self.package_version,
            "true" if self.fix_available else "false",
            "" if self.score is None else repr(self.score),
            self.description,
        ]
