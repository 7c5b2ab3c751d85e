"""
Core Enumerations for the Billing Core.

Shared vocabulary for EDI transactions, denial triage and appeals, bulk
operations, the report engine and the authorization audit log.
"""

from enum import Enum


# =============================================================================
# Provider Configuration Enums
# =============================================================================


class DenialIntelligenceProvider(str, Enum):
    """Providers for denial triage, assessment and appeal letters."""

    LOCAL = "local"  # Deterministic heuristics and letter templates
    REMOTE = "remote"  # Hosted serverless functions


class ClearinghouseProvider(str, Enum):
    """Providers for outbound X12 exchanges."""

    MOCK = "mock"  # Deterministic simulated responses
    REMOTE = "remote"  # HTTP clearinghouse


class ProviderStatus(str, Enum):
    """Health status of an external provider."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# =============================================================================
# EDI Enums
# =============================================================================


class EDITransactionType(str, Enum):
    """X12 transaction sets handled by the EDI formatter."""

    CLAIM_837 = "837"
    REMITTANCE_835 = "835"
    ELIGIBILITY_270 = "270"
    ELIGIBILITY_271 = "271"
    CLAIM_STATUS_276 = "276"
    CLAIM_STATUS_277 = "277"


class EDITransactionStatus(str, Enum):
    """Lifecycle of an outbound EDI transaction."""

    PENDING = "pending"
    SENT = "sent"
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"  # Terminal
    PROCESSED = "processed"  # Terminal


class ClaimStatus(str, Enum):
    """Claim status reported by a 277 response."""

    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    DENIED = "denied"
    REJECTED = "rejected"


class EligibilityStatus(str, Enum):
    """Outcome of an eligibility lookup."""

    ELIGIBLE = "eligible"
    INELIGIBLE = "ineligible"
    UNKNOWN = "unknown"  # No verification record exists


# =============================================================================
# Denial & Appeal Enums
# =============================================================================


class TriagePriority(str, Enum):
    """Priority assigned to a denial in the triage queue."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DenialState(str, Enum):
    """Per-denial progress within an operator session."""

    DENIED = "denied"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    APPEAL_DRAFTED = "appeal_drafted"


class DenialCategoryType(str, Enum):
    """High level denial category."""

    ADMINISTRATIVE = "administrative"
    CLINICAL = "clinical"
    BILLING = "billing"
    AUTHORIZATION = "authorization"
    ELIGIBILITY = "eligibility"
    OTHER = "other"


class DenialSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AppealType(str, Enum):
    """Appeal route for a denial."""

    STANDARD = "standard"
    EXPEDITED = "expedited"
    EXTERNAL = "external"
    NOT_APPEALABLE = "not_appealable"


class AppealStatus(str, Enum):
    """Appeal workflow status."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    DENIED = "denied"
    WITHDRAWN = "withdrawn"


class ActionPriority(str, Enum):
    """Priority of a recommended remediation action."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrendPeriod(str, Enum):
    """Look-back windows for denial trends."""

    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    YEAR = "1y"


# =============================================================================
# Audit Enums
# =============================================================================


class AuditAction(str, Enum):
    """Actions recorded against an authorization request."""

    CREATE = "create"
    UPDATE = "update"
    SUBMIT = "submit"
    APPROVE = "approve"
    DENY = "deny"
    USE_VISIT = "use_visit"
    RENEW = "renew"
    APPEAL = "appeal"
    CANCEL = "cancel"
    DELETE = "delete"
    VIEW = "view"
    EXPORT = "export"


class AuditActionCategory(str, Enum):
    """Derived category of an audited action."""

    CREATION = "creation"
    MODIFICATION = "modification"
    STATUS_CHANGE = "status_change"
    VISIT_USAGE = "visit_usage"
    RENEWAL = "renewal"
    APPEAL = "appeal"
    ACCESS = "access"
    EXPORT = "export"


class AuditSeverity(str, Enum):
    """Derived severity of an audited action."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# Bulk Operation Enums
# =============================================================================


class BulkOperationType(str, Enum):
    STATUS_UPDATE = "status_update"
    ASSIGNMENT = "assignment"
    EXPORT = "export"
    DELETE = "delete"
    ARCHIVE = "archive"


class BulkTargetType(str, Enum):
    """Entity kinds a bulk operation can target."""

    TASKS = "tasks"
    CLAIMS = "claims"
    AUTHORIZATIONS = "authorizations"


# =============================================================================
# Report Enums
# =============================================================================


class FilterOperator(str, Enum):
    """Report filter operators."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"
    IN = "in"


class AggregateFunction(str, Enum):
    SUM = "sum"
    AVG = "avg"
    COUNT = "count"
    MIN = "min"
    MAX = "max"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ReportType(str, Enum):
    CLAIMS = "claims"
    PAYMENTS = "payments"
    DENIALS = "denials"
    AUTHORIZATIONS = "authorizations"
    CUSTOM = "custom"


class ReportFormat(str, Enum):
    """Presentation hint for a report definition."""

    TABLE = "table"
    CHART = "chart"
    SUMMARY = "summary"


class ChartType(str, Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    AREA = "area"


class FieldType(str, Enum):
    """Declared type of a report field."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
