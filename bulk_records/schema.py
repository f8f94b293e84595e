"""
Entity schemas.

A Schema is immutable configuration: which columns exist, how each one is
validated, sanitized and exported, and which field is the natural key used
for duplicate detection. Contact and Deal are two values of the same type,
so every pipeline stage is written once and parameterized by a Schema.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Any, Dict, Mapping, Optional, Tuple

Entity = Dict[str, Any]

MODES = ("create", "update", "import")

# field kinds
STRING = "string"
TEXT = "text"
EMAIL = "email"
PHONE = "phone"
URL = "url"
ENUM = "enum"
NUMBER = "number"
DATE = "date"
TAGS = "tags"
BOOL = "bool"
TIMEZONE = "timezone"
LINE_ITEMS = "line_items"

# field sources
IMPORT = "import"  # accepted from CSV and API input
API = "api"  # accepted from API input only
SYSTEM = "system"  # written by the store or engine, export only

NAME_PATTERN = r"^[a-zA-Z\s\-'\.]+$"
PHONE_PATTERN = r"^[\+]?[1-9][\d]{0,15}$|^[\+]?[(]?[\d\s\-\(\)\.]{7,20}$"

PRIORITIES = ("low", "medium", "high", "urgent")


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str = STRING
    label: str = ""
    display: str = ""
    required: bool = False
    group: Optional[str] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    message: str = ""
    choices: Tuple[str, ...] = ()
    case: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    hosts: Tuple[str, ...] = ()
    window: Optional[str] = None
    source: str = IMPORT

    @property
    def title(self) -> str:
        return self.label or self.name

    @property
    def header(self) -> str:
        return self.display or self.label or self.name

    def invalid_message(self) -> str:
        return self.message or f"Please provide a valid {self.title}"


@dataclass(frozen=True)
class ClosureRule:
    """A terminal state of `field` that makes `requires` mandatory."""

    field: str
    states: Tuple[str, ...]
    requires: str
    message: str


@dataclass(frozen=True)
class PostalCodeRule:
    group: str
    code_field: str
    country_field: str
    patterns: Tuple[Tuple[str, str], ...]

    def pattern_for(self, country: str) -> Optional[str]:
        code = str(country or "").strip().upper()
        for key, pattern in self.patterns:
            if key == code:
                return pattern
        return None


@dataclass(frozen=True)
class Schema:
    kind: str
    plural: str
    fields: Tuple[FieldSpec, ...]
    natural_key: str
    references: Tuple[Tuple[str, str], ...] = ()
    closure_rules: Tuple[ClosureRule, ...] = ()
    postal_codes: Optional[PostalCodeRule] = None
    export_fields: Tuple[str, ...] = ()
    search_fields: Tuple[str, ...] = ()
    status_field: Optional[str] = None
    examples: Tuple[Mapping[str, str], ...] = ()

    @cached_property
    def _by_name(self) -> Dict[str, FieldSpec]:
        return {spec.name: spec for spec in self.fields}

    def field(self, name: str) -> Optional[FieldSpec]:
        return self._by_name.get(name)

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.fields if spec.required)

    @property
    def importable_fields(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.fields if spec.source == IMPORT)

    @property
    def key_label(self) -> str:
        return self.field(self.natural_key).title.split()[-1].lower()

    @cached_property
    def groups(self) -> Dict[str, Tuple[FieldSpec, ...]]:
        grouped: Dict[str, list] = {}
        for spec in self.fields:
            if spec.group:
                grouped.setdefault(spec.group, []).append(spec)
        return {name: tuple(specs) for name, specs in grouped.items()}

    def permitted_fields(self, mode: str) -> Tuple[str, ...]:
        """Field names a caller may set in the given mode."""
        if mode not in MODES:
            raise ValueError(f"Unknown validation mode {mode!r}")
        if mode == "import":
            return self.importable_fields
        names = tuple(spec.name for spec in self.fields if spec.source in (IMPORT, API))
        if mode == "create":
            names += tuple(ref for ref, _ in self.references)
        return names

    def allow_list(self, data: Mapping[str, Any], mode: str) -> Entity:
        """Build a new entity holding only the fields permitted for `mode`."""
        permitted = self.permitted_fields(mode)
        entity: Entity = {}
        for name in permitted:
            spec = self.field(name)
            if spec is not None and spec.group:
                source = data.get(spec.group)
                if isinstance(source, Mapping) and name in source:
                    entity.setdefault(spec.group, {})[name] = source[name]
            elif name in data:
                entity[name] = data[name]
        return entity

    def natural_key_of(self, entity: Mapping[str, Any]) -> Optional[str]:
        return normalize_key(entity.get(self.natural_key))


def normalize_key(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip().lower()
    return cleaned or None


POSTAL_CODE_PATTERNS = (
    ("US", r"^\d{5}(-\d{4})?$"),
    ("CA", r"^[A-Za-z]\d[A-Za-z] \d[A-Za-z]\d$"),
    ("UK", r"^[A-Za-z]{1,2}\d[A-Za-z\d]? \d[A-Za-z]{2}$"),
    ("DE", r"^\d{5}$"),
    ("FR", r"^\d{5}$"),
    ("IN", r"^\d{6}$"),
    ("AU", r"^\d{4}$"),
)


CONTACT_SCHEMA = Schema(
    kind="contact",
    plural="contacts",
    natural_key="email",
    fields=(
        FieldSpec(
            "firstName", label="First name", display="First Name", required=True,
            max_length=50, pattern=NAME_PATTERN,
            message="First name can only contain letters, spaces, hyphens, apostrophes, and periods",
        ),
        FieldSpec(
            "lastName", label="Last name", display="Last Name", required=True,
            max_length=50, pattern=NAME_PATTERN,
            message="Last name can only contain letters, spaces, hyphens, apostrophes, and periods",
        ),
        FieldSpec(
            "email", EMAIL, label="Email", required=True, max_length=100,
            message="Please provide a valid email address",
        ),
        FieldSpec("phone", PHONE, label="Phone", pattern=PHONE_PATTERN, message="Please provide a valid phone number"),
        FieldSpec("company", label="Company name", display="Company", max_length=100),
        FieldSpec("jobTitle", label="Job title", display="Job Title", max_length=100),
        FieldSpec("department", label="Department", max_length=100),
        FieldSpec("website", URL, label="Website", message="Please provide a valid website URL"),
        FieldSpec(
            "linkedinUrl", URL, label="LinkedIn URL", display="LinkedIn URL",
            hosts=("linkedin.com",), message="Please provide a valid LinkedIn URL",
        ),
        FieldSpec("status", ENUM, label="Status", choices=("active", "inactive", "prospect", "customer", "lead")),
        FieldSpec(
            "leadSource", ENUM, label="Lead source", display="Lead Source",
            choices=(
                "website", "referral", "social_media", "email_campaign",
                "cold_call", "event", "advertisement", "other",
            ),
        ),
        FieldSpec("priority", ENUM, label="Priority", choices=PRIORITIES),
        FieldSpec("tags", TAGS, label="Tags"),
        FieldSpec("notes", TEXT, label="Notes", max_length=2000),
        FieldSpec("description", TEXT, label="Description", max_length=500),
        FieldSpec("street", label="Street address", display="Street Address", group="address", max_length=200),
        FieldSpec("city", label="City", group="address", max_length=100),
        FieldSpec("state", label="State", group="address", max_length=100),
        FieldSpec("zipCode", label="Zip code", display="Zip Code", group="address", max_length=20),
        FieldSpec("country", label="Country", group="address", max_length=100),
        FieldSpec(
            "twitter", URL, label="Twitter URL", display="Twitter", group="socialMedia",
            hosts=("twitter.com", "x.com"), message="Invalid Twitter URL format",
        ),
        FieldSpec(
            "facebook", URL, label="Facebook URL", display="Facebook", group="socialMedia",
            hosts=("facebook.com",), message="Invalid Facebook URL format",
        ),
        FieldSpec(
            "instagram", URL, label="Instagram URL", display="Instagram", group="socialMedia",
            hosts=("instagram.com",), message="Invalid Instagram URL format",
        ),
        FieldSpec("lastContactDate", DATE, label="Last contact date", display="Last Contact Date", window="past"),
        FieldSpec(
            "nextFollowUpDate", DATE, label="Follow-up date", display="Next Follow-up Date", window="future",
        ),
        FieldSpec(
            "preferredContactMethod", ENUM, label="Preferred contact method",
            display="Preferred Contact Method", group="preferences", source=API,
            choices=("email", "phone", "linkedin", "in_person"),
        ),
        FieldSpec(
            "timezone", TIMEZONE, label="Timezone", group="preferences", source=API,
            message="Invalid timezone format",
        ),
        FieldSpec("doNotContact", BOOL, label="Do not contact", display="Do Not Contact", group="preferences", source=API),
        FieldSpec("emailOptOut", BOOL, label="Email opt out", display="Email Opt Out", group="preferences", source=API),
        FieldSpec("interactionCount", NUMBER, label="Interaction count", display="Interaction Count", source=SYSTEM),
        FieldSpec("createdAt", DATE, label="Created date", display="Created Date", source=SYSTEM),
        FieldSpec("updatedAt", DATE, label="Updated date", display="Updated Date", source=SYSTEM),
    ),
    references=(("owner", "Contact owner is required"),),
    postal_codes=PostalCodeRule(
        group="address", code_field="zipCode", country_field="country", patterns=POSTAL_CODE_PATTERNS,
    ),
    export_fields=(
        "firstName", "lastName", "email", "phone", "company", "jobTitle", "department",
        "status", "priority", "leadSource", "website", "linkedinUrl",
        "street", "city", "state", "zipCode", "country", "tags", "notes", "description",
        "lastContactDate", "nextFollowUpDate", "interactionCount", "createdAt", "updatedAt",
        "twitter", "facebook", "instagram",
        "preferredContactMethod", "timezone", "doNotContact", "emailOptOut",
    ),
    search_fields=("firstName", "lastName", "email", "company", "jobTitle", "tags"),
    status_field="status",
    examples=(
        {
            "firstName": "John", "lastName": "Smith", "email": "john.smith@example.com",
            "phone": "+1-555-123-4567", "company": "Tech Solutions Inc", "jobTitle": "Software Engineer",
            "department": "Engineering", "website": "https://techsolutions.com",
            "linkedinUrl": "https://linkedin.com/in/johnsmith", "status": "prospect",
            "leadSource": "website", "priority": "high", "tags": "technology,software,lead",
            "street": "123 Main Street", "city": "San Francisco", "state": "California",
            "zipCode": "94105", "country": "United States",
            "notes": "Interested in our enterprise solution", "description": "Potential high-value client",
        },
        {
            "firstName": "Sarah", "lastName": "Johnson", "email": "sarah.johnson@marketing.co",
            "phone": "+1-555-987-6543", "company": "Marketing Pro LLC", "jobTitle": "Marketing Director",
            "department": "Marketing", "website": "https://marketingpro.com",
            "linkedinUrl": "https://linkedin.com/in/sarahjohnson", "status": "customer",
            "leadSource": "referral", "priority": "medium", "tags": "marketing,customer,active",
            "street": "456 Business Ave", "city": "New York", "state": "New York",
            "zipCode": "10001", "country": "United States",
            "notes": "Current customer, very satisfied", "description": "Long-term partnership potential",
        },
        {
            "firstName": "Michael", "lastName": "Chen", "email": "michael.chen@startup.io",
            "phone": "+1-555-456-7890", "company": "Innovation Startup", "jobTitle": "CTO",
            "department": "Technology", "website": "https://innovationstartup.io",
            "linkedinUrl": "https://linkedin.com/in/michaelchen", "status": "lead",
            "leadSource": "social_media", "priority": "urgent", "tags": "startup,technology,innovation",
            "street": "789 Startup Blvd", "city": "Austin", "state": "Texas",
            "zipCode": "73301", "country": "United States",
            "notes": "Reached out via LinkedIn, very interested", "description": "Fast-growing startup with budget",
        },
        {
            "firstName": "Emily", "lastName": "Rodriguez", "email": "emily.rodriguez@consulting.com",
            "phone": "+1-555-321-0987", "company": "Business Consulting Group", "jobTitle": "Senior Consultant",
            "department": "Consulting", "website": "https://businessconsulting.com",
            "linkedinUrl": "https://linkedin.com/in/emilyrodriguez", "status": "active",
            "leadSource": "email_campaign", "priority": "low", "tags": "consulting,business,services",
            "street": "321 Corporate Dr", "city": "Chicago", "state": "Illinois",
            "zipCode": "60601", "country": "United States",
            "notes": "Responded to email campaign", "description": "Potential for consulting services",
        },
        {
            "firstName": "David", "lastName": "Wilson", "email": "david.wilson@finance.org",
            "phone": "+1-555-654-3210", "company": "Financial Services Corp", "jobTitle": "VP Finance",
            "department": "Finance", "website": "https://financialservices.org",
            "linkedinUrl": "https://linkedin.com/in/davidwilson", "status": "inactive",
            "leadSource": "cold_call", "priority": "medium", "tags": "finance,services,corporate",
            "street": "654 Finance St", "city": "Boston", "state": "Massachusetts",
            "zipCode": "02101", "country": "United States",
            "notes": "Initial contact made, follow-up needed", "description": "Large enterprise opportunity",
        },
    ),
)


DEAL_SCHEMA = Schema(
    kind="deal",
    plural="deals",
    natural_key="title",
    fields=(
        FieldSpec("title", label="Deal title", display="Title", required=True, max_length=200),
        FieldSpec(
            "value", NUMBER, label="Deal value", display="Value", required=True,
            minimum=0, maximum=999_999_999, message="Deal value must be a valid number",
        ),
        FieldSpec(
            "expectedCloseDate", DATE, label="Expected close date", display="Expected Close Date",
            required=True, window="future",
        ),
        FieldSpec("description", TEXT, label="Deal description", display="Description", max_length=1000),
        FieldSpec(
            "currency", ENUM, label="Currency", case="upper",
            choices=("USD", "EUR", "GBP", "CAD", "AUD", "JPY", "INR", "CNY"),
        ),
        FieldSpec(
            "stage", ENUM, label="Stage",
            choices=("lead", "qualified", "proposal", "negotiation", "closed_won", "closed_lost"),
        ),
        FieldSpec("pipeline", ENUM, label="Pipeline", case="lower", choices=("sales", "marketing", "custom")),
        FieldSpec(
            "probability", NUMBER, label="Probability", minimum=0, maximum=100,
            message="Probability must be a valid number",
        ),
        FieldSpec("company", label="Company name", display="Company", max_length=100),
        FieldSpec("priority", ENUM, label="Priority", choices=PRIORITIES),
        FieldSpec(
            "source", ENUM, label="Source",
            choices=(
                "inbound", "outbound", "referral", "partner", "marketing",
                "cold_call", "website", "event", "other",
            ),
        ),
        FieldSpec(
            "dealType", ENUM, label="Deal type", display="Deal Type",
            choices=("new_business", "existing_business", "renewal", "upsell", "cross_sell"),
        ),
        FieldSpec("actualCloseDate", DATE, label="Actual close date", display="Actual Close Date", window="past"),
        FieldSpec("nextFollowUpDate", DATE, label="Follow-up date", display="Next Follow-up Date"),
        FieldSpec(
            "lastActivityDate", DATE, label="Last activity date", display="Last Activity Date", window="past",
        ),
        FieldSpec("tags", TAGS, label="Tags"),
        FieldSpec("notes", TEXT, label="Notes", max_length=2000),
        FieldSpec("closeReason", label="Close reason", display="Close Reason", max_length=500),
        FieldSpec(
            "lostReason", ENUM, label="Lost reason", display="Lost Reason",
            choices=("price", "competitor", "timing", "budget", "no_decision", "requirements", "other"),
        ),
        FieldSpec("competitorName", label="Competitor name", display="Competitor", max_length=100),
        FieldSpec("products", LINE_ITEMS, label="Products", source=API),
        FieldSpec("createdAt", DATE, label="Created date", display="Created Date", source=SYSTEM),
        FieldSpec("updatedAt", DATE, label="Updated date", display="Updated Date", source=SYSTEM),
    ),
    references=(
        ("owner", "Deal owner is required"),
        ("contact", "Deal must be associated with a contact"),
    ),
    closure_rules=(
        ClosureRule(
            field="stage", states=("closed_won", "closed_lost"), requires="closeReason",
            message="Close reason is required for closed deals",
        ),
        ClosureRule(
            field="stage", states=("closed_lost",), requires="lostReason",
            message="Lost reason is required for lost deals",
        ),
    ),
    export_fields=(
        "title", "value", "currency", "stage", "pipeline", "probability", "company",
        "priority", "source", "dealType", "expectedCloseDate", "actualCloseDate",
        "nextFollowUpDate", "lastActivityDate", "closeReason", "lostReason",
        "competitorName", "tags", "notes", "description", "createdAt", "updatedAt",
    ),
    search_fields=("title", "company", "description", "competitorName", "tags"),
    status_field="stage",
    examples=(
        {
            "title": "Enterprise License Renewal", "value": "48000", "expectedCloseDate": "2027-03-31",
            "description": "Annual renewal for 200 seats", "currency": "USD", "stage": "negotiation",
            "pipeline": "sales", "probability": "75", "company": "Tech Solutions Inc",
            "priority": "high", "source": "inbound", "dealType": "renewal",
            "tags": "enterprise,renewal", "notes": "Procurement review scheduled",
        },
        {
            "title": "Marketing Automation Rollout", "value": "12500.50", "expectedCloseDate": "2027-01-15",
            "description": "Pilot for the EMEA marketing team", "currency": "EUR", "stage": "proposal",
            "pipeline": "marketing", "probability": "40", "company": "Marketing Pro LLC",
            "priority": "medium", "source": "referral", "dealType": "new_business",
            "tags": "pilot,emea", "notes": "Needs a security questionnaire",
        },
        {
            "title": "Analytics Add-on Upsell", "value": "7200", "expectedCloseDate": "2026-12-01",
            "description": "Usage dashboards for the finance team", "currency": "USD", "stage": "closed_won",
            "pipeline": "sales", "probability": "100", "company": "Financial Services Corp",
            "priority": "low", "source": "outbound", "dealType": "upsell",
            "tags": "upsell,analytics", "notes": "Signed after the Q4 demo",
            "closeReason": "Budget approved after demo",
        },
    ),
)


SCHEMAS: Dict[str, Schema] = {
    CONTACT_SCHEMA.plural: CONTACT_SCHEMA,
    DEAL_SCHEMA.plural: DEAL_SCHEMA,
}
