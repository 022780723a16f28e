"""
Purchase requisition schema and data models.
A requisition line plus the fields each pipeline stage adds to it.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from prpo.utils import to_text


class ValidationStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class ContractClass(str, Enum):
    """Contract classification from unit-price contract and auto-allocation group."""
    STANDARD_PRICE = "standard-price"
    NON_STANDARD_PRICE = "non-standard-price"
    NOT_APPLICABLE = "not-applicable"


class UrgencyTier(str, Enum):
    URGENT = "urgent"
    NORMAL = "normal"
    FLEXIBLE = "flexible"


class OrderMethod(str, Enum):
    ALLOCATE_THEN_ORDER = "allocate-then-order"
    BID_QUOTATION = "bid/quotation"


class ContractMethod(str, Enum):
    NON_STANDARD_PRICE_CONTRACT = "non-standard-price-contract"
    PRIVATE_CONTRACT = "private-contract"
    DESIGNATED_COMPETITIVE_BID = "designated-competitive-bid"


class PriceMethod(str, Enum):
    EXACT_MATCH = "exact-match"
    GROUP_AVERAGE = "group-average"
    LLM_ESTIMATED = "llm-estimated"
    DEFAULT_FALLBACK = "default-fallback"


class Competitiveness(str, Enum):
    EXCELLENT = "excellent"
    FAIR = "fair"
    POOR = "poor"


class Verdict(str, Enum):
    APPROPRIATE = "appropriate"
    NEGOTIATION_REQUIRED = "negotiation-required"
    SUSPECTED_DUMPING = "suspected-dumping"
    NEEDS_REVIEW = "needs-review"


class ProcessingState(str, Enum):
    AUTO_COMPLETE = "auto-complete"
    NEEDS_REVIEW = "needs-review"


class ApprovalState(str, Enum):
    PENDING_APPROVAL = "pending-approval"
    PENDING_REVIEW = "pending-review"
    APPROVED = "approved"


# Display markers
SIGNAL_RED = "🔴"
SIGNAL_YELLOW = "🟡"
SIGNAL_GREEN = "🟢"


class ValidationResult(BaseModel):
    """Outcome of the required-field check."""
    status: ValidationStatus
    missing_fields: List[str] = Field(default_factory=list)

    @property
    def missing_text(self) -> str:
        return ", ".join(self.missing_fields)


class UrgencyAssessment(BaseModel):
    tier: UrgencyTier
    signal: str
    days_until_deadline: Optional[int] = None
    remaining_days: Optional[int] = None


class SupplierMatch(BaseModel):
    """Vendor data copied from the matching PO history row."""
    matched: bool
    vendor_code: Optional[str] = None
    vendor_name: Optional[str] = None
    ordered_quantity: Optional[float] = None
    ordered_amount: Optional[float] = None
    weight: Optional[float] = None


class QuotationPlan(BaseModel):
    """Contract method and auto-filled quotation request fields."""
    private_contract_eligible: bool
    contract_method: ContractMethod
    justification: str = ""
    response_window_days: int
    non_approval_code: str
    non_approval_reason: str
    technical_evaluation_required: bool = False


class PriceEstimate(BaseModel):
    """Estimated bid price and how it was derived."""
    method: PriceMethod
    total: float
    unit_price: Optional[float] = None
    reference_unit_price: Optional[float] = None  # recent PO unit price, when known
    llm_response: Optional[Dict[str, Any]] = None


class AppropriatenessReview(BaseModel):
    quoted_total: float
    quoted_unit_price: float
    estimated_unit_price: float
    competitiveness: Competitiveness
    competitiveness_signal: str
    change_rate: Optional[float] = None  # private contracts only, percent
    verdict: Verdict
    review_required: bool
    processing_state: ProcessingState


TEXT_FIELDS = (
    "requisition_id",
    "material_number",
    "description",
    "sourcing_group",
    "material_group",
    "requester",
    "unit_price_contract_no",
    "auto_allocation_group",
    "creation_type",
    "unit_of_measure",
    "data_source",
)


class RequisitionRecord(BaseModel):
    """
    One purchase requisition line.

    Input fields accept either the attribute name or the spreadsheet header.
    Derived fields stay None until the stage that owns them has run.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    # Input
    requisition_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("requisition_id", "구매요청"))
    material_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("material_number", "자재번호"))
    description: Optional[str] = Field(default=None, validation_alias=AliasChoices("description", "내역"))
    requisition_date: Optional[Any] = Field(default=None, validation_alias=AliasChoices("requisition_date", "구매요청일"))
    required_by_date: Optional[Any] = Field(default=None, validation_alias=AliasChoices("required_by_date", "PR납기일"))
    lead_time: Optional[Any] = Field(default=None, validation_alias=AliasChoices("lead_time", "LEAD_TIME"))
    sourcing_group: Optional[str] = Field(default=None, validation_alias=AliasChoices("sourcing_group", "소싱그룹"))
    material_group: Optional[str] = Field(default=None, validation_alias=AliasChoices("material_group", "자재그룹"))
    requester: Optional[str] = Field(default=None, validation_alias=AliasChoices("requester", "구매요청자"))
    unit_price_contract_no: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("unit_price_contract_no", "단가계약번호")
    )
    auto_allocation_group: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("auto_allocation_group", "자동배량그룹")
    )
    creation_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("creation_type", "PR생성형태"))
    requested_quantity: Optional[Any] = Field(default=None, validation_alias=AliasChoices("requested_quantity", "요청수량"))
    unit_of_measure: Optional[str] = Field(default=None, validation_alias=AliasChoices("unit_of_measure", "UOM"))
    data_source: Optional[str] = Field(default=None, validation_alias=AliasChoices("data_source", "데이터소스"))

    # Key normalizer
    material_key: str = ""
    is_pzaf: bool = False

    # Pipeline stages
    validation: Optional[ValidationResult] = None
    contract_class: Optional[ContractClass] = None
    urgency: Optional[UrgencyAssessment] = None
    supplier: Optional[SupplierMatch] = None
    order_method: Optional[OrderMethod] = None
    quotation: Optional[QuotationPlan] = None
    price: Optional[PriceEstimate] = None
    review: Optional[AppropriatenessReview] = None
    approval_state: Optional[ApprovalState] = None

    # Post-run human actions
    approved_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    manual_overrides: Dict[str, Any] = Field(default_factory=dict)

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        return to_text(value)

    @property
    def is_matched(self) -> bool:
        return bool(self.supplier and self.supplier.matched)

    @property
    def urgency_tier(self) -> Optional[UrgencyTier]:
        return self.urgency.tier if self.urgency else None

    @property
    def contract_method(self) -> Optional[ContractMethod]:
        return self.quotation.contract_method if self.quotation else None
