"""
Closed taxonomies used across the pipeline.

CUAD clause categories, ContractNLI hypothesis categories, risk levels and
the ContractNLI hypotheses tested during gap analysis.
"""

from dataclasses import dataclass
from enum import Enum


class ClauseCategory(str, Enum):
    """CUAD clause categories plus the Unknown and Uncategorized sentinels."""

    DOCUMENT_NAME = "Document Name"
    PARTIES = "Parties"
    AGREEMENT_DATE = "Agreement Date"
    EFFECTIVE_DATE = "Effective Date"
    EXPIRATION_DATE = "Expiration Date"
    RENEWAL_TERM = "Renewal Term"
    NOTICE_PERIOD_TO_TERMINATE_RENEWAL = "Notice Period To Terminate Renewal"
    GOVERNING_LAW = "Governing Law"
    MOST_FAVORED_NATION = "Most Favored Nation"
    NON_COMPETE = "Non-Compete"
    EXCLUSIVITY = "Exclusivity"
    NO_SOLICIT_OF_CUSTOMERS = "No-Solicit Of Customers"
    COMPETITIVE_RESTRICTION_EXCEPTION = "Competitive Restriction Exception"
    NO_SOLICIT_OF_EMPLOYEES = "No-Solicit Of Employees"
    NON_DISPARAGEMENT = "Non-Disparagement"
    TERMINATION_FOR_CONVENIENCE = "Termination For Convenience"
    ROFR_ROFO_ROFN = "Rofr/Rofo/Rofn"
    CHANGE_OF_CONTROL = "Change Of Control"
    ANTI_ASSIGNMENT = "Anti-Assignment"
    REVENUE_PROFIT_SHARING = "Revenue/Profit Sharing"
    PRICE_RESTRICTIONS = "Price Restrictions"
    MINIMUM_COMMITMENT = "Minimum Commitment"
    VOLUME_RESTRICTION = "Volume Restriction"
    IP_OWNERSHIP_ASSIGNMENT = "Ip Ownership Assignment"
    JOINT_IP_OWNERSHIP = "Joint Ip Ownership"
    LICENSE_GRANT = "License Grant"
    NON_TRANSFERABLE_LICENSE = "Non-Transferable License"
    AFFILIATE_LICENSE = "Affiliate License"
    UNLIMITED_LICENSE = "Unlimited/All-You-Can-Eat-License"
    IRREVOCABLE_OR_PERPETUAL_LICENSE = "Irrevocable Or Perpetual License"
    SOURCE_CODE_ESCROW = "Source Code Escrow"
    POST_TERMINATION_SERVICES = "Post-Termination Services"
    AUDIT_RIGHTS = "Audit Rights"
    UNCAPPED_LIABILITY = "Uncapped Liability"
    CAP_ON_LIABILITY = "Cap On Liability"
    LIQUIDATED_DAMAGES = "Liquidated Damages"
    WARRANTY_DURATION = "Warranty Duration"
    INSURANCE = "Insurance"
    COVENANT_NOT_TO_SUE = "Covenant Not To Sue"
    THIRD_PARTY_BENEFICIARY = "Third Party Beneficiary"
    UNKNOWN = "Unknown"

    # Assigned by the pipeline when confidence falls below the floor
    UNCATEGORIZED = "Uncategorized"

    @classmethod
    def cuad(cls) -> list["ClauseCategory"]:
        """The CUAD categories (sentinels excluded)."""
        return [c for c in cls if c not in (cls.UNKNOWN, cls.UNCATEGORIZED)]


class ContractNLICategory(str, Enum):
    """ContractNLI hypothesis categories."""

    PURPOSE_LIMITATION = "Purpose Limitation"
    PERMITTED_DISCLOSURE = "Permitted Disclosure"
    THIRD_PARTY_DISCLOSURE = "Third Party Disclosure"
    STANDARD_OF_CARE = "Standard of Care"
    SURVIVAL_PERIOD = "Survival Period"
    TERMINATION = "Termination"
    RETURN_DESTRUCTION = "Return/Destruction"
    IP_LICENSE = "Ip License"
    WARRANTIES = "Warranties"
    LIABILITY_LIMITATION = "Liability Limitation"
    GOVERNING_LAW = "Governing Law"
    LEGAL_COMPULSION = "Legal Compulsion"
    PUBLIC_INFORMATION_EXCEPTION = "Public Information Exception"
    PRIOR_KNOWLEDGE_EXCEPTION = "Prior Knowledge Exception"
    INDEPENDENT_DEVELOPMENT_EXCEPTION = "Independent Development Exception"
    ASSIGNMENT = "Assignment"
    AMENDMENT = "Amendment"


class RiskLevel(str, Enum):
    """Risk level assigned to a clause or a whole document."""

    STANDARD = "standard"
    CAUTIOUS = "cautious"
    AGGRESSIVE = "aggressive"
    UNKNOWN = "unknown"


class Perspective(str, Enum):
    """Which party the risk assessment is written for."""

    RECEIVING = "receiving"
    DISCLOSING = "disclosing"
    BALANCED = "balanced"


class GapStatus(str, Enum):
    """Coverage status of a relevant category."""

    PRESENT = "present"
    MISSING = "missing"
    INCOMPLETE = "incomplete"


class GapSeverity(str, Enum):
    """Severity of a coverage gap."""

    CRITICAL = "critical"
    IMPORTANT = "important"
    INFORMATIONAL = "informational"


class HypothesisStatus(str, Enum):
    """Outcome of testing one ContractNLI hypothesis."""

    ENTAILMENT = "entailment"
    CONTRADICTION = "contradiction"
    NOT_MENTIONED = "not_mentioned"


# =============================================================================
# Thresholds
# =============================================================================

CONFIDENCE_FLOOR = 0.3
LOW_CONFIDENCE_THRESHOLD = 0.7


# =============================================================================
# Fallback Category Importance
# =============================================================================

CRITICAL_CATEGORIES = [
    ClauseCategory.PARTIES,
    ClauseCategory.EFFECTIVE_DATE,
    ClauseCategory.GOVERNING_LAW,
]

IMPORTANT_CATEGORIES = [
    ClauseCategory.EXPIRATION_DATE,
    ClauseCategory.NON_COMPETE,
    ClauseCategory.NO_SOLICIT_OF_EMPLOYEES,
    ClauseCategory.NO_SOLICIT_OF_CUSTOMERS,
    ClauseCategory.CAP_ON_LIABILITY,
    ClauseCategory.TERMINATION_FOR_CONVENIENCE,
]

CRITICAL_FALLBACK_WEIGHT = 2.0
IMPORTANT_FALLBACK_WEIGHT = 1.0


# =============================================================================
# ContractNLI Hypotheses
# =============================================================================

@dataclass(frozen=True)
class Hypothesis:
    """A ContractNLI hypothesis tested against the document."""

    id: str
    category: ContractNLICategory
    importance: str  # "critical" or "important"
    text: str


CONTRACT_NLI_HYPOTHESES: list[Hypothesis] = [
    Hypothesis(
        "nli-1", ContractNLICategory.PURPOSE_LIMITATION, "critical",
        "Confidential information shall be used solely for evaluating the proposed transaction.",
    ),
    Hypothesis(
        "nli-2", ContractNLICategory.PERMITTED_DISCLOSURE, "important",
        "The Receiving Party may share confidential information with its employees.",
    ),
    Hypothesis(
        "nli-3", ContractNLICategory.STANDARD_OF_CARE, "critical",
        "The Receiving Party shall protect confidential information with the same degree of care as its own.",
    ),
    Hypothesis(
        "nli-4", ContractNLICategory.SURVIVAL_PERIOD, "important",
        "Confidentiality obligations survive termination for a specified period.",
    ),
    Hypothesis(
        "nli-5", ContractNLICategory.RETURN_DESTRUCTION, "important",
        "Confidential information shall be returned or destroyed upon termination.",
    ),
    Hypothesis(
        "nli-6", ContractNLICategory.LEGAL_COMPULSION, "critical",
        "Disclosure is permitted if required by law.",
    ),
    Hypothesis(
        "nli-7", ContractNLICategory.PUBLIC_INFORMATION_EXCEPTION, "critical",
        "Publicly known information is excluded from confidentiality.",
    ),
    Hypothesis(
        "nli-8", ContractNLICategory.PRIOR_KNOWLEDGE_EXCEPTION, "important",
        "Information known before disclosure is excluded.",
    ),
    Hypothesis(
        "nli-9", ContractNLICategory.INDEPENDENT_DEVELOPMENT_EXCEPTION, "important",
        "Independently developed information is excluded.",
    ),
    Hypothesis(
        "nli-10", ContractNLICategory.GOVERNING_LAW, "critical",
        "The agreement specifies governing jurisdiction.",
    ),
]

# not_mentioned on one of these weighs more in the gap score
CRITICAL_HYPOTHESIS_CATEGORIES = frozenset({
    ContractNLICategory.PURPOSE_LIMITATION,
    ContractNLICategory.STANDARD_OF_CARE,
    ContractNLICategory.LEGAL_COMPULSION,
    ContractNLICategory.PUBLIC_INFORMATION_EXCEPTION,
    ContractNLICategory.GOVERNING_LAW,
})
