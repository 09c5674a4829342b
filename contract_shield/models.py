"""
Typed records for contract analyses, history entries and subscriptions.

Serialized forms use camelCase keys so persisted snapshots keep the same
shape as the API payloads.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional


class RiskLevel(str, Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'
    INFO = 'info'


class OverallRisk(str, Enum):
    """Aggregate risk of a whole contract. Has no `info` level."""
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


class ClauseCategory(str, Enum):
    PAYMENT = 'payment'
    SCOPE = 'scope'
    TERMINATION = 'termination'
    LIABILITY = 'liability'
    IP = 'ip'
    CONFIDENTIALITY = 'confidentiality'
    NON_COMPETE = 'non_compete'
    INDEMNIFICATION = 'indemnification'
    DISPUTE = 'dispute'
    TIMELINE = 'timeline'
    OTHER = 'other'


CLAUSE_CATEGORY_LABELS = {
    ClauseCategory.PAYMENT: 'Payment Terms',
    ClauseCategory.SCOPE: 'Scope of Work',
    ClauseCategory.TERMINATION: 'Termination',
    ClauseCategory.LIABILITY: 'Liability',
    ClauseCategory.IP: 'Intellectual Property',
    ClauseCategory.CONFIDENTIALITY: 'Confidentiality / NDA',
    ClauseCategory.NON_COMPETE: 'Non-Compete',
    ClauseCategory.INDEMNIFICATION: 'Indemnification',
    ClauseCategory.DISPUTE: 'Dispute Resolution',
    ClauseCategory.TIMELINE: 'Timeline & Deadlines',
    ClauseCategory.OTHER: 'Other',
}


class InputMethod(str, Enum):
    CAMERA = 'camera'
    FILE = 'file'
    PASTE = 'paste'


class Tier(str, Enum):
    FREE = 'free'
    PRO = 'pro'


@dataclass(frozen=True)
class ContractClause:
    id: str
    title: str
    original_text: str
    plain_english: str
    risk_level: RiskLevel
    risk_explanation: str
    category: ClauseCategory
    negotiation_tip: Optional[str] = None

    @property
    def category_label(self) -> str:
        return CLAUSE_CATEGORY_LABELS[self.category]

    def to_dict(self) -> dict:
        data = {
            'id': self.id,
            'title': self.title,
            'originalText': self.original_text,
            'plainEnglish': self.plain_english,
            'riskLevel': self.risk_level.value,
            'riskExplanation': self.risk_explanation,
            'category': self.category.value,
        }
        if self.negotiation_tip is not None:
            data['negotiationTip'] = self.negotiation_tip
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ContractClause':
        """Rebuild a clause from a trusted snapshot (already normalized)."""
        return cls(
            id=data['id'],
            title=data['title'],
            original_text=data['originalText'],
            plain_english=data['plainEnglish'],
            risk_level=RiskLevel(data['riskLevel']),
            risk_explanation=data['riskExplanation'],
            category=ClauseCategory(data['category']),
            negotiation_tip=data.get('negotiationTip'),
        )


@dataclass(frozen=True)
class ContractAnalysis:
    id: str
    title: str
    contract_type: str
    overall_risk: OverallRisk
    overall_summary: str
    clauses: List[ContractClause]
    red_flags: List[str]
    missing_clauses: List[str]
    negotiation_summary: str
    created_at: str
    raw_text: str
    input_method: InputMethod
    file_name: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            'id': self.id,
            'title': self.title,
            'contractType': self.contract_type,
            'overallRisk': self.overall_risk.value,
            'overallSummary': self.overall_summary,
            'clauses': [clause.to_dict() for clause in self.clauses],
            'redFlags': list(self.red_flags),
            'missingClauses': list(self.missing_clauses),
            'negotiationSummary': self.negotiation_summary,
            'createdAt': self.created_at,
            'rawText': self.raw_text,
            'inputMethod': self.input_method.value,
        }
        if self.file_name is not None:
            data['fileName'] = self.file_name
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ContractAnalysis':
        return cls(
            id=data['id'],
            title=data['title'],
            contract_type=data['contractType'],
            overall_risk=OverallRisk(data['overallRisk']),
            overall_summary=data['overallSummary'],
            clauses=[ContractClause.from_dict(c) for c in data.get('clauses', [])],
            red_flags=list(data.get('redFlags', [])),
            missing_clauses=list(data.get('missingClauses', [])),
            negotiation_summary=data.get('negotiationSummary', ''),
            created_at=data['createdAt'],
            raw_text=data.get('rawText', ''),
            input_method=InputMethod(data.get('inputMethod', InputMethod.PASTE.value)),
            file_name=data.get('fileName'),
        )


@dataclass(frozen=True)
class StoredContract:
    """Lightweight history entry; counts are frozen at creation time."""
    id: str
    title: str
    contract_type: str
    overall_risk: OverallRisk
    clause_count: int
    red_flag_count: int
    created_at: str
    is_favorite: bool = False

    @classmethod
    def from_analysis(cls, analysis: ContractAnalysis) -> 'StoredContract':
        return cls(
            id=analysis.id,
            title=analysis.title,
            contract_type=analysis.contract_type,
            overall_risk=analysis.overall_risk,
            clause_count=len(analysis.clauses),
            red_flag_count=len(analysis.red_flags),
            created_at=analysis.created_at,
        )

    def toggled(self) -> 'StoredContract':
        return replace(self, is_favorite=not self.is_favorite)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'contractType': self.contract_type,
            'overallRisk': self.overall_risk.value,
            'clauseCount': self.clause_count,
            'redFlagCount': self.red_flag_count,
            'createdAt': self.created_at,
            'isFavorite': self.is_favorite,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'StoredContract':
        return cls(
            id=data['id'],
            title=data['title'],
            contract_type=data['contractType'],
            overall_risk=OverallRisk(data['overallRisk']),
            clause_count=int(data['clauseCount']),
            red_flag_count=int(data['redFlagCount']),
            created_at=data['createdAt'],
            is_favorite=bool(data.get('isFavorite', False)),
        )


@dataclass
class Subscription:
    tier: Tier
    reviews_used_this_month: int
    month_reset_date: str
    subscribed_at: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            'tier': self.tier.value,
            'reviewsUsedThisMonth': self.reviews_used_this_month,
            'monthResetDate': self.month_reset_date,
        }
        if self.subscribed_at is not None:
            data['subscribedAt'] = self.subscribed_at
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Subscription':
        return cls(
            tier=Tier(data.get('tier', Tier.FREE.value)),
            reviews_used_this_month=max(0, int(data.get('reviewsUsedThisMonth', 0))),
            month_reset_date=data['monthResetDate'],
            subscribed_at=data.get('subscribedAt'),
        )


@dataclass
class UserProfile:
    name: str = ''
    email: str = ''
    joined_at: str = ''
    total_reviews: int = 0
    subscription: Optional[Subscription] = None
    credential: str = ''

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'email': self.email,
            'joinedAt': self.joined_at,
            'totalReviews': self.total_reviews,
            'subscription': self.subscription.to_dict() if self.subscription else None,
            'credential': self.credential,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'UserProfile':
        subscription = data.get('subscription')
        return cls(
            name=data.get('name', ''),
            email=data.get('email', ''),
            joined_at=data.get('joinedAt', ''),
            total_reviews=int(data.get('totalReviews', 0)),
            subscription=Subscription.from_dict(subscription) if subscription else None,
            credential=data.get('credential', '') or '',
        )
