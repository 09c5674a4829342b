"""
Sample analysis for trying the app without an API key.
"""
from datetime import datetime
from typing import Callable

from contract_shield.models import (
    ClauseCategory,
    ContractAnalysis,
    ContractClause,
    InputMethod,
    OverallRisk,
    RiskLevel,
)
from contract_shield.services.normalizer import clause_id, generate_analysis_id
from contract_shield.utils.dates import to_iso, utcnow

DEMO_RAW_TEXT = '[Demo contract text]'

_DEMO_CLAUSES = [
    {
        'title': 'Payment Terms - Net 60',
        'original_text': (
            'Contractor shall submit invoices upon completion of each milestone. '
            'Client shall pay within sixty (60) business days of receipt of invoice.'
        ),
        'plain_english': (
            'You have to wait up to 60 business days (about 3 months) after sending '
            'your invoice before the client is required to pay you.'
        ),
        'risk_level': RiskLevel.HIGH,
        'risk_explanation': (
            'Net 60 business days is excessively long for freelance work. Industry '
            'standard is Net 15 or Net 30 calendar days. This creates cash flow problems.'
        ),
        'negotiation_tip': (
            'Request Net 15 or Net 30 calendar days. Add a late payment fee of 1.5% '
            'per month for overdue invoices.'
        ),
        'category': ClauseCategory.PAYMENT,
    },
    {
        'title': 'Intellectual Property Assignment',
        'original_text': (
            'All work product, including but not limited to code, designs, documentation, '
            'and related materials created by Contractor shall be considered work-for-hire '
            'and shall be the exclusive property of Client.'
        ),
        'plain_english': (
            'Everything you create for this project belongs entirely to the client, '
            'including code, designs, and documentation. You cannot reuse any of it.'
        ),
        'risk_level': RiskLevel.MEDIUM,
        'risk_explanation': (
            'Total IP transfer is common but overly broad. It could prevent you from '
            'reusing generic code patterns or frameworks you developed.'
        ),
        'negotiation_tip': (
            'Add an exception for pre-existing tools, frameworks, and generic code. '
            'Request a license-back clause for non-client-specific components.'
        ),
        'category': ClauseCategory.IP,
    },
    {
        'title': 'Scope of Work',
        'original_text': (
            'Contractor shall perform web development services as directed by Client, '
            'including but not limited to front-end development, back-end development, and testing.'
        ),
        'plain_english': (
            'You will do web development as the client directs, with no specific limits '
            'on what that includes.'
        ),
        'risk_level': RiskLevel.HIGH,
        'risk_explanation': (
            'The phrases "including but not limited to" and "as directed by Client" create '
            'unlimited scope. The client could demand any type of work under this contract.'
        ),
        'negotiation_tip': (
            'Replace with a specific deliverables list and add a change order process '
            'for work outside the original scope.'
        ),
        'category': ClauseCategory.SCOPE,
    },
    {
        'title': 'Termination Clause',
        'original_text': (
            'Either party may terminate this Agreement with thirty (30) days written notice. '
            'Upon termination, Client shall pay for all completed milestones.'
        ),
        'plain_english': (
            'Either side can end the contract with 30 days notice. You only get paid for '
            'milestones already finished.'
        ),
        'risk_level': RiskLevel.LOW,
        'risk_explanation': (
            'This is a fair termination clause. 30-day notice is standard and you are '
            'guaranteed payment for completed work.'
        ),
        'negotiation_tip': None,
        'category': ClauseCategory.TERMINATION,
    },
    {
        'title': 'Non-Compete Restriction',
        'original_text': (
            "For a period of twelve (12) months following termination, Contractor shall not "
            "provide similar services to any of Client's direct competitors."
        ),
        'plain_english': (
            "After this contract ends, you cannot work for any of the client's competitors "
            "for a full year."
        ),
        'risk_level': RiskLevel.HIGH,
        'risk_explanation': (
            'A 12-month non-compete is extremely restrictive for a freelancer. It could '
            'block a significant portion of your potential income.'
        ),
        'negotiation_tip': (
            'Reduce to 3 months maximum, or remove entirely. At minimum, define '
            '"direct competitors" narrowly.'
        ),
        'category': ClauseCategory.NON_COMPETE,
    },
    {
        'title': 'Confidentiality',
        'original_text': (
            'Contractor agrees to maintain confidentiality of all Client information for a '
            'period of five (5) years following termination of this Agreement.'
        ),
        'plain_english': "You must keep the client's information secret for 5 years after the contract ends.",
        'risk_level': RiskLevel.INFO,
        'risk_explanation': '5-year confidentiality is standard and reasonable. This protects both parties.',
        'negotiation_tip': None,
        'category': ClauseCategory.CONFIDENTIALITY,
    },
]

_DEMO_RED_FLAGS = [
    'Net 60 business days payment terms; industry standard is Net 15-30 calendar days',
    'Unlimited scope clause with "including but not limited to" language',
    '12-month non-compete restriction is excessive for freelance work',
    'No late payment penalty clause to protect the freelancer',
    'No dispute resolution mechanism specified',
]

_DEMO_MISSING_CLAUSES = [
    'Late Payment Fee: should include an automatic penalty for overdue payments',
    'Revision Limits: no cap on revision rounds, risking unlimited rework',
    "Force Majeure: no protection for circumstances beyond either party's control",
    'Dispute Resolution: no mediation or arbitration clause',
    'Kill Fee: no compensation specified if the project is cancelled mid-milestone',
]


def get_demo_analysis(clock: Callable[[], datetime] = utcnow) -> ContractAnalysis:
    """Build the sample freelance agreement analysis with a fresh id."""
    now = clock()
    analysis_id = generate_analysis_id(now)
    clauses = [
        ContractClause(id=clause_id(analysis_id, index), **fields)
        for index, fields in enumerate(_DEMO_CLAUSES)
    ]
    return ContractAnalysis(
        id=analysis_id,
        title='Sample Freelance Web Development Agreement',
        contract_type='Freelance Service Agreement',
        overall_risk=OverallRisk.MEDIUM,
        overall_summary=(
            'This is a standard freelance agreement with some concerning clauses around '
            'payment terms and IP ownership. The 60-day payment window and broad IP transfer '
            'clause should be negotiated before signing.'
        ),
        clauses=clauses,
        red_flags=list(_DEMO_RED_FLAGS),
        missing_clauses=list(_DEMO_MISSING_CLAUSES),
        negotiation_summary=(
            'Priority changes: (1) Reduce payment terms to Net 15-30 calendar days with late fees, '
            '(2) Add a specific deliverables list with a change order process, (3) Remove or reduce '
            'the non-compete to 3 months with a narrow definition, (4) Add a license-back clause for '
            'pre-existing code and tools.'
        ),
        created_at=to_iso(now),
        raw_text=DEMO_RAW_TEXT,
        input_method=InputMethod.PASTE,
    )
