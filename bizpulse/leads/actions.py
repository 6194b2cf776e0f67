"""线索跟进动作：外联话术模板与 CSV 导出"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Sequence

import pandas as pd

from bizpulse.analytics.formatting import format_currency
from bizpulse.data.models import Lead

EXPORT_COLUMNS = [
    'Name', 'Email', 'Phone', 'Type', 'Urgency', 'Score', 'Revenue Min', 'Revenue Max', 'Context', 'Generated At'
]

PHONE_TEMPLATE = (
    "Hi {name}, this is [Your Name] from [Company]. I'm calling about {context}. "
    "I wanted to check in and see how we can help. When would be a good time to talk?"
)

EMAIL_TEMPLATES = {
    'overdue_payment_recovery': (
        "Subject: Invoice Follow-up\n\nDear {name},\n\nOur records show {context}. "
        "Please let us know if there is anything preventing payment so we can resolve it quickly.\n\n"
        "Best regards,\n[Your Name]"
    ),
    'top_customer_upsell': (
        "Subject: Exclusive Upgrade Opportunity\n\nDear {name},\n\nAs one of our most valued customers, "
        "I wanted to personally reach out about our premium offerings, worth up to {amount} for your business.\n\n"
        "Would you like to schedule a quick 15-minute call?\n\nBest regards,\n[Your Name]"
    ),
}

DEFAULT_EMAIL_TEMPLATE = (
    "Subject: We'd love to hear from you\n\nDear {name},\n\n{context}. "
    "We have some new offers we think you'll like and would be glad to tell you more.\n\n"
    "Best regards,\n[Your Name]"
)

WHATSAPP_TEMPLATE = (
    "Hi {name}! We miss you at [Company]. It's been a while since your last order, "
    "and we have a special welcome-back offer just for you. Would you like to hear what's new?"
)


@dataclass(frozen=True)
class CommunicationAction:
    """一条可执行的外联动作"""
    channel: str  # phone / email / whatsapp
    label: str
    message: str


def _fill(template: str, lead: Lead) -> str:
    return template.format(
        name=lead.contact.name,
        context=lead.context,
        amount=format_currency(lead.revenue_range.max)
    )


def suggest_actions(lead: Lead) -> List[CommunicationAction]:
    """按线索已有的联系方式给出外联动作，没有联系方式的渠道不提供"""
    actions = []

    if lead.contact.phone:
        actions.append(CommunicationAction(
            channel='phone',
            label=f"Call {lead.contact.name}",
            message=_fill(PHONE_TEMPLATE, lead)
        ))

    if lead.contact.email:
        template = EMAIL_TEMPLATES.get(lead.type, DEFAULT_EMAIL_TEMPLATE)
        actions.append(CommunicationAction(
            channel='email',
            label=f"Email {lead.contact.name}",
            message=_fill(template, lead)
        ))

    # WhatsApp 只用于唤醒类线索
    if lead.contact.phone and lead.type in ('repeat_customer_reactivation', 'seasonal_opportunity'):
        actions.append(CommunicationAction(
            channel='whatsapp',
            label=f"WhatsApp {lead.contact.name}",
            message=_fill(WHATSAPP_TEMPLATE, lead)
        ))

    return actions


def lead_with_actions(lead: Lead) -> Dict[str, Any]:
    """线索字段加上 actions 列表，供接口和命令行输出"""
    return {**asdict(lead), 'actions': [asdict(action) for action in suggest_actions(lead)]}


def leads_to_frame(leads: Sequence[Lead]) -> pd.DataFrame:
    rows = [
        {
            'Name': lead.contact.name,
            'Email': lead.contact.email or '',
            'Phone': lead.contact.phone or '',
            'Type': lead.type,
            'Urgency': lead.urgency,
            'Score': round(lead.score),
            'Revenue Min': round(lead.revenue_range.min),
            'Revenue Max': round(lead.revenue_range.max),
            'Context': lead.context,
            'Generated At': lead.generated_at.isoformat(),
        }
        for lead in leads
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_leads_csv(leads: Sequence[Lead]) -> str:
    """导出 CRM 可导入的 CSV 文本"""
    return leads_to_frame(leads).to_csv(index=False)
