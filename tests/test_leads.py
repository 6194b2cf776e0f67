import io
from datetime import datetime

import pandas as pd
import pytest

from bizpulse.data.models import SalesRecord
from bizpulse.leads.actions import EXPORT_COLUMNS, export_leads_csv, lead_with_actions, suggest_actions
from bizpulse.leads.generators import (
    generate_overdue_payment_leads,
    generate_prospect_leads,
    generate_reactivation_leads,
    generate_seasonal_leads,
    generate_upsell_leads,
    upcoming_peak_months,
)


class TestOverduePaymentLeads:
    """测试逾期发票回收线索"""

    @pytest.fixture
    def invoices(self, make_invoice):
        return [
            make_invoice('I1', 8000, 45),
            make_invoice('I2', 500, 45, status='overdue'),
            make_invoice('I3', 30000, 10, status='overdue'),
            make_invoice('I4', 9000, 45, status='paid', paid_after_days=10),
        ]

    def test_filter_and_order(self, invoices, now):
        leads = generate_overdue_payment_leads(invoices, now)

        assert [lead.id for lead in leads] == ['overdue_I3', 'overdue_I1']
        assert all(lead.type == 'overdue_payment_recovery' for lead in leads)
        assert all(lead.generated_at == now for lead in leads)

    def test_scores_and_ranges(self, invoices, now):
        large, small = generate_overdue_payment_leads(invoices, now)

        assert large.score == 70
        assert large.urgency == 'low'
        assert (large.revenue_range.min, large.revenue_range.max) == (5000, 25000)
        assert small.score == 100
        assert small.urgency == 'high'
        assert (small.revenue_range.min, small.revenue_range.max) == (5000, 8000)
        assert small.context == 'Invoice #I1 - $8,000 overdue by 45 days'

    def test_no_invented_contact_details(self, invoices, now):
        lead = generate_overdue_payment_leads(invoices, now)[0]

        assert lead.contact.name == 'Customer CI3'
        assert lead.contact.email is None
        assert lead.contact.phone is None

    def test_limit(self, make_invoice, now):
        invoices = [make_invoice(f"I{i}", 1000 + i, 20) for i in range(25)]

        assert len(generate_overdue_payment_leads(invoices, now)) == 20

    def test_marked_overdue_before_due_date(self, make_invoice, now):
        """显式标记逾期但未到期的发票按 0 天计"""
        lead = generate_overdue_payment_leads([make_invoice('I9', 5000, -60, status='overdue')], now)[0]

        assert lead.score == 50
        assert 0 <= lead.score <= 100
        assert lead.urgency == 'low'
        assert lead.contact.context == '0 days overdue'
        assert lead.context == 'Invoice #I9 - $5,000 overdue by 0 days'


class TestCustomerLeads:
    """测试基于销售记录的线索"""

    def test_reactivation(self, make_sale, now):
        records = [
            make_sale('Dave', 1500, days_ago=150, customer_phone='555-0199'),
            make_sale('Dave', 1500, days_ago=300),
            make_sale('Once', 5000, days_ago=200),
            make_sale('Small', 400, days_ago=200),
            make_sale('Small', 400, days_ago=210),
            make_sale('Recent', 2000, days_ago=10),
            make_sale('Recent', 2000, days_ago=20),
        ]
        leads = generate_reactivation_leads(records, now)

        assert len(leads) == 1
        lead = leads[0]
        assert lead.id == 'reactivation_customer_1'
        assert lead.urgency == 'medium'
        assert lead.score == pytest.approx(100 - 150 / 365 * 50)
        assert lead.revenue_range.min == pytest.approx(525)
        assert lead.revenue_range.max == pytest.approx(2100)
        assert lead.contact.phone == '555-0199'
        assert lead.contact.email is None

    def test_reactivation_uses_whole_days(self, make_sale, now):
        """180.4 天按 180 天计，不算高紧急度"""
        records = [
            make_sale('Dave', 1500, days_ago=180.4),
            make_sale('Dave', 1500, days_ago=300),
        ]
        lead = generate_reactivation_leads(records, now)[0]

        assert lead.urgency == 'medium'
        assert lead.score == pytest.approx(100 - 180 / 365 * 50)
        assert lead.contact.context == 'Last purchase 180 days ago'

    def test_upsell_top_fifth(self, make_sale, now):
        records = [make_sale(f"Customer {i}", 100 * (i + 1), days_ago=10) for i in range(10)]
        leads = generate_upsell_leads(records, now)

        assert [lead.contact.name for lead in leads] == ['Customer 9', 'Customer 8']
        assert all(lead.urgency == 'high' for lead in leads)

    def test_upsell_at_least_one(self, make_sale, now):
        records = [make_sale('Alice', 2500, days_ago=90 + k) for k in range(6)]
        leads = generate_upsell_leads(records, now)

        assert len(leads) == 1
        assert leads[0].score == 100
        assert leads[0].urgency == 'medium'
        assert generate_upsell_leads([], now) == []

    def test_prospects(self, make_sale, now):
        records = [make_sale('Alice', 2500, days_ago=10 + k) for k in range(6)]
        records += [
            make_sale('Carol', 1500, days_ago=5, customer_email='carol@example.com'),
            make_sale('Tiny', 500, days_ago=5),
        ]
        leads = generate_prospect_leads(records, now)

        assert [lead.contact.name for lead in leads] == ['Carol']
        lead = leads[0]
        assert lead.score == pytest.approx(36)
        assert (lead.revenue_range.min, lead.revenue_range.max) == (2000, 7500)
        assert lead.contact.email == 'carol@example.com'

    def test_prospects_need_successful_customers(self, make_sale, now):
        assert generate_prospect_leads([make_sale('Carol', 1500, days_ago=5)], now) == []


class TestSeasonalLeads:
    """测试季节性复购线索"""

    @pytest.fixture
    def records(self):
        return [
            SalesRecord(id='a', date=datetime(2023, 8, 10), amount=4000, customer_name='Henry'),
            SalesRecord(id='b', date=datetime(2023, 8, 20), amount=2000, customer_name='Ivy'),
            SalesRecord(id='c', date=datetime(2024, 1, 5), amount=500, customer_name='Henry'),
            SalesRecord(id='d', date=datetime(2024, 3, 5), amount=500, customer_name='Ivy'),
            SalesRecord(id='e', date=datetime(2024, 5, 5), amount=500, customer_name='Jack'),
        ]

    def test_upcoming_peak(self, records):
        assert upcoming_peak_months(records, datetime(2024, 6, 15)) == [8]
        assert upcoming_peak_months(records, datetime(2024, 9, 15)) == []

    def test_leads(self, records):
        leads = generate_seasonal_leads(records, datetime(2024, 6, 15))

        assert [lead.id for lead in leads] == ['seasonal_0', 'seasonal_1']
        assert [lead.contact.name for lead in leads] == ['Henry', 'Ivy']
        henry, ivy = leads
        assert henry.score == pytest.approx(75)
        assert (henry.revenue_range.min, henry.revenue_range.max) == (1000, 6000)
        assert (ivy.revenue_range.min, ivy.revenue_range.max) == (1000, 3000)
        assert 'August' in henry.context

    def test_no_upcoming_peak(self, records):
        assert generate_seasonal_leads(records, datetime(2024, 9, 15)) == []


class TestLeadActions:
    """测试外联动作与导出"""

    @pytest.fixture
    def reactivation_lead(self, make_sale, now):
        records = [
            make_sale('Dave', 1500, days_ago=150, customer_phone='555-0199', customer_email='dave@example.com'),
            make_sale('Dave', 1500, days_ago=300),
        ]
        return generate_reactivation_leads(records, now)[0]

    def test_channels_follow_contact_details(self, reactivation_lead):
        actions = suggest_actions(reactivation_lead)

        assert [a.channel for a in actions] == ['phone', 'email', 'whatsapp']
        assert 'Dave' in actions[0].message

    def test_no_contact_no_actions(self, make_invoice, now):
        lead = generate_overdue_payment_leads([make_invoice('I1', 8000, 45)], now)[0]

        assert suggest_actions(lead) == []

    def test_upsell_email_template(self, make_sale, now):
        records = [make_sale('Alice', 2500, days_ago=10, customer_email='alice@example.com')]
        lead = generate_upsell_leads(records, now)[0]
        actions = suggest_actions(lead)

        assert [a.channel for a in actions] == ['email']
        assert 'Exclusive Upgrade Opportunity' in actions[0].message

    def test_lead_with_actions(self, reactivation_lead):
        row = lead_with_actions(reactivation_lead)

        assert row['id'] == reactivation_lead.id
        assert row['contact']['email'] == 'dave@example.com'
        assert [a['channel'] for a in row['actions']] == ['phone', 'email', 'whatsapp']

    def test_export_csv(self, reactivation_lead, make_invoice, now):
        overdue = generate_overdue_payment_leads([make_invoice('I1', 8000, 45)], now)
        frame = pd.read_csv(io.StringIO(export_leads_csv([reactivation_lead] + overdue)), keep_default_na=False)

        assert list(frame.columns) == EXPORT_COLUMNS
        assert len(frame) == 2
        assert frame.loc[0, 'Email'] == 'dave@example.com'
        assert frame.loc[1, 'Email'] == ''
        assert frame.loc[1, 'Type'] == 'overdue_payment_recovery'
        assert frame.loc[1, 'Score'] == 100

    def test_export_empty(self):
        assert export_leads_csv([]).strip() == ','.join(EXPORT_COLUMNS)
