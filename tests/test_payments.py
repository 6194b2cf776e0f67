from datetime import datetime, timedelta

import pytest

from bizpulse.analytics.payment_analysis import (
    calculate_payment_metrics, identify_overdue_payments, overdue_urgency, recent_overdue_rate, run_payment_analysis
)
from bizpulse.data.models import Invoice


class TestOverduePayments:
    """测试逾期识别"""

    def test_forty_days_overdue_is_high(self, make_invoice, now):
        """5000 元、逾期 40 天的待付发票为 high"""
        overdue = identify_overdue_payments([make_invoice('INV1', 5000, 40)], now)

        assert len(overdue) == 1
        assert overdue[0].days_past_due == 40
        assert overdue[0].urgency == 'high'
        assert overdue[0].amount == 5000

    def test_paid_and_cancelled_excluded(self, make_invoice, now):
        invoices = [
            make_invoice('INV1', 5000, 40, status='paid', paid_after_days=20),
            make_invoice('INV2', 5000, 40, status='cancelled'),
            make_invoice('INV3', 5000, -10),
        ]

        assert identify_overdue_payments(invoices, now) == []

    def test_explicit_overdue_status(self, make_invoice, now):
        """显式标记为 overdue 的发票即使未到期也计入"""
        overdue = identify_overdue_payments([make_invoice('INV1', 800, -5, status='overdue')], now)

        assert overdue[0].days_past_due == -5
        assert overdue[0].urgency == 'medium'

    def test_sorted_by_days_past_due(self, make_invoice, now):
        invoices = [make_invoice('A', 100, 10), make_invoice('B', 100, 90), make_invoice('C', 100, 45)]
        overdue = identify_overdue_payments(invoices, now)

        assert [p.invoice_id for p in overdue] == ['B', 'C', 'A']
        assert [p.urgency for p in overdue] == ['critical', 'high', 'medium']

    def test_urgency_thresholds(self):
        assert overdue_urgency(61) == 'critical'
        assert overdue_urgency(60) == 'high'
        assert overdue_urgency(31) == 'high'
        assert overdue_urgency(30) == 'medium'


class TestPaymentMetrics:
    """测试付款指标"""

    @pytest.fixture
    def invoices(self, make_invoice):
        return [
            make_invoice('P1', 1000, 60, status='paid', paid_after_days=30),
            make_invoice('P2', 2000, 60, status='paid', paid_after_days=60),
            make_invoice('O1', 7000, 70, customer_id='C9'),
            make_invoice('O2', 3000, 35),
        ]

    def test_metrics(self, invoices, now):
        metrics = calculate_payment_metrics(invoices, now)

        assert metrics.average_payment_time == pytest.approx(45)
        assert metrics.payment_rate == pytest.approx(50)
        assert metrics.total_overdue == 10000
        assert metrics.overdue_count == 2

    def test_recent_overdue_rate(self, now):
        """只统计最近三个自然月内开具的发票"""
        def invoice(invoice_id, issued_days_ago, status):
            issue_date = now - timedelta(days=issued_days_ago)
            return Invoice(
                id=invoice_id, customer_id='C1', amount=100,
                issue_date=issue_date, due_date=issue_date + timedelta(days=14), status=status
            )

        invoices = [invoice('old', 200, 'pending'), invoice('r1', 40, 'pending'), invoice('r2', 20, 'paid')]

        assert recent_overdue_rate(invoices, now) == pytest.approx(50)
        assert recent_overdue_rate([invoice('old', 200, 'pending')], now) is None

    def test_recommendations(self, invoices, now):
        result = run_payment_analysis(invoices, now=now)
        titles = [r.title for r in result.recommendations]

        assert result.analysis_type == 'payment_analysis'
        assert titles == [
            'URGENT: Critical Overdue Payments',
            'High Priority Payment Collection',
            'Implement Early Payment Incentives',
        ]
        critical = result.recommendations[0]
        assert critical.revenue_impact == 7000
        assert critical.contacts[0].name == 'Customer C9'
        assert critical.contacts[0].email is None
        assert critical.contacts[0].revenue_value == 7000

    def test_insights(self, invoices, now):
        result = run_payment_analysis(invoices, now=now)

        assert result.insights[0] == '2 overdue invoices totaling $10,000'
        assert 'Average payment time: 45 days' in result.insights
        assert 'Payment success rate: 50.0%' in result.insights
        assert '1 critical overdue payments (60+ days)' in result.insights

    def test_slow_payments(self, make_invoice, now):
        invoices = [make_invoice('P1', 1000, 100, status='paid', paid_after_days=50)]
        result = run_payment_analysis(invoices, now=now)

        assert [r.title for r in result.recommendations] == ['Improve Payment Terms & Processes']

    def test_empty(self):
        result = run_payment_analysis([], now=datetime(2024, 6, 30))

        assert result.overdue_payments == []
        assert result.payment_metrics.payment_rate == 0
        assert result.recommendations == []
        assert result.insights[0].startswith('Not enough')
