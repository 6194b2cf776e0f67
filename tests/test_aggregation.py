from datetime import datetime

import pytest

from bizpulse.analytics.aggregation import (
    UNKNOWN_PRODUCT, aggregate_by_dimension, aggregate_by_month, build_customers, product_key
)
from bizpulse.data.models import SalesRecord


class TestMonthlyAggregation:
    """测试按月汇总"""

    def test_months_sorted_ascending(self, monthly_sales):
        """输入乱序时结果仍按月份升序"""
        records = monthly_sales([1000, 1200, 900, 1500])
        monthly = aggregate_by_month(list(reversed(records)))

        assert [m.period for m in monthly] == ['2024-01', '2024-02', '2024-03', '2024-04']
        assert [m.total for m in monthly] == [1000, 1200, 900, 1500]

    def test_same_month_is_summed(self):
        """同一月份的记录合并"""
        records = [
            SalesRecord(id='a', date=datetime(2024, 3, 1), amount=100, customer_name='A'),
            SalesRecord(id='b', date=datetime(2024, 3, 31), amount=250, customer_name='B'),
            SalesRecord(id='c', date=datetime(2023, 12, 5), amount=40, customer_name='C'),
        ]
        monthly = aggregate_by_month(records)

        assert [(m.period, m.total) for m in monthly] == [('2023-12', 40), ('2024-03', 350)]

    def test_empty_input(self):
        assert aggregate_by_month([]) == []
        assert aggregate_by_dimension([], product_key) == {}
        assert build_customers([]) == []


class TestDimensionAggregation:
    """测试按维度汇总"""

    def test_first_appearance_order_and_unknown_product(self, make_sale):
        records = [
            make_sale('A', 100, product='Tea'),
            make_sale('B', 300),
            make_sale('C', 50, product='Coffee'),
            make_sale('D', 20, product='Tea'),
        ]
        totals = aggregate_by_dimension(records, product_key)

        assert list(totals) == ['Tea', UNKNOWN_PRODUCT, 'Coffee']
        assert totals['Tea'].total == 120
        assert totals['Tea'].count == 2
        assert totals[UNKNOWN_PRODUCT].total == 300

    def test_orders_counts_distinct_ids(self, make_sale):
        """count 为记录数，orders 为不同记录ID数"""
        records = [
            make_sale('A', 10, product='Tea', id='order-1'),
            make_sale('A', 15, product='Tea', id='order-1'),
            make_sale('A', 20, product='Tea', id='order-2'),
        ]
        totals = aggregate_by_dimension(records, product_key)

        assert totals['Tea'].count == 3
        assert totals['Tea'].orders == 2


class TestBuildCustomers:
    """测试客户折叠"""

    def test_case_insensitive_fold(self, make_sale, now):
        records = [
            make_sale('Alice Smith', 100, days_ago=30),
            make_sale('alice smith', 300, days_ago=5),
            make_sale('Bob', 50, days_ago=1),
        ]
        customers = build_customers(records)

        assert [c.id for c in customers] == ['customer_1', 'customer_2']
        alice = customers[0]
        assert alice.name == 'Alice Smith'
        assert alice.total_spent == 400
        assert alice.purchase_count == 2
        assert alice.average_order_value == 200
        assert alice.days_since_last_purchase(now) == pytest.approx(5)
        assert alice.first_purchase < alice.last_purchase

    def test_contact_fields_last_write_wins(self, make_sale):
        """联系方式取输入顺序中最后一个非空值"""
        records = [
            make_sale('Carol', 100, days_ago=3, customer_email='old@example.com', customer_phone='555-0100'),
            make_sale('Carol', 100, days_ago=10, customer_email='new@example.com'),
            make_sale('Carol', 100, days_ago=1),
        ]
        carol = build_customers(records)[0]

        assert carol.email == 'new@example.com'
        assert carol.phone == '555-0100'

    def test_missing_contact_stays_none(self, make_sale):
        dave = build_customers([make_sale('Dave', 10, days_ago=1)])[0]

        assert dave.email is None
        assert dave.phone is None
