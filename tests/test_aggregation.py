from types import SimpleNamespace

import pytest

from analytics.aggregation import (
    account_balances,
    category_breakdown,
    category_comparison,
    category_percentages,
    dashboard_summary,
    mood_correlations,
    period_buckets,
    spending_on_day,
    spending_trends,
    subscription_analytics,
)
from conftest import NOW, account, category, ms, txn


def test_account_balance_from_initial_and_transactions():
    accounts = [account(1, 5000)]
    txs = [
        txn(1, 3000, 'income', '2024-06-01'),
        txn(2, 1200, 'expense', '2024-06-02'),
        txn(3, 500, 'expense', '2024-06-03'),
    ]
    balances = account_balances(accounts, txs)
    assert balances[0]['balance'] == 6300


def test_balances_only_count_matching_account_and_sum_to_total():
    accounts = [account(1, 100), account(2, 50, name='Wallet', atype='cash')]
    txs = [
        txn(1, 40, 'income', '2024-01-05', account_id=1),
        txn(2, 10, 'expense', '2023-02-05', account_id=2),
        txn(3, 99, 'expense', '2024-06-05', account_id=3),
    ]
    summary = dashboard_summary(accounts, [], txs, now=NOW)
    by_id = {a['id']: a['balance'] for a in summary['account_balances']}
    assert by_id == {1: 140, 2: 40}
    assert summary['total_balance'] == 180


def test_dashboard_summary_current_month_only():
    cats = [category(1, 'Salary', 'income', '#00ff00'), category(2, 'Food'), category(3, 'Rent')]
    txs = [
        txn(1, 50000, 'income', '2024-06-01', category_id=1),
        txn(2, 12000, 'expense', '2024-06-03', category_id=3),
        txn(3, 5000, 'expense', '2024-06-10', category_id=2),
        txn(4, 9999, 'expense', '2024-05-31 23:59', category_id=2),
    ]
    summary = dashboard_summary([account(1, 0)], cats, txs, now=NOW)
    assert summary['income'] == 50000
    assert summary['expense'] == 17000
    assert summary['net'] == 33000
    names = [c['name'] for c in summary['category_breakdown']]
    assert names == ['Salary', 'Food', 'Rent']
    food = summary['category_breakdown'][1]
    assert food['amount'] == 5000
    assert food['color'] == '#00ffff'


def test_empty_inputs_give_zeros():
    summary = dashboard_summary([], [], [], now=NOW)
    assert summary['total_balance'] == 0
    assert summary['income'] == 0 and summary['expense'] == 0 and summary['net'] == 0
    assert summary['category_breakdown'] == []
    assert summary['account_balances'] == []


def test_breakdown_drops_zero_categories():
    cats = [category(1, 'Food'), category(2, 'Travel')]
    breakdown = category_breakdown(cats, [txn(1, 20, 'expense', '2024-06-02', category_id=1)])
    assert [c['name'] for c in breakdown] == ['Food']


def test_category_percentages():
    shares = category_percentages({'Food': 3000, 'Rent': 5000, 'Transport': 2000}, 10000)
    assert [s['percentage'] for s in shares] == [30.0, 50.0, 20.0]
    assert category_percentages({'Food': 10}, 0)[0]['percentage'] == 0.0


def test_monthly_buckets_oldest_first():
    buckets = period_buckets('month', 3, now=NOW)
    assert [b[0] for b in buckets] == ['Apr 2024', 'May 2024', 'Jun 2024']
    assert buckets[0][1] == ms('2024-04-01')
    assert buckets[2][2] == ms('2024-06-30 23:59:59.999')


def test_quarter_and_week_labels():
    quarters = period_buckets('quarter', 2, now=NOW)
    assert [q[0] for q in quarters] == ['Q1 2024', 'Q2 2024']
    assert quarters[0][1] == ms('2024-03-01')
    assert quarters[1][2] == ms('2024-08-31 23:59:59.999')

    weeks = period_buckets('week', 3, now=NOW)
    assert [w[0] for w in weeks] == ['Week 1', 'Week 2', 'Week 3']
    assert weeks[-1][2] == ms(NOW)
    assert weeks[-1][1] == ms('2024-06-08 12:00:00')


def test_spending_trends_net_and_inclusive_bounds():
    txs = [
        txn(1, 20000, 'income', '2024-04-01'),
        txn(2, 5000, 'expense', '2024-04-30 23:59:59'),
        txn(3, 30000, 'income', '2024-06-02'),
        txn(4, 15000, 'expense', '2024-06-05'),
    ]
    trends = spending_trends(txs, 'month', 3, now=NOW)
    assert len(trends) == 3
    assert trends[0]['income'] == 20000 and trends[0]['expense'] == 5000
    assert trends[1]['net'] == 0
    assert trends[2]['net'] == 15000
    for bucket in trends:
        assert bucket['net'] == bucket['income'] - bucket['expense']


def test_category_comparison_fills_zero_months():
    cats = [category(1, 'Food', color='#ff0000'), category(2, 'Rent')]
    txs = [
        txn(1, 300, 'expense', '2024-04-10', category_id=1),
        txn(2, 200, 'expense', '2024-06-10', category_id=1),
        txn(3, 1000, 'expense', '2024-05-01', category_id=2),
    ]
    comparison = category_comparison(cats, txs, 3, now=NOW)
    assert comparison['Food']['color'] == '#ff0000'
    assert [p['amount'] for p in comparison['Food']['data']] == [300, 0, 200]
    assert [p['month'] for p in comparison['Rent']['data']] == ['Apr', 'May', 'Jun']
    assert [p['amount'] for p in comparison['Rent']['data']] == [0, 1000, 0]


def test_subscriptions_grouped_by_category_name():
    cats = [category(1, 'Streaming'), category(2, 'Streaming'), category(3, 'Gym')]
    txs = [
        txn(1, 199, 'expense', '2024-06-01', category_id=1, is_subscription=True),
        txn(2, 499, 'expense', '2024-06-02', category_id=2, is_subscription=True),
        txn(3, 999, 'expense', '2024-06-03', category_id=3, is_subscription=True),
        txn(4, 50, 'expense', '2024-06-04', category_id=3),
        txn(5, 10, 'expense', '2024-06-05', category_id=None, is_subscription=True),
    ]
    result = subscription_analytics(cats, txs)
    groups = {s['name']: s for s in result['subscriptions']}
    assert groups['Streaming']['count'] == 2
    assert groups['Streaming']['monthly_amount'] == 698
    assert groups['Streaming']['last_transaction']['id'] == 2
    assert groups['Unknown']['count'] == 1
    assert result['monthly_total'] == 1707
    assert result['count'] == 4


def test_no_subscriptions():
    assert subscription_analytics([], []) == {'subscriptions': [], 'monthly_total': 0.0, 'count': 0}


def _mood(mood, spending, when):
    return SimpleNamespace(mood=mood, spending_amount=spending, date=ms(when))


def test_mood_correlations_average_per_mood():
    logs = [
        _mood('happy', 100, '2024-06-14'),
        _mood('happy', 300, '2024-06-13'),
        _mood('stressed', 900, '2024-06-12'),
        _mood('sad', 5000, '2024-04-01'),
    ]
    result = mood_correlations(logs, days=30, now=NOW)
    assert result['total_logs'] == 3
    correlations = {c['mood']: c for c in result['correlations']}
    assert correlations['happy']['average_spending'] == 200
    assert correlations['happy']['occurrences'] == 2
    assert correlations['stressed']['average_spending'] == 900
    assert 'sad' not in correlations


def test_spending_on_day_counts_expenses_only():
    txs = [
        txn(1, 40, 'expense', '2024-06-15 08:00'),
        txn(2, 60, 'expense', '2024-06-15 23:30'),
        txn(3, 500, 'income', '2024-06-15 09:00'),
        txn(4, 70, 'expense', '2024-06-14 23:59'),
    ]
    assert spending_on_day(txs, now=NOW) == pytest.approx(100)
