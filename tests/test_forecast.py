import pytest

from analytics.forecast import cash_flow_forecast, predict_next_month_expense, trailing_averages
from conftest import NOW, account, txn


def test_trailing_averages_divide_by_six():
    txs = [
        txn(1, 100000, 'income', '2024-01-05'),
        txn(2, 57000, 'income', '2024-05-05'),
        txn(3, 60000, 'expense', '2024-02-10'),
        txn(4, 37000, 'expense', '2024-06-01'),
        # before the window
        txn(5, 99999, 'income', '2023-11-30 23:59'),
    ]
    avg_income, avg_expense = trailing_averages(txs, now=NOW)
    assert avg_income == pytest.approx(26166.67, abs=0.01)
    assert avg_expense == pytest.approx(16166.67, abs=0.01)


def test_new_user_average_is_deflated():
    avg_income, _ = trailing_averages([txn(1, 6000, 'income', '2024-06-01')], now=NOW)
    assert avg_income == 1000


def test_forecast_projects_linearly_from_current_balance():
    accounts = [account(1, 100000)]
    txs = [
        txn(1, 120000, 'income', '2024-03-01'),
        txn(2, 30000, 'expense', '2024-04-01'),
    ]
    result = cash_flow_forecast(accounts, txs, months_ahead=3, now=NOW)
    points = result['forecast']
    assert len(points) == 4
    assert points[0]['is_actual'] is True
    assert points[0]['projected_balance'] == 190000
    assert points[0]['month'] == 'Jun 2024'
    assert points[3]['month'] == 'Sep 2024'
    for prev, point in zip(points, points[1:]):
        assert point['is_actual'] is False
        assert point['projected_balance'] == pytest.approx(
            prev['projected_balance'] + result['avg_monthly_income'] - result['avg_monthly_expense'])
    assert result['avg_monthly_income'] == 20000
    assert result['avg_monthly_expense'] == 5000
    assert result['avg_monthly_savings'] == 15000
    assert points[1]['projected_balance'] == 205000


def test_forecast_with_no_data():
    result = cash_flow_forecast([], [], months_ahead=2, now=NOW)
    assert [p['projected_balance'] for p in result['forecast']] == [0, 0, 0]
    assert result['avg_monthly_savings'] == 0
    assert result['next_month_expense_prediction'] == 0.0


def test_expense_prediction_follows_monthly_trend():
    txs = [
        txn(1, 1000, 'expense', '2024-01-10'),
        txn(2, 2000, 'expense', '2024-02-10'),
        txn(3, 3000, 'expense', '2024-03-10'),
    ]
    assert predict_next_month_expense(txs) == pytest.approx(4000)
    assert predict_next_month_expense(txs[:1]) == 1000
