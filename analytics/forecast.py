import pandas as pd
from sklearn.linear_model import LinearRegression

from analytics.aggregation import sum_amounts, to_millis, total_balance, transactions_frame, utc_now

# averages always divide by this, even for users with less history
TRAILING_MONTHS = 6


def trailing_averages(transactions, now=None):
    """Average monthly income and expense since the 1st of the month six months back."""
    now = now if now is not None else utc_now()
    since = to_millis((pd.Period(now, freq='M') - TRAILING_MONTHS).start_time)
    df = transactions_frame(transactions)
    recent = df[df['date'] >= since]
    return sum_amounts(recent, 'income') / TRAILING_MONTHS, sum_amounts(recent, 'expense') / TRAILING_MONTHS


def predict_next_month_expense(transactions):
    df = transactions_frame(transactions)
    expenses = df[df['type'] == 'expense'].copy()
    if expenses.empty:
        return 0.0
    # Create monthly expense totals
    expenses['ym'] = pd.to_datetime(expenses['date'].astype('int64'), unit='ms').dt.to_period('M').astype(str)
    m = expenses.groupby('ym')['amount'].sum().reset_index()
    if len(m) < 2:
        # Not enough data to fit
        return float(m['amount'].iloc[-1])
    # Turn months into an integer index
    m['idx'] = range(1, len(m) + 1)
    X = m[['idx']].values
    y = m['amount'].values
    model = LinearRegression().fit(X, y)
    next_idx = m['idx'].max() + 1
    pred = float(model.predict([[next_idx]])[0])
    return max(pred, 0.0)


def cash_flow_forecast(accounts, transactions, months_ahead=6, now=None):
    """Project the total balance ``months_ahead`` months forward.

    Point 0 is the current lifetime balance; each later point adds the
    trailing average savings once.
    """
    now = now if now is not None else utc_now()
    avg_income, avg_expense = trailing_averages(transactions, now)
    step = avg_income - avg_expense
    projected = total_balance(accounts, transactions)

    this_month = pd.Period(now, freq='M')
    forecast = []
    for i in range(months_ahead + 1):
        if i > 0:
            projected += step
        forecast.append({
            'month': (this_month + i).start_time.strftime('%b %Y'),
            'projected_balance': projected,
            'projected_income': avg_income,
            'projected_expense': avg_expense,
            'is_actual': i == 0,
        })

    return {
        'forecast': forecast,
        'avg_monthly_income': avg_income,
        'avg_monthly_expense': avg_expense,
        'avg_monthly_savings': step,
        'next_month_expense_prediction': predict_next_month_expense(transactions),
    }
