"""Balance, period and category aggregation over a user's records.

Every function here works on records that are already loaded (model
instances or anything exposing the same attributes) and never touches the
database. Timestamps are epoch milliseconds and calendar arithmetic is
done in UTC with ``pandas.Period``.
"""
import pandas as pd

DEFAULT_COLOR = '#00ffff'
MS_PER_DAY = 24 * 60 * 60 * 1000
PERIODS = ('week', 'month', 'quarter')

_COLUMNS = ['id', 'account_id', 'category_id', 'amount', 'type', 'date', 'is_subscription']


def utc_now():
    return pd.Timestamp.now(tz='UTC').tz_localize(None)


def to_millis(ts) -> int:
    return int(pd.Timestamp(ts).value // 1_000_000)


def from_millis(ms):
    return pd.Timestamp(ms, unit='ms')


def transactions_frame(transactions):
    rows = [{
        'id': t.id,
        'account_id': t.account_id,
        'category_id': t.category_id,
        'amount': float(t.amount),
        'type': t.ttype,
        'date': int(t.date),
        'is_subscription': bool(getattr(t, 'is_subscription', False)),
    } for t in transactions]
    if not rows:
        return pd.DataFrame(columns=_COLUMNS)
    return pd.DataFrame(rows)


def sum_amounts(df, kind=None) -> float:
    if kind is not None:
        df = df[df['type'] == kind]
    if df.empty:
        return 0.0
    return float(df['amount'].sum())


def _between(df, start_ms, end_ms):
    return df[(df['date'] >= start_ms) & (df['date'] <= end_ms)]


def transaction_dict(t):
    return {
        'id': t.id,
        'account_id': t.account_id,
        'category_id': t.category_id,
        'amount': t.amount,
        'type': t.ttype,
        'date': t.date,
        'note': getattr(t, 'note', None) or '',
        'is_subscription': bool(getattr(t, 'is_subscription', False)),
    }


# ---------------------- Balances & Summary ----------------------
def account_balances(accounts, transactions):
    """Lifetime balance per account: initial balance plus income minus expense."""
    df = transactions_frame(transactions)
    balances = []
    for acc in accounts:
        rows = df[df['account_id'] == acc.id]
        balance = acc.initial_balance + sum_amounts(rows, 'income') - sum_amounts(rows, 'expense')
        balances.append({
            'id': acc.id,
            'name': acc.name,
            'type': acc.atype,
            'initial_balance': acc.initial_balance,
            'balance': balance,
        })
    return balances


def total_balance(accounts, transactions) -> float:
    return sum(a['balance'] for a in account_balances(accounts, transactions))


def month_start(now=None):
    now = now if now is not None else utc_now()
    return pd.Period(now, freq='M').start_time


def category_breakdown(categories, transactions, default_color=DEFAULT_COLOR):
    """Per-category totals of ``transactions``; categories summing to zero are dropped."""
    df = transactions_frame(transactions)
    breakdown = []
    for cat in categories:
        amount = sum_amounts(df[df['category_id'] == cat.id])
        if amount == 0:
            continue
        breakdown.append({
            'id': cat.id,
            'name': cat.name,
            'type': cat.ttype,
            'amount': amount,
            'color': cat.color or default_color,
        })
    return breakdown


def category_percentages(totals, total_expense):
    """Share of ``total_expense`` per category, rounded to one decimal."""
    shares = []
    for name, amount in totals.items():
        pct = round(amount / total_expense * 100, 1) if total_expense else 0.0
        shares.append({'name': name, 'amount': amount, 'percentage': pct})
    return shares


def dashboard_summary(accounts, categories, transactions, now=None, default_color=DEFAULT_COLOR):
    balances = account_balances(accounts, transactions)
    start = to_millis(month_start(now))
    this_month = [t for t in transactions if t.date >= start]
    df = transactions_frame(this_month)
    income = sum_amounts(df, 'income')
    expense = sum_amounts(df, 'expense')
    return {
        'total_balance': sum(a['balance'] for a in balances),
        'income': income,
        'expense': expense,
        'net': income - expense,
        'account_balances': balances,
        'category_breakdown': category_breakdown(categories, this_month, default_color),
    }


# ---------------------- Period Buckets ----------------------
def period_buckets(period, count, now=None):
    """``count`` consecutive ``(label, start_ms, end_ms)`` windows ending at ``now``, oldest first.

    Unknown granularities fall back to calendar months.
    """
    now = now if now is not None else utc_now()
    this_month = pd.Period(now, freq='M')
    buckets = []
    for i in range(count - 1, -1, -1):
        if period == 'week':
            end = now - pd.Timedelta(days=7 * i)
            start = end - pd.Timedelta(days=7)
            label = f'Week {count - i}'
        elif period == 'quarter':
            first = this_month - 3 * i
            start = first.start_time
            end = (first + 2).end_time
            label = f'Q{(first.month - 1) // 3 + 1} {first.year}'
        else:
            month = this_month - i
            start = month.start_time
            end = month.end_time
            label = start.strftime('%b %Y')
        buckets.append((label, to_millis(start), to_millis(end)))
    return buckets


def spending_trends(transactions, period='month', count=6, now=None):
    df = transactions_frame(transactions)
    trends = []
    for label, start, end in period_buckets(period, count, now):
        rows = _between(df, start, end)
        income = sum_amounts(rows, 'income')
        expense = sum_amounts(rows, 'expense')
        trends.append({
            'period': label,
            'start': start,
            'end': end,
            'income': income,
            'expense': expense,
            'net': income - expense,
        })
    return trends


def category_comparison(categories, transactions, months=6, now=None, default_color=DEFAULT_COLOR):
    """Monthly expense series per category name, oldest month first.

    Categories sharing a name are reported as one series.
    """
    df = transactions_frame(transactions)
    expenses = df[df['type'] == 'expense']
    buckets = period_buckets('month', months, now)

    comparison = {}
    for cat in categories:
        entry = comparison.setdefault(cat.name, {
            'category_id': cat.id,
            'color': cat.color or default_color,
            'data': [{'month': from_millis(start).strftime('%b'), 'amount': 0.0} for _, start, _ in buckets],
        })
        rows = expenses[expenses['category_id'] == cat.id]
        for point, (_, start, end) in zip(entry['data'], buckets):
            point['amount'] += sum_amounts(_between(rows, start, end))
    return comparison


# ---------------------- Subscriptions ----------------------
def subscription_analytics(categories, transactions):
    """Group subscription-flagged transactions by category name.

    Each flagged transaction is taken to recur monthly, so a group's sum is
    its monthly amount.
    """
    flagged = [t for t in transactions if getattr(t, 'is_subscription', False)]
    if not flagged:
        return {'subscriptions': [], 'monthly_total': 0.0, 'count': 0}

    names = {c.id: c.name for c in categories}
    by_id = {t.id: t for t in flagged}
    df = transactions_frame(flagged)
    df['category_name'] = [names.get(cid, 'Unknown') for cid in df['category_id']]

    grouped = df.groupby('category_name', sort=False).agg(
        n=('id', 'size'),
        monthly_amount=('amount', 'sum'),
        last_id=('id', 'max'),
    )
    subscriptions = [{
        'name': name,
        'count': int(row['n']),
        'monthly_amount': float(row['monthly_amount']),
        'last_transaction': transaction_dict(by_id[int(row['last_id'])]),
    } for name, row in grouped.iterrows()]

    return {
        'subscriptions': subscriptions,
        'monthly_total': sum(s['monthly_amount'] for s in subscriptions),
        'count': len(flagged),
    }


# ---------------------- Mood ----------------------
def day_start(now=None):
    now = now if now is not None else utc_now()
    return now.normalize()


def spending_on_day(transactions, now=None) -> float:
    """Expense total for the calendar day containing ``now``."""
    start = to_millis(day_start(now))
    df = transactions_frame(transactions)
    return sum_amounts(df[(df['date'] >= start) & (df['date'] < start + MS_PER_DAY)], 'expense')


def mood_correlations(mood_logs, days=30, now=None):
    now = now if now is not None else utc_now()
    cutoff = to_millis(now) - days * MS_PER_DAY
    recent = [log for log in mood_logs if log.date >= cutoff]

    correlations = []
    if recent:
        df = pd.DataFrame([{'mood': log.mood, 'spending': float(log.spending_amount)} for log in recent])
        grouped = df.groupby('mood', sort=False)['spending'].agg(['sum', 'size'])
        correlations = [{
            'mood': mood,
            'average_spending': float(row['sum']) / int(row['size']),
            'occurrences': int(row['size']),
        } for mood, row in grouped.iterrows()]

    return {'logs': recent, 'correlations': correlations, 'total_logs': len(recent)}
