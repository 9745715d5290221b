"""Templated financial answers for the chat assistant.

A message is routed to one ``Intent`` by keyword (first match in
declaration order wins) and answered from the dashboard summary. Nothing
here learns or infers; every reply is string interpolation.
"""
from enum import Enum

from analytics.aggregation import category_percentages

NO_DATA = ('I need your financial data to provide insights. '
           'Please make sure you have some accounts and transactions recorded.')


class Intent(Enum):
    CUT_COSTS = ('cut', 'reduce', 'save money', 'lower')
    SPENDING = ('spending', 'spend', 'expense')
    SAVINGS = ('save', 'saving')
    BUDGET = ('budget', 'improve', 'advice')
    INCOME = ('income',)
    BALANCE = ('balance', 'total')
    HELP = ('help', 'what can you')
    DEFAULT = ()

    @property
    def keywords(self):
        return self.value


def detect_intent(message: str) -> Intent:
    text = message.lower()
    for intent in Intent:
        if any(k in text for k in intent.keywords):
            return intent
    return Intent.DEFAULT


def _money(value):
    return f'₹{value:.2f}'


def _expense_categories(summary):
    rows = [c for c in summary['category_breakdown'] if c.get('type', 'expense') == 'expense']
    return sorted(rows, key=lambda c: c['amount'], reverse=True)


def _ranked_lines(categories, total_expense, limit=3):
    shares = category_percentages({c['name']: c['amount'] for c in categories[:limit]}, total_expense)
    return [f"{i}. {s['name']}: {_money(s['amount'])} ({s['percentage']:.1f}%)" for i, s in enumerate(shares, 1)]


def _cut_costs(summary):
    categories = _expense_categories(summary)
    if not categories:
        return "You don't have any expense data yet. Start recording transactions to get cost-cutting recommendations!"
    lines = ['Cost-Cutting Analysis:', '', f"Total monthly spending: {_money(summary['expense'])}", '',
             "Here's where you can reduce costs:", '']
    for line, cat in zip(_ranked_lines(categories, summary['expense']), categories):
        lines.append(line)
        lines.append(f"   -> Reduce by 20%: Save {_money(cat['amount'] * 0.2)}/month")
        lines.append('')
    if summary['net'] < 0:
        lines.append(f"You need to cut at least {_money(abs(summary['net']))}/month to break even.")
    return '\n'.join(lines)


def _spending(summary):
    categories = _expense_categories(summary)
    if not categories:
        return "You don't have any spending data yet. Start recording transactions to get detailed insights!"
    top = categories[0]
    total = sum(c['amount'] for c in categories)
    top_pct = round(top['amount'] / total * 100, 1)
    text = f"Based on your data, you've spent {_money(summary['expense'])} this month. "
    text += f"Your largest expense is {top['name']} at {_money(top['amount'])} ({top_pct:.1f}% of total spending). "
    if len(categories) > 1:
        second = categories[1]
        text += f"Your second highest expense is {second['name']} at {_money(second['amount'])}. "
    if top_pct > 40:
        text += (f"{top['name']} represents a significant portion of your spending. "
                 "Consider reviewing if this aligns with your priorities.")
    return text.rstrip()


def _savings(summary):
    income, net = summary['income'], summary['net']
    if income == 0:
        return "I don't see any income recorded yet. Add income transactions to analyze your savings potential."
    rate = round(net / income * 100, 1)
    text = f'Your current savings rate is {rate:.1f}%. '
    if net < 0:
        text += f"You're currently spending {_money(abs(net))} more than you earn. "
        text += f'To start saving, you need to reduce expenses by at least {_money(abs(net))} per month. '
        categories = _expense_categories(summary)
        if categories:
            text += f"Start by reviewing your {categories[0]['name']} expenses."
    elif rate < 10:
        text += (f'This is below the recommended minimum of 10%. Try to increase your savings by '
                 f'{_money(income * 0.1 - net)} per month to reach 10%.')
    elif rate < 20:
        text += (f"You're on the right track! Financial experts recommend 20%. Increase savings by "
                 f'{_money(income * 0.2 - net)} to reach this goal.')
    else:
        text += (f"Excellent! You're exceeding the recommended 20% savings rate. "
                 f"At this rate, you'll save {_money(net * 12)} annually.")
    return text.rstrip()


def _budget(summary):
    income, net = summary['income'], summary['net']
    lines = ['Financial Analysis & Recommendations:', '']
    if net < 0:
        lines.append(f"You're spending {_money(abs(net))} more than you earn. This is unsustainable. "
                     'Immediate action needed: reduce expenses or increase income.')
        lines.append('')
    elif net > 0:
        lines.append(f'Positive cash flow of {_money(net)} ({net / income * 100:.1f}% savings rate).')
        lines.append('')
    categories = _expense_categories(summary)
    if categories:
        lines.append('Top spending categories:')
        lines.extend(_ranked_lines(categories, summary['expense']))
        lines.append('')
    lines.append('Recommended budget (50/30/20 rule):')
    lines.append(f'- Needs (50%): {_money(income * 0.5)}')
    lines.append(f'- Wants (30%): {_money(income * 0.3)}')
    lines.append(f'- Savings (20%): {_money(income * 0.2)}')
    return '\n'.join(lines)


def _income(summary):
    income, expense, net = summary['income'], summary['expense'], summary['net']
    if income == 0:
        return 'No income recorded this month. Add your income transactions to track your earnings.'
    text = f'Your monthly income is {_money(income)}. '
    text += f'After expenses of {_money(expense)}, your net cash flow is {_money(net)}. '
    if net > 0:
        text += f"If you maintain this, you'll save {_money(net * 12)} annually."
    else:
        text += f'You need to reduce expenses by {_money(abs(net))} to break even.'
    return text


def _balance(summary):
    text = f"Your total balance across all accounts is {_money(summary['total_balance'])}. "
    if summary['net'] > 0:
        months = f"{summary['total_balance'] / summary['expense']:.1f}" if summary['expense'] > 0 else 'N/A'
        text += f'This covers approximately {months} months of expenses at your current rate.'
    return text.rstrip()


def _help(summary):
    return ('I can analyze your financial data and provide insights on:\n'
            '- Spending patterns and top expenses\n'
            '- Savings rate and recommendations\n'
            '- Budget advice and the 50/30/20 rule\n'
            '- Income vs expense analysis\n'
            '- Account balance overview\n\n'
            'Just ask me about any of these topics!')


def _default(summary):
    return ("I'm your financial analyst. I can provide detailed insights about your spending, savings, "
            'budget, income, and balance. What would you like to know about your finances?')


RESPONDERS = {
    Intent.CUT_COSTS: _cut_costs,
    Intent.SPENDING: _spending,
    Intent.SAVINGS: _savings,
    Intent.BUDGET: _budget,
    Intent.INCOME: _income,
    Intent.BALANCE: _balance,
    Intent.HELP: _help,
    Intent.DEFAULT: _default,
}


def reply(message, summary):
    if summary is None:
        return NO_DATA
    return RESPONDERS[detect_intent(message)](summary)
