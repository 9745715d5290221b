def self_care_suggestions(summary):
    """Spending-permission suggestions sized from balance and this month's savings."""
    balance = summary['total_balance']
    income, expense = summary['income'], summary['expense']
    savings = income - expense
    safe_spend = min(balance * 0.05, savings * 0.1 if savings > 0 else 100)

    suggestions = []
    if savings > 0 and safe_spend > 50:
        suggestions.append({
            'title': 'Treat Yourself!',
            'description': (f"You've saved ₹{round(savings)} this month. Consider spending up to "
                            f'₹{round(safe_spend)} on something you enjoy!'),
            'amount': round(safe_spend),
            'category': 'reward',
        })
    if expense < income * 0.7:
        suggestions.append({
            'title': 'Self-Care Budget Available',
            'description': "You're doing great with savings! Allocate some funds for wellness activities.",
            'amount': round(income * 0.05),
            'category': 'wellness',
        })
    if balance > 5000:
        suggestions.append({
            'title': 'Experience Over Things',
            'description': 'Consider spending on experiences like dining out or entertainment within your budget.',
            'amount': round(safe_spend * 0.8),
            'category': 'experience',
        })
    suggestions.append({
        'title': 'Small Joy Budget',
        'description': "Life's too short! Grab a coffee or snack guilt-free.",
        'amount': min(100, round(safe_spend * 0.2)),
        'category': 'small_treat',
    })

    return {
        'suggestions': suggestions,
        'financial_health': {
            'total_balance': balance,
            'monthly_income': income,
            'monthly_expenses': expense,
            'monthly_savings': savings,
            'savings_rate': savings / income * 100 if income > 0 else 0,
        },
    }
