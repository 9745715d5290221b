import os
from functools import wraps
from flask import Flask, request, session, jsonify
from models import db, User, Account, Category, Transaction, Goal, SavingsJar, Achievement, MoodLog, BankConnection, Challenge, Lesson, UserLesson
from errors import FinanceError, InvalidOperation, Unauthorized
from analytics.aggregation import PERIODS, dashboard_summary, spending_trends, category_comparison, subscription_analytics, mood_correlations
from analytics.forecast import cash_flow_forecast
from analytics.assistant import reply
from analytics.wellbeing import self_care_suggestions
import services

def create_app(config=None):
    app = Flask(__name__)
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///finance.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')
    app.config['TRANSACTION_LIST_LIMIT'] = int(os.environ.get('TRANSACTION_LIST_LIMIT', 100))
    app.config['DEFAULT_CATEGORY_COLOR'] = os.environ.get('DEFAULT_CATEGORY_COLOR', '#00ffff')
    if config:
        app.config.update(config)
    db.init_app(app)
    with app.app_context():
        db.create_all()
        services.seed_lessons()
    register_error_handlers(app)
    register_routes(app)
    return app

# ---------------------- Auth Helpers ----------------------
def current_user():
    uid = session.get('user_id')
    if uid:
        return db.session.get(User, uid)
    return None

def login_required(view_func):
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if not current_user():
            raise Unauthorized('Login required.')
        return view_func(*args, **kwargs)
    return wrapped

def _payload():
    return request.get_json(silent=True) or request.form.to_dict()

def _require(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise InvalidOperation('Missing field(s): ' + ', '.join(missing) + '.')

def _positive_arg(name, default):
    value = request.args.get(name, default, type=int)
    if value is None or value < 1:
        raise InvalidOperation(f'{name} must be a positive integer.')
    return value

def _user_records(user_id):
    accounts = Account.query.filter_by(user_id=user_id).all()
    categories = Category.query.filter_by(user_id=user_id).all()
    transactions = Transaction.query.filter_by(user_id=user_id).all()
    return accounts, categories, transactions

def _dashboard(app, user_id):
    accounts, categories, transactions = _user_records(user_id)
    return dashboard_summary(accounts, categories, transactions, default_color=app.config['DEFAULT_CATEGORY_COLOR'])

# ---------------------- Errors ----------------------
def register_error_handlers(app):
    @app.errorhandler(FinanceError)
    def handle_finance_error(err):
        db.session.rollback()
        if isinstance(err, Unauthorized):
            app.logger.warning('Unauthorized %s %s: %s', request.method, request.path, err.message)
        return jsonify(err.to_dict()), err.status_code

def register_routes(app):
    # ---------------------- Routes: Auth ----------------------
    @app.route('/register', methods=['POST'])
    def register():
        data = _payload()
        user = services.register_user(data.get('name'), data.get('email'), data.get('password'))
        return jsonify({'success': True, 'message': 'Registration successful. Please log in.', 'id': user.id}), 201

    @app.route('/login', methods=['POST'])
    def login():
        data = _payload()
        user = services.authenticate(data.get('email'), data.get('password'))
        session['user_id'] = user.id
        return jsonify({'success': True, 'message': 'Welcome back!', 'id': user.id, 'name': user.name})

    @app.route('/logout', methods=['POST'])
    def logout():
        session.clear()
        return jsonify({'success': True, 'message': 'Logged out.'})

    # ---------------------- API: Analytics ----------------------
    @app.route('/api/dashboard')
    @login_required
    def api_dashboard():
        return jsonify(_dashboard(app, current_user().id))

    @app.route('/api/spending_trends')
    @login_required
    def api_spending_trends():
        period = request.args.get('period', 'month')
        if period not in PERIODS:
            raise InvalidOperation('Period must be week, month or quarter.')
        count = _positive_arg('count', 6)
        transactions = Transaction.query.filter_by(user_id=current_user().id).all()
        return jsonify(spending_trends(transactions, period, count))

    @app.route('/api/category_comparison')
    @login_required
    def api_category_comparison():
        months = _positive_arg('months', 6)
        _, categories, transactions = _user_records(current_user().id)
        return jsonify(category_comparison(categories, transactions, months,
                                           default_color=app.config['DEFAULT_CATEGORY_COLOR']))

    @app.route('/api/cash_flow_forecast')
    @login_required
    def api_cash_flow_forecast():
        months_ahead = _positive_arg('months_ahead', 6)
        accounts, _, transactions = _user_records(current_user().id)
        return jsonify(cash_flow_forecast(accounts, transactions, months_ahead))

    @app.route('/api/subscriptions')
    @login_required
    def api_subscriptions():
        _, categories, transactions = _user_records(current_user().id)
        return jsonify(subscription_analytics(categories, transactions))

    @app.route('/api/mood_analytics')
    @login_required
    def api_mood_analytics():
        days = _positive_arg('days', 30)
        logs = MoodLog.query.filter_by(user_id=current_user().id).all()
        result = mood_correlations(logs, days)
        result['logs'] = [log.to_dict() for log in result['logs']]
        return jsonify(result)

    @app.route('/api/mood_logs')
    @login_required
    def api_mood_logs():
        logs = MoodLog.query.filter_by(user_id=current_user().id).order_by(MoodLog.date.desc()).limit(30).all()
        return jsonify([log.to_dict() for log in logs])

    @app.route('/api/mood', methods=['POST'])
    @login_required
    def api_log_mood():
        data = _payload()
        _require(data, 'mood')
        log = services.log_mood(current_user().id, data['mood'], data.get('note'))
        return jsonify(log.to_dict())

    @app.route('/api/self_care')
    @login_required
    def api_self_care():
        return jsonify(self_care_suggestions(_dashboard(app, current_user().id)))

    @app.route('/api/assistant', methods=['POST'])
    @login_required
    def api_assistant():
        data = _payload()
        _require(data, 'message')
        summary = _dashboard(app, current_user().id)
        if not summary['account_balances'] and not summary['category_breakdown']:
            summary = None
        return jsonify({'reply': reply(data['message'], summary)})

    # ---------------------- API: Accounts & Categories ----------------------
    @app.route('/api/accounts', methods=['GET', 'POST'])
    @login_required
    def api_accounts():
        user = current_user()
        if request.method == 'POST':
            data = _payload()
            _require(data, 'name', 'type')
            account = services.create_account(user.id, data['name'], data['type'], data.get('initial_balance', 0))
            return jsonify(account.to_dict()), 201
        return jsonify([a.to_dict() for a in Account.query.filter_by(user_id=user.id).all()])

    @app.route('/api/accounts/<int:account_id>', methods=['PUT', 'DELETE'])
    @login_required
    def api_account(account_id):
        user = current_user()
        if request.method == 'DELETE':
            services.delete_account(user.id, account_id)
            return jsonify({'success': True, 'message': 'Account deleted.'})
        data = _payload()
        _require(data, 'name', 'type', 'initial_balance')
        account = services.update_account(user.id, account_id, data['name'], data['type'], data['initial_balance'])
        return jsonify(account.to_dict())

    @app.route('/api/categories', methods=['GET', 'POST'])
    @login_required
    def api_categories():
        user = current_user()
        if request.method == 'POST':
            data = _payload()
            _require(data, 'name', 'type')
            category = services.create_category(user.id, data['name'], data['type'], data.get('color'))
            return jsonify(category.to_dict()), 201
        return jsonify([c.to_dict() for c in Category.query.filter_by(user_id=user.id).all()])

    @app.route('/api/categories/<int:category_id>', methods=['DELETE'])
    @login_required
    def api_category(category_id):
        services.delete_category(current_user().id, category_id)
        return jsonify({'success': True, 'message': 'Category deleted.'})

    # ---------------------- API: Transactions ----------------------
    @app.route('/api/transactions', methods=['GET', 'POST'])
    @login_required
    def api_transactions():
        user = current_user()
        if request.method == 'POST':
            data = _payload()
            _require(data, 'account_id', 'category_id', 'amount', 'type')
            txn = services.create_transaction(
                user.id, data['account_id'], data['category_id'], data['amount'], data['type'],
                date=data.get('date'), note=data.get('note'), receipt_id=data.get('receipt_id'),
                mood=data.get('mood'), is_subscription=data.get('is_subscription', False))
            app.logger.info('User %s recorded %s of %s', user.id, txn.ttype, txn.amount)
            return jsonify(txn.to_dict()), 201
        txs = services.list_transactions(user.id, app.config['TRANSACTION_LIST_LIMIT'])
        return jsonify([tx.to_dict(enriched=True) for tx in txs])

    @app.route('/api/transactions/<int:txn_id>', methods=['DELETE'])
    @login_required
    def api_delete_transaction(txn_id):
        services.delete_transaction(current_user().id, txn_id)
        return jsonify({'success': True, 'message': 'Transaction deleted.'})

    @app.route('/api/transactions/<int:txn_id>/subscription', methods=['POST'])
    @login_required
    def api_toggle_subscription(txn_id):
        data = _payload()
        _require(data, 'is_subscription')
        txn = services.toggle_subscription(current_user().id, txn_id, data['is_subscription'])
        return jsonify(txn.to_dict())

    # ---------------------- API: Goals & Jars ----------------------
    @app.route('/api/goals', methods=['GET', 'POST'])
    @login_required
    def api_goals():
        user = current_user()
        if request.method == 'POST':
            data = _payload()
            _require(data, 'name', 'target_amount', 'deadline')
            goal = services.create_goal(user.id, data['name'], data['target_amount'], data['deadline'], data.get('category'))
            return jsonify(goal.to_dict()), 201
        return jsonify([g.to_dict() for g in Goal.query.filter_by(user_id=user.id).all()])

    @app.route('/api/goals/<int:goal_id>/progress', methods=['POST'])
    @login_required
    def api_goal_progress(goal_id):
        data = _payload()
        _require(data, 'amount')
        return jsonify(services.update_goal_progress(current_user().id, goal_id, data['amount']).to_dict())

    @app.route('/api/goals/<int:goal_id>', methods=['DELETE'])
    @login_required
    def api_delete_goal(goal_id):
        services.delete_goal(current_user().id, goal_id)
        return jsonify({'success': True, 'message': 'Goal deleted.'})

    @app.route('/api/jars', methods=['GET', 'POST'])
    @login_required
    def api_jars():
        user = current_user()
        if request.method == 'POST':
            data = _payload()
            _require(data, 'name', 'target_amount', 'color', 'emoji')
            jar = services.create_savings_jar(user.id, data['name'], data['target_amount'], data['color'],
                                              data['emoji'], data.get('deadline'))
            return jsonify(jar.to_dict()), 201
        return jsonify([j.to_dict() for j in SavingsJar.query.filter_by(user_id=user.id).all()])

    @app.route('/api/jars/<int:jar_id>/add', methods=['POST'])
    @login_required
    def api_add_to_jar(jar_id):
        data = _payload()
        _require(data, 'amount')
        jar = services.add_to_savings_jar(current_user().id, jar_id, data['amount'])
        return jsonify({'new_amount': jar.current_amount, 'status': jar.status})

    @app.route('/api/jars/<int:jar_id>', methods=['DELETE'])
    @login_required
    def api_delete_jar(jar_id):
        services.delete_savings_jar(current_user().id, jar_id)
        return jsonify({'success': True, 'message': 'Savings jar deleted.'})

    # ---------------------- API: Gamification ----------------------
    @app.route('/api/achievements')
    @login_required
    def api_achievements():
        rows = (Achievement.query.filter_by(user_id=current_user().id)
                .order_by(Achievement.unlocked_at.desc(), Achievement.id.desc()).all())
        return jsonify([a.to_dict() for a in rows])

    @app.route('/api/progress')
    @login_required
    def api_progress():
        return jsonify(services.get_progress(current_user().id).to_dict())

    @app.route('/api/challenges')
    @login_required
    def api_challenges():
        rows = Challenge.query.filter_by(user_id=current_user().id).order_by(Challenge.id.desc()).all()
        return jsonify([c.to_dict() for c in rows])

    @app.route('/api/challenges/generate', methods=['POST'])
    @login_required
    def api_generate_challenges():
        result = services.generate_challenges(current_user().id)
        return jsonify({'message': result['message'], 'created': [c.to_dict() for c in result['created']]})

    @app.route('/api/challenges/<int:challenge_id>/complete', methods=['POST'])
    @login_required
    def api_complete_challenge(challenge_id):
        challenge = services.complete_challenge(current_user().id, challenge_id)
        return jsonify({'points': challenge.points})

    @app.route('/api/lessons')
    @login_required
    def api_lessons():
        q = Lesson.query
        category = request.args.get('category')
        if category:
            q = q.filter_by(category=category)
        return jsonify([l.to_dict() for l in q.order_by(Lesson.order).all()])

    @app.route('/api/lessons/mine')
    @login_required
    def api_user_lessons():
        return jsonify([ul.to_dict() for ul in UserLesson.query.filter_by(user_id=current_user().id).all()])

    @app.route('/api/lessons/<int:lesson_id>/progress', methods=['POST'])
    @login_required
    def api_lesson_progress(lesson_id):
        data = _payload()
        _require(data, 'progress')
        return jsonify(services.update_lesson_progress(current_user().id, lesson_id, data['progress']).to_dict())

    # ---------------------- API: Bank Connections ----------------------
    @app.route('/api/bank_connections', methods=['GET', 'POST'])
    @login_required
    def api_bank_connections():
        user = current_user()
        if request.method == 'POST':
            data = _payload()
            _require(data, 'bank_name', 'account_number', 'provider')
            conn = services.create_bank_connection(user.id, data['bank_name'], data['account_number'], data['provider'])
            return jsonify(conn.to_dict()), 201
        return jsonify([c.to_dict() for c in BankConnection.query.filter_by(user_id=user.id).all()])

    @app.route('/api/bank_connections/<int:connection_id>/sync', methods=['POST'])
    @login_required
    def api_sync_bank_connection(connection_id):
        return jsonify(services.sync_bank_connection(current_user().id, connection_id).to_dict())

    @app.route('/api/bank_connections/<int:connection_id>', methods=['DELETE'])
    @login_required
    def api_delete_bank_connection(connection_id):
        services.delete_bank_connection(current_user().id, connection_id)
        return jsonify({'success': True, 'message': 'Bank connection deleted.'})


# ---------------------- Run App ----------------------
if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)
