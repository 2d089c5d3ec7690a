from flask import (Blueprint, Flask, current_app, flash, redirect, render_template,
                   request, url_for)
from flask_login import (LoginManager, current_user, login_required, login_user, logout_user,
                         user_logged_in, user_logged_out)
from flask_wtf.csrf import CSRFProtect
from werkzeug.security import generate_password_hash, check_password_hash
from sqlalchemy.exc import SQLAlchemyError
from urllib.parse import urlparse
from functools import wraps
import logging

from . import dashboard, discovery, donations, leaderboard, profiles, transactions
from .config import Config
from .exceptions import FoodShareError
from .forms import (LoginForm, SignupForm, ForgotPasswordForm, ProfileForm, ProfileSettingsForm,
                    DonationForm, FeedbackForm)
from .models import Account, FoodDonation, db, seed_categories

logger = logging.getLogger(__name__)

login_manager = LoginManager()
login_manager.login_view = 'main.login'
login_manager.login_message = 'Please log in to access this page.'
login_manager.login_message_category = 'info'

csrf = CSRFProtect()

bp = Blueprint('main', __name__)

TABS = ('dashboard', 'create', 'transactions', 'leaderboard', 'profile')
STORE_ERROR_MESSAGE = 'Something went wrong. Please try again.'


def configure_logging(app):
    handlers = [logging.StreamHandler()]
    if app.config.get('LOG_FILE'):
        handlers.append(logging.FileHandler(app.config['LOG_FILE']))
    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


@login_manager.user_loader
def load_account(account_id):
    try:
        return db.session.get(Account, int(account_id))
    except (TypeError, ValueError):
        return None


def _on_login(sender, user, **extra):
    logger.info(f"Account {user.id} signed in")


def _on_logout(sender, user, **extra):
    logger.info(f"Account {user.id} signed out")


def init_db(app):
    with app.app_context():
        try:
            db.create_all()
            seed_categories()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database initialization error: {str(e)}")
            raise


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)

    app.register_blueprint(bp)
    app.register_error_handler(404, not_found_error)
    app.register_error_handler(500, internal_error)

    # Session change notifications
    user_logged_in.connect(_on_login, app)
    user_logged_out.connect(_on_logout, app)

    init_db(app)
    return app


# Every page after login needs a complete profile; the profile is handed to the view
def profile_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            gate = profiles.check_profile(current_user)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error fetching user profile: {str(e)}")
            flash('Failed to load user profile', 'danger')
            return redirect(url_for('main.login'))
        if not gate.complete:
            return redirect(url_for('main.onboarding'))
        return f(gate.profile, *args, **kwargs)
    return decorated_function


def role_required(role):
    def decorator(f):
        @wraps(f)
        def decorated_function(profile, *args, **kwargs):
            acceptable_roles = [role] if isinstance(role, str) else role

            if profile.user_type not in acceptable_roles:
                flash('You do not have permission to access this page.', 'danger')
                return redirect(url_for('main.app_home'))
            return f(profile, *args, **kwargs)
        return decorated_function
    return decorator


def _next_url(default_tab='dashboard'):
    target = request.form.get('next') or request.args.get('next')
    if not target or not target.startswith('/') or urlparse(target).netloc != '':
        target = url_for('main.app_home', tab=default_tab)
    return target


def _page_arg(name):
    try:
        return max(int(request.args.get(name, 1)), 1)
    except (TypeError, ValueError):
        return 1


def _flash_form_errors(form):
    for name, errors in form.errors.items():
        field = getattr(form, name, None) if name else None
        for error in errors:
            flash(f"{field.label.text}: {error}" if field else error, 'danger')


def _run_action(action, success_message, *args, default_tab='dashboard'):
    """Apply one lifecycle action and report the outcome; the store is re-read on redirect."""
    try:
        action(*args)
        flash(success_message, 'success')
    except FoodShareError as e:
        flash(e.message, e.category)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"{action.__name__} error: {str(e)}")
        flash(STORE_ERROR_MESSAGE, 'danger')
    return redirect(_next_url(default_tab))


@bp.app_context_processor
def inject_helpers():
    def page_url(param, number):
        args = request.args.to_dict()
        args[param] = number
        return url_for('main.app_home', **args)

    return {
        'page_url': page_url,
        'expiry_warning': donations.expiry_warning,
    }


def _app_context(profile, tab, **overrides):
    config = current_app.config
    context = {'profile': profile, 'tab': tab, 'tabs': TABS, 'categories': {}}
    try:
        context['categories'] = donations.category_names()

        if tab == 'dashboard':
            default_radius = profiles.preferred_radius(profile, config['DEFAULT_SEARCH_RADIUS_KM'])
            query = discovery.DiscoveryQuery.from_args(request.args, default_radius=default_radius)
            context.update(
                stats=dashboard.dashboard_stats(profile),
                query=query,
                radius_choices=discovery.RADIUS_CHOICES,
                sort_options=discovery.SORT_OPTIONS,
                donation_page=discovery.discover(profile, query, config['DONATIONS_PER_PAGE'],
                                                 tuple(config['DEFAULT_SEARCH_LOCATION'])),
            )

        elif tab == 'create' and 'form' not in overrides:
            form = DonationForm(formdata=None)
            form.food_type.choices = donations.category_choices()
            context['form'] = form

        elif tab == 'transactions':
            status = request.args.get('status', 'all')
            context.update(
                status_filter=status,
                transaction_page=transactions.list_transactions(
                    profile, status, _page_arg('tpage'), config['TRANSACTIONS_PER_PAGE']),
                feedback_form=FeedbackForm(formdata=None),
            )

        elif tab == 'leaderboard':
            context['leaderboard'] = leaderboard.build_leaderboard(leaderboard.leaderboard_view())

        elif tab == 'profile' and 'form' not in overrides:
            context['form'] = ProfileSettingsForm(formdata=None, obj=profile)

    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error loading {tab} tab: {str(e)}")
        context['error'] = f"Failed to load {tab}. Please try again."

    context.update(overrides)
    return context


@bp.route('/')
def index():
    return redirect(url_for('main.app_home'))


@bp.route('/signup', methods=['GET', 'POST'])
def signup():
    if current_user.is_authenticated:
        return redirect(url_for('main.app_home'))

    form = SignupForm()
    if form.validate_on_submit():
        email = form.email.data.lower()
        try:
            if Account.query.filter_by(email=email).first():
                flash('Email already registered', 'danger')
                return render_template('signup.html', form=form)

            account = Account(email=email, password=generate_password_hash(form.password.data))
            db.session.add(account)
            db.session.commit()
            logger.info(f"Account {account.id} registered")

            flash('Registration successful! Please login.', 'success')
            return redirect(url_for('main.login'))

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Signup error: {str(e)}")
            flash('Error during registration. Please try again.', 'danger')

    return render_template('signup.html', form=form)


@bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('main.app_home'))

    form = LoginForm()
    if form.validate_on_submit():
        account = Account.query.filter_by(email=form.email.data.lower()).first()
        if account and check_password_hash(account.password, form.password.data):
            login_user(account, remember=form.remember_me.data)

            next_page = request.args.get('next')
            if not next_page or urlparse(next_page).netloc != '':
                next_page = url_for('main.app_home')

            return redirect(next_page)
        else:
            flash('Invalid email or password', 'danger')

    return render_template('login.html', form=form)


@bp.route('/forgot-password', methods=['GET', 'POST'])
def forgot_password():
    form = ForgotPasswordForm()
    if form.validate_on_submit():
        account = Account.query.filter_by(email=form.email.data.lower()).first()
        if account:
            logger.info(f"Password reset requested for account {account.id}")

        # Same answer either way so addresses cannot be probed
        flash('If your email exists in our system, you will receive password reset instructions.', 'info')
        return redirect(url_for('main.login'))

    return render_template('forgot_password.html', form=form)


@bp.route('/logout')
@login_required
def logout():
    logout_user()
    flash('You have been logged out.', 'info')
    return redirect(url_for('main.login'))


@bp.route('/onboarding', methods=['GET', 'POST'])
@login_required
def onboarding():
    try:
        gate = profiles.check_profile(current_user)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error fetching user profile: {str(e)}")
        flash('Failed to load user profile', 'danger')
        return redirect(url_for('main.login'))

    if gate.complete and request.method == 'GET':
        return redirect(url_for('main.app_home'))

    form = ProfileForm(data=gate.prefill)
    if form.validate_on_submit():
        try:
            profiles.save_profile(current_user, form.data)
            flash('Profile saved. Welcome!', 'success')
            return redirect(url_for('main.app_home', tab='dashboard'))
        except FoodShareError as e:
            flash(e.message, e.category)
        except SQLAlchemyError:
            flash('Failed to save profile. Please try again.', 'danger')
    elif request.method == 'POST':
        _flash_form_errors(form)

    return render_template('onboarding.html', form=form, gate=gate)


@bp.route('/app')
@login_required
@profile_required
def app_home(profile):
    tab = request.args.get('tab', 'dashboard')
    if tab not in TABS:
        tab = 'dashboard'
    return render_template('app.html', **_app_context(profile, tab))


@bp.route('/app/profile', methods=['POST'])
@login_required
@profile_required
def update_profile(profile):
    form = ProfileSettingsForm()
    if form.validate_on_submit():
        try:
            profiles.update_profile(profile, form.data)
            flash('Profile updated successfully!', 'success')
            return redirect(url_for('main.app_home', tab='profile'))
        except FoodShareError as e:
            flash(e.message, e.category)
        except SQLAlchemyError:
            flash('Failed to update profile. Please try again.', 'danger')
    else:
        _flash_form_errors(form)
    return render_template('app.html', **_app_context(profile, 'profile', form=form))


@bp.route('/donations', methods=['POST'])
@login_required
@profile_required
@role_required('donor')
def create_donation(profile):
    form = DonationForm()
    form.food_type.choices = donations.category_choices()

    if form.validate_on_submit():
        try:
            donations.create_donation(profile, form)
            flash('Donation added successfully!', 'success')
            return redirect(url_for('main.app_home', tab='dashboard'))
        except FoodShareError as e:
            flash(e.message, e.category)
        except SQLAlchemyError:
            flash('Failed to create food donation. Please try again.', 'danger')
    else:
        _flash_form_errors(form)

    return render_template('app.html', **_app_context(profile, 'create', form=form))


@bp.route('/donations/<int:donation_id>/edit', methods=['GET', 'POST'])
@login_required
@profile_required
@role_required('donor')
def edit_donation(profile, donation_id):
    donation = db.get_or_404(FoodDonation, donation_id)

    if donation.donor_id != profile.id:
        flash('You can only edit your own donations.', 'danger')
        return redirect(url_for('main.app_home'))

    form = DonationForm(data=donations.form_data(donation))
    form.food_type.choices = donations.category_choices()

    if request.method == 'POST':
        if form.validate_on_submit():
            try:
                donations.update_donation(donation_id, profile, form)
                flash('Donation updated successfully!', 'success')
                return redirect(url_for('main.app_home'))
            except FoodShareError as e:
                flash(e.message, e.category)
            except SQLAlchemyError:
                flash('Failed to update food donation. Please try again.', 'danger')
        else:
            _flash_form_errors(form)

    return render_template('edit_donation.html', donation=donation, form=form, profile=profile)


@bp.route('/donations/<int:donation_id>/request', methods=['POST'])
@login_required
@profile_required
@role_required('recipient')
def request_donation(profile, donation_id):
    return _run_action(transactions.request_donation,
                       'Donation requested successfully! The donor will be notified.',
                       donation_id, profile)


@bp.route('/donations/<int:donation_id>/cancel', methods=['POST'])
@login_required
@profile_required
@role_required('donor')
def cancel_donation(profile, donation_id):
    return _run_action(transactions.cancel_donation, 'Donation cancelled successfully.',
                       donation_id, profile)


@bp.route('/donations/<int:donation_id>/delete', methods=['POST'])
@login_required
@profile_required
@role_required('donor')
def delete_donation(profile, donation_id):
    return _run_action(transactions.delete_donation, 'Donation has been permanently removed.',
                       donation_id, profile)


@bp.route('/transactions/<int:transaction_id>/accept', methods=['POST'])
@login_required
@profile_required
@role_required('donor')
def accept_request(profile, transaction_id):
    return _run_action(transactions.accept_request,
                       'Pickup request confirmed! The recipient will be notified.',
                       transaction_id, profile, default_tab='transactions')


@bp.route('/transactions/<int:transaction_id>/reject', methods=['POST'])
@login_required
@profile_required
@role_required('donor')
def reject_request(profile, transaction_id):
    return _run_action(transactions.reject_request, 'Pickup request rejected.',
                       transaction_id, profile, default_tab='transactions')


@bp.route('/transactions/<int:transaction_id>/cancel', methods=['POST'])
@login_required
@profile_required
@role_required('recipient')
def cancel_request(profile, transaction_id):
    return _run_action(transactions.cancel_request, 'Request canceled.',
                       transaction_id, profile, default_tab='transactions')


@bp.route('/transactions/<int:transaction_id>/complete', methods=['POST'])
@login_required
@profile_required
@role_required('recipient')
def complete_transaction(profile, transaction_id):
    return _run_action(transactions.complete_transaction,
                       'Pickup marked as completed successfully!',
                       transaction_id, profile, default_tab='transactions')


@bp.route('/transactions/<int:transaction_id>/feedback', methods=['POST'])
@login_required
@profile_required
def submit_feedback(profile, transaction_id):
    form = FeedbackForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(_next_url('transactions'))
    return _run_action(transactions.submit_feedback, 'Thank you for your feedback!',
                       transaction_id, profile, form.rating.data, form.feedback.data,
                       default_tab='transactions')


@bp.route('/transactions/<int:transaction_id>/impact')
@login_required
@profile_required
def view_impact(profile, transaction_id):
    try:
        metrics = transactions.view_impact(transaction_id, profile)
    except FoodShareError as e:
        flash(e.message, e.category)
        return redirect(url_for('main.app_home', tab='transactions'))
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error with impact metrics: {str(e)}")
        flash('Failed to process impact metrics.', 'danger')
        return redirect(url_for('main.app_home', tab='transactions'))
    return render_template('impact.html', metrics=metrics, profile=profile)


def not_found_error(error):
    # Unknown paths land back on the app root
    return redirect(url_for('main.index'))


def internal_error(error):
    db.session.rollback()
    error_info = {
        'code': 500,
        'message': 'Internal Server Error',
        'description': 'The server encountered an internal error and was unable to complete your request.'
    }
    return render_template('error_page.html', error=error_info), 500
