"""
Transaction lifecycle.

    requested -> confirmed | rejected | canceled
    confirmed -> completed

Completed, rejected and canceled are terminal. A donation's status follows
its transactions (see ``project_donation_status``); every transition here
re-derives it so the donation and transaction views never disagree.

Each operation takes the acting profile explicitly, checks ownership, applies
the change and commits. Rule violations raise ``FoodShareError`` subclasses;
store failures roll back and re-raise ``SQLAlchemyError``.
"""
import logging
from datetime import datetime

from sqlalchemy import desc

from .exceptions import (DuplicateRequestError, InvalidTransitionError, NotFoundError,
                         PermissionDeniedError, ValidationError)
from .metrics import compute_impact
from .models import (TRANSACTION_STATUSES, FoodDonation, ImpactMetrics, Transaction,
                     commit_session, db)
from .pagination import paginate_query

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ('requested', 'confirmed')
DELETED_TITLE_PREFIX = '[DELETED] '
DELETED_DESCRIPTION = 'This donation has been permanently deleted by the donor.'


def get_donation(donation_id):
    donation = db.session.get(FoodDonation, donation_id)
    if donation is None:
        raise NotFoundError('Donation not found.')
    return donation


def get_transaction(transaction_id):
    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError('Transaction not found.')
    return transaction


def _require_donation_owner(donation, donor):
    if donation.donor_id != donor.id:
        raise PermissionDeniedError('You can only manage your own donations.')


def _require_donor_of(transaction, donor):
    if transaction.donation.donor_id != donor.id:
        raise PermissionDeniedError('Unauthorized action.')


def _require_recipient_of(transaction, recipient):
    if transaction.recipient_id != recipient.id:
        raise PermissionDeniedError('Unauthorized action.')


def _require_status(transaction, *allowed):
    if transaction.status not in allowed:
        raise InvalidTransitionError(
            f"This transaction is {transaction.status} and cannot be changed that way."
        )


def project_donation_status(donation):
    """Derive the donation status from its transactions. Expired stays expired."""
    if donation.status == 'expired':
        return donation.status

    statuses = {t.status for t in donation.transactions}
    if 'completed' in statuses:
        donation.status = 'completed'
    elif 'confirmed' in statuses:
        donation.status = 'claimed'
    elif 'requested' in statuses:
        donation.status = 'pending'
    else:
        donation.status = 'available'
    return donation.status


def request_donation(donation_id, recipient):
    if not recipient.is_recipient:
        raise PermissionDeniedError('Only recipients can request donations.')

    donation = get_donation(donation_id)
    if donation.donor_id == recipient.id:
        raise PermissionDeniedError('You cannot request your own donation.')

    existing = Transaction.query.filter_by(donation_id=donation.id,
                                           recipient_id=recipient.id).first()
    if existing:
        raise DuplicateRequestError('You have already requested this donation.')

    if donation.status != 'available':
        raise InvalidTransitionError('This donation is no longer available.')

    transaction = Transaction(
        donation=donation,
        recipient_id=recipient.id,
        status='requested',
        scheduled_pickup_time=datetime.utcnow(),
    )
    db.session.add(transaction)
    project_donation_status(donation)
    commit_session('Donation request')
    logger.info(f"Recipient {recipient.id} requested donation {donation.id}")
    return transaction


def accept_request(transaction_id, donor):
    transaction = get_transaction(transaction_id)
    _require_donor_of(transaction, donor)
    _require_status(transaction, 'requested')
    if transaction.donation.status not in ('available', 'pending'):
        raise InvalidTransitionError('This donation is no longer open to requests.')

    transaction.status = 'confirmed'
    project_donation_status(transaction.donation)
    commit_session('Accept request')
    logger.info(f"Transaction {transaction.id} confirmed by donor {donor.id}")
    return transaction


def reject_request(transaction_id, donor):
    transaction = get_transaction(transaction_id)
    _require_donor_of(transaction, donor)
    _require_status(transaction, 'requested')

    transaction.status = 'rejected'
    project_donation_status(transaction.donation)
    commit_session('Reject request')
    logger.info(f"Transaction {transaction.id} rejected, donation now {transaction.donation.status}")
    return transaction


def cancel_request(transaction_id, recipient):
    transaction = get_transaction(transaction_id)
    _require_recipient_of(transaction, recipient)
    _require_status(transaction, 'requested')

    transaction.status = 'canceled'
    project_donation_status(transaction.donation)
    commit_session('Cancel request')
    logger.info(f"Transaction {transaction.id} canceled by recipient {recipient.id}")
    return transaction


def ensure_impact_metrics(transaction):
    """
    Return the stored metrics for a transaction, adding a new row computed
    from the donation if there is none yet. The caller commits.
    """
    if transaction.impact_metrics is not None:
        return transaction.impact_metrics

    donation = transaction.donation
    impact = compute_impact(donation.food_type, donation.quantity, donation.quantity_unit)
    metrics = ImpactMetrics(
        transaction=transaction,
        food_weight=impact.food_weight,
        co2_saved=impact.co2_saved,
        meals_provided=impact.meals_provided,
        estimated_value=impact.estimated_value,
    )
    db.session.add(metrics)
    logger.info(f"Created impact metrics for transaction {transaction.id}")
    return metrics


def complete_transaction(transaction_id, recipient):
    transaction = get_transaction(transaction_id)
    _require_recipient_of(transaction, recipient)
    _require_status(transaction, 'confirmed')

    transaction.status = 'completed'
    transaction.actual_pickup_time = datetime.utcnow()
    for other in transaction.donation.transactions:
        if other is not transaction and other.status == 'requested':
            other.status = 'canceled'
    project_donation_status(transaction.donation)
    ensure_impact_metrics(transaction)
    commit_session('Complete transaction')
    logger.info(f"Transaction {transaction.id} completed")
    return transaction


def view_impact(transaction_id, profile):
    """Impact metrics for a completed transaction, created on first view."""
    transaction = get_transaction(transaction_id)
    if profile.id not in (transaction.recipient_id, transaction.donation.donor_id):
        raise PermissionDeniedError('You do not have permission to view this transaction.')
    _require_status(transaction, 'completed')

    created = transaction.impact_metrics is None
    metrics = ensure_impact_metrics(transaction)
    if created:
        commit_session('Impact metrics')
    return metrics


def submit_feedback(transaction_id, profile, rating, feedback=None):
    """
    Each party rates the other once. The donor writes ``recipient_rating``
    and ``donor_feedback``; the recipient writes the mirror pair.
    """
    transaction = get_transaction(transaction_id)
    _require_status(transaction, 'completed')

    try:
        rating = int(rating)
    except (TypeError, ValueError):
        rating = 0
    if not 1 <= rating <= 5:
        raise ValidationError('Please enter a valid rating between 1 and 5.')
    feedback = (feedback or '').strip() or None

    if transaction.donation.donor_id == profile.id:
        if transaction.recipient_rating:
            raise InvalidTransitionError('You have already left feedback for this transaction.')
        transaction.recipient_rating = rating
        transaction.donor_feedback = feedback
    elif transaction.recipient_id == profile.id:
        if transaction.donor_rating:
            raise InvalidTransitionError('You have already left feedback for this transaction.')
        transaction.donor_rating = rating
        transaction.recipient_feedback = feedback
    else:
        raise PermissionDeniedError('Unauthorized action.')

    commit_session('Feedback')
    return transaction


def cancel_donation(donation_id, donor):
    donation = get_donation(donation_id)
    _require_donation_owner(donation, donor)
    if donation.status not in ('available', 'pending'):
        raise InvalidTransitionError('Only available or pending donations can be cancelled.')

    donation.status = 'expired'
    for transaction in donation.transactions:
        if transaction.status == 'requested':
            transaction.status = 'canceled'
    commit_session('Cancel donation')
    logger.info(f"Donation {donation.id} cancelled by donor {donor.id}")
    return donation


def delete_donation(donation_id, donor):
    """Soft delete: the row stays so transaction history keeps its reference."""
    donation = get_donation(donation_id)
    _require_donation_owner(donation, donor)
    if donation.status != 'available':
        raise InvalidTransitionError('Only available donations can be deleted.')

    active = Transaction.query.filter(Transaction.donation_id == donation.id,
                                      Transaction.status.in_(ACTIVE_STATUSES)).count()
    if active:
        raise InvalidTransitionError(
            'This donation cannot be deleted because it has active requests. '
            'You must reject all requests or wait for them to be canceled first.'
        )

    donation.status = 'expired'
    donation.title = DELETED_TITLE_PREFIX + datetime.utcnow().date().isoformat()
    donation.description = DELETED_DESCRIPTION
    commit_session('Delete donation')
    logger.info(f"Donation {donation.id} soft-deleted by donor {donor.id}")
    return donation


def list_transactions(profile, status, page, per_page):
    """Transactions visible to a profile, newest first, optionally by status."""
    query = Transaction.query
    if profile.is_donor:
        query = query.join(FoodDonation, Transaction.donation_id == FoodDonation.id) \
            .filter(FoodDonation.donor_id == profile.id)
    else:
        query = query.filter(Transaction.recipient_id == profile.id)

    if status in TRANSACTION_STATUSES:
        query = query.filter(Transaction.status == status)

    query = query.order_by(desc(Transaction.created_at), desc(Transaction.id))
    return paginate_query(query, page, per_page)
