from sqlalchemy import func

from .models import FoodDonation, ImpactMetrics, Transaction, db

ACTIVE_DONATION_STATUSES = ('available', 'pending', 'claimed')
MONEY_SAVED_PER_MEAL = 5


def _impact_totals(transaction_ids):
    if not transaction_ids:
        return {'food_weight': 0, 'co2_saved': 0, 'meals_provided': 0}
    food_weight, co2, meals = db.session.query(
        func.coalesce(func.sum(ImpactMetrics.food_weight), 0),
        func.coalesce(func.sum(ImpactMetrics.co2_saved), 0),
        func.coalesce(func.sum(ImpactMetrics.meals_provided), 0),
    ).filter(ImpactMetrics.transaction_id.in_(transaction_ids)).one()
    return {'food_weight': float(food_weight), 'co2_saved': float(co2), 'meals_provided': int(meals)}


def dashboard_stats(profile):
    """Headline numbers for the dashboard tab."""
    if profile.is_donor:
        donations = FoodDonation.query.filter_by(donor_id=profile.id)
        completed_ids = [t.id for t in Transaction.query.join(FoodDonation)
                         .filter(FoodDonation.donor_id == profile.id,
                                 Transaction.status == 'completed')
                         .with_entities(Transaction.id)]
        return {
            'total_donations': donations.count(),
            'active_donations': donations.filter(FoodDonation.status.in_(ACTIVE_DONATION_STATUSES)).count(),
            'completed_transactions': len(completed_ids),
            'impact': _impact_totals(completed_ids),
        }

    completed_ids = [t.id for t in Transaction.query
                     .filter_by(recipient_id=profile.id, status='completed')
                     .with_entities(Transaction.id)]
    impact = _impact_totals(completed_ids)
    return {
        'completed_transactions': len(completed_ids),
        'impact': impact,
        'money_saved': impact['meals_provided'] * MONEY_SAVED_PER_MEAL,
    }
