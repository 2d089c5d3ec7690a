"""
CO2 leaderboard.

``leaderboard_view`` reads one row per profile (user_id, name,
organization_name, user_type, co2_saved, transaction_count) from completed
transactions and their impact metrics. ``build_leaderboard`` splits those rows
by role and ranks each side.
"""
from dataclasses import dataclass, field
from typing import List

from sqlalchemy import and_, func

from .models import FoodDonation, ImpactMetrics, Transaction, User, db

MEDALS = ('🥇', '🥈', '🥉')


def _grouped(query):
    return query.group_by(User.id, User.name, User.organization_name, User.user_type).all()


def leaderboard_view():
    columns = (
        User.id.label('user_id'),
        User.name,
        User.organization_name,
        User.user_type,
        func.coalesce(func.sum(ImpactMetrics.co2_saved), 0).label('co2_saved'),
        func.count(ImpactMetrics.id).label('transaction_count'),
    )

    donors = db.session.query(*columns).select_from(User) \
        .outerjoin(FoodDonation, FoodDonation.donor_id == User.id) \
        .outerjoin(Transaction, and_(Transaction.donation_id == FoodDonation.id,
                                     Transaction.status == 'completed')) \
        .outerjoin(ImpactMetrics, ImpactMetrics.transaction_id == Transaction.id) \
        .filter(User.user_type == 'donor')

    recipients = db.session.query(*columns).select_from(User) \
        .outerjoin(Transaction, and_(Transaction.recipient_id == User.id,
                                     Transaction.status == 'completed')) \
        .outerjoin(ImpactMetrics, ImpactMetrics.transaction_id == Transaction.id) \
        .filter(User.user_type == 'recipient')

    return [row._asdict() for row in _grouped(donors) + _grouped(recipients)]


def rank_label(index):
    return MEDALS[index] if index < len(MEDALS) else str(index + 1)


def percentage(part, whole):
    return (part / whole) * 100 if whole > 0 else 0


@dataclass
class RankingEntry:
    id: int
    name: str
    organization: str
    co2_saved: float
    transaction_count: int
    rank: str = ''
    bar_width: float = 0
    share: float = 0


@dataclass
class Partition:
    entries: List[RankingEntry] = field(default_factory=list)
    total_co2: float = 0

    @property
    def max_co2(self):
        return self.entries[0].co2_saved if self.entries else 0


@dataclass
class Leaderboard:
    donors: Partition
    recipients: Partition

    @property
    def total_co2(self):
        return self.donors.total_co2 + self.recipients.total_co2

    @property
    def donor_share(self):
        return percentage(self.donors.total_co2, self.total_co2)

    @property
    def recipient_share(self):
        return percentage(self.recipients.total_co2, self.total_co2)


def _rank(entries):
    # stable, so ties keep view order
    entries.sort(key=lambda e: e.co2_saved, reverse=True)
    partition = Partition(entries=entries, total_co2=sum(e.co2_saved for e in entries))
    for index, entry in enumerate(entries):
        entry.rank = rank_label(index)
        entry.bar_width = min(100, percentage(entry.co2_saved, partition.max_co2))
        entry.share = percentage(entry.co2_saved, partition.total_co2)
    return partition


def build_leaderboard(rows):
    donors, recipients = [], []
    for row in rows:
        entry = RankingEntry(
            id=row.get('user_id'),
            name=row.get('name') or 'Anonymous',
            organization=row.get('organization_name') or 'Individual',
            co2_saved=float(row.get('co2_saved') or 0),
            transaction_count=int(row.get('transaction_count') or 0),
        )
        if row.get('user_type') == 'donor':
            donors.append(entry)
        elif row.get('user_type') == 'recipient':
            recipients.append(entry)
    return Leaderboard(donors=_rank(donors), recipients=_rank(recipients))
