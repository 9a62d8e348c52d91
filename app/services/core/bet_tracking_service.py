"""
Wager store: persistence and performance queries for recorded picks.

Picks are written by the bet-slip feature (``save_pick``) and settled
either automatically by the resolver (``mark_settled``) or manually
(``update_result``). Settlement by the resolver is idempotent: the update
only applies while the row is still pending.
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.models.models import BetType, Pick, PickResult, SettlementSource
from app.utils.odds import calculate_profit

logger = logging.getLogger(__name__)

# Performance ranges in days; 'all' (or anything unrecognized) means no filter
RANGE_DAYS = {'1d': 1, '7d': 7, '14d': 14, '30d': 30, '90d': 90, 'all': 0}

SUMMARY_FIELDS = ('sport', 'bet_type')

VALID_RESULTS = {r.value for r in PickResult}


def _parse_date(value: Union[date, str, None]) -> date:
    if value is None or value == "":
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], '%Y-%m-%d').date()


def _range_start(range_key: str) -> Optional[date]:
    days = RANGE_DAYS.get(range_key)
    if not days:
        return None
    return date.today() - timedelta(days=days)


def pick_to_dict(pick: Pick) -> Dict[str, Any]:
    """Serialize a pick for API responses and logs."""
    return {
        'id': pick.id,
        'game_id': pick.game_id,
        'sport': pick.sport,
        'date': pick.date.isoformat() if pick.date else None,
        'home_team': pick.home_team,
        'away_team': pick.away_team,
        'game_name': pick.game_name,
        'bet_type': pick.bet_type,
        'pick': pick.pick,
        'odds': pick.odds,
        'units': pick.units,
        'confidence': pick.confidence,
        'expected_value': pick.expected_value,
        'risk_tier': pick.risk_tier,
        'reasoning': pick.reasoning,
        'result': pick.result,
        'profit_loss': pick.profit_loss,
        'settled_by': pick.settled_by,
        'settled_at': pick.settled_at.isoformat() if pick.settled_at else None,
        'created_at': pick.created_at.isoformat() if pick.created_at else None,
    }


class BetTrackingService:
    """Service for recording picks and tracking their results."""

    def __init__(self, db: Session):
        self.db = db

    def save_pick(
        self,
        pick: str,
        odds: Optional[Union[int, str]] = None,
        bet_type: str = BetType.MONEYLINE.value,
        units: Optional[Union[float, str]] = 1.0,
        game_id: Optional[str] = None,
        sport: Optional[str] = None,
        date: Union[date, str, None] = None,
        home_team: Optional[str] = None,
        away_team: Optional[str] = None,
        game_name: Optional[str] = None,
        confidence: Optional[float] = None,
        expected_value: Optional[str] = None,
        risk_tier: Optional[str] = None,
        reasoning: Optional[str] = None,
    ) -> Pick:
        """
        Record a new pick in the pending state.

        Args:
            pick: Free-text selection ('Boston Celtics -3.5', 'Over 214.5')
            odds: American odds; non-numeric values are stored as 0
            bet_type: One of 'spread', 'moneyline', 'over_under', 'player_prop'
            units: Stake size; non-positive or non-numeric values become 1
            game_id: ESPN event ID, if known
            sport: Sport key ('nba', 'nfl', ...)
            date: Game date, date object or 'YYYY-MM-DD' (default: today)
            home_team: Home team name
            away_team: Away team name
            game_name: Display name of the game
            confidence: Analysis confidence
            expected_value: Analysis expected value label
            risk_tier: 'low', 'medium' or 'high'
            reasoning: Analysis reasoning

        Returns:
            The created Pick
        """
        if bet_type not in {t.value for t in BetType}:
            raise ValueError(f"Unsupported bet type: {bet_type}")

        try:
            odds_value = int(float(odds)) if odds is not None else 0
        except (TypeError, ValueError):
            odds_value = 0

        try:
            units_value = float(units) if units is not None else 1.0
        except (TypeError, ValueError):
            units_value = 1.0
        if units_value <= 0:
            units_value = 1.0

        record = Pick(
            id=str(uuid.uuid4()),
            game_id=game_id or None,
            sport=sport or None,
            date=_parse_date(date),
            home_team=home_team or None,
            away_team=away_team or None,
            game_name=game_name or None,
            bet_type=bet_type,
            pick=pick,
            odds=odds_value,
            units=units_value,
            confidence=float(confidence) if confidence is not None else None,
            expected_value=expected_value or None,
            risk_tier=risk_tier or None,
            reasoning=reasoning or None,
            result=PickResult.PENDING.value,
            profit_loss=0.0,
            created_at=datetime.utcnow(),
        )

        self.db.add(record)
        self.db.commit()
        logger.info(f"Saved pick {record.id}: {bet_type} '{pick}' ({sport}, {record.date})")
        return record

    def get_picks(
        self,
        sport: Optional[str] = None,
        date: Union[date, str, None] = None,
        result: Optional[str] = None,
    ) -> List[Pick]:
        """Get picks with optional filtering, newest first."""
        query = self.db.query(Pick)

        if sport:
            query = query.filter(Pick.sport == sport)
        if date:
            query = query.filter(Pick.date == _parse_date(date))
        if result:
            query = query.filter(Pick.result == result)

        return query.order_by(Pick.created_at.desc()).all()

    def get_pick_by_id(self, pick_id: str) -> Optional[Pick]:
        """Get a single pick by ID."""
        return self.db.query(Pick).filter(Pick.id == pick_id).first()

    def get_pending_picks(self) -> List[Pick]:
        """Get all picks that have not been settled."""
        return (
            self.db.query(Pick)
            .filter(Pick.result == PickResult.PENDING.value)
            .order_by(Pick.created_at.asc())
            .all()
        )

    def mark_settled(
        self,
        pick_id: str,
        result: str,
        profit_loss: float,
        source: str = SettlementSource.AUTO.value,
    ) -> bool:
        """
        Settle a pending pick.

        The update is conditional on the row still being pending, so settling
        the same pick twice has no further effect.

        Returns:
            True if the pick was pending and is now settled
        """
        if result not in VALID_RESULTS or result == PickResult.PENDING.value:
            raise ValueError(f"Invalid settlement result: {result}")

        try:
            updated = (
                self.db.query(Pick)
                .filter(Pick.id == pick_id, Pick.result == PickResult.PENDING.value)
                .update(
                    {
                        Pick.result: result,
                        Pick.profit_loss: profit_loss,
                        Pick.settled_by: source,
                        Pick.settled_at: datetime.utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if updated:
            logger.info(f"Settled pick {pick_id}: {result} ({profit_loss:+.2f}u, {source})")
        return bool(updated)

    def update_result(self, pick_id: str, result: str) -> Optional[Pick]:
        """
        Manually set a pick's result and recompute its profit.

        Unlike mark_settled this applies to settled picks as well, and may
        reset a pick back to pending.

        Returns:
            The updated Pick, or None if it does not exist
        """
        if result not in VALID_RESULTS:
            raise ValueError(f"Invalid result: {result}")

        record = self.get_pick_by_id(pick_id)
        if not record:
            logger.warning(f"Pick {pick_id} not found")
            return None

        record.result = result
        record.profit_loss = calculate_profit(record.odds, record.units, result)
        if result == PickResult.PENDING.value:
            record.settled_by = None
            record.settled_at = None
        else:
            record.settled_by = SettlementSource.MANUAL.value
            record.settled_at = datetime.utcnow()

        self.db.commit()
        logger.info(f"Manually updated pick {pick_id} to {result}")
        return record

    def delete_pick(self, pick_id: str) -> Optional[Dict[str, Any]]:
        """
        Delete a pick.

        Returns:
            The deleted pick as a dict, or None if it does not exist
        """
        record = self.get_pick_by_id(pick_id)
        if not record:
            return None

        snapshot = pick_to_dict(record)
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Deleted pick {pick_id}")
        return snapshot

    # ==================== PERFORMANCE ====================

    def get_summary(self, range_key: str = '7d') -> Dict[str, Any]:
        """
        Overall performance for a date range.

        Pushes count toward the record but not toward units wagered.

        Args:
            range_key: '1d', '7d', '14d', '30d', '90d' or 'all'

        Returns:
            Dict with range, record (wins/losses/pushes), total_picks,
            pending_picks, units (net profit), total_wagered and roi (%)
        """
        query = self.db.query(
            Pick.result,
            func.count(Pick.id),
            func.coalesce(func.sum(Pick.profit_loss), 0.0),
            func.coalesce(func.sum(Pick.units), 0.0),
        )
        since = _range_start(range_key)
        if since:
            query = query.filter(Pick.date >= since)
        rows = query.group_by(Pick.result).all()

        counts = {r.value: 0 for r in PickResult}
        total_profit = 0.0
        total_wagered = 0.0
        for result, count, profit, wagered in rows:
            counts[result] = count
            if result in (PickResult.WON.value, PickResult.LOST.value):
                total_profit += profit
                total_wagered += wagered

        roi = (total_profit / total_wagered * 100) if total_wagered > 0 else 0.0

        return {
            'range': range_key,
            'record': {
                'wins': counts[PickResult.WON.value],
                'losses': counts[PickResult.LOST.value],
                'pushes': counts[PickResult.PUSH.value],
            },
            'total_picks': sum(counts.values()),
            'pending_picks': counts[PickResult.PENDING.value],
            'units': round(total_profit, 2),
            'total_wagered': round(total_wagered, 2),
            'roi': round(roi, 1),
        }

    def get_summary_by(self, field: str) -> List[Dict[str, Any]]:
        """
        Performance broken down by sport or bet type, most profitable first.

        Args:
            field: 'sport' or 'bet_type'
        """
        if field not in SUMMARY_FIELDS:
            raise ValueError(f"Cannot group picks by {field}")

        column = getattr(Pick, field)
        settled = Pick.result != PickResult.PENDING.value
        profit = func.sum(case((settled, Pick.profit_loss), else_=0.0))
        wagered = func.sum(case((settled, Pick.units), else_=0.0))

        rows = (
            self.db.query(
                column,
                func.count(Pick.id),
                func.sum(case((Pick.result == PickResult.WON.value, 1), else_=0)),
                func.sum(case((Pick.result == PickResult.LOST.value, 1), else_=0)),
                func.sum(case((Pick.result == PickResult.PUSH.value, 1), else_=0)),
                profit,
                wagered,
            )
            .filter(column.isnot(None))
            .group_by(column)
            .order_by(profit.desc())
            .all()
        )

        summary = []
        for key, total, wins, losses, pushes, row_profit, row_wagered in rows:
            row_profit = row_profit or 0.0
            summary.append({
                field: key,
                'total': total,
                'record': {'wins': wins or 0, 'losses': losses or 0, 'pushes': pushes or 0},
                'profit': round(row_profit, 2),
                'roi': round(row_profit / row_wagered * 100, 1) if row_wagered else 0.0,
            })
        return summary

    def get_daily_performance(self, range_key: str = '30d') -> List[Dict[str, Any]]:
        """Daily wins, losses, profit and units wagered, oldest first."""
        settled = Pick.result != PickResult.PENDING.value
        query = self.db.query(
            Pick.date,
            func.sum(case((Pick.result == PickResult.WON.value, 1), else_=0)),
            func.sum(case((Pick.result == PickResult.LOST.value, 1), else_=0)),
            func.sum(case((settled, Pick.profit_loss), else_=0.0)),
            func.sum(case((settled, Pick.units), else_=0.0)),
        )
        since = _range_start(range_key)
        if since:
            query = query.filter(Pick.date >= since)
        rows = query.group_by(Pick.date).order_by(Pick.date.asc()).all()

        return [
            {
                'date': day.isoformat() if day else None,
                'wins': wins or 0,
                'losses': losses or 0,
                'profit': round(profit or 0.0, 2),
                'wagered': round(wagered or 0.0, 2),
            }
            for day, wins, losses, profit, wagered in rows
        ]
