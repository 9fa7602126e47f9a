from __future__ import annotations

import calendar
import logging
import math
import re
import statistics
from collections import abc
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Other"

TREND_WINDOW_MONTHS = 3
FORECAST_WINDOW_MONTHS = 6
TREND_THRESHOLD_PERCENT = 10.0

HIGH_SHARE_PERCENT = 40.0
SIGNIFICANT_SHARE_PERCENT = 25.0
HIGH_SPEND_PERCENT = 30.0
WATCH_TARGET_PERCENT = 20.0

MICRO_TRANSACTION_RATIO = 0.3
VOLATILITY_RATIO = 0.3

_LEADING_NUMBER = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass
class CategoryStat:
    """Running aggregate for one category."""

    total: float = 0.0
    count: int = 0
    dates: List[date] = field(default_factory=list)


@dataclass
class CategoryInsight:
    category: str
    percentage: float
    trend: str
    advice: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SpendingPrediction:
    next_month_spending: float
    confidence: float
    trend: str


@dataclass
class Recommendation:
    title: str
    description: str
    potential_savings: float
    priority: str


@dataclass
class AnalysisResult:
    insights: List[CategoryInsight]
    predictions: List[SpendingPrediction]
    recommendations: List[Recommendation]
    summary: str
    risk_score: int

    @classmethod
    def empty(cls) -> "AnalysisResult":
        return cls(
            insights=[],
            predictions=[SpendingPrediction(next_month_spending=0.0, confidence=0.0, trend="stable")],
            recommendations=[],
            summary="No expenses to analyze. Add expenses to get AI insights.",
            risk_score=0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProjectionPoint:
    month: str
    projected: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class _Entry(NamedTuple):
    category: str
    amount: float
    date: Optional[date]


def coerce_amount(value: Any) -> float:
    """
    Return a finite float for ``value``, or 0 when it is not numeric. Strings are
    read up to the first character that cannot continue a number, so ``"12abc"``
    is 12 and ``"1,200"`` is 1.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return 0.0
        value = match.group(0)
    elif not isinstance(value, (int, float, Decimal)):
        return 0.0
    try:
        amount = float(value)
    except (OverflowError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def normalize_category(value: Any) -> str:
    if value is None:
        return DEFAULT_CATEGORY
    text = str(value)
    return text if text.strip() else DEFAULT_CATEGORY


def parse_date(value: Any) -> Optional[date]:
    """
    Best-effort conversion of a transaction date. Accepts date/datetime objects,
    ISO-8601 strings and epoch milliseconds; anything else yields None.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            return None
    return None


def classify_trend(month_totals: Sequence[float]) -> str:
    """
    Compare the average of the two newest monthly totals against the average of
    the older ones. ``month_totals`` is ordered oldest to newest.
    """
    if len(month_totals) < 2:
        return "stable"

    recent_avg = (month_totals[-1] + month_totals[-2]) / 2
    older = month_totals[:-2]
    older_avg = sum(older) / (len(older) or 1)

    percent_change = (recent_avg - older_avg) / older_avg * 100 if older_avg > 0 else 0.0

    if percent_change > TREND_THRESHOLD_PERCENT:
        return "up"
    if percent_change < -TREND_THRESHOLD_PERCENT:
        return "down"
    return "stable"


def _shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _months_before(day: date, months: int) -> date:
    year, month = _shift_month(day.year, day.month, -months)
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def month_bounds(today: date, months: int) -> List[Tuple[date, date]]:
    """First and last calendar day of the ``months`` months ending with ``today``'s, oldest first."""
    bounds = []
    for offset in range(months - 1, -1, -1):
        year, month = _shift_month(today.year, today.month, -offset)
        bounds.append((date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])))
    return bounds


def _field(transaction: Any, name: str) -> Any:
    if isinstance(transaction, Mapping):
        return transaction.get(name)
    return getattr(transaction, name, None)


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class FinanceAnalyzer:
    """
    Rule-based expense analytics shared by the HTTP routes and any batch job.

    The analyzer only carries configuration; every call works from its arguments
    and the current date, which can be pinned with ``clock`` or per call with ``now``.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        currency_symbol: str = "₹",
        micro_transaction_threshold: float = 500.0,
    ) -> None:
        self._clock = clock or datetime.now
        self._currency = currency_symbol
        self._micro_threshold = micro_transaction_threshold

    def _today(self, now: Optional[datetime | date]) -> date:
        current = now if now is not None else self._clock()
        return current.date() if isinstance(current, datetime) else current

    @staticmethod
    def _normalize(transactions: Optional[Iterable[Any]]) -> List[_Entry]:
        if not transactions or not isinstance(transactions, abc.Iterable):
            return []
        if isinstance(transactions, (str, bytes, Mapping)):
            return []
        return [
            _Entry(
                category=normalize_category(_field(tx, "category")),
                amount=coerce_amount(_field(tx, "amount")),
                date=parse_date(_field(tx, "date")),
            )
            for tx in transactions
        ]

    @staticmethod
    def _collect(entries: List[_Entry]) -> Dict[str, CategoryStat]:
        stats: Dict[str, CategoryStat] = {}
        for entry in entries:
            stat = stats.setdefault(entry.category, CategoryStat())
            stat.total += entry.amount
            stat.count += 1
            if entry.date is not None:
                stat.dates.append(entry.date)
        return stats

    @staticmethod
    def _category_months(entries: List[_Entry], category: str, months: int, today: date) -> List[float]:
        return [
            sum(
                e.amount
                for e in entries
                if e.category == category and e.date is not None and start <= e.date <= end
            )
            for start, end in month_bounds(today, months)
        ]

    @staticmethod
    def _forecast_buckets(entries: List[_Entry], today: date) -> List[List[_Entry]]:
        cutoff = _months_before(today, FORECAST_WINDOW_MONTHS)
        recent = [e for e in entries if e.date is not None and e.date > cutoff]
        return [
            [e for e in recent if start <= e.date <= end]
            for start, end in month_bounds(today, FORECAST_WINDOW_MONTHS)
        ]

    def category_stats(self, transactions: Iterable[Any]) -> Dict[str, CategoryStat]:
        return self._collect(self._normalize(transactions))

    def calculate_trend(
        self,
        transactions: Iterable[Any],
        category: str,
        months: int = TREND_WINDOW_MONTHS,
        now: Optional[datetime | date] = None,
    ) -> str:
        entries = self._normalize(transactions)
        return classify_trend(self._category_months(entries, category, months, self._today(now)))

    def monthly_totals(self, transactions: Iterable[Any], now: Optional[datetime | date] = None) -> List[float]:
        """Spend per calendar month over the trailing forecast window, oldest first."""
        buckets = self._forecast_buckets(self._normalize(transactions), self._today(now))
        return [sum(e.amount for e in bucket) for bucket in buckets]

    def _advice(self, category: str, percentage: float, trend: str) -> str:
        if percentage > HIGH_SHARE_PERCENT:
            advice = (
                f"{category} is consuming over 40% of your budget. "
                "Consider reducing non-essential spending in this category."
            )
        elif percentage > SIGNIFICANT_SHARE_PERCENT:
            advice = f"{category} is a significant expense category. Monitor this area for optimization opportunities."
        else:
            advice = f"{category} spending is well-controlled at {percentage:.1f}%."

        if trend == "up":
            advice += " This category shows an upward trend - be mindful of increasing costs."
        elif trend == "down":
            advice += f" Good news: {category} spending is trending downward!"
        return advice

    def _recommend(
        self,
        entries: List[_Entry],
        stats: Dict[str, CategoryStat],
        insights: List[CategoryInsight],
        avg_monthly: float,
        budget: float,
    ) -> List[Recommendation]:
        recommendations: List[Recommendation] = []

        high_spending = [i for i in insights if i.percentage > HIGH_SPEND_PERCENT]
        if high_spending:
            names = ", ".join(i.category for i in high_spending)
            share = sum(i.percentage for i in high_spending)
            recommendations.append(
                Recommendation(
                    title="Reduce High-Spending Categories",
                    description=(
                        f"Your top spending categories ({names}) account for {share:.1f}% of expenses. "
                        "A 10% reduction could save significant money."
                    ),
                    potential_savings=sum(stats[i.category].total * 0.1 for i in high_spending),
                    priority="high",
                )
            )

        if avg_monthly > budget * 0.9:
            recommendations.append(
                Recommendation(
                    title="Current Spending Exceeds Target",
                    description=(
                        f"Your average monthly spending ({self._currency}{avg_monthly:.0f}) is approaching "
                        f"your budget of {self._currency}{_format_number(budget)}. "
                        "Implement cost control measures immediately."
                    ),
                    potential_savings=avg_monthly - budget,
                    priority="high",
                )
            )
        elif avg_monthly > budget * 0.75:
            recommendations.append(
                Recommendation(
                    title="Budget Utilization Alert",
                    description="You're using 75%+ of your monthly budget. Plan carefully to avoid exceeding limits.",
                    potential_savings=budget - avg_monthly,
                    priority="medium",
                )
            )

        small = [e.amount for e in entries if e.amount < self._micro_threshold]
        if len(small) > len(entries) * MICRO_TRANSACTION_RATIO:
            share = math.floor(len(small) / len(entries) * 100 + 0.5)
            recommendations.append(
                Recommendation(
                    title="Monitor Micro-Transactions",
                    description=(
                        f"{share}% of your transactions are small "
                        f"(< {self._currency}{_format_number(self._micro_threshold)}). "
                        "These can add up quickly. Track them carefully."
                    ),
                    potential_savings=sum(small) * 0.15,
                    priority="medium",
                )
            )

        # Nearest to a 20% share; the first category wins a tie.
        if len(insights) > 1:
            watched = min(insights, key=lambda i: abs(i.percentage - WATCH_TARGET_PERCENT))
            if watched.trend == "up":
                recommendations.append(
                    Recommendation(
                        title="Address Growing Category",
                        description=(
                            f"{watched.category} is growing rapidly. "
                            "Implement stricter controls or find alternatives."
                        ),
                        potential_savings=stats[watched.category].total * 0.15,
                        priority="medium",
                    )
                )

        return recommendations

    @staticmethod
    def _risk_score(insights: List[CategoryInsight], monthly: List[float], avg_monthly: float, budget: float) -> int:
        score = 0
        if avg_monthly >= budget:
            score += 40
        elif avg_monthly >= budget * 0.8:
            score += 25

        score += 15 * sum(1 for i in insights if i.trend == "up")

        volatility = statistics.pstdev(monthly) if len(monthly) > 1 else 0.0
        if volatility > avg_monthly * VOLATILITY_RATIO:
            score += 20

        return min(100, score)

    def _summary(self, total: float, category_count: int, risk_score: int, budget: float) -> str:
        summary = (
            f"Based on your spending patterns of {self._currency}{total:.0f} "
            f"across {category_count} categories, "
        )
        if risk_score > 70:
            summary += (
                "your financial health is at risk. Immediate action is needed to control spending "
                f"and align with your {self._currency}{_format_number(budget)} budget."
            )
        elif risk_score > 40:
            summary += (
                "you should be cautious. Review spending habits and implement our recommendations "
                "to avoid budget overruns."
            )
        else:
            summary += (
                "your financial situation is stable. Continue monitoring and following the recommended "
                "optimizations to maintain control."
            )
        return summary

    def analyze(
        self,
        transactions: Optional[Iterable[Any]],
        monthly_budget: Any,
        now: Optional[datetime | date] = None,
    ) -> AnalysisResult:
        entries = self._normalize(transactions)
        if not entries:
            return AnalysisResult.empty()

        today = self._today(now)
        budget = coerce_amount(monthly_budget)
        stats = self._collect(entries)
        total_spending = sum(stat.total for stat in stats.values())

        insights: List[CategoryInsight] = []
        for category, stat in stats.items():
            percentage = stat.total / total_spending * 100 if total_spending > 0 else 0.0
            trend = classify_trend(self._category_months(entries, category, TREND_WINDOW_MONTHS, today))
            insights.append(
                CategoryInsight(
                    category=category,
                    percentage=percentage,
                    trend=trend,
                    advice=self._advice(category, percentage, trend),
                )
            )

        buckets = self._forecast_buckets(entries, today)
        monthly = [sum(e.amount for e in bucket) for bucket in buckets]
        avg_monthly = statistics.fmean(monthly)
        populated = sum(1 for bucket in buckets if bucket)
        prediction = SpendingPrediction(
            next_month_spending=avg_monthly,
            confidence=min(100, max(50, populated * 15)) / 100,
            trend="increasing" if monthly[-1] > avg_monthly else "stable",
        )

        recommendations = self._recommend(entries, stats, insights, avg_monthly, budget)
        risk_score = self._risk_score(insights, monthly, avg_monthly, budget)

        logger.debug(
            f"Analyzed {len(entries)} transactions across {len(stats)} categories: "
            f"risk={risk_score}, recommendations={len(recommendations)}"
        )

        return AnalysisResult(
            insights=sorted(insights, key=lambda i: i.percentage, reverse=True),
            predictions=[prediction],
            recommendations=recommendations,
            summary=self._summary(total_spending, len(insights), risk_score, budget),
            risk_score=risk_score,
        )

    def project_savings(
        self,
        transactions: Optional[Iterable[Any]],
        monthly_budget: Any,
        horizon_months: Any,
        now: Optional[datetime | date] = None,
    ) -> List[ProjectionPoint]:
        """
        Cumulative savings if the trailing six-month average holds, one point for
        the current month followed by one per future month.
        """
        entries = self._normalize(transactions)
        if not entries:
            return []

        today = self._today(now)
        budget = coerce_amount(monthly_budget)
        avg_monthly = statistics.fmean(sum(e.amount for e in bucket) for bucket in self._forecast_buckets(entries, today))

        # Fractions truncate; labels cannot run past December 9999.
        try:
            horizon = max(0, int(horizon_months))
        except (OverflowError, TypeError, ValueError):
            horizon = 0
        last_month_index = date.max.year * 12 + (date.max.month - 1)
        horizon = min(horizon, last_month_index - (today.year * 12 + today.month - 1))

        points = []
        for i in range(horizon + 1):
            year, month = _shift_month(today.year, today.month, i)
            projected_spending = 0.0 if i == 0 else avg_monthly * i
            points.append(
                ProjectionPoint(
                    month=date(year, month, 1).strftime("%b %y"),
                    projected=max(0.0, budget * i - projected_spending),
                )
            )
        return points


default_analyzer = FinanceAnalyzer()


def analyze_expenses(
    transactions: Optional[Iterable[Any]],
    monthly_budget: Any,
    now: Optional[datetime | date] = None,
) -> AnalysisResult:
    return default_analyzer.analyze(transactions, monthly_budget, now=now)


def predict_future_savings(
    transactions: Optional[Iterable[Any]],
    monthly_budget: Any,
    horizon_months: Any,
    now: Optional[datetime | date] = None,
) -> List[ProjectionPoint]:
    return default_analyzer.project_savings(transactions, monthly_budget, horizon_months, now=now)
