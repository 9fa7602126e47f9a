from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.utils.analyzer import (
    FinanceAnalyzer,
    analyze_expenses,
    classify_trend,
    coerce_amount,
    parse_date,
    predict_future_savings,
)

NOW = datetime(2026, 10, 18, 12, 0)

food_and_transport = [
    {"id": "1", "category": "Food", "amount": 4000.0, "date": "2026-10-05"},
    {"id": "2", "category": "Transport", "amount": 1000.0, "date": "2026-10-06"},
]

# One rent payment per month from May to October
steady_rent = [
    {"id": f"rent-{month}", "category": "Rent", "amount": 1000.0, "date": f"2026-{month:02d}-05"}
    for month in range(5, 11)
]

growing_transport = [
    {"id": "1", "category": "Food", "amount": 3900.0, "date": "2026-08-10"},
    {"id": "2", "category": "Transport", "amount": 100.0, "date": "2026-08-12"},
    {"id": "3", "category": "Transport", "amount": 900.0, "date": "2026-10-02"},
]

malformed = [
    {"category": "", "amount": "250.5", "date": "2026-10-02"},
    {"category": None, "amount": "abc", "date": "not-a-date"},
    {"category": "Food", "amount": None, "date": None},
    {"category": "Food", "amount": 100, "date": "2026-10-03T10:00:00Z"},
]


@pytest.fixture
def analyzer():
    return FinanceAnalyzer(clock=lambda: NOW)


def titles(result):
    return [rec.title for rec in result.recommendations]


def test_empty_transactions(analyzer):
    result = analyzer.analyze([], 10000)
    assert result.insights == []
    assert result.recommendations == []
    assert len(result.predictions) == 1
    assert result.predictions[0].next_month_spending == 0
    assert result.predictions[0].confidence == 0
    assert result.predictions[0].trend == "stable"
    assert result.risk_score == 0
    assert "Add expenses" in result.summary

    assert analyzer.analyze(None, 10000).risk_score == 0
    assert analyzer.project_savings([], 10000, 6) == []


def test_category_percentages(analyzer):
    result = analyzer.analyze(food_and_transport, 10000)
    shares = {i.category: i.percentage for i in result.insights}
    assert shares["Food"] == pytest.approx(80.0)
    assert shares["Transport"] == pytest.approx(20.0)
    assert [i.category for i in result.insights] == ["Food", "Transport"]


def test_high_spend_recommendation(analyzer):
    result = analyzer.analyze(food_and_transport, 10000)
    assert titles(result) == ["Reduce High-Spending Categories"]
    rec = result.recommendations[0]
    assert rec.priority == "high"
    assert rec.potential_savings == pytest.approx(400.0)
    assert "(Food)" in rec.description
    assert "80.0%" in rec.description


def test_risk_without_budget_pressure(analyzer):
    # Everything lands in the current month, so only the volatility flag fires
    result = analyzer.analyze(food_and_transport, 10000)
    assert all(i.trend == "stable" for i in result.insights)
    assert result.risk_score == 20
    assert "stable" in result.summary
    assert "₹5000 across 2 categories" in result.summary


def test_prediction_single_month(analyzer):
    prediction = analyzer.analyze(food_and_transport, 10000).predictions[0]
    assert prediction.next_month_spending == pytest.approx(5000 / 6)
    assert prediction.confidence == 0.5
    assert prediction.trend == "increasing"


def test_prediction_full_history(analyzer):
    result = analyzer.analyze(steady_rent, 5000)
    prediction = result.predictions[0]
    assert prediction.next_month_spending == pytest.approx(1000.0)
    assert prediction.confidence == pytest.approx(0.9)
    assert prediction.trend == "stable"


def test_micro_transactions(analyzer):
    amounts = [100.0, 200.0, 300.0, 400.0] + [1000.0] * 6
    expenses = [
        {"id": str(n), "category": "Shopping", "amount": amount, "date": "2026-10-01"}
        for n, amount in enumerate(amounts)
    ]
    result = analyzer.analyze(expenses, 100000)
    micro = [rec for rec in result.recommendations if rec.title == "Monitor Micro-Transactions"]
    assert len(micro) == 1
    assert micro[0].priority == "medium"
    assert micro[0].potential_savings == pytest.approx(150.0)
    assert micro[0].description.startswith("40% of your transactions are small (< ₹500)")


def test_micro_transactions_below_threshold(analyzer):
    expenses = [{"category": "Shopping", "amount": 1000.0, "date": "2026-10-01"} for _ in range(7)]
    expenses += [{"category": "Shopping", "amount": 50.0, "date": "2026-10-01"} for _ in range(3)]
    assert "Monitor Micro-Transactions" not in titles(analyzer.analyze(expenses, 100000))


def test_budget_critical(analyzer):
    result = analyzer.analyze(steady_rent, 1000)
    assert titles(result) == ["Reduce High-Spending Categories", "Current Spending Exceeds Target"]
    critical = result.recommendations[1]
    assert critical.priority == "high"
    assert critical.potential_savings == pytest.approx(0.0)
    assert "₹1000" in critical.description
    assert result.recommendations[0].potential_savings == pytest.approx(600.0)
    assert result.risk_score == 40


def test_budget_warning(analyzer):
    expenses = [dict(exp, amount=800.0) for exp in steady_rent]
    result = analyzer.analyze(expenses, 1000)
    warning = [rec for rec in result.recommendations if rec.title == "Budget Utilization Alert"]
    assert len(warning) == 1
    assert warning[0].priority == "medium"
    assert warning[0].potential_savings == pytest.approx(200.0)
    assert result.risk_score == 25


def test_growing_category(analyzer):
    result = analyzer.analyze(growing_transport, 50000)
    insights = {i.category: i for i in result.insights}
    assert insights["Transport"].trend == "up"
    assert insights["Food"].trend == "down"
    assert "trending downward" in insights["Food"].advice
    assert "upward trend" in insights["Transport"].advice
    assert "well-controlled at 20.4%" in insights["Transport"].advice

    growing = [rec for rec in result.recommendations if rec.title == "Address Growing Category"]
    assert len(growing) == 1
    assert growing[0].potential_savings == pytest.approx(150.0)
    assert growing[0].description.startswith("Transport")


def test_advice_tiers(analyzer):
    expenses = [
        {"category": "Rent", "amount": 450.0, "date": "2026-10-01"},
        {"category": "Food", "amount": 300.0, "date": "2026-10-01"},
        {"category": "Fun", "amount": 250.0, "date": "2026-10-01"},
    ]
    advice = {i.category: i.advice for i in analyzer.analyze(expenses, 100000).insights}
    assert "consuming over 40%" in advice["Rent"]
    assert "significant expense category" in advice["Food"]
    assert advice["Fun"] == "Fun spending is well-controlled at 25.0%."


def test_percentages_sum_to_hundred(analyzer):
    result = analyzer.analyze(growing_transport + food_and_transport + malformed, 20000)
    assert sum(i.percentage for i in result.insights) == pytest.approx(100.0)
    assert all(0 <= i.percentage <= 100 for i in result.insights)
    shares = [i.percentage for i in result.insights]
    assert shares == sorted(shares, reverse=True)


def test_risk_score_is_clamped(analyzer):
    expenses = []
    for n in range(8):
        expenses.append({"category": f"Cat{n}", "amount": 10.0, "date": "2026-08-05"})
        expenses.append({"category": f"Cat{n}", "amount": 100.0, "date": "2026-10-05"})
    result = analyzer.analyze(expenses, 100)
    assert all(i.trend == "up" for i in result.insights)
    assert result.risk_score == 100
    assert "your financial health is at risk" in result.summary
    assert "₹100 budget" in result.summary


def test_trend_boundaries():
    assert classify_trend([100, 111, 111]) == "up"
    assert classify_trend([100, 109, 109]) == "stable"
    assert classify_trend([100, 89, 89]) == "down"
    assert classify_trend([100]) == "stable"
    assert classify_trend([0, 50, 50]) == "stable"
    assert classify_trend([50, 50]) == "stable"


def test_calculate_trend(analyzer):
    expenses = [
        {"category": "Food", "amount": 100.0, "date": "2026-08-10"},
        {"category": "Food", "amount": 200.0, "date": "2026-09-10"},
        {"category": "Food", "amount": 200.0, "date": "2026-10-10"},
        {"category": "Travel", "amount": 500.0, "date": "2026-10-10"},
    ]
    assert analyzer.calculate_trend(expenses, "Food") == "up"
    assert analyzer.calculate_trend(expenses, "Travel") == "stable"
    assert analyzer.calculate_trend(expenses, "Food", months=1) == "stable"
    # A month later August drops out of the window
    assert analyzer.calculate_trend(expenses, "Food", now=date(2026, 11, 2)) == "down"


def test_malformed_input_degrades(analyzer):
    stats = analyzer.category_stats(malformed)
    assert stats["Other"].total == pytest.approx(250.5)
    assert stats["Other"].count == 2
    assert stats["Other"].dates == [date(2026, 10, 2)]
    assert stats["Food"].total == pytest.approx(100.0)
    assert stats["Food"].count == 2
    assert stats["Food"].dates == [date(2026, 10, 3)]

    totals = analyzer.monthly_totals(malformed)
    assert len(totals) == 6
    assert totals[-1] == pytest.approx(350.5)

    result = analyzer.analyze(malformed, "not a budget")
    assert 0 <= result.risk_score <= 100


def test_old_expenses_only_count_in_totals(analyzer):
    expenses = [
        {"category": "Travel", "amount": 9000.0, "date": "2025-01-01"},
        {"category": "Food", "amount": 1000.0, "date": "2026-10-01"},
    ]
    assert sum(analyzer.monthly_totals(expenses)) == pytest.approx(1000.0)
    result = analyzer.analyze(expenses, 50000)
    assert result.insights[0].category == "Travel"
    assert result.insights[0].percentage == pytest.approx(90.0)
    assert result.predictions[0].next_month_spending == pytest.approx(1000 / 6)


def test_attribute_objects(analyzer):
    expenses = [
        SimpleNamespace(id="a", category="Food", amount=Decimal("40.5"), date=date(2026, 10, 1)),
        SimpleNamespace(id="b", category="Bills", amount=59.5, date=datetime(2026, 10, 2, 9, 30)),
    ]
    stats = analyzer.category_stats(expenses)
    assert stats["Food"].total == pytest.approx(40.5)
    assert stats["Bills"].dates == [date(2026, 10, 2)]


def test_analysis_is_repeatable(analyzer):
    first = analyzer.analyze(growing_transport, 5000)
    second = analyzer.analyze(growing_transport, 5000)
    assert first.to_dict() == second.to_dict()


def test_projection(analyzer):
    points = analyzer.project_savings(steady_rent, 1500, 3)
    assert [p.month for p in points] == ["Oct 26", "Nov 26", "Dec 26", "Jan 27"]
    assert [p.projected for p in points] == pytest.approx([0.0, 500.0, 1000.0, 1500.0])


def test_projection_never_negative(analyzer):
    points = analyzer.project_savings(steady_rent, 500, 12)
    assert len(points) == 13
    assert all(p.projected == 0 for p in points)


def test_projection_horizon_edge_cases(analyzer):
    assert len(analyzer.project_savings(steady_rent, 1500, 0)) == 1
    assert len(analyzer.project_savings(steady_rent, 1500, -2)) == 1
    assert len(analyzer.project_savings(steady_rent, 1500, "soon")) == 1
    assert len(analyzer.project_savings(steady_rent, 1500, float("inf"))) == 1
    assert len(analyzer.project_savings(steady_rent, 1500, float("nan"))) == 1
    assert len(analyzer.project_savings(steady_rent, 1500, 2.7)) == 3


def test_projection_stops_at_last_representable_month(analyzer):
    points = analyzer.project_savings(steady_rent, 1500, 100000)
    assert points[-1].month == "Dec 99"
    # October 2026 through December 9999
    assert len(points) == (9999 - 2026) * 12 + 3


def test_module_level_helpers():
    result = analyze_expenses(food_and_transport, 10000, now=NOW)
    assert result.risk_score == 20
    points = predict_future_savings(steady_rent, 1500, 2, now=NOW)
    assert len(points) == 3


def test_coerce_amount():
    assert coerce_amount("12.5") == 12.5
    assert coerce_amount(" 7 ") == 7.0
    assert coerce_amount("abc") == 0
    assert coerce_amount(None) == 0
    assert coerce_amount(True) == 0
    assert coerce_amount(Decimal("3.5")) == 3.5
    assert coerce_amount(float("nan")) == 0
    assert coerce_amount(10**400) == 0
    assert coerce_amount("1e400") == 0
    assert coerce_amount(Decimal("1e400")) == 0


def test_coerce_amount_reads_leading_number():
    assert coerce_amount("12abc") == 12.0
    assert coerce_amount("1,200") == 1.0
    assert coerce_amount("-3.5kg") == -3.5
    assert coerce_amount(".5") == 0.5
    assert coerce_amount("$12") == 0


def test_oversized_amount_does_not_raise(analyzer):
    expenses = [
        {"category": "Food", "amount": 10**400, "date": "2026-10-01"},
        {"category": "Food", "amount": 100.0, "date": "2026-10-02"},
    ]
    stats = analyzer.category_stats(expenses)
    assert stats["Food"].total == pytest.approx(100.0)
    assert stats["Food"].count == 2
    assert analyzer.analyze(expenses, 1000).insights[0].percentage == pytest.approx(100.0)


def test_parse_date():
    assert parse_date("2026-10-18") == date(2026, 10, 18)
    assert parse_date("2026-10-18T05:00:00Z") == date(2026, 10, 18)
    assert parse_date(datetime(2026, 1, 2, 3, 4)) == date(2026, 1, 2)
    assert parse_date(0) == date(1970, 1, 1)
    assert parse_date("garbage") is None
    assert parse_date("") is None
    assert parse_date(None) is None
