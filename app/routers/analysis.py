"""
Analysis Router
Runs the expense analytics engine over the caller's expenses and budget
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from app.core.config import settings
from app.models.analysis import AnalysisPublic, AnalysisResponse, ProjectionPointPublic
from app.models.expense import AnalysisRequest
from app.utils.analyzer import FinanceAnalyzer
from app.utils.rate_limit import RateLimiter

router = APIRouter()
logger = logging.getLogger(__name__)

finance_analyzer = FinanceAnalyzer(
    currency_symbol=settings.CURRENCY_SYMBOL,
    micro_transaction_threshold=settings.MICRO_TRANSACTION_THRESHOLD,
)


def get_finance_analyzer() -> FinanceAnalyzer:
    return finance_analyzer


def enforce_rate_limit(request: Request, response: Response) -> None:
    """Count the request against the client's window; reject with 429 once it is used up"""
    limiter: RateLimiter = request.app.state.rate_limiter
    client_key = request.client.host if request.client else "unknown"
    result = limiter.hit(client_key)

    if not result.allowed:
        logger.warning(f"Rate limit exceeded for {client_key}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": "Too many requests, please try again later",
                "retryAfter": result.retry_after,
            },
            headers={"Retry-After": str(result.retry_after)},
        )

    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    response.headers["X-RateLimit-Reset"] = str(int(result.reset_at))


def resolve_budget(monthly_budget: Optional[float]) -> float:
    # Users who never set a budget are analyzed against the default one
    if not monthly_budget or monthly_budget <= 0:
        return settings.DEFAULT_MONTHLY_BUDGET
    return monthly_budget


def resolve_months(months: Optional[int]) -> int:
    if months is None:
        return settings.DEFAULT_PROJECTION_MONTHS
    if months > settings.MAX_PROJECTION_MONTHS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"months must not exceed {settings.MAX_PROJECTION_MONTHS}",
        )
    return months


@router.post(
    "/analysis",
    response_model=AnalysisResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
def run_analysis(
    payload: AnalysisRequest,
    analyzer: FinanceAnalyzer = Depends(get_finance_analyzer),
) -> AnalysisResponse:
    """
    Analyze the posted expenses: category insights, next-month prediction,
    recommendations, risk score and a savings projection over `months`.
    """
    budget = resolve_budget(payload.monthly_budget)
    months = resolve_months(payload.months)
    expenses = payload.expenses()
    logger.info(f"Running analysis over {len(expenses)} expenses, budget={budget}, months={months}")

    try:
        analysis = analyzer.analyze(expenses, budget)
        projection = analyzer.project_savings(expenses, budget, months)
    except Exception as e:
        logger.error(f"AI analysis failed: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="AI analysis failed")

    return AnalysisResponse(
        analysis=AnalysisPublic.model_validate(analysis.to_dict()),
        future_projection=[ProjectionPointPublic.model_validate(point.to_dict()) for point in projection],
    )


@router.post(
    "/projection",
    response_model=List[ProjectionPointPublic],
    dependencies=[Depends(enforce_rate_limit)],
)
def run_projection(
    payload: AnalysisRequest,
    analyzer: FinanceAnalyzer = Depends(get_finance_analyzer),
) -> List[ProjectionPointPublic]:
    budget = resolve_budget(payload.monthly_budget)
    months = resolve_months(payload.months)

    try:
        projection = analyzer.project_savings(payload.expenses(), budget, months)
    except Exception as e:
        logger.error(f"Savings projection failed: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Savings projection failed")

    return [ProjectionPointPublic.model_validate(point.to_dict()) for point in projection]
