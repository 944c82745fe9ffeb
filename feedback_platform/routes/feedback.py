import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from feedback_platform.dependencies.services import (
    get_feedback_service,
    get_ledger_appender,
    get_price_overview_calculator,
)
from feedback_platform.schemas.company import Company
from feedback_platform.schemas.feedback import (
    FeedbackRecord,
    FeedbackSubmission,
    LedgerView,
    PriceOverview,
    SubmissionResponse,
    SubmissionWarning,
)
from feedback_platform.services import FeedbackIngestionService, LedgerAppender, PriceOverviewCalculator
from feedback_platform.services.exceptions import ErrorKind, ServiceError
from feedback_platform.services.results import FeedbackError

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.DEPENDENCY_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.LEDGER_CONTENTION: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.FOLLOW_UP_PUBLISH: status.HTTP_502_BAD_GATEWAY,
}


def error_response(error: FeedbackError, status_code: Optional[int] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or _STATUS_BY_KIND[error.kind],
        content={"error": error.message, "kind": error.kind.value, "code": error.code},
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report unparseable request data like any other validation failure."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    if first.get("type") == "json_invalid":
        message = "Invalid JSON format"
    elif not location and first.get("type") == "missing":
        message = "Request body is required"
    else:
        message = f"{'.'.join(location) or 'request'}: {first.get('msg', 'invalid value')}"
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, message)
    return error_response(
        FeedbackError(kind=ErrorKind.VALIDATION, message=message, code="invalid_request"),
        status.HTTP_400_BAD_REQUEST,
    )


@router.post("/feedback", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    req: FeedbackSubmission,
    service: FeedbackIngestionService = Depends(get_feedback_service),
):
    result = await service.submit(req)
    if result.error is not None:
        # The company id arrives in the body, so an unknown company is a bad request here.
        if result.error.kind is ErrorKind.NOT_FOUND:
            return error_response(result.error, status.HTTP_400_BAD_REQUEST)
        return error_response(result.error)
    return SubmissionResponse(
        feedback=result.record,
        warnings=[SubmissionWarning(kind=w.kind.value, message=w.message) for w in result.warnings],
    )


@router.get("/feedback/{company_id}/{feedback_id}", response_model=FeedbackRecord)
async def get_feedback(
    company_id: int,
    feedback_id: str,
    service: FeedbackIngestionService = Depends(get_feedback_service),
):
    try:
        record = await service.get_feedback(feedback_id, company_id)
    except ServiceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if record is None:
        raise HTTPException(status_code=404, detail=f"Feedback {feedback_id} not found")
    return record


@router.get("/price-overview/{company_id}", response_model=PriceOverview)
async def get_price_overview(
    company_id: int,
    calculator: PriceOverviewCalculator = Depends(get_price_overview_calculator),
):
    result = await calculator.overview(company_id)
    if result.error is not None:
        return error_response(result.error)
    return result.overview


@router.get("/ledger/{company_id}", response_model=LedgerView)
async def get_ledger(
    company_id: int,
    appender: LedgerAppender = Depends(get_ledger_appender),
):
    try:
        return await appender.view(company_id)
    except ServiceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/companies", response_model=List[Company])
async def list_companies(service: FeedbackIngestionService = Depends(get_feedback_service)):
    try:
        return await service.list_companies()
    except ServiceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
