"""
HTTP routes for the crop-yield backend.

``router`` carries the mutation/query surface used by the web client and is
mounted under the API prefix. ``webhook_router`` carries the Clerk webhook
at its fixed path.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from cropyield.db import DbClient, FeedbackRecord, PredictionRecord
from cropyield.dependencies import get_db_client, get_webhook_verifier
from cropyield.errors import (
    ConfigurationError,
    DownstreamError,
    MissingHeaders,
    VerificationError,
)
from cropyield.schemas import (
    AddPredictionRequest,
    CreatedResponse,
    FeedbackResponse,
    PredictionResponse,
    SubmitFeedbackRequest,
    SyncUserRequest,
    SyncUserResponse,
    UserResponse,
)
from cropyield.users import sync_user
from cropyield.verification import WebhookVerifier
from cropyield.webhooks import handle_event

logger = logging.getLogger(__name__)

router = APIRouter()
webhook_router = APIRouter()


@router.post("/feedback", response_model=CreatedResponse)
def submit_feedback(
    payload: SubmitFeedbackRequest, db: DbClient = Depends(get_db_client)
):
    feedback_id = db.insert_feedback(
        FeedbackRecord(
            prediction_id=payload.prediction_id,
            user_id=payload.user_id,
            accuracy_rating=payload.accuracy_rating,
            comment=payload.comment,
            actual_yield=payload.actual_yield,
        )
    )
    return CreatedResponse(id=feedback_id)


@router.get(
    "/predictions/{prediction_id}/feedback", response_model=list[FeedbackResponse]
)
def get_feedback_by_prediction(
    prediction_id: str, db: DbClient = Depends(get_db_client)
):
    return [entry.as_dict() for entry in db.list_feedback_by_prediction(prediction_id)]


@router.post("/predictions", response_model=CreatedResponse)
def add_prediction(
    payload: AddPredictionRequest, db: DbClient = Depends(get_db_client)
):
    """
    Store a prediction as given. Date ordering is not checked.
    """
    prediction_id = db.insert_prediction(
        PredictionRecord(
            user_id=payload.user_id,
            crop_type=payload.crop_type,
            planting_date=payload.planting_date,
            yield_prediction=payload.yield_prediction,
            harvest_date=payload.harvest_date,
            prediction_data=payload.prediction_data,
        )
    )
    return CreatedResponse(id=prediction_id)


@router.get("/users/{user_id}/predictions", response_model=list[PredictionResponse])
def get_predictions_by_user(user_id: str, db: DbClient = Depends(get_db_client)):
    return [prediction.as_dict() for prediction in db.list_predictions_by_user(user_id)]


@router.post("/users/sync", response_model=SyncUserResponse)
def sync_user_route(payload: SyncUserRequest, db: DbClient = Depends(get_db_client)):
    user_id = sync_user(
        db,
        clerk_id=payload.clerk_id,
        email=payload.email,
        name=payload.name,
        username=payload.username,
        phone=payload.phone,
        location=payload.location,
        image=payload.image,
        role=payload.role,
    )
    return SyncUserResponse(id=user_id)


@router.get("/users", response_model=list[UserResponse])
def get_users(db: DbClient = Depends(get_db_client)):
    return [user.as_dict() for user in db.list_users()]


@router.get("/users/by-clerk-id/{clerk_id}", response_model=UserResponse)
def get_user_by_clerk_id(clerk_id: str, db: DbClient = Depends(get_db_client)):
    user = db.get_user_by_clerk_id(clerk_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user.as_dict()


@webhook_router.post("/clerk-webhook")
async def clerk_webhook(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    db: DbClient = Depends(get_db_client),
):
    """
    Receive Clerk webhooks (Svix-signed).

    200 for every authentic event, handled or not; 400 for missing headers
    or a failed verification; 500 when the user sync fails so Clerk retries.
    """
    # Raw body: the signature covers the exact bytes sent.
    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}

    try:
        event = verifier.verify(body, headers)
    except ConfigurationError as exc:
        logger.error("Webhook secret misconfigured: %s", exc)
        return PlainTextResponse("Webhook secret not configured", status_code=500)
    except MissingHeaders as exc:
        logger.warning("Rejected webhook: %s", exc)
        return PlainTextResponse("No svix headers found", status_code=400)
    except VerificationError as exc:
        logger.warning("Error verifying webhook: %s", exc)
        return PlainTextResponse("Error occurred", status_code=400)

    try:
        await run_in_threadpool(handle_event, event, db)
    except DownstreamError:
        logger.exception("Error creating user from webhook %s", headers.get("svix-id"))
        return PlainTextResponse("Error creating user", status_code=500)

    logger.info("Webhook %s processed: %s", headers.get("svix-id"), event.type)
    return PlainTextResponse("Webhook processed successfully", status_code=200)
