"""Webhook API routes for settlement provider notifications."""

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status

from src.api.deps import Webhooks
from src.services.lifecycle_worker import get_lifecycle_workers
from src.services.webhook_service import (
    WebhookAuthError,
    WebhookConfigError,
    WebhookOutcome,
    WebhookPayloadError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/mural",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Handle Mural webhooks",
    description="Receives balance activity events. Requires a valid signature when a public key is configured.",
    responses={
        400: {"description": "Malformed event body"},
        401: {"description": "Missing or invalid signature"},
    },
)
async def mural_webhook(request: Request, service: Webhooks) -> Response:
    """Handle Mural webhook deliveries.

    Credits to the settlement account mark the best matching pending order
    paid and queue its lifecycle so the payout proceeds. Every accepted
    delivery, matched or not, is acknowledged with 204.

    Raises:
        HTTPException: 401 on a bad signature, 400 on a malformed body.
    """
    # Signature covers the raw bytes
    payload = await request.body()

    try:
        result = await service.handle(payload, request.headers)
    except WebhookAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        ) from e
    except WebhookPayloadError as e:
        logger.warning("Malformed webhook body: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook body",
        ) from e
    except WebhookConfigError as e:
        logger.error("Webhook verification misconfigured: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook verification misconfigured",
        ) from e

    if result.outcome == WebhookOutcome.MATCHED and result.order_id:
        get_lifecycle_workers().enqueue(result.order_id)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
