"""
Card generation endpoint (generation gateway).
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from cardgate.core.auth import require_access_key
from cardgate.core.config import settings
from cardgate.core.database import get_db
from cardgate.core.exceptions import AccessDeniedError, CardGenerationError, StoreUnavailableError
from cardgate.schemas.generation import CardGenerationRequest
from cardgate.services.card_generator import CardGenerator, get_card_generator
from cardgate.services.key_verifier import rejection_message
from cardgate.services.redemption import redeem
from cardgate.services.usage_accountant import client_origin

logger = logging.getLogger(__name__)

router = APIRouter()


# Plain def: generation blocks on the OpenAI call, so FastAPI runs it in the threadpool
@router.post("/generate-card")
def generate_card(
    payload: CardGenerationRequest,
    request: Request,
    code: str = Depends(require_access_key),
    db: Session = Depends(get_db),
    generator: CardGenerator = Depends(get_card_generator),
):
    """
    Generate one content card, consuming one use of the caller's access key.

    Failed generations are logged against the key but do not consume quota.
    """
    origin = client_origin(request)

    try:
        return redeem(
            db,
            code=code,
            origin=origin,
            request_text=payload.input_text,
            generate=generator.generate,
        )
    except AccessDeniedError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=rejection_message(e),
            headers=e.headers,
        )
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
            headers=e.headers,
        )
    except CardGenerationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Card generation failed: {e.message}" if settings.DEBUG else "Card generation failed",
            headers=e.headers,
        )
