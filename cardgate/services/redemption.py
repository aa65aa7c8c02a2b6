"""
Redeem one use of an access key for one generation request.

verify -> generate -> record, strictly in that order within a request.

Verification and the later increment are separate statements, so concurrent
redemptions of the last remaining use can both be admitted and both counted.
Generation cannot run inside a transaction, so this over-run is accepted.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from cardgate.core.exceptions import CardGenerationError
from cardgate.services.key_verifier import verify_access_key
from cardgate.services.usage_accountant import record_usage

logger = logging.getLogger(__name__)


def redeem(
    db: Session,
    code: Optional[str],
    origin: str,
    request_text: str,
    generate: Callable[[str], Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Verify the key, run the generation and account for it exactly once.

    Raises:
        AccessDeniedError: Verification rejected the key (nothing recorded)
        StoreUnavailableError: The key store failed during verification
        CardGenerationError: Generation failed (recorded as a failed attempt)
    """
    key = verify_access_key(db, code, now=now)
    key_id = key.id

    try:
        result = generate(request_text)
    except Exception as e:
        error_msg = e.message if isinstance(e, CardGenerationError) else str(e) or type(e).__name__
        logger.error(f"Generation failed for key id={key_id}: {error_msg}")
        record_usage(db, key_id, origin, request_text, success=False, error_msg=error_msg)
        if isinstance(e, CardGenerationError):
            raise
        raise CardGenerationError(error_msg) from e

    record_usage(db, key_id, origin, request_text, success=True)
    return result
