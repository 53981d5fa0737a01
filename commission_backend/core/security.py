import hmac
import logging
import os
from typing import Optional

import firebase_admin
from fastapi import HTTPException, status
from firebase_admin import auth, credentials
from firebase_admin.auth import InvalidIdTokenError, ExpiredIdTokenError, RevokedIdTokenError

from commission_backend.core.config import settings
from commission_backend.schemas.user_schema import TokenData

logger = logging.getLogger(__name__)

def get_firebase_app() -> firebase_admin.App:
    """Default Firebase app, created from the service account key on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        logger.debug("No default Firebase app yet; initialising one.")

    cred_path = settings.GOOGLE_APPLICATION_CREDENTIALS
    if not cred_path or not os.path.isfile(cred_path):
        raise RuntimeError(f"Firebase service account key not found (GOOGLE_APPLICATION_CREDENTIALS={cred_path!r}).")
    app = firebase_admin.initialize_app(credentials.Certificate(cred_path))
    logger.info(f"Firebase Admin SDK initialised for project {app.project_id}.")
    return app

def verify_firebase_id_token(id_token: str) -> TokenData:
    """
    Verifies a Firebase ID token and extracts user information.

    Raises:
        HTTPException:
            - 401 UNAUTHORIZED if the token is invalid, expired, revoked or lacks uid/email.
            - 500 INTERNAL_SERVER_ERROR for other Firebase Admin SDK errors.
    """
    try:
        get_firebase_app()

        decoded_token = auth.verify_id_token(id_token)

        firebase_uid = decoded_token.get("uid")
        email = decoded_token.get("email")

        if not firebase_uid or not email:
            logger.warning("Firebase ID token is missing 'uid' or 'email' claims.")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials: Missing essential token claims.",
            )

        logger.info(f"Firebase ID token verified successfully for UID: {firebase_uid}")
        return TokenData(firebase_uid=firebase_uid, email=email)

    except HTTPException:
        raise
    except (InvalidIdTokenError, ExpiredIdTokenError, RevokedIdTokenError) as e:
        logger.warning(f"Firebase ID token verification failed: {e}")
        detail_message = "Invalid or expired authentication token."
        if isinstance(e, ExpiredIdTokenError):
            detail_message = "Authentication token has expired. Please log in again."
        elif isinstance(e, RevokedIdTokenError):
            detail_message = "Authentication token has been revoked. Please log in again."

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail_message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception as e:
        logger.error(f"An unexpected error occurred during Firebase ID token verification: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not verify authentication token due to a server error.",
            headers={"WWW-Authenticate": "Bearer"},
        )


def verify_shared_secret(presented: Optional[str], expected: Optional[str]) -> None:
    """
    Checks a `Bearer <secret>` header against the configured shared secret.
    500 when the server has no secret configured, 401 on mismatch.
    """
    if not expected:
        logger.error("Shared secret for scheduled jobs is not configured.")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Cron secret not configured.",
        )
    if not presented or not hmac.compare_digest(presented.encode(), f"Bearer {expected}".encode()):
        logger.warning("Unauthorized scheduled job trigger attempt.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
