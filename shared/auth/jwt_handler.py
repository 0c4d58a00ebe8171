"""JWT verification for tokens issued by the EventHive auth service"""
from typing import Optional, Dict
from jose import JWTError, jwt
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def decode_token(token: str) -> Optional[Dict]:
    '''Decode and validate a JWT, None when invalid or expired'''
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.info(f'Rejected token: {e}')
        return None
