"""RevokedToken model — jti blocklist for logged-out sessions"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from snap_admin.database import Base


class RevokedToken(Base):
    """Stores revoked session token IDs (jti claims).

    ``POST /auth/logout`` inserts the presented token's jti here and
    ``SessionIssuer.verify`` consults the table on every request.
    expires_at mirrors the token's exp so old rows can be pruned.
    """

    __tablename__ = "revoked_tokens"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(36), unique=True, nullable=False, index=True)
    admin_id = Column(String(50), nullable=True)
    revoked_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
