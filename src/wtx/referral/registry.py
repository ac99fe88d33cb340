"""Referral code registry: one immutable code per investor."""

import secrets
from typing import Callable
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wtx.logging_config import get_logger
from wtx.referral.exceptions import InvestorNotFound, ReferralError
from wtx.referral.models import ReferralCode
from wtx.settings import settings
from wtx.storage.db import Database, db
from wtx.storage.models import Investor

logger = get_logger(__name__)

# Uppercase letters and digits without the look-alikes 0, O, 1, I, L
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
MAX_GENERATION_ATTEMPTS = 10


def generate_code(length: int | None = None) -> str:
    """Generate a random, readable referral code.

    Format: ABC12XYZ (settings.referral_code_length chars)
    """
    length = length or settings.referral_code_length
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def build_link(code: str, origin: str | None = None) -> str:
    """Affiliate link for a code: <origin>?ref=<code>."""
    origin = (origin or settings.public_origin).rstrip("?")
    separator = "&" if "?" in origin else "?"
    return f"{origin}{separator}{urlencode({'ref': code})}"


class ReferralCodeRegistry:
    """Issues and resolves referral codes."""

    def __init__(
        self,
        database: Database | None = None,
        code_factory: Callable[[], str] | None = None,
    ):
        self.db = database or db
        self.code_factory = code_factory or generate_code
        self.logger = get_logger(__name__)

    def get_or_create_code(self, investor_id: int) -> ReferralCode:
        """Get existing referral code or create new one for investor.

        Args:
            investor_id: Investor ID (positive integer)

        Returns:
            ReferralCode object

        Raises:
            ValueError: investor_id is not a positive integer
            InvestorNotFound: no such investor
            ReferralError: no free code after MAX_GENERATION_ATTEMPTS
        """
        if isinstance(investor_id, bool) or not isinstance(investor_id, int) or investor_id <= 0:
            raise ValueError(f"investor_id must be a positive integer, got {investor_id!r}")

        existing = self._find_by_investor(investor_id)
        if existing:
            return existing

        try:
            with self.db.session() as session:
                if session.get(Investor, investor_id) is None:
                    raise InvestorNotFound(f"Investor {investor_id} not found")

                code = self._free_code(session)
                referral_code = ReferralCode(investor_id=investor_id, code=code, clicks=0)
                session.add(referral_code)
                session.flush()
        except IntegrityError:
            # Lost a race with another request issuing this investor's code
            winner = self._find_by_investor(investor_id)
            if winner is None:
                raise
            self.logger.info("referral_code_race_resolved", investor_id=investor_id, code=winner.code)
            return winner

        self.logger.info(
            "referral_code_created",
            investor_id=investor_id,
            code=referral_code.code,
        )
        return referral_code

    def _find_by_investor(self, investor_id: int) -> ReferralCode | None:
        with self.db.session() as session:
            return session.scalars(
                select(ReferralCode).where(ReferralCode.investor_id == investor_id)
            ).first()

    def _free_code(self, session: Session) -> str:
        for _ in range(MAX_GENERATION_ATTEMPTS):
            code = normalize_code(self.code_factory())
            taken = session.scalars(
                select(ReferralCode.id).where(ReferralCode.code == code)
            ).first()
            if taken is None:
                return code
            self.logger.debug("referral_code_collision", code=code)
        raise ReferralError("Could not generate a unique referral code")

    def find(self, session: Session, code: str | None) -> ReferralCode | None:
        """Resolve a code to its row inside the caller's session.

        Args:
            session: Open session the row is loaded into
            code: Referral code, any case, surrounding whitespace ignored

        Returns:
            ReferralCode if valid, None otherwise
        """
        code = normalize_code(code)
        if not code:
            return None
        return session.scalars(
            select(ReferralCode).where(ReferralCode.code == code)
        ).first()

    def lookup(self, code: str | None) -> ReferralCode | None:
        with self.db.session() as session:
            return self.find(session, code)

    def link_for(self, investor_id: int) -> str:
        return build_link(self.get_or_create_code(investor_id).code)
