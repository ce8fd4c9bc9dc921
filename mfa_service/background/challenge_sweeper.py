"""
Challenge Sweeper
Background task that periodically deletes expired, unverified MFA challenges
"""

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from mfa_service.core.config import settings
from mfa_service.services.challenge_service import ChallengeService

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 300


class ChallengeSweeper:
    """
    Background worker that removes stale challenges.

    Each cycle opens its own session, so a failed cycle never leaves a
    request session in a broken state.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.interval = interval_seconds or settings.MFA_CHALLENGE_SWEEP_INTERVAL_SECONDS

        self.running = False
        self.task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the sweeper."""
        if self.running:
            logger.warning("Challenge sweeper is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run_loop())
        logger.info(f"Challenge sweeper started (interval={self.interval}s)")

    async def stop(self):
        """Stop the sweeper."""
        if not self.running:
            return

        self.running = False

        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass

        logger.info("Challenge sweeper stopped")

    def sweep_once(self) -> int:
        """Run one sweep in a fresh session"""
        db = self.session_factory()
        try:
            return ChallengeService(db).sweep_expired()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _run_loop(self):
        """Main sweep loop."""
        failures = 0

        while self.running:
            try:
                await asyncio.to_thread(self.sweep_once)
                failures = 0
                await asyncio.sleep(self.interval)

            except asyncio.CancelledError:
                logger.info("Challenge sweep loop cancelled")
                break
            except Exception as e:
                failures += 1
                logger.error(f"Error in challenge sweep loop: {e}", exc_info=True)
                # Exponential backoff on error, capped below the sweep interval
                await asyncio.sleep(min(MAX_BACKOFF_SECONDS, self.interval, 2 ** failures))
