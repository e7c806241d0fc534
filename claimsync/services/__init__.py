"""
Trigger Pipeline Services Package.

The ``create_services()`` factory wires every repository and service
together, returning a typed dict that the entry point (and tests) can
consume without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from claimsync.config import AppConfig
from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger, get_logger
from claimsync.repositories.claims_repository import ClaimsRepository
from claimsync.repositories.event_repository import EventRepository
from claimsync.repositories.metadata_repository import MetadataRepository
from claimsync.repositories.user_repository import UserRepository
from claimsync.services.claims_reader import ClaimsReaderService
from claimsync.services.deletion_trigger import DeletionTriggerService
from claimsync.services.dispatcher import TriggerDispatcher
from claimsync.services.event_worker import EventWorkerService
from claimsync.services.profile_admin import ProfileAdminService
from claimsync.services.reconciliation import ReconciliationService
from claimsync.services.role_change_trigger import RoleChangeTriggerService
from claimsync.services.signup_trigger import SignupTriggerService
from claimsync.services.user_counter import UserCounterService
from claimsync.session import SessionManager


class ServiceContainer(TypedDict):
    """Typed container for all pipeline services."""

    # --- Triggers ---
    user_counter_service: UserCounterService
    signup_trigger: SignupTriggerService
    role_change_trigger: RoleChangeTriggerService
    deletion_trigger: DeletionTriggerService

    # --- Delivery ---
    event_repository: EventRepository
    dispatcher: TriggerDispatcher
    event_worker: EventWorkerService

    # --- Administration & consumers ---
    reconciliation_service: ReconciliationService
    profile_admin_service: ProfileAdminService
    claims_reader_service: ClaimsReaderService


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    session: Optional[SessionManager] = None,
    claims_repo: Optional[ClaimsRepository] = None,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.

    Args:
        db: Initialised DatabaseManager with the schema in place.
        config: Application configuration.
        session: Client session for the claims reader (a fresh one if
            omitted).
        claims_repo: Overrides the Supabase-backed claims repository.
        logger: Shared logger (``get_logger("services")`` if omitted).
    """
    logger = logger or get_logger("services")

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    user_repo = UserRepository(db=db, logger=logger)
    metadata_repo = MetadataRepository(db=db, logger=logger)
    event_repo = EventRepository(db=db, logger=logger)
    claims_repo = claims_repo or ClaimsRepository(db=db, logger=logger)

    # ------------------------------------------------------------------
    # 2. Triggers
    # ------------------------------------------------------------------
    user_counter_service = UserCounterService(
        db=db,
        repo=metadata_repo,
        config=config,
        logger=logger,
    )
    signup_trigger = SignupTriggerService(
        db=db,
        counter=user_counter_service,
        user_repo=user_repo,
        claims_repo=claims_repo,
        config=config,
        logger=logger,
    )
    role_change_trigger = RoleChangeTriggerService(
        db=db,
        claims_repo=claims_repo,
        logger=logger,
    )
    deletion_trigger = DeletionTriggerService(
        db=db,
        user_repo=user_repo,
        counter=user_counter_service,
        logger=logger,
    )

    # ------------------------------------------------------------------
    # 3. Delivery (inbox -> dispatcher -> triggers)
    # ------------------------------------------------------------------
    dispatcher = TriggerDispatcher(
        signup=signup_trigger,
        role_change=role_change_trigger,
        deletion=deletion_trigger,
        events=event_repo,
        logger=logger,
    )
    event_worker = EventWorkerService(
        events=event_repo,
        dispatcher=dispatcher,
        config=config,
        logger=logger,
    )

    # ------------------------------------------------------------------
    # 4. Administration & consumers
    # ------------------------------------------------------------------
    reconciliation_service = ReconciliationService(
        db=db,
        user_repo=user_repo,
        metadata_repo=metadata_repo,
        claims_repo=claims_repo,
        logger=logger,
    )
    profile_admin_service = ProfileAdminService(
        db=db,
        user_repo=user_repo,
        events=event_repo,
        logger=logger,
    )
    claims_reader_service = ClaimsReaderService(
        db=db,
        session=session or SessionManager(),
        logger=logger,
    )

    return ServiceContainer(
        user_counter_service=user_counter_service,
        signup_trigger=signup_trigger,
        role_change_trigger=role_change_trigger,
        deletion_trigger=deletion_trigger,
        event_repository=event_repo,
        dispatcher=dispatcher,
        event_worker=event_worker,
        reconciliation_service=reconciliation_service,
        profile_admin_service=profile_admin_service,
        claims_reader_service=claims_reader_service,
    )
