"""
Service dependencies.

Every handler receives its service through `Depends`. Services are built per
request from the database handle owned by `db_manager`; tests replace
`get_database` (and `get_payment_bridge`) through `app.dependency_overrides`.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from clubsphere.database import db_manager
from clubsphere.services.account_service import AccountService
from clubsphere.services.admin_service import AdminService
from clubsphere.services.auth_service import AuthService
from clubsphere.services.catalog_service import CatalogService
from clubsphere.services.club_deletion_service import ClubDeletionService
from clubsphere.services.club_management_service import ClubManagementService
from clubsphere.services.enrollment_service import EnrollmentService
from clubsphere.services.member_service import MemberService
from clubsphere.services.payment_bridge import PaymentBridge, RazorpayPaymentBridge


def get_database() -> AsyncIOMotorDatabase:
    if db_manager.database is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable")
    return db_manager.database


def get_transactions_supported() -> bool:
    return bool(db_manager.transactions_supported)


@lru_cache(maxsize=1)
def get_payment_bridge() -> PaymentBridge:
    return RazorpayPaymentBridge()


def get_auth_service(database: AsyncIOMotorDatabase = Depends(get_database)) -> AuthService:
    return AuthService(database)


def get_catalog_service(database: AsyncIOMotorDatabase = Depends(get_database)) -> CatalogService:
    return CatalogService(database)


def get_member_service(database: AsyncIOMotorDatabase = Depends(get_database)) -> MemberService:
    return MemberService(database)


def get_management_service(database: AsyncIOMotorDatabase = Depends(get_database)) -> ClubManagementService:
    return ClubManagementService(database)


def get_account_service(database: AsyncIOMotorDatabase = Depends(get_database)) -> AccountService:
    return AccountService(database)


def get_admin_service(database: AsyncIOMotorDatabase = Depends(get_database)) -> AdminService:
    return AdminService(database)


def get_enrollment_service(
    database: AsyncIOMotorDatabase = Depends(get_database),
    bridge: PaymentBridge = Depends(get_payment_bridge),
) -> EnrollmentService:
    return EnrollmentService(database, bridge=bridge)


def get_deletion_service(
    database: AsyncIOMotorDatabase = Depends(get_database),
    transactions_supported: bool = Depends(get_transactions_supported),
) -> ClubDeletionService:
    return ClubDeletionService(database, transactions_supported=transactions_supported)
