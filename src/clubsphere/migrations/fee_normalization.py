"""
Fee Normalization Migration.

Rewrites legacy fee fields so every club and event stores its fee in major currency
units with `feeUnit: "major"`.

Collections affected:
- clubs (untagged `fee` held minor units: 500 -> 5.00)
- events (`price` in minor units, or `amount` for `type == "Paid"`, become `fee`)

Reads already go through `clubsphere.services.fees`, so the migration changes no
observable price. It only removes the legacy branches from stored data.
"""

import asyncio
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorDatabase

from clubsphere.database import db_manager
from clubsphere.managers.logging_manager import get_logger
from clubsphere.services.fees import MAJOR_UNIT, club_fee, event_fee
from clubsphere.utils.datetime_utils import utcnow

logger = get_logger(prefix="[FEE_NORMALIZATION_MIGRATION]")


class FeeNormalizationMigration:
    """Migration converting legacy club and event fees to tagged major units."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.migration_id = "fee_normalization_v1"
        self.migration_date = utcnow()

    async def run(self) -> Dict[str, Any]:
        """
        Execute the migration.

        Returns:
            Dict containing migration results and statistics
        """
        logger.info("Starting fee normalization migration...")

        results: Dict[str, Any] = {
            "migration_id": self.migration_id,
            "started_at": self.migration_date,
            "collections_updated": {},
            "total_documents_updated": 0,
        }

        try:
            results["collections_updated"]["clubs"] = await self._migrate_clubs()
            results["collections_updated"]["events"] = await self._migrate_events()
            results["total_documents_updated"] = sum(
                r["documents_updated"] for r in results["collections_updated"].values()
            )

            await self._record_migration(results)

            results["completed_at"] = utcnow()
            results["status"] = "success"
            logger.info(
                f"Fee normalization completed. Updated {results['total_documents_updated']} documents across "
                f"{len(results['collections_updated'])} collections."
            )
        except Exception as e:
            logger.error(f"Migration failed: {e}", exc_info=True)
            results["status"] = "failed"
            results["error"] = str(e)
            results["completed_at"] = utcnow()

        return results

    async def _migrate_clubs(self) -> Dict[str, Any]:
        logger.info("Migrating clubs collection...")
        collection = self.db["clubs"]
        updated_count = 0
        errors = []

        async for club in collection.find({"feeUnit": {"$ne": MAJOR_UNIT}}):
            try:
                new_fee = club_fee(club)
                await collection.update_one(
                    {"_id": club["_id"], "feeUnit": {"$ne": MAJOR_UNIT}},
                    {"$set": {"fee": float(new_fee), "feeUnit": MAJOR_UNIT, "legacyFee": club.get("fee")}},
                )
                updated_count += 1
                logger.debug(f"Updated club {club['_id']}: fee {club.get('fee')} -> {new_fee}")
            except Exception as e:
                error_msg = f"Error migrating club {club.get('_id')}: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

        return {"documents_updated": updated_count, "errors": errors}

    async def _migrate_events(self) -> Dict[str, Any]:
        """Events without a `fee`, or still carrying `price`/`amount`, get a resolved `fee`."""
        logger.info("Migrating events collection...")
        collection = self.db["events"]
        updated_count = 0
        errors = []

        query = {
            "$or": [
                {"feeUnit": {"$ne": MAJOR_UNIT}},
                {"price": {"$exists": True}},
                {"amount": {"$exists": True}},
            ]
        }
        async for event in collection.find(query):
            try:
                new_fee = event_fee(event)
                await collection.update_one(
                    {"_id": event["_id"]},
                    {
                        "$set": {"fee": float(new_fee), "feeUnit": MAJOR_UNIT},
                        "$unset": {"price": "", "amount": ""},
                    },
                )
                updated_count += 1
            except Exception as e:
                error_msg = f"Error migrating event {event.get('_id')}: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

        return {"documents_updated": updated_count, "errors": errors}

    async def _record_migration(self, results: Dict[str, Any]) -> None:
        try:
            await self.db["migration_history"].insert_one(
                {
                    "migration_id": self.migration_id,
                    "migration_type": "fee_normalization",
                    "executed_at": self.migration_date,
                    "results": results,
                    "can_rollback": False,
                }
            )
            logger.info(f"Migration recorded in history: {self.migration_id}")
        except Exception as e:
            logger.error(f"Failed to record migration history: {e}")


async def run_migration() -> Dict[str, Any]:
    """Connect, run the fee normalization migration and disconnect."""
    await db_manager.connect()
    try:
        results = await FeeNormalizationMigration(db_manager.database).run()
    finally:
        await db_manager.disconnect()

    logger.info(f"Status: {results['status']}; total documents updated: {results['total_documents_updated']}")
    for collection, stats in results["collections_updated"].items():
        logger.info(f"  - {collection}: {stats['documents_updated']} documents, {len(stats['errors'])} errors")
    return results


if __name__ == "__main__":
    asyncio.run(run_migration())
