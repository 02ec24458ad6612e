"""
Active Key Backfill Migration.

Stamps `activeKey` on live memberships and registrations written before the key
existed, and seeds each event's `registeredCount` seat counter.

Collections affected:
- memberships (`active` / `pending` records not past their `expiryDate` get
  `"<userId>:<clubId>"`; date-expired ones stay unkeyed so a renewal can take the key)
- registrations (`registered` records get `"<userId>:<eventId>"`)
- events (`registeredCount` from the number of `registered` registrations)

Legacy data may hold duplicate live records for one user and target. Only the oldest
receives the key; the others are reported in `duplicates` for manual review, since
the sparse unique index would reject them.

The migration is idempotent and safe to run with the unique indexes in place.
"""

import asyncio
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from clubsphere.database import db_manager
from clubsphere.database.identifiers import reference_predicate
from clubsphere.managers.logging_manager import get_logger
from clubsphere.models.enrollment_models import LIVE_MEMBERSHIP_STATUSES, RegistrationStatus, active_key
from clubsphere.utils.datetime_utils import utcnow

logger = get_logger(prefix="[ACTIVE_KEY_MIGRATION]")


class ActiveKeyBackfillMigration:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.migration_id = "active_key_backfill_v1"
        self.migration_date = utcnow()

    async def run(self) -> Dict[str, Any]:
        logger.info("Starting active key backfill...")
        results: Dict[str, Any] = {
            "migration_id": self.migration_id,
            "started_at": self.migration_date,
            "collections_updated": {},
            "total_documents_updated": 0,
        }

        try:
            results["collections_updated"]["memberships"] = await self._backfill(
                "memberships",
                "clubId",
                {
                    "status": {"$in": list(LIVE_MEMBERSHIP_STATUSES)},
                    "$or": [{"expiryDate": None}, {"expiryDate": {"$gte": self.migration_date}}],
                },
                "joinDate",
            )
            results["collections_updated"]["registrations"] = await self._backfill(
                "registrations", "eventId", {"status": RegistrationStatus.REGISTERED.value}, "registrationDate"
            )
            results["collections_updated"]["events"] = await self._seed_seat_counters()
            results["total_documents_updated"] = sum(
                r["documents_updated"] for r in results["collections_updated"].values()
            )
            results["completed_at"] = utcnow()
            results["status"] = "success"
            logger.info(f"Active key backfill completed. Updated {results['total_documents_updated']} documents.")
        except Exception as e:
            logger.error(f"Migration failed: {e}", exc_info=True)
            results["status"] = "failed"
            results["error"] = str(e)
            results["completed_at"] = utcnow()

        return results

    async def _backfill(
        self, name: str, target_field: str, live_filter: Dict[str, Any], date_field: str
    ) -> Dict[str, Any]:
        logger.info(f"Backfilling {name} collection...")
        collection = self.db[name]
        updated_count = 0
        duplicates: List[str] = []
        errors: List[str] = []
        seen = set()

        # Keys already in place win over unkeyed legacy records
        async for record in collection.find({"activeKey": {"$exists": True}}, {"activeKey": 1}):
            seen.add(record["activeKey"])

        cursor = collection.find({**live_filter, "activeKey": {"$exists": False}}).sort(date_field, 1)
        async for record in cursor:
            key = active_key(str(record.get("userId")), str(record.get(target_field)))
            if key in seen:
                duplicates.append(str(record["_id"]))
                continue
            try:
                await collection.update_one({"_id": record["_id"]}, {"$set": {"activeKey": key}})
                seen.add(key)
                updated_count += 1
            except DuplicateKeyError:
                duplicates.append(str(record["_id"]))
            except Exception as e:
                error_msg = f"Error backfilling {name} record {record.get('_id')}: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

        if duplicates:
            logger.warning(f"{len(duplicates)} duplicate live {name} records left without a key: {duplicates}")
        return {"documents_updated": updated_count, "duplicates": duplicates, "errors": errors}

    async def _seed_seat_counters(self) -> Dict[str, Any]:
        logger.info("Seeding event seat counters...")
        events = self.db["events"]
        registrations = self.db["registrations"]
        updated_count = 0
        errors: List[str] = []

        async for event in events.find({"registeredCount": {"$exists": False}}, {"_id": 1}):
            try:
                count = await registrations.count_documents(
                    {**reference_predicate("eventId", event["_id"]), "status": RegistrationStatus.REGISTERED.value}
                )
                await events.update_one(
                    {"_id": event["_id"], "registeredCount": {"$exists": False}},
                    {"$set": {"registeredCount": count}},
                )
                updated_count += 1
            except Exception as e:
                error_msg = f"Error seeding seat counter of event {event.get('_id')}: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

        return {"documents_updated": updated_count, "errors": errors}


async def run_migration() -> Dict[str, Any]:
    await db_manager.connect()
    try:
        results = await ActiveKeyBackfillMigration(db_manager.database).run()
    finally:
        await db_manager.disconnect()
    logger.info(f"Status: {results['status']}; total documents updated: {results['total_documents_updated']}")
    return results


if __name__ == "__main__":
    asyncio.run(run_migration())
