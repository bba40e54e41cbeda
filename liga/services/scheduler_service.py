"""
Background scheduler for prode settlement and standings upkeep

Runs two jobs with APScheduler:

- a settlement sweep that settles every played match still holding
  unsettled predictions (resuming partial runs) and recomputes its zones
- a daily full rebuild of every zone table
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from liga import db
from liga.errors import LeagueError
from liga.repository import LeagueRepository
from liga.services.operations import recompute_zone, settle_match, zones_of_match

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "settlement_sweep"
REBUILD_JOB_ID = "daily_standings_rebuild"


class SchedulerService:
    """Manages background settlement and standings jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats():
        return {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "predictions_settled": 0,
            "zones_recomputed": 0,
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(
            daemon=True, timezone=app.config.get("TIMEZONE", "UTC")
        )

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        if self.is_running:
            return

        self.scheduler.remove_all_jobs()
        self._add_core_jobs()
        self.scheduler.start()
        self.is_running = True
        logger.info("Scheduler started successfully")

    def stop(self):
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Scheduler stopped")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        sweep_seconds = self.app.config.get("SETTLEMENT_SWEEP_SECONDS", 300)

        self.scheduler.add_job(
            func=self._settlement_sweep,
            trigger=IntervalTrigger(seconds=sweep_seconds),
            id=SWEEP_JOB_ID,
            name="Settle Played Matches",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        # Daily rebuild at 4 AM league time
        self.scheduler.add_job(
            func=self._daily_rebuild,
            trigger=CronTrigger(hour=4, minute=0),
            id=REBUILD_JOB_ID,
            name="Daily Standings Rebuild",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info(f"Core scheduled jobs added (sweep every {sweep_seconds}s)")

    def run_settlement_sweep(self):
        """
        Settle every match with pending predictions and recompute touched zones.

        Returns:
            dict with settled prediction count, failed ids per match and
            recomputed zone ids
        """
        repository = LeagueRepository()
        summary = {"matches": 0, "settled": 0, "failed": {}, "zones": []}
        touched_zones = set()

        for match in repository.find_matches_pending_settlement():
            try:
                result = settle_match(match.id, repository=repository)
            except LeagueError as e:
                logger.warning(f"Sweep could not settle match {match.id}: {e}")
                summary["failed"][match.id] = str(e)
                continue

            summary["matches"] += 1
            summary["settled"] += result.settled_count
            if result.failed_prediction_ids:
                summary["failed"][match.id] = result.failed_prediction_ids
            touched_zones.update(zones_of_match(match))

        for zone_id in sorted(touched_zones):
            recompute_zone(zone_id, repository=repository)
            summary["zones"].append(zone_id)

        if summary["matches"]:
            logger.info(
                f"Settlement sweep: {summary['settled']} predictions over "
                f"{summary['matches']} matches, zones {summary['zones']}"
            )
        return summary

    def run_full_rebuild(self):
        """Recompute every zone table. Returns the recomputed zone ids."""
        repository = LeagueRepository()
        rebuilt = []
        for zone in repository.get_all_zones():
            recompute_zone(zone.id, repository=repository)
            rebuilt.append(zone.id)
        logger.info(f"Rebuilt standings of {len(rebuilt)} zones")
        return rebuilt

    def _settlement_sweep(self):
        with self.app.app_context():
            try:
                summary = self.run_settlement_sweep()
                self._update_stats(
                    True,
                    predictions_settled=summary["settled"],
                    zones_recomputed=len(summary["zones"]),
                )
            except LeagueError as e:
                db.session.rollback()
                self._update_stats(False, error=str(e))
                logger.error(f"Error in settlement sweep: {e}", exc_info=True)

    def _daily_rebuild(self):
        with self.app.app_context():
            try:
                rebuilt = self.run_full_rebuild()
                self._update_stats(True, zones_recomputed=len(rebuilt))
            except LeagueError as e:
                db.session.rollback()
                self._update_stats(False, error=str(e))
                logger.error(f"Error in daily standings rebuild: {e}", exc_info=True)

    def _update_stats(self, success, predictions_settled=0, zones_recomputed=0, error=None):
        self.stats["last_run"] = datetime.now(timezone.utc)
        self.stats["total_runs"] += 1

        if success:
            self.stats["successful_runs"] += 1
            self.stats["predictions_settled"] += predictions_settled
            self.stats["zones_recomputed"] += zones_recomputed
            self.stats["last_error"] = None
        else:
            self.stats["failed_runs"] += 1
            self.stats["last_error"] = error

    def get_status(self):
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()
        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}

    def force_run(self, job_type="sweep"):
        """Run a job now, in the caller's app context"""
        if job_type == "sweep":
            summary = self.run_settlement_sweep()
            self._update_stats(
                True,
                predictions_settled=summary["settled"],
                zones_recomputed=len(summary["zones"]),
            )
            return summary
        if job_type == "rebuild":
            rebuilt = self.run_full_rebuild()
            self._update_stats(True, zones_recomputed=len(rebuilt))
            return {"zones": rebuilt}
        raise ValueError(f"Unknown job type: {job_type}")

    def pause_job(self, job_id):
        if self.scheduler is None:
            return False, "Scheduler not initialized"
        try:
            self.scheduler.pause_job(job_id)
        except JobLookupError:
            return False, f"Unknown job: {job_id}"
        return True, f"Job {job_id} paused"

    def resume_job(self, job_id):
        if self.scheduler is None:
            return False, "Scheduler not initialized"
        try:
            self.scheduler.resume_job(job_id)
        except JobLookupError:
            return False, f"Unknown job: {job_id}"
        return True, f"Job {job_id} resumed"


# Global scheduler instance
scheduler_service = SchedulerService()
