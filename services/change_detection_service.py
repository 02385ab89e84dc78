"""
Classifies harvested courses as new, relevantly updated or unchanged
against the store, and snapshots every observation.
"""
from typing import List

from core.interfaces import ICourseRepository, ISnapshotRepository
from core.logger import get_logger
from models.course import Course
from models.report import ChangeReport
from services.components.change_policy import is_relevant_update

logger = get_logger(__name__)


class ChangeDetectionService:
    def __init__(self, course_repo: ICourseRepository, snapshot_repo: ISnapshotRepository):
        self.course_repo = course_repo
        self.snapshot_repo = snapshot_repo

    async def compute_new_or_updated(self, batch: List[Course]) -> List[Course]:
        """Stored rows of the courses seen for the first time, in batch order."""
        report = await self.detect(batch)
        return report.new_courses

    async def detect(self, batch: List[Course]) -> ChangeReport:
        report = ChangeReport()

        for candidate in batch:
            report.processed += 1

            if not candidate.external_id_hash or candidate.platform_id is None:
                report.skipped += 1
                logger.warning(
                    "[CHANGES] Skipping course without identity hash or platform id",
                    context={"title": candidate.title, "url": candidate.url},
                )
                continue

            try:
                self._process(candidate, report)
            except Exception as e:
                report.failed += 1
                logger.error(
                    f"[CHANGES] Failed to process course: {e}",
                    context={"hash": candidate.external_id_hash, "title": candidate.title},
                )

        logger.info(
            f"[CHANGES] processed={report.processed} created={report.created} "
            f"updated={report.updated} unchanged={report.unchanged} "
            f"skipped={report.skipped} failed={report.failed}"
        )
        return report

    def _process(self, candidate: Course, report: ChangeReport):
        raw = candidate.to_row()
        existing = self.course_repo.find_by_hash(candidate.external_id_hash)

        if existing is None:
            saved = self.course_repo.upsert(candidate)
            self.snapshot_repo.save_snapshot(saved.id, saved.status_text, saved.price_text, raw)
            report.created += 1
            report.new_courses.append(saved)
            return

        if is_relevant_update(existing, candidate):
            saved = self.course_repo.upsert(candidate.with_identity_of(existing))
            self.snapshot_repo.save_snapshot(saved.id, saved.status_text, saved.price_text, raw)
            report.updated += 1
            logger.debug(
                "[CHANGES] Relevant update",
                context={
                    "hash": existing.external_id_hash,
                    "status": f"{existing.status_text!r}->{candidate.status_text!r}",
                },
            )
            return

        self.snapshot_repo.save_snapshot(existing.id, candidate.status_text, candidate.price_text, raw)
        report.unchanged += 1
