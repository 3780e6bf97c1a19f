"""Turns feed entries into composer.json pull requests, one entry at a time."""

import asyncio
import logging

from .errors import SourceError
from .feed import FeedEntry, FeedSource
from .gateway import RepositoryGateway
from .merge import merge_entry
from .models import ComposerManifest, EntryReport, EntryState, MergeOutcome, RunReport

logger = logging.getLogger(__name__)

WORDFENCE_VULNERABILITIES_URL = "https://www.wordfence.com/threat-intel/vulnerabilities/"
REFERENCES_SEPARATOR = " , "


def _describe(entry: FeedEntry) -> tuple[str, str, str]:
    software = entry.software[0] if entry.software else None
    software_type = software.type.value if software else "unknown type"
    software_name = (software.name if software else "") or "unknown name"
    cvss = "unknown" if entry.cvss_score is None else f"{entry.cvss_score:g}"
    return software_type, software_name, cvss


def format_commit_message(entry: FeedEntry, constraint: str) -> str:
    """Summarize the first affected software, its CVSS score and the new constraint."""
    software_type, software_name, cvss = _describe(entry)
    return f"{software_type} {software_name} | CVSS = {cvss} | {constraint}"


def format_pull_request_body(entry: FeedEntry, constraint: str) -> str:
    software_type, software_name, cvss = _describe(entry)
    return (
        f"According to [Wordfence]({WORDFENCE_VULNERABILITIES_URL}), {software_type} {software_name} "
        f"has a {cvss} CVSS security vulnerability\n\n"
        f"I'm bumping versions to {constraint}\n\n"
        f"References: {REFERENCES_SEPARATOR.join(entry.references)}"
    )


class ChangeOrchestrator:
    """Processes feed entries sequentially and publishes each change as a pull request.

    The manifest is read once per run. Every entry is evaluated against that
    base manifest because every branch is cut from the default branch head.
    A failure while publishing one entry marks that entry as failed and the
    run moves on.
    """

    def __init__(
        self,
        gateway: RepositoryGateway,
        feed_source: FeedSource,
        composer_json_path: str = "composer.json",
        default_branch: str = "master",
        pause: float = 1.0,
        dry_run: bool = False,
        limit: int | None = None,
    ):
        self.gateway = gateway
        self.feed_source = feed_source
        self.composer_json_path = composer_json_path
        self.default_branch = default_branch
        self.pause = pause
        self.dry_run = dry_run
        self.limit = limit

    async def run(self) -> RunReport:
        """Run one full pass over the feed.

        Returns:
            Per-entry report

        Raises:
            SourceError: If the manifest or the feed cannot be loaded
        """
        manifest = await self.load_manifest()
        try:
            feed = await self.feed_source.fetch_feed()
        except SourceError:
            raise
        except Exception as e:
            raise SourceError(f"Unable to fetch feed: {e}") from e

        if self.limit is not None:
            feed = feed[: self.limit]

        report = RunReport()
        for entry in feed:
            report.entries.append(await self.process_entry(manifest, entry))
            await asyncio.sleep(self.pause)

        logger.info(
            "Run finished: %d published, %d unchanged, %d failed",
            report.published,
            report.unchanged,
            report.failed,
        )
        return report

    async def load_manifest(self) -> ComposerManifest:
        try:
            content = await self.gateway.get_file_content(self.composer_json_path, self.default_branch)
        except SourceError:
            raise
        except Exception as e:
            raise SourceError(f"Unable to fetch {self.composer_json_path}: {e}") from e
        return ComposerManifest.from_json(content)

    async def process_entry(self, manifest: ComposerManifest, entry: FeedEntry) -> EntryReport:
        """Evaluate one entry and, if it changes the manifest, publish it."""
        report = EntryReport(entry_id=entry.branch_name, title=entry.title or "")

        if not entry.software:
            logger.warning("Got empty software for id=%s; skipping", report.entry_id)
            report.state = EntryState.NOOP
            return report

        outcome = merge_entry(manifest, entry)
        report.constraint = outcome.last_constraint
        if not outcome.changed:
            logger.info("Not upgraded for id=%s", report.entry_id)
            report.state = EntryState.NOOP
            return report

        report.state = EntryState.CHANGED
        if self.dry_run:
            logger.info("Would publish id=%s with %s", report.entry_id, outcome.last_constraint)
            return report

        try:
            await self.publish(entry, outcome, report)
        except Exception as e:
            logger.warning("Something went wrong with id=%s, details: %s; continuing", report.entry_id, e)
            report.state = EntryState.FAILED
            report.error = str(e)
        return report

    async def publish(self, entry: FeedEntry, outcome: MergeOutcome, report: EntryReport) -> None:
        """Create the branch, commit the new manifest and open the pull request.

        ``report.state`` tracks the last step that succeeded. Nothing is rolled
        back when a later step fails.
        """
        branch_name = entry.branch_name
        commit_message = format_commit_message(entry, outcome.last_constraint)
        logger.info("Trying to upgrade %s", entry.software[0].name or entry.software[0].slug)

        await self.gateway.create_branch(branch_name, self.default_branch)
        report.state = EntryState.BRANCH_CREATED

        old_sha = await self.gateway.get_file_sha(self.composer_json_path, self.default_branch)
        await self.gateway.update_file_content(
            self.composer_json_path,
            outcome.manifest.to_json(),
            commit_message,
            old_sha,
            branch_name,
        )
        report.state = EntryState.FILE_UPDATED

        url = await self.gateway.create_pull_request(
            self.default_branch,
            branch_name,
            commit_message,
            format_pull_request_body(entry, outcome.last_constraint),
        )
        report.state = EntryState.PULL_REQUEST_CREATED
        logger.info("Pull request created for id=%s%s", branch_name, f": {url}" if url else "")
        report.state = EntryState.DONE
