#!/usr/bin/env python3
"""
Stale Issue/Pull Request Bot with Team Ping

This script scans GitHub repositories for inactive issues and pull requests
and nudges them along:
- Marks stale items with a comment, optionally mentioning the team that is
  responsible for the repository
- Optionally closes items that stayed stale for a further grace period
- Removes the stale label again when an item sees activity (unmark)

Every run is re-derived from live GitHub state; nothing is persisted between
runs. The number of mutating API calls per run is bounded by an action
budget, even though items are processed concurrently.
"""

import argparse
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import yaml
from github import Auth, Github, GithubException, UnknownObjectException
from jinja2 import Environment, TemplateSyntaxError, meta

from stale_config import (
    DEFAULT_MAX_WORKERS,
    ITEM_TYPES,
    MAX_ACTIONS_PER_RUN,
    ConfigurationError,
    ConfigValidationError,
    get_repository_entries,
    get_validated_max_workers,
    load_config,
    resolve_config,
    split_repository_name,
)


logger = logging.getLogger(__name__)


STALE_LABEL_COLOR = 'ffffff'
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Comments are Markdown, never HTML
_template_env = Environment(autoescape=False)


class UnsupportedItemTypeError(ValueError):
    """Raised when an item type other than 'pulls' or 'issues' is requested."""


class LabelLookupError(Exception):
    """Raised when the stale label cannot be looked up or created."""


# =============================================================================
# Query building
# =============================================================================


def since(days, now: Optional[datetime] = None) -> datetime:
    """
    Return the cutoff timestamp `days` days before now.

    The result never precedes the Unix epoch; GitHub search rejects earlier dates.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    seconds = days * 24 * 60 * 60
    if seconds >= (now - EPOCH).total_seconds():
        return EPOCH
    return now - timedelta(seconds=seconds)


def get_query_type_restriction(item_type: str) -> str:
    """Return the search term restricting results to the given item type."""
    if item_type == 'pulls':
        return 'is:pr'
    if item_type == 'issues':
        return 'is:issue'
    raise UnsupportedItemTypeError(
        f"Unknown type: {item_type}. Valid types are 'pulls' and 'issues'"
    )


def build_query(item_type: str, config, now: Optional[datetime] = None, closable: bool = False) -> str:
    """
    Build the GitHub search query for stale (or closable) items.

    Args:
        item_type: 'pulls' or 'issues'
        config: StaleConfig of the repository
        now: Reference time, defaults to the current time
        closable: If True, select items already carrying the stale label that
            are past `daysUntilClose`; otherwise select unmarked items past
            `daysUntilStale`

    Returns:
        The query string

    Raises:
        UnsupportedItemTypeError: If item_type is not recognised
    """
    type_restriction = get_query_type_restriction(item_type)

    stale_label = config.value_for(item_type, 'staleLabel')
    exempt_labels = config.value_for(item_type, 'exemptLabels') or []
    only_labels = config.value_for(item_type, 'onlyLabels') or []

    if closable:
        days = config.value_for(item_type, 'daysUntilClose')
        query_parts = [f'label:"{stale_label}"']
    else:
        days = config.value_for(item_type, 'daysUntilStale')
        query_parts = [f'-label:"{stale_label}"']

    timestamp = since(days, now).strftime('%Y-%m-%dT%H:%M:%S')

    query_parts.extend(f'-label:"{label}"' for label in exempt_labels if label != stale_label)
    query_parts.extend(f'label:"{label}"' for label in only_labels)
    query_parts.append(type_restriction)

    if config.value_for(item_type, 'exemptProjects'):
        query_parts.append('no:project')
    if config.value_for(item_type, 'exemptMilestones'):
        query_parts.append('no:milestone')
    if config.value_for(item_type, 'exemptAssignees'):
        query_parts.append('no:assignee')

    return ' '.join([f'repo:{config.full_name}', 'is:open', f'updated:<{timestamp}'] + query_parts)


# =============================================================================
# Action budget
# =============================================================================


class ActionBudget:
    """
    Per-run counter bounding the number of mutating API calls.

    Owned by a single run; safe to share between the run's worker threads.
    """

    def __init__(self, limit: int):
        self.initial = max(int(limit), 0)
        self._remaining = self.initial
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    def try_consume(self, units: int = 1) -> bool:
        """
        Take `units` from the budget, all or nothing.

        Returns:
            True if the units were taken, False if not enough remain
        """
        with self._lock:
            if units < 1 or self._remaining < units:
                return False
            self._remaining -= units
            return True


# =============================================================================
# Audience (team) resolution
# =============================================================================


class AudienceResolver:
    """
    Map a repository to the organization team responsible for it.

    The team list is fetched once per resolver and the answer is memoised per
    repository; build a new resolver for every run so membership stays live.
    """

    def __init__(self, gh, org: str, log: logging.Logger):
        self.gh = gh
        self.org = org
        self.logger = log
        self._teams = None
        self._resolved = {}
        self._lock = threading.Lock()

    def _get_teams(self) -> list:
        if self._teams is None:
            try:
                self._teams = list(self.gh.get_organization(self.org).get_teams())
            except UnknownObjectException:
                self.logger.info(f"{self.org} is not an organization; no teams to mention")
                self._teams = []
            except GithubException as e:
                self.logger.warning(f"Could not list teams of {self.org}: {e}")
                self._teams = []
        return self._teams

    def _team_repository_names(self, team) -> set:
        try:
            repos = team.get_repos()
        except GithubException as e:
            self.logger.warning(f"Could not list repositories of team {team.slug}: {e}")
            return set()
        if repos is None:
            return set()
        try:
            return {r.name for r in repos}
        except GithubException as e:
            self.logger.warning(f"Could not list repositories of team {team.slug}: {e}")
            return set()

    def resolve(self, repository: str) -> Optional[dict]:
        """
        Return the first team whose repositories include `repository`.

        Args:
            repository: Repository name (without owner)

        Returns:
            Dict with `slug`, `name` and `mention`, or None if no team matches
        """
        with self._lock:
            if repository in self._resolved:
                return self._resolved[repository]

            audience = None
            for team in self._get_teams():
                if repository in self._team_repository_names(team):
                    audience = {
                        'slug': team.slug,
                        'name': team.name,
                        'mention': f'@{team.slug}',
                    }
                    break

            if audience:
                self.logger.debug(f"Team {audience['slug']} is responsible for {self.org}/{repository}")
            else:
                self.logger.info(f"No team of {self.org} is responsible for {repository}")

            self._resolved[repository] = audience
            return audience

    def cached(self, repository: str) -> Optional[dict]:
        """Return the audience already resolved for `repository` in this run, if any."""
        with self._lock:
            return self._resolved.get(repository)


# =============================================================================
# Comment templates
# =============================================================================


def needs_mention(template_text: str) -> bool:
    """Return True if the comment template references the `mention` placeholder."""
    try:
        parsed = _template_env.parse(template_text)
    except TemplateSyntaxError:
        return False
    return 'mention' in meta.find_undeclared_variables(parsed)


def render_comment(template_text: str, context: dict) -> str:
    """
    Render a comment template with Jinja2.

    A template that fails to parse is posted verbatim.
    """
    try:
        template = _template_env.from_string(template_text)
    except TemplateSyntaxError as e:
        logger.warning(f"Invalid comment template, posting it verbatim: {e}")
        return template_text
    return template.render(**context)


def _build_stale_item_dict(issue) -> dict:
    """Build a plain item dict from a GitHub search result."""
    return {
        'number': issue.number,
        'title': getattr(issue, 'title', ''),
        'state': getattr(issue, 'state', 'open'),
        'locked': bool(getattr(issue, 'locked', False)),
        'labels': [label.name for label in (getattr(issue, 'labels', None) or [])],
        'updated_at': getattr(issue, 'updated_at', None),
    }


def is_actionable(item: dict) -> bool:
    """Closed and locked items are never acted upon."""
    return not item.get('locked') and item.get('state') != 'closed'


def _new_summary(item_type: str) -> dict:
    return {
        'type': item_type,
        'marked': 0,
        'closed': 0,
        'would_mark': 0,
        'would_close': 0,
        'skipped': 0,
        'ignored': 0,
        'failed': 0,
        'audience': None,
        'remaining_budget': None,
    }


# =============================================================================
# Mark and sweep engine
# =============================================================================


class StaleBot:
    """
    Mark-and-sweep engine for one repository.

    Args:
        gh: Authenticated PyGithub client
        raw_config: Parsed per-repository stale configuration
        owner: Repository owner
        repo: Repository name
        log: Logger used for every message of this engine
        diagnostics: Optional sink with a `report(error, context)` method that
            receives configuration validation errors
        dry_run: If True, classify and log without any mutating call
        max_workers: Number of items processed concurrently
    """

    def __init__(
        self,
        gh,
        raw_config: Optional[dict],
        owner: str,
        repo: str,
        log: logging.Logger,
        diagnostics=None,
        dry_run: bool = False,
        max_workers: int = DEFAULT_MAX_WORKERS
    ):
        self.gh = gh
        self.logger = log
        self.diagnostics = diagnostics
        self.dry_run = dry_run
        self.max_workers = max_workers
        self.budget = ActionBudget(0)
        # Counts what a dry run would have spent; never gates a real call
        self.shadow_budget = ActionBudget(0)
        self.audience_resolver = None
        self._repository = None

        self.config, error = resolve_config(raw_config, owner, repo)
        if error:
            self.report_config_error(error)

    def report_config_error(self, error: ConfigValidationError) -> None:
        """Hand a validation error to the diagnostics sink; never raises."""
        context = {'owner': self.config.owner, 'repo': self.config.repo}
        if self.diagnostics is None:
            self.logger.warning(f"Invalid config for {self.config.full_name}: {error}")
            return
        try:
            self.diagnostics.report(error, context)
        except Exception as e:
            self.logger.error(f"Diagnostics sink failed while reporting invalid config: {e}")
            self.logger.warning(f"Invalid config for {self.config.full_name}: {error}")

    @property
    def repository(self):
        if self._repository is None:
            self._repository = self.gh.get_repo(self.config.full_name)
        return self._repository

    def _get_audience_resolver(self) -> AudienceResolver:
        if self.audience_resolver is None:
            self.audience_resolver = AudienceResolver(self.gh, self.config.owner, self.logger)
        return self.audience_resolver

    def mark_and_sweep(self, item_type: str) -> dict:
        """
        Run one sweep (when enabled) and mark pass for an item type.

        The sweep goes first so items already past `daysUntilClose` are closed
        even when the mark backlog alone could use up the budget.

        Args:
            item_type: 'pulls' or 'issues'

        Returns:
            Summary of the run
        """
        summary = _new_summary(item_type)

        only = self.config.only
        if only and only != item_type:
            return summary
        if not self.config.value_for(item_type, 'perform'):
            return summary
        get_query_type_restriction(item_type)

        self.logger.info(f"Starting mark and sweep of {item_type} in {self.config.full_name}: {self.config.values}")

        limit_per_run = self.config.value_for(item_type, 'limitPerRun') or MAX_ACTIONS_PER_RUN
        limit = min(limit_per_run, MAX_ACTIONS_PER_RUN)
        self.budget = ActionBudget(limit)
        self.shadow_budget = ActionBudget(limit)
        self.audience_resolver = AudienceResolver(self.gh, self.config.owner, self.logger)

        self.ensure_stale_label_exists(item_type)

        days_until_close = self.config.value_for(item_type, 'daysUntilClose')
        if days_until_close is not False and days_until_close is not None:
            self.sweep(item_type, summary)

        self.mark(item_type, summary)

        audience = self.audience_resolver.cached(self.config.repo)
        if audience:
            summary['audience'] = audience['slug']
        summary['remaining_budget'] = self.budget.remaining
        return summary

    def ensure_stale_label_exists(self, item_type: str) -> None:
        """
        Make sure the stale label exists, creating it when it is missing.

        Raises:
            LabelLookupError: If the lookup fails for any reason other than 404
        """
        stale_label = self.config.value_for(item_type, 'staleLabel')

        try:
            self.repository.get_label(stale_label)
            return
        except UnknownObjectException:
            pass
        except GithubException as e:
            raise LabelLookupError(
                f"Could not look up label '{stale_label}' in {self.config.full_name}: {e}"
            ) from e

        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would create label '{stale_label}' in {self.config.full_name}")
            return

        try:
            self.repository.create_label(stale_label, STALE_LABEL_COLOR)
            self.logger.info(f"Created label '{stale_label}' in {self.config.full_name}")
        except GithubException as e:
            # Created concurrently by someone else
            if e.status == 422:
                return
            raise LabelLookupError(
                f"Could not create label '{stale_label}' in {self.config.full_name}: {e}"
            ) from e

    def search(self, query: str) -> List[dict]:
        """Search for items, reading at most one page of MAX_ACTIONS_PER_RUN results."""
        self.logger.info(f"Searching {self.config.full_name} for stale items: {query}")
        results = self.gh.search_issues(query=query, sort='updated', order='desc')
        return [_build_stale_item_dict(issue) for issue in results[:MAX_ACTIONS_PER_RUN]]

    def get_stale(self, item_type: str) -> List[dict]:
        return self.search(build_query(item_type, self.config))

    def get_closable(self, item_type: str) -> List[dict]:
        return self.search(build_query(item_type, self.config, closable=True))

    def mark(self, item_type: str, summary: Optional[dict] = None) -> dict:
        """Mark every stale, open and unlocked item the budget allows."""
        if summary is None:
            summary = _new_summary(item_type)
        items = self.get_stale(item_type)
        candidates = [item for item in items if is_actionable(item)]
        summary['ignored'] += len(items) - len(candidates)

        self._process_items(self.mark_issue, item_type, candidates, summary)
        return summary

    def sweep(self, item_type: str, summary: Optional[dict] = None) -> dict:
        """Close items that stayed stale past `daysUntilClose`."""
        if summary is None:
            summary = _new_summary(item_type)
        items = self.get_closable(item_type)
        candidates = [item for item in items if is_actionable(item)]
        summary['ignored'] += len(items) - len(candidates)

        self._process_items(self.close_issue, item_type, candidates, summary)
        return summary

    def _process_items(
        self,
        handler: Callable[[str, dict], str],
        item_type: str,
        items: List[dict],
        summary: dict
    ) -> None:
        """
        Run `handler` for every item concurrently and tally the outcomes.

        A failing item is logged and counted; it never stops the others.
        """
        if not items:
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_number = {
                executor.submit(handler, item_type, item): item['number']
                for item in items
            }

            try:
                for future in as_completed(future_to_number):
                    number = future_to_number[future]
                    try:
                        outcome = future.result()
                        summary[outcome] += 1
                    except Exception as e:
                        self.logger.error(f"Error processing {self.config.full_name}#{number}: {e}")
                        summary['failed'] += 1
            except BaseException:
                # In-flight calls finish; queued items wait for the next run
                executor.shutdown(wait=True, cancel_futures=True)
                raise

    def _render(self, item_type: str, number: int, template_text: str) -> Optional[str]:
        """
        Render a comment for an item.

        Returns None when the template mentions the team but no team is
        responsible for the repository.
        """
        context = {
            'number': number,
            'owner': self.config.owner,
            'repo': self.config.repo,
            'type': item_type,
            'mention': '',
        }
        if needs_mention(template_text):
            audience = self._get_audience_resolver().resolve(self.config.repo)
            if audience is None:
                return None
            context['mention'] = audience['mention']
        return render_comment(template_text, context)

    def _is_dry_run(self, item_type: str) -> bool:
        return self.dry_run or not self.config.value_for(item_type, 'perform')

    def _take_budget(self, item_type: str, calls: int) -> bool:
        if self._is_dry_run(item_type):
            return self.shadow_budget.try_consume(calls)
        return self.budget.try_consume(calls)

    def mark_issue(self, item_type: str, item: dict) -> str:
        """
        Mark a single stale item.

        Returns:
            One of 'marked', 'would_mark', 'skipped', 'failed'
        """
        full_name = self.config.full_name
        number = item['number']
        mark_comment = self.config.value_for(item_type, 'markComment')
        stale_label = self.config.value_for(item_type, 'staleLabel')
        days_until_close = self.config.value_for(item_type, 'daysUntilClose')
        add_label = days_until_close is not False and days_until_close is not None

        body = None
        if mark_comment:
            body = self._render(item_type, number, mark_comment)
            if body is None:
                self.logger.info(f"{full_name}#{number} skipped: no team to mention")
                return 'skipped'

        calls = (1 if body else 0) + (1 if add_label else 0)
        if calls == 0:
            self.logger.info(f"{full_name}#{number} is stale but no mark action is configured")
            return 'skipped'

        if not self._take_budget(item_type, calls):
            self.logger.debug(f"{full_name}#{number} skipped: action budget exhausted")
            return 'skipped'

        if self._is_dry_run(item_type):
            self.logger.info(f"{full_name}#{number} would have been marked (dry-run)")
            return 'would_mark'

        self.logger.info(f"{full_name}#{number} is being marked")
        try:
            issue = self.repository.get_issue(number)
            if add_label:
                issue.add_to_labels(stale_label)
            if body:
                issue.create_comment(body)
        except GithubException as e:
            self.logger.error(f"Error marking {full_name}#{number}: {e}")
            return 'failed'

        return 'marked'

    def close_issue(self, item_type: str, item: dict) -> str:
        """
        Close a single item that stayed stale for too long.

        Returns:
            One of 'closed', 'would_close', 'skipped', 'failed'
        """
        full_name = self.config.full_name
        number = item['number']
        close_comment = self.config.value_for(item_type, 'closeComment')

        body = None
        if close_comment:
            body = self._render(item_type, number, close_comment)
            if body is None:
                self.logger.info(f"{full_name}#{number} skipped: no team to mention")
                return 'skipped'

        calls = 2 if body else 1

        if not self._take_budget(item_type, calls):
            self.logger.debug(f"{full_name}#{number} skipped: action budget exhausted")
            return 'skipped'

        if self._is_dry_run(item_type):
            self.logger.info(f"{full_name}#{number} would have been closed (dry-run)")
            return 'would_close'

        self.logger.info(f"{full_name}#{number} is being closed")
        try:
            issue = self.repository.get_issue(number)
            if body:
                issue.create_comment(body)
            issue.edit(state='closed')
        except GithubException as e:
            self.logger.error(f"Error closing {full_name}#{number}: {e}")
            return 'failed'

        return 'closed'

    def unmark(self, item_type: str, number: int) -> bool:
        """
        Remove the stale label from an item that saw activity.

        A label that is already gone is not an error.

        Returns:
            True on success (or dry run), False if a GitHub call failed
        """
        full_name = self.config.full_name
        stale_label = self.config.value_for(item_type, 'staleLabel')
        unmark_comment = self.config.value_for(item_type, 'unmarkComment')
        # Team membership may have changed since the last call
        self.audience_resolver = AudienceResolver(self.gh, self.config.owner, self.logger)

        if self._is_dry_run(item_type):
            self.logger.info(f"{full_name}#{number} would have been unmarked (dry-run)")
            return True

        self.logger.info(f"{full_name}#{number} is being unmarked")
        try:
            issue = self.repository.get_issue(number)
            try:
                issue.remove_from_labels(stale_label)
            except UnknownObjectException:
                self.logger.debug(f"Label '{stale_label}' already removed from {full_name}#{number}")

            if unmark_comment:
                body = self._render(item_type, number, unmark_comment)
                if body:
                    issue.create_comment(body)
        except GithubException as e:
            self.logger.error(f"Error unmarking {full_name}#{number}: {e}")
            return False

        return True


# =============================================================================
# Runner
# =============================================================================


def create_github_client(config: dict) -> Github:
    """
    Create and authenticate a GitHub client.

    Args:
        config: Runner configuration, optionally with a 'github' section

    Returns:
        Authenticated PyGithub client returning MAX_ACTIONS_PER_RUN results per page

    Raises:
        ConfigurationError: If authentication fails
    """
    github_section = config.get('github') or {}
    token = github_section.get('token') or os.environ.get('GITHUB_TOKEN')
    api_url = github_section.get('api_url')

    kwargs = {'auth': Auth.Token(token), 'per_page': MAX_ACTIONS_PER_RUN}
    if api_url:
        kwargs['base_url'] = api_url

    try:
        gh = Github(**kwargs)
        # Works for personal and installation tokens alike
        gh.get_rate_limit()
    except GithubException as e:
        raise ConfigurationError(f"Failed to authenticate with GitHub: {e}") from e
    return gh


def run_repositories(config: dict, item_types: List[str], dry_run: bool = False) -> List[dict]:
    """
    Run mark-and-sweep for every configured repository and item type.

    A repository without any stale configuration runs with `perform: false`.
    A failure in one repository is logged and does not affect the others.

    Returns:
        List of run summaries, each with a `repository` key added
    """
    gh = create_github_client(config)
    max_workers = get_validated_max_workers(config)
    summaries = []

    for entry in get_repository_entries(config):
        full_name = f"{entry['owner']}/{entry['repo']}"
        raw_config = entry['config']
        if raw_config is None:
            logger.info(f"No stale configuration for {full_name}; nothing will be performed")
            raw_config = {'perform': False}

        bot = StaleBot(
            gh, raw_config, entry['owner'], entry['repo'], logger,
            dry_run=dry_run, max_workers=max_workers
        )

        for item_type in item_types:
            try:
                summary = bot.mark_and_sweep(item_type)
            except LabelLookupError as e:
                logger.error(f"Aborting {item_type} run for {full_name}: {e}")
                continue
            except GithubException as e:
                logger.error(f"GitHub error during {item_type} run for {full_name}: {e}")
                continue
            except Exception as e:
                logger.error(f"Error during {item_type} run for {full_name}: {e}")
                continue
            summary['repository'] = full_name
            summaries.append(summary)

    return summaries


def run_unmark(config: dict, target: str, item_type: str, dry_run: bool = False) -> bool:
    """
    Remove the stale label from one item, e.g. after someone replied to it.

    Args:
        config: Validated runner configuration
        target: Item reference in "owner/repo#number" form
        item_type: 'pulls' or 'issues'; selects the configuration override
        dry_run: Log instead of calling GitHub

    Returns:
        True when the item was unmarked (or would have been)
    """
    full_name, _, number = target.partition('#')
    if not number.isdigit():
        raise ConfigurationError(f"Invalid item '{target}'. Expected 'owner/repo#number' format.")
    owner, repo = split_repository_name(full_name)

    raw_config = None
    for entry in get_repository_entries(config):
        if entry['owner'] == owner and entry['repo'] == repo:
            raw_config = entry['config']
            break
    if raw_config is None:
        logger.info(f"No stale configuration for {full_name}; nothing will be performed")
        raw_config = {'perform': False}

    gh = create_github_client(config)
    bot = StaleBot(gh, raw_config, owner, repo, logger, dry_run=dry_run)
    return bot.unmark(item_type, int(number))


def main() -> Optional[int]:
    """Main entry point for the script."""
    parser = argparse.ArgumentParser(
        description='Mark stale GitHub issues and pull requests, mention the '
                    'responsible team, and optionally close them.'
    )
    parser.add_argument(
        '-c', '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Classify and log stale items without commenting, labeling or closing'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '-t', '--type',
        dest='types',
        action='append',
        choices=ITEM_TYPES,
        help='Item type to process; may be given twice (default: pulls and issues)'
    )
    parser.add_argument(
        '--unmark',
        metavar='OWNER/REPO#NUMBER',
        help='Remove the stale label from a single item instead of running a sweep'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        logger.error(f"Configuration file not found: {args.config}")
        return 1
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in configuration file: {e}")
        return 1
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if args.unmark:
        item_type = args.types[0] if args.types else 'issues'
        try:
            unmarked = run_unmark(config, args.unmark, item_type, dry_run=args.dry_run)
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return 1
        return 0 if unmarked else 1

    try:
        summaries = run_repositories(config, args.types or list(ITEM_TYPES), dry_run=args.dry_run)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info("=" * 50)
    logger.info("Stale Issue/PR Summary")
    logger.info("=" * 50)
    for summary in summaries:
        logger.info(f"{summary['repository']} ({summary['type']}):")
        if args.dry_run:
            logger.info(f"  Would mark: {summary['would_mark']}")
            logger.info(f"  Would close: {summary['would_close']}")
        else:
            logger.info(f"  Marked: {summary['marked']}")
            logger.info(f"  Closed: {summary['closed']}")
        logger.info(f"  Skipped: {summary['skipped']}")
        logger.info(f"  Ignored (closed or locked): {summary['ignored']}")
        logger.info(f"  Failed: {summary['failed']}")
        if summary['audience']:
            logger.info(f"  Team mentioned: @{summary['audience']}")

    return 0


if __name__ == '__main__':
    exit(main())
