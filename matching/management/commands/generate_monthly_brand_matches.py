"""
Generate this month's brand matches for every creator with niches.

Meant to run from a scheduler near the start of each month. Creators whose
quota is already used up are skipped; a failure for one creator is logged and
the run moves on to the next.

Usage:
    python manage.py generate_monthly_brand_matches
    python manage.py generate_monthly_brand_matches --dry-run      # list who would run
    python manage.py generate_monthly_brand_matches --user 42      # single creator
"""

import logging
import uuid

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from config.logging_filters import set_correlation_id
from core.exceptions import AppError, QuotaExceededError
from core.principal import Principal
from matching.quota import remaining_quota
from matching.services import BrandMatchService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Fill each creator's monthly brand match quota from their niches"

    def add_arguments(self, parser):
        parser.add_argument(
            '--user',
            type=int,
            default=None,
            help='Only generate for this user id',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report eligible creators and remaining quota without generating',
        )

    def handle(self, *args, **options):
        User = get_user_model()
        users = User.objects.filter(is_active=True, niches__isnull=False).distinct().order_by('pk')
        if options['user'] is not None:
            users = users.filter(pk=options['user'])
            if not users.exists():
                raise CommandError(f"User {options['user']} not found or has no niches")

        service = BrandMatchService()
        totals = {'users': 0, 'created': 0, 'skipped': 0, 'failed': 0}
        run_id = str(uuid.uuid4())[:8]
        logger.info("Monthly brand match run %s started", run_id)

        for user in users:
            set_correlation_id(f"{run_id}-u{user.pk}")
            try:
                self._run_for(user, service, options['dry_run'], totals)
            finally:
                set_correlation_id("")

        verb = 'Would run for' if options['dry_run'] else 'Processed'
        self.stdout.write(self.style.SUCCESS(
            f"{verb} {totals['users']} creators: {totals['created']} matches created, "
            f"{totals['skipped']} skipped, {totals['failed']} failed"
        ))

    def _run_for(self, user, service, dry_run, totals):
        principal = Principal.from_user(user)
        remaining = remaining_quota(principal)
        label = f"{user.username} ({user.plan})"

        if remaining == 0:
            totals['skipped'] += 1
            self.stdout.write(f"  {label}: quota used, skipping")
            return

        if dry_run:
            totals['users'] += 1
            shown = 'unlimited' if remaining is None else remaining
            self.stdout.write(f"  {label}: would generate (remaining: {shown})")
            return

        try:
            result = service.generate_monthly(principal)
        except QuotaExceededError:
            totals['skipped'] += 1
            self.stdout.write(f"  {label}: quota used, skipping")
            return
        except AppError as e:
            totals['failed'] += 1
            logger.error("Monthly generation failed for user %s: %s", user.pk, e)
            self.stderr.write(f"  {label}: failed ({e.message})")
            return

        totals['users'] += 1
        totals['created'] += len(result.matches)
        self.stdout.write(f"  {label}: {len(result.matches)}/{result.target} created")
