"""
One-shot backfill of legacy flat messages into conversations.

Phase 1 (migrate_to_conversations):
    Legacy rows are addressed sender -> receiver with no conversation. Each
    unordered user pair becomes one DIRECT conversation; every legacy row
    gets a conversation-shaped Message with the same id, owned by that
    conversation, and the legacy row records the conversation it went to.

Phase 2 (cleanup_deprecated_fields):
    Clears receiver and is_read on legacy rows that phase 1 handled. Rows
    phase 1 has not handled are left alone, so running cleanup too early
    loses nothing.

The job expects exclusive access. Running it twice is safe: handled rows
have a conversation and are not loaded again.

Usage:
    from chat.migration import ChatMigrationService

    report = ChatMigrationService.migrate_to_conversations()
    logger.info(report.summary())
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

from django.db import DataError, IntegrityError, transaction

from core.exceptions import BaseApplicationError
from core.services import BaseService

from authentication.models import User
from chat.models import LegacyMessage, Message, direct_key_for
from chat.services import ConversationService, MessageService

logger = logging.getLogger(__name__)

BANNER = "=" * 60


@dataclass
class MigrationReport:
    processed: int = 0
    skipped: int = 0
    created: int = 0
    migrated: int = 0
    failed: int = 0

    def summary(self) -> str:
        return (
            f"Processed: {self.processed}, Skipped: {self.skipped}, "
            f"Conversations created: {self.created}, "
            f"Messages migrated: {self.migrated}, Failed: {self.failed}"
        )


@dataclass
class CleanupReport:
    processed: int = 0
    cleaned: int = 0

    def summary(self) -> str:
        return f"Processed: {self.processed}, Cleaned: {self.cleaned}"


class ChatMigrationService(BaseService):
    """
    Backfills conversations from LegacyMessage rows.

    Methods:
        migrate_to_conversations: Phase 1, returns MigrationReport
        cleanup_deprecated_fields: Phase 2, returns CleanupReport
    """

    @classmethod
    def migrate_to_conversations(cls) -> MigrationReport:
        """
        Group unmigrated legacy rows by user pair and backfill each pair.

        Each pair runs in its own transaction. Data errors in one pair are
        logged and counted as failed, and the run moves on. Database
        connectivity errors (OperationalError, InterfaceError) propagate and
        abort the run; re-running resumes with the pairs not yet handled.
        """
        log = cls.get_logger()
        report = MigrationReport()
        log.info(BANNER)
        log.info("Starting chat migration: legacy messages -> conversations")
        log.info(BANNER)

        groups: dict[str, list[LegacyMessage]] = defaultdict(list)
        legacy_rows = (
            LegacyMessage.objects.filter(conversation__isnull=True)
            .select_related("sender", "receiver")
            .prefetch_related("read_by")
            .order_by("created_at", "id")
        )
        for legacy in legacy_rows:
            report.processed += 1
            if legacy.sender_id is None or legacy.receiver_id is None:
                log.warning(f"Skipping legacy message {legacy.id}: missing sender or receiver")
                report.skipped += 1
                continue
            if legacy.sender_id == legacy.receiver_id:
                log.warning(f"Skipping legacy message {legacy.id}: sent to self")
                report.skipped += 1
                continue
            groups[direct_key_for(legacy.sender_id, legacy.receiver_id)].append(legacy)

        log.info(f"Found {len(groups)} conversation pair(s) to migrate")

        for key, rows in groups.items():
            try:
                created, migrated = cls._migrate_pair(key, rows)
            except (IntegrityError, DataError, ValueError, BaseApplicationError) as e:
                log.warning(f"Failed to migrate pair {key} ({len(rows)} messages): {e}")
                report.failed += len(rows)
                continue
            report.created += int(created)
            report.migrated += migrated

        log.info(BANNER)
        log.info(f"Chat migration finished. {report.summary()}")
        log.info(BANNER)
        return report

    @classmethod
    def _migrate_pair(cls, key: str, rows: list[LegacyMessage]) -> tuple[bool, int]:
        """
        Backfill one user pair.

        Returns:
            (conversation_created, messages_migrated)
        """
        rows = sorted(rows, key=lambda row: (row.created_at, str(row.id)))
        first, last = rows[0], rows[-1]
        user_ids = sorted({str(first.sender_id), str(first.receiver_id)})
        users = {str(user.id): user for user in User.objects.filter(id__in=user_ids)}
        creator, other = users[user_ids[0]], users[user_ids[1]]

        with transaction.atomic():
            created = ConversationService.find_by_key(key) is None
            result = ConversationService.find_or_create_direct(
                creator, other, created_at=first.created_at
            )
            if not result.success:
                raise ValueError(result.error)
            conversation = result.data

            migrated = 0
            for legacy in rows:
                message, _ = Message.objects.get_or_create(
                    id=legacy.id,
                    defaults={
                        "conversation": None,
                        "sender_id": legacy.sender_id,
                        "message_type": legacy.message_type,
                        "content": legacy.content,
                        "media_url": legacy.media_url,
                        "created_at": legacy.created_at,
                    },
                )
                MessageService.reparent([message.id], conversation)

                readers = list(legacy.read_by.all())
                if readers:
                    message.read_by.add(*readers)
                elif legacy.is_read:
                    message.read_by.add(legacy.receiver_id)

                legacy.conversation = conversation
                legacy.save(update_fields=["conversation", "updated_at"])
                migrated += 1

            # Also moves updated_at to the newest message time
            last_message = Message.objects.get(id=last.id)
            ConversationService.update_last_message(conversation, last_message)

        cls.get_logger().debug(
            f"Pair {key}: {migrated} message(s) into conversation {conversation.id}"
            f"{' (new)' if created else ''}"
        )
        return created, migrated

    @classmethod
    def cleanup_deprecated_fields(cls) -> CleanupReport:
        """Clear receiver and is_read on legacy rows that were migrated."""
        log = cls.get_logger()
        report = CleanupReport()
        log.info(BANNER)
        log.info("Starting chat cleanup of deprecated legacy fields")
        log.info(BANNER)

        migrated_rows = LegacyMessage.objects.filter(conversation__isnull=False)
        report.processed = migrated_rows.count()
        with transaction.atomic():
            report.cleaned = migrated_rows.exclude(
                receiver__isnull=True, is_read=False
            ).update(receiver=None, is_read=False)

        log.info(f"Chat cleanup finished. {report.summary()}")
        return report
