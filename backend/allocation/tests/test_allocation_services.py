"""
Allocation Transaction Manager tests.

Covers the allocation scenarios end to end through
``CaseIntakeService`` / ``AllocationTransactionManager``:

  A. rotation cycles A → B → A
  B. general receiver self-assigns a general case
  C. developer-first by a developer is refused before anything is written
  D. developer-transfer with an empty pool falls back to the creator
  E. manual reassignment X → Y

plus atomicity under injected datastore failures, the append-only audit
trail, the cursor strategy, the read-only preview and best-effort
notifications.
"""

from __future__ import annotations

from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase, override_settings

from accounts.models import RoleCategory, StaffStatus
from allocation.models import AllocationMethod, AllocationRecord, RotationCursor
from allocation.policy import POLICY_VERSION
from allocation.rotation import rotation_counter
from allocation.services import AllocationTransactionManager
from cases.models import Case, CaseType, CaseTypeFamily
from cases.services import CaseDraftValidator, CaseIntakeService
from core.constants import CREATION_ALLOCATION_REASON
from core.domain.exceptions import (
    AuthorizationError,
    Conflict,
    NoEligibleReceiver,
    NotFound,
    TransactionError,
    ValidationError,
)
from core.domain.transactions import lock_or_create
from core.models import Notification

User = get_user_model()

CURSOR_STRATEGY = {
    "ROTATION_STRATEGY": "cursor",
    "NOTIFICATION_DISPATCHER": "allocation.notifications.DatabaseNotificationDispatcher",
}


def _staff(username: str, role: str, **extra) -> User:
    return User.objects.create_user(
        username=username,
        password="x",
        role=role,
        real_name=username.title(),
        **extra,
    )


def _draft(case_type=CaseType.GENERAL, **extra) -> dict:
    data = {"case_type": case_type, "requesting_party": "Wang Fang"}
    data.update(extra)
    return data


class AllocationTestBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        # Creation order fixes pk order, which fixes rotation order.
        cls.alice = _staff("alice", RoleCategory.GENERAL_RECEIVER)
        cls.bob = _staff("bob", RoleCategory.GENERAL_RECEIVER)
        cls.dev = _staff("dev", RoleCategory.DEVELOPER)
        cls.soe = _staff("soe", RoleCategory.STATE_OWNED_DESK)
        cls.admin = _staff("admin", RoleCategory.ADMINISTRATOR)


class TestAllocateOnCreate(AllocationTestBase):

    def test_scenario_a_rotation_cycles(self):
        receivers = [
            CaseIntakeService.allocate_on_create(_draft(), self.dev)[1]
            for _ in range(3)
        ]
        self.assertEqual(receivers, [self.alice, self.bob, self.alice])

    def test_scenario_b_general_receiver_self_assigns(self):
        case, receiver = CaseIntakeService.allocate_on_create(_draft(), self.bob)

        self.assertEqual(receiver, self.bob)
        record = AllocationRecord.objects.get(case=case)
        self.assertIsNone(record.previous_receiver)
        self.assertEqual(record.new_receiver, self.bob)
        self.assertEqual(record.method, AllocationMethod.SELF_ASSIGN)
        self.assertEqual(record.reason, CREATION_ALLOCATION_REASON)
        self.assertEqual(record.policy_version, POLICY_VERSION)
        self.assertEqual(record.allocated_by_name, "Bob")

    def test_scenario_c_developer_first_refused_before_any_write(self):
        with mock.patch("allocation.services.EligibilityResolver.resolve") as resolve:
            with self.assertRaises(AuthorizationError) as ctx:
                CaseIntakeService.allocate_on_create(_draft(CaseType.DEVELOPER_FIRST), self.dev)

        resolve.assert_not_called()
        self.assertIn("state-owned-enterprise desk", str(ctx.exception))
        self.assertFalse(Case.objects.exists())
        self.assertFalse(AllocationRecord.objects.exists())
        self.assertFalse(RotationCursor.objects.exists())

    def test_soe_desk_self_assigns_developer_first(self):
        _case, receiver = CaseIntakeService.allocate_on_create(_draft(CaseType.DEVELOPER_FIRST), self.soe)
        self.assertEqual(receiver, self.soe)

    def test_scenario_d_developer_transfer_empty_pool_falls_back_to_creator(self):
        User.objects.filter(pk__in=[self.alice.pk, self.bob.pk, self.soe.pk]).update(
            status=StaffStatus.ON_LEAVE,
        )

        case, receiver = CaseIntakeService.allocate_on_create(
            _draft(CaseType.DEVELOPER_TRANSFER_REGISTRATION), self.dev,
        )

        self.assertEqual(receiver, self.dev)
        record = AllocationRecord.objects.get(case=case)
        self.assertEqual(record.new_receiver, self.dev)
        self.assertEqual(record.method, AllocationMethod.FALLBACK_SELF_ASSIGN)

    def test_empty_pool_without_fallback_raises_and_writes_nothing(self):
        User.objects.filter(pk=self.soe.pk).update(is_active=False)

        with self.assertRaises(NoEligibleReceiver):
            CaseIntakeService.allocate_on_create(_draft(CaseType.STATE_OWNED_ENTERPRISE), self.dev)

        self.assertFalse(Case.objects.exists())
        self.assertFalse(AllocationRecord.objects.exists())

    def test_developer_transfer_rotates_over_receivers_and_soe_desk(self):
        receivers = [
            CaseIntakeService.allocate_on_create(_draft(CaseType.DEVELOPER_TRANSFER), self.dev)[1]
            for _ in range(4)
        ]
        self.assertEqual(receivers, [self.alice, self.bob, self.soe, self.alice])

    def test_case_receiver_matches_newest_record(self):
        case, receiver = CaseIntakeService.allocate_on_create(_draft(), self.dev)
        case.refresh_from_db()
        newest = AllocationRecord.objects.filter(case=case).last()
        self.assertEqual(case.receiver, receiver)
        self.assertEqual(case.receiver_id, newest.new_receiver_id)
        self.assertIsNotNone(case.allocated_at)
        self.assertEqual(case.allocated_at, case.completed_at)

    def test_case_number_generated_from_case_date(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)
        prefix, suffix = case.case_number.split("_")
        self.assertEqual(prefix, case.case_date.strftime("%Y%m%d"))
        self.assertEqual(len(suffix), 9)
        self.assertTrue(suffix.isupper() or suffix.isdigit())

    def test_requesting_party_required_for_non_developers(self):
        with self.assertRaises(ValidationError) as ctx:
            CaseIntakeService.allocate_on_create({"case_type": CaseType.GENERAL}, self.alice)
        self.assertEqual(ctx.exception.field, "requesting_party")

    def test_requesting_party_optional_for_developer_on_general_cases(self):
        case, _ = CaseIntakeService.allocate_on_create({"case_type": CaseType.GENERAL}, self.dev)
        self.assertEqual(case.requesting_party, "")

    def test_requesting_party_required_for_developer_transfer(self):
        with self.assertRaises(ValidationError):
            CaseIntakeService.allocate_on_create({"case_type": CaseType.DEVELOPER_TRANSFER}, self.dev)

    def test_duplicate_case_number_rejected(self):
        CaseIntakeService.allocate_on_create(_draft(case_number="20240101_ABC"), self.alice)
        with self.assertRaises(ValidationError) as ctx:
            CaseIntakeService.allocate_on_create(_draft(case_number="20240101_ABC"), self.alice)
        self.assertEqual(ctx.exception.field, "case_number")

    def test_case_number_claimed_after_validation_is_a_field_error(self):
        real_validate = CaseDraftValidator.validate

        def validate_then_lose_race(draft, creator):
            cleaned = real_validate(draft, creator)
            Case.objects.create(
                case_number=cleaned["case_number"],
                case_type=CaseType.GENERAL,
                case_date=cleaned["case_date"],
                created_by=self.bob,
            )
            return cleaned

        with mock.patch.object(CaseDraftValidator, "validate", side_effect=validate_then_lose_race):
            with self.assertRaises(ValidationError) as ctx:
                CaseIntakeService.allocate_on_create(_draft(case_number="20240101_RACE"), self.alice)

        self.assertEqual(ctx.exception.field, "case_number")
        self.assertEqual(Case.objects.filter(case_number="20240101_RACE").count(), 1)
        self.assertFalse(AllocationRecord.objects.exists())

    def test_full_length_display_name_fits_the_audit_row(self):
        long_named = _staff(
            "longname",
            RoleCategory.GENERAL_RECEIVER,
            first_name="F" * 150,
            last_name="L" * 150,
        )
        long_named.real_name = ""
        long_named.save(update_fields=["real_name"])

        case, _ = CaseIntakeService.allocate_on_create(_draft(), long_named)

        record = AllocationRecord.objects.get(case=case)
        self.assertEqual(record.allocated_by_name, long_named.display_name)
        max_length = AllocationRecord._meta.get_field("allocated_by_name").max_length
        self.assertLessEqual(len(long_named.display_name), max_length)

    def test_inactive_receiver_is_skipped(self):
        User.objects.filter(pk=self.alice.pk).update(status=StaffStatus.DISABLED)
        receivers = {
            CaseIntakeService.allocate_on_create(_draft(), self.dev)[1]
            for _ in range(3)
        }
        self.assertEqual(receivers, {self.bob})


class TestBucketLocking(AllocationTestBase):
    """The bucket's cursor row is locked before candidates are counted."""

    def _allocate_tracking_calls(self, case_type, creator):
        calls = mock.Mock()
        with mock.patch(
            "allocation.services.lock_or_create", wraps=lock_or_create,
        ) as lock, mock.patch(
            "allocation.services.rotation_counter", wraps=rotation_counter,
        ) as count:
            calls.attach_mock(lock, "lock")
            calls.attach_mock(count, "count")
            CaseIntakeService.allocate_on_create(_draft(case_type), creator)
        return calls.mock_calls

    def test_rotation_locks_bucket_before_counting(self):
        for case_type, bucket in [
            (CaseType.GENERAL, CaseTypeFamily.GENERAL),
            (CaseType.DEVELOPER_TRANSFER, CaseTypeFamily.DEVELOPER_TRANSFER),
            (CaseType.ENTERPRISE, CaseTypeFamily.STATE_OWNED),
        ]:
            with self.subTest(bucket=bucket):
                calls = self._allocate_tracking_calls(case_type, self.dev)

                self.assertEqual([name for name, _args, _kwargs in calls], ["lock", "count"])
                _name, lock_args, lock_kwargs = calls[0]
                self.assertEqual(lock_args, (RotationCursor,))
                self.assertEqual(lock_kwargs, {"bucket": bucket})
                _name, count_args, _kwargs = calls[1]
                self.assertEqual(count_args[0], bucket)

    def test_self_assignment_takes_no_bucket_lock(self):
        calls = self._allocate_tracking_calls(CaseType.GENERAL, self.alice)

        self.assertEqual(calls, [])
        self.assertFalse(RotationCursor.objects.exists())


class TestAtomicity(AllocationTestBase):

    def test_audit_append_failure_rolls_back_the_case(self):
        with mock.patch.object(
            AllocationRecord.objects, "create", side_effect=DatabaseError("disk full"),
        ):
            with self.assertRaises(TransactionError):
                CaseIntakeService.allocate_on_create(_draft(), self.dev)

        self.assertFalse(Case.objects.exists())
        self.assertFalse(AllocationRecord.objects.exists())
        self.assertEqual(RotationCursor.objects.filter(position__gt=0).count(), 0)

    def test_reassign_failure_keeps_previous_receiver(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)

        with mock.patch.object(
            AllocationRecord.objects, "create", side_effect=DatabaseError("connection lost"),
        ):
            with self.assertRaises(TransactionError):
                CaseIntakeService.manual_reassign(case.pk, self.bob, self.admin, "cover")

        case.refresh_from_db()
        self.assertEqual(case.receiver, self.alice)
        self.assertEqual(AllocationRecord.objects.filter(case=case).count(), 1)


class TestManualReassign(AllocationTestBase):

    def test_scenario_e_reassign_records_lineage(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)

        record = CaseIntakeService.manual_reassign(case.pk, self.bob, self.admin, "Alice on training")

        self.assertEqual(record.previous_receiver, self.alice)
        self.assertEqual(record.new_receiver, self.bob)
        self.assertEqual(record.method, AllocationMethod.MANUAL)
        self.assertEqual(record.reason, "Alice on training")
        self.assertEqual(record.allocated_by, self.admin)
        case.refresh_from_db()
        self.assertEqual(case.receiver, self.bob)

    def test_reassign_bypasses_eligibility(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)
        record = CaseIntakeService.manual_reassign(case.pk, self.soe, self.admin)
        self.assertEqual(record.new_receiver, self.soe)

    def test_reassign_to_inactive_user_rejected(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)
        User.objects.filter(pk=self.bob.pk).update(status=StaffStatus.ON_LEAVE)
        self.bob.refresh_from_db()

        with self.assertRaises(ValidationError):
            CaseIntakeService.manual_reassign(case.pk, self.bob, self.admin)

    def test_reassign_to_current_receiver_rejected(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)
        with self.assertRaises(ValidationError):
            CaseIntakeService.manual_reassign(case.pk, self.alice, self.admin)

    def test_reassign_unknown_case(self):
        with self.assertRaises(NotFound):
            CaseIntakeService.manual_reassign(999999, self.bob, self.admin)

    def test_history_is_in_insertion_order(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)
        CaseIntakeService.manual_reassign(case.pk, self.bob, self.admin)
        CaseIntakeService.manual_reassign(case.pk, self.alice, self.admin)

        history = CaseIntakeService.get_allocation_history(case.pk)

        self.assertEqual(
            [(r.previous_receiver_id, r.new_receiver_id) for r in history],
            [(None, self.alice.pk), (self.alice.pk, self.bob.pk), (self.bob.pk, self.alice.pk)],
        )
        case.refresh_from_db()
        self.assertEqual(case.receiver_id, history[-1].new_receiver_id)

    def test_history_of_unknown_case(self):
        with self.assertRaises(NotFound):
            CaseIntakeService.get_allocation_history(424242)


class TestAppendOnlyAudit(AllocationTestBase):

    def setUp(self):
        self.case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)
        self.record = AllocationRecord.objects.get(case=self.case)

    def test_save_on_existing_record_raises(self):
        self.record.reason = "rewritten"
        with self.assertRaises(Conflict):
            self.record.save()

    def test_delete_raises(self):
        with self.assertRaises(Conflict):
            self.record.delete()

    def test_queryset_update_and_delete_raise(self):
        with self.assertRaises(Conflict):
            AllocationRecord.objects.filter(case=self.case).update(reason="x")
        with self.assertRaises(Conflict):
            AllocationRecord.objects.filter(case=self.case).delete()
        self.assertEqual(AllocationRecord.objects.get(pk=self.record.pk).reason, CREATION_ALLOCATION_REASON)


@override_settings(INTAKE_ALLOCATION=CURSOR_STRATEGY)
class TestCursorStrategy(AllocationTestBase):

    def test_cursor_advances_only_on_rotation(self):
        # Self-assigned cases do not move the cursor.
        CaseIntakeService.allocate_on_create(_draft(), self.alice)
        CaseIntakeService.allocate_on_create(_draft(), self.bob)

        _case, first = CaseIntakeService.allocate_on_create(_draft(), self.dev)
        _case, second = CaseIntakeService.allocate_on_create(_draft(), self.dev)

        self.assertEqual([first, second], [self.alice, self.bob])
        cursor = RotationCursor.objects.get(bucket=CaseTypeFamily.GENERAL)
        self.assertEqual(cursor.position, 2)
        self.assertEqual(cursor.last_receiver, self.bob)

    def test_buckets_rotate_independently(self):
        CaseIntakeService.allocate_on_create(_draft(), self.dev)
        _case, receiver = CaseIntakeService.allocate_on_create(_draft(CaseType.DEVELOPER_TRANSFER), self.dev)
        self.assertEqual(receiver, self.alice)
        self.assertEqual(RotationCursor.objects.count(), 2)


class TestPreviewNextReceiver(AllocationTestBase):

    def test_preview_matches_next_allocation(self):
        CaseIntakeService.allocate_on_create(_draft(), self.dev)
        preview = AllocationTransactionManager.preview_next_receiver(CaseType.GENERAL)
        _case, actual = CaseIntakeService.allocate_on_create(_draft(), self.dev)
        self.assertEqual(preview, actual)

    def test_preview_never_writes(self):
        cases = Case.objects.count()
        records = AllocationRecord.objects.count()

        for case_type in CaseType.values:
            AllocationTransactionManager.preview_next_receiver(case_type)

        self.assertEqual(Case.objects.count(), cases)
        self.assertEqual(AllocationRecord.objects.count(), records)
        self.assertFalse(RotationCursor.objects.exists())

    def test_preview_with_empty_pool_is_none(self):
        User.objects.filter(pk=self.soe.pk).update(status=StaffStatus.ON_LEAVE)
        self.assertIsNone(AllocationTransactionManager.preview_next_receiver(CaseType.ENTERPRISE))


class TestAllocationNotifications(AllocationTestBase):

    def _notifications(self, user) -> list[str]:
        return list(
            Notification.objects.filter(recipient=user)
            .order_by("pk")
            .values_list("event_type", flat=True)
        )

    def test_rotated_receiver_and_next_in_line_are_notified(self):
        # SOE desk creating a developer-transfer case rotates over [alice, bob, soe].
        with self.captureOnCommitCallbacks(execute=True):
            _case, receiver = CaseIntakeService.allocate_on_create(
                _draft(CaseType.DEVELOPER_TRANSFER), self.soe,
            )

        self.assertEqual(receiver, self.alice)
        self.assertEqual(self._notifications(self.alice), ["case_allocated"])
        self.assertEqual(self._notifications(self.bob), ["next_in_line"])
        upcoming = Notification.objects.get(recipient=self.bob)
        self.assertIn("Alice", upcoming.message)

    def test_developer_created_case_uses_developer_message_and_no_upcoming(self):
        with self.captureOnCommitCallbacks(execute=True):
            CaseIntakeService.allocate_on_create(_draft(requesting_party="Li Lei"), self.dev)

        self.assertEqual(self._notifications(self.alice), ["developer_case_allocated"])
        self.assertIn("Li Lei", Notification.objects.get(recipient=self.alice).message)
        self.assertEqual(self._notifications(self.bob), [])

    def test_self_assignment_sends_no_allocated_notice(self):
        with self.captureOnCommitCallbacks(execute=True):
            CaseIntakeService.allocate_on_create(_draft(), self.alice)

        self.assertEqual(self._notifications(self.alice), [])
        # The general bucket now holds one case, so bob is next in line.
        self.assertEqual(self._notifications(self.bob), ["next_in_line"])

    def test_nothing_is_sent_for_a_rolled_back_allocation(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(AuthorizationError):
                CaseIntakeService.allocate_on_create(_draft(CaseType.DEVELOPER_FIRST), self.dev)
        self.assertEqual(callbacks, [])
        self.assertFalse(Notification.objects.exists())

    def test_manual_reassign_notifies_new_receiver(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)
        with self.captureOnCommitCallbacks(execute=True):
            CaseIntakeService.manual_reassign(case.pk, self.bob, self.admin, "cover")
        self.assertEqual(self._notifications(self.bob), ["case_reassigned"])

    def test_self_reassign_sends_nothing(self):
        case, _ = CaseIntakeService.allocate_on_create(_draft(), self.alice)
        with self.captureOnCommitCallbacks(execute=True):
            CaseIntakeService.manual_reassign(case.pk, self.bob, self.bob)
        self.assertEqual(self._notifications(self.bob), [])

    def test_dispatch_failure_is_swallowed(self):
        with mock.patch(
            "allocation.notifications.NotificationService.create",
            side_effect=RuntimeError("smtp down"),
        ):
            with self.assertLogs("allocation.notifications", level="ERROR") as logs:
                with self.captureOnCommitCallbacks(execute=True):
                    case, receiver = CaseIntakeService.allocate_on_create(_draft(), self.dev)

        self.assertEqual(receiver, self.alice)
        case.refresh_from_db()
        self.assertEqual(case.receiver, self.alice)
        self.assertEqual(AllocationRecord.objects.filter(case=case).count(), 1)
        self.assertTrue(any("smtp down" in line for line in logs.output))
