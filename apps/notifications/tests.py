# apps/notifications/tests.py
"""
Tests for NoticeEvent visibility, lifecycle and audience rules.
"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from apps.tenants.models import Tenant
from apps.notifications.models import NoticeEvent
from users.models import User


class NoticeEventTestCase(TestCase):
    """Base test case with shared setup for notice tests."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='NTC', company_name='Notice Co')
        cls.admin = User.objects.create_user(
            username='boss', password='pass', tenant=cls.tenant, role='tenant_admin',
        )
        cls.manager = User.objects.create_user(
            username='lead', password='pass', tenant=cls.tenant, role='shop_manager',
        )
        cls.employee = User.objects.create_user(
            username='clerk', password='pass', tenant=cls.tenant, role='employee',
        )
        cls.customer = User.objects.create_user(
            username='buyer', password='pass', tenant=cls.tenant, role='customer',
        )

    def setUp(self):
        self.now = timezone.now()

    def make_notice(self, **fields):
        fields.setdefault('title', 'Stocktake on Friday')
        fields.setdefault('content', 'All shops close early for the quarterly stocktake.')
        return NoticeEvent.objects.create(tenant=self.tenant, created_by=self.admin, **fields)


# ── State ──────────────────────────────────────────────────────────────────────

class NoticeStateTest(NoticeEventTestCase):

    def test_draft_is_not_active(self):
        notice = self.make_notice()
        self.assertTrue(notice.is_draft)
        self.assertFalse(notice.is_active(self.now))
        self.assertEqual(notice.status_label(self.now), 'Draft')
        self.assertEqual(notice.status_badge_class(self.now), 'bg-gray-100 text-gray-800')

    def test_publish_sets_publish_date(self):
        notice = self.make_notice()
        notice.publish(self.now)
        notice.refresh_from_db()
        self.assertTrue(notice.is_published)
        self.assertEqual(notice.publish_date, self.now)
        self.assertTrue(notice.is_active(self.now))
        self.assertEqual(notice.status_label(self.now), 'Active')

    def test_publish_keeps_existing_date(self):
        later = self.now + timedelta(days=2)
        notice = self.make_notice(publish_date=later)
        notice.publish(self.now)
        self.assertEqual(notice.publish_date, later)
        self.assertTrue(notice.is_scheduled(self.now))
        self.assertEqual(notice.status_label(self.now), 'Scheduled')
        self.assertEqual(notice.days_until_publish(self.now), 2)

    def test_schedule_and_expiry(self):
        notice = self.make_notice()
        notice.schedule(self.now - timedelta(days=1), self.now + timedelta(days=3))
        self.assertTrue(notice.is_active(self.now))
        self.assertEqual(notice.days_until_expiry(self.now), 3)

        later = self.now + timedelta(days=5)
        self.assertTrue(notice.is_expired(later))
        self.assertEqual(notice.status_label(later), 'Expired')
        self.assertIsNone(notice.days_until_expiry(later))

        notice.extend(self.now + timedelta(days=10))
        self.assertTrue(notice.is_active(later))

    def test_unpublish(self):
        notice = self.make_notice()
        notice.publish()
        notice.unpublish()
        notice.refresh_from_db()
        self.assertTrue(notice.is_draft)


# ── Audience ───────────────────────────────────────────────────────────────────

class NoticeAudienceTest(NoticeEventTestCase):

    def test_everyone(self):
        notice = self.make_notice(is_published=True)
        for user in (self.admin, self.manager, self.employee, self.customer):
            self.assertTrue(notice.can_be_viewed_by(user))

    def test_employees_include_managers_and_admins(self):
        notice = self.make_notice(is_published=True, target_audience='employees')
        self.assertTrue(notice.can_be_viewed_by(self.employee))
        self.assertTrue(notice.can_be_viewed_by(self.manager))
        self.assertTrue(notice.can_be_viewed_by(self.admin))
        self.assertFalse(notice.can_be_viewed_by(self.customer))

    def test_admins_only(self):
        notice = self.make_notice(is_published=True, target_audience='admins')
        self.assertTrue(notice.can_be_viewed_by(self.admin))
        self.assertFalse(notice.can_be_viewed_by(self.manager))

    def test_customers_only(self):
        notice = self.make_notice(is_published=True, target_audience='customers')
        self.assertTrue(notice.can_be_viewed_by(self.customer))
        self.assertFalse(notice.can_be_viewed_by(self.admin))

    def test_inactive_notice_hidden_from_everyone(self):
        notice = self.make_notice(target_audience='all')
        self.assertFalse(notice.can_be_viewed_by(self.admin))


# ── Scopes and display ─────────────────────────────────────────────────────────

class NoticeScopeTest(NoticeEventTestCase):

    def test_active_scope(self):
        live = self.make_notice(is_published=True)
        self.make_notice(title='Draft')
        self.make_notice(title='Future', is_published=True, publish_date=self.now + timedelta(days=1))
        self.make_notice(title='Old', is_published=True, expiry_date=self.now - timedelta(days=1))
        qs = NoticeEvent.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.active(self.now)), [live])
        self.assertEqual(qs.scheduled(self.now).count(), 1)
        self.assertEqual(qs.expired(self.now).count(), 1)
        self.assertEqual(qs.drafts().count(), 1)

    def test_visible_to(self):
        self.make_notice(is_published=True, target_audience='managers')
        everyone = self.make_notice(is_published=True, target_audience='all')
        qs = NoticeEvent.objects.for_tenant(self.tenant)
        self.assertEqual(list(qs.visible_to(self.employee)), [everyone])
        self.assertEqual(qs.visible_to(self.manager).count(), 2)

    def test_priority_and_type_scopes(self):
        self.make_notice(priority='urgent', notice_type='alert')
        self.make_notice(priority='high', notice_type='event')
        self.make_notice(priority='low')
        qs = NoticeEvent.objects.for_tenant(self.tenant)
        self.assertEqual(qs.high_priority().count(), 2)
        self.assertEqual(qs.urgent().count(), 1)
        self.assertEqual(qs.alerts().count(), 1)
        self.assertEqual(qs.notices().count(), 1)

    def test_display_helpers(self):
        notice = self.make_notice(content='x' * 200, notice_type='alert', priority='urgent')
        self.assertEqual(notice.short_content(), 'x' * 150 + '...')
        self.assertEqual(notice.short_content(500), 'x' * 200)
        self.assertEqual(notice.type_icon, 'exclamation-triangle')
        self.assertEqual(notice.type_color, 'red')
        self.assertEqual(notice.priority_color, 'red')
        self.assertEqual(notice.priority_badge_class, 'bg-red-100 text-red-800')
        self.assertFalse(notice.has_attachment)
