"""
Tests for AuditLog recording, change diffs and activity reports.
"""
from decimal import Decimal

from django.test import TestCase

from apps.tenants.models import Tenant
from apps.parties.models import Supplier
from core.models import AuditLog, format_value
from users.models import User


class AuditLogTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='AUD', company_name='Audit Co')
        cls.other_tenant = Tenant.objects.create(tenant_code='AUD2', company_name='Other Co')
        cls.user = User.objects.create_user(
            username='auditor', password='pass', tenant=cls.tenant, name='Alex Auditor', email='alex@example.com',
        )
        cls.supplier = Supplier.objects.create(tenant=cls.tenant, name='Bolt Supply')


# ── Logging ────────────────────────────────────────────────────────────────────

class AuditLoggingTest(AuditLogTestCase):

    def test_log_create(self):
        log = AuditLog.log_create(
            self.tenant, self.supplier, {'name': 'Bolt Supply'},
            user=self.user, ip_address='10.0.0.1', user_agent='pytest',
        )
        self.assertEqual(log.action, 'created')
        self.assertEqual(log.record_id, self.supplier.pk)
        self.assertEqual(log.table_name, self.supplier._meta.db_table)
        self.assertEqual(log.content_object, self.supplier)
        self.assertEqual(log.ip_address, '10.0.0.1')
        self.assertEqual(log.description, f'Alex Auditor created Supplier (ID: {self.supplier.pk})')
        self.assertEqual(log.user_info['user_email'], 'alex@example.com')

    def test_log_update_diff(self):
        log = AuditLog.log_update(
            self.tenant, self.supplier,
            old_values={'name': 'Bolt Supply', 'credit_limit': Decimal('100.00'), 'is_active': True},
            new_values={'name': 'Bolt Supply Ltd', 'credit_limit': Decimal('100.00'), 'is_active': True},
            user=self.user,
        )
        log.refresh_from_db()
        self.assertEqual(log.changed_fields, {'name': {'old': 'Bolt Supply', 'new': 'Bolt Supply Ltd'}})
        self.assertEqual(log.changed_fields_count, 1)
        self.assertTrue(log.detailed_description.endswith('. Changed fields: name'))
        self.assertEqual(log.format_old_value('is_active'), 'true')
        self.assertEqual(log.format_new_value('missing'), '(null)')

    def test_log_delete_and_system_user(self):
        log = AuditLog.log_delete(self.tenant, self.supplier, {'name': 'Bolt Supply'})
        self.assertEqual(log.action, 'deleted')
        self.assertEqual(log.user_name, 'System')
        self.assertEqual(log.changed_fields, {})
        self.assertFalse(log.has_new_values)
        self.assertEqual(log.action_color, 'red')
        self.assertEqual(log.action_icon, 'trash')

    def test_log_action_without_record(self):
        log = AuditLog.log_action(self.tenant, 'login', user=self.user, ip_address='192.168.1.5')
        self.assertIsNone(log.record_id)
        self.assertEqual(log.action_label, 'Logged In')
        self.assertEqual(log.description, 'Alex Auditor logged in Record')

    def test_unknown_action_label(self):
        log = AuditLog.log_action(self.tenant, 'bulk_price_change')
        self.assertEqual(log.action_label, 'Bulk price change')
        self.assertEqual(log.action_icon, 'document')
        self.assertEqual(log.action_color, 'gray')

    def test_format_value(self):
        self.assertEqual(format_value(None), '(null)')
        self.assertEqual(format_value(''), '(empty)')
        self.assertEqual(format_value(False), 'false')
        self.assertEqual(format_value([1, 2]), '[1, 2]')
        self.assertEqual(format_value(42), '42')


# ── Scopes and reports ─────────────────────────────────────────────────────────

class AuditReportTest(AuditLogTestCase):

    def setUp(self):
        AuditLog.log_create(self.tenant, self.supplier, {'name': 'Bolt Supply'}, user=self.user)
        AuditLog.log_update(self.tenant, self.supplier, {'name': 'a'}, {'name': 'b'}, user=self.user)
        AuditLog.log_update(self.tenant, self.supplier, {'name': 'b'}, {'name': 'c'})
        AuditLog.log_action(self.other_tenant, 'login')

    def test_scopes(self):
        qs = AuditLog.objects.for_tenant(self.tenant)
        self.assertEqual(qs.count(), 3)
        self.assertEqual(qs.updated().count(), 2)
        self.assertEqual(qs.for_object(self.supplier).count(), 3)
        self.assertEqual(qs.for_record(self.supplier._meta.db_table, self.supplier.pk).count(), 3)
        self.assertEqual(qs.for_user(self.user).count(), 2)
        self.assertEqual(qs.recent().count(), 3)
        self.assertEqual(qs.today().count(), 3)

    def test_activity_reports(self):
        by_action = AuditLog.activity_by_action(self.tenant)
        self.assertEqual(by_action, [{'action': 'updated', 'count': 2}, {'action': 'created', 'count': 1}])

        by_user = AuditLog.activity_by_user(self.tenant)
        self.assertEqual(by_user[0], {'user': self.user.pk, 'activity_count': 2})

        by_table = AuditLog.activity_by_table(self.tenant)
        self.assertEqual(by_table, [{'table_name': self.supplier._meta.db_table, 'count': 3}])

    def test_recent_activity(self):
        recent = list(AuditLog.recent_activity(self.tenant, limit=2))
        self.assertEqual(len(recent), 2)
        self.assertEqual(recent[0].new_values, {'name': 'c'})
