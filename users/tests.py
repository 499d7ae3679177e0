"""
Tests for User roles and permissions, Role, and UserSession.
"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from apps.tenants.models import Tenant
from users.models import Role, User, UserSession


CHROME_WINDOWS = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0 Safari/537.36'
)
SAFARI_IPHONE = (
    'Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 '
    '(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1'
)


class UserRoleTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='USR', company_name='Users Co')
        Role.objects.create(
            name='shop_manager', display_name='Shop Manager',
            default_permissions=['orders.view', 'orders.ship'], is_system_role=True,
        )

    def test_manager_is_importable_and_chains_scopes(self):
        _, path, _, _, _ = User.objects.deconstruct()
        self.assertEqual(path, 'users.models.UserManager')
        staff = User.objects.create_user(username='e', password='pass', tenant=self.tenant, role='employee')
        self.assertEqual(list(User.objects.for_tenant(self.tenant).active().employees()), [staff])

    def test_role_predicates(self):
        admin = User.objects.create_user(username='a', password='pass', tenant=self.tenant, role='tenant_admin')
        manager = User.objects.create_user(username='m', password='pass', tenant=self.tenant, role='shop_manager')
        self.assertTrue(admin.is_admin)
        self.assertTrue(admin.is_tenant_admin)
        self.assertFalse(admin.is_manager)
        self.assertTrue(manager.is_manager)
        self.assertTrue(manager.has_any_role(['employee', 'shop_manager']))
        self.assertEqual(list(User.objects.for_tenant(self.tenant).admins()), [admin])

    def test_permissions_combine_role_and_individual(self):
        manager = User.objects.create_user(
            username='m', password='pass', tenant=self.tenant, role='shop_manager',
        )
        self.assertTrue(manager.has_permission('orders.ship'))
        self.assertFalse(manager.has_permission('expenses.approve'))

        manager.add_permission('expenses.approve')
        manager.add_permission('orders.view')
        self.assertTrue(manager.has_permission('expenses.approve'))
        self.assertEqual(manager.all_permissions(), ['orders.view', 'orders.ship', 'expenses.approve'])

        manager.remove_permission('expenses.approve')
        self.assertFalse(manager.has_permission('expenses.approve'))

    def test_super_admin_has_everything(self):
        root = User.objects.create_user(username='root', password='pass', role='super_admin')
        self.assertTrue(root.has_permission('anything.at_all'))

    def test_role_management(self):
        role = Role.objects.create(name='auditor', display_name='Auditor')
        role.add_permission('audit.view')
        role.add_permission('audit.view')
        self.assertEqual(role.default_permissions, ['audit.view'])
        role.sync_permissions(['audit.view', 'audit.export', 'audit.view'])
        self.assertEqual(role.default_permissions, ['audit.view', 'audit.export'])
        self.assertTrue(role.can_be_deleted())

        User.objects.create_user(username='aud', password='pass', tenant=self.tenant, role='auditor')
        self.assertFalse(role.can_be_deleted())
        self.assertFalse(Role.objects.get(name='shop_manager').can_be_deleted())


class UserSessionTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = Tenant.objects.create(tenant_code='SES', company_name='Session Co')
        cls.user = User.objects.create_user(username='sam', password='pass', tenant=cls.tenant)
        cls.other = User.objects.create_user(username='kim', password='pass', tenant=cls.tenant)

    def test_create_and_terminate(self):
        session = UserSession.create_session(self.tenant, self.user, 'tok-1', '10.1.1.1', CHROME_WINDOWS)
        self.assertTrue(session.is_open)
        self.assertEqual(UserSession.find_by_token('tok-1'), session)

        session.terminate()
        self.assertFalse(session.is_open)
        self.assertIsNone(UserSession.find_by_token('tok-1'))

    def test_user_agent_parsing(self):
        desktop = UserSession.create_session(self.tenant, self.user, 'tok-1', user_agent=CHROME_WINDOWS)
        phone = UserSession.create_session(self.tenant, self.user, 'tok-2', user_agent=SAFARI_IPHONE)
        blank = UserSession.create_session(self.tenant, self.user, 'tok-3')
        self.assertEqual((desktop.browser, desktop.operating_system, desktop.device_type),
                         ('Chrome', 'Windows', 'Desktop'))
        self.assertEqual((phone.browser, phone.operating_system, phone.device_type),
                         ('Safari', 'iOS', 'Mobile'))
        self.assertEqual((blank.browser, blank.operating_system, blank.device_type),
                         ('Unknown', 'Unknown', 'Unknown'))

    def test_duration_formatting(self):
        now = timezone.now()
        session = UserSession(user=self.user, login_at=now - timedelta(minutes=45), logout_at=now)
        self.assertEqual(session.duration_formatted, '45 minutes')
        session.login_at = now - timedelta(hours=3, minutes=5)
        self.assertEqual(session.duration_formatted, '3h 5m')
        session.login_at = now - timedelta(days=2, hours=4)
        self.assertEqual(session.duration_formatted, '2d 4h')

    def test_bulk_termination(self):
        UserSession.create_session(self.tenant, self.user, 'a')
        UserSession.create_session(self.tenant, self.user, 'b')
        UserSession.create_session(self.tenant, self.other, 'c')
        self.assertEqual(UserSession.terminate_all_for_user(self.user), 2)
        self.assertEqual(UserSession.objects.active().count(), 1)
        self.assertEqual(UserSession.terminate_all_for_tenant(self.tenant), 1)
        self.assertEqual(UserSession.objects.logged_out().count(), 3)

    def test_cleanup_expired_sessions(self):
        old = UserSession.create_session(self.tenant, self.user, 'old')
        UserSession.objects.filter(pk=old.pk).update(login_at=timezone.now() - timedelta(hours=30))
        UserSession.create_session(self.tenant, self.user, 'new')
        self.assertEqual(UserSession.cleanup_expired_sessions(24), 1)
        self.assertEqual(list(UserSession.objects.active().values_list('session_token', flat=True)), ['new'])
