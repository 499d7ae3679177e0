"""
User, role and login-session models.

Users belong to a tenant (platform super admins may have none), carry a role
name, optional warehouse/shop assignment, and individual permissions that
add to the role's defaults.
"""
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.db import models
from django.utils import timezone


ADMIN_ROLES = ('super_admin', 'tenant_admin', 'admin')
MANAGER_ROLES = ('warehouse_manager', 'shop_manager')


class Role(models.Model):
    """
    Named role with a default permission set.

    System roles ship with the platform and cannot be deleted.
    """
    name = models.CharField(max_length=50, unique=True)
    display_name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    default_permissions = models.JSONField(
        default=list,
        blank=True,
        help_text="Permission names granted to every user with this role"
    )
    is_system_role = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.display_name

    def has_permission(self, permission):
        return permission in (self.default_permissions or [])

    def add_permission(self, permission):
        if not self.has_permission(permission):
            self.default_permissions = [*(self.default_permissions or []), permission]
            self.save(update_fields=['default_permissions', 'updated_at'])

    def remove_permission(self, permission):
        self.default_permissions = [p for p in (self.default_permissions or []) if p != permission]
        self.save(update_fields=['default_permissions', 'updated_at'])

    def sync_permissions(self, permissions):
        self.default_permissions = list(dict.fromkeys(permissions))
        self.save(update_fields=['default_permissions', 'updated_at'])

    def can_be_deleted(self):
        return not self.is_system_role and not User.objects.filter(role=self.name).exists()


class UserQuerySet(models.QuerySet):
    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def by_role(self, role):
        return self.filter(role=role)

    def admins(self):
        return self.filter(role__in=ADMIN_ROLES)

    def managers(self):
        return self.filter(role__in=MANAGER_ROLES)

    def employees(self):
        return self.filter(role='employee')

    def customers(self):
        return self.filter(role='customer')


class UserManager(DjangoUserManager.from_queryset(UserQuerySet)):
    pass


class User(AbstractUser):
    """
    Custom User Model inheriting from AbstractUser for flexibility.
    """
    ROLE_CHOICES = [
        ('super_admin', 'Super Admin'),
        ('tenant_admin', 'Tenant Admin'),
        ('admin', 'Admin'),
        ('warehouse_manager', 'Warehouse Manager'),
        ('shop_manager', 'Shop Manager'),
        ('employee', 'Employee'),
        ('customer', 'Customer'),
    ]

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='users'
    )
    name = models.CharField(max_length=255)
    phone_number = models.CharField(max_length=30, blank=True)
    address = models.TextField(blank=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default='employee')
    warehouse = models.ForeignKey(
        'warehousing.Warehouse',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='staff'
    )
    shop = models.ForeignKey(
        'warehousing.Shop',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='staff'
    )
    permissions = models.JSONField(
        default=list,
        blank=True,
        help_text="Individual permissions on top of the role's defaults"
    )
    hire_date = models.DateField(null=True, blank=True)
    salary = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    objects = UserManager()

    class Meta:
        indexes = [
            models.Index(fields=['tenant', 'role']),
        ]

    def __str__(self):
        return self.name or self.username

    @property
    def is_super_admin(self):
        return self.role == 'super_admin'

    @property
    def is_tenant_admin(self):
        return self.role == 'tenant_admin'

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    @property
    def is_manager(self):
        return self.role in MANAGER_ROLES

    @property
    def is_employee(self):
        return self.role == 'employee'

    @property
    def is_customer(self):
        return self.role == 'customer'

    def has_role(self, role):
        return self.role == role

    def has_any_role(self, roles):
        return self.role in roles

    @property
    def role_model(self):
        return Role.objects.filter(name=self.role).first()

    def role_permissions(self):
        role = self.role_model
        return list(role.default_permissions or []) if role else []

    def all_permissions(self):
        """Role permissions followed by individual ones, without duplicates."""
        return list(dict.fromkeys(self.role_permissions() + list(self.permissions or [])))

    def has_permission(self, permission):
        """
        Super admins hold every permission; otherwise individual permissions
        are checked first, then the role's defaults.
        """
        if self.is_super_admin:
            return True
        if permission in (self.permissions or []):
            return True
        role = self.role_model
        return role is not None and role.has_permission(permission)

    def add_permission(self, permission):
        if permission not in (self.permissions or []):
            self.permissions = [*(self.permissions or []), permission]
            self.save(update_fields=['permissions'])

    def remove_permission(self, permission):
        self.permissions = [p for p in (self.permissions or []) if p != permission]
        self.save(update_fields=['permissions'])


class UserSessionQuerySet(models.QuerySet):
    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def for_user(self, user):
        return self.filter(user=user)

    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def logged_out(self):
        return self.filter(logout_at__isnull=False)

    def by_ip_address(self, ip_address):
        return self.filter(ip_address=ip_address)

    def recent(self, hours=24):
        return self.filter(login_at__gte=timezone.now() - timedelta(hours=hours))

    def _close(self):
        return self.filter(is_active=True).update(is_active=False, logout_at=timezone.now())


class UserSession(models.Model):
    """
    A login session. Request metadata (IP, user agent) is always passed in
    by the caller.
    """
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='user_sessions'
    )
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='user_sessions')
    session_token = models.CharField(max_length=255, unique=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    login_at = models.DateTimeField(default=timezone.now)
    last_activity_at = models.DateTimeField(default=timezone.now)
    logout_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    objects = UserSessionQuerySet.as_manager()

    class Meta:
        ordering = ['-login_at']
        indexes = [
            models.Index(fields=['tenant', 'is_active']),
            models.Index(fields=['user', 'is_active']),
        ]

    def __str__(self):
        return f"{self.user} @ {self.login_at:%Y-%m-%d %H:%M}"

    @property
    def is_open(self):
        return self.is_active and self.logout_at is None

    @property
    def duration(self):
        """Session length in whole minutes (up to now while still open)."""
        end = self.logout_at or timezone.now()
        return int((end - self.login_at).total_seconds() // 60)

    @property
    def duration_formatted(self):
        minutes = self.duration
        if minutes < 60:
            return f"{minutes} minutes"
        hours, remaining_minutes = divmod(minutes, 60)
        if hours < 24:
            return f"{hours}h {remaining_minutes}m"
        days, remaining_hours = divmod(hours, 24)
        return f"{days}d {remaining_hours}h"

    @property
    def browser(self):
        agent = self.user_agent or ''
        if not agent:
            return 'Unknown'
        if 'Edg' in agent:
            return 'Edge'
        if 'OPR' in agent or 'Opera' in agent:
            return 'Opera'
        if 'Chrome' in agent:
            return 'Chrome'
        if 'Firefox' in agent:
            return 'Firefox'
        if 'Safari' in agent:
            return 'Safari'
        if 'MSIE' in agent or 'Trident' in agent:
            return 'Internet Explorer'
        return 'Unknown'

    @property
    def operating_system(self):
        agent = self.user_agent or ''
        if not agent:
            return 'Unknown'
        if 'Windows' in agent:
            return 'Windows'
        if 'Android' in agent:
            return 'Android'
        if 'iPhone' in agent or 'iPad' in agent:
            return 'iOS'
        if 'Mac OS' in agent:
            return 'macOS'
        if 'Linux' in agent:
            return 'Linux'
        return 'Unknown'

    @property
    def device_type(self):
        agent = (self.user_agent or '').lower()
        if not agent:
            return 'Unknown'
        if 'tablet' in agent or 'ipad' in agent:
            return 'Tablet'
        if 'mobile' in agent or 'android' in agent:
            return 'Mobile'
        return 'Desktop'

    def terminate(self):
        self.is_active = False
        self.logout_at = timezone.now()
        self.save(update_fields=['is_active', 'logout_at'])

    def extend(self):
        """Record activity on the session."""
        self.last_activity_at = timezone.now()
        self.save(update_fields=['last_activity_at'])

    @classmethod
    def create_session(cls, tenant, user, token, ip_address=None, user_agent=''):
        return cls.objects.create(
            tenant=tenant,
            user=user,
            session_token=token,
            ip_address=ip_address,
            user_agent=user_agent or '',
        )

    @classmethod
    def find_by_token(cls, token):
        return cls.objects.filter(session_token=token, is_active=True).first()

    @classmethod
    def terminate_all_for_user(cls, user):
        return cls.objects.for_user(user)._close()

    @classmethod
    def terminate_all_for_tenant(cls, tenant):
        return cls.objects.for_tenant(tenant)._close()

    @classmethod
    def cleanup_expired_sessions(cls, hours=None):
        """Close sessions opened more than ``hours`` ago (USER_SESSION_TTL_HOURS by default). Returns the number closed."""
        hours = hours or settings.USER_SESSION_TTL_HOURS
        cutoff = timezone.now() - timedelta(hours=hours)
        return cls.objects.filter(login_at__lt=cutoff)._close()
