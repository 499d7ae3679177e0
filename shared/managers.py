# shared/managers.py
"""
Tenant-scoped querysets.

Every tenant-owned model exposes a QuerySet built on TenantQuerySet so callers
state the tenant explicitly:

    Product.objects.for_tenant(tenant).active()

Nothing is read from thread-local or request state; the tenant is always
an argument.
"""
from datetime import timedelta

from django.db import models
from django.utils import timezone


class TenantQuerySet(models.QuerySet):
    """
    Base QuerySet for models inheriting TenantMixin.

    Subclasses add the model's own named scopes. All scopes return querysets
    so they chain:

        Purchase.objects.for_tenant(tenant).confirmed().by_supplier(supplier)
    """

    def for_tenant(self, tenant):
        """Restrict to rows owned by ``tenant`` (instance or primary key)."""
        return self.filter(tenant=tenant)

    def created_between(self, start, end):
        return self.filter(created_at__range=(start, end))

    def created_recently(self, days=30):
        return self.filter(created_at__gte=timezone.now() - timedelta(days=days))


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    """Default manager for tenant-owned models without extra scopes."""
    pass
