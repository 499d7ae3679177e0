# apps/tenants/signals.py
"""
Signals for automatic tenant setup.

When a Tenant is created:
1. Create TenantSequence records for all sequence types
2. Start the trial clock if the tenant is on trial
"""
from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver
from .models import Tenant, TenantSequence, DEFAULT_SEQUENCES


@receiver(post_save, sender=Tenant)
def create_tenant_sequences(sender, instance, created, **kwargs):
    """
    Automatically create sequence records for all sequence types when a Tenant is created.
    """
    if created:
        for seq_type, prefix, padding in DEFAULT_SEQUENCES:
            TenantSequence.objects.get_or_create(
                tenant=instance,
                sequence_type=seq_type,
                defaults={'prefix': prefix, 'padding': padding},
            )


@receiver(post_save, sender=Tenant)
def start_trial(sender, instance, created, **kwargs):
    """New trial tenants without an explicit day count get the configured trial length."""
    if created and instance.is_trial and not instance.trial_days_remaining:
        Tenant.objects.filter(pk=instance.pk).update(trial_days_remaining=settings.TENANT_TRIAL_DAYS)
        instance.trial_days_remaining = settings.TENANT_TRIAL_DAYS
